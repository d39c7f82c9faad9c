"""証明書マネージャーで利用する例外定義"""
from __future__ import annotations

from typing import Iterable


class CertificateError(Exception):
    """証明書関連の基本例外"""


class CertificateValidationError(CertificateError):
    """入力の検証に失敗した際の例外

    検出した問題はすべて ``problems`` に保持する。
    """

    def __init__(self, problems: Iterable[str] | str) -> None:
        if isinstance(problems, str):
            problems = [problems]
        self.problems: list[str] = list(problems)
        super().__init__("; ".join(self.problems))


class CertificatePolicyError(CertificateError):
    """有効期限・鍵長・パスワード長などのポリシー違反"""

    def __init__(self, problems: Iterable[str] | str) -> None:
        if isinstance(problems, str):
            problems = [problems]
        self.problems: list[str] = list(problems)
        super().__init__("; ".join(self.problems))


class CertificateCryptoError(CertificateError):
    """暗号ライブラリ由来の例外"""

    def __init__(self, message: str, messages: Iterable[str] | None = None) -> None:
        self.messages: list[str] = list(messages) if messages else [message]
        super().__init__(message)


class KeyGenerationError(CertificateCryptoError):
    """鍵生成時の例外"""


class CertificateSigningError(CertificateCryptoError):
    """証明書署名時の例外"""


class CertificateExportError(CertificateCryptoError):
    """鍵・PKCS#12エクスポート時の例外"""


class CertificateMismatchError(CertificateError):
    """公開鍵のフィンガープリントが一致しない場合の例外"""


class CertificateInUseError(CertificateError):
    """他サブシステムが参照中のため削除できない場合の例外"""

    def __init__(self, message: str, consumers: Iterable[str] | None = None) -> None:
        self.consumers: list[str] = list(consumers or [])
        super().__init__(message)


class CertificatePersistError(CertificateError):
    """設定ストアへの書き込みに失敗した場合の例外"""


class Pkcs12ImportError(CertificateError):
    """PKCS#12のパスワード誤り、または未対応の暗号方式"""


class CertificateNotFoundError(CertificateError):
    """証明書・CAが存在しない場合の例外"""
