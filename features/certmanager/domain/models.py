"""証明書マネージャーのドメインモデル"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime

from .types import AltNameKind, CertificateState, CertificateType, KeyType


@dataclass(slots=True, frozen=True)
class AltName:
    """subjectAltNameの1エントリ"""

    kind: AltNameKind
    value: str

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.value}"


@dataclass(slots=True, frozen=True)
class DistinguishedName:
    """subject DN。空でない属性のみを固定順で保持する"""

    common_name: str
    country: str | None = None
    state: str | None = None
    locality: str | None = None
    organization: str | None = None
    organizational_unit: str | None = None

    def items(self) -> list[tuple[str, str]]:
        """(属性名, 値) を commonName, C, ST, L, O, OU の順で返す"""

        pairs = [
            ("commonName", self.common_name),
            ("countryName", self.country),
            ("stateOrProvinceName", self.state),
            ("localityName", self.locality),
            ("organizationName", self.organization),
            ("organizationalUnitName", self.organizational_unit),
        ]
        return [(name, value) for name, value in pairs if value]


@dataclass(slots=True, frozen=True)
class KeySpec:
    """生成する鍵の種別とサイズ(RSA)/曲線名(ECDSA)"""

    key_type: KeyType = KeyType.RSA
    key_length: int = 2048
    curve: str = "prime256v1"


@dataclass(slots=True)
class CertificateRecord:
    """設定ストアに保存される証明書レコード

    証明書・秘密鍵・CSRはいずれも任意だが、少なくとも1つを保持する。
    """

    ref_id: str
    description: str
    ca_ref: str | None = None
    certificate_pem: str | None = None
    private_key_pem: str | None = None
    csr_pem: str | None = None
    cert_type: CertificateType | None = None

    @property
    def state(self) -> CertificateState:
        if self.csr_pem:
            return CertificateState.CSR_PENDING
        if self.certificate_pem:
            return CertificateState.COMPLETE
        return CertificateState.PRIVATE_KEY_ONLY


@dataclass(slots=True)
class CARecord:
    """認証局レコード。秘密鍵を持たないCAは参照専用で署名できない"""

    ref_id: str
    description: str
    certificate_pem: str
    private_key_pem: str | None = None
    serial: int = 0
    ca_ref: str | None = None

    @property
    def can_sign(self) -> bool:
        return bool(self.private_key_pem)


@dataclass(slots=True, frozen=True)
class RevokedEntry:
    """CRLに登録された失効エントリ"""

    cert_ref: str | None = None
    serial: int | None = None
    reason: str | None = None
    revoked_at: datetime | None = None


@dataclass(slots=True)
class CrlRecord:
    """証明書失効リスト"""

    ref_id: str
    description: str
    ca_ref: str
    revoked: list[RevokedEntry] = field(default_factory=list)


@dataclass(slots=True)
class Pkcs12Contents:
    """PKCS#12から取り出した素材(PEM)"""

    certificate_pem: str | None
    private_key_pem: str | None
    extra_certificates_pem: list[str] = field(default_factory=list)


class RefIdGenerator:
    """時刻ベースの一意なref_idを払い出す

    同一マイクロ秒内の払い出しでも重複しないよう前回値より必ず大きい値を返す。
    """

    def __init__(self) -> None:
        self._last = 0

    def __call__(self) -> str:
        value = time.time_ns() // 1000
        if value <= self._last:
            value = self._last + 1
        self._last = value
        return f"{value:x}"


generate_ref_id = RefIdGenerator()


__all__ = [
    "AltName",
    "CARecord",
    "CertificateRecord",
    "CrlRecord",
    "DistinguishedName",
    "KeySpec",
    "Pkcs12Contents",
    "RefIdGenerator",
    "RevokedEntry",
    "generate_ref_id",
]
