"""証明書マネージャーのDTO

作成方法ごとに必要な項目だけを持つ入力型を定義する。
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from features.certmanager.domain.models import CARecord, CertificateRecord, DistinguishedName
from features.certmanager.domain.policy import DEFAULT_EC_CURVE
from features.certmanager.domain.types import CertificateState, Pkcs12EncryptionLevel

NEW_CSR = "new"


@dataclass(slots=True, frozen=True)
class AltNameInput:
    """未検証のsubjectAltName指定(種別は文字列のまま受け取る)"""

    kind: str
    value: str


@dataclass(slots=True, kw_only=True)
class InternalCertificateInput:
    description: str
    ca_ref: str
    subject: DistinguishedName
    alt_names: list[AltNameInput] = field(default_factory=list)
    key_type: str = "RSA"
    key_length: int = 2048
    curve: str = DEFAULT_EC_CURVE
    digest_alg: str = "sha256"
    cert_type: str = "user"
    lifetime_days: int | None = None
    user_id: str | None = None


@dataclass(slots=True, kw_only=True)
class ExternalCsrInput:
    description: str
    subject: DistinguishedName
    alt_names: list[AltNameInput] = field(default_factory=list)
    key_type: str = "RSA"
    key_length: int = 2048
    curve: str = DEFAULT_EC_CURVE
    digest_alg: str = "sha256"
    cert_type: str = "user"
    user_id: str | None = None


@dataclass(slots=True, kw_only=True)
class SignCsrInput:
    """CSR署名の入力

    ``csr_ref`` が ``"new"`` の場合は ``csr_pem``/``key_pem`` の貼り付け値を使い、
    それ以外は保存済みCSRレコードのref_idとして扱う。
    """

    description: str
    ca_ref: str
    csr_ref: str = NEW_CSR
    csr_pem: str | None = None
    key_pem: str | None = None
    alt_names: list[AltNameInput] = field(default_factory=list)
    digest_alg: str = "sha256"
    cert_type: str = "user"
    lifetime_days: int | None = None
    user_id: str | None = None


@dataclass(slots=True, kw_only=True)
class ImportX509Input:
    description: str
    certificate_pem: str
    private_key_pem: str | None = None
    user_id: str | None = None


@dataclass(slots=True, kw_only=True)
class ImportPkcs12Input:
    description: str
    data: bytes | None
    password: str | None = None
    import_intermediates: bool = False
    user_id: str | None = None


@dataclass(slots=True, kw_only=True)
class EditCertificateInput:
    ref_id: str
    description: str
    certificate_pem: str
    private_key_pem: str | None = None


@dataclass(slots=True, kw_only=True)
class ExistingCertificateInput:
    user_id: str
    cert_ref: str


@dataclass(slots=True, kw_only=True)
class CompleteCsrInput:
    ref_id: str
    description: str
    certificate_pem: str


@dataclass(slots=True, kw_only=True)
class RenewCertificateInput:
    ref_id: str
    lifetime_days: int | None = None
    digest_alg: str = "sha256"
    rotate_key: bool = False


@dataclass(slots=True, kw_only=True)
class ExportPkcs12Input:
    ref_id: str
    password: str | None = None
    level: Pkcs12EncryptionLevel | str | None = None


@dataclass(slots=True)
class CertificateOperationResult:
    """作成・署名・更新系ユースケースの結果

    ``advisories`` には処理を止めないポリシー上の注意事項が入る。
    """

    record: CertificateRecord
    message: str
    advisories: list[str] = field(default_factory=list)
    created_cas: list[CARecord] = field(default_factory=list)


@dataclass(slots=True)
class ExportResult:
    filename: str
    content: bytes
    mimetype: str


@dataclass(slots=True)
class CertificateSummary:
    ref_id: str
    description: str
    issuer: str
    state: CertificateState
    cert_type: str | None = None
    subject: str = ""
    not_before: datetime | None = None
    not_after: datetime | None = None
    is_ca: bool = False
    is_server: bool = False
    has_private_key: bool = False
    revoked: bool = False
    renewable: bool = False
    consumers: list[str] = field(default_factory=list)

    @property
    def in_use(self) -> bool:
        return bool(self.consumers)


@dataclass(slots=True, frozen=True)
class SelectionOption:
    value: str
    label: str


__all__ = [
    "AltNameInput",
    "CertificateOperationResult",
    "CertificateSummary",
    "CompleteCsrInput",
    "EditCertificateInput",
    "ExistingCertificateInput",
    "ExportPkcs12Input",
    "ExportResult",
    "ExternalCsrInput",
    "ImportPkcs12Input",
    "ImportX509Input",
    "InternalCertificateInput",
    "NEW_CSR",
    "RenewCertificateInput",
    "SelectionOption",
    "SignCsrInput",
]
