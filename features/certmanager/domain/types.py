"""証明書マネージャーで扱う列挙型"""
from __future__ import annotations

from enum import Enum


class CertificateType(str, Enum):
    """証明書の種別。埋め込むkeyUsage/extendedKeyUsageを決定する"""

    SERVER = "server"
    USER = "user"


class KeyType(str, Enum):
    RSA = "RSA"
    ECDSA = "ECDSA"


class AltNameKind(str, Enum):
    """subjectAltNameの種別"""

    DNS = "DNS"
    IP = "IP"
    EMAIL = "email"
    URI = "URI"


class EntityKind(str, Enum):
    """設定ストアで扱うエンティティ種別"""

    CA = "ca"
    CERT = "cert"
    CRL = "crl"


class CertificateState(str, Enum):
    """証明書レコードの状態"""

    PRIVATE_KEY_ONLY = "private_key_only"
    CSR_PENDING = "csr_pending"
    COMPLETE = "complete"


class MaterialKind(str, Enum):
    """エクスポート対象の素材"""

    CERTIFICATE = "crt"
    CSR = "req"
    PRIVATE_KEY = "key"
    PKCS12 = "p12"


class Pkcs12EncryptionLevel(str, Enum):
    """PKCS#12エクスポート時の暗号化レベル"""

    HIGH = "high"
    LOW = "low"
    LEGACY = "legacy"


class SearchScope(str, Enum):
    """一覧検索で対象とする項目"""

    NAME = "name"
    DISTINGUISHED_NAME = "dn"
    BOTH = "both"


__all__ = [
    "AltNameKind",
    "CertificateState",
    "CertificateType",
    "EntityKind",
    "KeyType",
    "MaterialKind",
    "Pkcs12EncryptionLevel",
    "SearchScope",
]
