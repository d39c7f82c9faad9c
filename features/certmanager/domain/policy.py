"""鍵長・曲線・ダイジェスト・有効期限に関するポリシー定義"""
from __future__ import annotations

from datetime import datetime, timezone

from .types import KeyType, Pkcs12EncryptionLevel

RSA_KEY_LENGTHS: tuple[int, ...] = (1024, 2048, 3072, 4096, 6144, 7680, 8192, 15360, 16384)
KEY_TYPES: tuple[KeyType, ...] = (KeyType.RSA, KeyType.ECDSA)

# OpenSSL名 -> 表示ラベル
EC_CURVES: dict[str, str] = {
    "prime256v1": "prime256v1 [HTTPS] [IPsec] [OpenVPN]",
    "secp384r1": "secp384r1 [HTTPS] [IPsec] [OpenVPN]",
    "secp521r1": "secp521r1 [IPsec] [OpenVPN]",
    "secp224r1": "secp224r1",
    "secp256k1": "secp256k1",
    "brainpoolP256r1": "brainpoolP256r1",
    "brainpoolP384r1": "brainpoolP384r1",
    "brainpoolP512r1": "brainpoolP512r1",
}

DIGEST_ALGORITHMS: tuple[str, ...] = ("sha1", "sha224", "sha256", "sha384", "sha512")

DEFAULT_DIGEST_BLACKLIST: tuple[str, ...] = (
    "md4",
    "RSA-MD4",
    "md5",
    "RSA-MD5",
    "md5-sha1",
    "mdc2",
    "RSA-MDC2",
    "sha1",
    "RSA-SHA1",
    "RSA-SHA1-2",
)

DEFAULT_MAX_SERVER_CERT_LIFETIME = 398
DEFAULT_MIN_PRIVATE_KEY_BITS = 2048
DEFAULT_EC_CURVE = "prime256v1"

CERT_MAX_LIFETIME = 12000
DEFAULT_LIFETIME_CAP = 3650

# UTCTimeで表現できる上限
_LIFETIME_HORIZON = datetime(2049, 12, 31, 23, 59, 59, tzinfo=timezone.utc)

EXPORT_PASSWORD_MIN_LENGTH = 4
EXPORT_PASSWORD_MAX_LENGTH = 1023

PKCS12_ENCRYPTION_LEVELS: dict[Pkcs12EncryptionLevel, str] = {
    Pkcs12EncryptionLevel.HIGH: "High: AES-256-CBC with SHA-256",
    Pkcs12EncryptionLevel.LOW: "Low: 3DES with SHA-1",
    Pkcs12EncryptionLevel.LEGACY: "Legacy: 3DES with SHA-1, reduced KDF rounds",
}


def compute_max_lifetime(now: datetime | None = None, ceiling: int = CERT_MAX_LIFETIME) -> int:
    """発行日から2049年末を超えない最大有効日数を返す"""

    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    remaining = (_LIFETIME_HORIZON - now).days
    return max(min(ceiling, remaining), 1)


__all__ = [
    "CERT_MAX_LIFETIME",
    "DEFAULT_DIGEST_BLACKLIST",
    "DEFAULT_EC_CURVE",
    "DEFAULT_LIFETIME_CAP",
    "DEFAULT_MAX_SERVER_CERT_LIFETIME",
    "DEFAULT_MIN_PRIVATE_KEY_BITS",
    "DIGEST_ALGORITHMS",
    "EC_CURVES",
    "EXPORT_PASSWORD_MAX_LENGTH",
    "EXPORT_PASSWORD_MIN_LENGTH",
    "KEY_TYPES",
    "PKCS12_ENCRYPTION_LEVELS",
    "RSA_KEY_LENGTHS",
    "compute_max_lifetime",
]
