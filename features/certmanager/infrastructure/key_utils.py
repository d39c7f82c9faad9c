"""鍵・CSR・証明書・PKCS#12を扱う暗号プリミティブ"""
from __future__ import annotations

import hashlib
import ipaddress
from datetime import datetime, timedelta, timezone
from typing import Iterable, Sequence, Union

from cryptography import x509
from cryptography.exceptions import InternalError, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed448, ed25519, rsa
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID, ObjectIdentifier

from features.certmanager.domain.exceptions import (
    CertificateExportError,
    CertificateSigningError,
    CertificateValidationError,
    KeyGenerationError,
    Pkcs12ImportError,
)
from features.certmanager.domain.models import AltName, DistinguishedName, KeySpec, Pkcs12Contents
from features.certmanager.domain.policy import RSA_KEY_LENGTHS
from features.certmanager.domain.types import (
    AltNameKind,
    CertificateType,
    KeyType,
    Pkcs12EncryptionLevel,
)

PrivateKey = Union[
    rsa.RSAPrivateKey,
    ec.EllipticCurvePrivateKey,
    ed25519.Ed25519PrivateKey,
    ed448.Ed448PrivateKey,
]
PemInput = Union[str, bytes]

_NAME_OIDS: dict[str, ObjectIdentifier] = {
    "commonName": NameOID.COMMON_NAME,
    "countryName": NameOID.COUNTRY_NAME,
    "stateOrProvinceName": NameOID.STATE_OR_PROVINCE_NAME,
    "localityName": NameOID.LOCALITY_NAME,
    "organizationName": NameOID.ORGANIZATION_NAME,
    "organizationalUnitName": NameOID.ORGANIZATIONAL_UNIT_NAME,
}

_CURVES: dict[str, type[ec.EllipticCurve]] = {
    "prime256v1": ec.SECP256R1,
    "secp384r1": ec.SECP384R1,
    "secp521r1": ec.SECP521R1,
    "secp224r1": ec.SECP224R1,
    "secp256k1": ec.SECP256K1,
    "brainpoolP256r1": ec.BrainpoolP256R1,
    "brainpoolP384r1": ec.BrainpoolP384R1,
    "brainpoolP512r1": ec.BrainpoolP512R1,
}

_DIGESTS: dict[str, type[hashes.HashAlgorithm]] = {
    "sha1": hashes.SHA1,
    "sha224": hashes.SHA224,
    "sha256": hashes.SHA256,
    "sha384": hashes.SHA384,
    "sha512": hashes.SHA512,
}

# IKE中間証明書用途(IPsec)
_IKE_INTERMEDIATE = ObjectIdentifier("1.3.6.1.5.5.8.2.2")

_NOISY_OPENSSL_MESSAGES = ("NCONF_get_string:no value",)

# load_key_and_certificates がDER構造の解析に失敗した場合のメッセージ
_PKCS12_STRUCTURE_ERROR = "Could not deserialize PKCS12 data"

_PKCS12_KDF_ROUNDS = {
    Pkcs12EncryptionLevel.HIGH: 50000,
    Pkcs12EncryptionLevel.LOW: 50000,
    Pkcs12EncryptionLevel.LEGACY: 2048,
}


# ----------------------------------------------------------------------
# エラー整形
# ----------------------------------------------------------------------
def filter_crypto_messages(messages: Iterable[str]) -> list[str]:
    """無害なOpenSSLメッセージを取り除く"""

    filtered: list[str] = []
    for message in messages:
        text = (message or "").strip()
        if not text:
            continue
        if any(noise in text for noise in _NOISY_OPENSSL_MESSAGES):
            continue
        filtered.append(text)
    return filtered


def collect_openssl_messages(exc: BaseException) -> list[str]:
    """ライブラリ例外からOpenSSLのエラー文字列を取り出す"""

    raw: list[str] = []
    if isinstance(exc, InternalError):
        for error in getattr(exc, "err_code", None) or []:
            reason = getattr(error, "reason_text", b"")
            if isinstance(reason, bytes):
                reason = reason.decode("utf-8", "replace")
            raw.append(str(reason))
    raw.append(str(exc))
    return filter_crypto_messages(raw) or [exc.__class__.__name__]


# ----------------------------------------------------------------------
# 読み込み
# ----------------------------------------------------------------------
def _as_bytes(data: PemInput) -> bytes:
    if isinstance(data, str):
        return data.strip().encode("utf-8")
    raw = bytes(data)
    return raw.strip() if _is_pem(raw) else raw


def _is_pem(data: bytes) -> bool:
    return b"-----BEGIN" in data


def load_certificate(data: PemInput) -> x509.Certificate:
    raw = _as_bytes(data)
    try:
        if _is_pem(raw):
            return x509.load_pem_x509_certificate(raw)
        return x509.load_der_x509_certificate(raw)
    except ValueError as exc:  # noqa: B904
        raise CertificateValidationError("証明書の読み込みに失敗しました") from exc


def load_csr(data: PemInput) -> x509.CertificateSigningRequest:
    raw = _as_bytes(data)
    try:
        if _is_pem(raw):
            return x509.load_pem_x509_csr(raw)
        return x509.load_der_x509_csr(raw)
    except ValueError as exc:  # noqa: B904
        raise CertificateValidationError("CSRの読み込みに失敗しました") from exc


def load_private_key(data: PemInput, password: str | None = None) -> PrivateKey:
    raw = _as_bytes(data)
    secret = password.encode("utf-8") if password else None
    try:
        if _is_pem(raw):
            key = serialization.load_pem_private_key(raw, password=secret)
        else:
            key = serialization.load_der_private_key(raw, password=secret)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:  # noqa: B904
        raise CertificateValidationError("秘密鍵の読み込みに失敗しました") from exc
    return key  # type: ignore[return-value]


def certificate_to_pem(certificate: x509.Certificate) -> str:
    return certificate.public_bytes(serialization.Encoding.PEM).decode("utf-8")


def csr_to_pem(csr: x509.CertificateSigningRequest) -> str:
    return csr.public_bytes(serialization.Encoding.PEM).decode("utf-8")


def serialize_private_key(key: PrivateKey, password: str | None = None) -> str:
    encryption: serialization.KeySerializationEncryption
    if password:
        encryption = serialization.BestAvailableEncryption(password.encode("utf-8"))
    else:
        encryption = serialization.NoEncryption()
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=encryption,
    ).decode("utf-8")


# ----------------------------------------------------------------------
# フィンガープリント
# ----------------------------------------------------------------------
def _spki_der(public_key) -> bytes:
    return public_key.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def public_key_fingerprint(data: PemInput, source: str = "cert") -> bytes:
    """証明書・秘密鍵・CSRの公開鍵フィンガープリント(SHA-256)を返す

    2つの入力はフィンガープリントがバイト列として等しい場合に一致とみなす。
    """

    if source == "cert":
        public_key = load_certificate(data).public_key()
    elif source == "key":
        public_key = load_private_key(data).public_key()
    elif source == "csr":
        public_key = load_csr(data).public_key()
    else:
        raise ValueError(f"未知のsourceです: {source}")
    return hashlib.sha256(_spki_der(public_key)).digest()


def certificate_fingerprint(certificate: x509.Certificate) -> bytes:
    return certificate.fingerprint(hashes.SHA256())


# ----------------------------------------------------------------------
# 鍵生成
# ----------------------------------------------------------------------
def resolve_curve(name: str) -> ec.EllipticCurve:
    factory = _CURVES.get(name)
    if factory is None:
        raise KeyGenerationError(f"サポートされていない楕円曲線です: {name}")
    return factory()


def resolve_digest(name: str) -> hashes.HashAlgorithm:
    factory = _DIGESTS.get((name or "").lower())
    if factory is None:
        raise CertificateSigningError(f"サポートされていないダイジェストです: {name}")
    return factory()


def generate_private_key(spec: KeySpec) -> PrivateKey:
    """鍵ペア生成"""

    try:
        if spec.key_type == KeyType.RSA:
            if spec.key_length not in RSA_KEY_LENGTHS:
                raise KeyGenerationError(f"サポートされていないRSA鍵長です: {spec.key_length}")
            return rsa.generate_private_key(public_exponent=65537, key_size=spec.key_length)
        if spec.key_type == KeyType.ECDSA:
            return ec.generate_private_key(resolve_curve(spec.curve))
    except KeyGenerationError:
        raise
    except Exception as exc:  # noqa: BLE001 - cryptographyからの例外のラップ
        messages = collect_openssl_messages(exc)
        raise KeyGenerationError(messages[0], messages) from exc
    raise KeyGenerationError(f"未対応の鍵タイプです: {spec.key_type}")


# ----------------------------------------------------------------------
# DN / SAN / 拡張
# ----------------------------------------------------------------------
def build_name(dn: DistinguishedName) -> x509.Name:
    attributes: list[x509.NameAttribute] = []
    for attribute, value in dn.items():
        try:
            attributes.append(x509.NameAttribute(_NAME_OIDS[attribute], value))
        except ValueError as exc:  # cryptographyの制約をドメイン例外として返す
            raise CertificateValidationError(
                f"subject属性 {attribute} の値が不正です: {exc}"
            ) from exc
    return x509.Name(attributes)


def _general_name(alt_name: AltName) -> x509.GeneralName:
    if alt_name.kind == AltNameKind.DNS:
        return x509.DNSName(alt_name.value)
    if alt_name.kind == AltNameKind.IP:
        return x509.IPAddress(ipaddress.ip_address(alt_name.value))
    if alt_name.kind == AltNameKind.EMAIL:
        return x509.RFC822Name(alt_name.value)
    if alt_name.kind == AltNameKind.URI:
        return x509.UniformResourceIdentifier(alt_name.value)
    raise CertificateValidationError(f"未対応のsubjectAltName種別です: {alt_name.kind}")


def build_san_extension(alt_names: Sequence[AltName]) -> x509.SubjectAlternativeName | None:
    if not alt_names:
        return None
    try:
        return x509.SubjectAlternativeName([_general_name(item) for item in alt_names])
    except ValueError as exc:
        raise CertificateValidationError(f"subjectAltNameの値が不正です: {exc}") from exc


def alt_names_from_certificate(certificate: x509.Certificate) -> list[AltName]:
    """証明書のSAN拡張をAltNameのリストに戻す"""

    try:
        extension = certificate.extensions.get_extension_for_class(x509.SubjectAlternativeName)
    except x509.ExtensionNotFound:
        return []
    result: list[AltName] = []
    for name in extension.value:
        if isinstance(name, x509.DNSName):
            result.append(AltName(AltNameKind.DNS, name.value))
        elif isinstance(name, x509.IPAddress):
            result.append(AltName(AltNameKind.IP, str(name.value)))
        elif isinstance(name, x509.RFC822Name):
            result.append(AltName(AltNameKind.EMAIL, name.value))
        elif isinstance(name, x509.UniformResourceIdentifier):
            result.append(AltName(AltNameKind.URI, name.value))
    return result


def _type_key_usage(cert_type: CertificateType) -> x509.KeyUsage:
    return x509.KeyUsage(
        digital_signature=True,
        content_commitment=cert_type == CertificateType.USER,
        key_encipherment=True,
        data_encipherment=False,
        key_agreement=False,
        key_cert_sign=False,
        crl_sign=False,
        encipher_only=False,
        decipher_only=False,
    )


def _type_extended_key_usage(cert_type: CertificateType) -> x509.ExtendedKeyUsage:
    if cert_type == CertificateType.SERVER:
        return x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH, _IKE_INTERMEDIATE])
    return x509.ExtendedKeyUsage([ExtendedKeyUsageOID.CLIENT_AUTH])


def _signing_algorithm(private_key: PrivateKey, digest_alg: str) -> hashes.HashAlgorithm | None:
    if isinstance(private_key, (ed25519.Ed25519PrivateKey, ed448.Ed448PrivateKey)):
        return None
    return resolve_digest(digest_alg)


# ----------------------------------------------------------------------
# CSR / 署名
# ----------------------------------------------------------------------
def build_csr(
    private_key: PrivateKey,
    dn: DistinguishedName,
    alt_names: Sequence[AltName],
    digest_alg: str,
    cert_type: CertificateType | None = None,
) -> str:
    """CSRを生成しPEMで返す。SAN拡張はalt_namesが空でない場合のみ付与する"""

    builder = x509.CertificateSigningRequestBuilder().subject_name(build_name(dn))
    san = build_san_extension(alt_names)
    if san is not None:
        builder = builder.add_extension(san, critical=False)
    if cert_type is not None:
        builder = builder.add_extension(_type_key_usage(cert_type), critical=False)
        builder = builder.add_extension(_type_extended_key_usage(cert_type), critical=False)
    try:
        csr = builder.sign(private_key, _signing_algorithm(private_key, digest_alg))
    except CertificateSigningError:
        raise
    except Exception as exc:  # noqa: BLE001
        messages = collect_openssl_messages(exc)
        raise CertificateSigningError(messages[0], messages) from exc
    return csr_to_pem(csr)


def validity_window(lifetime_days: int, now: datetime | None = None) -> tuple[datetime, datetime]:
    if lifetime_days <= 0:
        raise CertificateValidationError("有効期限は1日以上で指定してください")
    start = (now or datetime.now(timezone.utc)).replace(microsecond=0)
    return start, start + timedelta(days=lifetime_days)


def _issue(
    *,
    subject: x509.Name,
    public_key,
    signer_key: PrivateKey,
    issuer_certificate: x509.Certificate | None,
    serial: int,
    lifetime_days: int,
    cert_type: CertificateType,
    alt_names: Sequence[AltName],
    digest_alg: str,
    now: datetime | None,
) -> x509.Certificate:
    if issuer_certificate is not None:
        if _spki_der(issuer_certificate.public_key()) != _spki_der(signer_key.public_key()):
            raise CertificateSigningError("CAの秘密鍵と証明書が一致しません")
        issuer_name = issuer_certificate.subject
    else:
        issuer_name = subject

    not_before, not_after = validity_window(lifetime_days, now)
    builder = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer_name)
        .public_key(public_key)
        .serial_number(serial)
        .not_valid_before(not_before)
        .not_valid_after(not_after)
        .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
        .add_extension(x509.SubjectKeyIdentifier.from_public_key(public_key), critical=False)
        .add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(signer_key.public_key()),
            critical=False,
        )
        .add_extension(_type_key_usage(cert_type), critical=False)
        .add_extension(_type_extended_key_usage(cert_type), critical=False)
    )
    san = build_san_extension(alt_names)
    if san is not None:
        builder = builder.add_extension(san, critical=False)

    try:
        return builder.sign(private_key=signer_key, algorithm=_signing_algorithm(signer_key, digest_alg))
    except CertificateSigningError:
        raise
    except Exception as exc:  # noqa: BLE001 - cryptography例外のラップ
        messages = collect_openssl_messages(exc)
        raise CertificateSigningError(messages[0], messages) from exc


def sign_csr(
    csr_pem: PemInput,
    ca_certificate_pem: PemInput,
    ca_private_key_pem: PemInput,
    *,
    serial: int,
    lifetime_days: int,
    cert_type: CertificateType,
    alt_names: Sequence[AltName],
    digest_alg: str,
    now: datetime | None = None,
) -> str:
    """CSRにCAで署名し証明書PEMを返す

    CSRに含まれるSANは引き継がず、署名者が指定したalt_namesを採用する。
    """

    try:
        csr = load_csr(csr_pem)
    except CertificateValidationError as exc:
        raise CertificateSigningError(str(exc)) from exc
    if not csr.is_signature_valid:
        raise CertificateSigningError("CSRの署名が不正です")
    try:
        ca_certificate = load_certificate(ca_certificate_pem)
        ca_key = load_private_key(ca_private_key_pem)
    except CertificateValidationError as exc:
        raise CertificateSigningError(str(exc)) from exc

    certificate = _issue(
        subject=csr.subject,
        public_key=csr.public_key(),
        signer_key=ca_key,
        issuer_certificate=ca_certificate,
        serial=serial,
        lifetime_days=lifetime_days,
        cert_type=cert_type,
        alt_names=alt_names,
        digest_alg=digest_alg,
        now=now,
    )
    return certificate_to_pem(certificate)


def self_issue(
    private_key: PrivateKey,
    dn: DistinguishedName | x509.Name,
    alt_names: Sequence[AltName],
    lifetime_days: int,
    cert_type: CertificateType,
    digest_alg: str,
    *,
    serial: int | None = None,
    ca_certificate_pem: PemInput | None = None,
    ca_private_key_pem: PemInput | None = None,
    now: datetime | None = None,
) -> str:
    """CSRを経由せずに証明書を発行する

    CAが指定されればCAで署名し、なければ自身の鍵で自己署名する。
    """

    subject = dn if isinstance(dn, x509.Name) else build_name(dn)
    ca_certificate = None
    signer_key: PrivateKey = private_key
    if ca_certificate_pem is not None:
        try:
            ca_certificate = load_certificate(ca_certificate_pem)
            if ca_private_key_pem is None:
                raise CertificateSigningError("CAに秘密鍵がないため署名できません")
            signer_key = load_private_key(ca_private_key_pem)
        except CertificateValidationError as exc:
            raise CertificateSigningError(str(exc)) from exc

    certificate = _issue(
        subject=subject,
        public_key=private_key.public_key(),
        signer_key=signer_key,
        issuer_certificate=ca_certificate,
        serial=serial if serial is not None else x509.random_serial_number(),
        lifetime_days=lifetime_days,
        cert_type=cert_type,
        alt_names=alt_names,
        digest_alg=digest_alg,
        now=now,
    )
    return certificate_to_pem(certificate)


def renew_certificate(
    certificate_pem: PemInput,
    *,
    serial: int | None,
    lifetime_days: int,
    cert_type: CertificateType,
    digest_alg: str,
    private_key: PrivateKey | None = None,
    ca_certificate_pem: PemInput | None = None,
    ca_private_key_pem: PemInput | None = None,
    now: datetime | None = None,
) -> str:
    """既存証明書のsubjectとSANを引き継いで再発行する

    ``private_key`` を渡すと公開鍵を差し替える(鍵のローテーション)。
    CA未指定の場合は ``private_key`` による自己署名となる。
    """

    try:
        current = load_certificate(certificate_pem)
    except CertificateValidationError as exc:
        raise CertificateSigningError(str(exc)) from exc
    public_key = private_key.public_key() if private_key is not None else current.public_key()

    issuer_certificate = None
    if ca_certificate_pem is not None:
        if ca_private_key_pem is None:
            raise CertificateSigningError("CAに秘密鍵がないため署名できません")
        try:
            issuer_certificate = load_certificate(ca_certificate_pem)
            signer_key = load_private_key(ca_private_key_pem)
        except CertificateValidationError as exc:
            raise CertificateSigningError(str(exc)) from exc
    elif private_key is not None:
        signer_key = private_key
    else:
        raise CertificateSigningError("自己署名の再発行には秘密鍵が必要です")

    renewed = _issue(
        subject=current.subject,
        public_key=public_key,
        signer_key=signer_key,
        issuer_certificate=issuer_certificate,
        serial=serial if serial is not None else x509.random_serial_number(),
        lifetime_days=lifetime_days,
        cert_type=cert_type,
        alt_names=alt_names_from_certificate(current),
        digest_alg=digest_alg,
        now=now,
    )
    return certificate_to_pem(renewed)


def key_spec_of(private_key: PrivateKey) -> KeySpec:
    """既存鍵と同じ種別・サイズの鍵仕様を返す"""

    if isinstance(private_key, rsa.RSAPrivateKey):
        return KeySpec(key_type=KeyType.RSA, key_length=private_key.key_size)
    if isinstance(private_key, ec.EllipticCurvePrivateKey):
        for name, factory in _CURVES.items():
            if factory.name == private_key.curve.name:
                return KeySpec(key_type=KeyType.ECDSA, curve=name)
    raise KeyGenerationError("鍵のローテーションに対応していない鍵タイプです")


def certificate_purpose(certificate: x509.Certificate) -> tuple[bool, bool]:
    """(CA証明書か, serverAuth用途を含むか)"""

    try:
        constraints = certificate.extensions.get_extension_for_class(x509.BasicConstraints)
        is_ca = bool(constraints.value.ca)
    except x509.ExtensionNotFound:
        is_ca = False
    try:
        usages = certificate.extensions.get_extension_for_class(x509.ExtendedKeyUsage)
        is_server = ExtendedKeyUsageOID.SERVER_AUTH in usages.value
    except x509.ExtensionNotFound:
        is_server = False
    return is_ca, is_server


# ----------------------------------------------------------------------
# PKCS#12
# ----------------------------------------------------------------------
def _pkcs12_encryption(
    password: str | None, level: Pkcs12EncryptionLevel
) -> serialization.KeySerializationEncryption:
    if not password:
        return serialization.NoEncryption()
    builder = serialization.PrivateFormat.PKCS12.encryption_builder().kdf_rounds(
        _PKCS12_KDF_ROUNDS[level]
    )
    if level == Pkcs12EncryptionLevel.HIGH:
        builder = builder.key_cert_algorithm(pkcs12.PBES.PBESv2SHA256AndAES256CBC).hmac_hash(
            hashes.SHA256()
        )
    else:
        builder = builder.key_cert_algorithm(
            pkcs12.PBES.PBESv1SHA1And3KeyTripleDESCBC
        ).hmac_hash(hashes.SHA1())
    return builder.build(password.encode("utf-8"))


def export_pkcs12(
    certificate_pem: PemInput,
    private_key_pem: PemInput | None,
    ca_chain_pem: Sequence[PemInput],
    password: str | None,
    level: Pkcs12EncryptionLevel = Pkcs12EncryptionLevel.HIGH,
    friendly_name: str | None = None,
) -> bytes:
    """証明書・秘密鍵・CAチェーンをPKCS#12にまとめる。パスワード未指定なら暗号化しない"""

    try:
        certificate = load_certificate(certificate_pem)
        key = load_private_key(private_key_pem) if private_key_pem else None
        chain = [load_certificate(item) for item in ca_chain_pem]
    except CertificateValidationError as exc:
        raise CertificateExportError(str(exc)) from exc
    if key is not None and _spki_der(key.public_key()) != _spki_der(certificate.public_key()):
        raise CertificateExportError("秘密鍵と証明書が一致しません")

    try:
        return pkcs12.serialize_key_and_certificates(
            name=friendly_name.encode("utf-8") if friendly_name else None,
            key=key,
            cert=certificate,
            cas=chain or None,
            encryption_algorithm=_pkcs12_encryption(password, level),
        )
    except Exception as exc:  # noqa: BLE001
        messages = collect_openssl_messages(exc)
        raise CertificateExportError(messages[0], messages) from exc


def import_pkcs12(data: bytes, password: str | None) -> Pkcs12Contents:
    """PKCS#12を読み込み証明書・秘密鍵・追加証明書をPEMで返す"""

    if not data or data[:1] != b"\x30":
        raise CertificateValidationError("PKCS#12データを解析できません")
    secret = password.encode("utf-8") if password else None
    try:
        key, certificate, extra = pkcs12.load_key_and_certificates(data, secret)
    except (ValueError, UnsupportedAlgorithm) as exc:  # noqa: B904
        # 構造の解析失敗はパスワード誤りと区別する
        if isinstance(exc, ValueError) and str(exc).startswith(_PKCS12_STRUCTURE_ERROR):
            raise CertificateValidationError("PKCS#12データを解析できません") from exc
        raise Pkcs12ImportError(
            "パスワードがPKCS#12を解除できないか、未対応の暗号方式が使われています"
        ) from exc

    return Pkcs12Contents(
        certificate_pem=certificate_to_pem(certificate) if certificate is not None else None,
        private_key_pem=serialize_private_key(key) if key is not None else None,
        extra_certificates_pem=[certificate_to_pem(item) for item in extra or []],
    )


def export_private_key(private_key_pem: PemInput, password: str | None = None) -> bytes:
    """秘密鍵をPEMで返す。パスワード指定時はAES-256で暗号化する"""

    try:
        key = load_private_key(private_key_pem)
    except CertificateValidationError as exc:
        raise CertificateExportError("パスワード付き秘密鍵をエクスポートできません") from exc
    return serialize_private_key(key, password).encode("utf-8")


# ----------------------------------------------------------------------
# 参照系ヘルパー
# ----------------------------------------------------------------------
def is_self_signed(certificate: x509.Certificate) -> bool:
    return certificate.subject == certificate.issuer


def common_name_of(name: x509.Name) -> str | None:
    values = name.get_attributes_for_oid(NameOID.COMMON_NAME)
    if not values:
        return None
    value = values[0].value
    return value.decode("utf-8", "replace") if isinstance(value, bytes) else value


def validity_of(certificate: x509.Certificate) -> tuple[datetime, datetime]:
    return certificate.not_valid_before_utc, certificate.not_valid_after_utc


__all__ = [
    "PrivateKey",
    "alt_names_from_certificate",
    "build_csr",
    "build_name",
    "build_san_extension",
    "certificate_fingerprint",
    "certificate_purpose",
    "certificate_to_pem",
    "collect_openssl_messages",
    "common_name_of",
    "export_pkcs12",
    "export_private_key",
    "filter_crypto_messages",
    "generate_private_key",
    "import_pkcs12",
    "is_self_signed",
    "key_spec_of",
    "load_certificate",
    "load_csr",
    "load_private_key",
    "public_key_fingerprint",
    "renew_certificate",
    "resolve_curve",
    "resolve_digest",
    "self_issue",
    "serialize_private_key",
    "sign_csr",
    "validity_of",
    "validity_window",
]
