"""暗号プリミティブのテスト"""

from datetime import datetime, timedelta, timezone

import pytest
from cryptography import x509
from cryptography.hazmat.primitives.serialization import load_pem_private_key
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from features.certmanager.domain.exceptions import (
    CertificateExportError,
    CertificateSigningError,
    CertificateValidationError,
    KeyGenerationError,
    Pkcs12ImportError,
)
from features.certmanager.domain.models import AltName, DistinguishedName, KeySpec
from features.certmanager.domain.types import (
    AltNameKind,
    CertificateType,
    KeyType,
    Pkcs12EncryptionLevel,
)
from features.certmanager.infrastructure.key_utils import (
    alt_names_from_certificate,
    build_csr,
    build_name,
    certificate_purpose,
    certificate_to_pem,
    export_pkcs12,
    export_private_key,
    filter_crypto_messages,
    generate_private_key,
    import_pkcs12,
    is_self_signed,
    key_spec_of,
    load_certificate,
    load_csr,
    public_key_fingerprint,
    self_issue,
    serialize_private_key,
    sign_csr,
    validity_of,
    validity_window,
)

NOW = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _dn(common_name="www.example.com"):
    return DistinguishedName(common_name=common_name, country="JP", organization="Example Org")


def test_generate_rsa_and_ecdsa_keys():
    rsa_key = generate_private_key(KeySpec(KeyType.RSA, 2048))
    ec_key = generate_private_key(KeySpec(KeyType.ECDSA, curve="secp384r1"))

    assert rsa_key.key_size == 2048
    assert ec_key.curve.name == "secp384r1"


@pytest.mark.parametrize(
    "spec",
    [KeySpec(KeyType.RSA, 1000), KeySpec(KeyType.ECDSA, curve="not-a-curve")],
)
def test_generate_private_key_rejects_unsupported_parameters(spec):
    with pytest.raises(KeyGenerationError):
        generate_private_key(spec)


def test_build_name_keeps_fixed_attribute_order():
    name = build_name(
        DistinguishedName(
            common_name="host.example.com",
            country="JP",
            state="Tokyo",
            organizational_unit="Ops",
        )
    )

    assert [attribute.oid for attribute in name] == [
        NameOID.COMMON_NAME,
        NameOID.COUNTRY_NAME,
        NameOID.STATE_OR_PROVINCE_NAME,
        NameOID.ORGANIZATIONAL_UNIT_NAME,
    ]


def test_build_csr_embeds_san_only_when_present(leaf_key):
    with_san = load_csr(
        build_csr(leaf_key, _dn(), [AltName(AltNameKind.DNS, "www.example.com")], "sha256")
    )
    without_san = load_csr(build_csr(leaf_key, _dn(), [], "sha256"))

    extension = with_san.extensions.get_extension_for_class(x509.SubjectAlternativeName)
    assert extension.value.get_values_for_type(x509.DNSName) == ["www.example.com"]
    with pytest.raises(x509.ExtensionNotFound):
        without_san.extensions.get_extension_for_class(x509.SubjectAlternativeName)


def test_signed_certificate_matches_csr_and_uses_signer_sans(leaf_key, ca_key, build_ca):
    ca_certificate = build_ca("Signing Root", ca_key)
    csr_pem = build_csr(
        leaf_key, _dn(), [AltName(AltNameKind.DNS, "requested.example.com")], "sha256"
    )

    certificate_pem = sign_csr(
        csr_pem,
        certificate_to_pem(ca_certificate),
        serialize_private_key(ca_key),
        serial=7,
        lifetime_days=90,
        cert_type=CertificateType.SERVER,
        alt_names=[AltName(AltNameKind.DNS, "signer.example.com")],
        digest_alg="sha256",
        now=NOW,
    )

    certificate = load_certificate(certificate_pem)
    assert public_key_fingerprint(certificate_pem, "cert") == public_key_fingerprint(csr_pem, "csr")
    assert certificate.serial_number == 7
    assert certificate.issuer == ca_certificate.subject
    assert alt_names_from_certificate(certificate) == [
        AltName(AltNameKind.DNS, "signer.example.com")
    ]
    not_before, not_after = validity_of(certificate)
    assert not_after - not_before == timedelta(days=90)
    usages = certificate.extensions.get_extension_for_class(x509.ExtendedKeyUsage).value
    assert ExtendedKeyUsageOID.SERVER_AUTH in usages
    assert certificate_purpose(certificate) == (False, True)


def test_user_certificate_gets_client_auth(leaf_key):
    certificate = load_certificate(
        self_issue(leaf_key, _dn("alice"), [], 30, CertificateType.USER, "sha256", now=NOW)
    )

    usages = certificate.extensions.get_extension_for_class(x509.ExtendedKeyUsage).value
    key_usage = certificate.extensions.get_extension_for_class(x509.KeyUsage).value
    assert list(usages) == [ExtendedKeyUsageOID.CLIENT_AUTH]
    assert key_usage.content_commitment is True
    assert is_self_signed(certificate)


def test_sign_csr_rejects_ca_key_mismatch(leaf_key, ca_key, other_key, build_ca):
    ca_certificate = build_ca("Signing Root", ca_key)
    csr_pem = build_csr(leaf_key, _dn(), [], "sha256")

    with pytest.raises(CertificateSigningError):
        sign_csr(
            csr_pem,
            certificate_to_pem(ca_certificate),
            serialize_private_key(other_key),
            serial=1,
            lifetime_days=30,
            cert_type=CertificateType.USER,
            alt_names=[],
            digest_alg="sha256",
        )


@pytest.mark.parametrize(
    ("csr_pem", "digest"),
    [("not a signing request", "sha256"), (None, "md5")],
)
def test_sign_csr_rejects_malformed_csr_or_digest(csr_pem, digest, leaf_key, ca_key, build_ca):
    ca_certificate = build_ca("Signing Root", ca_key)
    csr_pem = csr_pem or build_csr(leaf_key, _dn(), [], "sha256")

    with pytest.raises(CertificateSigningError):
        sign_csr(
            csr_pem,
            certificate_to_pem(ca_certificate),
            serialize_private_key(ca_key),
            serial=1,
            lifetime_days=30,
            cert_type=CertificateType.USER,
            alt_names=[],
            digest_alg=digest,
        )


@pytest.mark.parametrize("level", list(Pkcs12EncryptionLevel))
def test_pkcs12_round_trip(level, leaf_key, ca_key, build_ca):
    ca_certificate = build_ca("Bundle Root", ca_key)
    certificate_pem = self_issue(
        leaf_key,
        _dn(),
        [],
        30,
        CertificateType.USER,
        "sha256",
        serial=5,
        ca_certificate_pem=certificate_to_pem(ca_certificate),
        ca_private_key_pem=serialize_private_key(ca_key),
        now=NOW,
    )

    data = export_pkcs12(
        certificate_pem,
        serialize_private_key(leaf_key),
        [certificate_to_pem(ca_certificate)],
        "secret-pass",
        level,
        friendly_name="leaf",
    )
    contents = import_pkcs12(data, "secret-pass")

    assert contents.certificate_pem == certificate_pem
    assert public_key_fingerprint(contents.private_key_pem, "key") == public_key_fingerprint(
        certificate_pem, "cert"
    )
    assert contents.extra_certificates_pem == [certificate_to_pem(ca_certificate)]


def test_pkcs12_wrong_password_is_distinct_error(leaf_key):
    certificate_pem = self_issue(leaf_key, _dn(), [], 30, CertificateType.USER, "sha256")
    data = export_pkcs12(certificate_pem, serialize_private_key(leaf_key), [], "right-pass")

    with pytest.raises(Pkcs12ImportError):
        import_pkcs12(data, "wrong-pass")
    with pytest.raises(CertificateValidationError):
        import_pkcs12(b"plain text is not a bundle", "right-pass")


def test_pkcs12_malformed_structure_is_not_a_password_error():
    with pytest.raises(CertificateValidationError):
        import_pkcs12(b"\x30\x03\x02\x01\x00", "any-pass")


def test_export_pkcs12_rejects_key_mismatch(leaf_key, other_key):
    certificate_pem = self_issue(leaf_key, _dn(), [], 30, CertificateType.USER, "sha256")

    with pytest.raises(CertificateExportError):
        export_pkcs12(certificate_pem, serialize_private_key(other_key), [], None)


def test_export_private_key_encrypts_when_password_given(leaf_key):
    key_pem = serialize_private_key(leaf_key)

    plain = export_private_key(key_pem)
    encrypted = export_private_key(key_pem, "pass1234")

    assert b"ENCRYPTED" not in plain
    assert b"ENCRYPTED" in encrypted
    restored = load_pem_private_key(encrypted, password=b"pass1234")
    assert public_key_fingerprint(serialize_private_key(restored), "key") == public_key_fingerprint(
        key_pem, "key"
    )


def test_filter_crypto_messages_drops_benign_noise():
    messages = [
        "error:0E06D06C:configuration file routines:NCONF_get_string:no value",
        "",
        "error:0D0C5006:asn1 encoding routines:ASN1_item_verify:EVP lib",
    ]

    assert filter_crypto_messages(messages) == [
        "error:0D0C5006:asn1 encoding routines:ASN1_item_verify:EVP lib"
    ]


def test_validity_window_rejects_non_positive_lifetime():
    start, end = validity_window(365, NOW)

    assert end - start == timedelta(days=365)
    with pytest.raises(CertificateValidationError):
        validity_window(0, NOW)


def test_key_spec_of_mirrors_existing_key(leaf_key, other_key):
    assert key_spec_of(other_key) == KeySpec(KeyType.RSA, 2048)
    assert key_spec_of(leaf_key).curve == "prime256v1"
