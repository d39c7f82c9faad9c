import pytest

from features.certmanager.application.dn_builder import build_dn, derive_default_san, merge_sans
from features.certmanager.domain.exceptions import CertificateValidationError
from features.certmanager.domain.models import AltName, DistinguishedName
from features.certmanager.domain.types import AltNameKind


def test_build_dn_drops_blank_attributes():
    dn = build_dn(
        DistinguishedName(
            common_name="  www.example.com ",
            country="JP",
            state="",
            locality="   ",
            organization="Example Org",
        )
    )

    assert dn.common_name == "www.example.com"
    assert dn.items() == [
        ("commonName", "www.example.com"),
        ("countryName", "JP"),
        ("organizationName", "Example Org"),
    ]


def test_build_dn_requires_common_name():
    with pytest.raises(CertificateValidationError) as excinfo:
        build_dn(DistinguishedName(common_name="  ", country="JP"))

    assert excinfo.value.problems == ["The field 'Common Name' is required."]


def test_build_dn_reports_every_invalid_attribute():
    with pytest.raises(CertificateValidationError) as excinfo:
        build_dn(
            DistinguishedName(
                common_name="hosté",
                country="JPN",
                organization="Org™",
            )
        )

    assert excinfo.value.problems == [
        "The field 'Common Name' contains invalid characters.",
        "The field 'Organization' contains invalid characters.",
        "The field 'Country Code' must be a two letter country code.",
    ]


@pytest.mark.parametrize(
    ("common_name", "expected"),
    [
        ("192.0.2.10", AltName(AltNameKind.IP, "192.0.2.10")),
        ("2001:db8::1", AltName(AltNameKind.IP, "2001:db8::1")),
        ("www.example.com", AltName(AltNameKind.DNS, "www.example.com")),
        ("*.example.com", AltName(AltNameKind.DNS, "*.example.com")),
        ("https://example.com/path", AltName(AltNameKind.URI, "https://example.com/path")),
        ("admin@example.com", AltName(AltNameKind.EMAIL, "admin@example.com")),
        ("Jane Doe", None),
        ("", None),
    ],
)
def test_derive_default_san(common_name, expected):
    assert derive_default_san(common_name) == expected


def test_merge_sans_puts_default_first_and_deduplicates():
    default = AltName(AltNameKind.DNS, "www.example.com")
    user_sans = [
        AltName(AltNameKind.DNS, "www.example.com"),
        AltName(AltNameKind.DNS, "api.example.com"),
        AltName(AltNameKind.IP, "192.0.2.1"),
        AltName(AltNameKind.DNS, "api.example.com"),
        AltName(AltNameKind.DNS, ""),
    ]

    assert merge_sans(default, user_sans, "www.example.com") == [
        AltName(AltNameKind.DNS, "www.example.com"),
        AltName(AltNameKind.DNS, "api.example.com"),
        AltName(AltNameKind.IP, "192.0.2.1"),
    ]


def test_merge_sans_without_default_skips_common_name_duplicates():
    user_sans = [
        AltName(AltNameKind.EMAIL, "Jane Doe"),
        AltName(AltNameKind.EMAIL, "jane@example.com"),
    ]

    assert merge_sans(None, user_sans, "Jane Doe") == [
        AltName(AltNameKind.EMAIL, "jane@example.com")
    ]
