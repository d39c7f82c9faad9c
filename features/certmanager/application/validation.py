"""入力検証

各関数は副作用を持たず、問題点のリスト(空なら妥当)を返す。
呼び出し側は全項目の検証結果を集約してから中断する。
"""
from __future__ import annotations

import ipaddress
import re
from dataclasses import dataclass, field
from typing import Iterable, Sequence
from urllib.parse import urlparse

from flask_babel import gettext as _

from features.certmanager.domain.exceptions import (
    CertificatePolicyError,
    CertificateValidationError,
)
from features.certmanager.domain.models import AltName, DistinguishedName
from features.certmanager.domain.policy import (
    DIGEST_ALGORITHMS,
    EC_CURVES,
    EXPORT_PASSWORD_MAX_LENGTH,
    EXPORT_PASSWORD_MIN_LENGTH,
    KEY_TYPES,
    RSA_KEY_LENGTHS,
)
from features.certmanager.domain.types import AltNameKind, CertificateType, KeyType

from .dto import AltNameInput

_DESCRIPTION_FORBIDDEN = re.compile(r"[?><&/\\\"']")
_DN_FORBIDDEN = re.compile(r"[^a-zA-Z0-9 '/~`!@#$%^&*()_\-+={}\[\]|;:\"<>,.?\\]")
_EMAIL_FORBIDDEN = re.compile(r"[!#$%^()~?><&/\\,\"']")
_HOSTNAME_LABEL = re.compile(r"^(?:[a-z0-9_]|[a-z0-9_][a-z0-9_\-]*[a-z0-9_])$", re.IGNORECASE)
_COUNTRY = re.compile(r"^[A-Za-z]{2}$")

_CSR_MARKERS = (
    ("BEGIN CERTIFICATE REQUEST", "END CERTIFICATE REQUEST"),
    ("BEGIN NEW CERTIFICATE REQUEST", "END NEW CERTIFICATE REQUEST"),
)
_KEY_MARKERS = (
    ("BEGIN PRIVATE KEY", "END PRIVATE KEY"),
    ("BEGIN EC PRIVATE KEY", "END EC PRIVATE KEY"),
    ("BEGIN RSA PRIVATE KEY", "END RSA PRIVATE KEY"),
)
_CERT_MARKERS = (("BEGIN CERTIFICATE", "END CERTIFICATE"),)


@dataclass(slots=True)
class ValidationReport:
    """検証結果の集約

    ポリシー違反が1件でもあれば :class:`CertificatePolicyError`、
    それ以外の問題のみなら :class:`CertificateValidationError` を送出する。
    """

    problems: list[str] = field(default_factory=list)
    policy_problems: list[str] = field(default_factory=list)

    def extend(self, problems: Iterable[str]) -> None:
        self.problems.extend(problems)

    def extend_policy(self, problems: Iterable[str]) -> None:
        self.policy_problems.extend(problems)

    @property
    def ok(self) -> bool:
        return not self.problems and not self.policy_problems

    def raise_for_problems(self) -> None:
        if self.policy_problems:
            raise CertificatePolicyError(self.policy_problems + self.problems)
        if self.problems:
            raise CertificateValidationError(self.problems)


# ----------------------------------------------------------------------
# 判定ヘルパー
# ----------------------------------------------------------------------
def is_ip_address(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


def is_hostname(value: str, allow_wildcard: bool = False) -> bool:
    if not value or len(value) > 253:
        return False
    if allow_wildcard and value.startswith("*."):
        value = value[2:]
    labels = value[:-1].split(".") if value.endswith(".") else value.split(".")
    return all(label and len(label) <= 63 and _HOSTNAME_LABEL.match(label) for label in labels)


def is_url(value: str) -> bool:
    if not value or any(ch.isspace() for ch in value):
        return False
    parsed = urlparse(value)
    return bool(parsed.scheme) and bool(parsed.netloc or parsed.path)


def is_email(value: str) -> bool:
    if not value or _EMAIL_FORBIDDEN.search(value):
        return False
    local, sep, domain = value.rpartition("@")
    return bool(sep and local and is_hostname(domain))


def has_pem_markers(text: str | None, markers: Sequence[tuple[str, str]]) -> bool:
    if not text:
        return False
    return any(begin in text and end in text for begin, end in markers)


# ----------------------------------------------------------------------
# 項目単位の検証
# ----------------------------------------------------------------------
def required_field_problems(fields: Sequence[tuple[str, object]]) -> list[str]:
    """(表示名, 値) の組から未入力項目を列挙"""

    problems: list[str] = []
    for label, value in fields:
        if value is None or (isinstance(value, str) and not value.strip()):
            problems.append(_("The field '%(label)s' is required.", label=label))
    return problems


def validate_description(description: str | None) -> list[str]:
    if description and _DESCRIPTION_FORBIDDEN.search(description):
        return [_("The field 'Descriptive Name' contains invalid characters.")]
    return []


def validate_subject(subject: DistinguishedName) -> list[str]:
    problems: list[str] = []
    checks = (
        (subject.common_name, _("The field 'Common Name' contains invalid characters.")),
        (subject.state, _("The field 'State or Province' contains invalid characters.")),
        (subject.locality, _("The field 'City' contains invalid characters.")),
        (subject.organization, _("The field 'Organization' contains invalid characters.")),
        (
            subject.organizational_unit,
            _("The field 'Organizational Unit' contains invalid characters."),
        ),
    )
    for value, message in checks:
        if value and _DN_FORBIDDEN.search(value):
            problems.append(message)
    if subject.country and not _COUNTRY.match(subject.country):
        problems.append(_("The field 'Country Code' must be a two letter country code."))
    return problems


def parse_alt_names(entries: Sequence[AltNameInput]) -> tuple[list[AltName], list[str]]:
    """subjectAltName入力を検証しつつAltNameに変換する

    値が空のエントリは黙って捨てる。
    """

    alt_names: list[AltName] = []
    problems: list[str] = []
    for entry in entries:
        value = (entry.value or "").strip()
        if not value:
            continue
        kind = entry.kind
        if kind == AltNameKind.DNS.value:
            if not is_hostname(value, allow_wildcard=True) or is_ip_address(value):
                problems.append(
                    _("DNS subjectAltName values must be valid hostnames, FQDNs or wildcard domains.")
                )
                continue
        elif kind == AltNameKind.IP.value:
            if not is_ip_address(value):
                problems.append(_("IP subjectAltName values must be valid IP Addresses"))
                continue
        elif kind == AltNameKind.EMAIL.value:
            if _EMAIL_FORBIDDEN.search(value):
                problems.append(
                    _("The e-mail provided in a subjectAltName contains invalid characters.")
                )
                continue
        elif kind == AltNameKind.URI.value:
            if not is_url(value):
                problems.append(_("URI subjectAltName types must be a valid URI"))
                continue
        else:
            problems.append(_("Unrecognized subjectAltName type."))
            continue
        alt_names.append(AltName(AltNameKind(kind), value))
    return alt_names, problems


def validate_key_parameters(key_type: str, key_length: int | None, curve: str | None) -> list[str]:
    problems: list[str] = []
    if key_type not in {item.value for item in KEY_TYPES}:
        problems.append(_("Please select a valid Key Type."))
    if key_type == KeyType.RSA.value and key_length not in RSA_KEY_LENGTHS:
        problems.append(_("Please select a valid Key Length."))
    if key_type == KeyType.ECDSA.value and curve not in EC_CURVES:
        problems.append(_("Please select a valid Elliptic Curve Name."))
    return problems


def validate_digest(digest_alg: str | None) -> list[str]:
    if digest_alg not in DIGEST_ALGORITHMS:
        return [_("Please select a valid Digest Algorithm.")]
    return []


def validate_cert_type(cert_type: str | None) -> list[str]:
    if cert_type not in {item.value for item in CertificateType}:
        return [_("Please select a valid Certificate Type.")]
    return []


def validate_lifetime(lifetime_days: int | None, max_lifetime: int) -> list[str]:
    """有効期限の上限チェック(ポリシー違反として扱う)"""

    if lifetime_days is None:
        return []
    if lifetime_days > max_lifetime:
        return [_("Lifetime is longer than the maximum allowed value. Use a shorter lifetime.")]
    return []


def validate_lifetime_floor(lifetime_days: int | None) -> list[str]:
    if lifetime_days is not None and lifetime_days < 1:
        return [_("Lifetime must be at least one day.")]
    return []


def validate_export_password(password: str | None) -> list[str]:
    """エクスポートパスワード長のチェック。未指定は暗号化なしを意味する"""

    if not password:
        return []
    if not EXPORT_PASSWORD_MIN_LENGTH <= len(password) <= EXPORT_PASSWORD_MAX_LENGTH:
        return [_("Export password must be in 4 to 1023 characters.")]
    return []


def validate_csr_text(csr_pem: str | None) -> list[str]:
    if not has_pem_markers(csr_pem, _CSR_MARKERS):
        return [_("This signing request does not appear to be valid.")]
    return []


def validate_private_key_text(key_pem: str | None) -> list[str]:
    if key_pem and not has_pem_markers(key_pem, _KEY_MARKERS):
        return [
            _("This private key does not appear to be valid."),
            _("Key data field should be blank, or a valid x509 private key"),
        ]
    return []


def validate_certificate_text(certificate_pem: str | None) -> list[str]:
    if certificate_pem and not has_pem_markers(certificate_pem, _CERT_MARKERS):
        return [_("This certificate does not appear to be valid.")]
    return []


# ----------------------------------------------------------------------
# 注意喚起(処理は止めない)
# ----------------------------------------------------------------------
def collect_advisories(
    *,
    digest_alg: str | None,
    digest_blacklist: Iterable[str],
    key_type: str | None = None,
    key_length: int | None = None,
    min_key_bits: int | None = None,
    cert_type: str | None = None,
    lifetime_days: int | None = None,
    max_server_lifetime: int | None = None,
) -> list[str]:
    advisories: list[str] = []
    if digest_alg and digest_alg in set(digest_blacklist):
        advisories.append(
            _("The digest algorithm %(digest)s is considered weak.", digest=digest_alg)
        )
    if (
        key_type == KeyType.RSA.value
        and key_length is not None
        and min_key_bits is not None
        and key_length < min_key_bits
    ):
        advisories.append(
            _(
                "Key length %(bits)s is shorter than the recommended minimum of %(minimum)s bits.",
                bits=key_length,
                minimum=min_key_bits,
            )
        )
    if (
        cert_type == CertificateType.SERVER.value
        and lifetime_days is not None
        and max_server_lifetime is not None
        and lifetime_days > max_server_lifetime
    ):
        advisories.append(
            _(
                "Server certificates valid for more than %(days)s days may be rejected by clients.",
                days=max_server_lifetime,
            )
        )
    return advisories


__all__ = [
    "ValidationReport",
    "collect_advisories",
    "has_pem_markers",
    "is_email",
    "is_hostname",
    "is_ip_address",
    "is_url",
    "parse_alt_names",
    "required_field_problems",
    "validate_cert_type",
    "validate_certificate_text",
    "validate_csr_text",
    "validate_description",
    "validate_digest",
    "validate_export_password",
    "validate_key_parameters",
    "validate_lifetime",
    "validate_lifetime_floor",
    "validate_private_key_text",
    "validate_subject",
]
