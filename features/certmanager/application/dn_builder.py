"""subject DNとsubjectAltNameの組み立て"""
from __future__ import annotations

from typing import Sequence

from features.certmanager.domain.exceptions import CertificateValidationError
from features.certmanager.domain.models import AltName, DistinguishedName
from features.certmanager.domain.types import AltNameKind

from .validation import (
    is_email,
    is_hostname,
    is_ip_address,
    is_url,
    required_field_problems,
    validate_subject,
)


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def build_dn(fields: DistinguishedName) -> DistinguishedName:
    """空欄を落とし検証済みのDNを返す。commonNameは必須"""

    dn = DistinguishedName(
        common_name=(fields.common_name or "").strip(),
        country=_clean(fields.country),
        state=_clean(fields.state),
        locality=_clean(fields.locality),
        organization=_clean(fields.organization),
        organizational_unit=_clean(fields.organizational_unit),
    )
    problems = required_field_problems([("Common Name", dn.common_name)])
    problems.extend(validate_subject(dn))
    if problems:
        raise CertificateValidationError(problems)
    return dn


def derive_default_san(common_name: str | None) -> AltName | None:
    """commonNameの形式からSAN種別を推定する

    IPアドレス、ホスト名(ワイルドカード可)、URI、メールアドレスの順に判定し、
    いずれにも当てはまらなければ ``None``。
    """

    value = (common_name or "").strip()
    if not value:
        return None
    if is_ip_address(value):
        return AltName(AltNameKind.IP, value)
    if is_hostname(value, allow_wildcard=True):
        return AltName(AltNameKind.DNS, value)
    if is_url(value):
        return AltName(AltNameKind.URI, value)
    if is_email(value):
        return AltName(AltNameKind.EMAIL, value)
    return None


def merge_sans(
    default_san: AltName | None,
    user_sans: Sequence[AltName],
    common_name: str | None = None,
) -> list[AltName]:
    """既定SANと利用者指定SANを順序を保って重複なく結合する"""

    merged: list[AltName] = []
    seen: set[tuple[AltNameKind, str]] = set()
    cn = (common_name or (default_san.value if default_san else "")).strip()

    def _append(item: AltName) -> None:
        key = (item.kind, item.value)
        if key in seen:
            return
        seen.add(key)
        merged.append(item)

    if default_san is not None and default_san.value:
        _append(default_san)
    for item in user_sans:
        if not item.value:
            continue
        if cn and item.value == cn:
            continue
        _append(item)
    return merged


__all__ = ["build_dn", "derive_default_san", "merge_sans"]
