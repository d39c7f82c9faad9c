"""ref_idによるレコード参照と失効・利用状況の判定"""
from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

from cryptography import x509

from features.certmanager.domain.exceptions import CertificateValidationError
from features.certmanager.domain.models import CARecord, CertificateRecord, CrlRecord
from features.certmanager.domain.ports import ConfigStore
from features.certmanager.domain.types import EntityKind
from features.certmanager.infrastructure.key_utils import load_certificate

if TYPE_CHECKING:
    from .usage import UsageRegistry


def lookup_cert(store: ConfigStore, ref_id: str | None) -> tuple[CertificateRecord, int] | None:
    """証明書レコードとそのインデックスを返す。見つからなければ ``None``"""

    if not ref_id:
        return None
    for index, record in enumerate(store.list(EntityKind.CERT)):
        if record.ref_id == ref_id:
            return record, index
    return None


def lookup_ca(store: ConfigStore, ref_id: str | None) -> tuple[CARecord, int] | None:
    if not ref_id:
        return None
    for index, record in enumerate(store.list(EntityKind.CA)):
        if record.ref_id == ref_id:
            return record, index
    return None


def find_ca_by_subject(
    store: ConfigStore, subject: x509.Name, extra: Iterable[CARecord] = ()
) -> CARecord | None:
    """証明書のissuerと同じsubjectを持つCAを探す

    ``extra`` には同じ操作でまだ確定していないCAを渡す。
    """

    for record in [*store.list(EntityKind.CA), *extra]:
        try:
            if load_certificate(record.certificate_pem).subject == subject:
                return record
        except CertificateValidationError:
            continue
    return None


def ca_chain(store: ConfigStore, ca_ref: str | None) -> list[CARecord]:
    """発行元CAから上位CAへ辿ったチェーン(循環は打ち切る)"""

    chain: list[CARecord] = []
    seen: set[str] = set()
    while ca_ref and ca_ref not in seen:
        seen.add(ca_ref)
        found = lookup_ca(store, ca_ref)
        if found is None:
            break
        ca, _ = found
        chain.append(ca)
        ca_ref = ca.ca_ref
    return chain


def certificate_serial(record: CertificateRecord) -> int | None:
    if not record.certificate_pem:
        return None
    try:
        return load_certificate(record.certificate_pem).serial_number
    except CertificateValidationError:
        return None


def is_cert_revoked(store: ConfigStore, record: CertificateRecord) -> bool:
    """いずれかのCRLにref_id、または同一CAのシリアルで登録されていれば失効扱い"""

    crls: list[CrlRecord] = list(store.list(EntityKind.CRL))
    if not crls:
        return False
    serial = None
    for crl in crls:
        for entry in crl.revoked:
            if entry.cert_ref and entry.cert_ref == record.ref_id:
                return True
            if entry.serial is None or not record.ca_ref or crl.ca_ref != record.ca_ref:
                continue
            if serial is None:
                serial = certificate_serial(record)
            if serial is not None and entry.serial == serial:
                return True
    return False


def cert_in_use(usage: "UsageRegistry", ref_id: str) -> bool:
    return usage.is_in_use(ref_id)


__all__ = [
    "ca_chain",
    "cert_in_use",
    "certificate_serial",
    "find_ca_by_subject",
    "is_cert_revoked",
    "lookup_ca",
    "lookup_cert",
]
