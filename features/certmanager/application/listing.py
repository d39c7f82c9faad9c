"""一覧・検索と選択肢の組み立て"""
from __future__ import annotations

import re
from dataclasses import dataclass

from cryptography.x509.oid import NameOID
from flask_babel import gettext as _

from features.certmanager.domain.exceptions import CertificateValidationError
from features.certmanager.domain.models import CertificateRecord, DistinguishedName
from features.certmanager.domain.policy import PKCS12_ENCRYPTION_LEVELS
from features.certmanager.domain.types import (
    CertificateState,
    EntityKind,
    SearchScope,
)
from features.certmanager.infrastructure.key_utils import (
    certificate_purpose,
    is_self_signed,
    load_certificate,
    load_csr,
    validity_of,
)

from .dto import NEW_CSR, CertificateSummary, SelectionOption
from .records import is_cert_revoked, lookup_ca
from .services import CertManagerServices, default_certmanager_services


@dataclass(slots=True)
class CertificateQuery:
    """一覧の検索条件。``pattern`` は大文字小文字を区別しない正規表現"""

    pattern: str | None = None
    scope: SearchScope = SearchScope.BOTH


class CertificateCatalog:
    """証明書一覧と各種選択肢を提供する"""

    def __init__(self, services: CertManagerServices | None = None) -> None:
        self._services = services or default_certmanager_services

    # ------------------------------------------------------------------
    # 一覧
    # ------------------------------------------------------------------
    def summarize(self, record: CertificateRecord) -> CertificateSummary:
        store = self._services.store
        summary = CertificateSummary(
            ref_id=record.ref_id,
            description=record.description,
            issuer=_("private key only"),
            state=record.state,
            cert_type=record.cert_type.value if record.cert_type else None,
            has_private_key=bool(record.private_key_pem),
        )
        if record.certificate_pem:
            try:
                certificate = load_certificate(record.certificate_pem)
            except CertificateValidationError:
                certificate = None
            if certificate is not None:
                summary.subject = certificate.subject.rfc4514_string()
                summary.issuer = _("self-signed") if is_self_signed(certificate) else _("external")
                summary.not_before, summary.not_after = validity_of(certificate)
                summary.is_ca, summary.is_server = certificate_purpose(certificate)
                summary.renewable = bool(record.private_key_pem) and is_self_signed(certificate)
        if record.csr_pem:
            try:
                summary.subject = load_csr(record.csr_pem).subject.rfc4514_string()
            except CertificateValidationError:
                pass
            summary.issuer = _("external - signature pending")

        found = lookup_ca(store, record.ca_ref)
        if found is not None:
            ca = found[0]
            summary.issuer = ca.description
            summary.renewable = summary.state == CertificateState.COMPLETE and ca.can_sign
        summary.revoked = is_cert_revoked(store, record)
        summary.consumers = self._services.usage.consumers(record.ref_id)
        return summary

    def list_certificates(self, query: CertificateQuery | None = None) -> list[CertificateSummary]:
        summaries = [self.summarize(record) for record in self._services.store.list(EntityKind.CERT)]
        if query is None or not query.pattern:
            return summaries
        try:
            regexp = re.compile(query.pattern, re.IGNORECASE)
        except re.error as exc:
            raise CertificateValidationError(_("The search pattern is not a valid expression.")) from exc
        scope = SearchScope(query.scope)
        return [item for item in summaries if self._matches(item, regexp, scope)]

    @staticmethod
    def _matches(summary: CertificateSummary, regexp: re.Pattern, scope: SearchScope) -> bool:
        if scope in (SearchScope.NAME, SearchScope.BOTH) and regexp.search(summary.description):
            return True
        if scope in (SearchScope.DISTINGUISHED_NAME, SearchScope.BOTH) and regexp.search(
            summary.subject
        ):
            return True
        return False

    # ------------------------------------------------------------------
    # 選択肢
    # ------------------------------------------------------------------
    def signing_authorities(self) -> list[SelectionOption]:
        """秘密鍵を持ち署名に使えるCA"""

        return [
            SelectionOption(value=ca.ref_id, label=ca.description)
            for ca in self._services.store.list(EntityKind.CA)
            if ca.can_sign
        ]

    def encryption_levels(self) -> list[SelectionOption]:
        """PKCS#12エクスポートの暗号化レベル。設定の既定値を先頭に置く"""

        default = self._services.settings.pkcs12_encryption
        ordered = sorted(PKCS12_ENCRYPTION_LEVELS.items(), key=lambda item: item[0] != default)
        return [SelectionOption(value=level.value, label=_(label)) for level, label in ordered]

    def pending_signing_requests(self) -> list[SelectionOption]:
        """署名待ちCSR。先頭は貼り付け用の ``new``"""

        options = [SelectionOption(value=NEW_CSR, label=_("New CSR (Paste below)"))]
        for record in self._services.store.list(EntityKind.CERT):
            if record.state == CertificateState.CSR_PENDING:
                options.append(SelectionOption(value=record.ref_id, label=record.description))
        return options

    def attachable_certificates(self, user_id: str | None = None) -> list[SelectionOption]:
        """ユーザーに関連付け可能な証明書。関連付け済みのものは除外する"""

        store = self._services.store
        linked = set(self._services.user_links.linked_refs(user_id)) if user_id else set()
        options: list[SelectionOption] = []
        for record in store.list(EntityKind.CERT):
            if record.ref_id in linked:
                continue
            label = record.description
            found = lookup_ca(store, record.ca_ref)
            if found is not None:
                label += f" (CA: {found[0].description})"
            if self._services.usage.is_in_use(record.ref_id):
                label += " " + _("(In Use)")
            if is_cert_revoked(store, record):
                label += " " + _("(Revoked)")
            options.append(SelectionOption(value=record.ref_id, label=label))
        return options

    def subject_defaults(self, ca_ref: str) -> DistinguishedName | None:
        """CAのsubjectから C/ST/L/O/OU の既定値を取り出す(CNは空)"""

        found = lookup_ca(self._services.store, ca_ref)
        if found is None or not found[0].can_sign:
            return None
        try:
            subject = load_certificate(found[0].certificate_pem).subject
        except CertificateValidationError:
            return None

        def _first(oid) -> str | None:
            values = subject.get_attributes_for_oid(oid)
            return str(values[0].value) if values else None

        return DistinguishedName(
            common_name="",
            country=_first(NameOID.COUNTRY_NAME),
            state=_first(NameOID.STATE_OR_PROVINCE_NAME),
            locality=_first(NameOID.LOCALITY_NAME),
            organization=_first(NameOID.ORGANIZATION_NAME),
            organizational_unit=_first(NameOID.ORGANIZATIONAL_UNIT_NAME),
        )


__all__ = ["CertificateCatalog", "CertificateQuery"]
