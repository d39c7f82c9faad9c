"""証明書ライフサイクルのユースケース

各ユースケースは入力の検証をすべて終えてから暗号処理を行い、
組み立て済みのレコードを設定ストアへ反映して ``commit`` を1回だけ呼ぶ。
"""
from __future__ import annotations

from dataclasses import replace
from typing import Iterable, Sequence

from flask_babel import gettext as _

from core.logging_config import structured_logger
from features.certmanager.domain.exceptions import (
    CertificateCryptoError,
    CertificateInUseError,
    CertificateMismatchError,
    CertificateNotFoundError,
    CertificateValidationError,
    Pkcs12ImportError,
)
from features.certmanager.domain.models import (
    CARecord,
    CertificateRecord,
    KeySpec,
    generate_ref_id,
)
from features.certmanager.domain.ports import Record
from features.certmanager.domain.types import (
    CertificateState,
    CertificateType,
    EntityKind,
    KeyType,
    MaterialKind,
    Pkcs12EncryptionLevel,
)
from features.certmanager.infrastructure.key_utils import (
    build_csr,
    certificate_fingerprint,
    certificate_purpose,
    certificate_to_pem,
    common_name_of,
    export_pkcs12,
    export_private_key,
    generate_private_key,
    import_pkcs12,
    is_self_signed,
    key_spec_of,
    load_certificate,
    load_csr,
    load_private_key,
    public_key_fingerprint,
    renew_certificate,
    self_issue,
    serialize_private_key,
    sign_csr,
)

from .dn_builder import build_dn, derive_default_san, merge_sans
from .dto import (
    NEW_CSR,
    CertificateOperationResult,
    CompleteCsrInput,
    EditCertificateInput,
    ExistingCertificateInput,
    ExportPkcs12Input,
    ExportResult,
    ExternalCsrInput,
    ImportPkcs12Input,
    ImportX509Input,
    InternalCertificateInput,
    RenewCertificateInput,
    SignCsrInput,
)
from .records import ca_chain, find_ca_by_subject, lookup_ca, lookup_cert
from .services import CertManagerServices, default_certmanager_services
from .validation import (
    ValidationReport,
    collect_advisories,
    parse_alt_names,
    required_field_problems,
    validate_cert_type,
    validate_certificate_text,
    validate_csr_text,
    validate_description,
    validate_digest,
    validate_export_password,
    validate_key_parameters,
    validate_lifetime,
    validate_lifetime_floor,
    validate_private_key_text,
    validate_subject,
)

EXPORT_MIMETYPES: dict[MaterialKind, str] = {
    MaterialKind.CERTIFICATE: "application/x-x509-user-cert",
    MaterialKind.CSR: "application/pkcs10",
    MaterialKind.PRIVATE_KEY: "application/x-pem-file",
    MaterialKind.PKCS12: "application/x-pkcs12",
}


def _normalise_pem(text: str) -> str:
    return text.strip() + "\n"


class _CertificateUseCase:
    """ユースケース共通処理"""

    def __init__(self, services: CertManagerServices | None = None) -> None:
        self._services = services or default_certmanager_services
        self._events = structured_logger(__name__, use_case=type(self).__name__)

    @property
    def _store(self):
        return self._services.store

    def _persist(self, changes: Sequence[tuple[EntityKind, int | None, Record]], message: str) -> None:
        """変更を作業コピーへ反映し1回だけcommitする。失敗時は作業コピーを破棄"""

        store = self._services.store
        try:
            for kind, index, record in changes:
                store.upsert(kind, index, record)
            store.commit(message)
        except Exception:
            store.rollback()
            self._events.error("certmanager.store.commit_failed", change=message)
            raise

    def _link_user(self, user_id: str | None, ref_id: str) -> None:
        if not user_id:
            return
        self._services.user_links.link(user_id, ref_id)
        self._events.info("certmanager.user.linked", user_id=user_id, ref_id=ref_id)

    def _require_cert(self, ref_id: str) -> tuple[CertificateRecord, int]:
        found = lookup_cert(self._store, ref_id)
        if found is None:
            raise CertificateNotFoundError(_("Certificate %(ref)s was not found.", ref=ref_id))
        return found

    def _signing_ca(self, ca_ref: str | None, report: ValidationReport) -> tuple[CARecord, int] | None:
        if not ca_ref:
            return None
        found = lookup_ca(self._store, ca_ref)
        if found is None:
            report.extend([_("The selected certificate authority does not exist.")])
            return None
        if not found[0].can_sign:
            report.extend(
                [_("The selected certificate authority has no private key and cannot sign.")]
            )
            return None
        return found

    def _lifetime(self, requested: int | None) -> int:
        if requested is not None:
            return requested
        return self._services.settings.default_lifetime_days(self._services.clock())

    def _check_lifetime(self, lifetime_days: int, report: ValidationReport) -> None:
        report.extend(validate_lifetime_floor(lifetime_days))
        maximum = self._services.settings.max_lifetime_days(self._services.clock())
        report.extend_policy(validate_lifetime(lifetime_days, maximum))

    def _advisories(
        self,
        ref_id: str,
        *,
        digest_alg: str,
        key_type: str | None = None,
        key_length: int | None = None,
        cert_type: str | None = None,
        lifetime_days: int | None = None,
    ) -> list[str]:
        settings = self._services.settings
        advisories = collect_advisories(
            digest_alg=digest_alg,
            digest_blacklist=settings.digest_blacklist,
            key_type=key_type,
            key_length=key_length,
            min_key_bits=settings.min_private_key_bits,
            cert_type=cert_type,
            lifetime_days=lifetime_days,
            max_server_lifetime=settings.max_server_cert_lifetime_days,
        )
        for advisory in advisories:
            self._events.warning("certmanager.policy.advisory", ref_id=ref_id, advisory=advisory)
        return advisories

    def _crypto(self, event: str, func, *args, **kwargs):
        """暗号処理の失敗をログに残して送出する"""

        try:
            return func(*args, **kwargs)
        except CertificateCryptoError as exc:
            self._events.error(event, error=str(exc), messages=exc.messages)
            raise

    def _x509_problems(self, certificate_pem: str | None, private_key_pem: str | None) -> list[str]:
        problems = validate_certificate_text(certificate_pem)
        if problems or not certificate_pem:
            return problems
        try:
            cert_fingerprint = public_key_fingerprint(certificate_pem, "cert")
        except CertificateValidationError:
            return [_("This certificate does not appear to be valid.")]
        if private_key_pem:
            try:
                key_fingerprint = public_key_fingerprint(private_key_pem, "key")
            except CertificateValidationError:
                return [_("This private key does not appear to be valid.")]
            if key_fingerprint != cert_fingerprint:
                problems.append(
                    _("The submitted private key does not match the submitted certificate data.")
                )
        return problems

    def _apply_import(
        self,
        record: CertificateRecord,
        certificate_pem: str,
        private_key_pem: str | None,
        extra_cas: Iterable[CARecord] = (),
    ) -> CertificateRecord:
        """証明書と鍵を取り込み、issuerに一致するCAがあれば関連付ける"""

        certificate = load_certificate(certificate_pem)
        updates: dict[str, object] = {"certificate_pem": certificate_to_pem(certificate)}
        if private_key_pem:
            updates["private_key_pem"] = _normalise_pem(private_key_pem)
        if not is_self_signed(certificate):
            issuer = find_ca_by_subject(self._store, certificate.issuer, extra_cas)
            if issuer is not None:
                updates["ca_ref"] = issuer.ref_id
        return replace(record, **updates)


# ----------------------------------------------------------------------
# 作成系
# ----------------------------------------------------------------------
class CreateInternalCertificateUseCase(_CertificateUseCase):
    """内部CAで署名した証明書を作成する"""

    def execute(self, payload: InternalCertificateInput) -> CertificateOperationResult:
        lifetime = self._lifetime(payload.lifetime_days)
        report = ValidationReport()
        report.extend(
            required_field_problems(
                [
                    (_("Descriptive name"), payload.description),
                    (_("Certificate authority"), payload.ca_ref),
                    (_("Key type"), payload.key_type),
                    (_("Certificate Type"), payload.cert_type),
                    (_("Common Name"), payload.subject.common_name),
                ]
            )
        )
        report.extend(validate_description(payload.description))
        alt_names, san_problems = parse_alt_names(payload.alt_names)
        report.extend(san_problems)
        report.extend(validate_subject(payload.subject))
        report.extend(validate_key_parameters(payload.key_type, payload.key_length, payload.curve))
        report.extend(validate_digest(payload.digest_alg))
        report.extend(validate_cert_type(payload.cert_type))
        self._check_lifetime(lifetime, report)
        found_ca = self._signing_ca(payload.ca_ref, report)
        report.raise_for_problems()
        assert found_ca is not None
        ca, ca_index = found_ca

        dn = build_dn(payload.subject)
        cert_type = CertificateType(payload.cert_type)
        sans = merge_sans(derive_default_san(dn.common_name), alt_names, dn.common_name)
        spec = KeySpec(KeyType(payload.key_type), payload.key_length, payload.curve)
        private_key = self._crypto("certmanager.key.failed", generate_private_key, spec)
        serial = ca.serial + 1
        certificate_pem = self._crypto(
            "certmanager.cert.sign_failed",
            self_issue,
            private_key,
            dn,
            sans,
            lifetime,
            cert_type,
            payload.digest_alg,
            serial=serial,
            ca_certificate_pem=ca.certificate_pem,
            ca_private_key_pem=ca.private_key_pem,
            now=self._services.clock(),
        )
        record = CertificateRecord(
            ref_id=generate_ref_id(),
            description=payload.description,
            ca_ref=ca.ref_id,
            certificate_pem=certificate_pem,
            private_key_pem=serialize_private_key(private_key),
            cert_type=cert_type,
        )
        message = _("Created internal certificate %(name)s", name=record.description)
        self._persist(
            [
                (EntityKind.CA, ca_index, replace(ca, serial=serial)),
                (EntityKind.CERT, None, record),
            ],
            message,
        )
        self._link_user(payload.user_id, record.ref_id)
        self._events.info(
            "certmanager.cert.created",
            ref_id=record.ref_id,
            ca_ref=ca.ref_id,
            serial=serial,
            lifetime_days=lifetime,
            cert_type=cert_type.value,
        )
        advisories = self._advisories(
            record.ref_id,
            digest_alg=payload.digest_alg,
            key_type=payload.key_type,
            key_length=payload.key_length,
            cert_type=payload.cert_type,
            lifetime_days=lifetime,
        )
        return CertificateOperationResult(record=record, message=message, advisories=advisories)


class CreateExternalCsrUseCase(_CertificateUseCase):
    """鍵とCSRを作成し外部CAでの署名待ちにする"""

    def execute(self, payload: ExternalCsrInput) -> CertificateOperationResult:
        report = ValidationReport()
        report.extend(
            required_field_problems(
                [
                    (_("Descriptive name"), payload.description),
                    (_("Key type"), payload.key_type),
                    (_("Common Name"), payload.subject.common_name),
                ]
            )
        )
        report.extend(validate_description(payload.description))
        alt_names, san_problems = parse_alt_names(payload.alt_names)
        report.extend(san_problems)
        report.extend(validate_subject(payload.subject))
        report.extend(validate_key_parameters(payload.key_type, payload.key_length, payload.curve))
        report.extend(validate_digest(payload.digest_alg))
        report.extend(validate_cert_type(payload.cert_type))
        report.raise_for_problems()

        dn = build_dn(payload.subject)
        cert_type = CertificateType(payload.cert_type)
        sans = merge_sans(derive_default_san(dn.common_name), alt_names, dn.common_name)
        spec = KeySpec(KeyType(payload.key_type), payload.key_length, payload.curve)
        private_key = self._crypto("certmanager.key.failed", generate_private_key, spec)
        csr_pem = self._crypto(
            "certmanager.csr.failed",
            build_csr,
            private_key,
            dn,
            sans,
            payload.digest_alg,
            cert_type,
        )
        record = CertificateRecord(
            ref_id=generate_ref_id(),
            description=payload.description,
            csr_pem=csr_pem,
            private_key_pem=serialize_private_key(private_key),
            cert_type=cert_type,
        )
        message = _("Created certificate signing request %(name)s", name=record.description)
        self._persist([(EntityKind.CERT, None, record)], message)
        self._link_user(payload.user_id, record.ref_id)
        self._events.info("certmanager.csr.created", ref_id=record.ref_id)
        advisories = self._advisories(
            record.ref_id,
            digest_alg=payload.digest_alg,
            key_type=payload.key_type,
            key_length=payload.key_length,
        )
        return CertificateOperationResult(record=record, message=message, advisories=advisories)


class SignCsrUseCase(_CertificateUseCase):
    """CSRに内部CAで署名し新しい証明書レコードを作成する

    秘密鍵は貼り付けCSR(``csr_ref == "new"``)なら貼り付けた鍵、
    保存済みCSRならそのレコードの鍵を使う。保存済みCSRの鍵を上書きすることはない。
    """

    def _pasted_problems(self, csr_pem: str | None, key_pem: str | None) -> list[str]:
        problems = validate_csr_text(csr_pem)
        csr_fingerprint = None
        if not problems:
            try:
                csr = load_csr(csr_pem or "")
                if not csr.is_signature_valid:
                    raise CertificateValidationError("CSRの署名が不正です")
                csr_fingerprint = public_key_fingerprint(csr_pem or "", "csr")
            except CertificateValidationError:
                problems.append(_("This signing request does not appear to be valid."))
        key_problems = validate_private_key_text(key_pem)
        if key_pem and not key_problems:
            try:
                key_fingerprint = public_key_fingerprint(key_pem, "key")
            except CertificateValidationError:
                key_problems = [_("Key data field should be blank, or a valid x509 private key")]
            else:
                if csr_fingerprint is not None and key_fingerprint != csr_fingerprint:
                    key_problems = [
                        _("The submitted private key does not match the submitted signing request.")
                    ]
        return problems + key_problems

    def execute(self, payload: SignCsrInput) -> CertificateOperationResult:
        lifetime = self._lifetime(payload.lifetime_days)
        report = ValidationReport()
        report.extend(
            required_field_problems(
                [
                    (_("Descriptive name"), payload.description),
                    (_("CA to sign with"), payload.ca_ref),
                ]
            )
        )
        report.extend(validate_description(payload.description))

        csr_pem: str | None = None
        key_pem: str | None = None
        if payload.csr_ref == NEW_CSR:
            report.extend(self._pasted_problems(payload.csr_pem, payload.key_pem))
            csr_pem = payload.csr_pem
            key_pem = payload.key_pem or None
        else:
            found = lookup_cert(self._store, payload.csr_ref)
            if found is None or found[0].state != CertificateState.CSR_PENDING:
                report.extend([_("The selected signing request does not exist.")])
            else:
                csr_pem = found[0].csr_pem
                key_pem = found[0].private_key_pem

        alt_names, san_problems = parse_alt_names(payload.alt_names)
        report.extend(san_problems)
        report.extend(validate_digest(payload.digest_alg))
        report.extend(validate_cert_type(payload.cert_type))
        self._check_lifetime(lifetime, report)
        found_ca = self._signing_ca(payload.ca_ref, report)
        report.raise_for_problems()
        assert found_ca is not None and csr_pem is not None
        ca, ca_index = found_ca

        cert_type = CertificateType(payload.cert_type)
        serial = ca.serial + 1
        certificate_pem = self._crypto(
            "certmanager.cert.sign_failed",
            sign_csr,
            csr_pem,
            ca.certificate_pem,
            ca.private_key_pem,
            serial=serial,
            lifetime_days=lifetime,
            cert_type=cert_type,
            alt_names=alt_names,
            digest_alg=payload.digest_alg,
            now=self._services.clock(),
        )
        record = CertificateRecord(
            ref_id=generate_ref_id(),
            description=payload.description,
            ca_ref=ca.ref_id,
            certificate_pem=certificate_pem,
            private_key_pem=_normalise_pem(key_pem) if key_pem else None,
            cert_type=cert_type,
        )
        message = _("Signed certificate %(name)s", name=record.description)
        self._persist(
            [
                (EntityKind.CA, ca_index, replace(ca, serial=serial)),
                (EntityKind.CERT, None, record),
            ],
            message,
        )
        self._link_user(payload.user_id, record.ref_id)
        self._events.info(
            "certmanager.cert.signed",
            ref_id=record.ref_id,
            ca_ref=ca.ref_id,
            serial=serial,
            csr_source=payload.csr_ref,
            has_private_key=record.private_key_pem is not None,
        )
        advisories = self._advisories(
            record.ref_id,
            digest_alg=payload.digest_alg,
            cert_type=payload.cert_type,
            lifetime_days=lifetime,
        )
        return CertificateOperationResult(record=record, message=message, advisories=advisories)


class CompleteCsrUseCase(_CertificateUseCase):
    """署名済み証明書を受け取りCSR待ちレコードを完成させる"""

    def execute(self, payload: CompleteCsrInput) -> CertificateOperationResult:
        record, index = self._require_cert(payload.ref_id)
        report = ValidationReport()
        report.extend(
            required_field_problems(
                [
                    (_("Descriptive name"), payload.description),
                    (_("Final Certificate data"), payload.certificate_pem),
                ]
            )
        )
        report.extend(validate_description(payload.description))
        if record.state != CertificateState.CSR_PENDING:
            report.extend([_("This certificate has no pending signing request.")])
        report.extend(self._x509_problems(payload.certificate_pem, None))
        report.raise_for_problems()

        csr_fingerprint = public_key_fingerprint(record.csr_pem or "", "csr")
        if public_key_fingerprint(payload.certificate_pem, "cert") != csr_fingerprint:
            self._events.warning("certmanager.csr.mismatch", ref_id=record.ref_id)
            raise CertificateMismatchError(
                _("The certificate public key does not match the signing request public key.")
            )

        certificate = load_certificate(payload.certificate_pem)
        updated = replace(
            record,
            description=payload.description,
            certificate_pem=certificate_to_pem(certificate),
            csr_pem=None,
        )
        message = _("Updated certificate signing request %(name)s", name=updated.description)
        self._persist([(EntityKind.CERT, index, updated)], message)
        self._events.info("certmanager.csr.completed", ref_id=updated.ref_id)
        return CertificateOperationResult(record=updated, message=message)


# ----------------------------------------------------------------------
# 取り込み・編集
# ----------------------------------------------------------------------
class ImportX509CertificateUseCase(_CertificateUseCase):
    """PEM形式の証明書(と任意の秘密鍵)を取り込む"""

    def execute(self, payload: ImportX509Input) -> CertificateOperationResult:
        report = ValidationReport()
        report.extend(
            required_field_problems(
                [
                    (_("Descriptive name"), payload.description),
                    (_("Certificate data"), payload.certificate_pem),
                ]
            )
        )
        report.extend(validate_description(payload.description))
        report.extend(self._x509_problems(payload.certificate_pem, payload.private_key_pem))
        report.raise_for_problems()

        record = self._apply_import(
            CertificateRecord(ref_id=generate_ref_id(), description=payload.description),
            payload.certificate_pem,
            payload.private_key_pem,
        )
        message = _("Imported certificate %(name)s", name=record.description)
        self._persist([(EntityKind.CERT, None, record)], message)
        self._link_user(payload.user_id, record.ref_id)
        self._events.info("certmanager.cert.imported", ref_id=record.ref_id, ca_ref=record.ca_ref)
        return CertificateOperationResult(record=record, message=message)


class ImportPkcs12UseCase(_CertificateUseCase):
    """PKCS#12を取り込む。指定があれば中間証明書をCAとして登録する"""

    def _intermediate_cas(self, extra_certificates: Sequence[str]) -> list[CARecord]:
        known: set[bytes] = set()
        for ca in self._store.list(EntityKind.CA):
            try:
                known.add(certificate_fingerprint(load_certificate(ca.certificate_pem)))
            except CertificateValidationError:
                continue

        created: list[CARecord] = []
        for pem in extra_certificates:
            certificate = load_certificate(pem)
            fingerprint = certificate_fingerprint(certificate)
            if fingerprint in known:
                continue
            known.add(fingerprint)
            created.append(
                CARecord(
                    ref_id=generate_ref_id(),
                    description=common_name_of(certificate.subject)
                    or certificate.subject.rfc4514_string(),
                    certificate_pem=certificate_to_pem(certificate),
                )
            )

        linked: list[CARecord] = []
        for ca in created:
            certificate = load_certificate(ca.certificate_pem)
            if not is_self_signed(certificate):
                issuer = find_ca_by_subject(self._store, certificate.issuer, created)
                if issuer is not None and issuer.ref_id != ca.ref_id:
                    ca = replace(ca, ca_ref=issuer.ref_id)
            linked.append(ca)
        return linked

    def execute(self, payload: ImportPkcs12Input) -> CertificateOperationResult:
        report = ValidationReport()
        report.extend(required_field_problems([(_("Descriptive name"), payload.description)]))
        report.extend(validate_description(payload.description))
        if not payload.data:
            report.extend([_("A PKCS #12 certificate store was not uploaded.")])
        report.raise_for_problems()

        try:
            contents = import_pkcs12(payload.data or b"", payload.password)
        except Pkcs12ImportError:
            self._events.warning("certmanager.pkcs12.unlock_failed", description=payload.description)
            raise
        if not contents.certificate_pem:
            raise CertificateValidationError(
                _("The PKCS #12 certificate store does not contain a certificate.")
            )

        created_cas: list[CARecord] = []
        if payload.import_intermediates:
            created_cas = self._intermediate_cas(contents.extra_certificates_pem)

        record = self._apply_import(
            CertificateRecord(ref_id=generate_ref_id(), description=payload.description),
            contents.certificate_pem,
            contents.private_key_pem,
            created_cas,
        )
        message = _("Imported certificate %(name)s", name=record.description)
        changes: list[tuple[EntityKind, int | None, Record]] = [
            (EntityKind.CA, None, ca) for ca in created_cas
        ]
        changes.append((EntityKind.CERT, None, record))
        self._persist(changes, message)
        self._link_user(payload.user_id, record.ref_id)
        self._events.info(
            "certmanager.pkcs12.imported",
            ref_id=record.ref_id,
            intermediates=[ca.ref_id for ca in created_cas],
        )
        return CertificateOperationResult(record=record, message=message, created_cas=created_cas)


class EditCertificateUseCase(_CertificateUseCase):
    """既存レコードの証明書・鍵を差し替える(ref_idは維持)"""

    def execute(self, payload: EditCertificateInput) -> CertificateOperationResult:
        record, index = self._require_cert(payload.ref_id)
        report = ValidationReport()
        report.extend(
            required_field_problems(
                [
                    (_("Descriptive name"), payload.description),
                    (_("Certificate data"), payload.certificate_pem),
                ]
            )
        )
        report.extend(validate_description(payload.description))
        report.extend(
            self._x509_problems(
                payload.certificate_pem, payload.private_key_pem or record.private_key_pem
            )
        )
        report.raise_for_problems()

        updated = self._apply_import(
            replace(record, description=payload.description),
            payload.certificate_pem,
            payload.private_key_pem,
        )
        message = _("Edited certificate %(name)s", name=updated.description)
        self._persist([(EntityKind.CERT, index, updated)], message)
        self._events.info("certmanager.cert.edited", ref_id=updated.ref_id)
        return CertificateOperationResult(record=updated, message=message)


class AttachExistingCertificateUseCase(_CertificateUseCase):
    """既存の証明書をユーザーに関連付ける。レコードは作成しない"""

    def execute(self, payload: ExistingCertificateInput) -> CertificateOperationResult:
        report = ValidationReport()
        report.extend(
            required_field_problems(
                [
                    (_("User"), payload.user_id),
                    (_("Existing Certificate Choice"), payload.cert_ref),
                ]
            )
        )
        found = lookup_cert(self._store, payload.cert_ref) if payload.cert_ref else None
        if payload.cert_ref and found is None:
            report.extend([_("The selected certificate does not exist.")])
        report.raise_for_problems()
        assert found is not None
        record, _index = found

        self._link_user(payload.user_id, record.ref_id)
        message = _(
            "Added certificate %(name)s to user %(user)s",
            name=record.description,
            user=payload.user_id,
        )
        return CertificateOperationResult(record=record, message=message)


# ----------------------------------------------------------------------
# エクスポート
# ----------------------------------------------------------------------
class _ExportUseCase(_CertificateUseCase):
    def _result(self, record: CertificateRecord, kind: MaterialKind, content: bytes) -> ExportResult:
        self._events.info("certmanager.export", ref_id=record.ref_id, material=kind.value)
        return ExportResult(
            filename=f"{record.description}.{kind.value}",
            content=content,
            mimetype=EXPORT_MIMETYPES[kind],
        )

    @staticmethod
    def _check_password(password: str | None) -> None:
        report = ValidationReport()
        report.extend_policy(validate_export_password(password))
        report.raise_for_problems()


class ExportCertificateUseCase(_ExportUseCase):
    def execute(self, ref_id: str) -> ExportResult:
        record, _index = self._require_cert(ref_id)
        if not record.certificate_pem:
            raise CertificateValidationError(_("This entry has no certificate to export."))
        return self._result(record, MaterialKind.CERTIFICATE, record.certificate_pem.encode("utf-8"))


class ExportCsrUseCase(_ExportUseCase):
    def execute(self, ref_id: str) -> ExportResult:
        record, _index = self._require_cert(ref_id)
        if not record.csr_pem:
            raise CertificateValidationError(_("This entry has no signing request to export."))
        return self._result(record, MaterialKind.CSR, record.csr_pem.encode("utf-8"))


class ExportPrivateKeyUseCase(_ExportUseCase):
    """秘密鍵をエクスポートする。パスワード指定時はAES-256で暗号化"""

    def execute(self, ref_id: str, password: str | None = None) -> ExportResult:
        record, _index = self._require_cert(ref_id)
        self._check_password(password)
        if not record.private_key_pem:
            raise CertificateValidationError(_("This entry has no private key to export."))
        content = self._crypto(
            "certmanager.export.failed", export_private_key, record.private_key_pem, password or None
        )
        return self._result(record, MaterialKind.PRIVATE_KEY, content)


class ExportPkcs12UseCase(_ExportUseCase):
    """証明書・秘密鍵・CAチェーンをPKCS#12にまとめてエクスポートする"""

    def _level(self, level: Pkcs12EncryptionLevel | str | None) -> Pkcs12EncryptionLevel:
        if level is None:
            return self._services.settings.pkcs12_encryption
        try:
            return Pkcs12EncryptionLevel(level)
        except ValueError:
            return Pkcs12EncryptionLevel.HIGH

    def execute(self, payload: ExportPkcs12Input) -> ExportResult:
        record, _index = self._require_cert(payload.ref_id)
        self._check_password(payload.password)
        if not record.certificate_pem:
            raise CertificateValidationError(_("This entry has no certificate to export."))
        chain = [ca.certificate_pem for ca in ca_chain(self._store, record.ca_ref)]
        content = self._crypto(
            "certmanager.export.failed",
            export_pkcs12,
            record.certificate_pem,
            record.private_key_pem,
            chain,
            payload.password or None,
            self._level(payload.level),
            friendly_name=record.description,
        )
        return self._result(record, MaterialKind.PKCS12, content)


# ----------------------------------------------------------------------
# 削除・更新
# ----------------------------------------------------------------------
class DeleteCertificateUseCase(_CertificateUseCase):
    """利用中でない証明書レコードを削除する"""

    def execute(self, ref_id: str) -> CertificateOperationResult:
        record, index = self._require_cert(ref_id)
        consumers = self._services.usage.consumers(ref_id)
        if consumers:
            self._events.warning(
                "certmanager.cert.delete_blocked", ref_id=ref_id, consumers=consumers
            )
            raise CertificateInUseError(
                _("Certificate %(name)s is in use and cannot be deleted", name=record.description),
                consumers,
            )

        message = _("Deleted certificate %(name)s", name=record.description)
        store = self._store
        try:
            store.delete(EntityKind.CERT, index)
            store.commit(message)
        except Exception:
            store.rollback()
            self._events.error("certmanager.store.commit_failed", change=message)
            raise
        self._events.info("certmanager.cert.deleted", ref_id=ref_id)
        return CertificateOperationResult(record=record, message=message)


class RenewCertificateUseCase(_CertificateUseCase):
    """発行元CA(なければ自身の鍵)で証明書を再発行する。ref_idは維持"""

    def execute(self, payload: RenewCertificateInput) -> CertificateOperationResult:
        record, index = self._require_cert(payload.ref_id)
        lifetime = self._lifetime(payload.lifetime_days)
        report = ValidationReport()
        if record.state != CertificateState.COMPLETE:
            report.extend([_("Only complete certificates can be renewed.")])
        report.extend(validate_digest(payload.digest_alg))
        self._check_lifetime(lifetime, report)
        found_ca = None
        if record.ca_ref:
            found_ca = lookup_ca(self._store, record.ca_ref)
            if found_ca is None or not found_ca[0].can_sign:
                report.extend([_("The issuing certificate authority cannot sign certificates.")])
        elif record.certificate_pem and not is_self_signed(load_certificate(record.certificate_pem)):
            report.extend(
                [_("A certificate issued by an external authority cannot be renewed locally.")]
            )
        elif not record.private_key_pem and not payload.rotate_key:
            report.extend(
                [_("A certificate without an issuing authority needs its private key to be renewed.")]
            )
        report.raise_for_problems()

        certificate = load_certificate(record.certificate_pem or "")
        cert_type = record.cert_type or (
            CertificateType.SERVER if certificate_purpose(certificate)[1] else CertificateType.USER
        )
        current_key = load_private_key(record.private_key_pem) if record.private_key_pem else None
        new_key = None
        if payload.rotate_key:
            spec = key_spec_of(current_key) if current_key is not None else KeySpec()
            new_key = self._crypto("certmanager.key.failed", generate_private_key, spec)

        ca = found_ca[0] if found_ca else None
        serial = ca.serial + 1 if ca else None
        renewed_pem = self._crypto(
            "certmanager.cert.sign_failed",
            renew_certificate,
            record.certificate_pem,
            serial=serial,
            lifetime_days=lifetime,
            cert_type=cert_type,
            digest_alg=payload.digest_alg,
            private_key=new_key if new_key is not None else (current_key if ca is None else None),
            ca_certificate_pem=ca.certificate_pem if ca else None,
            ca_private_key_pem=ca.private_key_pem if ca else None,
            now=self._services.clock(),
        )
        updated = replace(
            record,
            certificate_pem=renewed_pem,
            private_key_pem=serialize_private_key(new_key) if new_key else record.private_key_pem,
            cert_type=cert_type,
        )
        message = _("Renewed certificate %(name)s", name=updated.description)
        changes: list[tuple[EntityKind, int | None, Record]] = []
        if ca is not None and found_ca is not None:
            changes.append((EntityKind.CA, found_ca[1], replace(ca, serial=serial)))
        changes.append((EntityKind.CERT, index, updated))
        self._persist(changes, message)
        self._events.info(
            "certmanager.cert.renewed",
            ref_id=updated.ref_id,
            ca_ref=updated.ca_ref,
            rotated_key=new_key is not None,
        )
        spec = key_spec_of(new_key) if new_key is not None else None
        advisories = self._advisories(
            updated.ref_id,
            digest_alg=payload.digest_alg,
            key_type=spec.key_type.value if spec else None,
            key_length=spec.key_length if spec else None,
            cert_type=cert_type.value,
            lifetime_days=lifetime,
        )
        return CertificateOperationResult(record=updated, message=message, advisories=advisories)


__all__ = [
    "AttachExistingCertificateUseCase",
    "CompleteCsrUseCase",
    "CreateExternalCsrUseCase",
    "CreateInternalCertificateUseCase",
    "DeleteCertificateUseCase",
    "EXPORT_MIMETYPES",
    "EditCertificateUseCase",
    "ExportCertificateUseCase",
    "ExportCsrUseCase",
    "ExportPkcs12UseCase",
    "ExportPrivateKeyUseCase",
    "ImportPkcs12UseCase",
    "ImportX509CertificateUseCase",
    "RenewCertificateUseCase",
    "SignCsrUseCase",
]
