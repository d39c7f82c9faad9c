"""SQLAlchemy設定ストアのテスト"""

from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import OperationalError

from core.db import db
from core.settings import CertManagerSettings
from features.certmanager.application.dto import InternalCertificateInput
from features.certmanager.application.services import CertManagerServices
from features.certmanager.application.usage import UsageRegistry, register_user_links_consumer
from features.certmanager.application.use_cases import (
    CreateInternalCertificateUseCase,
    DeleteCertificateUseCase,
)
from features.certmanager.domain.exceptions import (
    CertificateInUseError,
    CertificateNotFoundError,
    CertificatePersistError,
)
from features.certmanager.domain.models import (
    CARecord,
    CertificateRecord,
    CrlRecord,
    DistinguishedName,
    RevokedEntry,
    generate_ref_id,
)
from features.certmanager.domain.types import CertificateType, EntityKind
from features.certmanager.infrastructure.key_utils import certificate_to_pem, serialize_private_key
from features.certmanager.infrastructure.sql_store import (
    SqlAlchemyConfigStore,
    SqlAlchemyUserCertificateLinks,
)


@pytest.fixture
def store(app_context):
    return SqlAlchemyConfigStore()


@pytest.fixture
def ca_record(build_ca, ca_key):
    return CARecord(
        ref_id=generate_ref_id(),
        description="SQL Root CA",
        certificate_pem=certificate_to_pem(build_ca("SQL Root CA", ca_key)),
        private_key_pem=serialize_private_key(ca_key),
        serial=3,
    )


def _cert(description, **values):
    values.setdefault("ref_id", generate_ref_id())
    return CertificateRecord(description=description, **values)


def test_records_round_trip(store, ca_record):
    revoked_at = datetime(2026, 3, 1, 9, 30, tzinfo=timezone.utc)
    cert = _cert("Web", ca_ref=ca_record.ref_id, csr_pem="csr", cert_type=CertificateType.SERVER)
    crl = CrlRecord(
        ref_id=generate_ref_id(),
        description="Root CRL",
        ca_ref=ca_record.ref_id,
        revoked=[RevokedEntry(cert_ref=cert.ref_id, serial=7, reason="keyCompromise", revoked_at=revoked_at)],
    )

    assert store.upsert(EntityKind.CA, None, ca_record) == 0
    assert store.upsert(EntityKind.CERT, None, cert) == 0
    store.upsert(EntityKind.CRL, None, crl)
    store.commit("initial")

    assert store.list(EntityKind.CA) == [ca_record]
    assert store.get(EntityKind.CERT, cert.ref_id) == cert
    assert store.get(EntityKind.CERT, 0) == cert
    assert store.list(EntityKind.CRL) == [crl]
    assert store.changes() == ["initial"]


def test_update_and_delete_by_index(store):
    first, second, third = _cert("first"), _cert("second"), _cert("third")
    for record in (first, second, third):
        store.upsert(EntityKind.CERT, None, record)
    store.commit("add three")

    second.description = "second (edited)"
    store.upsert(EntityKind.CERT, 1, second)
    store.delete(EntityKind.CERT, 0)
    store.commit("edit and delete")

    assert [item.description for item in store.list(EntityKind.CERT)] == ["second (edited)", "third"]
    assert store.changes() == ["edit and delete", "add three"]

    store.upsert(EntityKind.CERT, None, _cert("fourth"))
    store.commit("add fourth")
    assert [item.description for item in store.list(EntityKind.CERT)][-1] == "fourth"


def test_rollback_discards_uncommitted_changes(store):
    store.upsert(EntityKind.CERT, None, _cert("kept"))
    store.commit("kept")

    store.upsert(EntityKind.CERT, None, _cert("discarded"))
    store.rollback()

    assert [item.description for item in store.list(EntityKind.CERT)] == ["kept"]


def test_missing_records_raise_not_found(store):
    with pytest.raises(CertificateNotFoundError):
        store.get(EntityKind.CERT, "missing")
    with pytest.raises(CertificateNotFoundError):
        store.upsert(EntityKind.CERT, 5, _cert("nowhere"))
    with pytest.raises(CertificateNotFoundError):
        store.delete(EntityKind.CA, 0)


def test_commit_failure_is_reported_as_persist_error(store, monkeypatch):
    store.upsert(EntityKind.CERT, None, _cert("pending"))

    def _fail():
        raise OperationalError("COMMIT", {}, Exception("database is locked"))

    monkeypatch.setattr(db.session, "commit", _fail)

    with pytest.raises(CertificatePersistError):
        store.commit("will fail")

    monkeypatch.undo()
    assert store.list(EntityKind.CERT) == []


def test_duplicate_reference_is_reported_as_persist_error(store):
    original = _cert("original")
    store.upsert(EntityKind.CERT, None, original)
    store.commit("original")

    with pytest.raises(CertificatePersistError):
        store.upsert(EntityKind.CERT, None, _cert("copy", ref_id=original.ref_id))

    assert [item.description for item in store.list(EntityKind.CERT)] == ["original"]


def test_user_links_are_idempotent(app_context):
    links = SqlAlchemyUserCertificateLinks()

    links.link("alice", "abc")
    links.link("alice", "abc")
    links.link("alice", "def")

    assert links.linked_refs("alice") == ["abc", "def"]
    assert links.is_linked("def")
    assert not links.is_linked("xyz")


def test_use_cases_run_against_sql_store(store, ca_record):
    links = SqlAlchemyUserCertificateLinks()
    usage = UsageRegistry()
    register_user_links_consumer(usage, links)
    services = CertManagerServices(
        store=store,
        usage=usage,
        user_links=links,
        settings=CertManagerSettings(env={}),
    )
    store.upsert(EntityKind.CA, None, ca_record)
    store.commit("add CA")

    result = CreateInternalCertificateUseCase(services).execute(
        InternalCertificateInput(
            description="SQL Web",
            ca_ref=ca_record.ref_id,
            subject=DistinguishedName(common_name="sql.example.com"),
            lifetime_days=30,
            user_id="alice",
        )
    )

    assert store.get(EntityKind.CA, ca_record.ref_id).serial == 4
    assert store.get(EntityKind.CERT, result.record.ref_id).certificate_pem == (
        result.record.certificate_pem
    )
    assert links.linked_refs("alice") == [result.record.ref_id]
    with pytest.raises(CertificateInUseError):
        DeleteCertificateUseCase(services).execute(result.record.ref_id)
    assert store.changes()[0] == "Created internal certificate SQL Web"
