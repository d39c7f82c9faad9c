import logging
from unittest.mock import MagicMock

import pytest

from features.certmanager.application.dto import InternalCertificateInput
from features.certmanager.application.records import cert_in_use
from features.certmanager.application.usage import UsageRegistry
from features.certmanager.application.use_cases import (
    CreateInternalCertificateUseCase,
    DeleteCertificateUseCase,
)
from features.certmanager.domain.exceptions import (
    CertificateInUseError,
    CertificateNotFoundError,
    CertificatePersistError,
)
from features.certmanager.domain.models import DistinguishedName
from features.certmanager.domain.types import EntityKind


@pytest.fixture
def issued(services, signing_ca):
    return CreateInternalCertificateUseCase(services).execute(
        InternalCertificateInput(
            description="Web Server",
            ca_ref=signing_ca.ref_id,
            subject=DistinguishedName(common_name="www.example.com"),
            lifetime_days=365,
        )
    ).record


def test_delete_unused_certificate(services, issued):
    result = DeleteCertificateUseCase(services).execute(issued.ref_id)

    assert result.record.ref_id == issued.ref_id
    assert services.store.committed[EntityKind.CERT] == []
    assert services.store.changes[-1] == "Deleted certificate Web Server"


def test_delete_is_blocked_while_user_holds_certificate(services, issued, caplog):
    services.user_links.link("erin", issued.ref_id)

    with caplog.at_level(logging.WARNING, logger="features.certmanager.application.use_cases"):
        with pytest.raises(CertificateInUseError) as excinfo:
            DeleteCertificateUseCase(services).execute(issued.ref_id)

    assert excinfo.value.consumers == ["User Cert"]
    assert "Web Server" in str(excinfo.value)
    assert len(services.store.committed[EntityKind.CERT]) == 1
    assert "certmanager.cert.delete_blocked" in [getattr(item, "event", None) for item in caplog.records]


def test_delete_reports_every_consumer(services, issued):
    services.user_links.link("erin", issued.ref_id)
    services.usage.register("OpenVPN Server", lambda ref_id: ref_id == issued.ref_id)
    services.usage.register_plugin("haproxy", lambda: [issued.ref_id])

    with pytest.raises(CertificateInUseError) as excinfo:
        DeleteCertificateUseCase(services).execute(issued.ref_id)

    assert excinfo.value.consumers == ["User Cert", "OpenVPN Server", "haproxy"]


def test_usage_is_evaluated_on_every_delete(services, issued):
    predicate = MagicMock(side_effect=[True, False])
    services.usage.register("IPsec", predicate)

    with pytest.raises(CertificateInUseError):
        DeleteCertificateUseCase(services).execute(issued.ref_id)
    DeleteCertificateUseCase(services).execute(issued.ref_id)

    assert predicate.call_count == 2
    predicate.assert_called_with(issued.ref_id)
    assert services.store.committed[EntityKind.CERT] == []


def test_delete_unknown_certificate(services):
    with pytest.raises(CertificateNotFoundError):
        DeleteCertificateUseCase(services).execute("missing")


def test_delete_rolls_back_when_commit_fails(services, issued, monkeypatch):
    monkeypatch.setattr(
        services.store, "commit", MagicMock(side_effect=CertificatePersistError("locked"))
    )

    with pytest.raises(CertificatePersistError):
        DeleteCertificateUseCase(services).execute(issued.ref_id)

    assert [item.ref_id for item in services.store.list(EntityKind.CERT)] == [issued.ref_id]


def test_registry_names_and_unregister():
    registry = UsageRegistry()
    registry.register("DNS Resolver", lambda ref_id: ref_id == "abc")
    registry.register_plugin("acme", lambda: ["def"])

    assert registry.names == ["DNS Resolver", "acme"]
    assert registry.is_in_use("abc")
    assert registry.is_in_use("def")
    assert registry.consumers("zzz") == []

    registry.unregister("acme")
    registry.unregister("not-registered")

    assert registry.names == ["DNS Resolver"]
    assert not registry.is_in_use("def")


def test_cert_in_use_follows_registry(services, issued):
    assert cert_in_use(services.usage, issued.ref_id) is False

    services.user_links.link("erin", issued.ref_id)

    assert cert_in_use(services.usage, issued.ref_id) is True
