from datetime import datetime, timedelta, timezone

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.x509.oid import NameOID

from core.settings import CertManagerSettings
from features.certmanager.application.services import CertManagerServices
from features.certmanager.application.usage import UsageRegistry, register_user_links_consumer
from features.certmanager.domain.models import CARecord, generate_ref_id
from features.certmanager.domain.types import EntityKind
from features.certmanager.infrastructure.key_utils import (
    certificate_to_pem,
    serialize_private_key,
)
from features.certmanager.infrastructure.memory_store import InMemoryConfigStore
from features.certmanager.infrastructure.user_links import InMemoryUserCertificateLinks

FIXED_NOW = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="session")
def ca_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def other_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def leaf_key():
    return ec.generate_private_key(ec.SECP256R1())


def build_ca_certificate(common_name, key, issuer=None):
    """テスト用CA証明書。issuerは (証明書, 秘密鍵) の組"""

    subject = x509.Name(
        [
            x509.NameAttribute(NameOID.COUNTRY_NAME, "JP"),
            x509.NameAttribute(NameOID.STATE_OR_PROVINCE_NAME, "Tokyo"),
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Example Org"),
            x509.NameAttribute(NameOID.COMMON_NAME, common_name),
        ]
    )
    issuer_name = issuer[0].subject if issuer else subject
    signer = issuer[1] if issuer else key
    return (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer_name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(FIXED_NOW - timedelta(days=30))
        .not_valid_after(FIXED_NOW + timedelta(days=3650))
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .sign(signer, hashes.SHA256())
    )


@pytest.fixture
def services():
    links = InMemoryUserCertificateLinks()
    usage = UsageRegistry()
    register_user_links_consumer(usage, links)
    return CertManagerServices(
        store=InMemoryConfigStore(),
        usage=usage,
        user_links=links,
        settings=CertManagerSettings(env={}),
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def ca_factory(services, ca_key):
    """CAレコードを作成してストアに確定させるファクトリ"""

    def _create(common_name="Test Root CA", *, key=None, with_key=True, serial=0, parent=None):
        key = key or ca_key
        issuer = None
        if parent is not None:
            parent_record, parent_key = parent
            issuer = (x509.load_pem_x509_certificate(parent_record.certificate_pem.encode()), parent_key)
        certificate = build_ca_certificate(common_name, key, issuer)
        record = CARecord(
            ref_id=generate_ref_id(),
            description=common_name,
            certificate_pem=certificate_to_pem(certificate),
            private_key_pem=serialize_private_key(key) if with_key else None,
            serial=serial,
            ca_ref=parent[0].ref_id if parent is not None else None,
        )
        services.store.upsert(EntityKind.CA, None, record)
        services.store.commit(f"add CA {common_name}")
        return record

    return _create


@pytest.fixture
def signing_ca(ca_factory):
    return ca_factory()


@pytest.fixture
def build_ca():
    return build_ca_certificate
