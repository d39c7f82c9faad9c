"""証明書マネージャーのSQLAlchemyモデル"""
from __future__ import annotations

from datetime import datetime

from sqlalchemy.dialects.postgresql import JSONB

from core.db import db


def _id_column():
    return db.Column(
        db.BigInteger().with_variant(db.Integer, "sqlite"),
        primary_key=True,
        autoincrement=True,
    )


class CertificateAuthorityEntity(db.Model):
    """認証局レコード"""

    __tablename__ = "certmanager_cas"

    id = _id_column()
    position = db.Column(db.Integer, nullable=False, index=True)
    ref_id = db.Column(db.String(64), nullable=False, unique=True)
    description = db.Column(db.String(255), nullable=False)
    certificate_pem = db.Column(db.Text, nullable=False)
    private_key_pem = db.Column(db.Text, nullable=True)
    serial = db.Column(db.Integer, nullable=False, default=0)
    ca_ref = db.Column(db.String(64), nullable=True)
    updated_at = db.Column(
        db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )


class ManagedCertificateEntity(db.Model):
    """証明書・CSR・秘密鍵のいずれかを保持するレコード"""

    __tablename__ = "certmanager_certificates"

    id = _id_column()
    position = db.Column(db.Integer, nullable=False, index=True)
    ref_id = db.Column(db.String(64), nullable=False, unique=True)
    description = db.Column(db.String(255), nullable=False)
    ca_ref = db.Column(db.String(64), nullable=True, index=True)
    certificate_pem = db.Column(db.Text, nullable=True)
    private_key_pem = db.Column(db.Text, nullable=True)
    csr_pem = db.Column(db.Text, nullable=True)
    cert_type = db.Column(db.String(16), nullable=True)
    updated_at = db.Column(
        db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )


class CertificateRevocationListEntity(db.Model):
    """CRLと失効エントリ(JSON)"""

    __tablename__ = "certmanager_crls"

    id = _id_column()
    position = db.Column(db.Integer, nullable=False, index=True)
    ref_id = db.Column(db.String(64), nullable=False, unique=True)
    description = db.Column(db.String(255), nullable=False)
    ca_ref = db.Column(db.String(64), nullable=False, index=True)
    revoked = db.Column(db.JSON().with_variant(JSONB, "postgresql"), nullable=False, default=list)


class ConfigChangeEntity(db.Model):
    """確定した変更の履歴"""

    __tablename__ = "certmanager_changes"

    id = _id_column()
    description = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, index=True)


class UserCertificateLinkEntity(db.Model):
    """ユーザーと証明書の関連"""

    __tablename__ = "certmanager_user_certificates"
    __table_args__ = (db.UniqueConstraint("user_id", "cert_ref", name="uq_certmanager_user_cert"),)

    id = _id_column()
    user_id = db.Column(db.String(64), nullable=False, index=True)
    cert_ref = db.Column(db.String(64), nullable=False, index=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)


__all__ = [
    "CertificateAuthorityEntity",
    "CertificateRevocationListEntity",
    "ConfigChangeEntity",
    "ManagedCertificateEntity",
    "UserCertificateLinkEntity",
]
