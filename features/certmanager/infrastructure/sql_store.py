"""SQLAlchemyを利用した設定ストア"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Sequence

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from core.db import db
from core.time import ensure_utc
from features.certmanager.domain.exceptions import (
    CertificateNotFoundError,
    CertificatePersistError,
)
from features.certmanager.domain.models import (
    CARecord,
    CertificateRecord,
    CrlRecord,
    RevokedEntry,
)
from features.certmanager.domain.ports import Record
from features.certmanager.domain.types import CertificateType, EntityKind

from .models import (
    CertificateAuthorityEntity,
    CertificateRevocationListEntity,
    ConfigChangeEntity,
    ManagedCertificateEntity,
    UserCertificateLinkEntity,
)

logger = logging.getLogger(__name__)

_ENTITIES = {
    EntityKind.CA: CertificateAuthorityEntity,
    EntityKind.CERT: ManagedCertificateEntity,
    EntityKind.CRL: CertificateRevocationListEntity,
}


class SqlAlchemyConfigStore:
    """``core.db`` のセッションにレコードを積み、``commit`` で確定する"""

    def list(self, kind: EntityKind) -> Sequence[Record]:
        return [self._entity_to_domain(kind, entity) for entity in self._entities(kind)]

    def get(self, kind: EntityKind, key: int | str) -> Record:
        kind = EntityKind(kind)
        if isinstance(key, int):
            entities = self._entities(kind)
            if 0 <= key < len(entities):
                return self._entity_to_domain(kind, entities[key])
        else:
            entity = _ENTITIES[kind].query.filter_by(ref_id=key).one_or_none()
            if entity is not None:
                return self._entity_to_domain(kind, entity)
        raise CertificateNotFoundError(f"{kind.value}が見つかりません: {key}")

    def upsert(self, kind: EntityKind, index: int | None, record: Record) -> int:
        kind = EntityKind(kind)
        entities = self._entities(kind)
        if index is None:
            model = _ENTITIES[kind]
            next_position = (db.session.query(func.max(model.position)).scalar() or 0) + 1
            entity = model(position=next_position)
            db.session.add(entity)
            index = len(entities)
        elif 0 <= index < len(entities):
            entity = entities[index]
        else:
            raise CertificateNotFoundError(f"{kind.value}が見つかりません: {index}")
        self._apply(kind, entity, record)
        self._flush(f"upsert {kind.value}")
        return index

    def delete(self, kind: EntityKind, index: int) -> None:
        entities = self._entities(kind)
        if not 0 <= index < len(entities):
            raise CertificateNotFoundError(f"{EntityKind(kind).value}が見つかりません: {index}")
        db.session.delete(entities[index])
        self._flush(f"delete {EntityKind(kind).value}")

    def _flush(self, operation: str) -> None:
        try:
            db.session.flush()
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.error("Config store flush failed: %s", operation, exc_info=True)
            raise CertificatePersistError(f"設定の反映に失敗しました: {operation}") from exc

    def commit(self, description: str) -> None:
        try:
            db.session.add(ConfigChangeEntity(description=description))
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.error("Config store commit failed: %s", description, exc_info=True)
            raise CertificatePersistError(f"設定の保存に失敗しました: {description}") from exc

    def rollback(self) -> None:
        db.session.rollback()

    def changes(self, limit: int = 50) -> list[str]:
        query = ConfigChangeEntity.query.order_by(ConfigChangeEntity.id.desc()).limit(limit)
        return [entity.description for entity in query.all()]

    # ------------------------------------------------------------------
    # 変換
    # ------------------------------------------------------------------
    @staticmethod
    def _entities(kind: EntityKind) -> list:
        model = _ENTITIES[EntityKind(kind)]
        return model.query.order_by(model.position.asc(), model.id.asc()).all()

    @staticmethod
    def _apply(kind: EntityKind, entity, record: Record) -> None:
        entity.ref_id = record.ref_id
        entity.description = record.description
        if kind == EntityKind.CA:
            assert isinstance(record, CARecord)
            entity.certificate_pem = record.certificate_pem
            entity.private_key_pem = record.private_key_pem
            entity.serial = record.serial
            entity.ca_ref = record.ca_ref
        elif kind == EntityKind.CERT:
            assert isinstance(record, CertificateRecord)
            entity.ca_ref = record.ca_ref
            entity.certificate_pem = record.certificate_pem
            entity.private_key_pem = record.private_key_pem
            entity.csr_pem = record.csr_pem
            entity.cert_type = record.cert_type.value if record.cert_type else None
        else:
            assert isinstance(record, CrlRecord)
            entity.ca_ref = record.ca_ref
            entity.revoked = [
                {
                    "cert_ref": item.cert_ref,
                    "serial": item.serial,
                    "reason": item.reason,
                    "revoked_at": item.revoked_at.isoformat() if item.revoked_at else None,
                }
                for item in record.revoked
            ]

    @staticmethod
    def _entity_to_domain(kind: EntityKind, entity) -> Record:
        kind = EntityKind(kind)
        if kind == EntityKind.CA:
            return CARecord(
                ref_id=entity.ref_id,
                description=entity.description,
                certificate_pem=entity.certificate_pem,
                private_key_pem=entity.private_key_pem,
                serial=entity.serial or 0,
                ca_ref=entity.ca_ref,
            )
        if kind == EntityKind.CERT:
            return CertificateRecord(
                ref_id=entity.ref_id,
                description=entity.description,
                ca_ref=entity.ca_ref,
                certificate_pem=entity.certificate_pem,
                private_key_pem=entity.private_key_pem,
                csr_pem=entity.csr_pem,
                cert_type=CertificateType(entity.cert_type) if entity.cert_type else None,
            )
        return CrlRecord(
            ref_id=entity.ref_id,
            description=entity.description,
            ca_ref=entity.ca_ref,
            revoked=[
                RevokedEntry(
                    cert_ref=item.get("cert_ref"),
                    serial=item.get("serial"),
                    reason=item.get("reason"),
                    revoked_at=ensure_utc(datetime.fromisoformat(item["revoked_at"]))
                    if item.get("revoked_at")
                    else None,
                )
                for item in entity.revoked or []
            ],
        )


class SqlAlchemyUserCertificateLinks:
    """ユーザーと証明書の関連をテーブルに保存する"""

    def link(self, user_id: str, cert_ref: str) -> None:
        exists = UserCertificateLinkEntity.query.filter_by(
            user_id=user_id, cert_ref=cert_ref
        ).one_or_none()
        if exists is not None:
            return
        try:
            db.session.add(UserCertificateLinkEntity(user_id=user_id, cert_ref=cert_ref))
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise CertificatePersistError("ユーザーと証明書の関連付けに失敗しました") from exc

    def linked_refs(self, user_id: str) -> Sequence[str]:
        query = UserCertificateLinkEntity.query.filter_by(user_id=user_id).order_by(
            UserCertificateLinkEntity.id.asc()
        )
        return [entity.cert_ref for entity in query.all()]

    def is_linked(self, cert_ref: str) -> bool:
        return (
            db.session.query(UserCertificateLinkEntity.id).filter_by(cert_ref=cert_ref).first()
            is not None
        )


__all__ = ["SqlAlchemyConfigStore", "SqlAlchemyUserCertificateLinks"]
