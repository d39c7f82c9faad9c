"""メモリ上の設定ストア"""
from __future__ import annotations

import copy
import logging
from typing import Iterable, Sequence

from features.certmanager.domain.exceptions import CertificateNotFoundError
from features.certmanager.domain.models import CARecord, CertificateRecord, CrlRecord
from features.certmanager.domain.ports import Record
from features.certmanager.domain.types import EntityKind

logger = logging.getLogger(__name__)

_RECORD_TYPES = {
    EntityKind.CA: CARecord,
    EntityKind.CERT: CertificateRecord,
    EntityKind.CRL: CrlRecord,
}


class InMemoryConfigStore:
    """作業コピーに変更を積み、``commit`` で確定するストア

    ``rollback`` は最後に確定した状態へ作業コピーを戻す。
    取得系はコピーを返すため、呼び出し側での変更はストアに影響しない。
    """

    def __init__(
        self,
        *,
        cas: Iterable[CARecord] = (),
        certs: Iterable[CertificateRecord] = (),
        crls: Iterable[CrlRecord] = (),
    ) -> None:
        self._committed: dict[EntityKind, list[Record]] = {
            EntityKind.CA: list(cas),
            EntityKind.CERT: list(certs),
            EntityKind.CRL: list(crls),
        }
        self._working = copy.deepcopy(self._committed)
        self.changes: list[str] = []

    def list(self, kind: EntityKind) -> Sequence[Record]:
        return copy.deepcopy(tuple(self._working[EntityKind(kind)]))

    def get(self, kind: EntityKind, key: int | str) -> Record:
        records = self._working[EntityKind(kind)]
        if isinstance(key, int):
            if 0 <= key < len(records):
                return copy.deepcopy(records[key])
        else:
            for record in records:
                if record.ref_id == key:
                    return copy.deepcopy(record)
        raise CertificateNotFoundError(f"{EntityKind(kind).value}が見つかりません: {key}")

    def upsert(self, kind: EntityKind, index: int | None, record: Record) -> int:
        kind = EntityKind(kind)
        if not isinstance(record, _RECORD_TYPES[kind]):
            raise TypeError(f"{kind.value}に保存できないレコードです: {type(record).__name__}")
        records = self._working[kind]
        if index is None:
            records.append(copy.deepcopy(record))
            return len(records) - 1
        if not 0 <= index < len(records):
            raise CertificateNotFoundError(f"{kind.value}が見つかりません: {index}")
        records[index] = copy.deepcopy(record)
        return index

    def delete(self, kind: EntityKind, index: int) -> None:
        records = self._working[EntityKind(kind)]
        if not 0 <= index < len(records):
            raise CertificateNotFoundError(f"{EntityKind(kind).value}が見つかりません: {index}")
        del records[index]

    def commit(self, description: str) -> None:
        self._committed = copy.deepcopy(self._working)
        self.changes.append(description)
        logger.debug("Config store committed: %s", description)

    def rollback(self) -> None:
        self._working = copy.deepcopy(self._committed)

    @property
    def committed(self) -> dict[EntityKind, list[Record]]:
        """確定済みの状態(テスト・診断用)"""

        return copy.deepcopy(self._committed)


__all__ = ["InMemoryConfigStore"]
