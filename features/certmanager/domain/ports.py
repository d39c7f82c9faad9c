"""外部コラボレーターとのインターフェース定義"""
from __future__ import annotations

from typing import Protocol, Sequence, Union

from .models import CARecord, CertificateRecord, CrlRecord
from .types import EntityKind

Record = Union[CARecord, CertificateRecord, CrlRecord]


class ConfigStore(Protocol):
    """CA・証明書・CRLレコードを保持する設定ストア

    インデックスは1回のスナップショット内でのみ有効な位置番号。
    ``commit`` は変更操作ごとに1回だけ、全レコードの組み立て後に呼ぶ。
    """

    def list(self, kind: EntityKind) -> Sequence[Record]:
        ...

    def get(self, kind: EntityKind, key: int | str) -> Record:
        ...

    def upsert(self, kind: EntityKind, index: int | None, record: Record) -> int:
        ...

    def delete(self, kind: EntityKind, index: int) -> None:
        ...

    def commit(self, description: str) -> None:
        ...

    def rollback(self) -> None:
        ...


class UserCertificateLinks(Protocol):
    """ユーザーアカウントと証明書ref_idの関連付け"""

    def link(self, user_id: str, cert_ref: str) -> None:
        ...

    def linked_refs(self, user_id: str) -> Sequence[str]:
        ...

    def is_linked(self, cert_ref: str) -> bool:
        ...


__all__ = ["ConfigStore", "Record", "UserCertificateLinks"]
