"""ユーザーと証明書の関連(メモリ実装)"""
from __future__ import annotations

from typing import Sequence


class InMemoryUserCertificateLinks:
    def __init__(self) -> None:
        self._links: dict[str, list[str]] = {}

    def link(self, user_id: str, cert_ref: str) -> None:
        refs = self._links.setdefault(user_id, [])
        if cert_ref not in refs:
            refs.append(cert_ref)

    def linked_refs(self, user_id: str) -> Sequence[str]:
        return tuple(self._links.get(user_id, ()))

    def is_linked(self, cert_ref: str) -> bool:
        return any(cert_ref in refs for refs in self._links.values())


__all__ = ["InMemoryUserCertificateLinks"]
