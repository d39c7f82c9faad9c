"""証明書の利用状況レジストリ

VPN・DNSリゾルバー・キャプティブポータル・Web UIなど、証明書を参照する
サブシステムごとの判定関数を登録し、削除前に毎回評価する。
結果はキャッシュしない。
"""
from __future__ import annotations

import logging
from typing import Callable, Iterable

from features.certmanager.domain.ports import UserCertificateLinks

UsagePredicate = Callable[[str], bool]
PluginCallback = Callable[[], Iterable[str]]

USER_CERTIFICATE_CONSUMER = "User Cert"

logger = logging.getLogger(__name__)


class UsageRegistry:
    """証明書ref_idの参照元を集約する"""

    def __init__(self) -> None:
        self._predicates: dict[str, UsagePredicate] = {}
        self._plugins: dict[str, PluginCallback] = {}

    def register(self, name: str, predicate: UsagePredicate) -> None:
        """``predicate(ref_id)`` が真を返すとき ``name`` が参照中とみなす"""

        self._predicates[name] = predicate

    def register_plugin(self, name: str, callback: PluginCallback) -> None:
        """外部パッケージ用。``callback()`` は参照中のref_id一覧を返す"""

        self._plugins[name] = callback

    def unregister(self, name: str) -> None:
        self._predicates.pop(name, None)
        self._plugins.pop(name, None)

    @property
    def names(self) -> list[str]:
        return [*self._predicates, *self._plugins]

    def consumers(self, ref_id: str) -> list[str]:
        """ref_idを参照しているサブシステム名を登録順に返す"""

        found = [name for name, predicate in self._predicates.items() if predicate(ref_id)]
        for name, callback in self._plugins.items():
            if ref_id in set(callback() or ()):
                found.append(name)
        logger.debug("Usage check for %s: %s", ref_id, found or "unused")
        return found

    def is_in_use(self, ref_id: str) -> bool:
        if any(predicate(ref_id) for predicate in self._predicates.values()):
            return True
        return any(ref_id in set(callback() or ()) for callback in self._plugins.values())


def register_user_links_consumer(
    registry: UsageRegistry, links: UserCertificateLinks, name: str = USER_CERTIFICATE_CONSUMER
) -> None:
    """ユーザーに紐付いた証明書を参照中として扱う"""

    registry.register(name, links.is_linked)


__all__ = [
    "PluginCallback",
    "USER_CERTIFICATE_CONSUMER",
    "UsagePredicate",
    "UsageRegistry",
    "register_user_links_consumer",
]
