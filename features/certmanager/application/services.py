"""証明書マネージャーで利用する共通サービス定義"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from core.settings import CertManagerSettings, settings as default_settings
from core.time import utc_now
from features.certmanager.domain.ports import ConfigStore, UserCertificateLinks
from features.certmanager.infrastructure.sql_store import (
    SqlAlchemyConfigStore,
    SqlAlchemyUserCertificateLinks,
)

from .usage import UsageRegistry, register_user_links_consumer


@dataclass(slots=True)
class CertManagerServices:
    store: ConfigStore
    usage: UsageRegistry
    user_links: UserCertificateLinks
    settings: CertManagerSettings = field(default_factory=lambda: default_settings)
    clock: Callable[[], datetime] = utc_now


def build_default_services() -> CertManagerServices:
    links = SqlAlchemyUserCertificateLinks()
    usage = UsageRegistry()
    register_user_links_consumer(usage, links)
    return CertManagerServices(
        store=SqlAlchemyConfigStore(),
        usage=usage,
        user_links=links,
    )


default_certmanager_services = build_default_services()


__all__ = ["CertManagerServices", "build_default_services", "default_certmanager_services"]
