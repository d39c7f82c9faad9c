"""Certificate policy settings.

:class:`CertManagerSettings` resolves every policy knob from the active Flask
application config first, then from the process environment (or the mapping
passed to the constructor), and finally from the defaults in
:mod:`features.certmanager.domain.policy`.  Malformed or non-positive
values fall back to the default.

Production code uses the module level :data:`settings`; tests build their own
instance with an explicit mapping.
"""

from __future__ import annotations

import os
from datetime import datetime
from typing import Any, Mapping, Optional, Sequence, Tuple, TYPE_CHECKING, cast

from flask import current_app, has_app_context

from features.certmanager.domain.policy import (
    DEFAULT_DIGEST_BLACKLIST,
    DEFAULT_LIFETIME_CAP,
    DEFAULT_MAX_SERVER_CERT_LIFETIME,
    DEFAULT_MIN_PRIVATE_KEY_BITS,
    compute_max_lifetime,
)
from features.certmanager.domain.types import Pkcs12EncryptionLevel

if TYPE_CHECKING:  # pragma: no cover
    from flask import Flask


MAX_LIFETIME_KEY = "CERTMANAGER_MAX_LIFETIME_DAYS"
DEFAULT_LIFETIME_KEY = "CERTMANAGER_DEFAULT_LIFETIME_DAYS"
MAX_SERVER_LIFETIME_KEY = "CERTMANAGER_MAX_SERVER_CERT_LIFETIME_DAYS"
MIN_KEY_BITS_KEY = "CERTMANAGER_MIN_PRIVATE_KEY_BITS"
DIGEST_BLACKLIST_KEY = "CERTMANAGER_DIGEST_BLACKLIST"
P12_ENCRYPTION_KEY = "CERTMANAGER_P12_ENCRYPTION"


class CertManagerSettings:
    """Policy values consulted by the certificate use cases."""

    def __init__(self, env: Optional[Mapping[str, str]] = None) -> None:
        self._env: Mapping[str, str] = os.environ if env is None else env

    def lookup(self, key: str) -> Any:
        """Return the raw value for *key*, or ``None`` when nothing is configured."""

        if has_app_context():
            app_config = cast("Flask", current_app).config
            if key in app_config:
                return app_config[key]
        return self._env.get(key)

    def _positive_int(self, key: str, default: int) -> int:
        value = self.lookup(key)
        try:
            parsed = int(value)
        except (TypeError, ValueError):
            return default
        return parsed if parsed > 0 else default

    def _names(self, key: str, default: Sequence[str]) -> Tuple[str, ...]:
        value = self.lookup(key)
        if value is None:
            return tuple(default)
        items = value if isinstance(value, (list, tuple)) else str(value).split(",")
        return tuple(str(item).strip() for item in items if str(item).strip())

    # ------------------------------------------------------------------
    # Lifetimes
    # ------------------------------------------------------------------
    def max_lifetime_days(self, now: Optional[datetime] = None) -> int:
        """Hard ceiling for certificate lifetimes, in days.

        Never exceeds the number of days left before the UTCTime horizon.
        """

        computed = compute_max_lifetime(now)
        return min(self._positive_int(MAX_LIFETIME_KEY, computed), computed)

    def default_lifetime_days(self, now: Optional[datetime] = None) -> int:
        ceiling = self.max_lifetime_days(now)
        return min(self._positive_int(DEFAULT_LIFETIME_KEY, DEFAULT_LIFETIME_CAP), ceiling)

    @property
    def max_server_cert_lifetime_days(self) -> int:
        return self._positive_int(MAX_SERVER_LIFETIME_KEY, DEFAULT_MAX_SERVER_CERT_LIFETIME)

    # ------------------------------------------------------------------
    # Keys and digests
    # ------------------------------------------------------------------
    @property
    def min_private_key_bits(self) -> int:
        return self._positive_int(MIN_KEY_BITS_KEY, DEFAULT_MIN_PRIVATE_KEY_BITS)

    @property
    def digest_blacklist(self) -> Tuple[str, ...]:
        return self._names(DIGEST_BLACKLIST_KEY, DEFAULT_DIGEST_BLACKLIST)

    @property
    def pkcs12_encryption(self) -> Pkcs12EncryptionLevel:
        raw = self.lookup(P12_ENCRYPTION_KEY)
        if raw is None:
            return Pkcs12EncryptionLevel.HIGH
        try:
            return Pkcs12EncryptionLevel(str(raw).strip().lower())
        except ValueError:
            return Pkcs12EncryptionLevel.HIGH


settings = CertManagerSettings()

__all__ = ["CertManagerSettings", "settings"]
