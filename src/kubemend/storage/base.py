#!/usr/bin/env python3
"""
KUBEMEND RELEASE STORES
-----------------------
Read access to stored release records. The repair core only ever calls
``get(name)``, which returns the latest revision of the release.

Author: KubeMend Team
Date: 2026-01-16
"""

import abc
from typing import Dict, Iterable, List, Optional

from kubemend.core.errors import ConfigError, ReleaseNotFoundError
from kubemend.core.models import ReleaseRecord

SECRET_DRIVER = "secret"
CONFIGMAP_DRIVER = "configmap"
MEMORY_DRIVER = "memory"

DRIVER_ALIASES = {
    "": SECRET_DRIVER,
    "secret": SECRET_DRIVER,
    "secrets": SECRET_DRIVER,
    "configmap": CONFIGMAP_DRIVER,
    "configmaps": CONFIGMAP_DRIVER,
    "memory": MEMORY_DRIVER,
}


def normalize_driver(driver: Optional[str]) -> str:
    """Maps HELM_DRIVER spellings onto a storage driver name."""
    key = (driver or "").strip().lower()
    if key not in DRIVER_ALIASES:
        raise ConfigError(f"unknown release storage driver '{driver}'")
    return DRIVER_ALIASES[key]


class ReleaseStore(abc.ABC):

    @abc.abstractmethod
    def get(self, name: str) -> ReleaseRecord:
        """Latest revision of `name`, or ReleaseNotFoundError."""


class MemoryReleaseStore(ReleaseStore):
    """Keeps every revision in memory. Backs the 'memory' driver and tests."""

    def __init__(self, records: Optional[Iterable[ReleaseRecord]] = None):
        self._records: Dict[str, List[ReleaseRecord]] = {}
        for record in records or []:
            self.create(record)

    def create(self, record: ReleaseRecord) -> ReleaseRecord:
        self._records.setdefault(record.name, []).append(record)
        return record

    def history(self, name: str) -> List[ReleaseRecord]:
        return sorted(self._records.get(name, []), key=lambda r: r.revision)

    def get(self, name: str) -> ReleaseRecord:
        revisions = self.history(name)
        if not revisions:
            raise ReleaseNotFoundError(name)
        return revisions[-1]
