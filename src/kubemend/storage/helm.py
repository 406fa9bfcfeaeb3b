#!/usr/bin/env python3
"""
KUBEMEND HELM STORE - The Archivist
-----------------------------------
Reads Helm v3 release records straight from the cluster. Helm keeps one
object per revision:

    Secret     sh.helm.release.v1.<name>.v<rev>   (type helm.sh/release.v1)
    ConfigMap  sh.helm.release.v1.<name>.v<rev>

labelled owner=helm,name=<name>,version=<rev>. The 'release' payload is
base64(gzip(json)); Secrets add the API's own base64 layer on top.

Author: KubeMend Team
Date: 2026-01-16
"""

import base64
import binascii
import gzip
import json
import logging
from typing import Any, Dict, List, Optional

from kubernetes import client as k8s_client
from kubernetes.client.rest import ApiException

from kubemend.core.errors import ClientError, ConfigError, ReleaseNotFoundError
from kubemend.core.models import ReleaseRecord
from kubemend.storage.base import (
    MEMORY_DRIVER,
    SECRET_DRIVER,
    MemoryReleaseStore,
    ReleaseStore,
    normalize_driver,
)

logger = logging.getLogger("kubemend.store")

GZIP_MAGIC = b"\x1f\x8b\x08"


def decode_release(payload: str) -> Dict[str, Any]:
    """Decodes one 'release' field (base64, optionally gzip) into the release JSON."""
    try:
        raw = base64.b64decode(payload)
        if raw[:3] == GZIP_MAGIC:
            raw = gzip.decompress(raw)
        return json.loads(raw)
    except (binascii.Error, OSError, ValueError) as e:
        raise ClientError(f"unable to decode release payload: {e}") from e


def record_from_release(data: Dict[str, Any]) -> ReleaseRecord:
    chart_meta = (data.get("chart") or {}).get("metadata") or {}
    chart = "-".join(p for p in (chart_meta.get("name"), chart_meta.get("version")) if p)
    return ReleaseRecord(
        name=data.get("name", ""),
        manifest=data.get("manifest", ""),
        namespace=data.get("namespace") or "default",
        revision=int(data.get("version", 0)),
        status=(data.get("info") or {}).get("status", ""),
        chart=chart,
    )


class KubernetesReleaseStore(ReleaseStore):
    """Release records stored by Helm in Secrets or ConfigMaps of one namespace."""

    def __init__(self, core_api: Any, namespace: str = "default", driver: str = SECRET_DRIVER):
        self.core_api = core_api
        self.namespace = namespace
        self.driver = normalize_driver(driver)
        if self.driver == MEMORY_DRIVER:
            raise ConfigError("the memory driver is not backed by the cluster")

    def _list(self, name: str) -> List[Any]:
        selector = f"owner=helm,name={name}"
        try:
            if self.driver == SECRET_DRIVER:
                result = self.core_api.list_namespaced_secret(self.namespace, label_selector=selector)
            else:
                result = self.core_api.list_namespaced_config_map(self.namespace, label_selector=selector)
        except ApiException as e:
            logger.error(f"Listing {self.driver}s for release {name} failed: {e.reason}")
            raise ClientError(f"unable to query release storage: {e.reason}", status=e.status) from e
        return list(result.items or [])

    def _payload(self, item: Any) -> str:
        data = item.data or {}
        payload = data.get("release", "")
        if self.driver == SECRET_DRIVER:
            # The API returns Secret data base64 encoded once more
            try:
                payload = base64.b64decode(payload).decode("ascii")
            except (binascii.Error, UnicodeDecodeError) as e:
                raise ClientError(f"unable to decode release secret: {e}") from e
        return payload

    def get(self, name: str) -> ReleaseRecord:
        items = self._list(name)
        if not items:
            raise ReleaseNotFoundError(name)

        records = [record_from_release(decode_release(self._payload(item))) for item in items]
        latest = max(records, key=lambda r: r.revision)
        logger.info(f"Loaded release {name} revision {latest.revision} from {self.driver} storage")
        return latest


def open_release_store(driver: Optional[str], namespace: str, api_client: Any = None) -> ReleaseStore:
    """Driver selection, mirroring HELM_DRIVER."""
    resolved = normalize_driver(driver)
    if resolved == MEMORY_DRIVER:
        return MemoryReleaseStore()
    return KubernetesReleaseStore(k8s_client.CoreV1Api(api_client), namespace=namespace, driver=resolved)
