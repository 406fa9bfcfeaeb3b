#!/usr/bin/env python3
"""
KUBEMEND MEMORY CLUSTER - The Simulator
---------------------------------------
An in-process object store that answers get/create/patch the way the API
server does: server-managed metadata is stamped on create and bumped on
every effective patch, strategic patches are applied with the same merge
metadata the generator used, and dry-run calls return the would-be result
without persisting it.

Used by the test-suite and for offline rehearsal of a repair.

Author: KubeMend Team
Date: 2026-01-16
"""

import copy
import itertools
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from kubemend.cluster.base import ObjectClient
from kubemend.core.errors import ClientError, ObjectNotFoundError
from kubemend.core.models import ObjectRef
from kubemend.patching.catalog import MergeStrategyCatalog
from kubemend.patching.strategic import (
    JSON_MERGE_PATCH,
    apply_merge_patch,
    apply_strategic_patch,
    to_document,
)

logger = logging.getLogger("kubemend.cluster")

# Resources that never carry a namespace
CLUSTER_SCOPED = [
    "Namespace", "Node", "ClusterRole", "ClusterRoleBinding",
    "StorageClass", "PersistentVolume", "CustomResourceDefinition",
    "PriorityClass", "ValidatingWebhookConfiguration", "MutatingWebhookConfiguration",
]

ObjectKey = Tuple[str, str, str, str]


class MemoryCluster:
    """Holds live objects keyed by (apiVersion, kind, namespace, name)."""

    def __init__(self, catalog: Optional[MergeStrategyCatalog] = None,
                 cluster_scoped: Optional[Iterable[str]] = None):
        self.catalog = catalog or MergeStrategyCatalog.load(allow_unregistered=True)
        self.cluster_scoped = set(cluster_scoped if cluster_scoped is not None else CLUSTER_SCOPED)
        self.objects: Dict[ObjectKey, Dict[str, Any]] = {}
        # (verb, ObjectRef, dry_run) in call order
        self.calls: List[Tuple[str, ObjectRef, bool]] = []
        self._versions = itertools.count(1)

    @staticmethod
    def _key(api_version: str, kind: str, namespace: str, name: str) -> ObjectKey:
        return (api_version, kind, namespace or "", name)

    def is_namespaced(self, api_version: str, kind: str) -> bool:
        return kind not in self.cluster_scoped

    def client_for(self, api_version: str, kind: str) -> "MemoryObjectClient":
        return MemoryObjectClient(self, api_version, kind)

    def next_resource_version(self) -> str:
        return str(next(self._versions))

    def stamp(self, obj: Dict[str, Any], namespace: str, dry_run: bool = False) -> Dict[str, Any]:
        """Adds the metadata the API server owns. Dry-run objects get no resourceVersion."""
        meta = obj.setdefault("metadata", {})
        if namespace:
            meta["namespace"] = namespace
        meta.setdefault("uid", str(uuid.uuid4()))
        meta.setdefault("creationTimestamp", datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"))
        if not dry_run:
            meta["resourceVersion"] = self.next_resource_version()
        meta.setdefault("generation", 1)
        return obj

    def put(self, obj: Dict[str, Any]) -> Dict[str, Any]:
        """Seeds live state directly, bypassing the call log."""
        doc = to_document(obj)
        ref = ObjectRef.from_object(doc)
        namespace = ""
        if self.is_namespaced(ref.api_version, ref.kind):
            namespace = ref.namespace or "default"
        stored = self.stamp(doc, namespace)
        self.objects[self._key(ref.api_version, ref.kind, namespace, ref.name)] = stored
        return copy.deepcopy(stored)

    def read(self, api_version: str, kind: str, namespace: str, name: str) -> Optional[Dict[str, Any]]:
        obj = self.objects.get(self._key(api_version, kind, namespace, name))
        return copy.deepcopy(obj) if obj is not None else None

    def delete(self, api_version: str, kind: str, namespace: str, name: str):
        self.objects.pop(self._key(api_version, kind, namespace, name), None)

    def mutating_calls(self) -> List[Tuple[str, ObjectRef, bool]]:
        return [c for c in self.calls if c[0] in ("create", "patch")]


class MemoryObjectClient(ObjectClient):

    def __init__(self, cluster: MemoryCluster, api_version: str, kind: str):
        self.cluster = cluster
        self.api_version = api_version
        self.kind = kind

    def _ref(self, namespace: str, name: str) -> ObjectRef:
        return ObjectRef(self.api_version, self.kind, namespace or "", name)

    def get(self, namespace: str, name: str) -> Dict[str, Any]:
        self.cluster.calls.append(("get", self._ref(namespace, name), False))
        obj = self.cluster.read(self.api_version, self.kind, namespace, name)
        if obj is None:
            raise ObjectNotFoundError(f'{self.kind.lower()} "{name}" not found')
        return obj

    def create(self, namespace: str, obj: Dict[str, Any], dry_run: bool = False) -> Dict[str, Any]:
        name = str((obj.get("metadata") or {}).get("name", ""))
        self.cluster.calls.append(("create", self._ref(namespace, name), dry_run))
        key = self.cluster._key(self.api_version, self.kind, namespace, name)
        if key in self.cluster.objects:
            raise ClientError(f'{self.kind.lower()} "{name}" already exists', status=409)

        created = self.cluster.stamp(to_document(obj), namespace, dry_run=dry_run)
        if not dry_run:
            self.cluster.objects[key] = created
            logger.debug(f"Stored {self.kind} {namespace}/{name}")
        return copy.deepcopy(created)

    def patch(self, namespace: str, name: str, patch: Dict[str, Any],
              dry_run: bool = False, patch_type: str = "strategic") -> Dict[str, Any]:
        self.cluster.calls.append(("patch", self._ref(namespace, name), dry_run))
        key = self.cluster._key(self.api_version, self.kind, namespace, name)
        current = self.cluster.objects.get(key)
        if current is None:
            raise ObjectNotFoundError(f'{self.kind.lower()} "{name}" not found')

        if patch_type == JSON_MERGE_PATCH:
            updated = apply_merge_patch(current, patch)
        else:
            schema = self.cluster.catalog.schema_for(self.api_version, self.kind)
            updated = apply_strategic_patch(current, patch, schema)

        if updated != current:
            meta = updated.setdefault("metadata", {})
            if updated.get("spec") != current.get("spec"):
                meta["generation"] = int(meta.get("generation", 1)) + 1
            if not dry_run:
                meta["resourceVersion"] = self.cluster.next_resource_version()

        if not dry_run:
            self.cluster.objects[key] = updated
        return copy.deepcopy(updated)
