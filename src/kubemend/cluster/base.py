#!/usr/bin/env python3
"""
KUBEMEND CLUSTER INTERFACES
---------------------------
The seams between the repair core and a live cluster:

    ObjectClient     get/create/patch for one resource type
    ManifestBuilder  release manifest text -> ordered ObjectDescriptors

ClusterManifestBuilder is the standard builder; it works with any cluster
adapter that can hand out ObjectClients and answer whether a kind is
namespaced (MemoryCluster, KubernetesCluster).

Author: KubeMend Team
Date: 2026-01-16
"""

import abc
import datetime
import logging
from typing import Any, Dict, Iterator, List

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from kubemend.core.errors import BuildError
from kubemend.core.models import ObjectDescriptor, ObjectRef

logger = logging.getLogger("kubemend.cluster")


def _plain(value: Any) -> Any:
    """Timestamps become strings, as in the YAML-to-JSON step Helm applies."""
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_plain(v) for v in value]
    if isinstance(value, (datetime.date, datetime.datetime)):
        return value.isoformat()
    return value


class ObjectClient(abc.ABC):
    """Performs calls for a single (apiVersion, kind)."""

    @abc.abstractmethod
    def get(self, namespace: str, name: str) -> Dict[str, Any]:
        """Live snapshot, or ObjectNotFoundError."""

    @abc.abstractmethod
    def create(self, namespace: str, obj: Dict[str, Any], dry_run: bool = False) -> Dict[str, Any]:
        ...

    @abc.abstractmethod
    def patch(self, namespace: str, name: str, patch: Dict[str, Any],
              dry_run: bool = False, patch_type: str = "strategic") -> Dict[str, Any]:
        ...


class ManifestBuilder(abc.ABC):

    @abc.abstractmethod
    def build(self, manifest: str, namespace: str) -> List[ObjectDescriptor]:
        """Parses a manifest in document order; BuildError on malformed input."""


class ClusterManifestBuilder(ManifestBuilder):
    """
    Splits a multi-document manifest, validates each object's identity and
    binds it to the cluster's client for that resource type.
    """

    def __init__(self, cluster: Any):
        self.cluster = cluster
        self.yaml = YAML(typ="safe", pure=True)
        # Charts are read as YAML 1.1: 0644 is octal, on/yes are booleans
        self.yaml.version = (1, 1)

    def _documents(self, manifest: str) -> Iterator[Any]:
        try:
            docs = list(self.yaml.load_all(manifest))
        except YAMLError as e:
            raise BuildError(f"error parsing manifest: {e}") from e

        for index, doc in enumerate(docs):
            # Empty documents (templates that rendered to nothing) are skipped
            if doc is None:
                continue
            doc = _plain(doc)
            if not isinstance(doc, dict):
                raise BuildError(f"document {index} is not a mapping")
            if doc.get("kind") == "List" and isinstance(doc.get("items"), list):
                yield from doc["items"]
            else:
                yield doc

    def _validate(self, obj: Any) -> None:
        if not isinstance(obj, dict):
            raise BuildError("list item is not a mapping")
        for required in ("apiVersion", "kind"):
            if not obj.get(required):
                raise BuildError(f"object is missing required field '{required}'")
        meta = obj.get("metadata")
        if not isinstance(meta, dict) or not meta.get("name"):
            raise BuildError(f"{obj.get('kind')} object is missing 'metadata.name'")

    def build(self, manifest: str, namespace: str) -> List[ObjectDescriptor]:
        descriptors = []
        for obj in self._documents(manifest or ""):
            self._validate(obj)
            api_version, kind = str(obj["apiVersion"]), str(obj["kind"])
            client = self.cluster.client_for(api_version, kind)

            target_ns = ""
            if self.cluster.is_namespaced(api_version, kind):
                target_ns = obj["metadata"].get("namespace") or namespace

            ref = ObjectRef(api_version=api_version, kind=kind,
                            namespace=target_ns, name=str(obj["metadata"]["name"]))
            descriptors.append(ObjectDescriptor(ref=ref, desired=obj, client=client))

        logger.debug(f"Built {len(descriptors)} objects from release manifest")
        return descriptors
