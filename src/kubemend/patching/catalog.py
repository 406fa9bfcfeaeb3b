#!/usr/bin/env python3
"""
KUBEMEND MERGE STRATEGY CATALOG
-------------------------------
Explicit lookup of per-field merge metadata, keyed by object type
('apps/v1/Deployment'). The catalog is a JSON document with two sections:

    definitions:  reusable schema fragments (ObjectMeta, PodSpec, ...)
    kinds:        '<apiVersion>/<Kind>' -> schema node

A schema node may carry:
    fields    -> {name: node} for mapping fields
    items     -> node describing list elements
    strategy  -> 'merge' or 'replace' (default) for list fields
    key       -> merge key for 'merge' lists of mappings
    ref       -> name of a definition to inline

The catalog is handed to the PatchGenerator at construction time; nothing
here is global.

Author: KubeMend Team
Date: 2026-01-16
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from kubemend.core.errors import ConfigError, SchemaError

logger = logging.getLogger("kubemend.patch")

DEFAULT_CATALOG = Path(__file__).resolve().parent.parent / "catalog" / "merge_strategies.json"

MERGE = "merge"
REPLACE = "replace"


class SchemaNode:
    """
    A resolved view of one position in an object's schema. Unknown
    positions resolve to an empty node: maps still merge recursively,
    lists are replaced atomically.
    """

    def __init__(self, spec: Optional[Dict[str, Any]] = None,
                 definitions: Optional[Dict[str, Any]] = None):
        self._definitions = definitions or {}
        self.spec = self._resolve(spec or {})

    def _resolve(self, spec: Dict[str, Any]) -> Dict[str, Any]:
        seen = set()
        while "ref" in spec:
            ref = spec["ref"]
            if ref in seen:
                raise SchemaError(f"circular schema reference '{ref}'")
            seen.add(ref)
            target = self._definitions.get(ref)
            if target is None:
                raise SchemaError(f"unknown schema definition '{ref}'")
            # Local keys (strategy/key) override the definition's
            merged = dict(target)
            merged.update({k: v for k, v in spec.items() if k != "ref"})
            spec = merged
        return spec

    @property
    def strategy(self) -> str:
        return self.spec.get("strategy", REPLACE)

    @property
    def merge_key(self) -> Optional[str]:
        return self.spec.get("key")

    @property
    def is_keyed_merge(self) -> bool:
        return self.strategy == MERGE and bool(self.merge_key)

    @property
    def is_primitive_merge(self) -> bool:
        return self.strategy == MERGE and not self.merge_key

    def field(self, name: str) -> "SchemaNode":
        return SchemaNode(self.spec.get("fields", {}).get(name), self._definitions)

    def items(self) -> "SchemaNode":
        return SchemaNode(self.spec.get("items"), self._definitions)


class MergeStrategyCatalog:
    """
    Resolves the merge schema for an object type.

    With ``allow_unregistered`` set, unknown types get an empty schema
    (every list atomic), which is also a valid JSON merge patch. Otherwise
    an unknown type is a SchemaError.
    """

    def __init__(self, data: Dict[str, Any], allow_unregistered: bool = False):
        if not isinstance(data, dict):
            raise ConfigError("merge strategy catalog must be a JSON object")
        self.definitions: Dict[str, Any] = data.get("definitions", {})
        self.kinds: Dict[str, Any] = data.get("kinds", {})
        self.allow_unregistered = allow_unregistered

    @classmethod
    def load(cls, path: Optional[str] = None, allow_unregistered: bool = False) -> "MergeStrategyCatalog":
        """Loads a catalog file, defaulting to the bundled one."""
        resolved = Path(path).expanduser().resolve() if path else DEFAULT_CATALOG
        try:
            with open(resolved, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Unable to load merge strategy catalog from {resolved}")
            raise ConfigError(f"failed to load merge strategy catalog: {e}") from e
        logger.debug(f"Loaded {len(data.get('kinds', {}))} kinds from {resolved}")
        return cls(data, allow_unregistered=allow_unregistered)

    @staticmethod
    def type_key(api_version: str, kind: str) -> str:
        return f"{api_version}/{kind}"

    def is_registered(self, api_version: str, kind: str) -> bool:
        return self.type_key(api_version, kind) in self.kinds

    def schema_for(self, api_version: str, kind: str) -> SchemaNode:
        spec = self.kinds.get(self.type_key(api_version, kind))
        if spec is None:
            if not self.allow_unregistered:
                raise SchemaError(
                    f"no merge strategy registered for {api_version}, Kind={kind}"
                )
            return SchemaNode({}, self.definitions)
        return SchemaNode(spec, self.definitions)
