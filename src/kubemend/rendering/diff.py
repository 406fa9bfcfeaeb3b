#!/usr/bin/env python3
"""
KUBEMEND DIFF RENDERER
----------------------
Produces the unified diff shown to operators for every patched object.
Both snapshots are rendered to canonical YAML (keys sorted, block style)
so that the diff only shows real value changes.

Author: KubeMend Team
Date: 2026-01-16
"""

import difflib
import io
from typing import Any, Dict, Iterable

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from kubemend.core.errors import SerializationError
from kubemend.core.models import ObjectRef
from kubemend.patching.strategic import to_document


# Bookkeeping the API server rewrites on every write
VOLATILE_METADATA = ("resourceVersion", "generation", "managedFields")


class DiffRenderer:
    """Pure presenter: never influences what the Reconciler does."""

    def __init__(self, context_lines: int = 3, ignored_metadata: Iterable[str] = VOLATILE_METADATA):
        self.context_lines = context_lines
        self.ignored_metadata = tuple(ignored_metadata)
        self.yaml = YAML(typ="safe", pure=True)
        self.yaml.default_flow_style = False
        self.yaml.width = 4096

    def _strip_volatile(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        meta = doc.get("metadata")
        if isinstance(meta, dict):
            doc["metadata"] = {k: v for k, v in meta.items() if k not in self.ignored_metadata}
        return doc

    def _sorted(self, data: Any) -> Any:
        if isinstance(data, dict):
            return {k: self._sorted(data[k]) for k in sorted(data)}
        if isinstance(data, list):
            return [self._sorted(item) for item in data]
        return data

    def to_yaml(self, obj: Dict[str, Any]) -> str:
        stream = io.StringIO()
        try:
            self.yaml.dump(self._sorted(obj), stream)
        except YAMLError as e:
            raise SerializationError(f"unable to render object as YAML: {e}") from e
        return stream.getvalue()

    def render(self, before: Any, after: Any) -> str:
        """
        Unified diff of `before` (labelled 'current') against `after`
        (labelled 'target'). Returns an empty string when they match.
        """
        before_doc = self._strip_volatile(to_document(before, "current object"))
        after_doc = self._strip_volatile(to_document(after, "target object"))

        diff = difflib.unified_diff(
            self.to_yaml(before_doc).splitlines(keepends=True),
            self.to_yaml(after_doc).splitlines(keepends=True),
            fromfile=f"{ObjectRef.from_object(before_doc).label} (current)",
            tofile=f"{ObjectRef.from_object(after_doc).label} (target)",
            n=self.context_lines,
        )
        return "".join(diff)
