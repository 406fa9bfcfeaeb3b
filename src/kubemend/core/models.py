#!/usr/bin/env python3
"""
KUBEMEND CORE MODELS
--------------------
Defines the data structures that flow through a repair run: the stored
release record, the identity of each managed object, the per-object
descriptor handed to the Reconciler, and the aggregate outcome.

Author: KubeMend Team
Date: 2026-01-16
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple


@dataclass
class ReleaseRecord:
    """
    A named, versioned deployment and the manifest it was installed with.
    Owned by the release store; the repair core only reads it.
    """
    name: str
    manifest: str                  # Multi-document YAML, as rendered at install time
    namespace: str = "default"
    revision: int = 1
    status: str = "deployed"
    chart: str = ""                # e.g. 'nginx-15.1.0'


@dataclass(frozen=True)
class ObjectRef:
    """Unique (apiVersion, kind, namespace, name) identity of a managed object."""
    api_version: str
    kind: str
    namespace: str
    name: str

    @property
    def label(self) -> str:
        """Diff label form: group.version.Kind.namespace.name"""
        gv = self.api_version.replace("/", ".")
        return f"{gv}.{self.kind}.{self.namespace}.{self.name}"

    @classmethod
    def from_object(cls, obj: Dict[str, Any]) -> "ObjectRef":
        meta = obj.get("metadata") or {}
        return cls(
            api_version=str(obj.get("apiVersion", "")),
            kind=str(obj.get("kind", "")),
            namespace=str(meta.get("namespace") or ""),
            name=str(meta.get("name", "")),
        )

    def __str__(self) -> str:
        scope = f"{self.namespace}/" if self.namespace else ""
        return f"{self.kind} {scope}{self.name}"


@dataclass
class ObjectDescriptor:
    """
    One object parsed out of a release manifest, bound to the client that
    can get/create/patch its resource type. Lives for a single repair run.
    """
    ref: ObjectRef
    desired: Dict[str, Any]
    client: Any                    # kubemend.cluster.base.ObjectClient

    @property
    def name(self) -> str:
        return self.ref.name

    @property
    def namespace(self) -> str:
        return self.ref.namespace


class ObjectAction(str, Enum):
    CREATED = "created"
    PATCHED = "patched"
    UNCHANGED = "unchanged"


@dataclass
class RepairOutcome:
    """
    Aggregate result of a repair run. Unpacks as (release, repaired) so
    callers can write ``release, repaired = action.run(name)``.

    ``actions`` keeps the per-object result only to feed the --summary
    table and the continue-on-error report; the repair itself never
    consults it.
    """
    release: ReleaseRecord
    dry_run: bool = False
    actions: List[Tuple[ObjectRef, ObjectAction]] = field(default_factory=list)

    @property
    def repaired(self) -> bool:
        return any(action is not ObjectAction.UNCHANGED for _, action in self.actions)

    def record(self, ref: ObjectRef, action: ObjectAction):
        self.actions.append((ref, action))

    def count(self, action: ObjectAction) -> int:
        return sum(1 for _, a in self.actions if a is action)

    def __iter__(self) -> Iterator[Any]:
        yield self.release
        yield self.repaired


def status_line(name: str, repaired: bool, dry_run: bool = False, prefix: Optional[str] = None) -> str:
    """Operator-facing one-line summary of a run."""
    if prefix is None:
        prefix = "DRY RUN: " if dry_run else ""
    verdict = "repaired" if repaired else "already up-to-date"
    return f'{prefix}release "{name}" {verdict}'
