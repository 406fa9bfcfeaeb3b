#!/usr/bin/env python3
"""
KUBEMEND ERRORS - The Incident Ledger
-------------------------------------
Every failure a repair run can surface. Nothing in KubeMend retries or
swallows these; they travel up to the CLI, which reports them and exits
non-zero.

Author: KubeMend Team
Date: 2026-01-16
"""

from typing import Any, List, Optional


class KubeMendError(Exception):
    """Root of all KubeMend failures."""


class ConfigError(KubeMendError):
    """Invalid runtime configuration (unknown driver, unreadable catalog)."""


class NotFoundError(KubeMendError):
    """A requested release or live object does not exist."""


class ReleaseNotFoundError(NotFoundError):
    """No release record is stored under the requested name."""

    def __init__(self, name: str):
        super().__init__(f'release: "{name}" not found')
        self.name = name


class ObjectNotFoundError(NotFoundError):
    """The live object is absent from the cluster. Triggers a re-create."""


class BuildError(KubeMendError):
    """The release manifest could not be turned into object descriptors."""


class SerializationError(KubeMendError):
    """An object could not be rendered to its canonical document form."""


class SchemaError(KubeMendError):
    """Merge metadata for an object type could not be resolved."""


class ClientError(KubeMendError):
    """A get/create/patch call failed for a reason other than not-found."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class ReconcileError(KubeMendError):
    """
    Wraps the failure of a single object so the caller can tell which
    manifest entry aborted the run.
    """

    def __init__(self, message: str, ref: Any, cause: BaseException):
        super().__init__(f"{message}: {cause}")
        self.ref = ref
        self.cause = cause


class RepairIncompleteError(KubeMendError):
    """
    Raised at the end of a continue-on-error run when one or more objects
    failed. Carries the partial outcome for the objects that did succeed.
    """

    def __init__(self, failures: List[ReconcileError], outcome: Any):
        names = ", ".join(f'"{f.ref.name}"' for f in failures)
        super().__init__(f"{len(failures)} release resource(s) failed to repair: {names}")
        self.failures = failures
        self.outcome = outcome
