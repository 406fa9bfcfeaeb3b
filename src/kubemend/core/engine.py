#!/usr/bin/env python3
"""
KUBEMEND ENGINE - The Repair Orchestrator
-----------------------------------------
RepairAction is the public entry point of a repair run:

    1. Load the named release record from the release store.
    2. Build the manifest into ordered ObjectDescriptors.
    3. Reconcile each descriptor in manifest order.
    4. Report the release and whether anything was repaired.

The run is fail-fast: the first object that errors aborts it and later
objects are never attempted. ``continue_on_error`` switches to attempting
every object and raising one aggregate error at the end.

Author: KubeMend Team
Date: 2026-01-16
"""

import logging
from typing import List, Optional, TextIO

from kubemend.cluster.base import ManifestBuilder
from kubemend.core.errors import BuildError, ReconcileError, RepairIncompleteError
from kubemend.core.models import ObjectAction, RepairOutcome
from kubemend.core.reconciler import DiffSink, Reconciler
from kubemend.patching.catalog import MergeStrategyCatalog
from kubemend.patching.strategic import PatchGenerator
from kubemend.rendering.diff import DiffRenderer
from kubemend.storage.base import ReleaseStore

logger = logging.getLogger("kubemend.engine")


class RepairAction:
    """
    Repairs a release's deployed resources so they match the release
    manifest again.
    """

    def __init__(self, store: ReleaseStore, builder: ManifestBuilder,
                 catalog: Optional[MergeStrategyCatalog] = None,
                 dry_run: bool = False, continue_on_error: bool = False,
                 out: Optional[TextIO] = None, on_diff: Optional[DiffSink] = None):
        self.store = store
        self.builder = builder
        self.catalog = catalog or MergeStrategyCatalog.load()
        self.dry_run = dry_run
        self.continue_on_error = continue_on_error
        self.reconciler = Reconciler(
            PatchGenerator(self.catalog),
            DiffRenderer(),
            dry_run=dry_run,
            out=out,
            on_diff=on_diff,
        )

    def run(self, name: str) -> RepairOutcome:
        release = self.store.get(name)

        try:
            targets = self.builder.build(release.manifest, release.namespace)
        except BuildError as e:
            raise BuildError(f"unable to build kubernetes objects from release manifest: {e}") from e

        logger.info(f"Repairing release {name} (revision {release.revision}, {len(targets)} objects)")
        outcome = RepairOutcome(release=release, dry_run=self.dry_run)
        failures: List[ReconcileError] = []

        for target in targets:
            try:
                action = self.reconciler.reconcile(target)
            except ReconcileError as e:
                logger.error(f"Repair of {target.ref} failed: {e.cause}")
                if not self.continue_on_error:
                    raise
                failures.append(e)
                continue
            outcome.record(target.ref, action)

        if failures:
            raise RepairIncompleteError(failures, outcome)

        logger.info(
            f"Release {name}: {outcome.count(ObjectAction.CREATED)} created, "
            f"{outcome.count(ObjectAction.PATCHED)} patched, "
            f"{outcome.count(ObjectAction.UNCHANGED)} unchanged"
        )
        return outcome


def repair(store: ReleaseStore, builder: ManifestBuilder, name: str, dry_run: bool = False,
           catalog: Optional[MergeStrategyCatalog] = None, out: Optional[TextIO] = None) -> RepairOutcome:
    """One-shot helper: ``release, repaired = repair(store, builder, "web")``."""
    return RepairAction(store, builder, catalog=catalog, dry_run=dry_run, out=out).run(name)
