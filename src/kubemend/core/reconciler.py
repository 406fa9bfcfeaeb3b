#!/usr/bin/env python3
"""
KUBEMEND RECONCILER - The Per-Object Surgeon
--------------------------------------------
Drives one ObjectDescriptor through:

    get ──> not found ──> create                (repaired)
      │
      ├──> other error ──> abort
      │
      └──> found ──> patch generator ──> empty ──> skip    (not repaired)
                                     └──> non-empty ──> patch + diff (repaired)

Every failure is wrapped with the object's name and re-raised; nothing is
retried.

Author: KubeMend Team
Date: 2026-01-16
"""

import logging
import sys
from typing import Callable, Optional, TextIO

from kubemend.core.errors import KubeMendError, ObjectNotFoundError, ReconcileError
from kubemend.core.models import ObjectAction, ObjectDescriptor, ObjectRef
from kubemend.patching.strategic import PatchGenerator, is_empty_patch
from kubemend.rendering.diff import DiffRenderer

logger = logging.getLogger("kubemend.engine")

DiffSink = Callable[[ObjectRef, str], None]


class Reconciler:

    def __init__(self, generator: PatchGenerator, renderer: Optional[DiffRenderer] = None,
                 dry_run: bool = False, out: Optional[TextIO] = None,
                 on_diff: Optional[DiffSink] = None):
        self.generator = generator
        self.renderer = renderer or DiffRenderer()
        self.dry_run = dry_run
        self.out = out
        self.on_diff = on_diff or self._print_diff

    def _print_diff(self, ref: ObjectRef, text: str):
        print(text, file=self.out or sys.stdout)

    def reconcile(self, target: ObjectDescriptor) -> ObjectAction:
        """Repairs a single object and reports what was done to it."""
        name = target.name
        try:
            current = target.client.get(target.namespace, name)
        except ObjectNotFoundError:
            return self._recreate(target)
        except KubeMendError as e:
            raise ReconcileError(f'unable to get release resource "{name}"', target.ref, e) from e

        try:
            patch = self.generator.generate(current, target.desired)
        except KubeMendError as e:
            raise ReconcileError(
                f'unable to generate strategic merge patch for release resource "{name}"', target.ref, e
            ) from e

        if is_empty_patch(patch):
            logger.info(f"{target.ref} is up-to-date")
            return ObjectAction.UNCHANGED

        try:
            repaired = target.client.patch(
                target.namespace, name, patch,
                dry_run=self.dry_run,
                patch_type=self.generator.patch_type(target.desired),
            )
        except KubeMendError as e:
            raise ReconcileError(f'unable to patch release resource "{name}"', target.ref, e) from e
        logger.info(f"{'Simulated patch of' if self.dry_run else 'Patched'} {target.ref}")

        try:
            self.on_diff(target.ref, self.renderer.render(current, repaired))
        except KubeMendError as e:
            raise ReconcileError(f'unable to print diff for resource "{name}"', target.ref, e) from e
        return ObjectAction.PATCHED

    def _recreate(self, target: ObjectDescriptor) -> ObjectAction:
        # Dry-run creation is simulated server-side like every other write
        try:
            target.client.create(target.namespace, target.desired, dry_run=self.dry_run)
        except KubeMendError as e:
            raise ReconcileError(
                f'unable to recreate release resource "{target.name}"', target.ref, e
            ) from e
        logger.info(f"{'Simulated re-create of' if self.dry_run else 'Re-created'} missing {target.ref}")
        return ObjectAction.CREATED
