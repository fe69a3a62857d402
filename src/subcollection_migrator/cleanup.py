from __future__ import annotations

import logging
from typing import List, Optional

from subcollection_migrator.batch import BatchWriter
from subcollection_migrator.exceptions import StoreError
from subcollection_migrator.manifest import RunManifest
from subcollection_migrator.operations import DeleteParentField
from subcollection_migrator.report import RunReport
from subcollection_migrator.stores.base import ParentRecord
from subcollection_migrator.targets import MigrationTarget
from subcollection_migrator.verify import Verifier

logger = logging.getLogger(__name__)


class CleanupExecutor:
    """Remove embedded fields that the verifier has cleared in this run.

    With a run manifest, targets that were never migrated and parents whose
    last migration did not fully commit are refused. ``manifest=None``
    leaves the decision to the verifier alone.
    """

    def __init__(
        self,
        verifier: Verifier,
        writer: BatchWriter,
        report: RunReport,
        manifest: Optional[RunManifest] = None,
    ) -> None:
        self.verifier = verifier
        self.writer = writer
        self.report = report
        self.manifest = manifest

    def permitted_targets(self, targets: List[MigrationTarget]) -> List[MigrationTarget]:
        if self.manifest is None:
            return list(targets)

        permitted = []
        for target in targets:
            if self.manifest.is_migrated(target):
                permitted.append(target)
            else:
                self.report.add_warning(
                    f"{target.key}: no executed migration recorded in the run manifest, cleanup refused"
                )
        return permitted

    async def clean(self, parent: ParentRecord, target: MigrationTarget) -> bool:
        """Queue removal of ``target.field`` from ``parent`` if verification allows it."""
        if target.field not in parent.data:
            return False

        if self.manifest is not None and self.manifest.parent_failed(target, parent.id):
            self.report.add_warning(
                f"{target.label} {parent.id}: last migration of {target.field} did not complete, cleanup refused"
            )
            return False

        try:
            result = await self.verifier.verify(parent, target)
        except StoreError as e:
            self.report.add_error(f"{target.label} {parent.id}: could not verify {target.field}: {e}")
            return False

        if not result.safe_to_clean:
            self.report.add_warning(result.reason or f"{target.label} {parent.id}: {target.field} not verified")
            return False

        elements = parent.data.get(target.field) or []
        logger.info(f"  - Removing {target.field} ({len(elements)} items)")
        await self.writer.add(
            DeleteParentField(
                collection=target.collection,
                parent_id=parent.id,
                field=target.field,
                parent_key=parent.key,
                tag=f"{target.field}Removed",
                target_key=target.key,
            )
        )
        return True
