"""Full-scan enumeration of parent collections and the run drivers built on it."""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

from subcollection_migrator.batch import BatchWriter, RetryPolicy
from subcollection_migrator.cleanup import CleanupExecutor
from subcollection_migrator.config import MAX_BATCH_SIZE
from subcollection_migrator.exceptions import StoreError
from subcollection_migrator.manifest import RunManifest
from subcollection_migrator.migrate import FieldMigrator
from subcollection_migrator.report import RunReport
from subcollection_migrator.stores.base import DocumentStore, ParentRecord
from subcollection_migrator.targets import MigrationTarget, group_by_collection
from subcollection_migrator.verify import Verifier

logger = logging.getLogger(__name__)


class SourceEnumerator:
    """Stream every parent of every configured collection, one at a time.

    Each iteration is a fresh pass; no cursor is kept between runs. A
    collection that cannot be read is reported and the scan moves on to the
    next one.
    """

    def __init__(self, store: DocumentStore, targets: List[MigrationTarget], report: RunReport) -> None:
        self.store = store
        self.targets = list(targets)
        self.report = report

    async def __aiter__(self) -> AsyncIterator[Tuple[ParentRecord, List[MigrationTarget]]]:
        for collection, targets in group_by_collection(self.targets).items():
            logger.info(f"Scanning {collection} for {', '.join(t.field for t in targets)}")
            try:
                async for parent in self.store.stream_parents(collection):
                    self.report.parents_scanned += 1
                    logger.info(f"Processing {targets[0].label.lower()}: {parent.id} ({parent.display_name})")
                    yield parent, targets
            except StoreError as e:
                self.report.add_error(f"Scan of {collection} aborted: {e}")


async def run_migration(
    store: DocumentStore,
    targets: List[MigrationTarget],
    report: RunReport,
    max_batch_size: int = MAX_BATCH_SIZE,
    retry: Optional[RetryPolicy] = None,
) -> RunReport:
    writer = BatchWriter(store, report, max_batch_size=max_batch_size, retry=retry)
    migrator = FieldMigrator(writer, report)

    async for parent, parent_targets in SourceEnumerator(store, targets, report):
        for target in parent_targets:
            await migrator.migrate(parent, target)
        await writer.flush()

    return report


async def run_cleanup(
    store: DocumentStore,
    targets: List[MigrationTarget],
    report: RunReport,
    manifest: Optional[RunManifest] = None,
    max_batch_size: int = MAX_BATCH_SIZE,
    retry: Optional[RetryPolicy] = None,
) -> RunReport:
    writer = BatchWriter(store, report, max_batch_size=max_batch_size, retry=retry)
    executor = CleanupExecutor(Verifier(store), writer, report, manifest=manifest)

    permitted = executor.permitted_targets(targets)
    if not permitted:
        return report

    async for parent, parent_targets in SourceEnumerator(store, permitted, report):
        for target in parent_targets:
            await executor.clean(parent, target)
        await writer.flush()

    return report


async def run_verification(
    store: DocumentStore,
    targets: List[MigrationTarget],
    report: RunReport,
) -> Dict[str, Dict[str, Any]]:
    """Verify every (parent, target) pair without writing anything.

    Parents with children also have them counted; fewer children than
    embedded elements is reported as a warning.
    """
    verifier = Verifier(store)
    results: Dict[str, Dict[str, Any]] = {
        t.key: {
            "subcollection": t.subcollection,
            "safe": 0,
            "unsafe": 0,
            "absent": 0,
            "with_children": 0,
            "children": 0,
        }
        for t in targets
    }

    async for parent, parent_targets in SourceEnumerator(store, targets, report):
        for target in parent_targets:
            row = results[target.key]
            if target.field not in parent.data:
                row["absent"] += 1
                continue
            try:
                result = await verifier.verify(parent, target)
            except StoreError as e:
                report.add_error(f"{target.label} {parent.id}: could not verify {target.field}: {e}")
                continue
            if result.safe_to_clean:
                row["safe"] += 1
            else:
                row["unsafe"] += 1
                report.add_warning(result.reason or f"{target.label} {parent.id}: {target.field} not verified")
            if not result.child_found:
                continue

            row["with_children"] += 1
            try:
                count = await store.count_children(target.collection, parent, target.subcollection)
            except StoreError as e:
                report.add_error(f"{target.label} {parent.id}: could not count {target.subcollection}: {e}")
                continue
            row["children"] += count
            elements = parent.data.get(target.field) or []
            if count < len(elements):
                report.add_warning(
                    f"{target.label} {parent.id}: {target.field} has {len(elements)} elements "
                    f"but {target.subcollection} holds {count}"
                )

    return results
