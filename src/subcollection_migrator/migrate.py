"""Promote embedded-array elements into child documents."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from subcollection_migrator.aggregates import check_consistency, compute_aggregates
from subcollection_migrator.batch import BatchWriter
from subcollection_migrator.operations import CreateChild, UpdateParent
from subcollection_migrator.report import RunReport
from subcollection_migrator.stores.base import ParentRecord
from subcollection_migrator.targets import MigrationTarget

logger = logging.getLogger(__name__)

CHILD_ID_NAMESPACE = uuid.UUID("6b0f7c52-3a0e-4d55-9a57-6c1f7d1e2a40")


def child_id_for(target: MigrationTarget, parent_id: str, index: int) -> str:
    """Stable id for the child built from ``parent.field[index]``.

    Re-running an interrupted migration overwrites the same child documents
    instead of creating duplicates.
    """
    name = f"{target.collection}/{parent_id}/{target.field}/{index}"
    return uuid.uuid5(CHILD_ID_NAMESPACE, name).hex


def build_child(
    element: Mapping[str, Any],
    parent: ParentRecord,
    target: MigrationTarget,
    now: datetime,
) -> Dict[str, Any]:
    child = dict(element)
    for name in target.copy_parent_fields:
        if name in parent.data:
            child[name] = parent.data[name]
    if target.parent_id_alias:
        child[target.parent_id_alias] = parent.id
    child["parentId"] = parent.id
    for name in target.timestamp_fields:
        if not child.get(name):
            child[name] = now
    return child


class FieldMigrator:
    def __init__(self, writer: BatchWriter, report: RunReport, now: Optional[datetime] = None) -> None:
        self.writer = writer
        self.report = report
        self.now = now or report.started_at

    async def migrate(self, parent: ParentRecord, target: MigrationTarget) -> int:
        """Queue child writes (and an aggregate update) for one parent field.

        Returns the number of children submitted. The embedded field itself is
        left in place.
        """
        elements = parent.data.get(target.field)

        if elements is None or elements == []:
            logger.debug(f"  - {target.field}: nothing to migrate")
            if target.aggregates and target.write_empty_aggregates:
                await self._write_aggregates(parent, target, [])
            return 0

        if not isinstance(elements, list):
            self.report.add_error(
                f"{target.label} {parent.id}: {target.field} is not an array ({type(elements).__name__})"
            )
            self.report.mark_failed(target.key, parent.id)
            return 0

        logger.info(f"  - Migrating {len(elements)} {target.field}")
        children: List[Dict[str, Any]] = []
        for index, element in enumerate(elements):
            if not isinstance(element, Mapping):
                self.report.add_error(
                    f"{target.label} {parent.id}: {target.field}[{index}] is not a record "
                    f"({type(element).__name__}), skipped"
                )
                self.report.mark_failed(target.key, parent.id)
                continue

            child = build_child(element, parent, target, self.now)
            children.append(child)
            await self.writer.add(
                CreateChild(
                    collection=target.collection,
                    parent_id=parent.id,
                    subcollection=target.subcollection,
                    child_id=child_id_for(target, parent.id, index),
                    data=child,
                    parent_key=parent.key,
                    tag=target.stat_name,
                    target_key=target.key,
                )
            )

        if target.aggregates:
            await self._write_aggregates(parent, target, children)
        return len(children)

    async def _write_aggregates(
        self,
        parent: ParentRecord,
        target: MigrationTarget,
        children: List[Dict[str, Any]],
    ) -> None:
        counts = compute_aggregates(children, target.aggregates)
        inconsistent = check_consistency(counts, target.aggregates)
        if inconsistent:
            self.report.add_error(
                f"{target.label} {parent.id}: aggregate tallies {', '.join(inconsistent)} "
                f"do not sum to {target.aggregates.total_field}"
            )
            return

        await self.writer.add(
            UpdateParent(
                collection=target.collection,
                parent_id=parent.id,
                fields=counts,
                parent_key=parent.key,
                target_key=target.key,
            )
        )
        summary = ", ".join(f"{name}={value}" for name, value in counts.items())
        logger.info(f"  - Updated counts: {summary}")
