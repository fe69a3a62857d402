"""Bounded batch writer.

Write operations are queued and committed in chunks of at most
``max_batch_size`` (Firestore's atomic-commit ceiling is 500). Each chunk is
atomic on its own; there is no transaction across chunks. A chunk that still
fails after the retry policy gives up is recorded in the run report with the
ids of its operations, and the writer moves on.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from subcollection_migrator.config import MAX_BATCH_SIZE
from subcollection_migrator.exceptions import BatchCommitError, StoreError
from subcollection_migrator.operations import CreateChild, DeleteParentField, UpdateParent, WriteOperation
from subcollection_migrator.report import RunReport
from subcollection_migrator.stores.base import DocumentStore

logger = logging.getLogger(__name__)


@dataclass
class RetryPolicy:
    attempts: int = 3
    wait_seconds: float = 0.5
    max_wait_seconds: float = 8.0

    def retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.attempts),
            wait=wait_exponential(multiplier=self.wait_seconds, max=self.max_wait_seconds),
            retry=retry_if_exception_type(StoreError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )


@dataclass
class BatchResult:
    committed: bool
    operation_ids: List[str] = field(default_factory=list)
    error: Optional[str] = None


class BatchWriter:
    def __init__(
        self,
        store: DocumentStore,
        report: RunReport,
        max_batch_size: int = MAX_BATCH_SIZE,
        retry: Optional[RetryPolicy] = None,
    ) -> None:
        if not 1 <= max_batch_size <= MAX_BATCH_SIZE:
            raise ValueError(f"max_batch_size must be between 1 and {MAX_BATCH_SIZE}, got {max_batch_size}")
        self.store = store
        self.report = report
        self.max_batch_size = max_batch_size
        self.retry = retry or RetryPolicy()
        self.pending: List[WriteOperation] = []
        self.results: List[BatchResult] = []

    async def add(self, op: WriteOperation) -> List[BatchResult]:
        """Queue one operation, committing when the batch is full."""
        if self.report.dry_run:
            self._account(op, would_apply=True)
            return []

        self.pending.append(op)
        if len(self.pending) >= self.max_batch_size:
            return [await self._commit()]
        return []

    async def flush(self) -> List[BatchResult]:
        if not self.pending:
            return []
        return [await self._commit()]

    async def _commit(self) -> BatchResult:
        batch, self.pending = self.pending, []
        operation_ids = [op.operation_id for op in batch]
        try:
            async for attempt in self.retry.retrying():
                with attempt:
                    await self.store.commit(batch)
        except StoreError as e:
            error = BatchCommitError(str(e), operation_ids)
            parents = sorted({f"{op.collection}/{op.parent_id}" for op in batch})
            self.report.add_error(
                f"Batch of {len(batch)} operations failed to commit (parents: {', '.join(parents)}): {error}",
                operation_ids=error.operation_ids,
            )
            for op in batch:
                if op.target_key:
                    self.report.mark_failed(op.target_key, op.parent_id)
            self.report.batches_failed += 1
            self.report.operations_failed += len(batch)
            result = BatchResult(committed=False, operation_ids=operation_ids, error=str(error))
            self.results.append(result)
            return result

        logger.debug(f"Committed batch of {len(batch)} operations")
        for op in batch:
            self._account(op, would_apply=False)
        self.report.batches_committed += 1
        result = BatchResult(committed=True, operation_ids=operation_ids)
        self.results.append(result)
        return result

    def _account(self, op: WriteOperation, would_apply: bool) -> None:
        if would_apply:
            self.report.operations_would_apply += 1
        else:
            self.report.operations_committed += 1

        if isinstance(op, CreateChild):
            self.report.children_created += 1
        elif isinstance(op, UpdateParent):
            self.report.aggregates_updated += 1
        elif isinstance(op, DeleteParentField):
            self.report.fields_removed += 1
        if op.tag:
            self.report.count_item(op.tag)
        self.report.mutated_parents.add(f"{op.collection}/{op.parent_id}")
