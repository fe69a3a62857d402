"""Per-run statistics, issues and the dry-run/execute mode switch."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_ISSUES = 2


class RunMode(str, enum.Enum):
    DRY_RUN = "dry-run"
    EXECUTE = "execute"


@dataclass
class RunIssue:
    level: str
    message: str
    operation_ids: List[str] = field(default_factory=list)


@dataclass
class RunReport:
    """Counters and issues for one run.

    The report owns the mode. Components receive the report at construction
    and read ``dry_run`` whenever they are about to write.
    """

    mode: RunMode = RunMode.DRY_RUN
    phase: str = "migrate"
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    parents_scanned: int = 0
    children_created: int = 0
    aggregates_updated: int = 0
    fields_removed: int = 0
    operations_committed: int = 0
    operations_would_apply: int = 0
    operations_failed: int = 0
    batches_committed: int = 0
    batches_failed: int = 0
    items: Dict[str, int] = field(default_factory=dict)
    issues: List[RunIssue] = field(default_factory=list)
    mutated_parents: Set[str] = field(default_factory=set)
    failed_parents: Dict[str, Set[str]] = field(default_factory=dict)

    @property
    def dry_run(self) -> bool:
        return self.mode is RunMode.DRY_RUN

    @property
    def parents_mutated(self) -> int:
        return len(self.mutated_parents)

    @property
    def errors(self) -> List[RunIssue]:
        return [i for i in self.issues if i.level == "error"]

    @property
    def warnings(self) -> List[RunIssue]:
        return [i for i in self.issues if i.level == "warning"]

    @property
    def exit_code(self) -> int:
        # A dry run never fails on its own findings.
        if self.issues and not self.dry_run:
            return EXIT_ISSUES
        return EXIT_OK

    def count_item(self, name: str, amount: int = 1) -> None:
        self.items[name] = self.items.get(name, 0) + amount

    def mark_failed(self, target_key: str, parent_id: str) -> None:
        """Record that ``parent_id`` was not fully migrated for ``target_key``."""
        self.failed_parents.setdefault(target_key, set()).add(parent_id)

    def add_error(self, message: str, operation_ids: Optional[List[str]] = None) -> None:
        logger.error(message)
        self.issues.append(RunIssue("error", message, list(operation_ids or [])))

    def add_warning(self, message: str) -> None:
        logger.warning(message)
        self.issues.append(RunIssue("warning", message))

    def summary(self) -> Dict[str, Any]:
        return {
            "phase": self.phase,
            "mode": self.mode.value,
            "parents_scanned": self.parents_scanned,
            "parents_mutated": self.parents_mutated,
            "children_created": self.children_created,
            "aggregates_updated": self.aggregates_updated,
            "fields_removed": self.fields_removed,
            "operations_committed": self.operations_committed,
            "operations_would_apply": self.operations_would_apply,
            "operations_failed": self.operations_failed,
            "items": dict(self.items),
            "failed_parents": {key: sorted(ids) for key, ids in self.failed_parents.items()},
            "errors": len(self.errors),
            "warnings": len(self.warnings),
        }
