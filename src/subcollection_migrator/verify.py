from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from subcollection_migrator.stores.base import DocumentStore, ParentRecord
from subcollection_migrator.targets import MigrationTarget


@dataclass(frozen=True)
class VerificationResult:
    safe_to_clean: bool
    reason: Optional[str] = None
    child_found: bool = False


class Verifier:
    """Decide whether an embedded field can be removed without losing data."""

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    async def verify(self, parent: ParentRecord, target: MigrationTarget) -> VerificationResult:
        elements = parent.data.get(target.field)
        if elements is not None and not isinstance(elements, list):
            return VerificationResult(
                safe_to_clean=False,
                reason=f"{target.label} {parent.id}: {target.field} is not an array",
            )

        if await self.store.has_children(target.collection, parent, target.subcollection):
            return VerificationResult(safe_to_clean=True, child_found=True)

        if not elements:
            return VerificationResult(safe_to_clean=True)

        return VerificationResult(
            safe_to_clean=False,
            reason=f"{target.label} {parent.id}: {target.field} has data but no subcollection",
        )
