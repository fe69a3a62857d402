"""In-process document store with a commit log, used for tests and previews."""

from __future__ import annotations

import copy
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional, Set, Tuple

from subcollection_migrator.exceptions import StoreError
from subcollection_migrator.operations import CreateChild, DeleteParentField, UpdateParent, WriteOperation
from subcollection_migrator.stores.base import DocumentStore, ParentRecord

ChildKey = Tuple[str, str, str]


class MemoryStore(DocumentStore):
    def __init__(
        self,
        collections: Optional[Dict[str, Dict[str, Dict[str, Any]]]] = None,
        fail_operation_ids: Optional[Iterable[str]] = None,
        transient_failures: int = 0,
    ) -> None:
        self.collections: Dict[str, Dict[str, Dict[str, Any]]] = copy.deepcopy(collections or {})
        self.children: Dict[ChildKey, Dict[str, Dict[str, Any]]] = {}
        self.fail_operation_ids: Set[str] = set(fail_operation_ids or [])
        self.transient_failures = transient_failures
        self.commit_attempts = 0
        self.commits: List[List[str]] = []

    def add_child(self, collection: str, parent_id: str, subcollection: str, child_id: str, data: Dict[str, Any]) -> None:
        self.children.setdefault((collection, parent_id, subcollection), {})[child_id] = copy.deepcopy(data)

    def get_children(self, collection: str, parent_id: str, subcollection: str) -> Dict[str, Dict[str, Any]]:
        return self.children.get((collection, parent_id, subcollection), {})

    def get_parent(self, collection: str, parent_id: str) -> Dict[str, Any]:
        return self.collections[collection][parent_id]

    def snapshot(self) -> Tuple[Dict[str, Any], Dict[ChildKey, Any]]:
        return copy.deepcopy(self.collections), copy.deepcopy(self.children)

    async def stream_parents(self, collection: str) -> AsyncIterator[ParentRecord]:
        for parent_id, data in list(self.collections.get(collection, {}).items()):
            yield ParentRecord(id=parent_id, data=copy.deepcopy(data))

    async def has_children(self, collection: str, parent: ParentRecord, subcollection: str) -> bool:
        return bool(self.get_children(collection, parent.id, subcollection))

    async def count_children(self, collection: str, parent: ParentRecord, subcollection: str) -> int:
        return len(self.get_children(collection, parent.id, subcollection))

    async def commit(self, operations: List[WriteOperation]) -> None:
        self.commit_attempts += 1
        op_ids = [op.operation_id for op in operations]
        if self.transient_failures > 0:
            self.transient_failures -= 1
            raise StoreError("Simulated transient commit failure")
        if self.fail_operation_ids.intersection(op_ids):
            raise StoreError("Simulated commit failure")

        # Validate the whole batch before touching state so a commit is all-or-nothing.
        for op in operations:
            if isinstance(op, (UpdateParent, DeleteParentField)):
                if op.parent_id not in self.collections.get(op.collection, {}):
                    raise StoreError(f"No document to update: {op.collection}/{op.parent_id}")

        for op in operations:
            if isinstance(op, CreateChild):
                self.add_child(op.collection, op.parent_id, op.subcollection, op.child_id, op.data)
            elif isinstance(op, UpdateParent):
                self.collections[op.collection][op.parent_id].update(copy.deepcopy(op.fields))
            elif isinstance(op, DeleteParentField):
                self.collections[op.collection][op.parent_id].pop(op.field, None)
        self.commits.append(op_ids)
