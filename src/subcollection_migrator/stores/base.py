from __future__ import annotations

import abc
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List

from subcollection_migrator.operations import WriteOperation


@dataclass
class ParentRecord:
    id: str
    data: Dict[str, Any] = field(default_factory=dict)
    key: Any = None

    @property
    def display_name(self) -> str:
        return str(self.data.get("name") or self.data.get("litterName") or "Unnamed")


class DocumentStore(abc.ABC):
    """Minimal contract the pipeline needs from a document database.

    Collections hold parent records; children are addressed by
    ``(collection, parent id, subcollection)``. ``commit`` applies one batch
    atomically and raises ``StoreError`` when it cannot.
    """

    @abc.abstractmethod
    def stream_parents(self, collection: str) -> AsyncIterator[ParentRecord]:
        ...

    @abc.abstractmethod
    async def has_children(self, collection: str, parent: ParentRecord, subcollection: str) -> bool:
        ...

    @abc.abstractmethod
    async def count_children(self, collection: str, parent: ParentRecord, subcollection: str) -> int:
        ...

    @abc.abstractmethod
    async def commit(self, operations: List[WriteOperation]) -> None:
        ...

    async def close(self) -> None:
        return None
