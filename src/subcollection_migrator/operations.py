"""Write operations queued by the batch writer."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union


@dataclass(frozen=True)
class CreateChild:
    collection: str
    parent_id: str
    subcollection: str
    child_id: str
    data: Dict[str, Any] = field(default_factory=dict)
    parent_key: Any = None
    tag: Optional[str] = None
    target_key: Optional[str] = None

    @property
    def operation_id(self) -> str:
        return f"{self.collection}/{self.parent_id}/{self.subcollection}/{self.child_id}"


@dataclass(frozen=True)
class UpdateParent:
    collection: str
    parent_id: str
    fields: Dict[str, Any] = field(default_factory=dict)
    parent_key: Any = None
    tag: Optional[str] = None
    target_key: Optional[str] = None

    @property
    def operation_id(self) -> str:
        return f"{self.collection}/{self.parent_id}#update"


@dataclass(frozen=True)
class DeleteParentField:
    collection: str
    parent_id: str
    field: str
    parent_key: Any = None
    tag: Optional[str] = None
    target_key: Optional[str] = None

    @property
    def operation_id(self) -> str:
        return f"{self.collection}/{self.parent_id}#delete:{self.field}"


WriteOperation = Union[CreateChild, UpdateParent, DeleteParentField]


def store_key(op: WriteOperation) -> Any:
    """Key used to address the parent document in the store."""
    return op.parent_id if op.parent_key is None else op.parent_key
