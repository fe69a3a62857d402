"""Firestore backend built on ``google-cloud-firestore``'s async client."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List

from google.api_core import exceptions as gcp_exceptions
from google.cloud import firestore
from google.oauth2 import service_account

from subcollection_migrator.exceptions import ConfigurationError, StoreError
from subcollection_migrator.operations import CreateChild, DeleteParentField, UpdateParent, WriteOperation
from subcollection_migrator.stores.base import DocumentStore, ParentRecord


def load_service_account(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ConfigurationError(
            f"Service account key not found at: {path}. "
            "Set SUBMIGRATE_CREDENTIALS_PATH (or FIREBASE_ADMIN_KEY_PATH) or create the file."
        )
    try:
        info = json.loads(path.read_text())
    except (OSError, ValueError) as e:
        raise ConfigurationError(f"Could not parse service account key {path}: {e}") from e
    if not isinstance(info, dict) or not info.get("project_id"):
        raise ConfigurationError(f"Service account key {path} has no project_id")
    return info


def get_firestore_client(credentials_path: Path) -> firestore.AsyncClient:
    info = load_service_account(credentials_path)
    try:
        credentials = service_account.Credentials.from_service_account_info(info)
    except ValueError as e:
        raise ConfigurationError(f"Invalid service account key {credentials_path}: {e}") from e
    return firestore.AsyncClient(project=info["project_id"], credentials=credentials)


class FirestoreStore(DocumentStore):
    def __init__(self, client: firestore.AsyncClient) -> None:
        self.client = client

    def _children_ref(self, collection: str, parent_id: str, subcollection: str):
        return self.client.collection(collection).document(parent_id).collection(subcollection)

    async def stream_parents(self, collection: str) -> AsyncIterator[ParentRecord]:
        try:
            async for snapshot in self.client.collection(collection).stream():
                yield ParentRecord(id=snapshot.id, data=snapshot.to_dict() or {})
        except gcp_exceptions.GoogleAPICallError as e:
            raise StoreError(f"Failed to read collection {collection}: {e}") from e

    async def has_children(self, collection: str, parent: ParentRecord, subcollection: str) -> bool:
        try:
            docs = await self._children_ref(collection, parent.id, subcollection).limit(1).get()
        except gcp_exceptions.GoogleAPICallError as e:
            raise StoreError(f"Failed to read {collection}/{parent.id}/{subcollection}: {e}") from e
        return len(docs) > 0

    async def count_children(self, collection: str, parent: ParentRecord, subcollection: str) -> int:
        query = self._children_ref(collection, parent.id, subcollection).count()
        try:
            results = await query.get()
        except gcp_exceptions.GoogleAPICallError as e:
            raise StoreError(f"Failed to count {collection}/{parent.id}/{subcollection}: {e}") from e
        return int(results[0][0].value) if results else 0

    async def commit(self, operations: List[WriteOperation]) -> None:
        batch = self.client.batch()
        for op in operations:
            if isinstance(op, CreateChild):
                ref = self._children_ref(op.collection, op.parent_id, op.subcollection).document(op.child_id)
                batch.set(ref, op.data)
            elif isinstance(op, UpdateParent):
                batch.update(self.client.collection(op.collection).document(op.parent_id), op.fields)
            elif isinstance(op, DeleteParentField):
                batch.update(
                    self.client.collection(op.collection).document(op.parent_id),
                    {op.field: firestore.DELETE_FIELD},
                )
        try:
            await batch.commit()
        except gcp_exceptions.GoogleAPICallError as e:
            raise StoreError(f"Batch commit failed: {e}") from e
