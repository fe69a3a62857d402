"""MongoDB backend using motor.

MongoDB has no native subcollections: children of ``litters`` under
``puppies`` live in the ``litters.puppies`` collection, keyed by child id and
carrying ``parentId``.
"""

from __future__ import annotations

from typing import Any, AsyncIterator, Dict, List

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ReplaceOne, UpdateOne
from pymongo.errors import PyMongoError

from subcollection_migrator.exceptions import StoreError
from subcollection_migrator.operations import (
    CreateChild,
    DeleteParentField,
    UpdateParent,
    WriteOperation,
    store_key,
)
from subcollection_migrator.stores.base import DocumentStore, ParentRecord


def get_motor_client(mongodb_uri: str) -> AsyncIOMotorClient:
    return AsyncIOMotorClient(mongodb_uri)


def child_collection_name(collection: str, subcollection: str) -> str:
    return f"{collection}.{subcollection}"
    return value


class MongoStore(DocumentStore):
    def __init__(self, client: AsyncIOMotorClient, database: str, use_transactions: bool = False) -> None:
        self.client = client
        self.db = client[database]
        self.use_transactions = use_transactions

    async def stream_parents(self, collection: str) -> AsyncIterator[ParentRecord]:
        try:
            async for doc in self.db[collection].find({}):
                key = doc.pop("_id")
                yield ParentRecord(id=str(key), data=doc, key=key)
        except PyMongoError as e:
            raise StoreError(f"Failed to read collection {collection}: {e}") from e

    async def has_children(self, collection: str, parent: ParentRecord, subcollection: str) -> bool:
        coll = self.db[child_collection_name(collection, subcollection)]
        try:
            doc = await coll.find_one({"parentId": parent.id}, projection=["_id"])
        except PyMongoError as e:
            raise StoreError(f"Failed to read {coll.name} for {parent.id}: {e}") from e
        return doc is not None

    async def count_children(self, collection: str, parent: ParentRecord, subcollection: str) -> int:
        coll = self.db[child_collection_name(collection, subcollection)]
        try:
            return await coll.count_documents({"parentId": parent.id})
        except PyMongoError as e:
            raise StoreError(f"Failed to count {coll.name} for {parent.id}: {e}") from e

    def _group_requests(self, operations: List[WriteOperation]) -> Dict[str, List[Any]]:
        requests: Dict[str, List[Any]] = {}
        for op in operations:
            if isinstance(op, CreateChild):
                name = child_collection_name(op.collection, op.subcollection)
                requests.setdefault(name, []).append(
                    ReplaceOne({"_id": op.child_id}, {**op.data, "_id": op.child_id}, upsert=True)
                )
            elif isinstance(op, UpdateParent):
                requests.setdefault(op.collection, []).append(
                    UpdateOne({"_id": store_key(op)}, {"$set": op.fields})
                )
            elif isinstance(op, DeleteParentField):
                requests.setdefault(op.collection, []).append(
                    UpdateOne({"_id": store_key(op)}, {"$unset": {op.field: ""}})
                )
        return requests

    async def _bulk_write(self, requests: Dict[str, List[Any]], session=None) -> None:
        for name, ops in requests.items():
            result = await self.db[name].bulk_write(ops, ordered=True, session=session)
            # Every parent update must hit an existing document.
            expected = sum(1 for op in ops if isinstance(op, UpdateOne))
            if result.matched_count < expected:
                raise StoreError(
                    f"Batch commit matched {result.matched_count} of {expected} documents in {name}"
                )

    async def commit(self, operations: List[WriteOperation]) -> None:
        requests = self._group_requests(operations)
        try:
            if self.use_transactions:
                async with await self.client.start_session() as session:
                    async with session.start_transaction():
                        await self._bulk_write(requests, session=session)
            else:
                await self._bulk_write(requests)
        except PyMongoError as e:
            raise StoreError(f"Batch commit failed: {e}") from e

    async def close(self) -> None:
        self.client.close()
