from subcollection_migrator.stores.base import DocumentStore, ParentRecord

__all__ = ["DocumentStore", "ParentRecord"]
