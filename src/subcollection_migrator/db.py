from __future__ import annotations

from subcollection_migrator.config import RuntimeConfig
from subcollection_migrator.stores.base import DocumentStore


def get_store(config: RuntimeConfig) -> DocumentStore:
    """Build the configured store. Raises ConfigurationError on bad credentials."""
    if config.backend == "mongodb":
        from subcollection_migrator.stores.mongodb import MongoStore, get_motor_client

        return MongoStore(
            get_motor_client(config.mongodb_uri),
            config.default_db,
            use_transactions=config.mongodb_transactions,
        )

    from subcollection_migrator.stores.firestore import FirestoreStore, get_firestore_client

    return FirestoreStore(get_firestore_client(config.credentials_path))
