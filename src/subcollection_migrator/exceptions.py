"""Custom exceptions for the subcollection migrator."""

from __future__ import annotations

from typing import List, Optional


class MigratorError(Exception):
    """Base exception for the subcollection migrator."""

    pass


class ConfigurationError(MigratorError):
    """Raised when configuration or store credentials are missing or invalid."""

    pass


class StoreError(MigratorError):
    """Raised when a document store call fails."""

    pass


class BatchCommitError(StoreError):
    """Raised when a batch of write operations cannot be committed."""

    def __init__(self, message: str, operation_ids: Optional[List[str]] = None) -> None:
        super().__init__(message)
        self.operation_ids = list(operation_ids or [])


class ManifestError(MigratorError):
    """Raised when the run manifest cannot be read or written."""

    pass
