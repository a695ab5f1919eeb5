"""
Backup record API clients.

This module provides a pluggable interface to the authoritative list of
recorded backups:
- Lagoon GraphQL API (production)
- In-memory (for testing)

The handler reads this list to decide which snapshots are new and deletes
records for snapshots that were pruned upstream.
"""

from .base import (
    BackupApiError,
    BackupRecordApi,
    DeleteError,
    QueryError,
    create_backup_api,
)
from .lagoon import LagoonBackupApi
from .memory import InMemoryBackupApi

__all__ = [
    # Protocol and errors
    "BackupRecordApi",
    "BackupApiError",
    "QueryError",
    "DeleteError",
    # Factory
    "create_backup_api",
    # Implementations
    "LagoonBackupApi",
    "InMemoryBackupApi",
]
