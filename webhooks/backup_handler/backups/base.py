"""
Base protocol and errors for the backup record API.

The backup record API is the authoritative list of backups already
accepted for each environment. The handler only reads it and deletes
records from it; creating records is done by downstream consumers of
the events this service publishes.

Invariants:
    - query_environment_backups() reflects every delete issued before it
    - An unknown environment yields an empty list, not an error
    - Every failure surfaces as QueryError or DeleteError

How to change safely:
    - Protocol changes require updating all implementations
    - Keep failures typed so the dispatcher can fail closed
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from ..errors import BackupHandlerError
from ..models import AuthoritativeBackupRecord

if TYPE_CHECKING:
    from ..config import ServerConfig


class BackupApiError(BackupHandlerError):
    """Base exception for backup record API operations."""

    pass


class QueryError(BackupApiError):
    """Listing the backups of an environment failed."""

    def __init__(self, message: str, environment: str | None = None) -> None:
        super().__init__(message, details={"environment": environment})
        self.environment = environment


class DeleteError(BackupApiError):
    """Deleting a backup record failed."""

    def __init__(self, message: str, backup_id: str | None = None) -> None:
        super().__init__(message, details={"backup_id": backup_id})
        self.backup_id = backup_id


@runtime_checkable
class BackupRecordApi(Protocol):
    """Protocol for backup record API backends.

    Example:
        >>> api = LagoonBackupApi(config)
        >>> records = await api.query_environment_backups("project-main")
        >>> await api.delete_backup(records[0].backup_id)
    """

    @abstractmethod
    async def query_environment_backups(
        self, environment_name: str
    ) -> list[AuthoritativeBackupRecord]:
        """List the backups recorded for an environment.

        Args:
            environment_name: Environment (namespace) name

        Returns:
            Recorded backups, empty when the environment is unknown

        Raises:
            QueryError: If the API cannot be reached or returns an error
        """
        ...

    @abstractmethod
    async def delete_backup(self, backup_id: str) -> None:
        """Delete a backup record.

        Args:
            backup_id: Snapshot ID of the backup to delete

        Raises:
            DeleteError: If the API cannot be reached or rejects the delete
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release connections held by the client."""
        ...


def create_backup_api(config: "ServerConfig") -> BackupRecordApi:
    """Factory function to create a backup record API client from configuration.

    Args:
        config: Server configuration

    Returns:
        Appropriate BackupRecordApi implementation

    Raises:
        ValueError: If backend is not supported
    """
    from ..config import BackupApiBackend
    from .lagoon import LagoonBackupApi
    from .memory import InMemoryBackupApi

    if config.backup_api_backend == BackupApiBackend.LAGOON:
        return LagoonBackupApi(config.backup_api)
    elif config.backup_api_backend == BackupApiBackend.MEMORY:
        return InMemoryBackupApi()
    else:
        raise ValueError(f"Unsupported backup API backend: {config.backup_api_backend}")
