"""
Error types shared across the Backup Handler.

Component-specific errors live next to their component and inherit from
BackupHandlerError:
    - DecodeError (here): inbound webhook body could not be decoded
    - BackupApiError, QueryError, DeleteError (backups.base)
    - PublishError, PublisherConnectionError (publish.base)

None of these are retried inside the service. They end the current
request and are reported through logging and the HTTP response.
"""

from __future__ import annotations

from typing import Any


class BackupHandlerError(Exception):
    """Base exception for all Backup Handler errors.

    Attributes:
        message: Error message
        details: Additional error context
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class DecodeError(BackupHandlerError):
    """Inbound webhook body is not valid JSON or not a backup report."""

    pass
