"""
In-memory backup record API for testing.

This module provides a dict-backed backend for:
- Unit and integration tests
- Local development without a Lagoon API

Invariants:
    - All data is lost on process exit
    - Deletes are visible to the next query, like the real API
    - Safe to use from multiple coroutines

How to change safely:
    - This is test-only code, changes don't affect production
    - Keep interface compatible with BackupRecordApi protocol
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict

from ..models import AuthoritativeBackupRecord
from .base import DeleteError, QueryError

logger = logging.getLogger(__name__)


class InMemoryBackupApi:
    """In-memory implementation of BackupRecordApi.

    Besides the protocol methods it records every call and can be told to
    fail, so tests can drive the dispatcher through its error paths.

    Example:
        >>> api = InMemoryBackupApi()
        >>> api.add_backup("project-main", "s1")
        >>> await api.query_environment_backups("project-main")
        [AuthoritativeBackupRecord(backup_id='s1', ...)]
    """

    def __init__(self) -> None:
        self._backups: dict[str, list[AuthoritativeBackupRecord]] = defaultdict(list)
        self._lock = asyncio.Lock()
        self._next_record_id = 1
        self.fail_queries = False
        self.fail_deletes: set[str] = set()
        self.queries: list[str] = []
        self.deletes: list[str] = []

    def add_backup(
        self, environment_name: str, backup_id: str, source: str | None = None
    ) -> AuthoritativeBackupRecord:
        """Record a backup (testing helper)."""
        record = AuthoritativeBackupRecord(
            backup_id=backup_id, record_id=self._next_record_id, source=source
        )
        self._next_record_id += 1
        self._backups[environment_name].append(record)
        return record

    def backup_ids(self, environment_name: str) -> list[str]:
        """IDs currently recorded for an environment (testing helper)."""
        return [r.backup_id for r in self._backups.get(environment_name, [])]

    async def query_environment_backups(
        self, environment_name: str
    ) -> list[AuthoritativeBackupRecord]:
        self.queries.append(environment_name)
        if self.fail_queries:
            raise QueryError("Simulated query failure", environment=environment_name)
        async with self._lock:
            return list(self._backups.get(environment_name, []))

    async def delete_backup(self, backup_id: str) -> None:
        self.deletes.append(backup_id)
        if backup_id in self.fail_deletes:
            raise DeleteError(f"Simulated delete failure for {backup_id}", backup_id=backup_id)
        async with self._lock:
            for environment_name, records in self._backups.items():
                self._backups[environment_name] = [
                    r for r in records if r.backup_id != backup_id
                ]
        logger.debug("Deleted in-memory backup", extra={"backup_id": backup_id})

    async def close(self) -> None:
        pass
