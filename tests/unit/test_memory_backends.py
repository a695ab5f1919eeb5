"""
Unit tests for the in-memory publisher and backup API.

Tests cover:
- Connection lifecycle
- Failure injection
- Delete visibility
"""

import pytest

from webhooks.backup_handler.backups.base import BackupRecordApi, DeleteError, QueryError
from webhooks.backup_handler.backups.memory import InMemoryBackupApi
from webhooks.backup_handler.models import BackupReport, OutboundEvent
from webhooks.backup_handler.publish.base import (
    EventPublisher,
    PublisherConnectionError,
    PublishError,
)
from webhooks.backup_handler.publish.memory import InMemoryEventPublisher


def restore_event():
    return OutboundEvent.restore_finished(BackupReport(name="env1", restore_location="x"))


class TestInMemoryEventPublisher:
    """Tests for InMemoryEventPublisher."""

    def test_implements_protocol(self):
        """The in-memory publisher satisfies EventPublisher."""
        assert isinstance(InMemoryEventPublisher(), EventPublisher)

    @pytest.mark.asyncio
    async def test_publish_requires_connection(self):
        """Publishing before connect() fails."""
        publisher = InMemoryEventPublisher()

        with pytest.raises(PublisherConnectionError):
            await publisher.publish(restore_event())

    @pytest.mark.asyncio
    async def test_publish_stores_events_in_order(self):
        """Published events are kept in order."""
        publisher = InMemoryEventPublisher()
        await publisher.connect()
        first, second = restore_event(), restore_event()

        await publisher.publish(first)
        await publisher.publish(second)

        assert publisher.events == [first, second]
        assert publisher.payloads()[0]["uuid"] == first.uuid

    @pytest.mark.asyncio
    async def test_fail_next(self):
        """fail_next makes that many publishes fail."""
        publisher = InMemoryEventPublisher()
        await publisher.connect()
        publisher.fail_next = 1

        with pytest.raises(PublishError):
            await publisher.publish(restore_event())
        await publisher.publish(restore_event())

        assert len(publisher.events) == 1

    @pytest.mark.asyncio
    async def test_close_clears(self):
        """close() disconnects and clears stored events."""
        publisher = InMemoryEventPublisher()
        await publisher.connect()
        await publisher.publish(restore_event())

        await publisher.close()

        assert not publisher.is_connected
        assert publisher.events == []
        assert not await publisher.health_check()


class TestInMemoryBackupApi:
    """Tests for InMemoryBackupApi."""

    def test_implements_protocol(self):
        """The in-memory API satisfies BackupRecordApi."""
        assert isinstance(InMemoryBackupApi(), BackupRecordApi)

    @pytest.mark.asyncio
    async def test_query_scoped_to_environment(self):
        """Queries only return the environment's backups."""
        api = InMemoryBackupApi()
        api.add_backup("env1", "s1")
        api.add_backup("env2", "s2")

        records = await api.query_environment_backups("env1")

        assert [r.backup_id for r in records] == ["s1"]
        assert await api.query_environment_backups("env3") == []

    @pytest.mark.asyncio
    async def test_delete_visible_to_next_query(self):
        """Deleted backups disappear from later queries."""
        api = InMemoryBackupApi()
        api.add_backup("env1", "s1")
        api.add_backup("env1", "s2")

        await api.delete_backup("s1")

        assert [r.backup_id for r in await api.query_environment_backups("env1")] == ["s2"]

    @pytest.mark.asyncio
    async def test_failure_injection(self):
        """Queries and deletes can be made to fail."""
        api = InMemoryBackupApi()
        api.add_backup("env1", "s1")
        api.fail_deletes.add("s1")

        with pytest.raises(DeleteError):
            await api.delete_backup("s1")
        assert api.backup_ids("env1") == ["s1"]

        api.fail_queries = True
        with pytest.raises(QueryError):
            await api.query_environment_backups("env1")
