"""
Integration tests for the webhook HTTP endpoint.

Tests cover:
- Snapshot and restore webhooks through aiohttp
- Structured responses for each outcome
- Health endpoint
"""

import pytest
from aiohttp import test_utils

from webhooks.backup_handler.api import create_http_app
from webhooks.backup_handler.backups.memory import InMemoryBackupApi
from webhooks.backup_handler.config import HttpConfig
from webhooks.backup_handler.dispatch import Dispatcher
from webhooks.backup_handler.models import EVENT_RESTORE_FINISHED, EVENT_SNAPSHOT_FINISHED
from webhooks.backup_handler.publish.memory import InMemoryEventPublisher

SNAPSHOT_WEBHOOK = {
    "name": "project-main",
    "bucket_name": "baas-project",
    "metrics": {"errors": 0},
    "snapshots": [
        {"id": "s1", "hostname": "project-main", "paths": ["/data/nginx"]},
        {"id": "s2", "hostname": "project-main-mariadb-prebackuppod"},
        {"id": "s3", "hostname": "other-project"},
    ],
}


class WebhookHarness:
    """Wires the HTTP app to in-memory backends."""

    def __init__(self, max_body_bytes=1024 * 1024):
        self.backup_api = InMemoryBackupApi()
        self.publisher = InMemoryEventPublisher()
        self.app = create_http_app(
            Dispatcher(self.backup_api, self.publisher),
            self.publisher,
            HttpConfig(max_body_bytes=max_body_bytes),
        )

    async def __aenter__(self):
        await self.publisher.connect()
        self.client = test_utils.TestClient(test_utils.TestServer(self.app))
        await self.client.start_server()
        return self

    async def __aexit__(self, *exc):
        await self.client.close()


class TestWebhookEndpoint:
    """Tests for POST /."""

    @pytest.mark.asyncio
    async def test_snapshot_webhook(self):
        """New snapshots of the environment are published."""
        async with WebhookHarness() as h:
            h.backup_api.add_backup("project-main", "gone")

            resp = await h.client.post("/", json=SNAPSHOT_WEBHOOK)
            body = await resp.json()

        assert resp.status == 200
        assert body == {
            "status": "committed",
            "branch": "snapshot",
            "retired": 1,
            "emitted": 2,
            "lost": 0,
        }
        assert [e.event for e in h.publisher.events] == [EVENT_SNAPSHOT_FINISHED] * 2
        assert h.backup_api.deletes == ["gone"]

    @pytest.mark.asyncio
    async def test_replayed_webhook(self):
        """Snapshots already recorded are not published again."""
        async with WebhookHarness() as h:
            for snapshot_id in ("s1", "s2"):
                h.backup_api.add_backup("project-main", snapshot_id)

            resp = await h.client.post("/", json=SNAPSHOT_WEBHOOK)
            body = await resp.json()

        assert resp.status == 200
        assert body["emitted"] == 0
        assert h.publisher.events == []

    @pytest.mark.asyncio
    async def test_restore_webhook(self):
        """Restore reports are published directly."""
        async with WebhookHarness() as h:
            resp = await h.client.post(
                "/",
                json={
                    "name": "project-main",
                    "bucket_name": "baas-project",
                    "restore_location": "s3://restores/s1.tar.gz",
                    "snapshot_ID": "s1",
                },
            )
            body = await resp.json()

        assert resp.status == 200
        assert body["branch"] == "restore"
        assert h.publisher.events[0].event == EVENT_RESTORE_FINISHED
        assert h.backup_api.queries == []

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        """Malformed JSON is rejected without side effects."""
        async with WebhookHarness() as h:
            resp = await h.client.post(
                "/", data=b"{not json", headers={"Content-Type": "application/json"}
            )
            body = await resp.json()

        assert resp.status == 400
        assert body["status"] == "invalid_json"
        assert h.publisher.events == []
        assert h.backup_api.queries == []

    @pytest.mark.asyncio
    async def test_report_without_work(self):
        """A report with no snapshots and no restore is a bad request."""
        async with WebhookHarness() as h:
            resp = await h.client.post("/", json={"name": "project-main", "snapshots": []})
            body = await resp.json()

        assert resp.status == 400
        assert body["status"] == "invalid_report"
        assert body["branch"] == "invalid"

    @pytest.mark.asyncio
    async def test_backend_failure(self):
        """Backup API failures surface as 502."""
        async with WebhookHarness() as h:
            h.backup_api.fail_queries = True

            resp = await h.client.post("/", json=SNAPSHOT_WEBHOOK)
            body = await resp.json()

        assert resp.status == 502
        assert body["status"] == "failed"
        assert "reason" in body

    @pytest.mark.asyncio
    async def test_oversized_body(self):
        """Bodies over the configured limit are refused with a JSON body."""
        async with WebhookHarness(max_body_bytes=64) as h:
            resp = await h.client.post("/", json=SNAPSHOT_WEBHOOK)
            body = await resp.json()

        assert resp.status == 413
        assert resp.content_type == "application/json"
        assert body["status"] == "too_large"
        assert body["max_bytes"] == 64
        assert h.publisher.events == []


class TestHealthEndpoint:
    """Tests for GET /health."""

    @pytest.mark.asyncio
    async def test_healthy(self):
        async with WebhookHarness() as h:
            resp = await h.client.get("/health")
            body = await resp.json()

        assert resp.status == 200
        assert body["healthy"] is True

    @pytest.mark.asyncio
    async def test_broker_down(self):
        """A disconnected publisher reports unhealthy."""
        async with WebhookHarness() as h:
            await h.publisher.close()
            resp = await h.client.get("/health")
            body = await resp.json()

        assert resp.status == 503
        assert body["components"]["broker"] is False
