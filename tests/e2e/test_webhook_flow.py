"""
End-to-end tests for the webhook to Kafka flow.

Run against a service started with BACKUP_API_BACKEND=memory so every
snapshot is new.

Tests cover:
- Restore webhooks reaching the topic
- Snapshot webhooks reaching the topic with one snapshot per event
"""

import asyncio
import json
import os

import httpx
import pytest
from aiokafka import AIOKafkaConsumer, TopicPartition

# Skip if not in E2E mode
E2E_ENABLED = os.environ.get("BACKUP_HANDLER_E2E_TESTS", "0") == "1"
pytestmark = pytest.mark.skipif(
    not E2E_ENABLED, reason="E2E tests disabled. Set BACKUP_HANDLER_E2E_TESTS=1 to enable."
)


async def tail_topic(brokers: str, topic: str) -> AIOKafkaConsumer:
    """Start a consumer positioned at the current end of every partition."""
    consumer = AIOKafkaConsumer(bootstrap_servers=brokers, enable_auto_commit=False)
    await consumer.start()
    partitions = [TopicPartition(topic, p) for p in consumer.partitions_for_topic(topic) or []]
    consumer.assign(partitions)
    await consumer.seek_to_end(*partitions)
    return consumer


async def collect_events(consumer: AIOKafkaConsumer, environment: str, expected: int):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + 15
    events = []
    while len(events) < expected and loop.time() < deadline:
        batches = await consumer.getmany(timeout_ms=500)
        for messages in batches.values():
            for message in messages:
                payload = json.loads(message.value)
                if payload["body"]["name"] == environment:
                    events.append(payload)
    return events


class TestWebhookFlow:
    """End-to-end tests for the webhook flow."""

    @pytest.mark.asyncio
    async def test_restore_webhook_published(
        self, http_base_url, kafka_brokers, kafka_topic, environment_name
    ):
        """A restore webhook lands on the topic as restore:finished."""
        consumer = await tail_topic(kafka_brokers, kafka_topic)
        try:
            async with httpx.AsyncClient(base_url=http_base_url) as client:
                response = await client.post(
                    "/",
                    json={
                        "name": environment_name,
                        "bucket_name": "baas-e2e",
                        "restore_location": "s3://restores/e2e.tar.gz",
                        "snapshot_ID": "e2e",
                    },
                )
            assert response.status_code == 200

            events = await collect_events(consumer, environment_name, expected=1)
        finally:
            await consumer.stop()

        assert [e["event"] for e in events] == ["restore:finished"]
        assert events[0]["webhookType"] == "resticbackup"

    @pytest.mark.asyncio
    async def test_snapshot_webhook_published(
        self, http_base_url, kafka_brokers, kafka_topic, environment_name
    ):
        """Each matching snapshot lands on the topic as its own event."""
        consumer = await tail_topic(kafka_brokers, kafka_topic)
        try:
            async with httpx.AsyncClient(base_url=http_base_url) as client:
                response = await client.post(
                    "/",
                    json={
                        "name": environment_name,
                        "bucket_name": "baas-e2e",
                        "snapshots": [
                            {"id": f"{environment_name}-1", "hostname": environment_name},
                            {
                                "id": f"{environment_name}-2",
                                "hostname": f"{environment_name}-db-prebackuppod",
                            },
                            {"id": f"{environment_name}-3", "hostname": "someone-else"},
                        ],
                    },
                )
            assert response.status_code == 200

            events = await collect_events(consumer, environment_name, expected=2)
        finally:
            await consumer.stop()

        assert sorted(e["body"]["snapshots"][0]["id"] for e in events) == [
            f"{environment_name}-1",
            f"{environment_name}-2",
        ]
        assert all(e["event"] == "snapshot:finished" for e in events)
