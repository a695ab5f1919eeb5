"""
E2E test fixtures for the Backup Handler.

These tests require a running service and Kafka. Point them at the stack with:
    BACKUP_HANDLER_URL (default http://localhost:3000)
    KAFKA_BROKERS (default localhost:9092)
    KAFKA_TOPIC (default lagoon-webhooks)
"""

import os
import uuid

import pytest


@pytest.fixture
def http_base_url() -> str:
    """Base URL of the running webhook service."""
    return os.environ.get("BACKUP_HANDLER_URL", "http://localhost:3000")


@pytest.fixture
def kafka_brokers() -> str:
    return os.environ.get("KAFKA_BROKERS", "localhost:9092")


@pytest.fixture
def kafka_topic() -> str:
    return os.environ.get("KAFKA_TOPIC", "lagoon-webhooks")


@pytest.fixture
def environment_name() -> str:
    """Generate unique environment name for test isolation."""
    return f"e2e-{uuid.uuid4().hex[:8]}"
