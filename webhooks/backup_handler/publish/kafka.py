"""
Kafka/Redpanda event publisher.

Publishes webhook events to a single durable topic. It works with:
- Apache Kafka
- Amazon MSK
- Redpanda
- Any Kafka API-compatible system

Invariants:
    - Producer uses acks=all and idempotence for strongest durability
    - Events are keyed by environment name, so one environment's events stay ordered
    - The topic is declared at startup, or before the first send if startup
      could not reach the broker; an existing topic is left as is
    - A failed send is reported to the caller, never retried here

How to change safely:
    - Consumers read the topic name from their own config, keep it in sync
    - Changing the message key changes partition assignment for consumers
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from aiokafka import AIOKafkaProducer
from aiokafka.admin import AIOKafkaAdminClient, NewTopic
from aiokafka.errors import (
    KafkaConnectionError,
    KafkaError,
    KafkaTimeoutError,
    TopicAlreadyExistsError,
)

from ..config import KAFKA_ACKS_LEVELS, KafkaConfig
from ..models import OutboundEvent
from .base import PublisherConnectionError, PublishError

logger = logging.getLogger(__name__)

CONTENT_TYPE_HEADER = ("content-type", b"text/plain")


def producer_acks(acks: str) -> int | str:
    """Convert a configured acks level to the value aiokafka expects.

    Raises:
        ValueError: If the level is not one of KAFKA_ACKS_LEVELS
    """
    normalized = str(acks).strip().lower()
    if normalized not in KAFKA_ACKS_LEVELS:
        raise ValueError(f"Invalid acks level '{acks}'. Must be one of: 0, 1, all")
    if normalized in ("all", "-1"):
        return "all"
    return int(normalized)


class KafkaEventPublisher:
    """Kafka implementation of EventPublisher protocol.

    Uses aiokafka for the producer and the admin client. A single producer
    is shared by all concurrent publish() calls; aiokafka serializes sends
    internally.

    Attributes:
        config: Kafka configuration

    Example:
        >>> publisher = KafkaEventPublisher(KafkaConfig(brokers="localhost:9092"))
        >>> await publisher.connect()
        >>> await publisher.declare_topology()
    """

    def __init__(self, config: KafkaConfig) -> None:
        self.config = config
        self._producer: AIOKafkaProducer | None = None
        self._connected = False
        self._topology_declared = False
        self._connect_lock = asyncio.Lock()

    @property
    def is_connected(self) -> bool:
        """Whether connected to Kafka."""
        return self._connected and self._producer is not None

    def _connection_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "bootstrap_servers": self.config.brokers,
            "client_id": self.config.client_id,
            "request_timeout_ms": self.config.request_timeout_ms,
        }

        if self.config.security_protocol != "PLAINTEXT":
            kwargs["security_protocol"] = self.config.security_protocol

        if self.config.sasl_mechanism:
            kwargs["sasl_mechanism"] = self.config.sasl_mechanism
            kwargs["sasl_plain_username"] = self.config.sasl_username
            kwargs["sasl_plain_password"] = self.config.sasl_password

        if self.config.ssl_cafile:
            from aiokafka.helpers import create_ssl_context

            kwargs["ssl_context"] = create_ssl_context(cafile=self.config.ssl_cafile)

        return kwargs

    async def connect(self) -> None:
        """Start the producer.

        Raises:
            PublisherConnectionError: If connection fails
        """
        async with self._connect_lock:
            if self._connected:
                return

            # Stop the producer left over from a lost connection
            if self._producer is not None:
                await self._stop_producer()

            producer = AIOKafkaProducer(
                acks=producer_acks(self.config.acks),
                enable_idempotence=self.config.enable_idempotence,
                linger_ms=5,
                retry_backoff_ms=100,
                **self._connection_kwargs(),
            )
            try:
                await producer.start()
            except Exception as e:
                await producer.stop()
                raise PublisherConnectionError(f"Failed to connect to Kafka: {e}") from e

            self._producer = producer
            self._connected = True

            logger.info(
                "Connected to Kafka",
                extra={
                    "brokers": self.config.brokers,
                    "topic": self.config.topic,
                    "acks": self.config.acks,
                    "idempotent": self.config.enable_idempotence,
                },
            )

    async def declare_topology(self) -> None:
        """Create the event topic if it does not exist.

        Raises:
            PublisherConnectionError: If the topic cannot be created
        """
        topic_configs = {"cleanup.policy": "delete"}
        if self.config.topic_retention_ms >= 0:
            topic_configs["retention.ms"] = str(self.config.topic_retention_ms)

        admin = AIOKafkaAdminClient(**self._connection_kwargs())
        try:
            await admin.start()
            response = await admin.create_topics(
                [
                    NewTopic(
                        name=self.config.topic,
                        num_partitions=self.config.topic_partitions,
                        replication_factor=self.config.replication_factor,
                        topic_configs=topic_configs,
                    )
                ]
            )
            for topic_error in getattr(response, "topic_errors", []):
                topic, code = topic_error[0], topic_error[1]
                if code not in (0, TopicAlreadyExistsError.errno):
                    raise PublisherConnectionError(
                        f"Could not declare topic {topic}, error code {code}"
                    )
        except TopicAlreadyExistsError:
            pass
        except KafkaError as e:
            raise PublisherConnectionError(
                f"Could not declare topic {self.config.topic}: {e}"
            ) from e
        finally:
            await admin.close()

        self._topology_declared = True
        logger.info(
            "Declared event topic",
            extra={
                "topic": self.config.topic,
                "partitions": self.config.topic_partitions,
                "replication_factor": self.config.replication_factor,
            },
        )

    async def publish(self, event: OutboundEvent) -> None:
        """Send an event and wait for the broker acknowledgment.

        If the producer is not connected (for example the broker was down at
        startup) one connection attempt is made first. The topic is declared
        before the first send if startup could not declare it.

        Raises:
            PublisherConnectionError: If reconnecting or declaring the topic fails
            PublishError: For send failures
        """
        try:
            if not self.is_connected:
                await self.connect()
            if not self._topology_declared:
                await self.declare_topology()
        except PublisherConnectionError as e:
            raise PublisherConnectionError(str(e), event_uuid=event.uuid) from e

        try:
            record_metadata = await self._producer.send_and_wait(
                self.config.topic,
                value=event.to_bytes(),
                key=event.environment.encode("utf-8"),
                headers=[CONTENT_TYPE_HEADER],
            )
        except KafkaTimeoutError as e:
            raise PublishError(f"Kafka send timed out: {e}", event_uuid=event.uuid) from e
        except KafkaConnectionError as e:
            self._connected = False
            raise PublisherConnectionError(
                f"Kafka connection lost: {e}", event_uuid=event.uuid
            ) from e
        except KafkaError as e:
            raise PublishError(f"Kafka send failed: {e}", event_uuid=event.uuid) from e

        logger.debug(
            "Event appended to Kafka",
            extra={
                "topic": self.config.topic,
                "key": event.environment,
                "partition": record_metadata.partition,
                "offset": record_metadata.offset,
                "event_uuid": event.uuid,
            },
        )

    async def close(self) -> None:
        """Flush pending sends and stop the producer."""
        if self._producer:
            await self._stop_producer()

        self._connected = False
        logger.info("Kafka connections closed")

    async def _stop_producer(self) -> None:
        try:
            await self._producer.stop()
        except Exception as e:
            logger.warning(f"Error closing producer: {e}")
        self._producer = None

    async def health_check(self) -> bool:
        """Check if the Kafka connection is healthy.

        Returns:
            True if connected and the topic metadata is reachable
        """
        if not self._producer:
            return False

        try:
            partitions = await asyncio.wait_for(
                self._producer.partitions_for(self.config.topic), timeout=5.0
            )
            return partitions is not None
        except (KafkaError, asyncio.TimeoutError):
            return False
