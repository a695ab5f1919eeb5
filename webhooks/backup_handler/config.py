"""
Configuration management for the Backup Handler.

All configuration is done via environment variables - no config files inside containers.
This module provides typed configuration classes with validation.

Invariants:
    - All settings have sensible defaults for local development
    - Production deployments MUST set explicit values for the broker and API
    - Secrets are never logged or exposed in error messages

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Keep env var names stable, deployments set them from Helm values
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)

# Producer acknowledgment levels accepted by KAFKA_ACKS ("-1" is an alias of "all")
KAFKA_ACKS_LEVELS = ("0", "1", "all", "-1")


class PublisherBackend(Enum):
    """Supported event publisher backends."""

    KAFKA = "kafka"
    MEMORY = "memory"


class BackupApiBackend(Enum):
    """Supported backup record API backends."""

    LAGOON = "lagoon"
    MEMORY = "memory"


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass(frozen=True)
class HttpConfig:
    """Webhook HTTP server configuration.

    Attributes:
        host: Address to bind the HTTP server
        port: Port for the webhook endpoint
        max_body_bytes: Largest accepted request body
    """

    host: str = "0.0.0.0"
    port: int = 3000
    max_body_bytes: int = 10 * 1024 * 1024  # 10MB

    @classmethod
    def from_env(cls) -> HttpConfig:
        """Load configuration from environment variables."""
        return cls(
            host=os.getenv("HTTP_HOST", "0.0.0.0"),
            port=int(os.getenv("HTTP_PORT", "3000")),
            max_body_bytes=int(os.getenv("HTTP_MAX_BODY_BYTES", str(10 * 1024 * 1024))),
        )


@dataclass(frozen=True)
class KafkaConfig:
    """Kafka/Redpanda event topic configuration.

    Attributes:
        brokers: Comma-separated list of broker addresses
        topic: Topic that downstream consumers read webhook events from
        topic_partitions: Partition count used when declaring the topic
        replication_factor: Replication factor used when declaring the topic
        topic_retention_ms: Retention for the topic (-1 keeps the broker default)
        client_id: Client ID reported to the brokers
        sasl_mechanism: SASL authentication mechanism (PLAIN, SCRAM-SHA-256, etc.)
        sasl_username: SASL username (if authentication enabled)
        sasl_password: SASL password (if authentication enabled)
        security_protocol: Security protocol (PLAINTEXT, SSL, SASL_PLAINTEXT, SASL_SSL)
        ssl_cafile: Path to CA certificate file
        acks: Producer acknowledgment level ('all' for strongest durability)
        enable_idempotence: Enable idempotent producer
        request_timeout_ms: Producer request timeout
    """

    brokers: str = "localhost:9092"
    topic: str = "lagoon-webhooks"
    topic_partitions: int = 3
    replication_factor: int = 1
    topic_retention_ms: int = -1
    client_id: str = "backup-handler"
    sasl_mechanism: str | None = None
    sasl_username: str | None = None
    sasl_password: str | None = None
    security_protocol: str = "PLAINTEXT"
    ssl_cafile: str | None = None
    # Producer durability settings
    acks: str = "all"
    enable_idempotence: bool = True
    request_timeout_ms: int = 30000

    @classmethod
    def from_env(cls) -> KafkaConfig:
        """Load configuration from environment variables."""
        return cls(
            brokers=os.getenv("KAFKA_BROKERS", "localhost:9092"),
            topic=os.getenv("KAFKA_TOPIC", "lagoon-webhooks"),
            topic_partitions=int(os.getenv("KAFKA_TOPIC_PARTITIONS", "3")),
            replication_factor=int(os.getenv("KAFKA_REPLICATION_FACTOR", "1")),
            topic_retention_ms=int(os.getenv("KAFKA_TOPIC_RETENTION_MS", "-1")),
            client_id=os.getenv("KAFKA_CLIENT_ID", "backup-handler"),
            sasl_mechanism=os.getenv("KAFKA_SASL_MECHANISM"),
            sasl_username=os.getenv("KAFKA_SASL_USERNAME"),
            sasl_password=os.getenv("KAFKA_SASL_PASSWORD"),
            security_protocol=os.getenv("KAFKA_SECURITY_PROTOCOL", "PLAINTEXT"),
            ssl_cafile=os.getenv("KAFKA_SSL_CAFILE"),
            acks=os.getenv("KAFKA_ACKS", "all"),
            enable_idempotence=_env_bool("KAFKA_ENABLE_IDEMPOTENCE", "true"),
            request_timeout_ms=int(os.getenv("KAFKA_REQUEST_TIMEOUT_MS", "30000")),
        )


@dataclass(frozen=True)
class BackupApiConfig:
    """Lagoon GraphQL API configuration.

    Attributes:
        endpoint: GraphQL endpoint URL
        jwt_audience: Audience claim for the signed API token
        jwt_secret: HS256 signing key for the API token
        jwt_issuer: Issuer claim for the signed API token
        jwt_subject: Subject claim for the signed API token
        jwt_ttl_seconds: Lifetime of each signed token
        timeout_seconds: HTTP timeout for every API call
    """

    endpoint: str = "http://localhost:3000/graphql"
    jwt_audience: str = "api.dev"
    jwt_secret: str = ""
    jwt_issuer: str = "backup-handler"
    jwt_subject: str = "backup-handler"
    jwt_ttl_seconds: int = 300
    timeout_seconds: float = 30.0

    @classmethod
    def from_env(cls) -> BackupApiConfig:
        """Load configuration from environment variables."""
        return cls(
            endpoint=os.getenv("GRAPHQL_ENDPOINT", "http://localhost:3000/graphql"),
            jwt_audience=os.getenv("JWT_AUDIENCE", "api.dev"),
            jwt_secret=os.getenv("JWT_SECRET", ""),
            jwt_issuer=os.getenv("JWT_ISSUER", "backup-handler"),
            jwt_subject=os.getenv("JWT_SUBJECT", "backup-handler"),
            jwt_ttl_seconds=int(os.getenv("JWT_TTL_SECONDS", "300")),
            timeout_seconds=float(os.getenv("GRAPHQL_TIMEOUT_SECONDS", "30")),
        )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "json"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "json"),
        )


@dataclass
class ServerConfig:
    """Complete server configuration.

    Attributes:
        publisher_backend: Which event publisher to use
        backup_api_backend: Which backup record API to use
        http: Webhook HTTP server configuration
        kafka: Kafka configuration (if publisher_backend is KAFKA)
        backup_api: Lagoon API configuration (if backup_api_backend is LAGOON)
        observability: Logging configuration
    """

    publisher_backend: PublisherBackend = PublisherBackend.KAFKA
    backup_api_backend: BackupApiBackend = BackupApiBackend.LAGOON
    http: HttpConfig = field(default_factory=HttpConfig)
    kafka: KafkaConfig = field(default_factory=KafkaConfig)
    backup_api: BackupApiConfig = field(default_factory=BackupApiConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> ServerConfig:
        """Load complete configuration from environment variables.

        Returns:
            ServerConfig with all sections populated from environment.

        Raises:
            ValueError: If required configuration is missing or invalid.
        """
        publisher_str = os.getenv("PUBLISHER_BACKEND", "kafka").lower()
        try:
            publisher_backend = PublisherBackend(publisher_str)
        except ValueError:
            raise ValueError(
                f"Invalid PUBLISHER_BACKEND '{publisher_str}'. Must be one of: kafka, memory"
            )

        api_str = os.getenv("BACKUP_API_BACKEND", "lagoon").lower()
        try:
            backup_api_backend = BackupApiBackend(api_str)
        except ValueError:
            raise ValueError(
                f"Invalid BACKUP_API_BACKEND '{api_str}'. Must be one of: lagoon, memory"
            )

        config = cls(
            publisher_backend=publisher_backend,
            backup_api_backend=backup_api_backend,
            http=HttpConfig.from_env(),
            kafka=KafkaConfig.from_env(),
            backup_api=BackupApiConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )

        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if self.publisher_backend == PublisherBackend.KAFKA:
            if not self.kafka.brokers:
                raise ValueError("KAFKA_BROKERS is required when PUBLISHER_BACKEND=kafka")
            if not self.kafka.topic:
                raise ValueError("KAFKA_TOPIC is required when PUBLISHER_BACKEND=kafka")
            if self.kafka.topic_partitions < 1:
                raise ValueError("KAFKA_TOPIC_PARTITIONS must be at least 1")
            if self.kafka.replication_factor < 1:
                raise ValueError("KAFKA_REPLICATION_FACTOR must be at least 1")
            acks = self.kafka.acks.strip().lower()
            if acks not in KAFKA_ACKS_LEVELS:
                raise ValueError(f"KAFKA_ACKS must be one of 0, 1, all (got '{self.kafka.acks}')")
            if self.kafka.enable_idempotence and acks not in ("all", "-1"):
                raise ValueError("KAFKA_ACKS must be 'all' when KAFKA_ENABLE_IDEMPOTENCE=true")

        if self.backup_api_backend == BackupApiBackend.LAGOON:
            if not self.backup_api.endpoint:
                raise ValueError("GRAPHQL_ENDPOINT is required when BACKUP_API_BACKEND=lagoon")
            if not self.backup_api.jwt_secret:
                raise ValueError("JWT_SECRET is required when BACKUP_API_BACKEND=lagoon")

        if not 0 < self.http.port < 65536:
            raise ValueError(f"HTTP_PORT out of range: {self.http.port}")

    def log_config(self) -> None:
        """Log configuration (redacting secrets)."""
        kafka = self.publisher_backend == PublisherBackend.KAFKA
        lagoon = self.backup_api_backend == BackupApiBackend.LAGOON
        logger.info(
            "Server configuration loaded",
            extra={
                "publisher_backend": self.publisher_backend.value,
                "backup_api_backend": self.backup_api_backend.value,
                "http_bind": f"{self.http.host}:{self.http.port}",
                "kafka_brokers": self.kafka.brokers if kafka else None,
                "kafka_topic": self.kafka.topic if kafka else None,
                "graphql_endpoint": self.backup_api.endpoint if lagoon else None,
                "jwt_audience": self.backup_api.jwt_audience if lagoon else None,
                "log_level": self.observability.log_level,
            },
        )
