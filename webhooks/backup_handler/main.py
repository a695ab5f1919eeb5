"""
Backup Handler - Main entry point.

This module starts the webhook service with all components:
- Event publisher (Kafka topic declared on startup)
- Backup record API client (Lagoon GraphQL)
- HTTP webhook endpoint

Usage:
    python -m webhooks.backup_handler.main

Configuration is entirely via environment variables.
See config.py for all available settings.

Invariants:
    - The publisher and API client are built once and shared by all requests
    - A broker outage at startup does not stop webhooks from being accepted;
      publishes fail (and reconnect) until the broker is back
    - Graceful shutdown stops accepting webhooks before closing the broker

How to change safely:
    - Add new components with enable/disable flags
    - Test shutdown sequence thoroughly
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys

import json_log_formatter
from aiohttp import web

from .api import create_http_app
from .backups import BackupRecordApi, create_backup_api
from .config import ServerConfig
from .dispatch import Dispatcher
from .publish import EventPublisher, PublishError, create_publisher

logger = logging.getLogger(__name__)


def setup_logging(config: ServerConfig) -> None:
    """Configure logging based on configuration.

    Args:
        config: Server configuration
    """
    level = getattr(logging, config.observability.log_level.upper(), logging.INFO)

    if config.observability.log_format == "json":
        formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("aiokafka").setLevel(logging.WARNING)
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


class Server:
    """Backup Handler orchestrator.

    Manages the lifecycle of all server components:
    - Event publisher
    - Backup record API client
    - HTTP site

    Attributes:
        config: Server configuration
        publisher: Event publisher instance
        backup_api: Backup record API instance
        dispatcher: Dispatcher shared by all requests

    Example:
        >>> server = Server()
        >>> await server.start()
        >>> # Server is running
        >>> await server.stop()
    """

    def __init__(
        self,
        config: ServerConfig | None = None,
        publisher: EventPublisher | None = None,
        backup_api: BackupRecordApi | None = None,
    ) -> None:
        """Initialize the server.

        Args:
            config: Optional server configuration (loaded from env if not provided)
            publisher: Optional publisher (built from config if not provided)
            backup_api: Optional backup API client (built from config if not provided)
        """
        self.config = config or ServerConfig.from_env()
        self._running = False
        self._shutdown_event = asyncio.Event()

        self.publisher = publisher
        self.backup_api = backup_api
        self.dispatcher: Dispatcher | None = None
        self._runner: web.AppRunner | None = None

    async def start(self) -> None:
        """Start the server and wait until shutdown is requested."""
        await self.setup()
        await self._shutdown_event.wait()

    async def setup(self) -> None:
        """Build components and start serving webhooks."""
        if self._running:
            logger.warning("Server already running")
            return

        logger.info("Starting Backup Handler")
        self.config.log_config()

        try:
            if self.publisher is None:
                self.publisher = create_publisher(self.config)
            if self.backup_api is None:
                self.backup_api = create_backup_api(self.config)

            try:
                await self.publisher.connect()
                await self.publisher.declare_topology()
            except PublishError as e:
                logger.error(
                    f"Broker unavailable at startup, events will be lost until it returns: {e}"
                )

            self.dispatcher = Dispatcher(self.backup_api, self.publisher)

            app = create_http_app(self.dispatcher, self.publisher, self.config.http)
            self._runner = web.AppRunner(app)
            await self._runner.setup()
            site = web.TCPSite(self._runner, self.config.http.host, self.config.http.port)
            await site.start()

            self._running = True
            logger.info(
                f"Backup Handler listening on http://{self.config.http.host}:{self.config.http.port}"
            )

        except Exception as e:
            logger.error(f"Server startup failed: {e}", exc_info=True)
            self._running = True
            await self.stop()
            raise

    async def stop(self) -> None:
        """Stop the server gracefully."""
        if not self._running:
            return

        logger.info("Stopping Backup Handler")

        if self._runner:
            await self._runner.cleanup()
            self._runner = None

        if self.publisher:
            await self.publisher.close()

        if self.backup_api:
            await self.backup_api.close()

        self._running = False
        logger.info("Backup Handler stopped")

    def request_shutdown(self) -> None:
        """Request graceful shutdown."""
        self._shutdown_event.set()


def main() -> None:
    """Main entry point."""
    # Load configuration
    try:
        config = ServerConfig.from_env()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config)

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    server = Server(config)

    def handle_signal(sig: int) -> None:
        logger.info(f"Received signal {sig}, initiating shutdown")
        server.request_shutdown()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, handle_signal, sig)

    try:
        loop.run_until_complete(server.start())
    except KeyboardInterrupt:
        pass
    finally:
        loop.run_until_complete(server.stop())
        loop.close()


if __name__ == "__main__":
    main()
