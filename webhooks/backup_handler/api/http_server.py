"""
HTTP server for the backup webhook.

The backup operator posts every backup and restore report to the root
path. Responses are JSON so operators can see what happened to a webhook
without reading server logs:

    {"status": "committed", "branch": "snapshot", "retired": 1, "emitted": 2, "lost": 0}

Status codes:
    - 200: the report was fully handled
    - 400: the body is not JSON, not a report, or has nothing to handle
    - 413: the body is over HTTP_MAX_BODY_BYTES
    - 500: an unexpected error in the handler
    - 502: the backup API or the broker failed part way

Invariants:
    - The endpoint never retries; the operator re-sends reports on its own
    - Outcomes are always logged server-side as well

How to change safely:
    - The operator only checks for a 2xx status, keep the root path stable
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from aiohttp import web

from ..config import HttpConfig
from ..dispatch import Branch, DispatchResult, Dispatcher
from ..errors import DecodeError
from ..models import BackupReport
from ..publish.base import EventPublisher

logger = logging.getLogger(__name__)

DISPATCHER_KEY = web.AppKey("dispatcher", Dispatcher)
PUBLISHER_KEY = web.AppKey("publisher", EventPublisher)


def create_http_app(
    dispatcher: Dispatcher,
    publisher: EventPublisher | None = None,
    config: HttpConfig | None = None,
) -> web.Application:
    """Create the webhook HTTP application.

    Args:
        dispatcher: Dispatcher that handles decoded reports
        publisher: Publisher reported on by the health endpoint
        config: HTTP server configuration

    Returns:
        aiohttp Application instance
    """
    config = config or HttpConfig()
    app = web.Application(client_max_size=config.max_body_bytes)
    app[DISPATCHER_KEY] = dispatcher
    if publisher is not None:
        app[PUBLISHER_KEY] = publisher

    app.router.add_post("/", handle_webhook)
    app.router.add_get("/health", handle_health)

    @web.middleware
    async def error_middleware(request: web.Request, handler: Callable) -> web.StreamResponse:
        try:
            return await handler(request)
        except web.HTTPRequestEntityTooLarge as e:
            logger.warning(f"Unable to handle webhook, error is {e.text}")
            return web.json_response(
                {"status": "too_large", "reason": e.text, "max_bytes": config.max_body_bytes},
                status=413,
            )
        except web.HTTPException:
            raise
        except Exception as e:
            logger.error(f"HTTP handler error: {e}", exc_info=True)
            return web.json_response(
                {"status": "error", "error": str(e), "error_code": "INTERNAL"},
                status=500,
            )

    app.middlewares.append(error_middleware)

    return app


def result_response(result: DispatchResult) -> web.Response:
    """Render a dispatch result as a JSON response."""
    if result.committed:
        status, label = 200, "committed"
    elif result.branch == Branch.INVALID:
        status, label = 400, "invalid_report"
    else:
        status, label = 502, "failed"

    body: dict[str, Any] = {
        "status": label,
        "branch": result.branch.value,
        "retired": len(result.retired),
        "emitted": len(result.emitted),
        "lost": len(result.lost),
    }
    if result.reason:
        body["reason"] = result.reason
    return web.json_response(body, status=status)


async def handle_webhook(request: web.Request) -> web.Response:
    """Handle POST / - Backup or restore report from the backup operator."""
    raw = await request.read()
    try:
        report = BackupReport.from_json(raw)
    except DecodeError as e:
        logger.warning(f"Unable to handle webhook, error is {e}")
        return web.json_response({"status": "invalid_json", "reason": str(e)}, status=400)

    logger.debug(
        "Webhook received",
        extra={
            "environment": report.name,
            "snapshots": len(report.snapshots),
            "restore": report.is_restore,
        },
    )

    result = await request.app[DISPATCHER_KEY].handle(report)
    return result_response(result)


async def handle_health(request: web.Request) -> web.Response:
    """Handle GET /health - Health check."""
    publisher = request.app.get(PUBLISHER_KEY)
    broker_ok = await publisher.health_check() if publisher is not None else True
    body = {"healthy": broker_ok, "components": {"broker": broker_ok}}
    return web.json_response(body, status=200 if broker_ok else 503)
