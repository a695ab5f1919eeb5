"""
API module for the Backup Handler.

This module provides the external interface:
- HTTP webhook endpoint for the backup operator
- Health endpoint for liveness/readiness probes

Invariants:
    - Webhooks are decoded here and handed to the Dispatcher unchanged
    - Every response carries a JSON body describing the outcome
"""

from .http_server import create_http_app

__all__ = [
    "create_http_app",
]
