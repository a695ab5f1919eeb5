"""
Lagoon GraphQL implementation of the backup record API.

Talks to the Lagoon API over HTTP using httpx. Every request carries a
freshly signed admin JWT (HS256), the same token shape the Lagoon
services use to talk to each other.

Invariants:
    - One AsyncClient per process, shared by concurrent requests
    - Tokens are short-lived and signed per request, never cached
    - GraphQL "errors" are failures even when the HTTP status is 200

How to change safely:
    - Query field names follow the Lagoon schema, check it before renaming
    - Test against a local Lagoon API before deploying
"""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx
from jose import jwt

from ..config import BackupApiConfig
from ..models import AuthoritativeBackupRecord
from .base import DeleteError, QueryError

logger = logging.getLogger(__name__)

ENVIRONMENT_BACKUPS_QUERY = """
query environmentByOpenshiftProjectName($openshiftProjectName: String!) {
  environmentByOpenshiftProjectName(openshiftProjectName: $openshiftProjectName) {
    id
    name
    openshiftProjectName
    backups {
      id
      backupId
      source
      created
    }
  }
}
"""

DELETE_BACKUP_MUTATION = """
mutation deleteBackup($backupId: String!) {
  deleteBackup(input: {backupId: $backupId})
}
"""


class GraphQLError(Exception):
    """Lagoon API call failed at the transport or GraphQL level."""

    pass


class LagoonBackupApi:
    """Lagoon implementation of BackupRecordApi.

    Attributes:
        config: Lagoon API configuration

    Example:
        >>> api = LagoonBackupApi(BackupApiConfig(endpoint=..., jwt_secret=...))
        >>> records = await api.query_environment_backups("project-main")
    """

    def __init__(
        self,
        config: BackupApiConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the Lagoon client.

        Args:
            config: Lagoon API configuration
            transport: Optional httpx transport, used by tests
        """
        self.config = config
        self._client = httpx.AsyncClient(
            timeout=config.timeout_seconds,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )

    def _token(self) -> str:
        now = int(time.time())
        claims = {
            "role": "admin",
            "iss": self.config.jwt_issuer,
            "aud": self.config.jwt_audience,
            "sub": self.config.jwt_subject,
            "iat": now,
            "exp": now + self.config.jwt_ttl_seconds,
        }
        return jwt.encode(claims, self.config.jwt_secret, algorithm="HS256")

    async def _execute(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await self._client.post(
                self.config.endpoint,
                json={"query": query, "variables": variables},
                headers={"Authorization": f"Bearer {self._token()}"},
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            raise GraphQLError(f"Lagoon API returned HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise GraphQLError(f"Lagoon API request failed: {e}") from e
        except ValueError as e:
            raise GraphQLError(f"Lagoon API returned invalid JSON: {e}") from e

        if not isinstance(payload, dict):
            raise GraphQLError("Lagoon API returned a non-object response")
        errors = payload.get("errors")
        if errors:
            messages = "; ".join(str(err.get("message", err)) for err in errors)
            raise GraphQLError(f"Lagoon API returned errors: {messages}")
        return payload.get("data") or {}

    async def query_environment_backups(
        self, environment_name: str
    ) -> list[AuthoritativeBackupRecord]:
        """List backups recorded for an environment.

        Raises:
            QueryError: If the API call fails
        """
        try:
            data = await self._execute(
                ENVIRONMENT_BACKUPS_QUERY, {"openshiftProjectName": environment_name}
            )
            environment = data.get("environmentByOpenshiftProjectName")
            if environment is None:
                logger.info(
                    "Environment not found in Lagoon API",
                    extra={"environment": environment_name},
                )
                return []
            records = [
                AuthoritativeBackupRecord.from_dict(b)
                for b in environment.get("backups") or []
            ]
        except GraphQLError as e:
            raise QueryError(str(e), environment=environment_name) from e
        except (KeyError, TypeError, AttributeError) as e:
            raise QueryError(
                f"Unexpected backups response shape: {e}", environment=environment_name
            ) from e

        logger.debug(
            "Fetched recorded backups",
            extra={"environment": environment_name, "count": len(records)},
        )
        return records

    async def delete_backup(self, backup_id: str) -> None:
        """Delete a backup record.

        Raises:
            DeleteError: If the API call fails
        """
        try:
            await self._execute(DELETE_BACKUP_MUTATION, {"backupId": backup_id})
        except GraphQLError as e:
            raise DeleteError(str(e), backup_id=backup_id) from e

    async def close(self) -> None:
        await self._client.aclose()
