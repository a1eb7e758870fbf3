"""Pytest configuration and fixtures for kick_client tests."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from kick_client.credentials import CredentialStore, OAuthCredentials

NOW = datetime(2025, 1, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def mock_session() -> MagicMock:
    """Create a mock aiohttp ClientSession."""
    import aiohttp

    return MagicMock(spec=aiohttp.ClientSession)


@pytest.fixture
def store() -> CredentialStore:
    """Credential store with a fixed clock."""
    return CredentialStore(clock=lambda: NOW)


def create_mock_response(
    status: int = 200,
    json_data: Any = None,
    text_data: str | None = None,
) -> AsyncMock:
    """Create a configured mock response.

    Args:
        status: HTTP status code
        json_data: Data to return from json() call
        text_data: Data to return from text() call

    Returns:
        Configured AsyncMock response usable as an async context manager
    """
    response = AsyncMock()
    response.status = status

    if json_data is not None:
        response.json.return_value = json_data
    response.text.return_value = text_data if text_data is not None else ""

    response.__aenter__.return_value = response
    response.__aexit__.return_value = None

    return response


def oauth_credentials(
    access_token: str = "old-token",
    *,
    expires_in: int | None = 3600,
    issued_at: datetime | None = NOW,
    refreshable: bool = True,
) -> OAuthCredentials:
    """Build OAuth credentials, refreshable by default."""
    return OAuthCredentials(
        access_token=access_token,
        refresh_token="refresh-1" if refreshable else None,
        expires_in=expires_in,
        issued_at=issued_at,
        client_id="client-id" if refreshable else None,
        client_secret="client-secret" if refreshable else None,
    )


def token_payload(access_token: str = "new-token", **extra: Any) -> dict[str, Any]:
    """Token endpoint response body."""
    return {
        "access_token": access_token,
        "token_type": "Bearer",
        "expires_in": 3600,
        "scope": "chat:write",
        **extra,
    }
