"""Configuration for the Kick.com client."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .const import (
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_PING_INTERVAL,
    DEFAULT_REQUEST_TIMEOUT,
    TOKEN_REFRESH_BUFFER,
)

if TYPE_CHECKING:
    from .credentials import TokenState

TokenUpdateHook = Callable[["TokenState"], Awaitable[None] | None]


class KickSettings(BaseSettings):
    """OAuth settings read from KICK_* environment variables or a .env file."""

    model_config = SettingsConfigDict(
        env_prefix="KICK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    access_token: str | None = Field(default=None, description="OAuth access token")
    refresh_token: str | None = Field(default=None, description="OAuth refresh token")
    client_id: str | None = Field(default=None, description="OAuth client ID")
    client_secret: str | None = Field(default=None, description="OAuth client secret")
    expires_in: int | None = Field(
        default=None, description="Access token lifetime in seconds"
    )
    token_updated: datetime | None = Field(
        default=None, description="When the access token was issued"
    )


@dataclass(frozen=True, slots=True)
class ClientOptions:
    """Runtime options for KickClient.

    Attributes:
        refresh_buffer_seconds: Renew the OAuth token this long before expiry.
        connect_timeout: WebSocket connect timeout (seconds).
        ping_interval: WebSocket keepalive ping interval (seconds).
        request_timeout: Total timeout for each REST request (seconds).
        env_file: Where refreshed tokens are persisted when no hook is set.
            ``None`` disables persistence.
        on_token_refresh: Called with the new TokenState after each renewal.
        feed_url: Override for the realtime feed URL.
    """

    refresh_buffer_seconds: int = TOKEN_REFRESH_BUFFER
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    ping_interval: int | None = DEFAULT_PING_INTERVAL
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    env_file: Path | None = Path(".env")
    on_token_refresh: TokenUpdateHook | None = None
    feed_url: str | None = None
