"""WebSocket helpers for the Kick realtime chat feed."""

from __future__ import annotations

import asyncio
from urllib.parse import urlencode

import websockets
from websockets.asyncio.client import ClientConnection
from websockets.exceptions import (
    InvalidHandshake,
    InvalidURI,
    WebSocketException,
)

from ..const import (
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_PING_INTERVAL,
    PUSHER_APP_KEY,
    PUSHER_CLIENT_VERSION,
    PUSHER_HOST,
    PUSHER_PROTOCOL,
)
from ..errors import (
    KickConnectionError,
    KickHandshakeError,
    KickTimeout,
)


def build_feed_url(
    *,
    host: str = PUSHER_HOST,
    app_key: str = PUSHER_APP_KEY,
    version: str = PUSHER_CLIENT_VERSION,
) -> str:
    """Build the Pusher feed URL the Kick web client connects to."""
    query = urlencode(
        {
            "protocol": PUSHER_PROTOCOL,
            "client": "js",
            "version": version,
            "flash": "false",
        }
    )
    return f"wss://{host}/app/{app_key}?{query}"


async def connect_websocket(
    url: str,
    *,
    ping_interval: int | None = DEFAULT_PING_INTERVAL,
    timeout: float = DEFAULT_CONNECT_TIMEOUT,
) -> ClientConnection:
    """Connect to a WebSocket endpoint.

    Args:
        url: Full ws:// or wss:// URL
        ping_interval: Interval for ping frames
        timeout: Connection timeout
    """
    try:
        return await asyncio.wait_for(
            websockets.connect(
                url,
                ping_interval=ping_interval,
                close_timeout=5,
                max_size=None,
            ),
            timeout=timeout,
        )
    except TimeoutError as err:
        raise KickTimeout("WebSocket connection timed out") from err
    except (InvalidHandshake, InvalidURI) as err:
        raise KickHandshakeError("WebSocket handshake failed") from err
    except (OSError, WebSocketException) as err:
        raise KickConnectionError("WebSocket connection failed") from err
