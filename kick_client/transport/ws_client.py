"""WebSocket client wrapper for the Kick chat feed."""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from websockets.asyncio.client import ClientConnection
from websockets.exceptions import (
    ConnectionClosed,
    ConnectionClosedOK,
    WebSocketException,
)

from ..const import DEFAULT_CONNECT_TIMEOUT, DEFAULT_PING_INTERVAL
from ..errors import KickConnectionError
from .ws import connect_websocket

if TYPE_CHECKING:
    from collections.abc import AsyncIterator


class KickWsMessageType(Enum):
    """Normalized WebSocket message types."""

    TEXT = "text"
    CLOSED = "closed"
    ERROR = "error"


@dataclass(frozen=True)
class KickWsMessage:
    """Normalized WebSocket message payload."""

    type: KickWsMessageType
    data: str | None = None


class KickWsClient:
    """Wrapper around the websockets library for the chat feed."""

    def __init__(self) -> None:
        self._ws: ClientConnection | None = None

    @property
    def connected(self) -> bool:
        return self._ws is not None

    async def connect(
        self,
        url: str,
        *,
        ping_interval: int | None = DEFAULT_PING_INTERVAL,
        timeout: float = DEFAULT_CONNECT_TIMEOUT,
    ) -> None:
        """Connect to the feed websocket."""
        self._ws = await connect_websocket(
            url,
            ping_interval=ping_interval,
            timeout=timeout,
        )

    async def close(self) -> None:
        """Close the websocket connection. Safe to call repeatedly."""
        ws, self._ws = self._ws, None
        if ws is not None:
            await ws.close()

    async def send_json(self, payload: dict[str, Any]) -> None:
        """Send a JSON payload to the websocket."""
        if self._ws is None:
            raise KickConnectionError("WebSocket is not connected")
        try:
            await self._ws.send(json.dumps(payload))
        except (ConnectionClosed, WebSocketException) as err:
            raise KickConnectionError("WebSocket send failed") from err

    def __aiter__(self) -> AsyncIterator[KickWsMessage]:
        if self._ws is None:
            raise KickConnectionError("WebSocket is not connected")
        return self._iter_messages()

    async def _iter_messages(self) -> AsyncIterator[KickWsMessage]:
        ws = self._ws
        if ws is None:
            raise KickConnectionError("WebSocket is not connected")

        try:
            async for msg in ws:
                normalized = self._normalize_message(msg)
                if normalized is None:
                    continue
                yield normalized
        except ConnectionClosedOK:
            yield KickWsMessage(type=KickWsMessageType.CLOSED)
        except (OSError, WebSocketException) as err:
            # Includes abnormal closure (ConnectionClosedError)
            yield KickWsMessage(KickWsMessageType.ERROR, str(err))
        else:
            # Normal iteration completion means the peer closed gracefully.
            yield KickWsMessage(type=KickWsMessageType.CLOSED)

    @staticmethod
    def _normalize_message(msg: Any) -> KickWsMessage | None:
        """Normalize raw frames into KickWsMessage."""
        if isinstance(msg, str):
            return KickWsMessage(KickWsMessageType.TEXT, msg)
        if isinstance(msg, (bytes, bytearray)):
            try:
                return KickWsMessage(KickWsMessageType.TEXT, bytes(msg).decode("utf-8"))
            except UnicodeDecodeError:
                return None
        return None
