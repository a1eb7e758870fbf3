"""Realtime chat transport for a single Kick chatroom.

State machine:

    IDLE -> CONNECTING -> OPEN -> SUBSCRIBED -> CLOSED
    any non-IDLE state -> ERRORED on transport failure

The chatroom channel is public, so the subscribe frame carries an empty
auth field. Frames are decoded in arrival order and handed to the event
callback one at a time. Frames that fail to decode are logged and dropped.
There is no automatic reconnection.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import json
import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

from ..const import DEFAULT_CONNECT_TIMEOUT, DEFAULT_PING_INTERVAL
from ..errors import KickClientError, TransportError
from ..events import KickEvent
from .codec import DecodeFailure, EnvelopeCodec, WireEnvelope
from .ws import build_feed_url
from .ws_client import KickWsClient, KickWsMessageType

_LOGGER = logging.getLogger(__name__)

_CONTROL_PREFIXES = ("pusher:", "pusher_internal:")


class TransportState(Enum):
    """Connection states of a ChatTransport."""

    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    SUBSCRIBED = "subscribed"
    CLOSED = "closed"
    ERRORED = "errored"


def chatroom_channel(chatroom_id: int) -> str:
    """Return the Pusher channel name for a chatroom."""
    return f"chatrooms.{chatroom_id}.v2"


def build_subscribe_frame(chatroom_id: int) -> dict[str, Any]:
    """Build the subscribe control frame for a chatroom channel."""
    return {
        "event": "pusher:subscribe",
        "data": {"auth": "", "channel": chatroom_channel(chatroom_id)},
    }


def build_pong_frame() -> dict[str, Any]:
    """Build the reply to a ``pusher:ping`` frame."""
    return {"event": "pusher:pong", "data": {}}


def _control_data(payload: Any) -> dict[str, Any]:
    """Control frame data may arrive as an object or a JSON string."""
    if isinstance(payload, dict):
        return payload
    if isinstance(payload, str):
        try:
            decoded = json.loads(payload)
        except ValueError:
            return {}
        if isinstance(decoded, dict):
            return decoded
    return {}


EventCallback = Callable[[KickEvent], Awaitable[None] | None]
ErrorCallback = Callable[[Exception], Awaitable[None] | None]
StateCallback = Callable[[TransportState], None]


class ChatTransport:
    """Owns one WebSocket connection to the chat feed.

    Usage:
        transport = ChatTransport()
        transport.on_event(handle_event)
        transport.on_error(handle_error)
        await transport.connect(67890)
        ...
        await transport.close()
    """

    def __init__(
        self,
        *,
        url: str | None = None,
        codec: EnvelopeCodec | None = None,
        ping_interval: int | None = DEFAULT_PING_INTERVAL,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
    ) -> None:
        self._url = url or build_feed_url()
        self._codec = codec or EnvelopeCodec()
        self._ping_interval = ping_interval
        self._connect_timeout = connect_timeout

        self._ws: KickWsClient | None = None
        self._state = TransportState.IDLE
        self._chatroom_id: int | None = None
        self._listen_task: asyncio.Task[None] | None = None
        self._attempt = 0

        self._event_callback: EventCallback | None = None
        self._error_callback: ErrorCallback | None = None
        self._state_callback: StateCallback | None = None

    @property
    def state(self) -> TransportState:
        return self._state

    @property
    def chatroom_id(self) -> int | None:
        return self._chatroom_id

    @property
    def url(self) -> str:
        return self._url

    # -------------------------------------------------------------------------
    # Callbacks
    # -------------------------------------------------------------------------

    def on_event(self, callback: EventCallback) -> None:
        """Register the callback receiving decoded domain events."""
        self._event_callback = callback

    def on_error(self, callback: ErrorCallback) -> None:
        """Register the callback receiving transport errors."""
        self._error_callback = callback

    def on_state_changed(self, callback: StateCallback) -> None:
        """Register the callback receiving state transitions."""
        self._state_callback = callback

    # -------------------------------------------------------------------------
    # Connection management
    # -------------------------------------------------------------------------

    async def connect(self, chatroom_id: int) -> bool:
        """Open the feed and subscribe to a chatroom.

        Connection failures are reported through the error callback rather
        than raised.

        Returns:
            True once subscribed, False if the connection failed or close()
            was called before the subscription completed.

        Raises:
            KickClientError: If the transport is already connecting or connected.
        """
        if self._state in (
            TransportState.CONNECTING,
            TransportState.OPEN,
            TransportState.SUBSCRIBED,
        ):
            raise KickClientError(f"Transport is already {self._state.value}")

        self._attempt += 1
        attempt = self._attempt
        self._chatroom_id = chatroom_id
        self._set_state(TransportState.CONNECTING)
        _LOGGER.info("[%s] Connecting to %s", chatroom_id, self._url)

        ws_client = KickWsClient()
        try:
            await ws_client.connect(
                self._url,
                ping_interval=self._ping_interval,
                timeout=self._connect_timeout,
            )
        except KickClientError as err:
            if attempt != self._attempt:
                return False
            _LOGGER.error("[%s] Connection failed: %s", chatroom_id, err)
            await self._fail(err)
            return False

        if attempt != self._attempt:
            _LOGGER.debug("[%s] Closed while connecting, dropping socket", chatroom_id)
            await self._close_socket(ws_client)
            return False

        self._ws = ws_client
        self._set_state(TransportState.OPEN)

        try:
            await ws_client.send_json(build_subscribe_frame(chatroom_id))
        except KickClientError as err:
            if attempt != self._attempt:
                return False
            _LOGGER.error("[%s] Subscribe failed: %s", chatroom_id, err)
            await self._discard_socket()
            await self._fail(err)
            return False

        # close() already discarded the socket
        if attempt != self._attempt:
            return False

        self._set_state(TransportState.SUBSCRIBED)
        _LOGGER.debug("[%s] Subscribed to %s", chatroom_id, chatroom_channel(chatroom_id))

        self._listen_task = asyncio.create_task(self._listen(ws_client))
        return True

    async def close(self) -> None:
        """Close the connection. A no-op when idle or already closed."""
        if self._state in (TransportState.IDLE, TransportState.CLOSED):
            return

        _LOGGER.info("[%s] Closing chat transport", self._chatroom_id)
        self._attempt += 1
        task, self._listen_task = self._listen_task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        await self._discard_socket()
        self._set_state(TransportState.CLOSED)

    async def wait_closed(self) -> None:
        """Wait until the listener stops (peer close, error, or close())."""
        task = self._listen_task
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await asyncio.shield(task)

    # -------------------------------------------------------------------------
    # Internal: state machine
    # -------------------------------------------------------------------------

    def _set_state(self, state: TransportState) -> None:
        if self._state != state:
            _LOGGER.debug(
                "[%s] State: %s → %s",
                self._chatroom_id,
                self._state.value,
                state.value,
            )
            self._state = state
            if self._state_callback:
                self._state_callback(state)

    async def _fail(self, err: Exception) -> None:
        self._set_state(TransportState.ERRORED)
        await self._report_error(err)

    async def _discard_socket(self) -> None:
        ws, self._ws = self._ws, None
        if ws is not None:
            await self._close_socket(ws)

    async def _close_socket(self, ws: KickWsClient) -> None:
        try:
            await asyncio.wait_for(ws.close(), timeout=2.0)
        except TimeoutError:
            _LOGGER.warning("[%s] WebSocket close timed out", self._chatroom_id)

    # -------------------------------------------------------------------------
    # Internal: message listener
    # -------------------------------------------------------------------------

    async def _listen(self, ws_client: KickWsClient) -> None:
        message_count = 0
        try:
            async for msg in ws_client:
                if msg.type is KickWsMessageType.TEXT and msg.data is not None:
                    message_count += 1
                    await self._handle_frame(msg.data)
                elif msg.type is KickWsMessageType.CLOSED:
                    _LOGGER.info(
                        "[%s] WebSocket closed by server (%d frames)",
                        self._chatroom_id,
                        message_count,
                    )
                    await self._discard_socket()
                    self._set_state(TransportState.CLOSED)
                    return
                elif msg.type is KickWsMessageType.ERROR:
                    _LOGGER.error("[%s] WebSocket error: %s", self._chatroom_id, msg.data)
                    await self._discard_socket()
                    await self._fail(TransportError(msg.data or "WebSocket error"))
                    return
        except asyncio.CancelledError:
            _LOGGER.debug(
                "[%s] Listener cancelled (%d frames)", self._chatroom_id, message_count
            )
            raise
        except KickClientError as err:
            _LOGGER.warning("[%s] Client error: %s", self._chatroom_id, err)
            await self._discard_socket()
            await self._fail(err)

    async def _handle_frame(self, raw: str) -> None:
        envelope = self._codec.decode_envelope(raw)
        if isinstance(envelope, DecodeFailure):
            _LOGGER.warning("[%s] Dropping malformed frame", self._chatroom_id)
            return

        if envelope.event_name.startswith(_CONTROL_PREFIXES):
            await self._handle_control(envelope)
            return

        event = self._codec.decode_payload(envelope)
        if event is DecodeFailure.UNRECOGNIZED:
            _LOGGER.debug("[%s] Unknown event type: %s", self._chatroom_id, envelope.event_name)
            return
        if event is DecodeFailure.MALFORMED:
            _LOGGER.warning(
                "[%s] Dropping malformed %s payload",
                self._chatroom_id,
                envelope.event_name,
            )
            return

        await self._dispatch(event)

    async def _handle_control(self, envelope: WireEnvelope) -> None:
        name = envelope.event_name
        if name == "pusher:ping":
            if self._ws is not None:
                await self._ws.send_json(build_pong_frame())
        elif name == "pusher:connection_established":
            data = _control_data(envelope.payload)
            _LOGGER.debug(
                "[%s] Connection established (socket %s)",
                self._chatroom_id,
                data.get("socket_id"),
            )
        elif name == "pusher_internal:subscription_succeeded":
            _LOGGER.debug("[%s] Subscription confirmed: %s", self._chatroom_id, envelope.channel)
        elif name == "pusher:error":
            data = _control_data(envelope.payload)
            message = data.get("message") or "Realtime feed error"
            _LOGGER.error(
                "[%s] Feed error %s: %s", self._chatroom_id, data.get("code"), message
            )
            await self._report_error(TransportError(message))
        else:
            _LOGGER.debug("[%s] Ignoring control frame %s", self._chatroom_id, name)

    async def _dispatch(self, event: KickEvent) -> None:
        if self._event_callback is None:
            return
        try:
            result = self._event_callback(event)
            if inspect.isawaitable(result):
                await result
        except Exception as err:
            _LOGGER.exception(
                "[%s] Event callback error for %s: %s",
                self._chatroom_id,
                event.kind.value,
                err,
            )

    async def _report_error(self, err: Exception) -> None:
        if self._error_callback is None:
            return
        try:
            result = self._error_callback(err)
            if inspect.isawaitable(result):
                await result
        except Exception as cb_err:
            _LOGGER.exception("[%s] Error callback failed: %s", self._chatroom_id, cb_err)
