"""Tests for KickWsClient and the websocket connect helper."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch
from urllib.parse import parse_qs, urlsplit

import pytest
from websockets.exceptions import (
    ConnectionClosedError,
    ConnectionClosedOK,
    InvalidURI,
)
from websockets.frames import Close

from kick_client.errors import KickConnectionError, KickHandshakeError, KickTimeout
from kick_client.transport.ws import build_feed_url, connect_websocket
from kick_client.transport.ws_client import (
    KickWsClient,
    KickWsMessage,
    KickWsMessageType,
)

FEED_URL = "wss://feed.example/app/key?protocol=7"


class AsyncIteratorMock:
    """Helper class to create a proper async iterator mock."""

    def __init__(self, items: list, *, raise_on_iter: Exception | None = None):
        self._items = items
        self._index = 0
        self._raise_on_iter = raise_on_iter
        self.close = AsyncMock()
        self.send = AsyncMock()

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self._index >= len(self._items):
            if self._raise_on_iter is not None:
                raise self._raise_on_iter
            raise StopAsyncIteration
        item = self._items[self._index]
        self._index += 1
        return item


async def collect(items: list, *, raise_on_iter: Exception | None = None) -> list:
    """Connect a client to a scripted socket and drain it."""
    mock_ws = AsyncIteratorMock(items, raise_on_iter=raise_on_iter)
    with patch(
        "kick_client.transport.ws_client.connect_websocket",
        return_value=mock_ws,
    ):
        client = KickWsClient()
        await client.connect(FEED_URL)
        return [msg async for msg in client]


class TestBuildFeedUrl:
    """Tests for the feed URL."""

    def test_default_url(self) -> None:
        """Test the default URL targets the public app key."""
        url = build_feed_url()
        parts = urlsplit(url)

        assert parts.scheme == "wss"
        assert parts.netloc == "ws-us2.pusher.com"
        assert parts.path == "/app/32cbd69e4b950bf97679"
        assert parse_qs(parts.query) == {
            "protocol": ["7"],
            "client": ["js"],
            "version": ["8.4.0"],
            "flash": ["false"],
        }

    def test_custom_host(self) -> None:
        """Test host and key can be overridden."""
        url = build_feed_url(host="localhost:6001", app_key="abc", version="1.0")

        assert url.startswith("wss://localhost:6001/app/abc?")
        assert "version=1.0" in url


class TestConnectWebsocket:
    """Tests for connect_websocket() error translation."""

    async def test_connect_success(self) -> None:
        """Test the connection is returned."""
        conn = object()
        with patch(
            "kick_client.transport.ws.websockets.connect",
            AsyncMock(return_value=conn),
        ) as connect:
            result = await connect_websocket(FEED_URL, ping_interval=30, timeout=5)

        assert result is conn
        assert connect.call_args.args == (FEED_URL,)
        assert connect.call_args.kwargs["ping_interval"] == 30

    @pytest.mark.parametrize(
        ("raised", "expected"),
        [
            (TimeoutError(), KickTimeout),
            (InvalidURI("bad://", "not a websocket URI"), KickHandshakeError),
            (OSError("refused"), KickConnectionError),
        ],
    )
    async def test_connect_errors(
        self, raised: Exception, expected: type[Exception]
    ) -> None:
        """Test connection failures are translated."""
        with patch(
            "kick_client.transport.ws.websockets.connect",
            AsyncMock(side_effect=raised),
        ):
            with pytest.raises(expected):
                await connect_websocket(FEED_URL)


class TestKickWsClientConnect:
    """Tests for KickWsClient.connect() and close()."""

    async def test_connect_passes_options(self) -> None:
        """Test connect forwards the URL and options."""
        mock_ws = AsyncMock()
        with patch(
            "kick_client.transport.ws_client.connect_websocket",
            return_value=mock_ws,
        ) as connect:
            client = KickWsClient()
            await client.connect(FEED_URL, ping_interval=10, timeout=3.0)

        connect.assert_called_once_with(FEED_URL, ping_interval=10, timeout=3.0)
        assert client.connected

    async def test_close_idempotent(self) -> None:
        """Test closing twice closes the socket once."""
        mock_ws = AsyncMock()
        with patch(
            "kick_client.transport.ws_client.connect_websocket",
            return_value=mock_ws,
        ):
            client = KickWsClient()
            await client.connect(FEED_URL)
            await client.close()
            await client.close()

        mock_ws.close.assert_awaited_once()
        assert not client.connected

    async def test_close_not_connected(self) -> None:
        """Test close is safe before connecting."""
        await KickWsClient().close()


class TestKickWsClientSendJson:
    """Tests for KickWsClient.send_json()."""

    async def test_send_json_success(self) -> None:
        """Test sending a JSON payload."""
        mock_ws = AsyncMock()
        with patch(
            "kick_client.transport.ws_client.connect_websocket",
            return_value=mock_ws,
        ):
            client = KickWsClient()
            await client.connect(FEED_URL)
            await client.send_json({"event": "pusher:pong", "data": {}})

        mock_ws.send.assert_called_once_with('{"event": "pusher:pong", "data": {}}')

    async def test_send_json_not_connected(self) -> None:
        """Test send_json raises when not connected."""
        client = KickWsClient()
        with pytest.raises(KickConnectionError, match="not connected"):
            await client.send_json({"event": "pusher:ping"})

    async def test_send_json_closed(self) -> None:
        """Test a send on a closed socket is translated."""
        mock_ws = AsyncMock()
        mock_ws.send.side_effect = ConnectionClosedError(None, None)
        with patch(
            "kick_client.transport.ws_client.connect_websocket",
            return_value=mock_ws,
        ):
            client = KickWsClient()
            await client.connect(FEED_URL)
            with pytest.raises(KickConnectionError, match="send failed"):
                await client.send_json({"event": "pusher:pong"})


class TestKickWsClientIteration:
    """Tests for KickWsClient async iteration."""

    def test_iter_not_connected(self) -> None:
        """Test iteration raises when not connected."""
        with pytest.raises(KickConnectionError, match="not connected"):
            aiter(KickWsClient())

    async def test_iter_text_then_closed(self) -> None:
        """Test text frames are yielded, then CLOSED at the end."""
        messages = await collect(["message1", "message2"])

        assert messages == [
            KickWsMessage(KickWsMessageType.TEXT, "message1"),
            KickWsMessage(KickWsMessageType.TEXT, "message2"),
            KickWsMessage(KickWsMessageType.CLOSED),
        ]

    async def test_iter_graceful_close(self) -> None:
        """Test a normal close frame ends iteration with CLOSED."""
        closed = ConnectionClosedOK(Close(1000, ""), Close(1000, ""), rcvd_then_sent=True)

        messages = await collect(["hello"], raise_on_iter=closed)

        assert [m.type for m in messages] == [
            KickWsMessageType.TEXT,
            KickWsMessageType.CLOSED,
        ]

    async def test_iter_abnormal_close(self) -> None:
        """Test an abnormal close ends iteration with ERROR."""
        messages = await collect([], raise_on_iter=ConnectionClosedError(None, None))

        assert len(messages) == 1
        assert messages[0].type == KickWsMessageType.ERROR

    async def test_iter_os_error(self) -> None:
        """Test a socket error ends iteration with ERROR carrying the message."""
        messages = await collect([], raise_on_iter=OSError("reset by peer"))

        assert messages == [KickWsMessage(KickWsMessageType.ERROR, "reset by peer")]

    async def test_iter_decodes_binary(self) -> None:
        """Test UTF-8 binary frames are yielded as text and invalid ones skipped."""
        messages = await collect(["text1", "café".encode(), b"\xff\xfe", "text2"])

        text = [m.data for m in messages if m.type == KickWsMessageType.TEXT]
        assert text == ["text1", "café", "text2"]


class TestKickWsClientNormalization:
    """Tests for KickWsClient message normalization."""

    def test_normalize_string_message(self) -> None:
        """Test normalizing a plain string."""
        result = KickWsClient._normalize_message("hello world")
        assert result == KickWsMessage(KickWsMessageType.TEXT, "hello world")

    def test_normalize_bytearray(self) -> None:
        """Test normalizing a bytearray."""
        result = KickWsClient._normalize_message(bytearray(b"{}"))
        assert result == KickWsMessage(KickWsMessageType.TEXT, "{}")

    def test_normalize_unknown_object(self) -> None:
        """Test unknown frame objects are skipped."""
        assert KickWsClient._normalize_message(object()) is None
