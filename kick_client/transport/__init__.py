"""Transport layer for the Kick chat feed.

Components:
- ws: WebSocket connection and feed URL
- ws_client: WebSocket message iteration
- codec: Envelope and payload decoding
- chat: Chatroom subscription state machine
"""

from .chat import (
    ChatTransport,
    TransportState,
    build_pong_frame,
    build_subscribe_frame,
    chatroom_channel,
)
from .codec import DecodeFailure, EnvelopeCodec, WireEnvelope
from .ws import build_feed_url, connect_websocket
from .ws_client import KickWsClient, KickWsMessage, KickWsMessageType

__all__ = [
    "ChatTransport",
    "DecodeFailure",
    "EnvelopeCodec",
    "KickWsClient",
    "KickWsMessage",
    "KickWsMessageType",
    "TransportState",
    "WireEnvelope",
    "build_feed_url",
    "build_pong_frame",
    "build_subscribe_frame",
    "chatroom_channel",
    "connect_websocket",
]
