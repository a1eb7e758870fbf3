"""Decoder from chat feed frames to domain events.

Feed frames are JSON envelopes of the form
``{"event": "<name>", "data": "<JSON-encoded string>", "channel": ...}``.
Domain event payloads are always JSON-encoded a second time inside ``data``,
so decoding is two-stage: envelope first, payload second.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..events import EVENT_TYPES, KickEvent


class DecodeFailure(Enum):
    """Why a frame did not decode into a domain event."""

    MALFORMED = "malformed"
    UNRECOGNIZED = "unrecognized"


@dataclass(frozen=True, slots=True)
class WireEnvelope:
    """Outer frame of the chat feed.

    ``payload`` is the raw ``data`` field: a JSON string for domain events,
    sometimes an object for protocol control frames.
    """

    event_name: str
    payload: Any
    channel: str | None = None


class EnvelopeCodec:
    """Decodes raw feed frames. Never raises on bad input."""

    def __init__(self, event_types: Mapping[str, type[KickEvent]] = EVENT_TYPES) -> None:
        self._event_types = event_types

    def is_known(self, event_name: str) -> bool:
        return event_name in self._event_types

    def decode(self, raw: str | bytes) -> KickEvent | DecodeFailure:
        """Decode a raw frame into a domain event."""
        envelope = self.decode_envelope(raw)
        if isinstance(envelope, DecodeFailure):
            return envelope
        return self.decode_payload(envelope)

    @staticmethod
    def decode_envelope(raw: str | bytes) -> WireEnvelope | DecodeFailure:
        """Parse the outer JSON envelope."""
        try:
            frame = json.loads(raw)
        except (TypeError, ValueError):
            return DecodeFailure.MALFORMED

        if not isinstance(frame, dict):
            return DecodeFailure.MALFORMED
        event_name = frame.get("event")
        if not isinstance(event_name, str):
            return DecodeFailure.MALFORMED

        channel = frame.get("channel")
        return WireEnvelope(
            event_name=event_name,
            payload=frame.get("data"),
            channel=channel if isinstance(channel, str) else None,
        )

    def decode_payload(self, envelope: WireEnvelope) -> KickEvent | DecodeFailure:
        """Decode the double-encoded payload of a known event."""
        event_type = self._event_types.get(envelope.event_name)
        if event_type is None:
            return DecodeFailure.UNRECOGNIZED

        if not isinstance(envelope.payload, (str, bytes)):
            return DecodeFailure.MALFORMED
        try:
            payload = json.loads(envelope.payload)
        except ValueError:
            return DecodeFailure.MALFORMED

        if not isinstance(payload, dict):
            return DecodeFailure.MALFORMED
        return event_type(data=payload)
