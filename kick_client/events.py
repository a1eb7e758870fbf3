"""Domain events decoded from the chat feed and their publish/subscribe bus."""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, ClassVar, Final, TypeVar

_LOGGER = logging.getLogger(__name__)


class EventKind(Enum):
    """Closed set of domain event kinds delivered to application code."""

    CHAT_MESSAGE = "ChatMessage"
    SUBSCRIPTION = "Subscription"
    GIFTED_SUBSCRIPTIONS = "GiftedSubscriptions"
    STREAM_HOST = "StreamHost"
    MESSAGE_DELETED = "MessageDeleted"
    USER_BANNED = "UserBanned"
    USER_UNBANNED = "UserUnbanned"
    PINNED_MESSAGE_CREATED = "PinnedMessageCreated"
    PINNED_MESSAGE_DELETED = "PinnedMessageDeleted"
    POLL_UPDATE = "PollUpdate"
    POLL_DELETE = "PollDelete"


class ClientEvent(Enum):
    """Lifecycle events emitted by the client alongside domain events."""

    READY = "ready"
    ERROR = "error"


@dataclass(frozen=True)
class KickEvent:
    """Base for decoded domain events. ``data`` is the decoded payload."""

    kind: ClassVar[EventKind]

    data: dict[str, Any]


@dataclass(frozen=True)
class ChatMessage(KickEvent):
    kind: ClassVar[EventKind] = EventKind.CHAT_MESSAGE

    @property
    def id(self) -> str | None:
        return self.data.get("id")

    @property
    def content(self) -> str | None:
        return self.data.get("content")

    @property
    def sender_username(self) -> str | None:
        sender = self.data.get("sender")
        if isinstance(sender, dict):
            return sender.get("username")
        return None


@dataclass(frozen=True)
class Subscription(KickEvent):
    kind: ClassVar[EventKind] = EventKind.SUBSCRIPTION


@dataclass(frozen=True)
class GiftedSubscriptions(KickEvent):
    kind: ClassVar[EventKind] = EventKind.GIFTED_SUBSCRIPTIONS

    @property
    def gifter_username(self) -> str | None:
        return self.data.get("gifter_username")

    @property
    def gifted_usernames(self) -> list[str]:
        return list(self.data.get("gifted_usernames") or [])


@dataclass(frozen=True)
class StreamHost(KickEvent):
    kind: ClassVar[EventKind] = EventKind.STREAM_HOST


@dataclass(frozen=True)
class MessageDeleted(KickEvent):
    kind: ClassVar[EventKind] = EventKind.MESSAGE_DELETED


@dataclass(frozen=True)
class UserBanned(KickEvent):
    kind: ClassVar[EventKind] = EventKind.USER_BANNED


@dataclass(frozen=True)
class UserUnbanned(KickEvent):
    kind: ClassVar[EventKind] = EventKind.USER_UNBANNED


@dataclass(frozen=True)
class PinnedMessageCreated(KickEvent):
    kind: ClassVar[EventKind] = EventKind.PINNED_MESSAGE_CREATED


@dataclass(frozen=True)
class PinnedMessageDeleted(KickEvent):
    kind: ClassVar[EventKind] = EventKind.PINNED_MESSAGE_DELETED


@dataclass(frozen=True)
class PollUpdate(KickEvent):
    kind: ClassVar[EventKind] = EventKind.POLL_UPDATE


@dataclass(frozen=True)
class PollDelete(KickEvent):
    kind: ClassVar[EventKind] = EventKind.POLL_DELETE


# Wire event name -> domain event type
EVENT_TYPES: Final[Mapping[str, type[KickEvent]]] = MappingProxyType(
    {
        "App\\Events\\ChatMessageEvent": ChatMessage,
        "App\\Events\\SubscriptionEvent": Subscription,
        "App\\Events\\GiftedSubscriptionsEvent": GiftedSubscriptions,
        "App\\Events\\StreamHostEvent": StreamHost,
        "App\\Events\\MessageDeletedEvent": MessageDeleted,
        "App\\Events\\UserBannedEvent": UserBanned,
        "App\\Events\\UserUnbannedEvent": UserUnbanned,
        "App\\Events\\PinnedMessageCreatedEvent": PinnedMessageCreated,
        "App\\Events\\PinnedMessageDeletedEvent": PinnedMessageDeleted,
        "App\\Events\\PollUpdateEvent": PollUpdate,
        "App\\Events\\PollDeleteEvent": PollDelete,
    }
)


def _check_event_table() -> None:
    """Every EventKind must map from exactly one wire name."""
    kinds = [event_type.kind for event_type in EVENT_TYPES.values()]
    missing = set(EventKind) - set(kinds)
    if missing or len(kinds) != len(set(kinds)):
        raise RuntimeError(
            f"Event table out of sync with EventKind (missing: {sorted(k.value for k in missing)})"
        )


_check_event_table()


EventKey = EventKind | ClientEvent
Listener = Callable[[Any], Awaitable[None] | None]
E = TypeVar("E", bound=KickEvent)


class EventBus:
    """Publish/subscribe registry keyed by EventKind and ClientEvent.

    Listeners run in registration order. Coroutine listeners are awaited
    before the next listener runs, so delivery order matches emit order.
    """

    def __init__(self) -> None:
        self._listeners: dict[EventKey, list[Listener]] = {}

    def on(self, key: EventKey, listener: Listener) -> None:
        """Register a listener."""
        self._listeners.setdefault(key, []).append(listener)

    def on_event(
        self, event_type: type[E], listener: Callable[[E], Awaitable[None] | None]
    ) -> None:
        """Register a listener for one domain event type."""
        self.on(event_type.kind, listener)

    def off(self, key: EventKey, listener: Listener) -> None:
        """Remove a listener. Unknown listeners are ignored."""
        listeners = self._listeners.get(key)
        if listeners and listener in listeners:
            listeners.remove(listener)

    def remove_all_listeners(self, key: EventKey | None = None) -> None:
        """Remove every listener for ``key``, or for all keys."""
        if key is None:
            self._listeners.clear()
        else:
            self._listeners.pop(key, None)

    def listener_count(self, key: EventKey) -> int:
        return len(self._listeners.get(key, ()))

    def listeners(self, key: EventKey) -> list[Listener]:
        return list(self._listeners.get(key, ()))

    async def emit(self, key: EventKey, payload: Any) -> None:
        """Deliver ``payload`` to every listener registered for ``key``."""
        for listener in self.listeners(key):
            try:
                result = listener(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception as err:
                _LOGGER.exception("Listener for %s failed: %s", key.value, err)
