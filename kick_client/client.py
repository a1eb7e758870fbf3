"""High-level client for a single Kick.com channel.

KickClient coordinates the whole session:
- Login with OAuth, browser-session, or username/password credentials
- Channel metadata lookup and the chatroom subscription
- Re-emitting decoded chat events to registered listeners
- Official REST calls routed through AuthGuard (token renewal, 401 retry)
- Session-authenticated moderation calls
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import TYPE_CHECKING, Any, TypeVar

import aiohttp

from .auth_guard import AuthGuard
from .config import ClientOptions, KickSettings
from .credentials import (
    CredentialStore,
    LoginCredentials,
    OAuthCredentials,
    SessionCredentials,
)
from .errors import AuthenticationRequired, KickClientError
from .events import ClientEvent, EventBus, EventKey, KickEvent, Listener
from .http import HttpChannelMetadataProvider, KickApiClient
from .models import ChannelSession
from .token_refresh import TokenRefresher
from .transport.chat import ChatTransport, TransportState

if TYPE_CHECKING:
    from types import TracebackType

    from .models import ChannelMetadataProvider, LoginProvider

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

_RECONNECTABLE_STATES = (
    TransportState.IDLE,
    TransportState.CLOSED,
    TransportState.ERRORED,
)


class KickClient:
    """Client bound to one Kick channel.

    Usage:
        async with KickClient("xqc") as client:
            client.on(EventKind.CHAT_MESSAGE, handle_message)
            await client.login(OAuthCredentials(access_token="..."))
            await client.send_message("hello")
            await client.wait_closed()
    """

    def __init__(
        self,
        channel_slug: str,
        *,
        session: aiohttp.ClientSession | None = None,
        options: ClientOptions | None = None,
        metadata_provider: ChannelMetadataProvider | None = None,
        login_provider: LoginProvider | None = None,
        settings: KickSettings | None = None,
        transport: ChatTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            channel_slug: Channel to connect to
            session: aiohttp session to use; one is created (and closed by
                ``close()``) when omitted
            options: Runtime options
            metadata_provider: Resolves channel metadata; defaults to the
                HTTP channel endpoint
            login_provider: Performs username/password logins
            settings: OAuth settings used when ``login()`` gets no credentials
            transport: Chat transport to use instead of a new one
        """
        self.channel_slug = channel_slug
        self._options = options or ClientOptions()
        self._session = session
        self._owns_session = False
        self._metadata_provider = metadata_provider
        self._login_provider = login_provider
        self._settings = settings

        self._store = CredentialStore(
            refresh_buffer_seconds=self._options.refresh_buffer_seconds
        )
        self._events = EventBus()
        self._channel: ChannelSession | None = None
        self._logged_in = False

        self._api: KickApiClient | None = None
        self._guard: AuthGuard | None = None

        self._transport = transport or ChatTransport(
            url=self._options.feed_url,
            ping_interval=self._options.ping_interval,
            connect_timeout=self._options.connect_timeout,
        )
        self._transport.on_event(self._handle_event)
        self._transport.on_error(self._handle_transport_error)

    async def __aenter__(self) -> KickClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def channel(self) -> ChannelSession | None:
        return self._channel

    @property
    def user(self) -> dict[str, Any] | None:
        """``{id, username, tag}`` of the connected channel, once known."""
        return self._channel.user() if self._channel else None

    @property
    def credentials(self) -> CredentialStore:
        return self._store

    @property
    def events(self) -> EventBus:
        return self._events

    @property
    def is_logged_in(self) -> bool:
        return self._logged_in

    @property
    def transport_state(self) -> TransportState:
        return self._transport.state

    @property
    def api(self) -> KickApiClient:
        if self._api is None:
            self._api = KickApiClient(
                self._http_session(), timeout=self._options.request_timeout
            )
        return self._api

    @property
    def guard(self) -> AuthGuard:
        if self._guard is None:
            refresher = TokenRefresher(
                self._http_session(),
                store=self._store,
                timeout=self._options.request_timeout,
            )
            self._guard = AuthGuard(
                self._store,
                refresher,
                token_update_hook=self._options.on_token_refresh,
                env_file=self._options.env_file,
            )
        return self._guard

    def _metadata(self) -> ChannelMetadataProvider:
        if self._metadata_provider is None:
            self._metadata_provider = HttpChannelMetadataProvider(
                self._http_session(), timeout=self._options.request_timeout
            )
        return self._metadata_provider

    def _http_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    # -------------------------------------------------------------------------
    # Event registration
    # -------------------------------------------------------------------------

    def on(self, key: EventKey, listener: Listener) -> None:
        """Register a listener for a domain event kind or a ClientEvent."""
        self._events.on(key, listener)

    def off(self, key: EventKey, listener: Listener) -> None:
        self._events.off(key, listener)

    def remove_all_listeners(self, key: EventKey | None = None) -> None:
        self._events.remove_all_listeners(key)

    def listener_count(self, key: EventKey) -> int:
        return self._events.listener_count(key)

    def listeners(self, key: EventKey) -> list[Listener]:
        return self._events.listeners(key)

    # -------------------------------------------------------------------------
    # Login and lifecycle
    # -------------------------------------------------------------------------

    async def login(
        self,
        credentials: OAuthCredentials | SessionCredentials | LoginCredentials | None = None,
    ) -> bool:
        """Authenticate, then fetch channel metadata and join the chatroom.

        OAuth credentials default to the KICK_* settings when omitted. The
        channel is initialized once; a second OAuth login only replaces
        the stored tokens.

        Raises:
            ValueError: Session or login credentials are incomplete
            AuthenticationRequired: No OAuth access token could be found
            ChannelUnavailable: Channel metadata could not be fetched
        """
        try:
            if isinstance(credentials, LoginCredentials):
                await self._login_with_password(credentials)
            elif isinstance(credentials, SessionCredentials):
                credentials.validate()
                self._store.set_session(credentials)
                self._logged_in = True
                await self._initialize()
            elif credentials is None or isinstance(credentials, OAuthCredentials):
                await self._login_with_oauth(credentials)
            else:
                raise TypeError("Invalid authentication type")
        except Exception as err:
            _LOGGER.error("[%s] Login failed: %s", self.channel_slug, err)
            raise
        return True

    async def _login_with_password(self, credentials: LoginCredentials) -> None:
        credentials.validate()
        if self._login_provider is None:
            raise KickClientError("Username/password login requires a login provider")

        result = await self._login_provider.perform_login(credentials)
        self._store.set_session(result.session_credentials())
        self._logged_in = result.authenticated
        await self._initialize()

    async def _login_with_oauth(self, credentials: OAuthCredentials | None) -> None:
        _LOGGER.debug("[%s] Using OAuth credentials", self.channel_slug)
        oauth = credentials
        if oauth is None:
            oauth = OAuthCredentials.from_settings(self._settings or KickSettings())
        if oauth is None or not oauth.access_token:
            raise AuthenticationRequired(
                "OAuth access token not found in credentials or environment "
                "(KICK_ACCESS_TOKEN)"
            )

        self._store.set_oauth(oauth)
        if oauth.can_refresh:
            _LOGGER.debug("[%s] Automatic token refresh enabled", self.channel_slug)

        if not self._logged_in:
            self._logged_in = True
            await self._initialize()

    async def _initialize(self) -> None:
        if self._channel is None:
            _LOGGER.debug("[%s] Fetching channel data", self.channel_slug)
            metadata = await self._metadata().fetch_channel_metadata(self.channel_slug)
            self._channel = ChannelSession.from_metadata(self.channel_slug, metadata)

        if self._transport.state in _RECONNECTABLE_STATES:
            await self._connect_chat(self._channel)

    async def _connect_chat(self, channel: ChannelSession) -> None:
        _LOGGER.debug(
            "[%s] Channel data received, establishing WebSocket connection",
            self.channel_slug,
        )
        if await self._transport.connect(channel.chatroom_id):
            _LOGGER.info("[%s] Connected to channel", self.channel_slug)
            await self._events.emit(ClientEvent.READY, self.user)

    async def reconnect(self) -> bool:
        """Re-open the chat feed after it closed or errored.

        Raises:
            KickClientError: If login has not resolved the channel yet
        """
        channel = self._require_channel()
        await self._transport.close()
        await self._connect_chat(channel)
        return self._transport.state is TransportState.SUBSCRIBED

    async def wait_closed(self) -> None:
        """Wait until the chat feed stops."""
        await self._transport.wait_closed()

    async def close(self) -> None:
        """Close the chat feed and any HTTP session this client created."""
        await self._transport.close()
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()

    async def _handle_event(self, event: KickEvent) -> None:
        await self._events.emit(event.kind, event)

    async def _handle_transport_error(self, err: Exception) -> None:
        await self._events.emit(ClientEvent.ERROR, err)

    # -------------------------------------------------------------------------
    # Guards
    # -------------------------------------------------------------------------

    async def _guarded(self, op: Callable[[str], Awaitable[T]]) -> T:
        return await self.guard.call(op)

    def _require_channel(self) -> ChannelSession:
        if self._channel is None:
            raise KickClientError("Channel info not available")
        return self._channel

    def _require_session(self) -> SessionCredentials:
        creds = self._store.session
        if creds is None:
            raise AuthenticationRequired(
                "Private API authentication required. "
                "Please login with credentials or tokens first."
            )
        return creds

    # -------------------------------------------------------------------------
    # Official API
    # -------------------------------------------------------------------------

    async def send_message(
        self, content: str, target_channel: str | None = None
    ) -> dict[str, Any]:
        """Send a chat message to this channel, or to ``target_channel``."""
        self._require_channel()
        broadcaster_user_id: int | None = None
        if target_channel:
            target = await self._metadata().fetch_channel_metadata(target_channel)
            broadcaster_user_id = target.user_id

        return await self._guarded(
            lambda token: self.api.send_chat_message(token, content, broadcaster_user_id)
        )

    async def search_categories(self, query: str, page: int | None = None) -> dict[str, Any]:
        return await self._guarded(
            lambda token: self.api.search_categories(token, query, page)
        )

    async def get_category(self, category_id: int) -> dict[str, Any]:
        return await self._guarded(lambda token: self.api.get_category(token, category_id))

    async def get_channels(
        self,
        *,
        broadcaster_user_ids: Sequence[int] | None = None,
        slugs: Sequence[str] | None = None,
    ) -> dict[str, Any]:
        return await self._guarded(
            lambda token: self.api.get_channels(
                token, broadcaster_user_ids=broadcaster_user_ids, slugs=slugs
            )
        )

    async def update_channel(
        self,
        *,
        category_id: int | None = None,
        custom_tags: Sequence[str] | None = None,
        stream_title: str | None = None,
    ) -> dict[str, Any]:
        return await self._guarded(
            lambda token: self.api.update_channel(
                token,
                category_id=category_id,
                custom_tags=custom_tags,
                stream_title=stream_title,
            )
        )

    async def get_event_subscriptions(self) -> dict[str, Any]:
        return await self._guarded(self.api.get_event_subscriptions)

    async def create_event_subscription(
        self,
        events: Sequence[str],
        *,
        broadcaster_user_id: int | None = None,
        method: str = "webhook",
    ) -> dict[str, Any]:
        return await self._guarded(
            lambda token: self.api.create_event_subscription(
                token, events, broadcaster_user_id=broadcaster_user_id, method=method
            )
        )

    async def delete_event_subscriptions(self, subscription_ids: Sequence[str]) -> None:
        await self._guarded(
            lambda token: self.api.delete_event_subscriptions(token, subscription_ids)
        )

    async def get_livestreams(self, **filters: Any) -> dict[str, Any]:
        """List livestreams. Accepts the filters of KickApiClient.get_livestreams."""
        return await self._guarded(lambda token: self.api.get_livestreams(token, **filters))

    async def get_livestreams_stats(self) -> dict[str, Any]:
        return await self._guarded(self.api.get_livestreams_stats)

    async def ban_user(
        self,
        broadcaster_user_id: int,
        user_id: int,
        duration: int | None = None,
        reason: str | None = None,
    ) -> dict[str, Any]:
        return await self._guarded(
            lambda token: self.api.ban_user(
                token, broadcaster_user_id, user_id, duration=duration, reason=reason
            )
        )

    async def unban_user(self, broadcaster_user_id: int, user_id: int) -> dict[str, Any]:
        return await self._guarded(
            lambda token: self.api.unban_user(token, broadcaster_user_id, user_id)
        )

    async def get_public_key(self) -> dict[str, Any]:
        return await self.api.get_public_key()

    async def introspect_token(self) -> dict[str, Any]:
        return await self._guarded(self.api.introspect_token)

    async def get_users(self, user_ids: Sequence[int]) -> dict[str, Any]:
        return await self._guarded(lambda token: self.api.get_users(token, user_ids))

    # -------------------------------------------------------------------------
    # Session-authenticated API
    # -------------------------------------------------------------------------

    async def delete_message(self, message_id: str) -> dict[str, bool]:
        channel = self._require_channel()
        creds = self._require_session()
        return await self.api.delete_message(creds, channel.chatroom_id, message_id)

    async def slow_mode(self, enabled: bool, duration: int | None = None) -> dict[str, bool]:
        """Turn slow mode on or off; ``duration`` is seconds between messages."""
        channel = self._require_channel()
        creds = self._require_session()
        return await self.api.set_slow_mode(creds, channel.channel_slug, enabled, duration)
