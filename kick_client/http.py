"""HTTP clients for Kick REST endpoints.

KickApiClient wraps the official public API (https://docs.kick.com) and the
unofficial session-authenticated endpoints used by the web frontend. Every
non-success response raises KickResponseError with the HTTP status, so
callers never need to inspect message text to detect a 401.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import aiohttp

from .const import (
    API_BASE_URL,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_SLOW_MODE_INTERVAL,
    MAX_BAN_REASON_LENGTH,
    MAX_CHANNEL_LOOKUP,
    MAX_SLUG_LENGTH,
    PRIVATE_API_BASE_URL,
)
from .credentials import SessionCredentials
from .errors import (
    ChannelForbidden,
    ChannelNotFound,
    ChannelUnavailable,
    KickClientError,
    KickConnectionError,
    KickResponseError,
    KickTimeout,
)
from .models import ChannelMetadata

_LOGGER = logging.getLogger(__name__)

Params = list[tuple[str, str]]


class KickApiClient:
    """Client for the official and session-authenticated Kick endpoints."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        *,
        base_url: str = API_BASE_URL,
        private_base_url: str = PRIVATE_API_BASE_URL,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ) -> None:
        self._session = session
        self._base_url = base_url.rstrip("/")
        self._private_base_url = private_base_url.rstrip("/")
        self._timeout = timeout

    def _url(self, path: str) -> str:
        return f"{self._base_url}{path}"

    @staticmethod
    def _auth_headers(token: str | None) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _request(
        self,
        method: str,
        url: str,
        action: str,
        *,
        headers: dict[str, str],
        params: Params | None = None,
        json: dict[str, Any] | None = None,
    ) -> Any:
        """Perform a request and return the decoded JSON body (None if empty).

        Raises:
            KickResponseError: On any non-2xx status
            KickClientError: If a success response body is not valid JSON
            KickTimeout: If the request times out
            KickConnectionError: If the network request fails
        """
        try:
            async with self._session.request(
                method,
                url,
                headers=headers,
                params=params,
                json=json,
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            ) as resp:
                if not 200 <= resp.status < 300:
                    body = await resp.text()
                    _LOGGER.debug("%s failed with status %s", action, resp.status)
                    raise KickResponseError(
                        resp.status, f"{action} failed: {resp.status} {body}".rstrip()
                    )
                if resp.status == 204:
                    return None
                try:
                    return await resp.json(content_type=None)
                except ValueError as err:
                    raise KickClientError(f"{action} returned invalid JSON") from err
        except TimeoutError as err:
            raise KickTimeout(f"{action} request timed out") from err
        except aiohttp.ClientError as err:
            raise KickConnectionError(f"{action} request failed") from err

    # -------------------------------------------------------------------------
    # Chat
    # -------------------------------------------------------------------------

    async def send_chat_message(
        self, token: str, content: str, broadcaster_user_id: int | None = None
    ) -> dict[str, Any]:
        """Send a chat message.

        With a broadcaster user ID the message is sent as ``user`` to that
        channel, otherwise as ``bot`` to the token owner's channel.
        """
        body: dict[str, Any] = {
            "content": content,
            "type": "user" if broadcaster_user_id else "bot",
        }
        if broadcaster_user_id:
            body["broadcaster_user_id"] = broadcaster_user_id
        headers = self._auth_headers(token) | {"Content-Type": "application/json"}
        return await self._request(
            "POST", self._url("/chat"), "Message send", headers=headers, json=body
        )

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    async def search_categories(
        self, token: str, query: str, page: int | None = None
    ) -> dict[str, Any]:
        """Search categories by name."""
        if not query or not query.strip():
            raise ValueError("Search query is required")
        params: Params = [("q", query)]
        if page is not None:
            params.append(("page", str(page)))
        return await self._request(
            "GET",
            self._url("/categories"),
            "Search categories",
            headers=self._auth_headers(token),
            params=params,
        )

    async def get_category(self, token: str, category_id: int) -> dict[str, Any]:
        if not isinstance(category_id, int) or category_id <= 0:
            raise ValueError("Valid category ID is required")
        return await self._request(
            "GET",
            self._url(f"/categories/{category_id}"),
            "Get category",
            headers=self._auth_headers(token),
        )

    # -------------------------------------------------------------------------
    # Channels
    # -------------------------------------------------------------------------

    async def get_channels(
        self,
        token: str,
        *,
        broadcaster_user_ids: Sequence[int] | None = None,
        slugs: Sequence[str] | None = None,
    ) -> dict[str, Any]:
        """Look up channels by broadcaster user ID or by slug (not both)."""
        if broadcaster_user_ids and slugs:
            raise ValueError("Cannot use both broadcaster_user_id and slug parameters")

        params: Params = []
        if broadcaster_user_ids:
            if len(broadcaster_user_ids) > MAX_CHANNEL_LOOKUP:
                raise ValueError(
                    f"Maximum {MAX_CHANNEL_LOOKUP} broadcaster user IDs allowed"
                )
            params.extend(("broadcaster_user_id", str(i)) for i in broadcaster_user_ids)
        if slugs:
            if len(slugs) > MAX_CHANNEL_LOOKUP:
                raise ValueError(f"Maximum {MAX_CHANNEL_LOOKUP} slugs allowed")
            for slug in slugs:
                if len(slug) > MAX_SLUG_LENGTH:
                    raise ValueError(
                        f"Slug must be {MAX_SLUG_LENGTH} characters or less"
                    )
                params.append(("slug", slug))

        return await self._request(
            "GET",
            self._url("/channels"),
            "Get channels",
            headers=self._auth_headers(token),
            params=params or None,
        )

    async def update_channel(
        self,
        token: str,
        *,
        category_id: int | None = None,
        custom_tags: Sequence[str] | None = None,
        stream_title: str | None = None,
    ) -> dict[str, Any]:
        """Update the token owner's channel metadata."""
        body: dict[str, Any] = {}
        if category_id:
            body["category_id"] = category_id
        if custom_tags:
            body["custom_tags"] = list(custom_tags)
        if stream_title:
            body["stream_title"] = stream_title
        if not body:
            raise ValueError("At least one update option must be provided")

        headers = self._auth_headers(token) | {"Content-Type": "application/json"}
        result = await self._request(
            "PATCH", self._url("/channels"), "Update channel", headers=headers, json=body
        )
        message = result.get("message") if isinstance(result, dict) else None
        return {"success": True, "message": message or "Channel updated successfully"}

    # -------------------------------------------------------------------------
    # Event subscriptions
    # -------------------------------------------------------------------------

    async def get_event_subscriptions(self, token: str) -> dict[str, Any]:
        return await self._request(
            "GET",
            self._url("/events/subscriptions"),
            "Get event subscriptions",
            headers=self._auth_headers(token),
        )

    async def create_event_subscription(
        self,
        token: str,
        events: Sequence[str],
        *,
        broadcaster_user_id: int | None = None,
        method: str = "webhook",
    ) -> dict[str, Any]:
        if not events:
            raise ValueError("Events array is required and cannot be empty")
        body: dict[str, Any] = {"events": list(events), "method": method}
        if broadcaster_user_id is not None:
            body["broadcaster_user_id"] = broadcaster_user_id
        headers = self._auth_headers(token) | {"Content-Type": "application/json"}
        return await self._request(
            "POST",
            self._url("/events/subscriptions"),
            "Create event subscription",
            headers=headers,
            json=body,
        )

    async def delete_event_subscriptions(
        self, token: str, subscription_ids: Sequence[str]
    ) -> None:
        if not subscription_ids:
            raise ValueError("Subscription IDs are required")
        await self._request(
            "DELETE",
            self._url("/events/subscriptions"),
            "Delete event subscriptions",
            headers=self._auth_headers(token),
            params=[("id", sub_id) for sub_id in subscription_ids],
        )

    # -------------------------------------------------------------------------
    # Livestreams
    # -------------------------------------------------------------------------

    async def get_livestreams(
        self,
        token: str,
        *,
        broadcaster_user_ids: Sequence[int] | None = None,
        category_id: int | None = None,
        language: str | None = None,
        limit: int | None = None,
        sort: str | None = None,
    ) -> dict[str, Any]:
        params: Params = []
        if broadcaster_user_ids:
            params.extend(("broadcaster_user_id", str(i)) for i in broadcaster_user_ids)
        if category_id is not None:
            params.append(("category_id", str(category_id)))
        if language:
            params.append(("language", language))
        if limit is not None:
            if not 1 <= limit <= 100:
                raise ValueError("Limit must be between 1 and 100")
            params.append(("limit", str(limit)))
        if sort:
            params.append(("sort", sort))

        return await self._request(
            "GET",
            self._url("/livestreams"),
            "Get livestreams",
            headers=self._auth_headers(token),
            params=params or None,
        )

    async def get_livestreams_stats(self, token: str) -> dict[str, Any]:
        return await self._request(
            "GET",
            self._url("/livestreams/stats"),
            "Get livestreams stats",
            headers=self._auth_headers(token),
        )

    # -------------------------------------------------------------------------
    # Moderation
    # -------------------------------------------------------------------------

    async def ban_user(
        self,
        token: str,
        broadcaster_user_id: int,
        user_id: int,
        *,
        duration: int | None = None,
        reason: str | None = None,
    ) -> dict[str, Any]:
        """Ban a user, or time them out when ``duration`` (minutes) is given."""
        body: dict[str, Any] = {
            "broadcaster_user_id": broadcaster_user_id,
            "user_id": user_id,
        }
        if duration is not None:
            body["duration"] = duration
        if reason:
            if len(reason) > MAX_BAN_REASON_LENGTH:
                raise ValueError(
                    f"Reason must be {MAX_BAN_REASON_LENGTH} characters or less"
                )
            body["reason"] = reason
        headers = self._auth_headers(token) | {"Content-Type": "application/json"}
        return await self._request(
            "POST", self._url("/moderation/bans"), "Ban user", headers=headers, json=body
        )

    async def unban_user(
        self, token: str, broadcaster_user_id: int, user_id: int
    ) -> dict[str, Any]:
        headers = self._auth_headers(token) | {"Content-Type": "application/json"}
        return await self._request(
            "DELETE",
            self._url("/moderation/bans"),
            "Unban user",
            headers=headers,
            json={"broadcaster_user_id": broadcaster_user_id, "user_id": user_id},
        )

    # -------------------------------------------------------------------------
    # Users, tokens, keys
    # -------------------------------------------------------------------------

    async def get_public_key(self) -> dict[str, Any]:
        """Fetch the webhook signature public key. No authentication needed."""
        return await self._request(
            "GET",
            self._url("/public-key"),
            "Get public key",
            headers=self._auth_headers(None),
        )

    async def introspect_token(self, token: str) -> dict[str, Any]:
        return await self._request(
            "POST",
            self._url("/token/introspect"),
            "Token introspect",
            headers=self._auth_headers(token),
        )

    async def get_users(
        self, token: str, user_ids: Sequence[int] | None = None
    ) -> dict[str, Any]:
        params: Params = [("id", str(i)) for i in user_ids or ()]
        return await self._request(
            "GET",
            self._url("/users"),
            "Get users",
            headers=self._auth_headers(token),
            params=params or None,
        )

    # -------------------------------------------------------------------------
    # Session-authenticated endpoints
    # -------------------------------------------------------------------------

    @staticmethod
    def _session_headers(creds: SessionCredentials) -> dict[str, str]:
        return {
            "Accept": "application/json",
            "Authorization": f"Bearer {creds.bearer_token}",
            "X-XSRF-TOKEN": creds.xsrf_token,
            "Cookie": creds.cookies,
        }

    async def delete_message(
        self, creds: SessionCredentials, chatroom_id: int, message_id: str
    ) -> dict[str, bool]:
        await self._request(
            "DELETE",
            f"{self._private_base_url}/v2/chatrooms/{chatroom_id}/messages/{message_id}",
            "Delete message",
            headers=self._session_headers(creds),
        )
        return {"success": True}

    async def set_slow_mode(
        self,
        creds: SessionCredentials,
        channel_slug: str,
        enabled: bool,
        duration: int | None = None,
    ) -> dict[str, bool]:
        """Toggle chat slow mode. ``duration`` is seconds between messages."""
        body: dict[str, Any] = (
            {"slow_mode": True, "message_interval": duration or DEFAULT_SLOW_MODE_INTERVAL}
            if enabled
            else {"slow_mode": False}
        )
        headers = self._session_headers(creds) | {
            "Content-Type": "application/json",
            "Referer": f"https://kick.com/{channel_slug}",
        }
        await self._request(
            "PUT",
            f"{self._private_base_url}/v1/channels/{channel_slug}/chatroom/settings",
            "Slow mode update",
            headers=headers,
            json=body,
        )
        return {"success": True}


class HttpChannelMetadataProvider:
    """Fetches channel metadata from ``/api/v2/channels/<slug>``.

    The endpoint sits behind bot protection and may answer 403; a
    browser-backed provider can be injected into KickClient instead.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        *,
        base_url: str = PRIVATE_API_BASE_URL,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ) -> None:
        self._session = session
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    async def fetch_channel_metadata(self, slug: str) -> ChannelMetadata:
        """Resolve a channel slug.

        Raises:
            ChannelNotFound: The channel does not exist (404)
            ChannelForbidden: The request was refused (403)
            ChannelUnavailable: The response was not channel JSON
            KickResponseError: Any other non-200 status
        """
        url = f"{self._base_url}/v2/channels/{slug}"
        try:
            async with self._session.get(
                url,
                headers={"Accept": "application/json"},
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            ) as resp:
                if resp.status == 404:
                    raise ChannelNotFound(f"Channel '{slug}' does not exist on Kick.com")
                if resp.status == 403:
                    raise ChannelForbidden("Request forbidden")
                if resp.status != 200:
                    raise KickResponseError(
                        resp.status, f"Channel lookup failed: {resp.status}"
                    )
                try:
                    data = await resp.json(content_type=None)
                except ValueError as err:
                    raise ChannelUnavailable(
                        f"Invalid JSON response for channel '{slug}'"
                    ) from err
        except TimeoutError as err:
            raise KickTimeout("Channel lookup timed out") from err
        except aiohttp.ClientError as err:
            raise KickConnectionError("Channel lookup failed") from err

        if not isinstance(data, dict):
            raise ChannelUnavailable(f"Unable to fetch data for channel '{slug}'")
        try:
            return ChannelMetadata.from_channel_payload(data)
        except ValueError as err:
            raise ChannelUnavailable(str(err)) from err
