"""Channel and login models, and the collaborator protocols that produce them."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

from .credentials import SessionCredentials

if TYPE_CHECKING:
    from .credentials import LoginCredentials


@dataclass(frozen=True, slots=True)
class ChannelMetadata:
    """Channel facts returned by a metadata provider."""

    channel_id: int
    chatroom_id: int
    user_id: int
    display_name: str

    @classmethod
    def from_channel_payload(cls, data: dict[str, Any]) -> ChannelMetadata:
        """Map a ``/api/v2/channels/<slug>`` response body.

        Raises:
            ValueError: If a required field is missing.
        """
        try:
            return cls(
                channel_id=int(data["id"]),
                chatroom_id=int(data["chatroom"]["id"]),
                user_id=int(data["user_id"]),
                display_name=str(data["user"]["username"]),
            )
        except (KeyError, TypeError, ValueError) as err:
            raise ValueError(f"Unexpected channel payload: {err}") from err


@dataclass(frozen=True, slots=True)
class ChannelSession:
    """The channel a client is bound to. Immutable once created."""

    channel_slug: str
    channel_id: int
    chatroom_id: int
    user_id: int
    display_name: str

    @classmethod
    def from_metadata(cls, slug: str, metadata: ChannelMetadata) -> ChannelSession:
        return cls(
            channel_slug=slug,
            channel_id=metadata.channel_id,
            chatroom_id=metadata.chatroom_id,
            user_id=metadata.user_id,
            display_name=metadata.display_name,
        )

    def user(self) -> dict[str, Any]:
        """Return the ``{id, username, tag}`` view passed to ready listeners."""
        return {
            "id": self.channel_id,
            "username": self.channel_slug,
            "tag": self.display_name,
        }


@dataclass(frozen=True, slots=True)
class LoginResult:
    """Outcome of an interactive login."""

    bearer_token: str
    xsrf_token: str
    cookies: str
    authenticated: bool

    def session_credentials(self) -> SessionCredentials:
        return SessionCredentials(
            bearer_token=self.bearer_token,
            xsrf_token=self.xsrf_token,
            cookies=self.cookies,
        )


class ChannelMetadataProvider(Protocol):
    """Resolves a channel slug to its metadata.

    Implementations raise ChannelNotFound or ChannelForbidden when the
    channel cannot be fetched.
    """

    async def fetch_channel_metadata(self, slug: str) -> ChannelMetadata: ...


class LoginProvider(Protocol):
    """Performs an interactive username/password login."""

    async def perform_login(self, credentials: LoginCredentials) -> LoginResult: ...
