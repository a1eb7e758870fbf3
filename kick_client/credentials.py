"""Credential models and the in-memory credential store.

Two independent trust domains are tracked:
- OAuth credentials for the official public API (bearer access token with
  optional refresh material and expiry bookkeeping)
- Session credentials captured from an authenticated browser session for the
  unofficial endpoints (bearer token, XSRF token, cookie header)

The store performs no I/O. Token renewal is applied through
``CredentialStore.apply_refreshed`` by the token refresher only.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any, NamedTuple

from .const import TOKEN_REFRESH_BUFFER

if TYPE_CHECKING:
    from .config import KickSettings

_LOGGER = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Return the current timezone-aware UTC time."""
    return datetime.now(tz=UTC)


@dataclass(frozen=True, slots=True)
class TokenState:
    """OAuth token material returned by a token exchange."""

    access_token: str
    refresh_token: str | None = None
    expires_in: int | None = None
    issued_at: datetime | None = None
    token_type: str = "Bearer"
    scope: str | None = None

    @property
    def expires_at(self) -> datetime | None:
        """Instant at which the access token expires, if known."""
        if self.issued_at is None or self.expires_in is None:
            return None
        return self.issued_at + timedelta(seconds=self.expires_in)

    def needs_refresh(
        self, now: datetime, buffer_seconds: int = TOKEN_REFRESH_BUFFER
    ) -> bool:
        """Return True once ``now`` is within the buffer before expiry."""
        expires_at = self.expires_at
        if expires_at is None:
            return False
        return now >= expires_at - timedelta(seconds=buffer_seconds)

    @classmethod
    def from_response(cls, data: Any, issued_at: datetime) -> TokenState:
        """Build a TokenState from an OAuth token endpoint response body.

        Raises:
            ValueError: If the body carries no access token.
        """
        if not isinstance(data, dict):
            raise ValueError("Token response is not a JSON object")
        access_token = data.get("access_token")
        if not access_token or not isinstance(access_token, str):
            raise ValueError("Token response is missing access_token")
        expires_in = data.get("expires_in")
        return cls(
            access_token=access_token,
            refresh_token=data.get("refresh_token") or None,
            expires_in=int(expires_in) if expires_in is not None else None,
            issued_at=issued_at,
            token_type=data.get("token_type") or "Bearer",
            scope=data.get("scope"),
        )


@dataclass(frozen=True, slots=True)
class OAuthCredentials:
    """Credentials for the official OAuth-protected API."""

    access_token: str
    refresh_token: str | None = None
    expires_in: int | None = None
    issued_at: datetime | None = None
    client_id: str | None = None
    client_secret: str | None = None

    @property
    def can_refresh(self) -> bool:
        """True when the refresh-token exchange has everything it needs."""
        return bool(self.client_id and self.client_secret and self.refresh_token)

    def token_state(self) -> TokenState:
        """Return the token portion of these credentials."""
        return TokenState(
            access_token=self.access_token,
            refresh_token=self.refresh_token,
            expires_in=self.expires_in,
            issued_at=self.issued_at,
        )

    @classmethod
    def from_settings(cls, settings: KickSettings) -> OAuthCredentials | None:
        """Build OAuth credentials from KICK_* settings, or None without a token."""
        if not settings.access_token:
            return None
        issued_at = settings.token_updated
        if issued_at is not None and issued_at.tzinfo is None:
            issued_at = issued_at.replace(tzinfo=UTC)
        return cls(
            access_token=settings.access_token,
            refresh_token=settings.refresh_token,
            expires_in=settings.expires_in,
            issued_at=issued_at,
            client_id=settings.client_id,
            client_secret=settings.client_secret,
        )


@dataclass(frozen=True, slots=True)
class SessionCredentials:
    """Browser-session credentials for the unofficial endpoints."""

    bearer_token: str
    xsrf_token: str
    cookies: str

    def validate(self) -> None:
        """Raise ValueError unless every field is a non-empty string."""
        for name in ("bearer_token", "xsrf_token", "cookies"):
            value = getattr(self, name)
            if not value or not isinstance(value, str):
                raise ValueError(f"{name} is required and must be a string")


@dataclass(frozen=True, slots=True)
class LoginCredentials:
    """Username/password login performed by a login provider."""

    username: str
    password: str
    otp_secret: str

    def validate(self) -> None:
        """Raise ValueError unless every field is a non-empty string."""
        for name, label in (
            ("username", "Username"),
            ("password", "Password"),
            ("otp_secret", "OTP secret"),
        ):
            value = getattr(self, name)
            if not value or not isinstance(value, str):
                raise ValueError(f"{label} is required and must be a string")


Credentials = OAuthCredentials | SessionCredentials


class RefreshMaterial(NamedTuple):
    """Inputs for a refresh-token exchange."""

    client_id: str
    client_secret: str
    refresh_token: str


class CredentialStore:
    """Holds the current OAuth and session credentials."""

    def __init__(
        self,
        *,
        refresh_buffer_seconds: int = TOKEN_REFRESH_BUFFER,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._oauth: OAuthCredentials | None = None
        self._session: SessionCredentials | None = None
        self._refresh_buffer_seconds = refresh_buffer_seconds
        self._clock = clock

    @property
    def oauth(self) -> OAuthCredentials | None:
        return self._oauth

    @property
    def session(self) -> SessionCredentials | None:
        return self._session

    def set_oauth(self, creds: OAuthCredentials) -> None:
        """Replace the OAuth credentials."""
        self._oauth = creds

    def set_session(self, creds: SessionCredentials) -> None:
        """Replace the session credentials."""
        self._session = creds

    def current_oauth_token(self) -> str | None:
        """Return the current OAuth access token, if any."""
        if self._oauth is None:
            return None
        return self._oauth.access_token

    def refresh_material(self) -> RefreshMaterial | None:
        """Return refresh-exchange inputs, or None when any is missing."""
        oauth = self._oauth
        if oauth is None or not oauth.can_refresh:
            return None
        # can_refresh guarantees all three are set
        return RefreshMaterial(
            oauth.client_id,  # type: ignore[arg-type]
            oauth.client_secret,  # type: ignore[arg-type]
            oauth.refresh_token,  # type: ignore[arg-type]
        )

    def is_expiring_soon(self, now: datetime | None = None) -> bool:
        """Return True if the OAuth token is expired or within the refresh buffer.

        Tokens without expiry bookkeeping never count as expiring.
        """
        if self._oauth is None:
            return False
        return self._oauth.token_state().needs_refresh(
            now if now is not None else self._clock(),
            self._refresh_buffer_seconds,
        )

    def apply_refreshed(self, state: TokenState) -> bool:
        """Install renewed token material.

        The access token, expiry fields, and (when the renewal supplied one)
        the refresh token are replaced together. A renewal issued before the
        currently held token is ignored.

        Returns:
            True if the store was updated.
        """
        current = self._oauth
        if current is None:
            _LOGGER.warning("Refreshed token ignored: no OAuth credentials set")
            return False

        if (
            current.issued_at is not None
            and state.issued_at is not None
            and state.issued_at < current.issued_at
        ):
            _LOGGER.warning(
                "Refreshed token ignored: issued %s before current token (%s)",
                state.issued_at.isoformat(),
                current.issued_at.isoformat(),
            )
            return False

        self._oauth = replace(
            current,
            access_token=state.access_token,
            expires_in=state.expires_in,
            issued_at=state.issued_at,
            refresh_token=state.refresh_token or current.refresh_token,
        )
        return True
