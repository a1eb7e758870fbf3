"""Client error types for Kick.com interactions."""

from __future__ import annotations


class KickClientError(Exception):
    """Base error for Kick client failures."""


class KickTimeout(KickClientError):
    """Timeout while communicating with Kick."""


class KickConnectionError(KickClientError):
    """Network connection to Kick failed."""


class KickHandshakeError(KickClientError):
    """WebSocket handshake with the realtime feed failed."""


class KickResponseError(KickClientError):
    """Non-success HTTP response from a Kick endpoint."""

    def __init__(self, status: int, message: str) -> None:
        super().__init__(message)
        self.status = status


class AuthenticationRequired(KickClientError):
    """An operation needs credentials that have not been provided."""


class RefreshError(KickClientError):
    """The OAuth refresh-token exchange was rejected."""

    def __init__(self, status: int, body: str) -> None:
        super().__init__(f"Token refresh failed: {status} {body}")
        self.status = status
        self.body = body


class AuthRetryExhausted(KickClientError):
    """A guarded call still failed after one token renewal and retry."""

    def __init__(self, last_error: BaseException) -> None:
        super().__init__(f"Request failed after token refresh: {last_error}")
        self.last_error = last_error


class ChannelUnavailable(KickClientError):
    """Channel metadata could not be fetched."""


class ChannelNotFound(ChannelUnavailable):
    """The channel does not exist."""


class ChannelForbidden(ChannelUnavailable):
    """The channel metadata request was forbidden."""


class TransportError(KickClientError):
    """Error reported by the realtime chat transport."""


class AuthorizationDenied(KickClientError):
    """The user or provider refused an OAuth authorization request."""

    def __init__(self, error: str, description: str | None = None) -> None:
        super().__init__(f"Authorization denied: {error} ({description or 'no description'})")
        self.error = error
        self.description = description
