"""Async client for Kick.com chat and REST APIs."""

__version__ = "0.1.0"

from .auth_guard import AuthGuard, is_authorization_failure
from .client import KickClient
from .config import ClientOptions, KickSettings
from .credentials import (
    CredentialStore,
    LoginCredentials,
    OAuthCredentials,
    SessionCredentials,
    TokenState,
)
from .errors import (
    AuthenticationRequired,
    AuthorizationDenied,
    AuthRetryExhausted,
    ChannelForbidden,
    ChannelNotFound,
    ChannelUnavailable,
    KickClientError,
    KickConnectionError,
    KickHandshakeError,
    KickResponseError,
    KickTimeout,
    RefreshError,
    TransportError,
)
from .events import (
    EVENT_TYPES,
    ChatMessage,
    ClientEvent,
    EventBus,
    EventKind,
    GiftedSubscriptions,
    KickEvent,
    MessageDeleted,
    PinnedMessageCreated,
    PinnedMessageDeleted,
    PollDelete,
    PollUpdate,
    StreamHost,
    Subscription,
    UserBanned,
    UserUnbanned,
)
from .http import HttpChannelMetadataProvider, KickApiClient
from .oauth import (
    AuthorizationRequest,
    KickOAuthClient,
    OAuthCallbackServer,
    PkcePair,
    generate_pkce,
    pkce_challenge,
)
from .models import (
    ChannelMetadata,
    ChannelMetadataProvider,
    ChannelSession,
    LoginProvider,
    LoginResult,
)
from .token_refresh import TokenRefresher, persist_tokens_to_env
from .transport import ChatTransport, DecodeFailure, EnvelopeCodec, TransportState

__all__ = [
    "EVENT_TYPES",
    "AuthGuard",
    "AuthRetryExhausted",
    "AuthenticationRequired",
    "AuthorizationDenied",
    "AuthorizationRequest",
    "ChannelForbidden",
    "ChannelMetadata",
    "ChannelMetadataProvider",
    "ChannelNotFound",
    "ChannelSession",
    "ChannelUnavailable",
    "ChatMessage",
    "ChatTransport",
    "ClientEvent",
    "ClientOptions",
    "CredentialStore",
    "DecodeFailure",
    "EnvelopeCodec",
    "EventBus",
    "EventKind",
    "GiftedSubscriptions",
    "HttpChannelMetadataProvider",
    "KickApiClient",
    "KickClient",
    "KickClientError",
    "KickConnectionError",
    "KickEvent",
    "KickHandshakeError",
    "KickOAuthClient",
    "KickResponseError",
    "KickSettings",
    "KickTimeout",
    "LoginCredentials",
    "LoginProvider",
    "LoginResult",
    "MessageDeleted",
    "OAuthCallbackServer",
    "OAuthCredentials",
    "PkcePair",
    "PinnedMessageCreated",
    "PinnedMessageDeleted",
    "PollDelete",
    "PollUpdate",
    "RefreshError",
    "SessionCredentials",
    "StreamHost",
    "Subscription",
    "TokenRefresher",
    "TokenState",
    "TransportError",
    "TransportState",
    "UserBanned",
    "UserUnbanned",
    "__version__",
    "generate_pkce",
    "is_authorization_failure",
    "pkce_challenge",
]
