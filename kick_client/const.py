"""Constants for the Kick.com client."""

from __future__ import annotations

from typing import Final

API_BASE_URL: Final = "https://api.kick.com/public/v1"
PRIVATE_API_BASE_URL: Final = "https://kick.com/api"
OAUTH_AUTHORIZE_URL: Final = "https://id.kick.com/oauth/authorize"
OAUTH_TOKEN_URL: Final = "https://id.kick.com/oauth/token"
OAUTH_REVOKE_URL: Final = "https://id.kick.com/oauth/revoke"

# Pusher realtime feed used by the Kick chat frontend
PUSHER_HOST: Final = "ws-us2.pusher.com"
PUSHER_APP_KEY: Final = "32cbd69e4b950bf97679"
PUSHER_PROTOCOL: Final = 7
PUSHER_CLIENT_VERSION: Final = "8.4.0"

# Seconds before expiry at which an OAuth token is renewed
TOKEN_REFRESH_BUFFER: Final = 300

DEFAULT_CONNECT_TIMEOUT: Final = 15.0
DEFAULT_PING_INTERVAL: Final = 20
DEFAULT_REQUEST_TIMEOUT: Final = 10.0

# Local redirect target for the authorization-code flow
DEFAULT_OAUTH_CALLBACK_PORT: Final = 3000
DEFAULT_AUTHORIZATION_TIMEOUT: Final = 300.0

MAX_CHANNEL_LOOKUP = 50
MAX_SLUG_LENGTH = 25
MAX_BAN_REASON_LENGTH = 100
DEFAULT_SLOW_MODE_INTERVAL = 10
