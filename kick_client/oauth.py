"""OAuth token acquisition for the official Kick API.

Covers the grants that produce a first token pair: the user authorization
code flow with PKCE (S256) and the app-only client-credentials flow. Tokens
can also be revoked. Renewal goes through TokenRefresher so it keeps its
single-flight behaviour.

Typical interactive use::

    async with OAuthCallbackServer() as server:
        oauth = KickOAuthClient(session, client_id, client_secret, scopes=["chat:write"])
        state = await oauth.authorize_user(server, open_url=webbrowser.open)
"""

from __future__ import annotations

import asyncio
import base64
import hashlib
import html
import inspect
import logging
import secrets
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any
from urllib.parse import urlencode

import aiohttp
from aiohttp import web

from .const import (
    DEFAULT_AUTHORIZATION_TIMEOUT,
    DEFAULT_OAUTH_CALLBACK_PORT,
    DEFAULT_REQUEST_TIMEOUT,
    OAUTH_AUTHORIZE_URL,
    OAUTH_REVOKE_URL,
    OAUTH_TOKEN_URL,
)
from .credentials import TokenState, utcnow
from .errors import (
    AuthorizationDenied,
    KickClientError,
    KickConnectionError,
    KickResponseError,
    KickTimeout,
)
from .token_refresh import TokenRefresher

if TYPE_CHECKING:
    from datetime import datetime

_LOGGER = logging.getLogger(__name__)

CALLBACK_PATH = "/callback"

_FORM_HEADERS = {
    "Content-Type": "application/x-www-form-urlencoded",
    "Accept": "application/json",
}

_PAGE = "<html><body><h1>{title}</h1><p>{detail}</p><p>You can close this window.</p></body></html>"


def local_redirect_uri(port: int = DEFAULT_OAUTH_CALLBACK_PORT) -> str:
    return f"http://localhost:{port}{CALLBACK_PATH}"


# -----------------------------------------------------------------------------
# PKCE
# -----------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class PkcePair:
    """PKCE code verifier and its S256 challenge."""

    verifier: str
    challenge: str


def pkce_challenge(verifier: str) -> str:
    """S256 challenge: unpadded base64url of the verifier's SHA-256 digest."""
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def generate_pkce() -> PkcePair:
    verifier = secrets.token_urlsafe(32)
    return PkcePair(verifier=verifier, challenge=pkce_challenge(verifier))


def generate_state() -> str:
    """Random value binding a callback to the request that started it."""
    return secrets.token_hex(16)


@dataclass(frozen=True, slots=True)
class AuthorizationRequest:
    """A pending user authorization: where to send the user and what to check."""

    url: str
    state: str
    pkce: PkcePair


# -----------------------------------------------------------------------------
# Token endpoint client
# -----------------------------------------------------------------------------


class KickOAuthClient:
    """Obtains and revokes OAuth tokens for one registered Kick app."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        client_id: str,
        client_secret: str,
        *,
        redirect_uri: str | None = None,
        scopes: Sequence[str] = (),
        authorize_url: str = OAUTH_AUTHORIZE_URL,
        token_url: str = OAUTH_TOKEN_URL,
        revoke_url: str = OAUTH_REVOKE_URL,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session = session
        self._client_id = client_id
        self._client_secret = client_secret
        self._redirect_uri = redirect_uri or local_redirect_uri()
        self._scopes = list(scopes)
        self._authorize_url = authorize_url
        self._token_url = token_url
        self._revoke_url = revoke_url
        self._timeout = timeout
        self._clock = clock
        self._refresher = TokenRefresher(
            session, token_url=token_url, timeout=timeout, clock=clock
        )

    @property
    def redirect_uri(self) -> str:
        return self._redirect_uri

    def authorization_request(self) -> AuthorizationRequest:
        """Build the URL that asks the user to authorize this app.

        A fresh state value and PKCE pair are generated for every request.
        """
        state = generate_state()
        pkce = generate_pkce()
        params = {
            "client_id": self._client_id,
            "response_type": "code",
            "redirect_uri": self._redirect_uri,
            "state": state,
            "scope": " ".join(self._scopes),
            "code_challenge": pkce.challenge,
            "code_challenge_method": "S256",
        }
        return AuthorizationRequest(
            url=f"{self._authorize_url}?{urlencode(params)}", state=state, pkce=pkce
        )

    async def exchange_code(self, code: str, code_verifier: str) -> TokenState:
        """Exchange an authorization code for a user token pair.

        Raises:
            KickResponseError: If the token endpoint rejects the code
            KickTimeout: If the request times out
            KickConnectionError: If the network request fails
        """
        return await self._request_token(
            "Token exchange",
            {
                "grant_type": "authorization_code",
                "client_id": self._client_id,
                "client_secret": self._client_secret,
                "code": code,
                "redirect_uri": self._redirect_uri,
                "code_verifier": code_verifier,
            },
        )

    async def get_app_access_token(self) -> TokenState:
        """Obtain an app access token via the client-credentials grant.

        App tokens carry no refresh token; request a new one on expiry.
        """
        form = {
            "grant_type": "client_credentials",
            "client_id": self._client_id,
            "client_secret": self._client_secret,
        }
        if self._scopes:
            form["scope"] = " ".join(self._scopes)
        return await self._request_token("App token request", form)

    async def refresh(self, refresh_token: str) -> TokenState:
        """Renew a user token. Raises RefreshError when rejected."""
        return await self._refresher.refresh(
            self._client_id, self._client_secret, refresh_token
        )

    async def revoke_token(self, token: str) -> None:
        """Revoke an access or refresh token.

        Raises:
            KickResponseError: If the revoke endpoint rejects the request
            KickTimeout: If the request times out
            KickConnectionError: If the network request fails
        """
        form = {
            "token": token,
            "client_id": self._client_id,
            "client_secret": self._client_secret,
        }
        await self._post("Token revocation", self._revoke_url, form)
        _LOGGER.info("OAuth token revoked")

    async def authorize_user(
        self,
        server: OAuthCallbackServer,
        *,
        open_url: Callable[[str], Any] | None = None,
        timeout: float = DEFAULT_AUTHORIZATION_TIMEOUT,
    ) -> TokenState:
        """Run the full authorization code flow against a started callback server.

        Args:
            server: Running callback server bound to this client's redirect URI
            open_url: Called with the authorization URL, e.g. webbrowser.open.
                When omitted the URL is logged for the user to open.
            timeout: Seconds to wait for the user to finish authorizing

        Raises:
            AuthorizationDenied: If the provider reports an authorization error
            KickTimeout: If no callback arrives in time
            KickResponseError: If the code exchange is rejected
        """
        request = self.authorization_request()
        server.expect(request.state)
        if open_url is None:
            _LOGGER.info("Open this URL to authorize the app: %s", request.url)
        else:
            result = open_url(request.url)
            if inspect.isawaitable(result):
                await result

        code = await server.wait_for_code(timeout=timeout)
        return await self.exchange_code(code, request.pkce.verifier)

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    async def _request_token(self, action: str, form: dict[str, str]) -> TokenState:
        status, data = await self._post(action, self._token_url, form, want_json=True)
        try:
            state = TokenState.from_response(data, self._clock())
        except ValueError as err:
            raise KickResponseError(status, f"{action} failed: {err}") from err
        _LOGGER.info("%s succeeded (expires in %ss)", action, state.expires_in)
        return state

    async def _post(
        self,
        action: str,
        url: str,
        form: dict[str, str],
        *,
        want_json: bool = False,
    ) -> tuple[int, Any]:
        try:
            async with self._session.post(
                url,
                data=form,
                headers=_FORM_HEADERS,
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            ) as resp:
                if not 200 <= resp.status < 300:
                    body = await resp.text()
                    _LOGGER.error("%s rejected with status %s", action, resp.status)
                    raise KickResponseError(
                        resp.status, f"{action} failed: {resp.status} {body}".rstrip()
                    )
                if not want_json:
                    return resp.status, None
                try:
                    return resp.status, await resp.json(content_type=None)
                except ValueError as err:
                    raise KickResponseError(
                        resp.status, f"{action} returned invalid JSON"
                    ) from err
        except TimeoutError as err:
            raise KickTimeout(f"{action} request timed out") from err
        except aiohttp.ClientError as err:
            raise KickConnectionError(f"{action} request failed") from err


# -----------------------------------------------------------------------------
# Local redirect target
# -----------------------------------------------------------------------------


class OAuthCallbackServer:
    """Local HTTP server that receives the authorization code redirect."""

    def __init__(
        self, host: str = "localhost", port: int = DEFAULT_OAUTH_CALLBACK_PORT
    ) -> None:
        self.host = host
        self.port = port
        self.app = web.Application()
        self.runner: web.AppRunner | None = None
        self._expected_state: str | None = None
        self._pending: asyncio.Future[str] | None = None
        self._setup_routes()

    def _setup_routes(self) -> None:
        self.app.router.add_get(CALLBACK_PATH, self.handle_callback)
        self.app.router.add_get("/health", self.handle_health)

    @property
    def redirect_uri(self) -> str:
        return local_redirect_uri(self.port)

    async def __aenter__(self) -> OAuthCallbackServer:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    async def start(self) -> None:
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        site = web.TCPSite(self.runner, self.host, self.port)
        await site.start()
        _LOGGER.info("OAuth callback server listening on %s", self.redirect_uri)

    async def stop(self) -> None:
        if self.runner is not None:
            await self.runner.cleanup()
            self.runner = None
            _LOGGER.debug("OAuth callback server stopped")
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()

    def expect(self, state: str) -> None:
        """Start accepting a callback carrying ``state``.

        Must be called from a running event loop.
        """
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._expected_state = state
        self._pending = asyncio.get_running_loop().create_future()

    async def wait_for_code(
        self, timeout: float = DEFAULT_AUTHORIZATION_TIMEOUT
    ) -> str:
        """Wait for the authorization code of the expected request.

        Raises:
            AuthorizationDenied: If the callback reported an error
            KickTimeout: If no valid callback arrives within ``timeout``
        """
        if self._pending is None:
            raise KickClientError("expect() must be called before wait_for_code()")
        try:
            return await asyncio.wait_for(asyncio.shield(self._pending), timeout)
        except TimeoutError as err:
            raise KickTimeout("Authorization timed out") from err

    async def handle_health(self, request: web.Request) -> web.Response:
        return web.json_response({"status": "ok"})

    async def handle_callback(self, request: web.Request) -> web.Response:
        query = request.query
        pending = self._pending
        if pending is None or pending.done():
            return self._page(400, "OAuth Error", "No authorization is pending")

        error = query.get("error")
        if error:
            description = query.get("error_description")
            _LOGGER.warning("Authorization denied: %s (%s)", error, description)
            pending.set_exception(AuthorizationDenied(error, description))
            return self._page(400, "OAuth Error", f"Error: {error}")

        code = query.get("code")
        state = query.get("state")
        if not code or not state:
            return self._page(400, "OAuth Error", "Missing required parameters (code or state)")

        if state != self._expected_state:
            _LOGGER.warning("Ignoring OAuth callback with unexpected state")
            return self._page(400, "OAuth Error", "Invalid state parameter")

        pending.set_result(code)
        _LOGGER.debug("Authorization code received")
        return self._page(
            200,
            "Authorization Successful!",
            "Return to your application to continue.",
        )

    @staticmethod
    def _page(status: int, title: str, detail: str) -> web.Response:
        return web.Response(
            status=status,
            text=_PAGE.format(title=html.escape(title), detail=html.escape(detail)),
            content_type="text/html",
        )
