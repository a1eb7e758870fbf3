"""OAuth refresh-token exchange with single-flight de-duplication."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING

import aiohttp
from dotenv import set_key

from .const import DEFAULT_REQUEST_TIMEOUT, OAUTH_TOKEN_URL
from .credentials import TokenState, utcnow
from .errors import KickConnectionError, KickTimeout, RefreshError

if TYPE_CHECKING:
    from datetime import datetime

    from .config import TokenUpdateHook
    from .credentials import CredentialStore

_LOGGER = logging.getLogger(__name__)


class TokenRefresher:
    """Exchanges refresh tokens for new access tokens.

    At most one exchange is in flight at a time. Callers that request a
    refresh while one is outstanding await the same outcome instead of
    issuing a second request, since the provider may revoke a refresh token
    after its first use.

    The refresher never retries; retry policy belongs to AuthGuard.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        *,
        store: CredentialStore | None = None,
        token_url: str = OAUTH_TOKEN_URL,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session = session
        self._store = store
        self._token_url = token_url
        self._timeout = timeout
        self._clock = clock
        self._inflight: asyncio.Future[TokenState] | None = None

    @property
    def in_flight(self) -> bool:
        """True while an exchange is outstanding."""
        return self._inflight is not None and not self._inflight.done()

    async def refresh(
        self,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        *,
        on_refreshed: TokenUpdateHook | None = None,
    ) -> TokenState:
        """Exchange a refresh token, joining any exchange already in flight.

        Args:
            client_id: OAuth client ID
            client_secret: OAuth client secret
            refresh_token: Current refresh token
            on_refreshed: Called once with the new tokens when this call
                starts the exchange. Ignored when joining one in flight.

        Raises:
            RefreshError: If the token endpoint rejects the exchange
            KickTimeout: If the request times out
            KickConnectionError: If the network request fails
        """
        if self._inflight is None or self._inflight.done():
            self._inflight = asyncio.ensure_future(
                self._run(client_id, client_secret, refresh_token, on_refreshed)
            )
        else:
            _LOGGER.debug("Joining token refresh already in flight")
        return await asyncio.shield(self._inflight)

    async def _run(
        self,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        on_refreshed: TokenUpdateHook | None,
    ) -> TokenState:
        state = await self._exchange(client_id, client_secret, refresh_token)
        applied = True
        if self._store is not None:
            applied = self._store.apply_refreshed(state)
        _LOGGER.info("OAuth token refreshed (expires in %ss)", state.expires_in)
        if not applied:
            _LOGGER.debug("Skipping token update hook for a stale renewal")
            return state

        if on_refreshed is not None:
            try:
                result = on_refreshed(state)
                if inspect.isawaitable(result):
                    await result
            except Exception as err:
                _LOGGER.exception("Token update hook failed: %s", err)
        return state

    async def _exchange(
        self, client_id: str, client_secret: str, refresh_token: str
    ) -> TokenState:
        form = {
            "grant_type": "refresh_token",
            "client_id": client_id,
            "client_secret": client_secret,
            "refresh_token": refresh_token,
        }
        try:
            async with self._session.post(
                self._token_url,
                data=form,
                headers={
                    "Content-Type": "application/x-www-form-urlencoded",
                    "Accept": "application/json",
                },
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            ) as resp:
                if not 200 <= resp.status < 300:
                    body = await resp.text()
                    _LOGGER.error("Token refresh rejected with status %s", resp.status)
                    raise RefreshError(resp.status, body)
                data = await resp.json()
                issued_at = self._clock()
        except TimeoutError as err:
            raise KickTimeout("Token refresh request timed out") from err
        except aiohttp.ClientError as err:
            raise KickConnectionError("Token refresh request failed") from err

        try:
            return TokenState.from_response(data, issued_at)
        except ValueError as err:
            raise RefreshError(resp.status, str(err)) from err


def persist_tokens_to_env(state: TokenState, env_file: Path) -> None:
    """Write renewed tokens into a .env file, keeping unrelated keys.

    The refresh token is only written when the renewal supplied a new one.
    """
    env_file.touch(exist_ok=True)
    updated_at = state.issued_at or utcnow()
    values = {
        "KICK_ACCESS_TOKEN": state.access_token,
        "KICK_TOKEN_TYPE": state.token_type,
        "KICK_TOKEN_UPDATED": updated_at.isoformat(),
    }
    if state.expires_in is not None:
        values["KICK_EXPIRES_IN"] = str(state.expires_in)
    if state.scope:
        values["KICK_SCOPE"] = state.scope
    if state.refresh_token:
        values["KICK_REFRESH_TOKEN"] = state.refresh_token

    for key, value in values.items():
        set_key(env_file, key, value, quote_mode="never")
    _LOGGER.debug("Persisted refreshed tokens to %s", env_file)
