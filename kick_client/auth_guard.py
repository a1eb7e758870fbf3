"""Bearer-token guard for calls to the official Kick API.

Every guarded call:
1. Fails with AuthenticationRequired when no OAuth token is held
2. Proactively renews a token that is about to expire
3. On an authorization failure, renews once and retries once
4. Reports renewed tokens to the configured hook, or persists them
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TYPE_CHECKING, TypeVar

from .errors import (
    AuthenticationRequired,
    AuthRetryExhausted,
    KickClientError,
    KickResponseError,
)
from .token_refresh import persist_tokens_to_env

if TYPE_CHECKING:
    from .config import TokenUpdateHook
    from .credentials import CredentialStore, RefreshMaterial, TokenState
    from .token_refresh import TokenRefresher

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

_AUTH_FAILURE_MARKERS = ("401", "unauthorized")


def is_authorization_failure(err: BaseException) -> bool:
    """Return True if ``err`` represents an HTTP 401.

    Errors carrying an HTTP status are judged by the status alone. Message
    text is only inspected for errors from outside this library that carry
    no status.
    """
    if isinstance(err, KickResponseError):
        return err.status == 401
    status = getattr(err, "status", None)
    if isinstance(status, int):
        return status == 401
    if isinstance(err, KickClientError):
        return False
    text = str(err).lower()
    return any(marker in text for marker in _AUTH_FAILURE_MARKERS)


class AuthGuard:
    """Runs operations that need the OAuth bearer token.

    The refresher must be bound to the same CredentialStore so renewed
    tokens land in the store before the operation is retried.
    """

    def __init__(
        self,
        store: CredentialStore,
        refresher: TokenRefresher,
        *,
        token_update_hook: TokenUpdateHook | None = None,
        env_file: Path | None = None,
    ) -> None:
        self._store = store
        self._refresher = refresher
        self._token_update_hook = token_update_hook
        self._env_file = env_file

    async def call(self, op: Callable[[str], Awaitable[T]]) -> T:
        """Invoke ``op`` with a valid bearer token.

        Raises:
            AuthenticationRequired: No OAuth token has been provided
            RefreshError: Token renewal was rejected; ``op`` is not retried
            AuthRetryExhausted: ``op`` failed again after renewal
        """
        token = self._store.current_oauth_token()
        if not token:
            raise AuthenticationRequired(
                "Public API authentication required. Please login with OAuth first."
            )

        if self._store.is_expiring_soon():
            material = self._store.refresh_material()
            if material is None:
                _LOGGER.debug("OAuth token near expiry but cannot be refreshed")
            else:
                _LOGGER.debug("OAuth token expired or about to expire, refreshing")
                await self._refresh(material)
                token = self._store.current_oauth_token() or token

        try:
            return await op(token)
        except Exception as err:
            if not is_authorization_failure(err):
                raise
            material = self._store.refresh_material()
            if material is None:
                _LOGGER.warning("Authorization failed and token cannot be refreshed")
                raise
            _LOGGER.info("Authorization failed, refreshing token and retrying")

        # Another caller may already have renewed the token we were given
        if self._store.current_oauth_token() == token:
            await self._refresh(material)
        retry_token = self._store.current_oauth_token() or token

        try:
            return await op(retry_token)
        except Exception as err:
            raise AuthRetryExhausted(err) from err

    async def _refresh(self, material: RefreshMaterial) -> TokenState:
        return await self._refresher.refresh(
            material.client_id,
            material.client_secret,
            material.refresh_token,
            on_refreshed=self._on_token_updated,
        )

    def _on_token_updated(self, state: TokenState) -> Awaitable[None] | None:
        if self._token_update_hook is not None:
            return self._token_update_hook(state)
        if self._env_file is not None:
            persist_tokens_to_env(state, self._env_file)
        return None
