"""Tests for credential models and the credential store."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from kick_client.config import KickSettings
from kick_client.credentials import (
    CredentialStore,
    LoginCredentials,
    OAuthCredentials,
    RefreshMaterial,
    SessionCredentials,
    TokenState,
)

from .conftest import NOW, oauth_credentials

# Expiry at NOW + 3600s, refresh window opens 300s earlier
REFRESH_POINT = NOW + timedelta(seconds=3600 - 300)


class TestTokenState:
    """Tests for TokenState expiry bookkeeping."""

    def test_expires_at(self) -> None:
        """Test expiry is issue time plus lifetime."""
        state = TokenState("tok", expires_in=3600, issued_at=NOW)

        assert state.expires_at == NOW + timedelta(hours=1)

    def test_needs_refresh_at_boundary(self) -> None:
        """Test the refresh window opens exactly buffer seconds before expiry."""
        state = TokenState("tok", expires_in=3600, issued_at=NOW)

        assert state.needs_refresh(REFRESH_POINT, 300)
        assert not state.needs_refresh(REFRESH_POINT - timedelta(milliseconds=1), 300)
        assert state.needs_refresh(REFRESH_POINT + timedelta(milliseconds=1), 300)

    def test_needs_refresh_without_expiry(self) -> None:
        """Test tokens without expiry data never need a refresh."""
        assert not TokenState("tok").needs_refresh(NOW + timedelta(days=365))
        assert not TokenState("tok", expires_in=60).needs_refresh(NOW)

    def test_from_response(self) -> None:
        """Test building state from a token endpoint body."""
        state = TokenState.from_response(
            {
                "access_token": "a",
                "refresh_token": "r",
                "expires_in": "7200",
                "scope": "chat:write",
            },
            NOW,
        )

        assert state == TokenState(
            access_token="a",
            refresh_token="r",
            expires_in=7200,
            issued_at=NOW,
            token_type="Bearer",
            scope="chat:write",
        )

    def test_from_response_empty_refresh_token(self) -> None:
        """Test an empty refresh token counts as absent."""
        state = TokenState.from_response({"access_token": "a", "refresh_token": ""}, NOW)

        assert state.refresh_token is None

    @pytest.mark.parametrize(
        "body",
        [{}, {"access_token": ""}, {"access_token": 5}, ["access_token"], None],
    )
    def test_from_response_invalid(self, body: object) -> None:
        """Test bodies without an access token are rejected."""
        with pytest.raises(ValueError):
            TokenState.from_response(body, NOW)


class TestOAuthCredentials:
    """Tests for OAuthCredentials."""

    def test_can_refresh_requires_all_material(self) -> None:
        """Test refresh needs client id, client secret, and refresh token."""
        assert oauth_credentials().can_refresh
        assert not oauth_credentials(refreshable=False).can_refresh
        assert not OAuthCredentials("a", refresh_token="r", client_id="c").can_refresh

    def test_from_settings(self) -> None:
        """Test credentials built from settings."""
        settings = KickSettings(
            _env_file=None,
            access_token="a",
            refresh_token="r",
            client_id="c",
            client_secret="s",
            expires_in=3600,
            token_updated=datetime(2025, 1, 1, 12, 0),
        )

        creds = OAuthCredentials.from_settings(settings)

        assert creds is not None
        assert creds.access_token == "a"
        assert creds.can_refresh
        assert creds.issued_at == NOW
        assert creds.issued_at.tzinfo is UTC

    def test_from_settings_without_token(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test no credentials are built without an access token."""
        monkeypatch.delenv("KICK_ACCESS_TOKEN", raising=False)
        assert OAuthCredentials.from_settings(KickSettings(_env_file=None)) is None


class TestValidation:
    """Tests for session and login credential validation."""

    def test_session_credentials_valid(self) -> None:
        """Test complete session credentials validate."""
        SessionCredentials("bearer", "xsrf", "a=b").validate()

    @pytest.mark.parametrize("field", ["bearer_token", "xsrf_token", "cookies"])
    def test_session_credentials_missing_field(self, field: str) -> None:
        """Test each session field is required."""
        values = {"bearer_token": "b", "xsrf_token": "x", "cookies": "c"}
        values[field] = ""

        with pytest.raises(ValueError, match=f"{field} is required"):
            SessionCredentials(**values).validate()

    @pytest.mark.parametrize(
        ("field", "label"),
        [("username", "Username"), ("password", "Password"), ("otp_secret", "OTP secret")],
    )
    def test_login_credentials_missing_field(self, field: str, label: str) -> None:
        """Test each login field is required."""
        values = {"username": "u", "password": "p", "otp_secret": "o"}
        values[field] = ""

        with pytest.raises(ValueError, match=f"{label} is required"):
            LoginCredentials(**values).validate()


class TestCredentialStore:
    """Tests for CredentialStore."""

    def test_empty_store(self, store: CredentialStore) -> None:
        """Test an empty store holds nothing."""
        assert store.current_oauth_token() is None
        assert store.refresh_material() is None
        assert store.session is None
        assert not store.is_expiring_soon()

    def test_refresh_material(self, store: CredentialStore) -> None:
        """Test refresh material is exposed when complete."""
        store.set_oauth(oauth_credentials())

        assert store.refresh_material() == RefreshMaterial(
            "client-id", "client-secret", "refresh-1"
        )

    def test_refresh_material_incomplete(self, store: CredentialStore) -> None:
        """Test refresh material is None when any part is missing."""
        store.set_oauth(oauth_credentials(refreshable=False))

        assert store.refresh_material() is None

    def test_is_expiring_soon_boundary(self, store: CredentialStore) -> None:
        """Test expiry detection at the refresh point."""
        store.set_oauth(oauth_credentials())

        assert not store.is_expiring_soon(REFRESH_POINT - timedelta(milliseconds=1))
        assert store.is_expiring_soon(REFRESH_POINT)
        assert store.is_expiring_soon(NOW + timedelta(hours=2))

    def test_is_expiring_soon_uses_clock(self) -> None:
        """Test the store clock is used when no time is given."""
        store = CredentialStore(clock=lambda: REFRESH_POINT)
        store.set_oauth(oauth_credentials())

        assert store.is_expiring_soon()

    def test_custom_buffer(self) -> None:
        """Test the refresh buffer is configurable."""
        store = CredentialStore(refresh_buffer_seconds=0)
        store.set_oauth(oauth_credentials())

        assert not store.is_expiring_soon(REFRESH_POINT)
        assert store.is_expiring_soon(NOW + timedelta(hours=1))

    def test_no_expiry_data_never_expiring(self, store: CredentialStore) -> None:
        """Test tokens without expiry data are not treated as expiring."""
        store.set_oauth(oauth_credentials(expires_in=None))

        assert not store.is_expiring_soon(NOW + timedelta(days=30))

    def test_apply_refreshed_replaces_token(self, store: CredentialStore) -> None:
        """Test a renewal replaces token, expiry, and refresh token together."""
        store.set_oauth(oauth_credentials())
        later = NOW + timedelta(minutes=55)

        updated = store.apply_refreshed(
            TokenState("new", refresh_token="refresh-2", expires_in=7200, issued_at=later)
        )

        assert updated
        oauth = store.oauth
        assert oauth is not None
        assert oauth.access_token == "new"
        assert oauth.refresh_token == "refresh-2"
        assert oauth.expires_in == 7200
        assert oauth.issued_at == later
        assert oauth.client_id == "client-id"

    def test_apply_refreshed_keeps_refresh_token(self, store: CredentialStore) -> None:
        """Test a renewal without a refresh token keeps the old one."""
        store.set_oauth(oauth_credentials())

        store.apply_refreshed(TokenState("new", expires_in=3600, issued_at=NOW))

        assert store.refresh_material() == RefreshMaterial(
            "client-id", "client-secret", "refresh-1"
        )

    def test_apply_refreshed_ignores_older_token(self, store: CredentialStore) -> None:
        """Test a renewal issued before the current token is ignored."""
        store.set_oauth(oauth_credentials())

        updated = store.apply_refreshed(
            TokenState("stale", expires_in=3600, issued_at=NOW - timedelta(seconds=1))
        )

        assert not updated
        assert store.current_oauth_token() == "old-token"

    def test_apply_refreshed_without_oauth(self, store: CredentialStore) -> None:
        """Test a renewal is ignored when no OAuth credentials are held."""
        assert not store.apply_refreshed(TokenState("new", issued_at=NOW))
        assert store.oauth is None

    def test_session_credentials_independent(self, store: CredentialStore) -> None:
        """Test session credentials do not touch OAuth state."""
        store.set_session(SessionCredentials("bearer", "xsrf", "a=b"))

        assert store.session is not None
        assert store.current_oauth_token() is None
