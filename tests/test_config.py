"""Tests for settings, options, and token persistence."""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

import pytest
from dotenv import dotenv_values

from kick_client.config import ClientOptions, KickSettings
from kick_client.credentials import TokenState
from kick_client.token_refresh import persist_tokens_to_env

from .conftest import NOW


class TestKickSettings:
    """Tests for KICK_* settings loading."""

    def test_reads_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test settings are read from prefixed environment variables."""
        monkeypatch.setenv("KICK_ACCESS_TOKEN", "env-token")
        monkeypatch.setenv("KICK_EXPIRES_IN", "3600")
        monkeypatch.setenv("KICK_TOKEN_UPDATED", "2025-01-01T12:00:00+00:00")

        settings = KickSettings(_env_file=None)

        assert settings.access_token == "env-token"
        assert settings.expires_in == 3600
        assert settings.token_updated == NOW

    def test_reads_env_file(self, tmp_path: Path) -> None:
        """Test settings are read from a .env file, ignoring unrelated keys."""
        env_file = tmp_path / ".env"
        env_file.write_text(
            "KICK_ACCESS_TOKEN=file-token\n"
            "KICK_CLIENT_ID=cid\n"
            "OTHER_SETTING=ignored\n"
        )

        settings = KickSettings(_env_file=env_file)

        assert settings.access_token == "file-token"
        assert settings.client_id == "cid"
        assert settings.refresh_token is None

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test every setting is optional."""
        for name in ("ACCESS_TOKEN", "REFRESH_TOKEN", "CLIENT_ID", "CLIENT_SECRET"):
            monkeypatch.delenv(f"KICK_{name}", raising=False)

        settings = KickSettings(_env_file=None)

        assert settings.access_token is None
        assert settings.expires_in is None


class TestClientOptions:
    """Tests for ClientOptions defaults."""

    def test_defaults(self) -> None:
        """Test default option values."""
        options = ClientOptions()

        assert options.refresh_buffer_seconds == 300
        assert options.env_file == Path(".env")
        assert options.on_token_refresh is None
        assert options.feed_url is None


class TestPersistTokens:
    """Tests for writing refreshed tokens to a .env file."""

    def test_writes_tokens(self, tmp_path: Path) -> None:
        """Test renewed tokens are written and other keys kept."""
        env_file = tmp_path / ".env"
        env_file.write_text("OTHER=1\nKICK_ACCESS_TOKEN=old\n")
        state = TokenState(
            access_token="new",
            refresh_token="refresh-2",
            expires_in=3600,
            issued_at=NOW,
            scope="chat:write",
        )

        persist_tokens_to_env(state, env_file)

        values = dotenv_values(env_file)
        assert values["OTHER"] == "1"
        assert values["KICK_ACCESS_TOKEN"] == "new"
        assert values["KICK_REFRESH_TOKEN"] == "refresh-2"
        assert values["KICK_EXPIRES_IN"] == "3600"
        assert values["KICK_TOKEN_TYPE"] == "Bearer"
        assert values["KICK_SCOPE"] == "chat:write"
        assert datetime.fromisoformat(values["KICK_TOKEN_UPDATED"]) == NOW

    def test_keeps_refresh_token_when_absent(self, tmp_path: Path) -> None:
        """Test the stored refresh token survives a renewal without one."""
        env_file = tmp_path / ".env"
        env_file.write_text("KICK_REFRESH_TOKEN=refresh-1\n")

        persist_tokens_to_env(TokenState("new", expires_in=60, issued_at=NOW), env_file)

        values = dotenv_values(env_file)
        assert values["KICK_REFRESH_TOKEN"] == "refresh-1"
        assert values["KICK_ACCESS_TOKEN"] == "new"

    def test_creates_missing_file(self, tmp_path: Path) -> None:
        """Test the file is created when it does not exist."""
        env_file = tmp_path / "tokens.env"

        persist_tokens_to_env(TokenState("new", issued_at=NOW), env_file)

        assert dotenv_values(env_file)["KICK_ACCESS_TOKEN"] == "new"

    def test_round_trip_through_settings(self, tmp_path: Path) -> None:
        """Test persisted tokens load back through KickSettings."""
        env_file = tmp_path / ".env"
        persist_tokens_to_env(
            TokenState("new", refresh_token="r", expires_in=3600, issued_at=NOW),
            env_file,
        )

        settings = KickSettings(_env_file=env_file)

        assert settings.access_token == "new"
        assert settings.expires_in == 3600
        assert settings.token_updated == datetime(2025, 1, 1, 12, 0, tzinfo=UTC)
