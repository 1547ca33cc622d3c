"""Tests for config loading/saving and credential resolution."""

from pathlib import Path

import pytest

from tweetbird.config import (
    AppConfig,
    AuthConfig,
    config_exists,
    load_config,
    resolve_credentials,
    save_config,
)


@pytest.fixture
def config_path(tmp_path):
    return tmp_path / "tweetbird" / "config.toml"


def file_config(auth_token="file_auth", ct0="file_ct0") -> AppConfig:
    return AppConfig(auth=AuthConfig(auth_token=auth_token, ct0=ct0))


class TestConfigFile:
    def test_round_trip(self, config_path, tmp_path):
        config = AppConfig(
            auth=AuthConfig(auth_token="tok", ct0="csrf"),
            timeout=12.5,
            quote_depth=0,
            query_ids_cache=tmp_path / "ids.json",
        )
        save_config(config, config_path)

        assert config_exists(config_path)
        assert load_config(config_path) == config

    def test_file_is_private(self, config_path):
        save_config(file_config(), config_path)
        assert config_path.stat().st_mode & 0o777 == 0o600

    def test_without_auth_section(self, config_path):
        save_config(AppConfig(), config_path)
        loaded = load_config(config_path)
        assert loaded.auth is None
        assert loaded.timeout == 30.0
        assert loaded.query_ids_cache is None

    def test_missing_file(self, config_path):
        assert not config_exists(config_path)
        with pytest.raises(FileNotFoundError):
            load_config(config_path)

    def test_partial_auth_rejected(self, config_path):
        config_path.parent.mkdir(parents=True)
        config_path.write_text('[auth]\nauth_token = "only"\n')
        with pytest.raises(ValueError, match="both auth_token and ct0"):
            load_config(config_path)

    def test_invalid_timeout_rejected(self, config_path):
        config_path.parent.mkdir(parents=True)
        config_path.write_text("[client]\ntimeout = 0\n")
        with pytest.raises(ValueError):
            load_config(config_path)

    def test_invalid_quote_depth_rejected(self, config_path):
        config_path.parent.mkdir(parents=True)
        config_path.write_text('[client]\nquote_depth = "deep"\n')
        with pytest.raises(ValueError, match="Invalid \\[client\\] setting"):
            load_config(config_path)

    def test_cache_path_expands_home(self, config_path):
        config_path.parent.mkdir(parents=True)
        config_path.write_text('[query_ids]\ncache_path = "~/ids.json"\n')
        assert load_config(config_path).query_ids_cache == Path.home() / "ids.json"


class TestResolveCredentials:
    def test_nothing_available(self):
        credentials, warnings = resolve_credentials()
        assert not credentials.complete
        assert credentials.source is None
        assert warnings == [
            "Missing auth_token (use --auth-token, AUTH_TOKEN, or tweetbird setup)",
            "Missing ct0 (use --ct0, CT0, or tweetbird setup)",
        ]

    def test_config_only(self):
        credentials, warnings = resolve_credentials(config=file_config())
        assert (credentials.auth_token, credentials.ct0) == ("file_auth", "file_ct0")
        assert credentials.source == "config"
        assert warnings == []

    def test_environment_beats_config(self, monkeypatch):
        monkeypatch.setenv("AUTH_TOKEN", "env_auth")
        monkeypatch.setenv("TWITTER_CT0", "env_ct0")
        credentials, warnings = resolve_credentials(config=file_config())
        assert (credentials.auth_token, credentials.ct0) == ("env_auth", "env_ct0")
        assert credentials.source == "environment"
        assert warnings == []

    def test_flags_beat_everything(self, monkeypatch):
        monkeypatch.setenv("AUTH_TOKEN", "env_auth")
        monkeypatch.setenv("CT0", "env_ct0")
        credentials, _ = resolve_credentials("flag_auth", "flag_ct0", file_config())
        assert (credentials.auth_token, credentials.ct0) == ("flag_auth", "flag_ct0")
        assert credentials.source == "flags"

    def test_blank_env_values_ignored(self, monkeypatch):
        monkeypatch.setenv("AUTH_TOKEN", "  ")
        monkeypatch.setenv("TWITTER_AUTH_TOKEN", "second")
        credentials, _ = resolve_credentials(ct0="flag_ct0")
        assert credentials.auth_token == "second"

    def test_mixed_sources_warn(self, monkeypatch):
        monkeypatch.setenv("CT0", "env_ct0")
        credentials, warnings = resolve_credentials(auth_token="flag_auth")
        assert credentials.complete
        assert credentials.source == "mixed"
        assert warnings == [
            "auth_token and ct0 come from different sources: flags, environment"
        ]

    def test_one_token_missing(self):
        credentials, warnings = resolve_credentials(auth_token="flag_auth")
        assert not credentials.complete
        assert credentials.source == "flags"
        assert warnings == ["Missing ct0 (use --ct0, CT0, or tweetbird setup)"]
