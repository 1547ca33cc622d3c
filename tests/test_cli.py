"""Tests for the CLI interface."""

import json
import logging
from datetime import datetime, timezone
from unittest.mock import patch

import httpx
import pytest
import respx
from click.testing import CliRunner
from payloads import tweet_result

from tweetbird.cli import main
from tweetbird.config import AppConfig, AuthConfig, save_config
from tweetbird.constants import FALLBACK_QUERY_IDS
from tweetbird.context import graphql_url
from tweetbird.discovery import DiscoveryResult

SETTINGS_URL = "https://x.com/i/api/account/settings.json"


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def config_path(tmp_path):
    return tmp_path / "config.toml"


@pytest.fixture
def configured(config_path):
    """Create a valid config file."""
    config = AppConfig(
        auth=AuthConfig(auth_token="test_token", ct0="test_ct0"),
    )
    save_config(config, config_path)
    return config_path


def gql(operation: str) -> str:
    return graphql_url(FALLBACK_QUERY_IDS[operation][0], operation)


class TestCLI:
    def test_help(self, runner):
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        assert "read and post on X" in result.output
        for command in ("bookmarks", "search", "tweet", "query-ids", "followers"):
            assert command in result.output

    def test_search_help_shows_paging_options(self, runner):
        result = runner.invoke(main, ["search", "--help"])
        assert result.exit_code == 0
        assert "--count" in result.output
        assert "-n" in result.output
        assert "--max-pages" in result.output

    def test_setup_creates_config(self, runner, config_path):
        result = runner.invoke(
            main,
            ["--config", str(config_path), "setup"],
            input="my_auth_token\nmy_ct0\n",
        )
        assert result.exit_code == 0
        assert "Config saved" in result.output
        assert config_path.exists()
        assert config_path.stat().st_mode & 0o777 == 0o600
        assert 'auth_token = "my_auth_token"' in config_path.read_text()

    def test_repeated_runs_keep_one_log_handler(self, runner, config_path):
        runner.invoke(main, ["--config", str(config_path), "query-ids"])
        runner.invoke(main, ["--config", str(config_path), "query-ids"])
        assert len(logging.getLogger("tweetbird").handlers) == 1

    def test_invalid_config(self, runner, config_path):
        config_path.write_text("[client]\ntimeout = -1\n")
        result = runner.invoke(main, ["--config", str(config_path), "whoami"])
        assert result.exit_code == 1
        assert "Invalid config" in result.output


class TestCheck:
    def test_check_with_config(self, runner, configured):
        result = runner.invoke(main, ["--config", str(configured), "check"])
        assert result.exit_code == 0
        assert "Config: Found" in result.output
        assert "auth_token: set" in result.output
        assert "Source: config" in result.output

    def test_check_from_environment(self, runner, config_path, monkeypatch):
        monkeypatch.setenv("AUTH_TOKEN", "env_auth")
        monkeypatch.setenv("CT0", "env_ct0")
        result = runner.invoke(main, ["--config", str(config_path), "check"])
        assert result.exit_code == 0
        assert "Config: Not found" in result.output
        assert "Source: environment" in result.output

    def test_check_mixed_sources(self, runner, configured):
        result = runner.invoke(
            main, ["--config", str(configured), "--auth-token", "flag_auth", "check"]
        )
        assert result.exit_code == 0
        assert "Source: mixed" in result.output
        assert "different sources" in result.output

    def test_check_without_credentials(self, runner, config_path):
        result = runner.invoke(main, ["--config", str(config_path), "check"])
        assert result.exit_code == 1
        assert "auth_token: missing" in result.output
        assert "Missing ct0" in result.output


class TestReadCommands:
    def test_command_without_credentials(self, runner, config_path):
        result = runner.invoke(main, ["--config", str(config_path), "bookmarks"])
        assert result.exit_code == 1
        assert "Error: Missing auth_token" in result.output

    @respx.mock
    def test_whoami(self, runner, configured):
        respx.get(SETTINGS_URL).mock(
            return_value=httpx.Response(200, json={"screen_name": "me", "name": "Me", "user_id": "900"})
        )
        result = runner.invoke(main, ["--config", str(configured), "whoami"])
        assert result.exit_code == 0
        assert "@me (Me)" in result.output
        assert "User ID: 900" in result.output

    @respx.mock
    def test_read_json(self, runner, configured):
        payload = {"data": {"tweetResult": {"result": tweet_result("42", "from the cli")}}}
        route = respx.get(gql("TweetDetail")).mock(return_value=httpx.Response(200, json=payload))

        result = runner.invoke(
            main, ["--config", str(configured), "read", "https://x.com/alice/status/42", "--json"]
        )

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["success"] is True
        assert data["tweet"]["id"] == "42"
        assert data["tweet"]["text"] == "from the cli"
        assert json.loads(route.calls.last.request.url.params["variables"])["focalTweetId"] == "42"

    @respx.mock
    def test_read_plain(self, runner, configured):
        payload = {"data": {"tweetResult": {"result": tweet_result("42", "plain output")}}}
        respx.get(gql("TweetDetail")).mock(return_value=httpx.Response(200, json=payload))

        result = runner.invoke(main, ["--config", str(configured), "read", "42"])

        assert result.exit_code == 0
        assert "@alice (Alice):" in result.output
        assert "plain output" in result.output
        assert "https://x.com/alice/status/42" in result.output

    @respx.mock
    def test_api_failure_exits_nonzero(self, runner, configured):
        respx.get(gql("Bookmarks")).mock(return_value=httpx.Response(403, text="Forbidden"))

        result = runner.invoke(main, ["--config", str(configured), "bookmarks", "-n", "5"])

        assert result.exit_code == 1
        assert "Error: HTTP 403: Forbidden" in result.output

    def test_invalid_handle(self, runner, configured):
        result = runner.invoke(main, ["--config", str(configured), "user-tweets", "not a handle"])
        assert result.exit_code == 1
        assert "Invalid username" in result.output


class TestPostCommands:
    @respx.mock
    def test_tweet(self, runner, configured):
        created = {"data": {"create_tweet": {"tweet_results": {"result": {"rest_id": "555"}}}}}
        respx.post(gql("CreateTweet")).mock(return_value=httpx.Response(200, json=created))

        result = runner.invoke(main, ["--config", str(configured), "tweet", "hello"])

        assert result.exit_code == 0
        assert "Posted: https://x.com/i/status/555" in result.output

    def test_too_many_media(self, runner, configured, tmp_path):
        args = []
        for i in range(5):
            image = tmp_path / f"img{i}.png"
            image.write_bytes(b"\x89PNG")
            args += ["--media", str(image)]

        result = runner.invoke(main, ["--config", str(configured), "tweet", "hi", *args])

        assert result.exit_code == 1
        assert "At most 4 media files" in result.output

    def test_more_alt_text_than_media(self, runner, configured, tmp_path):
        image = tmp_path / "img.png"
        image.write_bytes(b"\x89PNG")

        result = runner.invoke(
            main,
            ["--config", str(configured), "tweet", "hi", "--media", str(image),
             "--alt", "one", "--alt", "two"],
        )

        assert result.exit_code == 1
        assert "More --alt values than --media files" in result.output

    def test_unsupported_media_type(self, runner, configured, tmp_path):
        notes = tmp_path / "notes.txt"
        notes.write_text("hi")

        result = runner.invoke(
            main, ["--config", str(configured), "reply", "1", "hi", "--media", str(notes)]
        )

        assert result.exit_code == 1
        assert "Unsupported media type" in result.output


class TestQueryIds:
    def test_without_cache(self, runner, config_path):
        result = runner.invoke(main, ["--config", str(config_path), "query-ids"])
        assert result.exit_code == 0
        assert "No query ID cache at" in result.output

    def test_with_cache(self, runner, config_path, cache_path):
        fetched = datetime.now(timezone.utc).isoformat()
        cache_path.write_text(
            json.dumps({"fetchedAt": fetched, "ids": {"Likes": "AAA", "Bookmarks": "BBB"}}),
            encoding="utf-8",
        )

        result = runner.invoke(main, ["--config", str(config_path), "query-ids"])

        assert result.exit_code == 0
        assert f"Cache: {cache_path}" in result.output
        assert "fresh" in result.output
        assert "  Bookmarks: BBB" in result.output
        assert "  Likes: AAA" in result.output

    def test_with_cache_json(self, runner, config_path, cache_path):
        fetched = datetime.now(timezone.utc).isoformat()
        cache_path.write_text(json.dumps({"fetchedAt": fetched, "ids": {"Likes": "AAA"}}))

        result = runner.invoke(main, ["--config", str(config_path), "query-ids", "--json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["ids"] == {"Likes": "AAA"}
        assert data["isFresh"] is True

    def test_fresh_discovery_uses_timeout_option(self, runner, config_path):
        timeouts = []

        async def discover(client, targets):
            timeouts.append(client.timeout)
            return DiscoveryResult(ids={"Likes": "AAA"})

        with patch("tweetbird.query_ids.discover_query_ids", side_effect=discover):
            result = runner.invoke(
                main, ["--config", str(config_path), "--timeout", "4", "query-ids", "--fresh"]
            )

        assert result.exit_code == 0
        assert timeouts == [httpx.Timeout(4.0)]
        assert "  Likes: AAA" in result.output
