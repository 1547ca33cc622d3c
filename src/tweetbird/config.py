"""Configuration loading and saving, and credential resolution.

Config file location: ~/.config/tweetbird/config.toml

Schema:
    [auth]
    auth_token = "..."
    ct0 = "..."

    [client]
    timeout = 30.0
    quote_depth = 1

    [query_ids]
    cache_path = "..."  # optional; defaults to ~/.config/tweetbird/query-ids-cache.json
"""

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path

import tomli_w

from .constants import DEFAULT_QUOTE_DEPTH, DEFAULT_TIMEOUT

CONFIG_DIR = Path.home() / ".config" / "tweetbird"
CONFIG_FILE = CONFIG_DIR / "config.toml"

AUTH_TOKEN_ENV_VARS = ("AUTH_TOKEN", "TWITTER_AUTH_TOKEN")
CT0_ENV_VARS = ("CT0", "TWITTER_CT0")


@dataclass
class AuthConfig:
    auth_token: str
    ct0: str


@dataclass
class AppConfig:
    auth: AuthConfig | None = None
    timeout: float = DEFAULT_TIMEOUT
    quote_depth: int = DEFAULT_QUOTE_DEPTH
    query_ids_cache: Path | None = None


@dataclass(frozen=True)
class Credentials:
    auth_token: str | None
    ct0: str | None
    source: str | None = None

    @property
    def complete(self) -> bool:
        return bool(self.auth_token and self.ct0)


def load_config(config_path: Path = CONFIG_FILE) -> AppConfig:
    """Load and validate config from TOML file."""
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    auth_data = data.get("auth", {})
    auth_token = auth_data.get("auth_token", "")
    ct0 = auth_data.get("ct0", "")
    if bool(auth_token) != bool(ct0):
        raise ValueError("Config auth section needs both auth_token and ct0")

    client_data = data.get("client", {})
    query_id_data = data.get("query_ids", {})
    cache_path = query_id_data.get("cache_path")

    try:
        timeout = float(client_data.get("timeout", DEFAULT_TIMEOUT))
        quote_depth = int(client_data.get("quote_depth", DEFAULT_QUOTE_DEPTH))
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid [client] setting: {e}") from e
    if timeout <= 0:
        raise ValueError("client.timeout must be positive")

    return AppConfig(
        auth=AuthConfig(auth_token=auth_token, ct0=ct0) if auth_token else None,
        timeout=timeout,
        quote_depth=max(0, quote_depth),
        query_ids_cache=Path(cache_path).expanduser() if cache_path else None,
    )


def save_config(config: AppConfig, config_path: Path = CONFIG_FILE) -> None:
    """Write config to TOML file with restricted permissions."""
    config_path.parent.mkdir(parents=True, exist_ok=True)

    data: dict = {}
    if config.auth:
        data["auth"] = {
            "auth_token": config.auth.auth_token,
            "ct0": config.auth.ct0,
        }
    data["client"] = {
        "timeout": config.timeout,
        "quote_depth": config.quote_depth,
    }
    if config.query_ids_cache:
        data["query_ids"] = {"cache_path": str(config.query_ids_cache)}

    with open(config_path, "wb") as f:
        tomli_w.dump(data, f)

    # Restrict permissions: file contains auth secrets
    os.chmod(config_path, 0o600)


def config_exists(config_path: Path = CONFIG_FILE) -> bool:
    """Check if config file exists."""
    return config_path.exists()


def _first_env(names: tuple[str, ...]) -> str | None:
    for name in names:
        value = os.environ.get(name, "").strip()
        if value:
            return value
    return None


def resolve_credentials(
    auth_token: str | None = None,
    ct0: str | None = None,
    config: AppConfig | None = None,
) -> tuple[Credentials, list[str]]:
    """Pick credentials from flags, then environment, then the config file.

    Each token is resolved independently. Returns the credentials plus a
    list of human-readable warnings (missing or mixed-source tokens).
    """
    warnings: list[str] = []
    sources: list[str] = []

    def pick(flag_value: str | None, env_names: tuple[str, ...], config_value: str | None):
        if flag_value:
            sources.append("flags")
            return flag_value
        env_value = _first_env(env_names)
        if env_value:
            sources.append("environment")
            return env_value
        if config_value:
            sources.append("config")
            return config_value
        return None

    auth = config.auth if config else None
    token = pick(auth_token, AUTH_TOKEN_ENV_VARS, auth.auth_token if auth else None)
    csrf = pick(ct0, CT0_ENV_VARS, auth.ct0 if auth else None)

    if not token:
        warnings.append("Missing auth_token (use --auth-token, AUTH_TOKEN, or tweetbird setup)")
    if not csrf:
        warnings.append("Missing ct0 (use --ct0, CT0, or tweetbird setup)")
    unique_sources = list(dict.fromkeys(sources))
    if len(unique_sources) > 1:
        warnings.append(f"auth_token and ct0 come from different sources: {', '.join(unique_sources)}")

    source = unique_sources[0] if len(unique_sources) == 1 else ("mixed" if unique_sources else None)
    return Credentials(auth_token=token, ct0=csrf, source=source), warnings
