"""Helpers turning user input (URLs, @handles) into ids and handles."""

import re

_STATUS_URL_RE = re.compile(r"(?:x|twitter)\.com/[^/]+/status(?:es)?/(\d+)", re.IGNORECASE)
_LIST_URL_RE = re.compile(r"(?:x|twitter)\.com/i/lists/(\d+)", re.IGNORECASE)
_HANDLE_RE = re.compile(r"^[A-Za-z0-9_]{1,15}$")


def extract_tweet_id(value: str) -> str:
    """Accept a bare id or a status URL and return the tweet id."""
    value = value.strip()
    match = _STATUS_URL_RE.search(value)
    return match.group(1) if match else value


def extract_list_id(value: str) -> str:
    value = value.strip()
    match = _LIST_URL_RE.search(value)
    return match.group(1) if match else value


def normalize_handle(value: str) -> str | None:
    """Strip a leading @ and validate; returns None for invalid handles."""
    handle = value.strip().lstrip("@")
    return handle if _HANDLE_RE.match(handle) else None
