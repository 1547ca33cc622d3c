"""Authenticated HTTP session for the X web API.

Authentication uses cookie-based auth (auth_token + ct0) matching the web
client's behavior: ct0 is sent both as a cookie and as the CSRF header.
Transport failures come back as Err results instead of exceptions.
"""

import asyncio
import json
import logging
import random

import httpx

from .constants import BEARER_TOKEN, DEFAULT_TIMEOUT, USER_AGENT
from .results import Err, Ok, Result

logger = logging.getLogger(__name__)

RETRYABLE_STATUSES = frozenset({429, 500, 502, 503, 504})


def describe_http_error(response: httpx.Response) -> str:
    return f"HTTP {response.status_code}: {response.text[:200]}"


def parse_retry_after(value: str | None) -> float | None:
    """Parse a delta-seconds Retry-After header; HTTP dates are ignored."""
    if not value:
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


def encode_params(**values: object) -> dict[str, str]:
    """JSON-encode GraphQL query parameters (variables, features, ...)."""
    return {
        key: json.dumps(value, separators=(",", ":"))
        for key, value in values.items()
        if value is not None
    }


class ApiSession:
    """Thin wrapper around httpx.AsyncClient carrying the auth headers."""

    def __init__(self, auth_token: str, ct0: str, timeout: float = DEFAULT_TIMEOUT):
        self.auth_token = auth_token
        self.ct0 = ct0
        self.timeout = timeout
        # No default content-type: multipart media uploads set their own
        self.client = httpx.AsyncClient(
            headers={
                "authorization": f"Bearer {BEARER_TOKEN}",
                "x-csrf-token": ct0,
                "x-twitter-active-user": "yes",
                "x-twitter-auth-type": "OAuth2Session",
                "x-twitter-client-language": "en",
                "origin": "https://x.com",
                "referer": "https://x.com/",
                "User-Agent": USER_AGENT,
            },
            cookies={"auth_token": auth_token, "ct0": ct0},
            timeout=timeout,
            follow_redirects=True,
        )

    async def send(self, method: str, url: str, **kwargs) -> Result[httpx.Response]:
        """Issue one request. Any HTTP status is Ok; only transport errors are Err."""
        try:
            response = await self.client.request(method, url, **kwargs)
        except httpx.TimeoutException:
            logger.debug("%s %s timed out after %.1fs", method, url, self.timeout)
            return Err(f"Request timed out after {self.timeout:g}s")
        except httpx.HTTPError as e:
            logger.debug("%s %s failed: %s", method, url, e)
            return Err(str(e) or e.__class__.__name__)
        return Ok(response)

    async def send_with_retry(
        self,
        method: str,
        url: str,
        max_retries: int = 2,
        base_delay: float = 0.5,
        **kwargs,
    ) -> Result[httpx.Response]:
        """Like send(), retrying 429/5xx with exponential backoff.

        Honors a delta-seconds Retry-After header when present; otherwise
        waits base_delay * 2**attempt plus up to 0.5s of jitter.
        """
        attempt = 0
        while True:
            result = await self.send(method, url, **kwargs)
            if not isinstance(result, Ok):
                return result
            response = result.value
            if response.status_code not in RETRYABLE_STATUSES or attempt >= max_retries:
                return result

            delay = parse_retry_after(response.headers.get("retry-after"))
            if delay is None:
                delay = base_delay * (2 ** attempt) + random.uniform(0, 0.5)
            logger.info(
                "HTTP %d from %s, retrying in %.1fs (attempt %d/%d)",
                response.status_code, url, delay, attempt + 1, max_retries,
            )
            await asyncio.sleep(delay)
            attempt += 1

    async def close(self) -> None:
        await self.client.aclose()
