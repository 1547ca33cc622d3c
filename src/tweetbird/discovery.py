"""Discover current GraphQL query IDs from the web client's JS bundles.

The public entry pages reference ``client-web`` bundles on abs.twimg.com.
Each bundle embeds ``{queryId, operationName}`` pairs in minified form;
we pattern-match them out of the source text.
"""

import asyncio
import logging
import re
from dataclasses import dataclass, field

import httpx

from .constants import BUNDLE_URL_PATTERN, DISCOVERY_PAGES, QUERY_ID_PATTERN

logger = logging.getLogger(__name__)

BUNDLE_CONCURRENCY = 6

# (pattern, query ID group, operation name group), tried in order
OPERATION_PATTERNS: tuple[tuple[re.Pattern, int, int], ...] = (
    # e.exports={queryId:"...",operationName:"..."}
    (
        re.compile(
            r"e\.exports=\{queryId\s*:\s*[\"']([^\"']+)[\"']\s*,"
            r"\s*operationName\s*:\s*[\"']([^\"']+)[\"']"
        ),
        1,
        2,
    ),
    # e.exports={operationName:"...",queryId:"..."}
    (
        re.compile(
            r"e\.exports=\{operationName\s*:\s*[\"']([^\"']+)[\"']\s*,"
            r"\s*queryId\s*:\s*[\"']([^\"']+)[\"']"
        ),
        2,
        1,
    ),
    # operationName ... queryId, at most 4000 chars apart
    (
        re.compile(
            r"operationName\s*[:=]\s*[\"']([^\"']+)[\"'](.{0,4000}?)"
            r"queryId\s*[:=]\s*[\"']([^\"']+)[\"']",
            re.DOTALL,
        ),
        3,
        1,
    ),
    # queryId ... operationName, at most 4000 chars apart
    (
        re.compile(
            r"queryId\s*[:=]\s*[\"']([^\"']+)[\"'](.{0,4000}?)"
            r"operationName\s*[:=]\s*[\"']([^\"']+)[\"']",
            re.DOTALL,
        ),
        1,
        3,
    ),
)

_BUNDLE_URL_RE = re.compile(BUNDLE_URL_PATTERN)
_QUERY_ID_RE = re.compile(QUERY_ID_PATTERN)


class DiscoveryError(RuntimeError):
    """No client bundles could be located on any discovery page."""


@dataclass
class DiscoveryResult:
    ids: dict[str, str] = field(default_factory=dict)
    pages: list[str] = field(default_factory=list)
    bundles: list[str] = field(default_factory=list)


def extract_bundle_urls(html: str) -> list[str]:
    """Return unique bundle URLs in order of first appearance."""
    return list(dict.fromkeys(_BUNDLE_URL_RE.findall(html)))


def bundle_label(url: str) -> str:
    return url.rsplit("/", 1)[-1]


def extract_operations(
    bundle_text: str,
    targets: set[str],
    discovered: dict[str, str],
    label: str = "",
) -> None:
    """Add (operation -> query ID) pairs found in ``bundle_text`` to ``discovered``.

    First match per operation wins, across bundles too. Never raises on
    garbled input; non-matching text simply yields nothing.
    """
    for pattern, query_id_group, operation_group in OPERATION_PATTERNS:
        for match in pattern.finditer(bundle_text):
            operation = match.group(operation_group)
            query_id = match.group(query_id_group)
            if operation not in targets or operation in discovered:
                continue
            if not _QUERY_ID_RE.match(query_id):
                logger.debug("Rejecting malformed query ID for %s in %s", operation, label)
                continue
            discovered[operation] = query_id
            logger.debug("Found %s=%s in %s", operation, query_id, label)
            if targets.issubset(discovered):
                return


async def _fetch_text(client: httpx.AsyncClient, url: str) -> str | None:
    try:
        response = await client.get(url)
    except httpx.HTTPError as e:
        logger.debug("Failed to fetch %s: %s", url, e)
        return None
    if response.status_code != 200:
        logger.debug("Failed to fetch %s: HTTP %d", url, response.status_code)
        return None
    return response.text


async def discover_bundles(
    client: httpx.AsyncClient,
    pages: tuple[str, ...] = DISCOVERY_PAGES,
) -> list[str]:
    """Collect bundle URLs from the discovery pages.

    Individual page failures are skipped. Raises DiscoveryError when no
    bundle URL is found at all.
    """
    bundles: list[str] = []
    for page in pages:
        html = await _fetch_text(client, page)
        if html:
            bundles.extend(extract_bundle_urls(html))

    bundles = list(dict.fromkeys(bundles))
    if not bundles:
        raise DiscoveryError("No client bundles found on discovery pages")
    logger.debug("Discovered %d client bundles", len(bundles))
    return bundles


async def fetch_and_extract(
    client: httpx.AsyncClient,
    bundle_urls: list[str],
    targets: set[str],
    concurrency: int = BUNDLE_CONCURRENCY,
) -> dict[str, str]:
    """Fetch bundles in chunks of ``concurrency`` until every target resolved."""
    discovered: dict[str, str] = {}

    for start in range(0, len(bundle_urls), concurrency):
        if targets.issubset(discovered):
            break
        chunk = bundle_urls[start:start + concurrency]
        bodies = await asyncio.gather(*(_fetch_text(client, url) for url in chunk))
        for url, body in zip(chunk, bodies):
            if body:
                extract_operations(body, targets, discovered, bundle_label(url))

    return discovered


async def discover_query_ids(
    client: httpx.AsyncClient,
    targets: set[str],
    pages: tuple[str, ...] = DISCOVERY_PAGES,
) -> DiscoveryResult:
    """Run a full discovery pass for ``targets``."""
    bundles = await discover_bundles(client, pages)
    ids = await fetch_and_extract(client, bundles, targets)
    return DiscoveryResult(
        ids=ids,
        pages=list(pages),
        bundles=[bundle_label(url) for url in bundles],
    )
