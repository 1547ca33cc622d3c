"""Cursor-driven collection across timeline pages.

Every timeline-shaped endpoint (search, bookmarks, likes, list timeline,
user tweets, following/followers) shares the same loop: request a page,
merge new items by id, follow the bottom cursor, and stop on the first of:

- the requested number of items has been collected;
- the cursor is empty or unchanged, the page was empty, or it added
  nothing new (end of stream, next cursor reported as None);
- a page failed (the whole call fails, collected items are discarded);
- ``max_pages`` was reached (next cursor kept so the caller can resume).
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Generic, Protocol, TypeVar

from .constants import DEFAULT_PAGE_SIZE
from .results import Err, Ok, Result

logger = logging.getLogger(__name__)


class HasId(Protocol):
    id: str


ItemT = TypeVar("ItemT", bound=HasId)


@dataclass(frozen=True)
class PageResult(Generic[ItemT]):
    items: Sequence[ItemT] = ()
    next_cursor: str | None = None
    had_transient_identifier_failure: bool = False


@dataclass(frozen=True)
class Collected(Generic[ItemT]):
    items: list[ItemT] = field(default_factory=list)
    next_cursor: str | None = None
    pages_fetched: int = 0


FetchPage = Callable[[int, str | None], Awaitable[Result[PageResult[ItemT]]]]


async def collect_pages(
    fetch_page: FetchPage,
    limit: int | None = None,
    cursor: str | None = None,
    max_pages: int | None = None,
    page_size: int = DEFAULT_PAGE_SIZE,
    page_delay: float = 0,
    label: str = "items",
) -> Result[Collected]:
    """Collect up to ``limit`` items (all when None) by following cursors.

    Args:
        fetch_page: Coroutine taking (count, cursor) and returning a page.
        limit: Target number of items; None fetches until the stream ends.
        cursor: Cursor to resume from.
        max_pages: Stop after this many pages, keeping the next cursor.
        page_size: Items requested per page.
        page_delay: Seconds to sleep between pages.
    """
    seen: set[str] = set()
    items: list = []
    next_cursor: str | None = None
    pages_fetched = 0

    while limit is None or len(items) < limit:
        if pages_fetched > 0 and page_delay > 0:
            logger.debug("Sleeping %.1fs before next page...", page_delay)
            await asyncio.sleep(page_delay)

        count = page_size if limit is None else min(page_size, limit - len(items))
        logger.info("Fetching %s page %d...", label, pages_fetched + 1)
        result = await fetch_page(count, cursor)
        if isinstance(result, Err):
            if items:
                logger.warning(
                    "Page %d failed; discarding %d collected %s",
                    pages_fetched + 1, len(items), label,
                )
            return result

        page = result.value
        pages_fetched += 1
        if page.had_transient_identifier_failure:
            logger.debug("Page %d needed a query ID fallback", pages_fetched)

        added = 0
        for item in page.items:
            if item.id in seen:
                continue
            seen.add(item.id)
            items.append(item)
            added += 1
            if limit is not None and len(items) >= limit:
                break

        logger.info("Fetched %d %s (total: %d)", added, label, len(items))

        page_cursor = page.next_cursor
        if not page_cursor or page_cursor == cursor or not page.items or added == 0:
            next_cursor = None
            break
        if max_pages and pages_fetched >= max_pages:
            next_cursor = page_cursor
            break
        cursor = page_cursor
        next_cursor = page_cursor

    return Ok(Collected(items=items, next_cursor=next_cursor, pages_fetched=pages_fetched))
