"""Bookmarks, bookmark folders and likes timelines.

Bookmark endpoints throttle aggressively, so their page requests go through
the 429/5xx backoff helper. GraphQL errors next to usable timeline data are
tolerated on all three. Bookmark pages that carry only errors move on to
the next query ID.
"""

import logging
from dataclasses import replace

from .context import ClientContext, as_page, tweet_page_parser
from .executor import Execution
from .features import build_timeline_features
from .models import TweetsResult
from .pagination import collect_pages
from .results import Err
from .users import USER_TIMELINE_PATH, UserOperations

logger = logging.getLogger(__name__)

BOOKMARKS_PATH = ("bookmark_timeline_v2", "timeline")
BOOKMARK_FOLDER_PATH = ("bookmark_collection_timeline", "timeline")
FOLDER_OPERATION = "BookmarkFolderTimeline"


def _tweets_result(result) -> TweetsResult:
    if isinstance(result, Err):
        return TweetsResult(success=False, error=result.reason)
    return TweetsResult(
        success=True, tweets=tuple(result.value.items), next_cursor=result.value.next_cursor
    )


class TimelineOperations:
    def __init__(self, ctx: ClientContext, users: UserOperations):
        self.ctx = ctx
        self.users = users

    # ── Bookmarks ──

    async def _collect_bookmarks(self, limit, cursor, max_pages, include_raw) -> TweetsResult:
        features = build_timeline_features()
        parse = tweet_page_parser(BOOKMARKS_PATH, self.ctx.quote_depth, include_raw)

        async def fetch_page(count: int, page_cursor: str | None):
            variables = {
                "count": count,
                "includePromotedContent": False,
                "withDownvotePerspective": False,
                "withReactionsMetadata": False,
                "withReactionsPerspective": False,
            }
            if page_cursor:
                variables["cursor"] = page_cursor
            execution = await self.ctx.graphql_get(
                "Bookmarks",
                variables,
                features,
                parse,
                allow_partial=True,
                skip_error_pages=True,
                retry=True,
            )
            return as_page(execution)

        result = await collect_pages(
            fetch_page, limit=limit, cursor=cursor, max_pages=max_pages, label="bookmarks"
        )
        return _tweets_result(result)

    async def get_bookmarks(
        self, count: int = 20, cursor: str | None = None, include_raw: bool = False
    ) -> TweetsResult:
        return await self._collect_bookmarks(count, cursor, None, include_raw)

    async def get_all_bookmarks(
        self,
        cursor: str | None = None,
        max_pages: int | None = None,
        include_raw: bool = False,
    ) -> TweetsResult:
        return await self._collect_bookmarks(None, cursor, max_pages, include_raw)

    # ── Bookmark folders ──

    async def _fetch_folder_page(
        self,
        folder_id: str,
        count: int,
        cursor: str | None,
        include_raw: bool,
    ):
        features = build_timeline_features()
        parse = tweet_page_parser(BOOKMARK_FOLDER_PATH, self.ctx.quote_depth, include_raw)

        async def attempt(include_count: bool) -> Execution:
            variables: dict = {
                "bookmark_collection_id": folder_id,
                "includePromotedContent": True,
            }
            if include_count:
                variables["count"] = count
            if cursor:
                variables["cursor"] = cursor
            return await self.ctx.graphql_get(
                FOLDER_OPERATION,
                variables,
                features,
                parse,
                allow_partial=True,
                skip_error_pages=True,
                retry=True,
                refresh=False,
            )

        async def attempt_variants() -> Execution:
            execution = await attempt(include_count=True)
            # Some folder query IDs do not declare $count
            if isinstance(execution.result, Err) and 'Variable "$count"' in execution.result.reason:
                logger.debug("Bookmark folder rejected $count, retrying without it")
                retried = await attempt(include_count=False)
                execution = replace(
                    retried,
                    had_transient_failure=execution.had_transient_failure
                    or retried.had_transient_failure,
                )
            return execution

        # Both variable sets share one forced refresh
        execution = await attempt_variants()
        if execution.needs_refresh:
            await self.ctx.executor.force_refresh(FOLDER_OPERATION)
            retried = await attempt_variants()
            execution = replace(retried, had_transient_failure=True, refreshed=True)

        page = as_page(execution)
        if isinstance(page, Err) and cursor and 'Variable "$cursor"' in page.reason:
            return Err("Bookmark folder pagination rejected the cursor parameter", status=page.status)
        return page

    async def _collect_folder(self, folder_id, limit, cursor, max_pages, include_raw) -> TweetsResult:
        async def fetch_page(count: int, page_cursor: str | None):
            return await self._fetch_folder_page(folder_id, count, page_cursor, include_raw)

        result = await collect_pages(
            fetch_page, limit=limit, cursor=cursor, max_pages=max_pages, label="folder bookmarks"
        )
        return _tweets_result(result)

    async def get_bookmark_folder_timeline(
        self,
        folder_id: str,
        count: int = 20,
        cursor: str | None = None,
        include_raw: bool = False,
    ) -> TweetsResult:
        return await self._collect_folder(folder_id, count, cursor, None, include_raw)

    async def get_all_bookmark_folder_timeline(
        self,
        folder_id: str,
        cursor: str | None = None,
        max_pages: int | None = None,
        include_raw: bool = False,
    ) -> TweetsResult:
        return await self._collect_folder(folder_id, None, cursor, max_pages, include_raw)

    # ── Likes ──

    async def _collect_likes(self, limit, cursor, max_pages, include_raw) -> TweetsResult:
        current = await self.users.get_current_user()
        if not current.success or current.user is None:
            return TweetsResult(
                success=False, error=current.error or "Could not determine current user"
            )
        user_id = current.user.id
        features = build_timeline_features()
        parse = tweet_page_parser(USER_TIMELINE_PATH, self.ctx.quote_depth, include_raw)

        async def fetch_page(count: int, page_cursor: str | None):
            variables = {
                "userId": user_id,
                "count": count,
                "includePromotedContent": False,
                "withClientEventToken": False,
                "withBirdwatchNotes": False,
                "withVoice": True,
            }
            if page_cursor:
                variables["cursor"] = page_cursor
            execution = await self.ctx.graphql_get(
                "Likes", variables, features, parse, allow_partial=True
            )
            return as_page(execution)

        result = await collect_pages(
            fetch_page, limit=limit, cursor=cursor, max_pages=max_pages, label="likes"
        )
        return _tweets_result(result)

    async def get_likes(
        self, count: int = 20, cursor: str | None = None, include_raw: bool = False
    ) -> TweetsResult:
        return await self._collect_likes(count, cursor, None, include_raw)

    async def get_all_likes(
        self,
        cursor: str | None = None,
        max_pages: int | None = None,
        include_raw: bool = False,
    ) -> TweetsResult:
        return await self._collect_likes(None, cursor, max_pages, include_raw)
