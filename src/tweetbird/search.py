"""SearchTimeline queries and mentions.

SearchTimeline is sent as a POST whose URL carries the variables while the
body carries only {features, queryId}; the plain GET form is rejected.
"""

import logging

from .context import ClientContext, as_page, graphql_url, tweet_page_parser
from .features import build_search_features
from .models import TweetsResult
from .pagination import collect_pages
from .results import Err
from .session import encode_params
from .users import UserOperations

logger = logging.getLogger(__name__)

SEARCH_PATH = ("search_by_raw_query", "search_timeline", "timeline")


class SearchOperations:
    def __init__(self, ctx: ClientContext, users: UserOperations):
        self.ctx = ctx
        self.users = users

    async def _fetch_page(
        self, query: str, count: int, cursor: str | None, include_raw: bool
    ):
        variables = {
            "rawQuery": query,
            "count": count,
            "querySource": "typed_query",
            "product": "Latest",
        }
        if cursor:
            variables["cursor"] = cursor
        params = encode_params(variables=variables)
        features = build_search_features()

        async def send(query_id: str):
            return await self.ctx.session.send(
                "POST",
                graphql_url(query_id, "SearchTimeline"),
                params=params,
                json={"features": features, "queryId": query_id},
            )

        parse = tweet_page_parser(SEARCH_PATH, self.ctx.quote_depth, include_raw)
        execution = await self.ctx.executor.execute("SearchTimeline", send, parse)
        return as_page(execution)

    async def _collect(
        self,
        query: str,
        limit: int | None,
        cursor: str | None = None,
        max_pages: int | None = None,
        include_raw: bool = False,
    ) -> TweetsResult:
        async def fetch_page(count: int, page_cursor: str | None):
            return await self._fetch_page(query, count, page_cursor, include_raw)

        result = await collect_pages(
            fetch_page, limit=limit, cursor=cursor, max_pages=max_pages, label="search results"
        )
        if isinstance(result, Err):
            return TweetsResult(success=False, error=result.reason)
        collected = result.value
        return TweetsResult(
            success=True, tweets=tuple(collected.items), next_cursor=collected.next_cursor
        )

    async def search(
        self, query: str, count: int = 20, include_raw: bool = False
    ) -> TweetsResult:
        return await self._collect(query, limit=count, include_raw=include_raw)

    async def get_all_search_results(
        self,
        query: str,
        cursor: str | None = None,
        max_pages: int | None = None,
        include_raw: bool = False,
    ) -> TweetsResult:
        return await self._collect(
            query, limit=None, cursor=cursor, max_pages=max_pages, include_raw=include_raw
        )

    async def get_mentions(
        self, username: str | None = None, count: int = 20, include_raw: bool = False
    ) -> TweetsResult:
        """Search for ``@username``; defaults to the authenticated account."""
        if not username:
            current = await self.users.get_current_user()
            if not current.success or current.user is None:
                return TweetsResult(
                    success=False, error=current.error or "Could not determine current user"
                )
            username = current.user.username
        handle = username.lstrip("@")
        return await self.search(f"@{handle}", count=count, include_raw=include_raw)
