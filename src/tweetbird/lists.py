"""List ownerships, memberships and list timelines."""

import logging

from .context import ClientContext, as_page, dig, tweet_page_parser
from .features import build_timeline_features
from .models import ListsResult, TweetsResult
from .normalizer import parse_lists_from_instructions
from .pagination import collect_pages
from .results import Err, Ok, Result
from .users import USER_TIMELINE_PATH, UserOperations

logger = logging.getLogger(__name__)

LIST_TIMELINE_PATH = ("list", "tweets_timeline", "timeline")


def _parse_lists(payload: dict) -> Result[list]:
    instructions = dig(payload, "data", *USER_TIMELINE_PATH, "instructions")
    return Ok(parse_lists_from_instructions(instructions))


class ListOperations:
    def __init__(self, ctx: ClientContext, users: UserOperations):
        self.ctx = ctx
        self.users = users

    async def _fetch_lists(self, operation: str, count: int) -> ListsResult:
        current = await self.users.get_current_user()
        if not current.success or current.user is None:
            return ListsResult(
                success=False, error=current.error or "Could not determine current user"
            )
        variables = {
            "userId": current.user.id,
            "count": count,
            "isListMembershipShown": True,
            "isListMemberTargetUserId": current.user.id,
        }
        execution = await self.ctx.graphql_get(
            operation, variables, build_timeline_features(), _parse_lists
        )
        if isinstance(execution.result, Err):
            return ListsResult(success=False, error=execution.result.reason)
        logger.info("Fetched %d lists", len(execution.result.value))
        return ListsResult(success=True, lists=tuple(execution.result.value))

    async def get_owned_lists(self, count: int = 100) -> ListsResult:
        return await self._fetch_lists("ListOwnerships", count)

    async def get_list_memberships(self, count: int = 100) -> ListsResult:
        return await self._fetch_lists("ListMemberships", count)

    async def _collect_timeline(
        self, list_id: str, limit, cursor, max_pages, include_raw
    ) -> TweetsResult:
        features = build_timeline_features()
        parse = tweet_page_parser(LIST_TIMELINE_PATH, self.ctx.quote_depth, include_raw)

        async def fetch_page(count: int, page_cursor: str | None):
            variables = {"listId": list_id, "count": count}
            if page_cursor:
                variables["cursor"] = page_cursor
            execution = await self.ctx.graphql_get(
                "ListLatestTweetsTimeline", variables, features, parse, allow_partial=True
            )
            return as_page(execution)

        result = await collect_pages(
            fetch_page, limit=limit, cursor=cursor, max_pages=max_pages, label="list tweets"
        )
        if isinstance(result, Err):
            return TweetsResult(success=False, error=result.reason)
        return TweetsResult(
            success=True, tweets=tuple(result.value.items), next_cursor=result.value.next_cursor
        )

    async def get_list_timeline(
        self,
        list_id: str,
        count: int = 20,
        cursor: str | None = None,
        include_raw: bool = False,
    ) -> TweetsResult:
        return await self._collect_timeline(list_id, count, cursor, None, include_raw)

    async def get_all_list_timeline(
        self,
        list_id: str,
        cursor: str | None = None,
        max_pages: int | None = None,
        include_raw: bool = False,
    ) -> TweetsResult:
        return await self._collect_timeline(list_id, None, cursor, max_pages, include_raw)
