"""TwitterClient: one object exposing every supported X web operation.

Authentication uses cookie-based auth (auth_token + ct0) matching the web
client's behavior. GraphQL query IDs rotate every few weeks; the client
resolves them through a QueryIdStore and falls back to bundled IDs, so a
rotation costs one refresh instead of a broken command.

Usage:
    async with TwitterClient(auth_token, ct0) as client:
        result = await client.get_bookmarks(count=50)
"""

import logging

from .constants import DEFAULT_QUOTE_DEPTH, DEFAULT_TIMEOUT
from .context import ClientContext
from .executor import OperationExecutor
from .lists import ListOperations
from .models import (
    CurrentUserResult,
    ListsResult,
    MediaUploadResult,
    PostResult,
    TweetResult,
    TweetsResult,
    UserLookupResult,
    UsersResult,
)
from .posting import PostingOperations
from .query_ids import QueryIdStore
from .search import SearchOperations
from .session import ApiSession
from .timelines import TimelineOperations
from .tweets import TweetOperations
from .users import UserOperations

logger = logging.getLogger(__name__)


class TwitterClient:
    """Client for X's internal GraphQL API using cookie auth."""

    def __init__(
        self,
        auth_token: str,
        ct0: str,
        timeout: float = DEFAULT_TIMEOUT,
        quote_depth: int = DEFAULT_QUOTE_DEPTH,
        store: QueryIdStore | None = None,
    ):
        if not auth_token or not ct0:
            raise ValueError("Both auth_token and ct0 are required")

        self.store = store or QueryIdStore(timeout=timeout)
        session = ApiSession(auth_token, ct0, timeout=timeout)
        self.ctx = ClientContext(
            session=session,
            store=self.store,
            executor=OperationExecutor(self.store),
            quote_depth=max(0, quote_depth),
        )
        self.users = UserOperations(self.ctx)
        self.tweets = TweetOperations(self.ctx)
        self.search_ops = SearchOperations(self.ctx, self.users)
        self.timelines = TimelineOperations(self.ctx, self.users)
        self.lists = ListOperations(self.ctx, self.users)
        self.posting = PostingOperations(self.ctx)

    # ── Tweets ──

    async def get_tweet(self, tweet_id: str, include_raw: bool = False) -> TweetResult:
        return await self.tweets.get_tweet(tweet_id, include_raw)

    async def get_replies(self, tweet_id: str, include_raw: bool = False) -> TweetsResult:
        return await self.tweets.get_replies(tweet_id, include_raw)

    async def get_thread(self, tweet_id: str, include_raw: bool = False) -> TweetsResult:
        return await self.tweets.get_thread(tweet_id, include_raw)

    # ── Search ──

    async def search(
        self, query: str, count: int = 20, include_raw: bool = False
    ) -> TweetsResult:
        return await self.search_ops.search(query, count, include_raw)

    async def get_all_search_results(
        self,
        query: str,
        cursor: str | None = None,
        max_pages: int | None = None,
        include_raw: bool = False,
    ) -> TweetsResult:
        return await self.search_ops.get_all_search_results(query, cursor, max_pages, include_raw)

    async def get_mentions(
        self, username: str | None = None, count: int = 20, include_raw: bool = False
    ) -> TweetsResult:
        return await self.search_ops.get_mentions(username, count, include_raw)

    # ── Bookmarks and likes ──

    async def get_bookmarks(
        self, count: int = 20, cursor: str | None = None, include_raw: bool = False
    ) -> TweetsResult:
        return await self.timelines.get_bookmarks(count, cursor, include_raw)

    async def get_all_bookmarks(
        self,
        cursor: str | None = None,
        max_pages: int | None = None,
        include_raw: bool = False,
    ) -> TweetsResult:
        return await self.timelines.get_all_bookmarks(cursor, max_pages, include_raw)

    async def get_bookmark_folder_timeline(
        self,
        folder_id: str,
        count: int = 20,
        cursor: str | None = None,
        include_raw: bool = False,
    ) -> TweetsResult:
        return await self.timelines.get_bookmark_folder_timeline(
            folder_id, count, cursor, include_raw
        )

    async def get_all_bookmark_folder_timeline(
        self,
        folder_id: str,
        cursor: str | None = None,
        max_pages: int | None = None,
        include_raw: bool = False,
    ) -> TweetsResult:
        return await self.timelines.get_all_bookmark_folder_timeline(
            folder_id, cursor, max_pages, include_raw
        )

    async def get_likes(
        self, count: int = 20, cursor: str | None = None, include_raw: bool = False
    ) -> TweetsResult:
        return await self.timelines.get_likes(count, cursor, include_raw)

    async def get_all_likes(
        self,
        cursor: str | None = None,
        max_pages: int | None = None,
        include_raw: bool = False,
    ) -> TweetsResult:
        return await self.timelines.get_all_likes(cursor, max_pages, include_raw)

    # ── Lists ──

    async def get_owned_lists(self, count: int = 100) -> ListsResult:
        return await self.lists.get_owned_lists(count)

    async def get_list_memberships(self, count: int = 100) -> ListsResult:
        return await self.lists.get_list_memberships(count)

    async def get_list_timeline(
        self,
        list_id: str,
        count: int = 20,
        cursor: str | None = None,
        include_raw: bool = False,
    ) -> TweetsResult:
        return await self.lists.get_list_timeline(list_id, count, cursor, include_raw)

    async def get_all_list_timeline(
        self,
        list_id: str,
        cursor: str | None = None,
        max_pages: int | None = None,
        include_raw: bool = False,
    ) -> TweetsResult:
        return await self.lists.get_all_list_timeline(list_id, cursor, max_pages, include_raw)

    # ── Users ──

    async def get_current_user(self) -> CurrentUserResult:
        return await self.users.get_current_user()

    async def get_user_id_by_username(self, username: str) -> UserLookupResult:
        return await self.users.get_user_id_by_username(username)

    async def get_user_tweets(
        self,
        user_id: str,
        count: int = 20,
        cursor: str | None = None,
        max_pages: int | None = None,
        include_raw: bool = False,
    ) -> TweetsResult:
        return await self.users.get_user_tweets(user_id, count, cursor, max_pages, include_raw)

    async def get_following(
        self, user_id: str, count: int = 20, cursor: str | None = None
    ) -> UsersResult:
        return await self.users.get_following(user_id, count, cursor)

    async def get_followers(
        self, user_id: str, count: int = 20, cursor: str | None = None
    ) -> UsersResult:
        return await self.users.get_followers(user_id, count, cursor)

    async def get_all_following(
        self, user_id: str, cursor: str | None = None, max_pages: int | None = None
    ) -> UsersResult:
        return await self.users.get_all_following(user_id, cursor, max_pages)

    async def get_all_followers(
        self, user_id: str, cursor: str | None = None, max_pages: int | None = None
    ) -> UsersResult:
        return await self.users.get_all_followers(user_id, cursor, max_pages)

    # ── Posting ──

    async def tweet(self, text: str, media_ids: tuple[str, ...] = ()) -> PostResult:
        return await self.posting.tweet(text, tuple(media_ids))

    async def reply(
        self, text: str, in_reply_to: str, media_ids: tuple[str, ...] = ()
    ) -> PostResult:
        return await self.posting.reply(text, in_reply_to, tuple(media_ids))

    async def upload_media(
        self, data: bytes, mime_type: str, alt_text: str | None = None
    ) -> MediaUploadResult:
        return await self.posting.upload_media(data, mime_type, alt_text)

    async def close(self) -> None:
        await self.ctx.session.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.close()
