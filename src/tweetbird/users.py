"""Account and user lookups: current user, handle lookup, user timelines.

The current user is needed before likes, lists and default mentions can
run, so its lookup is layered: four REST endpoints first, then scraping the
authenticated settings page as a last resort.
"""

import logging
import math
import re
from urllib.parse import quote

from .context import ClientContext, as_page, dig, tweet_page_parser
from .extract import normalize_handle
from .features import build_timeline_features, build_user_features
from .models import CurrentUser, CurrentUserResult, TweetsResult, UserLookupResult, UsersResult
from .normalizer import extract_cursor_from_instructions, parse_users_from_instructions
from .pagination import PageResult, collect_pages
from .results import Err, Ok, Result

logger = logging.getLogger(__name__)

CURRENT_USER_URLS = (
    "https://x.com/i/api/account/settings.json",
    "https://api.twitter.com/1.1/account/settings.json",
    "https://x.com/i/api/account/verify_credentials.json?skip_status=true&include_entities=false",
    "https://api.twitter.com/1.1/account/verify_credentials.json?skip_status=true&include_entities=false",
)
SETTINGS_PAGES = (
    "https://x.com/settings/account",
    "https://twitter.com/settings/account",
)
USER_SHOW_URLS = (
    "https://x.com/i/api/1.1/users/show.json?screen_name={}",
    "https://api.twitter.com/1.1/users/show.json?screen_name={}",
)

_SCREEN_NAME_RE = re.compile(r'"screen_name":"([^"]+)"')
_USER_ID_RE = re.compile(r'"user_id"\s*:\s*"(\d+)"')
_NAME_RE = re.compile(r'"name":"([^"\\]*(?:\\.[^"\\]*)*)"')

USER_TIMELINE_PATH = ("user", "result", "timeline", "timeline")
USER_TWEETS_MAX_PAGES = 10
FOLLOW_PAGE_DELAY = 1.0
USER_TWEETS_PAGE_DELAY = 1.0


def _str_or_none(value: object) -> str | None:
    return value if isinstance(value, str) and value else None


def parse_account_json(data: object) -> CurrentUser | None:
    """Read (id, screen_name, name) from account/settings or verify_credentials."""
    if not isinstance(data, dict):
        return None
    user = data.get("user") if isinstance(data.get("user"), dict) else {}
    username = _str_or_none(data.get("screen_name")) or _str_or_none(user.get("screen_name"))
    name = _str_or_none(data.get("name")) or _str_or_none(user.get("name"))
    user_id = (
        _str_or_none(data.get("user_id"))
        or _str_or_none(data.get("user_id_str"))
        or _str_or_none(user.get("id_str"))
        or _str_or_none(user.get("id"))
    )
    if not username or not user_id:
        return None
    return CurrentUser(id=user_id, username=username, name=name or username)


def parse_settings_html(html: str) -> CurrentUser | None:
    username = _SCREEN_NAME_RE.search(html)
    user_id = _USER_ID_RE.search(html)
    if not username or not user_id:
        return None
    name_match = _NAME_RE.search(html)
    name = name_match.group(1).replace('\\"', '"') if name_match else None
    return CurrentUser(id=user_id.group(1), username=username.group(1), name=name or username.group(1))


def user_page_parser(path: tuple[str, ...]):
    def parse(payload: dict) -> Result[PageResult]:
        instructions = dig(payload, "data", *path, "instructions")
        return Ok(
            PageResult(
                items=parse_users_from_instructions(instructions),
                next_cursor=extract_cursor_from_instructions(instructions),
            )
        )

    return parse


class UserOperations:
    def __init__(self, ctx: ClientContext):
        self.ctx = ctx
        self._current_user: CurrentUser | None = None

    # ── Current user ──

    async def get_current_user(self) -> CurrentUserResult:
        """Resolve the authenticated account; a success is cached per client."""
        if self._current_user:
            return CurrentUserResult(success=True, user=self._current_user)

        session = self.ctx.session
        last_error: str | None = None

        for url in CURRENT_USER_URLS:
            sent = await session.send("GET", url)
            if isinstance(sent, Err):
                last_error = sent.reason
                continue
            response = sent.value
            if not response.is_success:
                last_error = f"HTTP {response.status_code}: {response.text[:200]}"
                continue
            try:
                user = parse_account_json(response.json())
            except ValueError as e:
                last_error = f"Invalid JSON from {url}: {e}"
                continue
            if user:
                self._current_user = user
                return CurrentUserResult(success=True, user=user)
            last_error = "Could not determine current user from response"

        logger.debug("Account endpoints failed (%s), trying settings page", last_error)
        for page in SETTINGS_PAGES:
            sent = await session.send("GET", page, headers={"accept": "text/html"})
            if isinstance(sent, Err):
                last_error = sent.reason
                continue
            if not sent.value.is_success:
                last_error = f"HTTP {sent.value.status_code} (settings page)"
                continue
            user = parse_settings_html(sent.value.text)
            if user:
                self._current_user = user
                return CurrentUserResult(success=True, user=user)
            last_error = "Could not parse settings page for user info"

        return CurrentUserResult(
            success=False, error=last_error or "Unknown error fetching current user"
        )

    # ── Handle lookup ──

    async def _lookup_graphql(self, handle: str) -> UserLookupResult:
        variables = {"screen_name": handle, "withSafetyModeUserFields": True}

        def parse(payload: dict) -> Result[UserLookupResult]:
            result = dig(payload, "data", "user", "result")
            if not isinstance(result, dict):
                return Err("Could not parse user data from response")
            if result.get("__typename") == "UserUnavailable":
                return Ok(UserLookupResult(success=False, error=f"User @{handle} not found or unavailable"))
            legacy = result.get("legacy") or {}
            core = result.get("core") or {}
            user_id = result.get("rest_id")
            username = legacy.get("screen_name") or core.get("screen_name")
            if not user_id or not username:
                return Err("Could not parse user data from response")
            return Ok(
                UserLookupResult(
                    success=True,
                    user_id=user_id,
                    username=username,
                    name=legacy.get("name") or core.get("name"),
                )
            )

        execution = await self.ctx.graphql_get(
            "UserByScreenName",
            variables,
            build_user_features(),
            parse,
            field_toggles={"withAuxiliaryUserLabels": False},
        )
        if isinstance(execution.result, Err):
            return UserLookupResult(success=False, error=execution.result.reason)
        return execution.result.value

    async def get_user_id_by_username(self, username: str) -> UserLookupResult:
        """Look up a handle via GraphQL, falling back to REST users/show."""
        handle = normalize_handle(username)
        if not handle:
            return UserLookupResult(success=False, error=f"Invalid username: {username}")

        graphql = await self._lookup_graphql(handle)
        if graphql.success or "not found or unavailable" in (graphql.error or ""):
            return graphql

        last_error = graphql.error
        for template in USER_SHOW_URLS:
            sent = await self.ctx.session.send("GET", template.format(quote(handle)))
            if isinstance(sent, Err):
                last_error = sent.reason
                continue
            response = sent.value
            if response.status_code == 404:
                return UserLookupResult(success=False, error=f"User @{handle} not found")
            if not response.is_success:
                last_error = f"HTTP {response.status_code}: {response.text[:200]}"
                continue
            try:
                data = response.json()
            except ValueError as e:
                last_error = str(e)
                continue
            if not isinstance(data, dict):
                last_error = "Unexpected users/show response"
                continue
            user_id = data.get("id_str") or (str(data["id"]) if data.get("id") else None)
            if not user_id:
                last_error = "Could not parse user ID from response"
                continue
            return UserLookupResult(
                success=True,
                user_id=user_id,
                username=data.get("screen_name") or handle,
                name=data.get("name"),
            )

        return UserLookupResult(success=False, error=last_error or "Unknown error looking up user")

    # ── User tweets ──

    async def get_user_tweets(
        self,
        user_id: str,
        count: int = 20,
        cursor: str | None = None,
        max_pages: int | None = None,
        include_raw: bool = False,
    ) -> TweetsResult:
        """Fetch a user's own tweets; never more than 10 pages per call."""
        if count <= 0:
            return TweetsResult(success=False, error=f"Invalid limit: {count}")
        pages = max_pages or math.ceil(count / 20)
        pages = max(1, min(pages, USER_TWEETS_MAX_PAGES))
        features = build_timeline_features()
        parse = tweet_page_parser(USER_TIMELINE_PATH, self.ctx.quote_depth, include_raw)

        async def fetch_page(page_count: int, page_cursor: str | None):
            variables = {
                "userId": user_id,
                "count": page_count,
                "includePromotedContent": False,
                "withQuickPromoteEligibilityTweetFields": True,
                "withVoice": True,
            }
            if page_cursor:
                variables["cursor"] = page_cursor
            execution = await self.ctx.graphql_get(
                "UserTweets",
                variables,
                features,
                parse,
                field_toggles={"withArticlePlainText": False},
                allow_partial=True,
            )
            return as_page(execution)

        result = await collect_pages(
            fetch_page,
            limit=count,
            cursor=cursor,
            max_pages=pages,
            page_delay=USER_TWEETS_PAGE_DELAY,
            label="user tweets",
        )
        if isinstance(result, Err):
            return TweetsResult(success=False, error=result.reason)
        return TweetsResult(
            success=True, tweets=tuple(result.value.items), next_cursor=result.value.next_cursor
        )

    # ── Following / followers ──

    async def _collect_follows(
        self,
        operation: str,
        user_id: str,
        limit: int | None,
        cursor: str | None,
        max_pages: int | None,
    ) -> UsersResult:
        features = build_timeline_features()
        parse = user_page_parser(USER_TIMELINE_PATH)

        async def fetch_page(page_count: int, page_cursor: str | None):
            variables = {"userId": user_id, "count": page_count, "includePromotedContent": False}
            if page_cursor:
                variables["cursor"] = page_cursor
            execution = await self.ctx.graphql_get(
                operation, variables, features, parse, allow_partial=True
            )
            return as_page(execution)

        result = await collect_pages(
            fetch_page,
            limit=limit,
            cursor=cursor,
            max_pages=max_pages,
            page_delay=FOLLOW_PAGE_DELAY,
            label=operation.lower(),
        )
        if isinstance(result, Err):
            return UsersResult(success=False, error=result.reason)
        return UsersResult(
            success=True, users=tuple(result.value.items), next_cursor=result.value.next_cursor
        )

    async def get_following(
        self, user_id: str, count: int = 20, cursor: str | None = None
    ) -> UsersResult:
        return await self._collect_follows("Following", user_id, count, cursor, None)

    async def get_followers(
        self, user_id: str, count: int = 20, cursor: str | None = None
    ) -> UsersResult:
        return await self._collect_follows("Followers", user_id, count, cursor, None)

    async def get_all_following(
        self, user_id: str, cursor: str | None = None, max_pages: int | None = None
    ) -> UsersResult:
        return await self._collect_follows("Following", user_id, None, cursor, max_pages)

    async def get_all_followers(
        self, user_id: str, cursor: str | None = None, max_pages: int | None = None
    ) -> UsersResult:
        return await self._collect_follows("Followers", user_id, None, cursor, max_pages)
