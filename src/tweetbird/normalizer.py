"""Flatten GraphQL timeline payloads into Tweet, User and TwitterList records.

Timeline responses nest items deeply and inconsistently:
    instruction -> entries[] -> content -> itemContent -> tweet_results -> result

Depending on the endpoint an entry may instead carry ``content.item``, or a
module with ``content.items[]`` whose children use any of three shapes.
Each tweet result may be wrapped in a TweetWithVisibilityResults container.

Malformed items are skipped with a warning and never abort a page.
"""

import logging
from collections.abc import Callable, Iterable, Iterator
from datetime import datetime

from .constants import DEFAULT_QUOTE_DEPTH, TWITTER_DATE_FORMAT
from .models import ListOwner, Tweet, TweetAuthor, TweetMedia, TwitterList, User

logger = logging.getLogger(__name__)


def _get(obj: object, *keys: str) -> object:
    """Walk nested dicts, returning None as soon as a level is missing."""
    for key in keys:
        if not isinstance(obj, dict):
            return None
        obj = obj.get(key)
    return obj


def _first_text(*values: object) -> str | None:
    for value in values:
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _int_or_none(value: object) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.isdigit():
        return int(value)
    return None


def parse_twitter_date(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.strptime(value, TWITTER_DATE_FORMAT)
    except ValueError:
        return None


# ── Text resolution ──

ArticleAccessor = Callable[[dict, dict], object]

_TEXT_LEAVES = (("text",), ("richtext", "text"), ("rich_text", "text"))
_BODY_CONTAINERS = (("body",), ("content",), ())


def _on_result(*keys: str) -> ArticleAccessor:
    return lambda article_result, article: _get(article_result, *keys)


def _on_article(*keys: str) -> ArticleAccessor:
    return lambda article_result, article: _get(article, *keys)


# Article body locations, most specific first
ARTICLE_BODY_ACCESSORS: tuple[ArticleAccessor, ...] = (
    _on_result("plain_text"),
    _on_article("plain_text"),
    *(
        _on_result(*container, *leaf)
        for container in _BODY_CONTAINERS
        for leaf in _TEXT_LEAVES
    ),
    *(
        _on_article(*container, *leaf)
        for container in _BODY_CONTAINERS
        for leaf in _TEXT_LEAVES
    ),
)

NOTE_TWEET_TEXT_PATHS: tuple[tuple[str, ...], ...] = (
    ("text",),
    ("richtext", "text"),
    ("rich_text", "text"),
    ("content", "text"),
    ("content", "richtext", "text"),
    ("content", "rich_text", "text"),
)


def _collect_text_fields(value: object, keys: frozenset[str], output: list[str]) -> None:
    """Recursively collect non-empty strings stored under any of ``keys``."""
    if isinstance(value, list):
        for item in value:
            _collect_text_fields(item, keys, output)
    elif isinstance(value, dict):
        for key, nested in value.items():
            if key in keys and isinstance(nested, str):
                if nested.strip():
                    output.append(nested.strip())
                continue
            _collect_text_fields(nested, keys, output)


def _unique_ordered(values: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(values))


def extract_article_text(result: dict) -> str | None:
    """Resolve the body of a long-form article, prefixed by its title.

    Falls back to a recursive scan of every ``text``/``title`` string when
    none of the known body locations has content.
    """
    article = result.get("article")
    if not isinstance(article, dict) or not article:
        return None

    article_result = _get(article, "article_results", "result")
    if not isinstance(article_result, dict):
        article_result = article

    title = _first_text(article_result.get("title"), article.get("title"))
    body = _first_text(*(accessor(article_result, article) for accessor in ARTICLE_BODY_ACCESSORS))

    if body and title and body == title:
        body = None

    if not body:
        collected: list[str] = []
        text_keys = frozenset({"text", "title"})
        _collect_text_fields(article_result, text_keys, collected)
        _collect_text_fields(article, text_keys, collected)
        remaining = [v for v in _unique_ordered(collected) if v != title]
        if remaining:
            body = "\n\n".join(remaining)

    if title and body and not body.startswith(title):
        return f"{title}\n\n{body}"
    return body or title


def extract_note_tweet_text(result: dict) -> str | None:
    note = _get(result, "note_tweet", "note_tweet_results", "result")
    if not isinstance(note, dict):
        return None
    return _first_text(*(_get(note, *path) for path in NOTE_TWEET_TEXT_PATHS))


def extract_legacy_text(result: dict) -> str | None:
    return _first_text(_get(result, "legacy", "full_text"))


# Text precedence: article, then note tweet, then the short-form text
TEXT_RESOLVERS: tuple[Callable[[dict], str | None], ...] = (
    extract_article_text,
    extract_note_tweet_text,
    extract_legacy_text,
)


def extract_tweet_text(result: dict) -> str | None:
    for resolver in TEXT_RESOLVERS:
        text = resolver(result)
        if text:
            return text
    return None


# ── Authors ──


def _user_fields(result: dict) -> tuple[str, str, str] | None:
    """Return (rest_id, screen_name, name) from a user result dict."""
    for source in (result.get("legacy"), result.get("core"), result):
        if isinstance(source, dict) and source.get("screen_name"):
            username = source["screen_name"]
            return result.get("rest_id", ""), username, source.get("name") or username
    return None


def _extract_author(tweet_result: dict, tweet_id: str = "") -> tuple[str, str, str] | None:
    """Extract the author of a tweet result, trying multiple known key paths.

    The user object has moved between schema versions: legacy, core and a
    flattened form under ``core.user_results``, or the singular
    ``core.user_result``. A bounded recursive search is the last resort.
    """
    core = tweet_result.get("core")
    if not isinstance(core, dict):
        logger.debug("tweet %s: no core block", tweet_id)
        return None

    for key in ("user_results", "user_result"):
        user = _get(core, key, "result")
        if isinstance(user, dict) and user:
            found = _user_fields(user)
            if found:
                logger.debug("tweet %s: author resolved via core.%s", tweet_id, key)
                return found

    deep = _deep_find_user(core)
    if deep:
        logger.debug("tweet %s: author resolved via deep search", tweet_id)
        username = deep["screen_name"]
        return deep.get("rest_id", ""), username, deep.get("name") or username

    logger.debug("tweet %s: no author handle, dropping", tweet_id)
    return None


def _deep_find_user(obj: object, max_depth: int = 6) -> dict | None:
    """Recursively search for a dict containing both 'screen_name' and 'name'."""
    if max_depth <= 0 or not isinstance(obj, (dict, list)):
        return None
    if isinstance(obj, dict):
        if isinstance(obj.get("screen_name"), str) and obj["screen_name"] and "name" in obj:
            return obj
        values: Iterable = obj.values()
    else:
        values = obj
    for value in values:
        found = _deep_find_user(value, max_depth - 1)
        if found:
            return found
    return None


# ── Media ──


def _best_video_variant(media: dict) -> str | None:
    variants = _get(media, "video_info", "variants") or []
    mp4s = [
        v for v in variants
        if isinstance(v, dict) and v.get("content_type") == "video/mp4" and v.get("url")
    ]
    if not mp4s:
        return None
    return max(mp4s, key=lambda v: v.get("bitrate") or 0)["url"]


def _extract_media(legacy: dict) -> tuple[TweetMedia, ...]:
    media_entities = _get(legacy, "extended_entities", "media") or []
    media = []
    for m in media_entities:
        if not isinstance(m, dict) or not m.get("media_url_https"):
            continue
        media_type = m.get("type", "photo")
        is_video = media_type in ("video", "animated_gif")
        media.append(
            TweetMedia(
                type=media_type,
                url=m["media_url_https"],
                width=_int_or_none(_get(m, "original_info", "width")),
                height=_int_or_none(_get(m, "original_info", "height")),
                preview_url=m["media_url_https"] if is_video else None,
                video_url=_best_video_variant(m) if is_video else None,
                duration_ms=_int_or_none(_get(m, "video_info", "duration_millis")),
            )
        )
    return tuple(media)


# ── Tweets ──


def unwrap_tweet_result(result: object) -> dict | None:
    """Unwrap visibility containers; tombstones and non-dicts yield None."""
    if not isinstance(result, dict):
        return None
    if result.get("__typename") == "TweetWithVisibilityResults":
        result = result.get("tweet")
    if not isinstance(result, dict) or result.get("__typename") == "TweetTombstone":
        return None
    return result


def normalize_tweet_result(
    result: object,
    quote_depth: int = DEFAULT_QUOTE_DEPTH,
    include_raw: bool = False,
) -> Tweet | None:
    """Normalize one tweet result, or None when id, author or text is missing."""
    tweet_result = unwrap_tweet_result(result)
    if not tweet_result:
        return None

    tweet_id = tweet_result.get("rest_id")
    if not tweet_id:
        return None

    author = _extract_author(tweet_result, tweet_id)
    if not author:
        return None
    author_id, username, name = author

    text = extract_tweet_text(tweet_result)
    if not text:
        logger.debug("tweet %s: no resolvable text, dropping", tweet_id)
        return None

    legacy = tweet_result.get("legacy")
    if not isinstance(legacy, dict):
        legacy = {}

    quoted_tweet = None
    if quote_depth > 0:
        quoted_raw = _get(tweet_result, "quoted_status_result", "result")
        if quoted_raw:
            quoted_tweet = normalize_tweet_result(
                quoted_raw, quote_depth=quote_depth - 1, include_raw=include_raw
            )

    return Tweet(
        id=tweet_id,
        text=text,
        author=TweetAuthor(username=username, name=name),
        author_id=author_id or None,
        created_at=legacy.get("created_at"),
        reply_count=_int_or_none(legacy.get("reply_count")),
        retweet_count=_int_or_none(legacy.get("retweet_count")),
        like_count=_int_or_none(legacy.get("favorite_count")),
        conversation_id=legacy.get("conversation_id_str"),
        in_reply_to_status_id=legacy.get("in_reply_to_status_id_str"),
        quoted_tweet=quoted_tweet,
        media=_extract_media(legacy),
        raw=tweet_result if include_raw else None,
    )


def _instruction_entries(instructions: object) -> Iterator[dict]:
    """Yield every entry of every instruction, including replaced entries."""
    if not isinstance(instructions, list):
        return
    for instruction in instructions:
        if not isinstance(instruction, dict):
            continue
        for entry in instruction.get("entries") or []:
            if isinstance(entry, dict):
                yield entry
        replaced = instruction.get("entry")
        if isinstance(replaced, dict):
            yield replaced


def _entry_item_contents(entry: dict) -> Iterator[dict]:
    """Yield each itemContent block carried by an entry, in document order."""
    content = entry.get("content")
    if not isinstance(content, dict):
        return
    for item_content in (
        content.get("itemContent"),
        _get(content, "item", "itemContent"),
    ):
        if isinstance(item_content, dict):
            yield item_content
    for item in content.get("items") or []:
        for item_content in (
            _get(item, "item", "itemContent"),
            _get(item, "itemContent"),
            _get(item, "content", "itemContent"),
        ):
            if isinstance(item_content, dict):
                yield item_content


def iter_tweet_results(instructions: object) -> Iterator[dict]:
    """Yield raw tweet results from all entry shapes, unwrapped."""
    for entry in _instruction_entries(instructions):
        for item_content in _entry_item_contents(entry):
            result = unwrap_tweet_result(_get(item_content, "tweet_results", "result"))
            if result and result.get("rest_id"):
                yield result


def parse_tweets_from_instructions(
    instructions: object,
    quote_depth: int = DEFAULT_QUOTE_DEPTH,
    include_raw: bool = False,
) -> list[Tweet]:
    """Normalize every tweet in an instruction list, de-duplicated by id."""
    tweets: list[Tweet] = []
    seen: set[str] = set()
    for result in iter_tweet_results(instructions):
        try:
            tweet = normalize_tweet_result(result, quote_depth, include_raw)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning("Skipping malformed tweet %s: %s", result.get("rest_id", "?"), e)
            continue
        if tweet is None or tweet.id in seen:
            continue
        seen.add(tweet.id)
        tweets.append(tweet)
    return tweets


def find_tweet_in_instructions(instructions: object, tweet_id: str) -> dict | None:
    for result in iter_tweet_results(instructions):
        if result.get("rest_id") == tweet_id:
            return result
    return None


def extract_cursor_from_instructions(instructions: object) -> str | None:
    """Return the value of the first bottom cursor entry, if any."""
    for entry in _instruction_entries(instructions):
        content = entry.get("content")
        if not isinstance(content, dict):
            continue
        is_bottom = content.get("cursorType") == "Bottom" or str(
            entry.get("entryId", "")
        ).startswith("cursor-bottom")
        value = content.get("value")
        if is_bottom and isinstance(value, str) and value:
            return value
    return None


# ── Users ──


def normalize_user_result(result: object) -> User | None:
    if not isinstance(result, dict) or result.get("__typename") == "UserUnavailable":
        return None
    fields = _user_fields(result)
    if not fields or not result.get("rest_id"):
        return None
    user_id, username, name = fields
    legacy = result.get("legacy") if isinstance(result.get("legacy"), dict) else {}
    core = result.get("core") if isinstance(result.get("core"), dict) else {}
    return User(
        id=user_id,
        username=username,
        name=name,
        description=_first_text(legacy.get("description"), _get(result, "profile_bio", "description")),
        followers_count=_int_or_none(legacy.get("followers_count")),
        following_count=_int_or_none(legacy.get("friends_count")),
        is_blue_verified=result.get("is_blue_verified"),
        profile_image_url=_first_text(
            legacy.get("profile_image_url_https"), _get(result, "avatar", "image_url")
        ),
        created_at=legacy.get("created_at") or core.get("created_at"),
    )


def parse_users_from_instructions(instructions: object) -> list[User]:
    """Normalize user entries (followers/following timelines), de-duplicated."""
    users: list[User] = []
    seen: set[str] = set()
    for entry in _instruction_entries(instructions):
        for item_content in _entry_item_contents(entry):
            user = normalize_user_result(_get(item_content, "user_results", "result"))
            if user is None or user.id in seen:
                continue
            seen.add(user.id)
            users.append(user)
    return users


# ── Lists ──


def normalize_list(list_result: object) -> TwitterList | None:
    if not isinstance(list_result, dict):
        return None
    if not list_result.get("id_str") or not list_result.get("name"):
        return None

    owner = None
    owner_result = _get(list_result, "user_results", "result")
    if isinstance(owner_result, dict):
        fields = _user_fields(owner_result)
        owner = ListOwner(
            id=owner_result.get("rest_id", ""),
            username=fields[1] if fields else "",
            name=fields[2] if fields else "",
        )

    mode = list_result.get("mode")
    return TwitterList(
        id=list_result["id_str"],
        name=list_result["name"],
        description=list_result.get("description"),
        member_count=_int_or_none(list_result.get("member_count")),
        subscriber_count=_int_or_none(list_result.get("subscriber_count")),
        is_private=isinstance(mode, str) and mode.lower() == "private",
        owner=owner,
        created_at=list_result.get("created_at"),
    )


def parse_lists_from_instructions(instructions: object) -> list[TwitterList]:
    lists: list[TwitterList] = []
    for entry in _instruction_entries(instructions):
        for item_content in _entry_item_contents(entry):
            parsed = normalize_list(item_content.get("list"))
            if parsed:
                lists.append(parsed)
    return lists
