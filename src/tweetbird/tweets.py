"""Tweet detail, replies and thread reads.

All three come from one TweetDetail call: replies and threads are filtered
out of the full conversation the server returns around the focal tweet.
"""

import logging
from dataclasses import replace
from datetime import datetime, timezone

from .context import ClientContext, dig, graphql_url
from .features import (
    build_article_features,
    build_article_field_toggles,
    build_tweet_detail_features,
)
from .models import Tweet, TweetResult, TweetsResult
from .normalizer import (
    extract_article_text,
    find_tweet_in_instructions,
    normalize_tweet_result,
    parse_tweets_from_instructions,
    parse_twitter_date,
)
from .results import Err, Ok, Result
from .session import encode_params

logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _detail_variables(tweet_id: str) -> dict:
    return {
        "focalTweetId": tweet_id,
        "with_rux_injections": False,
        "rankingMode": "Relevance",
        "includePromotedContent": True,
        "withCommunity": True,
        "withQuickPromoteEligibilityTweetFields": True,
        "withBirdwatchNotes": True,
        "withVoice": True,
    }


def _detail_data(payload: dict) -> Result[dict]:
    return Ok(payload.get("data") or {})


class TweetOperations:
    def __init__(self, ctx: ClientContext):
        self.ctx = ctx

    async def fetch_tweet_detail(self, tweet_id: str) -> Result[dict]:
        """Fetch the TweetDetail payload for ``tweet_id``.

        When the GET form of a query ID 404s, the same ID is retried as a
        POST before moving on to the next candidate.
        """
        variables = _detail_variables(tweet_id)
        features = build_tweet_detail_features()
        params = encode_params(variables=variables, features=features)
        session = self.ctx.session

        async def send(query_id: str):
            url = graphql_url(query_id, "TweetDetail")
            sent = await session.send("GET", url, params=params)
            if isinstance(sent, Ok) and sent.value.status_code == 404:
                logger.debug("TweetDetail GET 404 with %s, retrying as POST", query_id)
                body = {"variables": variables, "features": features, "queryId": query_id}
                return await session.send("POST", url, json=body)
            return sent

        execution = await self.ctx.executor.execute("TweetDetail", send, _detail_data)
        return execution.result

    def _conversation(self, data: dict, include_raw: bool = False) -> list[Tweet]:
        instructions = dig(data, "threaded_conversation_with_injections_v2", "instructions")
        return parse_tweets_from_instructions(instructions, self.ctx.quote_depth, include_raw)

    async def get_tweet(self, tweet_id: str, include_raw: bool = False) -> TweetResult:
        detail = await self.fetch_tweet_detail(tweet_id)
        if isinstance(detail, Err):
            return TweetResult(success=False, error=detail.reason)

        data = detail.value
        raw = dig(data, "tweetResult", "result") or find_tweet_in_instructions(
            dig(data, "threaded_conversation_with_injections_v2", "instructions"), tweet_id
        )
        tweet = normalize_tweet_result(raw, self.ctx.quote_depth, include_raw)
        if tweet is None:
            return TweetResult(success=False, error="Tweet not found in response")

        if isinstance(raw, dict) and raw.get("article"):
            tweet = await self._fill_article_text(tweet, raw)
        return TweetResult(success=True, tweet=tweet)

    async def _fill_article_text(self, tweet: Tweet, raw: dict) -> Tweet:
        """Fetch an article's plain text when TweetDetail only carried its title."""
        article = raw.get("article") or {}
        title = dig(article, "article_results", "result", "title") or article.get("title")
        if not isinstance(title, str) or not title.strip():
            return tweet
        article_text = extract_article_text(raw)
        if article_text and article_text.strip() != title.strip():
            return tweet

        user_id = dig(raw, "core", "user_results", "result", "rest_id")
        if not user_id:
            return tweet
        fetched_title, plain_text = await self._fetch_article_plain_text(user_id, tweet.id)
        if not plain_text:
            return tweet
        text = f"{fetched_title}\n\n{plain_text}" if fetched_title else plain_text
        return replace(tweet, text=text)

    async def _fetch_article_plain_text(
        self, user_id: str, tweet_id: str
    ) -> tuple[str | None, str | None]:
        """Best effort: look the article up in the author's article timeline."""
        variables = {
            "userId": user_id,
            "count": 20,
            "includePromotedContent": True,
            "withVoice": True,
            "withQuickPromoteEligibilityTweetFields": True,
            "withBirdwatchNotes": True,
            "withCommunity": True,
            "withSafetyModeUserFields": True,
            "withSuperFollowsUserFields": True,
            "withDownvotePerspective": False,
            "withReactionsMetadata": False,
            "withReactionsPerspective": False,
            "withSuperFollowsTweetFields": True,
            "withSuperFollowsReplyCount": False,
            "withClientEventToken": False,
        }

        def parse(payload: dict) -> Result[tuple[str | None, str | None]]:
            instructions = dig(payload, "data", "user", "result", "timeline", "timeline", "instructions")
            result = find_tweet_in_instructions(instructions, tweet_id)
            if not result:
                return Ok((None, None))
            article = result.get("article") or {}
            article_result = dig(article, "article_results", "result") or {}
            title = article_result.get("title") or article.get("title")
            plain_text = article_result.get("plain_text") or article.get("plain_text")
            return Ok((title, plain_text))

        execution = await self.ctx.graphql_get(
            "UserArticlesTweets",
            variables,
            build_article_features(),
            parse,
            field_toggles=build_article_field_toggles(),
        )
        if isinstance(execution.result, Err):
            logger.debug("Article plain text lookup failed: %s", execution.result.reason)
            return None, None
        return execution.result.value

    async def get_replies(self, tweet_id: str, include_raw: bool = False) -> TweetsResult:
        detail = await self.fetch_tweet_detail(tweet_id)
        if isinstance(detail, Err):
            return TweetsResult(success=False, error=detail.reason)
        tweets = self._conversation(detail.value, include_raw)
        replies = [t for t in tweets if t.in_reply_to_status_id == tweet_id]
        return TweetsResult(success=True, tweets=tuple(replies))

    async def get_thread(self, tweet_id: str, include_raw: bool = False) -> TweetsResult:
        detail = await self.fetch_tweet_detail(tweet_id)
        if isinstance(detail, Err):
            return TweetsResult(success=False, error=detail.reason)
        tweets = self._conversation(detail.value, include_raw)

        target = next((t for t in tweets if t.id == tweet_id), None)
        root_id = (target.conversation_id if target else None) or tweet_id
        thread = [t for t in tweets if t.conversation_id == root_id]
        thread.sort(key=lambda t: parse_twitter_date(t.created_at) or _EPOCH)
        return TweetsResult(success=True, tweets=tuple(thread))
