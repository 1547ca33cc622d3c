"""Posting tweets and replies, and uploading media for them.

CreateTweet increasingly wants the generic /i/api/graphql endpoint with the
queryId in the body, so a 404 on the operation URL is retried there first.
When the server flags the request as automated (error 226) the post is
sent once more through the legacy REST statuses/update endpoint.
"""

import asyncio
import logging

from .constants import (
    TWITTER_GRAPHQL_POST_URL,
    TWITTER_MEDIA_METADATA_URL,
    TWITTER_STATUS_UPDATE_URL,
    TWITTER_UPLOAD_URL,
)
from .context import ClientContext, dig, graphql_url
from .features import build_create_tweet_features
from .models import MediaUploadResult, PostResult
from .results import Err, Ok, Result
from .session import describe_http_error

logger = logging.getLogger(__name__)

AUTOMATED_REQUEST_CODE = 226
UPLOAD_CHUNK_SIZE = 5 * 1024 * 1024
MAX_STATUS_CHECKS = 30


def media_category(mime_type: str) -> str:
    if mime_type == "image/gif":
        return "tweet_gif"
    if mime_type.startswith("video/"):
        return "tweet_video"
    return "tweet_image"


def _parse_created_tweet(payload: dict) -> Result[str]:
    tweet_id = dig(payload, "data", "create_tweet", "tweet_results", "result", "rest_id")
    if not tweet_id:
        return Err("Tweet created but no ID returned")
    return Ok(tweet_id)


class PostingOperations:
    def __init__(self, ctx: ClientContext):
        self.ctx = ctx

    async def tweet(self, text: str, media_ids: tuple[str, ...] = ()) -> PostResult:
        variables = self._tweet_variables(text, media_ids)
        return await self._create_tweet(variables, text, None, media_ids)

    async def reply(
        self, text: str, in_reply_to: str, media_ids: tuple[str, ...] = ()
    ) -> PostResult:
        variables = self._tweet_variables(text, media_ids)
        variables["reply"] = {
            "in_reply_to_tweet_id": in_reply_to,
            "exclude_reply_user_ids": [],
        }
        return await self._create_tweet(variables, text, in_reply_to, media_ids)

    @staticmethod
    def _tweet_variables(text: str, media_ids: tuple[str, ...]) -> dict:
        return {
            "tweet_text": text,
            "dark_request": False,
            "media": {
                "media_entities": [
                    {"media_id": media_id, "tagged_users": []} for media_id in media_ids
                ],
                "possibly_sensitive": False,
            },
            "semantic_annotation_ids": [],
        }

    async def _create_tweet(
        self,
        variables: dict,
        text: str,
        in_reply_to: str | None,
        media_ids: tuple[str, ...],
    ) -> PostResult:
        features = build_create_tweet_features()
        session = self.ctx.session

        async def send(query_id: str):
            body = {"variables": variables, "features": features, "queryId": query_id}
            sent = await session.send("POST", graphql_url(query_id, "CreateTweet"), json=body)
            if isinstance(sent, Ok) and sent.value.status_code == 404:
                logger.debug("CreateTweet 404 with %s, retrying generic endpoint", query_id)
                return await session.send("POST", TWITTER_GRAPHQL_POST_URL, json=body)
            return sent

        execution = await self.ctx.executor.execute("CreateTweet", send, _parse_created_tweet)
        result = execution.result
        if isinstance(result, Ok):
            return PostResult(success=True, tweet_id=result.value)

        if AUTOMATED_REQUEST_CODE in result.codes:
            logger.warning("Post flagged as automated (226), trying legacy endpoint")
            return await self._post_status_update(text, in_reply_to, media_ids)
        return PostResult(success=False, error=result.reason)

    async def _post_status_update(
        self, text: str, in_reply_to: str | None, media_ids: tuple[str, ...]
    ) -> PostResult:
        form = {"status": text}
        if in_reply_to:
            form["in_reply_to_status_id"] = in_reply_to
            form["auto_populate_reply_metadata"] = "true"
        if media_ids:
            form["media_ids"] = ",".join(media_ids)

        sent = await self.ctx.session.send("POST", TWITTER_STATUS_UPDATE_URL, data=form)
        if isinstance(sent, Err):
            return PostResult(success=False, error=sent.reason)
        response = sent.value
        if not response.is_success:
            return PostResult(success=False, error=describe_http_error(response))
        try:
            data = response.json()
        except ValueError:
            return PostResult(success=False, error="Invalid JSON response")
        tweet_id = data.get("id_str") if isinstance(data, dict) else None
        if not tweet_id:
            return PostResult(success=False, error="Tweet created but no ID returned")
        return PostResult(success=True, tweet_id=tweet_id)

    # ── Media upload ──

    async def _upload_request(self, method: str, **kwargs) -> Result[dict]:
        sent = await self.ctx.session.send(method, TWITTER_UPLOAD_URL, **kwargs)
        if isinstance(sent, Err):
            return sent
        response = sent.value
        if not response.is_success:
            return Err(describe_http_error(response), status=response.status_code)
        if not response.content:
            return Ok({})
        try:
            payload = response.json()
        except ValueError:
            return Err("Invalid JSON response from media upload", status=response.status_code)
        return Ok(payload if isinstance(payload, dict) else {})

    async def upload_media(
        self, data: bytes, mime_type: str, alt_text: str | None = None
    ) -> MediaUploadResult:
        """Upload media in chunks (INIT/APPEND/FINALIZE) and return its id.

        Videos and GIFs are processed server-side; STATUS is polled until
        processing finishes. Alt text is attached afterwards when given.
        """
        init = await self._upload_request(
            "POST",
            params={
                "command": "INIT",
                "total_bytes": len(data),
                "media_type": mime_type,
                "media_category": media_category(mime_type),
            },
        )
        if isinstance(init, Err):
            return MediaUploadResult(success=False, error=init.reason)
        media_id = init.value.get("media_id_string") or (
            str(init.value["media_id"]) if init.value.get("media_id") else None
        )
        if not media_id:
            return MediaUploadResult(success=False, error="Media upload INIT returned no media id")

        for index, start in enumerate(range(0, len(data), UPLOAD_CHUNK_SIZE)):
            chunk = data[start:start + UPLOAD_CHUNK_SIZE]
            appended = await self._upload_request(
                "POST",
                params={"command": "APPEND", "media_id": media_id, "segment_index": index},
                files={"media": ("blob", chunk, "application/octet-stream")},
            )
            if isinstance(appended, Err):
                return MediaUploadResult(success=False, error=appended.reason)
            logger.debug("Uploaded segment %d of media %s", index, media_id)

        finalized = await self._upload_request(
            "POST", params={"command": "FINALIZE", "media_id": media_id}
        )
        if isinstance(finalized, Err):
            return MediaUploadResult(success=False, error=finalized.reason)

        processed = await self._wait_for_processing(media_id, finalized.value.get("processing_info"))
        if isinstance(processed, Err):
            return MediaUploadResult(success=False, error=processed.reason)

        if alt_text:
            sent = await self.ctx.session.send(
                "POST",
                TWITTER_MEDIA_METADATA_URL,
                json={"media_id": media_id, "alt_text": {"text": alt_text}},
            )
            if isinstance(sent, Err):
                return MediaUploadResult(success=False, error=sent.reason)
            if not sent.value.is_success:
                return MediaUploadResult(success=False, error=describe_http_error(sent.value))

        return MediaUploadResult(success=True, media_id=media_id)

    async def _wait_for_processing(self, media_id: str, info: object) -> Result[None]:
        for _ in range(MAX_STATUS_CHECKS):
            if not isinstance(info, dict):
                return Ok(None)
            state = info.get("state")
            if state == "succeeded":
                return Ok(None)
            if state == "failed":
                message = dig(info, "error", "message") or "Media processing failed"
                return Err(str(message))
            await asyncio.sleep(float(info.get("check_after_secs") or 1))
            status = await self._upload_request(
                "GET", params={"command": "STATUS", "media_id": media_id}
            )
            if isinstance(status, Err):
                return status
            info = status.value.get("processing_info")
        return Err("Timed out waiting for media processing")
