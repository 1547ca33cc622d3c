"""Normalized records and operation results.

Records are immutable value objects built by the normalizer. ``as_dict``
produces the camelCase JSON shape printed by ``--json``; keys whose value
is None are left out.
"""

from dataclasses import dataclass, field


def _compact(data: dict) -> dict:
    return {k: v for k, v in data.items() if v is not None}


@dataclass(frozen=True)
class TweetAuthor:
    username: str
    name: str

    def as_dict(self) -> dict:
        return {"username": self.username, "name": self.name}


@dataclass(frozen=True)
class TweetMedia:
    type: str  # photo, video, animated_gif
    url: str
    width: int | None = None
    height: int | None = None
    preview_url: str | None = None
    video_url: str | None = None
    duration_ms: int | None = None

    def as_dict(self) -> dict:
        return _compact(
            {
                "type": self.type,
                "url": self.url,
                "width": self.width,
                "height": self.height,
                "previewUrl": self.preview_url,
                "videoUrl": self.video_url,
                "durationMs": self.duration_ms,
            }
        )


@dataclass(frozen=True)
class Tweet:
    id: str
    text: str
    author: TweetAuthor
    author_id: str | None = None
    created_at: str | None = None
    reply_count: int | None = None
    retweet_count: int | None = None
    like_count: int | None = None
    conversation_id: str | None = None
    in_reply_to_status_id: str | None = None
    quoted_tweet: "Tweet | None" = None
    media: tuple[TweetMedia, ...] = ()
    raw: dict | None = field(default=None, compare=False, repr=False)

    @property
    def url(self) -> str:
        return f"https://x.com/{self.author.username}/status/{self.id}"

    def as_dict(self) -> dict:
        return _compact(
            {
                "id": self.id,
                "text": self.text,
                "author": self.author.as_dict(),
                "authorId": self.author_id,
                "createdAt": self.created_at,
                "replyCount": self.reply_count,
                "retweetCount": self.retweet_count,
                "likeCount": self.like_count,
                "conversationId": self.conversation_id,
                "inReplyToStatusId": self.in_reply_to_status_id,
                "quotedTweet": self.quoted_tweet.as_dict() if self.quoted_tweet else None,
                "media": [m.as_dict() for m in self.media] or None,
                "_raw": self.raw,
            }
        )


@dataclass(frozen=True)
class User:
    id: str
    username: str
    name: str
    description: str | None = None
    followers_count: int | None = None
    following_count: int | None = None
    is_blue_verified: bool | None = None
    profile_image_url: str | None = None
    created_at: str | None = None

    def as_dict(self) -> dict:
        return _compact(
            {
                "id": self.id,
                "username": self.username,
                "name": self.name,
                "description": self.description,
                "followersCount": self.followers_count,
                "followingCount": self.following_count,
                "isBlueVerified": self.is_blue_verified,
                "profileImageUrl": self.profile_image_url,
                "createdAt": self.created_at,
            }
        )


@dataclass(frozen=True)
class ListOwner:
    id: str
    username: str
    name: str

    def as_dict(self) -> dict:
        return {"id": self.id, "username": self.username, "name": self.name}


@dataclass(frozen=True)
class TwitterList:
    id: str
    name: str
    description: str | None = None
    member_count: int | None = None
    subscriber_count: int | None = None
    is_private: bool = False
    owner: ListOwner | None = None
    created_at: str | None = None

    def as_dict(self) -> dict:
        return _compact(
            {
                "id": self.id,
                "name": self.name,
                "description": self.description,
                "memberCount": self.member_count,
                "subscriberCount": self.subscriber_count,
                "isPrivate": self.is_private,
                "owner": self.owner.as_dict() if self.owner else None,
                "createdAt": self.created_at,
            }
        )


@dataclass(frozen=True)
class CurrentUser:
    id: str
    username: str
    name: str

    def as_dict(self) -> dict:
        return {"id": self.id, "username": self.username, "name": self.name}


# ── Operation results ──


@dataclass(frozen=True)
class TweetResult:
    success: bool
    tweet: Tweet | None = None
    error: str | None = None

    def as_dict(self) -> dict:
        if not self.success:
            return {"success": False, "error": self.error}
        return {"success": True, "tweet": self.tweet.as_dict() if self.tweet else None}


@dataclass(frozen=True)
class TweetsResult:
    success: bool
    tweets: tuple[Tweet, ...] = ()
    next_cursor: str | None = None
    error: str | None = None

    def as_dict(self) -> dict:
        if not self.success:
            return {"success": False, "error": self.error}
        return _compact(
            {
                "success": True,
                "tweets": [t.as_dict() for t in self.tweets],
                "nextCursor": self.next_cursor,
            }
        )


@dataclass(frozen=True)
class UsersResult:
    success: bool
    users: tuple[User, ...] = ()
    next_cursor: str | None = None
    error: str | None = None

    def as_dict(self) -> dict:
        if not self.success:
            return {"success": False, "error": self.error}
        return _compact(
            {
                "success": True,
                "users": [u.as_dict() for u in self.users],
                "nextCursor": self.next_cursor,
            }
        )


@dataclass(frozen=True)
class ListsResult:
    success: bool
    lists: tuple[TwitterList, ...] = ()
    error: str | None = None

    def as_dict(self) -> dict:
        if not self.success:
            return {"success": False, "error": self.error}
        return {"success": True, "lists": [lst.as_dict() for lst in self.lists]}


@dataclass(frozen=True)
class CurrentUserResult:
    success: bool
    user: CurrentUser | None = None
    error: str | None = None

    def as_dict(self) -> dict:
        if not self.success:
            return {"success": False, "error": self.error}
        return {"success": True, "user": self.user.as_dict() if self.user else None}


@dataclass(frozen=True)
class UserLookupResult:
    success: bool
    user_id: str | None = None
    username: str | None = None
    name: str | None = None
    error: str | None = None

    def as_dict(self) -> dict:
        if not self.success:
            return {"success": False, "error": self.error}
        return _compact(
            {
                "success": True,
                "userId": self.user_id,
                "username": self.username,
                "name": self.name,
            }
        )


@dataclass(frozen=True)
class PostResult:
    success: bool
    tweet_id: str | None = None
    error: str | None = None

    def as_dict(self) -> dict:
        if not self.success:
            return {"success": False, "error": self.error}
        return {"success": True, "tweetId": self.tweet_id}


@dataclass(frozen=True)
class MediaUploadResult:
    success: bool
    media_id: str | None = None
    error: str | None = None

    def as_dict(self) -> dict:
        if not self.success:
            return {"success": False, "error": self.error}
        return {"success": True, "mediaId": self.media_id}
