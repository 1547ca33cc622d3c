"""Static endpoints, headers and known query IDs for the X web client.

The bearer token is a static, public token embedded in the web client JS;
all web clients share the same one. Query IDs rotate every few weeks, so
the values below are only fallbacks behind the runtime query ID cache
(see query_ids.py).
"""

import os

# Static bearer token used by the web client (public, not a user secret)
BEARER_TOKEN = os.environ.get(
    "TWITTER_BEARER_TOKEN",
    "AAAAAAAAAAAAAAAAAAAAANRILgAAAAAAnNwIzUejRCOuH5E6I8xnZz4puTs"
    "%3D1Zv7ttfk8LF81IUq16cHjhLTvJu4FA33AGWWjCpTnA",
)

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/131.0.0.0 Safari/537.36"
)

TWITTER_API_BASE = "https://x.com/i/api/graphql"
# Generic POST endpoint taking the queryId in the body
TWITTER_GRAPHQL_POST_URL = "https://x.com/i/api/graphql"
TWITTER_UPLOAD_URL = "https://upload.twitter.com/i/media/upload.json"
TWITTER_MEDIA_METADATA_URL = "https://x.com/i/api/1.1/media/metadata/create.json"
TWITTER_STATUS_UPDATE_URL = "https://x.com/i/api/1.1/statuses/update.json"

# Known historical query IDs, tried after the cached one
FALLBACK_QUERY_IDS: dict[str, tuple[str, ...]] = {
    "CreateTweet": ("TAJw1rBsjAtdNgTdlo2oeg",),
    "TweetDetail": ("97JF30KziU00483E_8elBA", "aFvUsJm2c-oDkJV75blV6g"),
    "SearchTimeline": (
        "M1jEez78PEfVfbQLvlWMvQ",
        "5h0kNbk3ii97rmfY6CdgAA",
        "Tp1sewRU1AsZpBWhqCZicQ",
    ),
    "UserArticlesTweets": ("8zBy9h4L90aDL02RsBcCFg",),
    "Bookmarks": ("RV1g3b8n_SGOHwkqKYSCFw", "tmd4ifV8RHltzn8ymGg1aw"),
    "BookmarkFolderTimeline": ("KJIQpsvxrTfRIlbaRIySHQ",),
    "Likes": ("JR2gceKucIKcVNB_9JkhsA",),
    "ListOwnerships": ("wQcOSjSQ8NtgxIwvYl1lMg",),
    "ListMemberships": ("BlEXXdARdSeL_0KyKHHvvg",),
    "ListLatestTweetsTimeline": ("2TemLyqrMpTeAmysdbnVqw",),
    "UserTweets": ("Wms1GvIiHXAPBaCr9KblaA",),
    "Following": ("BEkNpEt5pNETESoqMsTEGA",),
    "Followers": ("kuFUYP9eV1FPoEy4N-pi7w",),
    "UserByScreenName": (
        "xc8f1g7BYqr6VTzTbvNlGw",
        "qW5u-DAuXpMEG0zA1F7UGQ",
        "sLVLhk0bGj3MVFEKTdax1w",
    ),
}

# Operations a runtime refresh tries to resolve
TARGET_QUERY_ID_OPERATIONS: tuple[str, ...] = tuple(FALLBACK_QUERY_IDS)

DISCOVERY_PAGES: tuple[str, ...] = (
    "https://x.com/?lang=en",
    "https://x.com/explore",
    "https://x.com/notifications",
    "https://x.com/settings/profile",
)

BUNDLE_URL_PATTERN = (
    r"https://abs\.twimg\.com/responsive-web/client-web(?:-legacy)?/"
    r"[A-Za-z0-9.-]+\.js"
)

QUERY_ID_PATTERN = r"^[a-zA-Z0-9_-]+$"

# Twitter's date format: "Thu May 14 18:01:35 +0000 2020"
TWITTER_DATE_FORMAT = "%a %b %d %H:%M:%S %z %Y"

DEFAULT_PAGE_SIZE = 20
DEFAULT_TIMEOUT = 30.0
DEFAULT_QUOTE_DEPTH = 1
