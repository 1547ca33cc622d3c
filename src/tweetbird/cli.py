"""CLI interface for tweetbird.

Commands:
    setup          - Save auth cookies to the config file
    check          - Show which credentials would be used
    whoami         - Show the authenticated account
    read/replies/thread - Read a tweet and its conversation
    search/mentions     - Search tweets
    bookmarks/likes     - Read your bookmarks (or a folder) and likes
    lists/list-timeline - Read your lists and their tweets
    user-tweets/following/followers - Read other accounts
    tweet/reply    - Post, optionally with media
    query-ids      - Inspect or refresh the GraphQL query ID cache
"""

import asyncio
import json
import mimetypes
import sys
from pathlib import Path

import click

from .config import (
    CONFIG_FILE,
    AppConfig,
    AuthConfig,
    config_exists,
    load_config,
    resolve_credentials,
    save_config,
)
from .extract import extract_list_id, extract_tweet_id, normalize_handle
from .logging_config import setup_logging

MAX_MEDIA = 4


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--config", type=click.Path(), default=None, help="Config file path")
@click.option("--auth-token", default=None, help="auth_token cookie (overrides env/config)")
@click.option("--ct0", default=None, help="ct0 cookie (overrides env/config)")
@click.option("--timeout", type=float, default=None, help="Request timeout in seconds")
@click.option("--quote-depth", type=int, default=None, help="Levels of quoted tweets to include")
@click.pass_context
def main(ctx, verbose, config, auth_token, ct0, timeout, quote_depth):
    """tweetbird: read and post on X from the command line."""
    setup_logging(debug=verbose)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = Path(config) if config else CONFIG_FILE
    ctx.obj["auth_token"] = auth_token
    ctx.obj["ct0"] = ct0
    ctx.obj["timeout"] = timeout
    ctx.obj["quote_depth"] = quote_depth


def output_options(func):
    """Add --json / --json-full to a command."""
    func = click.option("--json-full", is_flag=True, help="Print JSON including raw API payloads")(func)
    return click.option("--json", "as_json", is_flag=True, help="Print JSON output")(func)


def _load_app_config(config_path: Path) -> AppConfig:
    if not config_exists(config_path):
        return AppConfig()
    try:
        return load_config(config_path)
    except ValueError as e:
        click.echo(f"Error: Invalid config {config_path}: {e}", err=True)
        sys.exit(1)


def _resolve(ctx):
    config = _load_app_config(ctx.obj["config_path"])
    credentials, warnings = resolve_credentials(ctx.obj["auth_token"], ctx.obj["ct0"], config)
    return config, credentials, warnings


def _run(ctx, operation):
    """Build a client from flags/env/config, run ``operation(client)``, return its result."""
    config, credentials, warnings = _resolve(ctx)
    if not credentials.complete:
        for warning in warnings:
            click.echo(f"Error: {warning}", err=True)
        sys.exit(1)

    # Lazy imports so --help stays fast
    from .client import TwitterClient
    from .query_ids import QueryIdStore

    timeout = ctx.obj["timeout"] or config.timeout
    quote_depth = ctx.obj["quote_depth"]
    if quote_depth is None:
        quote_depth = config.quote_depth

    async def runner():
        store = QueryIdStore(cache_path=config.query_ids_cache, timeout=timeout)
        async with TwitterClient(
            credentials.auth_token,
            credentials.ct0,
            timeout=timeout,
            quote_depth=quote_depth,
            store=store,
        ) as client:
            return await operation(client)

    return asyncio.run(runner())


def _fail(message: str | None) -> None:
    click.echo(f"Error: {message or 'Unknown error'}", err=True)
    sys.exit(1)


def _print_json(data: dict) -> None:
    click.echo(json.dumps(data, indent=2, ensure_ascii=False))


def _format_tweet(tweet) -> str:
    lines = [f"@{tweet.author.username} ({tweet.author.name}):", tweet.text]
    for media in tweet.media:
        lines.append(f"[{media.type}] {media.video_url or media.url}")
    if tweet.quoted_tweet:
        quoted = tweet.quoted_tweet
        lines.append(f"  > @{quoted.author.username}: {quoted.text}")
    if tweet.created_at:
        lines.append(tweet.created_at)
    lines.append(tweet.url)
    return "\n".join(lines)


def _emit_tweets(result, as_json: bool, json_full: bool) -> None:
    if not result.success:
        _fail(result.error)
    if as_json or json_full:
        _print_json(result.as_dict())
        return
    if not result.tweets:
        click.echo("No tweets found.")
    for index, tweet in enumerate(result.tweets):
        if index:
            click.echo("─" * 40)
        click.echo(_format_tweet(tweet))
    if result.next_cursor:
        click.echo(f"\nNext cursor: {result.next_cursor}", err=True)


def _emit_users(result, as_json: bool) -> None:
    if not result.success:
        _fail(result.error)
    if as_json:
        _print_json(result.as_dict())
        return
    if not result.users:
        click.echo("No users found.")
    for user in result.users:
        line = f"@{user.username} ({user.name})"
        if user.followers_count is not None:
            line += f"  {user.followers_count:,} followers"
        click.echo(line)
        if user.description:
            click.echo(f"  {user.description}")
    if result.next_cursor:
        click.echo(f"\nNext cursor: {result.next_cursor}", err=True)


async def _resolve_user_id(client, handle: str | None) -> tuple[str | None, str | None]:
    """Return (user_id, error); with no handle, the authenticated account."""
    if not handle:
        current = await client.get_current_user()
        if not current.success:
            return None, current.error
        return current.user.id, None
    lookup = await client.get_user_id_by_username(handle)
    if not lookup.success:
        return None, lookup.error
    return lookup.user_id, None


# ── Account ──


@main.command()
@click.pass_context
def setup(ctx):
    """Save X session cookies to the config file."""
    config_path = ctx.obj["config_path"]

    click.echo("tweetbird: Setup")
    click.echo("=" * 40)
    click.echo()
    click.echo("You need your X session cookies.")
    click.echo("To get them:")
    click.echo("  1. Open x.com in your browser and log in")
    click.echo("  2. Open DevTools (F12) -> Application -> Cookies -> https://x.com")
    click.echo("  3. Copy the values of 'auth_token' and 'ct0'")
    click.echo()

    auth_token = click.prompt("auth_token", hide_input=True)
    ct0 = click.prompt("ct0", hide_input=True)

    config = _load_app_config(config_path)
    config.auth = AuthConfig(auth_token=auth_token.strip(), ct0=ct0.strip())
    save_config(config, config_path)
    click.echo(f"\nConfig saved to {config_path}")
    click.echo("Run 'tweetbird whoami' to verify.")


@main.command()
@click.pass_context
def check(ctx):
    """Show which credentials would be used, without calling the API."""
    config_path = ctx.obj["config_path"]
    _, credentials, warnings = _resolve(ctx)

    click.echo(f"Config: {'Found' if config_exists(config_path) else 'Not found'} ({config_path})")
    click.echo(f"auth_token: {'set' if credentials.auth_token else 'missing'}")
    click.echo(f"ct0: {'set' if credentials.ct0 else 'missing'}")
    if credentials.source:
        click.echo(f"Source: {credentials.source}")
    for warning in warnings:
        click.echo(f"Warning: {warning}", err=True)
    if not credentials.complete:
        sys.exit(1)


@main.command()
@output_options
@click.pass_context
def whoami(ctx, as_json, json_full):
    """Show the authenticated account."""
    result = _run(ctx, lambda client: client.get_current_user())
    if not result.success:
        _fail(result.error)
    if as_json or json_full:
        _print_json(result.as_dict())
        return
    click.echo(f"@{result.user.username} ({result.user.name})")
    click.echo(f"User ID: {result.user.id}")


# ── Reading tweets ──


@main.command()
@click.argument("tweet")
@output_options
@click.pass_context
def read(ctx, tweet, as_json, json_full):
    """Read a single tweet (ID or URL)."""
    tweet_id = extract_tweet_id(tweet)
    result = _run(ctx, lambda client: client.get_tweet(tweet_id, include_raw=json_full))
    if not result.success:
        _fail(result.error)
    if as_json or json_full:
        _print_json(result.as_dict())
        return
    click.echo(_format_tweet(result.tweet))


@main.command()
@click.argument("tweet")
@output_options
@click.pass_context
def replies(ctx, tweet, as_json, json_full):
    """List direct replies to a tweet."""
    tweet_id = extract_tweet_id(tweet)
    result = _run(ctx, lambda client: client.get_replies(tweet_id, include_raw=json_full))
    _emit_tweets(result, as_json, json_full)


@main.command()
@click.argument("tweet")
@output_options
@click.pass_context
def thread(ctx, tweet, as_json, json_full):
    """Show the conversation a tweet belongs to, oldest first."""
    tweet_id = extract_tweet_id(tweet)
    result = _run(ctx, lambda client: client.get_thread(tweet_id, include_raw=json_full))
    _emit_tweets(result, as_json, json_full)


@main.command()
@click.argument("query")
@click.option("-n", "--count", default=20, help="Number of tweets to fetch")
@click.option("--all", "fetch_all", is_flag=True, help="Page through all results")
@click.option("--cursor", default=None, help="Resume from a pagination cursor")
@click.option("--max-pages", type=int, default=None, help="Page limit with --all")
@output_options
@click.pass_context
def search(ctx, query, count, fetch_all, cursor, max_pages, as_json, json_full):
    """Search tweets (latest first)."""

    async def operation(client):
        if fetch_all or cursor:
            return await client.get_all_search_results(
                query, cursor=cursor, max_pages=max_pages, include_raw=json_full
            )
        return await client.search(query, count=count, include_raw=json_full)

    _emit_tweets(_run(ctx, operation), as_json, json_full)


@main.command()
@click.option("-u", "--user", "username", default=None, help="Handle (default: you)")
@click.option("-n", "--count", default=20, help="Number of tweets to fetch")
@output_options
@click.pass_context
def mentions(ctx, username, count, as_json, json_full):
    """Find tweets mentioning a user."""
    if username and not normalize_handle(username):
        _fail(f"Invalid username: {username}")
    result = _run(
        ctx, lambda client: client.get_mentions(username, count=count, include_raw=json_full)
    )
    _emit_tweets(result, as_json, json_full)


# ── Bookmarks, likes, lists ──


@main.command()
@click.option("-n", "--count", default=20, help="Number of bookmarks to fetch")
@click.option("--folder-id", default=None, help="Read a bookmark folder instead")
@click.option("--all", "fetch_all", is_flag=True, help="Page through all bookmarks")
@click.option("--cursor", default=None, help="Resume from a pagination cursor")
@click.option("--max-pages", type=int, default=None, help="Page limit with --all")
@output_options
@click.pass_context
def bookmarks(ctx, count, folder_id, fetch_all, cursor, max_pages, as_json, json_full):
    """Read your bookmarks."""

    async def operation(client):
        if folder_id:
            if fetch_all or max_pages:
                return await client.get_all_bookmark_folder_timeline(
                    folder_id, cursor=cursor, max_pages=max_pages, include_raw=json_full
                )
            return await client.get_bookmark_folder_timeline(
                folder_id, count=count, cursor=cursor, include_raw=json_full
            )
        if fetch_all or max_pages:
            return await client.get_all_bookmarks(
                cursor=cursor, max_pages=max_pages, include_raw=json_full
            )
        return await client.get_bookmarks(count=count, cursor=cursor, include_raw=json_full)

    _emit_tweets(_run(ctx, operation), as_json, json_full)


@main.command()
@click.option("-n", "--count", default=20, help="Number of likes to fetch")
@click.option("--all", "fetch_all", is_flag=True, help="Page through all likes")
@click.option("--cursor", default=None, help="Resume from a pagination cursor")
@click.option("--max-pages", type=int, default=None, help="Page limit with --all")
@output_options
@click.pass_context
def likes(ctx, count, fetch_all, cursor, max_pages, as_json, json_full):
    """Read your liked tweets."""

    async def operation(client):
        if fetch_all or max_pages:
            return await client.get_all_likes(
                cursor=cursor, max_pages=max_pages, include_raw=json_full
            )
        return await client.get_likes(count=count, cursor=cursor, include_raw=json_full)

    _emit_tweets(_run(ctx, operation), as_json, json_full)


@main.command("lists")
@click.option("--member-of", is_flag=True, help="Lists you are a member of")
@click.option("-n", "--count", default=100, help="Number of lists to fetch")
@output_options
@click.pass_context
def lists_command(ctx, member_of, count, as_json, json_full):
    """Show lists you own (or belong to)."""

    async def operation(client):
        if member_of:
            return await client.get_list_memberships(count=count)
        return await client.get_owned_lists(count=count)

    result = _run(ctx, operation)
    if not result.success:
        _fail(result.error)
    if as_json or json_full:
        _print_json(result.as_dict())
        return
    if not result.lists:
        click.echo("No lists found.")
    for lst in result.lists:
        privacy = "private" if lst.is_private else "public"
        members = f", {lst.member_count} members" if lst.member_count is not None else ""
        click.echo(f"{lst.name} ({lst.id}, {privacy}{members})")
        if lst.description:
            click.echo(f"  {lst.description}")


@main.command("list-timeline")
@click.argument("list_ref")
@click.option("-n", "--count", default=20, help="Number of tweets to fetch")
@click.option("--all", "fetch_all", is_flag=True, help="Page through the whole timeline")
@click.option("--cursor", default=None, help="Resume from a pagination cursor")
@click.option("--max-pages", type=int, default=None, help="Page limit with --all")
@output_options
@click.pass_context
def list_timeline(ctx, list_ref, count, fetch_all, cursor, max_pages, as_json, json_full):
    """Read tweets from a list (ID or URL)."""
    list_id = extract_list_id(list_ref)

    async def operation(client):
        if fetch_all or max_pages:
            return await client.get_all_list_timeline(
                list_id, cursor=cursor, max_pages=max_pages, include_raw=json_full
            )
        return await client.get_list_timeline(
            list_id, count=count, cursor=cursor, include_raw=json_full
        )

    _emit_tweets(_run(ctx, operation), as_json, json_full)


# ── Other accounts ──


@main.command("user-tweets")
@click.argument("handle")
@click.option("-n", "--count", default=20, help="Number of tweets to fetch")
@click.option("--cursor", default=None, help="Resume from a pagination cursor")
@click.option("--max-pages", type=int, default=None, help="Page limit (at most 10)")
@output_options
@click.pass_context
def user_tweets(ctx, handle, count, cursor, max_pages, as_json, json_full):
    """Read a user's tweets."""
    if not normalize_handle(handle):
        _fail(f"Invalid username: {handle}")

    async def operation(client):
        user_id, error = await _resolve_user_id(client, handle)
        if error:
            return error
        return await client.get_user_tweets(
            user_id, count=count, cursor=cursor, max_pages=max_pages, include_raw=json_full
        )

    result = _run(ctx, operation)
    if isinstance(result, str):
        _fail(result)
    _emit_tweets(result, as_json, json_full)


def _follow_command(name: str, method: str, all_method: str, summary: str):
    @main.command(name, help=summary)
    @click.argument("handle", required=False)
    @click.option("-n", "--count", default=20, help="Number of users to fetch")
    @click.option("--all", "fetch_all", is_flag=True, help="Page through all users")
    @click.option("--cursor", default=None, help="Resume from a pagination cursor")
    @click.option("--max-pages", type=int, default=None, help="Page limit with --all")
    @click.option("--json", "as_json", is_flag=True, help="Print JSON output")
    @click.pass_context
    def command(ctx, handle, count, fetch_all, cursor, max_pages, as_json):
        if handle and not normalize_handle(handle):
            _fail(f"Invalid username: {handle}")

        async def operation(client):
            user_id, error = await _resolve_user_id(client, handle)
            if error:
                return error
            if fetch_all or max_pages:
                return await getattr(client, all_method)(
                    user_id, cursor=cursor, max_pages=max_pages
                )
            return await getattr(client, method)(user_id, count=count, cursor=cursor)

        result = _run(ctx, operation)
        if isinstance(result, str):
            _fail(result)
        _emit_users(result, as_json)

    return command


following = _follow_command(
    "following", "get_following", "get_all_following", "Accounts a user follows (default: you)."
)
followers = _follow_command(
    "followers", "get_followers", "get_all_followers", "A user's followers (default: you)."
)


# ── Posting ──


def _read_media(paths: tuple[str, ...], alts: tuple[str, ...]) -> list[tuple[bytes, str, str | None]]:
    if len(paths) > MAX_MEDIA:
        _fail(f"At most {MAX_MEDIA} media files per tweet")
    if len(alts) > len(paths):
        _fail("More --alt values than --media files")
    media = []
    for index, path in enumerate(paths):
        mime_type, _ = mimetypes.guess_type(path)
        if not mime_type or not mime_type.startswith(("image/", "video/")):
            _fail(f"Unsupported media type: {path}")
        alt = alts[index] if index < len(alts) else None
        media.append((Path(path).read_bytes(), mime_type, alt))
    return media


async def _upload_all(client, media) -> tuple[tuple[str, ...], str | None]:
    media_ids = []
    for data, mime_type, alt in media:
        uploaded = await client.upload_media(data, mime_type, alt_text=alt)
        if not uploaded.success:
            return (), f"Media upload failed: {uploaded.error}"
        media_ids.append(uploaded.media_id)
    return tuple(media_ids), None


def _emit_post(result, as_json: bool) -> None:
    if isinstance(result, str):
        _fail(result)
    if not result.success:
        _fail(result.error)
    if as_json:
        _print_json(result.as_dict())
        return
    click.echo(f"Posted: https://x.com/i/status/{result.tweet_id}")


@main.command()
@click.argument("text")
@click.option("--media", multiple=True, type=click.Path(exists=True, dir_okay=False),
              help="Attach an image or video (repeatable, up to 4)")
@click.option("--alt", multiple=True, help="Alt text for the matching --media")
@click.option("--json", "as_json", is_flag=True, help="Print JSON output")
@click.pass_context
def tweet(ctx, text, media, alt, as_json):
    """Post a tweet."""
    files = _read_media(media, alt)

    async def operation(client):
        media_ids, error = await _upload_all(client, files)
        if error:
            return error
        return await client.tweet(text, media_ids)

    _emit_post(_run(ctx, operation), as_json)


@main.command()
@click.argument("tweet_ref")
@click.argument("text")
@click.option("--media", multiple=True, type=click.Path(exists=True, dir_okay=False),
              help="Attach an image or video (repeatable, up to 4)")
@click.option("--alt", multiple=True, help="Alt text for the matching --media")
@click.option("--json", "as_json", is_flag=True, help="Print JSON output")
@click.pass_context
def reply(ctx, tweet_ref, text, media, alt, as_json):
    """Reply to a tweet (ID or URL)."""
    tweet_id = extract_tweet_id(tweet_ref)
    files = _read_media(media, alt)

    async def operation(client):
        media_ids, error = await _upload_all(client, files)
        if error:
            return error
        return await client.reply(text, tweet_id, media_ids)

    _emit_post(_run(ctx, operation), as_json)


# ── Query IDs ──


@main.command("query-ids")
@click.option("--fresh", is_flag=True, help="Re-discover query IDs from x.com now")
@click.option("--json", "as_json", is_flag=True, help="Print JSON output")
@click.pass_context
def query_ids(ctx, fresh, as_json):
    """Show (or refresh) the cached GraphQL query IDs."""
    from .constants import TARGET_QUERY_ID_OPERATIONS
    from .query_ids import QueryIdStore

    config = _load_app_config(ctx.obj["config_path"])
    timeout = ctx.obj["timeout"] or config.timeout
    store = QueryIdStore(cache_path=config.query_ids_cache, timeout=timeout)

    async def operation():
        if fresh:
            return await store.refresh(TARGET_QUERY_ID_OPERATIONS, force=True)
        return await store.get_snapshot_info()

    info = asyncio.run(operation())
    if info is None:
        if fresh:
            _fail("Query ID discovery failed and no cache exists")
        click.echo(f"No query ID cache at {store.cache_path}")
        click.echo("Run 'tweetbird query-ids --fresh' to build one.")
        return

    if as_json:
        _print_json(
            {
                "cachePath": str(info.cache_path),
                "ageSeconds": int(info.age.total_seconds()),
                "isFresh": info.is_fresh,
                **info.snapshot.to_json(),
            }
        )
        return

    hours = info.age.total_seconds() / 3600
    click.echo(f"Cache: {info.cache_path}")
    click.echo(f"Fetched: {info.snapshot.fetched_at.isoformat()} ({hours:.1f}h ago, "
               f"{'fresh' if info.is_fresh else 'stale'})")
    for name in sorted(info.snapshot.ids):
        click.echo(f"  {name}: {info.snapshot.ids[name]}")
