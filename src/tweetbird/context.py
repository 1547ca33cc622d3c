"""Shared dependencies handed to every operation group.

ClientContext bundles the HTTP session, the query ID store and the
executor, plus the GET helper shared by the read operations.
"""

from dataclasses import dataclass

from .constants import DEFAULT_QUOTE_DEPTH, TWITTER_API_BASE
from .executor import Execution, OperationExecutor, ParseFn
from .normalizer import extract_cursor_from_instructions, parse_tweets_from_instructions
from .pagination import PageResult
from .query_ids import QueryIdStore
from .results import Err, Ok, Result
from .session import ApiSession, encode_params


def graphql_url(query_id: str, operation: str) -> str:
    return f"{TWITTER_API_BASE}/{query_id}/{operation}"


@dataclass
class ClientContext:
    session: ApiSession
    store: QueryIdStore
    executor: OperationExecutor
    quote_depth: int = DEFAULT_QUOTE_DEPTH

    async def graphql_get(
        self,
        operation: str,
        variables: dict,
        features: dict,
        parse: ParseFn,
        field_toggles: dict | None = None,
        allow_partial: bool = False,
        skip_error_pages: bool = False,
        retry: bool = False,
        refresh: bool = True,
    ) -> Execution:
        """GET a read operation with variables/features in the query string.

        ``retry`` wraps each request in the 429/5xx backoff helper. The
        remaining flags are passed through to the executor.
        """
        params = encode_params(
            variables=variables, features=features, fieldToggles=field_toggles
        )

        async def send(query_id: str):
            url = graphql_url(query_id, operation)
            if retry:
                return await self.session.send_with_retry("GET", url, params=params)
            return await self.session.send("GET", url, params=params)

        return await self.executor.execute(
            operation,
            send,
            parse,
            allow_partial=allow_partial,
            skip_error_pages=skip_error_pages,
            refresh=refresh,
        )


def as_page(execution: Execution) -> Result[PageResult]:
    """Tag a page execution with whether a query ID fallback was needed."""
    result = execution.result
    if isinstance(result, Err):
        return result
    page = result.value
    return Ok(
        PageResult(
            items=page.items,
            next_cursor=page.next_cursor,
            had_transient_identifier_failure=execution.had_transient_failure,
        )
    )


def dig(payload: object, *keys: str) -> object:
    for key in keys:
        if not isinstance(payload, dict):
            return None
        payload = payload.get(key)
    return payload


def tweet_page_parser(
    path: tuple[str, ...], quote_depth: int, include_raw: bool = False
) -> ParseFn:
    """Build a parser reading a tweet timeline at ``data.<path>.instructions``."""

    def parse(payload: dict) -> Result[PageResult]:
        instructions = dig(payload, "data", *path, "instructions")
        return Ok(
            PageResult(
                items=parse_tweets_from_instructions(instructions, quote_depth, include_raw),
                next_cursor=extract_cursor_from_instructions(instructions),
            )
        )

    return parse
