"""Run one GraphQL operation against a list of candidate query IDs.

Query IDs rotate without notice. A stale ID shows up as HTTP 404 or as a
GraphQL validation error about a variable the server no longer recognizes.
Per logical call:

1. Try the cached ID, then the known fallbacks, in order.
2. Stop at the first success or the first hard failure.
3. If a whole pass saw only stale-ID signals, force one store refresh and
   make exactly one more pass.

Timeouts and connection errors move on to the next candidate but never
count as stale-ID signals, so they never trigger a refresh.
"""

import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Generic, Protocol, TypeVar

import httpx

from .constants import FALLBACK_QUERY_IDS, TARGET_QUERY_ID_OPERATIONS
from .results import Err, Ok, Result
from .session import describe_http_error

logger = logging.getLogger(__name__)

T = TypeVar("T")

SendFn = Callable[[str], Awaitable[Result[httpx.Response]]]
ParseFn = Callable[[dict], Result[T]]


class QueryIdSource(Protocol):
    async def get_query_id(self, name: str) -> str | None: ...

    async def refresh(self, names: Iterable[str], force: bool = False): ...


class Outcome(Enum):
    OK = "ok"
    STALE = "stale"  # 404 / validation error: try next, may refresh
    SKIP = "skip"  # transport error: try next, never refresh
    FAIL = "fail"  # hard failure: stop now


@dataclass(frozen=True)
class Execution(Generic[T]):
    result: Result[T]
    had_transient_failure: bool = False
    refreshed: bool = False
    query_id: str | None = None
    needs_refresh: bool = False  # stale-only pass with refresh left to the caller


def graphql_error_message(errors: list) -> str:
    messages = [str(e.get("message", "")) for e in errors if isinstance(e, dict)]
    return ", ".join(m for m in messages if m) or "Unknown GraphQL error"


def graphql_error_codes(errors: list) -> tuple[int, ...]:
    return tuple(
        e["code"] for e in errors
        if isinstance(e, dict) and isinstance(e.get("code"), int)
    )


def is_stale_query_error(errors: object) -> bool:
    """True when a GraphQL error looks like a query ID/variable mismatch."""
    if not isinstance(errors, list):
        return False
    for error in errors:
        if not isinstance(error, dict):
            continue
        message = str(error.get("message") or "")
        extensions = error.get("extensions") if isinstance(error.get("extensions"), dict) else {}
        path = error.get("path") if isinstance(error.get("path"), list) else []
        if extensions.get("code") == "GRAPHQL_VALIDATION_FAILED":
            return True
        if path and "must be defined" in message.lower():
            return True
        if "Query: Unspecified" in message:
            return True
    return False


def _json_or_none(response: httpx.Response) -> object:
    try:
        return response.json()
    except ValueError:
        return None


def classify_response(
    response: httpx.Response,
    allow_partial: bool = False,
    skip_error_pages: bool = False,
) -> tuple[Outcome, Result[dict]]:
    """Map an HTTP response to an outcome and the decoded payload or an Err.

    With ``skip_error_pages``, a 200 carrying GraphQL errors and no data
    moves on to the next query ID instead of failing the call.
    """
    status = response.status_code
    if status == 404:
        return Outcome.STALE, Err("HTTP 404", status=404, transient=True)

    payload = _json_or_none(response)
    errors = payload.get("errors") if isinstance(payload, dict) else None

    if not response.is_success:
        if status in (400, 422) and is_stale_query_error(errors):
            return Outcome.STALE, Err(
                graphql_error_message(errors), status=status, transient=True
            )
        return Outcome.FAIL, Err(
            describe_http_error(response),
            status=status,
            codes=graphql_error_codes(errors) if isinstance(errors, list) else (),
        )

    if not isinstance(payload, dict):
        return Outcome.FAIL, Err("Invalid JSON response", status=status)

    if errors:
        if is_stale_query_error(errors):
            return Outcome.STALE, Err(
                graphql_error_message(errors), status=status, transient=True
            )
        if allow_partial and payload.get("data"):
            logger.warning("Ignoring non-fatal GraphQL errors: %s", graphql_error_message(errors))
            return Outcome.OK, Ok(payload)
        if skip_error_pages:
            return Outcome.SKIP, Err(
                graphql_error_message(errors), status=status, codes=graphql_error_codes(errors)
            )
        return Outcome.FAIL, Err(
            graphql_error_message(errors), status=status, codes=graphql_error_codes(errors)
        )

    return Outcome.OK, Ok(payload)


class OperationExecutor:
    def __init__(
        self,
        store: QueryIdSource,
        fallbacks: dict[str, tuple[str, ...]] = FALLBACK_QUERY_IDS,
        refresh_operations: tuple[str, ...] = TARGET_QUERY_ID_OPERATIONS,
    ):
        self.store = store
        self.fallbacks = fallbacks
        self.refresh_operations = refresh_operations

    async def candidates(self, operation: str) -> list[str]:
        """Cached query ID first, then fallbacks, without duplicates."""
        primary = await self.store.get_query_id(operation)
        ordered = [primary] if primary else []
        ordered.extend(self.fallbacks.get(operation, ()))
        return list(dict.fromkeys(ordered))

    async def _attempt(
        self,
        operation: str,
        query_id: str,
        send: SendFn,
        parse: ParseFn,
        allow_partial: bool,
        skip_error_pages: bool,
    ) -> tuple[Outcome, Result]:
        logger.debug("%s: trying query ID %s", operation, query_id)
        sent = await send(query_id)
        if isinstance(sent, Err):
            return Outcome.SKIP, sent

        outcome, decoded = classify_response(sent.value, allow_partial, skip_error_pages)
        if outcome is not Outcome.OK:
            return outcome, decoded

        parsed = parse(decoded.value)
        if isinstance(parsed, Err):
            return (Outcome.STALE if parsed.transient else Outcome.FAIL), parsed
        return Outcome.OK, parsed

    async def execute(
        self,
        operation: str,
        send: SendFn,
        parse: ParseFn,
        allow_partial: bool = False,
        skip_error_pages: bool = False,
        refresh: bool = True,
    ) -> Execution:
        """Run ``operation`` with candidate fallback and at most one refresh.

        ``send`` issues the request for a given query ID; ``parse`` turns a
        decoded payload into Ok(value) or Err. An Err from ``parse`` with
        ``transient=True`` counts as a stale-ID signal.

        With ``refresh=False`` a stale-only first pass returns at once with
        ``needs_refresh`` set, so a caller running several variants of one
        logical call can spend the single refresh itself.
        """
        had_transient = False
        refreshed = False
        failures: list[Err] = []

        for pass_number in range(2):
            only_stale = True
            for query_id in await self.candidates(operation):
                outcome, result = await self._attempt(
                    operation, query_id, send, parse, allow_partial, skip_error_pages
                )
                if outcome is Outcome.OK:
                    return Execution(result, had_transient, refreshed, query_id)
                if outcome is Outcome.FAIL:
                    logger.debug("%s: hard failure with %s: %s", operation, query_id, result.reason)
                    return Execution(result, had_transient, refreshed, query_id)

                failures.append(result)
                if outcome is Outcome.STALE:
                    had_transient = True
                    logger.debug("%s: query ID %s looks stale (%s)", operation, query_id, result.reason)
                else:
                    only_stale = False
                    logger.debug("%s: request failed with %s: %s", operation, query_id, result.reason)

            if pass_number == 0 and only_stale and had_transient:
                if not refresh:
                    return Execution(
                        self._best_failure(operation, failures), had_transient, needs_refresh=True
                    )
                await self.force_refresh(operation)
                refreshed = True
                continue
            break

        return Execution(self._best_failure(operation, failures), had_transient, refreshed)

    async def force_refresh(self, operation: str) -> None:
        logger.info("%s: all query IDs failed, refreshing query ID cache...", operation)
        await self.store.refresh(self.refresh_operations, force=True)

    @staticmethod
    def _best_failure(operation: str, failures: list[Err]) -> Err:
        """Prefer a descriptive message over a bare 404."""
        if not failures:
            return Err(f"No query ID available for {operation}")
        for failure in reversed(failures):
            if failure.reason != "HTTP 404":
                return failure
        return failures[-1]
