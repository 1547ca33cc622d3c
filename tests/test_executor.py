"""Tests for query ID fallback, stale detection and the single refresh."""

import httpx
import pytest

from tweetbird.executor import (
    OperationExecutor,
    Outcome,
    classify_response,
    is_stale_query_error,
)
from tweetbird.results import Err, Ok

OK_PAYLOAD = {"data": {"value": 1}}
VALIDATION_ERROR = {
    "errors": [
        {
            "message": 'Variable "$rawQuery" of required type "String!" was not provided.',
            "extensions": {"code": "GRAPHQL_VALIDATION_FAILED"},
        }
    ]
}


class FakeStore:
    """In-memory query ID source; refresh() swaps in ``after_refresh``."""

    def __init__(self, ids=None, after_refresh=None):
        self.ids = dict(ids or {})
        self.after_refresh = after_refresh
        self.refresh_calls = []

    async def get_query_id(self, name):
        return self.ids.get(name)

    async def refresh(self, names, force=False):
        self.refresh_calls.append((tuple(names), force))
        if self.after_refresh is not None:
            self.ids = dict(self.after_refresh)


def responder(mapping):
    """send() answering from {query_id: Response | Err}, logging the IDs tried."""
    tried = []

    async def send(query_id):
        tried.append(query_id)
        answer = mapping.get(query_id, httpx.Response(404))
        return answer if isinstance(answer, Err) else Ok(answer)

    send.tried = tried
    return send


def parse_value(payload):
    return Ok(payload["data"]["value"])


def make_executor(store, fallbacks=("FB1", "FB2")):
    return OperationExecutor(
        store, fallbacks={"Op": tuple(fallbacks)}, refresh_operations=("Op", "Other")
    )


class TestCandidates:
    @pytest.mark.asyncio
    async def test_cached_first_then_fallbacks_without_duplicates(self):
        executor = make_executor(FakeStore({"Op": "FB2"}))
        assert await executor.candidates("Op") == ["FB2", "FB1"]

    @pytest.mark.asyncio
    async def test_no_cache(self):
        executor = make_executor(FakeStore())
        assert await executor.candidates("Op") == ["FB1", "FB2"]


class TestExecute:
    @pytest.mark.asyncio
    async def test_first_candidate_succeeds(self):
        store = FakeStore({"Op": "CACHED"})
        send = responder({"CACHED": httpx.Response(200, json=OK_PAYLOAD)})

        execution = await make_executor(store).execute("Op", send, parse_value)

        assert execution.result == Ok(1)
        assert execution.query_id == "CACHED"
        assert execution.had_transient_failure is False
        assert send.tried == ["CACHED"]

    @pytest.mark.asyncio
    async def test_fallback_used_without_refresh(self):
        store = FakeStore({"Op": "CACHED"})
        send = responder({"FB1": httpx.Response(200, json=OK_PAYLOAD)})

        execution = await make_executor(store).execute("Op", send, parse_value)

        assert execution.result == Ok(1)
        assert execution.query_id == "FB1"
        assert execution.had_transient_failure is True
        assert execution.refreshed is False
        assert store.refresh_calls == []

    @pytest.mark.asyncio
    async def test_refresh_then_second_pass_succeeds(self):
        store = FakeStore({"Op": "OLD"}, after_refresh={"Op": "NEW"})
        send = responder({"NEW": httpx.Response(200, json=OK_PAYLOAD)})

        execution = await make_executor(store).execute("Op", send, parse_value)

        assert execution.result == Ok(1)
        assert execution.refreshed is True
        assert store.refresh_calls == [(("Op", "Other"), True)]
        assert send.tried == ["OLD", "FB1", "FB2", "NEW"]

    @pytest.mark.asyncio
    async def test_refresh_happens_exactly_once(self):
        store = FakeStore({"Op": "OLD"})
        send = responder({})

        execution = await make_executor(store).execute("Op", send, parse_value)

        assert isinstance(execution.result, Err)
        assert execution.result.reason == "HTTP 404"
        assert len(store.refresh_calls) == 1
        assert send.tried == ["OLD", "FB1", "FB2"] * 2

    @pytest.mark.asyncio
    async def test_refresh_left_to_caller(self):
        store = FakeStore({"Op": "OLD"})
        send = responder({})

        execution = await make_executor(store).execute("Op", send, parse_value, refresh=False)

        assert execution.needs_refresh is True
        assert execution.refreshed is False
        assert store.refresh_calls == []
        assert send.tried == ["OLD", "FB1", "FB2"]

    @pytest.mark.asyncio
    async def test_error_page_skipped_when_allowed(self):
        store = FakeStore()
        send = responder({
            "FB1": httpx.Response(200, json={"errors": [{"message": "Internal error"}]}),
            "FB2": httpx.Response(200, json=OK_PAYLOAD),
        })

        execution = await make_executor(store).execute(
            "Op", send, parse_value, allow_partial=True, skip_error_pages=True
        )

        assert execution.result == Ok(1)
        assert execution.had_transient_failure is False
        assert store.refresh_calls == []

    @pytest.mark.asyncio
    async def test_hard_failure_stops_immediately(self):
        store = FakeStore()
        send = responder({"FB1": httpx.Response(403, text="Forbidden")})

        execution = await make_executor(store).execute("Op", send, parse_value)

        assert execution.result.reason == "HTTP 403: Forbidden"
        assert execution.result.status == 403
        assert send.tried == ["FB1"]
        assert store.refresh_calls == []

    @pytest.mark.asyncio
    async def test_transport_errors_never_refresh(self):
        store = FakeStore()
        send = responder({
            "FB1": Err("Request timed out after 30s"),
            "FB2": Err("Request timed out after 30s"),
        })

        execution = await make_executor(store).execute("Op", send, parse_value)

        assert execution.result.reason == "Request timed out after 30s"
        assert store.refresh_calls == []
        assert send.tried == ["FB1", "FB2"]

    @pytest.mark.asyncio
    async def test_mixed_stale_and_transport_does_not_refresh(self):
        store = FakeStore()
        send = responder({"FB2": Err("connection reset")})

        execution = await make_executor(store).execute("Op", send, parse_value)

        assert execution.result.reason == "connection reset"
        assert store.refresh_calls == []

    @pytest.mark.asyncio
    async def test_validation_error_counts_as_stale(self):
        store = FakeStore()
        send = responder({
            "FB1": httpx.Response(200, json=VALIDATION_ERROR),
            "FB2": httpx.Response(200, json=OK_PAYLOAD),
        })

        execution = await make_executor(store).execute("Op", send, parse_value)

        assert execution.result == Ok(1)
        assert execution.had_transient_failure is True

    @pytest.mark.asyncio
    async def test_best_failure_prefers_descriptive_message(self):
        store = FakeStore()
        send = responder({"FB1": httpx.Response(200, json=VALIDATION_ERROR)})

        execution = await make_executor(store).execute("Op", send, parse_value)

        assert "rawQuery" in execution.result.reason

    @pytest.mark.asyncio
    async def test_transient_parse_error_is_stale(self):
        store = FakeStore()
        send = responder({
            "FB1": httpx.Response(200, json={"data": {}}),
            "FB2": httpx.Response(200, json=OK_PAYLOAD),
        })

        def parse(payload):
            if "value" not in payload["data"]:
                return Err("missing data", transient=True)
            return Ok(payload["data"]["value"])

        execution = await make_executor(store).execute("Op", send, parse)

        assert execution.result == Ok(1)

    @pytest.mark.asyncio
    async def test_hard_parse_error_stops(self):
        store = FakeStore()
        send = responder({"FB1": httpx.Response(200, json={"data": {}})})

        execution = await make_executor(store).execute(
            "Op", send, lambda payload: Err("Could not parse")
        )

        assert execution.result.reason == "Could not parse"
        assert send.tried == ["FB1"]

    @pytest.mark.asyncio
    async def test_unknown_operation_without_candidates(self):
        execution = await make_executor(FakeStore()).execute(
            "Nope", responder({}), parse_value
        )
        assert execution.result.reason == "No query ID available for Nope"


class TestClassifyResponse:
    def test_404_is_stale(self):
        outcome, result = classify_response(httpx.Response(404))
        assert outcome is Outcome.STALE
        assert result.transient is True

    def test_invalid_json_fails(self):
        outcome, result = classify_response(httpx.Response(200, text="<html>"))
        assert outcome is Outcome.FAIL
        assert result.reason == "Invalid JSON response"

    def test_400_with_must_be_defined_is_stale(self):
        body = {"errors": [{"message": 'Variable "$cursor" must be defined', "path": ["cursor"]}]}
        outcome, _ = classify_response(httpx.Response(400, json=body))
        assert outcome is Outcome.STALE

    def test_400_other_error_fails_with_codes(self):
        body = {"errors": [{"message": "Authorization denied", "code": 37}]}
        outcome, result = classify_response(httpx.Response(400, json=body))
        assert outcome is Outcome.FAIL
        assert result.codes == (37,)

    def test_partial_data_allowed(self):
        body = {"data": {"value": 2}, "errors": [{"message": "one item failed"}]}
        outcome, result = classify_response(httpx.Response(200, json=body), allow_partial=True)
        assert outcome is Outcome.OK
        assert result.value == body

    def test_error_page_without_data_skips(self):
        body = {"data": {}, "errors": [{"message": "Internal error", "code": 131}]}
        outcome, result = classify_response(
            httpx.Response(200, json=body), allow_partial=True, skip_error_pages=True
        )
        assert outcome is Outcome.SKIP
        assert result.reason == "Internal error"
        assert result.codes == (131,)

    def test_partial_data_rejected_by_default(self):
        body = {"data": {"value": 2}, "errors": [{"message": "Automated", "code": 226}]}
        outcome, result = classify_response(httpx.Response(200, json=body))
        assert outcome is Outcome.FAIL
        assert result.reason == "Automated"
        assert result.codes == (226,)


class TestStaleDetection:
    def test_query_unspecified(self):
        assert is_stale_query_error([{"message": "Query: Unspecified"}])

    def test_must_be_defined_needs_path(self):
        assert not is_stale_query_error([{"message": "must be defined"}])

    def test_not_a_list(self):
        assert not is_stale_query_error({"message": "Query: Unspecified"})
