"""Test the request dispatcher: retries, error mapping and teardown."""

import asyncio
import threading
import time

import httpx
import pytest

from s3clone.sdk import (
    ClientClosedError,
    ClientError,
    ConnectionError,
    DecodeError,
    MultipartEncoder,
    RequestDescriptor,
    RetryPhase,
    RetryPolicy,
    ServerError,
    TransportError,
    TransportTimeoutError,
)

from conftest import SimulatedServer, json_response


def unavailable():
    return httpx.Response(503, text="busy")


class TestRetries:
    """Test the bounded exponential backoff schedule."""

    def test_transient_failures_then_success(self, make_dispatcher, recorded_sleeps):
        server = SimulatedServer(unavailable(), unavailable(), json_response(200, {"ok": True}))
        dispatcher = make_dispatcher(server)
        delays = recorded_sleeps(dispatcher)

        assert dispatcher.request("GET", "/api/v1/buckets") == {"ok": True}
        assert server.attempts == 3
        assert delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_transient_failures_then_success_async(self, make_dispatcher, recorded_sleeps):
        server = SimulatedServer(unavailable(), unavailable(), json_response(200, {"ok": True}))
        dispatcher = make_dispatcher(server)
        delays = recorded_sleeps(dispatcher)

        assert await dispatcher.arequest("GET", "/api/v1/buckets") == {"ok": True}
        assert server.attempts == 3
        assert delays == [1.0, 2.0]
        await dispatcher.aclose()

    def test_client_error_is_not_retried(self, make_dispatcher, recorded_sleeps):
        server = SimulatedServer(httpx.Response(404, text="missing"))
        dispatcher = make_dispatcher(server)
        delays = recorded_sleeps(dispatcher)

        with pytest.raises(ClientError) as exc_info:
            dispatcher.request("GET", "/api/v1/buckets/nope")

        assert exc_info.value.status_code == 404
        assert exc_info.value.body == "missing"
        assert server.attempts == 1
        assert delays == []

    def test_persistent_server_error_exhausts_budget(self, make_dispatcher, recorded_sleeps):
        server = SimulatedServer(unavailable())
        dispatcher = make_dispatcher(server)
        delays = recorded_sleeps(dispatcher)

        with pytest.raises(ServerError) as exc_info:
            dispatcher.request("GET", "/x")

        assert exc_info.value.status_code == 503
        assert exc_info.value.body == "busy"
        assert server.attempts == 3
        assert delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_persistent_server_error_exhausts_budget_async(self, make_dispatcher, recorded_sleeps):
        server = SimulatedServer(httpx.Response(500, text="boom"))
        dispatcher = make_dispatcher(server)
        recorded_sleeps(dispatcher)

        with pytest.raises(ServerError):
            await dispatcher.arequest("GET", "/x")
        assert server.attempts == 3
        await dispatcher.aclose()

    @pytest.mark.parametrize("status", [408, 425, 429])
    def test_retryable_client_statuses(self, make_dispatcher, recorded_sleeps, status):
        server = SimulatedServer(httpx.Response(status), json_response(200, []))
        dispatcher = make_dispatcher(server)
        recorded_sleeps(dispatcher)

        assert dispatcher.request("GET", "/x") == []
        assert server.attempts == 2

    def test_connect_error_retried_and_mapped(self, make_dispatcher, recorded_sleeps):
        server = SimulatedServer(httpx.ConnectError("refused"))
        dispatcher = make_dispatcher(server)
        delays = recorded_sleeps(dispatcher)

        with pytest.raises(ConnectionError) as exc_info:
            dispatcher.request("GET", "/x")

        assert exc_info.value.url == "http://storage.test/x"
        assert isinstance(exc_info.value.original_error, httpx.ConnectError)
        assert server.attempts == 3
        assert delays == [1.0, 2.0]

    def test_read_timeout_then_success(self, make_dispatcher, recorded_sleeps):
        server = SimulatedServer(httpx.ReadTimeout("slow"), json_response(200, {"n": 1}))
        dispatcher = make_dispatcher(server)
        recorded_sleeps(dispatcher)

        assert dispatcher.request("GET", "/x") == {"n": 1}
        assert server.attempts == 2

    @pytest.mark.asyncio
    async def test_timeout_mapped_async(self, make_dispatcher, recorded_sleeps):
        server = SimulatedServer(httpx.ReadTimeout("slow"))
        dispatcher = make_dispatcher(server)
        recorded_sleeps(dispatcher)

        with pytest.raises(TransportTimeoutError):
            await dispatcher.arequest("GET", "/x")
        assert server.attempts == 3
        await dispatcher.aclose()

    def test_decode_error_is_not_retried(self, make_dispatcher, recorded_sleeps):
        server = SimulatedServer(httpx.Response(200, text="{not json"))
        dispatcher = make_dispatcher(server)
        delays = recorded_sleeps(dispatcher)

        with pytest.raises(DecodeError):
            dispatcher.request("GET", "/x")
        assert server.attempts == 1
        assert delays == []

    def test_unreadable_upload_source_is_not_retried(
        self, make_dispatcher, recorded_sleeps, binary_file, monkeypatch
    ):
        def failing_read(self):
            yield self._preamble()
            raise OSError(5, "Input/output error")

        monkeypatch.setattr(MultipartEncoder, "iter_bytes", failing_read)
        server = SimulatedServer(json_response(201, {}))
        dispatcher = make_dispatcher(server)
        delays = recorded_sleeps(dispatcher)

        with pytest.raises(OSError) as exc_info:
            dispatcher.request("POST", "/api/v1/files/upload/b", file=binary_file)

        assert not isinstance(exc_info.value, TransportError)
        assert exc_info.value.errno == 5
        assert server.attempts == 0
        assert delays == []
        assert dispatcher.pool_stats().leased == 0

    @pytest.mark.asyncio
    async def test_unreadable_upload_source_is_not_retried_async(
        self, make_dispatcher, recorded_sleeps, binary_file, monkeypatch
    ):
        def failing_read(self):
            yield self._preamble()
            raise OSError(5, "Input/output error")

        monkeypatch.setattr(MultipartEncoder, "iter_bytes", failing_read)
        server = SimulatedServer(json_response(201, {}))
        dispatcher = make_dispatcher(server)
        delays = recorded_sleeps(dispatcher)

        with pytest.raises(OSError) as exc_info:
            await dispatcher.arequest("POST", "/api/v1/files/upload/b", file=binary_file)

        assert not isinstance(exc_info.value, TransportError)
        assert server.attempts == 0
        assert delays == []
        await dispatcher.aclose()

    def test_custom_policy(self, make_dispatcher, recorded_sleeps):
        server = SimulatedServer(unavailable())
        dispatcher = make_dispatcher(server, retry_policy=RetryPolicy(max_attempts=4, base_delay=0.5))
        delays = recorded_sleeps(dispatcher)

        with pytest.raises(ServerError):
            dispatcher.request("GET", "/x")
        assert server.attempts == 4
        assert delays == [0.5, 1.0, 2.0]

    def test_single_attempt_policy(self, make_dispatcher, recorded_sleeps):
        server = SimulatedServer(unavailable())
        dispatcher = make_dispatcher(server, retry_policy=RetryPolicy(max_attempts=1))
        delays = recorded_sleeps(dispatcher)

        with pytest.raises(ServerError):
            dispatcher.request("GET", "/x")
        assert server.attempts == 1
        assert delays == []


class TestRetryPolicy:
    """Test policy arithmetic and validation."""

    def test_compute_delay(self):
        policy = RetryPolicy()
        assert [policy.compute_delay(n) for n in (1, 2, 3)] == [1.0, 2.0, 4.0]

    def test_delay_is_capped(self):
        assert RetryPolicy(base_delay=10, max_delay=15).compute_delay(3) == 15

    def test_invalid_budget(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)


class TestRetryState:
    """Test the per-call state machine."""

    def test_success_after_retry(self, make_dispatcher, recorded_sleeps):
        server = SimulatedServer(unavailable(), json_response(200, {}))
        dispatcher = make_dispatcher(server)
        recorded_sleeps(dispatcher)
        state = dispatcher.retry_policy.new_state()

        dispatcher.execute(RequestDescriptor("GET", "/x"), retry_state=state)

        assert state.phase is RetryPhase.SUCCESS
        assert state.attempt == 2
        assert state.delays == [1.0]
        assert isinstance(state.last_error, ServerError)

    def test_exhausted(self, make_dispatcher, recorded_sleeps):
        server = SimulatedServer(httpx.Response(400))
        dispatcher = make_dispatcher(server)
        recorded_sleeps(dispatcher)
        state = dispatcher.retry_policy.new_state()

        with pytest.raises(ClientError) as exc_info:
            dispatcher.execute(RequestDescriptor("GET", "/x"), retry_state=state)

        assert state.phase is RetryPhase.EXHAUSTED
        assert state.attempt == 1
        assert state.last_error is exc_info.value

    def test_new_state_is_idle(self):
        state = RetryPolicy().new_state()
        assert state.phase is RetryPhase.IDLE
        assert state.attempt == 0
        assert state.max_attempts == 3


class TestTeardown:
    """Test closing a dispatcher with calls pending."""

    def test_call_on_closed_dispatcher(self, make_dispatcher):
        server = SimulatedServer(json_response(200, {}))
        dispatcher = make_dispatcher(server)
        dispatcher.close()

        with pytest.raises(ClientClosedError):
            dispatcher.request("GET", "/x")
        assert server.attempts == 0
        assert dispatcher.closed

    def test_close_is_idempotent(self, make_dispatcher):
        dispatcher = make_dispatcher(SimulatedServer(json_response(200, {})))
        dispatcher.close()
        dispatcher.close()
        assert dispatcher.closed

    def test_close_during_backoff_fails_fast(self, make_dispatcher):
        server = SimulatedServer(unavailable())
        dispatcher = make_dispatcher(server)
        outcome = {}

        def call():
            started = time.monotonic()
            try:
                dispatcher.request("GET", "/x")
            except Exception as exc:
                outcome["error"] = exc
            outcome["elapsed"] = time.monotonic() - started

        worker = threading.Thread(target=call)
        worker.start()
        deadline = time.monotonic() + 5
        while server.attempts < 1 and time.monotonic() < deadline:
            time.sleep(0.01)
        dispatcher.close()
        worker.join(timeout=5)

        assert not worker.is_alive()
        assert isinstance(outcome["error"], ClientClosedError)
        assert outcome["elapsed"] < 1.0
        assert server.attempts == 1

    @pytest.mark.asyncio
    async def test_aclose_during_backoff_fails_fast(self, make_dispatcher):
        server = SimulatedServer(unavailable())
        dispatcher = make_dispatcher(server)
        state = dispatcher.retry_policy.new_state()
        task = asyncio.create_task(dispatcher.aexecute(RequestDescriptor("GET", "/x"), retry_state=state))

        while state.phase is not RetryPhase.RETRY_SCHEDULED:
            await asyncio.sleep(0.01)
        await dispatcher.aclose()

        with pytest.raises(ClientClosedError):
            await asyncio.wait_for(task, timeout=0.5)
        assert server.attempts == 1

    @pytest.mark.asyncio
    async def test_cancel_during_backoff(self, make_dispatcher):
        server = SimulatedServer(unavailable())
        dispatcher = make_dispatcher(server)
        state = dispatcher.retry_policy.new_state()
        task = asyncio.create_task(dispatcher.aexecute(RequestDescriptor("GET", "/x"), retry_state=state))

        while state.phase is not RetryPhase.RETRY_SCHEDULED:
            await asyncio.sleep(0.01)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        await asyncio.sleep(0.05)
        assert server.attempts == 1
        assert state.phase is RetryPhase.EXHAUSTED
        assert dispatcher.pool_stats().leased == 0
        await dispatcher.aclose()

    @pytest.mark.asyncio
    async def test_async_context_manager(self, make_dispatcher):
        dispatcher = make_dispatcher(SimulatedServer(json_response(200, {"a": 1})))
        async with dispatcher as d:
            assert await d.arequest("GET", "/x") == {"a": 1}
        assert dispatcher.closed
