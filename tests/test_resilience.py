"""Tests for error classification and the retry wrapper."""

from types import SimpleNamespace

import pytest

from conftest import StatusError
from newsbot.src.core.errors import UpstreamPermanent, UpstreamTransient
from newsbot.src.core.resilience import extract_status, is_transient, to_upstream_error, with_retry


class FlakyOperation:
    """Raises the queued errors in order, then returns ``result``."""

    def __init__(self, errors, result="ok"):
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


class RecordingSleep:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class ResponseError(Exception):
    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.response = SimpleNamespace(status_code=status_code)


class TestIsTransient:
    @pytest.mark.parametrize(
        "exc, expected",
        [
            (StatusError("Too Many Requests", 429), True),
            (StatusError("boom", 500), True),
            (StatusError("Service Unavailable", 503), True),
            (StatusError("bad request", 400), False),
            (StatusError("invalid api key", 401), False),
            (StatusError("model overloaded", 400), False),
            (ResponseError("bad gateway", 502), True),
            (ResponseError("not found", 404), False),
            (RuntimeError("The model is overloaded. Please try again later."), True),
            (RuntimeError("Quota exceeded for metric generate_content"), True),
            (RuntimeError("429 RESOURCE_EXHAUSTED"), True),
            (RuntimeError("Request timed out"), True),
            (ValueError("malformed prompt"), False),
            (UpstreamTransient("anything"), True),
            (UpstreamPermanent("rate limit"), False),
        ],
    )
    def test_classification(self, exc, expected):
        assert is_transient(exc) is expected

    def test_status_code_wins_over_message(self):
        """A permanent status is not overridden by transient-sounding text."""
        assert is_transient(StatusError("quota exceeded", 403)) is False


class TestExtractStatus:
    def test_reads_numeric_string(self):
        exc = RuntimeError("x")
        exc.status = "503"
        assert extract_status(exc) == 503

    def test_ignores_non_http_codes(self):
        exc = RuntimeError("x")
        exc.code = "RESOURCE_EXHAUSTED"
        assert extract_status(exc) is None

    def test_none_when_absent(self):
        assert extract_status(ValueError("x")) is None


class TestToUpstreamError:
    def test_transient_keeps_status(self):
        err = to_upstream_error(StatusError("slow down", 429), "Gemini")

        assert isinstance(err, UpstreamTransient)
        assert err.status_code == 429
        assert "Gemini" in str(err)

    def test_permanent(self):
        err = to_upstream_error(StatusError("forbidden", 403), "Gemini")

        assert isinstance(err, UpstreamPermanent)
        assert err.status_code == 403

    def test_passes_through_existing_upstream_error(self):
        original = UpstreamTransient("already wrapped")
        assert to_upstream_error(original, "Gemini") is original


class TestWithRetry:
    @pytest.mark.asyncio
    async def test_two_transient_failures_then_success(self):
        op = FlakyOperation([StatusError("busy", 503), StatusError("busy", 503)], result="done")
        sleep = RecordingSleep()

        result = await with_retry(op, max_retries=3, base_delay=1.0, sleep=sleep)

        assert result == "done"
        assert op.calls == 3
        assert sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_delays_scale_with_base_delay(self):
        op = FlakyOperation([UpstreamTransient("busy")] * 3)
        sleep = RecordingSleep()

        await with_retry(op, max_retries=4, base_delay=0.5, sleep=sleep)

        assert sleep.delays == [0.5, 1.0, 2.0]

    @pytest.mark.asyncio
    async def test_permanent_error_is_not_retried(self):
        op = FlakyOperation([StatusError("bad key", 401)])
        sleep = RecordingSleep()

        with pytest.raises(StatusError):
            await with_retry(op, sleep=sleep)

        assert op.calls == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_exhausted_retries_reraise_last_error(self):
        errors = [UpstreamTransient("first"), UpstreamTransient("second"), UpstreamTransient("third")]
        op = FlakyOperation(errors)

        with pytest.raises(UpstreamTransient, match="third"):
            await with_retry(op, max_retries=3, sleep=RecordingSleep())

        assert op.calls == 3

    @pytest.mark.asyncio
    async def test_success_on_first_try_does_not_sleep(self):
        op = FlakyOperation([])
        sleep = RecordingSleep()

        assert await with_retry(op, sleep=sleep) == "ok"
        assert op.calls == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_single_attempt_budget(self):
        op = FlakyOperation([UpstreamTransient("busy")])

        with pytest.raises(UpstreamTransient):
            await with_retry(op, max_retries=1, sleep=RecordingSleep())

        assert op.calls == 1

    @pytest.mark.asyncio
    async def test_rejects_non_positive_attempt_budget(self):
        with pytest.raises(ValueError):
            await with_retry(FlakyOperation([]), max_retries=0)

    @pytest.mark.asyncio
    async def test_plain_lambda_returning_coroutine_is_retried(self):
        op = FlakyOperation([StatusError("busy", 503), StatusError("busy", 503)], result="done")
        sleep = RecordingSleep()

        result = await with_retry(lambda: op(), max_retries=3, base_delay=1.0, sleep=sleep)

        assert result == "done"
        assert op.calls == 3
        assert sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_bound_method_lambda_returns_awaited_value(self):
        class Service:
            async def fetch(self, key):
                return [key, key]

        service = Service()

        assert await with_retry(lambda: service.fetch("q"), sleep=RecordingSleep()) == ["q", "q"]
