"""
Tests for the error classifier and the model invocation wrapper.
"""

import asyncio

import pytest
import httpx
from unittest.mock import AsyncMock

from whatsbi.llm.base import LLMMessage, LLMResponse
from whatsbi.llm.errors import (
    MESSAGE_FAILED,
    MESSAGE_RETRYING,
    ErrorClassification,
    ModelTimeoutError,
    classify_error,
)
from whatsbi.llm.invoker import (
    ModelCallParams,
    ModelInvoker,
    RetryAction,
    backoff_delay,
    next_action,
)

FATAL = ErrorClassification(is_temporary=False, should_retry=False, user_message=MESSAGE_FAILED)
RETRYABLE = ErrorClassification(True, True, MESSAGE_RETRYING, retry_after_seconds=5)


def http_error(status: int) -> httpx.HTTPStatusError:
    request = httpx.Request("POST", "https://api.example.com/v1/messages")
    response = httpx.Response(status, request=request)
    return httpx.HTTPStatusError(f"status {status}", request=request, response=response)


class StatusError(Exception):
    def __init__(self, status, message="boom"):
        super().__init__(message)
        self.status = status


class TestClassifyError:

    @pytest.mark.parametrize("status,retry_after", [(429, 60), (503, 10), (529, 10)])
    def test_overloaded_statuses(self, status, retry_after):
        result = classify_error(http_error(status))
        assert result.is_temporary and result.should_retry
        assert result.retry_after_seconds == retry_after
        assert result.user_message == MESSAGE_RETRYING

    @pytest.mark.parametrize("status", [400, 401, 403])
    def test_fatal_statuses(self, status):
        result = classify_error(http_error(status))
        assert not result.is_temporary
        assert not result.should_retry
        assert result.user_message == MESSAGE_FAILED

    def test_status_attribute(self):
        assert classify_error(StatusError(429)).retry_after_seconds == 60
        assert classify_error(StatusError(401)).should_retry is False

    def test_synthetic_timeout(self):
        result = classify_error(ModelTimeoutError(45))
        assert result.should_retry
        assert result.retry_after_seconds == 5

    def test_empty_timeout_message(self):
        assert classify_error(asyncio.TimeoutError()).retry_after_seconds == 5

    @pytest.mark.parametrize("message", ["Connection reset by peer", "read ECONNRESET", "Network unreachable"])
    def test_transport_signatures(self, message):
        result = classify_error(RuntimeError(message))
        assert result.should_retry
        assert result.retry_after_seconds == 3

    def test_timeout_beats_fatal_status(self):
        # Message rule is evaluated before the fatal status rule
        assert classify_error(StatusError(400, "gateway timeout")).should_retry is True

    def test_unknown_error_is_retryable(self):
        result = classify_error(ValueError("something odd"))
        assert result.is_temporary and result.should_retry
        assert result.retry_after_seconds == 5


class TestRetryStateMachine:

    def test_backoff_formula(self):
        assert [backoff_delay(n) for n in range(1, 6)] == [2.0, 4.0, 8.0, 16.0, 20.0]
        assert backoff_delay(10) == 20.0

    def test_next_action(self):
        assert next_action(FATAL, 1, 4) is RetryAction.FAIL
        assert next_action(RETRYABLE, 1, 4) is RetryAction.RETRY
        assert next_action(RETRYABLE, 3, 4) is RetryAction.RETRY
        assert next_action(RETRYABLE, 4, 4) is RetryAction.FAIL

    def test_resolved_temperature(self):
        assert ModelCallParams(system="s", messages=[]).resolved_temperature() == 0.3
        assert ModelCallParams(system="s", messages=[], tools=[{"name": "t"}]).resolved_temperature() == 0.0
        assert ModelCallParams(system="s", messages=[], temperature=0.9).resolved_temperature() == 0.9


def make_invoker(side_effect, classifier=classify_error):
    provider = AsyncMock()
    provider.create_message.side_effect = side_effect
    sleep = AsyncMock()
    return ModelInvoker(provider, classifier=classifier, sleep=sleep), provider, sleep


PARAMS = ModelCallParams(system="sys", messages=[LLMMessage.text("user", "q")])


class TestModelInvoker:

    @pytest.mark.asyncio
    async def test_success_first_attempt(self):
        ok = LLMResponse(content="ok")
        invoker, provider, sleep = make_invoker([ok])
        assert await invoker.invoke(PARAMS) is ok
        assert provider.create_message.call_count == 1
        sleep.assert_not_called()

    @pytest.mark.asyncio
    async def test_request_shape(self):
        invoker, provider, _ = make_invoker([LLMResponse(content="ok")])
        params = ModelCallParams(system="sys", messages=[], tools=[{"name": "execute_query"}])
        await invoker.invoke(params)
        kwargs = provider.create_message.call_args.kwargs
        assert kwargs["temperature"] == 0.0
        assert kwargs["max_tokens"] == 2048
        assert kwargs["tools"] == [{"name": "execute_query"}]

    @pytest.mark.asyncio
    async def test_fatal_makes_exactly_one_attempt(self):
        errors = [RuntimeError(f"e{i}") for i in range(10)]
        invoker, provider, sleep = make_invoker(errors, classifier=lambda e: FATAL)
        with pytest.raises(RuntimeError, match="e0"):
            await invoker.invoke(PARAMS, max_retries=4)
        assert provider.create_message.call_count == 1
        sleep.assert_not_called()

    @pytest.mark.asyncio
    async def test_retryable_makes_max_retries_attempts(self):
        errors = [RuntimeError(f"e{i}") for i in range(10)]
        invoker, provider, sleep = make_invoker(errors, classifier=lambda e: RETRYABLE)
        with pytest.raises(RuntimeError, match="e3"):
            await invoker.invoke(PARAMS, max_retries=4)
        assert provider.create_message.call_count == 4
        assert [c.args[0] for c in sleep.call_args_list] == [2.0, 4.0, 8.0]

    @pytest.mark.asyncio
    async def test_recovers_after_transient_errors(self):
        ok = LLMResponse(content="ok")
        invoker, provider, sleep = make_invoker([http_error(529), http_error(429), ok])
        assert await invoker.invoke(PARAMS) is ok
        assert provider.create_message.call_count == 3
        assert sleep.call_count == 2

    @pytest.mark.asyncio
    async def test_fatal_status_propagates_immediately(self):
        invoker, provider, _ = make_invoker([http_error(401)])
        with pytest.raises(httpx.HTTPStatusError):
            await invoker.invoke(PARAMS)
        assert provider.create_message.call_count == 1

    @pytest.mark.asyncio
    async def test_attempt_deadline_becomes_model_timeout(self):
        async def slow(**kwargs):
            await asyncio.sleep(5)
            return LLMResponse(content="late")

        provider = AsyncMock()
        provider.create_message.side_effect = slow
        invoker = ModelInvoker(provider, sleep=AsyncMock())

        with pytest.raises(ModelTimeoutError, match="timeout"):
            await invoker.invoke(PARAMS, max_retries=2, timeout=0.01)
        assert provider.create_message.call_count == 2
