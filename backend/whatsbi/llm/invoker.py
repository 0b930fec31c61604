"""
Model Invocation Wrapper.

Every model call goes through ``ModelInvoker.invoke``, a small state machine:

    ATTEMPT --ok--> SUCCESS
       |
     error
       v
    CLASSIFY --fatal or out of attempts--> FAIL (re-raise last error)
       |
    retryable
       v
    BACKOFF (sleep) --> ATTEMPT

Each attempt runs under its own deadline; the budget is per attempt, not
cumulative. The transition helpers ``next_action`` and ``backoff_delay`` are
pure so the bounded-attempts and backoff properties can be tested alone.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .base import LLMMessage, LLMProvider, LLMResponse
from .errors import ErrorClassification, ModelTimeoutError, classify_error

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 2048
TOOL_TEMPERATURE = 0.0
TEXT_TEMPERATURE = 0.3
BACKOFF_BASE_SECONDS = 2.0
BACKOFF_CAP_SECONDS = 20.0


class RetryAction(Enum):
    RETRY = "retry"
    FAIL = "fail"


@dataclass
class ModelCallParams:
    """One request to the model."""
    system: str
    messages: List[LLMMessage]
    tools: Optional[List[Dict[str, Any]]] = None
    model: Optional[str] = None
    max_tokens: int = DEFAULT_MAX_TOKENS
    temperature: Optional[float] = None

    def resolved_temperature(self) -> float:
        """Deterministic output when tools are offered, a little freedom for prose."""
        if self.temperature is not None:
            return self.temperature
        return TOOL_TEMPERATURE if self.tools else TEXT_TEMPERATURE


def backoff_delay(attempt: int) -> float:
    """Seconds to wait after failed attempt number ``attempt`` (1-based)."""
    return min(BACKOFF_BASE_SECONDS * 2 ** (attempt - 1), BACKOFF_CAP_SECONDS)


def next_action(classification: ErrorClassification, attempt: int, max_retries: int) -> RetryAction:
    if not classification.should_retry or attempt >= max_retries:
        return RetryAction.FAIL
    return RetryAction.RETRY


class ModelInvoker:
    """Calls an LLMProvider with deadline, classification and backoff."""

    def __init__(
        self,
        provider: LLMProvider,
        classifier: Callable[[BaseException], ErrorClassification] = classify_error,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.provider = provider
        self.classifier = classifier
        self.sleep = sleep

    async def _attempt(self, params: ModelCallParams, timeout: float) -> LLMResponse:
        call = self.provider.create_message(
            system=params.system,
            messages=params.messages,
            tools=params.tools or None,
            temperature=params.resolved_temperature(),
            max_tokens=params.max_tokens,
            model=params.model,
        )
        try:
            # wait_for cancels the call on expiry, so a late reply is never observed
            return await asyncio.wait_for(call, timeout)
        except asyncio.TimeoutError as exc:
            raise ModelTimeoutError(timeout) from exc

    async def invoke(
        self,
        params: ModelCallParams,
        max_retries: int = 4,
        timeout: float = 45.0,
    ) -> LLMResponse:
        """
        Call the model until it succeeds, a fatal error occurs, or attempts run out.

        Args:
            params: Request to send
            max_retries: Total number of attempts allowed
            timeout: Deadline in seconds for each attempt

        Returns:
            The first successful LLMResponse

        Raises:
            Exception: The error of the last failed attempt
        """
        max_retries = max(1, max_retries)
        attempt = 0

        while True:
            attempt += 1
            try:
                return await self._attempt(params, timeout)
            except Exception as error:
                classification = self.classifier(error)
                logger.warning(
                    f"Model attempt {attempt}/{max_retries} failed: {error}",
                    extra={"extra_fields": {
                        "attempt": attempt,
                        "max_retries": max_retries,
                        "temporary": classification.is_temporary,
                        "error": str(error),
                    }}
                )

                if next_action(classification, attempt, max_retries) is RetryAction.FAIL:
                    raise

                delay = backoff_delay(attempt)
                logger.info(f"Waiting {delay:.0f}s before attempt {attempt + 1}")
                await self.sleep(delay)
