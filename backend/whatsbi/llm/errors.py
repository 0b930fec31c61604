"""
Error classification for remote calls.

``classify_error`` is a pure function: it inspects an exception raised by a
model call (or any other remote call) and decides whether retrying makes
sense. The decision table is evaluated top to bottom, first match wins.
"""

import asyncio
from dataclasses import dataclass
from typing import Optional

import httpx

MESSAGE_RETRYING = (
    "Estou processando sua pergunta, mas preciso de um momento. "
    "Vou tentar novamente em alguns segundos."
)
MESSAGE_FAILED = (
    "Não consegui processar sua solicitação no momento. "
    "Por favor, tente novamente mais tarde ou reformule sua pergunta."
)

OVERLOADED_STATUSES = frozenset({429, 503, 529})
FATAL_STATUSES = frozenset({400, 401, 403})
TRANSPORT_SIGNATURES = ("connection reset", "econnreset", "timed out", "etimedout", "network")


class ModelTimeoutError(TimeoutError):
    """A model call did not finish inside its per-attempt deadline."""

    def __init__(self, timeout: float):
        super().__init__(f"Model call timeout after {timeout:.0f}s")
        self.timeout = timeout


@dataclass(frozen=True)
class ErrorClassification:
    is_temporary: bool
    should_retry: bool
    user_message: str
    retry_after_seconds: Optional[int] = None


def error_status(error: BaseException) -> Optional[int]:
    """HTTP status carried by an error, if any."""
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code
    for attr in ("status", "status_code"):
        value = getattr(error, attr, None)
        if isinstance(value, int):
            return value
    return None


def error_message(error: BaseException) -> str:
    message = str(error)
    if not message and isinstance(error, (asyncio.TimeoutError, httpx.TimeoutException)):
        message = "timeout"
    return message.lower()


def classify_error(error: BaseException) -> ErrorClassification:
    """Map an exception to a retry decision and a user-facing message."""
    status = error_status(error)
    message = error_message(error)

    if status in OVERLOADED_STATUSES:
        return ErrorClassification(
            is_temporary=True,
            should_retry=True,
            retry_after_seconds=60 if status == 429 else 10,
            user_message=MESSAGE_RETRYING,
        )

    if "timeout" in message:
        return ErrorClassification(True, True, MESSAGE_RETRYING, retry_after_seconds=5)

    if any(signature in message for signature in TRANSPORT_SIGNATURES):
        return ErrorClassification(True, True, MESSAGE_RETRYING, retry_after_seconds=3)

    if status in FATAL_STATUSES:
        return ErrorClassification(is_temporary=False, should_retry=False, user_message=MESSAGE_FAILED)

    # Unrecognised conditions are retried rather than failed fast
    return ErrorClassification(True, True, MESSAGE_RETRYING, retry_after_seconds=5)
