"""
Anthropic Messages API provider.
Talks to the /v1/messages endpoint directly over httpx, with tool use.
"""

import httpx
import logging
import time
from typing import Optional, List, Dict, Any

from .base import LLMProvider, LLMMessage, LLMResponse, ToolCall, STOP_END_TURN

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"
FAST_MODEL = "claude-3-5-haiku-20241022"


class AnthropicProvider(LLMProvider):
    """
    Provider for Anthropic Claude models.
    The HTTP timeout is a transport ceiling only; per-attempt deadlines are
    enforced by ModelInvoker.
    """

    API_VERSION = "2023-06-01"

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        base_url: str = "https://api.anthropic.com/v1",
        default_max_tokens: int = 2048,
        timeout: float = 120.0,
    ):
        super().__init__(api_key, model, base_url, default_max_tokens)
        self.timeout = timeout

    def _get_headers(self) -> Dict[str, str]:
        return {
            "x-api-key": self.api_key,
            "anthropic-version": self.API_VERSION,
            "Content-Type": "application/json",
        }

    def _format_messages(self, messages: List[LLMMessage]) -> List[Dict[str, Any]]:
        """Canonical blocks are already in Messages API shape."""
        return [{"role": m.role, "content": m.content} for m in messages]

    @staticmethod
    def _parse_response(data: Dict[str, Any], fallback_model: str) -> LLMResponse:
        text = ""
        tool_calls: List[ToolCall] = []
        for block in data.get("content", []):
            if block.get("type") == "text":
                text += block.get("text", "")
            elif block.get("type") == "tool_use":
                tool_calls.append(ToolCall(
                    id=block.get("id", ""),
                    name=block.get("name", ""),
                    input=block.get("input") or {},
                ))
        return LLMResponse(
            content=text,
            tool_calls=tool_calls,
            stop_reason=data.get("stop_reason") or STOP_END_TURN,
            model=data.get("model", fallback_model),
            usage=data.get("usage", {}),
            raw=data,
        )

    async def create_message(
        self,
        system: str,
        messages: List[LLMMessage],
        tools: Optional[List[Dict[str, Any]]] = None,
        temperature: float = 0.3,
        max_tokens: Optional[int] = None,
        model: Optional[str] = None,
    ) -> LLMResponse:
        """Send request to the Messages endpoint."""
        start_time = time.time()
        url = f"{self.base_url}/messages"
        payload: Dict[str, Any] = {
            "model": model or self.model,
            "system": system,
            "messages": self._format_messages(messages),
            "temperature": temperature,
            "max_tokens": max_tokens or self.default_max_tokens,
        }
        if tools:
            payload["tools"] = tools

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                f"LLM API call starting: provider=anthropic, model={payload['model']}, "
                f"temperature={temperature}, {len(messages)} messages, tools={len(tools or [])}"
            )

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(url, json=payload, headers=self._get_headers())
                resp.raise_for_status()
                data = resp.json()

            result = self._parse_response(data, payload["model"])
            usage = result.usage
            duration_ms = (time.time() - start_time) * 1000

            logger.info(
                "LLM API call completed",
                extra={"extra_fields": {
                    "provider": "anthropic",
                    "model": result.model,
                    "stop_reason": result.stop_reason,
                    "input_tokens": usage.get("input_tokens", 0),
                    "output_tokens": usage.get("output_tokens", 0),
                    "duration_ms": round(duration_ms, 2),
                }}
            )
            return result
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.warning(
                f"LLM API call failed: {str(e)}",
                extra={"extra_fields": {
                    "provider": "anthropic",
                    "model": payload.get("model"),
                    "duration_ms": round(duration_ms, 2),
                    "error": str(e),
                }}
            )
            raise
