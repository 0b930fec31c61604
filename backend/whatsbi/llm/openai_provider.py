"""
OpenAI-compatible Chat Completions provider.
Works with any endpoint speaking the chat/completions + function-calling
dialect (OpenAI, Azure OpenAI, Volcano Engine Ark, local gateways).
"""

import httpx
import json
import logging
import time
from typing import Optional, List, Dict, Any

from .base import LLMProvider, LLMMessage, LLMResponse, ToolCall, STOP_END_TURN, STOP_TOOL_USE

logger = logging.getLogger(__name__)


class OpenAIProvider(LLMProvider):
    """
    Provider for OpenAI-style chat/completions endpoints.
    Canonical tool_use / tool_result blocks are translated to tool_calls and
    role="tool" messages on the way out, and back on the way in.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o",
        base_url: str = "https://api.openai.com/v1",
        default_max_tokens: int = 2048,
        timeout: float = 120.0,
    ):
        super().__init__(api_key, model, base_url, default_max_tokens)
        self.timeout = timeout

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _format_messages(self, system: str, messages: List[LLMMessage]) -> List[Dict[str, Any]]:
        formatted: List[Dict[str, Any]] = [{"role": "system", "content": system}]
        for m in messages:
            if isinstance(m.content, str):
                formatted.append({"role": m.role, "content": m.content})
                continue

            text = "".join(b.get("text", "") for b in m.content if b.get("type") == "text")
            tool_uses = [b for b in m.content if b.get("type") == "tool_use"]
            tool_results = [b for b in m.content if b.get("type") == "tool_result"]

            if tool_uses:
                formatted.append({
                    "role": "assistant",
                    "content": text or None,
                    "tool_calls": [{
                        "id": b["id"],
                        "type": "function",
                        "function": {"name": b["name"], "arguments": json.dumps(b.get("input", {}))},
                    } for b in tool_uses],
                })
            elif tool_results:
                for b in tool_results:
                    formatted.append({
                        "role": "tool",
                        "tool_call_id": b["tool_use_id"],
                        "content": b["content"],
                    })
            else:
                formatted.append({"role": m.role, "content": text})
        return formatted

    @staticmethod
    def _format_tools(tools: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return [{
            "type": "function",
            "function": {
                "name": t["name"],
                "description": t.get("description", ""),
                "parameters": t.get("input_schema", {"type": "object", "properties": {}}),
            },
        } for t in tools]

    @staticmethod
    def _parse_response(data: Dict[str, Any], fallback_model: str) -> LLMResponse:
        choice = data["choices"][0]
        message = choice.get("message", {})
        tool_calls: List[ToolCall] = []
        for call in message.get("tool_calls") or []:
            function = call.get("function", {})
            try:
                arguments = json.loads(function.get("arguments") or "{}")
            except json.JSONDecodeError:
                arguments = {}
            tool_calls.append(ToolCall(id=call.get("id", ""), name=function.get("name", ""), input=arguments))

        stop_reason = STOP_TOOL_USE if choice.get("finish_reason") == "tool_calls" or tool_calls else STOP_END_TURN
        return LLMResponse(
            content=message.get("content") or "",
            tool_calls=tool_calls,
            stop_reason=stop_reason,
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
        """Send request to the Chat Completions endpoint."""
        start_time = time.time()
        url = f"{self.base_url}/chat/completions"
        payload: Dict[str, Any] = {
            "model": model or self.model,
            "messages": self._format_messages(system, messages),
            "temperature": temperature,
            "max_tokens": max_tokens or self.default_max_tokens,
        }
        if tools:
            payload["tools"] = self._format_tools(tools)

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                f"LLM API call starting: provider=openai, model={payload['model']}, "
                f"temperature={temperature}, {len(messages)} messages"
            )

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(url, json=payload, headers=self._get_headers())
                logger.debug(f"LLM API response status: {resp.status_code}")
                resp.raise_for_status()
                data = resp.json()

            result = self._parse_response(data, payload["model"])
            usage = result.usage
            duration_ms = (time.time() - start_time) * 1000

            logger.info(
                "LLM API call completed",
                extra={"extra_fields": {
                    "provider": "openai",
                    "model": result.model,
                    "stop_reason": result.stop_reason,
                    "prompt_tokens": usage.get("prompt_tokens", 0),
                    "completion_tokens": usage.get("completion_tokens", 0),
                    "total_tokens": usage.get("total_tokens", 0),
                    "duration_ms": round(duration_ms, 2),
                }}
            )
            return result
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.warning(
                f"LLM API call failed: {str(e)}",
                extra={"extra_fields": {
                    "provider": "openai",
                    "model": payload.get("model"),
                    "duration_ms": round(duration_ms, 2),
                    "error": str(e),
                }}
            )
            raise
