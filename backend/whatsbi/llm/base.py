"""
LLM Provider Base - Abstract base for all LLM API providers.
Supports tool use: the model may answer with text or ask for a named tool
to be executed with structured arguments.
"""

from abc import ABC, abstractmethod
from typing import Dict, Any, Optional, List, Union
from dataclasses import dataclass, field

STOP_END_TURN = "end_turn"
STOP_TOOL_USE = "tool_use"


@dataclass
class ToolCall:
    """A structured tool invocation requested by the model."""
    id: str
    name: str
    input: Dict[str, Any] = field(default_factory=dict)


@dataclass
class LLMMessage:
    """
    Represents a message in a conversation.

    ``content`` is either plain text or a list of content blocks in the
    canonical shape used across providers:
    ``{"type": "text", "text": ...}``,
    ``{"type": "tool_use", "id": ..., "name": ..., "input": {...}}`` and
    ``{"type": "tool_result", "tool_use_id": ..., "content": ...}``.
    """
    role: str  # "user", "assistant"
    content: Union[str, List[Dict[str, Any]]]

    @staticmethod
    def text(role: str, text: str) -> "LLMMessage":
        """Create a text-only message."""
        return LLMMessage(role=role, content=text)

    @staticmethod
    def assistant_turn(response: "LLMResponse") -> "LLMMessage":
        """Echo a model response back into the history before tool results."""
        blocks: List[Dict[str, Any]] = []
        if response.content:
            blocks.append({"type": "text", "text": response.content})
        for call in response.tool_calls:
            blocks.append({"type": "tool_use", "id": call.id, "name": call.name, "input": call.input})
        return LLMMessage(role="assistant", content=blocks)

    @staticmethod
    def tool_results(results: List[Dict[str, str]]) -> "LLMMessage":
        """
        Wrap tool outputs in a user turn.

        Args:
            results: List of dicts with 'tool_use_id' and 'content'
        """
        return LLMMessage(role="user", content=[
            {"type": "tool_result", "tool_use_id": r["tool_use_id"], "content": r["content"]}
            for r in results
        ])


@dataclass
class LLMResponse:
    """Response from an LLM API call."""
    content: str
    tool_calls: List[ToolCall] = field(default_factory=list)
    stop_reason: str = STOP_END_TURN
    model: str = ""
    usage: Dict[str, int] = field(default_factory=dict)
    raw: Optional[Dict[str, Any]] = None

    @property
    def wants_tool(self) -> bool:
        return self.stop_reason == STOP_TOOL_USE and bool(self.tool_calls)


class LLMProvider(ABC):
    """
    Abstract base class for LLM API providers.
    All providers must implement create_message.
    """

    def __init__(self, api_key: str, model: str, base_url: Optional[str] = None,
                 default_max_tokens: int = 2048):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.default_max_tokens = default_max_tokens

    @abstractmethod
    async def create_message(
        self,
        system: str,
        messages: List[LLMMessage],
        tools: Optional[List[Dict[str, Any]]] = None,
        temperature: float = 0.3,
        max_tokens: Optional[int] = None,
        model: Optional[str] = None,
    ) -> LLMResponse:
        """
        Send one request to the model.

        Args:
            system: System prompt
            messages: Conversation so far
            tools: Tool declarations (name, description, input_schema)
            temperature: Sampling temperature
            max_tokens: Max tokens override
            model: Model override

        Returns:
            LLMResponse with text and/or tool calls

        Raises:
            httpx.HTTPStatusError: The provider answered with a non-2xx status
            httpx.TransportError: The request never completed
        """
        pass
