"""LLM module - provides unified interface for LLM API providers."""

from .base import LLMProvider, LLMMessage, LLMResponse, ToolCall
from .anthropic_provider import AnthropicProvider
from .openai_provider import OpenAIProvider
from .factory import create_llm_provider
from .errors import ErrorClassification, ModelTimeoutError, classify_error
from .invoker import ModelCallParams, ModelInvoker

__all__ = [
    'LLMProvider',
    'LLMMessage',
    'LLMResponse',
    'ToolCall',
    'AnthropicProvider',
    'OpenAIProvider',
    'create_llm_provider',
    'ErrorClassification',
    'ModelTimeoutError',
    'classify_error',
    'ModelCallParams',
    'ModelInvoker',
]
