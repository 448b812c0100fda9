"""LLM abstraction layer."""

from clinic_ops.llm.anthropic_llm import AnthropicLLM
from clinic_ops.llm.base import (
    BaseLLM,
    LLMError,
    LLMValidationError,
    Message,
    MessageRole,
    ToolResult,
)

__all__ = [
    "AnthropicLLM",
    "BaseLLM",
    "LLMError",
    "LLMValidationError",
    "Message",
    "MessageRole",
    "ToolResult",
]
