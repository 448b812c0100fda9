"""Abstract LLM interface."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class MessageRole(str, Enum):
    """Message role in conversation."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass
class Message:
    """Chat message."""

    role: MessageRole
    content: str

    def to_dict(self) -> dict[str, str]:
        """Convert to API-compatible dict."""
        return {"role": self.role.value, "content": self.content}


T = TypeVar("T", bound=BaseModel)


@dataclass
class ToolResult(Generic[T]):
    """A forced tool call: the validated tool input plus any prose the model wrote."""

    data: T
    text: str
    model: str
    usage: dict[str, int] = field(default_factory=dict)


class LLMError(Exception):
    """Base exception for LLM errors."""

    pass


class LLMConnectionError(LLMError):
    """Connection to LLM failed."""

    pass


class LLMTimeoutError(LLMError):
    """LLM request timed out."""

    pass


class LLMOverloadError(LLMError):
    """LLM is overloaded."""

    pass


class LLMValidationError(LLMError):
    """Response failed validation."""

    pass


class BaseLLM(ABC):
    """Abstract base class for LLM implementations."""

    @abstractmethod
    async def complete_tool(
        self,
        messages: list[Message],
        schema: type[T],
        *,
        tool_name: str,
        tool_description: str,
        temperature: float = 0.3,
        max_tokens: int = 4096,
        **kwargs: Any,
    ) -> ToolResult[T]:
        """Force a single tool call whose input must validate against *schema*.

        Raises:
            LLMConnectionError: If connection fails
            LLMTimeoutError: If request times out
            LLMOverloadError: If service is overloaded
            LLMValidationError: If the model skips the tool or its input doesn't match
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        pass

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Get the model name/identifier."""
        pass

    @property
    @abstractmethod
    def provider(self) -> str:
        """Get the provider name (e.g., 'anthropic')."""
        pass
