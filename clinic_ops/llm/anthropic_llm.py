"""Anthropic Claude LLM implementation."""

import logging
from typing import Any, Optional, TypeVar

from anthropic import (
    APIConnectionError,
    APITimeoutError,
    AsyncAnthropic,
    InternalServerError,
    RateLimitError,
)
from pydantic import BaseModel, ValidationError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from clinic_ops.llm.base import (
    BaseLLM,
    LLMConnectionError,
    LLMOverloadError,
    LLMTimeoutError,
    LLMValidationError,
    Message,
    MessageRole,
    ToolResult,
)

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

_transient = retry(
    retry=retry_if_exception_type((LLMTimeoutError, LLMOverloadError)),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    reraise=True,
)


class AnthropicLLM(BaseLLM):
    """Anthropic Claude LLM implementation."""

    def __init__(
        self,
        api_key: str,
        model: str = "claude-sonnet-4-20250514",
        timeout: int = 120,
        client: Optional[AsyncAnthropic] = None,
    ):
        self._model = model
        self._timeout = timeout
        self._client = client or AsyncAnthropic(api_key=api_key, timeout=timeout)

    @property
    def model_name(self) -> str:
        return self._model

    @property
    def provider(self) -> str:
        return "anthropic"

    def _prepare_messages(
        self, messages: list[Message]
    ) -> tuple[Optional[str], list[dict[str, str]]]:
        """Separate system message from conversation messages.

        Anthropic API requires system message as separate parameter.
        """
        system_content = None
        conversation = []

        for msg in messages:
            if msg.role == MessageRole.SYSTEM:
                system_content = msg.content
            else:
                conversation.append(msg.to_dict())

        return system_content, conversation

    async def _create(self, **params: Any):
        try:
            return await self._client.messages.create(model=self._model, **params)
        except APITimeoutError as e:
            logger.error(f"Anthropic timeout: {e}")
            raise LLMTimeoutError(f"Anthropic request timed out after {self._timeout}s") from e
        except APIConnectionError as e:
            logger.error(f"Anthropic connection error: {e}")
            raise LLMConnectionError("Failed to connect to Anthropic API") from e
        except RateLimitError as e:
            logger.warning(f"Anthropic rate limit: {e}")
            raise LLMOverloadError("Anthropic API rate limited") from e
        except InternalServerError as e:
            logger.warning(f"Anthropic server error: {e}")
            raise LLMOverloadError("Anthropic API unavailable") from e

    @_transient
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
        """Structured output via a forced tool call."""
        system_content, conversation = self._prepare_messages(messages)
        response = await self._create(
            messages=conversation,
            system=system_content or "",
            temperature=temperature,
            max_tokens=max_tokens,
            tools=[{
                "name": tool_name,
                "description": tool_description,
                "input_schema": schema.model_json_schema(),
            }],
            tool_choice={"type": "tool", "name": tool_name},
            **kwargs,
        )

        text = ""
        tool_input = None
        for block in response.content:
            if block.type == "text":
                text += block.text
            elif block.type == "tool_use" and block.name == tool_name:
                tool_input = block.input

        if tool_input is None:
            raise LLMValidationError(f"Model did not call {tool_name}")
        try:
            data = schema.model_validate(tool_input)
        except ValidationError as e:
            logger.error(f"Tool input doesn't match schema: {e}")
            raise LLMValidationError(f"Tool input doesn't match schema: {e}") from e

        return ToolResult(
            data=data,
            text=text,
            model=response.model,
            usage={
                "input_tokens": response.usage.input_tokens,
                "output_tokens": response.usage.output_tokens,
            },
        )

    async def health_check(self) -> bool:
        try:
            response = await self._client.messages.create(
                model=self._model,
                messages=[{"role": "user", "content": "Hi"}],
                max_tokens=10,
            )
            return len(response.content) > 0
        except Exception as e:
            logger.debug(f"Anthropic health check failed: {e}")
            return False
