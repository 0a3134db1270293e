"""Anthropic LLM provider adapter.

Wraps the ``anthropic`` async client to implement :class:`ILLMProvider`.

Structured output uses Claude tool use: a single tool is offered and
``tool_choice`` forces the model to call it, so the answer arrives as the
tool's ``input`` dict rather than prose that would need parsing.

Key differences from the OpenAI adapter:
    - System prompt is a separate parameter, not a message in the list
    - Response content is a list of blocks (text and/or tool_use)
    - Tool arguments arrive already decoded as a dict
"""

from __future__ import annotations

from typing import Any

import anthropic
import structlog

from bookrouter.config.settings import Settings
from bookrouter.interfaces.llm_provider import ILLMProvider
from bookrouter.utils.errors import LLMError, RateLimitError, StructuredOutputError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_MODEL = "claude-sonnet-4-20250514"


class AnthropicLLMProvider(ILLMProvider):
    """LLM provider backed by the Anthropic Claude API."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._api_key = settings.anthropic_api_key
        self._client = anthropic.AsyncAnthropic(api_key=self._api_key)
        self._model = settings.anthropic_model or _DEFAULT_MODEL

    # ------------------------------------------------------------------
    # ILLMProvider implementation
    # ------------------------------------------------------------------

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 2000,
    ) -> str:
        try:
            response = await self._client.messages.create(
                model=self._model,
                max_tokens=max_tokens,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
                temperature=temperature,
            )
        except anthropic.RateLimitError as exc:
            raise RateLimitError(
                message=f"Anthropic rate limit: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        except anthropic.APIError as exc:
            raise LLMError(
                message=f"Anthropic API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        text_blocks = [block.text for block in response.content if block.type == "text"]
        if not text_blocks:
            raise LLMError(
                message="Anthropic returned no text content",
                provider_name=self.get_provider_name(),
            )
        logger.info(
            "anthropic_completion",
            model=self._model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )
        return "\n".join(text_blocks)

    async def complete_structured(
        self,
        system_prompt: str,
        user_prompt: str,
        tool_name: str,
        tool_description: str,
        input_schema: dict[str, Any],
        temperature: float = 0.0,
        max_tokens: int = 2000,
    ) -> dict[str, Any]:
        try:
            response = await self._client.messages.create(
                model=self._model,
                max_tokens=max_tokens,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
                temperature=temperature,
                tools=[
                    {
                        "name": tool_name,
                        "description": tool_description,
                        "input_schema": input_schema,
                    }
                ],
                tool_choice={"type": "tool", "name": tool_name},
            )
        except anthropic.RateLimitError as exc:
            raise RateLimitError(
                message=f"Anthropic rate limit: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        except anthropic.APIError as exc:
            raise LLMError(
                message=f"Anthropic API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        for block in response.content:
            if block.type == "tool_use" and block.name == tool_name:
                if not isinstance(block.input, dict):
                    break
                logger.info(
                    "anthropic_tool_call",
                    model=self._model,
                    tool=tool_name,
                    input_tokens=response.usage.input_tokens,
                    output_tokens=response.usage.output_tokens,
                )
                return dict(block.input)

        raise StructuredOutputError(
            message=f"Anthropic did not call tool {tool_name!r}",
            provider_name=self.get_provider_name(),
        )

    def is_available(self) -> bool:
        """Return ``True`` if an Anthropic API key is configured."""
        return bool(self._api_key)

    def get_provider_name(self) -> str:
        return "anthropic"
