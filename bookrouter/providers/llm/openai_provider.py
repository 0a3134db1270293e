"""OpenAI-compatible LLM provider adapter.

Wraps the ``openai`` async client to implement :class:`ILLMProvider`.  When
``openai_base_url`` is configured (TogetherAI, Groq, Fireworks, ...) the
client points there instead of the default OpenAI endpoint.

Structured output uses function calling with a forced ``tool_choice``.  The
arguments come back as a JSON string, decoded here; a malformed string is a
:class:`StructuredOutputError`, never a crash further down.
"""

from __future__ import annotations

import json
from typing import Any

import openai
import structlog

from bookrouter.config.settings import Settings
from bookrouter.interfaces.llm_provider import ILLMProvider
from bookrouter.utils.errors import LLMError, RateLimitError, StructuredOutputError

logger = structlog.get_logger(logger_name=__name__)


class OpenAILLMProvider(ILLMProvider):
    """LLM provider backed by an OpenAI-compatible API.

    Uses ``gpt-4o-mini`` by default; override with ``OPENAI_TEXT_MODEL``.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._api_key = settings.openai_api_key

        # The SDK timeout sits above the pipeline's own per-call deadline so
        # the pipeline deadline is the one that fires.
        client_kwargs: dict = {
            "api_key": self._api_key,
            "timeout": openai.Timeout(settings.llm_timeout + 5.0, connect=5.0),
            "max_retries": 0,
        }
        if settings.openai_base_url:
            client_kwargs["base_url"] = settings.openai_base_url

        self._client = openai.AsyncOpenAI(**client_kwargs)
        self._text_model = settings.openai_text_model or "gpt-4o-mini"
        self._provider_label = (
            "openai-compatible" if settings.openai_base_url else "openai"
        )

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
        response = await self._create(
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            temperature=temperature,
            max_tokens=max_tokens,
        )
        content = response.choices[0].message.content
        if content is None:
            raise LLMError(
                message=f"{self._provider_label} returned empty response",
                provider_name=self.get_provider_name(),
            )
        logger.info(
            "openai_completion",
            model=self._text_model,
            provider=self._provider_label,
            tokens=response.usage.total_tokens if response.usage else None,
        )
        return content

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
        response = await self._create(
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            temperature=temperature,
            max_tokens=max_tokens,
            tools=[
                {
                    "type": "function",
                    "function": {
                        "name": tool_name,
                        "description": tool_description,
                        "parameters": input_schema,
                    },
                }
            ],
            tool_choice={"type": "function", "function": {"name": tool_name}},
        )

        tool_calls = response.choices[0].message.tool_calls or []
        for call in tool_calls:
            if call.function.name != tool_name:
                continue
            try:
                arguments = json.loads(call.function.arguments)
            except json.JSONDecodeError as exc:
                raise StructuredOutputError(
                    message=f"{self._provider_label} returned invalid JSON arguments",
                    provider_name=self.get_provider_name(),
                ) from exc
            if not isinstance(arguments, dict):
                break
            logger.info(
                "openai_tool_call",
                model=self._text_model,
                provider=self._provider_label,
                tool=tool_name,
                tokens=response.usage.total_tokens if response.usage else None,
            )
            return arguments

        raise StructuredOutputError(
            message=f"{self._provider_label} did not call tool {tool_name!r}",
            provider_name=self.get_provider_name(),
        )

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured."""
        return bool(self._api_key)

    def get_provider_name(self) -> str:
        return "openai"

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _create(self, **kwargs: Any) -> Any:
        try:
            return await self._client.chat.completions.create(model=self._text_model, **kwargs)
        except openai.RateLimitError as exc:
            raise RateLimitError(
                message=f"{self._provider_label} rate limit: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.APITimeoutError as exc:
            raise LLMError(
                message=f"{self._provider_label} timed out",
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.APIError as exc:
            raise LLMError(
                message=f"{self._provider_label} API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
