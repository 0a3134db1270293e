"""Abstract base class for generative text service providers.

Defines the contract for the LLM backend used by the entity extractor, the
response formatter and the temporal/world fallback extraction.  Two call
shapes exist:

- :meth:`ILLMProvider.complete` -- free text.
- :meth:`ILLMProvider.complete_structured` -- a forced tool call whose
  arguments must follow a JSON schema.  This is the only shape the pipeline
  uses for anything it later parses; free text is never regex-parsed into
  book lists.

Implementations wrap the Anthropic API (tool use) or the OpenAI API
(function calling).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


# Concrete implementations: AnthropicLLMProvider, OpenAILLMProvider
# Located in: bookrouter/providers/llm/
class ILLMProvider(ABC):
    """Contract for generative text services."""

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 2000,
    ) -> str:
        """Generate a free-text completion.

        Parameters
        ----------
        system_prompt:
            The system/instruction message that sets the model's behaviour.
        user_prompt:
            The user-facing prompt containing the actual request or data.
        temperature:
            Sampling temperature (0.0 = deterministic, 1.0 = creative).
        max_tokens:
            Upper bound on the number of tokens in the response.

        Returns
        -------
        str
            The model's text response.

        Raises
        ------
        bookrouter.utils.errors.LLMError
            If the API call fails or returns an empty response.
        """

    @abstractmethod
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
        """Force a single tool call and return its arguments.

        Parameters
        ----------
        system_prompt:
            Instructions for the model.
        user_prompt:
            The content to operate on.
        tool_name:
            Name of the only tool offered; the model is required to call it.
        tool_description:
            Natural-language description of the tool.
        input_schema:
            JSON Schema for the tool arguments.
        temperature:
            Sampling temperature.
        max_tokens:
            Upper bound on response tokens.

        Returns
        -------
        dict[str, Any]
            The tool-call arguments, unvalidated.  Callers must validate them
            before use.

        Raises
        ------
        bookrouter.utils.errors.StructuredOutputError
            If the model did not call the tool or the arguments are not JSON.
        bookrouter.utils.errors.LLMError
            If the API call itself fails.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"anthropic"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if credentials are configured."""
