"""LLM provider adapters.

Two concrete implementations of ILLMProvider (bookrouter/interfaces/llm_provider.py):
    - AnthropicLLMProvider -- Claude, structured output via forced tool use
    - OpenAILLMProvider    -- gpt-4o-mini or any OpenAI-compatible API,
                             structured output via forced function calling

main.py picks the first provider with a configured API key.
"""

from bookrouter.providers.llm.anthropic_provider import AnthropicLLMProvider
from bookrouter.providers.llm.openai_provider import OpenAILLMProvider

__all__ = ["AnthropicLLMProvider", "OpenAILLMProvider"]
