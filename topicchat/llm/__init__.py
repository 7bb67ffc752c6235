"""LLM module - provides unified interface for AI backend API providers."""

from .base import LLMProvider, LLMMessage, LLMResponse
from .openai_provider import OpenAIProvider
from .anthropic_provider import AnthropicProvider
from .factory import create_llm_provider

__all__ = [
    'LLMProvider',
    'LLMMessage',
    'LLMResponse',
    'OpenAIProvider',
    'AnthropicProvider',
    'create_llm_provider',
]
