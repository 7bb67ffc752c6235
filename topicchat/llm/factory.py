"""
LLM Provider Factory - Creates configured LLM provider instances.
"""

from typing import Optional
from .base import LLMProvider
from .openai_provider import OpenAIProvider
from .anthropic_provider import AnthropicProvider


def create_llm_provider(
    provider: str = "openai",
    api_key: Optional[str] = "",
    model: Optional[str] = None,
    base_url: Optional[str] = None,
    **kwargs
) -> Optional[LLMProvider]:
    """
    Create an LLM provider instance based on configuration.

    Args:
        provider: Provider name ("openai" or "anthropic")
        api_key: API key for the provider
        model: Model name (uses provider default if not specified)
        base_url: Custom base URL (uses provider default if not specified)
        **kwargs: Additional provider-specific parameters (timeout, provider_name, ...)

    Returns:
        LLMProvider instance, or None if api_key is not configured
    """
    if not api_key:
        return None

    params = {"api_key": api_key}
    if model:
        params["model"] = model
    if base_url:
        params["base_url"] = base_url
    params.update(kwargs)

    if provider == "openai":
        return OpenAIProvider(**params)
    elif provider == "anthropic":
        params.pop("provider_name", None)
        return AnthropicProvider(**params)
    else:
        raise ValueError(f"Unsupported LLM provider: {provider}")
