import os
from typing import Any, Dict

from .llm_provider import LLMProvider
from .openai import OpenAI

# OpenAI-compatible providers: name -> (base URL, API key environment variable)
COMPATIBLE_ENDPOINTS = {
    "xai": ("https://api.x.ai/v1", "XAI_API_KEY"),
}


def create_llm_provider(config: Dict[str, Any]) -> LLMProvider:
    """
    Factory function to create an LLM provider instance from a configuration dictionary.

    Parameters:
    -----------
    config : Dict[str, Any]
        The provider name and its parameters, as produced by ``get_config``.
        Example: {"provider": "openai", "model": "gpt-4o"}
        Example: {"provider": "xai", "model": "grok-3-mini"}

    Returns:
    --------
    LLMProvider

    Raises:
    -------
    ValueError
        If the provider is unknown or its API key is missing.
    """
    provider_config = dict(config)
    provider_name = str(provider_config.pop("provider", "openai")).lower()

    if provider_name == "openai":
        return OpenAI(**provider_config)

    if provider_name in COMPATIBLE_ENDPOINTS:
        base_url, key_variable = COMPATIBLE_ENDPOINTS[provider_name]
        api_key = provider_config.pop("api_key", None) or os.getenv(key_variable)
        if not api_key:
            raise ValueError(f"{key_variable} is not set for provider '{provider_name}'")
        provider_config.setdefault("base_url", base_url)
        return OpenAI(api_key=api_key, provider=provider_name, **provider_config)

    raise ValueError(f"Unknown LLM provider: '{provider_name}'")
