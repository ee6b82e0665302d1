from .llm_factory import create_llm_provider
from .llm_provider import LLMProvider
from .openai import OpenAI

__all__ = ["OpenAI", "LLMProvider", "create_llm_provider"]
