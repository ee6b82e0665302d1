from .provider import OpenAIEmbeddingProvider

__all__ = ["OpenAIEmbeddingProvider"]
