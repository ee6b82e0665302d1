from .provider import HuggingFaceEmbeddingProvider

__all__ = ["HuggingFaceEmbeddingProvider"]
