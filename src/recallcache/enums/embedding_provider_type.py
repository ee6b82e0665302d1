from enum import Enum


class EmbeddingProviderType(Enum):
    """Enumeration of supported embedding providers."""

    HUGGINGFACE = "huggingface"
    OPENAI = "openai"
