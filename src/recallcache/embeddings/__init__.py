import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from ..enums.embedding_provider_type import EmbeddingProviderType

logger = logging.getLogger(__name__)


class BaseEmbeddingProvider(ABC):
    """Abstract base class for embedding providers."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        Initialize the embedding provider with configuration.

        Parameters:
        -----------
        config : Optional[Dict[str, Any]]
            Provider-specific configuration parameters
        """
        self.config = config or {}

    @abstractmethod
    def embed(self, texts: List[str]) -> List[List[float]]:
        """
        Generate embeddings for a batch of texts in one call.

        Parameters:
        -----------
        texts : List[str]
            The texts to embed

        Returns:
        --------
        List[List[float]]
            One embedding vector per input text, in input order
        """

    @abstractmethod
    def get_dimensions(self) -> int:
        """
        Get the dimensionality of embeddings produced by this provider.

        Returns:
        --------
        int
            Number of dimensions in the embedding vector
        """

    @abstractmethod
    def get_default_model(self) -> str:
        """
        Get the default model name for this provider.

        Returns:
        --------
        str
            Default model identifier
        """


def coerce_embedding(value: Any) -> List[float]:
    """
    Convert a provider or on-disk embedding into a plain list of floats.

    Accepts numpy arrays, tuples and lists, and repairs object-shaped vectors
    (``{"0": x, "1": y, ...}``) by reading them in index order.
    """
    if isinstance(value, dict):
        ordered = sorted(value.items(), key=lambda item: int(item[0]))
        return [float(v) for _, v in ordered]
    if hasattr(value, "tolist"):
        value = value.tolist()
    return [float(v) for v in value]


class EmbeddingManager:
    """
    Central manager for embedding providers with configuration support.
    Implements the Factory pattern for provider creation.
    """

    def __init__(
        self,
        provider: Union[str, EmbeddingProviderType] = EmbeddingProviderType.HUGGINGFACE,
        config: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize the embedding manager.

        Parameters:
        -----------
        provider : Union[str, EmbeddingProviderType]
            The embedding provider to use
        config : Optional[Dict[str, Any]]
            Configuration for the selected provider
        """
        if isinstance(provider, str):
            try:
                provider = EmbeddingProviderType(provider.lower())
            except ValueError:
                raise ValueError(f"Unsupported embedding provider: {provider}")

        self.provider_type = provider
        self.config = config or {}
        self._provider = self._create_provider()

    def _create_provider(self) -> BaseEmbeddingProvider:
        """Create and return the appropriate embedding provider instance."""
        if self.provider_type == EmbeddingProviderType.HUGGINGFACE:
            from .huggingface import HuggingFaceEmbeddingProvider

            return HuggingFaceEmbeddingProvider(self.config)
        elif self.provider_type == EmbeddingProviderType.OPENAI:
            from .openai import OpenAIEmbeddingProvider

            return OpenAIEmbeddingProvider(self.config)
        else:
            raise ValueError(f"Provider {self.provider_type} not implemented")

    def embed(self, texts: List[str]) -> List[List[float]]:
        """Generate embeddings for ``texts`` using the configured provider."""
        return [coerce_embedding(vector) for vector in self._provider.embed(texts)]

    def get_dimensions(self) -> int:
        """Get the dimensionality of embeddings from the current provider."""
        return self._provider.get_dimensions()

    def get_default_model(self) -> str:
        """Get the default model for the current provider."""
        return self._provider.get_default_model()

    def get_provider_info(self) -> Dict[str, Any]:
        """
        Get information about the current provider configuration.

        Returns:
        --------
        Dict[str, Any]
            Provider information including type, model, and dimensions
        """
        return {
            "provider": self.provider_type.value,
            "model": self.get_default_model(),
            "dimensions": self.get_dimensions(),
        }


EmbeddingSource = Union[BaseEmbeddingProvider, EmbeddingManager]


class LazyEmbeddingProvider:
    """
    Builds an embedding provider on first use and caches it for the lifetime
    of the holder.

    A failed construction is cached as ``None`` so callers degrade to "no
    embeddings" instead of retrying a slow model load every turn.
    """

    def __init__(
        self,
        provider: Union[str, EmbeddingProviderType] = EmbeddingProviderType.HUGGINGFACE,
        config: Optional[Dict[str, Any]] = None,
        factory: Optional[Callable[[], Optional[EmbeddingSource]]] = None,
    ):
        self.provider = provider
        self.config = config or {}
        self._factory = factory or (lambda: EmbeddingManager(self.provider, self.config))
        self._lock = threading.Lock()
        self._resolved = False
        self._instance: Optional[EmbeddingSource] = None

    @classmethod
    def from_instance(cls, instance: Optional[EmbeddingSource]) -> "LazyEmbeddingProvider":
        """Wrap an already-built provider (or ``None`` for "unavailable")."""
        return cls(factory=lambda: instance)

    def get(self) -> Optional[EmbeddingSource]:
        """Return the cached provider, building it on the first call."""
        if self._resolved:
            return self._instance

        with self._lock:
            if not self._resolved:
                try:
                    self._instance = self._factory()
                    if self._instance is not None:
                        logger.info(f"Embedding provider ready: {type(self._instance).__name__}")
                except Exception as e:
                    logger.warning(f"Embedding provider unavailable: {e}")
                    self._instance = None
                self._resolved = True
        return self._instance

    def is_available(self) -> bool:
        return self.get() is not None

    def _reset_for_testing(self) -> None:
        """Forget the cached provider so the next ``get`` rebuilds it."""
        with self._lock:
            self._resolved = False
            self._instance = None


def embed_texts(provider: EmbeddingSource, texts: Sequence[str]) -> List[List[float]]:
    """Embed ``texts`` and normalise the result to plain float lists."""
    vectors = provider.embed(list(texts))
    if len(vectors) != len(texts):
        raise ValueError(
            f"Embedding provider returned {len(vectors)} vectors for {len(texts)} texts"
        )
    return [coerce_embedding(vector) for vector in vectors]


__all__ = [
    "BaseEmbeddingProvider",
    "EmbeddingManager",
    "EmbeddingProviderType",
    "EmbeddingSource",
    "LazyEmbeddingProvider",
    "coerce_embedding",
    "embed_texts",
]
