import logging
from typing import Any, Dict, List, Optional

import openai

from .. import BaseEmbeddingProvider

logger = logging.getLogger(__name__)

# Suppress httpx logs to reduce noise from API requests
logging.getLogger("httpx").setLevel(logging.WARNING)

# Inputs accepted by a single embeddings request
MAX_INPUTS_PER_REQUEST = 2048


class OpenAIEmbeddingProvider(BaseEmbeddingProvider):
    """
    Remote embeddings from the OpenAI API.

    The ``text-embedding-3-*`` models are shortened to ``dimensions`` (384 by
    default, matching the local model) so a store can switch providers
    without every stored vector becoming dimension-incompatible.
    """

    MAX_DIMENSIONS = {
        "text-embedding-3-small": 1536,
        "text-embedding-3-large": 3072,
        "text-embedding-ada-002": 1536,
    }
    FIXED_SIZE_MODELS = {"text-embedding-ada-002"}
    DEFAULT_MODEL = "text-embedding-3-small"

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        Parameters:
        -----------
        config : Optional[Dict[str, Any]]
            ``model``, ``dimensions``, and optionally ``api_key`` / ``base_url``
            (otherwise taken from the environment by the OpenAI client)
        """
        super().__init__(config)

        self.model = self.config.get("model", self.DEFAULT_MODEL)
        if self.model not in self.MAX_DIMENSIONS:
            raise ValueError(
                f"Unsupported OpenAI embedding model '{self.model}', "
                f"expected one of {sorted(self.MAX_DIMENSIONS)}"
            )
        self.dimensions = self._resolve_dimensions(self.config.get("dimensions", 384))

        client_kwargs = {
            key: self.config[key] for key in ("api_key", "base_url") if key in self.config
        }
        self.client = openai.OpenAI(**client_kwargs)

        logger.info(f"OpenAI embeddings ready: model={self.model}, dimensions={self.dimensions}")

    def _resolve_dimensions(self, requested: int) -> int:
        limit = self.MAX_DIMENSIONS[self.model]
        if self.model in self.FIXED_SIZE_MODELS:
            if requested != limit:
                logger.warning(f"{self.model} always returns {limit} dimensions, ignoring {requested}")
            return limit
        if requested > limit:
            raise ValueError(f"{self.model} supports at most {limit} dimensions, got {requested}")
        return requested

    def embed(self, texts: List[str]) -> List[List[float]]:
        """Embed ``texts``, one request per 2048 inputs, preserving input order."""
        vectors: List[List[float]] = []
        for start in range(0, len(texts), MAX_INPUTS_PER_REQUEST):
            vectors.extend(self._embed_chunk(texts[start : start + MAX_INPUTS_PER_REQUEST]))
        return vectors

    def _embed_chunk(self, texts: List[str]) -> List[List[float]]:
        request: Dict[str, Any] = {
            "model": self.model,
            "input": [text.replace("\n", " ") for text in texts],
        }
        if self.model not in self.FIXED_SIZE_MODELS:
            request["dimensions"] = self.dimensions

        response = self.client.embeddings.create(**request)
        return [item.embedding for item in sorted(response.data, key=lambda item: item.index)]

    def get_dimensions(self) -> int:
        return self.dimensions

    def get_default_model(self) -> str:
        return self.model
