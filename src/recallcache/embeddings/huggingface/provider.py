import logging
from typing import Any, Dict, List, Optional

from ...constants import DEFAULT_MODELS_DIR
from .. import BaseEmbeddingProvider

logger = logging.getLogger(__name__)

# Used when the loaded model cannot report its own output size
KNOWN_SIZES = {
    "sentence-transformers/all-MiniLM-L6-v2": 384,
    "sentence-transformers/all-mpnet-base-v2": 768,
    "BAAI/bge-small-en-v1.5": 384,
}


def _sentence_transformer_class():
    try:
        from sentence_transformers import SentenceTransformer
    except ImportError as exc:
        raise ImportError(
            "Local embeddings need sentence-transformers: "
            "pip install 'recallcache[huggingface]'"
        ) from exc
    return SentenceTransformer


class HuggingFaceEmbeddingProvider(BaseEmbeddingProvider):
    """
    Embeddings computed in-process with sentence-transformers.

    Model weights are cached under the recallcache models directory unless
    ``cache_folder`` is set to something else (or to None for the library
    default).
    """

    DEFAULT_MODEL = "sentence-transformers/all-MiniLM-L6-v2"

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        super().__init__(config)
        self.model_name = self.config.get("model", self.DEFAULT_MODEL)

        load_options: Dict[str, Any] = {"device": self.config.get("device")}
        folder = self.config.get("cache_folder", str(DEFAULT_MODELS_DIR))
        if folder:
            load_options["cache_folder"] = folder

        self._encoder = _sentence_transformer_class()(self.model_name, **load_options)
        self._encode_options = {
            "batch_size": self.config.get("batch_size", 32),
            "normalize_embeddings": self.config.get("normalize_embeddings", False),
            "convert_to_numpy": True,
            "show_progress_bar": False,
        }
        self._size = self._output_size()
        logger.info(f"Local embedding model {self.model_name} loaded ({self._size} dims)")

    def _output_size(self) -> int:
        try:
            reported = self._encoder.get_sentence_embedding_dimension()
        except Exception as e:
            logger.warning(f"{self.model_name} did not report its embedding size: {e}")
            reported = None
        return int(reported) if reported else KNOWN_SIZES.get(self.model_name, 384)

    def embed(self, texts: List[str]) -> List[List[float]]:
        flattened = [text.replace("\n", " ") for text in texts]
        return self._encoder.encode(flattened, **self._encode_options).tolist()

    def get_dimensions(self) -> int:
        return self._size

    def get_default_model(self) -> str:
        return self.model_name
