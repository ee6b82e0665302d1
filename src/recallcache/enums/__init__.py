from .embedding_provider_type import EmbeddingProviderType
from .failure_kind import FailureKind
from .role import Role

__all__ = ["EmbeddingProviderType", "FailureKind", "Role"]
