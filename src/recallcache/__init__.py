import logging

from .constants import RECALLCACHE_LOG_LEVEL
from .domains import DEFAULT_DOMAIN, DOMAIN_REGISTRY, MemoryDomain, get_domain, get_domain_ids
from .embeddings import EmbeddingManager, LazyEmbeddingProvider
from .enums import EmbeddingProviderType, FailureKind, Role
from .long_term_memory import SemanticMemoryCache, SemanticMemoryCacheConfig
from .memory_provider import FactFileStore, FileSystemConfig
from .memory_unit import (
    ConversationMessage,
    MemoryEntry,
    SearchResult,
    SearchResultWithId,
    TextPart,
    ToolCallPart,
    ToolResultPart,
    extract_text,
)
from .short_term_memory import (
    CompressionConfig,
    ConversationCompressor,
    apply_stickiness,
    build_rag_query,
    extract_recent_tool_context,
    extract_recent_user_texts,
    should_compress,
)
from .similarity import cosine_similarity
from .utils import build_recalled_context_block, degrade


def configure_logging(level: str = RECALLCACHE_LOG_LEVEL) -> None:
    """Apply ``level`` (default: ``RECALLCACHE_LOG_LEVEL``) to the package logger."""
    logging.getLogger(__name__).setLevel(level)


# Lazy import the session and worker so the subprocess machinery is only loaded when used
def __getattr__(name):
    if name == "RecallSession":
        from .session import RecallSession

        return RecallSession
    if name in ("run_pending_extraction", "write_pending_extraction"):
        from . import extraction_worker

        return getattr(extraction_worker, name)
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")


__all__ = [
    "DEFAULT_DOMAIN",
    "DOMAIN_REGISTRY",
    "CompressionConfig",
    "ConversationCompressor",
    "ConversationMessage",
    "EmbeddingManager",
    "EmbeddingProviderType",
    "FactFileStore",
    "FailureKind",
    "FileSystemConfig",
    "LazyEmbeddingProvider",
    "MemoryDomain",
    "MemoryEntry",
    "RecallSession",
    "Role",
    "SearchResult",
    "SearchResultWithId",
    "SemanticMemoryCache",
    "SemanticMemoryCacheConfig",
    "TextPart",
    "ToolCallPart",
    "ToolResultPart",
    "apply_stickiness",
    "build_rag_query",
    "build_recalled_context_block",
    "configure_logging",
    "cosine_similarity",
    "degrade",
    "extract_recent_tool_context",
    "extract_recent_user_texts",
    "extract_text",
    "get_domain",
    "get_domain_ids",
    "run_pending_extraction",
    "should_compress",
    "write_pending_extraction",
]
