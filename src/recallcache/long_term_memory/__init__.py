from .semantic_memory_cache import SemanticMemoryCache, SemanticMemoryCacheConfig

__all__ = ["SemanticMemoryCache", "SemanticMemoryCacheConfig"]
