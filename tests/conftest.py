"""Pytest configuration and fixtures for recallcache tests."""
import os
import sys
from datetime import datetime, timezone

import pytest

# Ensure third-party clients that expect OpenAI credentials during tests do not fail.
os.environ.setdefault("OPENAI_API_KEY", "test-api-key")

# Add src and tests to path for testing
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(__file__)), "src"))
sys.path.insert(0, os.path.dirname(__file__))

from mocks.mock_providers import (  # noqa: E402
    HashEmbeddingProvider,
    MutableClock,
    ScriptedLLM,
)
from recallcache.long_term_memory import (  # noqa: E402
    SemanticMemoryCache,
    SemanticMemoryCacheConfig,
)
from recallcache.memory_provider import FactFileStore, FileSystemConfig  # noqa: E402


# =============================================================================
# Storage Fixtures
# =============================================================================


@pytest.fixture
def fs_config(tmp_path):
    """Filesystem configuration rooted in a per-test temporary directory."""
    return FileSystemConfig(root_path=tmp_path / "rag")


@pytest.fixture
def store(fs_config):
    """On-disk fact store in a temporary directory."""
    return FactFileStore(fs_config)


# =============================================================================
# Provider Fixtures
# =============================================================================


@pytest.fixture
def hash_embeddings():
    """Deterministic bag-of-words embedding provider."""
    return HashEmbeddingProvider()


@pytest.fixture
def scripted_llm():
    """LLM that answers summarization and extraction prompts from a script."""
    return ScriptedLLM(
        summary="- User is building a CLI in Python\n- Tests run with pytest",
        facts={
            "general": ["The project is a Python CLI"],
            "tool-usage": ["Tests are run with `pytest -q`"],
        },
    )


@pytest.fixture
def clock():
    """Controllable clock starting at 2026-01-01 UTC."""
    return MutableClock(datetime(2026, 1, 1, tzinfo=timezone.utc))


# =============================================================================
# Cache Fixtures
# =============================================================================


@pytest.fixture
def make_cache(store, clock):
    """Factory building a cache over the temporary store with the given provider and config overrides."""
    caches = []

    def _make(embedding_provider, **config_kwargs):
        cache = SemanticMemoryCache(
            config=SemanticMemoryCacheConfig(**config_kwargs),
            embedding_provider=embedding_provider,
            storage=store,
            clock=clock,
        )
        caches.append(cache)
        return cache

    yield _make

    for cache in caches:
        cache.close()
