"""Tests for the semantic memory cache."""
import json
import os
import time
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import patch

import pytest

from mocks.mock_providers import FailingEmbeddingProvider, VectorEmbeddingProvider
from recallcache.embeddings import LazyEmbeddingProvider
from recallcache.long_term_memory import SemanticMemoryCacheConfig

VECTORS = {
    "a": [1.0, 0.0, 0.0],
    "a2": [0.6, 0.8, 0.0],
    "b": [0.0, 1.0, 0.0],
    "c": [0.8, 0.0, 0.6],
    "q": [1.0, 0.0, 0.0],
    "qb": [0.0, 1.0, 0.0],
    "zero": [0.0, 0.0, 0.0],
    "short": [1.0, 0.0],
}


@pytest.fixture
def vectors():
    return VectorEmbeddingProvider(VECTORS)


def _records(store):
    with store.memories_path.open() as handle:
        return json.load(handle)


class TestAddFacts:
    """Insertion, dedup and persistence."""

    @pytest.mark.unit
    @pytest.mark.memory
    def test_adds_and_persists(self, make_cache, vectors, store):
        cache = make_cache(vectors)

        assert cache.add_facts(["a", "b"], "compression") == 2
        assert cache.count() == 2
        assert len(vectors.calls) == 1  # one batch call

        records = _records(store)
        assert [record["fact"] for record in records] == ["a", "b"]
        assert records[0]["source"] == "compression"
        assert records[0]["domain"] == "general"
        assert records[0]["accessCount"] == 0
        assert records[0]["createdAt"].startswith("2026-01-01")
        assert "lastAccessed" not in records[0]

    @pytest.mark.unit
    @pytest.mark.memory
    def test_same_fact_twice_is_stored_once(self, make_cache, vectors):
        cache = make_cache(vectors)

        assert cache.add_facts(["a"], "exit") == 1
        assert cache.add_facts(["a"], "exit") == 0
        assert cache.count() == 1

    @pytest.mark.unit
    @pytest.mark.memory
    def test_dedup_within_one_batch(self, make_cache, vectors):
        cache = make_cache(vectors)

        assert cache.add_facts(["a", "a", "b"], "exit") == 2
        assert [memory.fact for memory in cache.list_memories()] == ["a", "b"]

    @pytest.mark.unit
    @pytest.mark.memory
    def test_empty_input_is_a_no_op(self, make_cache, vectors, store):
        cache = make_cache(vectors)

        assert cache.add_facts([], "exit") == 0
        assert cache.add_facts(["", "   "], "exit") == 0
        assert vectors.calls == []
        assert not store.memories_path.exists()

    @pytest.mark.unit
    @pytest.mark.memory
    def test_unavailable_provider_degrades(self, make_cache):
        cache = make_cache(LazyEmbeddingProvider.from_instance(None))

        assert cache.add_facts(["a"], "exit") == 0
        assert cache.search("q") == []
        assert cache.count() == 0

    @pytest.mark.unit
    @pytest.mark.memory
    def test_failing_provider_degrades(self, make_cache):
        provider = FailingEmbeddingProvider()
        cache = make_cache(provider)

        assert cache.add_facts(["a", "b"], "exit") == 0
        assert provider.call_count == 1
        assert cache.count() == 0

    @pytest.mark.unit
    @pytest.mark.memory
    def test_skips_zero_and_mismatched_embeddings(self, make_cache, vectors):
        cache = make_cache(vectors)
        cache.add_facts(["a"], "exit")

        assert cache.add_facts(["zero", "short"], "exit") == 0
        assert cache.count() == 1

    @pytest.mark.unit
    @pytest.mark.memory
    def test_domain_is_recorded(self, make_cache, vectors):
        cache = make_cache(vectors)
        cache.add_facts(["a"], "compression", domain="tool-usage")
        cache.add_facts(["b"], "compression")

        assert cache.count_by_domain() == {"tool-usage": 1, "general": 1}

    @pytest.mark.unit
    @pytest.mark.memory
    def test_embedding_timeout_degrades(self, make_cache):
        slow = VectorEmbeddingProvider(VECTORS, delay=0.5)
        cache = make_cache(slow, embedding_timeout=0.05)

        assert cache.add_facts(["a"], "exit") == 0
        assert cache.count() == 0

    @pytest.mark.unit
    @pytest.mark.memory
    def test_embedding_timeout_covers_provider_construction(self, make_cache):
        def slow_factory():
            time.sleep(1.0)
            return VectorEmbeddingProvider(VECTORS)

        cache = make_cache(LazyEmbeddingProvider(factory=slow_factory), embedding_timeout=0.05)

        started = time.monotonic()
        assert cache.add_facts(["a"], "exit") == 0
        assert time.monotonic() - started < 0.5
        assert cache.count() == 0

    @pytest.mark.unit
    @pytest.mark.memory
    def test_persistence_failure_keeps_in_memory_state(self, make_cache, vectors, store):
        cache = make_cache(vectors)

        with patch.object(store, "save", side_effect=OSError("disk full")):
            assert cache.add_facts(["a"], "exit") == 1

        assert cache.count() == 1

    @pytest.mark.unit
    @pytest.mark.memory
    def test_concurrent_adds_are_not_lost(self, make_cache, store):
        dims = 16
        one_hot = {
            f"fact {i}": [1.0 if j == i else 0.0 for j in range(dims)] for i in range(dims)
        }
        cache = make_cache(VectorEmbeddingProvider(one_hot))

        with ThreadPoolExecutor(max_workers=8) as pool:
            added = list(pool.map(lambda fact: cache.add_facts([fact], "exit"), one_hot))

        assert sum(added) == dims
        assert cache.count() == dims
        assert len(_records(store)) == dims


class TestSearch:
    """Similarity search, caps and access bookkeeping."""

    @pytest.fixture
    def populated(self, make_cache, vectors):
        cache = make_cache(vectors)
        cache.add_facts(["a", "a2", "b"], "compression")
        cache.add_facts(["c"], "compression", domain="tool-usage")
        return cache

    @pytest.mark.unit
    @pytest.mark.memory
    def test_ranks_by_similarity_above_threshold(self, populated):
        results = populated.search("q")

        assert [result.fact for result in results] == ["a", "c", "a2"]
        assert results[0].similarity == pytest.approx(1.0)
        assert results[1].similarity == pytest.approx(0.8)
        assert results[1].domain == "tool-usage"

    @pytest.mark.unit
    @pytest.mark.memory
    def test_search_updates_access_bookkeeping(self, populated, store):
        populated.search("q")

        lines = populated.list_facts()
        assert lines == [
            "[2026-01-01] (accessed 1x) a",
            "[2026-01-01] (accessed 1x) a2",
            "[2026-01-01] (accessed 0x) b",
            "[2026-01-01] (accessed 1x) c",
        ]
        records = {record["fact"]: record for record in _records(store)}
        assert records["a"]["accessCount"] == 1
        assert records["a"]["lastAccessed"].startswith("2026-01-01")
        assert "lastAccessed" not in records["b"]

    @pytest.mark.unit
    @pytest.mark.memory
    def test_per_domain_cap(self, make_cache, vectors):
        cache = make_cache(vectors, top_k=1)
        cache.add_facts(["a", "a2"], "compression")
        cache.add_facts(["c"], "compression", domain="tool-usage")

        assert [result.fact for result in cache.search("q")] == ["a", "c"]

    @pytest.mark.unit
    @pytest.mark.memory
    def test_overall_cap(self, make_cache, vectors):
        cache = make_cache(vectors, max_results=2)
        cache.add_facts(["a", "a2", "c"], "compression")

        assert [result.fact for result in cache.search("q")] == ["a", "c"]

    @pytest.mark.unit
    @pytest.mark.memory
    def test_blank_query_and_empty_store(self, make_cache, vectors):
        cache = make_cache(vectors)

        assert cache.search("q") == []
        cache.add_facts(["a"], "exit")
        assert cache.search("   ") == []
        assert all(call != ["   "] for call in vectors.calls)

    @pytest.mark.unit
    @pytest.mark.memory
    def test_search_with_ids_is_read_only(self, populated):
        results = populated.search_with_ids("q")

        assert [result.fact for result in results] == ["a", "c", "a2"]
        assert all(result.id and result.access_count == 0 for result in results)
        assert all("(accessed 0x)" in line for line in populated.list_facts())


class TestMaintenance:
    """Listing, deletion, clearing and loading."""

    @pytest.mark.unit
    @pytest.mark.memory
    def test_list_memories_reports_full_similarity(self, make_cache, vectors):
        cache = make_cache(vectors)
        cache.add_facts(["b", "a"], "exit")

        memories = cache.list_memories()
        assert [memory.fact for memory in memories] == ["b", "a"]
        assert all(memory.similarity == 1.0 for memory in memories)

    @pytest.mark.unit
    @pytest.mark.memory
    def test_delete_by_ids(self, make_cache, vectors, store):
        cache = make_cache(vectors)
        cache.add_facts(["a", "b"], "exit")
        target = cache.list_memories()[0].id

        assert cache.delete_by_ids([target, "missing"]) == 1
        assert cache.delete_by_ids(["missing"]) == 0
        assert cache.delete_by_ids([]) == 0
        assert [record["fact"] for record in _records(store)] == ["b"]

    @pytest.mark.unit
    @pytest.mark.memory
    def test_clear(self, make_cache, vectors, store):
        cache = make_cache(vectors)
        cache.add_facts(["a", "b"], "exit")

        cache.clear()

        assert cache.count() == 0
        assert _records(store) == []

    @pytest.mark.unit
    @pytest.mark.memory
    def test_reload_reproduces_facts(self, make_cache, vectors):
        make_cache(vectors).add_facts(["a", "b"], "exit", domain="user-preferences")

        reloaded = make_cache(vectors)

        assert {memory.fact for memory in reloaded.list_memories()} == {"a", "b"}
        assert reloaded.count_by_domain() == {"user-preferences": 2}

    @pytest.mark.unit
    @pytest.mark.memory
    def test_corrupt_file_starts_empty(self, make_cache, vectors, store):
        store.memories_path.write_text("{not json", encoding="utf-8")

        cache = make_cache(vectors)

        assert cache.count() == 0
        assert cache.add_facts(["a"], "exit") == 1

    @pytest.mark.unit
    @pytest.mark.memory
    def test_legacy_records_are_repaired(self, make_cache, vectors, store):
        store.save(
            [
                {
                    "id": "1",
                    "fact": "a",
                    "embedding": {"0": 1, "1": 0, "2": 0},
                    "source": "exit",
                    "createdAt": "2025-06-01T00:00:00.000Z",
                    "accessCount": 0,
                },
                {"id": "2", "embedding": [0.0, 1.0, 0.0]},
            ]
        )

        cache = make_cache(vectors)

        memories = cache.list_memories()
        assert [memory.fact for memory in memories] == ["a"]
        assert memories[0].domain == "general"
        assert [result.fact for result in cache.search("q")] == ["a"]

    @pytest.mark.unit
    @pytest.mark.memory
    @pytest.mark.parametrize("embedding", [[], [0.0, 0.0, 0.0]])
    def test_records_with_empty_embeddings_are_dropped(self, make_cache, vectors, store, embedding):
        store.save(
            [
                {
                    "id": "bad",
                    "fact": "legacy",
                    "embedding": embedding,
                    "source": "exit",
                    "createdAt": "2025-06-01T00:00:00.000Z",
                    "accessCount": 0,
                }
            ]
        )

        cache = make_cache(vectors)

        assert cache.count() == 0
        assert cache.add_facts(["a", "b"], "exit") == 2
        assert [result.fact for result in cache.search("q")] == ["a"]

    @pytest.mark.unit
    @pytest.mark.memory
    def test_stale_pending_files_removed_on_construction(self, make_cache, vectors, store):
        stale = store.write_pending({"serialized": "x", "provider": "openai", "model": "m"})
        old = time.time() - 2 * 60 * 60
        os.utime(stale, (old, old))
        fresh = store.write_pending({"serialized": "y", "provider": "openai", "model": "m"})

        make_cache(vectors)

        assert not stale.exists()
        assert fresh.exists()


class TestEviction:
    """Capacity-bounded retention."""

    @pytest.mark.unit
    @pytest.mark.memory
    def test_keeps_higher_scored_entries(self, make_cache, vectors, clock):
        cache = make_cache(vectors, max_entries=2)
        cache.add_facts(["a", "b"], "exit")
        cache.search("qb")  # b gains an access
        clock.advance(days=90)

        assert cache.add_facts(["c"], "exit") == 1

        # a: 0.5 (one half-life old), b: 0.5 + log2(2), c: 1.0 (new)
        assert [memory.fact for memory in cache.list_memories()] == ["b", "c"]

    @pytest.mark.unit
    @pytest.mark.memory
    def test_exactly_capacity_survives(self, make_cache):
        dims = 8
        one_hot = {
            f"fact {i}": [1.0 if j == i else 0.0 for j in range(dims)] for i in range(dims)
        }
        cache = make_cache(VectorEmbeddingProvider(one_hot), max_entries=5)

        cache.add_facts(list(one_hot), "exit")

        assert cache.count() == 5


class TestConfig:
    """Configuration validation."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "kwargs",
        [
            {"top_k": 0},
            {"max_results": 0},
            {"max_entries": 0},
            {"similarity_threshold": 1.5},
            {"prune_half_life_days": 0},
        ],
    )
    def test_rejects_out_of_range_values(self, kwargs):
        with pytest.raises(ValueError):
            SemanticMemoryCacheConfig(**kwargs)
