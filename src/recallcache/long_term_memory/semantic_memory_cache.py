import logging
import math
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from pydantic import ValidationError

from ..constants import (
    DEDUP_THRESHOLD,
    DEFAULT_MAX_ENTRIES,
    DEFAULT_MAX_RESULTS,
    DEFAULT_SIMILARITY_THRESHOLD,
    DEFAULT_TOP_K_PER_DOMAIN,
    PRUNE_HALF_LIFE_DAYS,
)
from ..domains import DEFAULT_DOMAIN
from ..embeddings import EmbeddingSource, LazyEmbeddingProvider, embed_texts
from ..enums.failure_kind import FailureKind
from ..memory_provider.filesystem import FactFileStore
from ..memory_unit.memory_entry import MemoryEntry
from ..memory_unit.search_result import SearchResult, SearchResultWithId
from ..similarity import cosine_similarity
from ..utils.fallbacks import degrade, future_result_or_default
from ..utils.helpers import IDGenerator, parse_iso, to_iso, utc_now

logger = logging.getLogger(__name__)


@dataclass
class SemanticMemoryCacheConfig:
    """Configuration for semantic memory cache behavior."""

    top_k: int = DEFAULT_TOP_K_PER_DOMAIN  # applied per domain
    max_results: int = DEFAULT_MAX_RESULTS
    similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD
    max_entries: int = DEFAULT_MAX_ENTRIES
    dedup_threshold: float = DEDUP_THRESHOLD
    prune_half_life_days: float = PRUNE_HALF_LIFE_DAYS
    embedding_timeout: Optional[float] = None  # seconds, None waits indefinitely

    def __post_init__(self) -> None:
        if self.top_k < 1:
            raise ValueError("top_k must be at least 1")
        if self.max_results < 1:
            raise ValueError("max_results must be at least 1")
        if self.max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        if not 0.0 <= self.similarity_threshold <= 1.0:
            raise ValueError("similarity_threshold must be between 0 and 1")
        if self.prune_half_life_days <= 0:
            raise ValueError("prune_half_life_days must be positive")


class SemanticMemoryCache:
    """
    Capacity-bounded store of embedded facts with similarity search.

    Facts are deduplicated at insert time, recalled by cosine similarity to a
    query, and evicted by a recency/usage score once the store grows past
    ``max_entries``. The collection is loaded on construction and written back
    atomically after every change.
    """

    def __init__(
        self,
        config: Optional[SemanticMemoryCacheConfig] = None,
        embedding_provider: Union[LazyEmbeddingProvider, EmbeddingSource, None] = None,
        storage: Optional[FactFileStore] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize the semantic memory cache.

        Parameters:
        -----------
        config : Optional[SemanticMemoryCacheConfig]
            Configuration for recall and capacity
        embedding_provider : Union[LazyEmbeddingProvider, EmbeddingSource, None]
            Lazily-built provider holder, or an already-built provider.
            Defaults to a lazily loaded local Hugging Face model.
        storage : Optional[FactFileStore]
            On-disk persistence (defaults to the recallcache home directory)
        clock : Callable[[], datetime]
            Source of "now", injectable for tests
        """
        self.config = config or SemanticMemoryCacheConfig()

        if embedding_provider is None:
            self._embeddings = LazyEmbeddingProvider()
        elif isinstance(embedding_provider, LazyEmbeddingProvider):
            self._embeddings = embedding_provider
        else:
            self._embeddings = LazyEmbeddingProvider.from_instance(embedding_provider)

        self.storage = storage or FactFileStore()
        self._clock = clock
        self._lock = threading.RLock()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._entries: List[MemoryEntry] = []

        self._load()
        self.cleanup_stale_temp()

        logger.info(
            f"SemanticMemoryCache initialized with {len(self._entries)} entries, "
            f"threshold={self.config.similarity_threshold}, max_entries={self.config.max_entries}"
        )

    # ------------------------------------------------------------------
    # Embedding
    # ------------------------------------------------------------------
    def _embed(self, texts: Sequence[str]) -> Optional[List[List[float]]]:
        """Embed ``texts`` in one batch, or return None if embeddings are unavailable."""
        timeout = self.config.embedding_timeout
        if timeout is None:
            return degrade("Embedding", self._resolve_and_embed, texts, default=None)

        # Provider construction runs under the same deadline as the embed call
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=2, thread_name_prefix="recallcache-embed"
            )
        future = self._executor.submit(self._resolve_and_embed, texts)
        return future_result_or_default("Embedding", future, None, timeout=timeout)

    def _resolve_and_embed(self, texts: Sequence[str]) -> Optional[List[List[float]]]:
        provider = self._embeddings.get()
        if provider is None:
            logger.debug("No embedding provider available, skipping")
            return None
        return embed_texts(provider, texts)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def add_facts(
        self, facts: Iterable[str], source: str, domain: str = DEFAULT_DOMAIN
    ) -> int:
        """
        Embed and store new facts, skipping near-duplicates of existing ones.

        Parameters:
        -----------
        facts : Iterable[str]
            Self-contained fact statements
        source : str
            Provenance tag (e.g. "compression", "exit")
        domain : str
            Memory domain the facts belong to

        Returns:
        --------
        int
            Number of facts actually inserted
        """
        facts = [fact for fact in facts if isinstance(fact, str) and fact.strip()]
        if not facts:
            return 0

        embeddings = self._embed(facts)
        if embeddings is None:
            return 0

        added = 0
        with self._lock:
            now = to_iso(self._clock())
            dimensions = len(self._entries[0].embedding) if self._entries else None

            for fact, embedding in zip(facts, embeddings):
                if not any(embedding):
                    logger.warning(f"Skipping fact with empty embedding: {fact[:80]}")
                    continue
                if dimensions is not None and len(embedding) != dimensions:
                    logger.warning(
                        f"Skipping fact with {len(embedding)}-dim embedding "
                        f"(store uses {dimensions}): {fact[:80]}"
                    )
                    continue

                if self._is_duplicate(embedding):
                    logger.debug(f"Skipping duplicate fact: {fact[:80]}")
                    continue

                self._entries.append(
                    MemoryEntry(
                        id=IDGenerator.generate_entry_id(),
                        fact=fact,
                        embedding=embedding,
                        source=source,
                        domain=domain or DEFAULT_DOMAIN,
                        created_at=now,
                        access_count=0,
                    )
                )
                dimensions = len(embedding)
                added += 1

            if added > 0:
                self._prune()
                self._persist()

            logger.debug(f"add_facts: added={added}, total={len(self._entries)}")
        return added

    def search(self, query: str) -> List[SearchResult]:
        """
        Return the facts most similar to ``query`` and record the hits.

        Every returned entry has its access count incremented and its
        last-accessed time refreshed.
        """
        matches = self._rank(query)
        if not matches:
            return []

        with self._lock:
            now = to_iso(self._clock())
            for entry, _ in matches:
                entry.access_count += 1
                entry.last_accessed = now
            self._persist()

        return [
            SearchResult(fact=entry.fact, similarity=similarity, domain=entry.domain)
            for entry, similarity in matches
        ]

    def search_with_ids(self, query: str) -> List[SearchResultWithId]:
        """Same ranking as ``search`` but read-only, exposing entry ids and metadata."""
        return [
            self._with_id(entry, similarity) for entry, similarity in self._rank(query)
        ]

    def list_facts(self) -> List[str]:
        """List all facts as ``[date] (accessed Nx) fact`` lines in stored order."""
        with self._lock:
            return [
                f"[{entry.created_at[:10]}] (accessed {entry.access_count}x) {entry.fact}"
                for entry in self._entries
            ]

    def list_memories(self) -> List[SearchResultWithId]:
        """All entries in stored order, each reported with similarity 1.0."""
        with self._lock:
            return [self._with_id(entry, 1.0) for entry in self._entries]

    def count(self) -> int:
        with self._lock:
            return len(self._entries)

    def count_by_domain(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        with self._lock:
            for entry in self._entries:
                counts[entry.domain] = counts.get(entry.domain, 0) + 1
        return counts

    def clear(self) -> None:
        """Remove every stored fact."""
        with self._lock:
            self._entries = []
            self._persist()
        logger.info("Cleared all semantic memory entries")

    def delete_by_ids(self, ids: Iterable[str]) -> int:
        """Delete entries by id and return how many were removed."""
        targets = set(ids)
        if not targets:
            return 0

        with self._lock:
            remaining = [entry for entry in self._entries if entry.id not in targets]
            deleted = len(self._entries) - len(remaining)
            if deleted > 0:
                self._entries = remaining
                self._persist()
        return deleted

    def cleanup_stale_temp(self) -> int:
        """Remove abandoned pending extraction files left behind by crashed workers."""
        return self.storage.cleanup_stale_pending()

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _is_duplicate(self, embedding: List[float]) -> bool:
        return any(
            cosine_similarity(entry.embedding, embedding) > self.config.dedup_threshold
            for entry in self._entries
        )

    def _rank(self, query: str) -> List[Tuple[MemoryEntry, float]]:
        """Score, threshold, sort and cap entries against ``query``."""
        if not query or not query.strip():
            return []
        with self._lock:
            if not self._entries:
                return []

        embeddings = self._embed([query])
        if not embeddings:
            return []
        query_embedding = embeddings[0]

        with self._lock:
            scored = [
                (entry, cosine_similarity(query_embedding, entry.embedding))
                for entry in self._entries
            ]

        scored = [
            (entry, similarity)
            for entry, similarity in scored
            if similarity >= self.config.similarity_threshold
        ]
        scored.sort(key=lambda item: item[1], reverse=True)

        domain_counts: Dict[str, int] = {}
        selected: List[Tuple[MemoryEntry, float]] = []
        for entry, similarity in scored:
            count = domain_counts.get(entry.domain, 0)
            if count >= self.config.top_k:
                continue
            domain_counts[entry.domain] = count + 1
            selected.append((entry, similarity))
            if len(selected) >= self.config.max_results:
                break
        return selected

    def _retention_score(self, entry: MemoryEntry, now: datetime) -> float:
        """Recency decay (half-life) plus log2 of the access count."""
        half_life_seconds = self.config.prune_half_life_days * 24 * 60 * 60
        try:
            age_seconds = max(0.0, (now - parse_iso(entry.created_at)).total_seconds())
        except ValueError:
            age_seconds = 0.0
        recency = math.pow(0.5, age_seconds / half_life_seconds)
        return recency + math.log2(entry.access_count + 1)

    def _prune(self) -> None:
        """Evict the lowest-scored entries when the store is over capacity."""
        overflow = len(self._entries) - self.config.max_entries
        if overflow <= 0:
            return

        now = self._clock()
        ranked = sorted(
            range(len(self._entries)),
            key=lambda index: self._retention_score(self._entries[index], now),
            reverse=True,
        )
        keep = set(ranked[: self.config.max_entries])
        self._entries = [
            entry for index, entry in enumerate(self._entries) if index in keep
        ]
        logger.debug(f"Evicted {overflow} entries, kept {len(self._entries)}")

    def _with_id(self, entry: MemoryEntry, similarity: float) -> SearchResultWithId:
        return SearchResultWithId(
            id=entry.id,
            fact=entry.fact,
            domain=entry.domain,
            similarity=similarity,
            created_at=entry.created_at,
            access_count=entry.access_count,
        )

    def _load(self) -> None:
        """Load persisted entries, skipping malformed records and empty embeddings."""
        loaded: List[MemoryEntry] = []
        for record in self.storage.load():
            try:
                entry = MemoryEntry.model_validate(record)
            except (ValidationError, ValueError, TypeError) as e:
                logger.warning(f"Skipping malformed memory record: {e}")
                continue
            if not any(entry.embedding):
                logger.warning(f"Skipping memory record {entry.id} with an empty embedding")
                continue
            loaded.append(entry)

        dimensions = len(loaded[0].embedding) if loaded else None
        self._entries = [entry for entry in loaded if len(entry.embedding) == dimensions]
        if len(self._entries) < len(loaded):
            logger.warning(
                f"Skipped {len(loaded) - len(self._entries)} memory records whose "
                f"embedding size differs from {dimensions}"
            )

    def _persist(self) -> None:
        records = [entry.to_record() for entry in self._entries]
        degrade(
            "Persisting memories",
            self.storage.save,
            records,
            default=None,
            kind=FailureKind.UNAVAILABLE,
        )
