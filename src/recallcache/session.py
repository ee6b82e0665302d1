import logging
import math
from pathlib import Path
from typing import FrozenSet, Iterable, List, Optional, Tuple

from .constants import (
    DEFAULT_MAX_QUERY_CHARS,
    DEFAULT_STICKINESS_BOOST,
    DEFAULT_WINDOW_SIZE,
)
from .enums.role import Role
from .extraction_worker import launch_extraction_worker, write_pending_extraction
from .long_term_memory.semantic_memory_cache import SemanticMemoryCache
from .memory_unit.conversation_message import ConversationMessage, extract_text
from .memory_unit.search_result import SearchResult
from .short_term_memory.compression import (
    ACKNOWLEDGEMENT,
    ConversationCompressor,
    serialize_messages,
)
from .short_term_memory.query_composer import (
    build_rag_query,
    extract_recent_tool_context,
    extract_recent_user_texts,
    is_boundary_message,
)
from .short_term_memory.stickiness import apply_stickiness
from .utils.fallbacks import degrade
from .utils.formatters import build_recalled_context_block

logger = logging.getLogger(__name__)


def estimate_tokens(text: str) -> int:
    """Rough token estimate used before the provider reports real usage."""
    return math.ceil(len(text) / 4)


class RecallSession:
    """
    Per-conversation orchestration of compression and recall.

    Holds the live history, the prompt size reported for the previous turn and
    the facts recalled on the previous turn (for stickiness). The caller runs
    one turn at a time: ``prepare_turn`` before calling the model and
    ``record_response`` after it answers.
    """

    def __init__(
        self,
        cache: Optional[SemanticMemoryCache],
        compressor: Optional[ConversationCompressor],
        model: str,
        window_size: int = DEFAULT_WINDOW_SIZE,
        max_query_chars: int = DEFAULT_MAX_QUERY_CHARS,
        stickiness_boost: float = DEFAULT_STICKINESS_BOOST,
    ):
        """
        Initialize the session.

        Parameters:
        -----------
        cache : Optional[SemanticMemoryCache]
            Long-term fact store; recall is skipped when None
        compressor : Optional[ConversationCompressor]
            Compresses the history when it nears the context window; skipped when None
        model : str
            Model name used to look up the context window
        window_size : int
            Number of earlier user messages folded into the recall query
        max_query_chars : int
            Upper bound on the recall query length
        stickiness_boost : float
            Similarity bonus for facts recalled on the previous turn
        """
        self.cache = cache
        self.compressor = compressor
        self.model = model
        self.window_size = window_size
        self.max_query_chars = max_query_chars
        self.stickiness_boost = stickiness_boost

        self.history: List[ConversationMessage] = []
        self.last_prompt_tokens = 0
        self.last_results: List[SearchResult] = []
        self._previous_facts: FrozenSet[str] = frozenset()

    def prepare_turn(self, text: str) -> Tuple[List[ConversationMessage], str]:
        """
        Add the user's message and gather what the model needs for this turn.

        Returns:
        --------
        Tuple[List[ConversationMessage], str]
            The (possibly compressed) history including the new message, and
            the recalled-context block for the system prompt ("" if nothing
            was recalled)
        """
        if self.compressor is not None and self.compressor.should_compress(
            self.last_prompt_tokens, estimate_tokens(text), self.model
        ):
            self.history = list(self.compressor.compress_history(self.history))

        recent_user_texts = extract_recent_user_texts(self.history, self.window_size)
        tool_context = extract_recent_tool_context(self.history)
        self.history.append(ConversationMessage.user(text))

        results = self._recall(text, recent_user_texts, tool_context)
        self.last_results = results
        self._previous_facts = frozenset(result.fact for result in results)

        return list(self.history), build_recalled_context_block(results)

    def _recall(
        self, text: str, recent_user_texts: List[str], tool_context: str
    ) -> List[SearchResult]:
        if self.cache is None:
            return []

        query = build_rag_query(
            text,
            recent_user_texts,
            max_query_chars=self.max_query_chars,
            tool_context=tool_context or None,
        )
        results = degrade("Recall search", self.cache.search, query, default=[])
        return apply_stickiness(
            results,
            self._previous_facts,
            boost=self.stickiness_boost,
            top_k_per_domain=self.cache.config.top_k,
            max_results=self.cache.config.max_results,
        )

    def record_response(
        self, messages: Iterable[ConversationMessage], prompt_tokens: int
    ) -> None:
        """Append the assistant/tool messages of a turn and the prompt size the provider reported."""
        self.history.extend(messages)
        self.last_prompt_tokens = prompt_tokens

    def uncompressed_transcript(self) -> str:
        """Serialize the history, leaving out compression boundaries and their acknowledgements."""
        messages = [
            message
            for message in self.history
            if not _is_synthetic(message)
        ]
        return serialize_messages(messages)

    def hand_off_extraction(self, provider: str, launch: bool = True) -> Optional[Path]:
        """
        Queue the uncompressed part of the conversation for out-of-process extraction.

        Returns the pending file path, or None when there was nothing to extract
        or the file could not be written.
        """
        serialized = self.uncompressed_transcript()
        if not serialized.strip():
            return None

        config = self.cache.storage.config if self.cache is not None else None
        pending = degrade(
            "Writing pending extraction",
            write_pending_extraction,
            serialized,
            provider,
            self.model,
            config,
            default=None,
        )
        if pending is not None and launch:
            degrade("Launching extraction worker", launch_extraction_worker, pending, default=None)
        return pending


def _is_synthetic(message: ConversationMessage) -> bool:
    text = extract_text(message)
    if text is None:
        return False
    if message.role == Role.USER:
        return is_boundary_message(text)
    return message.role == Role.ASSISTANT and text == ACKNOWLEDGEMENT
