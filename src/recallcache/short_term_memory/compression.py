"""
Context compression for long conversations.

When the prompt approaches the model's context window, older turns are replaced
by an LLM-written summary while the most recent turns are kept verbatim. Durable
facts are extracted from the same older turns and handed to the semantic memory
cache in the background.
"""

import json
import logging
import re
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, List, Optional, Sequence

from ..constants import (
    COMPRESSION_THRESHOLD,
    DEFAULT_CONTEXT_WINDOW,
    FACT_EXTRACTION_MAX_CHARS,
    RECENT_TURNS_TO_KEEP,
    SUMMARY_MAX_TOKENS,
    TOOL_RESULT_MAX_CHARS,
)
from ..domains import get_domain, get_domain_ids
from ..enums.failure_kind import FailureKind
from ..enums.role import Role
from ..llms.llm_provider import LLMProvider
from ..memory_unit.conversation_message import ConversationMessage, extract_text
from ..utils.fallbacks import degrade, future_result_or_default

if TYPE_CHECKING:
    from ..long_term_memory.semantic_memory_cache import SemanticMemoryCache

logger = logging.getLogger(__name__)

# Model name -> context window size in tokens
MODEL_CONTEXT_WINDOWS = {
    # Anthropic
    "claude-sonnet-4-5-20250929": 200_000,
    "claude-opus-4-20250514": 200_000,
    "claude-sonnet-4-20250514": 200_000,
    "claude-3-5-haiku-latest": 200_000,
    # OpenAI
    "gpt-4o": 128_000,
    "gpt-4o-mini": 128_000,
    "o3": 200_000,
    "o3-mini": 200_000,
    "o4-mini": 200_000,
    "gpt-4.1": 1_000_000,
    "gpt-4.1-mini": 1_000_000,
    "gpt-4.1-nano": 1_000_000,
    # xAI
    "grok-3": 131_072,
    "grok-3-fast": 131_072,
    "grok-3-mini": 131_072,
    "grok-3-mini-fast": 131_072,
}

SUMMARY_PREFIX = "[Context Summary: earlier conversation was compressed]"
ACKNOWLEDGEMENT = (
    "Understood. I have the context from our earlier conversation. Let's continue."
)

SUMMARIZATION_PROMPT = """You are a conversation summarizer. Produce a concise summary of the conversation below, preserving:
- Key facts, decisions, and outcomes
- Important tool results and command outputs
- Any user preferences or requirements mentioned
- The overall arc of what was discussed and accomplished

Be concise but complete. Use bullet points. Do not include greetings or filler."""

_CODE_FENCE_OPEN = re.compile(r"^```(?:json)?\s*", re.MULTILINE)
_CODE_FENCE_CLOSE = re.compile(r"\s*```$", re.MULTILINE)


def get_context_window(model: str) -> int:
    """Look up the context window for a model, falling back to 128k for unknown models."""
    return MODEL_CONTEXT_WINDOWS.get(model, DEFAULT_CONTEXT_WINDOW)


def should_compress(
    last_prompt_tokens: int,
    new_message_estimate: int,
    model: str,
    threshold: float = COMPRESSION_THRESHOLD,
    context_window: Optional[int] = None,
) -> bool:
    """
    True when the projected prompt size exceeds ``threshold`` of the context window.

    ``context_window`` replaces the per-model table lookup when given.
    """
    estimated = last_prompt_tokens + new_message_estimate
    window = context_window or get_context_window(model)
    return estimated > window * threshold


def count_recent_messages(
    history: Sequence[ConversationMessage], turns_to_keep: int = RECENT_TURNS_TO_KEEP
) -> int:
    """
    Find where the last ``turns_to_keep`` user turns begin.

    Returns the index of the first kept message, or 0 when there is nothing
    older than the kept turns to compress.
    """
    user_turns = 0
    for index in range(len(history) - 1, -1, -1):
        if history[index].role == Role.USER:
            user_turns += 1
            if user_turns == turns_to_keep:
                return index
    return 0


def _stringify(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False, default=str)


def serialize_messages(messages: Sequence[ConversationMessage]) -> str:
    """Render messages as a role-prefixed plain-text transcript for the summarizer."""
    lines: List[str] = []
    for message in messages:
        if message.role == Role.USER:
            text = extract_text(message)
            if text:
                lines.append(f"User: {text}")
        elif message.role == Role.ASSISTANT:
            text = extract_text(message)
            if text:
                lines.append(f"Assistant: {text}")
            for call in message.tool_calls():
                lines.append(
                    f"Assistant [tool call]: {call.tool_name}({_stringify(call.args)})"
                )
        elif message.role == Role.TOOL:
            for result in message.tool_results():
                name = result.tool_name or "tool"
                text = _stringify(result.result)
                if len(text) > TOOL_RESULT_MAX_CHARS:
                    text = text[:TOOL_RESULT_MAX_CHARS] + "..."
                lines.append(f"Tool [{name}]: {text}")
    return "\n".join(lines)


def parse_fact_list(text: Optional[str]) -> List[str]:
    """
    Parse an extraction reply into a list of facts.

    Markdown code fences around the JSON array are tolerated. Anything that is
    not a non-empty string of at most 500 characters is dropped, and replies
    that are not a JSON array yield an empty list.
    """
    text = (text or "").strip()
    if not text:
        return []

    payload = _CODE_FENCE_CLOSE.sub("", _CODE_FENCE_OPEN.sub("", text, count=1))
    try:
        parsed = json.loads(payload)
    except ValueError as e:
        logger.warning(f"Fact extraction reply is not valid JSON: {e}")
        return []

    if not isinstance(parsed, list):
        return []
    return [
        item
        for item in parsed
        if isinstance(item, str) and item and len(item) <= FACT_EXTRACTION_MAX_CHARS
    ]


@dataclass
class DomainFacts:
    domain: str
    facts: List[str] = field(default_factory=list)


def _extract_for_domain(
    serialized: str, llm: LLMProvider, domain_id: str, max_tokens: int
) -> DomainFacts:
    reply = llm.complete(
        get_domain(domain_id).extraction_prompt,
        [{"role": "user", "content": f"Extract facts from this conversation:\n\n{serialized}"}],
        max_tokens,
    )
    return DomainFacts(domain=domain_id, facts=parse_fact_list(reply))


def extract_domain_facts(
    serialized: str,
    llm: LLMProvider,
    max_tokens: int = SUMMARY_MAX_TOKENS,
    timeout: Optional[float] = None,
) -> List[DomainFacts]:
    """
    Extract facts for every memory domain in parallel.

    Each domain is an independent LLM call; a failing or timed-out domain is
    logged and skipped without affecting the others. Only domains that yielded
    at least one fact are returned.
    """
    if not serialized.strip():
        return []

    domain_ids = get_domain_ids()
    executor = ThreadPoolExecutor(
        max_workers=len(domain_ids), thread_name_prefix="recallcache-extract"
    )
    try:
        futures = {
            domain_id: executor.submit(
                _extract_for_domain, serialized, llm, domain_id, max_tokens
            )
            for domain_id in domain_ids
        }
        deadline = None if timeout is None else time.monotonic() + timeout

        results: List[DomainFacts] = []
        for domain_id, future in futures.items():
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            domain_facts = future_result_or_default(
                f"Fact extraction for domain {domain_id}", future, None, timeout=remaining
            )
            if domain_facts is not None and domain_facts.facts:
                results.append(domain_facts)
        return results
    finally:
        executor.shutdown(wait=False)


def extract_facts(
    serialized: str, llm: LLMProvider, max_tokens: int = SUMMARY_MAX_TOKENS
) -> List[str]:
    """Flat list of facts across all domains."""
    return [
        fact
        for domain_facts in extract_domain_facts(serialized, llm, max_tokens)
        for fact in domain_facts.facts
    ]


@dataclass
class CompressionConfig:
    """Configuration for conversation compression."""

    recent_turns_to_keep: int = RECENT_TURNS_TO_KEEP
    compression_threshold: float = COMPRESSION_THRESHOLD
    max_tokens: int = SUMMARY_MAX_TOKENS
    llm_timeout: Optional[float] = None  # seconds, None waits indefinitely
    extract_facts: bool = True

    def __post_init__(self) -> None:
        if self.recent_turns_to_keep < 1:
            raise ValueError("recent_turns_to_keep must be at least 1")
        if not 0.0 < self.compression_threshold <= 1.0:
            raise ValueError("compression_threshold must be in (0, 1]")


class ConversationCompressor:
    """
    Decides when a conversation is too large and replaces its older turns with
    a summary boundary, feeding extracted facts into the semantic memory cache.
    """

    def __init__(
        self,
        llm: LLMProvider,
        cache: Optional["SemanticMemoryCache"] = None,
        config: Optional[CompressionConfig] = None,
    ):
        self.llm = llm
        self.cache = cache
        self.config = config or CompressionConfig()
        self._executor = ThreadPoolExecutor(
            max_workers=2, thread_name_prefix="recallcache-compress"
        )
        self._background = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="recallcache-store"
        )
        self._pending: List[Future] = []

    def should_compress(
        self,
        last_prompt_tokens: int,
        new_message_estimate: int,
        model: Optional[str] = None,
    ) -> bool:
        model = model or self.llm.model
        # The provider's own window size only applies to its own model
        override = self.llm.get_context_window_tokens() if model == self.llm.model else None
        return should_compress(
            last_prompt_tokens,
            new_message_estimate,
            model,
            self.config.compression_threshold,
            context_window=override,
        )

    def compress_history(
        self,
        history: Sequence[ConversationMessage],
        recent_turns_to_keep: Optional[int] = None,
    ) -> List[ConversationMessage]:
        """
        Summarize everything before the last ``recent_turns_to_keep`` user turns.

        Returns ``[summary, acknowledgement, *recent]`` on success. The input is
        never modified; if there is nothing to compress or summarization fails,
        the original history is returned unchanged.
        """
        turns = recent_turns_to_keep or self.config.recent_turns_to_keep
        split_index = count_recent_messages(history, turns)
        if split_index == 0:
            return history

        old_messages = history[:split_index]
        recent_messages = list(history[split_index:])
        serialized = serialize_messages(old_messages)
        if not serialized.strip():
            return history

        summary_future = self._executor.submit(self._summarize, serialized)
        extract_future: Optional[Future] = None
        if self.cache is not None and self.config.extract_facts:
            extract_future = self._executor.submit(
                extract_domain_facts,
                serialized,
                self.llm,
                self.config.max_tokens,
                self.config.llm_timeout,
            )

        summary = future_result_or_default(
            "Summarization", summary_future, "", timeout=self.config.llm_timeout
        )
        domain_facts: List[DomainFacts] = []
        if extract_future is not None:
            domain_facts = future_result_or_default(
                "Fact extraction", extract_future, [], timeout=self.config.llm_timeout
            )

        for facts in domain_facts:
            self._store_in_background(facts)

        summary = (summary or "").strip()
        if not summary:
            logger.warning("Summary was empty, keeping original history")
            return history

        logger.info(
            f"Compressed {len(old_messages)} messages into a summary "
            f"({len(summary)} chars), kept {len(recent_messages)} recent messages, "
            f"extracted {sum(len(df.facts) for df in domain_facts)} facts"
        )
        return [
            ConversationMessage.user(f"{SUMMARY_PREFIX}\n\n{summary}"),
            ConversationMessage.assistant(ACKNOWLEDGEMENT),
            *recent_messages,
        ]

    def _summarize(self, serialized: str) -> str:
        return self.llm.complete(
            SUMMARIZATION_PROMPT,
            [{"role": "user", "content": f"Summarize this conversation:\n\n{serialized}"}],
            self.config.max_tokens,
        )

    def _store_in_background(self, domain_facts: DomainFacts) -> None:
        """Hand facts to the cache without blocking the caller; failures are only logged."""
        cache = self.cache
        if cache is None:
            return

        future = self._background.submit(
            degrade,
            f"Storing facts for domain {domain_facts.domain}",
            cache.add_facts,
            domain_facts.facts,
            "compression",
            domain_facts.domain,
            default=0,
            kind=FailureKind.UNAVAILABLE,
        )
        self._pending = [pending for pending in self._pending if not pending.done()]
        self._pending.append(future)

    def wait_for_background(self, timeout: Optional[float] = None) -> None:
        """Block until queued fact storage has finished (for tests and shutdown)."""
        wait(list(self._pending), timeout=timeout)

    def close(self) -> None:
        self._executor.shutdown(wait=False)
        self._background.shutdown(wait=True)
