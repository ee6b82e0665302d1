"""Compose bounded semantic-search queries from the live conversation."""

import json
from typing import Any, Dict, List, Optional, Sequence

from ..constants import (
    DEFAULT_MAX_QUERY_CHARS,
    DEFAULT_TOOL_CONTEXT_CHARS,
    DEFAULT_TOOL_CONTEXT_MESSAGES,
    DEFAULT_WINDOW_SIZE,
)
from ..enums.role import Role
from ..memory_unit.conversation_message import ConversationMessage, extract_text

# Synthetic messages injected by the memory layer rather than typed by the user
BOUNDARY_PREFIXES = (
    "[Context Summary",
    "[Previous session ended",
    "[Earlier conversation was truncated",
)

_TOOL_ARG_MAX_CHARS = 60
_SEPARATOR = ". "
_MIN_TOOL_BUDGET = 10


def is_boundary_message(text: str) -> bool:
    return text.startswith(BOUNDARY_PREFIXES)


def extract_recent_user_texts(
    history: Sequence[ConversationMessage], max_messages: int = DEFAULT_WINDOW_SIZE
) -> List[str]:
    """
    Collect up to ``max_messages`` of the latest user texts, oldest first.

    Boundary messages (compression summaries, session markers) are skipped.
    """
    texts: List[str] = []
    for message in reversed(history):
        if len(texts) >= max_messages:
            break
        if message.role != Role.USER:
            continue
        text = extract_text(message)
        if not text or is_boundary_message(text):
            continue
        texts.append(text)

    texts.reverse()
    return texts


def _compact_args(args: Optional[Dict[str, Any]]) -> str:
    """Render only the first argument as ``key=value``, value capped at 60 chars."""
    if not args or not isinstance(args, dict):
        return ""
    key = next(iter(args))
    value = args[key]
    if value is None:
        raw = ""
    elif isinstance(value, (bool, dict, list)):
        raw = json.dumps(value, ensure_ascii=False)
    else:
        raw = str(value)
    if len(raw) > _TOOL_ARG_MAX_CHARS:
        raw = raw[: _TOOL_ARG_MAX_CHARS - 3] + "..."
    return f"{key}={raw}"


def extract_recent_tool_context(
    history: Sequence[ConversationMessage],
    max_messages: int = DEFAULT_TOOL_CONTEXT_MESSAGES,
    max_chars: int = DEFAULT_TOOL_CONTEXT_CHARS,
) -> str:
    """
    Summarise tool calls from the last ``max_messages`` assistant turns.

    Produces ``name(firstKey=value)`` tokens joined by ", " in chronological
    order, truncated to ``max_chars`` with a trailing ellipsis.
    """
    entries: List[str] = []
    scanned = 0
    for message in reversed(history):
        if scanned >= max_messages:
            break
        if message.role != Role.ASSISTANT:
            continue
        scanned += 1

        message_entries = []
        for call in message.tool_calls():
            compact = _compact_args(call.args)
            message_entries.append(f"{call.tool_name}({compact})" if compact else call.tool_name)
        entries[:0] = message_entries

    if not entries:
        return ""

    result = ", ".join(entries)
    if len(result) > max_chars:
        if max_chars < 3:
            return ""
        result = result[: max_chars - 3] + "..."
    return result


def build_rag_query(
    current_input: str,
    recent_user_texts: Sequence[str],
    max_query_chars: int = DEFAULT_MAX_QUERY_CHARS,
    tool_context: Optional[str] = None,
) -> str:
    """
    Build a search query of at most ``max_query_chars`` characters.

    The current input always comes last and is truncated last. Older user texts
    fill the remaining budget from the most recent backwards, and a
    ``[tools: ...]`` fragment is prepended only if more than 10 characters of
    budget are left over.
    """
    if not recent_user_texts and not tool_context:
        return current_input[:max_query_chars]

    current = current_input[:max_query_chars]
    remaining = max_query_chars - len(current) - len(_SEPARATOR)
    if remaining <= 0:
        return current

    parts: List[str] = []
    for text in reversed(recent_user_texts):
        if remaining <= 0:
            break
        truncated = text[:remaining]
        parts.insert(0, truncated)
        remaining -= len(truncated) + len(_SEPARATOR)

    if tool_context and remaining > _MIN_TOOL_BUDGET:
        parts.insert(0, f"[tools: {tool_context}]"[:remaining])

    return _SEPARATOR.join(parts + [current])
