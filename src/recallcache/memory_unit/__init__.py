from .conversation_message import (
    ConversationMessage,
    MessagePart,
    TextPart,
    ToolCallPart,
    ToolResultPart,
    extract_text,
)
from .memory_entry import MemoryEntry
from .search_result import SearchResult, SearchResultWithId

__all__ = [
    "ConversationMessage",
    "MessagePart",
    "TextPart",
    "ToolCallPart",
    "ToolResultPart",
    "extract_text",
    "MemoryEntry",
    "SearchResult",
    "SearchResultWithId",
]
