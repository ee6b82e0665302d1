from .compression import (
    CompressionConfig,
    ConversationCompressor,
    DomainFacts,
    count_recent_messages,
    extract_domain_facts,
    extract_facts,
    get_context_window,
    parse_fact_list,
    serialize_messages,
    should_compress,
)
from .query_composer import (
    build_rag_query,
    extract_recent_tool_context,
    extract_recent_user_texts,
    is_boundary_message,
)
from .stickiness import apply_stickiness

__all__ = [
    "CompressionConfig",
    "ConversationCompressor",
    "DomainFacts",
    "apply_stickiness",
    "build_rag_query",
    "count_recent_messages",
    "extract_domain_facts",
    "extract_facts",
    "extract_recent_tool_context",
    "extract_recent_user_texts",
    "get_context_window",
    "is_boundary_message",
    "parse_fact_list",
    "serialize_messages",
    "should_compress",
]
