"""Render recalled facts as text for injection into the system prompt."""

from typing import Dict, List, Sequence

from ..domains import get_domain
from ..memory_unit.search_result import SearchResult

RECALLED_CONTEXT_HEADER = (
    "## Recalled Context\n"
    "Reference only if directly relevant to the current discussion."
)


def build_recalled_context_block(results: Sequence[SearchResult]) -> str:
    """
    Format search results as a ``## Recalled Context`` block.

    Facts are grouped under ``### <Domain Name>`` headings in the order their
    domains are first encountered. An empty result list yields an empty string
    so that no heading is emitted.
    """
    if not results:
        return ""

    grouped: Dict[str, List[str]] = {}
    for result in results:
        grouped.setdefault(result.domain, []).append(result.fact)

    block = f"\n\n{RECALLED_CONTEXT_HEADER}"
    for domain_id, facts in grouped.items():
        block += f"\n\n### {get_domain(domain_id).name}"
        for fact in facts:
            block += f"\n- {fact}"
    return block
