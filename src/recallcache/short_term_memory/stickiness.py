"""Re-rank recalled facts so results carried over from the previous turn stay put."""

from typing import AbstractSet, Dict, List, Sequence

from ..constants import (
    DEFAULT_MAX_RESULTS,
    DEFAULT_STICKINESS_BOOST,
    DEFAULT_TOP_K_PER_DOMAIN,
)
from ..memory_unit.search_result import SearchResult


def apply_stickiness(
    current_results: Sequence[SearchResult],
    previous_facts: AbstractSet[str],
    boost: float = DEFAULT_STICKINESS_BOOST,
    top_k_per_domain: int = DEFAULT_TOP_K_PER_DOMAIN,
    max_results: int = DEFAULT_MAX_RESULTS,
) -> List[SearchResult]:
    """
    Boost facts that were recalled on the immediately preceding turn.

    The boost (capped at 1.0) is computed only against ``previous_facts`` and
    never accumulates across turns. Results are re-sorted and the per-domain
    and overall caps are re-applied. With no previous facts the input is
    returned unchanged.
    """
    if not previous_facts:
        return list(current_results)

    boosted = [
        result.model_copy(update={"similarity": min(result.similarity + boost, 1.0)})
        if result.fact in previous_facts
        else result
        for result in current_results
    ]
    boosted.sort(key=lambda result: result.similarity, reverse=True)

    domain_counts: Dict[str, int] = {}
    filtered: List[SearchResult] = []
    for result in boosted:
        count = domain_counts.get(result.domain, 0)
        if count >= top_k_per_domain:
            continue
        domain_counts[result.domain] = count + 1
        filtered.append(result)
        if len(filtered) >= max_results:
            break
    return filtered
