# src/recallcache/llms/llm_provider.py

from typing import Any, Dict, List, Optional, Protocol, runtime_checkable


@runtime_checkable
class LLMProvider(Protocol):
    """
    The contract the memory layer needs from a language model: a single
    system-prompted text completion over a list of chat messages.
    """

    model: str
    """Model name sent with every request (e.g., "gpt-4o")."""

    def complete(
        self,
        system_prompt: str,
        messages: List[Dict[str, str]],
        max_tokens: int,
    ) -> str:
        """Return the model's text reply to ``messages`` under ``system_prompt``."""
        ...

    def get_config(self) -> Dict[str, Any]:
        """Serializable provider configuration (used by the extraction worker)."""
        ...

    def get_context_window_tokens(self) -> Optional[int]:
        """Return the provider's context window size in tokens, when known."""
        ...
