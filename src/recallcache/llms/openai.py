import logging
import os
from typing import Any, Dict, List, Optional

import openai

from .llm_provider import LLMProvider

# Suppress httpx logs to reduce noise from API requests
logging.getLogger("httpx").setLevel(logging.WARNING)


class OpenAI(LLMProvider):
    """
    Chat completions through the OpenAI client.

    Also serves OpenAI-compatible endpoints (such as xAI) via ``base_url``;
    ``provider`` is only recorded so the configuration can be rebuilt by the
    extraction worker.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-4o",
        base_url: Optional[str] = None,
        provider: str = "openai",
        context_window_tokens: Optional[int] = None,
        timeout: Optional[float] = None,
    ):
        """
        Initialize the client.

        Parameters:
        -----------
        api_key : str, optional
            API key. Defaults to env var `OPENAI_API_KEY`.
        model : str, optional
            Model used for every completion.
        base_url : str, optional
            Alternative OpenAI-compatible endpoint.
        context_window_tokens : int, optional
            Window size used for compression decisions instead of the
            built-in per-model table.
        timeout : float, optional
            Per-request timeout in seconds.
        """
        if api_key is None:
            api_key = os.getenv("OPENAI_API_KEY")

        client_kwargs: Dict[str, Any] = {"api_key": api_key}
        if base_url is not None:
            client_kwargs["base_url"] = base_url
        if timeout is not None:
            client_kwargs["timeout"] = timeout

        self.client = openai.OpenAI(**client_kwargs)
        self.model = model
        self.provider = provider
        self.context_window_tokens = context_window_tokens
        self._last_usage: Optional[Dict[str, int]] = None

    def get_config(self) -> Dict[str, Any]:
        """Returns a serializable configuration for this provider."""
        return {"provider": self.provider, "model": self.model}

    def complete(
        self,
        system_prompt: str,
        messages: List[Dict[str, str]],
        max_tokens: int,
    ) -> str:
        """
        Generate a completion using OpenAI's chat completions API.

        Parameters:
            system_prompt (str): Instructions sent as the system message.
            messages (List[Dict[str, str]]): Chat messages with 'role' and 'content'.
            max_tokens (int): Upper bound on generated tokens.

        Returns:
            str: The reply text (empty string if the model returned none).
        """
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[{"role": "system", "content": system_prompt}, *messages],
            max_tokens=max_tokens,
        )
        self._last_usage = self._extract_usage(response)
        return response.choices[0].message.content or ""

    def _extract_usage(self, response: Any) -> Optional[Dict[str, int]]:
        usage = getattr(response, "usage", None)
        if not usage:
            return None
        return {
            "prompt_tokens": getattr(usage, "prompt_tokens", None),
            "completion_tokens": getattr(usage, "completion_tokens", None),
            "total_tokens": getattr(usage, "total_tokens", None),
        }

    def get_last_usage(self) -> Optional[Dict[str, int]]:
        return self._last_usage

    def get_context_window_tokens(self) -> Optional[int]:
        return self.context_window_tokens
