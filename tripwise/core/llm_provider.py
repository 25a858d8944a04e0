"""
Thin aisuite wrapper used for the optional narrative text.
"""

import logging
from typing import Any

import aisuite as ai  # type: ignore

logger = logging.getLogger(__name__)


class LLMProvider:
    """Chat client bound to one "provider:model" id, e.g. "openai:gpt-4o-mini"."""

    def __init__(self, model: str, max_tokens: int = 200) -> None:
        if ":" not in model:
            raise ValueError(f"Model id must look like 'provider:model', got '{model}'")
        self.model = model
        self.max_tokens = max_tokens
        self._client: Any = None

    @property
    def client(self) -> Any:
        # Created on first use so a missing API key only matters once narrative text is requested
        if self._client is None:
            logger.info(f"Initializing aisuite client for {self.model}")
            self._client = ai.Client()
        return self._client

    def chat(self, messages: list[dict[str, Any]], temperature: float = 0.3) -> str:
        """Return the assistant reply for role/content messages, stripped of whitespace."""
        resp = self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=temperature,
            max_tokens=self.max_tokens,
        )
        return (resp.choices[0].message.content or "").strip()
