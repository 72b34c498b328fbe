"""Language model port — abstract interface for text generation.

Core modules depend on this protocol, never on a specific vendor SDK.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


class LLMError(Exception):
    """Raised when any language model provider call fails."""


@dataclass(frozen=True)
class CompletionOptions:
    """Per-call generation settings."""

    system: str = ""
    max_tokens: int = 1024
    temperature: float = 0.1


class LanguageModelClient(Protocol):
    """Abstract text-completion interface used by core modules."""

    async def complete(self, prompt: str, options: CompletionOptions) -> str: ...
