"""
Normalized streaming events — the one format every provider is adapted to.

Every adapter produces a finite sequence shaped like::

    ContentDelta* (Done | Failed)

i.e. zero or more text fragments followed by exactly one terminal event.
The fan-out coordinator relies on this to know when a correlation key is
finished; the framer relies on it to map events 1:1 onto wire frames.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union

from thunderdome.llm.registry import Provider


@dataclass(frozen=True)
class StreamingRequest:
    """
    Uniform completion request handed to a ProviderAdapter.

    system_prompt:      None or "" means no system-level instruction is sent.
    max_output_tokens:  None means the output-length parameter is omitted
                        (the Anthropic adapter substitutes its mandatory default).
    """
    provider:          Provider
    model_id:          str
    user_prompt:       str
    system_prompt:     str | None = None
    max_output_tokens: int | None = None

    def __post_init__(self) -> None:
        if not self.user_prompt or not self.user_prompt.strip():
            raise ValueError("user_prompt must be non-empty")


@dataclass(frozen=True)
class TokenUsage:
    prompt_tokens:     int = 0
    completion_tokens: int = 0
    total_tokens:      int = 0

    @classmethod
    def from_usage_metadata(cls, metadata: dict | None) -> "TokenUsage":
        """Build from a LangChain ``usage_metadata`` dict (missing → zeros)."""
        if not metadata:
            return cls()
        prompt     = int(metadata.get("input_tokens") or 0)
        completion = int(metadata.get("output_tokens") or 0)
        total      = int(metadata.get("total_tokens") or prompt + completion)
        return cls(prompt_tokens=prompt, completion_tokens=completion, total_tokens=total)


@dataclass(frozen=True)
class ContentDelta:
    """Partial output fragment. Order-significant within one correlation key."""
    correlation_key: str
    text:            str

    @property
    def is_terminal(self) -> bool:
        return False


@dataclass(frozen=True)
class Done:
    """Terminal success."""
    correlation_key: str
    usage:           TokenUsage
    latency_ms:      int

    @property
    def is_terminal(self) -> bool:
        return True


@dataclass(frozen=True)
class Failed:
    """
    Terminal failure.

    not_configured is set when the provider has no credential, so a
    diagnostics run can report the model as skipped rather than broken.
    """
    correlation_key: str
    message:         str
    latency_ms:      int
    not_configured:  bool = field(default=False, compare=False)

    @property
    def is_terminal(self) -> bool:
        return True


NormalizedEvent = Union[ContentDelta, Done, Failed]


@dataclass(frozen=True)
class Completion:
    """Result of a single non-streaming provider call."""
    text:  str
    usage: TokenUsage
