"""
Model Registry — static catalogue of selectable models.

The registry answers one question for the fan-out core:
  "Which provider serves this model id, and how many output tokens may I ask for?"

max_output_tokens semantics:
  - int   → sent to the provider as its output-length parameter
  - None  → omitted from the request entirely (reasoning models reject it);
            the Anthropic adapter substitutes its mandatory default instead

Adding a new model:
  Add a ModelDefinition to AVAILABLE_MODELS and it becomes immediately selectable.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class Provider(str, Enum):
    OPENAI    = "openai"
    ANTHROPIC = "anthropic"
    GOOGLE    = "google"


# ---------------------------------------------------------------------------
# ModelDefinition — metadata for each selectable model
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ModelDefinition:
    """
    Static metadata for one model.

    name:               Display name used in the UI and evaluation prompt
    context_window:     Maximum total tokens (input + output)
    max_output_tokens:  Output cap sent to the provider, or None to omit it
    """
    id:                str
    name:              str
    provider:          Provider
    context_window:    int
    max_output_tokens: int | None
    description:       str = ""


# ---------------------------------------------------------------------------
# Registered model catalogue
# ---------------------------------------------------------------------------

AVAILABLE_MODELS: list[ModelDefinition] = [
    # OpenAI
    ModelDefinition(
        id                = "gpt-4o",
        name              = "GPT-4o",
        provider          = Provider.OPENAI,
        context_window    = 128_000,
        max_output_tokens = 16_384,
        description       = "Most capable OpenAI model",
    ),
    ModelDefinition(
        id                = "gpt-4o-mini",
        name              = "GPT-4o Mini",
        provider          = Provider.OPENAI,
        context_window    = 128_000,
        max_output_tokens = 16_384,
        description       = "Fast and cost-effective",
    ),
    ModelDefinition(
        id                = "gpt-4-turbo",
        name              = "GPT-4 Turbo",
        provider          = Provider.OPENAI,
        context_window    = 128_000,
        max_output_tokens = 4_096,
        description       = "Previous generation high-capability",
    ),
    ModelDefinition(
        id                = "o1",
        name              = "o1",
        provider          = Provider.OPENAI,
        context_window    = 200_000,
        max_output_tokens = None,       # reasoning models reject max_tokens
        description       = "Advanced reasoning model",
    ),
    ModelDefinition(
        id                = "o1-mini",
        name              = "o1-mini",
        provider          = Provider.OPENAI,
        context_window    = 128_000,
        max_output_tokens = None,
        description       = "Fast reasoning model",
    ),
    # Anthropic
    ModelDefinition(
        id                = "claude-sonnet-4-5-20250929",
        name              = "Claude Sonnet 4.5",
        provider          = Provider.ANTHROPIC,
        context_window    = 200_000,
        max_output_tokens = 64_000,
        description       = "Best balance of intelligence & speed",
    ),
    ModelDefinition(
        id                = "claude-haiku-4-5-20251001",
        name              = "Claude Haiku 4.5",
        provider          = Provider.ANTHROPIC,
        context_window    = 200_000,
        max_output_tokens = 64_000,
        description       = "Fastest model, near-frontier intelligence",
    ),
    ModelDefinition(
        id                = "claude-opus-4-5-20251101",
        name              = "Claude Opus 4.5",
        provider          = Provider.ANTHROPIC,
        context_window    = 200_000,
        max_output_tokens = 32_000,
        description       = "Maximum intelligence premium model",
    ),
    ModelDefinition(
        id                = "claude-sonnet-4-20250514",
        name              = "Claude Sonnet 4",
        provider          = Provider.ANTHROPIC,
        context_window    = 200_000,
        max_output_tokens = None,       # adapter falls back to its mandatory default
        description       = "Previous gen Sonnet - still excellent",
    ),
    # Google
    ModelDefinition(
        id                = "gemini-2.5-flash",
        name              = "Gemini 2.5 Flash",
        provider          = Provider.GOOGLE,
        context_window    = 1_000_000,
        max_output_tokens = 65_536,
        description       = "Fast & efficient (stable)",
    ),
    ModelDefinition(
        id                = "gemini-2.5-pro",
        name              = "Gemini 2.5 Pro",
        provider          = Provider.GOOGLE,
        context_window    = 1_000_000,
        max_output_tokens = 65_536,
        description       = "Most capable Gemini (stable)",
    ),
    ModelDefinition(
        id                = "gemini-2.0-flash",
        name              = "Gemini 2.0 Flash",
        provider          = Provider.GOOGLE,
        context_window    = 1_000_000,
        max_output_tokens = 8_192,
        description       = "Previous gen Flash",
    ),
    ModelDefinition(
        id                = "gemini-1.5-pro",
        name              = "Gemini 1.5 Pro",
        provider          = Provider.GOOGLE,
        context_window    = 2_000_000,
        max_output_tokens = None,
        description       = "2M context window",
    ),
]


# ---------------------------------------------------------------------------
# ModelRegistry
# ---------------------------------------------------------------------------

class ModelRegistry:
    """
    Pure-Python lookup.  No I/O — fast and fully unit-testable.

    Usage::

        registry   = ModelRegistry()
        definition = registry.resolve("gpt-4o")     # None if unknown
    """

    def __init__(self, models: list[ModelDefinition] | None = None) -> None:
        self._models = list(models if models is not None else AVAILABLE_MODELS)
        self._by_id  = {m.id: m for m in self._models}

    def resolve(self, model_id: str) -> ModelDefinition | None:
        definition = self._by_id.get(model_id)
        if definition is None:
            logger.debug("ModelRegistry | unknown model_id=%s", model_id)
        return definition

    def display_name(self, model_id: str) -> str:
        definition = self._by_id.get(model_id)
        return definition.name if definition else model_id

    def all(self) -> list[ModelDefinition]:
        return list(self._models)

    def by_provider(self, provider: Provider) -> list[ModelDefinition]:
        return [m for m in self._models if m.provider == provider]
