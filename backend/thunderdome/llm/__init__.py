"""
LLM Fan-Out Package

Streams one prompt pair to several providers at once and merges the results:
  - OpenAI           (GPT-4o family, o1 reasoning models)
  - Anthropic        (Claude Sonnet / Haiku / Opus)
  - Google           (Gemini 1.5 / 2.0 / 2.5)

Public API::

    from thunderdome.llm import AdapterRegistry, BatchItem, FanOutCoordinator, StreamingRequest

    coordinator = FanOutCoordinator(adapters=AdapterRegistry.from_settings(settings))
    async for event in coordinator.run(batch):
        ...
"""

from thunderdome.llm.adapters import AdapterRegistry, ProviderAdapter
from thunderdome.llm.events import (
    Completion,
    ContentDelta,
    Done,
    Failed,
    NormalizedEvent,
    StreamingRequest,
    TokenUsage,
)
from thunderdome.llm.fanout import BatchItem, FanOutCoordinator
from thunderdome.llm.framing import frame, pump, sse_stream
from thunderdome.llm.registry import AVAILABLE_MODELS, ModelDefinition, ModelRegistry, Provider

__all__ = [
    "AVAILABLE_MODELS",
    "AdapterRegistry",
    "BatchItem",
    "Completion",
    "ContentDelta",
    "Done",
    "Failed",
    "FanOutCoordinator",
    "ModelDefinition",
    "ModelRegistry",
    "NormalizedEvent",
    "Provider",
    "ProviderAdapter",
    "StreamingRequest",
    "TokenUsage",
    "frame",
    "pump",
    "sse_stream",
]
