"""
Output Multiplexer / Transport Framer — NormalizedEvent → SSE frame.

One event, one frame; never batched, never reordered.  Frames from different
correlation keys interleave in arrival order.

Wire format (text/event-stream)::

    data: {"correlationKey":"1:gpt-4o","type":"content","content":"Hel"}

    data: {"correlationKey":"1:gpt-4o","type":"done","usage":{...},"latencyMs":812,"finishReason":"stop"}

    data: {"correlationKey":"2:o1","type":"error","error":"...","latencyMs":95}

Absent fields are omitted, not sent as null.  The stream ends when the
connection closes after the final frame.

Transport failures:
  A write that raises is not retried.  The exception propagates, which
  closes the event iterator and cancels every adapter still running.
"""

from __future__ import annotations

import logging
from contextlib import aclosing
from typing import AsyncIterator, Awaitable, Callable, Literal

from pydantic import BaseModel, ConfigDict, Field

from thunderdome.llm.events import ContentDelta, Done, Failed, NormalizedEvent

logger = logging.getLogger(__name__)

FINISH_REASON_STOP = "stop"


# ---------------------------------------------------------------------------
# Wire schema
# ---------------------------------------------------------------------------

class UsageFrame(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    prompt_tokens:     int = Field(0, alias="promptTokens")
    completion_tokens: int = Field(0, alias="completionTokens")
    total_tokens:      int = Field(0, alias="totalTokens")


class StreamFrame(BaseModel):
    """One server-push message. Field presence depends on ``type``."""
    model_config = ConfigDict(populate_by_name=True)

    correlation_key: str                                = Field(..., alias="correlationKey")
    type:            Literal["content", "done", "error"]
    content:         str | None                         = None
    usage:           UsageFrame | None                  = None
    latency_ms:      int | None                         = Field(None, alias="latencyMs")
    finish_reason:   str | None                         = Field(None, alias="finishReason")
    error:           str | None                         = None


# ---------------------------------------------------------------------------
# Framing
# ---------------------------------------------------------------------------

def to_frame(event: NormalizedEvent) -> StreamFrame:
    """Map a normalized event onto its wire record."""
    if isinstance(event, ContentDelta):
        return StreamFrame(correlation_key=event.correlation_key, type="content", content=event.text)

    if isinstance(event, Done):
        return StreamFrame(
            correlation_key=event.correlation_key,
            type="done",
            usage=UsageFrame(
                prompt_tokens=event.usage.prompt_tokens,
                completion_tokens=event.usage.completion_tokens,
                total_tokens=event.usage.total_tokens,
            ),
            latency_ms=event.latency_ms,
            finish_reason=FINISH_REASON_STOP,
        )

    if isinstance(event, Failed):
        return StreamFrame(
            correlation_key=event.correlation_key,
            type="error",
            error=event.message,
            latency_ms=event.latency_ms,
        )

    raise TypeError(f"Unsupported event type: {type(event).__name__}")   # pragma: no cover


def frame(event: NormalizedEvent) -> str:
    """Serialise one event as a text/event-stream message."""
    payload = to_frame(event).model_dump_json(by_alias=True, exclude_none=True)
    return f"data: {payload}\n\n"


# ---------------------------------------------------------------------------
# Multiplexing
# ---------------------------------------------------------------------------

async def sse_stream(events: AsyncIterator[NormalizedEvent]) -> AsyncIterator[str]:
    """
    Pull-style multiplexer for StreamingResponse.

    When the server stops pulling (client disconnect) this generator is
    closed, which closes ``events`` and cancels the in-flight adapters.
    """
    async with aclosing(events) as stream:
        async for event in stream:
            yield frame(event)


async def pump(
    events: AsyncIterator[NormalizedEvent],
    write:  Callable[[str], Awaitable[None]],
) -> int:
    """
    Push-style multiplexer: write every frame to ``write``.

    Returns the number of frames written.  A failing write aborts the whole
    fan-out immediately; the exception is re-raised to the caller.
    """
    written = 0
    async with aclosing(events) as stream:
        async for event in stream:
            try:
                await write(frame(event))
            except Exception:
                logger.error("Framer | transport write failed after %d frame(s)", written)
                raise
            written += 1
    return written
