"""
Fan-Out Coordinator — N concurrent provider streams, one ordered output.

  ┌──────────────────────────────────────────────────────────────┐
  │  run(batch)          ← validate eagerly (empty / dup keys)    │
  │      │                                                        │
  │      ▼                                                        │
  │  one asyncio.Task per item ── adapter.stream() ──┐            │
  │  one asyncio.Task per item ── adapter.stream() ──┼─► Queue    │
  │  one asyncio.Task per item ── adapter.stream() ──┘     │      │
  │                                                        ▼      │
  │  merge loop (sole consumer, sole owner of `pending`) ──► yield │
  └──────────────────────────────────────────────────────────────┘

Completion rule:
  `pending` starts as every key in the batch; a key leaves it only after its
  terminal event (Done / Failed) has been forwarded.  The output iterator
  ends exactly once, when `pending` is empty — a slow model is never dropped
  and a fast model never ends the stream early.

Isolation:
  Adapters report their own failures as Failed events.  A provider that
  cannot be resolved gets a synthesized Failed without any adapter running.
  One key's failure never touches its siblings.

Backpressure:
  The queue holds at most QUEUE_SLOTS_PER_ITEM events per batch item.  A slow
  consumer makes every producer wait on put(), so no response is ever held
  in full by the coordinator.

Cancellation:
  Setting the abort event, closing the iterator, or cancelling the consuming
  task (client disconnect) cancels every still-running adapter task and ends
  the iterator without emitting anything further.
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import AsyncIterator, Sequence

from thunderdome.core.errors import BatchValidationError
from thunderdome.llm.adapters import AdapterRegistry, ProviderAdapter
from thunderdome.llm.events import Failed, NormalizedEvent, StreamingRequest

logger = logging.getLogger(__name__)

QUEUE_SLOTS_PER_ITEM = 4


# ---------------------------------------------------------------------------
# Batch / session types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BatchItem:
    """One requested model in a fan-out, tagged with its correlation key."""
    correlation_key: str
    request:         StreamingRequest


@dataclass
class FanOutSession:
    """Per-batch state. Owned and mutated only by the merge loop."""
    pending:    set[str]
    tasks:      list[asyncio.Task] = field(default_factory=list)
    started_at: float              = field(default_factory=time.perf_counter)


# ---------------------------------------------------------------------------
# FanOutCoordinator
# ---------------------------------------------------------------------------

class FanOutCoordinator:
    """
    Usage::

        coordinator = FanOutCoordinator(adapters=AdapterRegistry.from_settings(settings))

        events = coordinator.run(batch)          # raises BatchValidationError now
        async for event in events:
            ...                                  # ContentDelta / Done / Failed
    """

    def __init__(self, adapters: AdapterRegistry, timeout: float | None = None) -> None:
        self._adapters = adapters
        self._timeout  = timeout

    # -----------------------------------------------------------------------
    # Public interface
    # -----------------------------------------------------------------------

    def run(
        self,
        batch: Sequence[BatchItem],
        abort: asyncio.Event | None = None,
    ) -> AsyncIterator[NormalizedEvent]:
        """
        Validate the batch and return the merged event stream.

        Validation happens here, synchronously — a rejected batch never
        starts an adapter.

        Raises:
            BatchValidationError: empty batch or a repeated correlation key.
        """
        items = self._validate(batch)
        return self._drive(items, abort)

    @staticmethod
    def _validate(batch: Sequence[BatchItem]) -> list[BatchItem]:
        items = list(batch)
        if not items:
            raise BatchValidationError("Batch must contain at least one request")

        seen: set[str] = set()
        for item in items:
            if not item.correlation_key:
                raise BatchValidationError("Correlation key must be non-empty")
            if item.correlation_key in seen:
                raise BatchValidationError(f"Duplicate correlation key: {item.correlation_key}")
            seen.add(item.correlation_key)
        return items

    # -----------------------------------------------------------------------
    # Merge loop
    # -----------------------------------------------------------------------

    async def _drive(
        self,
        items: list[BatchItem],
        abort: asyncio.Event | None,
    ) -> AsyncIterator[NormalizedEvent]:
        queue: asyncio.Queue[NormalizedEvent] = asyncio.Queue(maxsize=len(items) * QUEUE_SLOTS_PER_ITEM)
        session = FanOutSession(pending={item.correlation_key for item in items})

        logger.info(
            "FanOut | batch started keys=%s",
            ",".join(item.correlation_key for item in items),
        )

        try:
            for item in items:
                adapter = self._adapters.get(item.request.provider)
                if adapter is None:
                    provider = getattr(item.request.provider, "value", item.request.provider)
                    logger.warning(
                        "FanOut | key=%s unknown provider=%s", item.correlation_key, provider,
                    )
                    queue.put_nowait(Failed(
                        correlation_key=item.correlation_key,
                        message=f"Unknown provider: {provider}",
                        latency_ms=0,
                    ))
                    continue

                session.tasks.append(asyncio.create_task(
                    self._pump(adapter, item, queue),
                    name=f"fanout:{item.correlation_key}",
                ))

            while session.pending:
                event = await self._next_event(queue, abort)
                if event is None:
                    logger.info(
                        "FanOut | aborted pending=%s elapsed_ms=%d",
                        sorted(session.pending),
                        (time.perf_counter() - session.started_at) * 1000,
                    )
                    return

                if event.correlation_key not in session.pending:
                    continue   # key already terminal

                yield event

                if event.is_terminal:
                    session.pending.discard(event.correlation_key)

            logger.info(
                "FanOut | batch complete keys=%d elapsed_ms=%d",
                len(items), (time.perf_counter() - session.started_at) * 1000,
            )

        finally:
            await self._cancel_all(session)

    async def _pump(
        self,
        adapter: ProviderAdapter,
        item:    BatchItem,
        queue:   asyncio.Queue[NormalizedEvent],
    ) -> None:
        """Forward one adapter's events onto the shared queue."""
        t0       = time.perf_counter()
        terminal = False
        try:
            stream = adapter.stream(item.request, item.correlation_key, timeout=self._timeout)
            async with aclosing(stream) as events:
                async for event in events:
                    terminal = terminal or event.is_terminal
                    await queue.put(event)   # blocks while the consumer is behind
        except Exception as exc:
            # Adapters contain their own failures; this only guards against a
            # broken adapter leaving its key pending forever.
            logger.exception("FanOut | key=%s adapter raised", item.correlation_key)
            if not terminal:
                await queue.put(Failed(
                    correlation_key=item.correlation_key,
                    message=str(exc) or type(exc).__name__,
                    latency_ms=int((time.perf_counter() - t0) * 1000),
                ))
            return

        if not terminal:
            await queue.put(Failed(
                correlation_key=item.correlation_key,
                message="Provider stream ended without a result",
                latency_ms=int((time.perf_counter() - t0) * 1000),
            ))

    @staticmethod
    async def _next_event(
        queue: asyncio.Queue[NormalizedEvent],
        abort: asyncio.Event | None,
    ) -> NormalizedEvent | None:
        """Next queued event, or None once the abort signal fires."""
        if abort is None:
            return await queue.get()
        if abort.is_set():
            return None

        get_task   = asyncio.ensure_future(queue.get())
        abort_task = asyncio.ensure_future(abort.wait())
        try:
            await asyncio.wait({get_task, abort_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (get_task, abort_task):
                if not task.done():
                    task.cancel()

        if abort.is_set():
            return None
        return get_task.result()

    @staticmethod
    async def _cancel_all(session: FanOutSession) -> None:
        running = [task for task in session.tasks if not task.done()]
        for task in running:
            task.cancel()
        if running:
            await asyncio.gather(*running, return_exceptions=True)
            logger.info("FanOut | cancelled %d in-flight adapter call(s)", len(running))
