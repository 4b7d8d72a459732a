"""
Execute API — fan one prompt pair out to up to three models.

POST /api/v1/execute   → text/event-stream

Each selected slot becomes one correlation key ``"<slot>:<model_id>"`` so the
same model may be chosen twice.  Frames from different slots interleave in
arrival order; the stream closes once every slot has sent ``done`` or
``error``::

    data: {"correlationKey":"1:gpt-4o","type":"content","content":"Hel"}

    data: {"correlationKey":"2:gemini-2.5-flash","type":"content","content":"Hi"}

    data: {"correlationKey":"1:gpt-4o","type":"done","usage":{...},"latencyMs":812,"finishReason":"stop"}

Guests are checked against the daily quota before anything is dispatched; an
admitted guest gets a refreshed session cookie with the bumped counter.
A client disconnect cancels every in-flight provider call.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request, status
from fastapi.responses import StreamingResponse

from thunderdome.api.dependencies import Coordinator, Models, QuotaGate
from thunderdome.auth.session import CurrentSession, set_session_cookie
from thunderdome.core.errors import BatchValidationError, QuotaExceededError
from thunderdome.llm import BatchItem, StreamingRequest, sse_stream
from thunderdome.schemas.arena import ExecuteRequest
from thunderdome.schemas.errors import ApiErrors
from thunderdome.services.quota import get_client_ip

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Arena"])

SSE_HEADERS = {
    "Cache-Control":     "no-cache",
    "Connection":        "keep-alive",
    "X-Accel-Buffering": "no",
}


def correlation_key(slot: int, model_id: str) -> str:
    return f"{slot}:{model_id}"


@router.post(
    "/execute",
    summary="Stream one prompt to up to three models",
    description="Returns a Server-Sent Events stream of content / done / error frames.",
    response_class=StreamingResponse,
)
async def execute(
    request:     Request,
    body:        ExecuteRequest,
    session:     CurrentSession,
    coordinator: Coordinator,
    models:      Models,
    gate:        QuotaGate,
) -> StreamingResponse:
    # ── Resolve models; unknown ids are dropped ──────────────────────────────
    batch: list[BatchItem] = []
    for selected in body.models:
        definition = models.resolve(selected.model_id)
        if definition is None:
            logger.info("Execute | dropping unknown model_id=%s", selected.model_id)
            continue
        batch.append(BatchItem(
            correlation_key=correlation_key(selected.slot, selected.model_id),
            request=StreamingRequest(
                provider=definition.provider,
                model_id=definition.id,
                user_prompt=body.user_prompt,
                system_prompt=body.system_prompt or None,
                max_output_tokens=definition.max_output_tokens,
            ),
        ))

    if not batch:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=ApiErrors.no_valid_models().model_dump(),
        )

    # ── Validate the batch before touching the quota ─────────────────────────
    try:
        events = coordinator.run(batch)
    except BatchValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=ApiErrors.invalid_batch(str(exc)).model_dump(),
        )

    # ── Guest quota ──────────────────────────────────────────────────────────
    admitted = session
    if session.guest:
        try:
            admitted = gate.admit(session, get_client_ip(request))
        except QuotaExceededError as exc:
            await events.aclose()
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail=ApiErrors.quota_exceeded(exc.limit).model_dump(),
            )

    logger.info(
        "Execute | session=%s guest=%s keys=%s",
        session.sub, session.guest, ",".join(item.correlation_key for item in batch),
    )

    response = StreamingResponse(
        sse_stream(events),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
    if admitted is not session:
        set_session_cookie(response, admitted)
    return response
