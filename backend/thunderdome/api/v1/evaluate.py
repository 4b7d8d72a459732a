"""
Evaluate API — ask the judge model to compare finished responses.

POST /api/v1/evaluate

    400  fewer than two responses
    503  judge provider has no API key
    502  judge call failed
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, status

from thunderdome.api.dependencies import Evaluator
from thunderdome.auth.session import CurrentSession
from thunderdome.core.errors import (
    EvaluationValidationError,
    ProviderCallError,
    ProviderNotConfiguredError,
)
from thunderdome.evaluation import EvaluationRequest, ModelResponse
from thunderdome.schemas.arena import EvaluateRequest, EvaluateResponse, UsageSchema
from thunderdome.schemas.errors import ApiErrors

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Arena"])


@router.post(
    "/evaluate",
    response_model=EvaluateResponse,
    response_model_by_alias=True,
    summary="Compare responses with the judge model",
)
async def evaluate(
    body:      EvaluateRequest,
    session:   CurrentSession,
    evaluator: Evaluator,
) -> EvaluateResponse:
    request = EvaluationRequest(
        original_user_prompt=body.original_prompt,
        system_prompt=body.system_prompt or None,
        responses=tuple(ModelResponse(model_id=r.model_id, content=r.content) for r in body.responses),
    )

    try:
        evaluator.validate(request)
    except EvaluationValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=ApiErrors.evaluation_invalid(str(exc)).model_dump(),
        )

    if not evaluator.is_configured():
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=ApiErrors.judge_not_configured(evaluator.judge).model_dump(),
        )

    try:
        result = await evaluator.evaluate(request)
    except ProviderNotConfiguredError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=ApiErrors.judge_not_configured(evaluator.judge).model_dump(),
        )
    except ProviderCallError as exc:
        logger.warning("Evaluate | session=%s judge call failed: %s", session.sub, exc)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=ApiErrors.evaluation_failed(str(exc)).model_dump(),
        )

    return EvaluateResponse(
        evaluation=result.verdict,
        usage=UsageSchema(
            prompt_tokens=result.usage.prompt_tokens,
            completion_tokens=result.usage.completion_tokens,
            total_tokens=result.usage.total_tokens,
        ),
        judge=result.judge,
        latency_ms=result.latency_ms,
    )
