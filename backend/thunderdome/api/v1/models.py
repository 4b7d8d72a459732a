"""
Models API — the selectable model catalogue.

GET /api/v1/models   → [{id, name, provider, contextWindow, maxOutputTokens, description, configured}]

``configured`` is false when the provider has no API key; such models can
still be selected but fail immediately with "<Provider> client not configured".
"""

from __future__ import annotations

from fastapi import APIRouter

from thunderdome.api.dependencies import Adapters, Models
from thunderdome.schemas.arena import ModelInfo

router = APIRouter(tags=["Arena"])


@router.get(
    "/models",
    response_model=list[ModelInfo],
    response_model_by_alias=True,
    summary="List selectable models",
)
async def list_models(adapters: Adapters, models: Models) -> list[ModelInfo]:
    return [
        ModelInfo(
            id=m.id,
            name=m.name,
            provider=m.provider.value,
            context_window=m.context_window,
            max_output_tokens=m.max_output_tokens,
            description=m.description,
            configured=adapters.has_credential(m.provider),
        )
        for m in models.all()
    ]
