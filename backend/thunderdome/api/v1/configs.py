"""
Saved Configurations API

GET    /api/v1/configs        → summaries, most recently updated first
POST   /api/v1/configs        → 201 + full record
GET    /api/v1/configs/{id}   → full record
PUT    /api/v1/configs/{id}   → replace editable fields (id / createdAt kept)
DELETE /api/v1/configs/{id}   → {"success": true}

Every route requires a session (guest or user).
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, status

from thunderdome.api.dependencies import Configs
from thunderdome.auth.session import CurrentSession
from thunderdome.core.errors import ConfigNotFoundError
from thunderdome.schemas.arena import ConfigListItem, SavedConfig, SaveConfigRequest
from thunderdome.schemas.errors import ApiErrors

router = APIRouter(prefix="/configs", tags=["Configs"])


def _require_name(body: SaveConfigRequest) -> None:
    if not body.name or not body.name.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=ApiErrors.config_name_required().model_dump(),
        )


def _not_found(config_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=ApiErrors.config_not_found(config_id).model_dump(),
    )


@router.get(
    "",
    response_model=list[ConfigListItem],
    response_model_by_alias=True,
    response_model_exclude_none=True,
)
async def list_configs(session: CurrentSession, store: Configs) -> list[ConfigListItem]:
    return await store.list()


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=SavedConfig,
    response_model_by_alias=True,
    response_model_exclude_none=True,
)
async def create_config(body: SaveConfigRequest, session: CurrentSession, store: Configs) -> SavedConfig:
    _require_name(body)
    return await store.save(body)


@router.get(
    "/{config_id}",
    response_model=SavedConfig,
    response_model_by_alias=True,
    response_model_exclude_none=True,
)
async def get_config(config_id: str, session: CurrentSession, store: Configs) -> SavedConfig:
    try:
        return await store.get(config_id)
    except ConfigNotFoundError:
        raise _not_found(config_id)


@router.put(
    "/{config_id}",
    response_model=SavedConfig,
    response_model_by_alias=True,
    response_model_exclude_none=True,
)
async def update_config(
    config_id: str,
    body:      SaveConfigRequest,
    session:   CurrentSession,
    store:     Configs,
) -> SavedConfig:
    _require_name(body)
    try:
        return await store.update(config_id, body)
    except ConfigNotFoundError:
        raise _not_found(config_id)


@router.delete("/{config_id}")
async def delete_config(config_id: str, session: CurrentSession, store: Configs) -> dict:
    try:
        await store.delete(config_id)
    except ConfigNotFoundError:
        raise _not_found(config_id)
    return {"success": True}
