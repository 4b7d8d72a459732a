"""
Composed FastAPI Dependencies

Process-wide singletons (adapter registry, coordinator, judge, quota gate,
config store) are built once from settings.  Route handlers import from here
and never construct these directly, so tests can swap any of them through
``app.dependency_overrides``.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from thunderdome.core.config import get_settings
from thunderdome.evaluation import EvaluationRequester
from thunderdome.llm import AdapterRegistry, FanOutCoordinator, ModelRegistry
from thunderdome.services.quota import GuestQuotaGate
from thunderdome.storage.configs import ConfigStore


@lru_cache(maxsize=1)
def get_adapter_registry() -> AdapterRegistry:
    return AdapterRegistry.from_settings(get_settings())


@lru_cache(maxsize=1)
def get_model_registry() -> ModelRegistry:
    return ModelRegistry()


def get_coordinator(
    adapters: Annotated[AdapterRegistry, Depends(get_adapter_registry)],
) -> FanOutCoordinator:
    return FanOutCoordinator(adapters=adapters, timeout=get_settings().stream_timeout_seconds)


def get_evaluator(
    adapters: Annotated[AdapterRegistry, Depends(get_adapter_registry)],
    models:   Annotated[ModelRegistry, Depends(get_model_registry)],
) -> EvaluationRequester:
    settings = get_settings()
    return EvaluationRequester(
        adapters=adapters,
        models=models,
        judge_provider=settings.judge_provider,
        judge_model=settings.judge_model,
    )


@lru_cache(maxsize=1)
def get_quota_gate() -> GuestQuotaGate:
    return GuestQuotaGate(limit=get_settings().guest_daily_execution_limit)


@lru_cache(maxsize=1)
def get_config_store() -> ConfigStore:
    return ConfigStore(get_settings().config_storage_dir)


Adapters    = Annotated[AdapterRegistry, Depends(get_adapter_registry)]
Models      = Annotated[ModelRegistry, Depends(get_model_registry)]
Coordinator = Annotated[FanOutCoordinator, Depends(get_coordinator)]
Evaluator   = Annotated[EvaluationRequester, Depends(get_evaluator)]
QuotaGate   = Annotated[GuestQuotaGate, Depends(get_quota_gate)]
Configs     = Annotated[ConfigStore, Depends(get_config_store)]
