"""
Domain exceptions.

Routes translate these into structured HTTP errors; the fan-out core never
lets provider exceptions escape an adapter (they become Failed events).
"""

from __future__ import annotations


class ThunderdomeError(Exception):
    """Base exception for the service."""


class BatchValidationError(ThunderdomeError):
    """Raised when a fan-out batch is rejected before any provider call."""


class EvaluationValidationError(ThunderdomeError):
    """Raised when an evaluation request cannot be sent to the judge."""


class ProviderNotConfiguredError(ThunderdomeError):
    """Raised when a provider has no credential available."""


class ProviderCallError(ThunderdomeError):
    """Raised when a non-streaming provider call fails."""

    def __init__(self, provider: str, model_id: str, message: str) -> None:
        super().__init__(message)
        self.provider = provider
        self.model_id = model_id


class QuotaExceededError(ThunderdomeError):
    """Raised when a guest has used up the daily execution allowance."""

    def __init__(self, limit: int) -> None:
        super().__init__(f"Daily guest execution limit of {limit} reached")
        self.limit = limit


class ConfigNotFoundError(ThunderdomeError):
    """Raised when a saved configuration id does not exist."""
