"""
Structured error bodies for every documented 4xx/5xx case.

Route handlers raise::

    raise HTTPException(status_code=400, detail=ApiErrors.no_valid_models().model_dump())

so clients can always branch on ``error_code``.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    """One problem with the request, usually tied to a field."""
    field:   str | None = Field(None, description="Offending request field, dotted path")
    message: str
    code:    str         = Field(..., description="Stable code the UI branches on")


class ErrorResponse(BaseModel):
    """
    Body of every 4xx/5xx.  The UI switches on `error_code`
    (QUOTA_EXCEEDED shows the login prompt, UNAUTHORIZED the auth screen).
    """
    error_code: str               = Field(..., description="Stable machine-readable code")
    message:    str               = Field(..., description="Human-readable summary")
    details:    list[ErrorDetail] = Field(default_factory=list)
    request_id: str | None        = Field(None, description="Trace ID for log correlation")


# ---------------------------------------------------------------------------
# Factories, one per documented failure
# ---------------------------------------------------------------------------

class ApiErrors:
    """Build the ErrorResponse for each case routes can raise."""

    @staticmethod
    def unauthorized(reason: str = "Missing or invalid session cookie.") -> ErrorResponse:
        return ErrorResponse(
            error_code="UNAUTHORIZED",
            message="Authentication required. Log in or start a guest session.",
            details=[ErrorDetail(field=None, message=reason, code="UNAUTHORIZED")],
        )

    @staticmethod
    def invalid_password() -> ErrorResponse:
        return ErrorResponse(error_code="INVALID_PASSWORD", message="Invalid password")

    @staticmethod
    def no_valid_models() -> ErrorResponse:
        return ErrorResponse(
            error_code="NO_VALID_MODELS",
            message="No valid models selected.",
            details=[
                ErrorDetail(
                    field="models",
                    message="None of the requested model ids exist in the catalogue.",
                    code="NO_VALID_MODELS",
                )
            ],
        )

    @staticmethod
    def invalid_batch(reason: str) -> ErrorResponse:
        return ErrorResponse(
            error_code="INVALID_BATCH",
            message="The model selection could not be dispatched.",
            details=[ErrorDetail(field="models", message=reason, code="INVALID_BATCH")],
        )

    @staticmethod
    def quota_exceeded(limit: int) -> ErrorResponse:
        return ErrorResponse(
            error_code="QUOTA_EXCEEDED",
            message=f"Guest limit of {limit} executions per day reached. Log in for unlimited use.",
        )

    @staticmethod
    def evaluation_invalid(reason: str) -> ErrorResponse:
        return ErrorResponse(
            error_code="EVALUATION_INVALID",
            message=reason,
            details=[ErrorDetail(field="responses", message=reason, code="EVALUATION_INVALID")],
        )

    @staticmethod
    def judge_not_configured(judge: str) -> ErrorResponse:
        return ErrorResponse(
            error_code="JUDGE_NOT_CONFIGURED",
            message=f"The evaluation model '{judge}' has no API key configured.",
        )

    @staticmethod
    def evaluation_failed(reason: str) -> ErrorResponse:
        return ErrorResponse(error_code="EVALUATION_FAILED", message=reason)

    @staticmethod
    def config_name_required() -> ErrorResponse:
        return ErrorResponse(
            error_code="VALIDATION_ERROR",
            message="Name is required",
            details=[ErrorDetail(field="name", message="Name is required", code="VALIDATION_ERROR")],
        )

    @staticmethod
    def config_not_found(config_id: str) -> ErrorResponse:
        return ErrorResponse(
            error_code="CONFIG_NOT_FOUND",
            message=f"Configuration '{config_id}' not found",
        )
