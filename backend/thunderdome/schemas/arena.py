"""
Arena API — Pydantic Request/Response Schemas

Covers:
  - POST /api/v1/execute    (fan-out request; the response is an SSE stream)
  - POST /api/v1/evaluate   (judge request / verdict)
  - GET  /api/v1/models     (catalogue listing)
  - Saved configuration records (/api/v1/configs)

JSON bodies use camelCase on the wire (systemPrompt, modelId, latencyMs) so
saved sessions replay straight into the browser UI; Python code uses the
snake_case attribute names.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Shared
# ---------------------------------------------------------------------------

class UsageSchema(CamelModel):
    prompt_tokens:     int = 0
    completion_tokens: int = 0
    total_tokens:      int = 0


class SelectedModel(CamelModel):
    """One model chosen in a UI slot."""
    slot:     int = Field(..., ge=1, le=3, description="UI slot (1-3)")
    model_id: str = Field(..., min_length=1, examples=["gpt-4o"])


# ---------------------------------------------------------------------------
# Execute
# ---------------------------------------------------------------------------

class ExecuteRequest(CamelModel):
    system_prompt: str = Field("", description="Optional system prompt; empty = none sent")
    user_prompt:   str = Field(
        ...,
        min_length=1,
        description="The prompt every selected model answers.",
        examples=["Reply with just the word 'ok'"],
    )
    models: list[SelectedModel] = Field(..., min_length=1, max_length=3)

    @field_validator("user_prompt")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("userPrompt must not be blank")
        return value


# ---------------------------------------------------------------------------
# Evaluate
# ---------------------------------------------------------------------------

class ResponseEntry(CamelModel):
    model_id: str
    content:  str


class EvaluateRequest(CamelModel):
    original_prompt: str                 = Field(..., min_length=1)
    system_prompt:   str                 = ""
    responses:       list[ResponseEntry] = Field(default_factory=list)


class EvaluateResponse(CamelModel):
    evaluation: str
    usage:      UsageSchema
    judge:      str
    latency_ms: int


# ---------------------------------------------------------------------------
# Catalogue
# ---------------------------------------------------------------------------

class ModelInfo(CamelModel):
    id:                str
    name:              str
    provider:          str
    context_window:    int
    max_output_tokens: int | None
    description:       str
    configured:        bool


# ---------------------------------------------------------------------------
# Saved configurations
# ---------------------------------------------------------------------------

class SavedResponse(CamelModel):
    """A finished slot as shown in the UI — derived from the stream events."""
    model_id:    str
    content:     str          = ""
    is_complete: bool         = False
    is_error:    bool         = False
    error:       str | None   = None
    usage:       UsageSchema | None = None
    latency_ms:  int | None   = None


class SaveConfigRequest(CamelModel):
    name:          str                        = ""
    description:   str | None                 = None
    system_prompt: str                        = ""
    user_prompt:   str                        = ""
    models:        list[SelectedModel]        = Field(default_factory=list)
    responses:     list[SavedResponse] | None = None
    evaluation:    str | None                 = None


class SavedConfig(SaveConfigRequest):
    id:         str
    created_at: str
    updated_at: str


class ConfigListItem(CamelModel):
    id:          str
    name:        str
    description: str | None = None
    created_at:  str
    updated_at:  str
