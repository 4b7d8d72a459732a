"""
Evaluation Requester — one judge model compares the collected responses.

Flow:
  1. Validate: at least two responses (otherwise no provider is called).
  2. Render the fixed rubric prompt with the original prompts and every
     response, labelled with the model's display name.
  3. One non-streaming call to the designated judge model.
  4. Return the verdict text plus token usage.

There is no retry and no partial result: if the judge call fails, the whole
evaluation fails with the provider error.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Final, Sequence

from thunderdome.core.errors import EvaluationValidationError, ProviderNotConfiguredError
from thunderdome.llm.adapters import AdapterRegistry
from thunderdome.llm.events import StreamingRequest, TokenUsage
from thunderdome.llm.registry import ModelRegistry, Provider

logger = logging.getLogger(__name__)

MIN_RESPONSES: Final[int] = 2

_NO_SYSTEM_PROMPT: Final[str] = "(No system prompt provided)"
_RESPONSE_SEPARATOR: Final[str] = "\n\n---\n\n"

# ---------------------------------------------------------------------------
# Rubric prompt (fixed, not user-configurable)
# ---------------------------------------------------------------------------

_EVALUATION_PROMPT: Final[str] = """\
You are an expert evaluator comparing AI model responses. Analyze the following responses to the same prompt and provide a detailed comparison.

## Original System Prompt
{system_prompt}

## Original User Prompt
{user_prompt}

## Model Responses

{responses}

---

## Your Task

Provide a comprehensive evaluation that includes:

1. **Summary**: A brief overview of how each model approached the task (2-3 sentences each)

2. **Strengths & Weaknesses**: For each response, identify:
   - Key strengths
   - Notable weaknesses or gaps

3. **Comparison Criteria**: Rate each response on these dimensions (1-5 scale):
   - Accuracy/Correctness
   - Completeness
   - Clarity & Organization
   - Helpfulness
   - Creativity (if applicable)

4. **Winner**: Declare which response best addresses the prompt and explain why

5. **Recommendation**: Suggest which model might be best suited for this type of task

Be objective and specific in your analysis. Reference specific parts of each response when making comparisons."""


# ---------------------------------------------------------------------------
# Request / result
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ModelResponse:
    model_id: str
    content:  str


@dataclass(frozen=True)
class EvaluationRequest:
    original_user_prompt: str
    responses:            Sequence[ModelResponse] = field(default_factory=tuple)
    system_prompt:        str | None = None


@dataclass(frozen=True)
class EvaluationResult:
    verdict:    str
    usage:      TokenUsage
    judge:      str
    latency_ms: int


# ---------------------------------------------------------------------------
# EvaluationRequester
# ---------------------------------------------------------------------------

class EvaluationRequester:
    """
    Usage::

        requester = EvaluationRequester(adapters=registry)
        result    = await requester.evaluate(EvaluationRequest(
            original_user_prompt="Explain CRDTs",
            responses=[ModelResponse("gpt-4o", "..."), ModelResponse("gemini-2.5-pro", "...")],
        ))
        result.verdict, result.usage
    """

    def __init__(
        self,
        adapters:       AdapterRegistry,
        models:         ModelRegistry | None = None,
        judge_provider: Provider | str = Provider.GOOGLE,
        judge_model:    str = "gemini-2.5-flash",
    ) -> None:
        self._adapters       = adapters
        self._models         = models or ModelRegistry()
        self._judge_provider = judge_provider
        self._judge_model    = judge_model

    @property
    def judge(self) -> str:
        return self._judge_model

    def is_configured(self) -> bool:
        return self._adapters.has_credential(self._judge_provider)

    # -----------------------------------------------------------------------
    # Prompt
    # -----------------------------------------------------------------------

    def build_prompt(self, request: EvaluationRequest) -> str:
        sections = [
            f"### {self._models.display_name(r.model_id)}\n{r.content}"
            for r in request.responses
        ]
        return _EVALUATION_PROMPT.format(
            system_prompt=request.system_prompt or _NO_SYSTEM_PROMPT,
            user_prompt=request.original_user_prompt,
            responses=_RESPONSE_SEPARATOR.join(sections),
        )

    @staticmethod
    def validate(request: EvaluationRequest) -> None:
        if len(request.responses) < MIN_RESPONSES:
            raise EvaluationValidationError(
                f"Need at least {MIN_RESPONSES} responses to evaluate",
            )
        if not request.original_user_prompt or not request.original_user_prompt.strip():
            raise EvaluationValidationError("Original user prompt is required")

    # -----------------------------------------------------------------------
    # Public interface
    # -----------------------------------------------------------------------

    async def evaluate(self, request: EvaluationRequest) -> EvaluationResult:
        """
        Raises:
            EvaluationValidationError:  fewer than two responses / empty prompt.
            ProviderNotConfiguredError: the judge provider has no credential.
            ProviderCallError:          the judge call failed.
        """
        self.validate(request)

        adapter = self._adapters.get(self._judge_provider)
        if adapter is None:
            raise ProviderNotConfiguredError(f"Unknown judge provider: {self._judge_provider}")

        judge_request = StreamingRequest(
            provider=adapter.provider,
            model_id=self._judge_model,
            user_prompt=self.build_prompt(request),
        )

        t0 = time.perf_counter()
        completion = await adapter.complete(judge_request)
        latency_ms = int((time.perf_counter() - t0) * 1000)

        logger.info(
            "Evaluation | judge=%s responses=%d tokens_in=%d tokens_out=%d latency_ms=%d",
            self._judge_model, len(request.responses),
            completion.usage.prompt_tokens, completion.usage.completion_tokens, latency_ms,
        )
        return EvaluationResult(
            verdict=completion.text,
            usage=completion.usage,
            judge=self._judge_model,
            latency_ms=latency_ms,
        )
