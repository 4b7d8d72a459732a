"""
Evaluation Package — comparative LLM-as-judge verdicts.

Usage::

    from thunderdome.evaluation import EvaluationRequester, EvaluationRequest, ModelResponse

    result = await EvaluationRequester(adapters=registry).evaluate(
        EvaluationRequest(original_user_prompt="...", responses=[...]),
    )
    print(result.verdict)
"""

from thunderdome.evaluation.judge import (
    EvaluationRequest,
    EvaluationRequester,
    EvaluationResult,
    ModelResponse,
)

__all__ = ["EvaluationRequest", "EvaluationRequester", "EvaluationResult", "ModelResponse"]
