"""
Unit Tests — EvaluationRequester
════════════════════════════════
  • Validation   — fewer than two responses / empty prompt → no provider call
  • Prompt       — original prompts, display-name labels, separators, rubric
  • Call         — exactly one non-streaming judge call, verdict + usage
  • Failures     — unconfigured judge, provider error propagated
"""

from __future__ import annotations

import pytest

from thunderdome.core.errors import (
    EvaluationValidationError,
    ProviderCallError,
    ProviderNotConfiguredError,
)
from thunderdome.evaluation import EvaluationRequest, EvaluationRequester, ModelResponse
from thunderdome.llm.registry import Provider
from tests.conftest import ScriptedChatModel, make_registry, usage

JUDGE = "gemini-2.5-flash"


def _request(n: int = 2, system: str | None = "You are a poet.") -> EvaluationRequest:
    responses = [
        ModelResponse(model_id="gpt-4o", content="Roses are red."),
        ModelResponse(model_id="claude-sonnet-4-5-20250929", content="Violets are blue."),
        ModelResponse(model_id="my-custom-model", content="Sugar is sweet."),
    ][:n]
    return EvaluationRequest(
        original_user_prompt="Write a couplet.",
        system_prompt=system,
        responses=responses,
    )


@pytest.fixture
def judge_model() -> ScriptedChatModel:
    return ScriptedChatModel(chunks=["**Winner**: GPT-4o"], usage=usage(420, 37))


@pytest.fixture
def requester(judge_model) -> EvaluationRequester:
    return EvaluationRequester(adapters=make_registry({JUDGE: judge_model}), judge_model=JUDGE)


@pytest.mark.unit
@pytest.mark.evaluation
class TestValidation:

    @pytest.mark.parametrize("n", [0, 1])
    async def test_fewer_than_two_responses_makes_no_call(self, requester, judge_model, n):
        with pytest.raises(EvaluationValidationError, match="at least 2"):
            await requester.evaluate(_request(n))
        assert judge_model.calls == []

    async def test_blank_prompt_rejected(self, requester, judge_model):
        request = EvaluationRequest(
            original_user_prompt="  ",
            responses=_request().responses,
        )
        with pytest.raises(EvaluationValidationError):
            await requester.evaluate(request)
        assert judge_model.calls == []


@pytest.mark.unit
@pytest.mark.evaluation
class TestPrompt:

    def test_includes_prompts_and_labelled_responses(self, requester):
        prompt = requester.build_prompt(_request(3))

        assert "## Original System Prompt\nYou are a poet." in prompt
        assert "## Original User Prompt\nWrite a couplet." in prompt
        assert "### GPT-4o\nRoses are red." in prompt
        assert "### Claude Sonnet 4.5\nViolets are blue." in prompt
        # Unknown ids fall back to the raw id
        assert "### my-custom-model\nSugar is sweet." in prompt

    def test_responses_are_separated_in_order(self, requester):
        prompt = requester.build_prompt(_request(2))
        first  = prompt.index("Roses are red.")
        sep    = prompt.index("\n\n---\n\n", first)
        second = prompt.index("Violets are blue.")
        assert first < sep < second

    @pytest.mark.parametrize("system", [None, ""])
    def test_missing_system_prompt_placeholder(self, requester, system):
        prompt = requester.build_prompt(_request(system=system))
        assert "(No system prompt provided)" in prompt

    def test_rubric_present(self, requester):
        prompt = requester.build_prompt(_request())
        for heading in ("**Summary**", "**Strengths & Weaknesses**", "**Comparison Criteria**",
                        "**Winner**", "**Recommendation**"):
            assert heading in prompt
        assert "(1-5 scale)" in prompt


@pytest.mark.unit
@pytest.mark.evaluation
class TestEvaluate:

    async def test_single_judge_call_returns_verdict_and_usage(self, requester, judge_model):
        result = await requester.evaluate(_request())

        assert result.verdict == "**Winner**: GPT-4o"
        assert result.usage.prompt_tokens == 420
        assert result.usage.completion_tokens == 37
        assert result.judge == JUDGE
        assert len(judge_model.calls) == 1
        # The whole composite prompt goes in one user turn
        (message,) = judge_model.calls[0]
        assert "Roses are red." in message.content

    async def test_judge_uses_no_output_cap(self, requester):
        await requester.evaluate(_request())
        adapter = requester._adapters.get(Provider.GOOGLE)
        assert "max_output_tokens" not in type(adapter).built_kwargs[-1]

    async def test_unconfigured_judge(self, judge_model):
        requester = EvaluationRequester(
            adapters=make_registry({JUDGE: judge_model}, configured=(Provider.OPENAI,)),
            judge_model=JUDGE,
        )
        assert requester.is_configured() is False
        with pytest.raises(ProviderNotConfiguredError):
            await requester.evaluate(_request())

    async def test_unknown_judge_provider(self, judge_model):
        requester = EvaluationRequester(
            adapters=make_registry({JUDGE: judge_model}),
            judge_provider="mistral",
            judge_model=JUDGE,
        )
        assert requester.is_configured() is False
        with pytest.raises(ProviderNotConfiguredError):
            await requester.evaluate(_request())

    async def test_provider_error_propagates(self):
        failing   = ScriptedChatModel(error=RuntimeError("503 model overloaded"))
        requester = EvaluationRequester(adapters=make_registry({JUDGE: failing}), judge_model=JUDGE)

        with pytest.raises(ProviderCallError, match="503 model overloaded"):
            await requester.evaluate(_request())
