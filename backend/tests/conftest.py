"""
Root conftest.py — Shared fixtures for ALL tests (unit + integration)

Fixture hierarchy:
  function-scoped : scripted chat models, adapter registries, config store,
                    quota gate, FastAPI app with overrides, HTTP clients

Environment strategy:
  - Provider SDKs are never called.  Every adapter under test builds a
    ScriptedChatModel (a real LangChain BaseChatModel) instead of
    ChatOpenAI / ChatAnthropic / ChatGoogleGenerativeAI.
  - Saved configurations are written to pytest's tmp_path.
  - Sessions are real HS256 cookies signed with the test SESSION_SECRET.

How to run:
  pytest                          # all tests
  pytest -m unit                  # unit tests only (fast, no I/O)
  pytest -m fanout                # coordinator concurrency tests
  pytest -m integration           # full FastAPI stack via ASGITransport
"""

from __future__ import annotations

import asyncio
import os
from typing import Any, AsyncGenerator, AsyncIterator, Mapping

import pytest
import pytest_asyncio
from httpx import AsyncClient

# ─────────────────────────────────────────────────────────────────────────────
# Patch settings BEFORE any app imports so modules read test config
# ─────────────────────────────────────────────────────────────────────────────

os.environ.setdefault("AUTH_PASSWORD",               "arena-test-password")
os.environ.setdefault("SESSION_SECRET",              "test-session-secret-at-least-32-characters")
os.environ.setdefault("GUEST_DAILY_EXECUTION_LIMIT", "3")
os.environ.setdefault("APP_ENV",                     "development")
os.environ.setdefault("DEBUG",                       "true")

TEST_PASSWORD = os.environ["AUTH_PASSWORD"]

from langchain_core.callbacks import AsyncCallbackManagerForLLMRun, CallbackManagerForLLMRun  # noqa: E402
from langchain_core.language_models.chat_models import BaseChatModel  # noqa: E402
from langchain_core.messages import AIMessage, AIMessageChunk, BaseMessage  # noqa: E402
from langchain_core.outputs import ChatGeneration, ChatGenerationChunk, ChatResult  # noqa: E402

from thunderdome.llm.adapters import (  # noqa: E402
    AdapterRegistry,
    AnthropicAdapter,
    GoogleAdapter,
    OpenAIAdapter,
    ProviderAdapter,
)
from thunderdome.llm.registry import Provider  # noqa: E402


# ─────────────────────────────────────────────────────────────────────────────
# Scripted LangChain chat model
# ─────────────────────────────────────────────────────────────────────────────

def usage(prompt: int, completion: int) -> dict:
    """LangChain usage_metadata dict."""
    return {"input_tokens": prompt, "output_tokens": completion, "total_tokens": prompt + completion}


class ScriptedChatModel(BaseChatModel):
    """
    Deterministic stand-in for a provider chat model.

    chunks      text pieces streamed in order
    usage       usage_metadata attached to a trailing empty chunk
    error       raised after ``fail_after`` chunks (0 = before the first)
    delay       seconds to sleep before each chunk
    hang        never produce a chunk (for timeout / cancellation tests)
    """

    chunks:     list[str]      = []
    usage:      dict | None    = None
    error:      Any            = None
    fail_after: int            = 0
    delay:      float          = 0.0
    hang:       bool           = False
    calls:      list[list[BaseMessage]] = []
    cancelled:  list[bool]     = []

    @property
    def _llm_type(self) -> str:
        return "scripted"

    def _final_message(self) -> AIMessage:
        return AIMessage(content="".join(self.chunks), usage_metadata=self.usage)

    def _generate(
        self,
        messages: list[BaseMessage],
        stop: list[str] | None = None,
        run_manager: CallbackManagerForLLMRun | None = None,
        **kwargs: Any,
    ) -> ChatResult:
        self.calls.append(list(messages))
        if self.error is not None:
            raise self.error
        return ChatResult(generations=[ChatGeneration(message=self._final_message())])

    async def _agenerate(
        self,
        messages: list[BaseMessage],
        stop: list[str] | None = None,
        run_manager: AsyncCallbackManagerForLLMRun | None = None,
        **kwargs: Any,
    ) -> ChatResult:
        self.calls.append(list(messages))
        if self.hang:
            await asyncio.sleep(3600)
        if self.error is not None:
            raise self.error
        return ChatResult(generations=[ChatGeneration(message=self._final_message())])

    async def _astream(
        self,
        messages: list[BaseMessage],
        stop: list[str] | None = None,
        run_manager: AsyncCallbackManagerForLLMRun | None = None,
        **kwargs: Any,
    ) -> AsyncIterator[ChatGenerationChunk]:
        self.calls.append(list(messages))
        try:
            if self.hang:
                await asyncio.sleep(3600)

            for index, text in enumerate(self.chunks):
                if self.error is not None and index == self.fail_after:
                    raise self.error
                if self.delay:
                    await asyncio.sleep(self.delay)
                yield ChatGenerationChunk(message=AIMessageChunk(content=text))

            if self.error is not None:
                raise self.error

            if self.usage is not None:
                yield ChatGenerationChunk(
                    message=AIMessageChunk(content="", usage_metadata=self.usage),
                )
        except asyncio.CancelledError:
            self.cancelled.append(True)
            raise


def scripted_adapter_type(
    base:    type[ProviderAdapter],
    scripts: Mapping[str, ScriptedChatModel],
) -> type[ProviderAdapter]:
    """Subclass ``base`` so build_llm returns the script for the requested model id."""

    class _Scripted(base):  # type: ignore[valid-type, misc]
        built_kwargs: list[dict] = []

        def build_llm(self, request, streaming):
            type(self).built_kwargs.append(self.llm_kwargs(request, streaming))
            return scripts[request.model_id]

    _Scripted.built_kwargs = []
    _Scripted.__name__ = f"Scripted{base.__name__}"
    return _Scripted


_BASES: dict[Provider, type[ProviderAdapter]] = {
    Provider.OPENAI:    OpenAIAdapter,
    Provider.ANTHROPIC: AnthropicAdapter,
    Provider.GOOGLE:    GoogleAdapter,
}


def make_registry(
    scripts:     Mapping[str, ScriptedChatModel],
    configured:  tuple[Provider, ...] = tuple(Provider),
    timeout:     float | None = None,
) -> AdapterRegistry:
    """AdapterRegistry whose adapters stream from ``scripts``; only ``configured`` have keys."""
    return AdapterRegistry(
        credentials={p: ("test-key" if p in configured else "") for p in Provider},
        timeout=timeout,
        adapter_types={p: scripted_adapter_type(base, scripts) for p, base in _BASES.items()},
    )


async def collect(events: AsyncIterator) -> list:
    return [event async for event in events]


# ─────────────────────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def scripts() -> dict[str, ScriptedChatModel]:
    """One scripted model per catalogue id used across the API tests."""
    return {
        "gpt-4o": ScriptedChatModel(chunks=["Hel", "lo"], usage=usage(10, 2)),
        "claude-sonnet-4-5-20250929": ScriptedChatModel(chunks=["Bon", "jour"], usage=usage(12, 3)),
        "gemini-2.5-flash": ScriptedChatModel(chunks=["Hola"], usage=usage(8, 1)),
    }


@pytest.fixture
def adapter_registry(scripts) -> AdapterRegistry:
    return make_registry(scripts)


@pytest.fixture
def config_store(tmp_path):
    from thunderdome.storage.configs import ConfigStore
    return ConfigStore(tmp_path / "configs")


@pytest.fixture
def quota_gate():
    from thunderdome.services.quota import GuestQuotaGate
    return GuestQuotaGate(limit=3)


# ─────────────────────────────────────────────────────────────────────────────
# FastAPI test client with dependency overrides
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def app_with_overrides(adapter_registry, config_store, quota_gate):
    """
    FastAPI app with every provider-facing singleton overridden:
      - get_adapter_registry → scripted adapters (no provider SDK calls)
      - get_config_store     → tmp_path store
      - get_quota_gate       → fresh gate (limit 3)

    Session auth is NOT overridden; clients log in through /auth.
    """
    from thunderdome.api.dependencies import (
        get_adapter_registry,
        get_config_store,
        get_quota_gate,
    )
    from thunderdome.main import app

    app.dependency_overrides[get_adapter_registry] = lambda: adapter_registry
    app.dependency_overrides[get_config_store]     = lambda: config_store
    app.dependency_overrides[get_quota_gate]       = lambda: quota_gate

    yield app

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def async_client(app_with_overrides) -> AsyncGenerator[AsyncClient, None]:
    """Anonymous client (no session cookie)."""
    from httpx import ASGITransport
    transport = ASGITransport(app=app_with_overrides)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def user_client(async_client) -> AsyncClient:
    """Client holding a password-login session."""
    response = await async_client.post("/api/v1/auth/login", json={"password": TEST_PASSWORD})
    assert response.status_code == 200
    return async_client


@pytest_asyncio.fixture
async def guest_client(async_client) -> AsyncClient:
    """Client holding a guest session."""
    response = await async_client.post("/api/v1/auth/guest")
    assert response.status_code == 200
    return async_client
