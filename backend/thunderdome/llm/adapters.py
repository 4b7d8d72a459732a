"""
Provider Adapters — one LangChain chat model per backend, one event contract.

Each adapter turns a StreamingRequest into a provider-native LangChain call
and normalizes the response stream into::

    ContentDelta* (Done | Failed)

Per-provider request shaping lives entirely inside the adapter:

  OpenAI     reasoning models (o1*, o3*, gpt-5*) take no system message;
             the system prompt is folded into the user turn.
             max_tokens is sent only when the model defines one.
  Anthropic  max_tokens is mandatory; a null definition becomes 8192.
  Google     max_output_tokens is sent only when the model defines one.

  All three omit the system-level field when the system prompt is empty.

Failure policy:
  Nothing raised inside an adapter's stream() escapes it.  Network errors,
  auth rejections, malformed payloads and timeouts all become a single
  Failed event.  Cancellation is the exception: CancelledError propagates
  so the coordinator can tear the task down, and no further events follow.

  Adapters never retry (max_retries=0 on every client) — a failed slot
  is reported, not silently re-run.

The AdapterRegistry constructs each adapter lazily, at most once per process,
and hands the same read-only instance to every concurrent call.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from abc import ABC, abstractmethod
from contextlib import aclosing
from typing import Any, AsyncIterator, Mapping

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessageChunk, BaseMessage, HumanMessage, SystemMessage

from thunderdome.core.errors import ProviderCallError, ProviderNotConfiguredError
from thunderdome.llm.events import (
    Completion,
    ContentDelta,
    Done,
    Failed,
    NormalizedEvent,
    StreamingRequest,
    TokenUsage,
)
from thunderdome.llm.registry import Provider

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _elapsed_ms(t0: float) -> int:
    return int((time.perf_counter() - t0) * 1000)


def _content_text(content: Any) -> str:
    """
    Flatten LangChain message content to plain text.

    Content is usually a str, but some providers stream a list of content
    blocks ({"type": "text", "text": ...}, thinking blocks, etc.).
    """
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(block.get("text", ""))
        return "".join(parts)
    return ""


def _usage_from_message(message: BaseMessage | None) -> TokenUsage:
    """
    Provider-reported usage when LangChain surfaced it, otherwise whatever the
    raw response metadata carries.  Missing everywhere → zeros.
    """
    if message is None:
        return TokenUsage()

    usage_metadata = getattr(message, "usage_metadata", None)
    if usage_metadata:
        return TokenUsage.from_usage_metadata(usage_metadata)

    raw = message.response_metadata.get("usage") or message.response_metadata.get("token_usage")
    if isinstance(raw, dict):
        prompt     = int(raw.get("prompt_tokens") or raw.get("input_tokens") or 0)
        completion = int(raw.get("completion_tokens") or raw.get("output_tokens") or 0)
        total      = int(raw.get("total_tokens") or prompt + completion)
        return TokenUsage(prompt_tokens=prompt, completion_tokens=completion, total_tokens=total)

    return TokenUsage()


def _describe(exc: BaseException) -> str:
    text = str(exc).strip()
    return text or type(exc).__name__


async def _next_chunk(iterator: AsyncIterator[Any], deadline: float | None) -> Any:
    """Await the next stream chunk, bounded by an absolute monotonic deadline."""
    if deadline is None:
        return await iterator.__anext__()
    remaining = deadline - time.monotonic()
    if remaining <= 0:
        raise asyncio.TimeoutError
    return await asyncio.wait_for(iterator.__anext__(), timeout=remaining)


# ---------------------------------------------------------------------------
# ProviderAdapter
# ---------------------------------------------------------------------------

class ProviderAdapter(ABC):
    """
    Base class: streaming + non-streaming calls against one provider.

    Subclasses implement only request shaping (build_messages / llm_kwargs /
    build_llm); the event normalization and failure containment are shared.
    """

    provider:     Provider
    display_name: str

    def __init__(self, api_key: str = "", timeout: float | None = None) -> None:
        self._api_key = api_key
        self._timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    @property
    def not_configured_message(self) -> str:
        return f"{self.display_name} client not configured"

    # -----------------------------------------------------------------------
    # Request shaping (provider-specific)
    # -----------------------------------------------------------------------

    def build_messages(self, request: StreamingRequest) -> list[BaseMessage]:
        """[SystemMessage?, HumanMessage] — system omitted when empty."""
        messages: list[BaseMessage] = []
        if request.system_prompt:
            messages.append(SystemMessage(content=request.system_prompt))
        messages.append(HumanMessage(content=request.user_prompt))
        return messages

    @abstractmethod
    def llm_kwargs(self, request: StreamingRequest, streaming: bool) -> dict[str, Any]:
        """Constructor kwargs for the provider's LangChain chat model."""

    @abstractmethod
    def build_llm(self, request: StreamingRequest, streaming: bool) -> BaseChatModel:
        """Instantiate the LangChain chat model for one call."""

    # -----------------------------------------------------------------------
    # Streaming
    # -----------------------------------------------------------------------

    async def stream(
        self,
        request:         StreamingRequest,
        correlation_key: str,
        timeout:         float | None = None,
    ) -> AsyncIterator[NormalizedEvent]:
        """
        Stream one completion as normalized events.

        Yields ContentDelta per non-empty chunk, then exactly one Done or
        Failed.  ``timeout`` overrides the adapter default; None = no deadline.
        """
        t0 = time.perf_counter()

        if not self.configured:
            yield Failed(
                correlation_key=correlation_key,
                message=self.not_configured_message,
                latency_ms=_elapsed_ms(t0),
                not_configured=True,
            )
            return

        limit    = timeout if timeout is not None else self._timeout
        deadline = None if limit is None else time.monotonic() + limit
        final: AIMessageChunk | None = None

        try:
            llm      = self.build_llm(request, streaming=True)
            messages = self.build_messages(request)

            async with aclosing(llm.astream(messages)) as chunks:
                iterator = chunks.__aiter__()
                while True:
                    try:
                        chunk = await _next_chunk(iterator, deadline)
                    except StopAsyncIteration:
                        break

                    final = chunk if final is None else final + chunk
                    text  = _content_text(chunk.content)
                    if text:
                        yield ContentDelta(correlation_key=correlation_key, text=text)

        except asyncio.TimeoutError:
            message = f"{request.model_id}: timed out after {limit}s"
            logger.warning("%sAdapter | %s", self.display_name, message)
            yield Failed(correlation_key=correlation_key, message=message, latency_ms=_elapsed_ms(t0))
            return

        except Exception as exc:
            logger.warning(
                "%sAdapter | model=%s stream failed: %s: %s",
                self.display_name, request.model_id, type(exc).__name__, exc,
            )
            yield Failed(correlation_key=correlation_key, message=_describe(exc), latency_ms=_elapsed_ms(t0))
            return

        usage = _usage_from_message(final)
        yield Done(correlation_key=correlation_key, usage=usage, latency_ms=_elapsed_ms(t0))

    # -----------------------------------------------------------------------
    # Non-streaming
    # -----------------------------------------------------------------------

    async def complete(self, request: StreamingRequest, timeout: float | None = None) -> Completion:
        """
        One blocking completion (evaluation judge, diagnostics probe).

        Raises:
            ProviderNotConfiguredError: no credential for this provider.
            ProviderCallError:          the call failed or timed out.
        """
        if not self.configured:
            raise ProviderNotConfiguredError(self.not_configured_message)

        limit = timeout if timeout is not None else self._timeout
        llm   = self.build_llm(request, streaming=False)

        try:
            call = llm.ainvoke(self.build_messages(request))
            result = await (asyncio.wait_for(call, timeout=limit) if limit is not None else call)
        except asyncio.TimeoutError as exc:
            raise ProviderCallError(
                self.provider.value, request.model_id, f"{request.model_id}: timed out after {limit}s",
            ) from exc
        except Exception as exc:
            raise ProviderCallError(self.provider.value, request.model_id, _describe(exc)) from exc

        return Completion(text=_content_text(result.content), usage=_usage_from_message(result))


# ---------------------------------------------------------------------------
# Provider-specific adapters
# ---------------------------------------------------------------------------

class OpenAIAdapter(ProviderAdapter):
    provider     = Provider.OPENAI
    display_name = "OpenAI"

    REASONING_PREFIXES: tuple[str, ...] = ("o1", "o3", "gpt-5")

    @classmethod
    def is_reasoning_model(cls, model_id: str) -> bool:
        return model_id.startswith(cls.REASONING_PREFIXES)

    def build_messages(self, request: StreamingRequest) -> list[BaseMessage]:
        if not self.is_reasoning_model(request.model_id):
            return super().build_messages(request)

        content = (
            f"{request.system_prompt}\n\n{request.user_prompt}"
            if request.system_prompt
            else request.user_prompt
        )
        return [HumanMessage(content=content)]

    def llm_kwargs(self, request: StreamingRequest, streaming: bool) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model":        request.model_id,
            "api_key":      self._api_key,
            "streaming":    streaming,
            "stream_usage": True,    # stream_options.include_usage → usage on final chunk
            "max_retries":  0,
        }
        if request.max_output_tokens is not None:
            kwargs["max_tokens"] = request.max_output_tokens
        return kwargs

    def build_llm(self, request: StreamingRequest, streaming: bool) -> BaseChatModel:
        from langchain_openai import ChatOpenAI
        return ChatOpenAI(**self.llm_kwargs(request, streaming))


class AnthropicAdapter(ProviderAdapter):
    provider     = Provider.ANTHROPIC
    display_name = "Anthropic"

    def __init__(
        self,
        api_key:            str = "",
        timeout:            float | None = None,
        default_max_tokens: int = 8192,
    ) -> None:
        super().__init__(api_key=api_key, timeout=timeout)
        self._default_max_tokens = default_max_tokens

    def llm_kwargs(self, request: StreamingRequest, streaming: bool) -> dict[str, Any]:
        max_tokens = (
            request.max_output_tokens
            if request.max_output_tokens is not None
            else self._default_max_tokens
        )
        return {
            "model":       request.model_id,
            "api_key":     self._api_key,
            "max_tokens":  max_tokens,
            "streaming":   streaming,
            "max_retries": 0,
        }

    def build_llm(self, request: StreamingRequest, streaming: bool) -> BaseChatModel:
        from langchain_anthropic import ChatAnthropic
        return ChatAnthropic(**self.llm_kwargs(request, streaming))


class GoogleAdapter(ProviderAdapter):
    provider     = Provider.GOOGLE
    display_name = "Google AI"

    def llm_kwargs(self, request: StreamingRequest, streaming: bool) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model":          request.model_id,
            "google_api_key": self._api_key,
            "max_retries":    0,
        }
        if request.max_output_tokens is not None:
            kwargs["max_output_tokens"] = request.max_output_tokens
        return kwargs

    def build_llm(self, request: StreamingRequest, streaming: bool) -> BaseChatModel:
        from langchain_google_genai import ChatGoogleGenerativeAI
        return ChatGoogleGenerativeAI(**self.llm_kwargs(request, streaming))


# ---------------------------------------------------------------------------
# AdapterRegistry
# ---------------------------------------------------------------------------

class AdapterRegistry:
    """
    Provider → adapter lookup with lazy, thread-safe, build-once construction.

    Usage::

        registry = AdapterRegistry.from_settings(settings)
        adapter  = registry.get("anthropic")     # None for unknown providers
    """

    ADAPTER_TYPES: dict[Provider, type[ProviderAdapter]] = {
        Provider.OPENAI:    OpenAIAdapter,
        Provider.ANTHROPIC: AnthropicAdapter,
        Provider.GOOGLE:    GoogleAdapter,
    }

    def __init__(
        self,
        credentials:        Mapping[Provider, str] | None = None,
        timeout:            float | None = None,
        default_max_tokens: int = 8192,
        adapter_types:      Mapping[Provider, type[ProviderAdapter]] | None = None,
    ) -> None:
        self._credentials        = dict(credentials or {})
        self._timeout            = timeout
        self._default_max_tokens = default_max_tokens
        self._types              = dict(adapter_types or self.ADAPTER_TYPES)
        self._adapters: dict[Provider, ProviderAdapter] = {}
        self._lock               = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Any) -> "AdapterRegistry":
        return cls(
            credentials={
                Provider.OPENAI:    settings.openai_api_key,
                Provider.ANTHROPIC: settings.anthropic_api_key,
                Provider.GOOGLE:    settings.google_ai_api_key,
            },
            timeout=settings.stream_timeout_seconds,
            default_max_tokens=settings.anthropic_default_max_tokens,
        )

    @staticmethod
    def _coerce(provider: Provider | str) -> Provider | None:
        try:
            return Provider(provider)
        except ValueError:
            return None

    def has_credential(self, provider: Provider | str) -> bool:
        resolved = self._coerce(provider)
        return bool(resolved and self._credentials.get(resolved))

    def get(self, provider: Provider | str) -> ProviderAdapter | None:
        resolved = self._coerce(provider)
        if resolved is None or resolved not in self._types:
            return None

        adapter = self._adapters.get(resolved)
        if adapter is not None:
            return adapter

        with self._lock:
            adapter = self._adapters.get(resolved)
            if adapter is None:
                adapter = self._build(resolved)
                self._adapters[resolved] = adapter
                logger.debug(
                    "AdapterRegistry | built adapter provider=%s configured=%s",
                    resolved.value, adapter.configured,
                )
        return adapter

    def _build(self, provider: Provider) -> ProviderAdapter:
        adapter_type = self._types[provider]
        api_key      = self._credentials.get(provider, "")
        if issubclass(adapter_type, AnthropicAdapter):
            return adapter_type(
                api_key=api_key,
                timeout=self._timeout,
                default_max_tokens=self._default_max_tokens,
            )
        return adapter_type(api_key=api_key, timeout=self._timeout)
