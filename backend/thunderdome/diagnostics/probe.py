"""
Model connectivity probe.

Sends a tiny prompt to every catalogue model, one at a time, through the same
adapters the API uses, and prints a report grouped by provider.

Usage:
    python -m thunderdome.diagnostics.probe
    python -m thunderdome.diagnostics.probe --provider anthropic --timeout 10

A model whose provider has no API key is reported as skipped, not failed.
Exit status is 1 when any probed model failed.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from dataclasses import dataclass
from itertools import groupby
from typing import Literal, Sequence

from thunderdome.core.config import get_settings
from thunderdome.llm import (
    AdapterRegistry,
    ContentDelta,
    Done,
    Failed,
    ModelDefinition,
    ModelRegistry,
    Provider,
    StreamingRequest,
)

logger = logging.getLogger(__name__)

PROBE_PROMPT = "Reply with just the word 'ok'"

ProbeStatus = Literal["success", "error", "skipped"]

_ICONS = {"success": "[OK]", "error": "[X]", "skipped": "[--]"}


@dataclass(frozen=True)
class ProbeResult:
    model_id:          str
    model_name:        str
    provider:          str
    max_output_tokens: int | None
    status:            ProbeStatus
    latency_ms:        int | None = None
    response:          str | None = None
    error:             str | None = None


def probe_max_tokens(definition: ModelDefinition, cap: int) -> int | None:
    """
    Output cap for a probe call.

    The catalogue value is clamped to ``cap``; a null definition stays null
    (parameter omitted) except for Anthropic, which always needs one.
    """
    if definition.max_output_tokens is not None:
        return min(definition.max_output_tokens, cap)
    if definition.provider == Provider.ANTHROPIC:
        return cap
    return None


async def probe_model(
    adapters:   AdapterRegistry,
    definition: ModelDefinition,
    timeout:    float,
    cap:        int,
) -> ProbeResult:
    base = dict(
        model_id=definition.id,
        model_name=definition.name,
        provider=definition.provider.value,
        max_output_tokens=definition.max_output_tokens,
    )

    adapter = adapters.get(definition.provider)
    if adapter is None:
        return ProbeResult(**base, status="error", error=f"Unknown provider: {definition.provider}")

    request = StreamingRequest(
        provider=definition.provider,
        model_id=definition.id,
        user_prompt=PROBE_PROMPT,
        max_output_tokens=probe_max_tokens(definition, cap),
    )

    parts: list[str] = []
    async for event in adapter.stream(request, definition.id, timeout=timeout):
        if isinstance(event, ContentDelta):
            parts.append(event.text)
        elif isinstance(event, Done):
            return ProbeResult(
                **base,
                status="success",
                latency_ms=event.latency_ms,
                response="".join(parts)[:50],
            )
        elif isinstance(event, Failed):
            if event.not_configured:
                return ProbeResult(**base, status="skipped", error=event.message)
            return ProbeResult(**base, status="error", latency_ms=event.latency_ms, error=event.message)

    return ProbeResult(**base, status="error", error="Provider stream ended without a result")


async def run_probe(
    adapters: AdapterRegistry,
    models:   Sequence[ModelDefinition],
    timeout:  float = 30.0,
    cap:      int = 100,
) -> list[ProbeResult]:
    """Probe ``models`` sequentially, in catalogue order."""
    results: list[ProbeResult] = []
    for definition in models:
        logger.debug("Probe | model=%s", definition.id)
        results.append(await probe_model(adapters, definition, timeout, cap))
    return results


def format_report(results: Sequence[ProbeResult]) -> str:
    rule  = "=" * 100
    lines = [rule, "MODEL CONNECTIVITY REPORT", rule]

    for provider, group in groupby(results, key=lambda r: r.provider):
        rows    = list(group)
        working = sum(r.status == "success" for r in rows)
        failed  = sum(r.status == "error" for r in rows)
        skipped = sum(r.status == "skipped" for r in rows)

        lines.append("")
        lines.append(f"{provider.upper()} ({working} working, {failed} failed, {skipped} skipped)")
        lines.append("-" * 90)
        for r in rows:
            max_tok = "null" if r.max_output_tokens is None else str(r.max_output_tokens)
            latency = f"{r.latency_ms}ms" if r.latency_ms is not None else ""
            detail  = f"Error: {r.error[:40]}" if r.error else (r.response or "")
            lines.append(
                f"  {_ICONS[r.status]:<4} {r.model_name:<28} max:{max_tok:>6} {latency:>8}  {detail}"
            )

    total   = len(results)
    success = sum(r.status == "success" for r in results)
    errors  = sum(r.status == "error" for r in results)
    skipped = sum(r.status == "skipped" for r in results)

    lines += [
        "",
        rule,
        f"SUMMARY: {success}/{total} working | {errors} failed | {skipped} skipped",
        rule,
    ]
    return "\n".join(lines)


def main(argv: Sequence[str] | None = None) -> int:
    settings = get_settings()

    parser = argparse.ArgumentParser(description="Probe connectivity to every catalogue model")
    parser.add_argument(
        "--provider",
        choices=[p.value for p in Provider],
        help="Only probe models of this provider",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=settings.probe_timeout_seconds,
        help="Per-model timeout in seconds",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    adapters = AdapterRegistry.from_settings(settings)
    catalogue = ModelRegistry()
    models = (
        catalogue.by_provider(Provider(args.provider)) if args.provider else catalogue.all()
    )

    print("API keys configured:")
    for provider in Provider:
        print(f"  {provider.value:<10} {'yes' if adapters.has_credential(provider) else 'no'}")
    print(f"\nProbing {len(models)} model(s)...\n")

    results = asyncio.run(run_probe(
        adapters,
        models,
        timeout=args.timeout,
        cap=settings.probe_max_output_tokens,
    ))
    print(format_report(results))

    return 1 if any(r.status == "error" for r in results) else 0


if __name__ == "__main__":
    sys.exit(main())
