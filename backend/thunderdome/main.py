"""
Thunderdome API — application entry point

One prompt, up to three models, one SSE stream back.

Routing:
  /api/v1/auth/*      password or guest session cookie
  /api/v1/models      selectable catalogue
  /api/v1/execute     concurrent fan-out, text/event-stream
  /api/v1/evaluate    judge model compares finished responses
  /api/v1/configs/*   saved prompt + selection + results
  /health             unauthenticated liveness, provider key summary

Middleware, outermost first:
  request log + X-Request-ID  →  CORS  →  GZip (skipped for /execute so frames are flushed one by one)

Every 4xx/5xx body is an ErrorResponse; route handlers raise HTTPException
with ApiErrors details, the handlers below cover validation and anything
unexpected.
"""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.types import ASGIApp, Receive, Scope, Send

from thunderdome.api.dependencies import get_adapter_registry, get_quota_gate
from thunderdome.api.v1 import auth, configs, evaluate, execute, models
from thunderdome.core.config import settings
from thunderdome.llm import Provider
from thunderdome.schemas.errors import ErrorDetail, ErrorResponse

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"

STREAMING_PATHS = (f"{API_PREFIX}/execute",)

DEV_ORIGINS  = ["http://localhost:3000", "http://127.0.0.1:3000"]
PROD_ORIGINS = ["https://thunderdome.app"]


def provider_summary() -> dict[str, bool]:
    adapters = get_adapter_registry()
    return {provider.value: adapters.has_credential(provider) for provider in Provider}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    summary = provider_summary()
    logger.info(
        "Startup | env=%s providers=%s judge=%s/%s guest_limit=%d",
        settings.app_env,
        ",".join(f"{name}:{'on' if ok else 'off'}" for name, ok in summary.items()),
        settings.judge_provider, settings.judge_model,
        settings.guest_daily_execution_limit,
    )
    if not any(summary.values()):
        logger.warning("Startup | no provider API keys set; every slot will fail as not configured")
    if settings.uses_default_session_secret:
        if settings.is_production:
            raise RuntimeError("SESSION_SECRET must be set in production; the default value can forge sessions")
        logger.warning("Startup | SESSION_SECRET is the built-in default; sessions can be forged")
    if not settings.auth_password:
        logger.warning("Startup | AUTH_PASSWORD is not set; only guest sessions are possible")

    yield

    removed = get_quota_gate().cleanup()
    logger.info("Shutdown | stale guest records dropped=%d", removed)


# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------

class StreamingAwareGZipMiddleware(GZipMiddleware):
    """GZipMiddleware that passes streaming routes through uncompressed."""

    def __init__(self, app: ASGIApp, minimum_size: int = 500, skip_paths: tuple[str, ...] = ()) -> None:
        super().__init__(app, minimum_size=minimum_size)
        self.skip_paths = skip_paths

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http" and scope["path"] in self.skip_paths:
            await self.app(scope, receive, send)
            return
        await super().__call__(scope, receive, send)


def _install_middleware(app: FastAPI) -> None:
    # add_middleware wraps: the last one added runs first
    app.add_middleware(StreamingAwareGZipMiddleware, minimum_size=1024, skip_paths=STREAMING_PATHS)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=PROD_ORIGINS if settings.is_production else DEV_ORIGINS,
        allow_credentials=True,   # session cookie
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
    )

    @app.middleware("http")
    async def tag_and_log(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        t0 = time.perf_counter()

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        if request.url.path != "/health":
            # /execute returns as soon as headers are ready; the fan-out logs its own totals
            logger.info(
                "HTTP | %s %s status=%d ms=%.1f request_id=%s",
                request.method, request.url.path, response.status_code,
                (time.perf_counter() - t0) * 1000, request_id,
            )
        return response


# ---------------------------------------------------------------------------
# Error handlers
# ---------------------------------------------------------------------------

def _error_json(status_code: int, body: ErrorResponse, request_id: str | None = None) -> JSONResponse:
    headers = {"X-Request-ID": request_id} if request_id else None
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"), headers=headers)


def _install_error_handlers(app: FastAPI) -> None:

    @app.exception_handler(RequestValidationError)
    async def on_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        details = []
        for err in exc.errors():
            # drop the leading "body" / "query" segment so field reads like the JSON path
            loc = [str(part) for part in err["loc"][1:]] or [str(part) for part in err["loc"]]
            details.append(ErrorDetail(field=".".join(loc), message=err["msg"], code="VALIDATION_ERROR"))

        return _error_json(
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            ErrorResponse(
                error_code="VALIDATION_ERROR",
                message="Request body did not match the expected schema.",
                details=details,
                request_id=request.headers.get("X-Request-ID"),
            ),
        )

    @app.exception_handler(Exception)
    async def on_unhandled(request: Request, exc: Exception) -> JSONResponse:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        logger.exception("HTTP | unhandled %s on %s request_id=%s", type(exc).__name__, request.url.path, request_id)
        return _error_json(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            ErrorResponse(error_code="INTERNAL_ERROR", message="Internal server error.", request_id=request_id),
            request_id=request_id,
        )


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def create_app() -> FastAPI:
    show_docs = not settings.is_production

    app = FastAPI(
        title="Thunderdome",
        summary="Side-by-side LLM comparison",
        description="Stream one prompt to up to three models concurrently and let a judge model compare them.",
        version="1.0.0",
        docs_url=f"{API_PREFIX}/docs" if show_docs else None,
        redoc_url=None,
        openapi_url=f"{API_PREFIX}/openapi.json" if show_docs else None,
        lifespan=lifespan,
    )

    _install_middleware(app)
    _install_error_handlers(app)

    for module in (auth, models, execute, evaluate, configs):
        app.include_router(module.router, prefix=API_PREFIX)

    @app.get("/health", tags=["Operations"], summary="Liveness probe (no provider calls)")
    async def health() -> dict:
        return {"status": "ok", "providers": provider_summary()}

    return app


app = create_app()


def run() -> None:
    """Development server: ``thunderdome-api`` or ``python -m thunderdome.main``."""
    import uvicorn

    uvicorn.run(
        "thunderdome.main:app",
        host="0.0.0.0",
        port=8000,
        reload=not settings.is_production,
        log_level="debug" if settings.debug else "info",
    )


if __name__ == "__main__":
    run()
