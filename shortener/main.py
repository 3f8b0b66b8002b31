"""FastAPI application entry point for the link shortener service.

Application Lifecycle Diagram
=============================
::
    ┌──────────────┐
    │  uvicorn     │
    │  startup     │
    └──────┬───────┘
           ▼
    ┌──────────────┐
    │ create_app() │
    │ routes,      │
    │ handlers,    │
    │ /metrics     │
    └──────┬───────┘
           ▼
    ┌──────────────┐
    │ lifespan()   │
    │ startup:     │
    │ manager.     │
    │ initialize() │
    └──────┬───────┘
           ▼
    ┌──────────────┐
    │ Serve HTTP   │
    │ requests     │
    └──────┬───────┘
           ▼
    ┌──────────────┐
    │ lifespan()   │
    │ shutdown:    │
    │ drain clicks │
    │ close redis  │
    │ dispose db   │
    └──────────────┘

How to Use
===========
**Step 1 — Run with uvicorn**::
    uvicorn shortener.main:app --host 0.0.0.0 --port 8080

**Step 2 — Make API calls**::
    curl -X POST http://localhost:8080/shorten \
         -H "Content-Type: application/json" \
         -d '{"original_url": "https://example.com", "custom_alias": "promo"}'

    curl -i http://localhost:8080/s/promo
    curl http://localhost:8080/analytics/promo

Key Behaviours
===============
- Tables are created on startup for the postgres backend.
- Errors are answered with a flat ``{"error", "code", "message"}`` body.
- A malformed request body is answered with 400 ``invalid_request_body``.
- Pending clicks are drained before connections are closed on shutdown.

Configuration:
    Environment variables, see shortener/config.py.
"""

__all__ = ["app", "create_app", "lifespan"]

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from http import HTTPStatus

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.exceptions import HTTPException as StarletteHTTPException

from shortener.config import get_settings
from shortener.dependencies import ServiceManager, _service_manager, get_service_manager
from shortener.routes import router


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    manager: ServiceManager = app.state.service_manager
    # Startup
    await manager.initialize()
    yield
    # Shutdown
    await manager.cleanup()


def flat_error(message: str, code: str) -> dict[str, str]:
    return {"error": message, "code": code, "message": message}


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Serve ``HTTPException`` details as a flat error body instead of under ``detail``."""
    if isinstance(exc.detail, dict):
        content = exc.detail
    else:
        code = HTTPStatus(exc.status_code).phrase.lower().replace(" ", "_")
        content = flat_error(str(exc.detail), code)
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content=flat_error("invalid request body", "invalid_request_body"))


def create_app(manager: ServiceManager | None = None) -> FastAPI:
    """Build the application around ``manager`` (the process-wide one by default)."""
    manager = manager or _service_manager
    settings = manager.settings or get_settings()

    app = FastAPI(
        title=settings.APP_NAME,
        version="1.0.0",
        description="Short links with redirect analytics",
        lifespan=lifespan,
    )
    app.state.service_manager = manager
    if manager is not _service_manager:
        app.dependency_overrides[get_service_manager] = lambda: manager

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=False,
        should_respect_env_var=False,
    ).instrument(app).expose(app)

    app.include_router(router)
    return app


app = create_app()
