"""FastAPI route definitions for the link shortener REST API.

API Endpoint Overview
=====================
::
    GET  /health
        └─ HealthResponse (200)

    POST /shorten
        ├─ ShortenRequest (request body)
        └─ ShortenResponse (201) or 400/409/500/503

    GET  /s/{code}
        └─ 302 Redirect or 404

    GET  /analytics/{code}
        └─ Analytics (200) or 404

Request Flow Diagram
====================
::
    ┌─────────────┐
    │  HTTP       │
    │  Request    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Inject      │
    │ Context &   │
    │ Service     │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Call Service│──── ShortenerError ──► HTTPException
    └──────┬──────┘                        {"error", "code", "message"}
           ▼
    ┌─────────────┐
    │ Serialize   │
    │ Response    │
    └─────────────┘

Key Behaviours
===============
- Service errors carry their own HTTP status and machine code; routes only
  translate them into ``HTTPException``.
- Redirects use 302 so every visit comes back through the resolver.
- ``recent_clicks`` is omitted from analytics when it could not be fetched.
"""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import RedirectResponse

from shortener.allocator import CodeAllocator
from shortener.analytics import AnalyticsAggregator
from shortener.dependencies import (
    RequestContext,
    ServiceManager,
    get_aggregator,
    get_allocator,
    get_request_context,
    get_resolver,
    get_service_manager,
)
from shortener.enums import HealthStatus
from shortener.errors import ShortenerError
from shortener.resolver import RedirectResolver
from shortener.schemas import Analytics, HealthResponse, ShortenRequest, ShortenResponse

__all__ = ["router", "error_detail"]

router = APIRouter()


def error_detail(exc: ShortenerError) -> dict[str, str]:
    """Flat error body: ``{"error", "code", "message"}``."""
    return {"error": exc.message, "code": exc.code, "message": exc.message}


def _http_error(exc: ShortenerError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=error_detail(exc))


@router.get("/health", response_model=HealthResponse, tags=["health"])
async def health_check(
    ctx: RequestContext = Depends(get_request_context),
    manager: ServiceManager = Depends(get_service_manager),
) -> HealthResponse:
    db_status = await manager.check_database()
    cache_status = await manager.check_cache()

    status = (
        HealthStatus.HEALTHY
        if db_status == HealthStatus.HEALTHY and cache_status != HealthStatus.UNHEALTHY
        else HealthStatus.UNHEALTHY
    )
    ctx.logger.debug(f"Health check completed: {status.value}")
    return HealthResponse(status=status, database=db_status, cache=cache_status)


@router.post("/shorten", response_model=ShortenResponse, status_code=201, tags=["links"])
async def shorten(
    payload: ShortenRequest,
    ctx: RequestContext = Depends(get_request_context),
    allocator: CodeAllocator = Depends(get_allocator),
) -> ShortenResponse:
    ctx.add_tag("link_creation")
    ctx.logger.info(
        f"Shortening requested: {payload.original_url}",
        extra={"operation": "shorten", "custom_alias": payload.custom_alias},
    )

    try:
        created = await allocator.create_link(payload.original_url, payload.custom_alias)
    except ShortenerError as exc:
        ctx.logger.warning(
            f"Shortening failed: {exc.message}",
            extra={"operation": "shorten", "error": exc.code, "duration_ms": ctx.get_duration()},
        )
        raise _http_error(exc) from exc

    ctx.logger.info(
        f"Link created: {created.link.code}",
        extra={"operation": "shorten", "link_id": created.link.id, "duration_ms": ctx.get_duration()},
    )
    return ShortenResponse(
        short_url=allocator.build_short_url(created.link.code),
        original_url=created.link.original_url,
    )


@router.get("/s/{code}", tags=["redirect"])
async def redirect(
    code: str,
    ctx: RequestContext = Depends(get_request_context),
    resolver: RedirectResolver = Depends(get_resolver),
) -> RedirectResponse:
    ctx.add_tag("redirect")

    try:
        resolution = await resolver.resolve(code, ctx.client)
    except ShortenerError as exc:
        ctx.logger.warning(
            f"Redirect failed for {code}: {exc.message}",
            extra={"operation": "redirect", "error": exc.code, "duration_ms": ctx.get_duration()},
        )
        raise _http_error(exc) from exc

    ctx.logger.info(
        f"Redirect {code} -> {resolution.original_url}",
        extra={
            "operation": "redirect",
            "cache_hit": resolution.cache_hit,
            "click_recorded": resolution.click.ok,
            "duration_ms": ctx.get_duration(),
        },
    )
    return RedirectResponse(url=resolution.original_url, status_code=302)


@router.get(
    "/analytics/{code}",
    response_model=Analytics,
    response_model_exclude_none=True,
    tags=["analytics"],
)
async def analytics(
    code: str,
    ctx: RequestContext = Depends(get_request_context),
    aggregator: AnalyticsAggregator = Depends(get_aggregator),
) -> Analytics:
    try:
        result = await aggregator.aggregate(code)
    except ShortenerError as exc:
        ctx.logger.warning(
            f"Analytics failed for {code}: {exc.message}",
            extra={"operation": "analytics", "error": exc.code, "duration_ms": ctx.get_duration()},
        )
        raise _http_error(exc) from exc

    ctx.logger.info(
        f"Analytics served for {code}: {result.total_clicks} clicks",
        extra={"operation": "analytics", "duration_ms": ctx.get_duration()},
    )
    return result
