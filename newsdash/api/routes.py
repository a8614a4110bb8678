from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import PlainTextResponse, Response
import logging
from datetime import datetime, timezone
from typing import List, Optional

from ..models.articles import Category
from ..models.schemas import (
    ArticleResponse,
    HeadlinesResponse,
    HealthResponse,
    RefreshResponse,
    SchedulerStateResponse,
    SourceResponse,
)
from ..core.config import settings
from ..core.sources import SOURCES
from ..services.errors import NetworkError

logger = logging.getLogger(__name__)
router = APIRouter()
proxy_router = APIRouter()


def _scheduler_state(request: Request) -> SchedulerStateResponse:
    scheduler = request.app.state.scheduler
    return SchedulerStateResponse(
        state=scheduler.state.value,
        refreshing=scheduler.refreshing,
        interval_seconds=scheduler.interval,
        cycles_completed=request.app.state.store.cycles_completed,
        last_duration_ms=scheduler.last_duration_ms,
    )


@router.get("/headlines", response_model=HeadlinesResponse)
async def get_headlines(
    request: Request,
    category: Category = Category.WORLD,
    limit: Optional[int] = Query(None, ge=1, description="Maximum number of articles"),
):
    """Current cycle's articles for one category, fairly interleaved by source."""
    try:
        result = request.app.state.store.current
        cap = min(limit or settings.MAX_RENDER, settings.MAX_RENDER)
        mixed = result.for_category(category, limit=cap)
        return HeadlinesResponse(
            category=category,
            articles=[ArticleResponse.from_article(a) for a in mixed],
            total_count=len(mixed),
            generated_at=result.generated_at,
        )
    except Exception as e:
        logger.error(f"Error getting headlines: {e}")
        raise HTTPException(status_code=500, detail="Failed to get headlines")


@router.post("/refresh", response_model=RefreshResponse)
async def refresh_headlines(request: Request):
    """Run a refresh cycle now and publish its result."""
    scheduler = request.app.state.scheduler
    try:
        result = await scheduler.refresh_now()
        return RefreshResponse(
            total_count=len(result),
            source_counts=dict(result.source_counts),
            generated_at=result.generated_at,
            processing_time_ms=scheduler.last_duration_ms or 0,
        )
    except Exception as e:
        logger.error(f"Error refreshing headlines: {e}")
        raise HTTPException(status_code=500, detail="Failed to refresh headlines")


@router.get("/sources", response_model=List[SourceResponse])
async def list_sources():
    return [SourceResponse.from_source(s) for s in SOURCES]


@router.get("/scheduler", response_model=SchedulerStateResponse)
async def get_scheduler(request: Request):
    return _scheduler_state(request)


@router.post("/scheduler/pause", response_model=SchedulerStateResponse)
async def pause_scheduler(request: Request):
    """Stop scheduling new cycles (e.g. the dashboard tab was hidden)."""
    request.app.state.scheduler.pause()
    return _scheduler_state(request)


@router.post("/scheduler/resume", response_model=SchedulerStateResponse)
async def resume_scheduler(request: Request):
    """Refresh immediately and resume periodic cycles."""
    request.app.state.scheduler.resume()
    return _scheduler_state(request)


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    return HealthResponse(
        status="ok",
        message="Service is healthy",
        timestamp=datetime.now(timezone.utc),
        article_count=len(request.app.state.store.current),
    )


@proxy_router.get("/rss")
async def rss_proxy(request: Request, url: Optional[str] = None):
    """Same-origin feed proxy: return the target's body untouched."""
    if not url:
        return PlainTextResponse("Missing url param", status_code=400)
    try:
        body, _status = await request.app.state.proxy_fetcher.fetch(url)
    except NetworkError as e:
        logger.warning(f"Upstream fetch failed for {url}: {e.reason}")
        return PlainTextResponse(f"Upstream fetch failed: {e.reason}", status_code=502)
    return Response(content=body, media_type="text/xml")
