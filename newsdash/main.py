from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import uvicorn
from contextlib import asynccontextmanager
import logging
from typing import Optional

from .api.routes import proxy_router, router as api_router
from .core.config import settings
from .core.sources import SOURCES
from .services.fetcher import TimeBoundedFetcher
from .services.news_aggregator import NewsAggregator, news_aggregator
from .services.scheduler import HeadlineStore, RefreshScheduler

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(
    aggregator: Optional[NewsAggregator] = None,
    proxy_fetcher: Optional[TimeBoundedFetcher] = None,
    auto_refresh: Optional[bool] = None,
) -> FastAPI:
    """Build the API around one aggregator, one store and one scheduler."""
    aggregator = aggregator or news_aggregator
    # The proxy endpoint always fetches targets directly.
    proxy_fetcher = proxy_fetcher or TimeBoundedFetcher(proxy_url="")
    auto_refresh = settings.AUTO_REFRESH if auto_refresh is None else auto_refresh

    store = HeadlineStore()
    scheduler = RefreshScheduler(aggregator, store, SOURCES)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown logic for the FastAPI app."""
        logger.info(f"Starting NewsDash with {len(SOURCES)} sources")
        if auto_refresh:
            scheduler.start()
        try:
            yield
        finally:
            await scheduler.stop()
            try:
                await aggregator.close()
                await proxy_fetcher.close()
            except Exception as e:
                logger.warning(f"Error closing HTTP sessions: {e}")
            logger.info("Shutting down NewsDash")

    app = FastAPI(
        title="NewsDash - Resilient Headline Aggregator",
        description="Aggregates WORLD, US and CYBER headlines from unreliable syndication feeds",
        version="1.0.0",
        debug=settings.DEBUG,
        lifespan=lifespan,
    )
    app.state.store = store
    app.state.scheduler = scheduler
    app.state.aggregator = aggregator
    app.state.proxy_fetcher = proxy_fetcher

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
        max_age=600,
    )

    @app.get("/health")
    async def health_check():
        return {"status": "ok", "message": "Service is healthy"}

    app.include_router(api_router, prefix="/api")
    app.include_router(proxy_router)
    return app


app = create_app()

# Dev entry point
if __name__ == "__main__":
    uvicorn.run(
        "newsdash.main:app",
        host="0.0.0.0",
        port=settings.PORT,
        reload=settings.is_development,
    )
