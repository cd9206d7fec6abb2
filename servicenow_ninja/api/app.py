"""Main FastAPI application for ServiceNow Ninja."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

from servicenow_ninja import __version__
from servicenow_ninja.api.crawler import router as crawler_router
from servicenow_ninja.api.health import mask_redis_url
from servicenow_ninja.api.health import router as health_router
from servicenow_ninja.api.metrics import router as metrics_router
from servicenow_ninja.api.middleware import setup_middleware
from servicenow_ninja.api.search import router as search_router
from servicenow_ninja.core.config import settings
from servicenow_ninja.core.redis import initialize_redis
from servicenow_ninja.observability.tracing import setup_tracing as setup_base_tracing

LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"
LOG_DATE_FORMAT = "%H:%M:%S"

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format=LOG_FORMAT,
    datefmt=LOG_DATE_FORMAT,
)

logger = logging.getLogger(__name__)


def setup_tracing(app: FastAPI) -> None:
    """Instrument the app when tracing is configured (no-op otherwise)."""
    if not setup_base_tracing(settings.app_name, __version__):
        return

    excluded = ",".join(
        [
            r"^/$",
            r"^/api/v1/health$",
            r"^/api/v1/metrics$",
            r"^/docs$",
            r"^/openapi\.json$",
        ]
    )
    FastAPIInstrumentor.instrument_app(app, excluded_urls=excluded)
    logger.info("OpenTelemetry tracing initialized (FastAPI + libs instrumented)")


_app_startup_state = {}


def get_app_startup_state():
    """Get the current startup state for the application."""
    return _app_startup_state.copy()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """FastAPI lifespan context manager for startup and shutdown."""
    logger.info(f"Starting up {settings.app_name}...")

    global _app_startup_state

    try:
        redis_status = await initialize_redis()
        logger.info(f"Redis infrastructure status: {redis_status}")

        try:
            from servicenow_ninja.core.docket_tasks import register_crawler_tasks

            await register_crawler_tasks()
            logger.info("✅ Crawler tasks registered with Docket")
        except Exception as e:
            logger.warning(f"Failed to register crawler tasks: {e}")

        _app_startup_state = redis_status

        logger.info(f"Redis URL: {mask_redis_url(settings.redis_url.get_secret_value())}")
        logger.info(f"Embedding model: {settings.embedding_model}")
        logger.info(f"Vector namespace: {settings.vector_namespace}")
        if settings.crawler_api_key is None:
            logger.warning("CRAWLER_API_KEY is not set; POST /api/crawler will reject every call")

        logger.info("✅ Startup completed successfully")

    except Exception as e:
        logger.error(f"⚠️ Startup had issues but continuing: {e}")
        # Let the app start for health checks
        _app_startup_state = {"error": str(e)}

    yield

    logger.info("Shutting down FastAPI application...")


app = FastAPI(
    title=settings.app_name,
    description="ServiceNow documentation crawler and knowledge search API",
    version=__version__,
    lifespan=lifespan,
    debug=settings.debug,
)

setup_tracing(app)

setup_middleware(app)


@app.get("/", response_class=PlainTextResponse)
@app.head("/")
async def root_health_check():
    """Simple, fast health check for load balancer - no external dependencies."""
    return f"{settings.app_name} is running! 🚀"


app.include_router(health_router, prefix="/api/v1", tags=["Health"])
app.include_router(metrics_router, prefix="/api/v1", tags=["Metrics"])
app.include_router(crawler_router, tags=["Crawler"])
app.include_router(search_router, tags=["Search"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "servicenow_ninja.api.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
