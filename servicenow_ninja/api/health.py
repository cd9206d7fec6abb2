"""Health check endpoints."""

import json
import logging
from datetime import datetime, timezone
from urllib.parse import urlparse, urlunparse

from docket import Docket
from fastapi import APIRouter, Response

from servicenow_ninja import __version__
from servicenow_ninja.core.config import settings
from servicenow_ninja.core.redis import DOCKET_NAME, initialize_redis

logger = logging.getLogger(__name__)

router = APIRouter()


def mask_redis_url(url: str) -> str:
    """Hide the password part of a Redis URL."""
    parsed = urlparse(url)
    if not parsed.password:
        return url
    netloc = parsed.netloc.replace(f":{parsed.password}@", ":***@")
    return urlunparse(parsed._replace(netloc=netloc))


@router.get("/health", response_model=None)
@router.head("/health")
async def detailed_health_check():
    """Check Redis, the vector index and the task queue."""
    redis_status = await initialize_redis()

    docket_available = True
    try:
        async with Docket(url=settings.redis_url.get_secret_value(), name=DOCKET_NAME) as docket:
            workers = await docket.workers()
            workers_available = len(workers) > 0
            if not workers_available:
                logger.warning("No workers currently available - scheduled crawls will not run")
    except Exception as e:
        logger.warning(f"Worker status check failed: {e}")
        workers_available = False
        docket_available = False

    components = {
        "redis_connection": redis_status.get("redis_connection", "unavailable"),
        "vectorizer": redis_status.get("vectorizer", "unavailable"),
        "indices_created": redis_status.get("indices_created", "unavailable"),
        "vector_search": redis_status.get("vector_search", "unavailable"),
        "docket": "available" if docket_available else "unavailable",
        "workers": "available" if workers_available else "unavailable",
    }

    # Workers and a missing OpenAI key only degrade the service
    optional = {"workers", "vectorizer"}
    core_healthy = all(
        value == "available" for key, value in components.items() if key not in optional
    )
    all_healthy = core_healthy and all(components[key] == "available" for key in optional)

    if all_healthy:
        status, status_code = "healthy", 200
    elif core_healthy:
        status, status_code = "degraded", 200
    else:
        status, status_code = "unhealthy", 503

    response_data = {
        "status": status,
        "components": components,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": __version__,
        "settings": {
            "redis_url": mask_redis_url(settings.redis_url.get_secret_value()),
            "embedding_model": settings.embedding_model,
            "vector_namespace": settings.vector_namespace,
        },
    }

    return Response(
        content=json.dumps(response_data, indent=2),
        status_code=status_code,
        media_type="application/json",
    )
