"""Docket task definitions for background and scheduled crawls."""

import logging
from datetime import timedelta
from typing import Any, Dict, Optional

from docket import ConcurrencyLimit, Docket, Perpetual
from ulid import ULID

from servicenow_ninja.core.config import settings
from servicenow_ninja.core.redis import DOCKET_NAME
from servicenow_ninja.pipelines.orchestrator import parse_step, run_crawler, run_crawler_step

logger = logging.getLogger(__name__)

# Crawler task registry
CRAWLER_TASK_COLLECTION = []


def crawler_task(func):
    """Decorator to register crawler tasks."""
    CRAWLER_TASK_COLLECTION.append(func)
    return func


@crawler_task
async def run_crawler_task(step: Optional[str] = None) -> Dict[str, Any]:
    """Run the crawl (or one step of it) on a worker.

    No retry: a failed crawl is recorded in the audit log and waits for the
    next trigger.
    """
    task_id = str(ULID())
    logger.info(f"Crawler task {task_id} starting (step={step or 'all'})")
    try:
        if step:
            result = await run_crawler_step(step)
        else:
            result = await run_crawler()
    except Exception as e:
        logger.error(f"Crawler task {task_id} failed: {e}")
        raise

    result["task_id"] = task_id
    logger.info(f"Crawler task {task_id} completed")
    return result


@crawler_task
async def scheduled_crawl(
    crawl_lock: str = "crawler",  # Argument the concurrency limit keys on
    perpetual: Perpetual = Perpetual(
        every=timedelta(seconds=settings.scheduled_crawl_interval_seconds),
        automatic=settings.scheduled_crawl_enabled,
    ),
    concurrency: ConcurrencyLimit = ConcurrencyLimit("crawl_lock", max_concurrent=1),
) -> Dict[str, Any]:
    """Full crawl that Docket reschedules every ``SCHEDULED_CRAWL_INTERVAL_SECONDS``.

    Only starts automatically when ``SCHEDULED_CRAWL_ENABLED`` is set. The
    concurrency limit keeps two workers from crawling at the same time.
    """
    logger.info("Running scheduled crawl")
    try:
        return await run_crawler()
    except Exception as e:
        logger.error(f"Scheduled crawl failed: {e}")
        raise


async def get_redis_url() -> str:
    """Get Redis URL for Docket."""
    return settings.redis_url.get_secret_value()


async def register_crawler_tasks() -> None:
    """Register all crawler tasks with Docket."""
    try:
        async with Docket(url=await get_redis_url(), name=DOCKET_NAME) as docket:
            for task in CRAWLER_TASK_COLLECTION:
                docket.register(task)
            logger.info(f"Registered {len(CRAWLER_TASK_COLLECTION)} crawler tasks with Docket")
    except Exception as e:
        logger.error(f"Failed to register crawler tasks: {e}")
        raise


async def enqueue_crawl(step: Optional[str] = None) -> str:
    """Queue ``run_crawler_task`` for a worker and return the execution key."""
    if step:
        step = parse_step(step).value
    async with Docket(url=await get_redis_url(), name=DOCKET_NAME) as docket:
        execution = await docket.add(run_crawler_task)(step=step)
    return execution.key
