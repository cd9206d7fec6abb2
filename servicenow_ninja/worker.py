#!/usr/bin/env python3
"""
Docket worker for background and scheduled crawls.
Run with: python -m servicenow_ninja.worker
"""

import asyncio
import logging
import sys
from datetime import timedelta

from docket import Worker

from servicenow_ninja.core.config import settings
from servicenow_ninja.core.docket_tasks import register_crawler_tasks
from servicenow_ninja.core.redis import DOCKET_NAME

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


async def main(concurrency: int = 1):
    """Run the crawler Docket worker."""
    if not settings.redis_url or not settings.redis_url.get_secret_value():
        logger.error("❌ Redis URL not configured")
        sys.exit(1)

    logger.info("Starting crawler Docket worker connected to Redis")

    try:
        await register_crawler_tasks()
        logger.info("✅ Crawler tasks registered with Docket")

        if settings.scheduled_crawl_enabled:
            logger.info(
                f"Scheduled crawl enabled every {settings.scheduled_crawl_interval_seconds}s"
            )

        logger.info("✅ Worker started, waiting for crawler tasks... Press Ctrl+C to stop")
        await Worker.run(
            docket_name=DOCKET_NAME,
            url=settings.redis_url.get_secret_value(),
            concurrency=concurrency,
            redelivery_timeout=timedelta(seconds=settings.task_timeout),
            tasks=["servicenow_ninja.core.docket_tasks:CRAWLER_TASK_COLLECTION"],
        )
    except Exception as e:
        logger.error(f"❌ Worker error: {e}")
        raise


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("👋 Crawler worker stopped by user")
