"""Top-level `worker` CLI command."""

from __future__ import annotations

import asyncio

import click

from servicenow_ninja.core.config import settings


@click.command()
@click.option("--concurrency", "-c", default=1, help="Number of concurrent tasks")
@click.option("--metrics-port", default=9101, help="Port for the Prometheus metrics server")
def worker(concurrency: int, metrics_port: int):
    """Start the background crawl worker."""

    async def _worker():
        import logging

        from prometheus_client import start_http_server

        from servicenow_ninja import __version__
        from servicenow_ninja.core.redis import create_indices
        from servicenow_ninja.observability.tracing import setup_tracing
        from servicenow_ninja.worker import main as run_worker

        logging.basicConfig(
            level=getattr(logging, settings.log_level.upper(), logging.INFO),
            format="%(asctime)s %(name)s %(levelname)s %(message)s",
            datefmt="%H:%M:%S",
        )
        logger = logging.getLogger(__name__)

        setup_tracing("servicenow-ninja-worker", __version__)

        try:
            start_http_server(metrics_port)
            logger.info(f"Prometheus metrics server started on :{metrics_port}")
        except OSError as e:
            logger.warning(f"Failed to start Prometheus metrics server in worker: {e}")

        if await create_indices():
            logger.info("✅ Vector index initialized")
        else:
            logger.warning("⚠️ Failed to create the vector index")

        await run_worker(concurrency=concurrency)

    try:
        asyncio.run(_worker())
    except KeyboardInterrupt:
        click.echo("\nCrawler worker stopped by user")
