"""Prometheus metrics endpoint."""

import logging
from typing import Dict, Optional

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse
from prometheus_client import generate_latest

from servicenow_ninja.core.keys import RedisKeys
from servicenow_ninja.core.redis import get_redis_client, test_redis_connection, test_vector_search

logger = logging.getLogger(__name__)

router = APIRouter()


def format_prometheus_metric(
    name: str, value: float, labels: Optional[Dict[str, str]] = None, help_text: str = None
) -> str:
    """Format a gauge in Prometheus exposition format."""
    lines = []
    if help_text:
        lines.append(f"# HELP {name} {help_text}")
        lines.append(f"# TYPE {name} gauge")

    if labels:
        label_str = ",".join(f'{k}="{v}"' for k, v in labels.items())
        lines.append(f"{name}{{{label_str}}} {value}")
    else:
        lines.append(f"{name} {value}")
    return "\n".join(lines)


async def get_store_gauges() -> Dict[str, Dict]:
    """Point-in-time gauges read from Redis."""
    gauges: Dict[str, Dict] = {}

    redis_ok = await test_redis_connection()
    gauges["servicenow_ninja_redis_connection_status"] = {
        "value": 1 if redis_ok else 0,
        "help": "Redis connection status (1=connected, 0=disconnected)",
    }
    if not redis_ok:
        return gauges

    index_ok = await test_vector_search()
    gauges["servicenow_ninja_vector_index_status"] = {
        "value": 1 if index_ok else 0,
        "help": "Vector index status (1=exists, 0=missing)",
    }

    try:
        client = get_redis_client()
        gauges["servicenow_ninja_robots_sources"] = {
            "value": await client.zcard(RedisKeys.robots_sources_index()),
            "help": "Number of robots.txt sources",
        }
        gauges["servicenow_ninja_sitemaps"] = {
            "value": await client.zcard(RedisKeys.sitemaps_index()),
            "help": "Number of known sitemaps",
        }
        gauges["servicenow_ninja_documentation_pages"] = {
            "value": await client.zcard(RedisKeys.pages_index()),
            "help": "Number of stored documentation pages",
        }
        await client.aclose()
    except Exception as e:
        logger.error(f"Error reading crawl table sizes: {e}")

    return gauges


@router.get("/metrics", response_class=PlainTextResponse)
async def prometheus_metrics():
    """Crawler counters plus store gauges in Prometheus exposition format."""
    try:
        gauges = await get_store_gauges()
        lines = [
            format_prometheus_metric(name, data["value"], help_text=data["help"])
            for name, data in gauges.items()
        ]
        lines.append(generate_latest().decode("utf-8"))
        return "\n".join(lines) + "\n"
    except Exception as e:
        logger.error(f"Error generating metrics: {e}")
        return (
            format_prometheus_metric(
                "servicenow_ninja_metrics_error",
                1,
                help_text="Error occurred while generating metrics",
            )
            + "\n"
        )
