"""Crawler audit log.

Every crawler message goes to the standard logger and is appended to the
``crawler_logs`` Redis stream. Writing the audit entry is best-effort: a
failure is reported through the standard logger and never reaches the caller.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from redis.asyncio import Redis

from servicenow_ninja.core.config import settings
from servicenow_ninja.core.keys import RedisKeys
from servicenow_ninja.core.redis import get_redis_client

logger = logging.getLogger(__name__)

_LEVELS = {
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


def _describe_error(error: Optional[BaseException]) -> str:
    if error is None:
        return ""
    return str(error) or error.__class__.__name__


class CrawlerLogger:
    """Logs crawler events for one pipeline component (``source_type``)."""

    def __init__(self, source_type: str, redis_client: Optional[Redis] = None):
        self.source_type = source_type
        self._redis_client = redis_client
        self.logger = logging.getLogger(f"servicenow_ninja.crawler.{source_type}")

    async def _get_client(self) -> Redis:
        if self._redis_client is None:
            self._redis_client = get_redis_client()
        return self._redis_client

    async def info(self, message: str, source_id: Optional[str] = None) -> None:
        await self.log("info", message, source_id)

    async def warn(self, message: str, source_id: Optional[str] = None) -> None:
        await self.log("warn", message, source_id)

    async def error(
        self,
        message: str,
        source_id: Optional[str] = None,
        error: Optional[BaseException] = None,
    ) -> None:
        await self.log("error", message, source_id, error)

    async def log(
        self,
        level: str,
        message: str,
        source_id: Optional[str] = None,
        error: Optional[BaseException] = None,
    ) -> None:
        error_text = _describe_error(error)
        line = f"[{self.source_type}] {message}"
        if error_text:
            line = f"{line}: {error_text}"
        self.logger.log(_LEVELS.get(level, logging.INFO), line)

        entry = {
            "source_type": self.source_type,
            "source_id": source_id or "",
            "log_level": level,
            "message": message,
            "error": error_text,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        try:
            client = await self._get_client()
            await client.xadd(
                RedisKeys.crawler_logs(),
                entry,
                maxlen=settings.crawler_log_max_entries,
                approximate=True,
            )
        except Exception as e:
            logger.error(f"Failed to write crawler log entry: {e}")


async def read_crawler_logs(
    count: int = 50,
    source_type: Optional[str] = None,
    redis_client: Optional[Redis] = None,
) -> List[Dict[str, Any]]:
    """Return the newest audit entries first, optionally for one source type."""
    client = redis_client or get_redis_client()
    raw_entries = await client.xrevrange(RedisKeys.crawler_logs(), count=count)

    entries = []
    for entry_id, fields in raw_entries:
        decoded = {
            (k.decode("utf-8") if isinstance(k, bytes) else k): (
                v.decode("utf-8") if isinstance(v, bytes) else v
            )
            for k, v in fields.items()
        }
        if source_type and decoded.get("source_type") != source_type:
            continue
        decoded["id"] = entry_id.decode("utf-8") if isinstance(entry_id, bytes) else entry_id
        entries.append(decoded)
    return entries
