"""Base classes for crawler stages that fetch upstream content."""

import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import aiohttp

from servicenow_ninja.core.config import settings
from servicenow_ninja.core.crawler_log import CrawlerLogger
from servicenow_ninja.core.rate_limit import TokenBucket
from servicenow_ninja.core.storage import CrawlStore
from servicenow_ninja.observability.crawl_metrics import record_fetch

logger = logging.getLogger(__name__)


class FetchError(Exception):
    """Raised when an upstream URL answers with a non-2xx status."""

    def __init__(self, url: str, status: int, reason: Optional[str] = None):
        self.url = url
        self.status = status
        self.reason = reason or ""
        super().__init__(f"Failed to fetch {url}: {status} {self.reason}".rstrip())


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class BaseCrawlerStage(ABC):
    """Abstract base class for crawler stages.

    Subclasses get a shared aiohttp session (with the crawler user agent and a
    total request timeout), a ``CrawlStore``, a ``CrawlerLogger`` named after
    the stage and a token bucket for outbound requests.
    """

    def __init__(
        self,
        store: Optional[CrawlStore] = None,
        config: Optional[Dict[str, Any]] = None,
        session: Optional[aiohttp.ClientSession] = None,
        rate_limiter: Optional[TokenBucket] = None,
        crawler_log: Optional[CrawlerLogger] = None,
    ):
        self.store = store or CrawlStore()
        self.config = {
            "user_agent": settings.crawler_user_agent,
            "timeout": settings.request_timeout,
            **(config or {}),
        }
        self.session = session
        self.rate_limiter = rate_limiter
        self.crawler_log = crawler_log or CrawlerLogger(self.get_source_type())
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @abstractmethod
    def get_source_type(self) -> str:
        """Name used for this stage in the crawler audit log."""
        pass

    @abstractmethod
    async def run(self) -> Dict[str, Any]:
        """Run the stage and return a summary."""
        pass

    @asynccontextmanager
    async def http_session(self):
        """Yield the injected session, or open one for the duration of the block."""
        if self.session is not None:
            yield self.session
            return

        async with aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.config["timeout"]),
            headers={"User-Agent": self.config["user_agent"]},
        ) as session:
            self.session = session
            try:
                yield session
            finally:
                self.session = None

    async def throttle(self) -> None:
        if self.rate_limiter is not None:
            await self.rate_limiter.acquire()

    async def fetch_text(self, url: str, kind: str = "page") -> str:
        """GET ``url`` and return the body as text; non-2xx raises FetchError."""
        if self.session is None:
            raise RuntimeError("fetch_text() must be called inside http_session()")

        try:
            async with self.session.get(
                url, headers={"User-Agent": self.config["user_agent"]}
            ) as response:
                if not 200 <= response.status < 300:
                    raise FetchError(url, response.status, response.reason)
                text = await response.text()
        except Exception:
            record_fetch(kind, ok=False)
            raise

        record_fetch(kind, ok=True)
        return text
