"""Crawler orchestrator: runs discovery, extraction and embedding in sequence."""

import logging
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from servicenow_ninja.core.crawler_log import CrawlerLogger
from servicenow_ninja.core.storage import CrawlStore
from servicenow_ninja.observability.crawl_metrics import STAGE_DURATION
from servicenow_ninja.pipelines.ingestion.embedding_generator import EmbeddingGenerator
from servicenow_ninja.pipelines.scraper.base import utc_now_iso
from servicenow_ninja.pipelines.scraper.content_extractor import ContentExtractor
from servicenow_ninja.pipelines.scraper.sitemap_discovery import SitemapDiscovery

logger = logging.getLogger(__name__)


class CrawlStep(str, Enum):
    SITEMAPS = "sitemaps"
    CONTENT = "content"
    EMBEDDINGS = "embeddings"
    # Discovery + extraction, without embeddings
    COMBINED = "combined"


VALID_STEPS: List[str] = [step.value for step in CrawlStep]


class InvalidStepError(ValueError):
    """Raised for a crawler step name outside ``VALID_STEPS``."""

    def __init__(self, step: Any):
        self.step = step
        super().__init__(f"Invalid step: {step}. Valid steps are: {', '.join(VALID_STEPS)}")


def parse_step(step: Union[str, CrawlStep]) -> CrawlStep:
    try:
        return CrawlStep(step)
    except ValueError:
        raise InvalidStepError(step) from None


class CrawlerOrchestrator:
    """Runs crawler stages in a fixed order and reports their summaries."""

    def __init__(
        self,
        store: Optional[CrawlStore] = None,
        crawler_log: Optional[CrawlerLogger] = None,
    ):
        self.store = store or CrawlStore()
        self.crawler_log = crawler_log or CrawlerLogger("crawler")

    async def discover_sitemaps(self) -> Dict[str, Any]:
        return await SitemapDiscovery(store=self.store).run()

    async def extract_content(self) -> Dict[str, Any]:
        return await ContentExtractor(store=self.store).run()

    async def generate_embeddings(self) -> Dict[str, Any]:
        return await EmbeddingGenerator(store=self.store).run()

    async def _run_stage(
        self, name: str, stage: Callable[[], Awaitable[Dict[str, Any]]]
    ) -> Dict[str, Any]:
        start = time.monotonic()
        try:
            result = await stage()
        except Exception:
            STAGE_DURATION.labels(stage=name, status="error").observe(time.monotonic() - start)
            raise
        STAGE_DURATION.labels(stage=name, status="ok").observe(time.monotonic() - start)
        return result

    async def run_crawler(self) -> Dict[str, Any]:
        """Run sitemap discovery, content extraction and embedding generation."""
        results: Dict[str, Any] = {"started_at": utc_now_iso(), "steps": {}}

        try:
            await self.crawler_log.info("Starting crawling process")

            await self.crawler_log.info("Step 1: Discovering sitemaps from robots.txt")
            results["steps"]["sitemaps"] = await self._run_stage(
                "sitemaps", self.discover_sitemaps
            )

            await self.crawler_log.info("Step 2: Extracting content from pages in sitemaps")
            results["steps"]["content"] = await self._run_stage("content", self.extract_content)

            await self.crawler_log.info("Step 3: Generating embeddings for content")
            results["steps"]["embeddings"] = await self._run_stage(
                "embeddings", self.generate_embeddings
            )

            await self.crawler_log.info("Crawling process completed successfully")
        except Exception as e:
            await self.crawler_log.error(f"Error in crawling process: {e}", None, e)
            raise

        results["completed_at"] = utc_now_iso()
        return results

    async def run_crawler_step(self, step: Union[str, CrawlStep]) -> Dict[str, Any]:
        """Run a single named step; ``combined`` runs discovery then extraction."""
        crawl_step = parse_step(step)
        results: Dict[str, Any] = {
            "step": crawl_step.value,
            "started_at": utc_now_iso(),
            "steps": {},
        }

        try:
            await self.crawler_log.info(f"Running crawler step: {crawl_step.value}")

            if crawl_step == CrawlStep.SITEMAPS:
                results["steps"]["sitemaps"] = await self._run_stage(
                    "sitemaps", self.discover_sitemaps
                )
            elif crawl_step == CrawlStep.CONTENT:
                results["steps"]["content"] = await self._run_stage(
                    "content", self.extract_content
                )
            elif crawl_step == CrawlStep.EMBEDDINGS:
                results["steps"]["embeddings"] = await self._run_stage(
                    "embeddings", self.generate_embeddings
                )
            else:
                await self.crawler_log.info("Running combined step: sitemaps discovery")
                results["steps"]["sitemaps"] = await self._run_stage(
                    "sitemaps", self.discover_sitemaps
                )
                await self.crawler_log.info("Running combined step: content extraction")
                results["steps"]["content"] = await self._run_stage(
                    "content", self.extract_content
                )

            await self.crawler_log.info(f"Crawler step '{crawl_step.value}' completed successfully")
        except Exception as e:
            await self.crawler_log.error(
                f"Error in crawler step '{crawl_step.value}': {e}", None, e
            )
            raise

        results["completed_at"] = utc_now_iso()
        return results


# Convenience functions for common operations
async def run_crawler() -> Dict[str, Any]:
    """Run the complete crawl with default dependencies."""
    return await CrawlerOrchestrator().run_crawler()


async def run_crawler_step(step: Union[str, CrawlStep]) -> Dict[str, Any]:
    """Run one crawl step with default dependencies."""
    return await CrawlerOrchestrator().run_crawler_step(step)
