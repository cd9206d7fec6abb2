"""Extract documentation pages listed in sitemaps and store changed content."""

import hashlib
import html
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from bs4 import BeautifulSoup
from redis.exceptions import RedisError

from servicenow_ninja.core.config import settings
from servicenow_ninja.core.rate_limit import TokenBucket
from servicenow_ninja.core.storage import SaveOutcome, Sitemap
from servicenow_ninja.observability.crawl_metrics import PAGES_SAVED
from servicenow_ninja.pipelines.scraper.base import BaseCrawlerStage, utc_now_iso

_LOC_RE = re.compile(r"<loc>(.*?)</loc>", re.IGNORECASE | re.DOTALL)
_URL_BLOCK_RE = re.compile(r"<url>(.*?)</url>", re.IGNORECASE | re.DOTALL)
_OPTIONAL_TAGS = ("lastmod", "changefreq", "priority")
_WHITESPACE_RE = re.compile(r"\s+")

# Tried in order; the first match wins before falling back to <body>
MAIN_CONTENT_SELECTORS = [
    "main",
    "article",
    "div#main",
    "div.main",
    "div#content",
    "div.content",
    "div#article",
    "div.article",
    "div#post",
    "div.post",
    "div#documentation",
    "div.documentation",
    "div#docs",
    "div.docs",
]
BOILERPLATE_TAGS = ["script", "style", "nav", "footer", "header"]


@dataclass
class SitemapEntry:
    url: str
    lastmod: Optional[str] = None
    changefreq: Optional[str] = None
    priority: Optional[str] = None


@dataclass
class ParsedSitemap:
    is_index: bool
    sitemap_urls: List[str] = field(default_factory=list)
    entries: List[SitemapEntry] = field(default_factory=list)


@dataclass
class ExtractedPage:
    title: str
    content: str
    content_hash: str


def _clean_loc(value: str) -> str:
    return html.unescape(value.strip())


def parse_sitemap_xml(text: str) -> ParsedSitemap:
    """Parse a sitemap or sitemap index document."""
    if "<sitemapindex" in text:
        urls = [_clean_loc(m) for m in _LOC_RE.findall(text)]
        return ParsedSitemap(is_index=True, sitemap_urls=[u for u in urls if u])

    entries = []
    for block in _URL_BLOCK_RE.findall(text):
        loc = _LOC_RE.search(block)
        if not loc or not loc.group(1).strip():
            continue
        entry = SitemapEntry(url=_clean_loc(loc.group(1)))
        for tag in _OPTIONAL_TAGS:
            match = re.search(rf"<{tag}>(.*?)</{tag}>", block, re.IGNORECASE | re.DOTALL)
            if match and match.group(1).strip():
                setattr(entry, tag, match.group(1).strip())
        entries.append(entry)
    return ParsedSitemap(is_index=False, entries=entries)


def compute_content_hash(content: str) -> str:
    """SHA-256 hex digest of the extracted page text."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def extract_page_content(page_html: str) -> ExtractedPage:
    """Pull the title and the main readable text out of a page."""
    soup = BeautifulSoup(page_html, "html.parser")

    title = ""
    if soup.title is not None:
        title = _WHITESPACE_RE.sub(" ", soup.title.get_text()).strip()

    region = None
    for selector in MAIN_CONTENT_SELECTORS:
        region = soup.select_one(selector)
        if region is not None:
            break
    if region is None:
        region = soup.body or soup

    for tag in region.find_all(BOILERPLATE_TAGS):
        tag.decompose()

    content = _WHITESPACE_RE.sub(" ", region.get_text(" ")).strip()
    return ExtractedPage(title=title, content=content, content_hash=compute_content_hash(content))


class ContentExtractor(BaseCrawlerStage):
    """Walks every stored sitemap and saves page text whose hash changed."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.config = {
            "max_pages_per_sitemap": settings.max_pages_per_sitemap,
            "max_depth": settings.sitemap_max_depth,
            **self.config,
        }
        if self.rate_limiter is None:
            self.rate_limiter = TokenBucket(settings.page_fetch_rate, settings.page_fetch_burst)

    def get_source_type(self) -> str:
        return "content-extractor"

    async def fetch_sitemap_entries(
        self, url: str, _depth: int = 0, _visited: Optional[Set[str]] = None
    ) -> List[SitemapEntry]:
        """Fetch a sitemap and flatten nested sitemap indexes into page entries.

        Each sitemap URL is fetched at most once per traversal and indexes
        nested deeper than ``max_depth`` are skipped.
        """
        visited = _visited if _visited is not None else set()
        if url in visited:
            self.logger.debug(f"Skipping already visited sitemap {url}")
            return []
        visited.add(url)

        parsed = parse_sitemap_xml(await self.fetch_text(url, kind="sitemap"))
        if not parsed.is_index:
            return parsed.entries

        if _depth >= self.config["max_depth"]:
            await self.crawler_log.warn(
                f"Sitemap index {url} exceeds max depth {self.config['max_depth']}, skipping"
            )
            return []

        entries: List[SitemapEntry] = []
        for child_url in parsed.sitemap_urls:
            try:
                entries.extend(await self.fetch_sitemap_entries(child_url, _depth + 1, visited))
            except RedisError:
                raise
            except Exception as e:
                await self.crawler_log.error(f"Error fetching nested sitemap {child_url}", None, e)
        return entries

    async def process_page(self, sitemap: Sitemap, entry: SitemapEntry) -> SaveOutcome:
        page_html = await self.fetch_text(entry.url, kind="page")
        extracted = extract_page_content(page_html)
        saved = await self.store.save_documentation_page(
            sitemap.id, entry.url, extracted.title, extracted.content, extracted.content_hash
        )
        PAGES_SAVED.labels(outcome=saved.outcome.value).inc()
        return saved.outcome

    async def process_sitemap(self, sitemap: Sitemap, result: Dict[str, Any]) -> None:
        await self.crawler_log.info(f"Processing sitemap {sitemap.url}", sitemap.id)

        entries = await self.fetch_sitemap_entries(sitemap.url)
        seen: Set[str] = set()
        unique_entries = []
        for entry in entries:
            if entry.url not in seen:
                seen.add(entry.url)
                unique_entries.append(entry)

        max_pages = self.config["max_pages_per_sitemap"]
        to_process = unique_entries if max_pages is None else unique_entries[:max_pages]
        await self.crawler_log.info(
            f"Found {len(unique_entries)} URLs in sitemap {sitemap.url}, "
            f"processing {len(to_process)}",
            sitemap.id,
        )

        for entry in to_process:
            await self.throttle()
            try:
                await self.crawler_log.info(f"Processing page {entry.url}", sitemap.id)
                outcome = await self.process_page(sitemap, entry)
                result[f"pages_{outcome.value}"] += 1
            except RedisError:
                raise
            except Exception as e:
                result["pages_failed"] += 1
                await self.crawler_log.error(f"Error processing page {entry.url}", sitemap.id, e)

        await self.store.mark_sitemap_crawled(sitemap.id)
        result["sitemaps_processed"] += 1
        await self.crawler_log.info(f"Successfully processed sitemap {sitemap.url}", sitemap.id)

    async def run(self) -> Dict[str, Any]:
        result = {
            "started_at": utc_now_iso(),
            "sitemaps_processed": 0,
            "sitemaps_failed": 0,
            "pages_created": 0,
            "pages_updated": 0,
            "pages_unchanged": 0,
            "pages_failed": 0,
        }

        try:
            sitemaps = await self.store.list_sitemaps()
            if not sitemaps:
                await self.crawler_log.info("No sitemaps found")
                result["completed_at"] = utc_now_iso()
                return result

            await self.crawler_log.info(f"Found {len(sitemaps)} sitemaps to process")

            async with self.http_session():
                for sitemap in sitemaps:
                    try:
                        await self.process_sitemap(sitemap, result)
                    except RedisError:
                        raise
                    except Exception as e:
                        result["sitemaps_failed"] += 1
                        await self.crawler_log.error(
                            f"Error processing sitemap {sitemap.url}", sitemap.id, e
                        )

            await self.crawler_log.info("Content extraction completed successfully")
        except Exception as e:
            await self.crawler_log.error("Error in content extraction process", None, e)
            raise

        result["completed_at"] = utc_now_iso()
        return result


async def extract_content(**kwargs) -> Dict[str, Any]:
    """Run content extraction with default dependencies."""
    return await ContentExtractor(**kwargs).run()
