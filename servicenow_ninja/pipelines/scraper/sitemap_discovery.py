"""Discover sitemap URLs from robots.txt sources."""

import re
from typing import Any, Dict, List

from redis.exceptions import RedisError

from servicenow_ninja.core.config import settings
from servicenow_ninja.pipelines.scraper.base import BaseCrawlerStage, utc_now_iso

# The value runs to the end of the line; [ \t]* keeps an empty directive from
# swallowing the next line.
SITEMAP_DIRECTIVE_RE = re.compile(r"Sitemap:[ \t]*(.+)", re.IGNORECASE)


def parse_robots_sitemaps(robots_txt: str) -> List[str]:
    """Return the trimmed URL of every ``Sitemap:`` directive, in order."""
    urls = []
    for match in SITEMAP_DIRECTIVE_RE.finditer(robots_txt):
        url = match.group(1).strip()
        if url:
            urls.append(url)
    return urls


class SitemapDiscovery(BaseCrawlerStage):
    """Reads enabled robots sources and records the sitemaps they advertise."""

    def get_source_type(self) -> str:
        return "sitemap-discovery"

    async def run(self) -> Dict[str, Any]:
        result = {
            "started_at": utc_now_iso(),
            "sources_processed": 0,
            "sources_failed": 0,
            "sitemaps_found": 0,
            "sitemaps_created": 0,
        }

        try:
            sources = await self.store.list_robots_sources(
                enabled_only=True, limit=settings.max_sitemaps_to_process
            )
            if not sources:
                await self.crawler_log.info("No enabled robots.txt sources found")
                result["completed_at"] = utc_now_iso()
                return result

            await self.crawler_log.info(f"Processing {len(sources)} robots.txt sources")

            async with self.http_session():
                for source in sources:
                    try:
                        await self.crawler_log.info(
                            f"Fetching robots.txt from {source.url}", source.id
                        )
                        robots_txt = await self.fetch_text(source.url, kind="robots")
                        sitemap_urls = parse_robots_sitemaps(robots_txt)
                        result["sitemaps_found"] += len(sitemap_urls)
                        await self.crawler_log.info(
                            f"Found {len(sitemap_urls)} sitemaps in {source.url}", source.id
                        )

                        for sitemap_url in sitemap_urls:
                            _, created = await self.store.add_sitemap(sitemap_url, source.id)
                            if created:
                                result["sitemaps_created"] += 1
                                await self.crawler_log.info(
                                    f"Added new sitemap {sitemap_url}", source.id
                                )

                        await self.store.mark_robots_source_crawled(source.id)
                        result["sources_processed"] += 1
                    except RedisError:
                        raise
                    except Exception as e:
                        result["sources_failed"] += 1
                        await self.crawler_log.error(
                            f"Error processing robots.txt from {source.url}", source.id, e
                        )

            await self.crawler_log.info("Sitemap discovery completed successfully")
        except Exception as e:
            await self.crawler_log.error("Error in sitemap discovery process", None, e)
            raise

        result["completed_at"] = utc_now_iso()
        return result


async def discover_sitemaps(**kwargs) -> Dict[str, Any]:
    """Run sitemap discovery with default dependencies."""
    return await SitemapDiscovery(**kwargs).run()
