"""Generate chunk embeddings for documentation pages whose content changed."""

import logging
from typing import Any, Dict, List, Optional

from redis.exceptions import RedisError

from servicenow_ninja.core.config import settings
from servicenow_ninja.core.crawler_log import CrawlerLogger
from servicenow_ninja.core.rate_limit import TokenBucket
from servicenow_ninja.core.storage import CrawlStore, DocumentationPage, PageEmbedding
from servicenow_ninja.core.vector_store import DocsVectorStore
from servicenow_ninja.observability.crawl_metrics import CHUNKS_UPSERTED, VECTORS_DELETED
from servicenow_ninja.pipelines.ingestion.processor import DocumentProcessor
from servicenow_ninja.pipelines.scraper.base import utc_now_iso

logger = logging.getLogger(__name__)


def is_up_to_date(page: DocumentationPage, embeddings: List[PageEmbedding]) -> bool:
    """True when the page has embeddings and all were built from its current hash."""
    if not embeddings:
        return False
    return all(row.content_hash == page.content_hash for row in embeddings)


class EmbeddingGenerator:
    """Keeps the vector index in step with stored documentation pages.

    Pages are replaced wholesale: stale vectors and their reference rows are
    deleted before the new chunks are written.
    """

    def __init__(
        self,
        store: Optional[CrawlStore] = None,
        vector_store: Optional[DocsVectorStore] = None,
        processor: Optional[DocumentProcessor] = None,
        rate_limiter: Optional[TokenBucket] = None,
        crawler_log: Optional[CrawlerLogger] = None,
        config: Optional[Dict[str, Any]] = None,
    ):
        self.store = store or CrawlStore()
        self.vector_store = vector_store or DocsVectorStore()
        self.processor = processor or DocumentProcessor()
        self.rate_limiter = rate_limiter or TokenBucket(
            settings.embedding_rate, settings.embedding_burst
        )
        self.crawler_log = crawler_log or CrawlerLogger("embedding-generator")
        self.config = {
            "max_pages": settings.max_pages_for_embeddings,
            "embedding_model": settings.embedding_model,
            **(config or {}),
        }

    async def remove_page_vectors(self, page: DocumentationPage, rows: List[PageEmbedding]) -> int:
        vector_ids = [row.vector_id for row in rows]
        if not vector_ids:
            return 0
        await self.crawler_log.info(
            f"Deleting {len(vector_ids)} existing embeddings for page {page.url}", page.id
        )
        await self.vector_store.delete(vector_ids)
        VECTORS_DELETED.inc(len(vector_ids))
        await self.store.delete_page_embeddings(page.id, vector_ids)
        return len(vector_ids)

    async def discard_partial_page(self, page: DocumentationPage, vector_ids: List[str]) -> None:
        """Drop the rows and vectors written by a page attempt that did not finish.

        Rows go first so a page whose vector delete fails is still seen as
        un-embedded on the next run.
        """
        await self.store.delete_page_embeddings(page.id, vector_ids)
        try:
            await self.vector_store.delete(vector_ids)
        except RedisError:
            raise
        except Exception as e:
            logger.warning(f"Failed to delete partial vectors for page {page.url}: {e}")
            return
        VECTORS_DELETED.inc(len(vector_ids))

    async def embed_page(self, page: DocumentationPage) -> int:
        """Chunk a page, upsert every chunk and record a reference row for each.

        If a chunk fails, the chunks already written for this page are removed
        before the error propagates.
        """
        chunks = self.processor.chunk_page(page)
        await self.crawler_log.info(f"Split page {page.url} into {len(chunks)} chunks", page.id)

        written: List[str] = []
        try:
            for chunk in chunks:
                await self.rate_limiter.acquire()
                vector_id = self.processor.vector_id(page.id, chunk.chunk_number)
                await self.vector_store.upsert_record(vector_id, chunk.text, chunk.metadata)
                CHUNKS_UPSERTED.inc()
                await self.store.upsert_page_embedding(
                    page.id, vector_id, self.config["embedding_model"], page.content_hash
                )
                written.append(vector_id)
        except RedisError:
            raise
        except Exception:
            if written:
                await self.discard_partial_page(page, written)
            raise
        return len(chunks)

    async def run(self) -> Dict[str, Any]:
        result = {
            "started_at": utc_now_iso(),
            "pages_processed": 0,
            "pages_updated": 0,
            "pages_skipped": 0,
            "pages_failed": 0,
            "chunks_upserted": 0,
            "vectors_deleted": 0,
        }

        try:
            pages = await self.store.list_pages(limit=self.config["max_pages"])
            if not pages:
                await self.crawler_log.info("No documentation pages found")
                result["completed_at"] = utc_now_iso()
                return result

            await self.crawler_log.info(f"Found {len(pages)} pages to process")

            for page in pages:
                result["pages_processed"] += 1
                try:
                    rows = await self.store.list_page_embeddings(page.id)
                    if is_up_to_date(page, rows):
                        result["pages_skipped"] += 1
                        logger.debug(f"Embeddings for page {page.url} are up to date")
                        continue

                    result["vectors_deleted"] += await self.remove_page_vectors(page, rows)
                    result["chunks_upserted"] += await self.embed_page(page)
                    result["pages_updated"] += 1
                    await self.crawler_log.info(
                        f"Successfully generated embeddings for page {page.url}", page.id
                    )
                except RedisError:
                    raise
                except Exception as e:
                    result["pages_failed"] += 1
                    await self.crawler_log.error(
                        f"Error generating embeddings for page {page.url}", page.id, e
                    )

            await self.crawler_log.info(
                f"Processed {result['pages_processed']} pages, "
                f"updated {result['pages_updated']} pages"
            )
        except Exception as e:
            await self.crawler_log.error("Error in embedding generation process", None, e)
            raise

        result["completed_at"] = utc_now_iso()
        return result


async def generate_embeddings(**kwargs) -> Dict[str, Any]:
    """Run embedding generation with default dependencies."""
    return await EmbeddingGenerator(**kwargs).run()
