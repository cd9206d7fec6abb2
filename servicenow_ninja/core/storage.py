"""Redis-backed storage for crawler entities.

Each table is a family of Redis hashes plus a sorted-set index. URL uniqueness
is enforced with an ``HSETNX`` claim on a ``url -> id`` hash, so overlapping
crawler runs converge on a single row per URL. Redis errors are not caught
here; callers treat them as fatal for the running stage.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field
from redis.asyncio import Redis
from ulid import ULID

from servicenow_ninja.core.keys import RedisKeys
from servicenow_ninja.core.redis import get_redis_client

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(ULID())


class RobotsSource(BaseModel):
    """A robots.txt file whose ``Sitemap:`` lines seed the crawl."""

    id: str = Field(default_factory=_new_id)
    url: str
    site_name: Optional[str] = None
    enabled: bool = True
    last_crawled_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=_utcnow)


class Sitemap(BaseModel):
    """A sitemap (or sitemap index) URL discovered from a robots source."""

    id: str = Field(default_factory=_new_id)
    url: str
    source_id: Optional[str] = None
    last_crawled_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=_utcnow)


class DocumentationPage(BaseModel):
    """Extracted text of a documentation page."""

    id: str = Field(default_factory=_new_id)
    sitemap_id: Optional[str] = None
    url: str
    title: str = ""
    content: str = ""
    content_hash: str
    last_crawled_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class PageEmbedding(BaseModel):
    """Local reference to a chunk vector stored in the vector index."""

    id: str = Field(default_factory=_new_id)
    page_id: str
    vector_id: str
    embedding_model: str
    content_hash: str = ""
    updated_at: datetime = Field(default_factory=_utcnow)


class SaveOutcome(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


class PageSaveResult(BaseModel):
    page_id: str
    outcome: SaveOutcome


def _encode(model: BaseModel) -> Dict[str, str]:
    """Flatten a model into a Redis hash mapping ("" stands for None)."""
    mapping: Dict[str, str] = {}
    for name, value in model.model_dump().items():
        if value is None:
            mapping[name] = ""
        elif isinstance(value, bool):
            mapping[name] = "true" if value else "false"
        elif isinstance(value, datetime):
            mapping[name] = value.isoformat()
        else:
            mapping[name] = str(value)
    return mapping


# Fields stored as "" when unset
_NULLABLE_FIELDS = {"site_name", "source_id", "sitemap_id", "last_crawled_at"}


def _decode(raw: Dict[Any, Any]) -> Dict[str, Any]:
    data: Dict[str, Any] = {}
    for key, value in raw.items():
        k = key.decode("utf-8") if isinstance(key, bytes) else key
        v = value.decode("utf-8") if isinstance(value, bytes) else value
        data[k] = None if (k in _NULLABLE_FIELDS and v == "") else v
    if "enabled" in data:
        data["enabled"] = data["enabled"] == "true"
    return data


def _as_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    return value.decode("utf-8") if isinstance(value, bytes) else str(value)


class CrawlStore:
    """Persists robots sources, sitemaps, pages and embedding references in Redis."""

    def __init__(self, redis_url: Optional[str] = None, redis_client: Optional[Redis] = None):
        self._redis_url = redis_url
        self._redis_client = redis_client

    async def _get_client(self) -> Redis:
        """Get Redis client (lazy initialization)."""
        if self._redis_client is None:
            self._redis_client = get_redis_client(self._redis_url)
        return self._redis_client

    async def _load_many(self, key_fn, ids: List[Any], model_cls):
        client = await self._get_client()
        items = []
        for raw_id in ids:
            raw = await client.hgetall(key_fn(_as_str(raw_id)))
            if raw:
                items.append(model_cls(**_decode(raw)))
        return items

    # ============================================================================
    # robots_txt_sources
    # ============================================================================

    async def add_robots_source(
        self, url: str, site_name: Optional[str] = None, enabled: bool = True
    ) -> tuple[RobotsSource, bool]:
        """Insert a robots source unless its URL is already known.

        Returns the stored source and whether it was created.
        """
        client = await self._get_client()
        source = RobotsSource(url=url, site_name=site_name, enabled=enabled)
        claimed = await client.hsetnx(RedisKeys.robots_sources_by_url(), url, source.id)
        if not claimed:
            existing_id = _as_str(await client.hget(RedisKeys.robots_sources_by_url(), url))
            existing = await self.get_robots_source(existing_id)
            if existing is not None:
                return existing, False
            # Dangling claim: adopt the claimed id
            source.id = existing_id

        await client.hset(RedisKeys.robots_source(source.id), mapping=_encode(source))
        await client.zadd(
            RedisKeys.robots_sources_index(), {source.id: source.created_at.timestamp()}
        )
        return source, True

    async def get_robots_source(self, source_id: str) -> Optional[RobotsSource]:
        client = await self._get_client()
        raw = await client.hgetall(RedisKeys.robots_source(source_id))
        if not raw:
            return None
        return RobotsSource(**_decode(raw))

    async def list_robots_sources(
        self, enabled_only: bool = False, limit: Optional[int] = None
    ) -> List[RobotsSource]:
        """List robots sources in creation order, optionally only enabled ones."""
        client = await self._get_client()
        ids = await client.zrange(RedisKeys.robots_sources_index(), 0, -1)
        sources = await self._load_many(RedisKeys.robots_source, ids, RobotsSource)
        if enabled_only:
            sources = [s for s in sources if s.enabled]
        if limit is not None:
            sources = sources[:limit]
        return sources

    async def set_robots_source_enabled(self, source_id: str, enabled: bool) -> bool:
        client = await self._get_client()
        key = RedisKeys.robots_source(source_id)
        if not await client.exists(key):
            return False
        await client.hset(key, "enabled", "true" if enabled else "false")
        return True

    async def mark_robots_source_crawled(
        self, source_id: str, when: Optional[datetime] = None
    ) -> None:
        client = await self._get_client()
        when = when or _utcnow()
        await client.hset(RedisKeys.robots_source(source_id), "last_crawled_at", when.isoformat())

    # ============================================================================
    # sitemaps
    # ============================================================================

    async def add_sitemap(self, url: str, source_id: Optional[str] = None) -> tuple[Sitemap, bool]:
        """Insert a sitemap row unless the URL already exists (conflict-do-nothing)."""
        client = await self._get_client()
        sitemap = Sitemap(url=url, source_id=source_id)
        claimed = await client.hsetnx(RedisKeys.sitemaps_by_url(), url, sitemap.id)
        if not claimed:
            existing_id = _as_str(await client.hget(RedisKeys.sitemaps_by_url(), url))
            existing = await self.get_sitemap(existing_id)
            if existing is not None:
                return existing, False
            sitemap.id = existing_id

        await client.hset(RedisKeys.sitemap(sitemap.id), mapping=_encode(sitemap))
        await client.zadd(RedisKeys.sitemaps_index(), {sitemap.id: sitemap.created_at.timestamp()})
        return sitemap, True

    async def get_sitemap(self, sitemap_id: str) -> Optional[Sitemap]:
        client = await self._get_client()
        raw = await client.hgetall(RedisKeys.sitemap(sitemap_id))
        if not raw:
            return None
        return Sitemap(**_decode(raw))

    async def list_sitemaps(self) -> List[Sitemap]:
        client = await self._get_client()
        ids = await client.zrange(RedisKeys.sitemaps_index(), 0, -1)
        return await self._load_many(RedisKeys.sitemap, ids, Sitemap)

    async def mark_sitemap_crawled(self, sitemap_id: str, when: Optional[datetime] = None) -> None:
        client = await self._get_client()
        when = when or _utcnow()
        await client.hset(RedisKeys.sitemap(sitemap_id), "last_crawled_at", when.isoformat())

    # ============================================================================
    # documentation_pages
    # ============================================================================

    async def get_page(self, page_id: str) -> Optional[DocumentationPage]:
        client = await self._get_client()
        raw = await client.hgetall(RedisKeys.page(page_id))
        if not raw:
            return None
        return DocumentationPage(**_decode(raw))

    async def get_page_by_url(self, url: str) -> Optional[DocumentationPage]:
        client = await self._get_client()
        page_id = _as_str(await client.hget(RedisKeys.pages_by_url(), url))
        if not page_id:
            return None
        return await self.get_page(page_id)

    async def list_pages(self, limit: Optional[int] = None) -> List[DocumentationPage]:
        """List pages, most recently updated first."""
        if limit is not None and limit <= 0:
            return []
        client = await self._get_client()
        end = -1 if limit is None else limit - 1
        ids = await client.zrevrange(RedisKeys.pages_index(), 0, end)
        return await self._load_many(RedisKeys.page, ids, DocumentationPage)

    async def save_documentation_page(
        self,
        sitemap_id: Optional[str],
        url: str,
        title: str,
        content: str,
        content_hash: str,
    ) -> PageSaveResult:
        """Insert or update a page keyed by URL.

        An unchanged hash only refreshes ``last_crawled_at``; a changed hash
        rewrites title, content, hash and both timestamps.
        """
        client = await self._get_client()
        now = _utcnow()

        page_id = _as_str(await client.hget(RedisKeys.pages_by_url(), url))
        if page_id is None:
            page = DocumentationPage(
                sitemap_id=sitemap_id,
                url=url,
                title=title,
                content=content,
                content_hash=content_hash,
                last_crawled_at=now,
                created_at=now,
                updated_at=now,
            )
            if await client.hsetnx(RedisKeys.pages_by_url(), url, page.id):
                await client.hset(RedisKeys.page(page.id), mapping=_encode(page))
                await client.zadd(RedisKeys.pages_index(), {page.id: now.timestamp()})
                return PageSaveResult(page_id=page.id, outcome=SaveOutcome.CREATED)
            # Another run claimed the URL first; fall through to the update path
            page_id = _as_str(await client.hget(RedisKeys.pages_by_url(), url))

        key = RedisKeys.page(page_id)
        existing_hash = _as_str(await client.hget(key, "content_hash"))
        if existing_hash == content_hash:
            await client.hset(key, "last_crawled_at", now.isoformat())
            return PageSaveResult(page_id=page_id, outcome=SaveOutcome.UNCHANGED)

        mapping = {
            "id": page_id,
            "url": url,
            "title": title,
            "content": content,
            "content_hash": content_hash,
            "last_crawled_at": now.isoformat(),
            "updated_at": now.isoformat(),
        }
        if existing_hash is None:
            # Row missing behind a url claim: rebuild it completely
            mapping["sitemap_id"] = sitemap_id or ""
            mapping["created_at"] = now.isoformat()
            outcome = SaveOutcome.CREATED
        else:
            outcome = SaveOutcome.UPDATED
        await client.hset(key, mapping=mapping)
        await client.zadd(RedisKeys.pages_index(), {page_id: now.timestamp()})
        return PageSaveResult(page_id=page_id, outcome=outcome)

    # ============================================================================
    # page_embeddings
    # ============================================================================

    async def list_page_embeddings(self, page_id: str) -> List[PageEmbedding]:
        client = await self._get_client()
        vector_ids = sorted(await client.smembers(RedisKeys.page_embeddings(page_id)))
        return await self._load_many(RedisKeys.page_embedding, vector_ids, PageEmbedding)

    async def upsert_page_embedding(
        self, page_id: str, vector_id: str, embedding_model: str, content_hash: str
    ) -> PageEmbedding:
        """Record a chunk vector for a page (conflict on vector id updates in place)."""
        client = await self._get_client()
        key = RedisKeys.page_embedding(vector_id)
        existing_id = _as_str(await client.hget(key, "id"))
        row = PageEmbedding(
            page_id=page_id,
            vector_id=vector_id,
            embedding_model=embedding_model,
            content_hash=content_hash,
        )
        if existing_id:
            row.id = existing_id
        await client.hset(key, mapping=_encode(row))
        await client.sadd(RedisKeys.page_embeddings(page_id), vector_id)
        return row

    async def delete_page_embeddings(self, page_id: str, vector_ids: List[str]) -> int:
        """Delete reference rows for the given vector ids of a page."""
        if not vector_ids:
            return 0
        client = await self._get_client()
        await client.delete(*[RedisKeys.page_embedding(v) for v in vector_ids])
        await client.srem(RedisKeys.page_embeddings(page_id), *vector_ids)
        return len(vector_ids)
