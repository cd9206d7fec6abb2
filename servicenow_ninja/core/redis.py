"""Redis connection management - no caching to avoid event loop issues."""

import logging
from typing import Optional

from redis.asyncio import Redis
from redisvl.extensions.cache.embeddings.embeddings import EmbeddingsCache
from redisvl.index.index import AsyncSearchIndex
from redisvl.schema import IndexSchema
from redisvl.utils.vectorize import OpenAITextVectorizer

from servicenow_ninja.core.config import settings

logger = logging.getLogger(__name__)

# Index names
DOCS_INDEX = "ninja_docs"
DOCKET_NAME = "ninja_docket"


# Schema definitions
DOCS_SCHEMA = {
    "index": {
        "name": DOCS_INDEX,
        "prefix": f"{DOCS_INDEX}:",
        "storage_type": "hash",
    },
    "fields": [
        {
            "name": "text",
            "type": "text",
        },
        {
            "name": "title",
            "type": "text",
        },
        {
            "name": "url",
            "type": "tag",
        },
        {
            "name": "page_id",
            "type": "tag",
        },
        {
            "name": "namespace",
            "type": "tag",
        },
        {
            "name": "chunk",
            "type": "numeric",
        },
        {
            "name": "total_chunks",
            "type": "numeric",
        },
        {
            "name": "created_at",
            "type": "numeric",
        },
        {
            "name": "vector",
            "type": "vector",
            "attrs": {
                "dims": settings.vector_dim,
                "distance_metric": "cosine",
                "algorithm": "flat",
                "datatype": "float32",
            },
        },
    ],
}


def _redis_url_with_password() -> str:
    redis_url = settings.redis_url.get_secret_value()
    redis_password = settings.redis_password.get_secret_value() if settings.redis_password else None
    if redis_password and "@" not in redis_url:
        # Insert password into URL: redis://localhost -> redis://:password@localhost
        redis_url = redis_url.replace("redis://", f"redis://:{redis_password}@")
    return redis_url


def get_redis_client(url: Optional[str] = None) -> Redis:
    """Get Redis client (creates fresh client to avoid event loop issues)."""
    redis_url = url or settings.redis_url.get_secret_value()
    redis_password = settings.redis_password.get_secret_value() if settings.redis_password else None
    return Redis.from_url(
        url=redis_url,
        password=redis_password,
        decode_responses=False,  # Keep as bytes for RedisVL compatibility
    )


def get_vectorizer() -> OpenAITextVectorizer:
    """Get OpenAI vectorizer with Redis-backed embeddings cache.

    Cache keys include the model name, so switching models never returns
    stale vectors.
    """
    cache = EmbeddingsCache(
        name="ninja_embeddings_cache",
        redis_url=_redis_url_with_password(),
        ttl=settings.embeddings_cache_ttl,
    )
    logger.debug(f"Vectorizer created with embeddings cache (ttl={settings.embeddings_cache_ttl}s)")

    return OpenAITextVectorizer(
        model=settings.embedding_model,
        cache=cache,
        api_config={"api_key": settings.openai_api_key},
    )


async def get_docs_index() -> AsyncSearchIndex:
    """Get the documentation chunk index (creates fresh to avoid event loop issues)."""
    redis_client = Redis.from_url(_redis_url_with_password(), decode_responses=False)
    schema = IndexSchema.from_dict(DOCS_SCHEMA)
    return AsyncSearchIndex(schema=schema, redis_client=redis_client)


async def test_redis_connection(url: Optional[str] = None) -> bool:
    """Test Redis connection health.

    Args:
        url: Optional Redis URL to test. If not provided, uses default from settings.

    Returns:
        True if connection successful, False otherwise.
    """
    try:
        client = get_redis_client(url=url)
        await client.ping()
        await client.aclose()
        return True
    except Exception as e:
        logger.error(f"Redis connection test failed: {e}")
        return False


async def test_vector_search() -> bool:
    """Test vector search index availability."""
    try:
        index = await get_docs_index()
        return await index.exists()
    except Exception as e:
        logger.error(f"Vector search test failed: {e}")
        return False


async def create_indices() -> bool:
    """Create the vector search index if it doesn't exist."""
    try:
        docs_index = await get_docs_index()
        if not await docs_index.exists():
            await docs_index.create()
            logger.debug(f"Created vector index: {DOCS_INDEX}")
        else:
            logger.debug(f"Vector index already exists: {DOCS_INDEX}")
        return True
    except Exception as e:
        logger.error(f"Failed to create indices: {e}")
        return False


async def recreate_indices() -> dict:
    """Drop and recreate the vector index without deleting stored chunks.

    Useful when the schema has changed (e.g., a different vector dimension).
    """
    result = {"success": True, "indices": {}}
    try:
        idx = await get_docs_index()
        if await idx.exists():
            try:
                # FT.DROPINDEX without DD keeps the documents
                await idx._redis_client.execute_command("FT.DROPINDEX", DOCS_INDEX)
                logger.info(f"Dropped index: {DOCS_INDEX}")
            except Exception as drop_err:
                logger.warning(f"Could not drop index {DOCS_INDEX}: {drop_err}")

        await idx.create()
        logger.info(f"Created index: {DOCS_INDEX}")
        result["indices"]["docs"] = "recreated"
    except Exception as e:
        logger.error(f"Failed to recreate index {DOCS_INDEX}: {e}")
        result["indices"]["docs"] = f"error: {e}"
        result["success"] = False

    return result


async def initialize_redis() -> dict:
    """Initialize Redis infrastructure and return status."""
    status = {}

    redis_ok = await test_redis_connection()
    status["redis_connection"] = "available" if redis_ok else "unavailable"

    # Test vectorizer (skip when no OpenAI key configured)
    try:
        if not settings.openai_api_key:
            status["vectorizer"] = "skipped"
        else:
            vectorizer = get_vectorizer()
            status["vectorizer"] = "available" if vectorizer else "unavailable"
    except Exception as e:
        logger.error(f"Vectorizer initialization failed: {e}")
        status["vectorizer"] = "unavailable"

    if redis_ok:
        indices_created = await create_indices()
        status["indices_created"] = "available" if indices_created else "unavailable"
        docket_ok = await initialize_docket()
        status["docket_infrastructure"] = "available" if docket_ok else "unavailable"
        vector_ok = await test_vector_search()
        status["vector_search"] = "available" if vector_ok else "unavailable"
    else:
        status["indices_created"] = "unavailable"
        status["docket_infrastructure"] = "unavailable"
        status["vector_search"] = "unavailable"

    return status


async def initialize_docket() -> bool:
    """Initialize Docket task queue infrastructure."""
    try:
        # Import Docket here to avoid circular imports
        from docket import Docket

        async with Docket(url=settings.redis_url.get_secret_value(), name=DOCKET_NAME) as docket:
            # Creates the necessary Redis structures if they don't exist
            await docket.workers()
            logger.info("Docket infrastructure initialized successfully")
            return True
    except Exception as e:
        logger.error(f"Failed to initialize: {e}")
        return False
