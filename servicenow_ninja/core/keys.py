"""
Redis key construction utilities.

Centralizes all Redis key construction to maintain consistency across the codebase.
"""


class RedisKeys:
    """Utility class for constructing Redis keys with consistent naming conventions."""

    # Prefixes
    PREFIX = "ninja"
    PREFIX_DOCS = "ninja_docs"

    # ============================================================================
    # robots_txt_sources
    # ============================================================================

    @staticmethod
    def robots_source(source_id: str) -> str:
        """Key for a robots.txt source hash."""
        return f"ninja:robots_source:{source_id}"

    @staticmethod
    def robots_sources_index() -> str:
        """Key for all robots.txt sources (sorted set by creation time)."""
        return "ninja:robots_sources:index"

    @staticmethod
    def robots_sources_by_url() -> str:
        """Key for the url -> source id uniqueness hash."""
        return "ninja:robots_sources:by_url"

    # ============================================================================
    # sitemaps
    # ============================================================================

    @staticmethod
    def sitemap(sitemap_id: str) -> str:
        """Key for a sitemap hash."""
        return f"ninja:sitemap:{sitemap_id}"

    @staticmethod
    def sitemaps_index() -> str:
        """Key for all sitemaps (sorted set by creation time)."""
        return "ninja:sitemaps:index"

    @staticmethod
    def sitemaps_by_url() -> str:
        """Key for the url -> sitemap id uniqueness hash."""
        return "ninja:sitemaps:by_url"

    # ============================================================================
    # documentation_pages
    # ============================================================================

    @staticmethod
    def page(page_id: str) -> str:
        """Key for a documentation page hash."""
        return f"ninja:page:{page_id}"

    @staticmethod
    def pages_index() -> str:
        """Key for all pages (sorted set by updated_at)."""
        return "ninja:pages:index"

    @staticmethod
    def pages_by_url() -> str:
        """Key for the url -> page id uniqueness hash."""
        return "ninja:pages:by_url"

    # ============================================================================
    # page_embeddings
    # ============================================================================

    @staticmethod
    def page_embedding(vector_id: str) -> str:
        """Key for a page embedding reference row (keyed by vector id)."""
        return f"ninja:page_embedding:{vector_id}"

    @staticmethod
    def page_embeddings(page_id: str) -> str:
        """Key for the set of vector ids recorded for a page."""
        return f"ninja:page:{page_id}:embeddings"

    # ============================================================================
    # crawler_logs
    # ============================================================================

    @staticmethod
    def crawler_logs() -> str:
        """Key for the append-only crawler audit stream."""
        return "ninja:crawler_logs"

    # ============================================================================
    # Vector index
    # ============================================================================

    @staticmethod
    def doc_chunk(namespace: str, vector_id: str) -> str:
        """Key for an embedded documentation chunk inside a namespace."""
        return f"ninja_docs:{namespace}:{vector_id}"
