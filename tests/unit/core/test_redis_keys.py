"""Tests for Redis key construction."""

from servicenow_ninja.core.keys import RedisKeys


class TestRedisKeys:
    """Test RedisKeys helpers."""

    def test_entity_keys(self):
        assert RedisKeys.robots_source("abc") == "ninja:robots_source:abc"
        assert RedisKeys.sitemap("abc") == "ninja:sitemap:abc"
        assert RedisKeys.page("abc") == "ninja:page:abc"
        assert RedisKeys.page_embedding("abc_chunk1") == "ninja:page_embedding:abc_chunk1"

    def test_index_keys_are_distinct(self):
        keys = {
            RedisKeys.robots_sources_index(),
            RedisKeys.robots_sources_by_url(),
            RedisKeys.sitemaps_index(),
            RedisKeys.sitemaps_by_url(),
            RedisKeys.pages_index(),
            RedisKeys.pages_by_url(),
            RedisKeys.crawler_logs(),
        }
        assert len(keys) == 7

    def test_doc_chunk_key_uses_index_prefix(self):
        """Chunk keys must fall under the vector index prefix to be indexed."""
        key = RedisKeys.doc_chunk("servicenow-docs", "p1_chunk2")

        assert key == "ninja_docs:servicenow-docs:p1_chunk2"
        assert key.startswith(f"{RedisKeys.PREFIX_DOCS}:")
