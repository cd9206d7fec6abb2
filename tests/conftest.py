"""
Test configuration and fixtures for ServiceNow Ninja.
"""

import os
from unittest.mock import AsyncMock, Mock, patch

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

# Test environment variables - only set if not already present
test_env = {
    "APP_NAME": "ServiceNow Ninja Test",
    "DEBUG": "true",
}

if not os.environ.get("REDIS_URL"):
    test_env["REDIS_URL"] = "redis://localhost:6379/0"

# Only set test API key if no real key is present
if not os.environ.get("OPENAI_API_KEY"):
    test_env["OPENAI_API_KEY"] = "test-openai-key"

os.environ.update(test_env)


class MockAsyncContextManager:
    """Mock async context manager for aiohttp responses."""

    def __init__(self, mock_response):
        self.mock_response = mock_response

    async def __aenter__(self):
        return self.mock_response

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return None


def make_response(text: str = "", status: int = 200, reason: str = "OK"):
    """Build a mock aiohttp response."""
    response = Mock()
    response.status = status
    response.reason = reason
    response.text = AsyncMock(return_value=text)
    return response


class FakeSession:
    """aiohttp-like session serving canned responses by URL.

    ``pages`` maps a URL to a body string, a ``(status, body)`` tuple or an
    exception to raise. Unknown URLs answer 404.
    """

    def __init__(self, pages):
        self.pages = pages
        self.requested = []

    def get(self, url, **kwargs):
        self.requested.append(url)
        page = self.pages.get(url)
        if isinstance(page, Exception):
            raise page
        if page is None:
            return MockAsyncContextManager(make_response("", status=404, reason="Not Found"))
        if isinstance(page, tuple):
            status, body = page
            return MockAsyncContextManager(make_response(body, status=status))
        return MockAsyncContextManager(make_response(page))


class FakeRedis:
    """In-memory stand-in for the redis.asyncio commands the crawl store uses."""

    def __init__(self):
        self.hashes = {}
        self.zsets = {}
        self.sets = {}
        self.streams = {}

    async def hsetnx(self, key, field, value):
        h = self.hashes.setdefault(key, {})
        if field in h:
            return 0
        h[field] = value
        return 1

    async def hget(self, key, field):
        return self.hashes.get(key, {}).get(field)

    async def hset(self, key, field=None, value=None, mapping=None):
        h = self.hashes.setdefault(key, {})
        added = 0
        items = dict(mapping or {})
        if field is not None:
            items[field] = value
        for k, v in items.items():
            added += k not in h
            h[k] = v
        return added

    async def hgetall(self, key):
        return dict(self.hashes.get(key, {}))

    async def exists(self, key):
        return int(key in self.hashes or key in self.zsets or key in self.sets)

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            for store in (self.hashes, self.zsets, self.sets):
                if store.pop(key, None) is not None:
                    removed += 1
        return removed

    async def zadd(self, key, mapping):
        self.zsets.setdefault(key, {}).update(mapping)
        return len(mapping)

    def _sorted_members(self, key, reverse=False):
        members = self.zsets.get(key, {})
        return sorted(members, key=lambda m: members[m], reverse=reverse)

    @staticmethod
    def _slice(items, start, end):
        end = len(items) - 1 if end == -1 else end
        return items[start : end + 1]

    async def zrange(self, key, start, end):
        return self._slice(self._sorted_members(key), start, end)

    async def zrevrange(self, key, start, end):
        return self._slice(self._sorted_members(key, reverse=True), start, end)

    async def zcard(self, key):
        return len(self.zsets.get(key, {}))

    async def sadd(self, key, *members):
        s = self.sets.setdefault(key, set())
        before = len(s)
        s.update(members)
        return len(s) - before

    async def srem(self, key, *members):
        s = self.sets.get(key, set())
        removed = len(s & set(members))
        s.difference_update(members)
        return removed

    async def smembers(self, key):
        return set(self.sets.get(key, set()))

    async def xadd(self, key, fields, maxlen=None, approximate=True):
        stream = self.streams.setdefault(key, [])
        entry_id = f"{len(stream) + 1}-0"
        stream.append((entry_id, dict(fields)))
        if maxlen is not None and len(stream) > maxlen:
            del stream[: len(stream) - maxlen]
        return entry_id

    async def xrevrange(self, key, count=None):
        entries = list(reversed(self.streams.get(key, [])))
        return entries[:count] if count is not None else entries


@pytest.fixture
def fake_redis():
    """Empty in-memory Redis double."""
    return FakeRedis()


@pytest.fixture
def fake_session():
    """Factory for FakeSession instances."""
    return FakeSession


@pytest.fixture
def mock_crawler_log():
    """CrawlerLogger stand-in that records nothing."""
    log = Mock()
    log.info = AsyncMock()
    log.warn = AsyncMock()
    log.error = AsyncMock()
    log.log = AsyncMock()
    return log


@pytest.fixture
def mock_redis_client():
    """Mock Redis async client."""
    with patch("servicenow_ninja.core.redis.Redis") as mock_class:
        mock_instance = AsyncMock()
        mock_instance.ping.return_value = True
        mock_instance.hset.return_value = 1
        mock_instance.get.return_value = None
        mock_instance.aclose.return_value = None
        mock_class.from_url.return_value = mock_instance
        yield mock_instance


@pytest.fixture
def app_with_mocks():
    """FastAPI app with all dependencies mocked."""

    async def mock_initialize():
        return {
            "redis_connection": "available",
            "vectorizer": "available",
            "indices_created": "available",
            "docket_infrastructure": "available",
            "vector_search": "available",
        }

    async def mock_register():
        pass

    with (
        patch("servicenow_ninja.core.redis.Redis") as mock_redis,
        patch("servicenow_ninja.core.redis.OpenAITextVectorizer") as mock_vectorizer,
        patch("servicenow_ninja.core.redis.AsyncSearchIndex") as mock_index,
        patch("servicenow_ninja.api.app.initialize_redis", side_effect=mock_initialize),
        patch(
            "servicenow_ninja.core.docket_tasks.register_crawler_tasks",
            side_effect=mock_register,
        ),
        patch("servicenow_ninja.core.crawler_log.get_redis_client") as mock_log_client,
    ):
        mock_redis_instance = AsyncMock()
        mock_redis_instance.ping.return_value = True
        mock_redis_instance.aclose.return_value = None
        mock_redis.from_url.return_value = mock_redis_instance

        mock_vectorizer.return_value = Mock()

        mock_index_instance = AsyncMock()
        mock_index_instance.exists.return_value = True
        mock_index.return_value = mock_index_instance

        mock_log_client.return_value = AsyncMock()

        from servicenow_ninja.api.app import app

        yield app


@pytest.fixture
def test_client(app_with_mocks):
    """Test client for the FastAPI app."""
    return TestClient(app_with_mocks)


@pytest_asyncio.fixture
async def async_test_client(app_with_mocks):
    """Async test client for the FastAPI app."""
    async with AsyncClient(
        transport=ASGITransport(app=app_with_mocks), base_url="http://test"
    ) as client:
        yield client
