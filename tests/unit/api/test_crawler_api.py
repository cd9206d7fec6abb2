"""Unit tests for the crawler and cron trigger endpoints."""

from unittest.mock import AsyncMock, patch

import pytest
from pydantic import SecretStr

from servicenow_ninja.core.config import settings

API_KEY = "crawler-test-key"
CRON_SECRET = "cron-test-secret"


@pytest.fixture
def secrets_configured():
    with (
        patch.object(settings, "crawler_api_key", SecretStr(API_KEY)),
        patch.object(settings, "cron_secret", SecretStr(CRON_SECRET)),
    ):
        yield


@pytest.fixture
def mock_run_crawler():
    with patch(
        "servicenow_ninja.api.crawler.run_crawler",
        new_callable=AsyncMock,
        return_value={"steps": {}},
    ) as mock:
        yield mock


@pytest.fixture
def mock_run_crawler_step():
    with patch(
        "servicenow_ninja.api.crawler.run_crawler_step",
        new_callable=AsyncMock,
        return_value={"steps": {}},
    ) as mock:
        yield mock


def _auth(token):
    return {"Authorization": f"Bearer {token}"}


class TestCrawlerPost:
    """Test POST /api/crawler."""

    def test_missing_token(self, test_client, secrets_configured, mock_run_crawler):
        response = test_client.post("/api/crawler", json={})

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized. Invalid or missing API key."}
        mock_run_crawler.assert_not_called()

    def test_wrong_token(self, test_client, secrets_configured, mock_run_crawler):
        response = test_client.post("/api/crawler", json={}, headers=_auth("nope"))

        assert response.status_code == 401
        mock_run_crawler.assert_not_called()

    def test_unconfigured_key_rejects_everything(self, test_client, mock_run_crawler):
        with patch.object(settings, "crawler_api_key", None):
            response = test_client.post("/api/crawler", json={}, headers=_auth(""))

        assert response.status_code == 401

    def test_full_crawl(self, test_client, secrets_configured, mock_run_crawler):
        response = test_client.post("/api/crawler", headers=_auth(API_KEY))

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "Crawler process completed successfully",
        }
        mock_run_crawler.assert_awaited_once()

    def test_single_step(self, test_client, secrets_configured, mock_run_crawler_step):
        response = test_client.post(
            "/api/crawler", json={"step": "embeddings"}, headers=_auth(API_KEY)
        )

        assert response.status_code == 200
        assert response.json()["message"] == "Crawler step 'embeddings' completed successfully"
        assert mock_run_crawler_step.await_args.args[0].value == "embeddings"

    def test_invalid_step(self, test_client, secrets_configured, mock_run_crawler_step):
        response = test_client.post("/api/crawler", json={"step": "all"}, headers=_auth(API_KEY))

        assert response.status_code == 400
        assert response.json()["error"].startswith("Invalid step: all.")
        mock_run_crawler_step.assert_not_called()

    def test_malformed_json(self, test_client, secrets_configured, mock_run_crawler):
        response = test_client.post(
            "/api/crawler",
            content=b"{not json",
            headers={**_auth(API_KEY), "Content-Type": "application/json"},
        )

        assert response.status_code == 400
        mock_run_crawler.assert_not_called()

    def test_crawler_failure(self, test_client, secrets_configured, mock_run_crawler):
        mock_run_crawler.side_effect = RuntimeError("redis down")

        response = test_client.post("/api/crawler", json={}, headers=_auth(API_KEY))

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to run crawler: redis down"}


class TestCrawlerStatus:
    """Test GET /api/crawler."""

    def test_status(self, test_client):
        response = test_client.get("/api/crawler")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ready"
        assert data["availableSteps"] == ["sitemaps", "content", "embeddings", "combined"]


class TestCronTrigger:
    """Test GET /api/cron."""

    def test_requires_cron_secret(self, test_client, secrets_configured, mock_run_crawler):
        # The crawler API key is not accepted as a cron secret
        response = test_client.get("/api/cron", headers=_auth(API_KEY))

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized. Invalid or missing cron secret."}
        mock_run_crawler.assert_not_called()

    def test_full_crawl(self, test_client, secrets_configured, mock_run_crawler):
        response = test_client.get("/api/cron", headers=_auth(CRON_SECRET))

        assert response.status_code == 200
        assert response.json()["message"] == "Cron job: Crawler process completed successfully"

    def test_step_query_parameter(self, test_client, secrets_configured, mock_run_crawler_step):
        response = test_client.get("/api/cron?step=combined", headers=_auth(CRON_SECRET))

        assert response.status_code == 200
        assert response.json()["message"] == (
            "Cron job: Crawler step 'combined' completed successfully"
        )

    def test_invalid_step(self, test_client, secrets_configured, mock_run_crawler_step):
        response = test_client.get("/api/cron?step=nope", headers=_auth(CRON_SECRET))

        assert response.status_code == 400
        mock_run_crawler_step.assert_not_called()
