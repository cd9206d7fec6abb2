"""Unit tests for the root, health and metrics endpoints."""

from unittest.mock import AsyncMock, patch

from servicenow_ninja.api.health import mask_redis_url
from servicenow_ninja.api.metrics import format_prometheus_metric

HEALTHY_STATUS = {
    "redis_connection": "available",
    "vectorizer": "available",
    "indices_created": "available",
    "docket_infrastructure": "available",
    "vector_search": "available",
}


def _mock_docket(mock_docket, workers):
    instance = AsyncMock()
    instance.__aenter__ = AsyncMock(return_value=instance)
    instance.__aexit__ = AsyncMock(return_value=None)
    instance.workers = AsyncMock(return_value=workers)
    mock_docket.return_value = instance


class TestRootEndpoint:
    """Test the load balancer check."""

    def test_root(self, test_client):
        response = test_client.get("/")

        assert response.status_code == 200
        assert "is running" in response.text


class TestHealthEndpoint:
    """Test GET /api/v1/health."""

    def test_all_components_healthy(self, test_client):
        with (
            patch(
                "servicenow_ninja.api.health.initialize_redis",
                new_callable=AsyncMock,
                return_value=HEALTHY_STATUS,
            ),
            patch("servicenow_ninja.api.health.Docket") as mock_docket,
        ):
            _mock_docket(mock_docket, ["worker1"])
            response = test_client.get("/api/v1/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["components"]["workers"] == "available"

    def test_no_workers_is_degraded(self, test_client):
        with (
            patch(
                "servicenow_ninja.api.health.initialize_redis",
                new_callable=AsyncMock,
                return_value=HEALTHY_STATUS,
            ),
            patch("servicenow_ninja.api.health.Docket") as mock_docket,
        ):
            _mock_docket(mock_docket, [])
            response = test_client.get("/api/v1/health")

        assert response.status_code == 200
        assert response.json()["status"] == "degraded"

    def test_redis_down_is_unhealthy(self, test_client):
        status = {key: "unavailable" for key in HEALTHY_STATUS}
        with (
            patch(
                "servicenow_ninja.api.health.initialize_redis",
                new_callable=AsyncMock,
                return_value=status,
            ),
            patch("servicenow_ninja.api.health.Docket", side_effect=ConnectionError("down")),
        ):
            response = test_client.get("/api/v1/health")

        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"

    def test_mask_redis_url(self):
        assert mask_redis_url("redis://:s3cret@host:6379/0") == "redis://:***@host:6379/0"
        assert mask_redis_url("redis://localhost:6379/0") == "redis://localhost:6379/0"


class TestMetricsEndpoint:
    """Test GET /api/v1/metrics."""

    def test_metrics_include_counters_and_gauges(self, test_client):
        gauges = {
            "servicenow_ninja_documentation_pages": {"value": 12, "help": "Number of pages"}
        }
        with patch(
            "servicenow_ninja.api.metrics.get_store_gauges",
            new_callable=AsyncMock,
            return_value=gauges,
        ):
            response = test_client.get("/api/v1/metrics")

        assert response.status_code == 200
        assert "servicenow_ninja_documentation_pages 12" in response.text
        assert "servicenow_ninja_fetches_total" in response.text

    def test_metrics_error(self, test_client):
        with patch(
            "servicenow_ninja.api.metrics.get_store_gauges",
            new_callable=AsyncMock,
            side_effect=RuntimeError("boom"),
        ):
            response = test_client.get("/api/v1/metrics")

        assert response.status_code == 200
        assert "servicenow_ninja_metrics_error 1" in response.text

    def test_format_prometheus_metric(self):
        text = format_prometheus_metric("m", 3, labels={"a": "b"}, help_text="Help")

        assert text == '# HELP m Help\n# TYPE m gauge\nm{a="b"} 3'
