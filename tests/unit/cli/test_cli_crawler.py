"""Tests for the `crawler` CLI commands."""

import json
from unittest.mock import AsyncMock, patch

import pytest
from click.testing import CliRunner

from servicenow_ninja.cli.crawler import crawler
from servicenow_ninja.cli.main import main


@pytest.fixture
def cli_runner():
    """Click CLI test runner."""
    return CliRunner()


class TestMainGroup:
    """Test the lazy top-level group."""

    def test_help_lists_commands(self, cli_runner):
        result = cli_runner.invoke(main, ["--help"])

        assert result.exit_code == 0
        for name in ("crawler", "source", "page", "search", "index", "worker"):
            assert name in result.output


class TestCrawlerRun:
    """Test `crawler run`."""

    def test_full_run_prints_summaries(self, cli_runner):
        results = {
            "steps": {
                "sitemaps": {"sources_processed": 1, "sources_failed": 0, "sitemaps_created": 2},
                "content": {"pages_created": 5, "pages_updated": 1},
            }
        }
        with patch(
            "servicenow_ninja.pipelines.orchestrator.run_crawler",
            new_callable=AsyncMock,
            return_value=results,
        ):
            result = cli_runner.invoke(crawler, ["run"])

        assert result.exit_code == 0
        assert "Crawler completed" in result.output
        assert "sitemaps_created=2" in result.output
        assert "pages_created=5" in result.output

    def test_single_step(self, cli_runner):
        with patch(
            "servicenow_ninja.pipelines.orchestrator.run_crawler_step",
            new_callable=AsyncMock,
            return_value={"steps": {"embeddings": {"pages_updated": 3}}},
        ) as mock_step:
            result = cli_runner.invoke(crawler, ["run", "--step", "embeddings"])

        assert result.exit_code == 0
        mock_step.assert_awaited_once_with("embeddings")
        assert "pages_updated=3" in result.output

    def test_invalid_step_is_rejected_by_click(self, cli_runner):
        result = cli_runner.invoke(crawler, ["run", "--step", "everything"])

        assert result.exit_code != 0
        assert "Invalid value" in result.output

    def test_failure_exits_non_zero(self, cli_runner):
        with patch(
            "servicenow_ninja.pipelines.orchestrator.run_crawler",
            new_callable=AsyncMock,
            side_effect=RuntimeError("redis down"),
        ):
            result = cli_runner.invoke(crawler, ["run"])

        assert result.exit_code != 0
        assert "Crawler failed: redis down" in result.output


class TestCrawlerEnqueue:
    """Test `crawler enqueue`."""

    def test_enqueue(self, cli_runner):
        with patch(
            "servicenow_ninja.core.docket_tasks.enqueue_crawl",
            new_callable=AsyncMock,
            return_value="exec-1",
        ) as mock_enqueue:
            result = cli_runner.invoke(crawler, ["enqueue", "--step", "content"])

        assert result.exit_code == 0
        mock_enqueue.assert_awaited_once_with("content")
        assert "exec-1" in result.output


class TestCrawlerLogs:
    """Test `crawler logs`."""

    ENTRIES = [
        {
            "id": "2-0",
            "source_type": "content-extractor",
            "log_level": "error",
            "message": "Error processing page",
            "error": "404",
            "timestamp": "2025-01-01T00:00:00+00:00",
        }
    ]

    def test_json_output(self, cli_runner):
        with patch(
            "servicenow_ninja.core.crawler_log.read_crawler_logs",
            new_callable=AsyncMock,
            return_value=self.ENTRIES,
        ) as mock_read:
            result = cli_runner.invoke(
                crawler, ["logs", "--json", "--limit", "5", "--source-type", "content-extractor"]
            )

        assert result.exit_code == 0
        assert json.loads(result.output) == self.ENTRIES
        mock_read.assert_awaited_once_with(count=5, source_type="content-extractor")

    def test_table_output(self, cli_runner):
        with patch(
            "servicenow_ninja.core.crawler_log.read_crawler_logs",
            new_callable=AsyncMock,
            return_value=self.ENTRIES,
        ):
            result = cli_runner.invoke(crawler, ["logs"])

        assert result.exit_code == 0
        assert "Crawler Log" in result.output

    def test_empty(self, cli_runner):
        with patch(
            "servicenow_ninja.core.crawler_log.read_crawler_logs",
            new_callable=AsyncMock,
            return_value=[],
        ):
            result = cli_runner.invoke(crawler, ["logs"])

        assert "No crawler log entries found." in result.output
