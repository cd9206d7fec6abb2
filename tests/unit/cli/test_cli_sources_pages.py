"""Tests for the `source` and `page` CLI commands."""

import json
from unittest.mock import AsyncMock, patch

import pytest
from click.testing import CliRunner

from servicenow_ninja.cli.page import page
from servicenow_ninja.cli.source import source
from servicenow_ninja.core.storage import DocumentationPage, PageEmbedding, RobotsSource


@pytest.fixture
def cli_runner():
    """Click CLI test runner."""
    return CliRunner()


class TestSourceCommands:
    """Test robots.txt source management."""

    def test_add_new_source(self, cli_runner):
        created = RobotsSource(id="src1", url="https://docs.example/robots.txt")
        with patch(
            "servicenow_ninja.cli.source.CrawlStore.add_robots_source",
            new_callable=AsyncMock,
            return_value=(created, True),
        ) as mock_add:
            result = cli_runner.invoke(
                source, ["add", "https://docs.example/robots.txt", "--site-name", "Docs"]
            )

        assert result.exit_code == 0
        assert "Added robots.txt source" in result.output
        mock_add.assert_awaited_once_with(
            "https://docs.example/robots.txt", site_name="Docs", enabled=True
        )

    def test_add_existing_source(self, cli_runner):
        existing = RobotsSource(id="src1", url="https://docs.example/robots.txt")
        with patch(
            "servicenow_ninja.cli.source.CrawlStore.add_robots_source",
            new_callable=AsyncMock,
            return_value=(existing, False),
        ):
            result = cli_runner.invoke(source, ["add", "https://docs.example/robots.txt"])

        assert result.exit_code == 0
        assert "already exists" in result.output

    def test_list_json(self, cli_runner):
        sources = [RobotsSource(id="src1", url="https://docs.example/robots.txt")]
        with patch(
            "servicenow_ninja.cli.source.CrawlStore.list_robots_sources",
            new_callable=AsyncMock,
            return_value=sources,
        ):
            result = cli_runner.invoke(source, ["list", "--json"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data[0]["id"] == "src1"
        assert data[0]["enabled"] is True

    def test_list_empty(self, cli_runner):
        with patch(
            "servicenow_ninja.cli.source.CrawlStore.list_robots_sources",
            new_callable=AsyncMock,
            return_value=[],
        ):
            result = cli_runner.invoke(source, ["list"])

        assert "No robots.txt sources configured" in result.output

    def test_disable(self, cli_runner):
        with patch(
            "servicenow_ninja.cli.source.CrawlStore.set_robots_source_enabled",
            new_callable=AsyncMock,
            return_value=True,
        ) as mock_set:
            result = cli_runner.invoke(source, ["disable", "src1"])

        assert result.exit_code == 0
        mock_set.assert_awaited_once_with("src1", False)

    def test_enable_missing_source(self, cli_runner):
        with patch(
            "servicenow_ninja.cli.source.CrawlStore.set_robots_source_enabled",
            new_callable=AsyncMock,
            return_value=False,
        ):
            result = cli_runner.invoke(source, ["enable", "missing"])

        assert result.exit_code == 1
        assert "Source not found" in result.output


class TestPageCommands:
    """Test page inspection."""

    @pytest.fixture
    def doc_page(self):
        return DocumentationPage(
            id="p1",
            url="https://docs.example/itsm",
            title="ITSM",
            content="IT service management overview",
            content_hash="abc123",
        )

    def test_list_json_excludes_content(self, cli_runner, doc_page):
        with patch(
            "servicenow_ninja.cli.page.CrawlStore.list_pages",
            new_callable=AsyncMock,
            return_value=[doc_page],
        ) as mock_list:
            result = cli_runner.invoke(page, ["list", "--json", "--limit", "3"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data[0]["id"] == "p1"
        assert "content" not in data[0]
        mock_list.assert_awaited_once_with(limit=3)

    def test_show_by_url(self, cli_runner, doc_page):
        rows = [PageEmbedding(page_id="p1", vector_id="p1_chunk1", embedding_model="m")]
        with (
            patch(
                "servicenow_ninja.cli.page.CrawlStore.get_page_by_url",
                new_callable=AsyncMock,
                return_value=doc_page,
            ) as mock_by_url,
            patch(
                "servicenow_ninja.cli.page.CrawlStore.list_page_embeddings",
                new_callable=AsyncMock,
                return_value=rows,
            ),
        ):
            result = cli_runner.invoke(page, ["show", "https://docs.example/itsm"])

        assert result.exit_code == 0
        mock_by_url.assert_awaited_once_with("https://docs.example/itsm")
        assert "ITSM" in result.output
        assert "Embeddings: 1" in result.output

    def test_show_missing(self, cli_runner):
        with patch(
            "servicenow_ninja.cli.page.CrawlStore.get_page",
            new_callable=AsyncMock,
            return_value=None,
        ):
            result = cli_runner.invoke(page, ["show", "p404"])

        assert result.exit_code == 1
        assert "Page not found" in result.output
