"""CLI commands for managing robots.txt sources (the crawl seed list)."""

import asyncio
import json

import click
from rich.console import Console
from rich.table import Table

from servicenow_ninja.core.storage import CrawlStore


@click.group()
def source():
    """Robots.txt source management commands."""
    pass


@source.command("add")
@click.argument("url")
@click.option("--site-name", help="Human readable site name")
@click.option("--disabled", is_flag=True, help="Add the source without enabling it")
def source_add(url: str, site_name: str, disabled: bool):
    """Add a robots.txt URL to crawl."""

    async def _add():
        return await CrawlStore().add_robots_source(url, site_name=site_name, enabled=not disabled)

    robots_source, created = asyncio.run(_add())
    if created:
        click.echo(f"✅ Added robots.txt source {robots_source.url} ({robots_source.id})")
    else:
        click.echo(f"ℹ️  Source already exists: {robots_source.url} ({robots_source.id})")


@source.command("list")
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
def source_list(as_json: bool):
    """List robots.txt sources."""
    sources = asyncio.run(CrawlStore().list_robots_sources())

    if as_json:
        click.echo(json.dumps([s.model_dump(mode="json") for s in sources], indent=2))
        return

    if not sources:
        click.echo("No robots.txt sources configured. Add one with: source add <url>")
        return

    table = Table(title="Robots.txt Sources")
    table.add_column("ID", no_wrap=True)
    table.add_column("URL")
    table.add_column("Site")
    table.add_column("Enabled")
    table.add_column("Last crawled")
    for s in sources:
        table.add_row(
            s.id,
            s.url,
            s.site_name or "-",
            "yes" if s.enabled else "no",
            s.last_crawled_at.isoformat() if s.last_crawled_at else "-",
        )
    Console().print(table)


def _set_enabled(source_id: str, enabled: bool) -> None:
    found = asyncio.run(CrawlStore().set_robots_source_enabled(source_id, enabled))
    if not found:
        click.echo(f"❌ Source not found: {source_id}")
        raise SystemExit(1)
    click.echo(f"✅ Source {source_id} {'enabled' if enabled else 'disabled'}")


@source.command("enable")
@click.argument("source_id")
def source_enable(source_id: str):
    """Enable a robots.txt source."""
    _set_enabled(source_id, True)


@source.command("disable")
@click.argument("source_id")
def source_disable(source_id: str):
    """Disable a robots.txt source."""
    _set_enabled(source_id, False)
