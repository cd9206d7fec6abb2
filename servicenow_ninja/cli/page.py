"""CLI commands for inspecting stored documentation pages."""

import asyncio
import json

import click
from rich.console import Console
from rich.table import Table

from servicenow_ninja.core.storage import CrawlStore


@click.group()
def page():
    """Documentation page commands."""
    pass


@page.command("list")
@click.option("--limit", "-l", default=20, help="Number of pages to show")
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
def page_list(limit: int, as_json: bool):
    """List the most recently updated pages."""
    pages = asyncio.run(CrawlStore().list_pages(limit=limit))

    if as_json:
        click.echo(
            json.dumps(
                [p.model_dump(mode="json", exclude={"content"}) for p in pages],
                indent=2,
            )
        )
        return

    if not pages:
        click.echo("No documentation pages stored yet.")
        return

    table = Table(title="Documentation Pages")
    table.add_column("ID", no_wrap=True)
    table.add_column("Title")
    table.add_column("URL")
    table.add_column("Updated")
    for p in pages:
        table.add_row(p.id, p.title or "-", p.url, p.updated_at.isoformat())
    Console().print(table)


@page.command("show")
@click.argument("url_or_id")
def page_show(url_or_id: str):
    """Show one page, looked up by URL or id, with its embedding rows."""

    async def _show():
        store = CrawlStore()
        if url_or_id.startswith(("http://", "https://")):
            found = await store.get_page_by_url(url_or_id)
        else:
            found = await store.get_page(url_or_id)
        if found is None:
            return None, []
        return found, await store.list_page_embeddings(found.id)

    found, embeddings = asyncio.run(_show())
    if found is None:
        click.echo(f"❌ Page not found: {url_or_id}")
        raise SystemExit(1)

    click.echo(f"📄 {found.title or '(untitled)'}")
    click.echo(f"   URL: {found.url}")
    click.echo(f"   Hash: {found.content_hash}")
    click.echo(f"   Last crawled: {found.last_crawled_at.isoformat() if found.last_crawled_at else '-'}")
    click.echo(f"   Embeddings: {len(embeddings)}")
    click.echo("")
    click.echo(found.content[:500] + ("..." if len(found.content) > 500 else ""))
