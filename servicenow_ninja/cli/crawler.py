"""CLI commands for running the crawler and reading its audit log."""

import asyncio
import json

import click

from servicenow_ninja.pipelines.orchestrator import VALID_STEPS

STEP_SUMMARY_FIELDS = {
    "sitemaps": ("sources_processed", "sources_failed", "sitemaps_created"),
    "content": ("pages_created", "pages_updated", "pages_unchanged", "pages_failed"),
    "embeddings": ("pages_updated", "pages_skipped", "pages_failed", "chunks_upserted"),
}


@click.group()
def crawler():
    """Crawler commands: run stages, queue runs, inspect logs."""
    pass


@crawler.command()
@click.option(
    "--step",
    type=click.Choice(VALID_STEPS),
    help="Run a single step instead of the full crawl",
)
def run(step: str):
    """Run the crawler in this process."""
    from servicenow_ninja.pipelines.orchestrator import run_crawler, run_crawler_step

    click.echo(f"🕷️  Starting crawler ({step or 'all steps'})...")

    async def _run():
        try:
            results = await (run_crawler_step(step) if step else run_crawler())
        except Exception as e:
            click.echo(f"❌ Crawler failed: {e}")
            raise

        click.echo("✅ Crawler completed!")
        for name, summary in results["steps"].items():
            fields = STEP_SUMMARY_FIELDS.get(name, ())
            details = ", ".join(f"{f}={summary.get(f, 0)}" for f in fields)
            click.echo(f"   📂 {name}: {details}")
        return results

    return asyncio.run(_run())


@crawler.command()
@click.option(
    "--step",
    type=click.Choice(VALID_STEPS),
    help="Queue a single step instead of the full crawl",
)
def enqueue(step: str):
    """Queue a crawl for the background worker."""
    from servicenow_ninja.core.docket_tasks import enqueue_crawl

    async def _enqueue():
        try:
            key = await enqueue_crawl(step)
        except Exception as e:
            click.echo(f"❌ Failed to queue crawl: {e}")
            raise
        click.echo(f"📬 Queued crawl ({step or 'all steps'}) as task {key}")

    asyncio.run(_enqueue())


@crawler.command()
@click.option("--limit", "-l", default=50, help="Number of entries to show")
@click.option("--source-type", help="Only show entries from one component")
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
def logs(limit: int, source_type: str, as_json: bool):
    """Show the newest crawler audit log entries."""
    from rich.console import Console
    from rich.table import Table

    from servicenow_ninja.core.crawler_log import read_crawler_logs

    entries = asyncio.run(read_crawler_logs(count=limit, source_type=source_type))

    if as_json:
        click.echo(json.dumps(entries, indent=2))
        return

    if not entries:
        click.echo("No crawler log entries found.")
        return

    table = Table(title="Crawler Log")
    table.add_column("Time", no_wrap=True)
    table.add_column("Source")
    table.add_column("Level")
    table.add_column("Message")
    table.add_column("Error")
    for entry in entries:
        table.add_row(
            entry.get("timestamp", ""),
            entry.get("source_type", ""),
            entry.get("log_level", ""),
            entry.get("message", ""),
            entry.get("error", ""),
        )
    Console().print(table)
