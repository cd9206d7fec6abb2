"""Vector index management CLI commands."""

from __future__ import annotations

import asyncio
import json as _json

import click


@click.group()
def index():
    """RediSearch index management commands."""
    pass


@index.command("create")
def index_create():
    """Create the documentation vector index if it is missing."""
    from servicenow_ninja.core.redis import create_indices

    if asyncio.run(create_indices()):
        click.echo("✅ Index ready")
    else:
        click.echo("❌ Failed to create index")
        raise SystemExit(1)


@index.command("recreate")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt")
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
def index_recreate(yes: bool, as_json: bool):
    """Drop and recreate the index (stored chunks are kept and re-indexed)."""
    from servicenow_ninja.core.redis import recreate_indices

    if not yes and not as_json:
        click.confirm("This will drop and recreate the documentation index. Continue?", abort=True)

    result = asyncio.run(recreate_indices())

    if as_json:
        click.echo(_json.dumps(result, indent=2))
        return

    if result.get("success"):
        click.echo("✅ Index recreated")
    else:
        for name, status in result.get("indices", {}).items():
            click.echo(f"❌ {name}: {status}")
        raise SystemExit(1)
