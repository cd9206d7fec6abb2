"""Top-level `search` CLI command."""

import asyncio
import json

import click


@click.command()
@click.argument("query")
@click.option("--top-k", "-k", default=5, help="Number of results to retrieve")
@click.option("--lucky", is_flag=True, help="Only print the answer")
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
def search(query: str, top_k: int, lucky: bool, as_json: bool):
    """Search the crawled documentation."""
    from servicenow_ninja.core.search import answer_query

    response = asyncio.run(answer_query(query, is_lucky=lucky, top_k=top_k))

    if as_json:
        payload = {
            **response,
            "results": [r.model_dump() for r in response["results"]],
        }
        click.echo(json.dumps(payload, indent=2))
        return

    click.echo(f"🔍 {response['queryPreview']}")
    click.echo("")
    click.echo(response["answer"])

    if response["results"]:
        click.echo("")
        click.echo(f"📚 {len(response['results'])} results:")
        for i, result in enumerate(response["results"], 1):
            click.echo(f"{i}. {result.title} ({result.score:.3f})")
            click.echo(f"   {result.url}")
            click.echo(f"   {result.snippet}")
