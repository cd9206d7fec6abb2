"""CLI interface for ServiceNow Ninja."""

import importlib

import click

# Map command names to their module:attribute for lazy import
_COMMANDS = {
    "crawler": "servicenow_ninja.cli.crawler:crawler",
    "source": "servicenow_ninja.cli.source:source",
    "page": "servicenow_ninja.cli.page:page",
    "search": "servicenow_ninja.cli.search:search",
    "index": "servicenow_ninja.cli.index:index",
    "worker": "servicenow_ninja.cli.worker:worker",
}


class LazyGroup(click.Group):
    """
    Lazy loading of CLI commands to avoid hard dependencies at top level.

    Each command imports its own dependencies (aiohttp, redisvl, docket)
    only when it is invoked.
    """

    def list_commands(self, ctx):
        # Keep stable ordering for help output
        return list(_COMMANDS.keys())

    def get_command(self, ctx, name):
        target = _COMMANDS.get(name)
        if not target:
            return None
        module_path, attr = target.split(":", 1)
        mod = importlib.import_module(module_path)
        return getattr(mod, attr)


@click.command(cls=LazyGroup)
def main():
    """ServiceNow Ninja CLI."""
    pass


if __name__ == "__main__":
    main()
