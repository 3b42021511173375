"""CLI main entry point."""

import json
import sys

import click

from . import __version__
from .config import load_config
from .shared.paths import LOG_FILE


@click.group()
@click.option("-c", "--config", type=click.Path(), help="Config file path")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.pass_context
def cli(ctx: click.Context, config: str | None, json_output: bool) -> None:
    """Distributed tool node for a VCP main server."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config
    ctx.obj["json_output"] = json_output


@cli.command()
@click.option("--url", help="Main server URL (e.g., ws://localhost:6005)")
@click.option("--key", help="Pre-shared VCP key")
@click.option("--name", help="Server name shown to the main server")
@click.option("--plugin-dir", type=click.Path(file_okay=False), help="Plugin directory")
@click.option("--debug/--no-debug", default=None, help="Enable debug logging")
@click.option(
    "--log-file",
    is_flag=False,
    flag_value=str(LOG_FILE),
    default=None,
    help=f"Log to a file instead of stderr (default path: {LOG_FILE})",
)
@click.option("--json-logs", is_flag=True, help="Write logs as JSON")
@click.pass_context
def run(
    ctx: click.Context,
    url: str | None,
    key: str | None,
    name: str | None,
    plugin_dir: str | None,
    debug: bool | None,
    log_file: str | None,
    json_logs: bool,
) -> None:
    """Connect to the main server and serve local tools.

    \b
    Environment variables:
      Main_Server_URL - Main server URL
      VCP_Key         - Pre-shared key
      ServerName      - Server name
      DebugMode       - "true" for debug logging
      VCP_PLUGIN_DIR  - Plugin directory
    """
    from .node import run_node
    from .shared.logging import configure_logging

    config = load_config(
        ctx.obj["config_path"],
        overrides={
            "server_url": url,
            "vcp_key": key,
            "server_name": name,
            "plugin_dir": plugin_dir,
            "debug": debug,
        },
    )
    configure_logging(level=config.log_level, log_file=log_file, json_output=json_logs)

    try:
        run_node(config)
    except KeyboardInterrupt:
        sys.exit(0)


@cli.command()
def version() -> None:
    """Show version."""
    click.echo(f"vcp-node {__version__}")


@cli.group()
def config() -> None:
    """Manage configuration."""
    pass


@config.command("show")
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """Show effective configuration (key redacted)."""
    from .formatters import print_config_yaml, print_sources

    loaded = load_config(ctx.obj["config_path"])
    data = loaded.redacted()
    sources = {key: loaded.get_source(key) for key in data}

    if ctx.obj["json_output"]:
        click.echo(json.dumps({"values": data, "sources": sources}, indent=2))
        return

    click.echo("VCP Node Configuration\n")
    print_config_yaml(data)
    print_sources(sources)


@cli.group()
def tools() -> None:
    """Inspect local tools."""
    pass


@tools.command("list")
@click.option("--plugin-dir", type=click.Path(file_okay=False), help="Plugin directory")
@click.pass_context
def tools_list(ctx: click.Context, plugin_dir: str | None) -> None:
    """List the tools this node would register."""
    from .capabilities import PluginDirectoryProvider
    from .formatters import print_tools_table

    loaded = load_config(ctx.obj["config_path"], overrides={"plugin_dir": plugin_dir})
    provider = PluginDirectoryProvider(loaded.plugin_dir)
    provider.load()
    manifests = list(provider.list_manifests())

    if ctx.obj["json_output"]:
        click.echo(json.dumps(manifests, indent=2))
    else:
        print_tools_table(manifests)


def main() -> None:
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
