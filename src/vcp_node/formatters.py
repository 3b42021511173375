"""CLI output formatting helpers."""

from typing import Any

import click
import yaml


def print_config_yaml(data: dict[str, Any]) -> None:
    """Print config values as YAML, in field order."""
    click.echo(yaml.dump(data, default_flow_style=False, sort_keys=False))


def print_sources(sources: dict[str, str]) -> None:
    """Print where each config value came from."""
    click.echo("Sources:")
    for key, source in sources.items():
        click.echo(f"  {key}: {source}")


def print_tools_table(manifests: list[dict[str, Any]]) -> None:
    """Print tool manifests as a table.

    Args:
        manifests: Tool manifests as advertised to the main server
    """
    if not manifests:
        click.echo("No tools found.")
        return

    name_width = max(len("NAME"), *(len(str(m.get("name", ""))) for m in manifests))
    click.echo(f"{'NAME':<{name_width}}  VERSION   DESCRIPTION")
    for manifest in manifests:
        description = str(manifest.get("description") or manifest.get("displayName") or "")
        first_line = description.splitlines()[0] if description else ""
        if len(first_line) > 60:
            first_line = first_line[:57] + "..."
        click.echo(
            f"{str(manifest.get('name', '')):<{name_width}}  "
            f"{str(manifest.get('version', '-')):<8}  {first_line}"
        )
    click.echo(f"\n{len(manifests)} tools")
