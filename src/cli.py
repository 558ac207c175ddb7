#!/usr/bin/env python3
"""
CLI tool for the Cloudflare extended provider
Drives resource operations from YAML/JSON files without a host orchestrator
"""

import asyncio
import json
import logging
import os
from typing import Any, Dict, Optional

import click
import yaml
from tabulate import tabulate

from config import LoggingConfig, get_config
from plugins.base import ResourceResponse
from plugins.registry import get_registry, register_builtin_plugins
from provider import Provider


def load_document(filename: str) -> Dict[str, Any]:
    """Read a YAML or JSON mapping from ``filename``"""
    with open(filename, "r") as f:
        if filename.endswith(".yaml") or filename.endswith(".yml"):
            data = yaml.safe_load(f)
        else:
            data = json.load(f)
    if not isinstance(data, dict):
        raise click.ClickException(f"{filename} must contain a mapping")
    return data


def write_state(filename: str, type_name: str, state: Dict[str, Any]) -> None:
    """Persist observed state next to the resource file"""
    document = {"type": type_name, "state": state}
    with open(filename, "w") as f:
        if filename.endswith(".yaml") or filename.endswith(".yml"):
            yaml.safe_dump(document, f, default_flow_style=False)
        else:
            json.dump(document, f, indent=2)


def make_provider() -> Provider:
    try:
        return Provider(get_config())
    except ValueError as e:
        raise click.ClickException(f"Invalid configuration: {e}")


def render(response: ResourceResponse, output: str) -> None:
    """Print diagnostics as a table and the resulting state"""
    if response.diagnostics:
        rows = [
            [d.severity.value, d.summary, d.detail, d.attribute or ""]
            for d in response.diagnostics
        ]
        click.echo(
            tabulate(rows, headers=["Severity", "Summary", "Detail", "Attribute"], tablefmt="grid"),
            err=True,
        )

    if response.requires_replace:
        click.echo(f"Requires replacement: {', '.join(response.requires_replace)}")

    if response.removed and response.state is None:
        click.echo(f"{response.type_name} removed")
        return

    if response.state is None:
        return

    if output == "yaml":
        click.echo(yaml.safe_dump(response.state, default_flow_style=False))
    elif output == "table":
        rows = [[key, json.dumps(value)] for key, value in sorted(response.state.items())]
        click.echo(tabulate(rows, headers=["Attribute", "Value"], tablefmt="grid"))
    else:
        click.echo(json.dumps(response.state, indent=2))


def finish(response: ResourceResponse, output: str, state_file: Optional[str]) -> None:
    render(response, output)
    if response.has_error:
        raise SystemExit(1)
    if state_file and response.state is not None:
        write_state(state_file, response.type_name, response.state)
        click.echo(f"State written to {state_file}", err=True)


output_option = click.option(
    "--output", "-o", type=click.Choice(["json", "yaml", "table"]), default="json"
)


@click.group()
def cli():
    """cfx - manage Cloudflare resources through the extended provider"""
    logging.basicConfig(
        level=LoggingConfig.from_env().log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@cli.command()
@click.argument("filename", type=click.Path(exists=True))
@click.option("--state", "state_file", type=click.Path(), help="State file to update from and write to")
@output_option
def apply(filename, state_file, output):
    """Create or update a resource from a YAML/JSON file"""
    document = load_document(filename)
    type_name = document.get("type")
    attributes = document.get("attributes") or {}
    timeouts = document.get("timeouts") or {}
    if not type_name:
        raise click.ClickException(f"{filename} has no 'type'")

    prior = None
    if state_file and os.path.exists(state_file):
        prior = load_document(state_file).get("state")

    provider = make_provider()
    if prior:
        response = asyncio.run(provider.update(type_name, attributes, prior, timeouts))
    else:
        response = asyncio.run(provider.create(type_name, attributes, timeouts))

    finish(response, output, state_file)


@cli.command()
@click.argument("state_file", type=click.Path(exists=True))
@output_option
def read(state_file, output):
    """Refresh a resource from its state file"""
    document = load_document(state_file)

    provider = make_provider()
    response = asyncio.run(provider.read(document.get("type"), document.get("state") or {}))

    render(response, output)
    if response.has_error:
        raise SystemExit(1)
    if response.removed:
        os.remove(state_file)
    else:
        write_state(state_file, response.type_name, response.state)


@cli.command()
@click.argument("state_file", type=click.Path(exists=True))
@click.confirmation_option(prompt="Are you sure you want to destroy this resource?")
def destroy(state_file):
    """Delete the remote object recorded in a state file"""
    document = load_document(state_file)

    provider = make_provider()
    response = asyncio.run(provider.delete(document.get("type"), document.get("state") or {}))

    render(response, "json")
    if response.has_error:
        raise SystemExit(1)
    os.remove(state_file)
    click.echo("Resource destroyed")


@cli.command(name="import")
@click.argument("type_name")
@click.argument("import_id")
@click.option("--state", "state_file", type=click.Path(), help="Where to write the imported state")
@output_option
def import_(type_name, import_id, state_file, output):
    """Adopt an existing remote object, e.g. cfx import TYPE <account_id>/<name>"""
    provider = make_provider()
    response = asyncio.run(provider.import_state(type_name, import_id))

    finish(response, output, state_file)


@cli.command()
def types():
    """List the resource types this provider manages"""
    register_builtin_plugins()
    registry = get_registry()

    rows = []
    for name in registry.list_resource_plugins():
        info = registry.get_resource_plugin_info(name)
        rows.append(
            [
                info["type_name"],
                info["name"],
                info["version"],
                "✓" if info["supports_import"] else "✗",
            ]
        )

    click.echo(tabulate(rows, headers=["Type", "Plugin", "Version", "Import"], tablefmt="grid"))


if __name__ == "__main__":
    cli()
