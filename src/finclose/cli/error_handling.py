"""CLI error handling helpers."""

import json

import click

from finclose.domain.errors import DomainError


def handle_domain_error(ctx: click.Context, error: DomainError | ValueError) -> None:
    """Render a domain error and exit with failure."""
    click.echo(f"Error: {error}", err=True)
    ctx.exit(1)


def load_json_file(ctx: click.Context, path: str):
    """Read a JSON file or exit with an error message."""
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        click.echo(f"Error: Could not read JSON from {path}: {e}", err=True)
        ctx.exit(1)
