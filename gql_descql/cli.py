"""Command-line interface for gql-descql."""

import asyncio
import importlib
import importlib.util
import json
import logging
from collections.abc import Mapping
from pathlib import Path

import click

from .core.api import Api
from .core.errors import DescqlError


def load_app(target: str) -> Api:
    """Load an Api from ``module:attr`` or ``path/to/file.py:attr``.

    The attribute may also be a ``{"query": ..., "mutation": ...}`` mapping,
    which is compiled on the fly.
    """
    location, _, attr = target.rpartition(":")
    if not location or not attr:
        raise click.BadParameter(f"Expected MODULE:ATTRIBUTE, got {target!r}")

    if location.endswith(".py"):
        path = Path(location).resolve()
        spec = importlib.util.spec_from_file_location(path.stem, path)
        if spec is None or spec.loader is None:
            raise click.BadParameter(f"Cannot import {location}")
        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)
    else:
        module = importlib.import_module(location)

    app = getattr(module, attr, None)
    if isinstance(app, Api):
        return app
    if isinstance(app, Mapping):
        return Api(app)
    raise click.BadParameter(f"{target} is neither an Api nor a schema mapping")


def _setup_logging(verbose: bool):
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")


@click.group()
@click.version_option(package_name="gql-descql")
def main():
    """Serve GraphQL from schema descriptions.

    Inspect and query description-based GraphQL APIs.
    """
    pass


@main.command()
@click.option(
    "--app",
    "-a",
    required=True,
    help="Api to load, as MODULE:ATTRIBUTE or FILE.py:ATTRIBUTE.",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(),
    help="Write the SDL to this file instead of stdout.",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose output.",
)
def sdl(app: str, output: str | None, verbose: bool):
    """Print the GraphQL SDL of an Api.

    Examples:

        gql-descql sdl --app myproject.api:api

        gql-descql sdl -a ./examples/films.py:api -o schema.graphql
    """
    _setup_logging(verbose)
    try:
        api = load_app(app)
    except DescqlError as e:
        raise click.ClickException(f"Schema build failed: {e}")

    if verbose:
        click.echo(f"  Named types: {len(api.compiler.cache)}", err=True)
        click.echo(f"  Middleware: {len(api.pipeline)}", err=True)

    text = api.print_schema()
    if output:
        output_path = Path(output).resolve()
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(text + "\n")
        click.echo(f"Done! Wrote schema to {output_path}")
    else:
        click.echo(text)


@main.command()
@click.argument("source")
@click.option(
    "--app",
    "-a",
    required=True,
    help="Api to load, as MODULE:ATTRIBUTE or FILE.py:ATTRIBUTE.",
)
@click.option(
    "--variables",
    "-V",
    default=None,
    help="Query variables as a JSON object.",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose output.",
)
def query(source: str, app: str, variables: str | None, verbose: bool):
    """Execute a GraphQL query against an Api and print the JSON result.

    Examples:

        gql-descql query -a ./examples/films.py:api '{ film { title } }'
    """
    _setup_logging(verbose)
    try:
        api = load_app(app)
    except DescqlError as e:
        raise click.ClickException(f"Schema build failed: {e}")

    try:
        parsed_variables = json.loads(variables) if variables else None
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"Invalid JSON: {e}", param_hint="--variables")

    result = asyncio.run(api.execute(source, variables=parsed_variables))
    click.echo(json.dumps(result.formatted, indent=2, default=str))
    if result.errors:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
