"""Diagnostic command-line entry point.

Exercises the client against the real CLI: inspect builders, list contexts,
or run raw arguments and see exactly what dockside captured.
"""

import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from typing import NoReturn

import click

from dockside.client import DocksideClient
from dockside.config import FilesystemConfigOps
from dockside.core.errors import DocksideError

logger = logging.getLogger(__name__)

CONTEXT_SETTINGS = dict(help_option_names=["-h", "--help"])
DEBUG_ENV_VAR = "DOCKSIDE_DEBUG"


def user_output(message: str = "", nl: bool = True) -> None:
    """Write diagnostics for humans to stderr."""
    click.echo(message, err=True, nl=nl)


def machine_output(message: str = "", nl: bool = True) -> None:
    """Write results to stdout so they can be piped."""
    click.echo(message, nl=nl)


def fail(message: str) -> NoReturn:
    user_output(click.style("Error: ", fg="red") + message)
    raise SystemExit(1)


@contextmanager
def reported_errors() -> Iterator[None]:
    """Turn known failures into a styled message and exit code 1."""
    try:
        yield
    except (DocksideError, OSError, ValueError) as e:
        fail(str(e))


def get_client(ctx: click.Context) -> DocksideClient:
    if ctx.obj is None:
        config_ops = FilesystemConfigOps()
        logger.debug("Loading config from %s", config_ops.path())
        with reported_errors():
            ctx.obj = DocksideClient.connect(config_ops.load())
    return ctx.obj


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(package_name="dockside")
@click.option("--debug", is_flag=True, help="Log every command and every line of its output.")
@click.pass_context
def cli(ctx: click.Context, debug: bool) -> None:
    """Inspect what the docker CLI reports, through dockside's parsers."""
    if debug or os.getenv(DEBUG_ENV_VAR):
        logging.basicConfig(level=logging.DEBUG, format="[DEBUG %(name)s:%(lineno)d] %(message)s")


@cli.command("builder")
@click.argument("name", required=False, default="")
@click.pass_context
def builder_cmd(ctx: click.Context, name: str) -> None:
    """Show a builder's status (the current builder if NAME is omitted)."""
    client = get_client(ctx)
    with reported_errors():
        builder = client.get_builder(name)
    if builder is None:
        fail(f"Builder not found: {name or '(current)'}")
    machine_output(f"{builder.name}\t{builder.status}")
    if builder.error:
        user_output(builder.error)


@cli.command("platforms")
@click.pass_context
def platforms_cmd(ctx: click.Context) -> None:
    """List the platforms the current builder can target."""
    client = get_client(ctx)
    with reported_errors():
        platforms = client.get_supported_build_platforms()
    for platform in sorted(platforms):
        machine_output(platform)


@cli.command("contexts")
@click.pass_context
def contexts_cmd(ctx: click.Context) -> None:
    """List client contexts; the current one is marked with '*'."""
    client = get_client(ctx)
    with reported_errors():
        contexts = client.list_contexts()
    for context in contexts:
        marker = "*" if context.current else " "
        machine_output(f"{marker} {context.name}\t{context.endpoint}")
        if context.error:
            user_output(click.style(f"  {context.error}", fg="yellow"))


@cli.command("run", context_settings=dict(ignore_unknown_options=True))
@click.argument("arguments", nargs=-1, required=True, type=click.UNPROCESSED)
@click.pass_context
def run_cmd(ctx: click.Context, arguments: tuple[str, ...]) -> None:
    """Run raw CLI ARGUMENTS and print what was captured."""
    client = get_client(ctx)
    with reported_errors():
        result = client.run(list(arguments))
    if not result.succeeded:
        fail(str(result.unexpected_response()))
    if result.stdout:
        machine_output(result.stdout)


def main() -> None:
    """CLI entry point used by the `dockside` console script."""
    cli()
