"""Shared console output for CLI commands."""

import sys
from typing import NoReturn

import click


def echo_error(message: str) -> None:
    click.echo(click.style("Error: ", fg="red", bold=True) + message)


def echo_warning(message: str) -> None:
    click.echo(click.style("Warning: ", fg="yellow", bold=True) + message)


def echo_success(message: str) -> None:
    click.echo(click.style(message, fg="green"))


def fail(message: str) -> NoReturn:
    """Print an error and exit with status 1."""
    echo_error(message)
    sys.exit(1)
