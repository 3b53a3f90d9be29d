"""Custom management commands.

Modules in this package register click commands with the `command`
decorator; `register_commands` attaches all of them to a CLI group.
"""

import importlib
import pkgutil
from collections.abc import Callable
from typing import Any

import click

_registry: list[click.Command] = []


def command(name: str, help: str | None = None) -> Callable[[Callable[..., Any]], click.Command]:
    """Declare a custom command picked up by `register_commands`."""

    def decorator(func: Callable[..., Any]) -> click.Command:
        cmd = click.command(name=name, help=help)(func)
        _registry.append(cmd)
        return cmd

    return decorator


def register_commands(group: click.Group) -> None:
    """Import every command module in this package and add its commands to `group`."""
    for module in pkgutil.iter_modules(__path__):
        importlib.import_module(f"{__name__}.{module.name}")
    for cmd in _registry:
        group.add_command(cmd)


def info(message: str) -> None:
    click.secho(message, fg="cyan")


def success(message: str) -> None:
    click.secho(message, fg="green")


def warning(message: str) -> None:
    click.secho(message, fg="yellow")


def error(message: str) -> None:
    click.secho(message, fg="red", err=True)
