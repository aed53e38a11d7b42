"""Logging utilities with colored output via Rich.

Under GitHub Actions, warnings and errors are also emitted as workflow
commands so they show up as annotations on the run.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from rich.console import Console
from rich.markup import escape

console = Console(highlight=False)
_err_console = Console(highlight=False, stderr=True)

_verbose = False
_annotations = False


def set_verbose(enabled: bool) -> None:
    global _verbose
    _verbose = enabled


def set_annotations(enabled: bool) -> None:
    """Toggle GitHub Actions workflow commands (``::warning::`` etc.)."""
    global _annotations
    _annotations = enabled


def _workflow_command(name: str, msg: str) -> None:
    # Workflow commands must reach stdout unstyled and on a single line.
    flat = msg.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")
    console.out(f"::{name}::{flat}", highlight=False)


def info(msg: str) -> None:
    console.print(f"[blue]\\[INFO][/blue] {escape(msg)}")


def success(msg: str) -> None:
    console.print(f"[green]\\[OK][/green] {escape(msg)}")


def warn(msg: str) -> None:
    console.print(f"[yellow]\\[WARN][/yellow] {escape(msg)}")
    if _annotations:
        _workflow_command("warning", msg)


def error(msg: str) -> None:
    _err_console.print(f"[red]\\[ERROR][/red] {escape(msg)}")
    if _annotations:
        _workflow_command("error", msg)


def debug(msg: str) -> None:
    if _verbose:
        console.print(f"[dim]\\[DEBUG] {escape(msg)}[/dim]")


@contextmanager
def group(title: str) -> Iterator[None]:
    """Fold everything logged inside the block into a collapsible CI group."""
    if not _annotations:
        console.rule(f"[bold]{escape(title)}[/bold]", style="dim")
        yield
        return
    console.out(f"::group::{title}", highlight=False)
    try:
        yield
    finally:
        console.out("::endgroup::", highlight=False)
