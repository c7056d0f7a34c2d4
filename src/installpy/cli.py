"""Typer command-line host for installpy."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Optional

import typer
from loguru import logger

from installpy.config import Settings, load_settings
from installpy.errors import InstallPyError
from installpy.hooks import InstallPyHooks
from installpy.installer import ACTIONS, InstallResult, PythonInstaller
from installpy.logging_utils import configure_logging
from installpy.resolver import resolve_commands
from installpy.terminal import TerminalProvider
from installpy.types import OSClass

app = typer.Typer(
    name="installpy",
    help="Install Python by sending package-manager commands to a terminal.",
    add_completion=False,
    no_args_is_help=True,
)


def _exit_with_error(error: Exception) -> None:
    typer.secho(f"error: {error}", fg=typer.colors.RED, err=True)
    raise typer.Exit(1) from error


def _resolve_os(os_name: Optional[str]) -> OSClass:
    if os_name is None or os_name == "auto":
        return OSClass.current()
    return OSClass.parse(os_name)


def _load_hooks() -> InstallPyHooks:
    hooks = InstallPyHooks()
    hooks.load_plugins()
    return hooks


def _settings(**overrides: object) -> Settings:
    settings = load_settings(**overrides)
    configure_logging(level=settings.log_level, profile="cli")
    return settings


def _run_with(
    settings: Settings,
    run: Callable[[PythonInstaller], Awaitable[InstallResult]],
) -> InstallResult:
    hooks = _load_hooks()
    terminals = hooks.terminal_provider(settings)
    installer = PythonInstaller(terminals, hooks.prober(settings), settings)

    async def _main() -> InstallResult:
        try:
            return await run(installer)
        finally:
            await _close_terminals(terminals)

    return asyncio.run(_main())


async def _close_terminals(terminals: TerminalProvider) -> None:
    aclose = getattr(terminals, "aclose", None)
    if callable(aclose):
        await aclose()


def _report(result: InstallResult) -> None:
    typer.echo(f"Sent {result.sent} command(s) for {result.os}. Check the terminal for the outcome.")


@app.command()
def install(
    os_name: Optional[str] = typer.Option(None, "--os", help="macos, linux or auto (default: this machine)"),
    terminal: Optional[str] = typer.Option(None, "--terminal", "-t", help="Terminal backend: shell, echo or tmux"),
    interval: Optional[float] = typer.Option(None, "--interval", help="Seconds to wait after each command"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Print the commands instead of running them"),
) -> None:
    """Install Python for the given operating system."""

    try:
        settings = _settings(terminal="echo" if dry_run else terminal, send_interval=interval)
        os = _resolve_os(os_name)
        result = _run_with(settings, lambda installer: installer.install(os))
    except InstallPyError as e:
        _exit_with_error(e)
    except Exception:
        logger.exception("install.failed")
        raise
    _report(result)


@app.command()
def action(
    name: str = typer.Argument(..., help="Action name, see `installpy actions`"),
    terminal: Optional[str] = typer.Option(None, "--terminal", "-t", help="Terminal backend: shell, echo or tmux"),
) -> None:
    """Trigger one named install action."""

    try:
        settings = _settings(terminal=terminal)
        result = _run_with(settings, lambda installer: installer.trigger(name))
    except InstallPyError as e:
        _exit_with_error(e)
    except Exception:
        logger.exception("action.failed name={}", name)
        raise
    _report(result)


@app.command()
def actions() -> None:
    """List the install actions."""

    for name, os in ACTIONS.items():
        typer.echo(f"{name}\t{os}")


@app.command()
def commands(
    os_name: Optional[str] = typer.Option(None, "--os", help="macos, linux or auto (default: this machine)"),
) -> None:
    """Show the commands an install would send, without a terminal."""

    try:
        settings = _settings()
        os = _resolve_os(os_name)
        prober = _load_hooks().prober(settings)
    except InstallPyError as e:
        _exit_with_error(e)
    for command in resolve_commands(os, prober):
        typer.echo(command)


@app.command()
def hooks() -> None:
    """Show plugin hook implementations."""

    report = _load_hooks().hook_report()
    if not report:
        typer.echo("(no hook implementations)")
        return
    for hook_name, plugin_names in report.items():
        typer.echo(f"{hook_name}: {', '.join(plugin_names)}")
