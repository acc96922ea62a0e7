"""Main CLI entry point for chisme.

This module defines the Typer application and its commands.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, Any

import structlog
import typer
from rich.console import Console
from rich.table import Table

from chisme import __version__
from chisme.backends import get_backend
from chisme.core.channel import Channel
from chisme.core.config import ConfigManager, LogLevel, Settings, Target, build_runner
from chisme.core.errors import ChismeError, PackageNotFoundError
from chisme.core.models import Package
from chisme.store import DatabaseConnection, PackageStore

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Coroutine, Iterable

    from chisme.core.interfaces import PackageManager

logger = structlog.get_logger(__name__)

app = typer.Typer(
    name="chisme",
    help="List and update OS packages on the local host or over SSH.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()


def configure_logging(log_level: str) -> None:
    """Configure structlog and standard logging with the specified level.

    Log output goes to stderr so it does not mix with command output.

    Args:
        log_level: Log level string (debug, info, warning, error).
    """
    level_map = {
        "debug": logging.DEBUG,
        "info": logging.INFO,
        "warning": logging.WARNING,
        "error": logging.ERROR,
    }
    level = level_map.get(log_level.lower(), logging.WARNING)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=level,
        force=True,
    )

    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(level),
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


@dataclass
class CliState:
    """Options given before the command name."""

    config_path: Path | None = None
    backend: str | None = None
    target: Target | None = None
    log_level: LogLevel | None = None

    def config_manager(self) -> ConfigManager:
        return ConfigManager(self.config_path)

    def settings(self) -> Settings:
        """Load settings and apply the command line overrides."""
        settings = self.config_manager().load()
        overrides: dict[str, Any] = {}
        if self.backend:
            overrides["backend"] = self.backend
        if self.target:
            overrides["target"] = self.target
        if self.log_level:
            overrides["log_level"] = self.log_level
        if overrides:
            settings = settings.model_copy(update=overrides)
        configure_logging(settings.log_level.value)
        return settings


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold blue]chisme[/bold blue] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    backend: Annotated[
        str | None,
        typer.Option("--backend", "-b", help="Package manager backend (default: apt)."),
    ] = None,
    host: Annotated[
        Target | None,
        typer.Option(
            "--host", "-H", help="Run commands locally or over SSH.", case_sensitive=False
        ),
    ] = None,
    config: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Configuration file to use."),
    ] = None,
    log_level: Annotated[
        LogLevel | None,
        typer.Option("--log-level", "-l", help="Log level.", case_sensitive=False),
    ] = None,
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """Chisme: list and update OS packages.

    SSH targets read SSH_HOST, SSH_PORT, SSH_USER, SSH_PRIVATE_KEY_PATH and
    SSH_PRIVATE_KEY_PASSWORD from the environment.
    """
    configure_logging((log_level or LogLevel.WARNING).value)
    ctx.obj = CliState(config_path=config, backend=backend, target=host, log_level=log_level)


def _run(ctx: typer.Context, command: Callable[..., Coroutine[Any, Any, None]]) -> None:
    """Run an async command with the backend and store, mapping errors to exit code 1."""
    state: CliState = ctx.obj
    try:
        settings = state.settings()
        backend = _make_backend(settings)
        with DatabaseConnection(settings.database_path) as conn:
            asyncio.run(command(backend, PackageStore(conn)))
    except ChismeError as e:
        logger.debug("command_failed", error=str(e), error_type=type(e).__name__)
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1) from None


def _make_backend(settings: Settings) -> PackageManager:
    runner = build_runner(settings)
    options: dict[str, Any] = {"elevate": settings.use_sudo}
    if settings.backend_cli:
        options["cli"] = settings.backend_cli
    return get_backend(settings.backend, runner, **options)


def _package_table(title: str, packages: Iterable[Package]) -> Table:
    table = Table(title=title, show_header=True)
    table.add_column("Package", style="cyan")
    table.add_column("Installed Version")
    table.add_column("New Version", style="bold")
    for pkg in packages:
        new_version = pkg.candidate_version if pkg.is_upgradable else "[dim]-[/dim]"
        table.add_row(pkg.name, pkg.installed_version or "[dim]-[/dim]", new_version)
    return table


async def _print_lines(output: Channel[str]) -> None:
    async for line in output:
        console.print(line, markup=False, highlight=False)


async def _stream(operation: Callable[[Channel[str]], Awaitable[None]]) -> None:
    """Run a streaming operation, printing its output lines as they arrive."""
    output: Channel[str] = Channel()
    printer = asyncio.create_task(_print_lines(output))
    try:
        await operation(output)
    finally:
        output.close()
        await printer


def _persist(store: PackageStore, packages: Iterable[Package]) -> None:
    for pkg in packages:
        store.save_or_update(pkg)


@app.command("list-upgradable")
def list_upgradable(ctx: typer.Context) -> None:
    """List packages with a newer version available and record them."""

    async def command(backend: PackageManager, store: PackageStore) -> None:
        packages = await backend.list_upgradable()
        _persist(store, packages)
        if not packages:
            console.print("[green]All packages are up to date[/green]")
            return
        console.print(_package_table("Upgradable Packages", packages))

    _run(ctx, command)


@app.command("list-installed")
def list_installed(ctx: typer.Context) -> None:
    """List installed packages and record them."""

    async def command(backend: PackageManager, store: PackageStore) -> None:
        packages = [pkg for pkg in await backend.list_installed() if pkg.installed]
        _persist(store, packages)
        console.print(_package_table("Installed Packages", packages))

    _run(ctx, command)


@app.command()
def update(
    ctx: typer.Context,
    name: Annotated[str, typer.Argument(help="Name of the package to update.")],
) -> None:
    """Update one recorded package.

    The package must have been recorded by list-upgradable or list-installed.
    """

    async def command(backend: PackageManager, store: PackageStore) -> None:
        try:
            pkg = store.get_by_name(name)
        except PackageNotFoundError as e:
            raise PackageNotFoundError(f"{e}; run list-upgradable first") from e

        await _stream(lambda output: backend.update_one(pkg, output))

        pkg.installed = True
        pkg.installed_version = pkg.candidate_version
        store.update(pkg)
        store.update_last_updated(pkg, datetime.now(tz=UTC))
        console.print(f"[green]Updated {pkg.name} to {pkg.candidate_version}[/green]")

    _run(ctx, command)


@app.command("update-all")
def update_all(ctx: typer.Context) -> None:
    """Upgrade every package, then reconcile the recorded packages."""

    async def command(backend: PackageManager, store: PackageStore) -> None:
        await _stream(backend.update_all)

        packages = await backend.list_upgradable()
        now = datetime.now(tz=UTC)
        for pkg in packages:
            try:
                stored = store.get_by_name(pkg.name)
            except PackageNotFoundError:
                store.save(pkg)
                store.update_last_updated(pkg, now)
                continue
            if stored.installed_version != pkg.installed_version:
                stored.installed_version = pkg.installed_version
                store.update(stored)
                store.update_last_updated(stored, now)

        if packages:
            console.print(_package_table("Still Upgradable", packages))
        else:
            console.print("[green]All packages are up to date[/green]")

    _run(ctx, command)


@app.command()
def refresh(ctx: typer.Context) -> None:
    """Refresh the package lists."""

    async def command(backend: PackageManager, store: PackageStore) -> None:  # noqa: ARG001
        await _stream(backend.refresh)

    _run(ctx, command)


@app.command()
def simulate(
    ctx: typer.Context,
    name: Annotated[str, typer.Argument(help="Name of the package to simulate updating.")],
) -> None:
    """Show what updating a package would do, without changing anything."""

    async def command(backend: PackageManager, store: PackageStore) -> None:  # noqa: ARG001
        lines = await backend.simulate_update(Package(name=name, candidate_version=""))
        async for line in lines:
            console.print(line, markup=False, highlight=False)

    _run(ctx, command)


# Create config subcommand group
config_app = typer.Typer(
    name="config",
    help="Manage configuration.",
    no_args_is_help=True,
)
app.add_typer(config_app, name="config")


@config_app.command("show")
def config_show(ctx: typer.Context) -> None:
    """Show the effective configuration."""
    import yaml

    state: CliState = ctx.obj
    try:
        settings = state.settings()
    except ChismeError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1) from None

    console.print(f"[bold]Configuration File:[/bold] {state.config_manager().config_path}")
    console.print()

    data = settings.model_dump(mode="json", exclude_none=True)
    if "private_key_password" in data.get("ssh", {}):
        data["ssh"]["private_key_password"] = "********"
    console.print(yaml.dump(data, default_flow_style=False, sort_keys=False), markup=False)


@config_app.command("init")
def config_init(
    ctx: typer.Context,
    force: Annotated[
        bool,
        typer.Option(
            "--force",
            "-f",
            help="Overwrite existing configuration.",
        ),
    ] = False,
) -> None:
    """Initialize configuration file."""
    config_manager = ctx.obj.config_manager()

    if config_manager.init_config(force=force):
        console.print(f"[green]Configuration initialized: {config_manager.config_path}[/green]")
    else:
        console.print(
            f"[yellow]Configuration already exists: {config_manager.config_path}[/yellow]"
        )
        console.print("Use --force to overwrite.")


@config_app.command("path")
def config_path(ctx: typer.Context) -> None:
    """Show configuration file path."""
    console.print(str(ctx.obj.config_manager().config_path))


if __name__ == "__main__":
    app()
