"""CLI entry point.

``scancar serve`` runs the HTTP API with the scheduled refresh;
``scancar refresh`` runs one refresh and prints a per-source summary.
"""

import asyncio
import sys
from pathlib import Path
from typing import Dict, Optional, Sequence, Union

import click
import uvicorn
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from scancar import __version__
from scancar.models.config import AppConfig, ConfigManager
from scancar.models.data_models import Snapshot, SourceState
from scancar.models.errors import TotalRefreshFailure
from scancar.pipeline.orchestrator import NEW_CARS, USED_CARS, ScanCarService
from scancar.web.app import create_app

console = Console()

CATALOG_CHOICES = (USED_CARS, NEW_CARS, "all")

config_option = click.option(
    "--config",
    "-c",
    type=click.Path(dir_okay=False, path_type=Path),
    default="config/config.yaml",
    show_default=True,
    help="Path to configuration YAML file (skipped if missing)",
)
log_level_option = click.option(
    "--log-level",
    "-l",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging level (overrides config)",
)


def _load_config(config_path: Path, overrides: Dict[str, object]) -> AppConfig:
    if overrides.get("log_level"):
        overrides["log_level"] = str(overrides["log_level"]).upper()
    return ConfigManager(config_path).load_config(overrides)


@click.group()
@click.version_option(version=__version__, prog_name="scancar")
def main() -> None:
    """
    Scan Car - aggregated used-car listings for Đắk Lắk.

    Collects listings from several dealer sites concurrently, keeps a
    persisted snapshot fresh and serves it over HTTP.

    Examples:

        # Serve the API on the configured host and port
        $ scancar serve

        # One-off refresh of the used-car snapshot
        $ scancar refresh --catalog cars
    """


@main.command()
@config_option
@click.option("--host", help="Bind address (overrides config)")
@click.option("--port", "-p", type=int, help="Port (overrides config)")
@click.option("--no-scheduler", is_flag=True, help="Disable the periodic refresh job")
@log_level_option
def serve(
    config: Path,
    host: Optional[str],
    port: Optional[int],
    no_scheduler: bool,
    log_level: Optional[str],
) -> None:
    """Run the HTTP API."""
    try:
        app_config = _load_config(config, {
            "host": host,
            "port": port,
            "log_level": log_level,
            "scheduler_enabled": False if no_scheduler else None,
        })
        service = ScanCarService(app_config)
    except Exception as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}", style="bold red")
        sys.exit(1)

    console.print(f"[cyan]Serving on http://{app_config.host}:{app_config.port}[/cyan]")
    uvicorn.run(
        create_app(service),
        host=app_config.host,
        port=app_config.port,
        log_level=app_config.log_level.lower(),
    )


@main.command()
@config_option
@click.option(
    "--catalog",
    type=click.Choice(CATALOG_CHOICES),
    default="all",
    show_default=True,
    help="Which snapshot to refresh",
)
@click.option("--no-progress", is_flag=True, help="Disable the spinner (useful for CI/CD)")
@log_level_option
def refresh(config: Path, catalog: str, no_progress: bool, log_level: Optional[str]) -> None:
    """Refresh snapshots once and print a per-source summary."""
    try:
        app_config = _load_config(config, {"log_level": log_level, "scheduler_enabled": False})
        names = [USED_CARS, NEW_CARS] if catalog == "all" else [catalog]

        if no_progress:
            results = asyncio.run(_run_refresh(app_config, names))
        else:
            with console.status("[cyan]Refreshing listings...[/cyan]"):
                results = asyncio.run(_run_refresh(app_config, names))

        failed = False
        for name, result in results.items():
            failed = _display_result(name, result) or failed
        sys.exit(1 if failed else 0)

    except KeyboardInterrupt:
        console.print("\n[yellow]Refresh interrupted by user[/yellow]")
        sys.exit(130)
    except Exception as e:
        console.print(f"\n[red]Error:[/red] {escape(str(e))}", style="bold red")
        sys.exit(1)


async def _run_refresh(
    config: AppConfig, names: Sequence[str]
) -> Dict[str, Union[Snapshot, TotalRefreshFailure]]:
    service = ScanCarService(config)
    await service.start(with_scheduler=False)
    results: Dict[str, Union[Snapshot, TotalRefreshFailure]] = {}
    try:
        for name in names:
            try:
                results[name] = await service.catalogs[name].coordinator.trigger_refresh()
            except TotalRefreshFailure as e:
                results[name] = e
    finally:
        await service.stop()
    return results


def _display_result(name: str, result: Union[Snapshot, TotalRefreshFailure]) -> bool:
    """Print one catalog's outcome; returns True if the refresh failed."""
    if isinstance(result, TotalRefreshFailure):
        console.print(f"\n[bold red]{name}: {escape(str(result))}[/bold red]")
        snapshot = result.snapshot
        failed = True
    else:
        console.print(f"\n[bold green]{name}: {len(result.listings)} listings[/bold green]")
        snapshot = result
        failed = False

    if snapshot is None or not snapshot.sources:
        return failed

    messages = {error.id: error.message for error in snapshot.errors}
    table = Table(title=f"Sources ({name})")
    table.add_column("Source", style="cyan")
    table.add_column("Listings", justify="right", style="green")
    table.add_column("Status")
    table.add_column("Error", style="yellow")
    for source in snapshot.sources:
        ok = source.status is SourceState.OK
        table.add_row(
            source.name,
            str(source.count),
            "[green]ok[/green]" if ok else "[red]error[/red]",
            escape(messages.get(source.id, "")),
        )
    console.print(table)
    return failed


if __name__ == "__main__":
    main()
