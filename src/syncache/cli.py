"""CLI interface for syncache.

Requires the 'cli' extra: pip install syncache[cli]
"""

from __future__ import annotations

import asyncio
import sys

try:
    import typer
    from rich.console import Console
    from rich.table import Table
except ImportError:
    print(
        "CLI dependencies not installed. Install with: pip install syncache[cli]",
        file=sys.stderr,
    )
    sys.exit(1)

from pydantic import ValidationError

from syncache import __version__
from syncache.models.options import SyncOptions
from syncache.models.state import SyncState, SyncStatus
from syncache.sync.synchronizer import Synchronizer

app = typer.Typer(
    name="syncache",
    help="Resilient data synchronization cache for asyncio applications.",
    add_completion=False,
)
console = Console()

_STATUS_STYLES = {
    SyncStatus.LOADING: "blue",
    SyncStatus.ERROR: "red",
    SyncStatus.STALE: "yellow",
    SyncStatus.FRESH: "green",
    SyncStatus.IDLE: "dim",
}


@app.callback()
def main(
    version: bool = typer.Option(False, "--version", "-v", help="Show version"),
) -> None:
    if version:
        console.print(f"syncache {__version__}")
        raise typer.Exit()


@app.command()
def info() -> None:
    """Show information about the syncache installation."""
    table = Table(title="syncache info")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Version", __version__)
    table.add_row("Python", sys.version.split()[0])

    for dep_name in ["pydantic", "typer", "rich"]:
        try:
            mod = __import__(dep_name)
            ver = getattr(mod, "__version__", "installed")
            table.add_row(dep_name, str(ver))
        except ImportError:
            table.add_row(dep_name, "[red]not installed[/red]")

    defaults = SyncOptions()
    table.add_row("Default ttl", f"{defaults.ttl:g}s")
    table.add_row("Default max retries", str(defaults.max_retries))
    table.add_row("Default retry base delay", f"{defaults.retry_base_delay:g}s")
    console.print(table)


@app.command()
def simulate(
    failures: int = typer.Option(0, "--failures", "-f", min=0, help="Failed attempts before success"),
    max_retries: int = typer.Option(3, "--max-retries", "-r", min=1, help="Total attempts per fetch"),
    base_delay: float = typer.Option(0.05, "--base-delay", "-d", min=0.0, help="Backoff base (s)"),
    ttl: float = typer.Option(300.0, "--ttl", help="Freshness window (s)"),
    key: str = typer.Option("demo", "--key", "-k", help="Cache key"),
) -> None:
    """Run one fetch cycle against a flaky fake source and print every state."""
    try:
        options = SyncOptions(ttl=ttl, max_retries=max_retries, retry_base_delay=base_delay)
    except ValidationError as exc:
        console.print(f"[red]Error: invalid options: {exc.errors()[0]['msg']}[/red]")
        raise typer.Exit(code=1) from None
    states = asyncio.run(_simulate(key, failures, options))

    table = Table(title=f"syncache simulate ({key})")
    table.add_column("#", justify="right")
    table.add_column("Status")
    table.add_column("Data")
    table.add_column("Stale")
    table.add_column("Error")
    for i, state in enumerate(states, start=1):
        style = _STATUS_STYLES[state.status]
        table.add_row(
            str(i),
            f"[{style}]{state.status}[/{style}]",
            "" if state.data is None else str(state.data),
            "yes" if state.stale else "no",
            "" if state.error is None else str(state.error),
        )
    console.print(table)

    if states and states[-1].error is not None:
        raise typer.Exit(code=1)


async def _simulate(key: str, failures: int, options: SyncOptions) -> list[SyncState]:
    attempts = 0

    async def flaky_fetch() -> str:
        nonlocal attempts
        attempts += 1
        if attempts <= failures:
            msg = f"simulated failure {attempts}/{failures}"
            raise ConnectionError(msg)
        return f"value after {attempts} attempt(s)"

    states: list[SyncState] = []
    async with Synchronizer(options=options) as sync:
        async with sync.subscribe(key, flaky_fetch) as sub:
            async for state in sub:
                states.append(state)
                if not state.loading:
                    break
    return states


if __name__ == "__main__":
    app()
