"""CLI interface for retrieves."""

import asyncio
from pathlib import Path
from typing import Annotated, Any

import typer
from rich.console import Console
from rich.table import Table

from . import __version__
from .cache import FETCH_STARTED, FetchEvent, SnapshotCache
from .classifier import GroupPath, classify
from .config import RetrievesConfig, load_config
from .integrates_client import AuthMissingError, RetrievesError
from .locations import AggregatedResult
from .logging_utils import setup_logging
from .overlay import PENDING, project, summarize
from .snapshot import SnapshotUnreadableError, load_snapshot

app = typer.Typer(
    name="retrieves",
    help="Sync Fluid Attacks vulnerability locations into group checkouts",
    no_args_is_help=True,
)
console = Console()

ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", "-c", help="Path to config file"),
]
VerboseOption = Annotated[
    bool,
    typer.Option("--verbose", "-v", help="Enable verbose/debug output"),
]


def get_config(config_path: Path | None = None) -> RetrievesConfig:
    """Load configuration from file and environment."""
    try:
        return load_config(config_path)
    except Exception as e:
        console.print(f"[red]Error loading config: {e}[/red]")
        raise typer.Exit(1) from None


def run_async(coro: Any) -> Any:
    """Run an async function synchronously."""
    return asyncio.run(coro)


def resolve_group(path: Path) -> GroupPath:
    """Classify *path* or exit when it is not inside a group checkout."""
    group = classify(path.resolve())
    if group is None:
        console.print(f"[yellow]Not a group file:[/yellow] {path}")
        console.print("[dim]Expected <dir>/groups/<group>/<root nickname>/<file>[/dim]")
        raise typer.Exit(1)
    return group


def print_event(event: FetchEvent) -> None:
    if event.kind == FETCH_STARTED:
        console.print(f"[dim]Downloading locations for {event.group}...[/dim]")
    elif event.ok:
        console.print(f"[green]✓ Download complete for {event.group}[/green]")
    else:
        console.print(f"[red]✗ Download failed for {event.group}: {event.message}[/red]")


def _summary_table(result: AggregatedResult) -> Table:
    table = Table(title=f"Group {result.group or '?'}")
    table.add_column("Partition", style="cyan")
    table.add_column("Files", style="green")
    table.add_column("Titles", style="green")
    table.add_column("Lines", style="green")

    for name, partition in (("reported", result.reported), ("pending", result.pending)):
        titles = sum(len(records) for records in partition.values())
        lines = sum(
            len(record.line_numbers)
            for records in partition.values()
            for record in records.values()
        )
        table.add_row(name, str(len(partition)), str(titles), str(lines))
    return table


@app.callback(invoke_without_command=True)
def main(
    version: Annotated[
        bool,
        typer.Option("--version", help="Show the version and exit"),
    ] = False,
) -> None:
    """Sync Fluid Attacks vulnerability locations into group checkouts."""
    if version:
        console.print(__version__)
        raise typer.Exit()


@app.command()
def download(
    path: Annotated[Path, typer.Argument(help="Any file inside a group root checkout")],
    config_path: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Download the locations of a group and rewrite its snapshot."""
    config = get_config(config_path)
    setup_logging(verbose, config.api_token)
    group = resolve_group(path)

    cache = SnapshotCache(config)
    cache.subscribe(print_event)

    try:
        result = run_async(cache.force_refresh(group))
    except AuthMissingError as e:
        console.print(f"[yellow]{e}[/yellow]")
        raise typer.Exit(1) from None
    except RetrievesError:
        # already reported through the failed notification
        raise typer.Exit(1) from None

    console.print(_summary_table(result))
    console.print(f"[bold]Snapshot:[/bold] {cache.snapshot_path(group)}")


@app.command()
def show(
    file: Annotated[Path, typer.Argument(help="File inside a group root checkout")],
    config_path: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Show the reported and pending lines of a file."""
    config = get_config(config_path)
    setup_logging(verbose, config.api_token)
    group = resolve_group(file)

    cache = SnapshotCache(config)
    cache.subscribe(print_event)

    async def _resolve() -> AggregatedResult | None:
        result = cache.get(group)
        refresh = cache.pending(group.name)
        if result is None and refresh is not None:
            try:
                await refresh
            except RetrievesError:
                return None
            result = cache.get(group)
        return result

    result = run_async(_resolve())
    if result is None:
        if not config.has_token:
            console.print("[dim]No snapshot and no API token; nothing to show.[/dim]")
        raise typer.Exit(1)

    line_count = None
    if file.is_file():
        with open(file, encoding="utf-8", errors="replace") as f:
            line_count = sum(1 for _ in f)

    annotations = project(result, group.location_key, line_count, config.console_url)
    if not annotations:
        console.print(f"[green]No locations reported for {group.location_key}[/green]")
        return

    summaries = summarize(annotations)
    table = Table(title=group.location_key)
    table.add_column("Line", style="cyan", justify="right")
    table.add_column("State")
    table.add_column("Title")
    table.add_column("Link", style="dim")
    for annotation in annotations:
        state = (
            "[yellow]pending[/yellow]" if annotation.state == PENDING else "[red]reported[/red]"
        )
        table.add_row(str(annotation.line), state, annotation.title, annotation.url)
    console.print(table)
    console.print(f"[dim]{len(summaries)} annotated lines[/dim]")


@app.command()
def status(
    path: Annotated[Path, typer.Argument(help="Any file inside a group root checkout")],
    config_path: ConfigOption = None,
) -> None:
    """Show the persisted snapshot of a group."""
    config = get_config(config_path)
    group = resolve_group(path)
    snapshot_path = SnapshotCache(config).snapshot_path(group)

    try:
        result = load_snapshot(snapshot_path)
    except SnapshotUnreadableError as e:
        console.print(f"[dim]{e}[/dim]")
        raise typer.Exit(1) from None

    console.print(f"[bold]Snapshot:[/bold] {snapshot_path}")
    console.print(f"[bold]Organization:[/bold] {result.organization or '-'}")
    console.print(f"[bold]Exported At:[/bold] {result.exported_at or 'Unknown'}")
    console.print(f"[bold]Active Roots:[/bold] {', '.join(sorted(result.roots)) or '-'}\n")
    console.print(_summary_table(result))


@app.command()
def config_show(config_path: ConfigOption = None) -> None:
    """Show current configuration (with secrets masked)."""
    config = get_config(config_path)

    table = Table(title="Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    token = config.api_token
    table.add_row("API Token", f"{token[:8]}..." if token else "[red]Not set[/red]")
    table.add_row("Endpoint", config.endpoint)
    table.add_row("Console URL", config.console_url)
    table.add_row("Page Size", str(config.page_size))
    table.add_row("Timeout", f"{config.timeout:g}s")
    table.add_row("Max Retries", str(config.max_retries))
    table.add_row(
        "Snapshot Override",
        str(config.snapshot_override) if config.snapshot_override else "[dim]Not set[/dim]",
    )

    console.print(table)


if __name__ == "__main__":
    app()
