# === NAVMAP v1 ===
# {
#   "module": "Pokedex.SpriteDownload.cli",
#   "purpose": "Typer commands for download, load, show, list and print-config",
#   "sections": [
#     {
#       "id": "resolve-config",
#       "name": "_resolve_config",
#       "anchor": "function-resolve-config",
#       "kind": "function"
#     },
#     {
#       "id": "setup-failed",
#       "name": "_setup_failed",
#       "anchor": "function-setup-failed",
#       "kind": "function"
#     },
#     {
#       "id": "download",
#       "name": "download",
#       "anchor": "function-download",
#       "kind": "function"
#     },
#     {
#       "id": "load",
#       "name": "load",
#       "anchor": "function-load",
#       "kind": "function"
#     },
#     {
#       "id": "show",
#       "name": "show",
#       "anchor": "function-show",
#       "kind": "function"
#     },
#     {
#       "id": "list-remote",
#       "name": "list_remote",
#       "anchor": "function-list-remote",
#       "kind": "function"
#     },
#     {
#       "id": "print-config",
#       "name": "print_config",
#       "anchor": "function-print-config",
#       "kind": "function"
#     },
#     {
#       "id": "main",
#       "name": "main",
#       "anchor": "function-main",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Typer-based CLI for the sprite fetch and load passes."""

import json
import signal
from pathlib import Path
from typing import Any, Dict, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from Pokedex.SpriteDownload.cancellation import CancellationToken
from Pokedex.SpriteDownload.catalog import CatalogLoader, CatalogStore
from Pokedex.SpriteDownload.config import SpriteDownloadConfig, load_config
from Pokedex.SpriteDownload.errors import FetchError, SetupError, format_run_summary
from Pokedex.SpriteDownload.logging_utils import setup_logging
from Pokedex.SpriteDownload.pipeline import list_catalog, run_download

console = Console()
app = typer.Typer(help="Pokedex sprite ingestion", no_args_is_help=True)

CONFIG_OPTION = typer.Option(None, "--config", help="Path to a YAML or JSON config file")

# ============================================================================
# Setup
# ============================================================================


def _resolve_config(config: Optional[str], overrides: Dict[str, Any]) -> SpriteDownloadConfig:
    """Load the effective config; invalid input exits with code 2."""
    try:
        return load_config(path=config, cli_overrides=overrides)
    except (ValidationError, ValueError) as e:
        console.print(f"[red]✗ Invalid configuration: {e}[/red]")
        raise typer.Exit(code=2)


def _setup_failed(exc: SetupError) -> typer.Exit:
    console.print(f"[red]✗ Error: {exc}[/red]")
    return typer.Exit(code=1)


# ============================================================================
# Commands
# ============================================================================


@app.command()
def download(
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Output directory"),
    concurrency: Optional[int] = typer.Option(
        None, "--concurrency", "-c", min=1, help="Simultaneous downloads"
    ),
    start: Optional[int] = typer.Option(None, "--start", "-s", min=1, help="First id"),
    end: Optional[int] = typer.Option(None, "--end", "-e", min=1, help="Last id (inclusive)"),
    config: Optional[str] = CONFIG_OPTION,
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Verbose"),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit logs as JSON lines"),
) -> None:
    """Fetch sprites for an id range and write originals, thumbnails and metadata."""
    setup_logging(verbose=verbose, json_logs=json_logs)
    cfg = _resolve_config(
        config,
        {
            "download": {
                "out_dir": str(out) if out is not None else None,
                "concurrency": concurrency,
                "start_id": start,
                "end_id": end,
            }
        },
    )
    policy = cfg.download
    console.print(
        Panel(
            f"[bold green]✓ Config loaded[/bold green]\n"
            f"Hash: {cfg.config_hash()[:8]}...\n"
            f"Range: #{policy.start_id}..#{policy.end_id}\n"
            f"Concurrency: {policy.concurrency}\n"
            f"Output: {policy.out_dir}",
            title="Sprite Download",
        )
    )

    token = CancellationToken()

    def _on_interrupt(signum: int, frame: Any) -> None:
        console.print("[yellow]Interrupt received; finishing in-flight entities[/yellow]")
        token.cancel("interrupted")

    previous = signal.signal(signal.SIGINT, _on_interrupt)
    try:
        result = run_download(cfg, cancel_token=token)
    except SetupError as e:
        raise _setup_failed(e)
    finally:
        signal.signal(signal.SIGINT, previous)

    attempted = len(result.outcomes) - result.cancelled_count
    console.print(
        Panel(
            format_run_summary(attempted, result.success_count, result.failures_by_reason()),
            title="Execution Summary",
        )
    )
    if result.cancelled_count:
        console.print(f"[yellow]{result.cancelled_count} id(s) not started[/yellow]")
    console.print(f"Summary: {result.summary_path}")


@app.command()
def load(
    meta_dir: Optional[Path] = typer.Option(None, "--meta-dir", "-m", help="Metadata directory"),
    db: Optional[Path] = typer.Option(None, "--db", "-d", help="SQLite catalog path"),
    config: Optional[str] = CONFIG_OPTION,
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Verbose"),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit logs as JSON lines"),
) -> None:
    """Load metadata descriptors and their binaries into the SQLite catalog."""
    setup_logging(verbose=verbose, json_logs=json_logs)
    cfg = _resolve_config(
        config,
        {
            "catalog": {
                "meta_dir": str(meta_dir) if meta_dir is not None else None,
                "db_path": str(db) if db is not None else None,
            }
        },
    )
    directory = cfg.resolved_meta_dir()
    if not directory.is_dir():
        console.print(f"[red]✗ Meta directory does not exist: {directory}[/red]")
        raise typer.Exit(code=2)
    try:
        with CatalogStore(
            cfg.catalog.db_path,
            wal_mode=cfg.catalog.wal_mode,
            synchronous=cfg.catalog.synchronous,
        ) as store:
            report = CatalogLoader(store).load_directory(directory)
            total_rows = store.count()
    except SetupError as e:
        raise _setup_failed(e)

    skipped = report.skipped_by_reason()
    lines = [
        f"Upserted: {len(report.upserted)}",
        f"Skipped: {sum(skipped.values())}",
        f"Errors: {report.error_count}",
        f"Rows in catalog: {total_rows}",
    ]
    for reason, count in sorted(skipped.items()):
        lines.append(f"  {reason}: {count}")
    console.print(Panel("\n".join(lines), title="Load Summary"))


@app.command()
def show(
    entity_id: int = typer.Argument(..., min=1, help="Entity id"),
    db: Optional[Path] = typer.Option(None, "--db", "-d", help="SQLite catalog path"),
    config: Optional[str] = CONFIG_OPTION,
) -> None:
    """Print one catalog row (without binary columns)."""
    cfg = _resolve_config(config, {"catalog": {"db_path": str(db) if db is not None else None}})
    try:
        with CatalogStore(
            cfg.catalog.db_path,
            wal_mode=cfg.catalog.wal_mode,
            synchronous=cfg.catalog.synchronous,
        ) as store:
            row = store.get(entity_id)
    except SetupError as e:
        raise _setup_failed(e)

    if row is None:
        console.print(f"[red]✗ No catalog row for #{entity_id}[/red]")
        raise typer.Exit(code=1)

    table = Table(title=f"#{row.id} {row.name}")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("types", ", ".join(row.types) or "-")
    table.add_row("image_mime", row.image_mime)
    table.add_row("image_size", str(row.image_size))
    table.add_row("checksum", row.checksum or "-")
    table.add_row("thumbnail", row.thumb_mime or "none")
    table.add_row("created_at", row.created_at or "-")
    console.print(table)
    console.print(Panel(json.dumps(json.loads(row.meta_json), indent=2), title="Metadata"))


@app.command("list")
def list_remote(
    limit: int = typer.Option(20, "--limit", "-l", min=1, help="Rows to list"),
    offset: int = typer.Option(0, "--offset", min=0, help="Rows to skip"),
    config: Optional[str] = CONFIG_OPTION,
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Verbose"),
) -> None:
    """List entity ids and names from the remote catalog."""
    setup_logging(verbose=verbose)
    cfg = _resolve_config(config, {})
    try:
        listings = list_catalog(cfg, limit=limit, offset=offset)
    except FetchError as e:
        console.print(f"[red]✗ Listing failed: {e}[/red]")
        raise typer.Exit(code=1)

    table = Table(title=f"Remote catalog (offset {offset})")
    table.add_column("ID", justify="right", style="cyan")
    table.add_column("Name")
    for item in listings:
        table.add_row(str(item.id), item.name)
    console.print(table)


@app.command("print-config")
def print_config(
    config: Optional[str] = CONFIG_OPTION,
    raw: bool = typer.Option(False, "--raw", help="Raw JSON"),
) -> None:
    """Print merged effective config."""
    cfg = _resolve_config(config, {})
    data = json.dumps(cfg.model_dump(mode="json"), indent=2)
    if raw:
        typer.echo(data)
    else:
        console.print(Panel(data, title="Pokedex Config", expand=False))


def main() -> None:
    """Entry point for CLI."""
    app()


if __name__ == "__main__":
    main()
