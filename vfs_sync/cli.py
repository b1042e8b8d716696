"""
CLI commands for vfs-sync.

Provides the `vfs-sync` command-line interface for importing a directory tree
into a version store and inspecting the effective configuration.
"""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn

from config.loader import ConfigurationLoader
from core.importer import (
    FileImportError, FileImportPipeline, ImportSummary, Notification, NotificationKind
)
from core.models.config import GlobalSettings, SyncConfig
from core.storage import create_store

console = Console()

LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


def _setup_logging(level: Optional[str]) -> None:
    if level is None:
        level = GlobalSettings().log_level
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def _resolve_config(
    root: Path,
    qdrant_url: Optional[str],
    qdrant_path: Optional[Path],
    collection: Optional[str],
    memory: bool
) -> SyncConfig:
    """Load the root's configuration and apply command-line overrides"""
    config = ConfigurationLoader().load_config(root)

    if memory:
        config.store.backend = "memory"
    if qdrant_url:
        config.store.url = qdrant_url
        config.store.path = None
    if qdrant_path:
        config.store.path = qdrant_path.resolve()
    if collection:
        config.store.collection_name = collection
    return config


@click.group()
@click.version_option(version="1.0.0", prog_name="vfs-sync")
def main():
    """
    vfs-sync CLI.

    Synchronize directory trees into an append-only version history.
    """
    pass


@main.command(name="import")
@click.argument(
    'root',
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default='.'
)
@click.option('--qdrant-url', help='Qdrant server URL (default: from config)')
@click.option(
    '--qdrant-path',
    type=click.Path(file_okay=False, path_type=Path),
    help='Use an embedded Qdrant store in this directory'
)
@click.option('--collection', help='Version collection name')
@click.option(
    '--memory',
    is_flag=True,
    help='Use a throwaway in-memory store; nothing is kept after the command exits'
)
@click.option(
    '--dry-run', '-n',
    is_flag=True,
    help='Show what would be imported without committing anything'
)
@click.option('--log-level', type=click.Choice(LOG_LEVELS, case_sensitive=False))
def import_files(
    root: Path,
    qdrant_url: Optional[str],
    qdrant_path: Optional[Path],
    collection: Optional[str],
    memory: bool,
    dry_run: bool,
    log_level: Optional[str]
):
    """Import new, modified and deleted files under ROOT as new versions."""
    _setup_logging(log_level)

    try:
        config = _resolve_config(root, qdrant_url, qdrant_path, collection, memory)
    except ValueError as e:
        console.print(f"[red]❌ Invalid configuration: {e}[/red]")
        sys.exit(1)

    console.print(f"[blue]📂 Root: {config.root}[/blue]")
    console.print(f"[blue]🗄️  Store: {config.store.backend} ({config.store.collection_name})[/blue]")
    if memory and not dry_run:
        console.print("[yellow]⚠️  In-memory store: imported versions are discarded on exit[/yellow]")

    try:
        if dry_run:
            asyncio.run(_run_dry_run(config))
            return
        summary = asyncio.run(_run_import(config))
    except FileImportError as e:
        console.print(f"[red]❌ Import failed: {e}[/red]")
        sys.exit(1)

    if summary.error is not None:
        console.print(
            f"[red]❌ Import failed after {summary.files_processed}/{summary.total_files} "
            f"changes: {summary.error}[/red]"
        )
        sys.exit(1)

    if summary.total_files == 0:
        console.print("[green]✅ Everything up to date[/green]")
    else:
        console.print(
            f"[green]🎉 Imported {summary.files_processed} changes in "
            f"{summary.batches_committed} batches ({summary.elapsed_seconds:.2f}s)[/green]"
        )


async def _run_import(config: SyncConfig) -> ImportSummary:
    """Run the import with a progress bar driven by pipeline notifications."""
    store = create_store(config)
    async with store:
        pipeline = FileImportPipeline(store, config.importer)

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=console,
            transient=True
        ) as progress:
            task = progress.add_task("Scanning files...", total=None)

            def on_notification(notification: Notification) -> None:
                if notification.kind == NotificationKind.FILES_FOUND:
                    progress.update(
                        task,
                        description=f"Importing {len(notification.files)} changes",
                        total=len(notification.files)
                    )
                elif notification.kind == NotificationKind.PROCESS_BATCH:
                    progress.update(
                        task,
                        description=f"Batch {notification.batch_index + 1} ({len(notification.files)} files)"
                    )
                elif notification.kind == NotificationKind.PROGRESS:
                    progress.update(task, completed=notification.progress.loaded)

            pipeline.notifications.subscribe(on_notification)
            return await pipeline.run()


async def _run_dry_run(config: SyncConfig) -> None:
    """Detect changes and print them without committing."""
    store = create_store(config)
    async with store:
        pipeline = FileImportPipeline(store, config.importer)
        change_set = await pipeline.detect_changes()

    if not change_set.entries:
        console.print("[green]✅ Everything up to date[/green]")
        return

    new_paths = {f.path for f in change_set.new_files}
    table = Table(title=f"{len(change_set.entries)} changes")
    table.add_column("Path", style="cyan")
    table.add_column("Change", style="white")
    table.add_column("Size", justify="right", style="dim")

    for descriptor in change_set.entries:
        if descriptor.is_deletion:
            change = "[red]deleted[/red]"
        elif descriptor.path in new_paths:
            change = "[green]new[/green]"
        else:
            change = "[yellow]modified[/yellow]"
        table.add_row(descriptor.path, change, str(descriptor.size))

    console.print(table)
    batches = pipeline.batcher.create_batches(change_set.entries)
    console.print(f"[dim]Would commit {len(batches)} batches[/dim]")


@main.command(name="config")
@click.argument(
    'root',
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default='.'
)
@click.option('--save', is_flag=True, help='Write the effective configuration to ROOT/.vfs-sync/config.json')
def show_config(root: Path, save: bool):
    """Show the effective configuration for ROOT."""
    loader = ConfigurationLoader()
    config = loader.load_config(root)

    console.print_json(json.dumps(config.to_dict()))

    if save:
        try:
            config_file = loader.save_config(config)
        except OSError as e:
            console.print(f"[red]❌ Failed to save configuration: {e}[/red]")
            sys.exit(1)
        console.print(f"[green]✅ Saved {config_file}[/green]")


if __name__ == "__main__":
    main()
