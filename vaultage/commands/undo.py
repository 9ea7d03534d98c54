"""Undo and backup commands - list, restore and prune note backups."""

from __future__ import annotations

from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..backup import BackupManager
from ..config import ConfigResolver
from .common import format_size, relative_time


def run_backups_list(path: Path, *, home: Path | None = None) -> int:
    console = Console()
    manager = BackupManager(home=home)
    records = manager.list_backups(path)

    if not records:
        console.print(f"No backups found for {escape(path.name)}.", style="yellow")
        return 0

    table = Table(title=f"Backups of {escape(path.name)}")
    table.add_column("#", justify="right")
    table.add_column("Created")
    table.add_column("Size", justify="right")
    table.add_column("File")
    for index, record in enumerate(records, start=1):
        table.add_row(
            str(index),
            f"{record.timestamp:%Y-%m-%d %H:%M:%S} ({relative_time(record.timestamp)})",
            format_size(record.file_size),
            escape(record.backup_path.name),
        )
    console.print(table)
    return 0


def run_undo(path: Path, *, home: Path | None = None, index: int = 1, yes: bool = False) -> int:
    """Restore backup number `index` (1 = newest) over `path`."""
    console = Console()
    err = Console(stderr=True)
    manager = BackupManager(home=home)

    records = manager.list_backups(path)
    if not records:
        err.print(f"No backups found for {escape(path.name)}.", style="yellow")
        err.print("Backups are created when a note is aged.", style="dim")
        return 1

    if not 1 <= index <= len(records):
        err.print(f"Backup #{index} does not exist; {len(records)} available.", style="red")
        return 1

    record = records[index - 1]
    console.print(
        f"Restore {escape(path.name)} from {record.timestamp:%Y-%m-%d %H:%M:%S} "
        f"({relative_time(record.timestamp)}, {format_size(record.file_size)})"
    )
    if not yes and not click.confirm("Proceed with restore?", default=True):
        console.print("Restore cancelled.", style="dim")
        return 0

    safety = manager.restore(record)
    console.print("File restored.", style="green")
    if safety is not None:
        console.print(f"  Previous version saved as {safety.backup_path.name}", style="dim")
    return 0


def run_backups_prune(directory: Path, *, home: Path | None = None, retention: str | None = None) -> int:
    """Prune backups under `directory` older than the retention window."""
    console = Console()
    manager = BackupManager(home=home)

    if retention is None:
        retention = ConfigResolver(home=home).resolve(directory).backup.retention

    removed = manager.prune_older_than(directory, retention)
    for warning in manager.warnings:
        Console(stderr=True).print(f"Warning: {warning}", style="yellow", markup=False)

    console.print(f"Removed {removed} backup(s) older than {retention}.")
    return 0
