"""CLI entrypoint for vaultage."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler

from . import __version__
from .errors import VaultageError

NOTE_PATH = click.Path(exists=False, dir_okay=False, path_type=Path)
DIR_PATH = click.Path(exists=True, file_okay=False, dir_okay=True, path_type=Path)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False, show_time=False)],
        force=True,
    )


def _exit(code_fn) -> None:
    """Run a command implementation and exit with its code.

    Library errors become one-line messages with exit code 1.
    """
    try:
        code = code_fn()
    except VaultageError as e:
        Console(stderr=True).print(f"Error: {e}", style="red", markup=False)
        sys.exit(1)
    sys.exit(code)


@click.group()
@click.version_option(__version__, prog_name="vaultage")
@click.option("--verbose", is_flag=True, help="Show debug logging")
@click.option(
    "--home",
    type=click.Path(file_okay=False, dir_okay=True, path_type=Path),
    envvar="VAULTAGE_HOME",
    default=None,
    help="Directory holding the global .age/ (defaults to the user's home)",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, home: Path | None) -> None:
    """vaultage - classify markdown notes and age them by category rules.

    Every rewrite is preceded by a checksummed backup and rolled back on failure.
    """
    _setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["home"] = home.resolve() if home else None


@cli.command()
@click.argument("file", type=NOTE_PATH)
@click.option("--json", "output_json", is_flag=True, help="Output results as JSON")
@click.pass_context
def detect(ctx: click.Context, file: Path, output_json: bool) -> None:
    """Show how FILE classifies against each document type."""
    from .commands.detect import run_detect

    _exit(lambda: run_detect(file, home=ctx.obj["home"], output_json=output_json))


@cli.command()
@click.argument("file", type=NOTE_PATH)
@click.option("--yes", "-y", is_flag=True, help="Apply without asking for approval")
@click.option("--dry-run", is_flag=True, help="Show the change plan and write nothing")
@click.pass_context
def age(ctx: click.Context, file: Path, yes: bool, dry_run: bool) -> None:
    """Plan and apply the rules for FILE's detected type.

    Examples:

        vaultage age meetings/standup.md

        vaultage age research/paper.md --dry-run
    """
    from .commands.age import run_age

    _exit(lambda: run_age(file, home=ctx.obj["home"], yes=yes, dry_run=dry_run))


@cli.command()
@click.argument("file", type=NOTE_PATH)
@click.option("--index", "-n", type=int, default=1, show_default=True, help="Backup to restore (1 = newest)")
@click.option("--yes", "-y", is_flag=True, help="Restore without confirmation")
@click.pass_context
def undo(ctx: click.Context, file: Path, index: int, yes: bool) -> None:
    """Restore FILE from one of its backups."""
    from .commands.undo import run_undo

    _exit(lambda: run_undo(file, home=ctx.obj["home"], index=index, yes=yes))


@cli.command()
@click.argument("file", type=NOTE_PATH)
@click.pass_context
def links(ctx: click.Context, file: Path) -> None:
    """Verify every external and internal link in FILE."""
    from .commands.links import run_links

    _exit(lambda: run_links(file, home=ctx.obj["home"]))


@cli.group()
def backups() -> None:
    """Inspect and prune note backups."""


@backups.command("list")
@click.argument("file", type=NOTE_PATH)
@click.pass_context
def backups_list(ctx: click.Context, file: Path) -> None:
    """List the backups of FILE, newest first."""
    from .commands.undo import run_backups_list

    _exit(lambda: run_backups_list(file, home=ctx.obj["home"]))


@backups.command("prune")
@click.argument("directory", type=DIR_PATH, default=".")
@click.option("--retention", type=str, default=None, help="Window such as 30d, 2w, 12h or 6m (default: config)")
@click.pass_context
def backups_prune(ctx: click.Context, directory: Path, retention: str | None) -> None:
    """Delete backups under DIRECTORY older than the retention window."""
    from .commands.undo import run_backups_prune
    from .config.resolver import RETENTION_PATTERN

    if retention is not None and not RETENTION_PATTERN.match(retention):
        raise click.BadParameter("must look like 30d, 2w, 12h or 6m", param_hint="--retention")

    _exit(lambda: run_backups_prune(directory, home=ctx.obj["home"], retention=retention))


@cli.group()
def config() -> None:
    """Show or scaffold configuration."""


@config.command("show")
@click.argument("path", type=click.Path(exists=True, path_type=Path), default=".")
@click.option("--json", "output_json", is_flag=True, help="Output results as JSON")
@click.pass_context
def config_show(ctx: click.Context, path: Path, output_json: bool) -> None:
    """Show the configuration tiers and effective rules for PATH."""
    from .commands.config_cmd import run_config_show

    _exit(lambda: run_config_show(path, home=ctx.obj["home"], output_json=output_json))


@config.command("init")
@click.argument("directory", type=DIR_PATH, default=".")
@click.option("--force", is_flag=True, help="Overwrite existing files")
def config_init(directory: Path, force: bool) -> None:
    """Create .age/ with config.json, document-types.json and backups/."""
    from .commands.config_cmd import run_config_init

    _exit(lambda: run_config_init(directory, force=force))


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
