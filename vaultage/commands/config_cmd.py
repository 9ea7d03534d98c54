"""Config commands - inspect the tier hierarchy and scaffold .age/."""

from __future__ import annotations

import json
from pathlib import Path

from rich.console import Console
from rich.table import Table

from ..config import ConfigResolver, init_local_config


def run_config_show(path: Path, *, home: Path | None = None, output_json: bool = False) -> int:
    console = Console()
    hierarchy = ConfigResolver(home=home).resolve_hierarchy(path)
    config = hierarchy.effective

    if output_json:
        payload = {
            "sources": [str(p) for p in config.sources],
            "tiers": {tier: str(p) for tier, p in hierarchy.paths.items()},
            "warnings": config.warnings,
            "ai": {"provider": config.ai.provider, "model": config.ai.model},
            "backup": {"retention": config.backup.retention, "compress": config.backup.compress},
            "types": {
                name: {
                    "keep": profile.metadata.keep,
                    "remove": profile.metadata.remove,
                    "add": profile.metadata.add,
                    "pathPatterns": profile.path_patterns,
                }
                for name, profile in config.types.items()
            },
        }
        print(json.dumps(payload, indent=2, default=str))
        return 0

    console.print("[bold]Configuration tiers[/bold]")
    for tier in ("global", "vault", "local"):
        tier_path = hierarchy.paths.get(tier)
        status = str(tier_path) if tier_path else "[dim](none)[/dim]"
        console.print(f"  {tier:<7} {status}")
    for warning in config.warnings:
        console.print(f"  ! {warning}", style="yellow", markup=False)

    console.print(
        f"\nAI provider: {config.ai.provider}   Backup retention: {config.backup.retention}   "
        f"Interactive: {config.processing.interactive}"
    )

    table = Table(title="Document types")
    table.add_column("Type")
    table.add_column("Keep")
    table.add_column("Remove")
    table.add_column("Add")
    table.add_column("Links")
    for name, profile in config.types.items():
        checks = []
        if profile.content.url_processing:
            checks.append("external")
        if profile.content.link_verification:
            checks.append("internal")
        table.add_row(
            name,
            ", ".join(profile.metadata.keep),
            ", ".join(profile.metadata.remove),
            ", ".join(profile.metadata.add),
            ", ".join(checks) or "-",
        )
    console.print(table)
    return 0


def run_config_init(directory: Path, *, force: bool = False) -> int:
    console = Console()
    written = init_local_config(directory, overwrite=force)
    if not written:
        console.print(f"{directory / '.age'} already initialised; use --force to overwrite.", style="yellow")
        return 0
    for path in written:
        console.print(f"Created {path}", style="green")
    return 0
