"""Detect command - show how a note classifies and why."""

from __future__ import annotations

import json
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..classifier import TypeClassifier
from ..config import ConfigResolver
from ..vault.loader import load_document
from .common import confidence_style, format_size


def run_detect(path: Path, *, home: Path | None = None, output_json: bool = False) -> int:
    """Classify one note and print every category score."""
    console = Console()

    document = load_document(path)
    config = ConfigResolver(home=home).resolve(document.path)
    detection = TypeClassifier(config).classify(document)

    if output_json:
        payload = {
            "file": str(document.path),
            "primary_type": detection.primary_type,
            "scores": [
                {
                    "type": s.type,
                    "confidence": round(s.confidence, 4),
                    "reasons": s.reasons,
                    "warnings": s.warnings,
                }
                for s in detection.all_scores
            ],
            "recommendations": detection.recommendations,
            "warnings": list(document.warnings) + config.warnings,
        }
        print(json.dumps(payload, indent=2))
        return 0

    console.print(f"[bold]{escape(document.path.name)}[/bold]")
    console.print(
        f"  {format_size(document.size)}, {document.word_count} words, {document.line_count} lines, "
        f"{len(document.headers)} headings, {len(document.links)} links, "
        f"{len(document.checklist)} checklist items"
    )
    for warning in [*document.warnings, *config.warnings]:
        console.print(f"  ! {escape(warning)}", style="yellow")
    console.print()

    table = Table(title="Detected types")
    table.add_column("Type")
    table.add_column("Confidence", justify="right")
    table.add_column("Reasons")
    for score in detection.all_scores:
        style = confidence_style(score.confidence)
        table.add_row(
            f"[{style}]{escape(score.type)}[/{style}]",
            f"[{style}]{score.confidence:.0%}[/{style}]",
            "\n".join(
                [escape(r) for r in score.reasons]
                + [f"[yellow]! {escape(w)}[/yellow]" for w in score.warnings]
            ),
        )
    console.print(table)

    console.print(f"Primary type: [bold]{escape(detection.primary_type)}[/bold]")
    if detection.recommendations:
        console.print("\n[bold]Recommendations[/bold]")
        for rec in detection.recommendations:
            console.print(f"  - {escape(rec)}")

    return 0
