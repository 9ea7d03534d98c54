"""Age command - plan, approve and apply category rules to one note."""

from __future__ import annotations

from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape

from ..errors import ProcessingFailed
from ..models import Document
from ..pipeline import ApprovalDecision, Pipeline, PipelineContext, PipelineResult, PipelineState
from ..planning import ChangePlan
from .common import format_size

_CHOICES = {
    "y": ApprovalDecision.APPROVE,
    "p": ApprovalDecision.PREVIEW,
    "c": ApprovalDecision.CONFIGURE,
    "n": ApprovalDecision.REJECT,
}


def print_plan(console: Console, plan: ChangePlan) -> None:
    console.print(plan.summary(), style="cyan")

    for line in plan.metadata_diff():
        style = {"+": "green", "-": "red"}.get(line[0], "yellow")
        console.print(f"  {line}", style=style, markup=False, highlight=False)

    for change in plan.actionable_link_changes:
        target = change.replacement or change.target
        console.print(f"  [{change.kind}] {change.target} -> {target}: {change.reason}", markup=False)

    for warning in plan.warnings:
        console.print(f"  ! {warning}", style="yellow", markup=False)


def print_preview(console: Console, document: Document, plan: ChangePlan) -> None:
    console.print(f"\n[bold]Preview: {escape(document.path.name)}[/bold]")
    for change in plan.metadata_changes:
        console.print(f"  {change.kind} {change.field}: {change.reason}", markup=False)
    for change in plan.content_changes:
        console.print(f"  {change.kind} section '{change.section}': {change.reason}", markup=False)
        console.print(f"    {change.new}", style="dim", markup=False)
    for change in plan.link_changes:
        mark = "ok" if change.kind == "verify" and change.status == "valid" else change.status
        console.print(f"  [{mark}] {change.target} - {change.reason}", markup=False)
    console.print()


def make_prompt_approver(console: Console):
    """Approver that shows the plan once, then asks y/p/c/n."""
    shown: set[int] = set()

    def approve(document: Document, plan: ChangePlan, category: str) -> ApprovalDecision:
        if id(plan) not in shown:
            shown.add(id(plan))
            console.print(f"\nDetected type: [bold]{escape(category)}[/bold]")
            print_plan(console, plan)
        answer = click.prompt(
            "Apply changes? [y]es / [p]review / [c]onfigure / [n]o",
            type=click.Choice(list(_CHOICES)),
            default="y",
            show_choices=False,
        )
        return _CHOICES[answer]

    return approve


def report(console: Console, result: PipelineResult) -> None:
    if result.state is PipelineState.NO_CHANGES:
        console.print("Note is already aged; no changes needed.", style="green")
        return
    if result.state is PipelineState.REJECTED:
        console.print("Cancelled; nothing was written.", style="dim")
        return
    if result.state is PipelineState.PLANNED:
        console.print("Dry run; nothing was written.", style="dim")
        return

    console.print(f"Aged {result.path.name}", style="green", markup=False)
    if result.backup is not None:
        console.print(f"  Backup: {result.backup.backup_path}", style="dim", markup=False)
    for note in result.notes:
        console.print(f"  - {note}", markup=False)

    new_size = result.path.stat().st_size
    if result.document is not None and new_size != result.document.size:
        diff = new_size - result.document.size
        direction = "increased" if diff > 0 else "decreased"
        console.print(f"  File size {direction} by {format_size(abs(diff))}")
    console.print("  Run 'vaultage undo' to restore the previous version.", style="dim")


def run_age(
    path: Path,
    *,
    home: Path | None = None,
    yes: bool = False,
    dry_run: bool = False,
) -> int:
    """Run the aging pipeline for one note; 0 on success or no-op."""
    console = Console()
    err = Console(stderr=True)

    pipeline = Pipeline(
        PipelineContext(home=home),
        previewer=lambda document, plan: print_preview(console, document, plan),
    )

    approver = None if yes else make_prompt_approver(console)

    try:
        result = pipeline.run(path, approver, interactive=not yes, dry_run=dry_run)
    except ProcessingFailed as e:
        err.print(f"Error: {e}", style="red", markup=False)
        for line in e.errors:
            err.print(f"  {line}", style="red", markup=False)
        return 1

    if dry_run or yes:
        if result.detection is not None and result.plan is not None and not result.plan.is_empty:
            console.print(f"Detected type: [bold]{escape(result.detection.primary_type)}[/bold]")
            print_plan(console, result.plan)

    shown = result.plan.warnings if result.plan is not None and not result.plan.is_empty else []
    for warning in result.warnings:
        if warning in shown:
            continue
        err.print(f"Warning: {warning}", style="yellow", markup=False)

    report(console, result)
    return 0
