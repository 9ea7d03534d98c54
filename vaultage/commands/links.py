"""Links command - verify every link in a note regardless of category rules."""

from __future__ import annotations

from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..config import ConfigResolver
from ..vault.links import LinkCache, LinkVerifier
from ..vault.loader import load_document

_STATUS_STYLE = {
    "valid": "green",
    "redirect": "yellow",
    "ambiguous": "yellow",
    "timeout": "yellow",
    "broken": "red",
    "error": "red",
}


def run_links(path: Path, *, home: Path | None = None) -> int:
    """Check all links; exit 1 when any is broken."""
    console = Console()

    document = load_document(path)
    config = ConfigResolver(home=home).resolve(document.path)
    verifier = LinkVerifier(
        cache=LinkCache(),
        timeout=config.processing.link_timeout,
        max_workers=config.processing.max_workers,
        home=home,
    )

    if not document.links:
        console.print(f"No links in {document.path.name}.")
        return 0

    table = Table(title=f"Links in {document.path.name}")
    table.add_column("Line", justify="right")
    table.add_column("Kind")
    table.add_column("Target")
    table.add_column("Status")
    table.add_column("Detail")

    external = verifier.verify_many(link.target for link in document.external_links)
    broken = 0

    for link in document.links:
        if link.kind == "external":
            ext = external[link.target]
            status = ext.status
            detail = ext.redirect_target or ext.error or (str(ext.code) if ext.code else "")
        else:
            internal = verifier.verify_internal(link.target, document.path)
            status = internal.status
            detail = str(internal.resolved_path) if internal.resolved_path else ""
            if internal.alternatives:
                detail += f" (+{len(internal.alternatives)} more)"

        if status == "broken":
            broken += 1
        style = _STATUS_STYLE.get(status, "")
        table.add_row(str(link.line), link.kind, escape(link.target), f"[{style}]{status}[/{style}]", escape(detail))

    console.print(table)
    console.print(f"{len(document.links)} link(s), {broken} broken")
    return 1 if broken else 0
