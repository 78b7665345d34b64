"""Rich rendering for diagnostics printed alongside the changelog."""

from __future__ import annotations

from rich import box
from rich.table import Table

from ..pipeline import RunResult
from ..utils import print_renderable


def unresolved_references_table(result: RunResult) -> Table:
    """Build a table of ticket keys that could not be resolved."""
    commits_by_key = {reference.key: reference.commits for reference in result.references}
    table = Table(
        title="Unresolved ticket references",
        box=box.ROUNDED,
        title_justify="left",
        show_lines=False,
    )
    table.add_column("Key", style="bold")
    table.add_column("Reason", style="yellow")
    table.add_column("Commits", style="dim")
    for key in sorted(result.unresolved):
        hashes = commits_by_key.get(key, ())
        table.add_row(key, result.unresolved[key], ", ".join(h[:7] for h in hashes))
    return table


def print_unresolved_references(result: RunResult) -> None:
    print_renderable(unresolved_references_table(result))
