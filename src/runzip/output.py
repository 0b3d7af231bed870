from __future__ import annotations

"""Rich rendering of archive summaries."""

import threading

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from .codec.converter import ConversionPlan, EntryStatus
from .model import ArchiveSummary

console = Console()
err_console = Console(stderr=True)


def status_text(plan: ConversionPlan, target: str, dry_run: bool) -> str:
    if plan.status is EntryStatus.ALREADY_UNICODE:
        return "OK (already UTF-8)"
    if plan.status is EntryStatus.ASCII:
        return "OK"
    if plan.status is EntryStatus.SAME:
        return "OK (marked UTF-8)" if plan.changed else "OK"
    if plan.status is EntryStatus.CONVERTED:
        verb = "WOULD FIX" if dry_run else "FIXED"
        return f"{verb} ({plan.source} -> {target})"
    if plan.status is EntryStatus.UNKNOWN:
        return "UNKNOWN (left as is)"
    return plan.warning or "Failed to recode"


def build_table(summary: ArchiveSummary, verbosity: int = 0) -> Table:
    table = Table(show_lines=False)
    table.add_column("Entry", overflow="fold")
    table.add_column("Status", overflow="fold")
    if verbosity >= 1:
        table.add_column("Score", justify="right")
    for plan in summary.plans:
        name = plan.display_new_name if plan.renamed else plan.display_name
        row = [Text(name), Text(status_text(plan, summary.target, summary.dry_run))]
        if verbosity >= 1:
            row.append(Text(f"{plan.score:.3f}" if plan.score else "-"))
        table.add_row(*row)
    return table


def count_label(count: int) -> str:
    return f"{count} file" if count == 1 else f"{count} files"


class ConsoleReporter:
    """Prints summaries as they arrive. Safe to share between workers."""

    def __init__(self, verbosity: int = 0, out: Console | None = None):
        self.verbosity = verbosity
        self.out = out or console
        self._lock = threading.Lock()
        self.reported: list[ArchiveSummary] = []

    def report(self, summary: ArchiveSummary) -> None:
        with self._lock:
            self.reported.append(summary)
            if summary.error:
                return
            self.out.print(f"[bold]{escape(summary.archive)}[/bold] contains {count_label(summary.entry_count)}")
            if summary.plans:
                self.out.print(build_table(summary, self.verbosity))
            if summary.comment_changed:
                self.out.print("  archive comment converted")
            for name in summary.ambiguous:
                self.out.print(f"[yellow]  ambiguous: {escape(name)}[/yellow]")
            for name in summary.undecodable:
                self.out.print(f"[red]  undecodable: {escape(name)}[/red]")

    def line(self, text: str) -> None:
        with self._lock:
            self.out.print(text)

    def print_totals(self) -> None:
        failed = [s for s in self.reported if s.error]
        done = len(self.reported) - len(failed)
        renamed = sum(s.renamed for s in self.reported)
        verb = "would change" if any(s.dry_run for s in self.reported) else "changed"
        self.line(f"[bold]Total[/bold] archives={done} entries {verb}={renamed} failed={len(failed)}")
        for summary in failed:
            err_console.print(f"[red]✗ {escape(summary.archive)}: {escape(summary.error)}[/red]")
