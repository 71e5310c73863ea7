# src/s3_publish/report.py
"""Human-readable rendering of a publish report."""

from typing import Iterable, List, Tuple

from rich.console import Console
from rich.text import Text

from s3_publish.diff import SyncReport

# (tag, style) per reporting category
NEW_TAG: Tuple[str, str] = ("[newfile]", "green")
IGNORED_TAG: Tuple[str, str] = ("[ignored]", "grey50")
REPLACED_TAG: Tuple[str, str] = ("[replace]", "yellow")
DELETED_TAG: Tuple[str, str] = ("[deleted]", "red")
KEPT_TAG: Tuple[str, str] = ("[kept]", "magenta")
FAILED_TAG: Tuple[str, str] = ("[failed]", "bold red")


def summary_line(report: SyncReport) -> str:
    """
    Summarizes the report counts on a single line.

    Args:
        report (SyncReport): The report to summarize.

    Returns:
        str: E.g. ``"2 new, 1 ignored, 0 replaced, 0 deleted"``.
    """
    parts: List[str] = [
        f"{len(report.new)} new",
        f"{len(report.ignored)} ignored",
        f"{len(report.replaced)} replaced",
        f"{len(report.deleted)} deleted",
    ]
    if report.kept:
        parts.append(f"{len(report.kept)} kept")
    if report.failed:
        parts.append(f"{len(report.failed)} failed")
    return ", ".join(parts)


def report_lines(report: SyncReport) -> Iterable[Text]:
    """
    Yields one styled line per reported path.

    Args:
        report (SyncReport): The report to render.

    Yields:
        Text: ``<tag> <path>`` lines, grouped by category.
    """
    groups: List[Tuple[Tuple[str, str], List[str]]] = [
        (NEW_TAG, report.new),
        (IGNORED_TAG, report.ignored),
        (REPLACED_TAG, report.replaced),
        (DELETED_TAG, report.deleted),
        (KEPT_TAG, report.kept),
        (FAILED_TAG, report.failed),
    ]
    for (tag, style), paths in groups:
        for path in paths:
            line: Text = Text(tag, style=style)
            line.append(f" {path}")
            yield line


def render_report(report: SyncReport, console: Console) -> None:
    """
    Prints the report to a rich console.

    Args:
        report (SyncReport): The report to print.
        console (Console): The console to print on.
    """
    for line in report_lines(report):
        console.print(line)
    if report.cleanup_error:
        console.print(
            Text(f"[Cleanup failed] {report.cleanup_error}", style="bold red")
        )
    if not report.complete:
        console.print(
            Text(
                "[Stopped early] Stale objects were kept, cleanup skipped.",
                style="bold yellow",
            )
        )
    console.print(Text(summary_line(report), style="bold"))
