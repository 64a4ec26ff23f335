from __future__ import annotations

from ..models.import_summary import ImportSummary

"""Summary rendering for an import run.

- render_summary_line: one machine-greppable SUMMARY line
- render_report: multi-line report card per entity class plus the raw error log
"""

__all__ = [
    "format_elapsed",
    "render_summary_line",
    "render_report",
]


def format_elapsed(seconds: float) -> str:
    """Format seconds without scientific notation; integers drop the fraction."""
    if seconds == 0:
        return "0"
    if seconds == int(seconds):
        return str(int(seconds))
    if seconds < 0.01:
        return f"{seconds:.6f}".rstrip("0").rstrip(".")
    return f"{seconds:.3f}".rstrip("0").rstrip(".")


def render_summary_line(summary: ImportSummary) -> str:
    """Render the SUMMARY line.

    Format::

        SUMMARY booths=S/F sessions=S/F capacities=S/F attendees=S/F registrations=S/F/K elapsed_sec=X

    where S = success, F = failed, K = skipped.

    Examples:
        >>> from datetime import datetime, timezone
        >>> from schedule_importer.models.import_summary import EntityResult
        >>> t0 = datetime(2024, 5, 1, 9, 0, 0, tzinfo=timezone.utc)
        >>> t1 = datetime(2024, 5, 1, 9, 0, 2, tzinfo=timezone.utc)
        >>> ok = EntityResult(success=1)
        >>> s = ImportSummary(ok, ok, ok, EntityResult(success=2), EntityResult(success=2), EntityResult(), t0, t1)
        >>> render_summary_line(s)
        'SUMMARY booths=1/0 sessions=1/0 capacities=1/0 attendees=2/0 registrations=2/0/0 elapsed_sec=2'
    """
    b, s, c, a, r = summary.booths, summary.sessions, summary.capacities, summary.attendees, summary.registrations
    return (
        f"SUMMARY booths={b.success}/{b.failed} "
        f"sessions={s.success}/{s.failed} "
        f"capacities={c.success}/{c.failed} "
        f"attendees={a.success}/{a.failed} "
        f"registrations={r.success}/{r.failed}/{r.skipped} "
        f"elapsed_sec={format_elapsed(summary.elapsed_seconds)}"
    )


def render_report(summary: ImportSummary, *, max_errors: int | None = None) -> str:
    lines = ["Import report", "-------------"]
    for name, result in summary.entities().items():
        line = f"{name:<14} success={result.success:<6} failed={result.failed:<6}"
        if name == "registrations":
            line += f" skipped={result.skipped}"
        lines.append(line.rstrip())
    if summary.aborted:
        lines.append(f"ABORTED after: {', '.join(summary.phases_completed) or '(no phase completed)'}")
    lines.append(f"elapsed_sec={format_elapsed(summary.elapsed_seconds)}")

    errors = summary.all_errors
    if errors:
        lines.append("")
        lines.append(f"Errors ({len(errors)}):")
        shown = errors if max_errors is None else errors[:max_errors]
        lines.extend(f"  - {e}" for e in shown)
        if len(shown) < len(errors):
            lines.append(f"  ... {len(errors) - len(shown)} more")
    return "\n".join(lines)
