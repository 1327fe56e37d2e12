"""Sync report formatting functions.

- ``format_result_line`` -- one human-readable line per entity.
- ``format_sync_report`` -- full post-sync report.
- ``report_to_json`` -- structured dict for ``--json`` and MCP output.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .models import EntityOutcome

if TYPE_CHECKING:
    from .models import EntityResult, SyncReport


def format_result_line(result: EntityResult, target_site: str) -> str:
    """Describe one entity result in a single line."""
    match result.outcome:
        case EntityOutcome.CREATED:
            return (
                f"Synced post {result.source_id} to site {target_site} "
                f"as {result.target_id}"
            )
        case EntityOutcome.SKIPPED_DUPLICATE:
            return (
                f"Post '{result.title}' already exists in site {target_site}"
            )
        case EntityOutcome.SKIPPED_UNSUPPORTED:
            return (
                f"Post {result.source_id} skipped: unsupported type "
                f"in site {target_site}"
            )
        case EntityOutcome.SKIPPED_VANISHED:
            return f"Post {result.source_id} no longer exists on source"
        case _:
            return f"Failed to insert post '{result.title}': {result.error}"


def format_sync_report(report: SyncReport) -> str:
    """Format a complete sync report as human-readable text.

    Sections appear only when non-empty. Vanished entities are counted
    but not listed.
    """
    lines: list[str] = []

    header = (
        f"Sync report for '{report.post_type}': "
        f"site {report.source_site} -> site {report.target_site}"
    )
    if report.cancelled:
        header += " (CANCELLED)"
    lines.append(header)
    lines.append(f"Started: {report.started_at}")
    if report.completed_at:
        lines.append(f"Completed: {report.completed_at}")
    lines.append("")

    lines.append(
        f"Processed {len(report.results)} posts: "
        f"{len(report.created)} created, "
        f"{len(report.duplicates)} duplicates, "
        f"{len(report.unsupported)} unsupported, "
        f"{len(report.failed)} failed"
    )
    lines.append("")

    sections = [
        ("Created:", report.created),
        ("Already present:", report.duplicates),
        ("Unsupported type:", report.unsupported),
        ("Failed:", report.failed),
    ]
    for title, results in sections:
        if not results:
            continue
        lines.append(title)
        for r in results:
            lines.append(f"  {format_result_line(r, report.target_site)}")
        lines.append("")

    if report.with_warnings:
        lines.append("Warnings:")
        for r in report.with_warnings:
            for warning in r.warnings:
                lines.append(f"  post {r.source_id}: {warning}")
        lines.append("")

    if report.vanished:
        lines.append(f"Vanished: {len(report.vanished)} posts")
        lines.append("")

    return "\n".join(lines).rstrip()


def report_to_json(report: SyncReport) -> dict:
    """Convert a sync report to a JSON-serialisable dict."""
    results_list = []
    for r in report.results:
        entry: dict = {
            "source_id": r.source_id,
            "title": r.title,
            "outcome": r.outcome.value,
        }
        if r.target_id:
            entry["target_id"] = r.target_id
        if r.error:
            entry["error"] = r.error
        if r.warnings:
            entry["warnings"] = list(r.warnings)
        results_list.append(entry)

    return {
        "source_site": report.source_site,
        "target_site": report.target_site,
        "post_type": report.post_type,
        "started_at": report.started_at,
        "completed_at": report.completed_at,
        "cancelled": report.cancelled,
        "counts": {
            "total": len(report.results),
            "created": len(report.created),
            "duplicates": len(report.duplicates),
            "unsupported": len(report.unsupported),
            "vanished": len(report.vanished),
            "failed": len(report.failed),
            "warnings": sum(len(r.warnings) for r in report.results),
        },
        "results": results_list,
    }
