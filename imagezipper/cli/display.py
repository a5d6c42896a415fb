from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Iterable

from ..scanner.models import ScanIssue, WalkResult

if TYPE_CHECKING:
    from .services.scan_service import ScanRunResult


def format_bytes(size: int) -> str:
    """Represent file sizes with a readable binary unit."""
    step = 1024.0
    units = ["B", "KB", "MB", "GB", "TB", "PB"]
    value = float(size)
    for unit in units:
        if value < step or unit == units[-1]:
            return f"{value:.2f} {unit}"
        value /= step
    return f"{value:.2f} PB"


def format_rows(rows: list[tuple[str, str]]) -> str:
    """Build an aligned two-space padded table for readability."""
    header = ("PATH", "SIZE")
    col_widths = [len(header[0]), len(header[1])]
    for path, size in rows:
        col_widths[0] = max(col_widths[0], len(path))
        col_widths[1] = max(col_widths[1], len(size))
    line = f"{header[0]:<{col_widths[0]}}  {header[1]:<{col_widths[1]}}"
    separator = "-" * len(line)
    formatted_rows = [f"{path:<{col_widths[0]}}  {size:<{col_widths[1]}}" for path, size in rows]
    return "\n".join([line, separator, *formatted_rows])


def format_issue(issue: ScanIssue) -> str:
    return f"{issue.code} {issue.path}: {issue.message}"


def render_walk(result: WalkResult) -> list[str]:
    """Render human-readable lines describing a finished walk."""
    sizes = {record.path: record.size_bytes for record in result.records}
    rows = [(path, format_bytes(sizes[path])) for path in result.paths]
    lines: list[str] = [f"Location scanned: {result.root}", f"Images: {len(rows)}"]
    if rows:
        lines.append(format_rows(rows))
    summary = result.summary
    total = result.total_bytes
    lines.append(
        "Summary: "
        + ", ".join(
            [
                f"directories_scanned={summary.get('directories_scanned', 0)}",
                f"files_examined={summary.get('files_examined', 0)}",
                f"images_found={summary.get('images_found', len(rows))}",
                f"image_bytes={total} ({format_bytes(total)})",
                f"issues_count={summary.get('issues_count', len(result.issues))}",
            ]
        )
    )
    return lines


def render_run(run: "ScanRunResult") -> list[str]:
    lines = render_walk(run.walk)
    if run.archive is None:
        lines.append("No image files found.")
    else:
        lines.append(
            f"Zipped {len(run.archive.entries)} images into {run.archive.archive_path} "
            f"({format_bytes(run.archive.size_bytes)})"
        )
    if run.delivery is not None:
        lines.append(f"Sent {run.delivery.archive_path} to Telegram chat {run.delivery.chat_id}")
    lines.append(render_timings(run.timings))
    return lines


def render_timings(timings: Iterable[tuple[str, float]]) -> str:
    parts = [f"{label}={seconds:.2f}s" for label, seconds in timings]
    return "Timings: " + (", ".join(parts) if parts else "none")


def serialize_run(run: "ScanRunResult") -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "location": str(run.walk.root),
        "summary": dict(run.walk.summary),
        "images": run.walk.paths,
        "issues": [
            {"path": issue.path, "code": issue.code, "message": issue.message}
            for issue in run.walk.issues
        ],
        "archive": None,
        "delivery": None,
        "timings": {label: round(seconds, 4) for label, seconds in run.timings},
    }
    if run.archive is not None:
        payload["archive"] = {
            "path": str(run.archive.archive_path),
            "entries": list(run.archive.entries),
            "size_bytes": run.archive.size_bytes,
        }
    if run.delivery is not None:
        payload["delivery"] = {
            "chat_id": run.delivery.chat_id,
            "size_bytes": run.delivery.size_bytes,
            "message_sent": run.delivery.message_sent,
            "document_sent": run.delivery.document_sent,
        }
    return payload
