"""Plain-text export of generated reports."""
from __future__ import annotations

from searchscope.models.schemas import Report, ReportSource


def filter_used_sources(report: Report) -> list[tuple[int, ReportSource]]:
    """Sources with their 1-based citation numbers, limited to cited ones.

    When the report carries no citation list every source is kept.
    """
    numbered = list(enumerate(report.sources, start=1))
    if not report.used_sources:
        return numbered
    used = set(report.used_sources)
    return [(n, source) for n, source in numbered if n in used]


def render_txt(report: Report) -> str:
    lines: list[str] = [report.title or "Research Report", ""]
    if report.summary:
        lines += [report.summary, ""]
    for section in report.sections:
        lines += [section.title, "", section.content, ""]

    sources = filter_used_sources(report)
    if sources:
        lines += ["References", ""]
        lines += [f"[{n}] {source.name or source.url} - {source.url}" for n, source in sources]
        lines.append("")
    return "\n".join(lines)


def export_filename(report: Report, extension: str = "txt") -> str:
    stem = "".join(c if c.isalnum() else "-" for c in (report.title or "report").lower())
    stem = "-".join(part for part in stem.split("-") if part)[:80] or "report"
    return f"{stem}.{extension}"
