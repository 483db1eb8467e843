from __future__ import annotations

from searchscope.models.schemas import Report, ReportSection, ReportSource
from searchscope.services.exporter import export_filename, filter_used_sources, render_txt


def _report(used=None):
    return Report(
        title="Sleep & Memory: A Review",
        summary="Sleep supports consolidation.",
        sections=[ReportSection(title="Evidence", content="Studies agree [1][3].")],
        sources=[
            ReportSource(id="a", url="https://a.com", name="Source A"),
            ReportSource(id="b", url="https://b.com", name=""),
            ReportSource(id="c", url="https://c.com", name="Source C"),
        ],
        used_sources=used,
    )


def test_cited_sources_keep_their_original_numbers():
    numbered = filter_used_sources(_report(used=[1, 3]))
    assert [(n, s.id) for n, s in numbered] == [(1, "a"), (3, "c")]


def test_all_sources_kept_without_citation_list():
    assert len(filter_used_sources(_report())) == 3


def test_render_txt_layout():
    text = render_txt(_report(used=[1, 3]))
    assert text.splitlines()[:3] == ["Sleep & Memory: A Review", "", "Sleep supports consolidation."]
    assert "Evidence\n\nStudies agree [1][3]." in text
    assert "References\n\n[1] Source A - https://a.com\n[3] Source C - https://c.com" in text
    assert "https://b.com" not in text


def test_unnamed_source_falls_back_to_url():
    assert "[2] https://b.com - https://b.com" in render_txt(_report())


def test_export_filename_is_slugged():
    assert export_filename(_report()) == "sleep-memory-a-review.txt"
    assert export_filename(Report(title="!!!"), "txt") == "report.txt"
