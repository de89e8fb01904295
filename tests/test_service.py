from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest

from markdown_pdf.config import DEFAULT_TEMPLATE_RESOURCE, SessionOptions, read_resource
from markdown_pdf.core import MarkdownToPDF, SessionState
from markdown_pdf.errors import ConfigurationError, RenderError, SessionStateError, ValidationError
from markdown_pdf.models import RenderRequest


TEMPLATE = "<html><head><title>{{title}}</title><style>{{{style}}}</style></head><body>{{{toc}}}{{{content}}}</body></html>"
PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-image"


class FakePDFRenderer:
    def __init__(self) -> None:
        self.documents: list[str] = []

    async def render(self, html: str) -> bytes:
        if "BOOM" in html:
            raise RenderError("PDF_EXPORT", "Error while exporting the PDF: boom")
        self.documents.append(html)
        return b"%PDF-fake"


def build_options(**overrides: object) -> SessionOptions:
    values: dict[str, object] = {"style": "body { margin: 0; }", "template": TEMPLATE}
    values.update(overrides)
    return SessionOptions(**values)  # type: ignore[arg-type]


def test_convert_returns_html_and_pdf() -> None:
    renderer = FakePDFRenderer()
    with MarkdownToPDF(build_options(), pdf_renderer=renderer) as session:
        assert session.state is SessionState.STARTED
        result = asyncio.run(session.convert("# Title\n\nSome *text*.\n", "guide"))
    assert session.state is SessionState.CLOSED
    assert result.pdf == b"%PDF-fake"
    assert result.title == "guide"
    assert "<title>guide</title>" in result.html
    assert "<style>body { margin: 0; }</style>" in result.html
    assert "<p>Some <em>text</em>.</p>" in result.html
    assert renderer.documents == [result.html]
    assert result.warnings == []


def test_convert_with_table_of_contents() -> None:
    with MarkdownToPDF(build_options(table_of_contents=True), pdf_renderer=FakePDFRenderer()) as session:
        result = asyncio.run(session.convert("# One\n\n# Two\n"))
    assert '<body><ul><li><a href="#one">One</a></li><li><a href="#two">Two</a></li></ul>' in result.html
    assert "table-of-contents" not in result.html


def test_inline_toc_marker_fills_bundled_template_once() -> None:
    options = build_options(template=read_resource(DEFAULT_TEMPLATE_RESOURCE))
    with MarkdownToPDF(options, pdf_renderer=FakePDFRenderer()) as session:
        result = asyncio.run(session.convert("[toc]\n\n# One\n\n# Two\n"))
    assert result.html.count('id="table-of-contents"') == 1
    assert '<a href="#two">Two</a>' in result.html


def test_convert_requires_started_session() -> None:
    session = MarkdownToPDF(build_options(), pdf_renderer=FakePDFRenderer())
    with pytest.raises(SessionStateError):
        asyncio.run(session.convert("# Title\n"))
    session.start()
    session.close()
    with pytest.raises(SessionStateError):
        asyncio.run(session.convert("# Title\n"))
    with pytest.raises(SessionStateError):
        session.close()


def test_convert_validates_input() -> None:
    with MarkdownToPDF(build_options(), pdf_renderer=FakePDFRenderer()) as session:
        with pytest.raises(ValidationError) as exc:
            asyncio.run(session.convert(42))  # type: ignore[arg-type]
        assert exc.value.code == "INVALID_INPUT"
        with pytest.raises(ValidationError):
            asyncio.run(session.convert("# ok", title=7))  # type: ignore[arg-type]


def test_slugs_reset_per_document_by_default() -> None:
    with MarkdownToPDF(build_options(), pdf_renderer=FakePDFRenderer()) as session:
        first = asyncio.run(session.convert("# Intro\n"))
        second = asyncio.run(session.convert("# Intro\n"))
    assert 'id="intro"' in first.html
    assert 'id="intro"' in second.html


def test_session_slug_scope_spans_documents() -> None:
    with MarkdownToPDF(build_options(slug_scope="session"), pdf_renderer=FakePDFRenderer()) as session:
        first = asyncio.run(session.convert("# Intro\n"))
        second = asyncio.run(session.convert("# Intro\n"))
    assert 'id="intro"' in first.html
    assert 'id="intro-1"' in second.html


def test_render_failure_propagates_and_is_logged(tmp_path: Path) -> None:
    log_file = tmp_path / "log.jsonl"
    with MarkdownToPDF(build_options(log_file=log_file), pdf_renderer=FakePDFRenderer()) as session:
        asyncio.run(session.convert("fine\n", "ok"))
        with pytest.raises(RenderError):
            asyncio.run(session.convert("BOOM\n", "broken"))
    entries = [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines()]
    assert [(entry["title"], entry["status"], entry["error_code"]) for entry in entries] == [
        ("ok", "success", None),
        ("broken", "failure", "PDF_EXPORT"),
    ]
    assert entries[0]["pdf_bytes"] == len(b"%PDF-fake")
    assert set(entries[0]["timings"]) == {"render_ms", "compose_ms", "assets_ms", "pdf_ms"}


def test_convert_many_keeps_order_and_counts_failures() -> None:
    requests = [
        RenderRequest("# A\n", "a"),
        RenderRequest("BOOM\n", "b"),
        RenderRequest("# C\n", "c"),
    ]
    with MarkdownToPDF(build_options(), pdf_renderer=FakePDFRenderer()) as session:
        batch = asyncio.run(session.convert_many(requests))
    assert [result.title for result in batch.runs] == ["a", "c"]
    assert batch.summary.total == 3
    assert batch.summary.successes == 2
    assert batch.summary.failures == 1
    assert batch.failures["b"].startswith("PDF_EXPORT")


def test_convert_many_in_parallel() -> None:
    requests = [RenderRequest(f"# Doc {index}\n", f"doc-{index}") for index in range(4)]
    with MarkdownToPDF(build_options(), pdf_renderer=FakePDFRenderer()) as session:
        batch = asyncio.run(session.convert_many(requests, parallelism=3))
    assert [result.title for result in batch.runs] == ["doc-0", "doc-1", "doc-2", "doc-3"]
    assert batch.summary.successes == 4


def test_parallel_conversion_needs_document_slug_scope() -> None:
    with MarkdownToPDF(build_options(slug_scope="session"), pdf_renderer=FakePDFRenderer()) as session:
        with pytest.raises(ConfigurationError):
            asyncio.run(session.convert_many([RenderRequest("# A\n")], parallelism=2))


def test_images_are_inlined_through_image_server(tmp_path: Path) -> None:
    images = tmp_path / "images"
    images.mkdir()
    (images / "cat.png").write_bytes(PNG_BYTES)
    options = build_options(image_import="./images", image_dir=str(images), port=0)
    markdown = "![cat](./images/cat.png)\n\n![again](./images/cat.png)\n\n![gone](./images/missing.png)\n"

    with MarkdownToPDF(options, pdf_renderer=FakePDFRenderer()) as session:
        assert session.image_server_url is not None
        result = asyncio.run(session.convert(markdown, "pets"))

    assert result.html.count("data:image/png;base64,") == 2
    assert "./images/cat.png" not in result.html
    assert 'src="./images/missing.png"' in result.html
    assert len(result.warnings) == 1
    assert result.warnings[0].startswith("IMAGE_NOT_FOUND: ./images/missing.png")


def test_image_dir_defaults_to_image_import() -> None:
    options = build_options(image_import="docs/images")
    assert options.image_dir == "docs/images"


def test_result_writes_files(tmp_path: Path) -> None:
    with MarkdownToPDF(build_options(), pdf_renderer=FakePDFRenderer()) as session:
        result = asyncio.run(session.convert("# Title\n", "notes"))
    html_path = result.write_html(tmp_path / "out" / "notes.html")
    pdf_path = result.write_pdf(tmp_path / "out" / "notes.pdf")
    assert html_path.read_text(encoding="utf-8") == result.html
    assert pdf_path.read_bytes() == b"%PDF-fake"
