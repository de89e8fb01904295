"""Domain models for Markdown to HTML/PDF conversion."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

from .logging import BatchSummary
from .utils import atomic_write, atomic_write_bytes


def _margins(value: int) -> Mapping[str, str]:
    px = f"{value}px"
    return MappingProxyType({"top": px, "bottom": px, "right": px, "left": px})


@dataclass(frozen=True, slots=True)
class PDFLayout:
    """Page format handed to the browser's PDF export."""

    format: str = "A4"
    scale: float = 0.9
    display_header_footer: bool = False
    print_background: bool = False
    margin: Mapping[str, str] = field(default_factory=lambda: _margins(50))

    def as_pdf_options(self) -> dict[str, object]:
        return {
            "format": self.format,
            "scale": self.scale,
            "display_header_footer": self.display_header_footer,
            "print_background": self.print_background,
            "margin": dict(self.margin),
        }


DEFAULT_LAYOUT = PDFLayout()


@dataclass(frozen=True, slots=True)
class RenderRequest:
    """One Markdown document waiting to be converted."""

    text: str
    title: str = ""


@dataclass(slots=True)
class RenderedMarkdown:
    html: str
    toc: str | None = None


@dataclass(slots=True)
class ConversionResult:
    """Composed HTML and PDF bytes for a single document."""

    html: str
    pdf: bytes
    title: str = ""
    run_id: str = ""
    warnings: list[str] = field(default_factory=list)

    def write_html(self, path: Path) -> Path:
        atomic_write(path, self.html)
        return path

    def write_pdf(self, path: Path) -> Path:
        atomic_write_bytes(path, self.pdf)
        return path


@dataclass(slots=True)
class BatchConversionResult:
    """Aggregate results for a batch conversion request."""

    runs: list[ConversionResult]
    summary: BatchSummary
    failures: dict[str, str] = field(default_factory=dict)


__all__ = [
    "DEFAULT_LAYOUT",
    "BatchConversionResult",
    "ConversionResult",
    "PDFLayout",
    "RenderRequest",
    "RenderedMarkdown",
]
