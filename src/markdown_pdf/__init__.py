"""Markdown to styled HTML and PDF conversion."""

from .config import AppConfig, SessionOptions, build_session_options, load_config
from .core import MarkdownToPDF, SessionState
from .errors import (
    AssetServerError,
    ConfigurationError,
    ConversionError,
    RenderError,
    SessionStateError,
    ValidationError,
)
from .models import BatchConversionResult, ConversionResult, PDFLayout, RenderRequest

__all__ = [
    "AppConfig",
    "AssetServerError",
    "BatchConversionResult",
    "ConfigurationError",
    "ConversionError",
    "ConversionResult",
    "MarkdownToPDF",
    "PDFLayout",
    "RenderError",
    "RenderRequest",
    "SessionOptions",
    "SessionState",
    "SessionStateError",
    "ValidationError",
    "build_session_options",
    "load_config",
]
