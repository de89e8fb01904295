from __future__ import annotations

import json
import tomllib
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from typing import Literal, Mapping

from .errors import ConfigurationError
from .models import DEFAULT_LAYOUT, PDFLayout
from .renderer import highlight_css


CONFIG_FILE = Path("config.toml")
RESOURCE_PACKAGE = "markdown_pdf"
DEFAULT_THEME_RESOURCE = "markdown.css"
DEFAULT_TEMPLATE_RESOURCE = "template.html"

SlugScope = Literal["document", "session"]


@dataclass(frozen=True, slots=True)
class SessionOptions:
    """Resolved, read-only settings for one conversion session."""

    style: str
    template: str
    image_import: str | None = None
    image_dir: str | None = None
    table_of_contents: bool = False
    host: str = "127.0.0.1"
    port: int = 3000
    slug_scope: SlugScope = "document"
    fetch_timeout_s: float = 10.0
    navigation_timeout_ms: float = 2000.0
    render_timeout_s: float = 60.0
    layout: PDFLayout = DEFAULT_LAYOUT
    log_file: Path | None = None

    def __post_init__(self) -> None:
        if self.image_dir is None and self.image_import is not None:
            object.__setattr__(self, "image_dir", self.image_import)
        if self.slug_scope not in ("document", "session"):
            raise ConfigurationError(f"Unsupported slug scope: {self.slug_scope!r}")
        if not 0 <= self.port <= 65535:
            raise ConfigurationError(f"Port out of range: {self.port}")


@dataclass(slots=True)
class SourceConfig:
    input_dir: Path = Path(".")
    image_import: str | None = None
    image_dir: Path | None = None


@dataclass(slots=True)
class ThemeConfig:
    theme: Path | None = None
    highlight_theme: Path | None = None
    highlight_style: str = "default"
    template: Path | None = None
    extend_default_theme: bool = False


@dataclass(slots=True)
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 3000


@dataclass(slots=True)
class RenderConfig:
    table_of_contents: bool = False
    slug_scope: SlugScope = "document"
    fetch_timeout_s: float = 10.0
    navigation_timeout_ms: float = 2000.0
    render_timeout_s: float = 60.0
    parallelism: int = 1


@dataclass(slots=True)
class OutputConfig:
    output_dir: Path = Path("built")
    build_html: bool = True
    log_file: str | None = "log.jsonl"
    summary_csv: str | None = "summary.csv"


@dataclass(slots=True)
class AppConfig:
    source: SourceConfig = field(default_factory=SourceConfig)
    theme: ThemeConfig = field(default_factory=ThemeConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    render: RenderConfig = field(default_factory=RenderConfig)
    output: OutputConfig = field(default_factory=OutputConfig)


def _read_toml(path: Path) -> Mapping[str, object]:
    if not path.exists():
        return {}
    with path.open("rb") as handle:
        return tomllib.load(handle)


def _section(raw: Mapping[str, object], name: str) -> Mapping[str, object]:
    value = raw.get(name)
    return value if isinstance(value, Mapping) else {}


def _optional_path(value: object | None) -> Path | None:
    if value is None or value == "":
        return None
    return Path(str(value))


def _optional_str(value: object | None) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def _build_source(data: Mapping[str, object]) -> SourceConfig:
    return SourceConfig(
        input_dir=Path(str(data.get("input_dir", "."))),
        image_import=_optional_str(data.get("image_import")),
        image_dir=_optional_path(data.get("image_dir")),
    )


def _build_theme(data: Mapping[str, object]) -> ThemeConfig:
    return ThemeConfig(
        theme=_optional_path(data.get("theme")),
        highlight_theme=_optional_path(data.get("highlight_theme")),
        highlight_style=str(data.get("highlight_style", "default")),
        template=_optional_path(data.get("template")),
        extend_default_theme=bool(data.get("extend_default_theme", False)),
    )


def _build_server(data: Mapping[str, object]) -> ServerConfig:
    return ServerConfig(host=str(data.get("host", "127.0.0.1")), port=int(data.get("port", 3000)))


def _build_render(data: Mapping[str, object]) -> RenderConfig:
    slug_scope = str(data.get("slug_scope", "document"))
    if slug_scope not in ("document", "session"):
        raise ConfigurationError(f"Unsupported slug scope: {slug_scope!r}")
    return RenderConfig(
        table_of_contents=bool(data.get("table_of_contents", False)),
        slug_scope=slug_scope,  # type: ignore[arg-type]
        fetch_timeout_s=float(data.get("fetch_timeout_s", 10.0)),
        navigation_timeout_ms=float(data.get("navigation_timeout_ms", 2000.0)),
        render_timeout_s=float(data.get("render_timeout_s", 60.0)),
        parallelism=max(1, int(data.get("parallelism", 1))),
    )


def _build_output(data: Mapping[str, object]) -> OutputConfig:
    return OutputConfig(
        output_dir=Path(str(data.get("output_dir", "built"))),
        build_html=bool(data.get("build_html", True)),
        log_file=_optional_str(data.get("log_file", "log.jsonl")),
        summary_csv=_optional_str(data.get("summary_csv", "summary.csv")),
    )


def load_config(path: Path | None = None) -> AppConfig:
    path = path or CONFIG_FILE
    raw = _read_toml(path)
    return AppConfig(
        source=_build_source(_section(raw, "source")),
        theme=_build_theme(_section(raw, "theme")),
        server=_build_server(_section(raw, "server")),
        render=_build_render(_section(raw, "render")),
        output=_build_output(_section(raw, "output")),
    )


def _path_or_none(value: Path | None) -> str | None:
    return str(value) if value is not None else None


def dump_config(config: AppConfig) -> str:
    payload = {
        "source": {
            "input_dir": str(config.source.input_dir),
            "image_import": config.source.image_import,
            "image_dir": _path_or_none(config.source.image_dir),
        },
        "theme": {
            "theme": _path_or_none(config.theme.theme),
            "highlight_theme": _path_or_none(config.theme.highlight_theme),
            "highlight_style": config.theme.highlight_style,
            "template": _path_or_none(config.theme.template),
            "extend_default_theme": config.theme.extend_default_theme,
        },
        "server": {
            "host": config.server.host,
            "port": config.server.port,
        },
        "render": {
            "table_of_contents": config.render.table_of_contents,
            "slug_scope": config.render.slug_scope,
            "fetch_timeout_s": config.render.fetch_timeout_s,
            "navigation_timeout_ms": config.render.navigation_timeout_ms,
            "render_timeout_s": config.render.render_timeout_s,
            "parallelism": config.render.parallelism,
        },
        "output": {
            "output_dir": str(config.output.output_dir),
            "build_html": config.output.build_html,
            "log_file": config.output.log_file,
            "summary_csv": config.output.summary_csv,
        },
    }
    return json.dumps(payload, indent=2)


def read_resource(name: str) -> str:
    return resources.files(RESOURCE_PACKAGE).joinpath("resources", name).read_text(encoding="utf-8")


def _read_file(path: Path, label: str) -> str:
    if not path.is_file():
        raise ConfigurationError(f"{label} file does not exist: {path}")
    return path.read_text(encoding="utf-8")


def load_style(theme: ThemeConfig) -> str:
    """Concatenate base theme, custom theme and highlight theme into one stylesheet."""

    parts: list[str] = []
    if theme.extend_default_theme and theme.theme is not None:
        parts.append(read_resource(DEFAULT_THEME_RESOURCE))
    if theme.theme is not None:
        parts.append(_read_file(theme.theme, "Theme"))
    else:
        parts.append(read_resource(DEFAULT_THEME_RESOURCE))
    if theme.highlight_theme is not None:
        parts.append(_read_file(theme.highlight_theme, "Highlight theme"))
    else:
        parts.append(highlight_css(theme.highlight_style))
    return "\n".join(parts)


def load_template(theme: ThemeConfig) -> str:
    if theme.template is None:
        return read_resource(DEFAULT_TEMPLATE_RESOURCE)
    return _read_file(theme.template, "Template")


def build_session_options(config: AppConfig) -> SessionOptions:
    """Validate paths in ``config`` and resolve them into :class:`SessionOptions`."""

    image_dir = config.source.image_dir
    if image_dir is None and config.source.image_import is not None:
        image_dir = config.source.input_dir / config.source.image_import
    if image_dir is not None and config.source.image_import is not None and not image_dir.is_dir():
        raise ConfigurationError(f"Image directory is not a directory: {image_dir}")
    log_file = None
    if config.output.log_file:
        log_file = config.output.output_dir / config.output.log_file
    return SessionOptions(
        style=load_style(config.theme),
        template=load_template(config.theme),
        image_import=config.source.image_import,
        image_dir=str(image_dir) if image_dir is not None else None,
        table_of_contents=config.render.table_of_contents,
        host=config.server.host,
        port=config.server.port,
        slug_scope=config.render.slug_scope,
        fetch_timeout_s=config.render.fetch_timeout_s,
        navigation_timeout_ms=config.render.navigation_timeout_ms,
        render_timeout_s=config.render.render_timeout_s,
        log_file=log_file,
    )
