"""GitHub Action inputs read from ``INPUT_*`` environment variables."""

from __future__ import annotations

import os
import posixpath
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Mapping

from .config import AppConfig, OutputConfig, SourceConfig, ThemeConfig
from .errors import ConfigurationError


ENV_PREFIX = "INPUT_"
DEFAULT_WORKSPACE = Path("/github/workspace")


@dataclass(frozen=True, slots=True)
class Settings:
    """Action inputs resolved against the runner workspace."""

    input_dir: Path
    output_dir: Path
    image_import: str | None = None
    images_dir: Path | None = None
    build_html: bool = True
    theme: Path | None = None
    highlight_theme: Path | None = None
    template: Path | None = None
    extend_default_theme: bool = False
    table_of_contents: bool = False


def _parse_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


def _input(env: Mapping[str, str], name: str) -> str | None:
    value = env.get(f"{ENV_PREFIX}{name.upper()}")
    if value is None or value == "":
        return None
    return value


def workspace_path(workspace: Path, relative: str) -> Path:
    """Join ``relative`` onto ``workspace``, refusing paths that leave it."""

    root = posixpath.normpath(str(workspace))
    joined = posixpath.normpath(posixpath.join(root, relative.lstrip("/")))
    if joined != root and not joined.startswith(root.rstrip("/") + "/"):
        raise ConfigurationError(f"Cannot move outside of directory '{workspace}'")
    return Path(joined)


def read_settings(env: Mapping[str, str] | None = None, workspace: Path = DEFAULT_WORKSPACE) -> Settings:
    env = os.environ if env is None else env

    def path_input(name: str, default: str | None = None) -> Path | None:
        value = _input(env, name)
        if value is None:
            value = default
        if value is None:
            return None
        return workspace_path(workspace, value)

    input_dir = path_input("input_dir", "")
    image_import = _input(env, "image_import")
    images_default = posixpath.join(_input(env, "input_dir") or "", image_import or "")
    return Settings(
        input_dir=input_dir or workspace,
        output_dir=path_input("output_dir", "built") or workspace,
        image_import=image_import,
        images_dir=path_input("images_dir", images_default),
        build_html=_parse_bool(_input(env, "build_html"), True),
        theme=path_input("theme"),
        highlight_theme=path_input("highlight_theme"),
        template=path_input("template"),
        extend_default_theme=_parse_bool(_input(env, "extend_default_theme"), False),
        table_of_contents=_parse_bool(_input(env, "table_of_contents"), False),
    )


def apply_settings(config: AppConfig, settings: Settings) -> AppConfig:
    """Overlay action inputs on top of a file-based configuration."""

    return AppConfig(
        source=SourceConfig(
            input_dir=settings.input_dir,
            image_import=settings.image_import,
            image_dir=settings.images_dir,
        ),
        theme=ThemeConfig(
            theme=settings.theme,
            highlight_theme=settings.highlight_theme,
            highlight_style=config.theme.highlight_style,
            template=settings.template,
            extend_default_theme=settings.extend_default_theme,
        ),
        server=config.server,
        render=replace(config.render, table_of_contents=settings.table_of_contents),
        output=OutputConfig(
            output_dir=settings.output_dir,
            build_html=settings.build_html,
            log_file=config.output.log_file,
            summary_csv=config.output.summary_csv,
        ),
    )


__all__ = ["DEFAULT_WORKSPACE", "ENV_PREFIX", "Settings", "apply_settings", "read_settings", "workspace_path"]
