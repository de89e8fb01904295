"""Mustache-style page composition."""

from __future__ import annotations

import html
import re
from collections.abc import Mapping


_MUSTACHE_RE = re.compile(
    r"\{\{\{\s*(?P<raw>[\w.\-]+)\s*\}\}\}"
    r"|\{\{\s*(?P<amp>&)?\s*(?P<name>[\w.\-]+)\s*\}\}"
)


def render_template(template: str, view: Mapping[str, object | None]) -> str:
    """Substitute ``{{name}}`` (escaped) and ``{{{name}}}`` / ``{{& name}}`` (raw) placeholders.

    Unknown names and ``None`` values render as empty strings. Substituted
    values are never re-scanned for placeholders.
    """

    def _replacement(match: re.Match[str]) -> str:
        raw_name = match.group("raw")
        name = raw_name or match.group("name")
        value = view.get(name)
        if value is None:
            return ""
        text = str(value)
        if raw_name or match.group("amp"):
            return text
        return html.escape(text)

    return _MUSTACHE_RE.sub(_replacement, template)


def compose(body: str, toc: str | None, title: str, style: str, template: str) -> str:
    view = {
        "title": title,
        "style": style,
        "toc": toc,
        "content": body,
    }
    return render_template(template, view)


__all__ = ["compose", "render_template"]
