"""Markdown to HTML rendering with markdown-it-py."""

from __future__ import annotations

import html
import re
from dataclasses import dataclass, field
from typing import Any, Sequence

import emoji
from bs4 import BeautifulSoup
from markdown_it import MarkdownIt
from markdown_it.rules_block import StateBlock
from markdown_it.rules_core import StateCore
from markdown_it.rules_inline import StateInline
from markdown_it.token import Token
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

from .models import RenderedMarkdown
from .slugs import SlugRegistry


TOC_MARKER = "[toc]"
TOC_CONTAINER_ID = "table-of-contents"
TOC_MARKER_RE = re.compile(r"\[\[?toc\]?\]", re.IGNORECASE)
SHORTCODE_RE = re.compile(r":[A-Za-z0-9_+\-]+:")
PERMALINK_SYMBOL = '<span class="octicon octicon-link"></span>'
HIGHLIGHT_CLASS = "highlight"


@dataclass(slots=True)
class Heading:
    level: int
    text: str
    slug: str


@dataclass(slots=True)
class _RenderEnv:
    registry: SlugRegistry
    headings: list[Heading] = field(default_factory=list)


def highlight_css(style: str = "default") -> str:
    """Stylesheet for the Pygments token classes emitted by :class:`MarkdownRenderer`."""

    return HtmlFormatter(style=style).get_style_defs(f".{HIGHLIGHT_CLASS}")


def _inline_text(token: Token) -> str:
    children = token.children or []
    return "".join(child.content for child in children if child.type in ("text", "code_inline"))


def _emoji_rule(state: StateInline, silent: bool) -> bool:
    if state.src[state.pos] != ":":
        return False
    match = SHORTCODE_RE.match(state.src, state.pos)
    if match is None:
        return False
    shortcode = match.group(0)
    character = emoji.emojize(shortcode, language="alias")
    if character == shortcode:
        return False
    if not silent:
        token = state.push("emoji", "", 0)
        token.content = character
        token.markup = shortcode[1:-1]
    state.pos = match.end()
    return True


def _render_emoji(self: Any, tokens: Sequence[Token], idx: int, options: Any, env: Any) -> str:
    return tokens[idx].content


def _toc_block(state: StateBlock, start_line: int, end_line: int, silent: bool) -> bool:
    if state.sCount[start_line] - state.blkIndent >= 4:
        return False
    pos = state.bMarks[start_line] + state.tShift[start_line]
    maximum = state.eMarks[start_line]
    if not TOC_MARKER_RE.fullmatch(state.src[pos:maximum].strip()):
        return False
    if silent:
        return True
    state.line = start_line + 1
    token = state.push("toc", "nav", 0)
    token.map = [start_line, state.line]
    token.markup = state.src[pos:maximum].strip()
    return True


def _header_anchors(state: StateCore) -> None:
    env: _RenderEnv = state.env["markdown_pdf"]
    tokens = state.tokens
    for idx, token in enumerate(tokens):
        if token.type != "heading_open":
            continue
        inline = tokens[idx + 1]
        text = _inline_text(inline)
        slug = env.registry.slugify(text)
        token.attrSet("id", slug)
        env.headings.append(Heading(level=int(token.tag[1:]), text=text, slug=slug))

        link_open = Token("link_open", "a", 1)
        link_open.attrSet("class", "anchor")
        link_open.attrSet("aria-hidden", "true")
        link_open.attrSet("href", f"#{slug}")
        symbol = Token("html_inline", "", 0)
        symbol.content = PERMALINK_SYMBOL
        link_close = Token("link_close", "a", -1)
        inline.children = [link_open, symbol, link_close, *(inline.children or [])]


def toc_list(headings: Sequence[Heading]) -> str:
    """Nested ``<ul>`` linking every heading, one list level per heading depth."""

    parts: list[str] = []
    levels: list[int] = []
    for heading in headings:
        if not levels:
            parts.append("<ul>")
            levels.append(heading.level)
        elif heading.level > levels[-1]:
            parts.append("<ul>")
            levels.append(heading.level)
        else:
            parts.append("</li>")
            while len(levels) > 1 and heading.level < levels[-1]:
                if heading.level > levels[-2]:
                    levels[-1] = heading.level
                    break
                parts.append("</ul></li>")
                levels.pop()
        parts.append(f'<li><a href="#{html.escape(heading.slug)}">{html.escape(heading.text)}</a>')
    if levels:
        parts.append("</li>")
        parts.extend("</ul></li>" for _ in levels[1:])
        parts.append("</ul>")
    return "".join(parts)


def _render_toc(self: Any, tokens: Sequence[Token], idx: int, options: Any, env: Any) -> str:
    render_env: _RenderEnv = env["markdown_pdf"]
    return f'<nav id="{TOC_CONTAINER_ID}">{toc_list(render_env.headings)}</nav>\n'


def extract_toc(body: str) -> tuple[str, str | None]:
    """Split the rendered TOC container out of ``body``."""

    soup = BeautifulSoup(body, "html.parser")
    nav = soup.find("nav", id=TOC_CONTAINER_ID)
    if nav is None:
        return body, None
    toc = nav.decode_contents()
    nav.decompose()
    return str(soup), toc


class MarkdownRenderer:
    def __init__(self, registry: SlugRegistry | None = None) -> None:
        self.registry = registry if registry is not None else SlugRegistry()
        self._formatter = HtmlFormatter(nowrap=True)
        self._md = self._build_parser()

    def _build_parser(self) -> MarkdownIt:
        md = MarkdownIt(
            "js-default",
            {"html": True, "breaks": False, "xhtmlOut": True, "highlight": self._highlight},
        )
        md.inline.ruler.push("emoji", _emoji_rule)
        md.add_render_rule("emoji", _render_emoji)
        md.block.ruler.before("paragraph", "toc", _toc_block)
        md.add_render_rule("toc", _render_toc)
        md.core.ruler.push("header_anchor", _header_anchors)
        return md

    def _highlight(self, code: str, lang: str, attrs: str) -> str:
        # An empty string tells markdown-it to fall back to escaped output.
        if not lang:
            return ""
        try:
            lexer = get_lexer_by_name(lang, stripnl=False)
        except ClassNotFound:
            return ""
        highlighted = highlight(code, lexer, self._formatter)
        return (
            f'<pre class="{HIGHLIGHT_CLASS}"><code class="language-{html.escape(lang)}">'
            f"{highlighted}</code></pre>"
        )

    def render(
        self,
        text: str,
        *,
        table_of_contents: bool = False,
        registry: SlugRegistry | None = None,
    ) -> RenderedMarkdown:
        if table_of_contents:
            text = f"{TOC_MARKER}\n{text}"
        env = {"markdown_pdf": _RenderEnv(registry=registry if registry is not None else self.registry)}
        body, toc = extract_toc(self._md.render(text, env))
        return RenderedMarkdown(html=body, toc=toc)


__all__ = ["Heading", "MarkdownRenderer", "extract_toc", "highlight_css", "toc_list"]
