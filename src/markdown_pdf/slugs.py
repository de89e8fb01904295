"""Header anchor generation."""

from __future__ import annotations

import re
from urllib.parse import quote

# Characters removed from header text before the slug is encoded.
STRIP_RE = re.compile(r"""[\]\[!"#$%&'()*+,./:;<=>?@\\^_{|}~`]""")
WHITESPACE_RE = re.compile(r"\s+")

# encodeURIComponent leaves these unescaped.
_URI_COMPONENT_SAFE = "-_.!~*'()"

DEFAULT_SLUG = "section"


def base_slug(text: str) -> str:
    """Return the undisambiguated anchor for ``text``."""

    normalized = STRIP_RE.sub("", text.strip().lower())
    normalized = WHITESPACE_RE.sub("-", normalized)
    normalized = normalized.strip("-")
    if not normalized:
        normalized = DEFAULT_SLUG
    return quote(normalized, safe=_URI_COMPONENT_SAFE)


class SlugRegistry:
    """Hands out unique anchor ids.

    The first header with a given base slug keeps it; the Nth repeat gets
    ``-N`` appended. Ids already issued are never handed out twice, even when
    a header's own text collides with a generated suffix.
    """

    def __init__(self) -> None:
        self._counters: dict[str, int] = {}
        self._issued: set[str] = set()

    def __len__(self) -> int:
        return len(self._issued)

    def __contains__(self, slug: object) -> bool:
        return slug in self._issued

    def slugify(self, text: str) -> str:
        base = base_slug(text)
        if base not in self._counters:
            self._counters[base] = 0
            if base not in self._issued:
                self._issued.add(base)
                return base
        counter = self._counters[base]
        while True:
            counter += 1
            candidate = f"{base}-{counter}"
            if candidate not in self._issued:
                break
        self._counters[base] = counter
        self._issued.add(candidate)
        return candidate

    def reset(self) -> None:
        self._counters.clear()
        self._issued.clear()


__all__ = ["DEFAULT_SLUG", "SlugRegistry", "base_slug"]
