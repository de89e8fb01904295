from __future__ import annotations

import hashlib
import os
import tempfile
import time
from collections.abc import Iterable
from pathlib import Path
from typing import Iterator


MARKDOWN_SUFFIXES = frozenset({".md", ".markdown"})


def generate_run_id(prefix: str = "run") -> str:
    epoch_ms = int(time.time() * 1000)
    random_bits = hashlib.sha256(os.urandom(16)).hexdigest()[:8]
    return f"{prefix}-{epoch_ms}-{random_bits}"


def atomic_write(path: Path, data: str, encoding: str = "utf-8") -> None:
    atomic_write_bytes(path, data.encode(encoding))


def atomic_write_bytes(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile("wb", delete=False, dir=path.parent) as tmp:
        tmp.write(data)
        tmp.flush()
        os.fsync(tmp.fileno())
    os.replace(tmp.name, path)


def is_markdown_file(path: Path) -> bool:
    return path.suffix.lower() in MARKDOWN_SUFFIXES


def iter_markdown_files(paths: Iterable[Path]) -> Iterator[Path]:
    for path in paths:
        if path.is_file():
            if is_markdown_file(path):
                yield path
        elif path.is_dir():
            for file_path in sorted(path.iterdir()):
                if file_path.is_file() and is_markdown_file(file_path):
                    yield file_path


def strip_extension(name: str) -> str:
    """``notes.v2.md`` -> ``notes.v2``; names without a dot are returned as-is."""

    stem, dot, _ = name.rpartition(".")
    return stem if dot and stem else name


def read_text(path: Path, encoding: str = "utf-8") -> str:
    return path.read_text(encoding=encoding)
