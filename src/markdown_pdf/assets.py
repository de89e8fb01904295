"""Local image server and data-URI inlining of ``<img>`` sources."""

from __future__ import annotations

import asyncio
import base64
import mimetypes
import socket
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Protocol

import requests
import uvicorn
from bs4 import BeautifulSoup
from bs4.element import Tag
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from .errors import AssetServerError, ConfigurationError


DEFAULT_CONTENT_TYPE = "application/octet-stream"
_LOOPBACK_HOSTS = {"127.0.0.1", "0.0.0.0", "localhost"}


class FetchResponse(Protocol):
    status_code: int
    headers: Any
    content: bytes


Fetcher = Callable[..., FetchResponse]


def create_asset_app(directory: Path) -> FastAPI:
    app = FastAPI(title="Markdown PDF image server", docs_url=None, redoc_url=None, openapi_url=None)
    app.mount("/", StaticFiles(directory=str(directory)), name="images")
    return app


class AssetServer:
    """Static file server for the image directory, run on a background thread."""

    def __init__(self, directory: Path, host: str = "127.0.0.1", port: int = 3000, startup_timeout_s: float = 5.0) -> None:
        self._directory = directory
        self._host = host
        self._port = port
        self._startup_timeout_s = startup_timeout_s
        self._socket: socket.socket | None = None
        self._server: uvicorn.Server | None = None
        self._thread: threading.Thread | None = None

    @property
    def port(self) -> int:
        if self._socket is None:
            return self._port
        return int(self._socket.getsockname()[1])

    @property
    def base_url(self) -> str:
        host = "localhost" if self._host in _LOOPBACK_HOSTS else self._host
        return f"http://{host}:{self.port}"

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _bind(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((self._host, self._port))
        except OSError as exc:
            sock.close()
            raise AssetServerError(exc.errno, f"Cannot bind image server to {self._host}:{self._port}: {exc.strerror}") from exc
        return sock

    def start(self) -> None:
        if not self._directory.is_dir():
            raise ConfigurationError(f"Image directory is not a directory: {self._directory}")
        sock = self._bind()
        config = uvicorn.Config(
            create_asset_app(self._directory),
            log_level="warning",
            access_log=False,
            lifespan="off",
        )
        server = uvicorn.Server(config)
        thread = threading.Thread(
            target=server.run,
            kwargs={"sockets": [sock]},
            name="markdown-pdf-images",
            daemon=True,
        )
        self._socket = sock
        self._server = server
        self._thread = thread
        thread.start()

        deadline = time.monotonic() + self._startup_timeout_s
        while not server.started:
            if not thread.is_alive() or time.monotonic() > deadline:
                self.close()
                raise AssetServerError(f"Image server failed to start on {self._host}:{self._port}")
            time.sleep(0.01)

    def close(self) -> None:
        if self._server is not None:
            self._server.should_exit = True
        if self._thread is not None:
            self._thread.join(timeout=self._startup_timeout_s)
        if self._socket is not None:
            self._socket.close()
        self._server = None
        self._thread = None
        self._socket = None


@dataclass(slots=True)
class InlinedDocument:
    html: str
    warnings: list[str] = field(default_factory=list)
    inlined: int = 0


class AssetResolver:
    """Rewrites ``<img src>`` values into ``data:`` URIs.

    Sources containing ``image_import`` are redirected to the local image
    server; everything else is fetched as-is. Each distinct source is fetched
    once and every ``<img>`` sharing it receives the same URI. Failed fetches
    leave the source untouched and add a warning.
    """

    def __init__(
        self,
        image_import: str | None,
        server_url: str,
        *,
        timeout_s: float = 10.0,
        fetch: Fetcher | None = None,
    ) -> None:
        self.image_import = image_import
        self.server_url = server_url
        self.timeout_s = timeout_s
        self._fetch: Fetcher = fetch or requests.get

    def resolve_url(self, source: str) -> str:
        if not self.image_import:
            return source
        return source.replace(self.image_import, self.server_url)

    async def inline_images(self, html: str) -> InlinedDocument:
        if not self.image_import:
            return InlinedDocument(html=html)

        soup = BeautifulSoup(html, "html.parser")
        by_source: dict[str, list[Tag]] = {}
        for image in soup.find_all("img"):
            source = image.get("src")
            if isinstance(source, str) and source and not source.startswith("data:"):
                by_source.setdefault(source, []).append(image)
        if not by_source:
            return InlinedDocument(html=html)

        warnings: list[str] = []
        inlined = 0
        for source, images in by_source.items():
            data_uri = await self.encode_image(source, warnings)
            if data_uri is None:
                continue
            for image in images:
                image["src"] = data_uri
            inlined += 1
        if not inlined:
            return InlinedDocument(html=html, warnings=warnings)
        return InlinedDocument(html=str(soup), warnings=warnings, inlined=inlined)

    async def encode_image(self, source: str, warnings: list[str]) -> str | None:
        url = self.resolve_url(source)
        try:
            response = await asyncio.to_thread(self._fetch, url, timeout=self.timeout_s)
        except requests.RequestException as exc:
            warnings.append(f"IMAGE_FETCH_FAILED: {source}: {exc}")
            return None
        if response.status_code != 200:
            warnings.append(
                f"IMAGE_NOT_FOUND: {source} (HTTP {response.status_code} from {url}); "
                "is the image folder route correct?"
            )
            return None
        content_type = response.headers.get("content-type") or mimetypes.guess_type(url)[0] or DEFAULT_CONTENT_TYPE
        payload = base64.b64encode(response.content).decode("ascii")
        return f"data:{content_type.replace(' ', '')};base64,{payload}"


__all__ = ["AssetResolver", "AssetServer", "InlinedDocument", "create_asset_app"]
