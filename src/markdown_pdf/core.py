from __future__ import annotations

import asyncio
import time
from enum import Enum
from pathlib import Path
from typing import Awaitable, Callable, Sequence, TypeVar

from .assets import AssetResolver, AssetServer, Fetcher
from .compositor import compose
from .config import SessionOptions
from .errors import ConfigurationError, ConversionError, SessionStateError, ValidationError
from .logging import BatchSummary, NullRunLogger, RunLogEntry, RunLogger, StageTimings
from .models import BatchConversionResult, ConversionResult, RenderRequest
from .pdf import PDFRenderer
from .renderer import MarkdownRenderer
from .slugs import SlugRegistry
from .utils import generate_run_id

T = TypeVar("T")


class SessionState(str, Enum):
    CREATED = "created"
    STARTED = "started"
    CLOSED = "closed"


class MarkdownToPDF:
    """Conversion session: one image server, many documents."""

    def __init__(
        self,
        options: SessionOptions,
        *,
        pdf_renderer: PDFRenderer | None = None,
        fetch: Fetcher | None = None,
        logger: RunLogger | None = None,
    ) -> None:
        self._options = options
        self._state = SessionState.CREATED
        self._markdown = MarkdownRenderer()
        self._session_slugs = SlugRegistry()
        self._pdf = pdf_renderer or PDFRenderer(
            options.layout,
            navigation_timeout_ms=options.navigation_timeout_ms,
            render_timeout_s=options.render_timeout_s,
        )
        self._fetch = fetch
        self._server: AssetServer | None = None
        self._resolver: AssetResolver | None = None
        if logger is not None:
            self._logger: RunLogger | NullRunLogger = logger
        elif options.log_file is not None:
            self._logger = RunLogger(options.log_file)
        else:
            self._logger = NullRunLogger()

    @property
    def options(self) -> SessionOptions:
        return self._options

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def image_server_url(self) -> str | None:
        return self._server.base_url if self._server is not None else None

    def __enter__(self) -> MarkdownToPDF:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def start(self) -> None:
        if self._state is not SessionState.CREATED:
            raise SessionStateError(f"Session cannot be started from state '{self._state.value}'")
        server_url = ""
        if self._options.image_dir is not None:
            server = AssetServer(Path(self._options.image_dir), self._options.host, self._options.port)
            server.start()
            self._server = server
            server_url = server.base_url
        self._resolver = AssetResolver(
            self._options.image_import,
            server_url,
            timeout_s=self._options.fetch_timeout_s,
            fetch=self._fetch,
        )
        self._state = SessionState.STARTED

    def close(self) -> None:
        if self._state is SessionState.CLOSED:
            raise SessionStateError("Session is already closed")
        if self._server is not None:
            self._server.close()
            self._server = None
        self._resolver = None
        self._state = SessionState.CLOSED

    def _ensure_started(self) -> AssetResolver:
        if self._state is not SessionState.STARTED or self._resolver is None:
            raise SessionStateError(f"convert() requires a started session (state: '{self._state.value}')")
        return self._resolver

    def _registry_for_document(self) -> SlugRegistry:
        if self._options.slug_scope == "session":
            return self._session_slugs
        return SlugRegistry()

    async def convert(self, text: str, title: str | None = None) -> ConversionResult:
        if not isinstance(text, str):
            raise ValidationError("Parameter 'text' has to be a string containing Markdown content")
        if title is not None and not isinstance(title, str):
            raise ValidationError("Parameter 'title' has to be a string")
        resolver = self._ensure_started()
        request = RenderRequest(text=text, title=title or "")
        run_id = generate_run_id("doc")
        timings = StageTimings()
        try:
            result = await self._convert_internal(request, resolver, run_id, timings)
        except ConversionError as exc:
            self._log(run_id, request.title, "failure", [], exc.code, timings)
            raise
        self._log(
            run_id,
            request.title,
            "success",
            result.warnings,
            None,
            timings,
            html_bytes=len(result.html.encode("utf-8")),
            pdf_bytes=len(result.pdf),
        )
        return result

    async def _convert_internal(
        self,
        request: RenderRequest,
        resolver: AssetResolver,
        run_id: str,
        timings: StageTimings,
    ) -> ConversionResult:
        start = time.perf_counter()
        rendered = self._markdown.render(
            request.text,
            table_of_contents=self._options.table_of_contents,
            registry=self._registry_for_document(),
        )
        timings.render_ms = _elapsed_ms(start)

        start = time.perf_counter()
        document = compose(rendered.html, rendered.toc, request.title, self._options.style, self._options.template)
        timings.compose_ms = _elapsed_ms(start)

        inlined, timings.assets_ms = await _timed(lambda: resolver.inline_images(document))
        pdf, timings.pdf_ms = await _timed(lambda: self._pdf.render(inlined.html))
        return ConversionResult(
            html=inlined.html,
            pdf=pdf,
            title=request.title,
            run_id=run_id,
            warnings=list(inlined.warnings),
        )

    def _log(
        self,
        run_id: str,
        title: str,
        status: str,
        warnings: list[str],
        error_code: str | None,
        timings: StageTimings,
        *,
        html_bytes: int = 0,
        pdf_bytes: int = 0,
    ) -> None:
        self._logger.append(
            RunLogEntry(
                run_id=run_id,
                title=title,
                status=status,
                warnings=warnings,
                error_code=error_code,
                timings=timings,
                html_bytes=html_bytes,
                pdf_bytes=pdf_bytes,
            )
        )

    async def convert_many(
        self,
        requests: Sequence[RenderRequest],
        *,
        parallelism: int = 1,
    ) -> BatchConversionResult:
        parallelism = max(1, parallelism)
        if parallelism > 1 and self._options.slug_scope == "session":
            raise ConfigurationError("Concurrent conversion requires slug_scope='document'")
        self._ensure_started()
        summary = BatchSummary(total=len(requests))
        failures: dict[str, str] = {}

        async def run(index: int, request: RenderRequest) -> ConversionResult | None:
            try:
                result = await self.convert(request.text, request.title)
            except ConversionError as exc:
                failures[request.title or f"#{index}"] = f"{exc.code}: {exc}"
                summary.failures += 1
                return None
            summary.successes += 1
            summary.record_warnings(result.warnings)
            return result

        if parallelism == 1:
            outcomes = [await run(index, request) for index, request in enumerate(requests)]
        else:
            semaphore = asyncio.Semaphore(parallelism)

            async def bounded(index: int, request: RenderRequest) -> ConversionResult | None:
                async with semaphore:
                    return await run(index, request)

            outcomes = await asyncio.gather(*(bounded(i, r) for i, r in enumerate(requests)))
        runs = [result for result in outcomes if result is not None]
        return BatchConversionResult(runs=runs, summary=summary, failures=failures)


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


async def _timed(factory: Callable[[], Awaitable[T]]) -> tuple[T, float]:
    start = time.perf_counter()
    value = await factory()
    return value, _elapsed_ms(start)


__all__ = [
    "ConversionError",
    "MarkdownToPDF",
    "SessionState",
]
