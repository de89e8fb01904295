"""Headless Chromium PDF export via Playwright."""

from __future__ import annotations

import asyncio
import contextlib
from typing import Any, Awaitable, TypeVar

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from .errors import RenderError
from .models import DEFAULT_LAYOUT, PDFLayout


T = TypeVar("T")

PLACEHOLDER_URL = "data:text/html,<h1>Not Rendered</h1>"
BROWSER_ARGS = (
    "--no-sandbox",
    "--disable-gpu",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--single-process",
)


class PDFRenderer:
    """Launches one isolated browser per document and prints it to PDF."""

    def __init__(
        self,
        layout: PDFLayout = DEFAULT_LAYOUT,
        *,
        navigation_timeout_ms: float = 2000.0,
        render_timeout_s: float = 60.0,
    ) -> None:
        self.layout = layout
        self.navigation_timeout_ms = navigation_timeout_ms
        self.render_timeout_s = render_timeout_s

    async def _stage(self, code: str, stage: str, operation: Awaitable[T], timeout_s: float | None = None) -> T:
        try:
            if timeout_s is None:
                return await operation
            return await asyncio.wait_for(operation, timeout=timeout_s)
        except (asyncio.TimeoutError, PlaywrightTimeoutError) as exc:
            raise RenderError("TIMEOUT", f"Timed out while {stage}") from exc
        except PlaywrightError as exc:
            raise RenderError(code, f"Error while {stage}: {exc}") from exc

    async def render(self, html: str) -> bytes:
        try:
            async with async_playwright() as playwright:
                browser = await self._stage(
                    "BROWSER_LAUNCH",
                    "launching the browser",
                    playwright.chromium.launch(headless=True, args=list(BROWSER_ARGS)),
                )
                try:
                    pdf = await self._print(browser, html)
                except BaseException:
                    # The stage error wins over a failed close.
                    with contextlib.suppress(RenderError):
                        await self._stage("BROWSER_CLOSE", "closing the browser", browser.close())
                    raise
                await self._stage("BROWSER_CLOSE", "closing the browser", browser.close())
                return pdf
        except PlaywrightError as exc:
            raise RenderError("BROWSER_LAUNCH", f"Error while starting Playwright: {exc}") from exc

    async def _print(self, browser: Any, html: str) -> bytes:
        page = await self._stage("BROWSER_LAUNCH", "creating a new page", browser.new_page())
        await self._stage(
            "NAVIGATION",
            "loading the placeholder page",
            page.goto(PLACEHOLDER_URL, wait_until="domcontentloaded", timeout=self.navigation_timeout_ms),
        )
        await self._stage(
            "SET_CONTENT",
            "rendering the page",
            page.set_content(html, timeout=self.render_timeout_s * 1000),
            timeout_s=self.render_timeout_s,
        )
        return await self._stage(
            "PDF_EXPORT",
            "exporting the PDF",
            page.pdf(**self.layout.as_pdf_options()),
            timeout_s=self.render_timeout_s,
        )


async def render_pdf(html: str, layout: PDFLayout = DEFAULT_LAYOUT) -> bytes:
    return await PDFRenderer(layout).render(html)


__all__ = ["BROWSER_ARGS", "PLACEHOLDER_URL", "PDFRenderer", "render_pdf"]
