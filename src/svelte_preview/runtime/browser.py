"""Playwright-driven preview window.

The window is a Chromium app-mode window opened directly on the staged
``index.html`` (no HTTP server). Web security is relaxed so the document can
load its sibling files over ``file://``.

Usage::

    session = await PlaywrightBrowserSession.launch(staging.path_of("index.html"))
    session.on_disconnected(shutdown)
    ...
    await session.reload()
    await session.close()
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any, Protocol

from svelte_preview.core.errors import ErrorContext, SessionError
from svelte_preview.core.logging import get_browser_logger

logger = get_browser_logger()


class BrowserSession(Protocol):
    """One preview window for the lifetime of the process."""

    @property
    def connected(self) -> bool: ...

    async def reload(self) -> None: ...

    async def close(self) -> None: ...

    def on_disconnected(self, handler: Callable[[], None]) -> None: ...


def chromium_args(html_path: Path, window_size: tuple[int, int]) -> list[str]:
    """Command line flags for the app-mode preview window."""
    width, height = window_size
    return [
        f"--app={html_path.resolve().as_uri()}",
        "--disable-web-security",
        "--allow-file-access-from-files",
        f"--window-size={width},{height}",
    ]


async def _preview_page(context: Any, url: str) -> Any:
    """Return the app window's page, navigating a blank one if needed.

    Playwright may open its own ``about:blank`` page next to the ``--app``
    window, so the page already showing a ``file:`` URL wins.
    """
    for page in context.pages:
        if page.url.startswith("file:"):
            return page
    page = context.pages[0] if context.pages else await context.new_page()
    await page.goto(url)
    return page


class PlaywrightBrowserSession:
    """
    BrowserSession backed by a persistent Chromium context.

    A persistent context exposes the window Chromium opens for ``--app`` as one
    of its pages; a regular ``launch()`` would need a second window.
    """

    def __init__(self, playwright: Any, context: Any, page: Any):
        self._playwright = playwright
        self._context = context
        self._page = page
        self._connected = True
        self._closed = False
        self._handlers: list[Callable[[], None]] = []

        context.on("close", lambda _ctx: self._handle_disconnect("context closed"))
        page.on("close", lambda _page: self._handle_disconnect("window closed"))

    @classmethod
    async def launch(
        cls,
        html_path: Path,
        window_size: tuple[int, int] = (640, 480),
    ) -> PlaywrightBrowserSession:
        """Start Chromium showing ``html_path``. Raises SessionError on failure."""
        from playwright.async_api import async_playwright

        playwright = None
        try:
            playwright = await async_playwright().start()
            # Empty user_data_dir gives a throwaway profile
            context = await playwright.chromium.launch_persistent_context(
                "",
                headless=False,
                args=chromium_args(html_path, window_size),
                no_viewport=True,
            )
            page = await _preview_page(context, html_path.resolve().as_uri())
        except Exception as e:
            if playwright is not None:
                await playwright.stop()
            raise SessionError(str(e), ErrorContext(html_path, "launch")) from e

        logger.info("Preview window opened (%dx%d)", *window_size)
        return cls(playwright, context, page)

    @property
    def connected(self) -> bool:
        return self._connected

    def on_disconnected(self, handler: Callable[[], None]) -> None:
        self._handlers.append(handler)

    def _handle_disconnect(self, reason: str) -> None:
        if not self._connected:
            return
        self._connected = False
        logger.info("Browser disconnected (%s)", reason)
        for handler in list(self._handlers):
            handler()

    async def reload(self) -> None:
        """Re-navigate the existing page to the staged document."""
        if not self._connected:
            logger.debug("Skipping reload, browser is gone")
            return
        await self._page.reload()

    async def close(self) -> None:
        """Close the window and stop Playwright. Safe to call repeatedly."""
        if self._closed:
            return
        self._closed = True
        try:
            if self._connected:
                self._connected = False
                await self._context.close()
        finally:
            await self._playwright.stop()
        logger.debug("Browser session closed")
