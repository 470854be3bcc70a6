"""
Preview session lifecycle.

Bootstraps a preview (staging, first build, browser window) and tears it all
down through a single idempotent ``shutdown()``. Teardown is reached from
every exit path:

- normal exit or Ctrl+C: leaving the ``async with PreviewSession`` block
- the user closing the window: the disconnect handler stops the watcher,
  which ends the watch loop and leaves the block
- a fatal bootstrap error: the exception leaves the block
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from pathlib import Path
from types import TracebackType

from svelte_preview.core.bundler import (
    BuildSucceeded,
    Bundler,
    BundlerAdapter,
    EsbuildBundler,
    icon_path,
)
from svelte_preview.core.config import PreviewConfig
from svelte_preview.core.errors import CompileError, ErrorContext, InvalidInputError
from svelte_preview.core.staging import ENTRY_MODULE, HTML_SHELL, ICON, StagingArea
from svelte_preview.runtime.browser import BrowserSession, PlaywrightBrowserSession
from svelte_preview.core.logging import get_preview_logger
from svelte_preview.runtime.rebuild import RebuildCoordinator
from svelte_preview.runtime.watcher import ChangeWatcher, Watcher

logger = get_preview_logger()

BrowserFactory = Callable[[Path, tuple[int, int]], Awaitable[BrowserSession]]
WatcherFactory = Callable[[PreviewConfig], Watcher]


def resolve_source(path: str | Path) -> Path:
    """Return the absolute entry path, or raise InvalidInputError."""
    candidate = Path(path).expanduser()
    if not candidate.is_file():
        raise InvalidInputError(
            "Given path is either invalid, or it does not point to a file",
            ErrorContext(candidate, "resolve"),
        )
    return candidate.resolve()


def _default_watcher(config: PreviewConfig) -> Watcher:
    return ChangeWatcher(
        config.watch_root,
        debounce_ms=config.debounce_ms,
        exclude=config.staging_dir,
    )


class PreviewSession:
    """
    Owns the staging area, watcher and browser window of one preview.

    Bundler, browser and watcher are injectable so the loop can be driven by
    fakes in tests.
    """

    def __init__(
        self,
        source: Path,
        config: PreviewConfig,
        *,
        bundler: Bundler | None = None,
        browser_factory: BrowserFactory | None = None,
        watcher_factory: WatcherFactory | None = None,
    ):
        self.source = source
        self.config = config
        self.staging = StagingArea(config.staging_dir)
        self.adapter = BundlerAdapter(
            source,
            self.staging,
            bundler or EsbuildBundler(config.watch_root, config.node_binary),
        )
        self.watcher = (watcher_factory or _default_watcher)(config)
        self._browser_factory = browser_factory or PlaywrightBrowserSession.launch
        self.browser: BrowserSession | None = None
        self.coordinator = RebuildCoordinator(self.adapter, self.staging, self._reload)
        self._shut_down = False

    async def __aenter__(self) -> PreviewSession:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.shutdown()

    async def bootstrap(self) -> None:
        """Stage the entry module, run the first build and open the window.

        Raises:
            StagingError: staging directory unusable
            CompileError: the first build failed
            SessionError: the browser could not be started
        """
        self.staging.prepare()
        self.staging.write_artifact(ENTRY_MODULE, self.adapter.entry_module())
        self.staging.copy_asset(icon_path(), ICON)

        result = await self.adapter.compile()
        if not isinstance(result, BuildSucceeded):
            raise CompileError(
                "Failed to compile given file",
                ErrorContext(self.source, "compile", result.reason),
            )
        html_path = self.staging.write_artifact(HTML_SHELL, result.html)

        self.browser = await self._browser_factory(html_path, self.config.window_size)
        self.browser.on_disconnected(self._on_browser_disconnected)

    async def watch(self) -> None:
        """Feed watcher events to the coordinator until the watcher stops."""
        async for path in self.watcher.changes():
            self.coordinator.dispatch(path)

    async def _reload(self) -> None:
        if self.browser is not None:
            await self.browser.reload()

    def _on_browser_disconnected(self) -> None:
        logger.info("Preview window closed, stopping")
        self.watcher.close()

    @property
    def is_shut_down(self) -> bool:
        return self._shut_down

    async def shutdown(self) -> None:
        """Close the watcher and the browser. Safe to call more than once."""
        if self._shut_down:
            return
        self._shut_down = True
        logger.debug("Shutting down preview")

        self.watcher.close()
        await self.coordinator.cancel_pending()
        if self.browser is not None:
            await self.browser.close()


async def run_preview(
    source: str | Path,
    config: PreviewConfig | None = None,
    *,
    bundler: Bundler | None = None,
    browser_factory: BrowserFactory | None = None,
    watcher_factory: WatcherFactory | None = None,
) -> None:
    """Preview ``source`` until the window is closed or the task is cancelled."""
    entry = resolve_source(source)
    config = config or PreviewConfig.from_env()

    async with PreviewSession(
        entry,
        config,
        bundler=bundler,
        browser_factory=browser_factory,
        watcher_factory=watcher_factory,
    ) as session:
        await session.bootstrap()
        logger.info("Previewing %s", entry)
        await session.watch()
