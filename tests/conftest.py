"""Shared pytest fixtures for svelte-preview tests."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from pathlib import Path

import pytest

from svelte_preview.core.bundler import BundleOptions
from svelte_preview.core.config import PreviewConfig
from svelte_preview.core.errors import CompileError, ErrorContext
from svelte_preview.core.logging import ROOT_LOGGER


class FakeBundler:
    """Bundler double: writes ``code`` to the outfile or raises CompileError.

    Setting ``gate`` to an unset ``asyncio.Event`` holds every build open until
    the event is set, which lets tests observe overlapping calls.
    """

    def __init__(self, code: str = "console.log('v1');"):
        self.code = code
        self.fail = False
        self.gate: asyncio.Event | None = None
        self.calls: list[tuple[Path, Path, BundleOptions]] = []
        self.active = 0
        self.max_active = 0

    async def build(self, entry: Path, outfile: Path, options: BundleOptions) -> None:
        self.calls.append((entry, outfile, options))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.gate is not None:
                await self.gate.wait()
            else:
                await asyncio.sleep(0)
            if self.fail:
                raise CompileError("Unexpected token", ErrorContext(entry, "bundle"))
            outfile.write_text(self.code, encoding="utf-8")
        finally:
            self.active -= 1


class FakeBrowser:
    """BrowserSession double counting reloads and close calls."""

    def __init__(self):
        self.connected = True
        self.reload_count = 0
        self.close_calls = 0
        self.on_reload: Callable[[], None] | None = None
        self._handlers: list[Callable[[], None]] = []

    def on_disconnected(self, handler: Callable[[], None]) -> None:
        self._handlers.append(handler)

    def disconnect(self) -> None:
        """Simulate the user closing the window."""
        self.connected = False
        for handler in self._handlers:
            handler()

    async def reload(self) -> None:
        self.reload_count += 1
        if self.on_reload is not None:
            self.on_reload()

    async def close(self) -> None:
        self.close_calls += 1
        self.connected = False


_STOP = object()


class FakeWatcher:
    """Watcher double fed through ``emit()``."""

    def __init__(self):
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self.closed = False
        self.close_calls = 0

    def emit(self, path: str | None) -> None:
        self._queue.put_nowait(path)

    def close(self) -> None:
        self.close_calls += 1
        if not self.closed:
            self.closed = True
            self._queue.put_nowait(_STOP)

    async def changes(self) -> AsyncIterator[str]:
        while True:
            item = await self._queue.get()
            if item is _STOP:
                return
            yield item  # type: ignore[misc]


@pytest.fixture
def source_file(tmp_path: Path) -> Path:
    """A minimal Svelte component inside a project directory."""
    project = tmp_path / "project"
    (project / "src").mkdir(parents=True)
    component = project / "src" / "App.svelte"
    component.write_text('<script>let name = "world";</script>\n<h1>Hello {name}!</h1>\n')
    return component


@pytest.fixture
def preview_config(tmp_path: Path, source_file: Path) -> PreviewConfig:
    return PreviewConfig(
        staging_dir=tmp_path / "staging",
        watch_root=source_file.parent.parent,
        debounce_ms=50,
    )


@pytest.fixture
def fake_bundler() -> FakeBundler:
    return FakeBundler()


@pytest.fixture
def fake_browser() -> FakeBrowser:
    return FakeBrowser()


@pytest.fixture
def fake_watcher() -> FakeWatcher:
    return FakeWatcher()


@pytest.fixture(autouse=True)
def _restore_preview_logger():
    """Undo setup_logging() so handlers do not leak between tests."""
    root = logging.getLogger(ROOT_LOGGER)
    handlers, level, propagate = list(root.handlers), root.level, root.propagate
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    root.propagate = propagate
