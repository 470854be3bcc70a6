"""Recursive filesystem watcher feeding the rebuild loop."""

from __future__ import annotations

import asyncio
import os
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Protocol

from watchfiles import awatch

from svelte_preview.core.logging import get_watch_logger

logger = get_watch_logger()


class Watcher(Protocol):
    """Stream of changed paths, relative to the watched root."""

    def changes(self) -> AsyncIterator[str]: ...

    def close(self) -> None: ...


class ChangeWatcher:
    """
    Watches a directory tree with ``watchfiles``.

    ``changes()`` yields one path per changed file, relative to ``root``, in
    the order watchfiles batches them. Anything under ``exclude`` (the staging
    directory, when it lives inside the tree) is never reported. ``close()``
    ends the stream and may be called any number of times, from any callback
    on the loop.
    """

    def __init__(self, root: Path, debounce_ms: int = 1600, exclude: Path | None = None):
        self.root = root
        self.debounce_ms = debounce_ms
        self.exclude = exclude.resolve() if exclude is not None else None
        self._stop_event = asyncio.Event()

    @property
    def closed(self) -> bool:
        return self._stop_event.is_set()

    def close(self) -> None:
        if not self._stop_event.is_set():
            logger.debug("Stopping watcher on %s", self.root)
            self._stop_event.set()

    def relative(self, path: str) -> str:
        try:
            return os.path.relpath(path, self.root)
        except ValueError:
            return path

    def is_excluded(self, path: str) -> bool:
        if self.exclude is None:
            return False
        return Path(path).resolve().is_relative_to(self.exclude)

    async def changes(self) -> AsyncIterator[str]:
        if self.closed:
            return
        logger.info("Watching %s", self.root)
        async for batch in awatch(
            self.root,
            stop_event=self._stop_event,
            debounce=self.debounce_ms,
            recursive=True,
        ):
            for _change, path in sorted(batch, key=lambda item: item[1]):
                if self.is_excluded(path):
                    continue
                yield self.relative(path)
