"""
Rebuild coordination for the preview loop.

Serializes rebuilds against the single in-flight build: a relevant change
starts a compile when idle, and is dropped while a build is running. A burst
of saves therefore produces one rebuild per gap between bursts instead of one
per event.

The busy check-and-set runs synchronously before the first ``await``, which
makes it atomic on a single asyncio loop. Running coordinators from several
threads would need a lock-guarded state with the same drop-if-busy behavior.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from enum import StrEnum

from svelte_preview.core.bundler import BuildSucceeded, BundlerAdapter
from svelte_preview.core.change_filter import is_relevant
from svelte_preview.core.errors import StagingError
from svelte_preview.core.staging import HTML_SHELL, StagingArea
from svelte_preview.core.logging import get_build_logger, log_with_context

logger = get_build_logger()


class RebuildState(StrEnum):
    IDLE = "idle"
    BUILDING = "building"


class RebuildOutcome(StrEnum):
    """What a single change event led to."""

    IGNORED = "ignored"  # not a relevant path
    DROPPED = "dropped"  # arrived while building
    RELOADED = "reloaded"
    FAILED = "failed"  # compile failed, preview untouched


class RebuildCoordinator:
    """
    Applies relevant changes to the preview, one rebuild at a time.

    Args:
        adapter: Bundler adapter producing the HTML
        staging: Staging area receiving index.html
        reload: Coroutine function reloading the preview window
    """

    def __init__(
        self,
        adapter: BundlerAdapter,
        staging: StagingArea,
        reload: Callable[[], Awaitable[None]],
    ):
        self.adapter = adapter
        self.staging = staging
        self.reload = reload
        self._state = RebuildState.IDLE
        self._tasks: set[asyncio.Task[RebuildOutcome]] = set()

    @property
    def state(self) -> RebuildState:
        return self._state

    @property
    def busy(self) -> bool:
        return self._state is RebuildState.BUILDING

    async def handle_change(self, path: str | None) -> RebuildOutcome:
        """React to one filesystem change event."""
        if not is_relevant(path):
            logger.debug("Ignoring change: %s", path)
            return RebuildOutcome.IGNORED

        if self._state is RebuildState.BUILDING:
            logger.debug("Build in progress, dropping change: %s", path)
            return RebuildOutcome.DROPPED

        self._state = RebuildState.BUILDING
        started = time.perf_counter()
        try:
            logger.info("Change detected: %s", path)
            result = await self.adapter.compile()
            if not isinstance(result, BuildSucceeded):
                log_with_context(
                    logger,
                    logging.WARNING,
                    f"Rebuild failed, keeping current preview\n{result.reason}",
                    path=path,
                )
                return RebuildOutcome.FAILED

            self.staging.write_artifact(HTML_SHELL, result.html)
            await self.reload()
            log_with_context(
                logger,
                logging.INFO,
                "Preview reloaded",
                path=path,
                elapsed_ms=round((time.perf_counter() - started) * 1000),
            )
            return RebuildOutcome.RELOADED
        finally:
            self._state = RebuildState.IDLE

    def dispatch(self, path: str | None) -> asyncio.Task[RebuildOutcome]:
        """Schedule ``handle_change`` on the running loop without waiting for it.

        Each event gets its own task so that events arriving mid-build reach
        the coordinator right away and are dropped, not queued behind the build.
        """
        task = asyncio.get_running_loop().create_task(self._run(path))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, path: str | None) -> RebuildOutcome:
        try:
            return await self.handle_change(path)
        except StagingError:
            logger.exception("Could not write %s", self.staging.path_of(HTML_SHELL))
            return RebuildOutcome.FAILED
        except Exception:
            logger.exception("Rebuild for %s did not complete", path)
            return RebuildOutcome.FAILED

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def cancel_pending(self) -> None:
        """Cancel outstanding rebuild tasks (teardown only)."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
