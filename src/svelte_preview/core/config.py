"""
Runtime configuration for svelte-preview.

All settings have working defaults; each can be overridden through an
environment variable:

- ``SVELTE_PREVIEW_STAGING_DIR``: scratch directory (default: ``<tmp>/.render``)
- ``SVELTE_PREVIEW_WATCH_ROOT``: directory to watch (default: current directory)
- ``SVELTE_PREVIEW_NODE``: Node executable used to run esbuild (default: ``node``)
- ``SVELTE_PREVIEW_WINDOW_SIZE``: ``WIDTHxHEIGHT`` (default: ``640x480``)
- ``SVELTE_PREVIEW_DEBOUNCE_MS``: watch batching window (default: ``1600``)
- ``SVELTE_PREVIEW_LOG_LEVEL``: ``DEBUG``/``INFO``/... (default: ``INFO``)
- ``SVELTE_PREVIEW_LOG_DIR``: enables the JSONL log file when set
"""

from __future__ import annotations

import logging
import os
import tempfile
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from svelte_preview.core.logging import get_preview_logger

logger = get_preview_logger()

ENV_PREFIX = "SVELTE_PREVIEW_"

DEFAULT_WINDOW_SIZE = (640, 480)
DEFAULT_DEBOUNCE_MS = 1600
DEFAULT_NODE_BINARY = "node"
DEFAULT_LOG_LEVEL = "INFO"


def default_staging_dir() -> Path:
    """Return ``<system temp>/.render``."""
    return Path(tempfile.gettempdir()) / ".render"


@dataclass
class PreviewConfig:
    """Settings for one preview session."""

    staging_dir: Path = field(default_factory=default_staging_dir)
    watch_root: Path = field(default_factory=Path.cwd)
    node_binary: str = DEFAULT_NODE_BINARY
    window_width: int = DEFAULT_WINDOW_SIZE[0]
    window_height: int = DEFAULT_WINDOW_SIZE[1]
    debounce_ms: int = DEFAULT_DEBOUNCE_MS
    log_level: str = DEFAULT_LOG_LEVEL
    log_dir: Path | None = None

    @property
    def window_size(self) -> tuple[int, int]:
        return (self.window_width, self.window_height)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> PreviewConfig:
        """Build a config from ``SVELTE_PREVIEW_*`` environment variables.

        Invalid values are ignored with a warning and the default is kept.
        """
        env = os.environ if environ is None else environ
        config = cls()

        if staging := env.get(f"{ENV_PREFIX}STAGING_DIR"):
            config.staging_dir = Path(staging).expanduser()
        if root := env.get(f"{ENV_PREFIX}WATCH_ROOT"):
            config.watch_root = Path(root).expanduser()
        if node := env.get(f"{ENV_PREFIX}NODE"):
            config.node_binary = node

        if size := env.get(f"{ENV_PREFIX}WINDOW_SIZE"):
            parsed = _parse_window_size(size)
            if parsed is None:
                logger.warning("Ignoring invalid %sWINDOW_SIZE '%s'", ENV_PREFIX, size)
            else:
                config.window_width, config.window_height = parsed

        if debounce := env.get(f"{ENV_PREFIX}DEBOUNCE_MS"):
            try:
                config.debounce_ms = max(0, int(debounce))
            except ValueError:
                logger.warning("Ignoring invalid %sDEBOUNCE_MS '%s'", ENV_PREFIX, debounce)

        if level := env.get(f"{ENV_PREFIX}LOG_LEVEL"):
            level = level.upper().strip()
            if isinstance(logging.getLevelName(level), int):
                config.log_level = level
            else:
                logger.warning("Ignoring unknown %sLOG_LEVEL '%s'", ENV_PREFIX, level)

        if log_dir := env.get(f"{ENV_PREFIX}LOG_DIR"):
            config.log_dir = Path(log_dir).expanduser()

        return config


def _parse_window_size(value: str) -> tuple[int, int] | None:
    """Parse ``"640x480"`` (or ``"640,480"``) into a positive (width, height)."""
    normalized = value.lower().replace(",", "x")
    parts = normalized.split("x")
    if len(parts) != 2:
        return None
    try:
        width, height = int(parts[0]), int(parts[1])
    except ValueError:
        return None
    if width <= 0 or height <= 0:
        return None
    return (width, height)
