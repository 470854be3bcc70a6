"""
svelte-preview - live preview window for a single Svelte component.

Bundles the component with esbuild, opens it in a Chromium app window and
reloads the window whenever the component's sources change.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

from .core.errors import (
    CompileError,
    InvalidInputError,
    PreviewError,
    SessionError,
    StagingError,
)

try:
    __version__ = version("svelte-preview")
except PackageNotFoundError:
    # Running from a source tree without an install
    __version__ = "0.0.0"

__all__ = [
    "__version__",
    "PreviewError",
    "InvalidInputError",
    "StagingError",
    "CompileError",
    "SessionError",
]
