"""Scratch directory holding the generated preview artifacts."""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path

from svelte_preview.core.errors import ErrorContext, StagingError
from svelte_preview.core.logging import get_build_logger

logger = get_build_logger()

ENTRY_MODULE = "entry.js"
BUNDLE = "out.js"
HTML_SHELL = "index.html"
ICON = "svelte.svg"


class StagingArea:
    """
    Owns the staging directory for the current session.

    The directory is emptied at startup and never deleted afterwards; cleaning
    up the temp directory is left to the operating system.
    """

    def __init__(self, root: Path):
        self.root = root

    def path_of(self, name: str) -> Path:
        """Return the path of an artifact. Pure, performs no I/O."""
        return self.root / name

    def prepare(self) -> None:
        """Ensure the directory exists and is empty."""
        try:
            if self.root.is_dir():
                for entry in self.root.iterdir():
                    if entry.is_dir() and not entry.is_symlink():
                        shutil.rmtree(entry)
                    else:
                        entry.unlink()
            else:
                self.root.mkdir(parents=True)
        except OSError as e:
            raise StagingError(str(e), ErrorContext(self.root, "prepare")) from e
        logger.debug("Staging directory ready: %s", self.root)

    def write_artifact(self, name: str, content: str | bytes) -> Path:
        """Replace the named artifact.

        Content goes to a sibling temp file first and is moved into place with
        ``os.replace`` so readers never observe a half-written file.
        """
        target = self.path_of(name)
        data = content.encode("utf-8") if isinstance(content, str) else content
        tmp_name: str | None = None
        try:
            fd, tmp_name = tempfile.mkstemp(dir=self.root, prefix=f".{name}.", suffix=".tmp")
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
            os.replace(tmp_name, target)
            tmp_name = None
        except OSError as e:
            raise StagingError(str(e), ErrorContext(target, "write")) from e
        finally:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)
        logger.debug("Wrote %s (%d bytes)", name, len(data))
        return target

    def read_artifact(self, name: str) -> str:
        """Read an artifact back as UTF-8 text."""
        target = self.path_of(name)
        try:
            return target.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise StagingError(str(e), ErrorContext(target, "read")) from e

    def copy_asset(self, source: Path, name: str) -> Path:
        """Copy a static file into the staging directory."""
        target = self.path_of(name)
        try:
            shutil.copyfile(source, target)
        except OSError as e:
            raise StagingError(str(e), ErrorContext(source, "copy")) from e
        return target
