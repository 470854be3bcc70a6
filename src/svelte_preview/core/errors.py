"""
Error types for svelte-preview bootstrap, staging, bundling, and browser control.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional


class PreviewError(Exception):
    """Base exception for all svelte-preview errors."""

    def __init__(self, message: str, context: Optional["ErrorContext"] = None):
        self.message = message
        self.context = context
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format error message with context if available."""
        if self.context:
            return f"{self.context.format()}\n{self.message}"
        return self.message


class InvalidInputError(PreviewError):
    """
    Raised when the entry path cannot be previewed.

    Examples:
    - Path does not exist
    - Path points to a directory
    """

    pass


class StagingError(PreviewError):
    """
    Raised when the staging directory cannot be prepared or written.

    Examples:
    - Permission denied on the temp directory
    - Disk full while writing index.html
    """

    pass


class CompileError(PreviewError):
    """
    Raised when the bundler fails to produce output.

    Examples:
    - Svelte syntax error
    - Unresolved import
    - Node or esbuild not installed
    """

    pass


class SessionError(PreviewError):
    """
    Raised when the browser session cannot be started.

    Examples:
    - Chromium not installed for Playwright
    - Display not available
    """

    pass


@dataclass
class ErrorContext:
    """
    Context information for an error.

    Attributes:
        path: File or directory the operation was acting on
        operation: Short name of the failed operation (e.g. "prepare")
        detail: Optional extra output, such as bundler stderr
    """

    path: Path
    operation: str
    detail: str | None = None

    def format(self) -> str:
        """
        Format error context as a human-readable string.

        Returns:
            Formatted string like: "/tmp/.render (prepare)"
        """
        location = f"{self.path} ({self.operation})"
        if self.detail:
            return f"{location}\n{self.detail.rstrip()}"
        return location
