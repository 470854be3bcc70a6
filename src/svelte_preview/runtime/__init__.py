"""
Preview runtime: watcher, rebuild coordinator, browser session and lifecycle.
"""

from svelte_preview.runtime.lifecycle import PreviewSession, resolve_source, run_preview
from svelte_preview.runtime.rebuild import RebuildCoordinator, RebuildOutcome, RebuildState

__all__ = [
    "PreviewSession",
    "RebuildCoordinator",
    "RebuildOutcome",
    "RebuildState",
    "resolve_source",
    "run_preview",
]
