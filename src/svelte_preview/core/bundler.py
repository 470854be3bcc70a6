"""Bundler adapter: turns a Svelte component into a self-contained HTML page.

The actual compilation is done by esbuild with the esbuild-svelte plugin,
run under Node as a subprocess. The adapter owns everything around it: the
synthesized entry module, the fixed build options, and the HTML shell the
bundled script is inlined into.

Usage::

    from svelte_preview.core.bundler import BundlerAdapter, EsbuildBundler

    adapter = BundlerAdapter(source, staging, EsbuildBundler(project_root))
    result = await adapter.compile()
    if isinstance(result, BuildSucceeded):
        staging.write_artifact(HTML_SHELL, result.html)
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import os
import re
import time
from dataclasses import asdict, dataclass
from pathlib import Path, PurePath
from typing import Protocol

from svelte_preview.core.errors import CompileError, ErrorContext, StagingError
from svelte_preview.core.logging import get_build_logger
from svelte_preview.core.staging import BUNDLE, ENTRY_MODULE, ICON, StagingArea

logger = get_build_logger()

# Element the component is mounted into
MOUNT_ELEMENT_ID = "app"

_SCRIPT_CLOSE = re.compile(r"</(script)", re.IGNORECASE)


def _resources_dir() -> Path:
    """Get the packaged resources directory."""
    return Path(__file__).parent.parent / "resources"


def icon_path() -> Path:
    """Path of the static icon copied into the staging directory."""
    return _resources_dir() / ICON


@dataclass(frozen=True)
class BundleOptions:
    """Options handed to the bundler. Preview favors fast rebuilds over small output."""

    bundle: bool = True
    format: str = "esm"
    sourcemap: bool = False
    minify: bool = False
    css: str = "injected"
    preprocess: bool = True


@dataclass(frozen=True)
class BuildSucceeded:
    html: str


@dataclass(frozen=True)
class BuildFailed:
    reason: str


BuildResult = BuildSucceeded | BuildFailed


class Bundler(Protocol):
    """Compiles ``entry`` into the single script ``outfile``.

    Implementations raise :class:`CompileError` on any failure.
    """

    async def build(self, entry: Path, outfile: Path, options: BundleOptions) -> None: ...


class EsbuildBundler:
    """Runs esbuild + esbuild-svelte + svelte-preprocess through Node.

    The build script is passed with ``--eval`` and executed from
    ``project_root`` so that its bare imports resolve from the project's own
    ``node_modules``.
    """

    def __init__(self, project_root: Path, node_binary: str = "node"):
        self.project_root = project_root
        self.node_binary = node_binary

    def _script(self) -> str:
        return (_resources_dir() / "bundle.mjs").read_text(encoding="utf-8")

    async def build(self, entry: Path, outfile: Path, options: BundleOptions) -> None:
        env = {
            **os.environ,
            "SVELTE_PREVIEW_ENTRY": str(entry),
            "SVELTE_PREVIEW_OUTFILE": str(outfile),
            "SVELTE_PREVIEW_OPTIONS": json.dumps(asdict(options)),
        }
        cmd = [self.node_binary, "--input-type=module", "--eval", self._script()]
        logger.debug("Running bundler: %s (cwd=%s)", self.node_binary, self.project_root)

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                cwd=str(self.project_root),
                env=env,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise CompileError(
                f"Node executable not found: {self.node_binary}",
                ErrorContext(entry, "bundle"),
            ) from e

        try:
            _stdout, stderr = await proc.communicate()
        except BaseException:
            # Cancelled or interrupted: do not leave node running
            if proc.returncode is None:
                with contextlib.suppress(ProcessLookupError):
                    proc.kill()
                await proc.wait()
            raise

        if proc.returncode != 0:
            raise CompileError(
                f"Bundler exited with code {proc.returncode}",
                ErrorContext(entry, "bundle", stderr.decode("utf-8", errors="replace")),
            )


def import_specifier(source: Path, from_dir: Path) -> str:
    """Return an ES module specifier for ``source`` as seen from ``from_dir``.

    Separators are always forward slashes. Bare relative paths get a ``./``
    prefix so the bundler does not mistake them for package names.
    """
    try:
        rel = os.path.relpath(source, from_dir)
    except ValueError:
        # No relative path exists (e.g. different drives on Windows)
        return PurePath(source).as_posix()

    rel = rel.replace("\\", "/")
    if not rel.startswith("."):
        rel = f"./{rel}"
    return rel


def render_entry_module(specifier: str) -> str:
    """Entry module that imports the component and mounts it."""
    return f"""
import App from "{specifier}";

const app = new App({{
	target: document.getElementById("{MOUNT_ELEMENT_ID}")
}});

export default app;
"""


def render_html_shell(code: str) -> str:
    """Wrap bundled code in the preview document.

    Any ``</script`` inside the code is escaped so it cannot close the
    inline script element early.
    """
    code = _SCRIPT_CLOSE.sub(r"<\\/\1", code)
    return f"""<!DOCTYPE html>
<html>
	<head>
		<title>Preview</title>
		<link rel="icon" type="image/svg+xml" href="./{ICON}">
		<script type="module" defer>{code}</script>
	</head>
	<body>
		<div id="{MOUNT_ELEMENT_ID}"></div>
	</body>
</html>
"""


class BundlerAdapter:
    """
    Compiles the Source Reference into preview HTML.

    ``compile()`` only reads the source tree and the bundler output; writing
    ``index.html`` and reloading the browser are left to the caller.
    """

    def __init__(
        self,
        source: Path,
        staging: StagingArea,
        bundler: Bundler,
        options: BundleOptions | None = None,
    ):
        self.source = source
        self.staging = staging
        self.bundler = bundler
        self.options = options or BundleOptions()

    def entry_module(self) -> str:
        """Synthesized entry module text for the current source."""
        return render_entry_module(import_specifier(self.source, self.staging.root))

    async def compile(self) -> BuildResult:
        """Bundle the component and return the HTML document, or a failure."""
        started = time.perf_counter()
        try:
            await self.bundler.build(
                self.staging.path_of(ENTRY_MODULE),
                self.staging.path_of(BUNDLE),
                self.options,
            )
            code = self.staging.read_artifact(BUNDLE)
        except (CompileError, StagingError) as e:
            logger.debug("Compile failed after %.0f ms", (time.perf_counter() - started) * 1000)
            return BuildFailed(str(e))

        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info("Compiled %s in %.0f ms", self.source.name, elapsed_ms)
        return BuildSucceeded(render_html_shell(code))
