"""Tests for the bundler adapter and the esbuild subprocess bundler."""

from __future__ import annotations

import asyncio
import json
import os
import stat
import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from svelte_preview.core.bundler import (
    MOUNT_ELEMENT_ID,
    BuildFailed,
    BuildSucceeded,
    BundleOptions,
    BundlerAdapter,
    EsbuildBundler,
    icon_path,
    import_specifier,
    render_entry_module,
    render_html_shell,
)
from svelte_preview.core.errors import CompileError
from svelte_preview.core.staging import BUNDLE, ENTRY_MODULE, StagingArea


class TestImportSpecifier:
    def test_parent_relative_path(self) -> None:
        spec = import_specifier(Path("/home/me/proj/src/App.svelte"), Path("/tmp/.render"))
        assert spec == "../../home/me/proj/src/App.svelte"

    def test_same_directory_gets_dot_prefix(self) -> None:
        spec = import_specifier(Path("/tmp/.render/App.svelte"), Path("/tmp/.render"))
        assert spec == "./App.svelte"

    def test_backslashes_normalized(self) -> None:
        with patch(
            "svelte_preview.core.bundler.os.path.relpath",
            return_value="..\\..\\proj\\App.svelte",
        ):
            spec = import_specifier(Path("C:/proj/App.svelte"), Path("C:/tmp/.render"))
        assert spec == "../../proj/App.svelte"

    def test_no_relative_path_falls_back_to_absolute(self) -> None:
        with patch("svelte_preview.core.bundler.os.path.relpath", side_effect=ValueError):
            spec = import_specifier(Path("/proj/App.svelte"), Path("/tmp/.render"))
        assert spec == "/proj/App.svelte"


class TestTemplates:
    def test_entry_module_imports_and_mounts(self) -> None:
        text = render_entry_module("../src/App.svelte")
        assert 'import App from "../src/App.svelte";' in text
        assert f'document.getElementById("{MOUNT_ELEMENT_ID}")' in text
        assert "export default app;" in text

    def test_html_shell_structure(self) -> None:
        html = render_html_shell("console.log('hi');")
        assert html.startswith("<!DOCTYPE html>")
        assert html.count('<script type="module" defer>') == 1
        assert html.count(f'<div id="{MOUNT_ELEMENT_ID}"></div>') == 1
        assert "<script type=\"module\" defer>console.log('hi');</script>" in html
        assert 'href="./svelte.svg"' in html
        assert "<title>Preview</title>" in html

    def test_html_shell_escapes_closing_script_tags(self) -> None:
        html = render_html_shell('const s = "</script><b>x</b>"; const t = "</SCRIPT>";')
        assert html.count("</script>") == 1
        assert 'const s = "<\\/script><b>x</b>";' in html
        assert 'const t = "<\\/SCRIPT>";' in html

    def test_icon_is_packaged(self) -> None:
        assert icon_path().is_file()
        assert icon_path().read_text().lstrip().startswith("<svg")


class TestBundleOptions:
    def test_preview_defaults(self) -> None:
        options = BundleOptions()
        assert options.bundle is True
        assert options.format == "esm"
        assert options.sourcemap is False
        assert options.minify is False
        assert options.css == "injected"
        assert options.preprocess is True


class TestBundlerAdapter:
    @pytest.fixture
    def staging(self, tmp_path: Path) -> StagingArea:
        area = StagingArea(tmp_path / ".render")
        area.prepare()
        return area

    def test_entry_module_uses_staging_relative_path(
        self, staging: StagingArea, source_file: Path, fake_bundler
    ) -> None:
        adapter = BundlerAdapter(source_file, staging, fake_bundler)
        assert 'from "../project/src/App.svelte"' in adapter.entry_module()

    @pytest.mark.asyncio
    async def test_compile_success_returns_html(
        self, staging: StagingArea, source_file: Path, fake_bundler
    ) -> None:
        fake_bundler.code = "console.log('bundled');"
        adapter = BundlerAdapter(source_file, staging, fake_bundler)

        result = await adapter.compile()

        assert isinstance(result, BuildSucceeded)
        assert "console.log('bundled');" in result.html
        entry, outfile, options = fake_bundler.calls[0]
        assert entry == staging.path_of(ENTRY_MODULE)
        assert outfile == staging.path_of(BUNDLE)
        assert options == BundleOptions()

    @pytest.mark.asyncio
    async def test_compile_does_not_write_html(
        self, staging: StagingArea, source_file: Path, fake_bundler
    ) -> None:
        adapter = BundlerAdapter(source_file, staging, fake_bundler)
        await adapter.compile()
        assert not staging.path_of("index.html").exists()

    @pytest.mark.asyncio
    async def test_compile_failure(
        self, staging: StagingArea, source_file: Path, fake_bundler
    ) -> None:
        fake_bundler.fail = True
        adapter = BundlerAdapter(source_file, staging, fake_bundler)

        result = await adapter.compile()

        assert isinstance(result, BuildFailed)
        assert "Unexpected token" in result.reason

    @pytest.mark.asyncio
    async def test_missing_output_is_a_failure(
        self, staging: StagingArea, source_file: Path
    ) -> None:
        silent = MagicMock()
        silent.build = AsyncMock(return_value=None)
        adapter = BundlerAdapter(source_file, staging, silent)

        result = await adapter.compile()

        assert isinstance(result, BuildFailed)


def _mock_process(returncode: int, stderr: bytes = b"") -> MagicMock:
    proc = MagicMock()
    proc.returncode = returncode
    proc.communicate = AsyncMock(return_value=(b"", stderr))
    return proc


class TestEsbuildBundler:
    @pytest.mark.asyncio
    async def test_runs_node_from_project_root(self, tmp_path: Path) -> None:
        bundler = EsbuildBundler(tmp_path, node_binary="/usr/bin/node")
        exec_mock = AsyncMock(return_value=_mock_process(0))

        with patch("svelte_preview.core.bundler.asyncio.create_subprocess_exec", exec_mock):
            await bundler.build(tmp_path / "entry.js", tmp_path / "out.js", BundleOptions())

        args = exec_mock.call_args.args
        kwargs = exec_mock.call_args.kwargs
        assert args[:3] == ("/usr/bin/node", "--input-type=module", "--eval")
        assert "esbuild-svelte" in args[3]
        assert kwargs["cwd"] == str(tmp_path)
        assert kwargs["env"]["SVELTE_PREVIEW_ENTRY"] == str(tmp_path / "entry.js")
        assert kwargs["env"]["SVELTE_PREVIEW_OUTFILE"] == str(tmp_path / "out.js")
        options = json.loads(kwargs["env"]["SVELTE_PREVIEW_OPTIONS"])
        assert options["format"] == "esm"
        assert options["minify"] is False

    @pytest.mark.asyncio
    async def test_nonzero_exit_raises_with_stderr(self, tmp_path: Path) -> None:
        bundler = EsbuildBundler(tmp_path)
        proc = _mock_process(1, b"App.svelte:3:1: ERROR: Expected '}'")

        with patch(
            "svelte_preview.core.bundler.asyncio.create_subprocess_exec",
            AsyncMock(return_value=proc),
        ):
            with pytest.raises(CompileError) as exc_info:
                await bundler.build(tmp_path / "entry.js", tmp_path / "out.js", BundleOptions())

        assert "Expected '}'" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_missing_node_raises_compile_error(self, tmp_path: Path) -> None:
        bundler = EsbuildBundler(tmp_path, node_binary="no-such-node")

        with patch(
            "svelte_preview.core.bundler.asyncio.create_subprocess_exec",
            AsyncMock(side_effect=FileNotFoundError),
        ):
            with pytest.raises(CompileError, match="no-such-node"):
                await bundler.build(tmp_path / "entry.js", tmp_path / "out.js", BundleOptions())

    @pytest.mark.asyncio
    async def test_cancel_kills_running_process(self, tmp_path: Path) -> None:
        bundler = EsbuildBundler(tmp_path)
        proc = MagicMock()
        proc.returncode = None
        proc.communicate = AsyncMock(side_effect=asyncio.CancelledError)
        proc.wait = AsyncMock(return_value=-9)

        with patch(
            "svelte_preview.core.bundler.asyncio.create_subprocess_exec",
            AsyncMock(return_value=proc),
        ):
            with pytest.raises(asyncio.CancelledError):
                await bundler.build(tmp_path / "entry.js", tmp_path / "out.js", BundleOptions())

        proc.kill.assert_called_once_with()
        proc.wait.assert_awaited_once()

    @pytest.mark.asyncio
    @pytest.mark.skipif(sys.platform == "win32", reason="needs a POSIX shell")
    async def test_cancelled_build_leaves_no_child(self, tmp_path: Path) -> None:
        pid_file = tmp_path / "node.pid"
        fake_node = tmp_path / "node"
        fake_node.write_text(f'#!/bin/sh\necho $$ > "{pid_file}"\nexec sleep 30\n')
        fake_node.chmod(fake_node.stat().st_mode | stat.S_IXUSR)
        bundler = EsbuildBundler(tmp_path, node_binary=str(fake_node))

        task = asyncio.create_task(
            bundler.build(tmp_path / "entry.js", tmp_path / "out.js", BundleOptions())
        )
        for _ in range(500):
            if pid_file.exists() and pid_file.read_text().strip():
                break
            await asyncio.sleep(0.01)
        pid = int(pid_file.read_text())

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        with pytest.raises(ProcessLookupError):
            os.kill(pid, 0)
