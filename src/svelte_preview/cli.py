"""
svelte-preview command line.

    svelte-preview src/App.svelte

Settings are read from ``SVELTE_PREVIEW_*`` environment variables (see
``svelte_preview.core.config``).
"""

from __future__ import annotations

import asyncio
from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel

from svelte_preview import __version__
from svelte_preview.core.config import PreviewConfig
from svelte_preview.core.errors import InvalidInputError, PreviewError
from svelte_preview.core.logging import setup_logging
from svelte_preview.runtime.lifecycle import resolve_source, run_preview

app = typer.Typer(
    help="Live preview window for a single Svelte component.",
    add_completion=False,
)

console = Console(stderr=True)


def version_callback(value: bool) -> None:
    """Print the installed version and exit."""
    if value:
        typer.echo(f"svelte-preview {__version__}")
        raise typer.Exit()


@app.command()
def preview(
    path: Annotated[str, typer.Argument(help="Path to the entry .svelte file")],
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            callback=version_callback,
            is_eager=True,
            help="Show the version and exit",
        ),
    ] = None,
) -> None:
    """
    Open PATH in a preview window and reload it whenever its sources change.

    Changes to .svelte, .css, .scss, .sass, .js and .ts files under the
    current directory trigger a rebuild. Failed rebuilds are logged and the
    last good preview stays on screen.
    """
    config = PreviewConfig.from_env()
    setup_logging(config.log_level, config.log_dir)

    try:
        source = resolve_source(path)
    except InvalidInputError as e:
        typer.echo(e.message, err=True)
        raise typer.Exit(code=1)

    console.print(
        Panel.fit(
            f"[bold]Source[/bold]   {source}\n"
            f"[bold]Staging[/bold]  {config.staging_dir}\n"
            f"[bold]Watching[/bold] {config.watch_root}",
            title="svelte-preview",
        )
    )

    try:
        asyncio.run(run_preview(source, config))
    except KeyboardInterrupt:
        typer.echo("Stopped.", err=True)
    except PreviewError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(code=1)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
