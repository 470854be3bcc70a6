"""Allow ``python -m svelte_preview``."""

from svelte_preview.cli import main

main()
