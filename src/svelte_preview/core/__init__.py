"""Build-side building blocks: staging, bundling, change filtering, config."""
