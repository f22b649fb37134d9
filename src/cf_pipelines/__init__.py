"""Command-line management of Cloudflare Pipelines.

This package contains the ``pipelines`` CLI and the thin Cloudflare API client
it drives.
"""

# Intentionally do not re-export symbols from submodules: importing ``config``
# loads a local .env file, which should only happen when a command runs.

__all__: list[str] = []
