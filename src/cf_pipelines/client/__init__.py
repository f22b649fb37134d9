"""Client package for the pipelines CLI.

Provides HTTP client setup and the stateless Cloudflare API wrappers:
- ``cloudflare_client``: Async context manager factory and envelope decoding
- ``pipelines_api``: One coroutine per pipeline, R2 bucket and token endpoint
"""
