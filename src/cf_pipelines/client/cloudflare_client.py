"""Cloudflare v4 API client setup and helpers.

Provides the async context manager that creates a configured ``httpx``
client, and ``fetch_result`` which unwraps the standard v4 response envelope::

    {"success": true, "errors": [], "messages": [], "result": ...}
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx

from ..config import PipelinesConfig
from ..errors import PipelinesError, api_error_for

logger = logging.getLogger("cf_pipelines.client")

USER_AGENT = "cf-pipelines"


def get_auth_headers(api_token: str) -> dict[str, str]:
    """Build the authorization headers for a bearer token."""
    return {
        "Authorization": f"Bearer {api_token}",
        "User-Agent": USER_AGENT,
    }


@asynccontextmanager
async def create_api_client(
    config: PipelinesConfig,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AsyncIterator[httpx.AsyncClient]:
    """Create an HTTP client bound to the Cloudflare API base URL.

    Args:
        config: The configuration containing base URL, token, TLS verification and timeouts.
        transport: Optional transport override, used by tests to fake the API.

    Yields:
        Configured ``httpx.AsyncClient`` instance.

    """
    timeout = httpx.Timeout(config.timeout_ms / 1000)
    async with httpx.AsyncClient(
        base_url=config.base_url_str,
        headers=get_auth_headers(config.api_token),
        verify=config.verify_ssl,
        timeout=timeout,
        transport=transport,
    ) as client:
        yield client


def _decode_envelope(response: httpx.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


async def fetch_result(
    client: httpx.AsyncClient,
    path: str,
    *,
    method: str = "GET",
    json: Any = None,
) -> Any:
    """Issue one request and return the ``result`` member of the envelope.

    Args:
        client: Client created by ``create_api_client``.
        path: Request path relative to the API base URL.
        method: HTTP method.
        json: Optional JSON request body.

    Returns:
        The decoded ``result`` value (may be ``None``).

    Raises:
        ApiError: On a non-2xx status or an unsuccessful envelope.
        MissingResourceError: When the API answers 404.
        PipelinesError: On network failures.

    """
    logger.debug("%s %s", method, path)
    try:
        response = await client.request(method, path, json=json)
    except httpx.HTTPError as exc:
        msg = f"Network error while calling the Cloudflare API ({path}): {exc}"
        raise PipelinesError(msg) from exc

    body = _decode_envelope(response)
    if response.is_success and body.get("success", True):
        return body.get("result")

    logger.debug("%s %s failed with HTTP %s", method, path, response.status_code)
    raise api_error_for(path, response.status_code, body.get("errors"))


__all__ = ["USER_AGENT", "create_api_client", "fetch_result", "get_auth_headers"]
