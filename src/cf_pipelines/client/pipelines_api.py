"""Stateless wrappers for the pipeline, R2 and token endpoints.

Each coroutine maps to exactly one HTTP request. Errors from the API are
raised by ``fetch_result`` and are never retried here. Response bodies that
do not match the models raise ``ResponseValidationError``.
"""

import hashlib
import logging
from typing import Any, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ValidationError

from ..errors import InvalidArgumentError, ResponseValidationError
from ..models import (
    Account,
    PermissionGroup,
    Pipeline,
    PipelineEntry,
    PipelineUserConfig,
    ServiceToken,
    to_payload,
)
from .cloudflare_client import fetch_result

logger = logging.getLogger("cf_pipelines.client.pipelines_api")

M = TypeVar("M", bound=BaseModel)

R2_WRITE_PERMISSION_GROUP = "Workers R2 Storage Bucket Item Write"
DOT_SEGMENTS = frozenset({".", ".."})


def sha256(value: str) -> str:
    """Return the hex SHA-256 digest of ``value``.

    R2 derives the S3 secret access key of a token as the digest of the token value.
    """
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def r2_bucket_resource(account_id: str, bucket: str) -> str:
    """Return the token policy resource name that scopes access to one bucket."""
    return f"com.cloudflare.edge.r2.bucket.{account_id}_default_{bucket}"


def r2_endpoint(account_id: str) -> str:
    """Return the S3-compatible R2 endpoint for an account."""
    return f"https://{account_id}.r2.cloudflarestorage.com"


def path_segment(value: str) -> str:
    """Escape ``value`` so it stays a single URL path segment.

    Raises:
        InvalidArgumentError: If ``value`` is empty or a dot segment.

    """
    if not value or value in DOT_SEGMENTS:
        msg = f'invalid name "{value}": cannot be used in a request path'
        raise InvalidArgumentError(msg)
    return quote(value, safe="")


def _pipelines_path(account_id: str, name: str | None = None) -> str:
    path = f"/accounts/{path_segment(account_id)}/pipelines"
    if name is not None:
        path = f"{path}/{path_segment(name)}"
    return path


def _validate(model: type[M], result: Any, path: str) -> M:
    try:
        return model.model_validate(result)
    except ValidationError as exc:
        problems = [f"{'.'.join(str(part) for part in err['loc']) or 'result'}: {err['msg']}" for err in exc.errors()]
        logger.debug("Response from %s failed validation: %s", path, problems)
        raise ResponseValidationError(path, problems) from exc


def _validate_list(model: type[M], result: Any, path: str) -> list[M]:
    if result is None:
        return []
    if not isinstance(result, list):
        raise ResponseValidationError(path, [f"result: expected a list, got {type(result).__name__}"])
    return [_validate(model, item, path) for item in result]


async def list_accounts(client: httpx.AsyncClient) -> list[Account]:
    """List the accounts visible to the API token."""
    path = "/accounts"
    return _validate_list(Account, await fetch_result(client, path), path)


async def list_permission_groups(client: httpx.AsyncClient) -> list[PermissionGroup]:
    """List the permission groups a token policy may reference."""
    path = "/user/tokens/permission_groups"
    return _validate_list(PermissionGroup, await fetch_result(client, path), path)


async def create_service_token(
    client: httpx.AsyncClient,
    *,
    label: str,
    permission_group_id: str,
    resource: str,
) -> ServiceToken:
    """Create an API token allowed to use one permission group on one resource."""
    body: dict[str, Any] = {
        "policies": [
            {
                "effect": "allow",
                "permission_groups": [{"id": permission_group_id}],
                "resources": {resource: "*"},
            },
        ],
        "name": label,
    }
    path = "/user/tokens"
    result = await fetch_result(client, path, method="POST", json=body)
    return _validate(ServiceToken, result, path)


async def get_r2_bucket(client: httpx.AsyncClient, account_id: str, bucket: str) -> dict[str, Any] | None:
    """Return R2 bucket information. Raises ``MissingResourceError`` when absent."""
    return await fetch_result(client, f"/accounts/{path_segment(account_id)}/r2/buckets/{path_segment(bucket)}")


async def create_pipeline(client: httpx.AsyncClient, account_id: str, config: PipelineUserConfig) -> Pipeline:
    """Create a new pipeline."""
    path = _pipelines_path(account_id)
    result = await fetch_result(client, path, method="POST", json=to_payload(config))
    return _validate(Pipeline, result, path)


async def list_pipelines(client: httpx.AsyncClient, account_id: str) -> list[PipelineEntry]:
    """List the pipelines of an account."""
    path = _pipelines_path(account_id)
    return _validate_list(PipelineEntry, await fetch_result(client, path), path)


async def get_pipeline_config(client: httpx.AsyncClient, account_id: str, name: str) -> dict[str, Any]:
    """Fetch the configuration of a pipeline exactly as the server returns it."""
    path = _pipelines_path(account_id, name)
    result = await fetch_result(client, path)
    if not isinstance(result, dict):
        raise ResponseValidationError(path, [f"result: expected an object, got {type(result).__name__}"])
    return result


async def get_pipeline(client: httpx.AsyncClient, account_id: str, name: str) -> Pipeline:
    """Fetch the full configuration of a pipeline."""
    result = await get_pipeline_config(client, account_id, name)
    return _validate(Pipeline, result, _pipelines_path(account_id, name))


async def update_pipeline(
    client: httpx.AsyncClient,
    account_id: str,
    name: str,
    config: PipelineUserConfig,
) -> Pipeline:
    """Replace the configuration of a pipeline. The response omits credentials."""
    path = _pipelines_path(account_id, name)
    result = await fetch_result(client, path, method="PUT", json=to_payload(config))
    return _validate(Pipeline, result, path)


async def delete_pipeline(client: httpx.AsyncClient, account_id: str, name: str) -> None:
    """Delete a pipeline by name."""
    await fetch_result(client, _pipelines_path(account_id, name), method="DELETE")


__all__ = [
    "R2_WRITE_PERMISSION_GROUP",
    "create_pipeline",
    "create_service_token",
    "delete_pipeline",
    "get_pipeline",
    "get_pipeline_config",
    "get_r2_bucket",
    "list_accounts",
    "list_permission_groups",
    "list_pipelines",
    "path_segment",
    "r2_bucket_resource",
    "r2_endpoint",
    "sha256",
    "update_pipeline",
]
