"""Provision R2 write credentials for a pipeline destination.

The chain is: check the bucket exists, look up the R2 write permission group,
issue a token scoped to the bucket, then wait for the token to propagate
before anything uses it. The wait goes through an injected ``sleep`` so tests
can skip it.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeAlias

import httpx
from rich.console import Console

from ..client.pipelines_api import (
    R2_WRITE_PERMISSION_GROUP,
    create_service_token,
    get_r2_bucket,
    list_permission_groups,
    r2_bucket_resource,
    r2_endpoint,
    sha256,
)
from ..errors import FatalError, MissingResourceError
from ..models import CredentialsConfig
from ..output import print_warning

logger = logging.getLogger("cf_pipelines.operations.credentials")

SleepFunc: TypeAlias = Callable[[float], Awaitable[None]]


async def check_bucket_exists(
    client: httpx.AsyncClient,
    account_id: str,
    bucket: str,
    *,
    console: Console,
) -> bool:
    """Return whether the bucket exists, warning instead of failing when it does not."""
    try:
        await get_r2_bucket(client, account_id, bucket)
    except MissingResourceError:
        message = f'The R2 bucket "{bucket}" doesn\'t exist'
        print_warning(console, message)
        logger.warning(message)
        return False
    return True


async def generate_r2_service_token(
    client: httpx.AsyncClient,
    *,
    label: str,
    account_id: str,
    bucket: str,
) -> CredentialsConfig:
    """Issue a token that can write to ``bucket`` and derive its S3 credentials.

    Raises:
        FatalError: If the R2 write permission group is not available to the caller.

    """
    groups = await list_permission_groups(client)
    permission = next((group for group in groups if group.name == R2_WRITE_PERMISSION_GROUP), None)
    if permission is None:
        msg = "Missing R2 Permissions"
        raise FatalError(msg)

    token = await create_service_token(
        client,
        label=label,
        permission_group_id=permission.id,
        resource=r2_bucket_resource(account_id, bucket),
    )
    logger.debug("Issued service token %s for bucket %s", token.id, bucket)
    return CredentialsConfig(
        endpoint=r2_endpoint(account_id),
        access_key_id=token.id,
        secret_access_key=sha256(token.value),
    )


async def authorize_r2_bucket(
    client: httpx.AsyncClient,
    *,
    pipeline_name: str,
    account_id: str,
    bucket: str,
    console: Console,
    err_console: Console | None = None,
    delay_s: float,
    sleep: SleepFunc = asyncio.sleep,
) -> CredentialsConfig:
    """Check the bucket, issue a scoped token, and wait for it to propagate.

    Args:
        client: Client created by ``create_api_client``.
        pipeline_name: Used to label the issued token.
        account_id: Account that owns the bucket.
        bucket: Destination bucket name.
        console: Where progress is printed.
        err_console: Where warnings are printed; defaults to ``console``.
        delay_s: Seconds to wait after issuing the token.
        sleep: Awaitable sleep provider.

    Returns:
        Credentials ready to embed in a pipeline destination.

    """
    await check_bucket_exists(client, account_id, bucket, console=err_console or console)

    console.print(f'🌀 Authorizing R2 bucket "{bucket}"')
    credentials = await generate_r2_service_token(
        client,
        label=f"Service token for Pipeline {pipeline_name}",
        account_id=account_id,
        bucket=bucket,
    )

    if delay_s > 0:
        logger.debug("Waiting %.1fs for the service token to propagate", delay_s)
        await sleep(delay_s)
    return credentials


def explicit_credentials(account_id: str, access_key_id: str, secret_access_key: str) -> CredentialsConfig:
    """Wrap user-supplied R2 keys; no token is issued and no delay applies."""
    return CredentialsConfig(
        endpoint=r2_endpoint(account_id),
        access_key_id=access_key_id,
        secret_access_key=secret_access_key,
    )


__all__ = [
    "SleepFunc",
    "authorize_r2_bucket",
    "check_bucket_exists",
    "explicit_credentials",
    "generate_r2_service_token",
]
