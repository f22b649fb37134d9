"""Implementations of the ``pipelines`` subcommands.

Each coroutine performs one strictly sequential chain of requests, reports
progress to the injected console and returns what it fetched or created.
Errors propagate unchanged to the CLI boundary.
"""

import asyncio
import logging
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass, field
from typing import Any, TypeAlias

import httpx
from rich.console import Console

from ..client import pipelines_api
from ..client.cloudflare_client import create_api_client
from ..config import PipelinesConfig
from ..errors import FatalError
from ..models import CredentialsConfig, Pipeline, PipelineEntry
from ..output import build_pipeline_table, create_console, print_json
from .config_builder import (
    PipelineFlags,
    apply_patch,
    build_create_config,
    build_update_patch,
    validate_create_flags,
)
from .credentials import SleepFunc, authorize_r2_bucket, explicit_credentials

logger = logging.getLogger("cf_pipelines.operations.commands")

ClientFactory: TypeAlias = Callable[[PipelinesConfig], AbstractAsyncContextManager[httpx.AsyncClient]]


@dataclass(frozen=True, slots=True)
class CommandContext:
    """Dependencies shared by every subcommand.

    Groups related parameters so tests can swap the HTTP client factory and
    the propagation delay without touching global state.
    """

    config: PipelinesConfig
    console: Console = field(default_factory=create_console)
    err_console: Console = field(default_factory=lambda: create_console(stderr=True))
    create_client: ClientFactory = create_api_client
    sleep: SleepFunc = asyncio.sleep


async def resolve_account_id(client: httpx.AsyncClient, config: PipelinesConfig) -> str:
    """Return the configured account ID, or the only account visible to the token.

    Raises:
        FatalError: If no account, or more than one account, is visible.

    """
    if config.account_id:
        return config.account_id

    accounts = await pipelines_api.list_accounts(client)
    if not accounts:
        msg = "No accounts are available to this API token."
        raise FatalError(msg)
    if len(accounts) > 1:
        choices = ", ".join(f"{account.name} ({account.id})" for account in accounts)
        msg = f"More than one account is available ({choices}). Set CLOUDFLARE_ACCOUNT_ID or pass --account-id."
        raise FatalError(msg)
    logger.debug("Using the only available account %s", accounts[0].id)
    return accounts[0].id


async def _credentials_for(
    ctx: CommandContext,
    client: httpx.AsyncClient,
    *,
    account_id: str,
    pipeline_name: str,
    bucket: str,
    flags: PipelineFlags,
) -> CredentialsConfig:
    if flags.access_key_id and flags.secret_access_key:
        return explicit_credentials(account_id, flags.access_key_id, flags.secret_access_key)
    return await authorize_r2_bucket(
        client,
        pipeline_name=pipeline_name,
        account_id=account_id,
        bucket=bucket,
        console=ctx.console,
        err_console=ctx.err_console,
        delay_s=ctx.config.token_delay_s,
        sleep=ctx.sleep,
    )


async def create_pipeline_impl(ctx: CommandContext, name: str, flags: PipelineFlags) -> Pipeline:
    """Create a pipeline writing to the ``--r2`` bucket.

    Args:
        ctx: Command dependencies.
        name: The new pipeline name.
        flags: Parsed ``create`` flags.

    Returns:
        The pipeline returned by the API.

    """
    validate_create_flags(name, flags)
    bucket = flags.r2 or ""

    async with ctx.create_client(ctx.config) as client:
        account_id = await resolve_account_id(client, ctx.config)
        credentials = await _credentials_for(
            ctx,
            client,
            account_id=account_id,
            pipeline_name=name,
            bucket=bucket,
            flags=flags,
        )

        ctx.console.print(f'🌀 Creating pipeline named "{name}"')
        config = build_create_config(name, flags, credentials)
        pipeline = await pipelines_api.create_pipeline(client, account_id, config)

    ctx.console.print(f'✅ Successfully created pipeline "{pipeline.name}" with id {pipeline.id}')
    ctx.console.print("🎉 You can now send data to your pipeline!")
    if any(source.type == "http" for source in pipeline.source):
        ctx.console.print(f"Example: curl \"{pipeline.endpoint}\" -d '[{{\"foo\": \"bar\"}}]'")
    ctx.console.print(
        "To send data from a Worker, add a binding to your configuration:\n"
        "[[pipelines]]\n"
        f'binding = "PIPELINE"\npipeline = "{pipeline.name}"'
    )
    return pipeline


async def list_pipelines_impl(ctx: CommandContext) -> list[PipelineEntry]:
    """Print a table of every pipeline in the account."""
    async with ctx.create_client(ctx.config) as client:
        account_id = await resolve_account_id(client, ctx.config)
        entries = await pipelines_api.list_pipelines(client, account_id)

    ctx.console.print(build_pipeline_table(entries))
    return entries


async def show_pipeline_impl(ctx: CommandContext, name: str) -> dict[str, Any]:
    """Print the configuration of one pipeline as JSON, exactly as the server returned it."""
    ctx.console.print(f'Retrieving config for pipeline "{name}".')
    async with ctx.create_client(ctx.config) as client:
        account_id = await resolve_account_id(client, ctx.config)
        config = await pipelines_api.get_pipeline_config(client, account_id, name)

    print_json(ctx.console, config)
    return config


async def update_pipeline_impl(ctx: CommandContext, name: str, flags: PipelineFlags) -> Pipeline:
    """Merge the supplied flags onto the current configuration of a pipeline.

    New R2 credentials are only provisioned when a new bucket is given.

    Args:
        ctx: Command dependencies.
        name: The pipeline to update.
        flags: Parsed ``update`` flags; every flag is optional.

    Returns:
        The updated pipeline returned by the API.

    """
    patch = build_update_patch(flags)

    async with ctx.create_client(ctx.config) as client:
        account_id = await resolve_account_id(client, ctx.config)
        current = await pipelines_api.get_pipeline(client, account_id, name)

        if patch.bucket.is_present:
            credentials = await _credentials_for(
                ctx,
                client,
                account_id=account_id,
                pipeline_name=name,
                bucket=patch.bucket.get(),
                flags=flags,
            )
            patch = patch.with_credentials(credentials)

        ctx.console.print(f'🌀 Updating pipeline "{name}"')
        config = apply_patch(current, patch)
        pipeline = await pipelines_api.update_pipeline(client, account_id, name, config)

    ctx.console.print(f'✅ Successfully updated pipeline "{pipeline.name}" with id {pipeline.id}')
    return pipeline


async def delete_pipeline_impl(ctx: CommandContext, name: str) -> None:
    """Delete a pipeline by name."""
    ctx.console.print(f"Deleting pipeline {name}.")
    async with ctx.create_client(ctx.config) as client:
        account_id = await resolve_account_id(client, ctx.config)
        await pipelines_api.delete_pipeline(client, account_id, name)
    ctx.console.print(f"Deleted pipeline {name}.")


__all__ = [
    "ClientFactory",
    "CommandContext",
    "create_pipeline_impl",
    "delete_pipeline_impl",
    "list_pipelines_impl",
    "resolve_account_id",
    "show_pipeline_impl",
    "update_pipeline_impl",
]
