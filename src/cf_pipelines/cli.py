"""Entry point for the ``pipelines`` command-line interface.

Registered commands:
- ``create``: create a pipeline writing to an R2 bucket
- ``list``: list the pipelines of the account
- ``show``: print the configuration of a pipeline
- ``update``: change selected settings of a pipeline
- ``delete``: delete a pipeline
"""

import asyncio
import logging
import os
import signal
import sys
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Annotated, Any

import typer

from .config import PipelinesConfig
from .errors import PipelinesError
from .models import Compression
from .operations.commands import (
    CommandContext,
    create_pipeline_impl,
    delete_pipeline_impl,
    list_pipelines_impl,
    show_pipeline_impl,
    update_pipeline_impl,
)
from .operations.config_builder import PipelineFlags
from .output import create_console, print_error

LOG_FORMAT = "%(asctime)s %(name)s [%(levelname)s] %(message)s"

logger = logging.getLogger("cf_pipelines.cli")


class LogLevel(StrEnum):
    """Accepted values for ``--log-level``."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


app = typer.Typer(
    name="pipelines",
    help="🚰 Manage Worker Pipelines",
    no_args_is_help=True,
    add_completion=False,
)


def default_context_factory(account_id: str | None) -> CommandContext:
    """Build the command context from the environment."""
    return CommandContext(config=PipelinesConfig.from_env(account_id=account_id))


@dataclass(slots=True)
class CliState:
    """Per-invocation state passed to commands through ``typer.Context.obj``."""

    account_id: str | None = None
    context_factory: Callable[[str | None], CommandContext] = default_context_factory


def configure_logging(level: LogLevel | str) -> None:
    """Send diagnostics to stderr in the standard format."""
    logging.basicConfig(level=LogLevel(str(level).upper()).value, format=LOG_FORMAT, stream=sys.stderr)


def _run(ctx: typer.Context, action: Callable[[CommandContext], Awaitable[Any]]) -> None:
    """Run one command coroutine and turn failures into a formatted message and exit code 1."""
    state: CliState = ctx.ensure_object(CliState)
    err_console = create_console(stderr=True)
    try:
        command_ctx = state.context_factory(state.account_id)
        asyncio.run(action(command_ctx))
    except PipelinesError as exc:
        logger.debug("Command %s failed", ctx.command.name, exc_info=True)
        print_error(err_console, exc)
        raise typer.Exit(code=1) from exc


@app.callback()
def main_callback(
    ctx: typer.Context,
    account_id: Annotated[
        str | None,
        typer.Option("--account-id", help="Account to operate on (defaults to CLOUDFLARE_ACCOUNT_ID)."),
    ] = None,
    log_level: Annotated[
        LogLevel,
        typer.Option(
            "--log-level",
            envvar="LOG_LEVEL",
            case_sensitive=False,
            help="Diagnostic log level written to stderr.",
        ),
    ] = LogLevel.WARNING,
) -> None:
    """Manage Worker Pipelines."""
    configure_logging(log_level)
    state = ctx.ensure_object(CliState)
    if account_id:
        state.account_id = account_id


# Options shared by create and update
R2Option = Annotated[str | None, typer.Option("--r2", help="Destination R2 bucket name")]
BatchMaxMbOption = Annotated[
    int | None,
    typer.Option("--batch-max-mb", help="The maximum size of a batch before flush in megabytes"),
]
BatchMaxRowsOption = Annotated[
    int | None,
    typer.Option("--batch-max-rows", help="The maximum size of a batch before flush in rows"),
]
BatchMaxSecondsOption = Annotated[
    int | None,
    typer.Option("--batch-max-seconds", help="The maximum duration of a batch before flush in seconds"),
]
TransformOption = Annotated[
    str | None,
    typer.Option(
        "--transform",
        help="The script and entrypoint implementing the transformation, as 'script.entrypoint'",
    ),
]
CompressionOption = Annotated[
    Compression | None,
    typer.Option("--compression", help="Sets the compression format of output files", case_sensitive=False),
]
FilepathOption = Annotated[str | None, typer.Option("--filepath", help="The path to store files in the bucket")]
FilenameOption = Annotated[
    str | None,
    typer.Option("--filename", help="The name of the file in the bucket. Must contain '${slug}'"),
]
AccessKeyIdOption = Annotated[
    str | None,
    typer.Option("--access-key-id", help="R2 access key ID; skips service token generation"),
]
SecretAccessKeyOption = Annotated[
    str | None,
    typer.Option("--secret-access-key", help="R2 secret access key; skips service token generation"),
]
PipelineArgument = Annotated[str, typer.Argument(help="The name of the pipeline", show_default=False)]


@app.command("create")
def create_command(
    ctx: typer.Context,
    pipeline: PipelineArgument,
    r2: R2Option = None,
    batch_max_mb: BatchMaxMbOption = None,
    batch_max_rows: BatchMaxRowsOption = None,
    batch_max_seconds: BatchMaxSecondsOption = None,
    transform: TransformOption = None,
    compression: CompressionOption = None,
    filepath: FilepathOption = None,
    filename: FilenameOption = None,
    authentication: Annotated[
        bool,
        typer.Option(
            "--authentication",
            help="Only accept data sent through the Worker binding",
        ),
    ] = False,
    access_key_id: AccessKeyIdOption = None,
    secret_access_key: SecretAccessKeyOption = None,
) -> None:
    """Create a new pipeline."""
    flags = PipelineFlags(
        r2=r2,
        batch_max_mb=batch_max_mb,
        batch_max_rows=batch_max_rows,
        batch_max_seconds=batch_max_seconds,
        transform=transform,
        compression=compression,
        filepath=filepath,
        filename=filename,
        authentication=authentication,
        access_key_id=access_key_id,
        secret_access_key=secret_access_key,
    )
    _run(ctx, lambda command_ctx: create_pipeline_impl(command_ctx, pipeline, flags))


@app.command("list")
def list_command(ctx: typer.Context) -> None:
    """List current pipelines."""
    _run(ctx, list_pipelines_impl)


@app.command("show")
def show_command(ctx: typer.Context, pipeline: PipelineArgument) -> None:
    """Show a pipeline configuration."""
    _run(ctx, lambda command_ctx: show_pipeline_impl(command_ctx, pipeline))


@app.command("update")
def update_command(
    ctx: typer.Context,
    pipeline: PipelineArgument,
    r2: R2Option = None,
    batch_max_mb: BatchMaxMbOption = None,
    batch_max_rows: BatchMaxRowsOption = None,
    batch_max_seconds: BatchMaxSecondsOption = None,
    transform: TransformOption = None,
    compression: CompressionOption = None,
    filepath: FilepathOption = None,
    filename: FilenameOption = None,
    authentication: Annotated[
        bool | None,
        typer.Option(
            "--authentication/--no-authentication",
            help="Only accept data sent through the Worker binding, or accept HTTP again",
            show_default=False,
        ),
    ] = None,
    access_key_id: AccessKeyIdOption = None,
    secret_access_key: SecretAccessKeyOption = None,
) -> None:
    """Update a pipeline."""
    flags = PipelineFlags(
        r2=r2,
        batch_max_mb=batch_max_mb,
        batch_max_rows=batch_max_rows,
        batch_max_seconds=batch_max_seconds,
        transform=transform,
        compression=compression,
        filepath=filepath,
        filename=filename,
        authentication=authentication,
        access_key_id=access_key_id,
        secret_access_key=secret_access_key,
    )
    _run(ctx, lambda command_ctx: update_pipeline_impl(command_ctx, pipeline, flags))


@app.command("delete")
def delete_command(ctx: typer.Context, pipeline: PipelineArgument) -> None:
    """Delete a pipeline."""
    _run(ctx, lambda command_ctx: delete_pipeline_impl(command_ctx, pipeline))


def handle_interrupt(signum: int, frame: object) -> None:  # noqa: ARG001
    """Exit quietly when interrupted."""
    logger.info("Received interrupt signal, shutting down...")
    sys.exit(130)


def main() -> None:
    """Entry point for the ``pipelines`` console script."""
    signal.signal(signal.SIGINT, handle_interrupt)
    if os.name != "nt":
        signal.signal(signal.SIGTERM, handle_interrupt)
    app()


__all__ = [
    "CliState",
    "LogLevel",
    "app",
    "configure_logging",
    "default_context_factory",
    "handle_interrupt",
    "main",
]


if __name__ == "__main__":
    main()
