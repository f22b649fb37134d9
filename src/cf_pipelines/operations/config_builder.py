"""Build pipeline configurations from command-line flags.

Everything here is pure: no network, no console. ``create`` turns flags into a
complete ``PipelineUserConfig``; ``update`` turns flags into a ``PipelinePatch``
that is merged onto the configuration fetched from the API.
"""

from __future__ import annotations

import dataclasses
import logging
import re
from dataclasses import dataclass

from ..errors import FatalError, InvalidArgumentError
from ..models import (
    BatchConfig,
    Compression,
    CompressionConfig,
    CredentialsConfig,
    DestinationConfig,
    PathConfig,
    Pipeline,
    PipelineUserConfig,
    SourceConfig,
    TransformConfig,
    user_config_of,
)
from .presence import ABSENT, Presence

logger = logging.getLogger("cf_pipelines.operations.config_builder")

PIPELINE_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9-]+$")
SLUG_PLACEHOLDER = "${slug}"
DEFAULT_ENTRYPOINT = "Transform"


@dataclass(frozen=True, slots=True)
class PipelineFlags:
    """Parsed command-line flags shared by ``create`` and ``update``.

    ``None`` means the flag was not given on the command line.
    """

    r2: str | None = None
    batch_max_mb: int | None = None
    batch_max_rows: int | None = None
    batch_max_seconds: int | None = None
    transform: str | None = None
    compression: Compression | None = None
    filepath: str | None = None
    filename: str | None = None
    authentication: bool | None = None
    access_key_id: str | None = None
    secret_access_key: str | None = None

    @property
    def has_explicit_credentials(self) -> bool:
        """Whether both halves of an explicit R2 key pair were supplied."""
        return bool(self.access_key_id and self.secret_access_key)


@dataclass(frozen=True, slots=True)
class PipelinePatch:
    """Changes to apply to an existing pipeline. Absent fields are left untouched."""

    bucket: Presence[str] = ABSENT
    credentials: Presence[CredentialsConfig] = ABSENT
    compression: Presence[Compression] = ABSENT
    batch_max_mb: Presence[int] = ABSENT
    batch_max_rows: Presence[int] = ABSENT
    batch_max_seconds: Presence[int] = ABSENT
    transform: Presence[TransformConfig] = ABSENT
    filepath: Presence[str] = ABSENT
    filename: Presence[str] = ABSENT
    authentication: Presence[bool] = ABSENT

    def with_credentials(self, credentials: CredentialsConfig) -> PipelinePatch:
        """Return a copy of the patch carrying newly provisioned credentials."""
        return dataclasses.replace(self, credentials=Presence.of(credentials))

    def present_fields(self) -> list[str]:
        """Return the names of the fields that will change."""
        return [field.name for field in dataclasses.fields(self) if getattr(self, field.name).is_present]


# =============================================================================
# Validation helpers
# =============================================================================


def validate_pipeline_name(name: str) -> str:
    """Reject names the API would refuse.

    Raises:
        InvalidArgumentError: If ``name`` contains anything but letters, digits and dashes.

    """
    if not PIPELINE_NAME_PATTERN.match(name):
        msg = f'invalid pipeline name "{name}": only letters, digits and "-" are allowed'
        raise InvalidArgumentError(msg)
    return name


def validate_filename(filename: str) -> str:
    """Require the ``${slug}`` placeholder so every written file gets a unique name."""
    if SLUG_PLACEHOLDER not in filename:
        msg = f'invalid filename "{filename}": must contain "{SLUG_PLACEHOLDER}"'
        raise InvalidArgumentError(msg)
    return filename


def parse_transform(value: str) -> TransformConfig:
    """Parse ``script`` or ``script.entrypoint`` into a transform.

    Args:
        value: The ``--transform`` flag value.

    Returns:
        The transform, with entrypoint ``Transform`` when none was given.

    Raises:
        InvalidArgumentError: On more than two segments or an empty segment.

    """
    segments = value.split(".")
    if len(segments) > 2 or not all(segments):  # noqa: PLR2004
        msg = f'invalid transform syntax "{value}": required syntax is script.entrypoint'
        raise InvalidArgumentError(msg)
    if len(segments) == 1:
        return TransformConfig(script=segments[0], entrypoint=DEFAULT_ENTRYPOINT)
    return TransformConfig(script=segments[0], entrypoint=segments[1])


def default_sources(*, authentication: bool) -> list[SourceConfig]:
    """Return the source list: HTTP and binding, or binding only when authenticated."""
    if authentication:
        return [SourceConfig(type="binding", format="json")]
    return [
        SourceConfig(type="http", format="json"),
        SourceConfig(type="binding", format="json"),
    ]


def _validate_credential_pair(flags: PipelineFlags) -> None:
    if bool(flags.access_key_id) != bool(flags.secret_access_key):
        msg = "--access-key-id and --secret-access-key must be provided together"
        raise InvalidArgumentError(msg)


def validate_create_flags(name: str, flags: PipelineFlags) -> None:
    """Check every ``create`` flag before any request is made.

    Raises:
        InvalidArgumentError: For malformed values.
        FatalError: When no R2 bucket was given.

    """
    validate_pipeline_name(name)
    if not flags.r2:
        msg = "Requires a r2 bucket"
        raise FatalError(msg)
    _validate_credential_pair(flags)
    if flags.transform is not None:
        parse_transform(flags.transform)
    if flags.filename is not None:
        validate_filename(flags.filename)


# =============================================================================
# Create
# =============================================================================


def build_batch(flags: PipelineFlags) -> BatchConfig:
    """Return the batch policy holding only the limits that were supplied."""
    return BatchConfig(
        max_mb=flags.batch_max_mb,
        max_rows=flags.batch_max_rows,
        max_duration_s=flags.batch_max_seconds,
    )


def build_create_config(name: str, flags: PipelineFlags, credentials: CredentialsConfig) -> PipelineUserConfig:
    """Assemble the configuration sent by ``create``.

    Args:
        name: The new pipeline name.
        flags: Parsed flags; ``r2`` must be set.
        credentials: R2 credentials the pipeline writes with.

    Returns:
        The complete user configuration.

    """
    validate_create_flags(name, flags)
    bucket = flags.r2 or ""
    transforms = [parse_transform(flags.transform)] if flags.transform is not None else []
    path = PathConfig(bucket=bucket)
    if flags.filepath:
        path.filepath = flags.filepath
    if flags.filename:
        path.filename = flags.filename

    return PipelineUserConfig(
        name=name,
        metadata={},
        source=default_sources(authentication=bool(flags.authentication)),
        transforms=transforms,
        destination=DestinationConfig(
            type="r2",
            format="json",
            compression=CompressionConfig(type=flags.compression or Compression.NONE),
            batch=build_batch(flags),
            path=path,
            credentials=credentials,
        ),
    )


# =============================================================================
# Update
# =============================================================================


def build_update_patch(flags: PipelineFlags) -> PipelinePatch:
    """Translate ``update`` flags into a patch, validating them on the way.

    Explicit keys become the patch credentials right away. Otherwise the caller
    provisions credentials for a new bucket and attaches them with
    ``PipelinePatch.with_credentials``.

    Raises:
        InvalidArgumentError: For malformed values or credentials without ``--r2``.

    """
    _validate_credential_pair(flags)
    if flags.has_explicit_credentials and not flags.r2:
        msg = "--access-key-id and --secret-access-key require --r2"
        raise InvalidArgumentError(msg)

    patch = PipelinePatch(
        bucket=Presence.from_optional(flags.r2),
        compression=Presence.from_optional(flags.compression),
        batch_max_mb=Presence.from_optional(flags.batch_max_mb),
        batch_max_rows=Presence.from_optional(flags.batch_max_rows),
        batch_max_seconds=Presence.from_optional(flags.batch_max_seconds),
        transform=Presence.from_optional(flags.transform).map(parse_transform),
        filepath=Presence.from_optional(flags.filepath),
        filename=Presence.from_optional(flags.filename).map(validate_filename),
        authentication=Presence.from_optional(flags.authentication),
    )
    logger.debug("Update patch fields: %s", patch.present_fields())
    return patch


def apply_patch(remote: Pipeline | PipelineUserConfig, patch: PipelinePatch) -> PipelineUserConfig:
    """Merge ``patch`` onto a fetched pipeline and return the config to send.

    Fields absent from the patch keep their remote value. Batch limits merge one
    by one. Credentials are sent only when the patch carries them, which requires
    a new bucket.

    Raises:
        FatalError: If a new bucket is given without credentials.

    """
    base = user_config_of(remote) if isinstance(remote, Pipeline) else remote
    config = base.model_copy(deep=True)
    destination = config.destination

    if patch.bucket.is_present and not patch.credentials.is_present:
        msg = f'Requires R2 credentials for bucket "{patch.bucket.get()}"'
        raise FatalError(msg)
    if patch.bucket.is_present:
        destination.path.bucket = patch.bucket.get()
    destination.credentials = patch.credentials.or_else(None)

    if patch.compression.is_present:
        destination.compression = CompressionConfig(type=patch.compression.get())
    if patch.batch_max_mb.is_present:
        destination.batch.max_mb = patch.batch_max_mb.get()
    if patch.batch_max_rows.is_present:
        destination.batch.max_rows = patch.batch_max_rows.get()
    if patch.batch_max_seconds.is_present:
        destination.batch.max_duration_s = patch.batch_max_seconds.get()
    if patch.filepath.is_present:
        destination.path.filepath = patch.filepath.get()
    if patch.filename.is_present:
        destination.path.filename = patch.filename.get()

    if patch.transform.is_present:
        config.transforms = [patch.transform.get()]
    if patch.authentication.is_present:
        config.source = default_sources(authentication=patch.authentication.get())

    return config


__all__ = [
    "DEFAULT_ENTRYPOINT",
    "PIPELINE_NAME_PATTERN",
    "SLUG_PLACEHOLDER",
    "PipelineFlags",
    "PipelinePatch",
    "apply_patch",
    "build_batch",
    "build_create_config",
    "build_update_patch",
    "default_sources",
    "parse_transform",
    "validate_create_flags",
    "validate_filename",
    "validate_pipeline_name",
]
