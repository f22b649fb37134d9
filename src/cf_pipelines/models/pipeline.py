"""Pydantic models for Cloudflare pipeline resources.

These mirror the JSON documents exchanged with the ``/accounts/{id}/pipelines``
endpoints. Models allow extra fields so that anything the server adds is kept
when a fetched pipeline is sent back on update.
"""

from enum import StrEnum
from typing import Any, Literal, TypeAlias

from pydantic import BaseModel, ConfigDict, Field

# =============================================================================
# Enumerations
# =============================================================================


class Compression(StrEnum):
    """Compression applied to files written to the destination bucket."""

    NONE = "none"
    GZIP = "gzip"
    DEFLATE = "deflate"


SourceType: TypeAlias = Literal["http", "binding"]
DataFormat: TypeAlias = Literal["json"]


# =============================================================================
# Pipeline configuration
# =============================================================================


class SourceConfig(BaseModel):
    """A way data can enter the pipeline."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    type: SourceType
    format: DataFormat = "json"
    schema_: str | None = Field(default=None, alias="schema")
    """Optional schema identifier applied to incoming records."""


class TransformConfig(BaseModel):
    """A user Worker script and the entrypoint invoked for every batch."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    script: str
    entrypoint: str


class CompressionConfig(BaseModel):
    """Wrapper object for the compression type."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    type: Compression = Compression.NONE


class BatchConfig(BaseModel):
    """Flush policy for buffered records. Unset limits fall back to server defaults."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    max_mb: int | None = None
    max_rows: int | None = None
    max_duration_s: int | None = None


class PathConfig(BaseModel):
    """Where in the bucket files are written."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    bucket: str
    filepath: str | None = None
    filename: str | None = None
    """File name template; must contain ``${slug}`` when set."""


class CredentialsConfig(BaseModel):
    """S3-compatible credentials used to write to R2. Never returned by the server."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    endpoint: str
    access_key_id: str
    secret_access_key: str


class DestinationConfig(BaseModel):
    """The R2 destination of a pipeline."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    type: str = "r2"
    format: DataFormat = "json"
    compression: CompressionConfig = Field(default_factory=CompressionConfig)
    batch: BatchConfig = Field(default_factory=BatchConfig)
    path: PathConfig
    credentials: CredentialsConfig | None = None


class PipelineUserConfig(BaseModel):
    """The user-controlled part of a pipeline, sent on create and update."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str
    metadata: dict[str, str] = Field(default_factory=dict)
    source: list[SourceConfig] = Field(default_factory=list)
    transforms: list[TransformConfig] = Field(default_factory=list)
    destination: DestinationConfig


class Pipeline(PipelineUserConfig):
    """A pipeline as returned by the API, including server-assigned fields."""

    id: str
    current_version: int | None = Field(default=None, alias="currentVersion")
    endpoint: str | None = None


SERVER_ASSIGNED_FIELDS = frozenset({"id", "current_version", "endpoint"})


class PipelineEntry(BaseModel):
    """Abbreviated pipeline from the list call."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str
    name: str
    endpoint: str | None = None


# =============================================================================
# Supporting API objects
# =============================================================================


class ServiceToken(BaseModel):
    """A freshly issued API token. ``value`` is only ever returned once."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str
    name: str = ""
    value: str


class PermissionGroup(BaseModel):
    """A named permission group that can be attached to a token policy."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str
    name: str


class Account(BaseModel):
    """An account visible to the API token."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str
    name: str = ""


def to_payload(model: BaseModel) -> dict[str, Any]:
    """Serialize a model to a JSON-ready dict using wire names and dropping unset values."""
    return model.model_dump(mode="json", by_alias=True, exclude_none=True)


def user_config_of(pipeline: Pipeline) -> PipelineUserConfig:
    """Return the user-controlled part of a fetched pipeline.

    Server-assigned fields are dropped; extra fields the server returned are kept.
    """
    data = pipeline.model_dump(by_alias=True, exclude=set(SERVER_ASSIGNED_FIELDS))
    return PipelineUserConfig.model_validate(data)


__all__ = [
    "Account",
    "BatchConfig",
    "Compression",
    "CompressionConfig",
    "CredentialsConfig",
    "DataFormat",
    "DestinationConfig",
    "PathConfig",
    "PermissionGroup",
    "Pipeline",
    "PipelineEntry",
    "PipelineUserConfig",
    "ServiceToken",
    "SourceConfig",
    "SourceType",
    "TransformConfig",
    "to_payload",
    "user_config_of",
]
