"""Pydantic models for Cloudflare API data structures.

This module provides type-safe models for pipelines, their sources, transforms
and R2 destinations, plus the token and account objects used while provisioning
credentials.
"""

from .pipeline import (
    Account,
    BatchConfig,
    Compression,
    CompressionConfig,
    CredentialsConfig,
    DestinationConfig,
    PathConfig,
    PermissionGroup,
    Pipeline,
    PipelineEntry,
    PipelineUserConfig,
    ServiceToken,
    SourceConfig,
    TransformConfig,
    to_payload,
    user_config_of,
)

__all__ = [
    "Account",
    "BatchConfig",
    "Compression",
    "CompressionConfig",
    "CredentialsConfig",
    "DestinationConfig",
    "PathConfig",
    "PermissionGroup",
    "Pipeline",
    "PipelineEntry",
    "PipelineUserConfig",
    "ServiceToken",
    "SourceConfig",
    "TransformConfig",
    "to_payload",
    "user_config_of",
]
