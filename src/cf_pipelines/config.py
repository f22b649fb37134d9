"""Configuration management for the pipelines CLI.

This module defines the ``PipelinesConfig`` model and helpers to load
configuration from environment variables (optionally seeded from a local
``.env`` file).
"""

from __future__ import annotations

import os
from typing import Any

from dotenv import load_dotenv
from pydantic import AnyUrl, BaseModel, Field, ValidationError, field_validator

from .errors import FatalError

# Load variables from a local .env file for development convenience
load_dotenv()

DEFAULT_API_BASE_URL = "https://api.cloudflare.com/client/v4"
DEFAULT_TOKEN_DELAY_S = 3.0


class PipelinesConfig(BaseModel):
    """Configuration values required to talk to the Cloudflare control plane."""

    api_token: str = Field(min_length=1)
    account_id: str | None = None
    base_url: str | AnyUrl = DEFAULT_API_BASE_URL
    verify_ssl: bool = True
    timeout_ms: int = Field(default=30000, ge=1000, le=600000)
    token_delay_s: float = Field(default=DEFAULT_TOKEN_DELAY_S, ge=0)
    """Seconds to wait after issuing a service token before it is used."""

    @field_validator("account_id", mode="before")
    @classmethod
    def _blank_account_is_unset(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def base_url_str(self) -> str:
        """Return the resolved base URL as a plain string without a trailing slash."""
        return str(self.base_url).rstrip("/")

    @classmethod
    def from_env(cls, *, account_id: str | None = None) -> PipelinesConfig:
        """Build a configuration object from environment variables.

        Args:
            account_id: Explicit account ID that takes precedence over
                ``CLOUDFLARE_ACCOUNT_ID``.

        Raises:
            FatalError: If the API token is missing or a value is invalid.

        """
        api_token = os.getenv("CLOUDFLARE_API_TOKEN")
        if not api_token:
            msg = "CLOUDFLARE_API_TOKEN is required to reach the Cloudflare API."
            raise FatalError(msg)
        raw_config: dict[str, Any] = {
            "api_token": api_token,
            "account_id": account_id or os.getenv("CLOUDFLARE_ACCOUNT_ID"),
        }
        optional_values = {
            "base_url": os.getenv("CLOUDFLARE_API_BASE_URL"),
            "verify_ssl": os.getenv("CLOUDFLARE_VERIFY_SSL"),
            "timeout_ms": os.getenv("CLOUDFLARE_TIMEOUT_MS"),
            "token_delay_s": os.getenv("PIPELINES_TOKEN_DELAY_S"),
        }
        raw_config.update({key: value for key, value in optional_values.items() if value})
        try:
            return cls(**raw_config)
        except ValidationError as exc:
            messages = "; ".join(err["msg"] for err in exc.errors())
            msg = f"Invalid pipelines configuration: {messages}"
            raise FatalError(msg) from exc


__all__ = ["DEFAULT_API_BASE_URL", "DEFAULT_TOKEN_DELAY_S", "PipelinesConfig"]
