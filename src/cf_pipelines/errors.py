"""Error types raised by the pipelines CLI.

Every error derives from ``PipelinesError`` so the CLI boundary can format
and exit on a single exception type. Nothing in this package retries.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

HTTP_NOT_FOUND = 404


class PipelinesError(Exception):
    """Base class for all errors surfaced to the user."""

    @property
    def headline(self) -> str:
        """Return the first line printed for this error."""
        return str(self)

    @property
    def details(self) -> list[str]:
        """Return the indented lines printed below the headline."""
        return []


class InvalidArgumentError(PipelinesError):
    """A flag value or flag combination is not acceptable."""


class FatalError(PipelinesError):
    """A required input is missing and the command cannot continue."""


@dataclass(frozen=True, slots=True)
class ApiMessage:
    """A single ``{code, message}`` entry from a Cloudflare API envelope."""

    code: int | None
    message: str

    @classmethod
    def from_raw(cls, raw: Any) -> ApiMessage:
        """Build a message from an envelope entry, tolerating odd shapes."""
        if isinstance(raw, dict):
            code = raw.get("code")
            return cls(code=code if isinstance(code, int) else None, message=str(raw.get("message", "")))
        return cls(code=None, message=str(raw))

    def __str__(self) -> str:
        if self.code is None:
            return self.message
        return f"{self.message} [code: {self.code}]"


class ApiError(PipelinesError):
    """The control-plane API answered with a non-2xx status or ``success: false``.

    Attributes:
        path: The request path relative to the API base URL.
        status: HTTP status code of the response.
        errors: Server-supplied error entries, in order.

    """

    def __init__(self, path: str, status: int, errors: list[ApiMessage] | None = None) -> None:
        """Initialize the error.

        Args:
            path: The request path relative to the API base URL.
            status: HTTP status code of the response.
            errors: Server-supplied error entries.

        """
        self.path = path
        self.status = status
        self.errors = list(errors or [])
        super().__init__(self.headline)

    @property
    def headline(self) -> str:
        """Return the one-line summary of the failed request."""
        return f"A request to the Cloudflare API ({self.path}) failed."

    @property
    def details(self) -> list[str]:
        """Return one rendered line per server error."""
        return [str(err) for err in self.errors]


class MissingResourceError(ApiError):
    """The API reported that the requested resource does not exist (HTTP 404)."""


class ResponseValidationError(PipelinesError):
    """A successful API response did not have the expected shape.

    Attributes:
        path: The request path relative to the API base URL.
        problems: One ``location: message`` line per validation failure.

    """

    def __init__(self, path: str, problems: list[str]) -> None:
        """Initialize the error.

        Args:
            path: The request path relative to the API base URL.
            problems: Rendered validation failures.

        """
        self.path = path
        self.problems = list(problems)
        super().__init__(self.headline)

    @property
    def headline(self) -> str:
        """Return the one-line summary of the unexpected response."""
        return f"The Cloudflare API ({self.path}) returned an unexpected response."

    @property
    def details(self) -> list[str]:
        """Return one line per validation failure."""
        return list(self.problems)


def api_error_for(path: str, status: int, raw_errors: list[Any] | None) -> ApiError:
    """Return the most specific ``ApiError`` for a failed response."""
    errors = [ApiMessage.from_raw(raw) for raw in raw_errors or []]
    if status == HTTP_NOT_FOUND:
        return MissingResourceError(path, status, errors)
    return ApiError(path, status, errors)


__all__ = [
    "HTTP_NOT_FOUND",
    "ApiError",
    "ApiMessage",
    "FatalError",
    "InvalidArgumentError",
    "MissingResourceError",
    "PipelinesError",
    "ResponseValidationError",
    "api_error_for",
]
