"""Shared fixtures: a fake Cloudflare API served through ``httpx.MockTransport``."""

import io
import json
from dataclasses import dataclass, field
from functools import partial
from typing import Any
from unittest.mock import AsyncMock

import httpx
import pytest

from cf_pipelines.client.cloudflare_client import create_api_client
from cf_pipelines.config import PipelinesConfig
from cf_pipelines.operations.commands import CommandContext
from cf_pipelines.output import create_console

BASE_URL = "https://api.example.test/client/v4"
BASE_PATH = "/client/v4"
ACCOUNT_ID = "some-account-id"


@dataclass
class RecordedRequest:
    """A request received by the fake API. ``path`` is kept percent-encoded."""

    method: str
    path: str
    headers: httpx.Headers
    body: Any


@dataclass
class FakeCloudflareApi:
    """Route table answering with Cloudflare v4 envelopes and recording every request."""

    routes: dict[tuple[str, str], list[httpx.Response]] = field(default_factory=dict)
    requests: list[RecordedRequest] = field(default_factory=list)

    def add(
        self,
        method: str,
        path: str,
        result: Any = None,
        *,
        status: int = 200,
        errors: list[dict[str, Any]] | None = None,
    ) -> None:
        """Queue one response for ``method path``."""
        envelope = {
            "success": 200 <= status < 300 and not errors,
            "errors": errors or [],
            "messages": [],
            "result": result,
        }
        self.routes.setdefault((method, path), []).append(httpx.Response(status, json=envelope))

    def handler(self, request: httpx.Request) -> httpx.Response:
        raw_path, _, _ = request.url.raw_path.decode("ascii").partition("?")
        path = raw_path.removeprefix(BASE_PATH)
        body = json.loads(request.content) if request.content else None
        self.requests.append(RecordedRequest(request.method, path, request.headers, body))
        queued = self.routes.get((request.method, path))
        if not queued:
            msg = f"Unexpected request: {request.method} {path}"
            raise AssertionError(msg)
        return queued.pop(0)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def calls(self) -> list[tuple[str, str]]:
        """Return ``(method, path)`` for every request received, in order."""
        return [(req.method, req.path) for req in self.requests]

    def last_body(self, method: str, path: str) -> Any:
        """Return the JSON body of the most recent matching request."""
        for req in reversed(self.requests):
            if (req.method, req.path) == (method, path):
                return req.body
        msg = f"No request for {method} {path}"
        raise AssertionError(msg)

    def mock_r2_token(self, bucket: str, *, account_id: str = ACCOUNT_ID) -> None:
        """Answer the bucket check, permission group lookup and token creation."""
        self.add("GET", f"/accounts/{account_id}/r2/buckets/{bucket}", {"name": bucket})
        self.add(
            "GET",
            "/user/tokens/permission_groups",
            [
                {
                    "id": "2efd5506f9c8494dacb1fa10a3e7d5b6",
                    "name": "Workers R2 Storage Bucket Item Write",
                    "scopes": ["com.cloudflare.edge.r2.bucket"],
                },
            ],
        )
        self.add(
            "POST",
            "/user/tokens",
            {"id": "service-token-id", "name": "my-service-token", "value": "my-secret-value"},
        )


@pytest.fixture
def fake_api() -> FakeCloudflareApi:
    """Return an empty fake API."""
    return FakeCloudflareApi()


@pytest.fixture
def config() -> PipelinesConfig:
    """Return a configuration pointing at the fake API."""
    return PipelinesConfig(
        api_token="test-token",
        account_id=ACCOUNT_ID,
        base_url=BASE_URL,
        token_delay_s=3.0,
    )


@pytest.fixture
def sleep() -> AsyncMock:
    """Return a sleep provider that returns immediately."""
    return AsyncMock(return_value=None)


@dataclass
class CapturedContext:
    """A command context together with the buffers its consoles write to."""

    ctx: CommandContext
    out: io.StringIO
    err: io.StringIO


@pytest.fixture
def captured(config: PipelinesConfig, fake_api: FakeCloudflareApi, sleep: AsyncMock) -> CapturedContext:
    """Return a command context wired to the fake API with captured output."""
    out = io.StringIO()
    err = io.StringIO()
    ctx = CommandContext(
        config=config,
        console=create_console(file=out),
        err_console=create_console(file=err),
        create_client=partial(create_api_client, transport=fake_api.transport()),
        sleep=sleep,
    )
    return CapturedContext(ctx=ctx, out=out, err=err)
