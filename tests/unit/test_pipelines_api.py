"""Unit tests for the stateless pipeline, R2 and token API wrappers.

Each wrapper must hit exactly one fixed method/path and decode the result.
"""

import hashlib

import pytest
from pydantic import ValidationError

from cf_pipelines.client import pipelines_api
from cf_pipelines.client.cloudflare_client import create_api_client
from cf_pipelines.config import PipelinesConfig
from cf_pipelines.errors import InvalidArgumentError, MissingResourceError, ResponseValidationError
from cf_pipelines.models import (
    BatchConfig,
    DestinationConfig,
    PathConfig,
    PipelineUserConfig,
    SourceConfig,
)

from .conftest import ACCOUNT_ID, FakeCloudflareApi

PIPELINE_RESULT = {
    "id": "0001",
    "currentVersion": 1,
    "name": "my-pipeline",
    "metadata": {},
    "source": [{"type": "binding", "format": "json"}],
    "transforms": [],
    "destination": {
        "type": "r2",
        "format": "json",
        "compression": {"type": "none"},
        "batch": {},
        "path": {"bucket": "bucket"},
    },
    "endpoint": "https://0001.pipelines.cloudflarestorage.com",
}


def _user_config() -> PipelineUserConfig:
    return PipelineUserConfig(
        name="my-pipeline",
        source=[SourceConfig(type="binding")],
        destination=DestinationConfig(path=PathConfig(bucket="bucket"), batch=BatchConfig(max_rows=10)),
    )


def test_sha256() -> None:
    """The secret access key is the hex SHA-256 of the token value."""
    assert pipelines_api.sha256("my-secret-value") == hashlib.sha256(b"my-secret-value").hexdigest()


def test_r2_helpers() -> None:
    """Bucket resource names and endpoints follow the account ID."""
    assert pipelines_api.r2_bucket_resource("acc", "logs") == "com.cloudflare.edge.r2.bucket.acc_default_logs"
    assert pipelines_api.r2_endpoint("acc") == "https://acc.r2.cloudflarestorage.com"


@pytest.mark.asyncio
async def test_create_pipeline(config: PipelinesConfig, fake_api: FakeCloudflareApi) -> None:
    """Create POSTs the serialized config and returns the server pipeline."""
    fake_api.add("POST", f"/accounts/{ACCOUNT_ID}/pipelines", PIPELINE_RESULT)

    async with create_api_client(config, transport=fake_api.transport()) as client:
        pipeline = await pipelines_api.create_pipeline(client, ACCOUNT_ID, _user_config())

    body = fake_api.last_body("POST", f"/accounts/{ACCOUNT_ID}/pipelines")
    assert body["name"] == "my-pipeline"
    assert body["destination"]["batch"] == {"max_rows": 10}
    assert "credentials" not in body["destination"]
    assert pipeline.id == "0001"
    assert pipeline.current_version == 1
    assert pipeline.endpoint == "https://0001.pipelines.cloudflarestorage.com"


@pytest.mark.asyncio
async def test_list_pipelines(config: PipelinesConfig, fake_api: FakeCloudflareApi) -> None:
    """List decodes abbreviated entries."""
    fake_api.add(
        "GET",
        f"/accounts/{ACCOUNT_ID}/pipelines",
        [{"id": "0001", "name": "foo", "endpoint": "https://0001.example"}],
    )

    async with create_api_client(config, transport=fake_api.transport()) as client:
        entries = await pipelines_api.list_pipelines(client, ACCOUNT_ID)

    assert [(entry.name, entry.id, entry.endpoint) for entry in entries] == [("foo", "0001", "https://0001.example")]


@pytest.mark.asyncio
async def test_list_pipelines_null_result(config: PipelinesConfig, fake_api: FakeCloudflareApi) -> None:
    """A null result is an empty list."""
    fake_api.add("GET", f"/accounts/{ACCOUNT_ID}/pipelines", None)

    async with create_api_client(config, transport=fake_api.transport()) as client:
        assert await pipelines_api.list_pipelines(client, ACCOUNT_ID) == []


@pytest.mark.asyncio
async def test_get_update_delete(config: PipelinesConfig, fake_api: FakeCloudflareApi) -> None:
    """Show, update and delete address the pipeline by name."""
    path = f"/accounts/{ACCOUNT_ID}/pipelines/my-pipeline"
    fake_api.add("GET", path, PIPELINE_RESULT)
    fake_api.add("PUT", path, PIPELINE_RESULT)
    fake_api.add("DELETE", path, None)

    async with create_api_client(config, transport=fake_api.transport()) as client:
        fetched = await pipelines_api.get_pipeline(client, ACCOUNT_ID, "my-pipeline")
        updated = await pipelines_api.update_pipeline(client, ACCOUNT_ID, "my-pipeline", _user_config())
        await pipelines_api.delete_pipeline(client, ACCOUNT_ID, "my-pipeline")

    assert fetched.name == updated.name == "my-pipeline"
    assert fake_api.calls() == [("GET", path), ("PUT", path), ("DELETE", path)]
    assert fake_api.last_body("PUT", path)["name"] == "my-pipeline"


@pytest.mark.asyncio
async def test_get_r2_bucket_missing(config: PipelinesConfig, fake_api: FakeCloudflareApi) -> None:
    """A missing bucket raises MissingResourceError."""
    path = f"/accounts/{ACCOUNT_ID}/r2/buckets/bad-bucket"
    fake_api.add("GET", path, status=404, errors=[{"code": 10006, "message": "The specified bucket does not exist."}])

    async with create_api_client(config, transport=fake_api.transport()) as client:
        with pytest.raises(MissingResourceError):
            await pipelines_api.get_r2_bucket(client, ACCOUNT_ID, "bad-bucket")


@pytest.mark.asyncio
async def test_create_service_token_body(config: PipelinesConfig, fake_api: FakeCloudflareApi) -> None:
    """The token policy allows one permission group on one bucket resource."""
    fake_api.add("POST", "/user/tokens", {"id": "tid", "name": "label", "value": "v"})

    async with create_api_client(config, transport=fake_api.transport()) as client:
        token = await pipelines_api.create_service_token(
            client,
            label="label",
            permission_group_id="pg",
            resource="res",
        )

    assert token.value == "v"
    assert fake_api.last_body("POST", "/user/tokens") == {
        "policies": [
            {
                "effect": "allow",
                "permission_groups": [{"id": "pg"}],
                "resources": {"res": "*"},
            },
        ],
        "name": "label",
    }


@pytest.mark.asyncio
async def test_list_pipelines_null_endpoint(config: PipelinesConfig, fake_api: FakeCloudflareApi) -> None:
    """Entries without an endpoint decode with ``endpoint`` unset."""
    fake_api.add("GET", f"/accounts/{ACCOUNT_ID}/pipelines", [{"id": "0001", "name": "foo", "endpoint": None}])

    async with create_api_client(config, transport=fake_api.transport()) as client:
        entries = await pipelines_api.list_pipelines(client, ACCOUNT_ID)

    assert entries[0].endpoint is None


@pytest.mark.asyncio
async def test_malformed_list_entry(config: PipelinesConfig, fake_api: FakeCloudflareApi) -> None:
    """A response that does not match the model raises ResponseValidationError."""
    path = f"/accounts/{ACCOUNT_ID}/pipelines"
    fake_api.add("GET", path, [{"name": "foo"}])

    async with create_api_client(config, transport=fake_api.transport()) as client:
        with pytest.raises(ResponseValidationError) as exc_info:
            await pipelines_api.list_pipelines(client, ACCOUNT_ID)

    assert exc_info.value.path == path
    assert exc_info.value.details == ["id: Field required"]
    assert isinstance(exc_info.value.__cause__, ValidationError)


@pytest.mark.asyncio
async def test_list_result_must_be_a_list(config: PipelinesConfig, fake_api: FakeCloudflareApi) -> None:
    """An object where a list is expected is reported, not iterated."""
    fake_api.add("GET", "/accounts", {"id": "acc"})

    async with create_api_client(config, transport=fake_api.transport()) as client:
        with pytest.raises(ResponseValidationError, match="unexpected response"):
            await pipelines_api.list_accounts(client)


@pytest.mark.asyncio
async def test_get_pipeline_object_source(config: PipelinesConfig, fake_api: FakeCloudflareApi) -> None:
    """A single object ``source`` cannot be decoded, but the raw config is still readable."""
    path = f"/accounts/{ACCOUNT_ID}/pipelines/my-pipeline"
    legacy = {**PIPELINE_RESULT, "source": {"type": "http", "format": "json"}}
    fake_api.add("GET", path, legacy)
    fake_api.add("GET", path, legacy)

    async with create_api_client(config, transport=fake_api.transport()) as client:
        assert await pipelines_api.get_pipeline_config(client, ACCOUNT_ID, "my-pipeline") == legacy
        with pytest.raises(ResponseValidationError) as exc_info:
            await pipelines_api.get_pipeline(client, ACCOUNT_ID, "my-pipeline")

    assert exc_info.value.details[0].startswith("source:")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("name", "encoded"),
    [
        ("foo/bar?x=1", "foo%2Fbar%3Fx%3D1"),
        ("a#b", "a%23b"),
        ("../../../user/tokens/abc", "..%2F..%2F..%2Fuser%2Ftokens%2Fabc"),
    ],
)
async def test_pipeline_name_stays_one_segment(
    config: PipelinesConfig,
    fake_api: FakeCloudflareApi,
    name: str,
    encoded: str,
) -> None:
    """Reserved characters in a name are percent-encoded into a single path segment."""
    path = f"/accounts/{ACCOUNT_ID}/pipelines/{encoded}"
    fake_api.add("DELETE", path, None)

    async with create_api_client(config, transport=fake_api.transport()) as client:
        await pipelines_api.delete_pipeline(client, ACCOUNT_ID, name)

    assert fake_api.calls() == [("DELETE", path)]


@pytest.mark.asyncio
@pytest.mark.parametrize("name", ["..", ".", ""])
async def test_dot_segment_names_are_rejected(
    config: PipelinesConfig,
    fake_api: FakeCloudflareApi,
    name: str,
) -> None:
    """Names that would collapse the request path never reach the API."""
    async with create_api_client(config, transport=fake_api.transport()) as client:
        with pytest.raises(InvalidArgumentError):
            await pipelines_api.get_pipeline(client, ACCOUNT_ID, name)

    assert fake_api.requests == []


@pytest.mark.asyncio
async def test_bucket_name_is_escaped(config: PipelinesConfig, fake_api: FakeCloudflareApi) -> None:
    """Bucket names are escaped the same way as pipeline names."""
    path = f"/accounts/{ACCOUNT_ID}/r2/buckets/a%2Fb"
    fake_api.add("GET", path, {"name": "a/b"})

    async with create_api_client(config, transport=fake_api.transport()) as client:
        await pipelines_api.get_r2_bucket(client, ACCOUNT_ID, "a/b")

    assert fake_api.calls() == [("GET", path)]
