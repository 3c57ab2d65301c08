"""Tests for companion.deploy.client — Vercel API client over httpx."""

from __future__ import annotations

import json

import httpx
import pytest

from companion.deploy.client import VercelClient
from companion.deploy.scaffold import ProjectFileSet
from companion.errors import (
    ConfigurationError,
    DeploymentTransportError,
    ProviderRejectedError,
)
from companion.schemas.config import DeployConfig
from companion.schemas.deployment import DeploymentRecord, ReadyState


# ── Helpers ───────────────────────────────────────────────────


def _client(handler, *, token: str = "tok", team_id: str = "") -> tuple[VercelClient, list[httpx.Request]]:
    requests: list[httpx.Request] = []

    def record(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    http = httpx.AsyncClient(transport=httpx.MockTransport(record))
    return VercelClient(token, team_id=team_id, http=http), requests


_FILES = ProjectFileSet(files={"index.html": "<p/>"})


# ── Create ───────────────────────────────────────────────────


class TestCreateDeployment:
    @pytest.mark.asyncio
    async def test_posts_files_and_returns_record(self):
        client, requests = _client(
            lambda r: httpx.Response(200, json={"id": "dpl_1", "url": "demo.vercel.app"})
        )
        record = await client.create_deployment(
            _FILES, name="demo", settings={"framework": "nextjs"}
        )

        assert record == DeploymentRecord(
            id="dpl_1", url="https://demo.vercel.app", ready_state=ReadyState.QUEUED
        )
        (request,) = requests
        assert request.method == "POST"
        assert request.url.path == "/v13/deployments"
        assert request.headers["Authorization"] == "Bearer tok"
        body = json.loads(request.content)
        assert body["name"] == "demo"
        assert body["target"] == "production"
        assert body["files"][0]["file"] == "index.html"
        assert body["files"][0]["encoding"] == "base64"
        assert body["projectSettings"] == {"framework": "nextjs"}

    @pytest.mark.asyncio
    async def test_team_scope(self):
        client, requests = _client(
            lambda r: httpx.Response(200, json={"id": "d", "url": "u"}), team_id="team_9"
        )
        await client.create_deployment(_FILES, name="demo")
        assert requests[0].url.params["teamId"] == "team_9"

    @pytest.mark.asyncio
    async def test_provider_error_message(self):
        client, _ = _client(
            lambda r: httpx.Response(500, json={"error": {"message": "quota exceeded"}})
        )
        with pytest.raises(ProviderRejectedError) as exc_info:
            await client.create_deployment(_FILES, name="demo")
        assert exc_info.value.message == "quota exceeded"
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_provider_error_without_message(self):
        client, _ = _client(lambda r: httpx.Response(403, text="forbidden"))
        with pytest.raises(ProviderRejectedError) as exc_info:
            await client.create_deployment(_FILES, name="demo")
        assert exc_info.value.message == "Deployment failed"

    @pytest.mark.asyncio
    async def test_missing_token_makes_no_request(self):
        client, requests = _client(lambda r: httpx.Response(200, json={}), token="")
        with pytest.raises(ConfigurationError, match="Vercel token not configured"):
            await client.create_deployment(_FILES, name="demo")
        assert requests == []

    @pytest.mark.asyncio
    async def test_network_failure(self):
        def fail(request):
            raise httpx.ConnectError("unreachable", request=request)

        client, _ = _client(fail)
        with pytest.raises(DeploymentTransportError):
            await client.create_deployment(_FILES, name="demo")

    @pytest.mark.asyncio
    async def test_response_without_id(self):
        client, _ = _client(lambda r: httpx.Response(200, json={"url": "x"}))
        with pytest.raises(DeploymentTransportError, match="no id"):
            await client.create_deployment(_FILES, name="demo")

    @pytest.mark.asyncio
    async def test_response_without_url(self):
        client, _ = _client(lambda r: httpx.Response(200, json={"id": "dpl_1"}))
        with pytest.raises(DeploymentTransportError, match="no id or url"):
            await client.create_deployment(_FILES, name="demo")

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        client, _ = _client(lambda r: httpx.Response(200, text="<html>"))
        with pytest.raises(DeploymentTransportError, match="invalid JSON"):
            await client.create_deployment(_FILES, name="demo")


# ── Status ───────────────────────────────────────────────────


class TestRefresh:
    @pytest.mark.asyncio
    async def test_reads_ready_state(self):
        client, requests = _client(
            lambda r: httpx.Response(200, json={"readyState": "READY", "url": "demo.vercel.app"})
        )
        record = DeploymentRecord(id="dpl_1", url="https://demo.vercel.app")
        refreshed = await client.refresh(record)
        assert refreshed.ready_state is ReadyState.READY
        assert requests[0].url.path == "/v13/deployments/dpl_1"
        assert record.ready_state is ReadyState.QUEUED

    @pytest.mark.asyncio
    async def test_unknown_state_keeps_previous(self):
        client, _ = _client(lambda r: httpx.Response(200, json={"readyState": "INITIALIZING"}))
        record = DeploymentRecord(id="d", url="https://x", ready_state=ReadyState.BUILDING)
        refreshed = await client.refresh(record)
        assert refreshed.ready_state is ReadyState.BUILDING
        assert refreshed.url == "https://x"

    @pytest.mark.asyncio
    async def test_get_deployment_raw(self):
        client, _ = _client(lambda r: httpx.Response(200, json={"readyState": "ERROR", "target": "production"}))
        data = await client.get_deployment("d")
        assert data["target"] == "production"


# ── Construction ─────────────────────────────────────────────


class TestFromConfig:
    def test_reads_token_env(self, monkeypatch):
        monkeypatch.setenv("MY_TOKEN", "abc")
        client = VercelClient.from_config(DeployConfig(token_env="MY_TOKEN"))
        assert client.configured

    def test_missing_token_is_lazy(self, monkeypatch):
        monkeypatch.delenv("VERCEL_TOKEN", raising=False)
        client = VercelClient.from_config(DeployConfig())
        assert not client.configured
        with pytest.raises(ConfigurationError):
            client.ensure_configured()

    @pytest.mark.asyncio
    async def test_injected_client_not_closed(self):
        http = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        async with VercelClient("t", http=http):
            pass
        assert not http.is_closed
        await http.aclose()
