"""Tests for companion.server — HTTP surface via TestClient."""

from __future__ import annotations

import json

import httpx
import pytest

pytest.importorskip("fastapi")

from fastapi.testclient import TestClient  # noqa: E402

from companion.deploy.client import VercelClient  # noqa: E402
from companion.deploy.service import DeploymentService  # noqa: E402
from companion.errors import ConfigurationError, GenerationError  # noqa: E402
from companion.providers.base import GenerationProvider  # noqa: E402
from companion.schemas.config import CompanionConfig, DeployConfig, PollPolicy  # noqa: E402
from companion.server import create_app  # noqa: E402


# ── Helpers ───────────────────────────────────────────────────


class _Provider(GenerationProvider):
    text = "Tell me more about your shop."

    async def complete(self, messages, system, *, timeout=None) -> str:
        return self.text


class _DirectiveProvider(_Provider):
    text = "Launching! ```DEPLOY_CONFIG\n" + json.dumps(
        {"shouldDeploy": True, "projectName": "Shop", "code": "<h1>Shop</h1>"}
    ) + "\n```"


class _NoKeyProvider(_Provider):
    def ensure_configured(self) -> None:
        raise ConfigurationError("API key not configured")


class _FailingProvider(_Provider):
    async def complete(self, messages, system, *, timeout=None) -> str:
        raise GenerationError("upstream 500")


class _EmptyProvider(_Provider):
    text = ""


async def _no_sleep(_seconds: float) -> None:
    return None


def _deployer_factory(handler):
    def factory(config: DeployConfig) -> DeploymentService:
        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return DeploymentService(VercelClient("tok", http=http), config, sleep=_no_sleep)

    return factory


def _ready(request: httpx.Request) -> httpx.Response:
    if request.method == "POST":
        return httpx.Response(200, json={"id": "dpl_7", "url": "shop.vercel.app"})
    return httpx.Response(200, json={"readyState": "READY"})


def _client(provider=_Provider, handler=_ready) -> TestClient:
    config = CompanionConfig(deploy=DeployConfig(poll=PollPolicy(max_attempts=3)))
    app = create_app(
        config,
        provider_factory=provider,
        deployer_factory=_deployer_factory(handler),
    )
    return TestClient(app)


_BODY = {"messages": [{"role": "user", "content": "I run a coffee shop"}]}


def _sse_events(text: str) -> list[dict]:
    events = []
    for block in text.strip().split("\n\n"):
        data = [line[len("data: "):] for line in block.splitlines() if line.startswith("data: ")]
        if data:
            events.append(json.loads(data[0]))
    return events


# ── POST /api/chat ───────────────────────────────────────────


class TestChatEndpoint:
    def test_plain_reply(self):
        response = _client().post("/api/chat", json=_BODY)
        assert response.status_code == 200
        assert response.json() == {
            "message": "Tell me more about your shop.",
            "shouldDeploy": False,
        }

    def test_directive_reply_not_deployed(self):
        requests: list[httpx.Request] = []

        def handler(request):
            requests.append(request)
            return _ready(request)

        response = _client(_DirectiveProvider, handler).post("/api/chat", json=_BODY)
        data = response.json()
        assert data["message"] == "Launching!"
        assert data["shouldDeploy"] is True
        assert data["projectName"] == "shop"
        assert data["code"] == "<h1>Shop</h1>"
        assert requests == []

    def test_missing_key(self):
        response = _client(_NoKeyProvider).post("/api/chat", json=_BODY)
        assert response.status_code == 500
        assert response.json() == {"error": "API key not configured"}

    def test_generation_failure(self):
        response = _client(_FailingProvider).post("/api/chat", json=_BODY)
        assert response.status_code == 500
        assert response.json() == {"error": "Failed to process request"}

    def test_empty_completion(self):
        response = _client(_EmptyProvider).post("/api/chat", json=_BODY)
        assert response.status_code == 500
        assert response.json() == {"error": "No response from AI"}

    def test_invalid_body(self):
        response = _client().post("/api/chat", json={"messages": [{"role": "robot"}]})
        assert response.status_code == 422


# ── POST /api/chat/stream ────────────────────────────────────


class TestChatStreamEndpoint:
    def test_events_through_deployment(self):
        response = _client(_DirectiveProvider).post("/api/chat/stream", json=_BODY)
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")

        events = _sse_events(response.text)
        types = [e["type"] for e in events]
        assert types[0] == "turn_started"
        assert types[-1] == "turn_completed"
        assert "partial_code" in types
        assert "deployment_submitted" in types

        statuses = [e["data"]["status"] for e in events if e["type"] == "status_changed"]
        assert statuses == ["generating", "deploying", "complete"]
        completed = events[-1]["data"]
        assert completed["follow_up"].startswith("**Your app is live!**")

    def test_generation_error_event(self):
        response = _client(_FailingProvider).post("/api/chat/stream", json=_BODY)
        events = _sse_events(response.text)
        errors = [e for e in events if e["type"] == "error"]
        assert errors[0]["data"]["stage"] == "generation"

    def test_missing_key_is_json_error(self):
        response = _client(_NoKeyProvider).post("/api/chat/stream", json=_BODY)
        assert response.status_code == 500
        assert response.json() == {"error": "API key not configured"}


# ── POST /api/deploy ─────────────────────────────────────────


class TestDeployEndpoint:
    def test_success(self):
        response = _client().post(
            "/api/deploy", json={"code": {"page.tsx": "<main/>"}, "projectName": "My Shop"}
        )
        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "url": "https://shop.vercel.app",
            "deploymentId": "dpl_7",
        }

    def test_still_building_note(self):
        def building(request):
            if request.method == "POST":
                return _ready(request)
            return httpx.Response(200, json={"readyState": "BUILDING"})

        response = _client(handler=building).post("/api/deploy", json={"code": "<p/>"})
        data = response.json()
        assert data["success"] is True
        assert "may still be building" in data["note"]

    def test_provider_rejection(self):
        def rejected(request):
            return httpx.Response(500, json={"error": {"message": "quota exceeded"}})

        response = _client(handler=rejected).post("/api/deploy", json={"code": "<p/>"})
        assert response.status_code == 500
        assert response.json() == {"error": "quota exceeded"}

    def test_build_failure(self):
        def broken(request):
            if request.method == "POST":
                return _ready(request)
            return httpx.Response(200, json={"readyState": "ERROR"})

        response = _client(handler=broken).post("/api/deploy", json={"code": "<p/>"})
        assert response.status_code == 500
        assert response.json() == {"error": "Deployment failed during build"}

    def test_missing_code(self):
        response = _client().post("/api/deploy", json={"projectName": "x"})
        assert response.status_code == 422
