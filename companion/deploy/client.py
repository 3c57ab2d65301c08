"""Vercel deployments API client.

Two calls: create a deployment from an in-memory file set, and read a
deployment's status. The httpx client is injectable so tests can swap in
an httpx.MockTransport.
"""

from __future__ import annotations

import logging
import os
from typing import Any

import httpx

from companion.deploy.scaffold import ProjectFileSet
from companion.errors import (
    ConfigurationError,
    DeploymentTransportError,
    ProviderRejectedError,
)
from companion.schemas.config import DeployConfig
from companion.schemas.deployment import DeploymentRecord, ReadyState

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://api.vercel.com"
_DEPLOYMENTS_PATH = "/v13/deployments"

GENERIC_REJECTION = "Deployment failed"


def _provider_message(response: httpx.Response) -> str:
    """Pull ``error.message`` out of an error body, or a generic message."""
    try:
        body = response.json()
    except ValueError:
        return GENERIC_REJECTION
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return GENERIC_REJECTION


def _with_scheme(url: str) -> str:
    if not url:
        return ""
    return url if url.startswith(("http://", "https://")) else f"https://{url}"


class VercelClient:
    """Thin async client for the Vercel v13 deployments API."""

    def __init__(
        self,
        token: str,
        *,
        api_base: str = DEFAULT_API_BASE,
        team_id: str = "",
        timeout: float = 30.0,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self._token = token
        self._api_base = api_base.rstrip("/")
        self._team_id = team_id
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(timeout=timeout)

    @classmethod
    def from_config(
        cls, config: DeployConfig, *, http: httpx.AsyncClient | None = None
    ) -> VercelClient:
        """Build a client reading the token from ``config.token_env``.

        A missing token is not an error here; ensure_configured() reports it
        when a deployment is actually attempted.
        """
        return cls(
            os.environ.get(config.token_env, ""),
            api_base=config.api_base,
            team_id=config.team_id,
            timeout=config.timeout,
            http=http,
        )

    @property
    def configured(self) -> bool:
        return bool(self._token)

    def ensure_configured(self) -> None:
        """Raise ConfigurationError if no token is available."""
        if not self._token:
            raise ConfigurationError("Vercel token not configured")

    async def create_deployment(
        self,
        file_set: ProjectFileSet,
        *,
        name: str,
        target: str = "production",
        settings: dict[str, Any] | None = None,
    ) -> DeploymentRecord:
        """Upload the file set and start a build.

        Returns:
            DeploymentRecord in the QUEUED state.

        Raises:
            ConfigurationError: If no token is configured (no request is made).
            ProviderRejectedError: On a non-2xx response.
            DeploymentTransportError: If the API cannot be reached.
        """
        self.ensure_configured()
        body: dict[str, Any] = {
            "name": name,
            "files": file_set.encoded(),
            "target": target,
        }
        if settings:
            body["projectSettings"] = settings

        data = await self._request("POST", _DEPLOYMENTS_PATH, json=body)
        deployment_id = str(data.get("id") or "")
        url = _with_scheme(str(data.get("url") or ""))
        if not deployment_id or not url:
            raise DeploymentTransportError("Deployment response had no id or url")

        record = DeploymentRecord(
            id=deployment_id,
            url=url,
            ready_state=ReadyState.QUEUED,
        )
        logger.info(
            "Submitted deployment %s (%d files) for %s", record.id, len(file_set), name
        )
        return record

    async def get_deployment(self, deployment_id: str) -> dict[str, Any]:
        """Read a deployment's raw status document.

        Raises:
            ConfigurationError: If no token is configured.
            ProviderRejectedError: On a non-2xx response.
            DeploymentTransportError: If the API cannot be reached.
        """
        self.ensure_configured()
        return await self._request("GET", f"{_DEPLOYMENTS_PATH}/{deployment_id}")

    async def refresh(self, record: DeploymentRecord) -> DeploymentRecord:
        """Return ``record`` updated with the provider's current readyState.

        Unknown readyState values leave the previous state in place.
        """
        data = await self.get_deployment(record.id)
        raw_state = data.get("readyState")
        state = ReadyState.parse(raw_state)
        if state is None:
            logger.debug("Unrecognized readyState %r for %s", raw_state, record.id)
            state = record.ready_state
        url = _with_scheme(str(data.get("url") or "")) or record.url
        return record.model_copy(update={"ready_state": state, "url": url})

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> VercelClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        params = {"teamId": self._team_id} if self._team_id else None
        headers = {"Authorization": f"Bearer {self._token}"}
        try:
            response = await self._http.request(
                method,
                f"{self._api_base}{path}",
                params=params,
                headers=headers,
                **kwargs,
            )
        except httpx.HTTPError as e:
            raise DeploymentTransportError(f"{method} {path} failed: {e}") from e

        if not response.is_success:
            message = _provider_message(response)
            logger.error(
                "Vercel %s %s rejected (%d): %s",
                method, path, response.status_code, message,
            )
            raise ProviderRejectedError(message, status_code=response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            raise DeploymentTransportError(f"{method} {path} returned invalid JSON") from e
        if not isinstance(data, dict):
            raise DeploymentTransportError(f"{method} {path} returned unexpected JSON")
        return data
