"""Deployment service: submit a directive, poll it, report the outcome.

Every failure, expected or not, is folded into a DeploymentResult here,
so a deployment problem can never take the chat reply down with it.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from companion.deploy.client import VercelClient
from companion.deploy.poller import DeploymentPoller, Sleep
from companion.deploy.scaffold import build_file_set, project_settings
from companion.errors import (
    ConfigurationError,
    DeploymentTransportError,
    ProviderRejectedError,
)
from companion.schemas.config import DeployConfig
from companion.schemas.deployment import (
    DeploymentRecord,
    DeploymentResult,
    FailureKind,
    PollOutcome,
)
from companion.schemas.directive import DeployDirective

logger = logging.getLogger(__name__)

BUILD_FAILED = "Deployment failed during build"
TRANSPORT_FAILED = "Failed to deploy"
CANCELLED = "Deployment tracking cancelled"
STILL_BUILDING = "Deployment may still be building"

SubmittedCallback = Callable[[DeploymentRecord], Any]
PolledCallback = Callable[[DeploymentRecord, int], Any]


class DeploymentService:
    """Turns a DeployDirective into a live (or failed) deployment."""

    def __init__(
        self,
        client: VercelClient,
        config: DeployConfig | None = None,
        *,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._client = client
        self._config = config or DeployConfig()
        self._sleep = sleep

    @property
    def client(self) -> VercelClient:
        return self._client

    async def deploy(
        self,
        directive: DeployDirective,
        *,
        cancel: asyncio.Event | None = None,
        on_submitted: SubmittedCallback | None = None,
        on_polled: PolledCallback | None = None,
    ) -> DeploymentResult:
        """Submit the directive's project and wait for it within the poll budget.

        Returns:
            DeploymentResult. Polling that runs out while the build is still
            going returns ``success=True`` with a "may still be building"
            note; the URL is not guaranteed to be serving yet.
        """
        template = self._config.template
        try:
            self._client.ensure_configured()
            file_set = build_file_set(directive, template)
            record = await self._client.create_deployment(
                file_set,
                name=directive.project_name,
                target=self._config.target,
                settings=project_settings(template),
            )
        except ConfigurationError as e:
            logger.error("Deployment not attempted: %s", e)
            return _failed(FailureKind.CONFIGURATION, str(e))
        except ProviderRejectedError as e:
            return _failed(FailureKind.PROVIDER, e.message)
        except DeploymentTransportError as e:
            logger.error("Deploy error: %s", e)
            return _failed(FailureKind.TRANSPORT, TRANSPORT_FAILED)
        except Exception:
            logger.exception("Deploy error")
            return _failed(FailureKind.TRANSPORT, TRANSPORT_FAILED)

        if on_submitted is not None:
            result = on_submitted(record)
            if asyncio.iscoroutine(result):
                await result

        poller = DeploymentPoller(
            self._client.refresh,
            self._config.poll,
            sleep=self._sleep,
            on_attempt=on_polled,
        )
        try:
            polled = await poller.poll(record, cancel)
        except DeploymentTransportError as e:
            logger.error("Deployment status error for %s: %s", record.id, e)
            return _failed(
                FailureKind.TRANSPORT, TRANSPORT_FAILED, record=record
            )
        except Exception:
            logger.exception("Deployment status error for %s", record.id)
            return _failed(FailureKind.TRANSPORT, TRANSPORT_FAILED, record=record)

        return _result_for(polled.outcome, polled.record)


def _failed(
    kind: FailureKind, error: str, record: DeploymentRecord | None = None
) -> DeploymentResult:
    return DeploymentResult(
        success=False,
        error=error,
        failure=kind,
        url=record.url if record else None,
        deployment_id=record.id if record else None,
    )


def _result_for(outcome: PollOutcome, record: DeploymentRecord) -> DeploymentResult:
    if outcome is PollOutcome.READY:
        return DeploymentResult(success=True, url=record.url, deployment_id=record.id)
    if outcome is PollOutcome.EXHAUSTED:
        return DeploymentResult(
            success=True, url=record.url, deployment_id=record.id, note=STILL_BUILDING
        )
    if outcome is PollOutcome.CANCELLED:
        return _failed(FailureKind.CANCELLED, CANCELLED, record=record)
    return _failed(FailureKind.BUILD, BUILD_FAILED, record=record)
