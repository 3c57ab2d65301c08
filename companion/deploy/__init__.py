"""Deployment layer: project scaffolds, the Vercel client, polling."""

from companion.deploy.client import VercelClient
from companion.deploy.poller import DeploymentPoller
from companion.deploy.scaffold import ProjectFileSet, build_file_set, project_settings
from companion.deploy.service import DeploymentService

__all__ = [
    "DeploymentPoller",
    "DeploymentService",
    "ProjectFileSet",
    "VercelClient",
    "build_file_set",
    "project_settings",
]
