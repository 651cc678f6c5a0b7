# ABOUTME: Git presence and ArgoCD health checks expressed as status findings
# ABOUTME: Never raise: every failure becomes an ERROR finding carrying its cause

"""
Status readers.

The readers wrap the repository and cluster clients for the status tool.
Where the clients raise DeployerError, the readers turn each outcome into a
Finding, so one failing source never hides the other two. Both are blocking
and are run in worker threads by the aggregator.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from deployer_mcp.status.findings import CheckState, Finding
from deployer_mcp.utils.errors import DeployerError, NotFoundError

if TYPE_CHECKING:
    from deployer_mcp.cluster.client import ClusterClient
    from deployer_mcp.gitops.repository import RepositoryStatusReader

logger = structlog.get_logger(__name__)


class GitPresenceReader:
    """Reports whether the application's descriptor exists in Git."""

    CHECK = "git"

    def __init__(self, repository: RepositoryStatusReader) -> None:
        self._repository = repository

    def read(self, app_name: str) -> Finding:
        try:
            present = self._repository.has_application(app_name)
        except DeployerError as e:
            logger.warning("Git status check failed", app=app_name, error=str(e))
            return Finding(self.CHECK, CheckState.ERROR, f"Error checking Git: {e}")

        if present:
            return Finding(self.CHECK, CheckState.PRESENT, "Manifests present in Git")
        return Finding(self.CHECK, CheckState.ABSENT, "Manifests NOT found in Git")


class ArgoStatusReader:
    """Reports health and sync of the application's ArgoCD Application."""

    CHECK = "argocd"

    def __init__(self, cluster: ClusterClient) -> None:
        self._cluster = cluster

    def read(self, app_name: str) -> Finding:
        try:
            status = self._cluster.get_argocd_application(app_name)
        except NotFoundError:
            return Finding(self.CHECK, CheckState.ABSENT, "ArgoCD Application not found")
        except DeployerError as e:
            logger.warning("ArgoCD status check failed", app=app_name, error=str(e))
            return Finding(self.CHECK, CheckState.ERROR, f"Error checking ArgoCD: {e}")

        if status.health is None:
            return Finding(
                self.CHECK,
                CheckState.UNKNOWN,
                "ArgoCD Application found but status unknown",
                {"sync": status.sync},
            )
        return Finding(
            self.CHECK,
            CheckState.PRESENT,
            f"ArgoCD Application found. Health: {status.health}, Sync: {status.sync or 'Unknown'}",
            {"health": status.health, "sync": status.sync},
        )
