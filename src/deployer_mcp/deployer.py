# ABOUTME: The four deployer operations wired to the GitOps, cluster and status components
# ABOUTME: One Deployer per process; blocking Git and Kubernetes work runs in worker threads

"""
Deployer service.

=============================================================================
WHAT IS THIS FILE?
=============================================================================

The MCP tools in server.py are thin: they check safety, call one method
here and turn the result or error into a tool response. This module holds
the workflows:

    deploy(name, image)
        workspace.acquire() -> materialize_deploy() -> publish()

    destroy(name)
        workspace.acquire() -> materialize_destroy() -> publish()

    update(name)
        cluster.restart_deployment()

    status(name)
        aggregator.collect()  (Git, ArgoCD and ingress in parallel)

deploy and destroy run entirely in a worker thread: clone, render, commit
and push are all blocking GitPython calls, and the workspace context manager
guarantees the temp clone is removed before the thread returns.

=============================================================================
ERRORS AND IDEMPOTENCE
=============================================================================

Every failure in deploy, destroy or update is a DeployerError and propagates
to the caller unchanged; nothing is retried and nothing partial is reported.

Repeating an operation is not an error:

    deploy same name+image twice   -> second call: "No changes to deploy"
    destroy an app that is absent  -> "does not exist or already destroyed"

Neither of those creates a commit.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import structlog

from deployer_mcp.cluster.client import ClusterClient
from deployer_mcp.gitops.manifests import AppSpec, ManifestMaterializer, validate_app_name
from deployer_mcp.gitops.publisher import ChangePublisher, PublishOutcome, deploy_message, destroy_message
from deployer_mcp.gitops.repository import RepositoryStatusReader
from deployer_mcp.gitops.workspace import WorkspaceManager
from deployer_mcp.status.aggregator import StatusAggregator
from deployer_mcp.status.reachability import ReachabilityProber
from deployer_mcp.status.readers import ArgoStatusReader, GitPresenceReader
from deployer_mcp.utils.errors import InvalidApplicationError

if TYPE_CHECKING:
    from deployer_mcp.config import ServerSettings

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class OperationResult:
    """
    Text returned to the caller plus the outcome recorded in the audit log.

    outcome is "pushed" or "noop" for deploy/destroy, "success" for update
    and status.
    """

    text: str
    outcome: str
    details: dict[str, Any] = field(default_factory=dict)


def _checked_name(action: str, app_name: str) -> str:
    try:
        return validate_app_name(app_name)
    except ValueError as e:
        raise InvalidApplicationError(f"cannot {action} '{app_name}'", str(e)) from e


class Deployer:
    """
    Application lifecycle operations against one GitOps repository and cluster.

    Components default to instances built from settings; tests pass their
    own.
    """

    def __init__(
        self,
        settings: ServerSettings,
        workspaces: WorkspaceManager | None = None,
        materializer: ManifestMaterializer | None = None,
        publisher: ChangePublisher | None = None,
        cluster: ClusterClient | None = None,
        aggregator: StatusAggregator | None = None,
    ) -> None:
        self._settings = settings
        self._workspaces = workspaces or WorkspaceManager(settings)
        self._materializer = materializer or ManifestMaterializer(settings)
        self._publisher = publisher or ChangePublisher(settings)
        self._cluster = cluster or ClusterClient(settings)
        self._aggregator = aggregator or StatusAggregator(
            settings,
            GitPresenceReader(RepositoryStatusReader(settings)),
            ArgoStatusReader(self._cluster),
            ReachabilityProber(settings.probe_timeout),
        )

    # =========================================================================
    # deploy / destroy
    # =========================================================================

    def _deploy_sync(self, app: AppSpec) -> OperationResult:
        with self._workspaces.acquire() as workspace:
            self._materializer.materialize_deploy(workspace, app)
            result = self._publisher.publish(workspace, deploy_message(app.name, app.image))

        if result.outcome is PublishOutcome.NOOP:
            return OperationResult(
                f"No changes to deploy for {app.name}; image {app.image} is already declared in Git.",
                result.outcome.value,
                {"image": app.image},
            )
        return OperationResult(
            f"Successfully deployed {app.name}. Git updated (commit {result.short_sha}).",
            result.outcome.value,
            {"image": app.image, "commit": result.short_sha},
        )

    async def deploy(self, app_name: str, image: str) -> OperationResult:
        """
        Declare app_name running image in the GitOps repository.

        Raises:
            InvalidApplicationError: name or image rejected before any Git work
            SetupError, AuthError, GitError, RenderError: see the components
        """
        app = AppSpec.build(self._settings, app_name, image)
        logger.info("Deploying application", app=app.name, image=app.image)
        return await asyncio.to_thread(self._deploy_sync, app)

    def _destroy_sync(self, app_name: str) -> OperationResult:
        with self._workspaces.acquire() as workspace:
            self._materializer.materialize_destroy(workspace, app_name)
            result = self._publisher.publish(workspace, destroy_message(app_name))

        if result.outcome is PublishOutcome.NOOP:
            return OperationResult(
                f"App {app_name} does not exist or already destroyed",
                result.outcome.value,
            )
        return OperationResult(
            f"Successfully destroyed {app_name} (manifests removed).",
            result.outcome.value,
            {"commit": result.short_sha},
        )

    async def destroy(self, app_name: str) -> OperationResult:
        """Remove app_name's manifests and Application descriptor from Git."""
        app_name = _checked_name("destroy", app_name)
        logger.info("Destroying application", app=app_name)
        return await asyncio.to_thread(self._destroy_sync, app_name)

    # =========================================================================
    # update / status
    # =========================================================================

    async def update(self, app_name: str) -> OperationResult:
        """
        Rolling-restart the Deployment named app_name.

        Raises:
            NotFoundError: no such Deployment
            AuthError, K8sError: cluster access failed
        """
        app_name = _checked_name("update", app_name)
        restart = await asyncio.to_thread(self._cluster.restart_deployment, app_name)
        return OperationResult(
            f"Successfully triggered rolling restart for deployment {restart.name} "
            f"in namespace {restart.namespace}",
            "success",
            {"restarted_at": restart.restarted_at},
        )

    async def status(self, app_name: str) -> OperationResult:
        """Three-line status report; individual check failures are part of the text."""
        app_name = _checked_name("check status of", app_name)
        report = await self._aggregator.collect(app_name)
        return OperationResult(report.render(), "success", report.as_dict())
