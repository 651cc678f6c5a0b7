# ABOUTME: Kubernetes access for ArgoCD Application status and Deployment restarts
# ABOUTME: Builds a client from the configured kubeconfig and maps API errors to DeployerError

"""
Kubernetes cluster access.

=============================================================================
WHAT IS THIS FILE?
=============================================================================

Two cluster interactions back two tools:

1. STATUS: read the ArgoCD Application custom resource for an app.
   ArgoCD is a CRD, so there is no typed client for it. CustomObjectsApi is
   the generic accessor, addressed by group/version/plural:

       argoproj.io / v1alpha1 / applications

   The object comes back as a plain dict, the same JSON `kubectl get -o json`
   prints:

       {"status": {"health": {"status": "Healthy"},
                   "sync":   {"status": "Synced"}}}

2. UPDATE: trigger a rolling restart of the app's Deployment, the same
   mechanism `kubectl rollout restart` uses: change a pod-template
   annotation so the Deployment controller sees a new template and rolls
   every pod.

=============================================================================
WHY A NEW API CLIENT PER CALL?
=============================================================================

The kubeconfig is re-read on every call. Short-lived exec/OIDC credentials
in the kubeconfig are refreshed by whatever tool wrote it, and a broken
kubeconfig is reported by the one call that needed it instead of preventing
the server from starting.

=============================================================================
ERROR MAPPING
=============================================================================

    ApiException 404          -> NotFoundError
    ApiException 401 / 403    -> AuthError
    other ApiException        -> K8sError (includes 409 Conflict on update)
    bad kubeconfig            -> K8sError
    connection failure        -> K8sError
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import structlog
import urllib3
from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException

from deployer_mcp.utils.errors import AuthError, DeployerError, K8sError, NotFoundError

if TYPE_CHECKING:
    from deployer_mcp.config import ServerSettings

logger = structlog.get_logger(__name__)

ARGOCD_GROUP = "argoproj.io"
ARGOCD_VERSION = "v1alpha1"
ARGOCD_PLURAL = "applications"

RESTARTED_AT_ANNOTATION = "kubectl.kubernetes.io/restartedAt"


def api_failure(action: str, exc: ApiException) -> DeployerError:
    """Translate a Kubernetes ApiException into the deployer taxonomy."""
    cause = f"({exc.status}) {exc.reason}" if exc.status else str(exc)
    if exc.status == 404:
        return NotFoundError(action, cause)
    if exc.status in (401, 403):
        return AuthError(action, cause)
    return K8sError(action, cause)


def rfc3339_now() -> str:
    """Current UTC time formatted like kubectl's restartedAt annotation."""
    return datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass(frozen=True)
class ArgoApplicationStatus:
    """
    Health and sync condition of an ArgoCD Application.

    health is None when the resource exists but ArgoCD has not reported a
    health status yet (freshly created, controller down, ...).
    """

    name: str
    health: str | None
    sync: str | None

    @classmethod
    def from_resource(cls, name: str, resource: dict[str, Any]) -> ArgoApplicationStatus:
        """
        Extract status.health.status and status.sync.status.

        Every level may be missing or null on a resource ArgoCD has not
        reconciled yet, so each lookup falls back to an empty dict.
        """
        status = resource.get("status") or {}
        health = (status.get("health") or {}).get("status")
        sync = (status.get("sync") or {}).get("status")
        return cls(
            name=name,
            health=health if isinstance(health, str) else None,
            sync=sync if isinstance(sync, str) else None,
        )


@dataclass(frozen=True)
class RestartResult:
    name: str
    namespace: str
    restarted_at: str


class ClusterClient:
    """Kubernetes operations used by the status and update tools."""

    def __init__(self, settings: ServerSettings) -> None:
        """
        Args:
            settings: Immutable server settings (kubeconfig, namespaces)
        """
        self._settings = settings

    def _api_client(self) -> client.ApiClient:
        """
        Build an API client from the configured kubeconfig.

        new_client_from_config() returns an isolated client instead of
        mutating the library's global default configuration.
        """
        try:
            return config.new_client_from_config(config_file=str(self._settings.kubeconfig))
        except (ConfigException, OSError, TypeError, ValueError) as e:
            raise K8sError("failed to build kubeconfig", str(e)) from e

    def get_argocd_application(self, app_name: str) -> ArgoApplicationStatus:
        """
        Fetch the ArgoCD Application named app_name.

        Raises:
            NotFoundError: No such Application in the ArgoCD namespace
            AuthError: Credentials rejected
            K8sError: Any other client or API failure
        """
        namespace = self._settings.argocd_namespace
        log = logger.bind(app=app_name, namespace=namespace)

        api_client = self._api_client()
        try:
            resource = client.CustomObjectsApi(api_client).get_namespaced_custom_object(
                group=ARGOCD_GROUP,
                version=ARGOCD_VERSION,
                namespace=namespace,
                plural=ARGOCD_PLURAL,
                name=app_name,
            )
        except ApiException as e:
            log.debug("ArgoCD Application lookup failed", status=e.status)
            raise api_failure(f"failed to get ArgoCD Application {app_name}", e) from e
        except urllib3.exceptions.HTTPError as e:
            raise K8sError("failed to reach Kubernetes API", str(e)) from e
        finally:
            api_client.close()

        return ArgoApplicationStatus.from_resource(app_name, resource)

    def restart_deployment(self, app_name: str) -> RestartResult:
        """
        Trigger a rolling restart of the Deployment named app_name.

        The Deployment is read, its pod-template annotation
        kubectl.kubernetes.io/restartedAt is set to now, and the object is
        written back with replace (a full update). If someone else modified
        the Deployment between our read and write, the API server rejects
        the stale resourceVersion with 409 Conflict; that is reported, not
        retried.

        Raises:
            NotFoundError: No such Deployment in the configured namespace
            AuthError: Credentials rejected
            K8sError: Update conflict or any other failure
        """
        namespace = self._settings.namespace
        restarted_at = rfc3339_now()

        api_client = self._api_client()
        try:
            apps = client.AppsV1Api(api_client)
            try:
                deployment = apps.read_namespaced_deployment(name=app_name, namespace=namespace)
            except ApiException as e:
                raise api_failure(f"failed to get deployment {app_name}", e) from e

            template = deployment.spec.template
            if template.metadata is None:
                template.metadata = client.V1ObjectMeta()
            if template.metadata.annotations is None:
                template.metadata.annotations = {}
            template.metadata.annotations[RESTARTED_AT_ANNOTATION] = restarted_at

            try:
                apps.replace_namespaced_deployment(name=app_name, namespace=namespace, body=deployment)
            except ApiException as e:
                raise api_failure(f"failed to update deployment {app_name}", e) from e
        except urllib3.exceptions.HTTPError as e:
            raise K8sError("failed to reach Kubernetes API", str(e)) from e
        finally:
            api_client.close()

        logger.info("Triggered rolling restart", app=app_name, namespace=namespace, at=restarted_at)
        return RestartResult(name=app_name, namespace=namespace, restarted_at=restarted_at)
