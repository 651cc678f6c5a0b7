# ABOUTME: Unit tests for the Kubernetes cluster client
# ABOUTME: Tests ArgoCD Application lookup, rolling restart, and ApiException mapping

import re
from unittest.mock import MagicMock, patch

import pytest
import urllib3
from kubernetes import client
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException

from deployer_mcp.cluster.client import (
    RESTARTED_AT_ANNOTATION,
    ArgoApplicationStatus,
    ClusterClient,
    api_failure,
    rfc3339_now,
)
from deployer_mcp.config import ServerSettings
from deployer_mcp.utils.errors import AuthError, K8sError, NotFoundError


def make_deployment(name: str = "checkout-svc", annotations: dict | None = None) -> client.V1Deployment:
    metadata = client.V1ObjectMeta(annotations=annotations) if annotations is not None else None
    return client.V1Deployment(
        metadata=client.V1ObjectMeta(name=name, namespace="applications"),
        spec=client.V1DeploymentSpec(
            selector=client.V1LabelSelector(match_labels={"app.kubernetes.io/name": name}),
            template=client.V1PodTemplateSpec(metadata=metadata),
        ),
    )


@pytest.fixture
def api_client() -> MagicMock:
    return MagicMock()


@pytest.fixture
def kube(api_client: MagicMock):
    """Patch client construction from the kubeconfig."""
    with patch(
        "deployer_mcp.cluster.client.config.new_client_from_config", return_value=api_client
    ) as factory:
        yield factory


@pytest.mark.unit
class TestApiFailure:
    @pytest.mark.parametrize(
        ("status", "error_type"),
        [(404, NotFoundError), (401, AuthError), (403, AuthError), (409, K8sError), (500, K8sError)],
    )
    def test_mapping(self, status: int, error_type: type):
        error = api_failure("failed to get deployment web", ApiException(status=status, reason="Reason"))

        assert type(error) is error_type
        assert f"({status}) Reason" in str(error)


@pytest.mark.unit
class TestArgoApplicationStatus:
    def test_from_resource(self):
        resource = {"status": {"health": {"status": "Healthy"}, "sync": {"status": "Synced"}}}
        status = ArgoApplicationStatus.from_resource("web", resource)

        assert status == ArgoApplicationStatus("web", "Healthy", "Synced")

    @pytest.mark.parametrize(
        "resource",
        [{}, {"status": None}, {"status": {}}, {"status": {"health": {}}}, {"status": {"health": {"status": 3}}}],
    )
    def test_missing_health(self, resource: dict):
        assert ArgoApplicationStatus.from_resource("web", resource).health is None


@pytest.mark.unit
class TestGetArgocdApplication:
    def test_reads_custom_object(self, mock_server_settings: ServerSettings, kube, api_client: MagicMock):
        with patch("deployer_mcp.cluster.client.client.CustomObjectsApi") as api_cls:
            api_cls.return_value.get_namespaced_custom_object.return_value = {
                "status": {"health": {"status": "Progressing"}, "sync": {"status": "OutOfSync"}}
            }
            status = ClusterClient(mock_server_settings).get_argocd_application("checkout-svc")

        kube.assert_called_once_with(config_file=str(mock_server_settings.kubeconfig))
        api_cls.return_value.get_namespaced_custom_object.assert_called_once_with(
            group="argoproj.io",
            version="v1alpha1",
            namespace="argocd",
            plural="applications",
            name="checkout-svc",
        )
        assert status.health == "Progressing"
        assert status.sync == "OutOfSync"
        api_client.close.assert_called_once()

    def test_not_found(self, mock_server_settings: ServerSettings, kube, api_client: MagicMock):
        with patch("deployer_mcp.cluster.client.client.CustomObjectsApi") as api_cls:
            api_cls.return_value.get_namespaced_custom_object.side_effect = ApiException(status=404, reason="Not Found")
            with pytest.raises(NotFoundError):
                ClusterClient(mock_server_settings).get_argocd_application("ghost")

        api_client.close.assert_called_once()

    def test_forbidden(self, mock_server_settings: ServerSettings, kube):
        with patch("deployer_mcp.cluster.client.client.CustomObjectsApi") as api_cls:
            api_cls.return_value.get_namespaced_custom_object.side_effect = ApiException(status=403, reason="Forbidden")
            with pytest.raises(AuthError, match="Forbidden"):
                ClusterClient(mock_server_settings).get_argocd_application("web")

    def test_connection_failure(self, mock_server_settings: ServerSettings, kube):
        with patch("deployer_mcp.cluster.client.client.CustomObjectsApi") as api_cls:
            api_cls.return_value.get_namespaced_custom_object.side_effect = urllib3.exceptions.MaxRetryError(
                pool=None, url="/apis/argoproj.io"
            )
            with pytest.raises(K8sError, match="failed to reach Kubernetes API"):
                ClusterClient(mock_server_settings).get_argocd_application("web")

    def test_bad_kubeconfig(self, mock_server_settings: ServerSettings):
        with patch(
            "deployer_mcp.cluster.client.config.new_client_from_config",
            side_effect=ConfigException("Invalid kube-config file. No configuration found."),
        ):
            with pytest.raises(K8sError, match="failed to build kubeconfig"):
                ClusterClient(mock_server_settings).get_argocd_application("web")

    def test_missing_kubeconfig_file(self, mock_server_settings: ServerSettings):
        # The fixture's kubeconfig path does not exist on disk
        with pytest.raises(K8sError, match="failed to build kubeconfig"):
            ClusterClient(mock_server_settings).get_argocd_application("web")


@pytest.mark.unit
class TestRestartDeployment:
    def test_sets_restarted_at(self, mock_server_settings: ServerSettings, kube, api_client: MagicMock):
        deployment = make_deployment()
        with patch("deployer_mcp.cluster.client.client.AppsV1Api") as api_cls:
            apps = api_cls.return_value
            apps.read_namespaced_deployment.return_value = deployment

            result = ClusterClient(mock_server_settings).restart_deployment("checkout-svc")

        apps.read_namespaced_deployment.assert_called_once_with(name="checkout-svc", namespace="applications")
        apps.replace_namespaced_deployment.assert_called_once_with(
            name="checkout-svc", namespace="applications", body=deployment
        )
        annotations = deployment.spec.template.metadata.annotations
        assert annotations[RESTARTED_AT_ANNOTATION] == result.restarted_at
        assert re.fullmatch(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z", result.restarted_at)
        assert result.namespace == "applications"
        api_client.close.assert_called_once()

    def test_keeps_existing_annotations(self, mock_server_settings: ServerSettings, kube):
        deployment = make_deployment(annotations={"team": "payments", RESTARTED_AT_ANNOTATION: "old"})
        with patch("deployer_mcp.cluster.client.client.AppsV1Api") as api_cls:
            api_cls.return_value.read_namespaced_deployment.return_value = deployment
            ClusterClient(mock_server_settings).restart_deployment("checkout-svc")

        annotations = deployment.spec.template.metadata.annotations
        assert annotations["team"] == "payments"
        assert annotations[RESTARTED_AT_ANNOTATION] != "old"

    def test_not_found(self, mock_server_settings: ServerSettings, kube):
        with patch("deployer_mcp.cluster.client.client.AppsV1Api") as api_cls:
            api_cls.return_value.read_namespaced_deployment.side_effect = ApiException(status=404, reason="Not Found")
            with pytest.raises(NotFoundError, match="failed to get deployment ghost"):
                ClusterClient(mock_server_settings).restart_deployment("ghost")

            api_cls.return_value.replace_namespaced_deployment.assert_not_called()

    def test_conflict_not_retried(self, mock_server_settings: ServerSettings, kube):
        with patch("deployer_mcp.cluster.client.client.AppsV1Api") as api_cls:
            apps = api_cls.return_value
            apps.read_namespaced_deployment.return_value = make_deployment()
            apps.replace_namespaced_deployment.side_effect = ApiException(status=409, reason="Conflict")

            with pytest.raises(K8sError, match="Conflict"):
                ClusterClient(mock_server_settings).restart_deployment("checkout-svc")

        assert apps.replace_namespaced_deployment.call_count == 1


@pytest.mark.unit
def test_rfc3339_now_format():
    assert re.fullmatch(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z", rfc3339_now())
