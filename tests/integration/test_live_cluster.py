# ABOUTME: Integration tests for the cluster client and status flow against a live cluster
# ABOUTME: Requires a Kind cluster with ArgoCD installed as the current kubectl context

"""Integration tests against a live Kubernetes cluster with ArgoCD.

These tests require:
- Current kubectl context 'kind-argocd-mcp-test' (override with TEST_K8S_CONTEXT)
- ArgoCD installed in the 'argocd' namespace
- kubectl and git available in PATH

A throwaway nginx Deployment is created in the test namespace for the
rolling-restart test and removed afterwards.
"""

from __future__ import annotations

import os
import shutil
import subprocess
import time
from collections.abc import Iterator
from pathlib import Path

import pytest
from pydantic import SecretStr

from deployer_mcp.cluster.client import RESTARTED_AT_ANNOTATION, ClusterClient
from deployer_mcp.config import ServerSettings
from deployer_mcp.deployer import Deployer
from deployer_mcp.utils.errors import NotFoundError

TEST_NAMESPACE = "default"
TEST_DEPLOYMENT = "deployer-it-nginx"
GHOST_APP = "deployer-it-ghost"


def _kubectl_context() -> str:
    return os.environ.get("TEST_K8S_CONTEXT", "kind-argocd-mcp-test")


def _kubectl(*args: str) -> subprocess.CompletedProcess[str]:
    return subprocess.run(
        ["kubectl", "--context", _kubectl_context(), *args],
        capture_output=True,
        text=True,
        timeout=60,
    )


def _cluster_ready() -> bool:
    if shutil.which("kubectl") is None or shutil.which("git") is None:
        return False
    try:
        current = subprocess.run(
            ["kubectl", "config", "current-context"], capture_output=True, text=True, timeout=10
        )
        if current.stdout.strip() != _kubectl_context():
            return False
        pods = _kubectl("get", "pods", "-n", "argocd", "-l", "app.kubernetes.io/name=argocd-server")
        return pods.returncode == 0 and "Running" in pods.stdout
    except (subprocess.SubprocessError, OSError):
        return False


pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(not _cluster_ready(), reason="live Kind cluster with ArgoCD not available"),
]


@pytest.fixture
def live_settings(git_remote: Path) -> ServerSettings:
    kubeconfig = os.environ.get("KUBECONFIG", "~/.kube/config").split(os.pathsep)[0]
    return ServerSettings(
        kubeconfig=Path(kubeconfig),
        git_url=str(git_remote),
        git_token=SecretStr("unused-for-local-remote"),
        namespace=TEST_NAMESPACE,
        probe_timeout=2.0,
    )


@pytest.fixture
def nginx_deployment() -> Iterator[str]:
    created = _kubectl(
        "create", "deployment", TEST_DEPLOYMENT, "-n", TEST_NAMESPACE, "--image=nginx:1.27-alpine"
    )
    if created.returncode != 0 and "AlreadyExists" not in created.stderr:
        pytest.fail(f"could not create test deployment: {created.stderr}")
    yield TEST_DEPLOYMENT
    _kubectl("delete", "deployment", TEST_DEPLOYMENT, "-n", TEST_NAMESPACE, "--ignore-not-found")


class TestClusterClient:
    def test_missing_argocd_application(self, live_settings: ServerSettings):
        with pytest.raises(NotFoundError):
            ClusterClient(live_settings).get_argocd_application(GHOST_APP)

    def test_restart_missing_deployment(self, live_settings: ServerSettings):
        with pytest.raises(NotFoundError, match=f"failed to get deployment {GHOST_APP}"):
            ClusterClient(live_settings).restart_deployment(GHOST_APP)

    def test_restart_sets_annotation(self, live_settings: ServerSettings, nginx_deployment: str):
        result = ClusterClient(live_settings).restart_deployment(nginx_deployment)

        jsonpath = "{.spec.template.metadata.annotations.kubectl\\.kubernetes\\.io/restartedAt}"
        for _ in range(10):
            live = _kubectl("get", "deployment", nginx_deployment, "-n", TEST_NAMESPACE, "-o", f"jsonpath={jsonpath}")
            if live.stdout.strip():
                break
            time.sleep(1)
        assert live.stdout.strip() == result.restarted_at
        assert RESTARTED_AT_ANNOTATION.startswith("kubectl.kubernetes.io/")


class TestStatusFlow:
    @pytest.mark.asyncio
    async def test_ghost_application(self, live_settings: ServerSettings):
        result = await Deployer(live_settings).status(GHOST_APP)

        lines = result.text.splitlines()
        assert lines[0] == f"Status for application: {GHOST_APP}"
        assert lines[1] == "[!] Manifests NOT found in Git"
        assert lines[2] == "[!] ArgoCD Application not found"
        assert lines[3].startswith("[!] Ingress unreachable:")
