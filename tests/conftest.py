# ABOUTME: Pytest fixtures and configuration for MCP App Deployer tests
# ABOUTME: Provides settings, safety guards and throwaway local Git remotes

import shutil
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import git
import pytest
from pydantic import SecretStr

from deployer_mcp.config import SecuritySettings, ServerSettings
from deployer_mcp.utils.safety import SafetyGuard

TEST_TOKEN = "test-token-5f3a9c"

BOT = git.Actor("Test Seeder", "seeder@example.com")


@pytest.fixture
def mock_security_settings() -> SecuritySettings:
    """Create security settings for testing."""
    return SecuritySettings(
        read_only=False,
        disable_destructive=False,
        audit_log=None,
        mask_secrets=True,
        rate_limit_calls=100,
        rate_limit_window=60,
    )


@pytest.fixture
def read_only_security_settings() -> SecuritySettings:
    """Create read-only security settings for testing."""
    return SecuritySettings(
        read_only=True,
        disable_destructive=True,
        audit_log=None,
        mask_secrets=True,
        rate_limit_calls=100,
        rate_limit_window=60,
    )


@pytest.fixture
def kubeconfig_path(tmp_path: Path) -> Path:
    """Path to a kubeconfig; unit tests never read it."""
    return tmp_path / "kubeconfig"


@pytest.fixture
def mock_server_settings(kubeconfig_path: Path, mock_security_settings: SecuritySettings) -> ServerSettings:
    """Server settings pointing at a remote that does not exist."""
    return ServerSettings(
        kubeconfig=kubeconfig_path,
        git_url="https://git.example.com/acme/gitops.git",
        git_token=SecretStr(TEST_TOKEN),
        security=mock_security_settings,
    )


@pytest.fixture
def safety_guard(mock_security_settings: SecuritySettings) -> SafetyGuard:
    """Create a safety guard for testing."""
    return SafetyGuard(mock_security_settings)


@pytest.fixture
def read_only_safety_guard(read_only_security_settings: SecuritySettings) -> SafetyGuard:
    """Create a read-only safety guard for testing."""
    return SafetyGuard(read_only_security_settings)


@pytest.fixture
def mock_context() -> MagicMock:
    """Create a mock MCP context."""
    ctx = MagicMock()
    ctx.request_id = "test-request-123"
    ctx.report_progress = AsyncMock()
    return ctx


# =============================================================================
# Local Git remotes
# =============================================================================


def _seed(remote: Path, work: Path) -> None:
    """Give a bare remote one commit on main."""
    repo = git.Repo.clone_from(str(remote), work)
    try:
        (work / "README.md").write_text("GitOps repository\n", encoding="utf-8")
        repo.index.add(["README.md"])
        repo.index.commit("Initial commit", author=BOT, committer=BOT)
        repo.remote("origin").push(refspec="HEAD:refs/heads/main")
    finally:
        repo.close()


@pytest.fixture
def empty_remote(tmp_path: Path) -> Path:
    """A bare repository with no commits at all."""
    if shutil.which("git") is None:
        pytest.skip("git binary not available")
    remote = tmp_path / "remote.git"
    git.Repo.init(remote, bare=True, initial_branch="main").close()
    return remote


@pytest.fixture
def git_remote(empty_remote: Path, tmp_path: Path) -> Path:
    """A bare repository whose main branch holds a README."""
    _seed(empty_remote, tmp_path / "seed")
    return empty_remote


def remote_commits(remote: Path, branch: str = "main") -> list[git.Commit]:
    """Commits on branch of a bare remote, newest first."""
    repo = git.Repo(remote)
    try:
        return list(repo.iter_commits(branch))
    finally:
        repo.close()


def remote_files(remote: Path, branch: str = "main") -> set[str]:
    """Paths of every blob at the tip of branch."""
    repo = git.Repo(remote)
    try:
        return {item.path for item in repo.commit(branch).tree.traverse() if item.type == "blob"}
    finally:
        repo.close()


@pytest.fixture
def commits_on():
    """Helper: commits on a branch of a bare remote."""
    return remote_commits


@pytest.fixture
def files_on():
    """Helper: blob paths at the tip of a branch of a bare remote."""
    return remote_files


@pytest.fixture
def git_settings(git_remote: Path, kubeconfig_path: Path, mock_security_settings: SecuritySettings) -> ServerSettings:
    """Settings whose repository is the seeded local remote."""
    return ServerSettings(
        kubeconfig=kubeconfig_path,
        git_url=str(git_remote),
        git_token=SecretStr(TEST_TOKEN),
        security=mock_security_settings,
    )
