# ABOUTME: Read-only check of the GitOps repository HEAD for an Application descriptor
# ABOUTME: Uses a shallow, bare, blob-less clone that never checks out a working tree

"""
Repository status reading.

The status tool only needs to answer "is <argocd_app_path>/<name>.yaml in
HEAD?". A full clone would download every blob in history; instead we ask
for the smallest thing git can give us:

    git clone --bare --depth=1 --single-branch --filter=blob:none <url> <tmp>

    --bare            no working tree, nothing checked out
    --depth=1         only the HEAD commit
    --filter=blob:none  trees only, file contents stay on the server

Tree objects are enough to test whether a path exists. The temporary
directory holding the object database is deleted before returning.
"""

from __future__ import annotations

import tempfile
from typing import TYPE_CHECKING

import git
import structlog

from deployer_mcp.gitops.workspace import GIT_ENV, WorkspaceManager, git_failure

if TYPE_CHECKING:
    from deployer_mcp.config import ServerSettings

logger = structlog.get_logger(__name__)


class RepositoryStatusReader:
    """Checks presence of an application's descriptor at repository HEAD."""

    def __init__(self, settings: ServerSettings) -> None:
        self._settings = settings
        self._workspaces = WorkspaceManager(settings)

    def has_application(self, app_name: str) -> bool:
        """
        Return True if the Application descriptor exists at HEAD.

        An empty remote (no commits yet) has no descriptor and returns False.

        Raises:
            GitError: clone or tree lookup failed
            AuthError: the remote rejected the credentials
        """
        descriptor = self._settings.descriptor_path(app_name)

        with tempfile.TemporaryDirectory(prefix="mcp-deployer-status-") as tmp:
            try:
                repo = git.Repo.clone_from(
                    self._workspaces.remote_url(),
                    tmp,
                    env=GIT_ENV,
                    bare=True,
                    depth=1,
                    single_branch=True,
                    filter="blob:none",
                )
            except git.GitError as e:
                raise git_failure("failed to read repository", e, self._workspaces.secrets) from e

            try:
                if not repo.head.is_valid():
                    return False
                tree = repo.head.commit.tree
                try:
                    tree / descriptor
                except KeyError:
                    return False
                return True
            except (git.GitError, ValueError) as e:
                raise git_failure("failed to read HEAD tree", e, self._workspaces.secrets) from e
            finally:
                repo.close()
