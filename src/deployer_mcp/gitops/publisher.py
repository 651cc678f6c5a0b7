# ABOUTME: Commits and pushes a workspace's staged changes to the GitOps remote
# ABOUTME: Reports a no-op instead of creating an empty commit when nothing changed

"""Change publishing: status check, bot commit, push."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

import git
import structlog
from git.remote import PushInfo

from deployer_mcp.gitops.workspace import git_failure
from deployer_mcp.utils.errors import GitError

if TYPE_CHECKING:
    from deployer_mcp.config import ServerSettings
    from deployer_mcp.gitops.workspace import Workspace

logger = structlog.get_logger(__name__)

PUSH_FAILURE_FLAGS = PushInfo.ERROR | PushInfo.REJECTED | PushInfo.REMOTE_REJECTED | PushInfo.REMOTE_FAILURE


class PublishOutcome(str, Enum):
    PUSHED = "pushed"
    NOOP = "noop"


@dataclass(frozen=True)
class PublishResult:
    outcome: PublishOutcome
    commit_sha: str | None = None

    @property
    def short_sha(self) -> str:
        return self.commit_sha[:8] if self.commit_sha else ""


def deploy_message(name: str, image: str) -> str:
    return f"Deploy application {name} with image {image}"


def destroy_message(name: str) -> str:
    return f"Destroy application {name}"


class ChangePublisher:
    """Publishes a workspace to its origin remote."""

    def __init__(self, settings: ServerSettings) -> None:
        self._settings = settings
        self._actor = git.Actor(settings.commit_author_name, settings.commit_author_email)

    @property
    def _secrets(self) -> tuple[str, ...]:
        return (self._settings.git_token.get_secret_value(),)

    def has_changes(self, workspace: Workspace) -> bool:
        """True if the working tree or index differs from HEAD."""
        try:
            return bool(workspace.repo.git.status("--porcelain").strip())
        except git.GitError as e:
            raise git_failure("failed to get git status", e, self._secrets) from e

    def publish(self, workspace: Workspace, message: str) -> PublishResult:
        """Commit and push if anything changed.

        Raises:
            GitError: commit or push failed (including a rejected
                      non-fast-forward push from a concurrent writer)
            AuthError: the remote rejected the credentials on push
        """
        if not self.has_changes(workspace):
            logger.info("Working tree clean, nothing to publish")
            return PublishResult(PublishOutcome.NOOP)

        repo = workspace.repo
        try:
            commit = repo.index.commit(message, author=self._actor, committer=self._actor)
        except (git.GitError, ValueError, OSError) as e:
            raise git_failure("failed to commit changes", e, self._secrets) from e

        try:
            branch = repo.active_branch.name
            push_infos = repo.remote("origin").push(refspec=f"HEAD:refs/heads/{branch}")
        except (git.GitError, TypeError, ValueError) as e:
            # TypeError: detached HEAD has no active branch
            raise git_failure("failed to push changes", e, self._secrets) from e

        # GitPython reports most rejections through flags instead of raising
        for info in push_infos:
            if info.flags & PUSH_FAILURE_FLAGS:
                summary = (info.summary or "push rejected").strip()
                raise GitError(
                    "failed to push changes; retry the whole operation",
                    summary,
                )
        if not push_infos:
            raise GitError("failed to push changes", "remote reported no updated refs")

        logger.info("Pushed commit", commit=commit.hexsha[:8], branch=branch)
        return PublishResult(PublishOutcome.PUSHED, commit.hexsha)
