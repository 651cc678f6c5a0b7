# ABOUTME: Disposable, authenticated working copy of the GitOps repository
# ABOUTME: Clones into a fresh temp dir per deploy/destroy and always removes it

"""
Repository workspace management.

=============================================================================
WHAT IS A WORKSPACE?
=============================================================================

Every deploy or destroy call gets its OWN full clone of the GitOps repository
in a brand-new temporary directory:

    with manager.acquire() as workspace:
        workspace.root          # /tmp/mcp-deployer-k2j3h4/
        workspace.repo          # git.Repo bound to that directory
        ...write files, stage, commit, push...
    # directory is gone here, whatever happened inside the block

Nothing is cached or reused between calls. Two concurrent deploys never touch
the same files on local disk; the only place they can collide is the push to
the remote, where the loser fails loudly.

=============================================================================
AUTHENTICATION
=============================================================================

The token is sent as HTTP basic-auth password with a fixed username
("oauth2" by default). GitPython drives the git CLI, so the credentials are
placed in the clone URL:

    https://github.com/acme/gitops
        -> https://oauth2:<token>@github.com/acme/gitops

The origin remote of the temporary clone keeps that URL, which is how the
later push authenticates with the same credentials. The clone is deleted at
the end of the call, and every error message is scrubbed of the token before
it leaves this module. GIT_TERMINAL_PROMPT=0 makes a rejected token fail
immediately instead of waiting for a password on a terminal nobody watches.
"""

from __future__ import annotations

import shutil
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import quote, urlsplit, urlunsplit

import git
import structlog

from deployer_mcp.utils.errors import AuthError, GitError, SetupError
from deployer_mcp.utils.safety import mask_secrets

if TYPE_CHECKING:
    from collections.abc import Iterator

    from deployer_mcp.config import ServerSettings

logger = structlog.get_logger(__name__)

GIT_ENV = {"GIT_TERMINAL_PROMPT": "0"}

# Fragments git prints when the remote rejects credentials
AUTH_FAILURE_MARKERS = (
    "authentication failed",
    "could not read username",
    "could not read password",
    "terminal prompts disabled",
    "invalid username or password",
    "permission denied",
    "returned error: 401",
    "returned error: 403",
)


# =============================================================================
# URL AND ERROR HELPERS
# =============================================================================


def authenticated_url(url: str, username: str, token: str) -> str:
    """
    Embed basic-auth credentials into an HTTP(S) repository URL.

    Non-HTTP URLs (local paths, file://, ssh) are returned unchanged; they
    authenticate by other means.
    """
    parts = urlsplit(url)
    if parts.scheme not in ("http", "https"):
        return url
    host = parts.netloc.rsplit("@", 1)[-1]
    netloc = f"{quote(username, safe='')}:{quote(token, safe='')}@{host}"
    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))


def git_failure(action: str, exc: Exception, secrets: tuple[str, ...] = ()) -> GitError | AuthError:
    """
    Translate a GitPython exception into the deployer taxonomy.

    Args:
        action: What was being attempted ("failed to clone repository")
        exc: The GitPython exception
        secrets: Literal values to mask from the message

    Returns:
        AuthError when git reports rejected credentials, GitError otherwise
    """
    if isinstance(exc, git.GitCommandError):
        detail = (str(exc.stderr) if exc.stderr else str(exc)).strip()
    else:
        detail = str(exc)
    detail = mask_secrets(detail, secrets)

    lowered = detail.lower()
    if any(marker in lowered for marker in AUTH_FAILURE_MARKERS):
        return AuthError(action, detail)
    return GitError(action, detail)


# =============================================================================
# WORKSPACE
# =============================================================================


@dataclass
class Workspace:
    """Handle to an exclusively-owned working copy."""

    root: Path
    repo: git.Repo

    def path(self, relative: str) -> Path:
        """Absolute path of a repository-relative 'a/b/c' path."""
        return self.root.joinpath(*relative.split("/"))


class WorkspaceManager:
    """
    Acquires disposable clones of the configured GitOps repository.

    The manager itself is stateless apart from the settings; it is safe to
    share one instance across concurrent calls.
    """

    def __init__(self, settings: ServerSettings) -> None:
        """
        Args:
            settings: Immutable server settings (repository URL, token, username)
        """
        self._settings = settings

    @property
    def secrets(self) -> tuple[str, ...]:
        """Values that must never appear in error messages or logs."""
        return (self._settings.git_token.get_secret_value(),)

    def remote_url(self) -> str:
        """Clone URL with credentials embedded."""
        return authenticated_url(
            self._settings.git_url,
            self._settings.git_username,
            self._settings.git_token.get_secret_value(),
        )

    @contextmanager
    def acquire(self) -> Iterator[Workspace]:
        """
        Clone the repository into a fresh temp dir and yield a Workspace.

        The directory is removed on every exit path: normal return, an
        exception raised by the caller inside the block, or a failed clone.

        Raises:
            SetupError: The temporary directory could not be created
            AuthError: The remote rejected the credentials
            GitError: Any other clone failure (network, bad URL, ...)
        """
        try:
            root = Path(tempfile.mkdtemp(prefix="mcp-deployer-"))
        except OSError as e:
            raise SetupError("failed to create temp dir", str(e)) from e

        log = logger.bind(workspace=str(root))
        repo: git.Repo | None = None
        try:
            log.debug("Cloning GitOps repository")
            try:
                repo = git.Repo.clone_from(self.remote_url(), root, env=GIT_ENV)
            except git.GitError as e:
                raise git_failure("failed to clone repository", e, self.secrets) from e
            repo.git.update_environment(**GIT_ENV)
            yield Workspace(root=root, repo=repo)
        finally:
            if repo is not None:
                repo.close()
            shutil.rmtree(root, ignore_errors=True)
            log.debug("Workspace removed")
