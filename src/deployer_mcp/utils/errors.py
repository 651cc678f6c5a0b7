# ABOUTME: Error taxonomy for deploy, destroy, update and status operations
# ABOUTME: Wraps Git, Kubernetes and template failures into one exception family

"""
Structured deployer errors.

Each component translates the exceptions of the library it wraps (GitPython,
the Kubernetes client, Jinja2, PyYAML) into one of these classes. Callers
then only need to catch DeployerError:

    try:
        result = await deployer.deploy("checkout-svc", "registry/checkout:1.2")
    except DeployerError as e:
        print(e)   # "Git error: failed to push changes - rejected (fetch first)"

The `kind` prefix tells a human (or an assistant) which subsystem failed
without reading a traceback.
"""

from __future__ import annotations


class DeployerError(Exception):
    """Base class for every failure surfaced by a deployer operation."""

    kind = "Deployer error"

    def __init__(self, message: str, cause: str | None = None) -> None:
        """
        Initialize error.

        Args:
            message: What the deployer was doing when it failed
            cause: Underlying library error text (optional)
        """
        self.message = message
        self.cause = cause
        super().__init__(str(self))

    def __str__(self) -> str:
        base = f"{self.kind}: {self.message}"
        if self.cause:
            base += f" - {self.cause}"
        return base


class SetupError(DeployerError):
    """Workspace creation failed (temp dir, disk)."""

    kind = "Setup error"


class AuthError(DeployerError):
    """Credentials rejected by the Git remote or the cluster."""

    kind = "Authentication error"


class GitError(DeployerError):
    """Clone, commit or push failure."""

    kind = "Git error"


class RenderError(DeployerError):
    """Template rendering or rendered-YAML validation failure."""

    kind = "Render error"


class K8sError(DeployerError):
    """Kubernetes API or client configuration failure."""

    kind = "Kubernetes error"


class NotFoundError(DeployerError):
    """Resource absent. A normal finding for status, fatal for update."""

    kind = "Not found"


class InvalidApplicationError(DeployerError):
    """Application name or image rejected before any remote call."""

    kind = "Invalid application"
