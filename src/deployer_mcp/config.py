# ABOUTME: Configuration management for the MCP App Deployer
# ABOUTME: Reads cluster credentials, GitOps repository settings, and safety switches

"""
Configuration management using pydantic-settings.

=============================================================================
WHAT IS THIS FILE?
=============================================================================

Every component of the deployer needs to know WHERE things live:

1. The KUBERNETES CLUSTER (a kubeconfig file)
2. The GITOPS REPOSITORY that ArgoCD watches (URL + access token)
3. The LAYOUT inside that repository (where manifests and Applications go)
4. The DEFAULTS applied to every application (namespace, base domain)

This module reads those values once at startup, validates them, and freezes
them into a single ServerSettings object. That object is handed to every
component constructor. Nothing reads configuration from globals or from the
environment after startup.

=============================================================================
WHY FROZEN SETTINGS?
=============================================================================

A deploy call clones the repository, renders manifests, commits and pushes.
If the namespace or the repository URL could change halfway through, one
deploy could write manifests for one repository and an Application pointing
at another. Making the model frozen turns any such mutation into an error:

    settings.namespace = "other"   # raises pydantic.ValidationError

=============================================================================
ENVIRONMENT VARIABLE MAPPING
=============================================================================

Deployer settings (DEPLOYER_ prefix):
    DEPLOYER_KUBECONFIG        -> Path to kubeconfig (required)
    DEPLOYER_GIT_URL           -> GitOps repository URL (required)
    DEPLOYER_GIT_TOKEN         -> Access token for the repository (required)
    DEPLOYER_GIT_USERNAME      -> Username paired with the token (default: oauth2)
    DEPLOYER_NAMESPACE         -> Namespace for workloads (default: applications)
    DEPLOYER_DOMAIN            -> Base domain for ingress hosts (default: tykus.net)
    DEPLOYER_ARGOCD_APP_PATH   -> Repo path for Application descriptors (default: argocd-apps)
    DEPLOYER_MANIFEST_PATH     -> Repo path for workload manifests (default: manifests)
    DEPLOYER_ARGOCD_NAMESPACE  -> Namespace ArgoCD runs in (default: argocd)

Safety settings (MCP_ prefix):
    MCP_READ_ONLY           -> Block deploy/destroy/update (default: false)
    MCP_DISABLE_DESTRUCTIVE -> Block destroy (default: false)
    MCP_AUDIT_LOG           -> Path to a JSON-lines audit log
    MCP_MASK_SECRETS        -> Scrub tokens from tool output (default: true)
    MCP_RATE_LIMIT_CALLS    -> Max calls per operation per window (default: 30)
    MCP_RATE_LIMIT_WINDOW   -> Rate limit window in seconds (default: 60)
"""

from __future__ import annotations

import os
from pathlib import Path  # noqa: TC003 - Required at runtime for Pydantic
from typing import Annotated

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# =============================================================================
# SECURITY SETTINGS
# =============================================================================


class SecuritySettings(BaseSettings):
    """
    Safety switches for the deployer tools.

    Unlike a read-mostly dashboard, the whole point of this server is to
    write: deploy and destroy push commits, update restarts pods. The
    defaults therefore leave writes ENABLED and rely on the operator to
    opt into read-only mode for environments where an assistant should
    only inspect status.

    Layers:
        read_only            -> deploy, destroy and update are refused
        disable_destructive  -> destroy is refused, deploy/update still work
        rate limiting        -> a runaway loop cannot push hundreds of commits
        secret masking       -> Git errors never echo the access token back
    """

    model_config = SettingsConfigDict(env_prefix="MCP_", frozen=True)

    read_only: bool = Field(
        default=False,
        description="Block deploy, destroy and update when true",
    )

    disable_destructive: bool = Field(
        default=False,
        description="Block destroy when true",
    )

    audit_log: Path | None = Field(
        default=None,
        description="Path to audit log file",
    )
    # When set, each operation appends one JSON object per line.
    # When None, audit entries go through structlog like every other log line.

    mask_secrets: bool = Field(
        default=True,
        description="Mask tokens and credentials in tool output",
    )
    # GitPython error messages include the full command line, and the clone
    # URL carries the token as userinfo. Masking keeps it out of the reply.

    rate_limit_calls: int = Field(
        default=30,
        ge=1,
        description="Maximum calls per operation in the rate limit window",
    )

    rate_limit_window: int = Field(
        default=60,
        ge=1,
        description="Rate limit window in seconds",
    )


# =============================================================================
# MAIN SERVER SETTINGS
# =============================================================================


def _clean_repo_path(value: str) -> str:
    """Normalize a path inside the GitOps repository to 'a/b' form."""
    cleaned = value.strip().replace("\\", "/").strip("/")
    if not cleaned:
        raise ValueError("repository path must not be empty")
    if any(part in ("", ".", "..") for part in cleaned.split("/")):
        raise ValueError(f"repository path '{value}' must not contain empty, '.' or '..' segments")
    return cleaned


class ServerSettings(BaseSettings):
    """
    Immutable process-wide configuration.

    USAGE:
    ------
        settings = load_settings()
        settings.descriptor_path("checkout-svc")   # "argocd-apps/checkout-svc.yaml"
        settings.app_host("checkout-svc")          # "checkout-svc.tykus.net"

    Three values have no default: kubeconfig, git_url and git_token. If any
    is missing, constructing the model raises ValidationError and the server
    refuses to start.
    """

    model_config = SettingsConfigDict(
        env_prefix="DEPLOYER_",
        env_nested_delimiter="__",
        # DEPLOYER_SECURITY__READ_ONLY=true also works, next to MCP_READ_ONLY
        extra="ignore",
        frozen=True,
    )

    # -------------------------------------------------------------------------
    # CLUSTER
    # -------------------------------------------------------------------------

    kubeconfig: Path = Field(description="Path to kubeconfig file")

    namespace: str = Field(
        default="applications",
        description="Kubernetes namespace for application workloads",
    )

    argocd_namespace: str = Field(
        default="argocd",
        description="Namespace holding ArgoCD Application resources",
    )
    # ArgoCD is conventionally installed in "argocd". Both the Application
    # descriptor we render and the status reader use this value, so they
    # always agree.

    # -------------------------------------------------------------------------
    # GITOPS REPOSITORY
    # -------------------------------------------------------------------------

    git_url: str = Field(description="GitOps repository URL (e.g. https://github.com/user/repo)")

    git_token: SecretStr = Field(description="Access token for the GitOps repository")
    # The token is sent as the password of HTTP basic auth. SecretStr keeps it
    # out of repr() and logs; use get_secret_value() where it is really needed.

    git_username: str = Field(
        default="oauth2",
        description="Username paired with the access token",
    )
    # GitHub and GitLab both accept any username when the password is a token.
    # "oauth2" is the conventional placeholder.

    argocd_app_path: str = Field(
        default="argocd-apps",
        description="Path in repo for ArgoCD Application descriptors",
    )

    manifest_path: str = Field(
        default="manifests",
        description="Path in repo for Kubernetes manifests",
    )

    commit_author_name: str = Field(default="MCP App Deployer")
    commit_author_email: str = Field(default="mcp-deployer@bot.local")

    # -------------------------------------------------------------------------
    # APPLICATION DEFAULTS
    # -------------------------------------------------------------------------

    domain: str = Field(
        default="tykus.net",
        description="Base domain for ingress hosts",
    )

    container_port: int = Field(
        default=8080,
        ge=1,
        le=65535,
        description="Port the application container listens on",
    )

    ingress_scheme: Annotated[str, Field(pattern=r"^https?$")] = Field(
        default="http",
        description="Scheme used when probing the ingress host",
    )

    probe_timeout: float = Field(
        default=5.0,
        gt=0,
        description="Timeout in seconds for the ingress reachability probe",
    )

    # -------------------------------------------------------------------------
    # LOGGING
    # -------------------------------------------------------------------------

    log_level: Annotated[str, Field(pattern=r"^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")] = Field(
        default="INFO",
        description="Logging level",
    )

    security: SecuritySettings = Field(default_factory=SecuritySettings)

    # -------------------------------------------------------------------------
    # VALIDATORS
    # -------------------------------------------------------------------------

    @field_validator("kubeconfig")
    @classmethod
    def validate_kubeconfig(cls, v: Path) -> Path:
        """Expand '~' so DEPLOYER_KUBECONFIG=~/.kube/config works."""
        return v.expanduser()

    @field_validator("git_url")
    @classmethod
    def validate_git_url(cls, v: str) -> str:
        """Reject an empty URL and drop trailing slashes."""
        v = v.strip().rstrip("/")
        if not v:
            raise ValueError("git_url must not be empty")
        return v

    @field_validator("git_token")
    @classmethod
    def validate_git_token(cls, v: SecretStr) -> SecretStr:
        """An empty token would make every clone fail with a confusing auth error."""
        if not v.get_secret_value().strip():
            raise ValueError("git_token must not be empty")
        return v

    @field_validator("argocd_app_path", "manifest_path")
    @classmethod
    def validate_repo_path(cls, v: str) -> str:
        """
        Normalize repository paths.

        "/manifests/" and "manifests" must produce the same file layout, and
        a value like "../elsewhere" must never let a deploy write outside
        the cloned working copy.
        """
        return _clean_repo_path(v)

    @field_validator("domain")
    @classmethod
    def validate_domain(cls, v: str) -> str:
        """Lowercase the domain and strip surrounding dots."""
        v = v.strip().strip(".").lower()
        if not v:
            raise ValueError("domain must not be empty")
        return v

    # -------------------------------------------------------------------------
    # DERIVED VALUES
    # -------------------------------------------------------------------------

    def descriptor_path(self, app_name: str) -> str:
        """
        Repository path of the ArgoCD Application descriptor for an app.

        This is the single key shared by the deploy/destroy flow and the
        repository status reader, so it is computed in exactly one place.
        """
        return f"{self.argocd_app_path}/{app_name}.yaml"

    def manifest_dir(self, app_name: str) -> str:
        """Repository directory holding the workload manifests for an app."""
        return f"{self.manifest_path}/{app_name}"

    def app_host(self, app_name: str) -> str:
        """Externally routable hostname of an app."""
        return f"{app_name}.{self.domain}"

    def app_url(self, app_name: str) -> str:
        """URL probed by the reachability check."""
        return f"{self.ingress_scheme}://{self.app_host(app_name)}"


# =============================================================================
# SETTINGS LOADER
# =============================================================================


def load_settings() -> ServerSettings:
    """
    Load settings from the environment with validation.

    If DEPLOYER_ENV_FILE is set, variables are also read from that file,
    which is handy for local development:

        DEPLOYER_KUBECONFIG=~/.kube/config
        DEPLOYER_GIT_URL=https://github.com/me/gitops
        DEPLOYER_GIT_TOKEN=ghp_xxx

    Raises:
        pydantic.ValidationError: If a required value is missing or invalid.
    """
    return ServerSettings(
        _env_file=os.environ.get("DEPLOYER_ENV_FILE"),
    )
