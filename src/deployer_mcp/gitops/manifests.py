# ABOUTME: Renders Kubernetes manifests and the ArgoCD Application for one app
# ABOUTME: Writes or removes them in a workspace and stages the resulting change set

"""
Manifest materialization.

A deployed application is four files in the GitOps repository:

    <manifest_path>/<name>/deployment.yaml
    <manifest_path>/<name>/service.yaml
    <manifest_path>/<name>/ingress.yaml
    <argocd_app_path>/<name>.yaml        <- ArgoCD Application descriptor

The descriptor points ArgoCD at the manifest directory; ArgoCD then syncs
the three workload manifests into the cluster. Deploying writes all four,
destroying deletes all four, and ArgoCD (with automated prune) removes the
workload once the descriptor is gone.

Templates live in the package's templates/ directory and are rendered with
Jinja2 in strict mode: a template referencing a parameter we did not pass
fails instead of silently producing an empty field.
"""

from __future__ import annotations

import re
import shutil
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import git
import jinja2
import structlog
import yaml
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from deployer_mcp.gitops.workspace import git_failure
from deployer_mcp.utils.errors import InvalidApplicationError, RenderError, SetupError

if TYPE_CHECKING:
    from deployer_mcp.config import ServerSettings
    from deployer_mcp.gitops.workspace import Workspace

logger = structlog.get_logger(__name__)

MANIFEST_TEMPLATES = ("deployment.yaml", "service.yaml", "ingress.yaml")
APPLICATION_TEMPLATE = "application.yaml"

# RFC 1123 label: used as Kubernetes object name AND as the first DNS label
# of the ingress host, so it has to satisfy both.
DNS_LABEL = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")
DNS_LABEL_MAX = 63


# =============================================================================
# APPLICATION IDENTITY
# =============================================================================


def validate_app_name(name: str) -> str:
    """Return name if it is a valid RFC 1123 label, raise ValueError otherwise."""
    if not name:
        raise ValueError("application name must not be empty")
    if len(name) > DNS_LABEL_MAX:
        raise ValueError(f"application name must be at most {DNS_LABEL_MAX} characters")
    if not DNS_LABEL.match(name):
        raise ValueError(
            "application name must consist of lowercase alphanumeric characters or '-', "
            "and must start and end with an alphanumeric character"
        )
    return name


class AppSpec(BaseModel):
    """Identity and parameters of one application."""

    model_config = ConfigDict(frozen=True)

    name: str
    image: str
    namespace: str
    domain: str

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return validate_app_name(v)

    @field_validator("image")
    @classmethod
    def validate_image(cls, v: str) -> str:
        # The reference is opaque, but it is interpolated into YAML unquoted
        if not v or any(ch.isspace() for ch in v):
            raise ValueError("image must be a non-empty reference without whitespace")
        return v

    @property
    def host(self) -> str:
        return f"{self.name}.{self.domain}"

    @classmethod
    def build(cls, settings: ServerSettings, name: str, image: str) -> AppSpec:
        """Create an AppSpec with the process-wide namespace and domain.

        Raises:
            InvalidApplicationError: name or image rejected
        """
        try:
            return cls(name=name, image=image, namespace=settings.namespace, domain=settings.domain)
        except ValidationError as e:
            reasons = "; ".join(err["msg"] for err in e.errors())
            raise InvalidApplicationError(f"cannot deploy '{name}'", reasons) from e


# =============================================================================
# ARTIFACTS AND CHANGE SETS
# =============================================================================


@dataclass(frozen=True)
class Artifact:
    """One rendered file: repository-relative path and content."""

    path: str
    content: str


@dataclass
class ChangeSet:
    """Paths staged in a workspace by one materialization."""

    additions: list[str] = field(default_factory=list)
    removals: list[str] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not self.additions and not self.removals


# =============================================================================
# MATERIALIZER
# =============================================================================


class ManifestMaterializer:
    """Renders an application's artifact set and applies it to a workspace."""

    def __init__(self, settings: ServerSettings, environment: jinja2.Environment | None = None) -> None:
        """
        Args:
            settings: Immutable server settings (paths, repo URL, port)
            environment: Jinja2 environment override, used by tests to inject
                         templates; defaults to the packaged templates
        """
        self._settings = settings
        self._env = environment or jinja2.Environment(
            loader=jinja2.PackageLoader("deployer_mcp", "templates"),
            undefined=jinja2.StrictUndefined,
            keep_trailing_newline=True,
            autoescape=False,
        )

    def template_context(self, app: AppSpec) -> dict[str, object]:
        """Parameters available to every template."""
        return {
            "name": app.name,
            "image": app.image,
            "namespace": app.namespace,
            "domain": app.domain,
            "host": app.host,
            "repo_url": self._settings.git_url,
            "manifest_path": self._settings.manifest_path,
            "manifest_dir": self._settings.manifest_dir(app.name),
            "argocd_namespace": self._settings.argocd_namespace,
            "container_port": self._settings.container_port,
        }

    def _render_one(self, template_name: str, context: dict[str, object]) -> str:
        try:
            content = self._env.get_template(template_name).render(context)
        except jinja2.TemplateError as e:
            raise RenderError(f"failed to render template {template_name}", str(e)) from e

        try:
            document = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise RenderError(f"template {template_name} produced invalid YAML", str(e)) from e
        if not isinstance(document, dict) or "kind" not in document:
            raise RenderError(f"template {template_name} did not produce a Kubernetes object")
        # Names like "123" or "no" turn into numbers and booleans if left unquoted
        rendered_name = (document.get("metadata") or {}).get("name")
        if rendered_name != context["name"]:
            raise RenderError(
                f"template {template_name} rendered metadata.name as {rendered_name!r}",
                f"expected the string {context['name']!r}",
            )
        return content

    def render(self, app: AppSpec) -> list[Artifact]:
        """
        Render the desired-state artifact set.

        Order is fixed: deployment, service, ingress, then the Application
        descriptor.

        Raises:
            RenderError: template failure or invalid rendered YAML
        """
        context = self.template_context(app)
        manifest_dir = self._settings.manifest_dir(app.name)

        artifacts = [
            Artifact(f"{manifest_dir}/{template}", self._render_one(template, context))
            for template in MANIFEST_TEMPLATES
        ]
        artifacts.append(
            Artifact(
                self._settings.descriptor_path(app.name),
                self._render_one(APPLICATION_TEMPLATE, context),
            )
        )
        return artifacts

    def materialize_deploy(self, workspace: Workspace, app: AppSpec) -> ChangeSet:
        """
        Write the artifact set into the workspace and stage each file.

        Everything is rendered before the first write; a write or staging
        failure can still leave earlier files behind, which is harmless
        because the workspace is discarded without pushing.
        """
        artifacts = self.render(app)
        changes = ChangeSet()

        for artifact in artifacts:
            target = workspace.path(artifact.path)
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_text(artifact.content, encoding="utf-8")
            except OSError as e:
                raise SetupError(f"failed to write {artifact.path}", str(e)) from e
            changes.additions.append(artifact.path)

        try:
            workspace.repo.index.add(changes.additions)
        except (git.GitError, OSError) as e:
            raise git_failure("failed to stage manifests", e) from e

        logger.debug("Staged deploy artifacts", app=app.name, paths=changes.additions)
        return changes

    def materialize_destroy(self, workspace: Workspace, name: str) -> ChangeSet:
        """
        Delete an application's files from the workspace and stage the removal.

        Both the manifest directory and the descriptor may already be absent;
        that is not an error. Removals are staged by re-staging the whole
        working tree ('git add --all'), which records deleted directories
        reliably.
        """
        changes = ChangeSet()

        manifest_dir = self._settings.manifest_dir(name)
        descriptor = self._settings.descriptor_path(name)

        try:
            dir_path = workspace.path(manifest_dir)
            if dir_path.is_dir():
                shutil.rmtree(dir_path)
                changes.removals.append(manifest_dir)

            descriptor_path = workspace.path(descriptor)
            if descriptor_path.exists():
                descriptor_path.unlink()
                changes.removals.append(descriptor)
        except OSError as e:
            raise SetupError(f"failed to remove files for {name}", str(e)) from e

        try:
            workspace.repo.git.add(all=True)
        except git.GitError as e:
            raise git_failure("failed to stage changes", e) from e

        logger.debug("Staged destroy removals", app=name, paths=changes.removals)
        return changes
