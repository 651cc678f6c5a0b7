# ABOUTME: FastMCP server initialization and main entry point
# ABOUTME: Registers the deploy, destroy, update and status tools with safety checks and auditing

"""MCP App Deployer - GitOps application lifecycle over MCP."""

from __future__ import annotations

import sys
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Annotated, Any, NoReturn

import structlog
from mcp.server.fastmcp import Context, FastMCP
from mcp.server.fastmcp.exceptions import ToolError
from pydantic import Field, ValidationError

from deployer_mcp.config import ServerSettings, load_settings
from deployer_mcp.deployer import Deployer
from deployer_mcp.utils.errors import DeployerError
from deployer_mcp.utils.logging import AuditLogger, configure_logging, set_correlation_id
from deployer_mcp.utils.safety import SafetyGuard, mask_secrets

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from deployer_mcp.utils.safety import OperationBlocked

MCPContext = Context[Any, Any]
logger = structlog.get_logger(__name__)

# Global state (initialized by initialize())
_settings: ServerSettings | None = None
_deployer: Deployer | None = None
_safety_guard: SafetyGuard | None = None
_audit_logger: AuditLogger | None = None


def initialize(settings: ServerSettings, deployer: Deployer | None = None) -> None:
    """Build the process-wide components from settings."""
    global _settings, _deployer, _safety_guard, _audit_logger

    _settings = settings
    _deployer = deployer or Deployer(settings)
    _safety_guard = SafetyGuard(settings.security)
    _audit_logger = AuditLogger(settings.security.audit_log)


@asynccontextmanager
async def lifespan(_server: FastMCP) -> AsyncIterator[dict[str, Any]]:
    """Manage server lifecycle: ensure components exist, log start and stop."""
    if _settings is None:
        initialize(load_settings())
    settings = get_settings()

    logger.info(
        "MCP App Deployer started",
        repository=settings.git_url,
        namespace=settings.namespace,
        domain=settings.domain,
        read_only=settings.security.read_only,
    )

    yield {"settings": settings}

    logger.info("MCP App Deployer stopped")


mcp = FastMCP("mcp-app-deployer", lifespan=lifespan)


def get_settings() -> ServerSettings:
    """Get server settings."""
    if not _settings:
        raise RuntimeError("Server not initialized")
    return _settings


def get_deployer() -> Deployer:
    """Get the deployer service."""
    if not _deployer:
        raise RuntimeError("Server not initialized")
    return _deployer


def get_safety_guard() -> SafetyGuard:
    """Get safety guard for permission checking."""
    if not _safety_guard:
        raise RuntimeError("Server not initialized")
    return _safety_guard


def get_audit_logger() -> AuditLogger:
    """Get audit logger for recording operations."""
    if not _audit_logger:
        raise RuntimeError("Server not initialized")
    return _audit_logger


# =============================================================================
# HELPERS
# =============================================================================


AppName = Annotated[
    str,
    Field(description="Application name (lowercase DNS label, e.g. 'checkout-svc')"),
]


def _start_call(ctx: MCPContext) -> None:
    set_correlation_id(str(ctx.request_id) if hasattr(ctx, "request_id") else "")


def _reject(action: str, target: str, blocked: OperationBlocked) -> NoReturn:
    get_audit_logger().log_blocked(action, target, blocked.reason)
    raise ToolError(blocked.format_message())


def _fail(action: str, target: str, error: DeployerError) -> NoReturn:
    """Audit a failed operation and surface it as an MCP error result."""
    settings = get_settings()
    message = str(error)
    if settings.security.mask_secrets:
        message = mask_secrets(message, (settings.git_token.get_secret_value(),))

    logger.warning("Operation failed", action=action, app=target, error=message)
    get_audit_logger().log_error(action, target, message)
    raise ToolError(message) from error


# =============================================================================
# WRITE OPERATIONS
# =============================================================================


@mcp.tool()
async def deploy(
    app_name: AppName,
    image: Annotated[str, Field(description="Container image reference, e.g. 'registry/checkout:1.2'")],
    ctx: MCPContext,
) -> str:
    """
    Deploy an application through GitOps.

    Writes a Deployment, Service and Ingress for the app plus an ArgoCD
    Application into the GitOps repository, commits and pushes. ArgoCD then
    syncs the app into the cluster. Deploying an app again with the same
    image changes nothing and creates no commit.
    """
    _start_call(ctx)

    blocked = get_safety_guard().check_write_operation("deploy")
    if blocked:
        _reject("deploy", app_name, blocked)

    try:
        result = await get_deployer().deploy(app_name, image)
    except DeployerError as e:
        _fail("deploy", app_name, e)

    get_audit_logger().log_write("deploy", app_name, result.outcome, result.details)
    return result.text


@mcp.tool()
async def destroy(app_name: AppName, ctx: MCPContext) -> str:
    """
    Destroy an application through GitOps.

    Removes the app's manifests and ArgoCD Application from the GitOps
    repository, commits and pushes. ArgoCD prunes the workload from the
    cluster. Destroying an app that is not deployed is reported, not an error.
    """
    _start_call(ctx)

    blocked = get_safety_guard().check_destructive_operation("destroy")
    if blocked:
        _reject("destroy", app_name, blocked)

    try:
        result = await get_deployer().destroy(app_name)
    except DeployerError as e:
        _fail("destroy", app_name, e)

    get_audit_logger().log_write("destroy", app_name, result.outcome, result.details)
    return result.text


@mcp.tool()
async def update(app_name: AppName, ctx: MCPContext) -> str:
    """
    Trigger a rolling restart of the app's Deployment.

    Talks to the cluster directly; the GitOps repository is not touched.
    Pods are replaced one by one, pulling the image again if its pull policy
    says so.
    """
    _start_call(ctx)

    blocked = get_safety_guard().check_write_operation("update")
    if blocked:
        _reject("update", app_name, blocked)

    try:
        result = await get_deployer().update(app_name)
    except DeployerError as e:
        _fail("update", app_name, e)

    get_audit_logger().log_write("update", app_name, result.outcome, result.details)
    return result.text


# =============================================================================
# READ OPERATIONS
# =============================================================================


@mcp.tool()
async def status(app_name: AppName, ctx: MCPContext) -> str:
    """
    Report an application's status from Git, ArgoCD and its ingress.

    Returns three lines, one per source. A failing source shows up as an
    error line; the other two are still reported.
    """
    _start_call(ctx)

    blocked = get_safety_guard().check_read_operation("status")
    if blocked:
        _reject("status", app_name, blocked)

    try:
        result = await get_deployer().status(app_name)
    except DeployerError as e:
        _fail("status", app_name, e)

    get_audit_logger().log_read("status", app_name)
    return result.text


# =============================================================================
# MCP RESOURCES
# =============================================================================


@mcp.resource("deployer://config")
async def get_config_resource() -> str:
    """Get the deployer configuration (secrets omitted)."""
    settings = get_settings()

    return (
        "Deployer Configuration:\n"
        f"  Repository: {settings.git_url}\n"
        f"  Application path: {settings.argocd_app_path}\n"
        f"  Manifest path: {settings.manifest_path}\n"
        f"  Namespace: {settings.namespace}\n"
        f"  ArgoCD namespace: {settings.argocd_namespace}\n"
        f"  Domain: {settings.domain}\n"
        f"  Ingress scheme: {settings.ingress_scheme}\n"
        f"  Kubeconfig: {settings.kubeconfig}"
    )


@mcp.resource("deployer://security")
async def get_security_resource() -> str:
    """Get current security settings."""
    sec = get_settings().security

    return (
        "Security Settings:\n"
        f"  Read-only mode: {sec.read_only}\n"
        f"  Destructive operations disabled: {sec.disable_destructive}\n"
        f"  Secret masking: {sec.mask_secrets}\n"
        f"  Audit log: {sec.audit_log or 'structured log'}\n"
        f"  Rate limit: {sec.rate_limit_calls} calls per {sec.rate_limit_window}s"
    )


# =============================================================================
# MAIN ENTRY POINT
# =============================================================================


def main() -> None:
    """Run the MCP App Deployer server."""
    configure_logging(level="INFO")

    try:
        settings = load_settings()
    except ValidationError as e:
        logger.error("Invalid configuration", errors=e.errors(include_url=False, include_input=False))
        sys.exit(1)

    configure_logging(level=settings.log_level)
    initialize(settings)
    logger.info("MCP App Deployer starting")

    try:
        mcp.run()
    except KeyboardInterrupt:
        logger.info("Server interrupted")
        sys.exit(0)
    except Exception as e:
        logger.error("Server error", error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
