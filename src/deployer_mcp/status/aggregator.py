# ABOUTME: Runs the Git, ArgoCD and ingress checks concurrently for the status tool
# ABOUTME: Collects every outcome, failures included, into one fixed-order report

"""
Status aggregation.

Git, the ArgoCD controller and the ingress are three independent and
eventually-consistent views of one application. Right after a deploy, Git
already has the descriptor while ArgoCD has not synced and the ingress does
not answer yet. The report shows all three side by side:

    Status for application: checkout-svc
    [OK] Manifests present in Git
    [?] ArgoCD Application found but status unknown
    [!] Ingress unreachable: http://checkout-svc.tykus.net

The checks run concurrently. The two blocking readers go to worker threads,
the HTTP probe runs on the event loop:

    asyncio.gather(
        to_thread(git.read),        ---+
        to_thread(argocd.read),     ---+--> results in argument order
        prober.check(url),          ---+
        return_exceptions=True,
    )

Results are placed by position, never by completion order. The readers do
not raise for expected failures; anything unexpected that escapes one check
is reported on that check's line instead of failing the whole report.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

from deployer_mcp.status.findings import CheckState, Finding, StatusReport

if TYPE_CHECKING:
    from deployer_mcp.config import ServerSettings
    from deployer_mcp.status.reachability import ReachabilityProber
    from deployer_mcp.status.readers import ArgoStatusReader, GitPresenceReader

logger = structlog.get_logger(__name__)

_ERROR_PREFIXES = {
    "git": "Error checking Git",
    "argocd": "Error checking ArgoCD",
    "ingress": "Error checking ingress",
}


def _as_finding(check: str, outcome: Finding | BaseException) -> Finding:
    if isinstance(outcome, Finding):
        return outcome
    logger.error("Status check raised unexpectedly", check=check, error=repr(outcome))
    return Finding(check, CheckState.ERROR, f"{_ERROR_PREFIXES[check]}: {outcome}")


class StatusAggregator:
    def __init__(
        self,
        settings: ServerSettings,
        git_reader: GitPresenceReader,
        argo_reader: ArgoStatusReader,
        prober: ReachabilityProber,
    ) -> None:
        self._settings = settings
        self._git_reader = git_reader
        self._argo_reader = argo_reader
        self._prober = prober

    async def collect(self, app_name: str) -> StatusReport:
        """Run the three checks and assemble the report."""
        url = self._settings.app_url(app_name)

        git_outcome, argo_outcome, ingress_outcome = await asyncio.gather(
            asyncio.to_thread(self._git_reader.read, app_name),
            asyncio.to_thread(self._argo_reader.read, app_name),
            self._prober.check(url),
            return_exceptions=True,
        )

        for outcome in (git_outcome, argo_outcome, ingress_outcome):
            # Cancellation of the status call itself must propagate
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome

        report = StatusReport(
            app_name=app_name,
            git=_as_finding("git", git_outcome),
            argocd=_as_finding("argocd", argo_outcome),
            ingress=_as_finding("ingress", ingress_outcome),
        )
        logger.info("Status collected", app=app_name, **report.as_dict())
        return report
