# ABOUTME: Value objects for the status report: one Finding per check
# ABOUTME: Renders the fixed-order, marker-prefixed text returned by the status tool

"""
Status findings.

Each of the three status checks produces exactly one Finding. A finding has
a state, which picks the line marker, and a human message:

    [OK]     present / healthy / reachable
    [!]      absent / unreachable
    [?]      exists but state unknown
    [ERROR]  the check itself failed

The report always renders the header plus three lines in the same order
(Git, ArgoCD, ingress), whichever check finished first.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class CheckState(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"
    UNKNOWN = "unknown"
    ERROR = "error"

    @property
    def marker(self) -> str:
        return _MARKERS[self]


_MARKERS = {
    CheckState.PRESENT: "[OK]",
    CheckState.ABSENT: "[!]",
    CheckState.UNKNOWN: "[?]",
    CheckState.ERROR: "[ERROR]",
}


@dataclass(frozen=True)
class Finding:
    """Outcome of one status check."""

    check: str
    state: CheckState
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def render(self) -> str:
        return f"{self.state.marker} {self.message}"


@dataclass(frozen=True)
class StatusReport:
    """Header plus the Git, ArgoCD and ingress findings, in that order."""

    app_name: str
    git: Finding
    argocd: Finding
    ingress: Finding

    @property
    def findings(self) -> tuple[Finding, Finding, Finding]:
        return (self.git, self.argocd, self.ingress)

    @property
    def lines(self) -> list[str]:
        return [f"Status for application: {self.app_name}"] + [f.render() for f in self.findings]

    def render(self) -> str:
        return "\n".join(self.lines)

    def as_dict(self) -> dict[str, Any]:
        """Machine-readable form, used for audit details."""
        return {f.check: f.state.value for f in self.findings}
