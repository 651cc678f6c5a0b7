# ABOUTME: Bounded-timeout HTTP probe of an application's ingress URL
# ABOUTME: Any 2xx/3xx answer counts as reachable; transport failures count as unreachable

"""
Ingress reachability.

One GET, no redirect following, fixed timeout:

    200-399   reachable (a redirect to a login page still means the ingress
              routed the request)
    400+      unreachable
    DNS failure, refused connection, timeout, malformed URL
              unreachable, never an exception
"""

from __future__ import annotations

import httpx
import structlog

from deployer_mcp.status.findings import CheckState, Finding

logger = structlog.get_logger(__name__)

DEFAULT_PROBE_TIMEOUT = 5.0


class ReachabilityProber:
    CHECK = "ingress"

    def __init__(self, timeout: float = DEFAULT_PROBE_TIMEOUT) -> None:
        self._timeout = timeout

    async def probe(self, url: str) -> bool:
        """Return True iff url answers with a status in [200, 400)."""
        try:
            async with httpx.AsyncClient(timeout=self._timeout, follow_redirects=False) as client:
                # Only the status line matters; the body is never read
                async with client.stream("GET", url) as response:
                    status_code = response.status_code
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.debug("Ingress probe failed", url=url, error=str(e))
            return False
        return 200 <= status_code < 400

    async def check(self, url: str) -> Finding:
        if await self.probe(url):
            return Finding(self.CHECK, CheckState.PRESENT, f"Ingress reachable: {url}", {"url": url})
        return Finding(self.CHECK, CheckState.ABSENT, f"Ingress unreachable: {url}", {"url": url})
