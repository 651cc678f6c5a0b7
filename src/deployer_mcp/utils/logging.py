# ABOUTME: Structured logging with correlation IDs for the MCP App Deployer
# ABOUTME: Configures structlog on stderr and records an audit trail of deploy operations

"""
Structured logging with correlation IDs and audit trails.

=============================================================================
WHAT IS THIS FILE?
=============================================================================

1. STRUCTURED LOGGING: every log line is an event name plus key/value pairs,
   rendered as colored text for humans or JSON for log shippers.

2. CORRELATION IDs: one deploy call clones a repository, renders four files,
   commits and pushes. Tagging every line with the id of the MCP request that
   caused it lets you pull one deploy out of an interleaved log:

       jq 'select(.correlation_id == "a1b2c3d4")'

3. AUDIT LOGGING: one record per tool call saying who asked for what and how
   it ended (pushed, noop, blocked, error).

=============================================================================
WHY STDERR?
=============================================================================

The server speaks MCP over stdio: stdout carries JSON-RPC frames to the
client. A single stray log line on stdout corrupts the protocol stream, so
all logging goes to stderr.

=============================================================================
CONTEXT VARIABLES
=============================================================================

Tool calls run concurrently on one event loop. A plain global would leak the
correlation id of one call into another; a ContextVar gives each asyncio task
its own value. Worker threads started with asyncio.to_thread() copy the
current context, so Git and Kubernetes calls log with the right id too.
"""

from __future__ import annotations

import json
import logging
import sys
import uuid
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from collections.abc import MutableMapping
    from pathlib import Path


# =============================================================================
# CORRELATION ID MANAGEMENT
# =============================================================================

correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")


def get_correlation_id() -> str:
    """
    Get current correlation ID or generate a new one.

    Code running outside a tool call (startup, shutdown) still gets an id,
    so every log line can be correlated.

    Returns:
        Correlation ID string (8 hex characters when generated).
    """
    cid = correlation_id.get()
    if not cid:
        cid = uuid.uuid4().hex[:8]
        correlation_id.set(cid)
    return cid


def set_correlation_id(cid: str) -> None:
    """
    Set correlation ID for the current context.

    Called at the start of each tool with the MCP request id. An empty
    string makes the next get_correlation_id() generate a fresh id.
    """
    correlation_id.set(cid)


def add_correlation_id(
    logger: structlog.types.WrappedLogger,  # noqa: ARG001 - Required by structlog Processor API
    method_name: str,  # noqa: ARG001 - Required by structlog Processor API
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """
    Structlog processor that stamps the correlation ID on every event.

    Processors receive (logger, method_name, event_dict) and return the
    event_dict, possibly enriched. Only event_dict is used here.
    """
    event_dict["correlation_id"] = get_correlation_id()
    return event_dict


# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
) -> None:
    """
    Configure structured logging. Call once at startup.

    Pipeline:
        merge_contextvars -> add_log_level -> TimeStamper -> add_correlation_id
        -> JSONRenderer | ConsoleRenderer

    Args:
        level: "DEBUG", "INFO", "WARNING", "ERROR" or "CRITICAL"
        json_output: JSON lines when True, plain console output otherwise
    """
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        add_correlation_id,
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.INFO)
        ),
        context_class=dict,
        # stdout belongs to the MCP stdio transport
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


# =============================================================================
# AUDIT LOGGER
# =============================================================================


class AuditLogger:
    """
    Audit logger recording every deployer operation.

    Each entry records:
        timestamp       UTC ISO 8601
        correlation_id  MCP request the entry belongs to
        action          "deploy", "destroy", "update" or "status"
        target          application name
        result          "success", "pushed", "noop", "blocked" or "error"
        details         optional dict (image, commit, error text)

    Example file entry:
        {"timestamp": "2026-01-15T10:30:00+00:00", "correlation_id": "a1b2c3d4",
         "action": "deploy", "target": "checkout-svc", "result": "pushed",
         "details": {"image": "registry/checkout:1.2", "commit": "9f1c2e3a"}}
    """

    def __init__(self, log_path: Path | None = None) -> None:
        """
        Initialize audit logger.

        Args:
            log_path: JSON-lines file to append to, or None to log through
                      structlog. The parent directory must exist.
        """
        self._log_path = log_path
        self._logger = structlog.get_logger("audit")

    def log(
        self,
        action: str,
        target: str,
        result: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Record one auditable action."""
        entry: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "correlation_id": get_correlation_id(),
            "action": action,
            "target": target,
            "result": result,
        }
        if details:
            entry["details"] = details

        if self._log_path:
            with self._log_path.open("a") as f:
                f.write(json.dumps(entry) + "\n")
        else:
            self._logger.info(
                "audit",
                action=action,
                target=target,
                result=result,
                details=details,
            )

    def log_read(self, action: str, target: str) -> None:
        """Record a successful read (status)."""
        self.log(action, target, "success")

    def log_write(
        self,
        action: str,
        target: str,
        result: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Record a write operation.

        result is the operation outcome: "pushed" when a commit reached the
        remote, "noop" when there was nothing to change, "success" for a
        rolling restart.
        """
        self.log(action, target, result, details)

    def log_blocked(self, action: str, target: str, reason: str) -> None:
        """Record an operation refused by the safety guard."""
        self.log(action, target, "blocked", {"reason": reason})

    def log_error(self, action: str, target: str, error: str) -> None:
        """Record a failed operation. error must already be masked."""
        self.log(action, target, "error", {"error": error})
