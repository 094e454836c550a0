# ABOUTME: Structured logging with run IDs for the release-sync job
# ABOUTME: Implements per-step audit logging on top of structlog

"""
Structured logging with run IDs and audit trails.

=============================================================================
WHAT IS THIS FILE?
=============================================================================

This module provides the job's observability:

1. STRUCTURED LOGGING: Every log line is an event name plus key/value pairs,
   rendered as colored text on a terminal or JSON for log aggregators.

2. RUN IDs: One identifier per job run, attached to every line. In GitHub
   Actions this is GITHUB_RUN_ID, so a log line can be traced back to the
   workflow run that produced it.

3. AUDIT LOGGING: One record per job step (tag generated, guard decision,
   image pushed, manifest committed) with its outcome.

Example output (JSON mode):
    {"event": "image_pushed", "reference": "ghcr.io/alice/myapp:abc1234-...",
     "level": "info", "timestamp": "...", "run_id": "8213374411"}

=============================================================================
WHY A CONTEXT VARIABLE?
=============================================================================

The run ID is set once in main() and read by a structlog processor. Using a
ContextVar instead of a module global keeps tests independent: each test can
set its own ID without leaking into the next.
"""

from __future__ import annotations

import json
import logging
import uuid
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from collections.abc import MutableMapping
    from pathlib import Path


# =============================================================================
# RUN ID MANAGEMENT
# =============================================================================

run_id: ContextVar[str] = ContextVar("run_id", default="")


def get_run_id() -> str:
    """
    Get current run ID or generate a new one.

    Outside CI there is no GITHUB_RUN_ID, so the first caller generates an
    8-character ID from a UUID4 and stores it for the rest of the run.

    Returns:
        Run ID string.

    Example:
        >>> get_run_id()
        'a3f8c2d1'
    """
    rid = run_id.get()
    if not rid:
        rid = str(uuid.uuid4())[:8]
        run_id.set(rid)
    return rid


def set_run_id(rid: str) -> None:
    """
    Set run ID for the current context.

    Args:
        rid: The run ID. An empty string makes get_run_id generate one.
    """
    run_id.set(rid)


def add_run_id(
    logger: structlog.types.WrappedLogger,  # noqa: ARG001 - Required by structlog Processor API
    method_name: str,  # noqa: ARG001 - Required by structlog Processor API
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """
    Add the run ID to log events.

    This is a STRUCTLOG PROCESSOR: it receives the event dictionary of every
    log call and returns it enriched with a "run_id" field.
    """
    event_dict["run_id"] = get_run_id()
    return event_dict


# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
) -> None:
    """
    Configure structured logging.

    Call it once at startup; calling it again reconfigures (e.g. after the
    CLI overrides the level).

    PROCESSOR PIPELINE:
    -------------------
    1. merge_contextvars: Adds any bound context variables
    2. add_log_level: Adds "level" field
    3. TimeStamper: Adds ISO-format timestamp
    4. add_run_id: Adds the run ID
    5. Renderer: JSON (json_output=True) or colored console text

    Args:
        level: Logging level name ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL").
        json_output: If True, output JSON lines instead of console text.
    """
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        add_run_id,
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


# =============================================================================
# AUDIT LOGGER
# =============================================================================


class AuditLogger:
    """
    Audit logger recording the outcome of every job step.

    Every record has:
    - timestamp: When it happened (UTC ISO 8601)
    - run_id: Which job run
    - action: Step name ("generate_tag", "loop_guard", "publish_image", ...)
    - target: What the step acted on (image reference, manifest path, commit)
    - result: "success", "skipped", "unchanged" or "error"
    - details: Additional context (optional)

    With a log path, records are appended as JSON lines; without one they go
    through structlog under the "audit" logger.

    EXAMPLE:
    --------
    {"timestamp": "2025-01-01T00:00:00+00:00", "run_id": "8213374411",
     "action": "update_manifest", "target": "manifests/deployment.yaml",
     "result": "success", "details": {"commit": "9f1c2ab"}}
    """

    def __init__(self, log_path: Path | None = None) -> None:
        """
        Initialize audit logger.

        Args:
            log_path: File to append JSON lines to, or None for structlog.
                      The parent directory must exist; the file is never
                      truncated.
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
        """Write one audit record."""
        entry: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "run_id": get_run_id(),
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

    def log_step(
        self,
        action: str,
        target: str,
        result: str = "success",
        details: dict[str, Any] | None = None,
    ) -> None:
        """Log a completed step."""
        self.log(action, target, result, details)

    def log_skipped(self, action: str, target: str, reason: str) -> None:
        """Log a run stopped by the loop guard."""
        self.log(action, target, "skipped", {"reason": reason})

    def log_error(self, action: str, target: str, error: str) -> None:
        """Log a failed step. The error text must already be masked."""
        self.log(action, target, "error", {"error": error})
