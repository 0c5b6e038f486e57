"""
Audit and security events for pull/push operations.

Every operation emits a start event and a final security event with its
outcome and duration. Events go to the ``gitsecrets.audit`` logger and,
when an audit log path is configured, are appended as one JSON line
each so the file stays append-only and machine-parseable.

Detail values never carry secret material: anything whose key or value
mentions a password, key, secret or token is replaced with ``[HIDDEN]``,
and long values are truncated.
"""

from __future__ import annotations

import logging
import re
import socket
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from pydantic import BaseModel, Field

logger = logging.getLogger("gitsecrets.audit")

HIDDEN = "[HIDDEN]"
MAX_VALUE_LENGTH = 50

_SENSITIVE_RE = re.compile(r"password|key|secret|token", re.IGNORECASE)

RESULT_SUCCESS = "success"
RESULT_FAILURE = "failure"
RESULT_WARNING = "warning"


class AuditEntry(BaseModel):
    """A single structured audit record."""

    timestamp: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    operation: str
    result: Optional[str] = None
    duration: Optional[float] = None
    host: str = Field(default_factory=socket.gethostname)
    details: dict[str, Any] = Field(default_factory=dict)


def sanitize_value(key: str, value: Any) -> Any:
    """Mask or shorten one detail value before it is recorded."""
    if value is None:
        return None
    text = str(value)
    if _SENSITIVE_RE.search(str(key)) or _SENSITIVE_RE.search(text):
        return HIDDEN
    if len(text) > MAX_VALUE_LENGTH:
        return text[:MAX_VALUE_LENGTH] + "..."
    if isinstance(value, (bool, int, float)):
        return value
    return text


def sanitize_details(details: Optional[Mapping[str, Any]]) -> dict[str, Any]:
    return {str(k): sanitize_value(k, v) for k, v in (details or {}).items()}


def _record(entry: AuditEntry, level: int, audit_log: Optional[Union[str, Path]]) -> AuditEntry:
    logger.log(level, "%s", entry.model_dump_json())
    if audit_log is not None:
        path = Path(audit_log)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("a", encoding="utf-8") as f:
                f.write(entry.model_dump_json() + "\n")
        except OSError as exc:
            logger.warning("Could not write audit log %s: %s", path, exc)
    return entry


def audit_event(
    operation: str,
    details: Optional[Mapping[str, Any]] = None,
    audit_log: Optional[Union[str, Path]] = None,
) -> AuditEntry:
    """Record that an operation is starting.

    Args:
        operation: Operation name, e.g. ``pull_start``.
        details: Extra context. Sanitized before recording.
        audit_log: Optional JSONL file to append to.

    Returns:
        AuditEntry: The entry that was recorded.
    """
    entry = AuditEntry(operation=operation, details=sanitize_details(details))
    return _record(entry, logging.INFO, audit_log)


def security_event(
    operation: str,
    result: str,
    duration: Optional[float] = None,
    details: Optional[Mapping[str, Any]] = None,
    audit_log: Optional[Union[str, Path]] = None,
) -> AuditEntry:
    """Record the outcome of a security-relevant operation.

    Failures are logged at ERROR, warnings at WARNING, anything else at
    INFO.

    Args:
        operation: Operation name, e.g. ``pull``.
        result: ``success``, ``failure`` or ``warning``.
        duration: Seconds the operation took.
        details: Extra context. Sanitized before recording.
        audit_log: Optional JSONL file to append to.

    Returns:
        AuditEntry: The entry that was recorded.
    """
    entry = AuditEntry(
        operation=operation,
        result=result,
        duration=round(duration, 3) if duration is not None else None,
        details=sanitize_details(details),
    )
    if result == RESULT_FAILURE:
        level = logging.ERROR
    elif result == RESULT_WARNING:
        level = logging.WARNING
    else:
        level = logging.INFO
    return _record(entry, level, audit_log)
