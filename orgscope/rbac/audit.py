"""
Security event logging.

Security-relevant decisions (super-admin bypass, fail-closed filters, out-of-scope
access) go to a dedicated ``orgscope.audit`` logger so they can be routed separately
from application logs.
"""

from __future__ import annotations

import logging
from typing import Literal

audit_logger = logging.getLogger("orgscope.audit")

Severity = Literal["low", "medium", "high"]

_LEVELS: dict[str, int] = {
    "low": logging.INFO,
    "medium": logging.WARNING,
    "high": logging.WARNING,
}


def _render(value: object) -> str:
    if isinstance(value, (set, frozenset, list, tuple)):
        return ",".join(sorted(str(v) for v in value))
    return str(value)


def log_security_event(event: str, severity: Severity = "medium", **fields: object) -> None:
    """Log ``event`` with ``key=value`` fields (sorted for stable output)."""

    rendered = " ".join(f"{key}={_render(value)}" for key, value in sorted(fields.items()))
    audit_logger.log(
        _LEVELS.get(severity, logging.WARNING),
        "security_event=%s severity=%s %s",
        event,
        severity,
        rendered,
    )
