from __future__ import annotations

import logging


def configure_app_logging(level: str = "INFO") -> None:
    """
    Set levels for the orgscope loggers.

    Notes:
    - Stdlib logging only; uvicorn already installs handlers.
    - ``orgscope.audit`` carries security events and never goes quieter than INFO,
      so super-admin bypasses and fail-closed filters stay visible.
    - Set ``ORGSCOPE_LOG_LEVEL=DEBUG`` (or INFO/WARNING/ERROR) to control verbosity.
    """

    normalized = level.upper()
    root = logging.getLogger("orgscope")
    root.setLevel(normalized)
    root.propagate = True

    audit = logging.getLogger("orgscope.audit")
    audit.setLevel(min(root.level, logging.INFO))
