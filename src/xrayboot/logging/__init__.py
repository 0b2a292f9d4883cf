"""Logging subsystem for xrayboot.

Public API::

    from xrayboot.logging import configure_logging, stage_context

    configure_logging(settings.logging)
    with stage_context("certificates"):
        ...
"""

from xrayboot.logging.setup import (
    configure_logging,
    reset_log_domain,
    set_log_domain,
    stage_context,
)

__all__ = ["configure_logging", "reset_log_domain", "set_log_domain", "stage_context"]
