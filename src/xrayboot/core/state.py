"""Certificate lifecycle state machine.

Defines the valid status transitions for the certificate check performed
at container start.  All transitions are enforced via
:func:`assert_transition`.

Usage::

    from xrayboot.core.state import CERTIFICATE_TRANSITIONS, assert_transition
    from xrayboot.core.types import CertificateState

    assert_transition(
        CertificateState.UNCHECKED, CertificateState.MISSING,
        CERTIFICATE_TRANSITIONS,
    )
"""

from __future__ import annotations

import logging

from xrayboot.core.types import CertificateState

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# unchecked → cached/missing, missing → issuing,
# issuing → issued/failed.  cached, issued & failed are terminal.
# ---------------------------------------------------------------------------

CERTIFICATE_TRANSITIONS: dict[CertificateState, frozenset[CertificateState]] = {
    CertificateState.UNCHECKED: frozenset(
        {CertificateState.CACHED, CertificateState.MISSING},
    ),
    CertificateState.MISSING: frozenset({CertificateState.ISSUING}),
    CertificateState.ISSUING: frozenset(
        {CertificateState.ISSUED, CertificateState.FAILED},
    ),
    CertificateState.CACHED: frozenset(),
    CertificateState.ISSUED: frozenset(),
    CertificateState.FAILED: frozenset(),
}


def assert_transition(
    current: CertificateState,
    target: CertificateState,
    table: dict,
) -> None:
    """Raise :class:`ValueError` if *current* → *target* is not allowed.

    Parameters
    ----------
    current:
        The current state.
    target:
        The desired new state.
    table:
        A transition table such as :data:`CERTIFICATE_TRANSITIONS`.

    """
    allowed = table.get(current)
    if allowed is None:
        msg = f"Unknown state {current!r}"
        raise ValueError(msg)
    if target not in allowed:
        msg = (
            f"Invalid transition {current.value!r} -> {target.value!r}; "
            f"allowed targets: {sorted(s.value for s in allowed) or '(terminal)'}"
        )
        raise ValueError(
            msg,
        )


def log_transition(
    domain: str,
    from_state: CertificateState,
    to_state: CertificateState,
    *,
    reason: str | None = None,
) -> None:
    """Emit a structured log entry for a certificate state transition."""
    extra = {
        "event": "certificate_transition",
        "from_state": from_state.value,
        "to_state": to_state.value,
    }
    if reason:
        extra["reason"] = reason
    log.info(
        "certificate %s: %s -> %s%s",
        domain,
        from_state.value,
        to_state.value,
        f" ({reason})" if reason else "",
        extra=extra,
    )
