"""Enumerated types shared across the bootstrap stages.

All enums inherit from :class:`enum.StrEnum` so their ``.value`` is a
plain string that shows up unchanged in log records and JSON output.
"""

from __future__ import annotations

from enum import StrEnum

# ---------------------------------------------------------------------------
# Certificate lifecycle
# ---------------------------------------------------------------------------


class CertificateState(StrEnum):
    UNCHECKED = "unchecked"
    CACHED = "cached"
    MISSING = "missing"
    ISSUING = "issuing"
    ISSUED = "issued"
    FAILED = "failed"


# ---------------------------------------------------------------------------
# Bootstrap stages (used as the ``stage`` log attribute)
# ---------------------------------------------------------------------------


class Stage(StrEnum):
    RESOLVE = "resolve"
    CERTIFICATES = "certificates"
    RENDER = "render"
    RENEWAL = "renewal"
    GEODATA = "geodata"
    LAUNCH = "launch"


# ---------------------------------------------------------------------------
# Log output format
# ---------------------------------------------------------------------------


class LogFormat(StrEnum):
    TEXT = "text"
    JSON = "json"
