"""Geodata subcommand: refresh the routing datasets only."""

from __future__ import annotations

import sys


def run_geodata(settings, args) -> None:  # noqa: ARG001
    """Download every dataset; exit 1 if any of them failed."""
    from xrayboot.services.geodata import GeodataRefresher

    results = GeodataRefresher(settings.geodata, settings.paths).refresh_all()
    if not all(results.values()):
        sys.exit(1)
