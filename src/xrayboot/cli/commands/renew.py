"""Renew subcommand: run acme.sh's renewal immediately."""

from __future__ import annotations

import logging

from xrayboot.core.errors import CertificateIssuanceFailed, IssuanceError

log = logging.getLogger(__name__)


def run_renew(settings, args) -> None:  # noqa: ARG001
    """Renew due certificates now instead of waiting for the cron job."""
    from xrayboot.certs.acme_sh import AcmeShClient

    client = AcmeShClient(settings.acme, settings.paths)
    try:
        client.renew()
    except IssuanceError as exc:
        msg = f"certificate renewal failed: {exc.detail}"
        raise CertificateIssuanceFailed(msg) from exc
    log.info("Certificate renewal run completed")
