"""Render subcommand: write the service configurations only."""

from __future__ import annotations

import dataclasses
import logging
import sys
from pathlib import Path

log = logging.getLogger(__name__)


def run_render(settings, args) -> None:
    """Render the Xray and nginx configs for the configured domain.

    Certificates are neither checked nor issued; the documents reference
    the paths the certificate stage would use.
    """
    from xrayboot.certs.base import CertificateBundle
    from xrayboot.render.renderer import ConfigRenderer

    bundle = CertificateBundle.for_domain(settings.paths.cert_dir, settings.service.domain)
    documents = ConfigRenderer(settings.paths).render_all(settings.service, bundle)

    if args.stdout:
        for rendered in documents:
            sys.stdout.write(f"# {rendered.name}: {rendered.path}\n{rendered.content}")
        return

    for rendered in documents:
        if args.output_dir:
            target = Path(args.output_dir) / Path(rendered.path).name
            rendered = dataclasses.replace(rendered, path=str(target))  # noqa: PLW2901
        rendered.write()
