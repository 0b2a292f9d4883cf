"""Bootstrap driver.

Runs the startup stages strictly in order and decides, per error kind,
whether to abort or to continue::

    certificates ─► render ─► renewal ─► geodata ─► launch

Fatal errors (:attr:`BootstrapError.fatal`) propagate to the caller.
Warnings are logged and the sequence continues.  Configuration is
resolved before the driver is built (see :mod:`xrayboot.config`).

Usage::

    from xrayboot.app import create_bootstrap

    bootstrap = create_bootstrap(settings)
    bootstrap.run(["supervisord", "-c", "/etc/supervisor/conf.d/supervisord.conf"])
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, NoReturn

from xrayboot.certs.acme_sh import AcmeShClient
from xrayboot.certs.listener import NginxListener
from xrayboot.certs.manager import CertificateManager
from xrayboot.core.errors import BootstrapError
from xrayboot.core.types import Stage
from xrayboot.logging import set_log_domain, stage_context
from xrayboot.render.renderer import ConfigRenderer, ensure_mime_types
from xrayboot.render.xray import ALPN
from xrayboot.services.geodata import GeodataRefresher
from xrayboot.services.renewal import RenewalRegistrar
from xrayboot.services.supervisor import SupervisorLauncher

if TYPE_CHECKING:
    from collections.abc import Sequence

    from xrayboot.certs.base import BootstrapListener, CertificateBundle, IssuanceClient
    from xrayboot.config.settings import BootstrapSettings, ServiceConfig

log = logging.getLogger(__name__)

_RULE = "=" * 44


def log_connection_info(service: ServiceConfig) -> None:
    """Log the parameters a client needs to connect."""
    log.info(_RULE)
    log.info("Xray Connection Information:")
    log.info(_RULE)
    log.info("Protocol: %s", service.protocol)
    log.info("Address: %s", service.domain)
    log.info("Port: %d", service.xray_port)
    log.info("UUID: %s", service.client_id)
    log.info("Flow: %s", service.flow)
    log.info("TLS: tls")
    log.info("SNI: %s", service.domain)
    log.info("ALPN: %s", ",".join(ALPN))
    log.info(_RULE)
    log.info("Please save this information for your client configuration")
    log.info(_RULE)


class Bootstrap:
    """Sequential startup driver.

    Parameters
    ----------
    settings:
        The resolved bootstrap settings.
    certificates:
        Certificate lifecycle manager.
    renderer:
        Config renderer for the Xray and nginx documents.
    renewal:
        Renewal job registrar.
    geodata:
        Routing dataset refresher.
    launcher:
        Supervisor launcher.

    """

    def __init__(  # noqa: PLR0913
        self,
        settings: BootstrapSettings,
        *,
        certificates: CertificateManager,
        renderer: ConfigRenderer,
        renewal: RenewalRegistrar,
        geodata: GeodataRefresher,
        launcher: SupervisorLauncher,
    ) -> None:
        self.settings = settings
        self.certificates = certificates
        self.renderer = renderer
        self.renewal = renewal
        self.geodata = geodata
        self.launcher = launcher

    # -- stages -------------------------------------------------------------

    def _warn(self, exc: BootstrapError) -> None:
        if exc.fatal:
            raise exc
        log.warning("%s", exc.detail)

    def obtain_certificate(self) -> CertificateBundle:
        with stage_context(Stage.CERTIFICATES):
            return self.certificates.ensure()

    def render_configs(self, bundle: CertificateBundle) -> None:
        service = self.settings.service
        with stage_context(Stage.RENDER):
            for rendered in self.renderer.render_all(service, bundle):
                log.info("Generating %s configuration...", rendered.name)
                rendered.write()
            ensure_mime_types(self.settings.paths.nginx_mime_types)

    def register_renewal(self) -> None:
        with stage_context(Stage.RENEWAL):
            if not self.settings.renewal.enabled:
                log.info("Renewal job disabled")
                return
            log.info("Setting up crontab for certificate auto-renewal...")
            try:
                self.renewal.install()
            except BootstrapError as exc:
                self._warn(exc)

    def refresh_geodata(self) -> dict[str, bool]:
        with stage_context(Stage.GEODATA):
            if not self.settings.geodata.enabled:
                log.info("GeoIP/GeoSite refresh disabled")
                return {}
            log.info("Updating GeoIP and GeoSite data...")
            return self.geodata.refresh_all()

    # -- driver -------------------------------------------------------------

    def prepare(self) -> CertificateBundle:
        """Run every stage up to, but not including, the handoff.

        Raises
        ------
        BootstrapError
            Any fatal error from a stage.

        """
        service = self.settings.service
        set_log_domain(service.domain)
        log.info("Starting Xray-script container bootstrap")
        log.info("Domain: %s", service.domain)
        log.info("Xray Port: %d", service.xray_port)
        log.info("Nginx HTTP Port: %d", service.nginx_http_port)

        bundle = self.obtain_certificate()
        self.render_configs(bundle)
        self.register_renewal()
        self.refresh_geodata()
        log_connection_info(service)
        return bundle

    def run(self, command: Sequence[str] | None = None) -> NoReturn:
        """Prepare the container and exec the supervisor."""
        self.prepare()
        with stage_context(Stage.LAUNCH):
            self.launcher.hand_off(command)


def create_bootstrap(
    settings: BootstrapSettings,
    *,
    client: IssuanceClient | None = None,
    listener: BootstrapListener | None = None,
    launcher: SupervisorLauncher | None = None,
) -> Bootstrap:
    """Wire the production collaborators for *settings*.

    Any collaborator may be supplied to replace the default.
    """
    client = client or AcmeShClient(settings.acme, settings.paths)
    listener = listener or NginxListener(settings.listener, settings.paths)
    renderer = ConfigRenderer(settings.paths)
    return Bootstrap(
        settings,
        certificates=CertificateManager(
            settings,
            client=client,
            listener=listener,
            renderer=renderer,
        ),
        renderer=renderer,
        renewal=RenewalRegistrar(settings.renewal, settings.paths, client),
        geodata=GeodataRefresher(settings.geodata, settings.paths),
        launcher=launcher or SupervisorLauncher(settings.supervisor),
    )
