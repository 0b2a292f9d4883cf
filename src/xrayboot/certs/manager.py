"""Certificate lifecycle manager.

Makes sure a certificate/key pair exists for the configured domain
before the services start::

    unchecked ──► cached                      (files on disk, nothing to do)
        │
        └──► missing ──► issuing ──► issued   (acme.sh succeeded)
                             └────► failed    (CertificateIssuanceFailed)

On the issuing path a temporary nginx answers the HTTP-01 challenge.
It is always stopped before :meth:`CertificateManager.ensure` returns
or raises.
"""

from __future__ import annotations

import contextlib
import logging
import time
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING

from cryptography import x509

from xrayboot.certs.base import CertificateBundle
from xrayboot.core.errors import CertificateIssuanceFailed, IssuanceError, ListenerError
from xrayboot.core.state import CERTIFICATE_TRANSITIONS, assert_transition, log_transition
from xrayboot.core.types import CertificateState

if TYPE_CHECKING:
    from collections.abc import Callable

    from xrayboot.certs.base import BootstrapListener, IssuanceClient
    from xrayboot.config.settings import BootstrapSettings
    from xrayboot.render.renderer import ConfigRenderer

log = logging.getLogger(__name__)

EXPIRY_WARNING_WINDOW = timedelta(days=14)


def read_expiry(cert_file: str | Path) -> datetime | None:
    """Return the ``notAfter`` of the first certificate in *cert_file*.

    Returns ``None`` if the file cannot be read or parsed.
    """
    try:
        data = Path(cert_file).read_bytes()
        cert = x509.load_pem_x509_certificate(data)
    except (OSError, ValueError) as exc:
        log.debug("Cannot read certificate %s: %s", cert_file, exc)
        return None
    return cert.not_valid_after_utc


class CertificateManager:
    """Drive the certificate state machine for one domain.

    Parameters
    ----------
    settings:
        The resolved bootstrap settings.
    client:
        Issuance client (acme.sh in production).
    listener:
        Bootstrap listener (temporary nginx in production).
    renderer:
        Renders the bootstrap nginx configuration.
    sleep:
        Sleep function used for the settle delay (tests pass a no-op).

    """

    def __init__(
        self,
        settings: BootstrapSettings,
        *,
        client: IssuanceClient,
        listener: BootstrapListener,
        renderer: ConfigRenderer,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._settings = settings
        self._client = client
        self._listener = listener
        self._renderer = renderer
        self._sleep = sleep
        self._state = CertificateState.UNCHECKED

    @property
    def state(self) -> CertificateState:
        return self._state

    def _transition(self, target: CertificateState, reason: str | None = None) -> None:
        assert_transition(self._state, target, CERTIFICATE_TRANSITIONS)
        log_transition(self._settings.service.domain, self._state, target, reason=reason)
        self._state = target

    def bundle(self) -> CertificateBundle:
        """The expected bundle paths for the configured domain."""
        return CertificateBundle.for_domain(
            self._settings.paths.cert_dir,
            self._settings.service.domain,
        )

    def ensure(self) -> CertificateBundle:
        """Return a bundle whose files exist, issuing one if needed.

        Raises
        ------
        CertificateIssuanceFailed
            If acme.sh fails to issue or install the certificate.
        ListenerError
            If the bootstrap listener cannot be started or stopped.

        """
        bundle = self.bundle()
        Path(self._settings.paths.cert_dir).mkdir(parents=True, exist_ok=True)

        if bundle.exists():
            self._transition(CertificateState.CACHED)
            log.info("SSL certificate found for %s", bundle.domain)
            self._report_expiry(bundle)
            return bundle

        self._transition(CertificateState.MISSING)
        log.info("SSL certificate not found. Applying for new certificate...")
        return self._issue(bundle)

    def _report_expiry(self, bundle: CertificateBundle) -> None:
        not_after = read_expiry(bundle.cert_file)
        if not_after is None:
            return
        remaining = not_after - datetime.now(UTC)
        if remaining <= timedelta(0):
            log.warning(
                "Certificate for %s expired on %s; renewal job will replace it",
                bundle.domain,
                not_after.isoformat(),
            )
        elif remaining <= EXPIRY_WARNING_WINDOW:
            log.warning(
                "Certificate for %s expires in %d days (%s)",
                bundle.domain,
                remaining.days,
                not_after.isoformat(),
            )
        else:
            log.info("Certificate for %s valid until %s", bundle.domain, not_after.isoformat())

    def _prepare_bootstrap(self) -> str:
        """Create the challenge directory and write the bootstrap config."""
        paths = self._settings.paths
        challenge_dir = Path(paths.webroot) / ".well-known" / "acme-challenge"
        challenge_dir.mkdir(parents=True, exist_ok=True)

        rendered = self._renderer.render_bootstrap(self._settings.service)
        rendered.write()
        return rendered.path

    def _wait_for_listener(self) -> None:
        listener_cfg = self._settings.listener
        port = self._settings.service.nginx_http_port
        if listener_cfg.probe:
            if not self._listener.wait_ready(port, listener_cfg.settle_seconds):
                log.warning(
                    "Temporary nginx not accepting connections on port %d after %.1fs",
                    port,
                    listener_cfg.settle_seconds,
                )
        else:
            self._sleep(listener_cfg.settle_seconds)

    def _issue(self, bundle: CertificateBundle) -> CertificateBundle:
        service = self._settings.service
        acme = self._settings.acme

        leftovers = [p for p in bundle.paths() if not p.exists()]
        config_path = self._prepare_bootstrap()
        self._listener.start(config_path)
        self._transition(CertificateState.ISSUING)

        failure: IssuanceError | None = None
        try:
            self._wait_for_listener()
            self._client.issue(
                domain=service.domain,
                webroot=self._settings.paths.webroot,
                key_length=acme.key_length,
                server=acme.server,
                email=service.acme_email,
                force=acme.force,
            )
            self._client.install(bundle, key_length=acme.key_length)
            if not bundle.exists():
                failure = IssuanceError(
                    f"certificate files missing after install: {bundle.cert_file}",
                )
        except IssuanceError as exc:
            failure = exc
        finally:
            self._stop_listener()

        if failure is not None:
            self._discard(leftovers)
            self._transition(CertificateState.FAILED, reason=failure.detail)
            log.error("Failed to obtain SSL certificate for %s", service.domain)
            msg = f"certificate issuance for {service.domain} failed: {failure.detail}"
            raise CertificateIssuanceFailed(msg) from failure

        self._transition(CertificateState.ISSUED)
        log.info("SSL certificate obtained successfully")
        return bundle

    @staticmethod
    def _discard(paths: list[Path]) -> None:
        """Remove files a failed install left behind."""
        for path in paths:
            with contextlib.suppress(FileNotFoundError):
                path.unlink()
                log.debug("Removed partial certificate file %s", path)

    def _stop_listener(self) -> None:
        self._listener.stop()
        if self._listener.is_running():
            msg = "temporary nginx is still running after stop"
            raise ListenerError(msg)
