"""Abstract collaborators for the certificate lifecycle.

The manager never talks to acme.sh or nginx directly; it goes through
the two narrow interfaces defined here so it can be exercised against
fakes.

:class:`IssuanceClient` obtains, installs and renews certificates.
:class:`BootstrapListener` is the short-lived HTTP responder that serves
the HTTP-01 challenge while issuance is running.
"""

from __future__ import annotations

import abc
import logging
from dataclasses import dataclass
from pathlib import Path

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class CertificateBundle:
    """The three files that make up an installed certificate.

    Attributes
    ----------
    domain:
        The domain the certificate was issued for.
    cert_file:
        Leaf certificate (``<domain>.crt``).
    key_file:
        Private key (``<domain>.key``).
    fullchain_file:
        Leaf plus intermediates (``<domain>.fullchain.crt``).

    """

    domain: str
    cert_file: str
    key_file: str
    fullchain_file: str

    @classmethod
    def for_domain(cls, cert_dir: str | Path, domain: str) -> CertificateBundle:
        """Return the bundle paths for *domain* under *cert_dir*."""
        base = Path(cert_dir)
        return cls(
            domain=domain,
            cert_file=str(base / f"{domain}.crt"),
            key_file=str(base / f"{domain}.key"),
            fullchain_file=str(base / f"{domain}.fullchain.crt"),
        )

    def paths(self) -> tuple[Path, Path, Path]:
        return Path(self.cert_file), Path(self.key_file), Path(self.fullchain_file)

    def exists(self) -> bool:
        """True when both the certificate and the key are on disk."""
        return Path(self.cert_file).is_file() and Path(self.key_file).is_file()


class IssuanceClient(abc.ABC):
    """Base class for certificate issuance clients.

    Implementations raise :class:`~xrayboot.core.errors.IssuanceError`
    on any failure.
    """

    @abc.abstractmethod
    def issue(
        self,
        *,
        domain: str,
        webroot: str,
        key_length: str,
        server: str,
        email: str,
        force: bool,
    ) -> None:
        """Obtain a certificate for *domain* through the HTTP-01 webroot."""

    @abc.abstractmethod
    def install(self, bundle: CertificateBundle, *, key_length: str) -> CertificateBundle:
        """Copy the issued certificate, key and chain to *bundle*'s paths."""

    @abc.abstractmethod
    def renew(self) -> None:
        """Renew every certificate that is due."""

    @abc.abstractmethod
    def cron_command(self) -> str:
        """Shell command the periodic renewal job should run."""


class BootstrapListener(abc.ABC):
    """A temporary HTTP responder controlled via start/graceful-stop.

    Implementations raise :class:`~xrayboot.core.errors.ListenerError`
    when the process cannot be started or stopped.
    """

    @abc.abstractmethod
    def start(self, config_path: str) -> None:
        """Start the listener using the configuration at *config_path*."""

    @abc.abstractmethod
    def wait_ready(self, port: int, timeout: float) -> bool:
        """Wait up to *timeout* seconds for *port* to accept connections."""

    @abc.abstractmethod
    def stop(self) -> None:
        """Stop the listener and confirm it is gone."""

    @abc.abstractmethod
    def is_running(self) -> bool:
        """True while the listener process is alive."""
