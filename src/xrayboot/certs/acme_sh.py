"""acme.sh issuance client.

Wraps the acme.sh shell client installed in the image.  Commands run
with :func:`subprocess.run` and any failure (non-zero exit, timeout,
missing binary) is reported as :class:`IssuanceError`.

Commands issued::

    acme.sh --issue -d <domain> --webroot <webroot> --keylength ec-256 \
        --server letsencrypt --email <email> [--force]
    acme.sh --install-cert -d <domain> [--ecc] --cert-file ... \
        --key-file ... --fullchain-file ...
    acme.sh --cron --home <acme home>
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from typing import TYPE_CHECKING

from xrayboot.certs.base import CertificateBundle, IssuanceClient
from xrayboot.core.errors import IssuanceError

if TYPE_CHECKING:
    from xrayboot.config.settings import AcmeSettings, PathSettings

log = logging.getLogger(__name__)

_STDERR_TAIL_LINES = 20


def _tail(text: str | None) -> str:
    if not text:
        return ""
    lines = text.strip().splitlines()
    return "\n".join(lines[-_STDERR_TAIL_LINES:])


class AcmeShClient(IssuanceClient):
    """Drive acme.sh for issuance, installation and renewal.

    Parameters
    ----------
    acme:
        The ``acme`` settings section (binary, CA, key length, timeout).
    paths:
        Path settings; ``acme_home`` is passed to the renewal run.

    """

    def __init__(self, acme: AcmeSettings, paths: PathSettings) -> None:
        self._acme = acme
        self._paths = paths

    def _run(self, args: list[str]) -> subprocess.CompletedProcess:
        cmd = [self._acme.binary, *args]
        log.debug("Running %s", shlex.join(cmd))
        try:
            return subprocess.run(  # noqa: S603
                cmd,
                check=True,
                timeout=self._acme.timeout_seconds,
                capture_output=True,
                text=True,
            )
        except subprocess.CalledProcessError as exc:
            detail = _tail(exc.stderr) or _tail(exc.stdout)
            msg = f"{args[0]} exited with status {exc.returncode}"
            if detail:
                msg = f"{msg}:\n{detail}"
            raise IssuanceError(msg, returncode=exc.returncode) from exc
        except subprocess.TimeoutExpired as exc:
            msg = f"{args[0]} timed out after {self._acme.timeout_seconds}s"
            raise IssuanceError(msg) from exc
        except OSError as exc:
            msg = f"cannot run {self._acme.binary}: {exc}"
            raise IssuanceError(msg) from exc

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
        """Request a certificate for *domain* via the webroot challenge."""
        args = [
            "--issue",
            "-d",
            domain,
            "--webroot",
            webroot,
            "--keylength",
            key_length,
            "--server",
            server,
            "--email",
            email,
        ]
        if force:
            args.append("--force")
        log.info("Applying for SSL certificate for %s (%s, %s)", domain, server, key_length)
        self._run(args)

    def install(self, bundle: CertificateBundle, *, key_length: str) -> CertificateBundle:
        """Install the issued files to the paths of *bundle*."""
        args = ["--install-cert", "-d", bundle.domain]
        if key_length.startswith("ec"):
            args.append("--ecc")
        args += [
            "--cert-file",
            bundle.cert_file,
            "--key-file",
            bundle.key_file,
            "--fullchain-file",
            bundle.fullchain_file,
        ]
        self._run(args)
        log.info("Installed certificate for %s to %s", bundle.domain, bundle.cert_file)
        return bundle

    def renew(self) -> None:
        """Run acme.sh's cron mode now, renewing whatever is due."""
        self._run(["--cron", "--home", self._paths.acme_home])

    def cron_command(self) -> str:
        return shlex.join([self._acme.binary, "--cron", "--home", self._paths.acme_home])
