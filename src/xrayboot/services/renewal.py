"""Daily certificate renewal job.

Installs a crontab entry that runs acme.sh's cron mode and appends its
output to the renewal log.  The entry carries a trailing marker comment
so re-registering replaces it; unrelated crontab lines are kept.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from typing import TYPE_CHECKING

from xrayboot.core.errors import RenewalJobInstallFailed

if TYPE_CHECKING:
    from xrayboot.certs.base import IssuanceClient
    from xrayboot.config.settings import PathSettings, RenewalSettings

log = logging.getLogger(__name__)

RENEWAL_MARKER = "# xrayboot:acme-renewal"

_CRONTAB_TIMEOUT = 15


def build_cron_line(schedule: str, command: str, log_file: str) -> str:
    """Return the crontab line for the renewal job."""
    return f"{schedule} {command} >> {shlex.quote(log_file)} 2>&1 {RENEWAL_MARKER}"


class RenewalRegistrar:
    """Install or replace the renewal job in the current user's crontab.

    Parameters
    ----------
    settings:
        The ``renewal`` settings section.
    paths:
        Path settings; ``acme_log`` receives the job's output.
    client:
        Issuance client providing the command to schedule.

    """

    def __init__(
        self,
        settings: RenewalSettings,
        paths: PathSettings,
        client: IssuanceClient,
    ) -> None:
        self._settings = settings
        self._paths = paths
        self._client = client

    def _crontab(self, *args: str, stdin: str | None = None) -> subprocess.CompletedProcess:
        try:
            return subprocess.run(  # noqa: S603
                [self._settings.crontab_binary, *args],
                input=stdin,
                check=False,
                timeout=_CRONTAB_TIMEOUT,
                capture_output=True,
                text=True,
            )
        except (subprocess.TimeoutExpired, OSError) as exc:
            msg = f"cannot run {self._settings.crontab_binary}: {exc}"
            raise RenewalJobInstallFailed(msg) from exc

    def current_entries(self) -> list[str]:
        """Return the installed crontab lines (empty if there is none)."""
        result = self._crontab("-l")
        if result.returncode != 0:
            # "no crontab for <user>" is the normal first-boot answer
            log.debug("crontab -l: %s", (result.stderr or "").strip())
            return []
        return [line for line in result.stdout.splitlines() if line.strip()]

    def install(self) -> str:
        """Register the renewal job and return the installed line.

        Raises
        ------
        RenewalJobInstallFailed
            If the crontab cannot be read or written.

        """
        line = build_cron_line(
            self._settings.schedule,
            self._client.cron_command(),
            self._paths.acme_log,
        )
        entries = [e for e in self.current_entries() if RENEWAL_MARKER not in e]
        entries.append(line)

        result = self._crontab("-", stdin="\n".join(entries) + "\n")
        if result.returncode != 0:
            msg = (
                f"crontab exited with status {result.returncode}: "
                f"{(result.stderr or '').strip()}"
            )
            raise RenewalJobInstallFailed(msg)

        log.info("Renewal job installed: %s", self._settings.schedule)
        return line
