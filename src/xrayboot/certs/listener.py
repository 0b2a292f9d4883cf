"""Temporary nginx used to answer HTTP-01 challenges.

nginx daemonises on start, so the master process is tracked through its
pid file.  :meth:`NginxListener.stop` sends a graceful stop and then
waits until the master is really gone; a listener left behind would
hold the HTTP port the real service needs.
"""

from __future__ import annotations

import logging
import os
import socket
import subprocess
import time
from pathlib import Path
from typing import TYPE_CHECKING

from xrayboot.certs.base import BootstrapListener
from xrayboot.core.errors import ListenerError

if TYPE_CHECKING:
    from xrayboot.config.settings import ListenerSettings, PathSettings

log = logging.getLogger(__name__)

_COMMAND_TIMEOUT = 30
_POLL_INTERVAL = 0.2
_CONNECT_TIMEOUT = 0.5


class NginxListener(BootstrapListener):
    """Start and stop a throwaway nginx master process.

    Parameters
    ----------
    settings:
        The ``listener`` settings section.
    paths:
        Path settings; ``nginx_pid`` locates the master's pid file.

    """

    def __init__(self, settings: ListenerSettings, paths: PathSettings) -> None:
        self._settings = settings
        self._pid_file = Path(paths.nginx_pid)
        self._config_path: str | None = None

    def _nginx(self, *args: str) -> None:
        cmd = [self._settings.binary, *args]
        subprocess.run(  # noqa: S603
            cmd,
            check=True,
            timeout=_COMMAND_TIMEOUT,
            capture_output=True,
            text=True,
        )

    def start(self, config_path: str) -> None:
        log.info("Starting temporary nginx for ACME validation")
        try:
            self._nginx("-c", config_path)
        except subprocess.CalledProcessError as exc:
            detail = (exc.stderr or "").strip()
            msg = f"nginx failed to start (status {exc.returncode}): {detail}"
            raise ListenerError(msg) from exc
        except (subprocess.TimeoutExpired, OSError) as exc:
            msg = f"nginx failed to start: {exc}"
            raise ListenerError(msg) from exc
        self._config_path = config_path

    def wait_ready(self, port: int, timeout: float) -> bool:
        """Poll ``127.0.0.1:port`` until it accepts a connection."""
        deadline = time.monotonic() + timeout
        while True:
            try:
                with socket.create_connection(("127.0.0.1", port), timeout=_CONNECT_TIMEOUT):
                    return True
            except OSError:
                pass
            if time.monotonic() >= deadline:
                return False
            time.sleep(_POLL_INTERVAL)

    def _read_pid(self) -> int | None:
        try:
            return int(self._pid_file.read_text(encoding="ascii").strip())
        except (OSError, ValueError):
            return None

    def is_running(self) -> bool:
        pid = self._read_pid()
        if pid is None:
            return False
        try:
            os.kill(pid, 0)
        except ProcessLookupError:
            return False
        except PermissionError:
            return True
        return True

    def stop(self) -> None:
        """Gracefully stop nginx and confirm the master process exited.

        Raises
        ------
        ListenerError
            If nginx is still running after ``stop_timeout_seconds``.

        """
        log.info("Stopping temporary nginx")
        args = ["-s", "stop"]
        if self._config_path:
            args = ["-c", self._config_path, *args]
        try:
            self._nginx(*args)
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError) as exc:
            if not self.is_running():
                log.debug("nginx stop reported %s but no master is running", exc)
                return
            msg = f"nginx did not accept the stop signal: {exc}"
            raise ListenerError(msg) from exc

        deadline = time.monotonic() + self._settings.stop_timeout_seconds
        while self.is_running():
            if time.monotonic() >= deadline:
                msg = (
                    f"nginx still running {self._settings.stop_timeout_seconds}s "
                    "after the stop signal"
                )
                raise ListenerError(msg)
            time.sleep(_POLL_INTERVAL)
        self._config_path = None
