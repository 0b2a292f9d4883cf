"""Hand the container over to the process supervisor.

:meth:`SupervisorLauncher.hand_off` replaces the current process with
:func:`os.execvp`, so supervisord becomes PID 1 and receives the
container's signals directly.
"""

from __future__ import annotations

import logging
import os
import shlex
import sys
from typing import TYPE_CHECKING, NoReturn

from xrayboot.core.errors import LaunchError

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from xrayboot.config.settings import SupervisorSettings

log = logging.getLogger(__name__)


class SupervisorLauncher:
    """Exec the supervisor command.

    Parameters
    ----------
    settings:
        The ``supervisor`` settings section (default command).
    execvp:
        Replacement for :func:`os.execvp` (tests pass a fake).

    """

    def __init__(
        self,
        settings: SupervisorSettings,
        *,
        execvp: Callable[[str, Sequence[str]], object] = os.execvp,
    ) -> None:
        self._settings = settings
        self._execvp = execvp

    def command_for(self, command: Sequence[str] | None) -> list[str]:
        """Return *command*, or the configured default when it is empty."""
        if command:
            return list(command)
        return list(self._settings.command)

    def hand_off(self, command: Sequence[str] | None = None) -> NoReturn:
        """Replace this process with the supervisor.

        Raises
        ------
        LaunchError
            If the program cannot be executed.

        """
        cmd = self.command_for(command)
        log.info("Starting services: %s", shlex.join(cmd))
        for handler in logging.getLogger("xrayboot").handlers:
            handler.flush()
        sys.stdout.flush()
        sys.stderr.flush()
        try:
            self._execvp(cmd[0], cmd)
        except OSError as exc:
            msg = f"cannot execute {cmd[0]}: {exc}"
            raise LaunchError(msg) from exc
        # Only reachable when execvp is replaced by a fake.
        msg = f"{cmd[0]} returned control to the launcher"
        raise LaunchError(msg)
