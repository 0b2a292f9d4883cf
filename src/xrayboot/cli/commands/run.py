"""Run subcommand: the container entrypoint."""

from __future__ import annotations

import logging

log = logging.getLogger(__name__)


def _exec_command(args) -> list[str]:
    command = list(getattr(args, "exec_command", None) or [])
    if command and command[0] == "--":
        command = command[1:]
    return command


def run_bootstrap(settings, args) -> None:
    """Run every bootstrap stage and exec the supervisor."""
    from xrayboot.app import create_bootstrap

    create_bootstrap(settings).run(_exec_command(args))
