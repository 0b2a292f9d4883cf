"""xrayboot command-line entry point.

Usage::

    xrayboot                                   # full bootstrap, default supervisor
    xrayboot run -- supervisord -c /etc/supervisor/conf.d/supervisord.conf
    xrayboot --validate-only
    xrayboot render --output-dir /tmp/out
    xrayboot renew
    xrayboot geodata
    xrayboot -c /etc/xrayboot.yaml run
    python -m xrayboot
"""

from __future__ import annotations

import argparse
import logging
import os
import sys

from xrayboot.core.errors import BootstrapError, MissingRequiredInput
from xrayboot.core.types import Stage

log = logging.getLogger(__name__)


def _get_version() -> str:
    from xrayboot import __version__

    return __version__


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="xrayboot",
        description="Bootstrap the nginx + Xray container and hand over to supervisord",
    )
    parser.add_argument(
        "-c",
        "--config",
        default=None,
        metavar="PATH",
        help="Optional YAML file merged over the bundled defaults "
        "(default: $XRAYBOOT_CONFIG).",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=False,
        help="Enable debug output (full tracebacks, verbose logging).",
    )
    parser.add_argument(
        "--validate-only",
        action="store_true",
        default=False,
        help="Resolve and validate the configuration, then exit.",
    )
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )

    # Subcommands
    subparsers = parser.add_subparsers(dest="command")

    # run
    run_parser = subparsers.add_parser(
        "run",
        help="Run the full bootstrap and exec the supervisor",
    )
    run_parser.add_argument(
        "exec_command",
        nargs=argparse.REMAINDER,
        metavar="COMMAND",
        help="Command to exec at the end (default: configured supervisor command)",
    )

    # render
    render_parser = subparsers.add_parser(
        "render",
        help="Render the Xray and nginx configurations without issuing certificates",
    )
    render_parser.add_argument(
        "--output-dir",
        default=None,
        metavar="DIR",
        help="Write into DIR instead of the configured paths",
    )
    render_parser.add_argument(
        "--stdout",
        action="store_true",
        default=False,
        help="Print the rendered documents instead of writing them",
    )

    # renew
    subparsers.add_parser("renew", help="Run certificate renewal now")

    # geodata
    subparsers.add_parser("geodata", help="Refresh the GeoIP/GeoSite datasets")

    return parser


def _print_error(message: str) -> None:
    """Print a user-facing error to stderr."""
    sys.stderr.write(f"ERROR: {message}\n")
    sys.stderr.flush()


def main(argv: list[str] | None = None) -> None:
    """CLI entry point.  Parses arguments, resolves config, dispatches."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    # -- bootstrap logging early (basic stderr until config is loaded) ---
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    # -- resolve & validate config ---
    try:
        from xrayboot.config import load_settings

        settings = load_settings(os.environ, config_file=args.config)
    except BootstrapError as exc:
        _print_error(str(exc))
        if isinstance(exc, MissingRequiredInput):
            _print_error("Usage: docker run -e DOMAIN=your.domain.com ...")
        sys.exit(1)
    except Exception as exc:
        if args.debug:
            raise
        _print_error(f"failed to load configuration: {exc}")
        sys.exit(1)

    # -- replace bootstrap logging with structured logging ---
    from xrayboot.logging import configure_logging, stage_context

    configure_logging(settings.logging)

    with stage_context(Stage.RESOLVE):
        if settings.service.client_id_generated:
            log.info("Generated UUID: %s", settings.service.client_id)
        else:
            log.info("Using provided UUID: %s", settings.service.client_id)

    if args.validate_only:
        _print_settings_summary(settings)
        sys.exit(0)

    # -- dispatch subcommand ---
    command = args.command

    try:
        if command == "render":
            from xrayboot.cli.commands.render import run_render

            run_render(settings, args)
        elif command == "renew":
            from xrayboot.cli.commands.renew import run_renew

            run_renew(settings, args)
        elif command == "geodata":
            from xrayboot.cli.commands.geodata import run_geodata

            run_geodata(settings, args)
        else:
            # Default: run (no subcommand = container entrypoint)
            from xrayboot.cli.commands.run import run_bootstrap

            run_bootstrap(settings, args)
    except BootstrapError as exc:
        if args.debug:
            raise
        log.error("%s", exc.detail)  # noqa: TRY400
        sys.exit(1)


def _print_settings_summary(settings) -> None:
    """Print a short summary of the resolved configuration."""
    service = settings.service
    lines = [
        "Configuration OK",
        f"  domain:          {service.domain}",
        f"  xray port:       {service.xray_port}",
        f"  nginx http port: {service.nginx_http_port}",
        f"  protocol:        {service.protocol}",
        f"  flow:            {service.flow}",
        f"  acme email:      {service.acme_email}",
        f"  certificates:    {settings.paths.cert_dir}",
        f"  renewal:         {settings.renewal.schedule if settings.renewal.enabled else 'off'}",
        f"  geodata:         {'on' if settings.geodata.enabled else 'off'}",
        f"  supervisor:      {' '.join(settings.supervisor.command)}",
    ]
    sys.stdout.write("\n".join(lines) + "\n")
