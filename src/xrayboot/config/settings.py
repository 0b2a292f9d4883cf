"""Typed, frozen dataclasses for every configuration section.

This module is the **single source of truth** for the typed shape of the
settings.  Values arrive here after ``${VAR}`` resolution, so anything
that came from the environment is still a string; the builders coerce
and validate it and collect every problem before failing.

Access pattern::

    from xrayboot.config import load_settings

    settings = load_settings(os.environ)
    print(settings.service.domain, settings.service.xray_port)
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any

from xrayboot.core.errors import ConfigValidationError, MissingRequiredInput
from xrayboot.core.types import LogFormat

_MIN_PORT = 1
_MAX_PORT = 65535

_TRUE_STRINGS = frozenset({"1", "true", "yes", "on"})
_FALSE_STRINGS = frozenset({"0", "false", "no", "off", ""})

_LOG_LEVELS = frozenset({"debug", "info", "warning", "error", "critical"})


# ---------------------------------------------------------------------------
# Coercion helpers
# ---------------------------------------------------------------------------


def _as_str(value: Any) -> str:  # noqa: ANN401
    if value is None:
        return ""
    return str(value).strip()


def _as_int(value: Any, path: str, errors: list[str]) -> int:  # noqa: ANN401
    if isinstance(value, bool):
        errors.append(f"{path} must be an integer (got {value!r})")
        return 0
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        errors.append(f"{path} must be an integer (got {value!r})")
        return 0


def _as_port(value: Any, path: str, errors: list[str]) -> int:  # noqa: ANN401
    before = len(errors)
    port = _as_int(value, path, errors)
    if len(errors) == before and not _MIN_PORT <= port <= _MAX_PORT:
        errors.append(
            f"{path} must be between {_MIN_PORT} and {_MAX_PORT} (got {port})",
        )
    return port


def _as_bool(value: Any, path: str, errors: list[str]) -> bool:  # noqa: ANN401
    if isinstance(value, bool):
        return value
    text = _as_str(value).lower()
    if text in _TRUE_STRINGS:
        return True
    if text in _FALSE_STRINGS:
        return False
    errors.append(f"{path} must be a boolean (got {value!r})")
    return False


def _as_float(value: Any, path: str, errors: list[str]) -> float:  # noqa: ANN401
    try:
        result = float(str(value).strip())
    except (TypeError, ValueError):
        errors.append(f"{path} must be a number (got {value!r})")
        return 0.0
    if result < 0:
        errors.append(f"{path} must not be negative (got {result})")
    return result


def _as_tuple(value: Any, path: str, errors: list[str]) -> tuple[str, ...]:  # noqa: ANN401
    if value is None:
        return ()
    if isinstance(value, str):
        return tuple(value.split())
    if isinstance(value, (list, tuple)):
        return tuple(str(v) for v in value)
    errors.append(f"{path} must be a list (got {value!r})")
    return ()


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ServiceConfig:
    """What the two services are configured with.

    ``client_id_generated`` is true when no ``XRAY_UUID`` was supplied
    and the resolver produced a fresh identifier, so the caller knows
    to display it.
    """

    domain: str
    xray_port: int
    nginx_http_port: int
    client_id: str
    protocol: str
    flow: str
    acme_email: str
    client_id_generated: bool = False


def _build_service(data: dict | None, errors: list[str]) -> ServiceConfig:
    d = data or {}

    domain = _as_str(d.get("domain")).lower()
    if not domain:
        raise MissingRequiredInput("DOMAIN")

    client_id = _as_str(d.get("client_id"))
    generated = False
    if not client_id:
        client_id = str(uuid.uuid4())
        generated = True

    protocol = _as_str(d.get("protocol", "vless")) or "vless"
    email = _as_str(d.get("acme_email", "admin@example.com")) or "admin@example.com"
    if "@" not in email:
        errors.append(f"service.acme_email must be an email address (got {email!r})")

    return ServiceConfig(
        domain=domain,
        xray_port=_as_port(d.get("xray_port", 443), "service.xray_port", errors),
        nginx_http_port=_as_port(
            d.get("nginx_http_port", 80),
            "service.nginx_http_port",
            errors,
        ),
        client_id=client_id,
        protocol=protocol,
        flow=_as_str(d.get("flow", "xtls-rprx-vision")),
        acme_email=email,
        client_id_generated=generated,
    )


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PathSettings:
    """Filesystem locations shared by every stage."""

    cert_dir: str
    xray_config: str
    nginx_config: str
    nginx_mime_types: str
    nginx_pid: str
    webroot: str
    geodata_dir: str
    acme_home: str
    acme_log: str
    templates: str | None


def _build_paths(data: dict | None) -> PathSettings:
    d = data or {}
    return PathSettings(
        cert_dir=d.get("cert_dir", "/usr/local/etc/xray/cert"),
        xray_config=d.get("xray_config", "/usr/local/etc/xray/config.json"),
        nginx_config=d.get("nginx_config", "/etc/nginx/nginx.conf"),
        nginx_mime_types=d.get("nginx_mime_types", "/etc/nginx/mime.types"),
        nginx_pid=d.get("nginx_pid", "/var/run/nginx.pid"),
        webroot=d.get("webroot", "/var/www/html"),
        geodata_dir=d.get("geodata_dir", "/usr/local/etc/xray"),
        acme_home=d.get("acme_home", "/root/.acme.sh"),
        acme_log=d.get("acme_log", "/var/log/acme.log"),
        templates=d.get("templates") or None,
    )


# ---------------------------------------------------------------------------
# Issuance client
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AcmeSettings:
    """How acme.sh is invoked."""

    binary: str
    server: str
    key_length: str
    force: bool
    timeout_seconds: int


def _build_acme(data: dict | None, errors: list[str]) -> AcmeSettings:
    d = data or {}
    return AcmeSettings(
        binary=d.get("binary", "/root/.acme.sh/acme.sh"),
        server=d.get("server", "letsencrypt"),
        key_length=d.get("key_length", "ec-256"),
        force=_as_bool(d.get("force", True), "acme.force", errors),
        timeout_seconds=_as_int(d.get("timeout_seconds", 300), "acme.timeout_seconds", errors),
    )


# ---------------------------------------------------------------------------
# Bootstrap listener
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ListenerSettings:
    """Temporary nginx used to answer HTTP-01 challenges."""

    binary: str
    settle_seconds: float
    stop_timeout_seconds: float
    probe: bool


def _build_listener(data: dict | None, errors: list[str]) -> ListenerSettings:
    d = data or {}
    return ListenerSettings(
        binary=d.get("binary", "nginx"),
        settle_seconds=_as_float(d.get("settle_seconds", 2), "listener.settle_seconds", errors),
        stop_timeout_seconds=_as_float(
            d.get("stop_timeout_seconds", 10),
            "listener.stop_timeout_seconds",
            errors,
        ),
        probe=_as_bool(d.get("probe", True), "listener.probe", errors),
    )


# ---------------------------------------------------------------------------
# Renewal
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RenewalSettings:
    enabled: bool
    schedule: str
    crontab_binary: str


def _build_renewal(data: dict | None, errors: list[str]) -> RenewalSettings:
    d = data or {}
    schedule = _as_str(d.get("schedule", "0 3 * * *"))
    if len(schedule.split()) != 5:  # noqa: PLR2004
        errors.append(
            f"renewal.schedule must have five cron fields (got {schedule!r})",
        )
    return RenewalSettings(
        enabled=_as_bool(d.get("enabled", True), "renewal.enabled", errors),
        schedule=schedule,
        crontab_binary=d.get("crontab_binary", "crontab"),
    )


# ---------------------------------------------------------------------------
# Routing datasets
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GeodataSettings:
    enabled: bool
    base_url: str
    files: tuple[str, ...]
    timeout_seconds: int


def _build_geodata(data: dict | None, errors: list[str]) -> GeodataSettings:
    d = data or {}
    return GeodataSettings(
        enabled=_as_bool(d.get("enabled", True), "geodata.enabled", errors),
        base_url=_as_str(
            d.get(
                "base_url",
                "https://github.com/Loyalsoldier/v2ray-rules-dat/releases/latest/download",
            ),
        ).rstrip("/"),
        files=_as_tuple(d.get("files", ["geoip.dat", "geosite.dat"]), "geodata.files", errors),
        timeout_seconds=_as_int(d.get("timeout_seconds", 60), "geodata.timeout_seconds", errors),
    )


# ---------------------------------------------------------------------------
# Supervisor
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SupervisorSettings:
    """Default command exec'd when none is given on the command line."""

    command: tuple[str, ...]


def _build_supervisor(data: dict | None, errors: list[str]) -> SupervisorSettings:
    d = data or {}
    command = _as_tuple(
        d.get(
            "command",
            ["supervisord", "-c", "/etc/supervisor/conf.d/supervisord.conf"],
        ),
        "supervisor.command",
        errors,
    )
    if not command:
        errors.append("supervisor.command must not be empty")
    return SupervisorSettings(command=command)


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LoggingSettings:
    level: str
    format: LogFormat


def _build_logging(data: dict | None, errors: list[str]) -> LoggingSettings:
    d = data or {}
    level = _as_str(d.get("level", "info")).lower() or "info"
    if level not in _LOG_LEVELS:
        errors.append(
            f"logging.level must be one of {sorted(_LOG_LEVELS)} (got {level!r})",
        )
    fmt = _as_str(d.get("format", "text")).lower() or "text"
    try:
        log_format = LogFormat(fmt)
    except ValueError:
        errors.append(
            f"logging.format must be one of {[f.value for f in LogFormat]} (got {fmt!r})",
        )
        log_format = LogFormat.TEXT
    return LoggingSettings(level=level, format=log_format)


# ---------------------------------------------------------------------------
# Root settings aggregate
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BootstrapSettings:
    service: ServiceConfig
    paths: PathSettings
    acme: AcmeSettings
    listener: ListenerSettings
    renewal: RenewalSettings
    geodata: GeodataSettings
    supervisor: SupervisorSettings
    logging: LoggingSettings


def build_settings(data: dict) -> BootstrapSettings:
    """Build the full typed settings tree from resolved config data.

    Raises :class:`MissingRequiredInput` as soon as the domain is found
    to be empty, and :class:`ConfigValidationError` listing every other
    problem once all sections have been built.
    """
    errors: list[str] = []
    settings = BootstrapSettings(
        service=_build_service(data.get("service"), errors),
        paths=_build_paths(data.get("paths")),
        acme=_build_acme(data.get("acme"), errors),
        listener=_build_listener(data.get("listener"), errors),
        renewal=_build_renewal(data.get("renewal"), errors),
        geodata=_build_geodata(data.get("geodata"), errors),
        supervisor=_build_supervisor(data.get("supervisor"), errors),
        logging=_build_logging(data.get("logging"), errors),
    )
    if errors:
        raise ConfigValidationError(errors)
    return settings
