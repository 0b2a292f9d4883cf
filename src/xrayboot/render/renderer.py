"""Renderer for the nginx and Xray configuration documents.

nginx configurations come from Jinja2 templates resolved with a
two-tier loader:

1. Operator-specified ``paths.templates`` directory (overrides)
2. Built-in templates shipped with the package

The Xray configuration is built as a dict by :mod:`xrayboot.render.xray`
and serialised to JSON.  Rendering never touches the filesystem;
:meth:`RenderedConfig.write` does that separately.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import TYPE_CHECKING, Any

from jinja2 import (
    BaseLoader,
    ChoiceLoader,
    Environment,
    FileSystemLoader,
    PackageLoader,
    StrictUndefined,
    TemplateError,
)

from xrayboot.core.errors import TemplateRenderError
from xrayboot.core.files import atomic_write_text
from xrayboot.render.xray import build_xray_config, serialize_xray_config

if TYPE_CHECKING:
    from xrayboot.certs.base import CertificateBundle
    from xrayboot.config.settings import PathSettings, ServiceConfig

log = logging.getLogger(__name__)

CHALLENGE_LOCATION = "/.well-known/acme-challenge/"
COMPRESSION_LEVEL = 6
COMPRESSIBLE_TYPES = (
    "text/plain",
    "text/css",
    "text/xml",
    "text/javascript",
    "application/json",
    "application/javascript",
    "application/xml+rss",
    "application/rss+xml",
    "font/truetype",
    "font/opentype",
    "application/vnd.ms-fontobject",
    "image/svg+xml",
)
NGINX_ERROR_LOG = "/var/log/nginx/error.log"
NGINX_ACCESS_LOG = "/var/log/nginx/access.log"


@dataclass(frozen=True)
class RenderedConfig:
    """A generated configuration document and where it belongs."""

    name: str
    path: str
    content: str

    def write(self) -> None:
        """Overwrite :attr:`path` with :attr:`content` atomically."""
        atomic_write_text(self.path, self.content)
        log.info("%s configuration written to %s", self.name, self.path)


def _require_bundle(bundle: CertificateBundle | None) -> CertificateBundle:
    if bundle is None:
        msg = "no certificate bundle available at render time"
        raise TemplateRenderError(msg)
    missing = [
        name
        for name, value in (("certificate", bundle.cert_file), ("key", bundle.key_file))
        if not value
    ]
    if missing:
        msg = f"certificate bundle for {bundle.domain!r} has no {' or '.join(missing)} path"
        raise TemplateRenderError(msg)
    return bundle


class ConfigRenderer:
    """Render the Xray, nginx and bootstrap nginx configurations.

    Parameters
    ----------
    paths:
        Path settings: output locations, webroot, pid file, and the
        optional operator template directory.

    """

    def __init__(self, paths: PathSettings) -> None:
        self._paths = paths
        loaders: list[BaseLoader] = []
        if paths.templates:
            loaders.append(FileSystemLoader(paths.templates))
        loaders.append(PackageLoader("xrayboot.render", "templates"))

        self._env = Environment(
            loader=ChoiceLoader(loaders),
            autoescape=False,  # noqa: S701
            undefined=StrictUndefined,
            keep_trailing_newline=True,
        )

    def _render_template(self, template_name: str, context: dict[str, Any]) -> str:
        try:
            return self._env.get_template(template_name).render(**context)
        except TemplateError as exc:
            msg = f"failed to render {template_name}: {exc}"
            raise TemplateRenderError(msg) from exc

    def _nginx_context(self, service: ServiceConfig) -> dict[str, Any]:
        return {
            "service": service,
            "webroot": self._paths.webroot,
            "challenge_location": CHALLENGE_LOCATION,
            "pid_file": self._paths.nginx_pid,
        }

    def render_xray(
        self,
        service: ServiceConfig,
        bundle: CertificateBundle | None,
    ) -> RenderedConfig:
        """Render the Xray server configuration (JSON)."""
        bundle = _require_bundle(bundle)
        content = serialize_xray_config(build_xray_config(service, bundle))
        return RenderedConfig(name="xray", path=self._paths.xray_config, content=content)

    def render_nginx(
        self,
        service: ServiceConfig,
        bundle: CertificateBundle | None,
    ) -> RenderedConfig:
        """Render the long-running nginx configuration.

        The certificate bundle is not referenced by nginx itself (TLS
        terminates in Xray) but must exist before the services start.
        """
        _require_bundle(bundle)
        context = self._nginx_context(service)
        context.update(
            {
                "error_log": NGINX_ERROR_LOG,
                "access_log": NGINX_ACCESS_LOG,
                "mime_types": self._paths.nginx_mime_types,
                "compression_level": COMPRESSION_LEVEL,
                "compressible_types": COMPRESSIBLE_TYPES,
            },
        )
        content = self._render_template("nginx.conf.j2", context)
        return RenderedConfig(name="nginx", path=self._paths.nginx_config, content=content)

    def render_bootstrap(self, service: ServiceConfig) -> RenderedConfig:
        """Render the minimal nginx configuration used during issuance."""
        content = self._render_template("bootstrap.conf.j2", self._nginx_context(service))
        return RenderedConfig(
            name="bootstrap nginx",
            path=self._paths.nginx_config,
            content=content,
        )

    def render_all(
        self,
        service: ServiceConfig,
        bundle: CertificateBundle | None,
    ) -> list[RenderedConfig]:
        return [self.render_xray(service, bundle), self.render_nginx(service, bundle)]


def ensure_mime_types(path: str | Path) -> bool:
    """Write the bundled MIME map to *path* unless a file is already there.

    Returns ``True`` if the file was written.
    """
    target = Path(path)
    if target.exists():
        return False
    content = resources.files("xrayboot.render").joinpath("templates/mime.types").read_text(
        encoding="utf-8",
    )
    atomic_write_text(target, content)
    log.info("Wrote default MIME types to %s", target)
    return True
