"""Root conftest for the xrayboot test suite."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import pytest

# ---------------------------------------------------------------------------
# Make ``src/`` importable without installing the package
# ---------------------------------------------------------------------------
_SRC = str(Path(__file__).resolve().parent.parent / "src")
if _SRC not in sys.path:
    sys.path.insert(0, _SRC)

from fakes import FakeIssuanceClient, FakeListener  # noqa: E402

TEST_UUID = "8b0c7f8e-4a53-4a5c-9d6e-0f7e9a1b2c3d"


# ---------------------------------------------------------------------------
# Raw config data with every path redirected into tmp_path
# ---------------------------------------------------------------------------


@pytest.fixture()
def config_data(tmp_path: Path) -> dict:
    """Return resolved config data whose paths all live under *tmp_path*."""
    return {
        "service": {
            "domain": "example.com",
            "xray_port": "443",
            "nginx_http_port": "80",
            "client_id": TEST_UUID,
            "protocol": "vless",
            "flow": "xtls-rprx-vision",
            "acme_email": "admin@example.com",
        },
        "paths": {
            "cert_dir": str(tmp_path / "cert"),
            "xray_config": str(tmp_path / "xray" / "config.json"),
            "nginx_config": str(tmp_path / "nginx" / "nginx.conf"),
            "nginx_mime_types": str(tmp_path / "nginx" / "mime.types"),
            "nginx_pid": str(tmp_path / "run" / "nginx.pid"),
            "webroot": str(tmp_path / "www"),
            "geodata_dir": str(tmp_path / "xray"),
            "acme_home": str(tmp_path / "acme"),
            "acme_log": str(tmp_path / "log" / "acme.log"),
        },
        "acme": {"binary": "/opt/acme.sh"},
        "listener": {"settle_seconds": 0, "stop_timeout_seconds": 0, "probe": False},
        "renewal": {"crontab_binary": "crontab"},
        "geodata": {"base_url": "https://geo.example.test/download"},
        "supervisor": {"command": ["supervisord", "-c", "/etc/supervisord.conf"]},
        "logging": {"level": "debug", "format": "text"},
    }


@pytest.fixture()
def settings(config_data: dict):
    """Typed settings built from :func:`config_data`."""
    from xrayboot.config.settings import build_settings

    return build_settings(config_data)


@pytest.fixture()
def installed_cert(settings):
    """Create placeholder certificate and key files for example.com."""
    from xrayboot.certs.base import CertificateBundle

    bundle = CertificateBundle.for_domain(settings.paths.cert_dir, settings.service.domain)
    Path(settings.paths.cert_dir).mkdir(parents=True, exist_ok=True)
    Path(bundle.cert_file).write_text("placeholder cert\n", encoding="utf-8")
    Path(bundle.key_file).write_text("placeholder key\n", encoding="utf-8")
    return bundle


# ---------------------------------------------------------------------------
# Logger cleanup: configure_logging mutates the global hierarchy
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def isolate_log_domain():
    """Start every test without a log domain and restore it afterwards."""
    from xrayboot.logging import reset_log_domain, set_log_domain

    token = set_log_domain(None)
    yield
    reset_log_domain(token)


@pytest.fixture(autouse=True)
def reset_xrayboot_logger():
    """Let records propagate to caplog again after each test."""
    yield
    root = logging.getLogger("xrayboot")
    root.handlers.clear()
    root.propagate = True
    root.setLevel(logging.NOTSET)


# ---------------------------------------------------------------------------
# Fake collaborators
# ---------------------------------------------------------------------------


@pytest.fixture()
def events() -> list:
    """Shared call log for fakes that need ordering assertions."""
    return []


@pytest.fixture()
def fake_client(events) -> FakeIssuanceClient:
    return FakeIssuanceClient(events=events)


@pytest.fixture()
def fake_listener(events) -> FakeListener:
    return FakeListener(events=events)
