"""Tests for the certificate lifecycle manager."""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from xrayboot.certs.manager import CertificateManager, read_expiry
from xrayboot.core.errors import CertificateIssuanceFailed, ListenerError
from xrayboot.core.types import CertificateState
from xrayboot.render.renderer import ConfigRenderer

from fakes import FakeIssuanceClient, FakeListener


def _self_signed_pem(not_after: datetime) -> bytes:
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "example.com")])
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_after - timedelta(days=90))
        .not_valid_after(not_after)
        .sign(key, hashes.SHA256())
    )
    return cert.public_bytes(serialization.Encoding.PEM)


def _manager(settings, client, listener, sleep=None):
    return CertificateManager(
        settings,
        client=client,
        listener=listener,
        renderer=ConfigRenderer(settings.paths),
        sleep=sleep or (lambda _s: None),
    )


# -----------------------------------------------------------------------
# Cached certificate
# -----------------------------------------------------------------------


class TestCachedCertificate:
    def test_no_issuance_when_files_exist(self, settings, installed_cert, fake_client, fake_listener):
        manager = _manager(settings, fake_client, fake_listener)
        bundle = manager.ensure()

        assert bundle == installed_cert
        assert manager.state is CertificateState.CACHED
        assert fake_client.issue_calls == []
        assert fake_listener.started_with is None

    def test_key_alone_is_not_enough(self, settings, installed_cert, fake_client, fake_listener):
        Path(installed_cert.cert_file).unlink()
        manager = _manager(settings, fake_client, fake_listener)
        manager.ensure()
        assert len(fake_client.issue_calls) == 1
        assert manager.state is CertificateState.ISSUED

    def test_expiring_certificate_warns(self, settings, installed_cert, fake_client, fake_listener, caplog):
        not_after = datetime.now(UTC) + timedelta(days=3)
        Path(installed_cert.cert_file).write_bytes(_self_signed_pem(not_after))
        manager = _manager(settings, fake_client, fake_listener)

        with caplog.at_level(logging.INFO, logger="xrayboot.certs.manager"):
            manager.ensure()

        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert any("expires in" in r.getMessage() for r in warnings)

    def test_expired_certificate_warns(self, settings, installed_cert, fake_client, fake_listener, caplog):
        not_after = datetime.now(UTC) - timedelta(days=1)
        Path(installed_cert.cert_file).write_bytes(_self_signed_pem(not_after))
        manager = _manager(settings, fake_client, fake_listener)

        with caplog.at_level(logging.INFO, logger="xrayboot.certs.manager"):
            manager.ensure()

        assert any("expired on" in r.getMessage() for r in caplog.records)
        assert manager.state is CertificateState.CACHED


# -----------------------------------------------------------------------
# Issuance
# -----------------------------------------------------------------------


class TestIssuance:
    def test_success(self, settings, fake_client, fake_listener, events):
        manager = _manager(settings, fake_client, fake_listener)
        bundle = manager.ensure()

        assert manager.state is CertificateState.ISSUED
        assert bundle.exists()
        assert events == ["start", "issue", "install", "stop"]
        assert fake_listener.running is False

    def test_issue_arguments(self, settings, fake_client, fake_listener):
        _manager(settings, fake_client, fake_listener).ensure()
        assert fake_client.issue_calls == [
            {
                "domain": "example.com",
                "webroot": settings.paths.webroot,
                "key_length": "ec-256",
                "server": "letsencrypt",
                "email": "admin@example.com",
                "force": True,
            },
        ]
        bundle, key_length = fake_client.install_calls[0]
        assert bundle.cert_file.endswith("example.com.crt")
        assert key_length == "ec-256"

    def test_bootstrap_config_and_challenge_dir(self, settings, fake_client, fake_listener):
        _manager(settings, fake_client, fake_listener).ensure()

        challenge_dir = Path(settings.paths.webroot) / ".well-known" / "acme-challenge"
        assert challenge_dir.is_dir()
        assert fake_listener.started_with == settings.paths.nginx_config
        bootstrap = Path(settings.paths.nginx_config).read_text(encoding="utf-8")
        assert "listen 80;" in bootstrap
        assert "server_name example.com;" in bootstrap
        assert "location /.well-known/acme-challenge/" in bootstrap

    def test_settle_delay_without_probe(self, settings, fake_client, fake_listener):
        slept = []
        _manager(settings, fake_client, fake_listener, sleep=slept.append).ensure()
        assert slept == [settings.listener.settle_seconds]
        assert "wait_ready" not in fake_listener.events

    def test_probe_used_when_enabled(self, config_data, fake_client, fake_listener):
        from xrayboot.config.settings import build_settings

        config_data["listener"]["probe"] = True
        settings = build_settings(config_data)
        slept = []
        _manager(settings, fake_client, fake_listener, sleep=slept.append).ensure()
        assert slept == []
        assert "wait_ready" in fake_listener.events

    @pytest.mark.parametrize("step", ["issue", "install", "no-files", "partial-install"])
    def test_failure_stops_listener_and_leaves_no_cert(self, settings, fake_listener, step):
        client = FakeIssuanceClient(fail_on=step)
        manager = _manager(settings, client, fake_listener)

        with pytest.raises(CertificateIssuanceFailed, match="example.com") as exc_info:
            manager.ensure()

        assert exc_info.value.fatal is True
        assert manager.state is CertificateState.FAILED
        assert fake_listener.running is False
        assert "stop" in fake_listener.events
        assert not (Path(settings.paths.cert_dir) / "example.com.crt").exists()

    def test_failure_keeps_files_present_before_issuance(self, settings, fake_listener):
        key = Path(settings.paths.cert_dir) / "example.com.key"
        key.parent.mkdir(parents=True, exist_ok=True)
        key.write_text("existing key\n", encoding="utf-8")
        manager = _manager(settings, FakeIssuanceClient(fail_on="partial-install"), fake_listener)

        with pytest.raises(CertificateIssuanceFailed):
            manager.ensure()

        assert key.read_text(encoding="utf-8") == "existing key\n"
        assert not (Path(settings.paths.cert_dir) / "example.com.crt").exists()

    def test_stuck_listener_raises(self, settings, fake_client):
        listener = FakeListener(stuck=True)
        manager = _manager(settings, fake_client, listener)
        with pytest.raises(ListenerError, match="still running"):
            manager.ensure()

    def test_listener_start_failure_propagates(self, settings, fake_client):
        class BrokenListener(FakeListener):
            def start(self, config_path):
                raise ListenerError("nginx failed to start (status 1): bind() failed")

        manager = _manager(settings, fake_client, BrokenListener())
        with pytest.raises(ListenerError, match="bind"):
            manager.ensure()
        assert fake_client.issue_calls == []
        assert manager.state is CertificateState.MISSING

    def test_second_ensure_is_rejected(self, settings, installed_cert, fake_client, fake_listener):
        manager = _manager(settings, fake_client, fake_listener)
        manager.ensure()
        with pytest.raises(ValueError, match="Invalid transition"):
            manager.ensure()


class TestReadExpiry:
    def test_reads_not_after(self, tmp_path):
        not_after = datetime(2030, 1, 2, 3, 4, 5, tzinfo=UTC)
        cert_file = tmp_path / "c.crt"
        cert_file.write_bytes(_self_signed_pem(not_after))
        assert read_expiry(cert_file) == not_after

    def test_unreadable(self, tmp_path):
        assert read_expiry(tmp_path / "missing.crt") is None

    def test_not_pem(self, tmp_path):
        cert_file = tmp_path / "c.crt"
        cert_file.write_text("placeholder", encoding="utf-8")
        assert read_expiry(cert_file) is None
