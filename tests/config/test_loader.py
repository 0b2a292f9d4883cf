"""Tests for YAML loading, merging and ``${VAR}`` resolution."""

from __future__ import annotations

import pytest

from xrayboot.config.loader import (
    _deep_merge,
    _resolve_env_vars,
    _resolve_value,
    load_settings,
)
from xrayboot.core.errors import ConfigValidationError, MissingRequiredInput


class TestResolveValue:
    def test_plain_string_untouched(self):
        assert _resolve_value("vless", {}) == "vless"

    def test_variable_present(self):
        assert _resolve_value("${DOMAIN}", {"DOMAIN": "a.example"}) == "a.example"

    def test_default_used_when_unset(self):
        assert _resolve_value("${XRAY_PORT:-443}", {}) == "443"

    def test_empty_input_counts_as_unset(self):
        assert _resolve_value("${XRAY_PORT:-443}", {"XRAY_PORT": ""}) == "443"

    def test_empty_default(self):
        assert _resolve_value("${XRAY_UUID:-}", {}) == ""

    def test_required_variable_missing(self):
        with pytest.raises(MissingRequiredInput) as exc_info:
            _resolve_value("${SECRET}", {})
        assert exc_info.value.field == "SECRET"

    def test_partial_reference_is_literal(self):
        assert _resolve_value("prefix-${DOMAIN}", {"DOMAIN": "x"}) == "prefix-${DOMAIN}"


class TestResolveEnvVars:
    def test_nested_dicts_and_lists(self):
        data = {
            "a": {"b": "${ONE:-1}", "c": ["${TWO:-2}", {"d": "${THREE}"}]},
            "n": 5,
        }
        _resolve_env_vars(data, {"THREE": "3"})
        assert data == {"a": {"b": "1", "c": ["2", {"d": "3"}]}, "n": 5}


class TestDeepMerge:
    def test_nested_override(self):
        base = {"acme": {"server": "letsencrypt", "force": True}, "x": 1}
        merged = _deep_merge(base, {"acme": {"server": "zerossl"}})
        assert merged == {"acme": {"server": "zerossl", "force": True}, "x": 1}

    def test_base_not_mutated(self):
        base = {"acme": {"server": "letsencrypt"}}
        _deep_merge(base, {"acme": {"server": "zerossl"}})
        assert base["acme"]["server"] == "letsencrypt"

    def test_lists_replaced_not_merged(self):
        merged = _deep_merge({"files": ["a", "b"]}, {"files": ["c"]})
        assert merged["files"] == ["c"]


class TestLoadSettings:
    def test_minimal_inputs(self):
        settings = load_settings({"DOMAIN": "Example.com"})
        assert settings.service.domain == "example.com"
        assert settings.service.xray_port == 443
        assert settings.service.nginx_http_port == 80
        assert settings.service.protocol == "vless"
        assert settings.service.flow == "xtls-rprx-vision"
        assert settings.service.acme_email == "admin@example.com"
        assert settings.service.client_id_generated is True
        assert settings.paths.cert_dir == "/usr/local/etc/xray/cert"
        assert settings.acme.key_length == "ec-256"
        assert settings.acme.server == "letsencrypt"
        assert settings.renewal.schedule == "0 3 * * *"
        assert settings.geodata.files == ("geoip.dat", "geosite.dat")
        assert settings.supervisor.command[0] == "supervisord"

    def test_all_inputs(self):
        settings = load_settings(
            {
                "DOMAIN": "vpn.example.org",
                "XRAY_PORT": "8443",
                "NGINX_HTTP_PORT": "8080",
                "XRAY_UUID": "11111111-2222-4333-8444-555555555555",
                "XRAY_PROTOCOL": "vless",
                "XRAY_FLOW": "",
                "ACME_EMAIL": "ops@example.org",
                "LOG_LEVEL": "warning",
                "LOG_FORMAT": "json",
            },
        )
        service = settings.service
        assert service.xray_port == 8443
        assert service.nginx_http_port == 8080
        assert service.client_id == "11111111-2222-4333-8444-555555555555"
        assert service.client_id_generated is False
        assert service.acme_email == "ops@example.org"
        assert settings.logging.level == "warning"

    def test_missing_domain(self):
        with pytest.raises(MissingRequiredInput, match="DOMAIN is required"):
            load_settings({})

    def test_empty_domain(self):
        with pytest.raises(MissingRequiredInput):
            load_settings({"DOMAIN": ""})

    def test_invalid_port(self):
        with pytest.raises(ConfigValidationError, match="service.xray_port"):
            load_settings({"DOMAIN": "example.com", "XRAY_PORT": "99999"})

    def test_override_file(self, tmp_path):
        override = tmp_path / "xrayboot.yaml"
        override.write_text(
            "acme:\n  server: zerossl\nrenewal:\n  enabled: false\n",
            encoding="utf-8",
        )
        settings = load_settings({"DOMAIN": "example.com"}, config_file=override)
        assert settings.acme.server == "zerossl"
        assert settings.acme.key_length == "ec-256"
        assert settings.renewal.enabled is False

    def test_override_file_from_inputs(self, tmp_path):
        override = tmp_path / "xrayboot.yaml"
        override.write_text("geodata:\n  enabled: false\n", encoding="utf-8")
        settings = load_settings(
            {"DOMAIN": "example.com", "XRAYBOOT_CONFIG": str(override)},
        )
        assert settings.geodata.enabled is False

    def test_override_may_reference_inputs(self, tmp_path):
        override = tmp_path / "xrayboot.yaml"
        override.write_text("acme:\n  server: ${ACME_SERVER:-buypass}\n", encoding="utf-8")
        settings = load_settings({"DOMAIN": "example.com"}, config_file=override)
        assert settings.acme.server == "buypass"

    def test_missing_override_file(self, tmp_path):
        with pytest.raises(ConfigValidationError, match="cannot read"):
            load_settings({"DOMAIN": "example.com"}, config_file=tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path):
        override = tmp_path / "bad.yaml"
        override.write_text("acme: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigValidationError, match="invalid YAML"):
            load_settings({"DOMAIN": "example.com"}, config_file=override)

    def test_non_mapping_yaml(self, tmp_path):
        override = tmp_path / "list.yaml"
        override.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigValidationError, match="mapping"):
            load_settings({"DOMAIN": "example.com"}, config_file=override)

    def test_empty_override_file(self, tmp_path):
        override = tmp_path / "empty.yaml"
        override.write_text("", encoding="utf-8")
        settings = load_settings({"DOMAIN": "example.com"}, config_file=override)
        assert settings.service.domain == "example.com"
