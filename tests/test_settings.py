"""配置加载测试。Configuration loading tests."""

from __future__ import annotations

import json

import pytest

from vpsaccess.config.defaults import DEFAULT_CONFIG_PATH, DEFAULT_SSH_PORT, DEFAULT_XRAY_CONFIG_PATH
from vpsaccess.config.settings import load_settings, resolve_config_path, settings_from_dict
from vpsaccess.errors import ConfigError


def write_config(temp_dir, data) -> str:
    path = temp_dir / "config.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


class TestSettingsFromDict:
    """配置解析测试。Config document parsing tests."""

    def test_defaults_fill_missing_sections(self):
        settings = settings_from_dict({"domain": "vpn.example.com."})

        assert settings.domain == "vpn.example.com"
        assert settings.protocols.ssh == DEFAULT_SSH_PORT
        assert settings.protocols.xray.config_path == DEFAULT_XRAY_CONFIG_PATH
        assert settings.remote is None
        assert settings.step_timeout is None

    def test_full_document(self):
        settings = settings_from_dict(
            {
                "domain": "example.org",
                "log_path": "/tmp/vps/manager.log",
                "db_path": "/tmp/vps/users.json",
                "step_timeout": 30,
                "bcrypt_rounds": 10,
                "protocols": {
                    "xray": {"port": 8443, "config_path": "/opt/xray.json"},
                    "ssl": {"cert_dir": "/opt/certs", "key_dir": "/opt/keys", "valid_days": 30},
                    "http": {"port": 8081, "passwd_file": "/opt/htpasswd"},
                    "dropbear": {"port": 2200},
                },
                "remote": {"host": "203.0.113.5", "key_path": "~/.ssh/id_ed25519"},
            }
        )

        assert settings.db_path == "/tmp/vps/users.json"
        assert settings.step_timeout == 30.0
        assert settings.bcrypt_rounds == 10
        assert settings.protocols.xray.port == 8443
        assert settings.protocols.xray.config_path == "/opt/xray.json"
        assert settings.protocols.ssl.cert_dir == "/opt/certs"
        assert settings.protocols.ssl.valid_days == 30
        assert settings.protocols.http.passwd_file == "/opt/htpasswd"
        assert settings.protocols.dropbear.port == 2200
        assert settings.remote.host == "203.0.113.5"
        assert settings.remote.username == "root"
        assert settings.remote.port == 22

    @pytest.mark.parametrize(
        "data",
        [
            {},
            {"domain": "  "},
            {"domain": "x.com", "protocols": {"ssh": {"port": 0}}},
            {"domain": "x.com", "protocols": {"squid": {"port": "abc"}}},
            {"domain": "x.com", "protocols": {"udp": {"port": 70000}}},
            {"domain": "x.com", "protocols": ["ssh"]},
            {"domain": "x.com", "step_timeout": 0},
            {"domain": "x.com", "step_timeout": "soon"},
            {"domain": "x.com", "remote": {"username": "root"}},
            {"domain": "x.com", "protocols": {"ssl": {"valid_days": "a year"}}},
            {"domain": "x.com", "protocols": {"ssl": {"valid_days": 0}}},
            {"domain": "x.com", "command_timeout": "slow"},
            {"domain": "x.com", "command_timeout": -1},
            {"domain": "x.com", "bcrypt_rounds": "many"},
            {"domain": "x.com", "bcrypt_rounds": 3},
            {"domain": "x.com", "bcrypt_rounds": 32},
            {"domain": "x.com", "bcrypt_rounds": True},
        ],
    )
    def test_invalid_documents(self, data):
        with pytest.raises(ConfigError):
            settings_from_dict(data)

    def test_error_names_the_offending_key(self):
        with pytest.raises(ConfigError, match="bcrypt_rounds"):
            settings_from_dict({"domain": "x.com", "bcrypt_rounds": 40})

    def test_non_object_document(self):
        with pytest.raises(ConfigError):
            settings_from_dict(["domain"])


class TestLoadSettings:
    def test_load_from_file(self, temp_dir):
        path = write_config(temp_dir, {"domain": "vpn.example.com"})
        assert load_settings(path).domain == "vpn.example.com"

    def test_missing_file(self, temp_dir):
        with pytest.raises(ConfigError, match="not found"):
            load_settings(temp_dir / "nope.json")

    def test_invalid_json(self, temp_dir):
        path = temp_dir / "config.json"
        path.write_text("{", encoding="utf-8")
        with pytest.raises(ConfigError, match="invalid JSON"):
            load_settings(path)

    def test_environment_variable_used_when_no_argument(self, temp_dir, monkeypatch):
        path = write_config(temp_dir, {"domain": "env.example.com"})
        monkeypatch.delenv("VPS_MANAGER_CONFIG", raising=False)
        monkeypatch.setenv("VPSACCESS_CONFIG", path)

        assert load_settings().domain == "env.example.com"

    def test_explicit_path_beats_environment(self, temp_dir, monkeypatch):
        monkeypatch.setenv("VPSACCESS_CONFIG", "/nonexistent.json")
        assert str(resolve_config_path(temp_dir / "a.json")) == str(temp_dir / "a.json")

    def test_default_path(self, monkeypatch):
        monkeypatch.delenv("VPSACCESS_CONFIG", raising=False)
        monkeypatch.delenv("VPS_MANAGER_CONFIG", raising=False)
        assert str(resolve_config_path()) == DEFAULT_CONFIG_PATH
