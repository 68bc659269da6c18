"""Tests for configuration models and loading."""

import pytest
from pydantic import ValidationError

from oob_probe.common.exceptions import ConfigurationError
from oob_probe.config import ProbeConfig, TunnelSettings, load_config


class TestProbeConfig:
    def test_defaults(self):
        config = ProbeConfig()

        assert config.bind_host == "127.0.0.1"
        assert config.log_max_size == 1024 * 1024
        assert config.http_body_limit == 1024 * 1024
        assert config.tcp_read_size == 4096
        assert config.desktop_notifications is True
        assert config.tunnel is None

    def test_rejects_unknown_fields(self):
        with pytest.raises(ValidationError):
            ProbeConfig(unknown=1)

    def test_negative_log_size_rejected(self):
        with pytest.raises(ValidationError):
            ProbeConfig(log_max_size=-1)


class TestTunnelSettings:
    def test_http_domain_defaults_to_server(self):
        settings = TunnelSettings(server_host="frp.example.com")

        assert settings.http_domain == "frp.example.com"
        assert settings.server_port == 7000

    def test_custom_domain(self):
        settings = TunnelSettings(server_host="frp.example.com", default_domain="oob.example.com")

        assert settings.http_domain == "oob.example.com"

    def test_invalid_hostname(self):
        with pytest.raises(ValidationError, match="Hostname"):
            TunnelSettings(server_host="bad host!")


class TestLoadConfig:
    def test_defaults_without_file_or_env(self):
        assert load_config(env={}) == ProbeConfig()

    def test_toml_file(self, tmp_path):
        path = tmp_path / "oob-probe.toml"
        path.write_text(
            'bind_host = "0.0.0.0"\n'
            "log_max_size = 2048\n"
            "\n"
            "[tunnel]\n"
            'server_host = "frp.example.com"\n'
            'auth_token = "abc123"\n'
        )

        config = load_config(path, env={})

        assert config.bind_host == "0.0.0.0"
        assert config.log_max_size == 2048
        assert config.tunnel is not None
        assert config.tunnel.auth_token == "abc123"

    def test_env_overrides(self, tmp_path):
        path = tmp_path / "oob-probe.toml"
        path.write_text("log_max_size = 2048\n")

        config = load_config(
            path,
            env={
                "OOB_PROBE_LOG_MAX_SIZE": "0",
                "OOB_PROBE_ENABLE_DESKTOP_NOTIFICATION": "false",
                "OOB_PROBE_FRP_SERVER": "frp.example.com",
                "OOB_PROBE_FRP_TOKEN": "tok",
            },
        )

        assert config.log_max_size == 0
        assert config.desktop_notifications is False
        assert config.tunnel.server_host == "frp.example.com"
        assert config.tunnel.auth_token == "tok"

    def test_unparseable_notification_flag_enables(self):
        config = load_config(env={"OOB_PROBE_ENABLE_DESKTOP_NOTIFICATION": "perhaps"})

        assert config.desktop_notifications is True

    def test_token_without_server_ignored(self):
        config = load_config(env={"OOB_PROBE_FRP_TOKEN": "tok"})

        assert config.tunnel is None

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="Failed to read config file"):
            load_config(tmp_path / "missing.toml", env={})

    def test_invalid_toml(self, tmp_path):
        path = tmp_path / "bad.toml"
        path.write_text("this is = = not toml")

        with pytest.raises(ConfigurationError):
            load_config(path, env={})

    def test_invalid_values(self):
        with pytest.raises(ConfigurationError, match="Invalid configuration"):
            load_config(env={"OOB_PROBE_LOG_MAX_SIZE": "lots"})
