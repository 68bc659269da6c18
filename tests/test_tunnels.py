"""Tests for tunnel providers and frpc configuration."""

import os
import tomllib
from unittest.mock import Mock, patch

import pytest

from oob_probe.common.exceptions import ProcessError, TunnelError
from oob_probe.config import ProbeConfig, TunnelSettings
from oob_probe.listeners.models import ListenerType
from oob_probe.tunnels import (
    ConfigBuilder,
    FRPTunnelProvider,
    LocalTunnelProvider,
    build_tunnel_provider,
)


class TestConfigBuilder:
    """Test suite for frpc TOML generation."""

    def test_render_tcp_proxy(self):
        builder = ConfigBuilder().add_server("frp.example.com", token="s3cr\"et")
        builder.add_tcp_proxy("catcher", 4444, remote_port=4444)

        parsed = tomllib.loads(builder.render())

        assert parsed["serverAddr"] == "frp.example.com"
        assert parsed["serverPort"] == 7000
        assert parsed["auth"] == {"method": "token", "token": 's3cr"et'}
        assert parsed["proxies"] == [
            {
                "name": "catcher",
                "type": "tcp",
                "localIP": "127.0.0.1",
                "localPort": 4444,
                "remotePort": 4444,
            }
        ]

    def test_render_http_proxy(self):
        builder = ConfigBuilder().add_server("frp.example.com", port=7001)
        builder.add_http_proxy("web", 8080, ["oob.example.com"])

        parsed = tomllib.loads(builder.render())

        assert "auth" not in parsed
        assert parsed["proxies"][0]["customDomains"] == ["oob.example.com"]

    def test_server_required(self):
        with pytest.raises(ValueError, match="Server address not set"):
            ConfigBuilder().render()

    def test_invalid_server(self):
        with pytest.raises(ValueError):
            ConfigBuilder().add_server("  ")
        with pytest.raises(ValueError):
            ConfigBuilder().add_server("frp.example.com", port=0)

    def test_http_proxy_requires_domain(self):
        with pytest.raises(ValueError):
            ConfigBuilder().add_http_proxy("web", 8080, [])

    def test_build_and_cleanup(self):
        with ConfigBuilder().add_server("frp.example.com") as builder:
            path = builder.build()
            assert os.path.exists(path)

        assert not os.path.exists(path)
        assert builder.config_path is None


class TestLocalTunnelProvider:
    def test_tcp_url(self):
        tunnel = LocalTunnelProvider().open_tunnel(4444, ListenerType.TCP)

        assert tunnel.public_url == "tcp://127.0.0.1:4444"
        tunnel.close()
        assert tunnel.closed

    def test_http_url(self):
        tunnel = LocalTunnelProvider("0.0.0.0").open_tunnel(8080, ListenerType.HTTP)

        assert tunnel.public_url == "http://0.0.0.0:8080/"


class TestFRPTunnelProvider:
    """Test suite for the frpc-backed provider with the process mocked out."""

    @pytest.fixture
    def settings(self, tmp_path):
        frpc = tmp_path / "frpc"
        frpc.write_text("#!/bin/sh\nsleep 60\n")
        frpc.chmod(0o755)
        return TunnelSettings(
            server_host="frp.example.com",
            auth_token="tok",
            default_domain="oob.example.com",
            frpc_path=str(frpc),
        )

    @pytest.fixture
    def process(self):
        with patch("oob_probe.tunnels.frp.ProcessManager") as manager_cls:
            instance = Mock()
            instance.wait_for_startup.return_value = True
            instance.stop.return_value = True
            manager_cls.return_value = instance
            yield manager_cls

    def test_open_tcp_tunnel(self, settings, process):
        tunnel = FRPTunnelProvider(settings).open_tunnel(4444, ListenerType.TCP)

        assert tunnel.public_url == "tcp://frp.example.com:4444"
        binary, config_path = process.call_args.args
        assert binary == settings.frpc_path
        with open(config_path, "rb") as f:
            parsed = tomllib.load(f)
        assert parsed["proxies"][0]["remotePort"] == 4444

        tunnel.close()
        process.return_value.stop.assert_called_once()
        assert not os.path.exists(config_path)

    def test_open_http_tunnel(self, settings, process):
        tunnel = FRPTunnelProvider(settings).open_tunnel(8080, ListenerType.HTTP)

        assert tunnel.public_url == "http://oob.example.com/"

    def test_early_exit_is_tunnel_error(self, settings, process):
        process.return_value.wait_for_startup.return_value = False
        process.return_value.returncode = 1

        with pytest.raises(TunnelError, match="exited during startup"):
            FRPTunnelProvider(settings).open_tunnel(4444, ListenerType.TCP)

        process.return_value.stop.assert_called_once()

    def test_process_error_wrapped(self, settings, process):
        process.return_value.start.side_effect = ProcessError("spawn failed")

        with pytest.raises(TunnelError, match="spawn failed"):
            FRPTunnelProvider(settings).open_tunnel(4444, ListenerType.TCP)

    def test_failed_stop_raises(self, settings, process):
        process.return_value.stop.return_value = False
        tunnel = FRPTunnelProvider(settings).open_tunnel(4444, ListenerType.TCP)

        with pytest.raises(TunnelError, match="failed to stop frpc"):
            tunnel.close()

    def test_missing_binary(self):
        settings = TunnelSettings(server_host="frp.example.com")
        with patch("oob_probe.tunnels.frp.shutil.which", return_value=None):
            with pytest.raises(TunnelError, match="frpc"):
                FRPTunnelProvider(settings).open_tunnel(4444, ListenerType.TCP)


class TestBuildTunnelProvider:
    def test_local_by_default(self):
        assert isinstance(build_tunnel_provider(ProbeConfig()), LocalTunnelProvider)

    def test_frp_when_configured(self):
        config = ProbeConfig(tunnel=TunnelSettings(server_host="frp.example.com"))

        assert isinstance(build_tunnel_provider(config), FRPTunnelProvider)
