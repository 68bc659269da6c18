"""Configuration file builder for the frpc tunnel client."""

import json
import os
import tempfile
from types import TracebackType
from typing import Any, Literal

from ..common.logging import get_logger
from ..common.utils import validate_port

logger = get_logger(__name__)


def _quote(value: str) -> str:
    # JSON string escapes are valid TOML basic strings.
    return json.dumps(value)


class ConfigBuilder:
    """Builder for frpc TOML configuration files."""

    def __init__(self) -> None:
        self._server_addr: str | None = None
        self._server_port: int = 7000
        self._auth_token: str | None = None
        self._config_path: str | None = None
        self._proxies: list[dict[str, Any]] = []

    @property
    def config_path(self) -> str | None:
        return self._config_path

    def add_server(
        self, addr: str, port: int = 7000, token: str | None = None
    ) -> "ConfigBuilder":
        """Add server configuration.

        Args:
            addr: Server address
            port: Server port (default: 7000)
            token: Authentication token

        Returns:
            Self for method chaining

        Raises:
            ValueError: If address is empty or port is invalid
        """
        if not addr or not addr.strip():
            raise ValueError("Server address cannot be empty")
        validate_port(port)

        self._server_addr = addr.strip()
        self._server_port = port
        self._auth_token = token

        logger.debug(
            "Server configuration added",
            addr=self._server_addr,
            port=self._server_port,
            has_token=token is not None,
        )
        return self

    def add_tcp_proxy(
        self, name: str, local_port: int, remote_port: int, local_ip: str = "127.0.0.1"
    ) -> "ConfigBuilder":
        """Add a TCP proxy forwarding ``remote_port`` on the server to ``local_port``."""
        self._proxies.append(
            {
                "name": name,
                "type": "tcp",
                "localIP": local_ip,
                "localPort": validate_port(local_port, "Local port"),
                "remotePort": validate_port(remote_port, "Remote port"),
            }
        )
        logger.debug("Added TCP proxy configuration", name=name)
        return self

    def add_http_proxy(
        self,
        name: str,
        local_port: int,
        custom_domains: list[str],
        local_ip: str = "127.0.0.1",
    ) -> "ConfigBuilder":
        """Add an HTTP proxy routing ``custom_domains`` to ``local_port``."""
        if not custom_domains:
            raise ValueError("HTTP proxy needs at least one custom domain")
        self._proxies.append(
            {
                "name": name,
                "type": "http",
                "localIP": local_ip,
                "localPort": validate_port(local_port, "Local port"),
                "customDomains": custom_domains,
            }
        )
        logger.debug("Added HTTP proxy configuration", name=name)
        return self

    def render(self) -> str:
        """Render the configuration as TOML text.

        Raises:
            ValueError: If server address not set
        """
        if not self._server_addr:
            raise ValueError("Server address not set. Call add_server() first.")

        lines = [
            f"serverAddr = {_quote(self._server_addr)}",
            f"serverPort = {self._server_port}",
        ]
        if self._auth_token:
            lines.append('auth.method = "token"')
            lines.append(f"auth.token = {_quote(self._auth_token)}")

        for proxy in self._proxies:
            lines.append("")
            lines.append("[[proxies]]")
            for key, value in proxy.items():
                if isinstance(value, list):
                    rendered = "[" + ", ".join(_quote(item) for item in value) + "]"
                elif isinstance(value, int):
                    rendered = str(value)
                else:
                    rendered = _quote(value)
                lines.append(f"{key} = {rendered}")

        return "\n".join(lines) + "\n"

    def build(self) -> str:
        """Write the configuration to a temporary file and return its path."""
        content = self.render()
        fd, temp_path = tempfile.mkstemp(suffix=".toml", prefix="oob_probe_frpc_")

        try:
            with os.fdopen(fd, "w") as f:
                f.write(content)
        except Exception:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise

        self._config_path = temp_path
        logger.debug("Configuration file built", path=self._config_path)
        return self._config_path

    def cleanup(self) -> None:
        """Remove the generated configuration file."""
        if self._config_path and os.path.exists(self._config_path):
            try:
                os.unlink(self._config_path)
                logger.debug("Configuration file cleaned up", path=self._config_path)
            except OSError as e:
                logger.warning("Failed to cleanup config file", error=str(e))
        self._config_path = None

    def __enter__(self) -> "ConfigBuilder":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> Literal[False]:
        try:
            self.cleanup()
        except Exception as e:
            logger.error("Error during context exit", error=str(e))
        return False  # Don't suppress exceptions
