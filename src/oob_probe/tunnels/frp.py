"""Tunnel provider backed by an frp server and a per-tunnel frpc process."""

import shutil
import uuid

from ..common.exceptions import BinaryNotFoundError, ProcessError, TunnelError
from ..common.logging import get_logger
from ..common.process import ProcessManager
from ..config import TunnelSettings
from ..listeners.models import ListenerType
from .config_builder import ConfigBuilder

logger = get_logger(__name__)


class FRPTunnel:
    """One running frpc process exposing one local port."""

    def __init__(
        self,
        name: str,
        public_url: str,
        process: ProcessManager,
        config_builder: ConfigBuilder,
    ) -> None:
        self.name = name
        self._public_url = public_url
        self._process = process
        self._config_builder = config_builder

    @property
    def public_url(self) -> str:
        return self._public_url

    def is_running(self) -> bool:
        return self._process.is_running()

    def close(self) -> None:
        """Stop frpc and remove its config file.

        Raises:
            TunnelError: If the process could not be stopped
        """
        try:
            stopped = self._process.stop()
        finally:
            self._config_builder.cleanup()
        if not stopped:
            raise TunnelError(f"failed to stop frpc for tunnel {self.name}")
        logger.info("frp tunnel closed", name=self.name)


class FRPTunnelProvider:
    """Opens tunnels by launching frpc against a configured frp server."""

    def __init__(self, settings: TunnelSettings) -> None:
        self.settings = settings
        self._frpc_path = settings.frpc_path

    def _find_frpc_binary(self) -> str:
        """Locate the frpc binary.

        Raises:
            TunnelError: If frpc is not configured and not on PATH
        """
        if self._frpc_path:
            return self._frpc_path
        frpc = shutil.which("frpc")
        if frpc is None:
            raise TunnelError(
                "frp client binary 'frpc' not found in system PATH. "
                "Install frp from https://github.com/fatedier/frp/releases "
                "or set tunnel.frpc_path."
            )
        self._frpc_path = frpc
        return frpc

    def _public_url(self, local_port: int, listener_type: ListenerType) -> str:
        if listener_type == ListenerType.HTTP:
            return f"http://{self.settings.http_domain}/"
        return f"tcp://{self.settings.server_host}:{local_port}"

    def open_tunnel(self, local_port: int, listener_type: ListenerType) -> FRPTunnel:
        """Start an frpc process forwarding to ``local_port``.

        TCP tunnels claim the same port number on the server; HTTP tunnels are
        routed by the configured domain.

        Raises:
            TunnelError: If frpc can't be found, configured or started
        """
        frpc = self._find_frpc_binary()
        name = f"oob-probe-{listener_type.value}-{local_port}-{uuid.uuid4().hex[:8]}"

        builder = ConfigBuilder().add_server(
            self.settings.server_host,
            port=self.settings.server_port,
            token=self.settings.auth_token,
        )
        if listener_type == ListenerType.HTTP:
            builder.add_http_proxy(name, local_port, [self.settings.http_domain])
        else:
            builder.add_tcp_proxy(name, local_port, remote_port=local_port)

        try:
            config_path = builder.build()
            process = ProcessManager(frpc, config_path)
            process.start()
            if not process.wait_for_startup(timeout=self.settings.startup_timeout):
                code = process.returncode
                process.stop()
                raise TunnelError(f"frpc exited during startup (code={code})")
        except (BinaryNotFoundError, ProcessError, OSError) as e:
            builder.cleanup()
            raise TunnelError(f"failed to start frp tunnel: {e}") from e
        except TunnelError:
            builder.cleanup()
            raise

        public_url = self._public_url(local_port, listener_type)
        logger.info(
            "frp tunnel opened",
            name=name,
            port=local_port,
            public_url=public_url,
        )
        return FRPTunnel(name, public_url, process, builder)
