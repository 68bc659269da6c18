"""Runtime configuration for oob-probe."""

import os
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .common.exceptions import ConfigurationError
from .common.logging import get_logger
from .common.utils import parse_bool, sanitize_log_data

logger = get_logger(__name__)

DEFAULT_LOG_MAX_SIZE = 1024 * 1024
DEFAULT_HTTP_BODY_LIMIT = 1024 * 1024
DEFAULT_TCP_READ_SIZE = 4096

ENV_DESKTOP_NOTIFICATION = "OOB_PROBE_ENABLE_DESKTOP_NOTIFICATION"
ENV_LOG_MAX_SIZE = "OOB_PROBE_LOG_MAX_SIZE"
ENV_BIND_HOST = "OOB_PROBE_BIND_HOST"
ENV_FRP_SERVER = "OOB_PROBE_FRP_SERVER"
ENV_FRP_TOKEN = "OOB_PROBE_FRP_TOKEN"


class TunnelSettings(BaseModel):
    """Connection details for the frp server that exposes listeners publicly."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    server_host: str = Field(min_length=1, description="frp server hostname")
    server_port: int = Field(default=7000, ge=1, le=65535, description="frp server port")
    auth_token: str | None = Field(None, description="Authentication token")
    default_domain: str | None = Field(
        None, description="Domain routed to HTTP listeners (defaults to server_host)"
    )
    frpc_path: str | None = Field(
        None, description="Path to the frpc binary (looked up on PATH if None)"
    )
    startup_timeout: float = Field(
        default=10.0, gt=0, le=120.0, description="Seconds to wait for frpc to settle"
    )

    @field_validator("server_host")
    @classmethod
    def validate_server_host(cls, v: str) -> str:
        """Validate server hostname format."""
        if not v.replace(".", "").replace("-", "").replace("_", "").isalnum():
            raise ValueError(
                "Hostname must contain only alphanumeric characters, dots, hyphens, and underscores"
            )
        return v

    @property
    def http_domain(self) -> str:
        return self.default_domain or self.server_host


class ProbeConfig(BaseModel):
    """Settings shared by the registry and every listener it creates."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    bind_host: str = Field(default="127.0.0.1", min_length=1)
    log_max_size: int = Field(
        default=DEFAULT_LOG_MAX_SIZE, ge=0, description="Per-listener log bound, 0 = unbounded"
    )
    http_body_limit: int = Field(default=DEFAULT_HTTP_BODY_LIMIT, ge=1)
    tcp_read_size: int = Field(default=DEFAULT_TCP_READ_SIZE, ge=1, le=1024 * 1024)
    error_log_capacity: int = Field(default=100, ge=1, le=10_000)
    background_error_capacity: int = Field(default=100, ge=1, le=10_000)
    desktop_notifications: bool = True
    tunnel: TunnelSettings | None = None


def load_config(
    path: str | Path | None = None, env: Mapping[str, str] | None = None
) -> ProbeConfig:
    """Build a ProbeConfig from an optional TOML file plus environment overrides.

    Args:
        path: TOML file whose top-level keys mirror ProbeConfig (``[tunnel]`` table
            for TunnelSettings)
        env: Environment mapping (defaults to os.environ)

    Raises:
        ConfigurationError: If the file can't be read or the result is invalid
    """
    env = os.environ if env is None else env
    data: dict[str, Any] = {}

    if path is not None:
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            raise ConfigurationError(f"Failed to read config file {path}: {e}") from e

    if ENV_DESKTOP_NOTIFICATION in env:
        data["desktop_notifications"] = parse_bool(env[ENV_DESKTOP_NOTIFICATION], True)
    if ENV_LOG_MAX_SIZE in env:
        data["log_max_size"] = env[ENV_LOG_MAX_SIZE]
    if ENV_BIND_HOST in env:
        data["bind_host"] = env[ENV_BIND_HOST]
    if ENV_FRP_SERVER in env:
        tunnel = dict(data.get("tunnel") or {})
        tunnel["server_host"] = env[ENV_FRP_SERVER]
        data["tunnel"] = tunnel
    if ENV_FRP_TOKEN in env and data.get("tunnel") is not None:
        data["tunnel"] = {**data["tunnel"], "auth_token": env[ENV_FRP_TOKEN]}

    try:
        config = ProbeConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e

    logger.debug(
        "Configuration loaded",
        source=str(path) if path else "defaults",
        tunnel=sanitize_log_data(config.tunnel.model_dump()) if config.tunnel else None,
    )
    return config
