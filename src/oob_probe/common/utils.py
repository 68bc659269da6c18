"""Utility functions for oob-probe."""

import base64
import binascii
from typing import Any

from .exceptions import EncodingError

# Port range constants
MIN_PORT = 1
MAX_PORT = 65535

UTF8 = "utf8"
BASE64 = "base64"
SUPPORTED_ENCODINGS = (UTF8, BASE64)

_TRUE_VALUES = {"1", "t", "true", "y", "yes", "on"}
_FALSE_VALUES = {"0", "f", "false", "n", "no", "off"}


def validate_port(port: int, port_name: str = "Port") -> int:
    """Validate port number range.

    Args:
        port: Port number to validate
        port_name: Name of the port for error messages

    Returns:
        The validated port

    Raises:
        ValueError: If port is not in valid range (1-65535)
    """
    if (
        isinstance(port, bool)
        or not isinstance(port, int)
        or not (MIN_PORT <= port <= MAX_PORT)
    ):
        raise ValueError(f"{port_name} must be between {MIN_PORT} and {MAX_PORT}")
    return port


def normalize_encoding(encoding: str | None) -> str:
    """Map an encoding name to one of SUPPORTED_ENCODINGS.

    An empty or missing encoding means utf8.

    Raises:
        EncodingError: If the encoding is not supported
    """
    if not encoding:
        return UTF8
    if encoding not in SUPPORTED_ENCODINGS:
        raise EncodingError(f"unsupported encoding {encoding!r}")
    return encoding


def decode_data(data: str, encoding: str | None = UTF8) -> bytes:
    """Turn a control-channel payload into raw bytes.

    Args:
        data: Payload as received from the caller
        encoding: "utf8" (default) or "base64"

    Returns:
        Raw bytes to send

    Raises:
        EncodingError: If the encoding is unsupported or the payload is not valid base64
    """
    encoding = normalize_encoding(encoding)
    if encoding == BASE64:
        try:
            return base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError) as e:
            raise EncodingError(f"invalid base64 payload: {e}") from e
    return data.encode("utf-8")


def encode_data(data: bytes, encoding: str | None = UTF8) -> str:
    """Turn captured bytes into a control-channel string.

    Undecodable bytes are replaced when encoding as utf8; use base64 for
    binary-safe transfer.

    Raises:
        EncodingError: If the encoding is unsupported
    """
    encoding = normalize_encoding(encoding)
    if encoding == BASE64:
        return base64.b64encode(data).decode("ascii")
    return data.decode("utf-8", errors="replace")


def parse_bool(value: str | None, default: bool) -> bool:
    """Parse a boolean flag the way environment toggles are usually written.

    Unknown or missing values fall back to ``default``.
    """
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    return default


def mask_sensitive_data(
    value: str | None, mask_char: str = "*", show_chars: int = 4
) -> str:
    """Mask sensitive data for logging while preserving some characters for debugging.

    Args:
        value: Sensitive string to mask (e.g., auth token, password)
        mask_char: Character to use for masking
        show_chars: Number of characters to show at the end

    Returns:
        Masked string safe for logging
    """
    if not value:
        return "<None>"

    if len(value) <= show_chars:
        return mask_char * len(value)

    masked_length = len(value) - show_chars
    return mask_char * masked_length + value[-show_chars:]


def sanitize_log_data(data: dict[str, Any]) -> dict[str, Any]:
    """Sanitize dictionary data for safe logging by masking sensitive fields.

    Args:
        data: Dictionary potentially containing sensitive data

    Returns:
        Sanitized dictionary safe for logging
    """
    sensitive_fields = {"token", "password", "secret", "api_key"}

    sanitized = {}
    for key, value in data.items():
        if any(sensitive_field in key.lower() for sensitive_field in sensitive_fields):
            sanitized[key] = mask_sensitive_data(str(value) if value else None)
        else:
            sanitized[key] = value

    return sanitized
