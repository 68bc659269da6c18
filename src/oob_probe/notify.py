"""Desktop notifications for listener activity."""

import shutil
import subprocess

from .common.logging import get_logger

logger = get_logger(__name__)

APP_NAME = "oob-probe"


class Notifier:
    """Pops a desktop notification through ``notify-send`` when available.

    Notifications are fire-and-forget: failures are logged and never raised.
    """

    def __init__(self, enabled: bool = True, binary: str | None = None) -> None:
        self.enabled = enabled
        self._binary = binary

    def _find_binary(self) -> str | None:
        if self._binary is None:
            self._binary = shutil.which("notify-send") or ""
        return self._binary or None

    def notify(self, message: str) -> bool:
        """Send ``message``. Returns True if a notification process was spawned."""
        logger.info("Notification", message=message)
        if not self.enabled:
            return False

        binary = self._find_binary()
        if binary is None:
            return False

        try:
            subprocess.Popen(
                [binary, "--app-name", APP_NAME, APP_NAME, message],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as e:
            logger.warning("Desktop notification failed", error=str(e))
            return False
        return True
