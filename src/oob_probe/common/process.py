"""Process management for the external tunnel client binary."""

import os
import subprocess
import time
from pathlib import Path
from types import TracebackType
from typing import Literal

from .exceptions import BinaryNotFoundError, ProcessError
from .logging import get_logger

logger = get_logger(__name__)


class ProcessManager:
    """Runs one tunnel client process (``<binary> -c <config>``) with context manager support"""

    def __init__(self, binary_path: str, config_path: str, stop_timeout: float = 5.0):
        """Initialize ProcessManager with binary and config paths

        Args:
            binary_path: Path to the tunnel client binary
            config_path: Path to its configuration file
            stop_timeout: Seconds to wait for a graceful exit before killing

        Raises:
            BinaryNotFoundError: If binary doesn't exist or isn't executable
            FileNotFoundError: If the config file doesn't exist
        """
        self.binary_path = binary_path
        self.config_path = config_path
        self.stop_timeout = stop_timeout
        self._process: subprocess.Popen[bytes] | None = None
        self._validate_paths()
        logger.debug(
            "ProcessManager initialized",
            binary_path=binary_path,
            config_path=config_path,
        )

    def _validate_paths(self) -> None:
        binary_path = Path(self.binary_path)

        if not binary_path.exists():
            raise BinaryNotFoundError(f"Binary not found: {self.binary_path}")

        if not binary_path.is_file():
            raise BinaryNotFoundError(f"Binary path is not a file: {self.binary_path}")

        if not os.access(self.binary_path, os.X_OK):
            raise BinaryNotFoundError(f"Binary is not executable: {self.binary_path}")

        if not Path(self.config_path).exists():
            raise FileNotFoundError(f"Config file not found: {self.config_path}")

    def start(self) -> bool:
        """Start the process

        Returns:
            True if started (or already running)

        Raises:
            ProcessError: If process fails to start
        """
        if self.is_running():
            logger.debug("Process already running", pid=self.pid)
            return True

        logger.info("Starting tunnel process", binary_path=self.binary_path)
        try:
            # Output is discarded: nothing drains it for the life of the tunnel.
            self._process = subprocess.Popen(
                [self.binary_path, "-c", self.config_path],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
            logger.info("Tunnel process started", pid=self._process.pid)
            return True
        except OSError as e:
            logger.error("Failed to start tunnel process", error=str(e))
            raise ProcessError(f"Failed to start tunnel process: {e}") from e

    def stop(self) -> bool:
        """Stop the process, escalating to kill after ``stop_timeout``

        Returns:
            True if stopped successfully, False otherwise
        """
        if self._process is None:
            return True

        if not self.is_running():
            logger.debug("Process not running, nothing to stop")
            self._process = None
            return True

        logger.info("Stopping tunnel process", pid=self.pid)
        try:
            self._process.terminate()
            try:
                self._process.wait(timeout=self.stop_timeout)
            except subprocess.TimeoutExpired:
                logger.warning(
                    "Process did not terminate gracefully, force killing", pid=self.pid
                )
                self._process.kill()
                self._process.wait()
            return True
        except OSError as e:
            logger.error("Error stopping process", error=str(e))
            return False
        finally:
            self._process = None

    def is_running(self) -> bool:
        """Check if process is currently running"""
        if self._process is None:
            return False

        return self._process.poll() is None

    @property
    def pid(self) -> int | None:
        """Get process ID if running"""
        if self.is_running() and self._process:
            return self._process.pid
        return None

    @property
    def returncode(self) -> int | None:
        if self._process is None:
            return None
        return self._process.poll()

    def wait_for_startup(self, timeout: float = 10.0, settle: float = 0.5) -> bool:
        """Wait until the process has stayed alive for ``settle`` seconds.

        The client binary gives no readiness signal, so an early exit is the
        only failure that can be observed here.
        """
        if not self.is_running():
            return False

        deadline = time.monotonic() + min(settle, timeout)
        while time.monotonic() < deadline:
            if not self.is_running():
                return False
            time.sleep(0.05)

        return self.is_running()

    def __enter__(self) -> "ProcessManager":
        """Start the process and wait for it to settle

        Raises:
            ProcessError: If process fails to start
        """
        self.start()
        if not self.wait_for_startup():
            raise ProcessError("Process failed to start within timeout")
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> Literal[False]:
        try:
            self.stop()
        except Exception as e:
            logger.error("Error during context exit", error=str(e))
        return False  # Don't suppress exceptions
