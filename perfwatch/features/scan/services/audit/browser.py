import shutil
import socket
import subprocess
import tempfile
import time
from typing import List, Optional

import httpx

from perfwatch.features.scan.services.audit.errors import BrowserNotFound, LaunchFailure
from perfwatch.platform.config import settings
from perfwatch.platform.logger import get_logger

logger = get_logger(__name__)

CHROME_CANDIDATES = (
    "google-chrome",
    "google-chrome-stable",
    "chromium",
    "chromium-browser",
    "chrome",
)

_READY_POLL_INTERVAL = 0.25
_TERMINATE_GRACE_SECONDS = 5


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


class BrowserSession:
    """
    A running Chrome process reachable on a local DevTools port.

    The audit engine and the screenshot capturer both attach through this
    object; whoever started it calls terminate() exactly once.
    """

    def __init__(self, process: subprocess.Popen, port: int, user_data_dir: str,
                 startup_timeout: float = 30.0):
        self.process = process
        self.port = port
        self.user_data_dir = user_data_dir
        self.startup_timeout = startup_timeout

    @property
    def debugger_address(self) -> str:
        return f"127.0.0.1:{self.port}"

    @property
    def control_endpoint(self) -> str:
        return f"http://{self.debugger_address}"

    def wait_until_ready(self) -> None:
        """Block until the DevTools endpoint answers, or raise LaunchFailure."""
        deadline = time.monotonic() + self.startup_timeout
        version_url = f"{self.control_endpoint}/json/version"
        while True:
            exit_code = self.process.poll()
            if exit_code is not None:
                raise LaunchFailure(
                    f"Chrome failed to start: process exited with code {exit_code} before "
                    f"opening port {self.port}. Check CHROME_PATH and CHROME_FLAGS."
                )
            try:
                response = httpx.get(version_url, timeout=1.0)
                if response.status_code == 200:
                    logger.info(f"Chrome ready on port {self.port}: {response.json().get('Browser')}")
                    return
            except (httpx.HTTPError, ValueError):
                pass
            if time.monotonic() >= deadline:
                raise LaunchFailure(
                    f"Chrome failed to start: started but could not connect on port {self.port} "
                    f"within {self.startup_timeout:.0f}s. Ensure Chromium/Chrome is installed and "
                    "set CHROME_PATH if needed."
                )
            time.sleep(_READY_POLL_INTERVAL)

    def terminate(self) -> None:
        try:
            if self.process.poll() is None:
                self.process.terminate()
                try:
                    self.process.wait(timeout=_TERMINATE_GRACE_SECONDS)
                except subprocess.TimeoutExpired:
                    logger.warning(f"Chrome on port {self.port} ignored SIGTERM, killing")
                    self.process.kill()
                    self.process.wait(timeout=_TERMINATE_GRACE_SECONDS)
        finally:
            shutil.rmtree(self.user_data_dir, ignore_errors=True)


class ChromeLauncher:
    """Starts one isolated headless Chrome per call (fresh profile, free port)."""

    def __init__(self, chrome_path: Optional[str] = None, chrome_flags: Optional[List[str]] = None,
                 startup_timeout: Optional[float] = None):
        self.chrome_path = chrome_path if chrome_path is not None else settings.CHROME_PATH
        self.chrome_flags = list(chrome_flags if chrome_flags is not None else settings.CHROME_FLAGS)
        self.startup_timeout = startup_timeout if startup_timeout is not None else settings.CHROME_STARTUP_TIMEOUT

    def resolve_binary(self) -> str:
        if self.chrome_path:
            resolved = shutil.which(self.chrome_path)
            if resolved:
                return resolved
            raise BrowserNotFound(
                f"Chrome failed to start: CHROME_PATH={self.chrome_path} is not an executable file."
            )
        for name in CHROME_CANDIDATES:
            resolved = shutil.which(name)
            if resolved:
                return resolved
        raise BrowserNotFound(
            "Chrome failed to start: no Chrome/Chromium binary found on PATH. "
            "Install Chromium (e.g. apt install chromium) and set CHROME_PATH to its binary."
        )

    def start(self) -> BrowserSession:
        """
        Spawn Chrome. Readiness is checked separately with
        BrowserSession.wait_until_ready() so the caller owns teardown from here on.
        """
        binary = self.resolve_binary()
        port = _free_port()
        user_data_dir = tempfile.mkdtemp(prefix="perfwatch-chrome-")
        command = [
            binary,
            *self.chrome_flags,
            f"--remote-debugging-port={port}",
            f"--user-data-dir={user_data_dir}",
            "--no-first-run",
            "--no-default-browser-check",
            "about:blank",
        ]
        try:
            process = subprocess.Popen(
                command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as e:
            shutil.rmtree(user_data_dir, ignore_errors=True)
            raise LaunchFailure(f"Chrome failed to start: {e}", cause=e) from e

        logger.info(f"Launched Chrome pid={process.pid} port={port}")
        return BrowserSession(process, port, user_data_dir, startup_timeout=self.startup_timeout)
