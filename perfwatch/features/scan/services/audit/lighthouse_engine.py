import json
import os
import subprocess
import tempfile
from typing import Any, Dict, List, Optional

from perfwatch.features.scan.schemas.audit import AuditOptions, FormFactor
from perfwatch.features.scan.services.audit.devices import screen_emulation
from perfwatch.features.scan.services.audit.errors import AuditEngineNotFound, AuditFailure
from perfwatch.features.scan.services.audit.filmstrip import (
    FILMSTRIP_AUDIT_ID,
    FILMSTRIP_MAX_FRAMES,
)
from perfwatch.platform.config import settings
from perfwatch.platform.logger import get_logger

logger = get_logger(__name__)


def build_lighthouse_config(options: AuditOptions) -> Dict[str, Any]:
    """
    Lighthouse config for one pass: default audits, the device's emulation and
    a full-resolution filmstrip with FILMSTRIP_MAX_FRAMES frames.
    """
    form_factor = FormFactor(options.form_factor)
    config_settings: Dict[str, Any] = {
        "formFactor": form_factor.value,
        "screenEmulation": screen_emulation(form_factor),
    }
    if options.categories:
        config_settings["onlyCategories"] = list(options.categories)
    return {
        "extends": "lighthouse:default",
        "settings": config_settings,
        "audits": [
            {
                "path": FILMSTRIP_AUDIT_ID,
                "options": {"thumbnailWidth": None, "numberOfThumbnails": FILMSTRIP_MAX_FRAMES},
            },
        ],
    }


class LighthouseEngine:
    """Runs the Lighthouse CLI against a Chrome that is already listening on a port."""

    def __init__(self, binary: Optional[str] = None, timeout: Optional[int] = None):
        self.binary = binary or settings.LIGHTHOUSE_PATH
        self.timeout = timeout or settings.LIGHTHOUSE_TIMEOUT

    def build_command(self, url: str, port: int, config_path: str) -> List[str]:
        return [
            self.binary,
            url,
            f"--port={port}",
            f"--config-path={config_path}",
            "--output=json",
            "--output-path=stdout",
            "--quiet",
        ]

    def run(self, url: str, port: int, options: AuditOptions) -> Dict[str, Any]:
        """
        Audit url and return the parsed Lighthouse result (lhr).

        Raises:
            AuditEngineNotFound: Lighthouse CLI missing
            AuditFailure: non-zero exit, timeout or unreadable output
        """
        config = build_lighthouse_config(options)
        fd, config_path = tempfile.mkstemp(prefix="perfwatch-lh-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as config_file:
                json.dump(config, config_file)

            completed = subprocess.run(
                self.build_command(url, port, config_path),
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except FileNotFoundError as e:
            raise AuditEngineNotFound(
                f"Lighthouse run failed: '{self.binary}' not found. Install it "
                "(npm install -g lighthouse) or set LIGHTHOUSE_PATH.",
                cause=e,
            ) from e
        except subprocess.TimeoutExpired as e:
            raise AuditFailure(
                f"Lighthouse run failed: no result after {self.timeout}s", cause=e
            ) from e
        finally:
            try:
                os.remove(config_path)
            except OSError:
                pass

        if completed.returncode != 0:
            raise AuditFailure(f"Lighthouse run failed: {self._describe_failure(completed.stderr)}")

        try:
            lhr = json.loads(completed.stdout)
        except json.JSONDecodeError as e:
            raise AuditFailure("Lighthouse run failed: output was not valid JSON", cause=e) from e
        if not isinstance(lhr, dict):
            raise AuditFailure("Lighthouse run failed: unexpected result shape")

        runtime_error = lhr.get("runtimeError")
        if isinstance(runtime_error, dict) and runtime_error.get("code"):
            logger.warning(f"Lighthouse reported {runtime_error.get('code')} for {url}: "
                           f"{runtime_error.get('message')}")
        return lhr

    @staticmethod
    def _describe_failure(stderr: Optional[str]) -> str:
        stderr = (stderr or "").strip()
        if "ECONNREFUSED" in stderr:
            return ("Chrome exited before Lighthouse could connect. Install Chromium "
                    "(e.g. apt install chromium) and set CHROME_PATH to its binary.")
        if not stderr:
            return "process exited without output"
        return stderr.splitlines()[-1]
