"""
Failures raised by the audit pipeline.

AuditRunError subclasses abort an audit pass and propagate to the scan
workflow. CaptureFailure never leaves the screenshot capturer, and
ArtifactPersistFailure is logged by the workflow without rolling back the
stored scan.
"""
from typing import Optional


class AuditRunError(Exception):
    """An audit pass could not produce a result."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause


class LaunchFailure(AuditRunError):
    """Chrome did not start or its debugging port never accepted connections."""


class BrowserNotFound(LaunchFailure):
    """No Chrome/Chromium binary at CHROME_PATH or on PATH."""


class AuditFailure(AuditRunError):
    """Lighthouse crashed, timed out or lost the connection to Chrome."""


class AuditEngineNotFound(AuditFailure):
    """The Lighthouse CLI is not installed or LIGHTHOUSE_PATH is wrong."""


class CaptureFailure(Exception):
    """The full-page screenshot could not be taken."""


class ArtifactPersistFailure(Exception):
    """A screenshot or filmstrip file could not be written."""
