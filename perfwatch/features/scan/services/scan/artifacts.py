import json
import re
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from perfwatch.features.scan.schemas.audit import FilmstripPayload, ScreenshotArtifact
from perfwatch.features.scan.services.audit.errors import ArtifactPersistFailure
from perfwatch.platform.config import settings
from perfwatch.platform.logger import get_logger
from perfwatch.platform.storage import ArtifactNotFound, FileStore

logger = get_logger(__name__)

SCREENSHOTS_DIR = "screenshots"
FILMSTRIPS_DIR = "filmstrips"

# Only filenames we generate: "<scan id>.<image ext>"
_SAFE_SCREENSHOT_RE = re.compile(r"^[0-9A-Za-z-]{1,64}\.(png|jpg|jpeg|webp)$", re.IGNORECASE)

SCREENSHOT_CONTENT_TYPES = {
    "png": "image/png",
    "webp": "image/webp",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
}


def is_safe_screenshot_path(filename: Optional[str]) -> bool:
    return isinstance(filename, str) and bool(_SAFE_SCREENSHOT_RE.match(filename))


def screenshot_content_type(filename: str) -> str:
    ext = Path(filename).suffix.lstrip(".").lower()
    return SCREENSHOT_CONTENT_TYPES.get(ext, "image/jpeg")


class ScanArtifacts:
    """
    Screenshot and filmstrip files of stored scans, keyed by scan id.

    Writes raise ArtifactPersistFailure; deletes ignore missing files.
    """

    def __init__(self, store: Optional[FileStore] = None):
        self.store = store or FileStore(settings.DATA_DIR)

    def filmstrip_path(self, scan_id: str) -> str:
        return f"{FILMSTRIPS_DIR}/{scan_id}.json"

    def screenshot_file(self, filename: str) -> Path:
        return self.store.path_for(f"{SCREENSHOTS_DIR}/{filename}")

    def save_screenshot(self, scan_id: str, screenshot: ScreenshotArtifact) -> str:
        filename = f"{scan_id}.{screenshot.ext}"
        try:
            self.store.write(f"{SCREENSHOTS_DIR}/{filename}", screenshot.buffer)
        except OSError as e:
            raise ArtifactPersistFailure(f"screenshot {filename}: {e}") from e
        return filename

    def save_filmstrip(self, scan_id: str, filmstrip: FilmstripPayload) -> None:
        try:
            self.store.write(self.filmstrip_path(scan_id), filmstrip.model_dump_json())
        except OSError as e:
            raise ArtifactPersistFailure(f"filmstrip {scan_id}: {e}") from e

    def load_filmstrip(self, scan_id: str) -> Optional[FilmstripPayload]:
        """Stored filmstrip, or None when the file is missing, unreadable or empty."""
        try:
            raw = self.store.read_text(self.filmstrip_path(scan_id))
        except ArtifactNotFound:
            return None
        except OSError as e:
            logger.error(f"Filmstrip file read failed for scan {scan_id}: {e}")
            return None
        try:
            payload = FilmstripPayload.model_validate(json.loads(raw))
        except (ValueError, ValidationError) as e:
            logger.error(f"Filmstrip file for scan {scan_id} is corrupt: {e}")
            return None
        return payload if payload.frames else None

    def read_screenshot(self, filename: str) -> bytes:
        if not is_safe_screenshot_path(filename):
            raise ArtifactNotFound(filename)
        return self.store.read_bytes(f"{SCREENSHOTS_DIR}/{filename}")

    def delete_for_scan(self, scan_id: str, screenshot_path: Optional[str]) -> None:
        if screenshot_path and is_safe_screenshot_path(screenshot_path):
            self.store.delete(f"{SCREENSHOTS_DIR}/{screenshot_path}")
        self.store.delete(self.filmstrip_path(scan_id))
