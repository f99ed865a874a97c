import json
import secrets
import time
from typing import Any, Callable, Dict, Iterable, List, Optional

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from perfwatch.features.scan.models.scan import Scan
from perfwatch.features.scan.schemas.audit import (
    AuditOptions,
    FilmstripPayload,
    FormFactor,
    MergedOutcome,
)
from perfwatch.features.scan.schemas.scan import ScanRequestResult, ScanRequestStatus
from perfwatch.features.scan.services.audit.errors import ArtifactPersistFailure, AuditRunError
from perfwatch.features.scan.services.audit.filmstrip import extract_filmstrip, strip_filmstrip
from perfwatch.features.scan.services.audit.median import run_audit
from perfwatch.features.scan.services.scan.artifacts import ScanArtifacts
from perfwatch.features.scan.services.scan.repository import ScanRepository
from perfwatch.platform.config import settings
from perfwatch.platform.logger import get_logger

logger = get_logger(__name__)

AuditFn = Callable[[str, AuditOptions], MergedOutcome]

DEVICE_ORDER = (FormFactor.mobile, FormFactor.desktop)


def new_run_id() -> str:
    return f"run-{int(time.time() * 1000)}-{secrets.token_hex(4)}"


def serialize_report(report: Dict[str, Any], max_bytes: int) -> Optional[str]:
    """Compact JSON of the report, or None when it exceeds max_bytes."""
    report_json = json.dumps(report, separators=(",", ":"))
    if len(report_json.encode("utf-8")) > max_bytes:
        return None
    return report_json


class ScanWorkflow:
    """
    Turns audit runs into stored scans.

    A scan row is committed first; screenshot and filmstrip files are written
    afterwards and their failures are logged without touching the row.
    """

    def __init__(
        self,
        db: Session,
        audit: AuditFn = run_audit,
        artifacts: Optional[ScanArtifacts] = None,
        max_report_bytes: Optional[int] = None,
    ):
        self.repository = ScanRepository(db)
        self.audit = audit
        self.artifacts = artifacts or ScanArtifacts()
        self.max_report_bytes = max_report_bytes or settings.MAX_REPORT_JSON_BYTES

    # ── Running scans ───────────────────────────

    def run_one_scan(self, user_id: str, url: str, options: AuditOptions,
                     run_id: Optional[str] = None) -> str:
        """
        Audit url on one device and store the result.

        Raises:
            LaunchFailure / AuditFailure: nothing was stored
        """
        outcome = self.audit(url, options)

        filmstrip = extract_filmstrip(outcome.report)
        report_json = serialize_report(strip_filmstrip(outcome.report), self.max_report_bytes)
        if report_json is None:
            logger.warning(f"Raw report for {url} exceeds {self.max_report_bytes} bytes, not stored")

        scan_id = self.repository.create_scan(
            user_id,
            url,
            options.model_dump(mode="json"),
            report_json,
            outcome.summary.model_dump(mode="json"),
            run_id,
        )

        if filmstrip is not None:
            try:
                self.artifacts.save_filmstrip(scan_id, filmstrip)
            except ArtifactPersistFailure as e:
                logger.error(f"Filmstrip save failed (scan {scan_id} saved): {e}")

        if outcome.screenshot is not None and outcome.screenshot.buffer:
            try:
                filename = self.artifacts.save_screenshot(scan_id, outcome.screenshot)
                self.repository.update_scan_screenshot(scan_id, filename)
            except (ArtifactPersistFailure, SQLAlchemyError) as e:
                logger.error(f"Screenshot save failed (scan {scan_id} saved): {e}")

        return scan_id

    def run_scan_request(self, user_id: str, url: str, form_factors: Iterable[FormFactor],
                         categories: Optional[List[str]] = None) -> ScanRequestResult:
        """
        Scan url on the requested devices, mobile first.

        With both devices the scans share a run_id. If desktop fails after
        mobile was stored, mobile is kept and the status is desktop_failed.
        """
        requested = {FormFactor(f) for f in form_factors}
        devices = [device for device in DEVICE_ORDER if device in requested]
        if not devices:
            raise ValueError("Select at least one device (mobile and/or desktop).")

        run_id = new_run_id() if len(devices) > 1 else None
        scan_ids: List[str] = []
        for device in devices:
            options = AuditOptions(form_factor=device, categories=categories)
            try:
                scan_ids.append(self.run_one_scan(user_id, url, options, run_id))
            except AuditRunError as e:
                if scan_ids:
                    logger.error(f"Desktop scan failed after mobile succeeded for {url}: {e}")
                    return ScanRequestResult(
                        status=ScanRequestStatus.desktop_failed,
                        scan_ids=scan_ids,
                        run_id=run_id,
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                logger.error(f"Lighthouse run failed for {url} ({device.value}): {e}")
                return ScanRequestResult(
                    status=ScanRequestStatus.failed,
                    run_id=run_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )

        return ScanRequestResult(status=ScanRequestStatus.completed, scan_ids=scan_ids, run_id=run_id)

    def rescan(self, scan_id: str, user_id: str) -> ScanRequestResult:
        """Re-audit a stored scan with its stored options into a new scan."""
        scan = self._get_owned_scan(scan_id, user_id)
        options = AuditOptions.model_validate(scan.options or {})
        try:
            new_id = self.run_one_scan(user_id, scan.url, options)
        except AuditRunError as e:
            logger.error(f"Rescan of {scan_id} failed: {e}")
            return ScanRequestResult(
                status=ScanRequestStatus.failed, error=str(e), error_type=type(e).__name__
            )
        return ScanRequestResult(status=ScanRequestStatus.completed, scan_ids=[new_id])

    def rescan_group(self, run_id: str, user_id: str) -> ScanRequestResult:
        """Re-audit both devices of a submission under a new run_id."""
        group = self.repository.get_scans_by_run_id(run_id, user_id)
        if len(group) < 2:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Scan group not found")
        return self.run_scan_request(user_id, group[0].url, DEVICE_ORDER)

    # ── Deleting ────────────────────────────────

    def delete_scan(self, scan_id: str, user_id: str) -> None:
        scan = self._get_owned_scan(scan_id, user_id)
        self.artifacts.delete_for_scan(scan.id, scan.screenshot_path)
        if not self.repository.delete_scan(scan_id, user_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Scan not found")
        logger.info(f"Deleted scan {scan_id} for user {user_id}")

    def delete_scans(self, user_id: str, scan_ids: Iterable[str]) -> int:
        """Delete the user's scans among scan_ids; ids of other users are ignored."""
        unique_ids = list(dict.fromkeys(i.strip() for i in scan_ids if i and i.strip()))
        for scan in self.repository.get_scans_by_ids(user_id, unique_ids):
            self.artifacts.delete_for_scan(scan.id, scan.screenshot_path)
        deleted = self.repository.delete_scans(user_id, unique_ids)
        logger.info(f"Deleted {deleted} scans for user {user_id}")
        return deleted

    # ── Artifacts and sharing ───────────────────

    def get_filmstrip(self, scan: Scan) -> Optional[FilmstripPayload]:
        """Stored filmstrip file, else frames still present in the stored raw report."""
        payload = self.artifacts.load_filmstrip(scan.id)
        if payload is not None:
            return payload
        if not scan.report_json:
            return None
        try:
            return extract_filmstrip(json.loads(scan.report_json))
        except ValueError as e:
            logger.error(f"Stored report for scan {scan.id} is not valid JSON: {e}")
            return None

    def share(self, scan_id: str, user_id: str) -> str:
        scan = self._get_owned_scan(scan_id, user_id)
        if scan.share_token:
            return scan.share_token
        token = secrets.token_urlsafe(24)
        self.repository.update_share_token(scan_id, user_id, token)
        return token

    def unshare(self, scan_id: str, user_id: str) -> None:
        if not self.repository.update_share_token(scan_id, user_id, None):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Scan not found")

    def export_scans(self, user_id: str) -> List[Dict[str, Any]]:
        """All of a user's scans without raw reports."""
        return [
            {
                "id": scan.id,
                "url": scan.url,
                "options": scan.options,
                "summary": scan.summary,
                "created_at": scan.created_at,
                "run_id": scan.run_id,
            }
            for scan in self.repository.get_scans_for_export(user_id)
        ]

    def _get_owned_scan(self, scan_id: str, user_id: str) -> Scan:
        scan = self.repository.get_scan(scan_id, user_id)
        if not scan:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Scan not found")
        return scan
