from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from perfwatch.features.scan.models.scan import Scan
from perfwatch.platform.logger import get_logger

logger = get_logger(__name__)


def escape_like(raw: str) -> str:
    """Escape LIKE wildcards so a search term matches literally (ESCAPE '\\')."""
    return raw.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class ScanRepository:
    """Record store for scans. Every read and delete is scoped to the owning user."""

    def __init__(self, db: Session):
        self.db = db

    # ── Writes ──────────────────────────────────

    def create_scan(
        self,
        user_id: str,
        url: str,
        options: Optional[Dict[str, Any]],
        report_json: Optional[str],
        summary: Dict[str, Any],
        run_id: Optional[str] = None,
    ) -> str:
        scan = Scan(
            user_id=user_id,
            url=url,
            options=options,
            report_json=report_json,
            summary=summary,
            run_id=run_id,
        )
        self.db.add(scan)
        self.db.commit()
        logger.info(f"Created scan {scan.id} for user {user_id} ({url}, run_id={run_id})")
        return scan.id

    def update_scan_screenshot(self, scan_id: str, filename: Optional[str]) -> None:
        self.db.execute(update(Scan).where(Scan.id == scan_id).values(screenshot_path=filename))
        self.db.commit()

    def update_share_token(self, scan_id: str, user_id: str, token: Optional[str]) -> bool:
        result = self.db.execute(
            update(Scan)
            .where(Scan.id == scan_id, Scan.user_id == user_id)
            .values(share_token=token.strip() if token else None)
        )
        self.db.commit()
        return result.rowcount > 0

    def delete_scan(self, scan_id: str, user_id: str) -> bool:
        result = self.db.execute(delete(Scan).where(Scan.id == scan_id, Scan.user_id == user_id))
        self.db.commit()
        return result.rowcount > 0

    def delete_scans(self, user_id: str, scan_ids: Iterable[str]) -> int:
        ids = list(scan_ids)
        if not ids:
            return 0
        result = self.db.execute(delete(Scan).where(Scan.user_id == user_id, Scan.id.in_(ids)))
        self.db.commit()
        return result.rowcount

    # ── Reads ───────────────────────────────────

    def get_scan(self, scan_id: str, user_id: str) -> Optional[Scan]:
        return self.db.execute(
            select(Scan).where(Scan.id == scan_id, Scan.user_id == user_id)
        ).scalar_one_or_none()

    def get_scans_by_ids(self, user_id: str, scan_ids: Iterable[str]) -> List[Scan]:
        ids = list(scan_ids)
        if not ids:
            return []
        return list(self.db.execute(
            select(Scan).where(Scan.user_id == user_id, Scan.id.in_(ids))
        ).scalars())

    def get_scans_by_run_id(self, run_id: str, user_id: str) -> List[Scan]:
        """Both device scans of one submission, oldest first."""
        if not run_id:
            return []
        return list(self.db.execute(
            select(Scan)
            .where(Scan.run_id == run_id, Scan.user_id == user_id)
            .order_by(Scan.created_at.asc(), Scan.id.asc())
        ).scalars())

    def get_scan_by_share_token(self, token: str) -> Optional[Scan]:
        if not token or not token.strip():
            return None
        return self.db.execute(
            select(Scan).where(Scan.share_token == token.strip())
        ).scalar_one_or_none()

    def list_scans(self, user_id: str, limit: int = 50, offset: int = 0,
                   search: Optional[str] = None) -> List[Scan]:
        query = select(Scan).where(Scan.user_id == user_id)
        term = (search or "").strip()
        if term:
            query = query.where(Scan.url.like(f"%{escape_like(term)}%", escape="\\"))
        query = query.order_by(Scan.created_at.desc(), Scan.id.desc()).limit(limit).offset(offset)
        return list(self.db.execute(query).scalars())

    def count_scan_groups(self, user_id: str, search: Optional[str] = None) -> int:
        """Number of submissions: scans sharing a run_id count once."""
        query = select(func.count(func.distinct(func.coalesce(Scan.run_id, Scan.id)))).where(
            Scan.user_id == user_id
        )
        term = (search or "").strip()
        if term:
            query = query.where(Scan.url.like(f"%{escape_like(term)}%", escape="\\"))
        return self.db.execute(query).scalar_one()

    def get_distinct_urls(self, user_id: str) -> List[str]:
        return list(self.db.execute(
            select(Scan.url).where(Scan.user_id == user_id).distinct().order_by(Scan.url.asc())
        ).scalars())

    def get_scans_for_url(self, user_id: str, url: str, limit: int = 200) -> List[Scan]:
        """Scans of one URL in chronological order, for trend charts."""
        return list(self.db.execute(
            select(Scan)
            .where(Scan.user_id == user_id, Scan.url == url)
            .order_by(Scan.created_at.asc(), Scan.id.asc())
            .limit(limit)
        ).scalars())

    def get_scans_for_export(self, user_id: str) -> List[Scan]:
        return list(self.db.execute(
            select(Scan).where(Scan.user_id == user_id).order_by(Scan.created_at.desc(), Scan.id.desc())
        ).scalars())
