import math
from typing import Dict, List, Optional, Tuple

from perfwatch.features.scan.models.scan import Scan
from perfwatch.features.scan.schemas.scan import ScanListItem, TrendPoint
from perfwatch.features.scan.services.scan.repository import ScanRepository
from perfwatch.platform.logger import get_logger

logger = get_logger(__name__)

SCANS_PER_PAGE = 6
SCANS_LIST_FETCH_MAX = 500


def group_scans_by_run(scans: List[Scan]) -> List[List[Scan]]:
    """
    Group scans of the same submission (run_id); single scans form a group of one.

    Groups keep the order of their first scan; scans inside a group are newest first.
    """
    groups: Dict[str, List[Scan]] = {}
    for scan in scans:
        groups.setdefault(scan.run_id or scan.id, []).append(scan)
    return [
        sorted(group, key=lambda s: (s.created_at is not None, s.created_at, s.id), reverse=True)
        for group in groups.values()
    ]


def get_user_scan_history(
    repository: ScanRepository,
    user_id: str,
    page: int = 1,
    search: Optional[str] = None,
    per_page: int = SCANS_PER_PAGE,
) -> Tuple[List[List[ScanListItem]], Dict[str, int]]:
    """One page of the user's submissions, plus pagination meta."""
    total_count = repository.count_scan_groups(user_id, search)
    total_pages = max(1, math.ceil(total_count / per_page))
    page = min(max(1, page), total_pages)

    scans = repository.list_scans(user_id, limit=SCANS_LIST_FETCH_MAX, offset=0, search=search)
    groups = group_scans_by_run(scans)
    offset = (page - 1) * per_page

    logger.info(f"Found {total_count} scan groups for user {user_id} (page {page}/{total_pages})")
    items = [
        [ScanListItem.model_validate(scan) for scan in group]
        for group in groups[offset:offset + per_page]
    ]
    return items, {"page": page, "total_pages": total_pages, "total_count": total_count}


def build_trend_points(scans: List[Scan]) -> List[TrendPoint]:
    points = []
    for scan in scans:
        summary = scan.summary or {}
        options = scan.options or {}
        points.append(TrendPoint(
            scan_id=scan.id,
            created_at=scan.created_at,
            form_factor=options.get("form_factor"),
            categories=summary.get("categories") or {},
        ))
    return points
