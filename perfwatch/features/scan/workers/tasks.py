from typing import Any, Dict, List, Optional

from perfwatch.features.scan.schemas.scan import ScanRequestResult
from perfwatch.features.scan.services.scan.workflow import ScanWorkflow
from perfwatch.platform.celery_app import celery_app
from perfwatch.platform.db.session import SessionLocal
from perfwatch.platform.logger import get_logger

logger = get_logger(__name__)

# Audit passes are not retried: a failed pass fails the request and the user
# decides whether to rescan.


def get_sync_db():
    """Get a database session for Celery tasks."""
    return SessionLocal()


def _task_result(user_id: str, result: ScanRequestResult) -> Dict[str, Any]:
    """Workflow result plus the owner, checked when the task status is read."""
    return {**result.model_dump(mode="json"), "user_id": user_id}


@celery_app.task(
    bind=True,
    name="perfwatch.features.scan.workers.tasks.run_scan_task",
)
def run_scan_task(
    self,
    user_id: str,
    url: str,
    form_factors: List[str],
    categories: Optional[List[str]] = None,
) -> Dict[str, Any]:
    """
    Scan url on the requested devices and store the results.

    Returns:
        ScanRequestResult as a dict (status, scan_ids, run_id, error, error_type)
    """
    logger.info(f"[{self.request.id}] Starting scan of {url} on {form_factors} for user {user_id}")
    db = get_sync_db()
    try:
        result = ScanWorkflow(db).run_scan_request(user_id, url, form_factors, categories)
    finally:
        db.close()

    logger.info(f"[{self.request.id}] Scan of {url} finished: {result.status.value} {result.scan_ids}")
    return _task_result(user_id, result)


@celery_app.task(
    bind=True,
    name="perfwatch.features.scan.workers.tasks.rescan_task",
)
def rescan_task(self, user_id: str, scan_id: str) -> Dict[str, Any]:
    """Re-run a stored scan with its stored options."""
    logger.info(f"[{self.request.id}] Rescanning {scan_id} for user {user_id}")
    db = get_sync_db()
    try:
        result = ScanWorkflow(db).rescan(scan_id, user_id)
    finally:
        db.close()
    return _task_result(user_id, result)


@celery_app.task(
    bind=True,
    name="perfwatch.features.scan.workers.tasks.rescan_group_task",
)
def rescan_group_task(self, user_id: str, run_id: str) -> Dict[str, Any]:
    """Re-run both device scans of a submission."""
    logger.info(f"[{self.request.id}] Rescanning run {run_id} for user {user_id}")
    db = get_sync_db()
    try:
        result = ScanWorkflow(db).rescan_group(run_id, user_id)
    finally:
        db.close()
    return _task_result(user_id, result)
