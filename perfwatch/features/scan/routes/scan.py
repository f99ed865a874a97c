from typing import Optional

from celery.result import AsyncResult
from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from perfwatch.features.scan.schemas.scan import (
    DeleteBatchRequest,
    RescanGroupRequest,
    ScanCreateRequest,
    ScanDetail,
    ScanTaskResponse,
)
from perfwatch.features.scan.services.scan.artifacts import screenshot_content_type
from perfwatch.features.scan.services.scan.history import build_trend_points, get_user_scan_history
from perfwatch.features.scan.services.scan.workflow import ScanWorkflow
from perfwatch.features.scan.workers.tasks import rescan_group_task, rescan_task, run_scan_task
from perfwatch.platform.celery_app import celery_app
from perfwatch.platform.db.session import get_db
from perfwatch.platform.dependencies import get_current_user_id
from perfwatch.platform.logger import get_logger
from perfwatch.platform.response import api_response
from perfwatch.platform.storage import ArtifactNotFound
from perfwatch.platform.utils.url_validator import validate_url

logger = get_logger(__name__)

router = APIRouter(prefix="/scans", tags=["scans"])


def get_scan_workflow(db: Session = Depends(get_db)) -> ScanWorkflow:
    return ScanWorkflow(db)


def _scan_detail(scan) -> ScanDetail:
    return ScanDetail(
        id=scan.id,
        url=scan.url,
        options=scan.options,
        summary=scan.summary,
        run_id=scan.run_id,
        created_at=scan.created_at,
        has_report_json=bool(scan.report_json),
        has_screenshot=bool(scan.screenshot_path),
        share_token=scan.share_token,
        screenshot_path=scan.screenshot_path,
    )


def _task_owner(result: AsyncResult) -> Optional[str]:
    """User a scan task ran for: from its return value, else its first argument."""
    if result.successful() and isinstance(result.result, dict):
        return result.result.get("user_id")
    args = result.args or ()
    return args[0] if args else None


# ============================================================================
# Starting scans (run in the Celery worker)
# ============================================================================

@router.post("")
def start_scan(
    payload: ScanCreateRequest,
    user_id: str = Depends(get_current_user_id),
):
    is_valid, url, error_message = validate_url(payload.url)
    if not is_valid:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=error_message)
    if not payload.form_factors:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Select at least one device (mobile and/or desktop).",
        )

    form_factors = [f.value for f in payload.form_factors]
    task = run_scan_task.delay(user_id, url, form_factors, payload.categories)
    logger.info(f"Queued scan task {task.id} for {url} on {form_factors} (user {user_id})")

    return api_response(
        data=ScanTaskResponse(task_id=task.id, status="queued"),
        message="Scan queued",
        status_code=status.HTTP_202_ACCEPTED,
    )


@router.get("/tasks/{task_id}")
def get_scan_task(task_id: str, user_id: str = Depends(get_current_user_id)):
    """
    State of a queued scan. Once finished, data.result carries the workflow
    status: completed, desktop_failed (mobile kept) or failed.
    """
    result = AsyncResult(task_id, app=celery_app)
    data = {"task_id": task_id, "state": result.state, "result": None}
    # Unknown ids are PENDING too; nothing about the task is known yet
    if result.state == "PENDING":
        return api_response(data=data, message="Task status retrieved")
    if _task_owner(result) != user_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")

    if result.successful():
        data["result"] = result.result
    elif result.failed():
        data["error"] = str(result.result)
    return api_response(data=data, message="Task status retrieved")


@router.post("/rescan-group")
def rescan_group(
    payload: RescanGroupRequest,
    user_id: str = Depends(get_current_user_id),
    workflow: ScanWorkflow = Depends(get_scan_workflow),
):
    run_id = payload.run_id.strip()
    if not run_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing run_id")
    if len(workflow.repository.get_scans_by_run_id(run_id, user_id)) < 2:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Scan group not found")

    task = rescan_group_task.delay(user_id, run_id)
    return api_response(
        data=ScanTaskResponse(task_id=task.id, status="queued"),
        message="Rescan queued",
        status_code=status.HTTP_202_ACCEPTED,
    )


@router.post("/{scan_id}/rescan")
def rescan(
    scan_id: str,
    user_id: str = Depends(get_current_user_id),
    workflow: ScanWorkflow = Depends(get_scan_workflow),
):
    if not workflow.repository.get_scan(scan_id, user_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Scan not found")

    task = rescan_task.delay(user_id, scan_id)
    return api_response(
        data=ScanTaskResponse(task_id=task.id, status="queued"),
        message="Rescan queued",
        status_code=status.HTTP_202_ACCEPTED,
    )


# ============================================================================
# History, trends, export
# ============================================================================

@router.get("")
def list_scans(
    page: int = Query(1, ge=1),
    q: Optional[str] = None,
    user_id: str = Depends(get_current_user_id),
    workflow: ScanWorkflow = Depends(get_scan_workflow),
):
    groups, meta = get_user_scan_history(workflow.repository, user_id, page=page, search=q)
    return api_response(data=groups, message="Scans retrieved", meta=meta)


@router.get("/trends")
def get_trends(
    url: Optional[str] = None,
    user_id: str = Depends(get_current_user_id),
    workflow: ScanWorkflow = Depends(get_scan_workflow),
):
    urls = workflow.repository.get_distinct_urls(user_id)
    points = []
    if url:
        points = build_trend_points(workflow.repository.get_scans_for_url(user_id, url))
    return api_response(data={"urls": urls, "url": url, "points": points}, message="Trends retrieved")


@router.get("/export")
def export_scans(
    user_id: str = Depends(get_current_user_id),
    workflow: ScanWorkflow = Depends(get_scan_workflow),
):
    return api_response(data={"scans": workflow.export_scans(user_id)}, message="Export ready")


@router.post("/delete-batch")
def delete_batch(
    payload: DeleteBatchRequest,
    user_id: str = Depends(get_current_user_id),
    workflow: ScanWorkflow = Depends(get_scan_workflow),
):
    deleted = workflow.delete_scans(user_id, payload.ids)
    return api_response(data={"deleted": deleted}, message="Scans deleted")


# ============================================================================
# Single scan
# ============================================================================

@router.get("/{scan_id}")
def get_scan(
    scan_id: str,
    user_id: str = Depends(get_current_user_id),
    workflow: ScanWorkflow = Depends(get_scan_workflow),
):
    scan = workflow.repository.get_scan(scan_id, user_id)
    if not scan:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Scan not found")

    group = []
    if scan.run_id:
        group = [_scan_detail(s) for s in workflow.repository.get_scans_by_run_id(scan.run_id, user_id)]
    return api_response(data={"scan": _scan_detail(scan), "group": group}, message="Scan retrieved")


@router.get("/{scan_id}/json")
def get_scan_report(
    scan_id: str,
    user_id: str = Depends(get_current_user_id),
    workflow: ScanWorkflow = Depends(get_scan_workflow),
):
    scan = workflow.repository.get_scan(scan_id, user_id)
    if not scan or not scan.report_json:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Report not available")
    return Response(content=scan.report_json, media_type="application/json")


@router.get("/{scan_id}/screenshot")
def get_scan_screenshot(
    scan_id: str,
    user_id: str = Depends(get_current_user_id),
    workflow: ScanWorkflow = Depends(get_scan_workflow),
):
    scan = workflow.repository.get_scan(scan_id, user_id)
    if not scan or not scan.screenshot_path:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Screenshot not available")
    try:
        content = workflow.artifacts.read_screenshot(scan.screenshot_path)
    except ArtifactNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Screenshot not available")
    return Response(content=content, media_type=screenshot_content_type(scan.screenshot_path))


@router.get("/{scan_id}/filmstrip")
def get_scan_filmstrip(
    scan_id: str,
    user_id: str = Depends(get_current_user_id),
    workflow: ScanWorkflow = Depends(get_scan_workflow),
):
    scan = workflow.repository.get_scan(scan_id, user_id)
    if not scan:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Scan not found")
    filmstrip = workflow.get_filmstrip(scan)
    if filmstrip is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Filmstrip not available")
    return api_response(data=filmstrip, message="Filmstrip retrieved")


@router.post("/{scan_id}/share")
def share_scan(
    scan_id: str,
    user_id: str = Depends(get_current_user_id),
    workflow: ScanWorkflow = Depends(get_scan_workflow),
):
    token = workflow.share(scan_id, user_id)
    return api_response(data={"share_token": token, "share_url": f"/api/v1/share/{token}"},
                        message="Share link created")


@router.post("/{scan_id}/unshare")
def unshare_scan(
    scan_id: str,
    user_id: str = Depends(get_current_user_id),
    workflow: ScanWorkflow = Depends(get_scan_workflow),
):
    workflow.unshare(scan_id, user_id)
    return api_response(message="Share link removed")


@router.delete("/{scan_id}")
def delete_scan(
    scan_id: str,
    user_id: str = Depends(get_current_user_id),
    workflow: ScanWorkflow = Depends(get_scan_workflow),
):
    workflow.delete_scan(scan_id, user_id)
    return api_response(data={"scan_id": scan_id}, message="Scan deleted successfully.")
