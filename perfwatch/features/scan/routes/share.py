from fastapi import APIRouter, Depends, HTTPException, Response, status

from perfwatch.features.scan.models.scan import Scan
from perfwatch.features.scan.routes.scan import get_scan_workflow
from perfwatch.features.scan.schemas.scan import SharedScan
from perfwatch.features.scan.services.scan.artifacts import screenshot_content_type
from perfwatch.features.scan.services.scan.workflow import ScanWorkflow
from perfwatch.platform.response import api_response
from perfwatch.platform.storage import ArtifactNotFound

router = APIRouter(prefix="/share", tags=["share"])


def _get_shared_scan(token: str, workflow: ScanWorkflow) -> Scan:
    scan = workflow.repository.get_scan_by_share_token(token) if token else None
    if not scan:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Shared scan not found")
    return scan


@router.get("/{token}")
def get_shared_scan(token: str, workflow: ScanWorkflow = Depends(get_scan_workflow)):
    """Public read-only view of a shared scan. No auth required."""
    scan = _get_shared_scan(token, workflow)
    data = SharedScan(
        url=scan.url,
        options=scan.options,
        summary=scan.summary,
        created_at=scan.created_at,
        has_screenshot=bool(scan.screenshot_path),
    )
    return api_response(data=data, message="Shared scan retrieved")


@router.get("/{token}/screenshot")
def get_shared_screenshot(token: str, workflow: ScanWorkflow = Depends(get_scan_workflow)):
    scan = _get_shared_scan(token, workflow)
    if not scan.screenshot_path:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Screenshot not available")
    try:
        content = workflow.artifacts.read_screenshot(scan.screenshot_path)
    except ArtifactNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Screenshot not available")
    return Response(content=content, media_type=screenshot_content_type(scan.screenshot_path))


@router.get("/{token}/filmstrip")
def get_shared_filmstrip(token: str, workflow: ScanWorkflow = Depends(get_scan_workflow)):
    scan = _get_shared_scan(token, workflow)
    filmstrip = workflow.get_filmstrip(scan)
    if filmstrip is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Filmstrip not available")
    return api_response(data=filmstrip, message="Filmstrip retrieved")
