"""
Scan Schemas

Request and response models for the scan API endpoints and the scan workflow.
"""
import enum
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from perfwatch.features.scan.schemas.audit import FormFactor


# ============================================================================
# Workflow results
# ============================================================================

class ScanRequestStatus(str, enum.Enum):
    """Outcome of one submission (one or two device passes)."""
    completed = "completed"
    desktop_failed = "desktop_failed"  # mobile stored, desktop pass failed
    failed = "failed"                  # nothing stored


class ScanRequestResult(BaseModel):
    status: ScanRequestStatus
    scan_ids: List[str] = Field(default_factory=list)
    run_id: Optional[str] = None
    error: Optional[str] = None
    error_type: Optional[str] = None

    @property
    def primary_scan_id(self) -> Optional[str]:
        return self.scan_ids[0] if self.scan_ids else None


# ============================================================================
# Requests
# ============================================================================

class ScanCreateRequest(BaseModel):
    """Start a scan of url on one or both devices."""
    url: str = Field(max_length=2048)
    form_factors: List[FormFactor] = Field(default_factory=lambda: [FormFactor.mobile])
    categories: Optional[List[str]] = None

    class Config:
        json_schema_extra = {
            "example": {
                "url": "https://example.com",
                "form_factors": ["mobile", "desktop"],
            }
        }


class RescanGroupRequest(BaseModel):
    run_id: str


class DeleteBatchRequest(BaseModel):
    ids: List[str]


# ============================================================================
# Responses
# ============================================================================

class ScanTaskResponse(BaseModel):
    task_id: str
    status: str


class ScanListItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    url: str
    options: Optional[Dict[str, Any]] = None
    summary: Optional[Dict[str, Any]] = None
    run_id: Optional[str] = None
    created_at: Optional[datetime] = None


class ScanDetail(ScanListItem):
    has_report_json: bool = False
    has_screenshot: bool = False
    share_token: Optional[str] = None
    screenshot_path: Optional[str] = None


class SharedScan(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    url: str
    options: Optional[Dict[str, Any]] = None
    summary: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None
    has_screenshot: bool = False


class TrendPoint(BaseModel):
    scan_id: str
    created_at: Optional[datetime] = None
    form_factor: Optional[str] = None
    categories: Dict[str, int] = Field(default_factory=dict)
