"""
Audit Schemas

Shapes produced by the audit pipeline. The pydantic models are what gets
stored in the scans table and returned by the API; the dataclasses are
runtime-only results that carry raw Lighthouse output and image bytes.
"""
import enum
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class FormFactor(str, enum.Enum):
    mobile = "mobile"
    desktop = "desktop"


class AuditOptions(BaseModel):
    """Options for one device pass. categories=None audits every category."""
    model_config = ConfigDict(frozen=True)

    form_factor: FormFactor = FormFactor.mobile
    categories: Optional[List[str]] = None


class MetricValue(BaseModel):
    value: float
    display_value: str


class Recommendation(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    score: int = Field(ge=0, le=100)
    display_value: Optional[str] = None


class SummaryView(BaseModel):
    categories: Dict[str, int] = Field(default_factory=dict)
    metrics: Dict[str, MetricValue] = Field(default_factory=dict)
    recommendations: List[Recommendation] = Field(default_factory=list)
    final_url: Optional[str] = None
    chrome_version: Optional[str] = None


class FilmstripFrame(BaseModel):
    timing: Optional[float] = None
    data: str


class FilmstripPayload(BaseModel):
    frames: List[FilmstripFrame]
    chrome_version: Optional[str] = None


@dataclass(frozen=True)
class ScreenshotArtifact:
    buffer: bytes
    ext: str = "webp"


@dataclass
class RunOutcome:
    """Result of one audit pass."""
    report: Dict[str, Any]
    summary: SummaryView
    screenshot: Optional[ScreenshotArtifact]


@dataclass
class MergedOutcome:
    """
    Median summary across all passes. report and screenshot are the
    representative pass's own objects, never a blend.
    """
    report: Dict[str, Any]
    summary: SummaryView
    screenshot: Optional[ScreenshotArtifact]
