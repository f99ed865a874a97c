from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Any, Dict

from perfwatch.features.scan.schemas.audit import FormFactor


@dataclass(frozen=True)
class Viewport:
    width: int
    height: int
    device_scale_factor: float
    mobile: bool


DEVICE_VIEWPORTS = MappingProxyType({
    FormFactor.mobile: Viewport(width=390, height=844, device_scale_factor=2, mobile=True),
    FormFactor.desktop: Viewport(width=1440, height=900, device_scale_factor=1, mobile=False),
})


def audit_viewport(form_factor: FormFactor) -> Viewport:
    return DEVICE_VIEWPORTS[FormFactor(form_factor)]


def screenshot_viewport(form_factor: FormFactor) -> Viewport:
    """
    Viewport for the full-page capture in the audit session.

    Mobile drops to scale 1: full-page capture at scale 2 clips or duplicates
    content in Chromium.
    """
    viewport = audit_viewport(form_factor)
    if viewport.mobile:
        return replace(viewport, device_scale_factor=1)
    return viewport


def screen_emulation(form_factor: FormFactor) -> Dict[str, Any]:
    """Lighthouse settings.screenEmulation for the profile."""
    viewport = audit_viewport(form_factor)
    return {
        "mobile": viewport.mobile,
        "width": viewport.width,
        "height": viewport.height,
        "deviceScaleFactor": viewport.device_scale_factor,
        "disabled": False,
    }
