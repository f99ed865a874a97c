from typing import Any, Dict, Optional

from perfwatch.features.scan.schemas.audit import FilmstripFrame, FilmstripPayload
from perfwatch.features.scan.services.audit.summary_extractor import detect_chrome_version

FILMSTRIP_AUDIT_ID = "screenshot-thumbnails"
FILMSTRIP_DETAILS_TYPE = "filmstrip"
FILMSTRIP_MAX_FRAMES = 25


def _filmstrip_details(lhr: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    audit = (lhr.get("audits") or {}).get(FILMSTRIP_AUDIT_ID)
    if not isinstance(audit, dict):
        return None
    details = audit.get("details")
    if not isinstance(details, dict) or details.get("type") != FILMSTRIP_DETAILS_TYPE:
        return None
    if not isinstance(details.get("items"), list):
        return None
    return details


def extract_filmstrip(lhr: Dict[str, Any]) -> Optional[FilmstripPayload]:
    """
    Load-timeline frames from a Lighthouse result: the first 25 items, minus
    those without image data. None when there is nothing to show.
    """
    details = _filmstrip_details(lhr)
    if details is None or not details["items"]:
        return None

    frames = []
    for item in details["items"][:FILMSTRIP_MAX_FRAMES]:
        if not isinstance(item, dict) or not item.get("data"):
            continue
        frames.append(FilmstripFrame(timing=item.get("timing"), data=item["data"]))

    if not frames:
        return None
    return FilmstripPayload(frames=frames, chrome_version=detect_chrome_version(lhr))


def strip_filmstrip(lhr: Dict[str, Any]) -> Dict[str, Any]:
    """
    Copy of the result with the filmstrip frames emptied, for storage.

    Only the containers on the path to the frame list are copied; the input
    result is left as it was.
    """
    if _filmstrip_details(lhr) is None:
        return lhr

    audits = dict(lhr["audits"])
    audit = dict(audits[FILMSTRIP_AUDIT_ID])
    audit["details"] = {**audit["details"], "items": []}
    audits[FILMSTRIP_AUDIT_ID] = audit
    return {**lhr, "audits": audits}
