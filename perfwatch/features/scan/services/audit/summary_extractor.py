import math
import re
from typing import Any, Dict, List, Optional

from perfwatch.features.scan.schemas.audit import MetricValue, Recommendation, SummaryView
from perfwatch.features.scan.services.audit.statistics import round_half_up

KEY_METRIC_IDS = (
    "first-contentful-paint",
    "largest-contentful-paint",
    "total-blocking-time",
    "cumulative-layout-shift",
    "speed-index",
    "interactive",
)

MAX_RECOMMENDATIONS = 20
RECOMMENDATION_THRESHOLD = 0.9

_CHROME_VERSION_RE = re.compile(r"Chrom(?:e|ium)/([\d.]+)", re.IGNORECASE)


def normalize_category_score(score: Any) -> Optional[int]:
    """
    Normalize a Lighthouse category score to an integer 0-100.

    Lighthouse reports 0-1. Values above 1 are taken as already 0-100 and
    clamped. None, negative, NaN and non-numeric scores give None.
    """
    if score is None or isinstance(score, bool):
        return None
    try:
        n = float(score)
    except (TypeError, ValueError):
        return None
    if math.isnan(n) or n < 0:
        return None
    out = round_half_up(n * 100) if n <= 1 else round_half_up(min(100.0, n))
    return max(0, min(100, out))


def parse_chrome_version(user_agent: Optional[str]) -> Optional[str]:
    if not user_agent or not isinstance(user_agent, str):
        return None
    match = _CHROME_VERSION_RE.search(user_agent)
    return match.group(1) if match else None


def extract_categories(lhr: Dict[str, Any]) -> Dict[str, int]:
    categories = {}
    for category_id, category in (lhr.get("categories") or {}).items():
        if not isinstance(category, dict):
            continue
        score = normalize_category_score(category.get("score"))
        if score is not None:
            categories[category_id] = score
    return categories


def extract_metrics(audits: Dict[str, Any]) -> Dict[str, MetricValue]:
    metrics = {}
    for metric_id in KEY_METRIC_IDS:
        audit = audits.get(metric_id)
        if not isinstance(audit, dict) or audit.get("numericValue") is None:
            continue
        value = audit["numericValue"]
        metrics[metric_id] = MetricValue(
            value=value,
            display_value=audit.get("displayValue") or str(value),
        )
    return metrics


def extract_recommendations(audits: Dict[str, Any]) -> List[Recommendation]:
    """
    Audits that need attention (score below 0.9), worst first.

    Collection stops after MAX_RECOMMENDATIONS in audit order; the sort is
    stable, so equal scores keep that order.
    """
    out = []
    for audit_id, audit in audits.items():
        if len(out) >= MAX_RECOMMENDATIONS:
            break
        if not isinstance(audit, dict):
            continue
        score = audit.get("score")
        if isinstance(score, bool) or not isinstance(score, (int, float)) or math.isnan(score):
            continue
        if score >= RECOMMENDATION_THRESHOLD:
            continue
        description = audit.get("description")
        display_value = audit.get("displayValue")
        out.append(Recommendation(
            id=audit_id,
            title=audit.get("title") or audit_id.replace("-", " "),
            description=description if isinstance(description, str) else None,
            score=max(0, min(100, round_half_up(score * 100))),
            display_value=display_value if isinstance(display_value, str) else None,
        ))
    out.sort(key=lambda rec: rec.score)
    return out


def detect_chrome_version(lhr: Dict[str, Any]) -> Optional[str]:
    environment = lhr.get("environment") or {}
    host_user_agent = environment.get("hostUserAgent") if isinstance(environment, dict) else None
    return parse_chrome_version(host_user_agent or lhr.get("userAgent"))


def resolve_final_url(lhr: Dict[str, Any]) -> Optional[str]:
    # finalUrl was split into mainDocumentUrl/finalDisplayedUrl in Lighthouse 10
    return (
        lhr.get("finalUrl")
        or lhr.get("mainDocumentUrl")
        or lhr.get("finalDisplayedUrl")
        or lhr.get("requestedUrl")
    )


def extract_summary(lhr: Dict[str, Any]) -> SummaryView:
    """Category scores, key metrics and recommendations for one Lighthouse result."""
    audits = lhr.get("audits") or {}
    return SummaryView(
        categories=extract_categories(lhr),
        metrics=extract_metrics(audits),
        recommendations=extract_recommendations(audits),
        final_url=resolve_final_url(lhr),
        chrome_version=detect_chrome_version(lhr),
    )
