"""
Median-of-N audit runs.

Lighthouse scores drift between runs on the same page, so every request runs
MEDIAN_RUNS passes and reports the median of each category score and key
metric. The stored report and screenshot, along with recommendations and
page metadata, come from the representative run: the pass whose performance
score is closest to the median performance score.
"""
from typing import List, Optional, Sequence

from perfwatch.features.scan.schemas.audit import (
    AuditOptions,
    MergedOutcome,
    MetricValue,
    RunOutcome,
    SummaryView,
)
from perfwatch.features.scan.services.audit.runner import AuditRunner
from perfwatch.features.scan.services.audit.statistics import closest_run, median, round_half_up
from perfwatch.features.scan.services.audit.summary_extractor import KEY_METRIC_IDS
from perfwatch.platform.logger import get_logger

logger = get_logger(__name__)

MEDIAN_RUNS = 3
REPRESENTATIVE_CATEGORY = "performance"


def _performance_score(run: RunOutcome) -> Optional[int]:
    return run.summary.categories.get(REPRESENTATIVE_CATEGORY)


def select_representative_run(runs: Sequence[RunOutcome]) -> RunOutcome:
    median_performance = median(_performance_score(run) for run in runs)
    if median_performance is None:
        return runs[0]
    return closest_run(runs, lambda run: _performance_score(run) or 0, median_performance)


def merge_median_summary(runs: Sequence[RunOutcome],
                         representative: Optional[RunOutcome] = None) -> SummaryView:
    """
    Element-wise median of the runs' summaries.

    Category ids come from the first run. Metric display values are copied
    from the first run that has the metric, not reformatted from the median.
    """
    if not runs:
        raise ValueError("merge_median_summary() needs at least one run")
    first = runs[0].summary
    representative = representative or select_representative_run(runs)

    categories = {}
    for category_id in first.categories:
        value = median(run.summary.categories.get(category_id) for run in runs)
        if value is not None:
            categories[category_id] = round_half_up(value)

    metrics = {}
    for metric_id in KEY_METRIC_IDS:
        present = [run.summary.metrics[metric_id] for run in runs if metric_id in run.summary.metrics]
        value = median(metric.value for metric in present)
        if value is None:
            continue
        metrics[metric_id] = MetricValue(
            value=value,
            display_value=present[0].display_value or str(value),
        )

    chosen = representative.summary
    return SummaryView(
        categories=categories,
        metrics=metrics,
        recommendations=list(chosen.recommendations),
        final_url=chosen.final_url or first.final_url,
        chrome_version=chosen.chrome_version or first.chrome_version,
    )


class MedianRunCoordinator:
    """Runs the audit MEDIAN_RUNS times in sequence and merges the results."""

    def __init__(self, runner: Optional[AuditRunner] = None, runs: int = MEDIAN_RUNS):
        self.runner = runner or AuditRunner()
        self.runs = runs

    def run(self, url: str, options: AuditOptions) -> MergedOutcome:
        outcomes: List[RunOutcome] = []
        for attempt in range(1, self.runs + 1):
            logger.info(f"Lighthouse run {attempt}/{self.runs} for {url} ({options.form_factor.value})")
            # Any failed pass aborts the request; there is no median over fewer runs
            outcomes.append(self.runner.run_once(url, options))

        representative = select_representative_run(outcomes)
        summary = merge_median_summary(outcomes, representative)
        position = next(i for i, outcome in enumerate(outcomes, 1) if outcome is representative)
        logger.info(
            f"Median summary for {url} ({options.form_factor.value}): categories={summary.categories}, "
            f"representative run={position}/{self.runs}"
        )
        return MergedOutcome(
            report=representative.report,
            summary=summary,
            screenshot=representative.screenshot,
        )


def run_audit(url: str, options: Optional[AuditOptions] = None) -> MergedOutcome:
    """
    Audit url with the median of MEDIAN_RUNS Lighthouse passes.

    Raises:
        LaunchFailure: Chrome could not be started
        AuditFailure: Lighthouse failed on one of the passes
    """
    return MedianRunCoordinator().run(url, options or AuditOptions())
