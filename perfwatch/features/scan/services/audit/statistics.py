import math
from typing import Callable, Iterable, Optional, Sequence, TypeVar

T = TypeVar("T")


def _is_number(value) -> bool:
    if value is None or isinstance(value, bool):
        return False
    if not isinstance(value, (int, float)):
        return False
    return not math.isnan(value)


def median(values: Iterable[Optional[float]]) -> Optional[float]:
    """
    Median of the numeric values, ignoring None and NaN.

    Returns None when nothing numeric is left. The input is not modified.
    """
    ordered = sorted(v for v in values if _is_number(v))
    if not ordered:
        return None
    mid = len(ordered) // 2
    if len(ordered) % 2:
        return ordered[mid]
    return (ordered[mid - 1] + ordered[mid]) / 2


def round_half_up(value: float) -> int:
    # round() is banker's rounding; scores round .5 upwards
    return int(math.floor(value + 0.5))


def closest_run(runs: Sequence[T], score_of: Callable[[T], float], target: float) -> T:
    """
    Return the run whose score is closest to target. The earliest run wins ties.
    """
    if not runs:
        raise ValueError("closest_run() needs at least one run")
    best = runs[0]
    best_distance = abs(score_of(best) - target)
    for run in runs[1:]:
        distance = abs(score_of(run) - target)
        if distance < best_distance:
            best, best_distance = run, distance
    return best
