"""
Outcome Distribution Statistics
================================

Summary statistics over one metric's values across trials.

    Mean / variance : Welford's single-pass update
                      delta = x - mean_{k-1}
                      mean_k = mean_{k-1} + delta / k
                      M2_k   = M2_{k-1} + delta * (x - mean_k)
                      std    = sqrt(M2_n / n)        (population, ddof=0)
    Percentiles     : linear interpolation between order statistics
                      h = (n - 1) * p / 100
                      q = x[floor(h)] + (h - floor(h)) * (x[floor(h)+1] - x[floor(h)])

A constant series gives delta == 0 at every step, so std_dev is exactly 0.
"""

import math
import numpy as np
from dataclasses import dataclass, field, asdict
from scipy import stats as sp_stats
from typing import Dict, Iterable, List, Optional, Sequence

from realestate_mc.config import CONFIG


@dataclass
class SummaryStatistics:
    """Container for one metric's summary."""
    count: int
    mean: float
    std_dev: float
    min: float
    max: float
    median: float
    skewness: Optional[float] = None
    kurtosis: Optional[float] = None
    percentiles: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict:
        return asdict(self)


def as_array(values: Iterable) -> np.ndarray:
    """Float array with None/NaN/inf removed."""
    arr = np.array([np.nan if v is None else v for v in values], dtype=np.float64)
    return arr[np.isfinite(arr)]


def welford(values: Sequence[float]):
    """Return (count, mean, population variance) in a single pass."""
    n, mean, m2 = 0, 0.0, 0.0
    for x in values:
        n += 1
        delta = x - mean
        mean += delta / n
        m2 += delta * (x - mean)
    if n == 0:
        return 0, math.nan, math.nan
    return n, mean, max(m2 / n, 0.0)


def percentile(values: Sequence[float], p: float) -> float:
    """Linear-interpolation percentile (numpy 'linear' rule), p in [0, 100]."""
    arr = np.asarray(values, dtype=np.float64)
    if arr.size == 0:
        return math.nan
    return float(np.percentile(arr, p))


def percentiles(values: Sequence[float],
                levels: Optional[Iterable[float]] = None) -> Dict[str, float]:
    """Percentiles keyed ``p5``, ``p50``, ... ."""
    levels = list(levels if levels is not None else CONFIG.risk.percentiles)
    arr = np.sort(np.asarray(values, dtype=np.float64))
    if arr.size == 0:
        return {}
    qs = np.percentile(arr, levels)
    return {f"p{_label(level)}": float(q) for level, q in zip(levels, qs)}


def _label(level: float) -> str:
    return str(int(level)) if float(level).is_integer() else str(level).replace(".", "_")


def summarize(values: Iterable, levels: Optional[Iterable[float]] = None
              ) -> Optional[SummaryStatistics]:
    """
    Summary statistics of a metric distribution.

    Returns None when no valid value is present.
    """
    arr = as_array(values)
    if arr.size == 0:
        return None

    n, mean, var = welford(arr.tolist())
    std = math.sqrt(var)
    pct = percentiles(arr, levels)

    skew = kurt = None
    if std > 0 and n >= 3:
        skew = float(sp_stats.skew(arr, bias=False))
    if std > 0 and n >= 4:
        kurt = float(sp_stats.kurtosis(arr, fisher=True, bias=False))

    return SummaryStatistics(
        count=n,
        mean=mean,
        std_dev=std,
        min=float(arr.min()),
        max=float(arr.max()),
        median=percentile(arr, 50),
        skewness=skew,
        kurtosis=kurt,
        percentiles=pct,
    )


def histogram(values: Iterable, bins: Optional[int] = None) -> List[Dict[str, float]]:
    """Equal-width histogram buckets ``{min, max, count, frequency}``."""
    bins = bins or CONFIG.risk.histogram_bins
    arr = as_array(values)
    if arr.size == 0:
        return []
    lo, hi = float(arr.min()), float(arr.max())
    if lo == hi:
        return [{"min": lo, "max": hi, "count": int(arr.size), "frequency": 1.0}]
    counts, edges = np.histogram(arr, bins=bins, range=(lo, hi))
    return [
        {"min": float(edges[i]), "max": float(edges[i + 1]),
         "count": int(c), "frequency": float(c) / arr.size}
        for i, c in enumerate(counts)
    ]


def confidence_intervals(values: Iterable,
                         levels: Optional[Iterable[float]] = None
                         ) -> Dict[str, Dict[str, float]]:
    """
    Central empirical intervals: ci_L = [P((100-L)/2), P((100+L)/2)].
    """
    levels = list(levels if levels is not None else CONFIG.risk.interval_levels)
    arr = as_array(values)
    if arr.size == 0:
        return {}
    out = {}
    for level in levels:
        lower = percentile(arr, (100.0 - level) / 2.0)
        upper = percentile(arr, (100.0 + level) / 2.0)
        out[f"ci_{_label(level)}"] = {
            "lower": lower, "upper": upper, "width": upper - lower,
        }
    return out
