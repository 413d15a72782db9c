"""
Risk Metrics on Simulated Outcomes
===================================

Empirical risk measures computed directly from one metric's distribution
across trials. No distributional assumption is made and nothing is
re-sampled.

    VaR_p       = P_p(X)                     (linear-interpolation percentile)
    CVaR_p      = E[X | X <= VaR_p]          (expected shortfall, lower tail)
    Sharpe      = (mean(X) - rf) / std(X)    (population std)
    P(loss)     = #{X < 0} / n
    Downside σ  = sqrt( mean_{X < target}( (X - target)^2 ) )

Outcomes here are returns and profits, where the adverse tail is the LOWER
tail: var_5 is the level that 95% of trials beat.

References:
    - Jorion, P. (2006). Value at Risk, 3rd ed. McGraw-Hill.
    - Acerbi, C. & Tasche, D. (2002). On the coherence of Expected Shortfall.
    - Sortino, F. & Price, L. (1994). Performance Measurement in a Downside
      Risk Framework. Journal of Investing, 3(3).
"""

import math
import numpy as np
from dataclasses import dataclass
from typing import Dict, Iterable, Optional

from realestate_mc.analytics.statistics import as_array, welford, _label
from realestate_mc.config import CONFIG


@dataclass
class SharpeResult:
    """Sharpe ratio; ``undefined`` is set when the outcome has no dispersion."""
    value: Optional[float]
    undefined: bool = False


def value_at_risk(values: Iterable, p: float) -> Optional[float]:
    """Percentile ``p`` (0-100) of the outcome distribution."""
    arr = as_array(values)
    if arr.size == 0:
        return None
    return float(np.percentile(arr, p))


def conditional_value_at_risk(values: Iterable, p: float) -> Optional[float]:
    """Mean of outcomes at or below VaR_p."""
    arr = as_array(values)
    if arr.size == 0:
        return None
    var = np.percentile(arr, p)
    tail = arr[arr <= var]
    # the minimum is always <= any percentile, so the tail is never empty
    return float(np.mean(tail))


def sharpe_ratio(values: Iterable, risk_free_rate: float = 0.0) -> SharpeResult:
    arr = as_array(values)
    if arr.size == 0:
        return SharpeResult(value=None, undefined=True)
    _, mean, var = welford(arr.tolist())
    std = math.sqrt(var)
    if std == 0:
        return SharpeResult(value=None, undefined=True)
    return SharpeResult(value=(mean - risk_free_rate) / std)


def probability_of_negative(values: Iterable) -> Optional[float]:
    arr = as_array(values)
    if arr.size == 0:
        return None
    return float(np.mean(arr < 0))


def downside_deviation(values: Iterable, target: float = 0.0) -> Optional[float]:
    """Root mean square of the outcomes below ``target``; 0 when none fall short."""
    arr = as_array(values)
    if arr.size == 0:
        return None
    below = arr[arr < target]
    if below.size == 0:
        return 0.0
    return float(np.sqrt(np.mean((below - target) ** 2)))


def worst_outcome(values: Iterable) -> Optional[float]:
    arr = as_array(values)
    if arr.size == 0:
        return None
    return float(arr.min())


def metric_risk_report(values: Iterable,
                       confidence_levels: Optional[Iterable[float]] = None
                       ) -> Optional[Dict]:
    """
    Full risk block for one metric.

    Returns
    -------
    dict or None
        ``{value_at_risk: {var_5, ...}, cvar: {cvar_5, ...},
        probability_of_loss, downside_deviation, worst_outcome}``;
        None when the metric has no valid values.
    """
    levels = list(confidence_levels if confidence_levels is not None
                  else CONFIG.risk.confidence_levels)
    arr = as_array(values)
    if arr.size == 0:
        return None
    return {
        "value_at_risk": {f"var_{_label(p)}": value_at_risk(arr, p) for p in levels},
        "cvar": {f"cvar_{_label(p)}": conditional_value_at_risk(arr, p) for p in levels},
        "probability_of_loss": probability_of_negative(arr),
        "downside_deviation": downside_deviation(arr),
        "worst_outcome": worst_outcome(arr),
    }
