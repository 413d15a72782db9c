"""Outcome statistics, risk metrics, correlation and sensitivity analysis."""

from realestate_mc.analytics.statistics import summarize, SummaryStatistics
from realestate_mc.analytics.risk import (
    value_at_risk, conditional_value_at_risk, sharpe_ratio, SharpeResult,
)
from realestate_mc.analytics.correlation import correlate, pearson, CorrelationMatrix
from realestate_mc.analytics.sensitivity import (
    SensitivityEngine, SensitivityVariable, TornadoResult, assess_risk,
    identify_risk_factors,
)

__all__ = [
    "summarize", "SummaryStatistics",
    "value_at_risk", "conditional_value_at_risk", "sharpe_ratio", "SharpeResult",
    "correlate", "pearson", "CorrelationMatrix",
    "SensitivityEngine", "SensitivityVariable", "TornadoResult", "assess_risk",
    "identify_risk_factors",
]
