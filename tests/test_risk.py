"""
Unit Tests -- Risk Metrics
===========================
Empirical VaR / CVaR, Sharpe ratio, probability of loss and downside
deviation on simulated outcome distributions.
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import math
import numpy as np
import pytest

from realestate_mc.analytics.risk import (
    conditional_value_at_risk, downside_deviation, metric_risk_report,
    probability_of_negative, sharpe_ratio, value_at_risk, worst_outcome,
)


@pytest.fixture
def outcomes():
    rng = np.random.default_rng(42)
    return rng.normal(8.0, 6.0, size=10_000)


class TestValueAtRisk:

    def test_percentile_monotonicity(self, outcomes):
        assert value_at_risk(outcomes, 5) <= value_at_risk(outcomes, 50) \
            <= value_at_risk(outcomes, 95)

    def test_matches_numpy_percentile(self, outcomes):
        assert value_at_risk(outcomes, 5) == pytest.approx(np.percentile(outcomes, 5))

    def test_cvar_below_var(self, outcomes):
        for p in (5, 10, 25):
            assert conditional_value_at_risk(outcomes, p) <= value_at_risk(outcomes, p)

    def test_cvar_is_tail_mean(self):
        values = np.arange(1.0, 101.0)
        var = value_at_risk(values, 10)              # 10.9
        expected = values[values <= var].mean()      # mean of 1..10
        assert conditional_value_at_risk(values, 10) == pytest.approx(expected)
        assert expected == pytest.approx(5.5)

    def test_empty(self):
        assert value_at_risk([], 5) is None
        assert conditional_value_at_risk([], 5) is None


class TestSharpe:

    def test_known_value(self):
        result = sharpe_ratio([1.0, 2.0, 3.0], risk_free_rate=0.0)
        assert not result.undefined
        assert result.value == pytest.approx(2.0 / math.sqrt(2.0 / 3.0))

    def test_risk_free_rate_shifts_numerator(self):
        a = sharpe_ratio([1.0, 2.0, 3.0], 0.0).value
        b = sharpe_ratio([1.0, 2.0, 3.0], 1.0).value
        assert b == pytest.approx(a / 2.0)

    def test_zero_dispersion_is_undefined(self):
        result = sharpe_ratio([4.0] * 50)
        assert result.undefined
        assert result.value is None


class TestLossMeasures:

    def test_probability_of_negative(self):
        assert probability_of_negative([-1.0, 0.0, 1.0, 2.0]) == 0.25

    def test_probability_ignores_invalid(self):
        assert probability_of_negative([-1.0, None, 1.0]) == 0.5

    def test_downside_deviation(self):
        # only the single shortfall counts: sqrt(mean([(-2)^2]))
        assert downside_deviation([-2.0, 0.0, 2.0]) == pytest.approx(2.0)

    def test_downside_deviation_ignores_outcomes_above_target(self):
        assert downside_deviation([-10.0, 10.0, 10.0, 10.0]) == pytest.approx(10.0)
        assert downside_deviation([-3.0, -4.0, 5.0]) == pytest.approx(math.sqrt(12.5))

    def test_downside_deviation_custom_target(self):
        assert downside_deviation([4.0, 8.0, 12.0], target=10.0) == pytest.approx(
            math.sqrt((36.0 + 4.0) / 2.0))

    def test_downside_deviation_no_losses(self):
        assert downside_deviation([1.0, 2.0, 3.0]) == 0.0

    def test_worst_outcome(self, outcomes):
        assert worst_outcome(outcomes) == outcomes.min()


class TestRiskReport:

    def test_structure(self, outcomes):
        report = metric_risk_report(outcomes, [5, 10, 50])
        assert list(report["value_at_risk"]) == ["var_5", "var_10", "var_50"]
        assert list(report["cvar"]) == ["cvar_5", "cvar_10", "cvar_50"]
        assert 0.0 <= report["probability_of_loss"] <= 1.0
        assert report["worst_outcome"] <= report["value_at_risk"]["var_5"]

    def test_default_levels(self, outcomes):
        report = metric_risk_report(outcomes)
        assert "var_95" in report["value_at_risk"]

    def test_empty(self):
        assert metric_risk_report([None, float("nan")]) is None
