"""
Unit Tests -- Monte Carlo Orchestrator
=======================================
End-to-end runs through the reference evaluator: reproducibility,
degenerate inputs, convergence, parallel execution, failure handling and
the shape of the result.
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import math
import warnings
import numpy as np
import pytest

from realestate_mc.exceptions import (
    DegradedRunWarning, EvaluationError, InvalidDistributionError,
    SimulationAbortedError, ValidationError,
)
from realestate_mc.models.evaluator import RentalPropertyEvaluator
from realestate_mc.models.scenario import SimulationSettings
from realestate_mc.simulation import (
    MonteCarloSimulator, SimulationRequest, probability_analysis,
)
from realestate_mc.config import TargetConfig


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture
def base():
    return {
        "purchase_price": 300_000,
        "down_payment_percent": 25,
        "closing_costs": 6_000,
        "loan_interest_rate": 6.5,
        "loan_term_years": 30,
        "holding_period_years": 7,
        "rental_income": 2_500,
        "vacancy_rate": 5,
        "operating_expenses": 9_500,
        "appreciation_rate": 3,
    }


@pytest.fixture
def request_dict(base):
    return {
        "investment_parameters": base,
        "variable_distributions": {
            "rental_income": {"type": "normal", "mean": 2_500, "std_dev": 200},
            "vacancy_rate": {"type": "triangular", "min": 2, "mode": 5, "max": 10},
            "operating_expenses": {"type": "uniform", "min": 8_500, "max": 10_500},
        },
        "simulation_settings": {"num_simulations": 1_000, "random_seed": 42},
    }


@pytest.fixture
def simulator():
    return MonteCarloSimulator(RentalPropertyEvaluator(), n_workers=1, chunk_size=250)


class FlakyEvaluator:
    """Reference evaluator that refuses low-rent scenarios."""

    def __init__(self, threshold):
        self.threshold = threshold
        self.inner = RentalPropertyEvaluator()

    def evaluate(self, scenario):
        if scenario["rental_income"] < self.threshold:
            raise EvaluationError("rent below underwriting floor")
        return self.inner.evaluate(scenario)


class BrokenEvaluator:
    def evaluate(self, scenario):
        raise TypeError("unexpected")


class EchoEvaluator:
    """Returns the sampled rent as the only metric."""

    def evaluate(self, scenario):
        return {"rent": scenario["rental_income"]}


class PartialEvaluator:
    """Reports 'upside' only for rents above 2500."""

    def evaluate(self, scenario):
        rent = scenario["rental_income"]
        return {"rent": rent, "upside": rent - 2_500 if rent > 2_500 else float("nan")}


# ---------------------------------------------------------------------------
# Reproducibility
# ---------------------------------------------------------------------------
class TestDeterminism:

    def test_same_seed_identical_summary(self, simulator, request_dict):
        a = simulator.run(request_dict)
        b = simulator.run(request_dict)
        assert a.summary_statistics == b.summary_statistics
        assert a.distributions == b.distributions

    def test_different_seed_differs(self, simulator, request_dict):
        a = simulator.run(request_dict)
        request_dict["simulation_settings"]["random_seed"] = 43
        b = simulator.run(request_dict)
        assert a.summary_statistics["irr"]["mean"] != b.summary_statistics["irr"]["mean"]

    def test_generated_seed_is_recorded_and_reproducible(self, simulator, request_dict):
        del request_dict["simulation_settings"]["random_seed"]
        first = simulator.run(request_dict)
        meta = first.simulation_metadata
        assert meta["seed_was_generated"] is True
        request_dict["simulation_settings"]["random_seed"] = meta["random_seed"]
        again = simulator.run(request_dict)
        assert again.simulation_metadata["seed_was_generated"] is False
        assert again.summary_statistics == first.summary_statistics

    def test_parallel_matches_sequential(self, request_dict):
        seq = MonteCarloSimulator(n_workers=1, chunk_size=250).run(request_dict)
        par = MonteCarloSimulator(n_workers=2, chunk_size=250,
                                  backend="threading").run(request_dict)
        assert par.summary_statistics == seq.summary_statistics
        assert [t.inputs for t in par.trials] == [t.inputs for t in seq.trials]


# ---------------------------------------------------------------------------
# Statistical behaviour
# ---------------------------------------------------------------------------
class TestStatisticalProperties:

    def test_degenerate_inputs_give_fixed_point(self, simulator, base):
        request = {
            "investment_parameters": base,
            "variable_distributions": {
                "rental_income": {"type": "normal", "mean": 2_500, "std_dev": 0},
                "operating_expenses": {"type": "uniform", "min": 9_500, "max": 9_500},
                "vacancy_rate": {"type": "triangular", "min": 5, "mode": 5, "max": 5},
            },
            "simulation_settings": {"num_simulations": 300, "random_seed": 1},
        }
        result = simulator.run(request)
        expected = RentalPropertyEvaluator().evaluate(base)
        for metric in ("monthly_cash_flow", "irr", "total_return"):
            stats = result.summary_statistics[metric]
            assert stats["std_dev"] == 0.0
            assert stats["mean"] == expected[metric]
        assert all(t.inputs["rental_income"] == 2_500.0 for t in result.trials)

    def test_zero_dispersion_sharpe_is_undefined(self, simulator, base):
        request = {
            "investment_parameters": base,
            "variable_distributions": {"rental_income": {"mean": 2_500, "std_dev": 0}},
            "simulation_settings": {"num_simulations": 50, "random_seed": 1},
        }
        risk = simulator.run(request).risk_metrics
        assert risk["undefined_sharpe"] is True
        assert risk["sharpe_ratio"] is None

    def test_rent_normal_cash_flow_mean(self, simulator, base):
        request = {
            "investment_parameters": base,
            "variable_distributions": {
                "rental_income": {"type": "normal", "mean": 2_500, "std_dev": 200}},
            "simulation_settings": {"num_simulations": 1_000, "random_seed": 42},
        }
        result = simulator.run(request)
        expected = RentalPropertyEvaluator().evaluate(base)["monthly_cash_flow"]
        # cash flow moves 0.95 $/$ of rent; four standard errors of the mean
        tolerance = 4 * 0.95 * 200 / math.sqrt(1_000)
        assert abs(result.summary_statistics["monthly_cash_flow"]["mean"]
                   - expected) < tolerance

    def test_uniform_expenses_median(self, simulator, base):
        request = {
            "investment_parameters": base,
            "variable_distributions": {
                "operating_expenses": {"type": "uniform", "min": 10_000, "max": 15_000}},
            "simulation_settings": {"num_simulations": 2_000, "random_seed": 7},
        }
        result = simulator.run(request)
        p50 = result.distributions["operating_expenses"]["percentiles"]["p50"]
        assert abs(p50 - 12_500) / 12_500 < 0.05

    def test_law_of_large_numbers(self, base):
        request = {
            "investment_parameters": base,
            "variable_distributions": {
                "rental_income": {"type": "normal", "mean": 2_500, "std_dev": 300}},
            "simulation_settings": {"num_simulations": 50_000, "random_seed": 11},
        }
        result = MonteCarloSimulator(EchoEvaluator(), n_workers=1).run(request)
        np.testing.assert_allclose(result.summary_statistics["rent"]["mean"], 2_500, rtol=0.01)
        np.testing.assert_allclose(result.summary_statistics["rent"]["std_dev"], 300, rtol=0.02)

    def test_var_monotonicity(self, simulator, request_dict):
        var = simulator.run(request_dict).risk_metrics["irr"]["value_at_risk"]
        assert var["var_5"] <= var["var_50"] <= var["var_95"]

    def test_correlations_bounded(self, simulator, request_dict):
        result = simulator.run(request_dict)
        for row in result.correlations.matrix.values():
            for r in row.values():
                assert r is None or -1.0 <= r <= 1.0
        assert result.correlations.get("monthly_cash_flow", "rental_income") > 0.5
        assert result.correlations.get("monthly_cash_flow", "operating_expenses") < 0


# ---------------------------------------------------------------------------
# Failure handling
# ---------------------------------------------------------------------------
class TestFailures:

    def test_excluded_trials_and_degraded_warning(self, request_dict):
        sim = MonteCarloSimulator(FlakyEvaluator(2_300), n_workers=1)
        with pytest.warns(DegradedRunWarning):
            result = sim.run(request_dict)
        failed = sum(1 for t in result.trials if t.failed)
        low_rent = sum(1 for t in result.trials if t.inputs["rental_income"] < 2_300)
        assert failed == low_rent > 0
        assert result.simulation_metadata["excluded_trials"] == failed
        assert result.simulation_metadata["degraded"] is True
        assert result.summary_statistics["irr"]["count"] == 1_000 - failed
        assert result.summary_statistics["irr"]["excluded"] == failed

    def test_few_failures_not_degraded(self, request_dict):
        sim = MonteCarloSimulator(FlakyEvaluator(1_900), n_workers=1)
        with warnings.catch_warnings():
            warnings.simplefilter("error", DegradedRunWarning)
            result = sim.run(request_dict)
        assert result.simulation_metadata["degraded"] is False

    def test_nan_metric_excluded_from_that_metric_only(self, request_dict):
        sim = MonteCarloSimulator(PartialEvaluator(), n_workers=1)
        with pytest.warns(DegradedRunWarning):
            result = sim.run(request_dict)
        assert result.summary_statistics["rent"]["count"] == 1_000
        upside = result.summary_statistics["upside"]
        assert 0 < upside["count"] < 1_000
        assert upside["min"] > 0

    def test_unexpected_exception_aborts(self, request_dict):
        sim = MonteCarloSimulator(BrokenEvaluator(), n_workers=1)
        with pytest.raises(SimulationAbortedError):
            sim.run(request_dict)

    def test_all_trials_failing_aborts(self, request_dict):
        sim = MonteCarloSimulator(FlakyEvaluator(1e9), n_workers=1)
        with pytest.raises(SimulationAbortedError):
            sim.run(request_dict)

    @pytest.mark.parametrize("n", [0, -10])
    def test_bad_num_simulations(self, simulator, request_dict, n):
        request_dict["simulation_settings"]["num_simulations"] = n
        with pytest.raises(ValidationError):
            simulator.run(request_dict)

    def test_bad_distribution(self, simulator, request_dict):
        request_dict["variable_distributions"]["vacancy_rate"] = {
            "type": "triangular", "min": 5, "mode": 1, "max": 10}
        with pytest.raises(InvalidDistributionError):
            simulator.run(request_dict)

    def test_missing_investment_parameters(self, simulator):
        with pytest.raises(ValidationError):
            simulator.run({"variable_distributions": {}})

    def test_unknown_target(self, request_dict):
        request_dict["target_metrics"] = {"minimum_dscr": 1.2}
        with pytest.raises(ValidationError):
            SimulationRequest.from_dict(request_dict)

    @pytest.mark.parametrize("key", ["__class__", "__dict__", "__init__"])
    def test_attribute_names_are_not_targets(self, request_dict, key):
        request_dict["target_metrics"] = {key: 1.0}
        with pytest.raises(ValidationError):
            SimulationRequest.from_dict(request_dict)

    def test_known_target_overrides_default(self, request_dict):
        request_dict["target_metrics"] = {"minimum_irr": 12}
        request = SimulationRequest.from_dict(request_dict)
        assert request.targets.minimum_irr == 12.0

    @pytest.mark.parametrize("kwargs", [{"n_workers": 0}, {"n_workers": -2},
                                        {"chunk_size": 0}, {"chunk_size": -5}])
    def test_explicit_bad_pool_settings_rejected(self, kwargs):
        with pytest.raises(ValidationError):
            MonteCarloSimulator(RentalPropertyEvaluator(), **kwargs)

    def test_pool_settings_default_from_config(self):
        sim = MonteCarloSimulator(RentalPropertyEvaluator())
        assert sim.n_workers >= 1 or sim.n_workers == -1
        assert sim.chunk_size >= 1


# ---------------------------------------------------------------------------
# Result shape
# ---------------------------------------------------------------------------
class TestResult:

    def test_top_level_keys(self, simulator, request_dict):
        d = simulator.run(request_dict).to_dict()
        assert set(d) == {
            "summary_statistics", "distributions", "risk_metrics",
            "probability_analysis", "correlations", "scenario_analysis",
            "confidence_intervals", "recommendations", "simulation_metadata",
        }
        assert d["correlations"]["note"].startswith("Correlation is descriptive")

    def test_sampled_inputs_in_distributions(self, simulator, request_dict):
        dists = simulator.run(request_dict).distributions
        for name in ("rental_income", "vacancy_rate", "operating_expenses", "irr"):
            assert "percentiles" in dists[name]
            assert "histogram" in dists[name]

    def test_probabilities_are_fractions(self, simulator, request_dict):
        probs = simulator.run(request_dict).probability_analysis
        assert set(probs) == {"irr_above_target", "positive_cash_flow",
                              "profitable_exit", "double_money",
                              "loss_probability", "meet_all_targets"}
        assert all(0.0 <= p <= 1.0 for p in probs.values())
        assert probs["meet_all_targets"] <= probs["irr_above_target"]

    def test_scenario_analysis_ordering(self, simulator, request_dict):
        sa = simulator.run(request_dict).scenario_analysis
        irr = {k: v["outputs"]["irr"] for k, v in sa.items()}
        assert irr["best_case"] >= irr["percentile_90"] >= irr["median_case"] \
            >= irr["percentile_10"] >= irr["worst_case"]

    def test_metadata(self, simulator, request_dict):
        meta = simulator.run(request_dict).simulation_metadata
        assert meta["num_simulations"] == 1_000
        assert meta["random_seed"] == 42
        assert meta["chunk_size"] == 250
        assert meta["elapsed_seconds"] >= 0

    def test_recommendations_shape(self, simulator, request_dict):
        for rec in simulator.run(request_dict).recommendations:
            assert set(rec) == {"type", "priority", "message", "action"}

    def test_trials_frame(self, simulator, request_dict):
        frame = simulator.run(request_dict).trials_frame()
        assert len(frame) == 1_000
        assert {"rental_income", "irr", "error"} <= set(frame.columns)

    def test_simulate_from_components(self, simulator, base):
        from realestate_mc.models.distributions import NormalDistribution
        result = simulator.simulate(
            base, {"rental_income": NormalDistribution(2_500, 100)},
            SimulationSettings(num_simulations=200, random_seed=3))
        assert result.simulation_metadata["num_simulations"] == 200


class TestProbabilityAnalysis:

    def test_thresholds(self):
        cols = {"irr": [5.0, 12.0, 20.0, None],
                "monthly_cash_flow": [-10.0, 50.0, 100.0, 10.0],
                "total_profit": [1.0, 2.0, 3.0, 4.0]}
        probs = probability_analysis(cols, TargetConfig(minimum_irr=10.0))
        assert probs["irr_above_target"] == pytest.approx(2 / 3)
        assert probs["positive_cash_flow"] == pytest.approx(0.75)
        assert probs["meet_all_targets"] == pytest.approx(2 / 3)
        assert "double_money" not in probs
