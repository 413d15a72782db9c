"""
Monte Carlo Simulation Orchestrator
====================================

Runs N independent trials of

    scenario_i = base ⊕ {x_j ~ D_j}       (one draw per uncertain input)
    metrics_i  = evaluator.evaluate(scenario_i)

and reduces the completed trial set to outcome statistics, risk metrics,
event probabilities, input/output correlations, key scenarios and
recommendations.

Execution: trials are cut into fixed-size chunks, each with its own
SeedSequence child stream. Chunks run in-process or on a joblib pool and are
reassembled in chunk order, so the trial set is identical for any worker
count. Aggregation only starts once every chunk has returned.

Failure policy:
    - validation problems raise before the first trial
    - an evaluator failure on one trial excludes that trial
    - NaN / missing metric values are excluded from that metric only
    - too many excluded trials -> DegradedRunWarning
    - anything else aborts the run (SimulationAbortedError)

References:
    - Glasserman, P. (2003). Monte Carlo Methods in Financial Engineering.
      Springer. Ch. 1-2.
    - Hull, J. (2018). Risk Management and Financial Institutions, Ch. 13.
"""

import time
import warnings
import numpy as np
import pandas as pd
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from joblib import Parallel, delayed
from typing import Dict, List, Mapping, Optional

from realestate_mc.analytics.correlation import CorrelationMatrix, correlate
from realestate_mc.analytics.risk import metric_risk_report, sharpe_ratio
from realestate_mc.analytics.statistics import (
    confidence_intervals, histogram, percentiles, summarize,
)
from realestate_mc.config import CONFIG, TargetConfig
from realestate_mc.exceptions import (
    DegradedRunWarning, SimulationAbortedError, ValidationError,
)
from realestate_mc.models.distributions import DistributionSpec, distributions_from_dict
from realestate_mc.models.evaluator import RentalPropertyEvaluator
from realestate_mc.models.scenario import (
    ScenarioGenerator, SimulationSettings, Trial, chunk_generators, chunk_plan,
    resolve_seed, validate_base_scenario,
)
from realestate_mc.recommendations import generate_recommendations
from realestate_mc.utils import clean_float, get_logger, is_number, timeit

logger = get_logger(__name__)


# =============================================================================
# Request
# =============================================================================

@dataclass(frozen=True)
class SimulationRequest:
    """A validated simulation request."""
    base: Dict[str, float]
    distributions: Dict[str, DistributionSpec]
    settings: SimulationSettings = field(default_factory=SimulationSettings)
    targets: TargetConfig = field(default_factory=lambda: TargetConfig(
        **vars(CONFIG.targets)))

    @classmethod
    def from_dict(cls, data: Mapping) -> "SimulationRequest":
        """
        Parse ``{investment_parameters, variable_distributions,
        simulation_settings, target_metrics}``; raises ValidationError.
        """
        if not isinstance(data, Mapping):
            raise ValidationError("request must be a mapping")
        if "investment_parameters" not in data:
            raise ValidationError("request is missing 'investment_parameters'")
        base = validate_base_scenario(data["investment_parameters"])
        distributions = distributions_from_dict(data.get("variable_distributions") or {})
        settings = SimulationSettings.from_dict(data.get("simulation_settings"))
        return cls(base=base, distributions=distributions, settings=settings,
                   targets=parse_targets(data.get("target_metrics")))


def parse_targets(data: Optional[Mapping]) -> TargetConfig:
    targets = TargetConfig(**vars(CONFIG.targets))
    for key, value in dict(data or {}).items():
        if key not in {f.name for f in fields(TargetConfig)}:
            raise ValidationError(f"unknown target metric '{key}'")
        if not is_number(value):
            raise ValidationError(f"target '{key}' must be a finite number, got {value!r}")
        setattr(targets, key, float(value))
    return targets


# =============================================================================
# Result
# =============================================================================

@dataclass
class MonteCarloResult:
    """Container for one completed simulation run."""
    summary_statistics: Dict[str, Dict]
    distributions: Dict[str, Dict]
    risk_metrics: Dict
    probability_analysis: Dict[str, float]
    correlations: CorrelationMatrix
    scenario_analysis: Dict[str, Dict]
    confidence_intervals: Dict[str, Dict]
    recommendations: List[Dict[str, str]]
    simulation_metadata: Dict
    trials: List[Trial] = field(default_factory=list, repr=False)

    def to_dict(self) -> Dict:
        return {
            "summary_statistics": self.summary_statistics,
            "distributions": self.distributions,
            "risk_metrics": self.risk_metrics,
            "probability_analysis": self.probability_analysis,
            "correlations": self.correlations.to_dict(),
            "scenario_analysis": self.scenario_analysis,
            "confidence_intervals": self.confidence_intervals,
            "recommendations": self.recommendations,
            "simulation_metadata": self.simulation_metadata,
        }

    def metric_values(self, metric: str) -> np.ndarray:
        """Valid values of one metric in trial order."""
        vals = [t.metrics.get(metric) for t in self.trials if not t.failed]
        return np.array([v for v in vals if v is not None], dtype=np.float64)

    def trials_frame(self) -> pd.DataFrame:
        """One row per trial: sampled inputs, metrics and the error message."""
        rows = []
        for t in self.trials:
            row = {"trial": t.index, **t.inputs, **t.metrics, "error": t.error}
            rows.append(row)
        return pd.DataFrame(rows).set_index("trial")


# =============================================================================
# Trial execution
# =============================================================================

def run_chunk(evaluator, generator: ScenarioGenerator, rng: np.random.Generator,
              start: int, stop: int) -> List[Trial]:
    """Evaluate trials [start, stop) on one generator stream."""
    trials = []
    for index in range(start, stop):
        scenario, inputs = generator.generate(rng)
        try:
            raw = evaluator.evaluate(scenario)
            metrics = {str(k): clean_float(v) for k, v in raw.items()}
        except (ArithmeticError, ValueError) as exc:
            trials.append(Trial(index=index, scenario=scenario, inputs=inputs,
                                error=f"{type(exc).__name__}: {exc}"))
            continue
        except Exception as exc:
            raise SimulationAbortedError(
                f"trial {index} raised {type(exc).__name__}: {exc}") from exc
        trials.append(Trial(index=index, scenario=scenario, inputs=inputs,
                            metrics=metrics))
    return trials


# =============================================================================
# Aggregation helpers
# =============================================================================

def probability_analysis(columns: Mapping[str, List[Optional[float]]],
                         targets: TargetConfig) -> Dict[str, float]:
    """
    Event probabilities as fractions of the trials where the event's metrics
    are all valid. Events whose metrics were never produced are omitted.
    """
    events = {
        "irr_above_target": (("irr",), lambda m: m["irr"] >= targets.minimum_irr),
        "positive_cash_flow": (("monthly_cash_flow",),
                               lambda m: m["monthly_cash_flow"] >= targets.minimum_cash_flow),
        "profitable_exit": (("total_profit",),
                            lambda m: m["total_profit"] > targets.maximum_loss),
        "double_money": (("equity_multiple",), lambda m: m["equity_multiple"] >= 2.0),
        "loss_probability": (("total_return",), lambda m: m["total_return"] < 0),
        "meet_all_targets": (
            ("irr", "monthly_cash_flow", "total_profit"),
            lambda m: (m["irr"] >= targets.minimum_irr
                       and m["monthly_cash_flow"] >= targets.minimum_cash_flow
                       and m["total_profit"] > targets.maximum_loss)),
    }
    out = {}
    for event, (needed, predicate) in events.items():
        if not all(name in columns for name in needed):
            continue
        n = len(columns[needed[0]])
        hits = valid = 0
        for i in range(n):
            row = {name: columns[name][i] for name in needed}
            if any(v is None for v in row.values()):
                continue
            valid += 1
            hits += bool(predicate(row))
        if valid:
            out[event] = hits / valid
    return out


def key_scenarios(trials: List[Trial], metric: str) -> Dict[str, Dict]:
    """Best, worst, median and 10th/90th percentile trials ranked on ``metric``."""
    ranked = [t for t in trials if not t.failed and t.metrics.get(metric) is not None]
    if not ranked:
        return {}
    # descending on metric; stable on trial index
    ranked.sort(key=lambda t: (-t.metrics[metric], t.index))
    n = len(ranked)

    def fmt(trial, label):
        return {"label": label, "trial_index": trial.index,
                "inputs": dict(trial.inputs), "outputs": dict(trial.metrics)}

    return {
        "best_case": fmt(ranked[0], "Best Case"),
        "worst_case": fmt(ranked[-1], "Worst Case"),
        "median_case": fmt(ranked[n // 2], "Median Case"),
        "percentile_10": fmt(ranked[min(int(n * 0.9), n - 1)], "10th Percentile"),
        "percentile_90": fmt(ranked[int(n * 0.1)], "90th Percentile"),
    }


def _summary_block(values: List[Optional[float]], n_trials: int) -> Dict:
    stats = summarize(values)
    if stats is None:
        return {"count": 0, "mean": None, "std_dev": None, "min": None, "max": None,
                "median": None, "skewness": None, "kurtosis": None,
                "excluded": n_trials}
    block = stats.to_dict()
    block.pop("percentiles")
    block["excluded"] = n_trials - stats.count
    return block


# =============================================================================
# Orchestrator
# =============================================================================

class MonteCarloSimulator:
    """
    Monte Carlo engine for property investment outcomes.

    Parameters
    ----------
    evaluator  : object exposing ``evaluate(scenario) -> dict``;
                 defaults to RentalPropertyEvaluator
    config     : AppConfig
    n_workers  : parallel workers (1 = in-process)
    chunk_size : trials per RNG stream
    backend    : joblib backend ("loky", "threading", ...)

    Usage:
        >>> sim = MonteCarloSimulator()
        >>> result = sim.run({"investment_parameters": {...},
        ...                   "variable_distributions": {...},
        ...                   "simulation_settings": {"num_simulations": 5000,
        ...                                           "random_seed": 42}})
        >>> result.summary_statistics["irr"]["mean"]
    """

    def __init__(self, evaluator=None, config=CONFIG, n_workers: Optional[int] = None,
                 chunk_size: Optional[int] = None, backend: Optional[str] = None):
        self.config = config
        self.evaluator = evaluator or RentalPropertyEvaluator(
            discount_rate=config.sensitivity.discount_rate)
        self.n_workers = config.engine.n_workers if n_workers is None else n_workers
        self.chunk_size = config.engine.chunk_size if chunk_size is None else chunk_size
        self.backend = backend or config.engine.parallel_backend
        if self.n_workers < 1 and self.n_workers != -1:
            raise ValidationError(f"n_workers must be >= 1 or -1, got {self.n_workers}")
        if self.chunk_size < 1:
            raise ValidationError(f"chunk_size must be positive, got {self.chunk_size}")

    def simulate(self, base: Mapping[str, float], distributions: Mapping,
                 settings: Optional[SimulationSettings] = None,
                 targets: Optional[TargetConfig] = None) -> MonteCarloResult:
        """Run from already-built components instead of a request dict."""
        request = SimulationRequest(
            base=validate_base_scenario(base),
            distributions=distributions_from_dict(distributions),
            settings=settings or SimulationSettings(),
            targets=targets or TargetConfig(**vars(self.config.targets)),
        )
        return self.run(request)

    @timeit
    def run(self, request) -> MonteCarloResult:
        """
        Execute every trial, then aggregate.

        Parameters
        ----------
        request : SimulationRequest or request dict

        Returns
        -------
        MonteCarloResult

        Raises
        ------
        ValidationError        malformed request
        SimulationAbortedError fatal failure, no partial result
        """
        if not isinstance(request, SimulationRequest):
            request = SimulationRequest.from_dict(request)

        t0 = time.perf_counter()
        settings = request.settings
        n = settings.num_simulations
        seed, generated = resolve_seed(settings.random_seed)
        generator = ScenarioGenerator(request.base, request.distributions)

        plan = chunk_plan(n, self.chunk_size)
        rngs = chunk_generators(seed, len(plan))
        logger.info("Running %d trials over %d chunk(s), seed=%d, workers=%d",
                    n, len(plan), seed, self.n_workers)

        if self.n_workers == 1 or len(plan) == 1:
            chunks = [run_chunk(self.evaluator, generator, rng, start, stop)
                      for rng, (start, stop) in zip(rngs, plan)]
        else:
            chunks = Parallel(n_jobs=self.n_workers, backend=self.backend)(
                delayed(run_chunk)(self.evaluator, generator, rng, start, stop)
                for rng, (start, stop) in zip(rngs, plan)
            )
        trials = [t for chunk in chunks for t in chunk]

        result = self._aggregate(trials, request, seed, generated)
        result.simulation_metadata["elapsed_seconds"] = time.perf_counter() - t0
        logger.info("Simulation finished: %d trials, %d excluded, %.2f s",
                    n, result.simulation_metadata["excluded_trials"],
                    result.simulation_metadata["elapsed_seconds"])
        return result

    def _aggregate(self, trials: List[Trial], request: SimulationRequest,
                   seed: int, generated: bool) -> MonteCarloResult:
        settings, risk_cfg = request.settings, self.config.risk
        n = len(trials)

        metric_names = list(dict.fromkeys(
            name for t in trials if not t.failed for name in t.metrics))
        metric_cols = {
            name: [None if t.failed else t.metrics.get(name) for t in trials]
            for name in metric_names
        }
        input_cols = {
            name: [t.inputs[name] for t in trials]
            for name in sorted(request.distributions)
        }
        if not any(v is not None for col in metric_cols.values() for v in col):
            first_error = next((t.error for t in trials if t.failed), None)
            raise SimulationAbortedError(
                f"no trial produced a usable metric (first error: {first_error})")

        excluded = sum(
            1 for t in trials
            if t.failed or any(t.metrics.get(name) is None for name in metric_names)
        )
        degraded = excluded / n > self.config.engine.max_failure_fraction
        if excluded:
            logger.warning("%d of %d trials excluded", excluded, n)
        if degraded:
            warnings.warn(
                f"{excluded} of {n} trials were excluded "
                f"(limit {self.config.engine.max_failure_fraction:.0%}); "
                "statistics rest on a reduced sample",
                DegradedRunWarning, stacklevel=3)

        summary = {name: _summary_block(col, n) for name, col in metric_cols.items()}

        dists = {}
        for name, col in list(input_cols.items()) + list(metric_cols.items()):
            valid = [v for v in col if v is not None]
            dists[name] = {"percentiles": percentiles(valid, risk_cfg.percentiles),
                           "histogram": histogram(valid, risk_cfg.histogram_bins)}

        risk = {}
        for name, col in metric_cols.items():
            report = metric_risk_report(col, settings.confidence_levels)
            if report is not None:
                risk[name] = report
        sharpe = sharpe_ratio(metric_cols.get(risk_cfg.sharpe_metric, []),
                              settings.risk_free_rate)
        risk["sharpe_ratio"] = sharpe.value
        risk["undefined_sharpe"] = sharpe.undefined
        risk["sharpe_metric"] = risk_cfg.sharpe_metric

        probs = probability_analysis(metric_cols, request.targets)
        corr = correlate(input_cols, metric_cols, target=risk_cfg.correlation_target)
        intervals = {name: confidence_intervals(col, risk_cfg.interval_levels)
                     for name, col in metric_cols.items()}

        metadata = {
            "num_simulations": n,
            "random_seed": seed,
            "seed_was_generated": generated,
            "excluded_trials": excluded,
            "degraded": degraded,
            "chunk_size": self.chunk_size,
            "n_workers": self.n_workers,
            "elapsed_seconds": None,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

        return MonteCarloResult(
            summary_statistics=summary,
            distributions=dists,
            risk_metrics=risk,
            probability_analysis=probs,
            correlations=corr,
            scenario_analysis=key_scenarios(trials, risk_cfg.scenario_rank_metric),
            confidence_intervals=intervals,
            recommendations=generate_recommendations(summary, risk, probs),
            simulation_metadata=metadata,
            trials=trials,
        )
