"""
One-Way Sensitivity and Tornado Analysis
=========================================

Deterministic sweeps of one input at a time through the same financial
evaluator the Monte Carlo path uses. Every other input stays at its base
value.

    Relative step  : x_k = x_0 * (1 + v_k / 100)
    Absolute step  : x_k = x_0 + v_k
    Swing          : |f(x_high) - f(x_low)|
    Elasticity     : mean_k | (Δf / |f_k|) / (Δx / |x_0|) |   over adjacent steps
    Downside       : (f(x_0) - min_{v_k < 0} f(x_k)) / |f(x_0)| * 100
    Impact         : f_k - f(x_0)                  dollar metrics (npv, cash flow)
                     (f_k - f(x_0)) / |f(x_0)| * 100   rates and ratios

Every step records each of the analysis metrics with its impact against
the base case; range, elasticity, min and max are kept per metric. Variables
are ranked by the swing of the target metric, largest first; equal swings
fall back to the variable name so the ordering never depends on the order
of the request.

Also provided:
    - two-way data tables (pandas DataFrame, var1 rows x var2 columns)
    - break-even search on a relative change via Brent's method
    - an overall Low / Medium / High sensitivity assessment

References:
    - Brealey, Myers & Allen (2020). Principles of Corporate Finance,
      13th ed., Ch. 10: Project Analysis.
    - Saltelli, A. et al. (2008). Global Sensitivity Analysis: The Primer.
"""

import numpy as np
import pandas as pd
from dataclasses import dataclass, field, asdict
from scipy.optimize import brentq
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from realestate_mc.config import CONFIG
from realestate_mc.exceptions import EvaluationError, ValidationError
from realestate_mc.models.evaluator import RentalPropertyEvaluator
from realestate_mc.models.scenario import validate_base_scenario
from realestate_mc.recommendations import sensitivity_recommendations
from realestate_mc.utils import clean_float, get_logger, is_number, timeit

logger = get_logger(__name__)

MODES = ("relative", "absolute")

# impact is an absolute change for these, a percent change for everything else
ABSOLUTE_IMPACT_METRICS = frozenset({
    "monthly_cash_flow", "annual_cash_flow", "npv",
    "net_operating_income", "total_profit", "exit_value",
})

RISK_FACTORS = (
    (("loan_interest_rate", "interest_rate"), "Interest Rate Risk",
     "Investment highly sensitive to rate changes",
     "Consider fixed-rate financing or rate locks"),
    (("rental_income",), "Income Risk",
     "Returns heavily dependent on rental income",
     "Diversify tenant base, consider long-term leases"),
    (("purchase_price",), "Valuation Risk",
     "Returns sensitive to purchase price",
     "Thorough due diligence and conservative valuations"),
    (("vacancy_rate",), "Occupancy Risk",
     "Performance vulnerable to vacancy",
     "Focus on high-demand locations and tenant retention"),
)


@dataclass(frozen=True)
class SensitivityVariable:
    """
    Attributes:
        variable_name: Base scenario field to sweep
        variations: Perturbation steps, percent (relative) or units (absolute)
        mode: "relative" or "absolute"
    """
    variable_name: str
    variations: Tuple[float, ...] = tuple(CONFIG.sensitivity.variations)
    mode: str = "relative"

    def __post_init__(self):
        if not isinstance(self.variable_name, str) or not self.variable_name:
            raise ValidationError("variable_name must be a non-empty string")
        steps = tuple(self.variations)
        if not steps:
            raise ValidationError(f"'{self.variable_name}': variations must not be empty")
        for step in steps:
            if not is_number(step):
                raise ValidationError(
                    f"'{self.variable_name}': variation {step!r} is not a finite number")
        object.__setattr__(self, "variations", steps)
        if self.mode not in MODES:
            raise ValidationError(
                f"'{self.variable_name}': mode must be one of {MODES}, got {self.mode!r}")

    @classmethod
    def symmetric(cls, variable_name: str, span: float = 20.0, step: float = 5.0,
                  mode: str = "relative") -> "SensitivityVariable":
        """Steps from -span to +span inclusive, e.g. ±20% in 5% increments."""
        if not (is_number(span) and is_number(step)) or span <= 0 or step <= 0:
            raise ValidationError("span and step must be positive numbers")
        n = int(round(span / step))
        steps = tuple(float(k * step) for k in range(-n, n + 1))
        return cls(variable_name, steps, mode)

    @classmethod
    def from_dict(cls, data: Union[str, Mapping, "SensitivityVariable"]
                  ) -> "SensitivityVariable":
        if isinstance(data, cls):
            return data
        if isinstance(data, str):
            return cls(data)
        if not isinstance(data, Mapping):
            raise ValidationError(f"cannot build a sensitivity variable from {data!r}")
        name = data.get("variable_name", data.get("variable"))
        kwargs = {}
        if data.get("variations") is not None:
            kwargs["variations"] = tuple(data["variations"])
        if data.get("mode") is not None:
            kwargs["mode"] = data["mode"]
        return cls(name, **kwargs)

    def value_at(self, base_value: float, step: float) -> float:
        if self.mode == "absolute":
            return base_value + step
        return base_value * (1.0 + step / 100.0)


@dataclass
class TornadoRow:
    variable: str
    base_value: float
    metric_at_low: Optional[float]
    metric_at_base: Optional[float]
    metric_at_high: Optional[float]
    swing: Optional[float]
    elasticity: Optional[float] = None
    downside_risk: Optional[float] = None
    sweep: List[Dict] = field(default_factory=list)
    sensitivity_metrics: Dict[str, Dict] = field(default_factory=dict)

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class TornadoResult:
    """Tornado rows ranked by swing plus the base-case metrics."""
    target_metric: str
    base_metrics: Dict[str, float]
    rows: List[TornadoRow]
    analysis_metrics: List[str] = field(default_factory=list)

    @property
    def ranking(self) -> List[str]:
        return [row.variable for row in self.rows]

    def to_frame(self) -> pd.DataFrame:
        cols = ["variable", "base_value", "metric_at_low", "metric_at_base",
                "metric_at_high", "swing", "elasticity", "downside_risk"]
        return pd.DataFrame([{c: getattr(r, c) for c in cols} for r in self.rows],
                            columns=cols)

    def to_dict(self) -> Dict:
        return {
            "target_metric": self.target_metric,
            "analysis_metrics": list(self.analysis_metrics),
            "base_metrics": dict(self.base_metrics),
            "rows": [row.to_dict() for row in self.rows],
        }


@dataclass
class BreakEven:
    variable: str
    metric: str
    target: float
    base_value: float
    break_even_value: float
    break_even_change_percent: float

    @property
    def margin_of_safety(self) -> float:
        return 100.0 - abs(self.break_even_change_percent)

    def to_dict(self) -> Dict:
        out = asdict(self)
        out["margin_of_safety"] = self.margin_of_safety
        return out


def _rank_key(row: TornadoRow):
    return (row.swing is None, -row.swing if row.swing is not None else 0.0, row.variable)


def _elasticity(values: Sequence[Optional[float]], inputs: Sequence[float],
                base_value: float) -> Optional[float]:
    """Average absolute arc elasticity between adjacent sweep steps."""
    if base_value == 0:
        return None
    ratios = []
    for i in range(len(values) - 1):
        f0, f1 = values[i], values[i + 1]
        dx = (inputs[i + 1] - inputs[i]) / abs(base_value) * 100.0
        if f0 is None or f1 is None or f0 == 0 or dx == 0:
            continue
        df = (f1 - f0) / abs(f0) * 100.0
        ratios.append(abs(df / dx))
    return float(np.mean(ratios)) if ratios else None


def impact(metric: str, base_value: Optional[float],
           value: Optional[float]) -> Optional[float]:
    """Change of ``metric`` against the base case; None if either side is undefined."""
    if base_value is None or value is None:
        return None
    if metric in ABSOLUTE_IMPACT_METRICS:
        return value - base_value
    if base_value == 0:
        return 0.0
    return (value - base_value) / abs(base_value) * 100.0


def _sensitivity_metrics(values: Sequence[Optional[float]], inputs: Sequence[float],
                         base_value: float) -> Dict[str, Optional[float]]:
    valid = [v for v in values if v is not None]
    if not valid:
        return {"range": None, "elasticity": None, "min_value": None, "max_value": None}
    return {
        "range": max(valid) - min(valid),
        "elasticity": _elasticity(values, inputs, base_value),
        "min_value": min(valid),
        "max_value": max(valid),
    }


def identify_risk_factors(critical_variables: Iterable[str]) -> List[Dict[str, str]]:
    """Named risk factors with a mitigation for each critical input."""
    critical = set(critical_variables)
    return [{"factor": name, "description": description, "mitigation": mitigation}
            for variables, name, description, mitigation in RISK_FACTORS
            if critical.intersection(variables)]


class SensitivityEngine:
    """
    Tornado, two-way and break-even analysis around one base scenario.

    Parameters
    ----------
    evaluator : object exposing ``evaluate(scenario) -> dict``
        Defaults to RentalPropertyEvaluator with the configured discount rate.

    Usage:
        >>> engine = SensitivityEngine()
        >>> tornado = engine.analyze(base, ["rental_income", "purchase_price"], "irr")
        >>> tornado.ranking
    """

    def __init__(self, evaluator=None, config=CONFIG):
        self.config = config
        self.evaluator = evaluator or RentalPropertyEvaluator(
            discount_rate=config.sensitivity.discount_rate)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _evaluate(self, scenario: Mapping[str, float]) -> Optional[Dict]:
        """Evaluate one scenario; an evaluator failure yields None."""
        try:
            return self.evaluator.evaluate(scenario)
        except (ArithmeticError, ValueError) as exc:
            logger.debug("Evaluation failed: %s", exc)
            return None

    def _metric(self, scenario: Mapping[str, float], metric: str) -> Optional[float]:
        result = self._evaluate(scenario)
        return None if result is None else clean_float(result.get(metric))

    def _analysis_metrics(self, target_metric: str,
                          analysis_metrics: Optional[Iterable[str]]) -> List[str]:
        requested = (self.config.sensitivity.analysis_metrics
                     if analysis_metrics is None else analysis_metrics)
        if isinstance(requested, str):
            requested = [requested]
        metrics = [target_metric]
        for m in requested:
            if not isinstance(m, str) or not m:
                raise ValidationError(f"analysis metric {m!r} is not a metric name")
            if m not in metrics:
                metrics.append(m)
        return metrics

    def _parse_variables(self, base: Mapping[str, float],
                         variables: Iterable) -> List[SensitivityVariable]:
        parsed, seen = [], set()
        for item in variables:
            var = SensitivityVariable.from_dict(item)
            if var.variable_name not in base:
                raise ValidationError(
                    f"sensitivity variable '{var.variable_name}' is not in the base scenario")
            if var.variable_name in seen:
                raise ValidationError(f"duplicate sensitivity variable '{var.variable_name}'")
            seen.add(var.variable_name)
            parsed.append(var)
        if not parsed:
            raise ValidationError("at least one sensitivity variable is required")
        return parsed

    # ------------------------------------------------------------------
    # One-way tornado
    # ------------------------------------------------------------------
    @timeit
    def analyze(self, base: Mapping[str, float], variables: Iterable,
                target_metric: Optional[str] = None,
                analysis_metrics: Optional[Iterable[str]] = None) -> TornadoResult:
        """
        One-way sweep of every variable and tornado ranking.

        Parameters
        ----------
        base             : fixed base scenario
        variables        : SensitivityVariable objects, dicts or bare names
        target_metric    : evaluator output to rank on (default from config)
        analysis_metrics : outputs recorded at every step (default from
                           config); the target metric always comes first

        Returns
        -------
        TornadoResult
        """
        target_metric = target_metric or self.config.sensitivity.target_metric
        metrics = self._analysis_metrics(target_metric, analysis_metrics)
        base = validate_base_scenario(base)
        specs = self._parse_variables(base, variables)

        try:
            base_metrics = {k: clean_float(v)
                            for k, v in self.evaluator.evaluate(base).items()}
        except (ArithmeticError, ValueError) as exc:
            logger.warning("Base scenario could not be evaluated: %s", exc)
            base_metrics = {}
        base_value_metric = base_metrics.get(target_metric)

        rows = []
        for spec in specs:
            x0 = base[spec.variable_name]
            steps = sorted(spec.variations)
            inputs, sweep = [], []
            series = {m: [] for m in metrics}
            for step in steps:
                x = spec.value_at(x0, step)
                scenario = dict(base)
                scenario[spec.variable_name] = x
                result = self._evaluate(scenario) or {}
                at_step = {m: clean_float(result.get(m)) for m in metrics}
                inputs.append(x)
                for m in metrics:
                    series[m].append(at_step[m])
                sweep.append({
                    "variation": step,
                    "value": x,
                    "metric": at_step[target_metric],
                    "metrics": at_step,
                    "impact": {m: impact(m, base_metrics.get(m), at_step[m])
                               for m in metrics},
                })

            values = series[target_metric]
            per_metric = {m: _sensitivity_metrics(series[m], inputs, x0) for m in metrics}
            low, high = values[0], values[-1]
            swing = abs(high - low) if low is not None and high is not None else None

            downside = None
            down_values = [v for s, v in zip(steps, values) if s < 0 and v is not None]
            if down_values and base_value_metric:
                downside = ((base_value_metric - min(down_values))
                            / abs(base_value_metric) * 100.0)

            rows.append(TornadoRow(
                variable=spec.variable_name,
                base_value=x0,
                metric_at_low=low,
                metric_at_base=base_value_metric,
                metric_at_high=high,
                swing=swing,
                elasticity=per_metric[target_metric]["elasticity"],
                downside_risk=downside,
                sweep=sweep,
                sensitivity_metrics=per_metric,
            ))

        rows.sort(key=_rank_key)
        logger.info("Tornado on %s: %s", target_metric,
                    ", ".join(r.variable for r in rows))
        return TornadoResult(target_metric=target_metric,
                             base_metrics=base_metrics, rows=rows,
                             analysis_metrics=metrics)

    # ------------------------------------------------------------------
    # Two-way table
    # ------------------------------------------------------------------
    def two_way_table(self, base: Mapping[str, float], var1, var2,
                      metric: Optional[str] = None) -> pd.DataFrame:
        """Metric grid with var1 steps as rows and var2 steps as columns."""
        metric = metric or self.config.sensitivity.target_metric
        base = validate_base_scenario(base)
        v1, v2 = self._parse_variables(base, [var1, var2])

        grid = np.full((len(v1.variations), len(v2.variations)), np.nan)
        for i, s1 in enumerate(v1.variations):
            for j, s2 in enumerate(v2.variations):
                scenario = dict(base)
                scenario[v1.variable_name] = v1.value_at(base[v1.variable_name], s1)
                scenario[v2.variable_name] = v2.value_at(base[v2.variable_name], s2)
                value = self._metric(scenario, metric)
                if value is not None:
                    grid[i, j] = value

        return pd.DataFrame(
            grid,
            index=pd.Index(list(v1.variations), name=v1.variable_name),
            columns=pd.Index(list(v2.variations), name=v2.variable_name),
        )

    # ------------------------------------------------------------------
    # Break-even
    # ------------------------------------------------------------------
    def find_break_even(self, base: Mapping[str, float], variable: str,
                        metric: str = "npv", target: float = 0.0,
                        bounds: Optional[Tuple[float, float]] = None
                        ) -> Optional[BreakEven]:
        """
        Relative change (percent) of ``variable`` at which ``metric`` hits
        ``target``. Returns None when there is no sign change on ``bounds``.
        """
        lo, hi = bounds or self.config.sensitivity.break_even_bounds
        base = validate_base_scenario(base)
        if variable not in base:
            raise ValidationError(f"variable '{variable}' is not in the base scenario")
        x0 = base[variable]
        if x0 == 0:
            logger.warning("Break-even for '%s' undefined at a zero base value", variable)
            return None

        def gap(change):
            scenario = dict(base)
            scenario[variable] = x0 * (1.0 + change / 100.0)
            value = self._metric(scenario, metric)
            if value is None:
                raise EvaluationError(f"{metric} undefined at {change:+.2f}%")
            return value - target

        try:
            f_lo, f_hi = gap(lo), gap(hi)
            if f_lo == 0:
                change = lo
            elif f_hi == 0:
                change = hi
            elif np.sign(f_lo) == np.sign(f_hi):
                return None
            else:
                change = brentq(gap, lo, hi, xtol=1e-6, maxiter=200)
        except (EvaluationError, RuntimeError) as exc:
            logger.debug("Break-even search for '%s' failed: %s", variable, exc)
            return None

        return BreakEven(
            variable=variable, metric=metric, target=target, base_value=x0,
            break_even_value=x0 * (1.0 + change / 100.0),
            break_even_change_percent=float(change),
        )

    # ------------------------------------------------------------------
    # Combined report
    # ------------------------------------------------------------------
    def report(self, base: Mapping[str, float], variables: Iterable,
               target_metric: Optional[str] = None,
               analysis_metrics: Optional[Iterable[str]] = None) -> Dict:
        """Tornado, two-way table, break-evens and risk assessment in one dict."""
        variables = list(variables)
        tornado = self.analyze(base, variables, target_metric, analysis_metrics)
        specs = self._parse_variables(validate_base_scenario(base), variables)

        two_way = None
        if len(specs) >= 2:
            two_way = self.two_way_table(base, specs[0], specs[1], tornado.target_metric)

        critical_values = []
        for spec in specs:
            be = self.find_break_even(base, spec.variable_name)
            if be is not None:
                critical_values.append(be.to_dict())

        tornado_dict = tornado.to_dict()
        risk = assess_risk(tornado)
        return {
            "tornado": tornado_dict,
            "two_way_table": two_way,
            "critical_values": critical_values,
            "risk_assessment": risk,
            "recommendations": sensitivity_recommendations(
                risk, tornado_dict["rows"], critical_values),
        }


def assess_risk(tornado: TornadoResult) -> Dict:
    """
    Overall sensitivity level from average elasticity and worst downside.

        Low     avg elasticity < 0.5 and max downside < 20%
        Medium  avg elasticity < 1.0 and max downside < 40%
        High    otherwise
    """
    if not tornado.rows:
        return {"overall_risk_level": "Low", "average_elasticity": 0.0,
                "max_downside_risk": 0.0, "high_sensitivity_variables": [],
                "critical_variables": [], "risk_factors": []}

    elasticities = [row.elasticity or 0.0 for row in tornado.rows]
    avg = float(np.mean(elasticities))
    max_down = max([0.0] + [row.downside_risk for row in tornado.rows
                            if row.downside_risk is not None])

    if avg < 0.5 and max_down < 20:
        level = "Low"
    elif avg < 1.0 and max_down < 40:
        level = "Medium"
    else:
        level = "High"

    high = [{"variable": r.variable, "elasticity": r.elasticity}
            for r in tornado.rows if (r.elasticity or 0.0) > 1.0]
    critical = [r.variable for r in tornado.rows
                if (r.elasticity or 0.0) > 1.5 or (r.downside_risk or 0.0) > 30]

    return {
        "overall_risk_level": level,
        "average_elasticity": avg,
        "max_downside_risk": max_down,
        "high_sensitivity_variables": high,
        "critical_variables": critical,
        "risk_factors": identify_risk_factors(critical),
    }
