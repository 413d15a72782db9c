"""
Scenario Generator
===================

Builds one complete investment scenario per trial: the fixed base inputs
overridden by one draw per uncertain variable.

Reproducibility: variables are always sampled in sorted-name order, and each
block of trials draws from its own child stream of a numpy SeedSequence

    SeedSequence(seed).spawn(n_chunks)[k]  ->  trials [k*chunk, (k+1)*chunk)

so a block's draws depend only on the top-level seed and the block size,
never on which worker ran it.
"""

import numpy as np
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple

from realestate_mc.config import CONFIG
from realestate_mc.exceptions import SimulationAbortedError, ValidationError
from realestate_mc.models.distributions import DistributionSpec, distributions_from_dict
from realestate_mc.utils import is_number


@dataclass(frozen=True)
class SimulationSettings:
    """
    Attributes:
        num_simulations: Number of trials (> 0)
        random_seed: Non-negative seed; None draws one from OS entropy
        confidence_levels: VaR levels in percent
        risk_free_rate: Sharpe hurdle, in the units of the Sharpe metric
    """
    num_simulations: int = CONFIG.engine.default_num_simulations
    random_seed: Optional[int] = None
    confidence_levels: Tuple[float, ...] = tuple(CONFIG.risk.confidence_levels)
    risk_free_rate: float = CONFIG.risk.risk_free_rate

    def __post_init__(self):
        n = self.num_simulations
        if isinstance(n, bool) or not isinstance(n, (int, np.integer)):
            raise ValidationError(f"num_simulations must be an integer, got {n!r}")
        if n <= 0:
            raise ValidationError(f"num_simulations must be positive, got {n}")
        if n > CONFIG.engine.max_num_simulations:
            raise ValidationError(
                f"num_simulations {n} exceeds the limit of "
                f"{CONFIG.engine.max_num_simulations}")
        seed = self.random_seed
        if seed is not None:
            if isinstance(seed, bool) or not isinstance(seed, (int, np.integer)):
                raise ValidationError(f"random_seed must be an integer, got {seed!r}")
            if seed < 0:
                raise ValidationError(f"random_seed must be non-negative, got {seed}")
        levels = tuple(self.confidence_levels)
        for level in levels:
            if not is_number(level) or not 0 < level < 100:
                raise ValidationError(
                    f"confidence levels must lie strictly between 0 and 100, got {level!r}")
        object.__setattr__(self, "confidence_levels", levels)
        if not is_number(self.risk_free_rate):
            raise ValidationError(
                f"risk_free_rate must be a finite number, got {self.risk_free_rate!r}")

    @classmethod
    def from_dict(cls, data: Optional[Mapping]) -> "SimulationSettings":
        data = dict(data or {})
        kwargs = {}
        if data.get("num_simulations") is not None:
            n = data["num_simulations"]
            # JSON numbers arrive as floats; accept integral ones
            if isinstance(n, float) and n.is_integer():
                n = int(n)
            kwargs["num_simulations"] = n
        if data.get("random_seed") is not None:
            seed = data["random_seed"]
            if isinstance(seed, float) and seed.is_integer():
                seed = int(seed)
            kwargs["random_seed"] = seed
        if data.get("confidence_levels") is not None:
            kwargs["confidence_levels"] = tuple(data["confidence_levels"])
        if data.get("risk_free_rate") is not None:
            kwargs["risk_free_rate"] = data["risk_free_rate"]
        return cls(**kwargs)


@dataclass(frozen=True)
class Trial:
    """One sampled scenario and the metrics the evaluator produced for it."""
    index: int
    scenario: Mapping[str, float]
    inputs: Mapping[str, float]
    metrics: Mapping[str, float] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None


def validate_base_scenario(base: Mapping) -> Dict[str, float]:
    """Check that every base value is numeric and return a float copy."""
    if not isinstance(base, Mapping):
        raise ValidationError("investment_parameters must be a mapping")
    clean = {}
    for name, value in base.items():
        if not is_number(value):
            raise ValidationError(
                f"base scenario field '{name}' must be a finite number, got {value!r}")
        clean[str(name)] = float(value)
    return clean


class ScenarioGenerator:
    """
    Overlay random draws on a fixed base scenario.

    Usage:
        >>> gen = ScenarioGenerator(base, {"rental_income": NormalDistribution(2500, 200)})
        >>> scenario, inputs = gen.generate(np.random.default_rng(42))
    """

    def __init__(self, base: Mapping[str, float],
                 distributions: Mapping[str, DistributionSpec]):
        self.base = validate_base_scenario(base)
        self.distributions = distributions_from_dict(distributions)
        self.variables: List[str] = sorted(self.distributions)

    def generate(self, rng: np.random.Generator) -> Tuple[Dict[str, float], Dict[str, float]]:
        """Return (full scenario, sampled inputs only)."""
        scenario = dict(self.base)
        inputs = {}
        for name in self.variables:
            value = float(self.distributions[name].sample(rng))
            scenario[name] = value
            inputs[name] = value
        return scenario, inputs


def resolve_seed(random_seed: Optional[int]) -> Tuple[int, bool]:
    """Return (seed, was_generated); a missing seed is drawn from OS entropy."""
    if random_seed is not None:
        return int(random_seed), False
    try:
        entropy = np.random.SeedSequence().entropy
    except Exception as exc:
        raise SimulationAbortedError("could not initialise the random generator") from exc
    return int(entropy), True


def chunk_plan(num_simulations: int, chunk_size: int) -> List[Tuple[int, int]]:
    """Split trial indices into contiguous [start, stop) blocks."""
    if chunk_size <= 0:
        raise ValidationError(f"chunk_size must be positive, got {chunk_size}")
    return [(start, min(start + chunk_size, num_simulations))
            for start in range(0, num_simulations, chunk_size)]


def chunk_generators(seed: int, n_chunks: int) -> List[np.random.Generator]:
    """One independent generator per block of trials."""
    try:
        children = np.random.SeedSequence(seed).spawn(n_chunks)
        return [np.random.default_rng(child) for child in children]
    except Exception as exc:
        raise SimulationAbortedError("could not initialise the random generator") from exc
