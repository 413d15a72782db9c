"""
Input Distributions and Sampler
================================

Tagged distribution types for uncertain scenario inputs and the sampler that
draws one value from them.

    Normal      : Box-Muller on two uniforms
                  z = sqrt(-2 ln u1) * cos(2 pi u2),  x = mu + sigma * z
    Uniform     : x = a + (b - a) * u
    Triangular  : inverse CDF with F(c) = (c - a) / (b - a)
                  u <  F(c):  x = a + sqrt(u (b - a)(c - a))
                  u >= F(c):  x = b - sqrt((1 - u)(b - a)(b - c))

Every sampler consumes a fixed number of uniforms from the generator it is
given (two for Normal, one otherwise) so the stream position never depends
on parameter values.

References:
    Box, G.E.P. & Muller, M.E. (1958). A Note on the Generation of Random
        Normal Deviates. Annals of Mathematical Statistics, 29(2), 610-611.
    Kotz, S. & van Dorp, J.R. (2004). Beyond Beta. World Scientific. Ch. 1.
"""

import math
import numpy as np
from dataclasses import dataclass
from typing import Dict, Mapping, Union

from realestate_mc.exceptions import InvalidDistributionError
from realestate_mc.utils import is_number


def _check_numbers(kind: str, **params) -> None:
    for name, value in params.items():
        if not is_number(value):
            raise InvalidDistributionError(
                f"{kind}: parameter '{name}' must be a finite number, got {value!r}")


@dataclass(frozen=True)
class NormalDistribution:
    """Normal(mean, std_dev) with std_dev >= 0."""
    mean: float
    std_dev: float

    kind = "normal"

    def __post_init__(self):
        _check_numbers(self.kind, mean=self.mean, std_dev=self.std_dev)
        if self.std_dev < 0:
            raise InvalidDistributionError(
                f"normal: std_dev must be non-negative, got {self.std_dev}")

    @property
    def expected_value(self) -> float:
        return float(self.mean)

    def sample(self, rng: np.random.Generator) -> float:
        u1 = 1.0 - rng.random()          # (0, 1], keeps log finite
        u2 = rng.random()
        if self.std_dev == 0:
            return float(self.mean)
        z = math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)
        return self.mean + self.std_dev * z


@dataclass(frozen=True)
class UniformDistribution:
    """Uniform(min, max) with min <= max."""
    min: float
    max: float

    kind = "uniform"

    def __post_init__(self):
        _check_numbers(self.kind, min=self.min, max=self.max)
        if self.min > self.max:
            raise InvalidDistributionError(
                f"uniform: min ({self.min}) must not exceed max ({self.max})")

    @property
    def expected_value(self) -> float:
        return 0.5 * (self.min + self.max)

    def sample(self, rng: np.random.Generator) -> float:
        u = rng.random()
        if self.min == self.max:
            return float(self.min)
        return self.min + (self.max - self.min) * u


@dataclass(frozen=True)
class TriangularDistribution:
    """Triangular(min, mode, max) with min <= mode <= max."""
    min: float
    mode: float
    max: float

    kind = "triangular"

    def __post_init__(self):
        _check_numbers(self.kind, min=self.min, mode=self.mode, max=self.max)
        if not (self.min <= self.mode <= self.max):
            raise InvalidDistributionError(
                f"triangular: requires min <= mode <= max, got "
                f"({self.min}, {self.mode}, {self.max})")

    @property
    def expected_value(self) -> float:
        return (self.min + self.mode + self.max) / 3.0

    def sample(self, rng: np.random.Generator) -> float:
        u = rng.random()
        a, c, b = self.min, self.mode, self.max
        if a == b:
            return float(a)
        width = b - a
        if u < (c - a) / width:
            return a + math.sqrt(u * width * (c - a))
        return b - math.sqrt((1.0 - u) * width * (b - c))


DistributionSpec = Union[NormalDistribution, UniformDistribution, TriangularDistribution]

DISTRIBUTION_KINDS = {
    "normal": NormalDistribution,
    "uniform": UniformDistribution,
    "triangular": TriangularDistribution,
}


def sample(spec: DistributionSpec, rng: np.random.Generator) -> float:
    """Draw one value from ``spec`` using ``rng``."""
    return spec.sample(rng)


def distribution_from_dict(data: Mapping) -> DistributionSpec:
    """
    Build a validated distribution from the loose request form.

    Accepts ``{"type": "normal", "mean": 2500, "std_dev": 200}`` (``kind`` is
    an alias of ``type``). Parameters left out fall back to values derived
    from ``mean``:

        normal      std_dev = 0.1 * |mean|
        uniform     min = mean - 0.2 * |mean|, max = mean + 0.2 * |mean|
        triangular  same bounds as uniform, mode = mean
    """
    if isinstance(data, tuple(DISTRIBUTION_KINDS.values())):
        return data
    if not isinstance(data, Mapping):
        raise InvalidDistributionError(
            f"distribution must be a mapping, got {type(data).__name__}")

    kind = data.get("type", data.get("kind", "normal"))
    if not isinstance(kind, str) or kind.lower() not in DISTRIBUTION_KINDS:
        raise InvalidDistributionError(
            f"unknown distribution kind {kind!r}; expected one of "
            f"{sorted(DISTRIBUTION_KINDS)}")
    kind = kind.lower()

    mean = data.get("mean")

    def _param(name, derived):
        value = data.get(name)
        if value is not None:
            return value
        if mean is None:
            raise InvalidDistributionError(
                f"{kind}: '{name}' is required when 'mean' is not given")
        _check_numbers(kind, mean=mean)
        return derived(mean)

    if kind == "normal":
        return NormalDistribution(
            mean=_param("mean", lambda m: m),
            std_dev=_param("std_dev", lambda m: abs(m) * 0.1),
        )
    if kind == "uniform":
        return UniformDistribution(
            min=_param("min", lambda m: m - 0.2 * abs(m)),
            max=_param("max", lambda m: m + 0.2 * abs(m)),
        )
    return TriangularDistribution(
        min=_param("min", lambda m: m - 0.2 * abs(m)),
        mode=_param("mode", lambda m: m),
        max=_param("max", lambda m: m + 0.2 * abs(m)),
    )


def distributions_from_dict(data: Mapping) -> Dict[str, DistributionSpec]:
    """Parse a ``{variable: distribution}`` mapping."""
    if not isinstance(data, Mapping):
        raise InvalidDistributionError("variable_distributions must be a mapping")
    parsed = {}
    for name, spec in data.items():
        try:
            parsed[str(name)] = distribution_from_dict(spec)
        except InvalidDistributionError as exc:
            raise InvalidDistributionError(f"variable '{name}': {exc}") from exc
    return parsed
