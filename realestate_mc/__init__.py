"""
Real Estate Monte Carlo & Sensitivity Engine
============================================
Samples uncertain property inputs, evaluates each scenario with a
deterministic financial evaluator and reports outcome distributions,
VaR/CVaR, Sharpe, event probabilities, correlations and tornado rankings.
"""

from realestate_mc.models import (
    NormalDistribution, UniformDistribution, TriangularDistribution,
    RentalPropertyEvaluator, SimulationSettings,
)
from realestate_mc.analytics import SensitivityEngine, SensitivityVariable
from realestate_mc.simulation import MonteCarloSimulator, MonteCarloResult, SimulationRequest
from realestate_mc.exceptions import (
    ValidationError, InvalidDistributionError, EvaluationError,
    SimulationAbortedError, DegradedRunWarning,
)

__version__ = "1.0.0"

__all__ = [
    "NormalDistribution",
    "UniformDistribution",
    "TriangularDistribution",
    "RentalPropertyEvaluator",
    "SimulationSettings",
    "SensitivityEngine",
    "SensitivityVariable",
    "MonteCarloSimulator",
    "MonteCarloResult",
    "SimulationRequest",
    "ValidationError",
    "InvalidDistributionError",
    "EvaluationError",
    "SimulationAbortedError",
    "DegradedRunWarning",
]
