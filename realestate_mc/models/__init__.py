"""
Scenario Models
===============
Input distributions, scenario generation and the reference evaluator.
"""

from realestate_mc.models.distributions import (
    NormalDistribution, UniformDistribution, TriangularDistribution,
    distribution_from_dict, sample,
)
from realestate_mc.models.scenario import ScenarioGenerator, SimulationSettings, Trial
from realestate_mc.models.evaluator import FinancialEvaluator, RentalPropertyEvaluator

__all__ = [
    "NormalDistribution", "UniformDistribution", "TriangularDistribution",
    "distribution_from_dict", "sample",
    "ScenarioGenerator", "SimulationSettings", "Trial",
    "FinancialEvaluator", "RentalPropertyEvaluator",
]
