"""
Exceptions and warnings raised by the simulation engine.

Validation problems are detected before the first trial and subclass
ValueError. Per-trial evaluator failures are recorded on the trial instead
of aborting the run; anything else is fatal.
"""


class ValidationError(ValueError):
    """Malformed request: settings, base scenario or sensitivity variables."""


class InvalidDistributionError(ValidationError):
    """Distribution parameters violate their invariants or the kind is unknown."""


class EvaluationError(ArithmeticError):
    """The financial evaluator cannot produce metrics for one scenario."""


class SimulationAbortedError(RuntimeError):
    """Fatal failure; the run is discarded and no partial result is returned."""


class DegradedRunWarning(UserWarning):
    """Too many trials were excluded for the statistics to be trusted."""
