"""
config.py
---------
Centralised configuration for the simulation engine.
Defaults are read from environment variables so the same code runs with
small trial counts in CI and large ones in batch jobs.
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional, Tuple


@dataclass
class EngineConfig:
    """Trial execution parameters."""
    default_num_simulations: int = int(os.getenv("REMC_NUM_SIMULATIONS", "10000"))
    max_num_simulations:     int = int(os.getenv("REMC_MAX_SIMULATIONS", "1000000"))
    chunk_size:              int = int(os.getenv("REMC_CHUNK_SIZE", "1000"))
    n_workers:               int = int(os.getenv("REMC_WORKERS", "1"))
    parallel_backend:        str = os.getenv("REMC_BACKEND", "loky")   # loky | threading
    # share of trials allowed to fail before the run is flagged as degraded
    max_failure_fraction:  float = float(os.getenv("REMC_MAX_FAILURE_FRACTION", "0.10"))


@dataclass
class RiskConfig:
    """Risk metric and reporting parameters."""
    confidence_levels: List[float] = field(default_factory=lambda: [
        5, 10, 25, 50, 75, 90, 95,
    ])
    interval_levels:   List[float] = field(default_factory=lambda: [50, 80, 90, 95])
    percentiles:       List[float] = field(default_factory=lambda: [
        1, 5, 10, 25, 50, 75, 90, 95, 99,
    ])
    histogram_bins:    int   = 20
    risk_free_rate:    float = float(os.getenv("REMC_RISK_FREE_RATE", "0.0"))
    sharpe_metric:     str   = "total_return"
    scenario_rank_metric: str = "irr"
    correlation_target:   str = "irr"


@dataclass
class TargetConfig:
    """Thresholds used by the probability analysis."""
    minimum_irr:       float = 10.0     # percent
    minimum_cash_flow: float = 0.0      # monthly
    maximum_loss:      float = 0.0


@dataclass
class SensitivityConfig:
    """One-way sensitivity sweep defaults."""
    variations: List[float] = field(default_factory=lambda: [-20, -10, 0, 10, 20])
    target_metric:   str   = "irr"
    # recorded at every sweep step; the target metric is always included
    analysis_metrics: List[str] = field(
        default_factory=lambda: ["irr", "cash_on_cash_return", "total_return"])
    discount_rate:   float = 10.0       # percent, for NPV
    break_even_bounds: Tuple[float, float] = (-90.0, 200.0)


@dataclass
class LoggingConfig:
    level:   str           = os.getenv("LOG_LEVEL", "INFO")
    log_dir: Optional[str] = os.getenv("REMC_LOG_DIR") or None


@dataclass
class AppConfig:
    """Master configuration aggregating all sub-configs."""
    engine:      EngineConfig      = field(default_factory=EngineConfig)
    risk:        RiskConfig        = field(default_factory=RiskConfig)
    targets:     TargetConfig      = field(default_factory=TargetConfig)
    sensitivity: SensitivityConfig = field(default_factory=SensitivityConfig)
    logging:     LoggingConfig     = field(default_factory=LoggingConfig)

    output_dir: str = os.getenv(
        "REMC_OUTPUT_DIR", os.path.join(os.path.dirname(__file__), "..", "outputs"))


# Singleton instance used throughout the project
CONFIG = AppConfig()
