"""
Input/Output Correlation Analyzer
==================================

Pearson correlation between every sampled input and every output metric,
computed over the trials where both values are valid:

    r = sum (x - x̄)(y - ȳ) / sqrt( sum (x - x̄)^2 * sum (y - ȳ)^2 )

The two-pass centred form avoids the cancellation of the raw-sum formula.
Results are clipped into [-1, 1]; a series with zero variance has no
defined correlation and yields None.
"""

import math
import numpy as np
import pandas as pd
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence

CAUSATION_NOTE = "Correlation is descriptive only and does not imply causation."


def impact_label(r: Optional[float]) -> str:
    if r is None:
        return "Undefined"
    if abs(r) > 0.7:
        return "High"
    if abs(r) > 0.4:
        return "Medium"
    return "Low"


def pearson(x: Sequence[Optional[float]], y: Sequence[Optional[float]]) -> Optional[float]:
    """Pearson r over pairs where both values are finite; None if undefined."""
    if len(x) != len(y):
        raise ValueError(f"series lengths differ: {len(x)} != {len(y)}")
    xa = np.array([np.nan if v is None else v for v in x], dtype=np.float64)
    ya = np.array([np.nan if v is None else v for v in y], dtype=np.float64)
    mask = np.isfinite(xa) & np.isfinite(ya)
    xa, ya = xa[mask], ya[mask]
    if xa.size < 2:
        return None

    dx = xa - xa.mean()
    dy = ya - ya.mean()
    sxx = float(np.dot(dx, dx))
    syy = float(np.dot(dy, dy))
    if sxx == 0 or syy == 0:
        return None
    r = float(np.dot(dx, dy)) / math.sqrt(sxx * syy)
    return max(-1.0, min(1.0, r))


@dataclass
class CorrelationMatrix:
    """``matrix[output][input] -> r`` plus the ranking for one target output."""
    matrix: Dict[str, Dict[str, Optional[float]]]
    target: str
    sensitivity_ranking: List[Dict] = field(default_factory=list)
    note: str = CAUSATION_NOTE

    def get(self, output: str, input_name: str) -> Optional[float]:
        return self.matrix.get(output, {}).get(input_name)

    def to_frame(self) -> pd.DataFrame:
        """Inputs as rows, outputs as columns; undefined cells are NaN."""
        frame = pd.DataFrame(self.matrix, dtype=float)
        return frame.reindex(sorted(frame.index))

    def to_dict(self) -> Dict:
        return {
            "matrix": {out: dict(row) for out, row in self.matrix.items()},
            "sensitivity_ranking": [dict(item) for item in self.sensitivity_ranking],
            "note": self.note,
        }


def sensitivity_ranking(row: Mapping[str, Optional[float]]) -> List[Dict]:
    """Rank inputs by |r| descending, name ascending; undefined last."""
    def key(item):
        name, r = item
        return (r is None, -abs(r) if r is not None else 0.0, name)

    return [
        {"variable": name, "correlation": r, "impact": impact_label(r)}
        for name, r in sorted(row.items(), key=key)
    ]


def correlate(sampled_inputs: Mapping[str, Sequence[Optional[float]]],
              output_metrics: Mapping[str, Sequence[Optional[float]]],
              target: str = "irr") -> CorrelationMatrix:
    """
    Correlate each sampled input with each output metric.

    Parameters
    ----------
    sampled_inputs : mapping of input name -> per-trial values
    output_metrics : mapping of metric name -> per-trial values (None = invalid)
    target         : output whose row drives ``sensitivity_ranking``
    """
    matrix = {
        output: {name: pearson(xs, ys) for name, xs in sorted(sampled_inputs.items())}
        for output, ys in output_metrics.items()
    }
    ranking = sensitivity_ranking(matrix[target]) if target in matrix else []
    return CorrelationMatrix(matrix=matrix, target=target, sensitivity_ranking=ranking)
