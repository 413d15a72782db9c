"""
Figures for simulation and sensitivity results.

Figures generated:
    01_<metric>_distribution.png  - outcome histogram with VaR / CVaR markers
    02_tornado_<metric>.png       - one-way sensitivity tornado
    03_two_way_<metric>.png       - two-way data table heatmap
"""
import os
import numpy as np
import matplotlib.pyplot as plt

from realestate_mc.analytics.risk import conditional_value_at_risk, value_at_risk
from realestate_mc.analytics.statistics import as_array
from realestate_mc.config import CONFIG

NAVY = "#1a1a2e"; TEAL = "#16697a"; CORAL = "#db6400"
GOLD = "#c5a880"

plt.rcParams.update({
    "figure.facecolor": "white", "axes.facecolor": "white",
    "axes.grid": True, "grid.alpha": 0.3, "grid.linestyle": "--",
    "savefig.facecolor": "white",
})


def _sv(fig, out_dir, name):
    out_dir = out_dir or os.path.join(CONFIG.output_dir, "figures")
    os.makedirs(out_dir, exist_ok=True)
    path = os.path.join(out_dir, name)
    fig.savefig(path, dpi=120, bbox_inches="tight")
    plt.close(fig)
    return path


def plot_outcome_distribution(values, metric, level=5, out_dir=None):
    """Histogram of one metric with the VaR_level / CVaR_level lines."""
    arr = as_array(values)
    if arr.size == 0:
        raise ValueError(f"no valid values to plot for '{metric}'")
    var = value_at_risk(arr, level)
    cvar = conditional_value_at_risk(arr, level)

    fig, ax = plt.subplots(figsize=(11, 6))
    ax.hist(arr, bins=CONFIG.risk.histogram_bins * 3, density=True, alpha=0.6,
            color=TEAL, edgecolor="white", label="Simulated")
    ax.axvline(var, color=CORAL, ls="--", lw=2.5, label=f"VaR {level}% = {var:,.2f}")
    ax.axvline(cvar, color=NAVY, ls="-", lw=2.5, label=f"CVaR {level}% = {cvar:,.2f}")
    ax.axvline(np.median(arr), color=GOLD, ls=":", lw=2,
               label=f"Median = {np.median(arr):,.2f}")
    ax.set_xlabel(metric.replace("_", " ").title())
    ax.set_ylabel("Density")
    ax.set_title(f"Simulated {metric.replace('_', ' ').title()} ({arr.size:,} trials)")
    ax.legend()
    return _sv(fig, out_dir, f"01_{metric}_distribution.png")


def plot_tornado(tornado, out_dir=None):
    """Horizontal bars from metric_at_low to metric_at_high around the base value."""
    rows = [r for r in tornado.rows if r.swing is not None]
    if not rows:
        raise ValueError("tornado has no variable with a defined swing")
    base = rows[0].metric_at_base
    if base is None:
        base = 0.5 * (rows[0].metric_at_low + rows[0].metric_at_high)

    fig, ax = plt.subplots(figsize=(12, 1.0 + 0.6 * len(rows) + 2))
    for i, r in enumerate(rows):
        ax.barh(i, r.metric_at_low - base, left=base, height=0.6,
                color=CORAL, alpha=0.75, edgecolor="none")
        ax.barh(i, r.metric_at_high - base, left=base, height=0.6,
                color=TEAL, alpha=0.75, edgecolor="none")
    ax.axvline(base, color=NAVY, lw=2, ls="--", label=f"Base: {base:,.2f}")
    ax.set_yticks(np.arange(len(rows)))
    ax.set_yticklabels([r.variable.replace("_", " ").title() for r in rows], fontsize=9)
    ax.set_xlabel(tornado.target_metric.replace("_", " ").title())
    ax.set_title("Tornado Chart - One-Way Sensitivity", fontweight="bold")
    ax.legend(loc="lower right")
    ax.invert_yaxis()
    fig.tight_layout()
    return _sv(fig, out_dir, f"02_tornado_{tornado.target_metric}.png")


def plot_two_way_heatmap(table, metric, out_dir=None):
    """Heatmap of a two-way table (DataFrame, var1 rows x var2 columns)."""
    fig, ax = plt.subplots(figsize=(10, 7))
    im = ax.imshow(np.ma.masked_invalid(table.values), cmap="RdYlGn", aspect="auto")
    ax.set_xticks(np.arange(table.shape[1]))
    ax.set_xticklabels([f"{float(c):+g}" for c in table.columns])
    ax.set_yticks(np.arange(table.shape[0]))
    ax.set_yticklabels([f"{float(c):+g}" for c in table.index])
    ax.set_xlabel(str(table.columns.name))
    ax.set_ylabel(str(table.index.name))
    for i in range(table.shape[0]):
        for j in range(table.shape[1]):
            val = table.values[i, j]
            if np.isfinite(val):
                ax.text(j, i, f"{val:.1f}", ha="center", va="center", fontsize=8)
    fig.colorbar(im, ax=ax, label=metric)
    ax.set_title(f"Two-Way Sensitivity: {metric}", fontweight="bold")
    ax.grid(False)
    return _sv(fig, out_dir, f"03_two_way_{metric}.png")
