"""
Rule-based commentary on a Monte Carlo run.

Each rule reads the already computed statistics, risk metrics and event
probabilities and emits ``{type, priority, message, action}``. A rule whose
inputs are missing (metric not produced, undefined statistic) is skipped.
"""

from typing import Dict, List, Mapping, Optional


def _get(mapping: Optional[Mapping], *keys):
    for key in keys:
        if not isinstance(mapping, Mapping) or mapping.get(key) is None:
            return None
        mapping = mapping[key]
    return mapping


def _item(type_: str, priority: str, message: str, action: str) -> Dict[str, str]:
    return {"type": type_, "priority": priority, "message": message, "action": action}


def generate_recommendations(statistics: Mapping, risk_metrics: Mapping,
                             probabilities: Mapping) -> List[Dict[str, str]]:
    """
    Parameters
    ----------
    statistics    : ``summary_statistics`` block, keyed by metric
    risk_metrics  : ``risk_metrics`` block, keyed by metric
    probabilities : ``probability_analysis`` block, fractions in [0, 1]
    """
    recs = []

    irr_mean = _get(statistics, "irr", "mean")
    if irr_mean is not None:
        if irr_mean > 15:
            recs.append(_item(
                "Performance", "High",
                f"Strong expected IRR of {irr_mean:.1f}%",
                "Investment shows attractive returns across scenarios"))
        elif irr_mean < 8:
            recs.append(_item(
                "Performance", "High",
                f"Low expected IRR of {irr_mean:.1f}%",
                "Consider alternative investments or improve deal terms"))

    p_loss = _get(risk_metrics, "irr", "probability_of_loss")
    if p_loss is not None and p_loss > 0.20:
        recs.append(_item(
            "Risk", "High",
            f"{p_loss:.1%} chance of negative returns",
            "High risk investment - ensure adequate risk tolerance"))

    p_cf = _get(probabilities, "positive_cash_flow")
    if p_cf is not None and p_cf < 0.80:
        recs.append(_item(
            "Cash Flow", "Medium",
            f"Only {p_cf:.1%} chance of positive cash flow",
            "Prepare for potential negative cash flow periods"))

    irr_std = _get(statistics, "irr", "std_dev")
    if irr_mean and irr_std is not None and irr_std / abs(irr_mean) > 0.5:
        recs.append(_item(
            "Volatility", "Medium",
            "High return volatility across scenarios",
            "Consider strategies to reduce uncertainty in key variables"))

    var_10 = _get(risk_metrics, "irr", "value_at_risk", "var_10")
    if var_10 is not None and var_10 < 0:
        recs.append(_item(
            "Downside Risk", "High",
            f"10% chance of IRR below {var_10:.1f}%",
            "Implement downside protection strategies"))

    p_double = _get(probabilities, "double_money")
    if p_double is not None and p_double > 0.50:
        recs.append(_item(
            "Upside Potential", "Low",
            f"{p_double:.1%} chance of doubling investment",
            "Strong upside potential in favorable scenarios"))

    return recs


def sensitivity_recommendations(risk_assessment: Mapping, tornado_rows: List[Mapping],
                                critical_values: List[Mapping]) -> List[Dict[str, str]]:
    """Commentary on a one-way sensitivity report."""
    recs = []

    if risk_assessment.get("overall_risk_level") == "High":
        recs.append(_item(
            "Risk Management", "High",
            "High sensitivity to multiple variables",
            "Implement hedging strategies and maintain larger reserves"))

    margins = {cv["variable"]: cv["margin_of_safety"] for cv in critical_values}
    for name in risk_assessment.get("critical_variables", []):
        margin = margins.get(name)
        if margin is not None and margin < 20:
            recs.append(_item(
                "Critical Risk", "High",
                f"Low margin of safety for {name} ({margin:.1f}%)",
                f"Monitor {name} closely and develop contingency plans"))

    if risk_assessment.get("average_elasticity", 0.0) > 1.5:
        recs.append(_item(
            "Volatility", "Medium",
            "High overall sensitivity to input changes",
            "Consider more stable investment alternatives or risk reduction strategies"))

    if tornado_rows:
        top = tornado_rows[0]["variable"]
        recs.append(_item(
            "Focus Area", "High",
            f"{top} has the highest impact on returns",
            f"Prioritize managing {top} risk through contracts or hedging"))

    stable = [r["variable"] for r in tornado_rows
              if r.get("elasticity") is not None and r["elasticity"] < 0.5]
    if stable:
        recs.append(_item(
            "Strength", "Low",
            f"Low sensitivity to {', '.join(stable)}",
            "These factors provide stability to the investment"))

    return recs
