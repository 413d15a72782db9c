"""
Real Estate Monte Carlo & Sensitivity Engine - Demo Analysis
"""

import sys, os
sys.path.insert(0, os.path.dirname(__file__))

from realestate_mc.analytics.sensitivity import SensitivityEngine, SensitivityVariable
from realestate_mc.models.evaluator import RentalPropertyEvaluator
from realestate_mc.simulation import MonteCarloSimulator
from realestate_mc.utils import format_currency
from realestate_mc.visualization.risk_plots import (
    plot_outcome_distribution, plot_tornado, plot_two_way_heatmap)


BASE = {
    "purchase_price": 300_000,
    "down_payment_percent": 25,
    "closing_costs": 6_000,
    "loan_interest_rate": 6.5,
    "loan_term_years": 30,
    "holding_period_years": 7,
    "rental_income": 2_600,
    "vacancy_rate": 5,
    "operating_expenses": 9_500,
    "appreciation_rate": 3,
}

REQUEST = {
    "investment_parameters": BASE,
    "variable_distributions": {
        "rental_income": {"type": "normal", "mean": 2_600, "std_dev": 200},
        "vacancy_rate": {"type": "triangular", "min": 2, "mode": 5, "max": 12},
        "operating_expenses": {"type": "uniform", "min": 8_000, "max": 11_500},
        "appreciation_rate": {"type": "normal", "mean": 3, "std_dev": 1.5},
    },
    "simulation_settings": {"num_simulations": 10_000, "random_seed": 42},
    "target_metrics": {"minimum_irr": 10, "minimum_cash_flow": 0},
}


def header(t):
    print(f"\n{'='*70}\n  {t}\n{'='*70}")


def main():
    header("REAL ESTATE MONTE CARLO & SENSITIVITY ENGINE")
    evaluator = RentalPropertyEvaluator(discount_rate=10)
    base = evaluator.evaluate(BASE)
    print(f"\n  Purchase price:     {format_currency(BASE['purchase_price'])}")
    print(f"  Base IRR:           {base['irr']:.2f}%")
    print(f"  Base cash flow/mo:  {format_currency(base['monthly_cash_flow'])}")
    print(f"  Base NPV @10%:      {format_currency(base['npv'])}")

    # --- Monte Carlo ---
    header("1. MONTE CARLO SIMULATION")
    sim = MonteCarloSimulator(evaluator)
    result = sim.run(REQUEST)
    meta = result.simulation_metadata
    print(f"\n  Trials:   {meta['num_simulations']:,}  (seed {meta['random_seed']}, "
          f"{meta['excluded_trials']} excluded)")

    print(f"\n  {'Metric':22s} {'Mean':>12s} {'Std':>12s} {'P5':>12s} {'P95':>12s}")
    for metric in ["irr", "total_return", "monthly_cash_flow", "npv", "equity_multiple"]:
        s = result.summary_statistics[metric]
        p = result.distributions[metric]["percentiles"]
        print(f"  {metric:22s} {s['mean']:>12,.2f} {s['std_dev']:>12,.2f} "
              f"{p['p5']:>12,.2f} {p['p95']:>12,.2f}")

    irr_risk = result.risk_metrics["irr"]
    print(f"\n  IRR VaR 5%:         {irr_risk['value_at_risk']['var_5']:.2f}%")
    print(f"  IRR CVaR 5%:        {irr_risk['cvar']['cvar_5']:.2f}%")
    sharpe = result.risk_metrics["sharpe_ratio"]
    print(f"  Sharpe ({result.risk_metrics['sharpe_metric']}): "
          f"{'undefined' if sharpe is None else f'{sharpe:.3f}'}")

    print("\n  Event probabilities:")
    for event, p in result.probability_analysis.items():
        print(f"    {event:22s}: {p:.1%}")

    print("\n  IRR drivers (correlation):")
    for item in result.correlations.sensitivity_ranking:
        r = item["correlation"]
        print(f"    {item['variable']:22s}: "
              f"{'n/a' if r is None else f'{r:+.3f}'}  ({item['impact']})")
    print(f"  {result.correlations.note}")

    print("\n  Recommendations:")
    for rec in result.recommendations:
        print(f"    [{rec['priority']:6s}] {rec['type']}: {rec['message']}")

    plot_outcome_distribution(result.metric_values("irr"), "irr")

    # --- Sensitivity ---
    header("2. TORNADO SENSITIVITY")
    engine = SensitivityEngine(evaluator)
    variables = [
        SensitivityVariable.symmetric("rental_income"),
        SensitivityVariable.symmetric("purchase_price"),
        SensitivityVariable.symmetric("operating_expenses"),
        SensitivityVariable.symmetric("loan_interest_rate"),
        SensitivityVariable("vacancy_rate", (-3, 0, 3, 6), mode="absolute"),
    ]
    report = engine.report(BASE, variables, "irr")
    tornado = engine.analyze(BASE, variables, "irr")
    print()
    print(tornado.to_frame().round(3).to_string(index=False))

    risk = report["risk_assessment"]
    print(f"\n  Overall sensitivity:  {risk['overall_risk_level']}")
    print(f"  Critical variables:   {', '.join(risk['critical_variables']) or 'none'}")
    for factor in risk["risk_factors"]:
        print(f"    {factor['factor']:20s}: {factor['mitigation']}")

    print("\n  Break-even (NPV = 0):")
    for cv in report["critical_values"]:
        print(f"    {cv['variable']:22s}: {cv['break_even_change_percent']:+.1f}% "
              f"(margin of safety {cv['margin_of_safety']:.1f}%)")

    plot_tornado(tornado)
    if report["two_way_table"] is not None:
        plot_two_way_heatmap(report["two_way_table"], "irr")

    header("ANALYSIS COMPLETE")


if __name__ == "__main__":
    main()
