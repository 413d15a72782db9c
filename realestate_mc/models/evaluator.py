"""
Rental Property Financial Evaluator
=====================================

Deterministic, side-effect-free evaluation of one leveraged buy-and-hold
rental scenario. This is the collaborator both the Monte Carlo and the
sensitivity paths call; any object exposing ``evaluate(scenario) -> dict``
can be used in its place.

    Effective income  = 12 * rent * (1 - vacancy)
    NOI               = effective income - operating expenses
    Annual cash flow  = NOI - 12 * mortgage payment
    Exit value        = min(P * (1 + g)^H, NOI / exit_cap)   (cap optional)
    IRR               : sum_t CF_t / (1 + IRR)^t = 0   (Brent's method)

Percent inputs (vacancy, rates, appreciation, caps) are in percent units,
rent is monthly and expenses are annual.
"""

import math
import numpy as np
from scipy.optimize import brentq
from typing import Dict, Mapping

from realestate_mc.exceptions import EvaluationError


DEFAULTS = {
    "down_payment_percent": 20.0,
    "closing_costs": 0.0,
    "holding_period_years": 5.0,
    "loan_interest_rate": 7.0,
    "loan_term_years": 30.0,
    "rental_income": 0.0,
    "vacancy_rate": 5.0,
    "operating_expenses": 0.0,
    "appreciation_rate": 3.0,
    "exit_cap_rate": 0.0,
}


class FinancialEvaluator:
    """Interface: turn one concrete scenario into output metrics."""

    def evaluate(self, scenario: Mapping[str, float]) -> Dict[str, float]:
        raise NotImplementedError


def monthly_payment(principal: float, monthly_rate: float, n_payments: int) -> float:
    """Level annuity payment; straight-line principal when the rate is zero."""
    if principal <= 0 or n_payments <= 0:
        return 0.0
    if monthly_rate == 0:
        return principal / n_payments
    growth = (1.0 + monthly_rate) ** n_payments
    return principal * monthly_rate * growth / (growth - 1.0)


def remaining_balance(principal: float, monthly_rate: float,
                      n_payments: int, payments_made: int) -> float:
    """Outstanding loan balance after ``payments_made`` level payments."""
    if principal <= 0:
        return 0.0
    if payments_made >= n_payments:
        return 0.0
    if monthly_rate == 0:
        return principal * (1.0 - payments_made / n_payments)
    pmt = monthly_payment(principal, monthly_rate, n_payments)
    growth = (1.0 + monthly_rate) ** payments_made
    return max(0.0, principal * growth - pmt * (growth - 1.0) / monthly_rate)


def compute_irr(cashflows, lower: float = -0.99, upper: float = 10.0) -> float:
    """
    Internal Rate of Return via Brent's method.

    Returns np.nan when NPV does not change sign on [lower, upper].
    """
    cf = np.asarray(cashflows, dtype=float)
    periods = np.arange(len(cf))

    def npv_func(r):
        return np.sum(cf / (1.0 + r) ** periods)

    try:
        return brentq(npv_func, lower, upper, maxiter=1000)
    except (ValueError, RuntimeError):
        return np.nan


def compute_npv(cashflows, rate: float) -> float:
    cf = np.asarray(cashflows, dtype=float)
    return float(np.sum(cf / (1.0 + rate) ** np.arange(len(cf))))


class RentalPropertyEvaluator(FinancialEvaluator):
    """
    Reference evaluator for a financed rental held for a fixed period.

    Parameters
    ----------
    discount_rate : float
        Percent rate used for NPV.

    Usage:
        >>> ev = RentalPropertyEvaluator()
        >>> ev.evaluate({"purchase_price": 300_000, "rental_income": 2500,
        ...              "operating_expenses": 9000})["monthly_cash_flow"]
    """

    def __init__(self, discount_rate: float = 10.0):
        self.discount_rate = discount_rate

    def evaluate(self, scenario: Mapping[str, float]) -> Dict[str, float]:
        if "purchase_price" not in scenario:
            raise EvaluationError("scenario is missing 'purchase_price'")
        p = {**DEFAULTS, **scenario}

        price = float(p["purchase_price"])
        holding = int(round(p["holding_period_years"]))
        if price <= 0:
            raise EvaluationError(f"purchase_price must be positive, got {price}")
        if holding < 1:
            raise EvaluationError(f"holding period must be at least one year, got {holding}")

        down_payment = price * p["down_payment_percent"] / 100.0
        cash_invested = down_payment + p["closing_costs"]
        if cash_invested <= 0:
            raise EvaluationError("total cash invested must be positive")
        loan = max(0.0, price - down_payment)

        r_m = p["loan_interest_rate"] / 100.0 / 12.0
        n_payments = int(round(p["loan_term_years"] * 12))
        pmt = monthly_payment(loan, r_m, n_payments)
        debt_service = pmt * 12.0

        effective_income = p["rental_income"] * 12.0 * (1.0 - p["vacancy_rate"] / 100.0)
        noi = effective_income - p["operating_expenses"]
        annual_cf = noi - debt_service

        future_value = price * (1.0 + p["appreciation_rate"] / 100.0) ** holding
        exit_value = future_value
        if p["exit_cap_rate"] > 0:
            # conservative: the lower of appreciation and income approaches
            exit_value = min(future_value, noi / (p["exit_cap_rate"] / 100.0))

        balance = remaining_balance(loan, r_m, n_payments, holding * 12)
        sale_proceeds = exit_value - balance

        cashflows = [-cash_invested] + [annual_cf] * holding
        cashflows[-1] += sale_proceeds

        total_profit = annual_cf * holding + sale_proceeds - cash_invested
        irr = compute_irr(cashflows)

        metrics = {
            "irr": irr * 100.0 if not math.isnan(irr) else np.nan,
            "npv": compute_npv(cashflows, self.discount_rate / 100.0),
            "total_return": total_profit / cash_invested * 100.0,
            "cash_on_cash_return": annual_cf / cash_invested * 100.0,
            "equity_multiple": (total_profit + cash_invested) / cash_invested,
            "monthly_cash_flow": annual_cf / 12.0,
            "annual_cash_flow": annual_cf,
            "net_operating_income": noi,
            "cap_rate": noi / price * 100.0,
            "total_profit": total_profit,
            "exit_value": exit_value,
        }
        if debt_service > 0:
            metrics["dscr"] = noi / debt_service
        return metrics
