"""
IRR and NPV Calculations

Implements IRR using Newton-Raphson with a forward finite-difference
derivative. Cash flows are per period; the initial investment sits at
period 0 and is passed separately (negative = outflow).

A search that fails is reported in the result, not raised, so batch callers
can keep going.
"""

import logging
from typing import Any, Iterable, Optional

import numpy as np

from immocalc.calculations.validation import coerce_number, coerce_positive_int
from immocalc.config import EngineSettings, get_settings
from immocalc.errors import ComputationDegenerate, InvalidInput
from immocalc.models import IRRResult

logger = logging.getLogger(__name__)


def _as_array(cash_flows: Iterable[Any]) -> np.ndarray:
    if cash_flows is None:
        cash_flows = []
    return np.array(
        [coerce_number(cf, f"cash_flows[{i}]") for i, cf in enumerate(cash_flows)],
        dtype=float,
    )


def _npv(rate: float, flows: np.ndarray, initial_investment: float) -> float:
    periods = np.arange(1, flows.size + 1)
    return float(initial_investment + np.sum(flows / (1 + rate) ** periods))


def _positive(value: Any, field: str) -> float:
    number = coerce_number(value, field)
    if number <= 0:
        raise InvalidInput(f"{field} must be > 0, got {number}", field=field)
    return number


def calculate_npv(
    discount_rate: float, cash_flows: Iterable[Any], initial_investment: Any = 0.0
) -> float:
    """
    Calculate NPV (Net Present Value) of cash flows.

    Args:
        discount_rate: Per-period discount rate as decimal (e.g., 0.10 for 10%)
        cash_flows: Cash flows for periods 1..n
        initial_investment: Period-0 amount (negative = outflow)

    Returns:
        NPV value
    """
    discount_rate = coerce_number(discount_rate, "discount_rate")
    return _npv(
        discount_rate,
        _as_array(cash_flows),
        coerce_number(initial_investment, "initial_investment"),
    )


def solve_irr(
    cash_flows: Iterable[Any],
    initial_investment: Any,
    guess: Optional[float] = None,
    tolerance: Optional[float] = None,
    max_iterations: Optional[int] = None,
    delta: Optional[float] = None,
    settings: Optional[EngineSettings] = None,
) -> IRRResult:
    """
    Find the rate that zeroes the NPV of a cash-flow series.

    Args:
        cash_flows: Cash flows for periods 1..n
        initial_investment: Period-0 amount (negative = outflow)
        guess: Starting rate as decimal (default 0.10)
        tolerance: Bound on |NPV| and on the step size (default 1e-4)
        max_iterations: Iteration budget (default 100)
        delta: Finite-difference step for the derivative (default 1e-4)

    Returns:
        IRRResult with the rate as a percentage. Status is "no_solution" when
        no cash flow is positive, "not_converged" when the budget runs out or
        the search stalls.

    Raises:
        InvalidInput: If tolerance or delta is not > 0, or max_iterations is
            not a positive integer
    """
    settings = settings or get_settings()
    guess = settings.irr_guess if guess is None else guess
    tolerance = settings.irr_tolerance if tolerance is None else tolerance
    max_iterations = (
        settings.irr_max_iterations if max_iterations is None else max_iterations
    )
    delta = settings.irr_derivative_step if delta is None else delta

    tolerance = _positive(tolerance, "tolerance")
    delta = _positive(delta, "delta")
    max_iterations = coerce_positive_int(max_iterations, "max_iterations")

    flows = _as_array(cash_flows)
    initial = coerce_number(initial_investment, "initial_investment")

    if flows.size == 0 or np.all(flows <= 0):
        return IRRResult(status="no_solution")

    # A step that barely moves is only trusted if the NPV is small as well
    residual_bound = tolerance * max(1.0, abs(initial))

    rate = coerce_number(guess, "guess")
    for iteration in range(1, max_iterations + 1):
        npv = _npv(rate, flows, initial)
        if abs(npv) < tolerance:
            logger.debug(f"IRR converged on NPV after {iteration} iterations")
            return IRRResult(status="converged", rate=rate * 100, iterations=iteration)

        derivative = (_npv(rate + delta, flows, initial) - npv) / delta
        if derivative == 0 or not np.isfinite(derivative):
            logger.debug(f"IRR search stalled: flat derivative at rate {rate}")
            return IRRResult(
                status="not_converged", rate=rate * 100, iterations=iteration
            )

        next_rate = rate - npv / derivative
        if not np.isfinite(next_rate) or next_rate <= -1:
            logger.debug(f"IRR search left the domain from rate {rate}")
            return IRRResult(
                status="not_converged", rate=rate * 100, iterations=iteration
            )

        if abs(next_rate - rate) < tolerance:
            if abs(_npv(next_rate, flows, initial)) <= residual_bound:
                logger.debug(f"IRR converged on step size after {iteration} iterations")
                return IRRResult(
                    status="converged", rate=next_rate * 100, iterations=iteration
                )
            return IRRResult(
                status="not_converged", rate=next_rate * 100, iterations=iteration
            )

        rate = next_rate

    logger.debug(f"IRR did not converge within {max_iterations} iterations")
    return IRRResult(status="not_converged", rate=rate * 100, iterations=max_iterations)


def calculate_multiple(cash_flows: Iterable[Any], initial_investment: Any = 0.0) -> float:
    """
    Calculate equity multiple.

    Args:
        cash_flows: Cash flows for periods 1..n
        initial_investment: Period-0 amount (negative = outflow)

    Returns:
        Multiple (e.g., 2.0 = 2.0x return)
    """
    flows = np.append(
        coerce_number(initial_investment, "initial_investment"), _as_array(cash_flows)
    )
    total_inflows = float(flows[flows > 0].sum())
    total_outflows = float(abs(flows[flows < 0].sum()))

    if total_outflows == 0:
        raise ComputationDegenerate("No investment (outflows) found")

    return total_inflows / total_outflows


def calculate_profit(cash_flows: Iterable[Any], initial_investment: Any = 0.0) -> float:
    """Calculate profit (total inflows minus total outflows)."""
    return float(
        coerce_number(initial_investment, "initial_investment")
        + _as_array(cash_flows).sum()
    )
