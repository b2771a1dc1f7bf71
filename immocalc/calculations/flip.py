"""
Flip (Buy-Renovate-Resell) Calculations

Implements the FIP10 quick estimate. Acquisition, holding and selling costs
are reserved as a flat share of the resale price (10% by default), so every
function here solves the same identity for a different unknown:

    final_price = purchase_price + renovation_cost + fees + profit
    fees = fee_ratio * final_price
"""

from typing import Any, Dict, Mapping, Optional, Sequence, Union

from immocalc.calculations.amortization import MONTHS_PER_YEAR
from immocalc.calculations.validation import (
    coerce_model,
    coerce_non_negative,
    coerce_number,
    coerce_positive_int,
)
from immocalc.config import EngineSettings, get_settings
from immocalc.errors import ComputationDegenerate, InvalidInput
from immocalc.models import (
    FlipDetails,
    FlipProfit,
    FlipReport,
    FlipScenario,
    FlipSummary,
    MaxPurchasePrice,
    MaxRenovationBudget,
    SensitivityAnalysis,
    SensitivityCase,
)

# Percentage shifts applied by sensitivity_analysis (0 is the base case)
DEFAULT_VARIATIONS = {
    "purchase_price": (-5, 0, 5),
    "final_price": (-5, 0, 5),
    "renovation_cost": (-10, 0, 10),
}


def _target(target_profit: Any, settings: EngineSettings) -> float:
    if target_profit is None:
        return settings.flip_target_profit
    return coerce_number(target_profit, "target_profit")


def compute_profit(
    final_price: Any,
    purchase_price: Any,
    renovation_cost: Any,
    min_profit: Any = None,
    settings: Optional[EngineSettings] = None,
) -> FlipProfit:
    """
    Estimate flip profit with the FIP10 method.

    Args:
        final_price: Resale value after renovation
        purchase_price: Acquisition price
        renovation_cost: Renovation budget
        min_profit: Viability threshold (default 25000 from settings)

    Returns:
        FlipProfit with profit, fees, viability and profit as % of cost

    Raises:
        InvalidInput: If an argument is missing or not a finite number >= 0
        ComputationDegenerate: If purchase price and renovation cost are both 0
    """
    settings = settings or get_settings()
    final_price = coerce_non_negative(final_price, "final_price")
    purchase_price = coerce_non_negative(purchase_price, "purchase_price")
    renovation_cost = coerce_non_negative(renovation_cost, "renovation_cost")
    threshold = _target(min_profit, settings)

    fees = final_price * settings.flip_fee_ratio
    profit = final_price - purchase_price - renovation_cost - fees

    cost_base = purchase_price + renovation_cost
    if cost_base == 0:
        raise ComputationDegenerate("Profit percentage is undefined with no cost base")

    return FlipProfit(
        profit=profit,
        fees_ten_percent=fees,
        is_viable=profit >= threshold,
        profit_percentage=profit / cost_base * 100,
    )


def compute_max_purchase_price(
    final_price: Any,
    renovation_cost: Any,
    target_profit: Any = None,
    settings: Optional[EngineSettings] = None,
) -> MaxPurchasePrice:
    """
    Calculate the highest offer that still leaves the target profit.

    Args:
        final_price: Resale value after renovation
        renovation_cost: Renovation budget
        target_profit: Profit to preserve (default 25000 from settings)
    """
    settings = settings or get_settings()
    final_price = coerce_non_negative(final_price, "final_price")
    renovation_cost = coerce_non_negative(renovation_cost, "renovation_cost")
    target = _target(target_profit, settings)

    fees = final_price * settings.flip_fee_ratio
    max_price = final_price - renovation_cost - fees - target

    return MaxPurchasePrice(max_purchase_price=max_price, is_feasible=max_price > 0)


def compute_max_renovation_budget(
    final_price: Any,
    purchase_price: Any,
    target_profit: Any = None,
    settings: Optional[EngineSettings] = None,
) -> MaxRenovationBudget:
    """
    Calculate the largest renovation budget that still leaves the target profit.

    Args:
        final_price: Resale value after renovation
        purchase_price: Acquisition price
        target_profit: Profit to preserve (default 25000 from settings)

    Raises:
        ComputationDegenerate: If final_price is 0 (share of resale undefined)
    """
    settings = settings or get_settings()
    final_price = coerce_non_negative(final_price, "final_price")
    purchase_price = coerce_non_negative(purchase_price, "purchase_price")
    target = _target(target_profit, settings)

    if final_price == 0:
        raise ComputationDegenerate("Share of resale is undefined for a zero final price")

    fees = final_price * settings.flip_fee_ratio
    budget = final_price - purchase_price - fees - target

    return MaxRenovationBudget(
        max_renovation_budget=budget,
        is_feasible=budget > 0,
        percentage_of_resale=budget / final_price * 100,
    )


def annualized_roi(profit_percentage: Any, holding_months: Any) -> float:
    """
    Compound a holding-period return to a yearly rate.

    Args:
        profit_percentage: Return over the holding period, in percent
        holding_months: Months between purchase and resale
    """
    roi = coerce_number(profit_percentage, "profit_percentage")
    months = coerce_positive_int(holding_months, "holding_months")
    if roi < -100:
        raise InvalidInput(
            f"profit_percentage must be >= -100, got {roi}", field="profit_percentage"
        )
    return ((1 + roi / 100) ** (MONTHS_PER_YEAR / months) - 1) * 100


def rate_profit(profit: float, settings: Optional[EngineSettings] = None) -> str:
    """Grade a profit against the configured tiers (EXCELLENT..POOR)."""
    settings = settings or get_settings()
    tiers = sorted(settings.flip_rating_tiers.items(), key=lambda item: -item[1])
    for rating, floor in tiers:
        if profit >= floor:
            return rating
    return "POOR"


def _verdict(profit: float, target: float) -> str:
    if profit >= target:
        return "viable"
    if profit > 0:
        return "marginal"
    return "negative"


def _message(verdict: str, profit: float, percentage: float, target: float) -> str:
    if verdict == "viable":
        return (
            f"Viable flip: projected profit of {profit:,.2f}$ "
            f"({percentage:.2f}% of cost) meets the {target:,.0f}$ target"
        )
    if verdict == "marginal":
        return (
            f"Marginal flip: projected profit of {profit:,.2f}$ is below the "
            f"{target:,.0f}$ target; negotiate the price or trim the renovation budget"
        )
    return (
        f"Losing flip: projected loss of {abs(profit):,.2f}$; "
        f"do not proceed at this price"
    )


def analyze_flip(
    scenario: Union[FlipScenario, Mapping[str, Any]],
    settings: Optional[EngineSettings] = None,
) -> FlipReport:
    """
    Run the full FIP10 analysis for a flip scenario.

    Returns:
        FlipReport with raw figures in `details` and rounded headline
        metrics, rating and verdict in `summary`
    """
    settings = settings or get_settings()
    scenario = coerce_model(FlipScenario, scenario)
    target = _target(scenario.target_profit, settings)

    result = compute_profit(
        scenario.final_price,
        scenario.purchase_price,
        scenario.renovation_cost,
        min_profit=target,
        settings=settings,
    )
    max_price = compute_max_purchase_price(
        scenario.final_price, scenario.renovation_cost, target, settings
    )
    max_budget = compute_max_renovation_budget(
        scenario.final_price, scenario.purchase_price, target, settings
    )

    verdict = _verdict(result.profit, target)

    return FlipReport(
        details=FlipDetails(
            final_price=scenario.final_price,
            purchase_price=scenario.purchase_price,
            renovation_cost=scenario.renovation_cost,
            fees=result.fees_ten_percent,
            cost_base=scenario.purchase_price + scenario.renovation_cost,
            profit=result.profit,
            profit_percentage=result.profit_percentage,
            holding_months=scenario.holding_months,
            annualized_roi=annualized_roi(
                result.profit_percentage, scenario.holding_months
            ),
            target_profit=target,
            max_purchase_price=max_price.max_purchase_price,
            max_renovation_budget=max_budget.max_renovation_budget,
        ),
        summary=FlipSummary(
            profit=round(result.profit, 2),
            profit_percentage=f"{result.profit_percentage:.2f}",
            rating=rate_profit(result.profit, settings),
            is_viable=result.is_viable,
            verdict=verdict,
            message=_message(verdict, result.profit, result.profit_percentage, target),
        ),
    )


def sensitivity_analysis(
    scenario: Union[FlipScenario, Mapping[str, Any]],
    variations: Optional[Dict[str, Sequence[float]]] = None,
    settings: Optional[EngineSettings] = None,
) -> SensitivityAnalysis:
    """
    Recompute profit with each input shifted by a percentage.

    Args:
        scenario: Base flip scenario
        variations: Field name -> percentage shifts; the 0 shift is skipped

    Returns:
        SensitivityAnalysis with cases sorted by profit, best first
    """
    settings = settings or get_settings()
    scenario = coerce_model(FlipScenario, scenario)
    variations = DEFAULT_VARIATIONS if variations is None else variations
    target = _target(scenario.target_profit, settings)

    base = compute_profit(
        scenario.final_price,
        scenario.purchase_price,
        scenario.renovation_cost,
        min_profit=target,
        settings=settings,
    )

    cases = []
    for variable, changes in variations.items():
        label = variable.replace("_", " ").capitalize()
        for change in changes:
            if change == 0:
                continue
            shifted = coerce_model(
                FlipScenario,
                {
                    **scenario.model_dump(),
                    variable: getattr(scenario, variable) * (1 + change / 100),
                },
            )
            result = compute_profit(
                shifted.final_price,
                shifted.purchase_price,
                shifted.renovation_cost,
                min_profit=target,
                settings=settings,
            )
            cases.append(
                SensitivityCase(
                    name=f"{label} {change:+g}%",
                    variable=variable,
                    change_percent=change,
                    metric=result.profit,
                    is_viable=result.is_viable,
                )
            )

    cases.sort(key=lambda case: case.metric, reverse=True)
    return SensitivityAnalysis(metric_name="profit", base_metric=base.profit, cases=cases)
