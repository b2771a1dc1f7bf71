"""
Multi-Unit (Income Property) Calculations

Evaluates plexes and apartment buildings: operating expenses are estimated as
a share of gross rent that steps up with the number of units, then the
mortgage payment is deducted to get the cash flow left per door.

Rates at this boundary are percentages (4.5 means 4.5%).
"""

import logging
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple, Union

from pydantic.alias_generators import to_snake

from immocalc.calculations.amortization import (
    MONTHS_PER_YEAR,
    calculate_dscr,
    calculate_loan_constant,
    monthly_payment,
)
from immocalc.calculations.validation import (
    coerce_model,
    coerce_non_negative,
    coerce_number,
    coerce_positive_int,
)
from immocalc.config import EngineSettings, get_settings
from immocalc.errors import ComputationDegenerate, InvalidInput
from immocalc.models import (
    Financing,
    MultiDetails,
    MultiMaxPurchasePrice,
    MultiReport,
    MultiScenario,
    MultiSummary,
    Optimization,
    SensitivityAnalysis,
    SensitivityCase,
)

logger = logging.getLogger(__name__)

# (max units, share of gross rent); the last tier covers everything above
EXPENSE_RATIO_TIERS = (
    (2, 0.30),
    (4, 0.35),
    (6, 0.45),
)
LARGE_BUILDING_EXPENSE_RATIO = 0.50

# Thresholds behind suggest_optimizations
MARKET_RENT_PER_UNIT = 850.0
HIGH_EXPENSE_RATIO = 0.45
HIGH_INTEREST_RATE_PERCENT = 5.0
MAX_DOWN_PAYMENT_RATIO = 0.25

# Percentage shifts applied by sensitivity_analysis (0 is the base case)
DEFAULT_VARIATIONS = {
    "purchase_price": (-5, 0, 5),
    "gross_annual_rent": (-5, 0, 5),
}


def expense_ratio(units: Any) -> float:
    """
    Operating expenses as a share of gross rent for a building size.

    Exact breakpoints: 1-2 units 30%, 3-4 units 35%, 5-6 units 45%, 7+ 50%.
    """
    units = coerce_positive_int(units, "units")
    for max_units, ratio in EXPENSE_RATIO_TIERS:
        if units <= max_units:
            return ratio
    return LARGE_BUILDING_EXPENSE_RATIO


def default_financing(settings: Optional[EngineSettings] = None) -> Financing:
    """Financing assumed when a scenario does not provide one."""
    settings = settings or get_settings()
    return Financing(
        loan_to_value=settings.default_loan_to_value,
        interest_rate_percent=settings.default_interest_rate_percent,
        amortization_years=settings.default_amortization_years,
    )


def resolve_financing(
    financing: Union[Financing, Mapping[str, Any], None],
    settings: Optional[EngineSettings] = None,
) -> Financing:
    """
    Complete financing terms with the configured defaults.

    A partial mapping such as `{"loanToValue": 0.8}` keeps the given fields
    and takes the rest from settings.
    """
    defaults = default_financing(settings)
    if financing is None:
        return defaults
    if isinstance(financing, Financing):
        return financing
    if not isinstance(financing, Mapping):
        raise InvalidInput(
            f"financing must be a mapping, got {type(financing).__name__}",
            field="financing",
        )
    given = {to_snake(str(key)): value for key, value in financing.items()}
    return coerce_model(Financing, {**defaults.model_dump(), **given})


def _coerce_scenario(
    scenario: Union[MultiScenario, Mapping[str, Any]], settings: EngineSettings
) -> MultiScenario:
    if isinstance(scenario, Mapping) and isinstance(scenario.get("financing"), Mapping):
        scenario = {
            **scenario,
            "financing": resolve_financing(scenario["financing"], settings),
        }
    return coerce_model(MultiScenario, scenario)


def rate_cashflow_per_unit(
    cashflow_per_unit: float, settings: Optional[EngineSettings] = None
) -> str:
    """Grade monthly cash flow per door against the configured tiers."""
    settings = settings or get_settings()
    tiers = sorted(settings.multi_rating_tiers.items(), key=lambda item: -item[1])
    for rating, floor in tiers:
        if cashflow_per_unit >= floor:
            return rating
    return "POOR"


def _verdict(cashflow_per_unit: float, minimum: float) -> str:
    if cashflow_per_unit >= minimum:
        return "viable"
    if cashflow_per_unit > 0:
        return "marginal"
    return "negative"


def _message(verdict: str, cashflow_per_unit: float, cash_on_cash: float, minimum: float) -> str:
    if verdict == "viable":
        return (
            f"Viable project: {cashflow_per_unit:.2f}$ per door per month "
            f"with a {cash_on_cash:.2f}% cash-on-cash return"
        )
    if verdict == "marginal":
        return (
            f"Marginal project: only {cashflow_per_unit:.2f}$ per door per month "
            f"(target: {minimum:.0f}$/door/month)"
        )
    return (
        f"Negative cash flow: {cashflow_per_unit:.2f}$ per door per month; "
        f"rents do not cover expenses and financing"
    )


def analyze(
    scenario: Union[MultiScenario, Mapping[str, Any]],
    settings: Optional[EngineSettings] = None,
) -> MultiReport:
    """
    Evaluate an income-producing multi-unit property.

    Args:
        scenario: MultiScenario or a mapping with the same fields
            (camelCase names such as `grossAnnualRent` are accepted)

    Returns:
        MultiReport with raw figures in `details` and rounded headline
        metrics in `summary` (cap rate and cash-on-cash as 2-decimal strings)

    Raises:
        InvalidInput: If units is not a positive integer or a field is invalid
        ComputationDegenerate: If total investment or down payment is 0
    """
    settings = settings or get_settings()
    scenario = _coerce_scenario(scenario, settings)
    financing = scenario.financing or default_financing(settings)

    total_investment = scenario.purchase_price + scenario.renovation_cost
    if total_investment == 0:
        raise ComputationDegenerate("Cap rate is undefined without any investment")

    # === OPERATIONS ===
    ratio = expense_ratio(scenario.units)
    operating_expenses = scenario.gross_annual_rent * ratio
    noi = scenario.gross_annual_rent - operating_expenses

    # === FINANCING ===
    loan_amount = total_investment * financing.loan_to_value
    down_payment = total_investment - loan_amount
    if down_payment == 0:
        raise ComputationDegenerate(
            "Cash-on-cash return is undefined with no down payment"
        )

    mortgage_monthly = monthly_payment(
        loan_amount, financing.interest_rate_percent, financing.amortization_years
    )
    mortgage_annual = mortgage_monthly * MONTHS_PER_YEAR

    # === CASH FLOW ===
    annual_cashflow = noi - mortgage_annual
    monthly_cashflow = annual_cashflow / MONTHS_PER_YEAR
    cashflow_per_unit = monthly_cashflow / scenario.units

    cap_rate = noi / total_investment * 100
    cash_on_cash = annual_cashflow / down_payment * 100
    grm = (
        scenario.purchase_price / scenario.gross_annual_rent
        if scenario.gross_annual_rent > 0
        else None
    )
    dscr = calculate_dscr(noi, mortgage_annual) if mortgage_annual > 0 else None

    minimum = settings.multi_min_cashflow_per_unit
    verdict = _verdict(cashflow_per_unit, minimum)

    logger.debug(
        f"Multi analysis: {scenario.units} units, NOI {noi:.2f}, "
        f"cash flow per door {cashflow_per_unit:.2f}"
    )

    return MultiReport(
        details=MultiDetails(
            purchase_price=scenario.purchase_price,
            renovation_cost=scenario.renovation_cost,
            total_investment=total_investment,
            gross_annual_rent=scenario.gross_annual_rent,
            units=scenario.units,
            expense_ratio=ratio,
            operating_expenses=operating_expenses,
            net_operating_income=noi,
            financing=financing,
            loan_amount=loan_amount,
            down_payment=down_payment,
            monthly_mortgage_payment=mortgage_monthly,
            annual_mortgage_payment=mortgage_annual,
            annual_cashflow=annual_cashflow,
            monthly_cashflow=monthly_cashflow,
            cashflow_per_unit=cashflow_per_unit,
            cap_rate=cap_rate,
            cash_on_cash=cash_on_cash,
            gross_rent_multiplier=grm,
            debt_service_coverage=dscr,
        ),
        summary=MultiSummary(
            total_investment=round(total_investment, 2),
            operating_expenses=round(operating_expenses, 2),
            net_operating_income=round(noi, 2),
            annual_cashflow=round(annual_cashflow, 2),
            monthly_cashflow=round(monthly_cashflow, 2),
            cashflow_per_unit=round(cashflow_per_unit, 2),
            cap_rate=f"{cap_rate:.2f}",
            cash_on_cash=f"{cash_on_cash:.2f}",
            rating=rate_cashflow_per_unit(cashflow_per_unit, settings),
            is_viable=cashflow_per_unit >= minimum,
            verdict=verdict,
            message=_message(verdict, cashflow_per_unit, cash_on_cash, minimum),
        ),
    )


def max_purchase_price_for_cashflow(
    gross_annual_rent: Any,
    units: Any,
    target_cashflow_per_unit: Any = None,
    financing: Union[Financing, Mapping[str, Any], None] = None,
    renovation_cost: Any = 0.0,
    settings: Optional[EngineSettings] = None,
) -> MultiMaxPurchasePrice:
    """
    Calculate the highest purchase price that keeps the target cash flow per door.

    The mortgage the building can carry is NOI minus the target cash flow;
    dividing it by the loan constant gives the loan, and the loan-to-value
    ratio turns that into a total investment.

    Args:
        gross_annual_rent: Gross annual rent
        units: Number of doors
        target_cashflow_per_unit: Monthly target per door (default 75)
        financing: Financing assumptions (default from settings)
        renovation_cost: Budget deducted from the total investment
    """
    settings = settings or get_settings()
    gross_annual_rent = coerce_non_negative(gross_annual_rent, "gross_annual_rent")
    units = coerce_positive_int(units, "units")
    renovation_cost = coerce_non_negative(renovation_cost, "renovation_cost")
    if target_cashflow_per_unit is None:
        target = settings.multi_min_cashflow_per_unit
    else:
        target = coerce_number(target_cashflow_per_unit, "target_cashflow_per_unit")
    financing = resolve_financing(financing, settings)

    noi = gross_annual_rent * (1 - expense_ratio(units))
    max_mortgage = noi - target * units * MONTHS_PER_YEAR

    if financing.loan_to_value == 0:
        raise ComputationDegenerate(
            "Purchase price is unbounded by the mortgage without a loan"
        )

    constant = calculate_loan_constant(
        financing.interest_rate_percent, financing.amortization_years
    )
    max_investment = max(0.0, max_mortgage) / constant / financing.loan_to_value
    max_price = max_investment - renovation_cost

    return MultiMaxPurchasePrice(
        max_purchase_price=max_price,
        target_cashflow_per_unit=target,
        max_annual_mortgage_payment=max_mortgage,
        net_operating_income=noi,
        is_feasible=max_mortgage > 0 and max_price > 0,
    )


def sensitivity_analysis(
    scenario: Union[MultiScenario, Mapping[str, Any]],
    variations: Optional[Dict[str, Sequence[float]]] = None,
    settings: Optional[EngineSettings] = None,
) -> SensitivityAnalysis:
    """
    Re-run the analysis with purchase price and rent shifted by a percentage.

    Returns:
        SensitivityAnalysis on cash flow per door, best case first
    """
    settings = settings or get_settings()
    scenario = _coerce_scenario(scenario, settings)
    variations = DEFAULT_VARIATIONS if variations is None else variations

    base = analyze(scenario, settings)

    cases = []
    for variable, changes in variations.items():
        label = variable.replace("_", " ").capitalize()
        for change in changes:
            if change == 0:
                continue
            shifted = coerce_model(
                MultiScenario,
                {
                    **scenario.model_dump(),
                    variable: getattr(scenario, variable) * (1 + change / 100),
                },
            )
            report = analyze(shifted, settings)
            cases.append(
                SensitivityCase(
                    name=f"{label} {change:+g}%",
                    variable=variable,
                    change_percent=change,
                    metric=report.details.cashflow_per_unit,
                    is_viable=report.summary.is_viable,
                )
            )

    cases.sort(key=lambda case: case.metric, reverse=True)
    return SensitivityAnalysis(
        metric_name="cashflow_per_unit",
        base_metric=base.details.cashflow_per_unit,
        cases=cases,
    )


def suggest_optimizations(
    scenario: Union[MultiScenario, Mapping[str, Any]],
    settings: Optional[EngineSettings] = None,
) -> Tuple[Optimization, ...]:
    """
    List the levers that would improve a multi-unit deal.

    Checks rent per door against market level, the expense ratio, the
    mortgage rate and the size of the down payment. When cash flow per door
    misses the minimum, also suggests the price that would reach it.

    Returns:
        Optimizations in revenue, expenses, financing, price order; empty
        when nothing stands out
    """
    settings = settings or get_settings()
    scenario = _coerce_scenario(scenario, settings)
    report = analyze(scenario, settings)
    details = report.details
    financing = details.financing

    optimizations = []

    rent_per_unit = details.gross_annual_rent / details.units / MONTHS_PER_YEAR
    if rent_per_unit < MARKET_RENT_PER_UNIT:
        optimizations.append(
            Optimization(
                category="revenue",
                kind="RENT_INCREASE",
                description=(
                    f"Rent averages {rent_per_unit:.0f}$ per door per month; "
                    f"raise it gradually toward market level"
                ),
                impact="high",
            )
        )

    if details.expense_ratio > HIGH_EXPENSE_RATIO:
        optimizations.append(
            Optimization(
                category="expenses",
                kind="EXPENSE_RATIO",
                description=(
                    f"Expenses take {details.expense_ratio:.0%} of gross rent; "
                    f"look for 5-10% in savings"
                ),
                impact="high",
            )
        )

    if financing.interest_rate_percent > HIGH_INTEREST_RATE_PERCENT:
        optimizations.append(
            Optimization(
                category="financing",
                kind="HIGH_INTEREST_RATE",
                description=(
                    f"A {financing.interest_rate_percent:.2f}% mortgage rate is high; "
                    f"renegotiate or refinance"
                ),
                impact="high",
            )
        )

    if 1 - financing.loan_to_value > MAX_DOWN_PAYMENT_RATIO:
        optimizations.append(
            Optimization(
                category="financing",
                kind="HIGH_DOWN_PAYMENT",
                description=(
                    f"The down payment covers {1 - financing.loan_to_value:.0%} of the "
                    f"investment; more leverage would raise cash-on-cash return"
                ),
                impact="medium",
            )
        )

    minimum = settings.multi_min_cashflow_per_unit
    if details.cashflow_per_unit < minimum and financing.loan_to_value > 0:
        target = max_purchase_price_for_cashflow(
            details.gross_annual_rent,
            details.units,
            target_cashflow_per_unit=minimum,
            financing=financing,
            renovation_cost=details.renovation_cost,
            settings=settings,
        )
        if target.is_feasible:
            description = (
                f"Negotiate the price down to {target.max_purchase_price:,.0f}$ "
                f"to reach {minimum:.0f}$ per door per month"
            )
        else:
            description = (
                f"No price reaches {minimum:.0f}$ per door per month "
                f"at the current rents"
            )
        optimizations.append(
            Optimization(
                category="price",
                kind="NEGOTIATE_PRICE",
                description=description,
                impact="high",
            )
        )

    logger.debug(f"{len(optimizations)} optimizations for {details.units} units")
    return tuple(optimizations)
