"""
Scenario and report records.

Inputs accept snake_case names or their camelCase aliases, and numeric strings
are coerced. All records are frozen; `model_dump(by_alias=True)` gives the
camelCase contract consumed by rendering and persistence layers.
"""

import math
from typing import Literal, Optional, Tuple, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel


class EngineModel(BaseModel):
    """Base record: immutable, camelCase aliases, numeric strings coerced."""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )


def _reject_bool(value):
    # bool is an int subclass; True would otherwise pass as 1
    if isinstance(value, bool):
        raise ValueError("must be a number, not a boolean")
    return value


# =============================================================================
# INPUTS
# =============================================================================


class LoanTerms(EngineModel):
    """Fixed-rate loan. The rate is a percentage (4.5 means 4.5%)."""

    principal: float = Field(ge=0, allow_inf_nan=False)
    annual_rate_percent: float = Field(ge=0, allow_inf_nan=False)
    amortization_years: int = Field(gt=0)

    _no_bool = field_validator(
        "principal", "annual_rate_percent", "amortization_years", mode="before"
    )(_reject_bool)


class TaxBracket(EngineModel):
    """One tier of a progressive table; upper_bound None means unbounded."""

    upper_bound: Optional[float] = Field(default=None, gt=0)
    rate: float = Field(ge=0, le=1, allow_inf_nan=False)

    @property
    def ceiling(self) -> float:
        return math.inf if self.upper_bound is None else self.upper_bound


class TaxBracketTable(EngineModel):
    """Ordered tiers with strictly increasing upper bounds."""

    brackets: Tuple[TaxBracket, ...] = Field(min_length=1)
    effective_year: Optional[int] = None
    name: Optional[str] = None

    @model_validator(mode="after")
    def _check_bounds(self) -> "TaxBracketTable":
        previous = 0.0
        for index, bracket in enumerate(self.brackets):
            if bracket.ceiling <= previous:
                raise ValueError(
                    f"bracket {index} upper bound {bracket.ceiling} "
                    f"must exceed {previous}"
                )
            previous = bracket.ceiling
        return self


class Financing(EngineModel):
    """Conventional financing assumptions for a multi-unit purchase."""

    loan_to_value: float = Field(ge=0, le=1, allow_inf_nan=False)
    interest_rate_percent: float = Field(ge=0, allow_inf_nan=False)
    amortization_years: int = Field(gt=0)

    _no_bool = field_validator(
        "loan_to_value", "interest_rate_percent", "amortization_years", mode="before"
    )(_reject_bool)


class FlipScenario(EngineModel):
    """One flip deal. holding_months annualizes the return (default 6)."""

    final_price: float = Field(ge=0, allow_inf_nan=False)
    purchase_price: float = Field(ge=0, allow_inf_nan=False)
    renovation_cost: float = Field(ge=0, allow_inf_nan=False)
    target_profit: Optional[float] = Field(default=None, allow_inf_nan=False)
    holding_months: int = Field(default=6, gt=0)
    name: Optional[str] = None

    _no_bool = field_validator(
        "final_price",
        "purchase_price",
        "renovation_cost",
        "target_profit",
        "holding_months",
        mode="before",
    )(_reject_bool)


class MultiScenario(EngineModel):
    purchase_price: float = Field(ge=0, allow_inf_nan=False)
    gross_annual_rent: float = Field(ge=0, allow_inf_nan=False)
    units: int = Field(gt=0)
    renovation_cost: float = Field(default=0.0, ge=0, allow_inf_nan=False)
    financing: Optional[Financing] = None
    name: Optional[str] = None

    _no_bool = field_validator(
        "purchase_price", "gross_annual_rent", "units", "renovation_cost", mode="before"
    )(_reject_bool)


# =============================================================================
# MORTGAGE / TAX / IRR RESULTS
# =============================================================================


class AmortizationYearEntry(EngineModel):
    year: int
    payment: float
    principal_paid: float
    interest_paid: float
    remaining_balance: float


class BracketShare(EngineModel):
    """Portion of a price taxed within one tier."""

    lower_bound: float
    upper_bound: Optional[float]
    rate_percent: float
    taxable_amount: float
    tax: float


class TransferTaxResult(EngineModel):
    price: float
    total_tax: float
    exemption: float
    tax_payable: float
    effective_rate_percent: float
    effective_year: Optional[int] = None
    breakdown: Tuple[BracketShare, ...]


IRRStatus = Literal["converged", "not_converged", "no_solution"]


class IRRResult(EngineModel):
    """
    Outcome of the IRR search.

    `rate` is a percentage. It is the last estimate when not converged and
    None when no rate can zero the NPV.
    """

    status: IRRStatus
    rate: Optional[float] = None
    iterations: int = 0

    @computed_field
    @property
    def converged(self) -> bool:
        return self.status == "converged"


# =============================================================================
# FLIP RESULTS
# =============================================================================


class FlipProfit(EngineModel):
    profit: float
    fees_ten_percent: float
    is_viable: bool
    profit_percentage: float


class MaxPurchasePrice(EngineModel):
    max_purchase_price: float
    is_feasible: bool


class MaxRenovationBudget(EngineModel):
    max_renovation_budget: float
    is_feasible: bool
    percentage_of_resale: float


Verdict = Literal["viable", "marginal", "negative"]


class FlipDetails(EngineModel):
    final_price: float
    purchase_price: float
    renovation_cost: float
    fees: float
    cost_base: float
    profit: float
    profit_percentage: float
    holding_months: int
    annualized_roi: float
    target_profit: float
    max_purchase_price: float
    max_renovation_budget: float


class FlipSummary(EngineModel):
    profit: float
    profit_percentage: str
    rating: str
    is_viable: bool
    verdict: Verdict
    message: str


class FlipReport(EngineModel):
    details: FlipDetails
    summary: FlipSummary


# =============================================================================
# MULTI-UNIT RESULTS
# =============================================================================


class MultiDetails(EngineModel):
    purchase_price: float
    renovation_cost: float
    total_investment: float
    gross_annual_rent: float
    units: int
    expense_ratio: float
    operating_expenses: float
    net_operating_income: float
    financing: Financing
    loan_amount: float
    down_payment: float
    monthly_mortgage_payment: float
    annual_mortgage_payment: float
    annual_cashflow: float
    monthly_cashflow: float
    cashflow_per_unit: float
    cap_rate: float
    cash_on_cash: float
    gross_rent_multiplier: Optional[float] = None
    debt_service_coverage: Optional[float] = None


class MultiSummary(EngineModel):
    total_investment: float
    operating_expenses: float
    net_operating_income: float
    annual_cashflow: float
    monthly_cashflow: float
    cashflow_per_unit: float
    cap_rate: str
    cash_on_cash: str
    rating: str
    is_viable: bool
    verdict: Verdict
    message: str


class MultiReport(EngineModel):
    details: MultiDetails
    summary: MultiSummary


class MultiMaxPurchasePrice(EngineModel):
    max_purchase_price: float
    target_cashflow_per_unit: float
    max_annual_mortgage_payment: float
    net_operating_income: float
    is_feasible: bool


# =============================================================================
# SENSITIVITY
# =============================================================================


class SensitivityCase(EngineModel):
    name: str
    variable: str
    change_percent: float
    metric: float
    is_viable: bool


class SensitivityAnalysis(EngineModel):
    metric_name: str
    base_metric: float
    cases: Tuple[SensitivityCase, ...]


# =============================================================================
# OPTIMIZATIONS / COMPARISON
# =============================================================================


class Optimization(EngineModel):
    """One improvement lever for a multi-unit deal."""

    category: Literal["revenue", "expenses", "financing", "price"]
    kind: str
    description: str
    impact: Literal["medium", "high"]


class RankedScenario(EngineModel):
    index: int
    name: str
    metric: float
    is_viable: bool
    verdict: Verdict
    report: Union[FlipReport, MultiReport]


class RejectedScenario(EngineModel):
    index: int
    name: str
    error: str
    field: Optional[str] = None


class ScenarioComparison(EngineModel):
    """Scenarios ranked best to worst on one criterion."""

    criterion: str
    scenario_count: int
    best: RankedScenario
    ranking: Tuple[RankedScenario, ...]
    rejected: Tuple[RejectedScenario, ...] = ()
