"""
Loan Amortization Calculations

Implements the level-payment mortgage formula and year-by-year amortization
schedules. Rates are percentages at this boundary (4.5 means 4.5%).
"""

import logging
from typing import Any, List, Mapping, Union

from immocalc.calculations.validation import (
    coerce_model,
    coerce_non_negative,
    coerce_number,
    coerce_positive_int,
)
from immocalc.errors import ComputationDegenerate, InvalidInput
from immocalc.models import AmortizationYearEntry, LoanTerms

logger = logging.getLogger(__name__)

MONTHS_PER_YEAR = 12

# Residual balance treated as repaid; absorbs float drift on the last payment.
BALANCE_EPSILON = 1e-6


def monthly_payment(principal: Any, annual_rate_percent: Any, years: Any) -> float:
    """
    Calculate the fixed monthly payment of a fully amortizing loan.

    Args:
        principal: Loan principal amount
        annual_rate_percent: Annual interest rate as a percentage (e.g., 4.5)
        years: Amortization period in years

    Returns:
        Monthly payment amount

    Raises:
        InvalidInput: If principal or rate is negative, or years <= 0
    """
    principal = coerce_non_negative(principal, "principal")
    annual_rate_percent = coerce_non_negative(annual_rate_percent, "annual_rate_percent")
    years = coerce_number(years, "years")
    if years <= 0:
        raise InvalidInput(f"years must be > 0, got {years}", field="years")

    num_payments = years * MONTHS_PER_YEAR
    monthly_rate = annual_rate_percent / 100 / MONTHS_PER_YEAR

    if monthly_rate == 0:
        return principal / num_payments

    growth = (1 + monthly_rate) ** num_payments
    return principal * monthly_rate * growth / (growth - 1)


def amortization_schedule(
    loan: Union[LoanTerms, Mapping[str, Any]], horizon_years: Any
) -> List[AmortizationYearEntry]:
    """
    Generate a year-by-year amortization schedule.

    Each year accumulates twelve monthly interest/principal splits using the
    fixed payment. The month that would overpay is truncated to the
    outstanding balance. Years after repayment are zero-filled, so the result
    always has exactly `horizon_years` entries.

    Args:
        loan: LoanTerms or a mapping with the same fields
        horizon_years: Number of years to report

    Returns:
        List of AmortizationYearEntry, one per year
    """
    loan = coerce_model(LoanTerms, loan)
    horizon_years = coerce_positive_int(horizon_years, "horizon_years")

    payment = monthly_payment(
        loan.principal, loan.annual_rate_percent, loan.amortization_years
    )
    monthly_rate = loan.annual_rate_percent / 100 / MONTHS_PER_YEAR
    last_month = loan.amortization_years * MONTHS_PER_YEAR
    balance = loan.principal
    month = 0

    schedule = []
    for year in range(1, horizon_years + 1):
        year_payment = 0.0
        year_principal = 0.0
        year_interest = 0.0

        for _ in range(MONTHS_PER_YEAR):
            if balance <= 0:
                break

            month += 1
            interest = balance * monthly_rate
            principal_pmt = payment - interest

            if month >= last_month or principal_pmt >= balance - BALANCE_EPSILON:
                # Final payment: only what is still owed
                principal_pmt = balance
                balance = 0.0
            else:
                balance -= principal_pmt

            year_principal += principal_pmt
            year_interest += interest
            year_payment += principal_pmt + interest

        schedule.append(
            AmortizationYearEntry(
                year=year,
                payment=year_payment,
                principal_paid=year_principal,
                interest_paid=year_interest,
                remaining_balance=balance,
            )
        )

    if balance == 0 and loan.amortization_years < horizon_years:
        logger.debug(
            f"Loan repaid after {loan.amortization_years} years; "
            f"zero-filled to {horizon_years}"
        )

    return schedule


def calculate_total_interest(schedule: List[AmortizationYearEntry]) -> float:
    """Calculate total interest paid over the schedule."""
    return sum(row.interest_paid for row in schedule)


def calculate_total_principal(schedule: List[AmortizationYearEntry]) -> float:
    """Calculate total principal repaid over the schedule."""
    return sum(row.principal_paid for row in schedule)


def calculate_dscr(noi: Any, annual_debt_service: Any) -> float:
    """
    Calculate Debt Service Coverage Ratio (DSCR).

    Args:
        noi: Annual Net Operating Income
        annual_debt_service: Annual mortgage payments

    Returns:
        DSCR ratio

    Raises:
        ComputationDegenerate: If there is no debt service
    """
    noi = coerce_number(noi, "noi")
    annual_debt_service = coerce_non_negative(annual_debt_service, "annual_debt_service")
    if annual_debt_service == 0:
        raise ComputationDegenerate("DSCR is undefined without debt service")
    return noi / annual_debt_service


def calculate_loan_constant(annual_rate_percent: Any, years: Any) -> float:
    """Calculate loan constant (annual debt service per dollar borrowed)."""
    return monthly_payment(1.0, annual_rate_percent, years) * MONTHS_PER_YEAR
