"""
Tiered (Progressive) Tax Calculations

Computes bracket-based taxes such as the land transfer ("welcome") tax.
The bracket table is data: it is passed in or read from settings, never
embedded in the formula.
"""

from typing import Any, List, Mapping, Optional, Sequence, Union

from immocalc.calculations.validation import coerce_model, coerce_non_negative
from immocalc.config import EngineSettings, get_settings
from immocalc.models import (
    BracketShare,
    TaxBracket,
    TaxBracketTable,
    TransferTaxResult,
)

BracketsLike = Union[
    TaxBracketTable, Mapping[str, Any], Sequence[Union[TaxBracket, Mapping[str, Any]]]
]


def default_bracket_table(settings: Optional[EngineSettings] = None) -> TaxBracketTable:
    """Build the configured transfer tax table."""
    settings = settings or get_settings()
    return coerce_model(
        TaxBracketTable,
        {
            "brackets": settings.transfer_tax_brackets,
            "effective_year": settings.transfer_tax_effective_year,
        },
    )


def resolve_brackets(
    brackets: Optional[BracketsLike], settings: Optional[EngineSettings] = None
) -> TaxBracketTable:
    """Accept a table, a mapping, or a bare list of brackets."""
    if brackets is None:
        return default_bracket_table(settings)
    if isinstance(brackets, TaxBracketTable):
        return brackets
    if isinstance(brackets, Mapping):
        return coerce_model(TaxBracketTable, brackets)
    return coerce_model(TaxBracketTable, {"brackets": list(brackets)})


def tiered_tax(
    price: Any,
    brackets: Optional[BracketsLike] = None,
    settings: Optional[EngineSettings] = None,
) -> float:
    """
    Calculate a progressive tax: each rate applies only to the slice of the
    price that falls inside its tier.

    Args:
        price: Taxable amount (purchase price or assessed value)
        brackets: Bracket table; defaults to the configured table

    Returns:
        Total tax

    Raises:
        InvalidInput: If price < 0 or bounds are not strictly increasing
    """
    return sum(share.tax for share in tax_breakdown(price, brackets, settings))


def tax_breakdown(
    price: Any,
    brackets: Optional[BracketsLike] = None,
    settings: Optional[EngineSettings] = None,
) -> List[BracketShare]:
    """Per-tier detail for the tiers the price reaches."""
    price = coerce_non_negative(price, "price")
    table = resolve_brackets(brackets, settings)

    shares = []
    lower = 0.0
    for bracket in table.brackets:
        taxable = max(0.0, min(price, bracket.ceiling) - lower)
        if taxable > 0:
            shares.append(
                BracketShare(
                    lower_bound=lower,
                    upper_bound=bracket.upper_bound,
                    rate_percent=bracket.rate * 100,
                    taxable_amount=taxable,
                    tax=taxable * bracket.rate,
                )
            )
        lower = bracket.ceiling
    return shares


def land_transfer_tax(
    price: Any,
    brackets: Optional[BracketsLike] = None,
    exemption_cap: Any = None,
    settings: Optional[EngineSettings] = None,
) -> TransferTaxResult:
    """
    Calculate the land transfer tax payable on a purchase.

    Args:
        price: Purchase price (or assessed value, whichever is higher)
        brackets: Bracket table; defaults to the configured table
        exemption_cap: Maximum relief deducted from the tax (e.g. 5000 for
            first-time buyers); defaults to the configured cap

    Returns:
        TransferTaxResult with per-tier breakdown
    """
    settings = settings or get_settings()
    table = resolve_brackets(brackets, settings)
    if exemption_cap is None:
        exemption_cap = settings.transfer_tax_exemption_cap
    exemption_cap = coerce_non_negative(exemption_cap, "exemption_cap")

    breakdown = tax_breakdown(price, table, settings)
    price = coerce_non_negative(price, "price")
    total = sum(share.tax for share in breakdown)
    exemption = min(total, exemption_cap)
    payable = total - exemption

    return TransferTaxResult(
        price=price,
        total_tax=round(total, 2),
        exemption=round(exemption, 2),
        tax_payable=round(payable, 2),
        effective_rate_percent=round(payable / price * 100, 4) if price > 0 else 0.0,
        effective_year=table.effective_year,
        breakdown=breakdown,
    )
