"""
Financial Calculation Engine

Core calculation modules for real estate investment analysis.
All functions are pure: no I/O and no shared state.
"""

from immocalc.calculations import (
    amortization,
    comparison,
    flip,
    irr,
    multi,
    transfer_tax,
)

__all__ = ["amortization", "comparison", "flip", "irr", "multi", "transfer_tax"]
