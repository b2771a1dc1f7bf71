"""
Engine configuration using Pydantic Settings.

Policy values (profit thresholds, default financing, tax brackets) live here
rather than in the formulas, so a change of policy is a change of settings.
"""

import os
from functools import lru_cache
from typing import Dict, List, Optional
from pydantic_settings import BaseSettings


def get_env_file() -> str:
    """Determine which env file to use based on environment."""
    env = os.getenv("IMMOCALC_ENV", "development")
    if env == "production":
        return ".env.production"
    return ".env.development"


# Quebec-style land transfer ("welcome") tax table.
# An upper bound of None means the tier is unbounded.
DEFAULT_TRANSFER_TAX_BRACKETS = [
    {"upper_bound": 53200, "rate": 0.005},
    {"upper_bound": 266200, "rate": 0.01},
    {"upper_bound": None, "rate": 0.015},
]


class EngineSettings(BaseSettings):
    """Engine settings loaded from environment variables (IMMOCALC_*)."""

    # Flip (FIP10)
    flip_fee_ratio: float = 0.10
    flip_target_profit: float = 25000.0
    flip_rating_tiers: Dict[str, float] = {
        "EXCELLENT": 40000.0,
        "GOOD": 25000.0,
        "ACCEPTABLE": 15000.0,
    }

    # Multi-unit
    multi_min_cashflow_per_unit: float = 75.0
    multi_rating_tiers: Dict[str, float] = {
        "EXCELLENT": 100.0,
        "GOOD": 75.0,
        "ACCEPTABLE": 50.0,
    }

    # Default financing when a scenario does not provide one
    default_loan_to_value: float = 0.75
    default_interest_rate_percent: float = 4.5
    default_amortization_years: int = 25

    # IRR solver
    irr_guess: float = 0.10
    irr_tolerance: float = 1e-4
    irr_max_iterations: int = 100
    irr_derivative_step: float = 1e-4

    # Land transfer tax
    transfer_tax_brackets: List[Dict[str, Optional[float]]] = DEFAULT_TRANSFER_TAX_BRACKETS
    transfer_tax_effective_year: int = 2023
    transfer_tax_exemption_cap: float = 0.0

    # Batch evaluation
    batch_max_workers: Optional[int] = None

    class Config:
        env_prefix = "IMMOCALC_"
        env_file = get_env_file()
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache()
def get_settings() -> EngineSettings:
    """Get cached settings instance."""
    return EngineSettings()
