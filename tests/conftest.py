"""
Pytest configuration and shared fixtures.
"""

import pytest
import sys
import os

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from immocalc.config import EngineSettings, get_settings
from immocalc.models import TaxBracket, TaxBracketTable


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow")
    config.addinivalue_line("markers", "property: marks property-style sweeps")


@pytest.fixture(autouse=True)
def fresh_settings():
    """Drop the cached settings so environment overrides never leak between tests."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings():
    """Default engine settings."""
    return EngineSettings()


@pytest.fixture
def quebec_brackets():
    """Three-tier welcome tax table: 0.5% / 1.0% / 1.5%."""
    return TaxBracketTable(
        brackets=(
            TaxBracket(upper_bound=53200, rate=0.005),
            TaxBracket(upper_bound=266200, rate=0.01),
            TaxBracket(upper_bound=None, rate=0.015),
        ),
        effective_year=2023,
    )


@pytest.fixture
def duplex_scenario():
    """Two-door building with default financing."""
    return {"purchasePrice": 300000, "grossAnnualRent": 36000, "units": 2}
