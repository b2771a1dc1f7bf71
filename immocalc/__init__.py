"""
immocalc: real-estate investment calculation engine.

Mortgage math, tiered transfer tax, IRR, flip and multi-unit analysis.
"""

from immocalc.errors import ComputationDegenerate, InvalidInput

__version__ = "0.1.0"

__all__ = ["ComputationDegenerate", "InvalidInput", "__version__"]
