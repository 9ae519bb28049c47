"""
donorscope.datasets
===================
Synthetic donor data for examples, benchmarks and tests.
"""

from ._generator import EVENT_CATEGORIES, PROJECT_CATEGORIES, generate_synthetic_donors

__all__ = ["EVENT_CATEGORIES", "PROJECT_CATEGORIES", "generate_synthetic_donors"]
