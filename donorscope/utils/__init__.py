"""
donorscope.utils
================
Validation helpers and test fixtures.
"""

from ._validation import (
    effective_n_jobs,
    resolve_reference_date,
    safe_divide,
    validate_positive_int,
    validate_unit_interval,
)

__all__ = [
    "effective_n_jobs",
    "resolve_reference_date",
    "safe_divide",
    "validate_positive_int",
    "validate_unit_interval",
]
