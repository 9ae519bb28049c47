"""
donorscope.utils._validation
============================
Shared validation logic for DonorScope estimators and the prediction engine.
"""

from __future__ import annotations

import numbers
import os
from typing import Optional

import numpy as np
import pandas as pd


def validate_positive_int(value, name: str) -> int:
    """
    Validate that ``value`` is an integer >= 1.

    Parameters
    ----------
    value : int
        Value to check.
    name : str
        Parameter name used in the error message.

    Returns
    -------
    value : int
        The validated value.

    Raises
    ------
    ValueError
        If value is not an integer or is smaller than 1.
    """
    if isinstance(value, bool) or not isinstance(value, numbers.Integral):
        raise ValueError(f"`{name}` must be an integer, got {value!r}.")
    if value < 1:
        raise ValueError(f"`{name}` must be >= 1, got {value!r}.")
    return int(value)


def effective_n_jobs(n_jobs) -> Optional[int]:
    """
    Resolve an ``n_jobs`` setting to a worker count.

    Negative values count back from the number of CPUs, so ``-1`` means all
    of them and ``-2`` all but one. ``None`` is passed through.

    Raises
    ------
    ValueError
        If ``n_jobs`` is 0 or not an integer.
    """
    if n_jobs is None:
        return None
    if isinstance(n_jobs, bool) or not isinstance(n_jobs, numbers.Integral):
        raise ValueError(f"`n_jobs` must be an integer or None, got {n_jobs!r}.")
    if n_jobs == 0:
        raise ValueError("`n_jobs` == 0 has no meaning; use 1 for sequential fitting.")
    if n_jobs < 0:
        return max((os.cpu_count() or 1) + 1 + int(n_jobs), 1)
    return int(n_jobs)


def resolve_reference_date(reference_date=None) -> pd.Timestamp:
    """Return ``reference_date`` as a naive Timestamp, defaulting to today."""
    if reference_date is None:
        return pd.Timestamp.today().normalize()
    ts = pd.Timestamp(reference_date)
    if pd.isna(ts):
        raise ValueError("`reference_date` must be a valid date, got NaT.")
    if ts.tzinfo is not None:
        ts = ts.tz_convert("UTC").tz_localize(None)
    return ts


def validate_unit_interval(y, name: str = "y") -> None:
    """Raise ``ValueError`` if any value of ``y`` lies outside [0, 1]."""
    y = np.asarray(y, dtype=float)
    if y.size and (np.nanmin(y) < 0.0 or np.nanmax(y) > 1.0):
        raise ValueError(
            f"`{name}` must contain rates in [0, 1], got values in "
            f"[{np.nanmin(y)!r}, {np.nanmax(y)!r}]."
        )


def safe_divide(numerator: float, denominator: float, default: float = 0.0) -> float:
    """Return ``numerator / denominator`` or ``default`` when the denominator is 0."""
    if denominator == 0:
        return default
    return numerator / denominator


__all__ = [
    "validate_positive_int",
    "effective_n_jobs",
    "resolve_reference_date",
    "validate_unit_interval",
    "safe_divide",
]