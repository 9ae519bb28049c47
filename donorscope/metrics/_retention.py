"""
donorscope.metrics._retention
=============================
Population-level retention KPIs computed from donor records.
"""

from __future__ import annotations

from typing import Collection, Dict, Sequence

import pandas as pd

from ..records import DonorRecord
from ..utils._validation import resolve_reference_date, safe_divide


def donor_retention_rate(current_donors: Collection, prior_donors: Collection) -> float:
    """Share of the prior period's donors who gave again in the current period.

    Parameters
    ----------
    current_donors : collection of donor ids
    prior_donors : collection of donor ids

    Returns
    -------
    rate : float
        ``|current ∩ prior| / |prior|``, or 0.0 when there were no prior donors.

    Examples
    --------
    >>> donor_retention_rate(["A", "B", "E"], ["A", "B", "C", "D"])
    0.5
    """
    prior = set(prior_donors)
    return safe_divide(len(set(current_donors) & prior), len(prior))


def _donors_between(donors, start, end) -> set:
    return {
        donor.id
        for donor in donors
        if any(start <= d.occurred_at < end for d in donor.donations)
    }


def donor_retention_summary(
    donors: Sequence[DonorRecord],
    reference_date=None,
) -> Dict[str, float]:
    """Headline retention figures for a donor file.

    Parameters
    ----------
    donors : sequence of DonorRecord
    reference_date : datetime-like or None
        Defaults to today.

    Returns
    -------
    summary : dict
        ``retention_rate``
            Donors with a gift in the year before ``reference_date`` divided
            by all donors on file.
        ``churn_rate``
            ``1 - retention_rate`` (0 for an empty file).
        ``average_lifespan_days``
            Sum over donors of days between first and last gift, divided by
            the number of donors on file (single-gift donors count as 0).
    """
    ref = resolve_reference_date(reference_date)
    n_donors = len(donors)
    active = _donors_between(donors, ref - pd.DateOffset(years=1), ref + pd.Timedelta(days=1))
    retention = safe_divide(len(active), n_donors)

    lifespan_days = 0.0
    for donor in donors:
        if len(donor.donations) >= 2:
            span = donor.donations[-1].occurred_at - donor.donations[0].occurred_at
            lifespan_days += span.total_seconds() / 86_400.0

    return {
        "retention_rate": retention,
        "churn_rate": 1.0 - retention if n_donors else 0.0,
        "average_lifespan_days": safe_divide(lifespan_days, n_donors),
    }


def monthly_retention_trend(
    donors: Sequence[DonorRecord],
    reference_date=None,
    n_months: int = 12,
) -> pd.DataFrame:
    """Month-over-month retention for the trailing ``n_months`` calendar months.

    For each month, retention is the share of the previous month's donors
    who also gave in that month.

    Returns
    -------
    trend : pd.DataFrame
        Columns ``month`` (``"YYYY-MM"``) and ``retention_rate``, oldest
        month first.
    """
    ref = resolve_reference_date(reference_date)
    current_month = ref.to_period("M")
    rows = []
    for offset in range(n_months - 1, -1, -1):
        month = current_month - offset
        previous = month - 1
        current_ids = _donors_between(
            donors, month.start_time, month.end_time + pd.Timedelta(1)
        )
        previous_ids = _donors_between(
            donors, previous.start_time, previous.end_time + pd.Timedelta(1)
        )
        rows.append(
            {
                "month": str(month),
                "retention_rate": donor_retention_rate(current_ids, previous_ids),
            }
        )
    return pd.DataFrame(rows, columns=["month", "retention_rate"])
