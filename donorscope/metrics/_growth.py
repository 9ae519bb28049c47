"""
donorscope.metrics._growth
==========================
Population-level giving growth and a short-range projection.
"""

from __future__ import annotations

from typing import Dict, Sequence

import pandas as pd

from ..records import DonorRecord
from ..utils._validation import resolve_reference_date, safe_divide, validate_positive_int

# Confidence lost per projected month.
CONFIDENCE_DECAY = 0.1


def _total_between(donors, start, end) -> float:
    return float(
        sum(
            float(d.amount)
            for donor in donors
            for d in donor.donations
            if start <= d.occurred_at < end
        )
    )


def monthly_donation_totals(
    donors: Sequence[DonorRecord],
    reference_date=None,
    n_months: int = 12,
) -> pd.DataFrame:
    """Amount given across the file in each of the trailing calendar months.

    The month containing ``reference_date`` is the last row.

    Returns
    -------
    totals : pd.DataFrame
        Columns ``month`` (``"YYYY-MM"``) and ``amount``, oldest month first.
    """
    n_months = validate_positive_int(n_months, "n_months")
    ref = resolve_reference_date(reference_date)
    current_month = ref.to_period("M")
    rows = []
    for offset in range(n_months - 1, -1, -1):
        month = current_month - offset
        rows.append(
            {
                "month": str(month),
                "amount": _total_between(
                    donors, month.start_time, month.end_time + pd.Timedelta(1)
                ),
            }
        )
    return pd.DataFrame(rows, columns=["month", "amount"])


def donation_growth_summary(
    donors: Sequence[DonorRecord],
    reference_date=None,
    horizon: int = 6,
    smoothing: float = 0.3,
) -> Dict[str, object]:
    """Growth of total giving and a smoothed projection of the coming months.

    Parameters
    ----------
    donors : sequence of DonorRecord
    reference_date : datetime-like or None
        Defaults to today.
    horizon : int, default=6
        Number of future months to project.
    smoothing : float, default=0.3
        Weight of the newest observation in simple exponential smoothing,
        in (0, 1].

    Returns
    -------
    summary : dict
        ``year_over_year_growth``
            Relative change between the total of the year up to
            ``reference_date`` and the year before it; 0.0 when nothing was
            given in the earlier year.
        ``monthly_growth_rate``
            Relative change from the oldest to the newest of the trailing
            twelve calendar months; 0.0 when the oldest month is empty.
        ``monthly_totals``
            Output of :func:`monthly_donation_totals` for those twelve months.
        ``projected_donations``
            DataFrame with columns ``month``, ``amount`` and ``confidence``,
            one row per future month.  The amount is the smoothed level of
            the monthly totals; confidence starts at 1.0 and drops by 0.1
            per month, never below 0.

    Examples
    --------
    >>> from donorscope.records import Donation, DonorRecord
    >>> donors = [DonorRecord("A", donations=[Donation(100, "2023-03-01"),
    ...                                       Donation(150, "2024-03-01")])]
    >>> donation_growth_summary(donors, "2024-06-30")["year_over_year_growth"]
    0.5
    """
    horizon = validate_positive_int(horizon, "horizon")
    if not 0.0 < smoothing <= 1.0:
        raise ValueError(f"`smoothing` must be in (0, 1], got {smoothing!r}.")
    ref = resolve_reference_date(reference_date)
    year_ago = ref - pd.DateOffset(years=1)

    this_year = _total_between(donors, year_ago, ref + pd.Timedelta(days=1))
    last_year = _total_between(donors, ref - pd.DateOffset(years=2), year_ago)
    yoy = safe_divide(this_year - last_year, last_year)

    totals = monthly_donation_totals(donors, ref, n_months=12)
    amounts = totals["amount"]
    monthly_growth = safe_divide(amounts.iloc[-1] - amounts.iloc[0], amounts.iloc[0])

    level = float(amounts.ewm(alpha=smoothing, adjust=False).mean().iloc[-1])
    current_month = ref.to_period("M")
    projected = pd.DataFrame(
        {
            "month": [str(current_month + i + 1) for i in range(horizon)],
            "amount": [level] * horizon,
            "confidence": [max(0.0, 1.0 - CONFIDENCE_DECAY * i) for i in range(horizon)],
        },
        columns=["month", "amount", "confidence"],
    )

    return {
        "year_over_year_growth": float(yoy),
        "monthly_growth_rate": float(monthly_growth),
        "monthly_totals": totals,
        "projected_donations": projected,
    }
