"""
donorscope.preprocessing._lifecycle
===================================
Rule-based donor lifecycle stages (new / reactivated / regular / lapsed).

Unlike the clustered behavioural segment produced by
:class:`~donorscope.models.DonorSegmenter`, lifecycle stages are fixed
calendar rules evaluated against a reference date, the way annual-fund
teams report file health:

========================  ==============================================
Stage                     Rule (checked in this order)
========================  ==============================================
``new``                   Every gift falls within the last 3 months.
``reactivated``           Last gift within 3 months **and** some earlier
                          pair of consecutive gifts is >= 6 months apart.
``regular``               A gift in the last 3 months and another in the
                          window 3-6 months back.
``lapsed``                No gift in the last 6 months.
========================  ==============================================

Donors without gifts, or matching none of the rules (e.g. last gift 3-6
months ago with nothing before it in that window), have no stage.
"""

from __future__ import annotations

from typing import Optional, Sequence

import pandas as pd

from ..records import DonorRecord
from ..utils._validation import resolve_reference_date, safe_divide

LIFECYCLE_STAGES = ("new", "regular", "lapsed", "reactivated")

RECENT_MONTHS = 3
LAPSE_MONTHS = 6


def _has_reactivation_gap(dates: Sequence[pd.Timestamp]) -> bool:
    gap = pd.DateOffset(months=LAPSE_MONTHS)
    return any(later >= earlier + gap for earlier, later in zip(dates, dates[1:]))


def assign_lifecycle_stage(donor: DonorRecord, reference_date=None) -> Optional[str]:
    """Return the lifecycle stage of ``donor`` or ``None``.

    Parameters
    ----------
    donor : DonorRecord
    reference_date : datetime-like or None
        Defaults to today.

    Returns
    -------
    stage : str or None
        One of :data:`LIFECYCLE_STAGES`.

    Examples
    --------
    >>> from donorscope.records import DonorRecord, Donation
    >>> donor = DonorRecord("D1", [Donation(25, "2023-01-10"), Donation(40, "2024-05-02")])
    >>> assign_lifecycle_stage(donor, reference_date="2024-06-01")
    'reactivated'
    """
    if not donor.donations:
        return None

    ref = resolve_reference_date(reference_date)
    recent_cutoff = ref - pd.DateOffset(months=RECENT_MONTHS)
    lapse_cutoff = ref - pd.DateOffset(months=LAPSE_MONTHS)
    dates = [d.occurred_at for d in donor.donations]

    if dates[0] >= recent_cutoff:
        return "new"
    if dates[-1] >= recent_cutoff:
        if _has_reactivation_gap(dates):
            return "reactivated"
        if any(lapse_cutoff <= d < recent_cutoff for d in dates):
            return "regular"
        return None
    if dates[-1] < lapse_cutoff:
        return "lapsed"
    return None


def summarize_lifecycle_segments(
    donors: Sequence[DonorRecord],
    reference_date=None,
) -> pd.DataFrame:
    """Count donors and their giving per lifecycle stage.

    Parameters
    ----------
    donors : sequence of DonorRecord
    reference_date : datetime-like or None
        Defaults to today.

    Returns
    -------
    summary : pd.DataFrame
        Columns ``segment``, ``count``, ``total_donations``,
        ``average_donation``; one row per stage in
        :data:`LIFECYCLE_STAGES` order, including empty stages.
        ``average_donation`` is total / number of gifts (0 with no gifts).
    """
    ref = resolve_reference_date(reference_date)
    totals = {stage: [0, 0.0, 0] for stage in LIFECYCLE_STAGES}
    for donor in donors:
        stage = assign_lifecycle_stage(donor, ref)
        if stage is None:
            continue
        bucket = totals[stage]
        bucket[0] += 1
        bucket[1] += sum(float(d.amount) for d in donor.donations)
        bucket[2] += len(donor.donations)

    return pd.DataFrame(
        [
            {
                "segment": stage,
                "count": count,
                "total_donations": total,
                "average_donation": safe_divide(total, n_gifts),
            }
            for stage, (count, total, n_gifts) in totals.items()
        ],
        columns=["segment", "count", "total_donations", "average_donation"],
    )
