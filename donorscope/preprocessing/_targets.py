"""
donorscope.preprocessing._targets
=================================
Per-donor training targets derived from historical activity.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np
import pandas as pd

from ..records import DonorRecord
from ..utils._validation import resolve_reference_date
from ._features import (
    average_donation,
    engagement_score,
    response_rate,
    retention_score,
    total_donated,
)

TARGET_NAMES = (
    "lifetime_value",
    "campaign_response",
    "average_amount",
    "risk",
)


def lifetime_value(donor: DonorRecord) -> float:
    """Sum of every recorded gift."""
    return total_donated(donor)


def campaign_response_rate(donor: DonorRecord) -> float:
    return response_rate(donor)


def average_amount(donor: DonorRecord) -> float:
    return average_donation(donor)


def risk_label(donor: DonorRecord, reference_date=None) -> float:
    """Synthetic lapse-risk label in [0, 1].

    ``1 - (retention + engagement / 10 + response_rate) / 3``, clipped to the
    unit interval.  Highly engaged donors saturate at 0.
    """
    raw = 1.0 - (
        retention_score(donor, reference_date)
        + engagement_score(donor) / 10.0
        + response_rate(donor)
    ) / 3.0
    return float(np.clip(raw, 0.0, 1.0))


def build_training_targets(
    donors: Sequence[DonorRecord],
    reference_date=None,
) -> pd.DataFrame:
    """Return one row of training targets per donor.

    Parameters
    ----------
    donors : sequence of DonorRecord
    reference_date : datetime-like or None
        Reference point for the recency part of the risk label.

    Returns
    -------
    targets : pd.DataFrame
        Indexed by donor id, columns :data:`TARGET_NAMES`.
    """
    ref = resolve_reference_date(reference_date)
    rows = [
        {
            "lifetime_value": lifetime_value(d),
            "campaign_response": campaign_response_rate(d),
            "average_amount": average_amount(d),
            "risk": risk_label(d, ref),
        }
        for d in donors
    ]
    index = pd.Index([d.id for d in donors], name="donor_id")
    return pd.DataFrame(rows, index=index, columns=list(TARGET_NAMES), dtype=float)
