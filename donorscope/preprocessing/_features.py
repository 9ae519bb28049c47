"""
donorscope.preprocessing._features
==================================
Donor-record featurization: the fixed-length feature vector shared by every
learner, the trailing monthly giving series used by the sequence forecaster,
and the two descriptive statistics (best contact hour, interest topics) that
are read straight off the raw record.

All functions here are pure: they never mutate the record and never touch
anything outside it.  Every ratio guards its zero-denominator case and
returns ``0.0``.
"""

from __future__ import annotations

import math
from collections import Counter
from typing import List, Sequence

import numpy as np
import pandas as pd
from sklearn.base import BaseEstimator, TransformerMixin
from sklearn.utils.validation import check_is_fitted

from ..records import DonorRecord
from ..utils._validation import resolve_reference_date, safe_divide, validate_positive_int

FEATURE_NAMES = (
    "donation_count",
    "average_amount",
    "donation_frequency",
    "engagement_score",
    "response_rate",
    "retention_score",
)
N_FEATURES = len(FEATURE_NAMES)

DEFAULT_CONTACT_HOUR = 9
SECONDS_PER_DAY = 86_400.0


def _days_between(start: pd.Timestamp, end: pd.Timestamp) -> float:
    return (end - start).total_seconds() / SECONDS_PER_DAY


# ---------------------------------------------------------------------------
# Individual feature components
# ---------------------------------------------------------------------------

def total_donated(donor: DonorRecord) -> float:
    return float(sum(float(d.amount) for d in donor.donations))


def average_donation(donor: DonorRecord) -> float:
    return safe_divide(total_donated(donor), len(donor.donations))


def donation_frequency(donor: DonorRecord) -> float:
    """Donations per day between the first and last gift (0 for <= 1 gift)."""
    n = len(donor.donations)
    if n <= 1:
        return 0.0
    span = _days_between(donor.donations[0].occurred_at, donor.donations[-1].occurred_at)
    return n / max(1.0, span)


def engagement_score(donor: DonorRecord) -> float:
    return (
        2.0 * len(donor.donations)
        + len(donor.communications)
        + 1.5 * len(donor.event_participations)
    )


def response_rate(donor: DonorRecord) -> float:
    responded = sum(1 for c in donor.communications if c.response)
    return safe_divide(responded, len(donor.communications))


def retention_score(donor: DonorRecord, reference_date=None) -> float:
    """Exponential recency decay ``exp(-days_since_last_gift / 365)``.

    Donors with fewer than two gifts score 0.  Gifts dated after the
    reference date count as "today" so the score never exceeds 1.
    """
    if len(donor.donations) <= 1:
        return 0.0
    ref = resolve_reference_date(reference_date)
    days_since = max(0.0, _days_between(donor.donations[-1].occurred_at, ref))
    return math.exp(-days_since / 365.0)


# ---------------------------------------------------------------------------
# Public extraction API
# ---------------------------------------------------------------------------

def extract_features(donor: DonorRecord, reference_date=None) -> np.ndarray:
    """Convert a donor record into its six-element feature vector.

    Parameters
    ----------
    donor : DonorRecord
        Raw donor activity.
    reference_date : datetime-like or None, default=None
        "Today" for the retention score. Defaults to the current date.

    Returns
    -------
    features : ndarray of shape (6,)
        Values in :data:`FEATURE_NAMES` order.

    Examples
    --------
    >>> from donorscope.records import DonorRecord, Donation, Communication
    >>> donor = DonorRecord(
    ...     "D1",
    ...     donations=[Donation(100, "2024-01-01"), Donation(200, "2024-01-31")],
    ...     communications=[Communication("2024-01-06", response=False)],
    ... )
    >>> extract_features(donor, reference_date="2024-01-31")[:3].tolist()
    [2.0, 150.0, 0.06666666666666667]
    """
    ref = resolve_reference_date(reference_date)
    return np.array(
        [
            float(len(donor.donations)),
            average_donation(donor),
            donation_frequency(donor),
            engagement_score(donor),
            response_rate(donor),
            retention_score(donor, ref),
        ],
        dtype=float,
    )


def extract_time_series(
    donor: DonorRecord,
    reference_date=None,
    n_months: int = 12,
) -> np.ndarray:
    """Bucket a donor's gifts into a trailing window of monthly totals.

    Index ``n_months - 1`` is the reference month, index 0 the oldest month
    of the window.  Gifts outside the window are ignored and months without
    gifts are zero.

    Parameters
    ----------
    donor : DonorRecord
        Raw donor activity.
    reference_date : datetime-like or None, default=None
        Anchors the newest month of the window. Defaults to today.
    n_months : int, default=12
        Window length.

    Returns
    -------
    series : ndarray of shape (n_months,)
    """
    n_months = validate_positive_int(n_months, "n_months")
    ref = resolve_reference_date(reference_date)
    series = np.zeros(n_months, dtype=float)
    for donation in donor.donations:
        ts = donation.occurred_at
        offset = (ref.year - ts.year) * 12 + (ref.month - ts.month)
        if 0 <= offset < n_months:
            series[n_months - 1 - offset] += float(donation.amount)
    return series


def best_communication_hour(donor: DonorRecord) -> int:
    """Most frequent hour of day (0-23) among communications that got a response.

    Ties go to the hour seen first; donors without any response get 9.
    """
    hours = [c.occurred_at.hour for c in donor.communications if c.response]
    if not hours:
        return DEFAULT_CONTACT_HOUR
    return int(Counter(hours).most_common(1)[0][0])


def interest_topics(donor: DonorRecord) -> List[str]:
    """Sorted distinct project and event categories the donor has touched."""
    topics = {d.project_category for d in donor.donations if d.project_category}
    topics.update(e.category for e in donor.event_participations if e.category)
    return sorted(topics)


# ---------------------------------------------------------------------------
# scikit-learn transformers
# ---------------------------------------------------------------------------

def _check_records(X) -> Sequence[DonorRecord]:
    if isinstance(X, DonorRecord):
        raise TypeError("X must be a sequence of DonorRecord, got a single record.")
    records = list(X)
    for record in records:
        if not isinstance(record, DonorRecord):
            raise TypeError(
                f"X must contain DonorRecord instances, got {type(record).__name__}."
            )
    return records


class DonorFeatureExtractor(TransformerMixin, BaseEstimator):
    """Transform a sequence of donor records into the shared feature matrix.

    Parameters
    ----------
    reference_date : str or datetime-like, default=None
        Reference point for the retention score. If None, the date of the
        :meth:`fit` call is frozen into ``reference_date_`` so repeated
        transforms stay reproducible.

    Attributes
    ----------
    reference_date_ : pd.Timestamp
        Resolved reference date.

    Examples
    --------
    >>> from donorscope.records import DonorRecord
    >>> X = DonorFeatureExtractor(reference_date="2024-06-30").fit_transform(
    ...     [DonorRecord("A"), DonorRecord("B")]
    ... )
    >>> X.shape
    (2, 6)
    """

    def __init__(self, reference_date=None):
        self.reference_date = reference_date

    def fit(self, X, y=None):
        _check_records(X)
        self.reference_date_ = resolve_reference_date(self.reference_date)
        return self

    def transform(self, X) -> np.ndarray:
        check_is_fitted(self)
        records = _check_records(X)
        if not records:
            return np.empty((0, N_FEATURES), dtype=float)
        return np.vstack([extract_features(r, self.reference_date_) for r in records])

    def get_feature_names_out(self, input_features=None):
        check_is_fitted(self)
        return np.array(FEATURE_NAMES, dtype=object)


class DonorTimeSeriesExtractor(TransformerMixin, BaseEstimator):
    """Transform a sequence of donor records into trailing monthly giving series.

    Parameters
    ----------
    reference_date : str or datetime-like, default=None
        Month anchoring the newest column. Frozen at :meth:`fit` when None.
    n_months : int, default=12
        Number of monthly columns.
    """

    def __init__(self, reference_date=None, n_months: int = 12):
        self.reference_date = reference_date
        self.n_months = n_months

    def fit(self, X, y=None):
        _check_records(X)
        validate_positive_int(self.n_months, "n_months")
        self.reference_date_ = resolve_reference_date(self.reference_date)
        return self

    def transform(self, X) -> np.ndarray:
        check_is_fitted(self)
        records = _check_records(X)
        if not records:
            return np.empty((0, self.n_months), dtype=float)
        return np.vstack(
            [extract_time_series(r, self.reference_date_, self.n_months) for r in records]
        )
