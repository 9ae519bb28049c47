"""
donorscope.models._segment
==========================
Behavioural donor segmentation with k-means and a value-ranked label map.
"""

from __future__ import annotations

import warnings
from typing import Optional

import numpy as np
from sklearn.base import BaseEstimator, ClusterMixin
from sklearn.cluster import KMeans
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import StandardScaler
from sklearn.utils.validation import check_is_fitted, validate_data

from ..base import MIN_TRAINING_SAMPLES
from ..exceptions import DegenerateTrainingWarning

SEGMENT_LABELS = (
    "High Value Regular",
    "Potential High Value",
    "Consistent Medium",
    "Occasional Small",
    "At Risk",
)
NEUTRAL_SEGMENT = "Consistent Medium"


def _rank_to_label(rank: int, n_clusters: int) -> str:
    if n_clusters == 1:
        return NEUTRAL_SEGMENT
    last = len(SEGMENT_LABELS) - 1
    return SEGMENT_LABELS[int(round(rank * last / (n_clusters - 1)))]


class DonorSegmenter(ClusterMixin, BaseEstimator):
    """Assign each donor one of five fixed behavioural segments.

    Donors are standardised and clustered with
    :class:`~sklearn.cluster.KMeans`.  At fit time the clusters are ranked by
    the mean lifetime value of their members (highest first) and labelled
    with :data:`SEGMENT_LABELS` in that order, so the mapping is
    deterministic for a fitted model:

    ==== ======================
    Rank Label
    ==== ======================
    1    High Value Regular
    2    Potential High Value
    3    Consistent Medium
    4    Occasional Small
    5    At Risk
    ==== ======================

    When the population has fewer distinct donors than ``n_clusters`` the
    surviving ranks are spread across the label list, so the top cluster is
    always "High Value Regular" and the bottom one "At Risk".

    Parameters
    ----------
    n_clusters : int, default=5
        Number of clusters, between 1 and 5.
    n_init : int, default=10
        Number of k-means restarts.
    random_state : int or None, default=None
        Seed for centroid initialisation.

    Attributes
    ----------
    estimator_ : Pipeline or None
        ``StandardScaler`` followed by ``KMeans``; ``None`` when fewer than
        two donors were seen (every donor is then "Consistent Medium").
    cluster_labels_ : dict of int -> str
        Segment label of each k-means cluster index.
    cluster_values_ : ndarray of shape (n_clusters_,)
        Mean lifetime value of each cluster.
    labels_ : ndarray of str
        Segment of every training donor.

    Examples
    --------
    >>> import numpy as np
    >>> from donorscope.models import DonorSegmenter
    >>> X = np.array([[1, 10], [2, 20], [5, 50], [8, 80], [12, 150]], dtype=float)
    >>> ltv = X[:, 0] * X[:, 1]
    >>> seg = DonorSegmenter(random_state=0).fit(X, ltv)
    >>> seg.predict(X[[-1]])[0]
    'High Value Regular'
    """

    def __init__(
        self,
        n_clusters: int = 5,
        n_init: int = 10,
        random_state: Optional[int] = None,
    ):
        self.n_clusters = n_clusters
        self.n_init = n_init
        self.random_state = random_state

    def fit(self, X, y=None):
        """Cluster donors and build the cluster → segment map.

        Parameters
        ----------
        X : array-like of shape (n_samples, n_features)
            Donor feature matrix.
        y : array-like of shape (n_samples,), default=None
            Lifetime value of each donor, used only to rank clusters. When
            omitted, ``X[:, 0] * X[:, 1]`` (gift count × average gift, which
            is lifetime value for the standard feature layout) is used.
        """
        if not 1 <= self.n_clusters <= len(SEGMENT_LABELS):
            raise ValueError(
                f"`n_clusters` must be between 1 and {len(SEGMENT_LABELS)}, "
                f"got {self.n_clusters!r}."
            )
        if y is None:
            X = validate_data(self, X, reset=True, ensure_min_samples=0)
            values = X[:, 0] * X[:, 1] if X.shape[1] >= 2 else X[:, 0]
        else:
            X, values = validate_data(
                self, X, y, reset=True, y_numeric=True, ensure_min_samples=0
            )
        values = np.asarray(values, dtype=float)

        if X.shape[0] < MIN_TRAINING_SAMPLES:
            warnings.warn(
                f"DonorSegmenter received {X.shape[0]} training sample(s); "
                f"every donor will be labelled {NEUTRAL_SEGMENT!r}.",
                DegenerateTrainingWarning,
                stacklevel=2,
            )
            self.estimator_ = None
            self.cluster_labels_ = {0: NEUTRAL_SEGMENT}
            self.cluster_values_ = np.array([float(values.mean()) if values.size else 0.0])
            self.labels_ = np.full(X.shape[0], NEUTRAL_SEGMENT, dtype=object)
            return self

        n_distinct = np.unique(X, axis=0).shape[0]
        k = min(self.n_clusters, n_distinct)
        self.estimator_ = Pipeline(
            [
                ("scale", StandardScaler()),
                (
                    "kmeans",
                    KMeans(n_clusters=k, n_init=self.n_init, random_state=self.random_state),
                ),
            ]
        )
        clusters = self.estimator_.fit_predict(X)

        cluster_values = np.array(
            [
                values[clusters == c].mean() if np.any(clusters == c) else -np.inf
                for c in range(k)
            ]
        )
        order = np.argsort(-cluster_values, kind="stable")
        self.cluster_labels_ = {
            int(cluster): _rank_to_label(rank, k) for rank, cluster in enumerate(order)
        }
        self.cluster_values_ = cluster_values
        self.labels_ = self._labels_for(clusters)
        return self

    def _labels_for(self, clusters) -> np.ndarray:
        return np.array([self.cluster_labels_[int(c)] for c in clusters], dtype=object)

    def predict(self, X) -> np.ndarray:
        """Return the segment label of each donor in ``X``."""
        check_is_fitted(self, ["cluster_labels_"])
        X = validate_data(self, X, reset=False)
        if self.estimator_ is None:
            return np.full(X.shape[0], NEUTRAL_SEGMENT, dtype=object)
        return self._labels_for(self.estimator_.predict(X))

    def fit_predict(self, X, y=None, **kwargs):
        return self.fit(X, y).labels_
