"""
donorscope.models._response
===========================
Campaign-response probability from a logistic model fitted on response rates.

Training targets are *rates* (share of outreach a donor answered), not hard
labels.  Rather than thresholding them and throwing information away, each
donor is expanded into one positive and one negative row weighted by the
rate and its complement.  Maximising the weighted log-likelihood of that
expanded set is exactly logistic regression on fractional targets, so the
fitted probability is calibrated to the observed response rates.
"""

from __future__ import annotations

from typing import Optional

import numpy as np
from sklearn.linear_model import LogisticRegression
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import StandardScaler

from ..base import BaseDonorClassifier
from ..utils._validation import validate_unit_interval


class CampaignResponseClassifier(BaseDonorClassifier):
    """Predict the probability that a donor responds to the next campaign.

    Parameters
    ----------
    C : float, default=1.0
        Inverse L2 regularisation strength of the logistic model.
    max_iter : int, default=1000
        Maximum solver iterations.
    random_state : int or None, default=None
        Passed to :class:`~sklearn.linear_model.LogisticRegression`.

    Attributes
    ----------
    estimator_ : Pipeline or None
        ``StandardScaler`` followed by ``LogisticRegression``; ``None``
        when the constant fallback is in use (fewer than two donors, or a
        population where nobody / everybody responded).
    fallback_ : float
        Mean training response rate.

    Examples
    --------
    >>> import numpy as np
    >>> from donorscope.models import CampaignResponseClassifier
    >>> rng = np.random.default_rng(1)
    >>> X = rng.normal(size=(80, 6))
    >>> rates = 1 / (1 + np.exp(-X[:, 0]))
    >>> clf = CampaignResponseClassifier().fit(X, rates)
    >>> p = clf.predict_proba(X)[:, 1]
    >>> bool(((p >= 0) & (p <= 1)).all())
    True
    """

    def __init__(
        self,
        C: float = 1.0,
        max_iter: int = 1000,
        random_state: Optional[int] = None,
    ):
        self.C = C
        self.max_iter = max_iter
        self.random_state = random_state

    def _build_estimator(self):
        return Pipeline(
            [
                ("scale", StandardScaler()),
                (
                    "logistic",
                    LogisticRegression(
                        C=self.C,
                        max_iter=self.max_iter,
                        random_state=self.random_state,
                    ),
                ),
            ]
        )

    def _fit_estimator(self, X, y):
        validate_unit_interval(y, "y")
        X_expanded, y_expanded, weights = self._expand_soft_labels(X, y)
        if np.unique(y_expanded).size < 2:
            return self._single_class_fallback("nobody or everybody responded")

        estimator = self._build_estimator()
        estimator.fit(X_expanded, y_expanded, logistic__sample_weight=weights)
        return estimator
