"""
donorscope.models._risk
=======================
Lapse-risk scoring with a small feed-forward neural network.
"""

from __future__ import annotations

from typing import Optional, Tuple

import numpy as np
from sklearn.neural_network import MLPClassifier
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import StandardScaler

from ..base import BaseDonorClassifier
from ..utils._validation import validate_unit_interval


class RiskScorer(BaseDonorClassifier):
    """Score how likely a donor is to drift away, as a probability in [0, 1].

    Wraps :class:`~sklearn.neural_network.MLPClassifier`: two ReLU hidden
    layers and a logistic output unit trained on log-loss (binary
    cross-entropy).  The continuous risk label produced by
    :func:`donorscope.preprocessing.risk_label` is used as a soft target:
    every donor contributes an at-risk row weighted by its label and a
    retained row weighted by the complement, so :meth:`predict_proba`
    tracks the label itself rather than a thresholded version of it.

    Parameters
    ----------
    hidden_layer_sizes : tuple of int, default=(32, 16)
        Width of each hidden layer.
    alpha : float, default=1e-4
        L2 penalty.
    learning_rate_init : float, default=1e-3
        Adam step size.
    max_iter : int, default=500
        Maximum training epochs.
    random_state : int or None, default=None
        Seed for weight initialisation and batch shuffling.

    Attributes
    ----------
    estimator_ : Pipeline or None
        ``StandardScaler`` followed by ``MLPClassifier``.  ``None`` when
        fewer than two donors were seen or every risk label is 0 (or every
        one is 1).
    fallback_ : float
        Mean risk label, used as the constant prediction.
    """

    def __init__(
        self,
        hidden_layer_sizes: Tuple[int, ...] = (32, 16),
        alpha: float = 1e-4,
        learning_rate_init: float = 1e-3,
        max_iter: int = 500,
        random_state: Optional[int] = None,
    ):
        self.hidden_layer_sizes = hidden_layer_sizes
        self.alpha = alpha
        self.learning_rate_init = learning_rate_init
        self.max_iter = max_iter
        self.random_state = random_state

    def _build_estimator(self):
        return Pipeline(
            [
                ("scale", StandardScaler()),
                (
                    "mlp",
                    MLPClassifier(
                        hidden_layer_sizes=self.hidden_layer_sizes,
                        activation="relu",
                        solver="adam",
                        alpha=self.alpha,
                        learning_rate_init=self.learning_rate_init,
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
            return self._single_class_fallback(
                "every risk label is 0 or every risk label is 1"
            )

        estimator = self._build_estimator()
        estimator.fit(X_expanded, y_expanded, mlp__sample_weight=weights)
        return estimator
