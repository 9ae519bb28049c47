"""
donorscope.base
===============
Core base classes shared by every DonorScope learner.

Each concrete learner only decides *which* scikit-learn estimator it wraps
(``_build_estimator``); fitting, input validation, and the small-population
fallback live here so that swapping one algorithm for another never touches
the orchestration code.
"""

from __future__ import annotations

import warnings
from abc import ABCMeta, abstractmethod

import numpy as np
from sklearn.base import BaseEstimator, ClassifierMixin, RegressorMixin
from sklearn.utils.validation import check_is_fitted, validate_data

from .exceptions import DegenerateTrainingWarning

MIN_TRAINING_SAMPLES = 2


class BaseDonorEstimator(BaseEstimator, metaclass=ABCMeta):
    """
    Base class for all DonorScope learners.

    Learners are trained once over the whole donor population.  With fewer
    than ``MIN_TRAINING_SAMPLES`` donors they fit a constant fallback
    instead of raising, and emit :class:`DegenerateTrainingWarning`.
    """

    def _validate_training_data(self, X, y):
        X, y = validate_data(
            self, X, y, reset=True, y_numeric=True, ensure_min_samples=0
        )
        return X, np.asarray(y, dtype=float)

    def _too_few_samples(self, n_samples: int) -> bool:
        if n_samples < MIN_TRAINING_SAMPLES:
            warnings.warn(
                f"{type(self).__name__} received {n_samples} training sample(s); "
                f"at least {MIN_TRAINING_SAMPLES} are needed, predicting a "
                f"constant instead.",
                DegenerateTrainingWarning,
                stacklevel=3,
            )
            return True
        return False

    @abstractmethod
    def _build_estimator(self):
        """Return the unfitted backend estimator configured from ``self``."""


class BaseDonorRegressor(RegressorMixin, BaseDonorEstimator):
    """Base class for regressors over the donor feature space.

    Attributes
    ----------
    estimator_ : estimator or None
        Fitted backend, ``None`` when the constant fallback is in use.
    fallback_ : float
        Mean training target (0.0 for an empty population).
    n_features_in_ : int
        Number of features seen during :meth:`fit`.
    """

    def fit(self, X, y):
        """Fit the regressor to the donor feature matrix ``X`` and target ``y``."""
        X, y = self._validate_training_data(X, y)
        self.fallback_ = float(np.mean(y)) if y.size else 0.0
        if self._too_few_samples(X.shape[0]):
            self.estimator_ = None
        else:
            self.estimator_ = self._build_estimator()
            self.estimator_.fit(X, y)
            self._after_fit(X, y)
        return self

    def _after_fit(self, X, y) -> None:
        """Hook for learners that derive extra fitted attributes."""

    def predict(self, X) -> np.ndarray:
        check_is_fitted(self, ["fallback_"])
        X = validate_data(self, X, reset=False)
        if self.estimator_ is None:
            raw = np.full(X.shape[0], self.fallback_, dtype=float)
        else:
            raw = np.asarray(self.estimator_.predict(X), dtype=float)
        return self._postprocess(raw)

    def _postprocess(self, raw: np.ndarray) -> np.ndarray:
        return raw


class BaseDonorClassifier(ClassifierMixin, BaseDonorEstimator):
    """Base class for probability classifiers over the donor feature space.

    ``fit`` accepts either hard 0/1 labels or soft rates in [0, 1]; concrete
    learners decide how to turn them into class labels.  The positive-class
    probability is the business signal, so :meth:`predict_proba` is the
    method the prediction engine reads.

    Attributes
    ----------
    classes_ : ndarray of shape (2,)
        Always ``[0, 1]``.
    estimator_ : estimator or None
        Fitted backend, ``None`` when the constant fallback is in use.
    fallback_ : float
        Mean training rate clipped to [0, 1].
    """

    def fit(self, X, y):
        """Fit the classifier to ``X`` and labels or rates ``y``."""
        X, y = self._validate_training_data(X, y)
        self.classes_ = np.array([0, 1])
        self.fallback_ = float(np.clip(np.mean(y), 0.0, 1.0)) if y.size else 0.0
        if self._too_few_samples(X.shape[0]):
            self.estimator_ = None
            return self
        self.estimator_ = self._fit_estimator(X, y)
        return self

    @abstractmethod
    def _fit_estimator(self, X, y):
        """Fit and return the backend, or ``None`` to keep the fallback."""

    @staticmethod
    def _expand_soft_labels(X, y):
        """Turn rates ``y`` into weighted hard-label rows.

        Each donor becomes one positive row weighted ``y`` and one negative
        row weighted ``1 - y``; zero-weight rows are dropped.  Maximising the
        weighted log-likelihood of the expanded set is the same as fitting
        the fractional targets directly.

        Returns
        -------
        X_expanded, y_expanded, sample_weight : ndarray
        """
        n = X.shape[0]
        X_expanded = np.vstack([X, X])
        y_expanded = np.concatenate([np.ones(n, dtype=int), np.zeros(n, dtype=int)])
        weights = np.concatenate([y, 1.0 - y])
        keep = weights > 0
        return X_expanded[keep], y_expanded[keep], weights[keep]

    def _single_class_fallback(self, reason: str):
        warnings.warn(
            f"{type(self).__name__}: {reason}; predicting the constant "
            f"rate {self.fallback_:.4f}.",
            DegenerateTrainingWarning,
            stacklevel=4,
        )
        return None

    def predict_proba(self, X) -> np.ndarray:
        check_is_fitted(self, ["fallback_"])
        X = validate_data(self, X, reset=False)
        if self.estimator_ is None:
            positive = np.full(X.shape[0], self.fallback_, dtype=float)
        else:
            positive = self.estimator_.predict_proba(X)[:, 1]
        positive = np.clip(positive, 0.0, 1.0)
        return np.column_stack([1.0 - positive, positive])

    def predict(self, X) -> np.ndarray:
        proba = self.predict_proba(X)[:, 1]
        return self.classes_[(proba >= 0.5).astype(int)]
