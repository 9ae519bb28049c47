"""
donorscope.ensemble._learners
=============================
The four regressors whose outputs the ensemble combiner aggregates.

All four see the same feature matrix and target.  They are deliberately
different tree-ensemble families (level-wise boosting, leaf-wise
histogram boosting, bagging, adaptive boosting) so that their
disagreement carries information about how well the population pins down
a given donor.
"""

from __future__ import annotations

from typing import Dict, Optional, Sequence

import numpy as np
from sklearn.ensemble import (
    AdaBoostRegressor,
    GradientBoostingRegressor,
    HistGradientBoostingRegressor,
    RandomForestRegressor,
)
from sklearn.inspection import permutation_importance
from sklearn.utils.validation import check_is_fitted

from ..base import BaseDonorRegressor
from ..preprocessing import FEATURE_NAMES


def _normalise(importances: np.ndarray) -> np.ndarray:
    importances = np.clip(np.asarray(importances, dtype=float), 0.0, None)
    total = importances.sum()
    if total <= 0:
        return np.zeros_like(importances)
    return importances / total


class _FeatureImportanceMixin:
    """Expose ``get_feature_importance`` keyed by feature name."""

    def _feature_names(self, feature_names: Optional[Sequence[str]] = None):
        if feature_names is not None:
            return list(feature_names)
        if hasattr(self, "feature_names_in_"):
            return [str(name) for name in self.feature_names_in_]
        if self.n_features_in_ == len(FEATURE_NAMES):
            return list(FEATURE_NAMES)
        return [f"x{i}" for i in range(self.n_features_in_)]

    def get_feature_importance(self, feature_names=None) -> Dict[str, float]:
        """Return normalised feature importances as ``{feature_name: weight}``.

        Weights sum to 1, or are all 0 when the model never split (for
        example the constant fallback).
        """
        check_is_fitted(self, ["feature_importances_"])
        names = self._feature_names(feature_names)
        if len(names) != self.feature_importances_.shape[0]:
            raise ValueError(
                f"Expected {self.feature_importances_.shape[0]} feature names, "
                f"got {len(names)}."
            )
        return {name: float(w) for name, w in zip(names, self.feature_importances_)}


class GradientBoostingEnsembleRegressor(_FeatureImportanceMixin, BaseDonorRegressor):
    """Boosted trees, variant A: level-wise growth with row and column subsampling.

    Parameters
    ----------
    n_estimators : int, default=100
    learning_rate : float, default=0.1
    max_depth : int, default=6
    subsample : float, default=0.8
        Fraction of donors per boosting stage.
    max_features : float, default=0.8
        Fraction of features considered per split.
    random_state : int or None, default=None

    Attributes
    ----------
    feature_importances_ : ndarray of shape (n_features,)
        Normalised impurity-based importances.
    """

    def __init__(
        self,
        n_estimators: int = 100,
        learning_rate: float = 0.1,
        max_depth: int = 6,
        subsample: float = 0.8,
        max_features: float = 0.8,
        random_state: Optional[int] = None,
    ):
        self.n_estimators = n_estimators
        self.learning_rate = learning_rate
        self.max_depth = max_depth
        self.subsample = subsample
        self.max_features = max_features
        self.random_state = random_state

    def fit(self, X, y):
        super().fit(X, y)
        if self.estimator_ is None:
            self.feature_importances_ = np.zeros(self.n_features_in_)
        return self

    def _build_estimator(self):
        return GradientBoostingRegressor(
            n_estimators=self.n_estimators,
            learning_rate=self.learning_rate,
            max_depth=self.max_depth,
            subsample=self.subsample,
            max_features=self.max_features,
            random_state=self.random_state,
        )

    def _after_fit(self, X, y) -> None:
        self.feature_importances_ = _normalise(self.estimator_.feature_importances_)


class LeafwiseBoostingRegressor(_FeatureImportanceMixin, BaseDonorRegressor):
    """Boosted trees, variant B: histogram-based, leaf-wise growth.

    Wraps :class:`~sklearn.ensemble.HistGradientBoostingRegressor`, whose
    trees grow best-first up to ``max_leaf_nodes`` leaves.  That backend has
    no impurity importances, so permutation importances on the training
    data are computed once at fit time.

    Parameters
    ----------
    max_iter : int, default=100
    learning_rate : float, default=0.05
    max_leaf_nodes : int, default=31
    min_samples_leaf : int, default=5
    n_repeats : int, default=5
        Permutation rounds per feature for the importance estimate.
    random_state : int or None, default=None

    Attributes
    ----------
    feature_importances_ : ndarray of shape (n_features,)
        Normalised permutation importances (negative scores clipped to 0).
    """

    def __init__(
        self,
        max_iter: int = 100,
        learning_rate: float = 0.05,
        max_leaf_nodes: int = 31,
        min_samples_leaf: int = 5,
        n_repeats: int = 5,
        random_state: Optional[int] = None,
    ):
        self.max_iter = max_iter
        self.learning_rate = learning_rate
        self.max_leaf_nodes = max_leaf_nodes
        self.min_samples_leaf = min_samples_leaf
        self.n_repeats = n_repeats
        self.random_state = random_state

    def fit(self, X, y):
        super().fit(X, y)
        if self.estimator_ is None:
            self.feature_importances_ = np.zeros(self.n_features_in_)
        return self

    def _build_estimator(self):
        return HistGradientBoostingRegressor(
            max_iter=self.max_iter,
            learning_rate=self.learning_rate,
            max_leaf_nodes=self.max_leaf_nodes,
            min_samples_leaf=self.min_samples_leaf,
            early_stopping=False,
            random_state=self.random_state,
        )

    def _after_fit(self, X, y) -> None:
        result = permutation_importance(
            self.estimator_,
            X,
            y,
            scoring="neg_mean_squared_error",
            n_repeats=self.n_repeats,
            random_state=self.random_state,
        )
        self.feature_importances_ = _normalise(result.importances_mean)


class RandomForestEnsembleRegressor(BaseDonorRegressor):
    """Bagged regression trees with square-root feature subsampling.

    Parameters
    ----------
    n_estimators : int, default=100
    max_depth : int or None, default=10
    min_samples_split : int, default=2
    max_features : {"sqrt", "log2"}, int or float, default="sqrt"
    random_state : int or None, default=None
    """

    def __init__(
        self,
        n_estimators: int = 100,
        max_depth: Optional[int] = 10,
        min_samples_split: int = 2,
        max_features="sqrt",
        random_state: Optional[int] = None,
    ):
        self.n_estimators = n_estimators
        self.max_depth = max_depth
        self.min_samples_split = min_samples_split
        self.max_features = max_features
        self.random_state = random_state

    def _build_estimator(self):
        return RandomForestRegressor(
            n_estimators=self.n_estimators,
            max_depth=self.max_depth,
            min_samples_split=self.min_samples_split,
            max_features=self.max_features,
            random_state=self.random_state,
        )


class AdaBoostEnsembleRegressor(BaseDonorRegressor):
    """Adaptive boosting (AdaBoost.R2) over shallow regression trees.

    Parameters
    ----------
    n_estimators : int, default=50
    learning_rate : float, default=0.1
    loss : {"linear", "square", "exponential"}, default="linear"
    random_state : int or None, default=None
    """

    def __init__(
        self,
        n_estimators: int = 50,
        learning_rate: float = 0.1,
        loss: str = "linear",
        random_state: Optional[int] = None,
    ):
        self.n_estimators = n_estimators
        self.learning_rate = learning_rate
        self.loss = loss
        self.random_state = random_state

    def _build_estimator(self):
        return AdaBoostRegressor(
            n_estimators=self.n_estimators,
            learning_rate=self.learning_rate,
            loss=self.loss,
            random_state=self.random_state,
        )
