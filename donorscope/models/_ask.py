"""
donorscope.models._ask
======================
Recommended ask amount from a single regression tree.
"""

from __future__ import annotations

from typing import Optional

import numpy as np
from sklearn.tree import DecisionTreeRegressor

from ..base import BaseDonorRegressor


class AskAmountRegressor(BaseDonorRegressor):
    """Recommend the next ask amount, trained on each donor's average gift.

    A single :class:`~sklearn.tree.DecisionTreeRegressor` keeps the
    recommendation explainable to gift officers: every ask traces back to
    a short chain of threshold rules on the donor features.

    Parameters
    ----------
    max_depth : int or None, default=10
        Maximum tree depth.
    min_samples_split : int, default=5
        Minimum donors required to split a node.
    random_state : int or None, default=None
        Seed used to break ties between equally good splits.
    """

    def __init__(
        self,
        max_depth: Optional[int] = 10,
        min_samples_split: int = 5,
        random_state: Optional[int] = None,
    ):
        self.max_depth = max_depth
        self.min_samples_split = min_samples_split
        self.random_state = random_state

    def _build_estimator(self):
        return DecisionTreeRegressor(
            max_depth=self.max_depth,
            min_samples_split=self.min_samples_split,
            random_state=self.random_state,
        )

    def _postprocess(self, raw: np.ndarray) -> np.ndarray:
        return np.maximum(raw, 0.0)
