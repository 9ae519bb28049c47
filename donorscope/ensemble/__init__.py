"""
donorscope.ensemble
===================
Ensemble regressors, the variance-based combiner, and the recurrent
monthly giving forecaster.
"""

from ._learners import (
    AdaBoostEnsembleRegressor,
    GradientBoostingEnsembleRegressor,
    LeafwiseBoostingRegressor,
    RandomForestEnsembleRegressor,
)
from ._combiner import EnsembleCombination, combine_predictions
from ._sequence import (
    ForecastResult,
    SequenceForecaster,
    linear_trend,
    seasonal_decomposition,
)

__all__ = [
    "AdaBoostEnsembleRegressor",
    "GradientBoostingEnsembleRegressor",
    "LeafwiseBoostingRegressor",
    "RandomForestEnsembleRegressor",
    "EnsembleCombination",
    "combine_predictions",
    "ForecastResult",
    "SequenceForecaster",
    "linear_trend",
    "seasonal_decomposition",
]
