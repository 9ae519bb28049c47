"""
donorscope.models
=================
Single-purpose base learners: lifetime value, campaign response, behavioural
segment, ask amount, and lapse risk.
"""

from ._lifetime import LifetimeValueRegressor
from ._response import CampaignResponseClassifier
from ._segment import SEGMENT_LABELS, DonorSegmenter
from ._ask import AskAmountRegressor
from ._risk import RiskScorer

__all__ = [
    "LifetimeValueRegressor",
    "CampaignResponseClassifier",
    "SEGMENT_LABELS",
    "DonorSegmenter",
    "AskAmountRegressor",
    "RiskScorer",
]
