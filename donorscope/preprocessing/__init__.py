"""
donorscope.preprocessing
========================
Donor-record featurization, training targets, and rule-based lifecycle
stages.
"""

from ._features import (
    FEATURE_NAMES,
    N_FEATURES,
    DonorFeatureExtractor,
    DonorTimeSeriesExtractor,
    best_communication_hour,
    extract_features,
    extract_time_series,
    interest_topics,
)
from ._targets import TARGET_NAMES, build_training_targets, risk_label
from ._lifecycle import (
    LIFECYCLE_STAGES,
    assign_lifecycle_stage,
    summarize_lifecycle_segments,
)

__all__ = [
    "FEATURE_NAMES",
    "N_FEATURES",
    "DonorFeatureExtractor",
    "DonorTimeSeriesExtractor",
    "best_communication_hour",
    "extract_features",
    "extract_time_series",
    "interest_topics",
    "TARGET_NAMES",
    "build_training_targets",
    "risk_label",
    "LIFECYCLE_STAGES",
    "assign_lifecycle_stage",
    "summarize_lifecycle_segments",
]
