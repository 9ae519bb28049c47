"""
DonorScope
==========
Predictive donor analytics for nonprofit fundraising teams: lifetime value,
campaign response, ask amounts, risk, segmentation and monthly giving
forecasts, built on scikit-learn.
"""

__version__ = "0.1.0"
__author__ = "DonorScope Contributors"

from . import preprocessing, models, ensemble, metrics, utils, datasets
from .engine import (
    DonorPredictionEngine,
    EngineStatus,
    EnsemblePredictionResult,
    ModelState,
    PredictionResult,
)
from .exceptions import (
    DegenerateTrainingWarning,
    DonorNotFoundError,
    NotReadyError,
    TrainingCancelledError,
    TrainingError,
)
from .records import (
    Communication,
    Donation,
    DonorRecord,
    DonorRepository,
    EventParticipation,
    InMemoryDonorRepository,
)

__all__ = [
    "DonorPredictionEngine",
    "EngineStatus",
    "EnsemblePredictionResult",
    "ModelState",
    "PredictionResult",
    "DegenerateTrainingWarning",
    "DonorNotFoundError",
    "NotReadyError",
    "TrainingCancelledError",
    "TrainingError",
    "Communication",
    "Donation",
    "DonorRecord",
    "DonorRepository",
    "EventParticipation",
    "InMemoryDonorRepository",
]
