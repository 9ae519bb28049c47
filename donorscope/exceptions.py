"""
donorscope.exceptions
=====================
Errors and warnings raised by the prediction engine and its estimators.
"""

from sklearn.exceptions import NotFittedError


class DonorNotFoundError(LookupError):
    """Raised when a donor id does not resolve in the donor repository."""

    def __init__(self, donor_id):
        self.donor_id = donor_id
        super().__init__(f"Donor {donor_id!r} not found.")


class NotReadyError(NotFittedError):
    """Raised when a prediction is requested before any successful training pass.

    Subclasses :class:`sklearn.exceptions.NotFittedError` so callers that
    already guard estimator calls with ``except NotFittedError`` keep working.
    """


class TrainingError(RuntimeError):
    """Raised when a learner fails to fit; the previous model state is kept."""


class TrainingCancelledError(TrainingError):
    """Raised when a training pass is aborted through its cancel event."""


class DegenerateTrainingWarning(UserWarning):
    """Training data was too small or too uniform for the configured learner.

    The estimator still fits, falling back to a constant prediction.
    """
