"""
donorscope.engine
=================
The prediction engine: owns the fitted state of every learner, trains them
over the donor population, and assembles per-donor prediction results.

Lifecycle::

    UNTRAINED --train_models()--> TRAINING --success--> TRAINED
                                     |                     |
                                     +--failure/cancel-----+--> previous status

All fitted learners live in one immutable :class:`ModelState`.  A training
pass builds a complete new state off to the side and publishes it with a
single reference swap, so predictions running concurrently always see either
the old or the new model set, never a mix.  A failed or cancelled pass
leaves the previously published state untouched.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from dataclasses import asdict, dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Callable, Dict, List, Mapping, Optional, Tuple, Union

import numpy as np
import pandas as pd
from sklearn.base import clone

from .ensemble import (
    AdaBoostEnsembleRegressor,
    GradientBoostingEnsembleRegressor,
    LeafwiseBoostingRegressor,
    RandomForestEnsembleRegressor,
    SequenceForecaster,
    combine_predictions,
)
from .exceptions import (
    DonorNotFoundError,
    NotReadyError,
    TrainingCancelledError,
    TrainingError,
)
from .models import (
    AskAmountRegressor,
    CampaignResponseClassifier,
    DonorSegmenter,
    LifetimeValueRegressor,
    RiskScorer,
)
from .preprocessing import (
    FEATURE_NAMES,
    N_FEATURES,
    DonorFeatureExtractor,
    DonorTimeSeriesExtractor,
    assign_lifecycle_stage,
    best_communication_hour,
    build_training_targets,
    extract_features,
    extract_time_series,
    interest_topics,
)
from .records import DonorRecord, DonorRepository
from .utils._validation import (
    effective_n_jobs,
    resolve_reference_date,
    validate_positive_int,
)

logger = logging.getLogger(__name__)

BASE_LEARNERS = ("lifetime_value", "campaign_response", "segment", "ask_amount", "risk")
ENSEMBLE_LEARNERS = ("gradient_boosting", "leafwise_boosting", "random_forest", "adaboost")
FORECASTER = "forecaster"

# Training target column for each base learner.
BASE_TARGETS = {
    "lifetime_value": "lifetime_value",
    "campaign_response": "campaign_response",
    "segment": "lifetime_value",
    "ask_amount": "average_amount",
    "risk": "risk",
}
ENSEMBLE_TARGETS = ("lifetime_value", "average_amount")

# Feature importance is reported from this learner alone, not averaged.
IMPORTANCE_SOURCE = "gradient_boosting"

EnsembleTarget = Union[str, Callable[[DonorRecord], float]]


class EngineStatus(str, Enum):
    UNTRAINED = "untrained"
    TRAINING = "training"
    TRAINED = "trained"


@dataclass(frozen=True)
class ModelState:
    """Every fitted learner from one training pass, plus its metadata.

    Attributes
    ----------
    learners : mapping of str -> estimator
        Fitted base and ensemble learners keyed by the names in
        ``BASE_LEARNERS`` and ``ENSEMBLE_LEARNERS``.
    forecaster : SequenceForecaster
        Fitted monthly giving forecaster.
    reference_date : pd.Timestamp
        "Today" used for feature extraction during training; predictions
        against this state use the same date.
    trained_at : pd.Timestamp
        Wall-clock time the state was built.
    n_donors : int
        Size of the training population.
    ensemble_target : str
        Name of the ensemble learners' training target.
    n_months : int
        Length of the monthly giving series the forecaster was trained on;
        prediction series are extracted with the same length.
    horizon : int
        Months forecast by the forecaster.
    """

    learners: Mapping[str, object]
    forecaster: object
    reference_date: pd.Timestamp
    trained_at: pd.Timestamp
    n_donors: int
    ensemble_target: str
    n_months: int
    horizon: int


@dataclass(frozen=True)
class EnsemblePredictionResult:
    """Ensemble estimate and giving forecast for one feature vector."""

    predicted_amount: float
    confidence_score: float
    model_contributions: Dict[str, float]
    feature_importance: Dict[str, float]
    uncertainty_range: Tuple[float, float]
    forecast: List[float]
    forecast_confidence: List[float]
    seasonality: List[float]
    trend: List[float]

    def to_dict(self) -> dict:
        out = asdict(self)
        out["uncertainty_range"] = list(self.uncertainty_range)
        return out


@dataclass(frozen=True)
class PredictionResult:
    """Everything the engine predicts about one donor, ready for serialisation."""

    donor_id: object
    segment: str
    lifecycle_stage: Optional[str]
    lifetime_value: float
    campaign_response: float
    recommended_amount: float
    best_communication_hour: int
    interest_topics: List[str]
    risk_score: float
    predicted_amount: float
    confidence_score: float
    model_contributions: Dict[str, float]
    feature_importance: Dict[str, float]
    uncertainty_range: Tuple[float, float]
    forecast: List[float] = field(default_factory=list)
    forecast_confidence: List[float] = field(default_factory=list)
    seasonality: List[float] = field(default_factory=list)
    trend: List[float] = field(default_factory=list)

    def to_dict(self) -> dict:
        out = asdict(self)
        out["uncertainty_range"] = list(self.uncertainty_range)
        return out


def _feature_importance(learner) -> Dict[str, float]:
    getter = getattr(learner, "get_feature_importance", None)
    if getter is not None:
        return getter()
    importances = getattr(learner, "feature_importances_", None)
    if importances is None:
        return {}
    return {name: float(w) for name, w in zip(FEATURE_NAMES, importances)}


def _positive_probability(learner, X) -> float:
    if hasattr(learner, "predict_proba"):
        return float(learner.predict_proba(X)[0, 1])
    return float(np.clip(learner.predict(X)[0], 0.0, 1.0))


def _check_cancelled(cancel_event: Optional[threading.Event], stage: str) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise TrainingCancelledError(f"Training cancelled before {stage}.")


def _fit_one(name, estimator, args, kwargs, cancel_event):
    _check_cancelled(cancel_event, f"fitting {name!r}")
    started = time.perf_counter()
    try:
        estimator.fit(*args, **kwargs)
    except Exception as exc:
        logger.exception("Fitting %r failed", name)
        raise TrainingError(f"Failed to fit {name!r}: {exc}") from exc
    logger.debug("Fitted %r in %.2fs", name, time.perf_counter() - started)
    _check_cancelled(cancel_event, f"storing {name!r}")
    return name, estimator


class DonorPredictionEngine:
    """Train every donor model over the population and predict for one donor.

    Parameters
    ----------
    repository : DonorRepository
        Source of donor records (``get_all_donors`` / ``get_donor_by_id``).
    horizon : int, default=12
        Months forecast by the sequence forecaster.
    seasonal_period : int, default=7
        Period of the seasonality read-out on the monthly series.
    n_months : int, default=12
        Length of the trailing monthly giving series.
    ensemble_target : {"lifetime_value", "average_amount"} or callable, \
default="lifetime_value"
        Target of the four ensemble regressors. A callable receives a
        :class:`DonorRecord` and returns a float.
    reference_date : datetime-like or None, default=None
        Fixed "today" for feature extraction. ``None`` uses the date of each
        training pass.
    n_jobs : int or None, default=None
        Worker threads used to fit learners in parallel. ``1`` fits them one
        after another in the calling thread; negative values count back from
        the number of CPUs (``-1`` uses all of them); ``None`` lets
        :class:`~concurrent.futures.ThreadPoolExecutor` pick.
    random_state : int or None, default=None
        Seed forwarded to every default learner.
    learners : mapping of str -> estimator, optional
        Replacements for default learners, keyed by a name from
        ``BASE_LEARNERS``, ``ENSEMBLE_LEARNERS`` or ``"forecaster"``.
        Estimators are cloned on every training pass.

    Examples
    --------
    >>> from donorscope import DonorPredictionEngine
    >>> from donorscope.utils.testing import make_donor_repository
    >>> repo = make_donor_repository(n_donors=40, random_state=0)
    >>> engine = DonorPredictionEngine(repo, n_jobs=1, random_state=0)
    >>> _ = engine.train_models()
    >>> result = engine.predict_for_donor("D00001")
    >>> 0.0 <= result.risk_score <= 1.0
    True
    """

    def __init__(
        self,
        repository: DonorRepository,
        horizon: int = 12,
        seasonal_period: int = 7,
        n_months: int = 12,
        ensemble_target: EnsembleTarget = "lifetime_value",
        reference_date=None,
        n_jobs: Optional[int] = None,
        random_state: Optional[int] = None,
        learners: Optional[Mapping[str, object]] = None,
    ):
        self.repository = repository
        self.horizon = horizon
        self.seasonal_period = seasonal_period
        self.n_months = n_months
        self.ensemble_target = ensemble_target
        self.reference_date = reference_date
        self.n_jobs = n_jobs
        self.random_state = random_state
        self.learners = learners

        self._state: Optional[ModelState] = None
        self._status = EngineStatus.UNTRAINED
        self._lock = threading.Lock()
        self._training_lock = threading.Lock()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def status(self) -> EngineStatus:
        return self._status

    @property
    def state(self) -> Optional[ModelState]:
        """The currently published model state, or ``None`` before training."""
        return self._state

    def _require_state(self, state: Optional[ModelState] = None) -> ModelState:
        state = state if state is not None else self._state
        if state is None:
            raise NotReadyError(
                "DonorPredictionEngine has no trained models; call train_models() first."
            )
        return state

    # ------------------------------------------------------------------
    # Training
    # ------------------------------------------------------------------

    def _default_learners(self) -> Dict[str, object]:
        seed = self.random_state
        return {
            "lifetime_value": LifetimeValueRegressor(random_state=seed),
            "campaign_response": CampaignResponseClassifier(random_state=seed),
            "segment": DonorSegmenter(random_state=seed),
            "ask_amount": AskAmountRegressor(random_state=seed),
            "risk": RiskScorer(random_state=seed),
            "gradient_boosting": GradientBoostingEnsembleRegressor(random_state=seed),
            "leafwise_boosting": LeafwiseBoostingRegressor(random_state=seed),
            "random_forest": RandomForestEnsembleRegressor(random_state=seed),
            "adaboost": AdaBoostEnsembleRegressor(random_state=seed),
            FORECASTER: SequenceForecaster(
                seasonal_period=self.seasonal_period, random_state=seed
            ),
        }

    def _build_learners(self) -> Dict[str, object]:
        learners = self._default_learners()
        overrides = dict(self.learners or {})
        unknown = set(overrides) - set(learners)
        if unknown:
            raise ValueError(
                f"Unknown learner name(s) {sorted(unknown)!r}; expected names from "
                f"{sorted(learners)!r}."
            )
        learners.update(overrides)
        return {name: clone(estimator) for name, estimator in learners.items()}

    def _ensemble_targets(self, donors, targets: pd.DataFrame) -> Tuple[str, np.ndarray]:
        if callable(self.ensemble_target):
            name = getattr(self.ensemble_target, "__name__", "custom")
            return name, np.array([float(self.ensemble_target(d)) for d in donors])
        if self.ensemble_target not in ENSEMBLE_TARGETS:
            raise ValueError(
                f"`ensemble_target` must be one of {ENSEMBLE_TARGETS!r} or a callable, "
                f"got {self.ensemble_target!r}."
            )
        return self.ensemble_target, targets[self.ensemble_target].to_numpy()

    def _run_fits(self, jobs, n_jobs, cancel_event) -> Dict[str, object]:
        if n_jobs == 1:
            return dict(_fit_one(*job, cancel_event) for job in jobs)

        fitted = {}
        with ThreadPoolExecutor(max_workers=n_jobs, thread_name_prefix="donorscope-fit") as pool:
            futures = [pool.submit(_fit_one, *job, cancel_event) for job in jobs]
            _, pending = wait(futures, return_when=FIRST_EXCEPTION)
            for future in pending:
                future.cancel()
            for future in futures:
                if future.done() and not future.cancelled() and future.exception() is not None:
                    raise future.exception()
            for future in futures:
                name, estimator = future.result()
                fitted[name] = estimator
        return fitted

    def train_models(self, cancel_event: Optional[threading.Event] = None) -> ModelState:
        """Retrain every learner from scratch over the full donor population.

        Parameters
        ----------
        cancel_event : threading.Event, optional
            Setting the event aborts the pass with
            :class:`TrainingCancelledError` at the next learner boundary.

        Returns
        -------
        state : ModelState
            The newly published state.

        Raises
        ------
        TrainingError
            If any learner fails to fit. The previous state stays published.
        TrainingCancelledError
            If ``cancel_event`` was set.
        """
        with self._training_lock:
            with self._lock:
                self._status = EngineStatus.TRAINING
            try:
                state = self._train(cancel_event)
            except BaseException:
                with self._lock:
                    self._status = (
                        EngineStatus.TRAINED if self._state is not None else EngineStatus.UNTRAINED
                    )
                raise
            with self._lock:
                self._state = state
                self._status = EngineStatus.TRAINED
            return state

    def _train(self, cancel_event) -> ModelState:
        horizon = validate_positive_int(self.horizon, "horizon")
        n_months = validate_positive_int(self.n_months, "n_months")
        n_jobs = effective_n_jobs(self.n_jobs)
        started = time.perf_counter()

        _check_cancelled(cancel_event, "loading donors")
        donors = list(self.repository.get_all_donors())
        if len(donors) < 2:
            logger.warning(
                "Training on %d donor(s); learners will fall back to constant predictions.",
                len(donors),
            )
        ref = resolve_reference_date(self.reference_date)

        X = DonorFeatureExtractor(reference_date=ref).fit_transform(donors)
        series = DonorTimeSeriesExtractor(reference_date=ref, n_months=n_months).fit_transform(donors)
        targets = build_training_targets(donors, ref)
        target_name, ensemble_y = self._ensemble_targets(donors, targets)

        learners = self._build_learners()
        jobs = []
        for name in BASE_LEARNERS:
            jobs.append((name, learners[name], (X, targets[BASE_TARGETS[name]].to_numpy()), {}))
        for name in ENSEMBLE_LEARNERS:
            jobs.append((name, learners[name], (X, ensemble_y), {}))
        jobs.append((FORECASTER, learners[FORECASTER], (series,), {"horizon": horizon}))

        logger.info(
            "Training %d models on %d donors (reference date %s)",
            len(jobs),
            len(donors),
            ref.date(),
        )
        fitted = self._run_fits(jobs, n_jobs, cancel_event)
        _check_cancelled(cancel_event, "publishing the trained state")

        forecaster = fitted.pop(FORECASTER)
        state = ModelState(
            learners=MappingProxyType(fitted),
            forecaster=forecaster,
            reference_date=ref,
            trained_at=pd.Timestamp.now(),
            n_donors=len(donors),
            ensemble_target=target_name,
            n_months=n_months,
            horizon=horizon,
        )
        logger.info("Training completed in %.2fs", time.perf_counter() - started)
        return state

    # ------------------------------------------------------------------
    # Prediction
    # ------------------------------------------------------------------

    def _fetch_donor(self, donor_id) -> DonorRecord:
        donor = self.repository.get_donor_by_id(donor_id)
        if donor is None:
            raise DonorNotFoundError(donor_id)
        return donor

    def _predict_ensemble(self, state: ModelState, features, series) -> EnsemblePredictionResult:
        X = np.asarray(features, dtype=float).reshape(1, -1)
        if X.shape[1] != N_FEATURES:
            raise ValueError(f"Expected {N_FEATURES} features, got {X.shape[1]}.")

        member_predictions = {
            name: float(state.learners[name].predict(X)[0]) for name in ENSEMBLE_LEARNERS
        }
        combined = combine_predictions(member_predictions)
        forecast = state.forecaster.predict(series)

        return EnsemblePredictionResult(
            predicted_amount=combined.amount,
            confidence_score=combined.confidence,
            model_contributions=combined.contributions,
            feature_importance=_feature_importance(state.learners[IMPORTANCE_SOURCE]),
            uncertainty_range=combined.uncertainty,
            forecast=np.asarray(forecast.forecast, dtype=float).tolist(),
            forecast_confidence=np.asarray(forecast.confidence, dtype=float).tolist(),
            seasonality=np.asarray(forecast.seasonality, dtype=float).tolist(),
            trend=np.asarray(forecast.trend, dtype=float).tolist(),
        )

    def predict(self, features, time_series) -> EnsemblePredictionResult:
        """Ensemble prediction for caller-supplied features and monthly series.

        Useful for backtesting and for callers that already hold features;
        the repository is not consulted.

        Raises
        ------
        NotReadyError
            If no training pass has completed.
        """
        state = self._require_state()
        return self._predict_ensemble(state, features, time_series)

    def predict_for_donor(self, donor_id) -> PredictionResult:
        """Predict every signal for one donor.

        Raises
        ------
        DonorNotFoundError
            If the repository does not know ``donor_id``. Raised before any
            model is consulted.
        NotReadyError
            If no training pass has completed.
        """
        state = self._state
        donor = self._fetch_donor(donor_id)
        state = self._require_state(state)

        ref = state.reference_date
        features = extract_features(donor, ref)
        series = extract_time_series(donor, ref, n_months=state.n_months)
        X = features.reshape(1, -1)
        learners = state.learners

        ensemble = self._predict_ensemble(state, features, series)
        return PredictionResult(
            donor_id=donor.id,
            segment=str(learners["segment"].predict(X)[0]),
            lifecycle_stage=assign_lifecycle_stage(donor, ref),
            lifetime_value=float(learners["lifetime_value"].predict(X)[0]),
            campaign_response=_positive_probability(learners["campaign_response"], X),
            recommended_amount=float(learners["ask_amount"].predict(X)[0]),
            best_communication_hour=best_communication_hour(donor),
            interest_topics=interest_topics(donor),
            risk_score=_positive_probability(learners["risk"], X),
            **asdict(ensemble),
        )

    def predict_all(self) -> pd.DataFrame:
        """Predict for every donor in the repository, one row per donor.

        Returns
        -------
        predictions : pd.DataFrame
            Columns are the :class:`PredictionResult` fields, indexed by
            ``donor_id``.
        """
        self._require_state()
        rows = [
            self.predict_for_donor(donor.id).to_dict()
            for donor in self.repository.get_all_donors()
        ]
        columns = list(PredictionResult.__dataclass_fields__)
        return pd.DataFrame(rows, columns=columns).set_index("donor_id")
