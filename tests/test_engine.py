"""
tests/test_engine.py

End-to-end behaviour of DonorPredictionEngine: training, the not-found /
not-ready contract, atomic state publication, and result serialisation.
"""

import json
import os
import threading

import numpy as np
import pandas as pd
import pytest
from sklearn.base import BaseEstimator
from sklearn.exceptions import NotFittedError

from donorscope import (
    DegenerateTrainingWarning,
    DonorNotFoundError,
    DonorPredictionEngine,
    EngineStatus,
    EnsemblePredictionResult,
    NotReadyError,
    PredictionResult,
    TrainingCancelledError,
    TrainingError,
)
from donorscope.engine import BASE_LEARNERS, ENSEMBLE_LEARNERS
from donorscope.models import SEGMENT_LABELS
from donorscope.preprocessing import (
    FEATURE_NAMES,
    LIFECYCLE_STAGES,
    N_FEATURES,
    build_training_targets,
)
from donorscope.records import Donation, DonorRecord, InMemoryDonorRepository
from donorscope.utils import effective_n_jobs
from donorscope.utils.testing import make_donor_repository


class _ExplodingRegressor(BaseEstimator):
    def fit(self, X, y):
        raise RuntimeError("boom")

    def predict(self, X):
        return np.zeros(len(X))


class _CountingRepository(InMemoryDonorRepository):
    def __init__(self, donors=None):
        super().__init__(donors)
        self.lookups = 0

    def get_donor_by_id(self, donor_id):
        self.lookups += 1
        return super().get_donor_by_id(donor_id)


def _small_engine(**kwargs):
    repo = make_donor_repository(n_donors=25, random_state=1)
    params = dict(reference_date="2024-06-30", n_jobs=1, random_state=0)
    params.update(kwargs)
    return DonorPredictionEngine(repo, **params)


# ---------------------------------------------------------------------------
# Not found / not ready
# ---------------------------------------------------------------------------

class TestNotFoundAndNotReady:
    def test_unknown_donor_raises_not_found_before_training(self):
        repo = _CountingRepository([DonorRecord("D1")])
        engine = DonorPredictionEngine(repo)
        with pytest.raises(DonorNotFoundError) as exc_info:
            engine.predict_for_donor("missing")
        assert exc_info.value.donor_id == "missing"
        assert repo.lookups == 1
        assert engine.state is None

    def test_unknown_donor_raises_not_found_after_training(self, trained_engine):
        with pytest.raises(DonorNotFoundError):
            trained_engine.predict_for_donor("no-such-donor")

    def test_known_donor_before_training_raises_not_ready(self):
        engine = DonorPredictionEngine(InMemoryDonorRepository([DonorRecord("D1")]))
        assert engine.status is EngineStatus.UNTRAINED
        with pytest.raises(NotReadyError):
            engine.predict_for_donor("D1")

    def test_not_ready_is_a_not_fitted_error(self):
        engine = DonorPredictionEngine(InMemoryDonorRepository())
        with pytest.raises(NotFittedError):
            engine.predict(np.zeros(N_FEATURES), np.zeros(12))
        with pytest.raises(NotReadyError):
            engine.predict_all()


# ---------------------------------------------------------------------------
# Prediction results
# ---------------------------------------------------------------------------

class TestPredictForDonor:
    def test_result_fields_are_in_range(self, trained_engine, donors):
        result = trained_engine.predict_for_donor(donors[0].id)
        assert isinstance(result, PredictionResult)
        assert result.donor_id == donors[0].id
        assert result.segment in SEGMENT_LABELS
        assert result.lifecycle_stage in set(LIFECYCLE_STAGES) | {None}
        assert result.lifetime_value >= 0
        assert result.recommended_amount >= 0
        assert 0 <= result.campaign_response <= 1
        assert 0 <= result.risk_score <= 1
        assert 0 <= result.best_communication_hour <= 23
        assert 0 < result.confidence_score <= 1
        lower, upper = result.uncertainty_range
        assert lower <= result.predicted_amount <= upper

    def test_forecast_lengths_follow_configuration(self, trained_engine, donors):
        result = trained_engine.predict_for_donor(donors[1].id)
        assert len(result.forecast) == trained_engine.horizon
        assert len(result.forecast_confidence) == trained_engine.horizon
        assert len(result.seasonality) == trained_engine.seasonal_period
        assert len(result.trend) == trained_engine.n_months

    def test_contributions_and_importance_are_named(self, trained_engine, donors):
        result = trained_engine.predict_for_donor(donors[2].id)
        assert set(result.model_contributions) == set(ENSEMBLE_LEARNERS)
        assert list(result.feature_importance) == list(FEATURE_NAMES)

    def test_prediction_is_idempotent(self, trained_engine, donors):
        first = trained_engine.predict_for_donor(donors[3].id)
        second = trained_engine.predict_for_donor(donors[3].id)
        assert first.to_dict() == second.to_dict()

    def test_to_dict_is_json_serialisable(self, trained_engine, donors):
        payload = trained_engine.predict_for_donor(donors[4].id).to_dict()
        decoded = json.loads(json.dumps(payload))
        assert decoded["donor_id"] == donors[4].id
        assert isinstance(decoded["uncertainty_range"], list)
        assert len(decoded["uncertainty_range"]) == 2

    def test_zero_activity_donor_gets_a_prediction(self):
        repo = make_donor_repository(n_donors=25, random_state=1)
        repo.add(DonorRecord("ZERO"))
        engine = DonorPredictionEngine(repo, reference_date="2024-06-30", n_jobs=1, random_state=0)
        engine.train_models()
        result = engine.predict_for_donor("ZERO")
        assert result.interest_topics == []
        assert result.best_communication_hour == 9
        assert result.lifecycle_stage is None

    def test_risk_score_tracks_risk_label(self, trained_engine, donors, reference_date):
        risk = build_training_targets(donors, reference_date)["risk"].to_numpy()
        scores = np.array([trained_engine.predict_for_donor(d.id).risk_score for d in donors])
        assert np.corrcoef(scores, risk)[0, 1] > 0.7
        assert np.abs(scores - risk).mean() < 0.2
        mid = (risk > 0.2) & (risk < 0.8)
        if mid.any():
            assert np.abs(scores[mid] - risk[mid]).mean() < 0.25

    def test_predict_all(self, trained_engine, donors):
        frame = trained_engine.predict_all()
        assert isinstance(frame, pd.DataFrame)
        assert frame.index.name == "donor_id"
        assert len(frame) == len(donors)
        assert frame["risk_score"].between(0, 1).all()


class TestPredictFromFeatures:
    def test_matches_donor_prediction(self, trained_engine, donors):
        from donorscope.preprocessing import extract_features, extract_time_series

        state = trained_engine.state
        donor = donors[5]
        features = extract_features(donor, state.reference_date)
        series = extract_time_series(donor, state.reference_date, n_months=state.n_months)
        out = trained_engine.predict(features, series)
        assert isinstance(out, EnsemblePredictionResult)
        expected = trained_engine.predict_for_donor(donor.id)
        assert out.predicted_amount == pytest.approx(expected.predicted_amount)
        assert out.forecast == pytest.approx(expected.forecast)

    def test_wrong_feature_length_raises(self, trained_engine):
        with pytest.raises(ValueError, match="features"):
            trained_engine.predict(np.zeros(N_FEATURES + 1), np.zeros(12))


# ---------------------------------------------------------------------------
# Training
# ---------------------------------------------------------------------------

class TestTraining:
    def test_state_contents(self, trained_engine, donors):
        state = trained_engine.state
        assert trained_engine.status is EngineStatus.TRAINED
        assert set(state.learners) == set(BASE_LEARNERS) | set(ENSEMBLE_LEARNERS)
        assert state.n_donors == len(donors)
        assert state.reference_date == pd.Timestamp("2024-06-30")
        assert state.ensemble_target == "lifetime_value"
        with pytest.raises(TypeError):
            state.learners["risk"] = None

    def test_retraining_publishes_a_new_state(self):
        engine = _small_engine()
        first = engine.train_models()
        second = engine.train_models()
        assert engine.state is second
        assert first is not second
        assert first.learners["lifetime_value"] is not second.learners["lifetime_value"]

    def test_failed_training_keeps_previous_state(self):
        engine = _small_engine()
        previous = engine.train_models()
        engine.learners = {"adaboost": _ExplodingRegressor()}
        with pytest.raises(TrainingError, match="adaboost"):
            engine.train_models()
        assert engine.state is previous
        assert engine.status is EngineStatus.TRAINED
        donor_id = engine.repository.get_all_donors()[0].id
        assert engine.predict_for_donor(donor_id).donor_id == donor_id

    def test_failed_first_training_leaves_engine_untrained(self):
        engine = _small_engine(learners={"risk": _ExplodingRegressor()})
        with pytest.raises(TrainingError) as exc_info:
            engine.train_models()
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert engine.state is None
        assert engine.status is EngineStatus.UNTRAINED

    def test_failure_in_thread_pool_is_wrapped(self):
        engine = _small_engine(n_jobs=4, learners={"random_forest": _ExplodingRegressor()})
        with pytest.raises(TrainingError):
            engine.train_models()
        assert engine.state is None

    def test_cancelled_training_keeps_previous_state(self):
        engine = _small_engine()
        previous = engine.train_models()
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(TrainingCancelledError):
            engine.train_models(cancel_event=cancel)
        assert engine.state is previous
        assert engine.status is EngineStatus.TRAINED

    def test_cancellation_is_a_training_error(self):
        assert issubclass(TrainingCancelledError, TrainingError)

    def test_parallel_training_matches_sequential(self):
        sequential = _small_engine(n_jobs=1)
        parallel = _small_engine(n_jobs=3)
        sequential.train_models()
        parallel.train_models()
        donor_id = sequential.repository.get_all_donors()[0].id
        a = sequential.predict_for_donor(donor_id)
        b = parallel.predict_for_donor(donor_id)
        assert a.lifetime_value == pytest.approx(b.lifetime_value)
        assert a.segment == b.segment
        assert a.predicted_amount == pytest.approx(b.predicted_amount)

    def test_predictions_during_retraining_see_a_complete_state(self):
        engine = _small_engine()
        engine.train_models()
        donor_id = engine.repository.get_all_donors()[0].id
        errors = []

        def hammer():
            for _ in range(5):
                try:
                    engine.predict_for_donor(donor_id)
                except Exception as exc:  # pragma: no cover - surfaced below
                    errors.append(exc)

        trainer = threading.Thread(target=engine.train_models)
        readers = [threading.Thread(target=hammer) for _ in range(3)]
        trainer.start()
        for t in readers:
            t.start()
        for t in [trainer, *readers]:
            t.join()
        assert errors == []
        assert engine.status is EngineStatus.TRAINED

    def test_unknown_learner_override(self):
        engine = _small_engine(learners={"svm": _ExplodingRegressor()})
        with pytest.raises(ValueError, match="Unknown learner"):
            engine.train_models()
        assert engine.status is EngineStatus.UNTRAINED

    def test_invalid_ensemble_target(self):
        engine = _small_engine(ensemble_target="median_gift")
        with pytest.raises(ValueError, match="ensemble_target"):
            engine.train_models()

    def test_callable_ensemble_target(self):
        def gift_count(donor):
            return len(donor.donations)

        engine = _small_engine(ensemble_target=gift_count)
        state = engine.train_models()
        assert state.ensemble_target == "gift_count"

    def test_average_amount_ensemble_target(self):
        state = _small_engine(ensemble_target="average_amount").train_models()
        assert state.ensemble_target == "average_amount"

    def test_invalid_horizon(self):
        with pytest.raises(ValueError, match="horizon"):
            _small_engine(horizon=0).train_models()

    def test_state_records_series_configuration(self):
        state = _small_engine(n_months=6, horizon=3).train_models()
        assert state.n_months == 6
        assert state.horizon == 3

    def test_prediction_uses_trained_series_length(self):
        engine = _small_engine(n_months=6, horizon=3)
        engine.train_models()
        engine.n_months = 18
        engine.horizon = 9
        donor_id = engine.repository.get_all_donors()[0].id
        result = engine.predict_for_donor(donor_id)
        assert len(result.trend) == 6
        assert len(result.forecast) == 3

    def test_negative_n_jobs_uses_every_cpu(self):
        state = _small_engine(n_jobs=-1).train_models()
        assert set(state.learners) == set(BASE_LEARNERS) | set(ENSEMBLE_LEARNERS)

    def test_negative_n_jobs_counts_back_from_cpu_count(self):
        cpus = os.cpu_count() or 1
        assert effective_n_jobs(-1) == cpus
        assert effective_n_jobs(-(cpus + 5)) == 1
        assert effective_n_jobs(None) is None
        assert effective_n_jobs(3) == 3

    @pytest.mark.parametrize("n_jobs", [0, 1.5, "2"])
    def test_invalid_n_jobs(self, n_jobs):
        engine = _small_engine(n_jobs=n_jobs)
        with pytest.raises(ValueError, match="n_jobs"):
            engine.train_models()
        assert engine.status is EngineStatus.UNTRAINED


class TestDegeneratePopulations:
    def test_empty_repository_trains_constant_models(self):
        engine = DonorPredictionEngine(
            InMemoryDonorRepository(), reference_date="2024-06-30", n_jobs=1
        )
        with pytest.warns(DegenerateTrainingWarning):
            state = engine.train_models()
        assert state.n_donors == 0
        out = engine.predict(np.zeros(N_FEATURES), np.zeros(12))
        assert out.predicted_amount == 0.0
        assert out.confidence_score == 1.0
        assert out.model_contributions == {name: 0.0 for name in ENSEMBLE_LEARNERS}

    def test_single_donor_repository(self):
        donor = DonorRecord("ONLY", donations=[Donation(80, "2024-05-01")])
        engine = DonorPredictionEngine(
            InMemoryDonorRepository([donor]), reference_date="2024-06-30", n_jobs=1
        )
        with pytest.warns(DegenerateTrainingWarning):
            engine.train_models()
        result = engine.predict_for_donor("ONLY")
        assert result.lifetime_value == pytest.approx(80.0)
        assert result.segment == "Consistent Medium"
        assert result.lifecycle_stage == "new"
