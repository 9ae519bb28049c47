"""
tests/test_sequence.py
"""

import numpy as np
import pytest
from sklearn.exceptions import NotFittedError

from donorscope.exceptions import DegenerateTrainingWarning
from donorscope.ensemble import (
    ForecastResult,
    SequenceForecaster,
    linear_trend,
    seasonal_decomposition,
)

PATTERN = np.array([0, 50, 0, 100, 0, 50, 0, 100, 0, 50, 0, 100], dtype=float)


@pytest.fixture(scope="module")
def series():
    rng = np.random.default_rng(0)
    return np.tile(PATTERN, (30, 1)) * rng.uniform(0.5, 1.5, size=(30, 1))


@pytest.fixture(scope="module")
def fitted(series):
    return SequenceForecaster(n_members=5, random_state=0).fit(series, horizon=6)


class TestDecomposition:
    def test_seasonal_phase_means(self):
        np.testing.assert_allclose(seasonal_decomposition([1, 2, 3, 4], period=2), [2.0, 3.0])

    def test_seasonality_has_period_length(self):
        out = seasonal_decomposition(np.arange(12), period=7)
        assert out.shape == (7,)
        assert out[0] == pytest.approx((0 + 7) / 2)

    def test_missing_phases_are_zero(self):
        np.testing.assert_allclose(seasonal_decomposition([4.0, 6.0], period=4), [4, 6, 0, 0])

    def test_linear_trend_recovers_line(self):
        np.testing.assert_allclose(linear_trend([1.0, 3.0, 5.0]), [1.0, 3.0, 5.0])

    def test_linear_trend_of_constant_and_empty(self):
        np.testing.assert_allclose(linear_trend([2.0]), [2.0])
        np.testing.assert_allclose(linear_trend([3.0, 3.0, 3.0]), [3.0, 3.0, 3.0])
        assert linear_trend([]).shape == (0,)


class TestSequenceForecaster:
    def test_output_shapes(self, fitted, series):
        out = fitted.predict(series[0])
        assert isinstance(out, ForecastResult)
        assert out.forecast.shape == (6,)
        assert out.confidence.shape == (6,)
        assert out.seasonality.shape == (7,)
        assert out.trend.shape == (12,)

    def test_forecast_and_confidence_are_non_negative(self, fitted, series):
        out = fitted.predict(series[1])
        assert (out.forecast >= 0).all()
        assert (out.confidence >= 0).all()

    def test_fit_attributes(self, fitted):
        assert fitted.horizon_ == 6
        assert len(fitted.members_) == 5
        assert fitted.n_windows_ == 30 * (12 - 6)

    def test_reproducible_with_random_state(self, series):
        a = SequenceForecaster(n_members=3, random_state=1).fit(series, horizon=4)
        b = SequenceForecaster(n_members=3, random_state=1).fit(series, horizon=4)
        np.testing.assert_allclose(a.predict(series[0]).forecast, b.predict(series[0]).forecast)

    def test_zero_series_forecasts_zero(self):
        model = SequenceForecaster(n_members=3, random_state=0).fit(np.zeros((10, 12)), horizon=3)
        out = model.predict(np.zeros(12))
        np.testing.assert_allclose(out.forecast, 0.0, atol=1e-12)
        np.testing.assert_allclose(out.confidence, 0.0, atol=1e-12)

    def test_short_input_series_is_padded(self, fitted):
        out = fitted.predict([10.0, 20.0])
        assert out.forecast.shape == (6,)
        assert out.trend.shape == (2,)

    def test_too_few_windows_fall_back_to_mean(self):
        with pytest.warns(DegenerateTrainingWarning):
            model = SequenceForecaster(window=6).fit(np.ones((3, 6)) * 4.0, horizon=5)
        assert model.members_ == []
        out = model.predict([2.0, 4.0, 6.0])
        np.testing.assert_allclose(out.forecast, 4.0)
        np.testing.assert_allclose(out.confidence, 0.0)

    def test_empty_population_falls_back(self):
        with pytest.warns(DegenerateTrainingWarning):
            model = SequenceForecaster().fit(np.empty((0, 12)), horizon=2)
        np.testing.assert_allclose(model.predict(np.zeros(12)).forecast, 0.0)

    def test_invalid_horizon(self, series):
        with pytest.raises(ValueError, match="horizon"):
            SequenceForecaster().fit(series, horizon=0)

    def test_predict_before_fit(self):
        with pytest.raises(NotFittedError):
            SequenceForecaster().predict(PATTERN)
