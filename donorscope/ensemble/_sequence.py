"""
donorscope.ensemble._sequence
=============================
Monthly giving forecasts from an ensemble of recurrent (echo-state)
sequence models, plus the additive trend / seasonality read-outs shown next
to the forecast.

Each ensemble member is a single recurrent ``tanh`` layer with its own
random recurrent weights, rescaled to a fixed spectral radius so the hidden
state fades old inputs instead of exploding, followed by a dense linear
projection (:class:`~sklearn.linear_model.Ridge`) fitted on the final hidden
state of every training window.  Only the projection is learned, which keeps
training closed-form and deterministic for a given ``random_state``.

Members differ only in their recurrent weights, so the spread of their
forecasts is a direct read of model uncertainty: the reported confidence at
each step is the 95 % half-width ``1.96 * std`` across members.
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass
from typing import List

import numpy as np
from sklearn.base import BaseEstimator
from sklearn.linear_model import Ridge
from sklearn.utils import check_random_state
from sklearn.utils.validation import check_array, check_is_fitted

from ..exceptions import DegenerateTrainingWarning
from ..utils._validation import validate_positive_int
from ._combiner import Z_95

logger = logging.getLogger(__name__)

DEFAULT_SEASONAL_PERIOD = 7


# ---------------------------------------------------------------------------
# Decomposition helpers
# ---------------------------------------------------------------------------

def seasonal_decomposition(values, period: int = DEFAULT_SEASONAL_PERIOD) -> np.ndarray:
    """Mean of the series at each phase ``i % period``.

    Phases that never occur (series shorter than ``period``) are 0.

    Examples
    --------
    >>> seasonal_decomposition([1, 2, 3, 4], period=2).tolist()
    [2.0, 3.0]
    """
    period = validate_positive_int(period, "period")
    values = np.asarray(values, dtype=float).ravel()
    sums = np.zeros(period)
    counts = np.zeros(period)
    np.add.at(sums, np.arange(values.size) % period, values)
    np.add.at(counts, np.arange(values.size) % period, 1.0)
    return np.divide(sums, counts, out=np.zeros(period), where=counts > 0)


def linear_trend(values) -> np.ndarray:
    """Ordinary-least-squares line over ``(index, value)``, evaluated at each index.

    Examples
    --------
    >>> linear_trend([1.0, 3.0, 5.0]).tolist()
    [1.0, 3.0, 5.0]
    """
    y = np.asarray(values, dtype=float).ravel()
    n = y.size
    if n == 0:
        return np.empty(0)
    x = np.arange(n, dtype=float)
    denominator = n * np.dot(x, x) - x.sum() ** 2
    slope = 0.0 if denominator == 0 else (n * np.dot(x, y) - x.sum() * y.sum()) / denominator
    intercept = (y.sum() - slope * x.sum()) / n
    return slope * x + intercept


@dataclass(frozen=True)
class ForecastResult:
    """Sequence-forecaster output for one series."""

    forecast: np.ndarray
    confidence: np.ndarray
    seasonality: np.ndarray
    trend: np.ndarray


# ---------------------------------------------------------------------------
# Recurrent members
# ---------------------------------------------------------------------------

class _EchoStateMember:
    """One recurrent layer with fixed weights and a fitted dense read-out."""

    def __init__(self, n_reservoir, spectral_radius, input_scaling, alpha, rng):
        recurrent = rng.uniform(-0.5, 0.5, size=(n_reservoir, n_reservoir))
        radius = np.max(np.abs(np.linalg.eigvals(recurrent)))
        if radius > 0:
            recurrent *= spectral_radius / radius
        self.recurrent = recurrent
        self.input_weights = rng.uniform(-input_scaling, input_scaling, size=n_reservoir)
        self.bias = rng.uniform(-0.1, 0.1, size=n_reservoir)
        self.readout = Ridge(alpha=alpha)

    def _design(self, windows: np.ndarray) -> np.ndarray:
        state = np.zeros((windows.shape[0], self.recurrent.shape[0]))
        for t in range(windows.shape[1]):
            state = np.tanh(
                np.outer(windows[:, t], self.input_weights)
                + state @ self.recurrent.T
                + self.bias
            )
        return np.hstack([state, windows[:, -1:]])

    def fit(self, windows: np.ndarray, targets: np.ndarray) -> "_EchoStateMember":
        self.readout.fit(self._design(windows), targets)
        return self

    def roll_forward(self, window: np.ndarray, horizon: int) -> np.ndarray:
        history = list(window)
        size = len(window)
        out = np.empty(horizon)
        for step in range(horizon):
            current = np.asarray(history[-size:], dtype=float)[None, :]
            out[step] = self.readout.predict(self._design(current))[0]
            history.append(out[step])
        return out


# ---------------------------------------------------------------------------
# Forecaster
# ---------------------------------------------------------------------------

class SequenceForecaster(BaseEstimator):
    """Forecast the next ``horizon`` months of a donor's giving.

    Parameters
    ----------
    window : int, default=6
        Months of history fed to the recurrent layer per prediction.
    n_reservoir : int, default=32
        Hidden units in each member's recurrent layer.
    n_members : int, default=10
        Ensemble size used for the forecast spread.
    spectral_radius : float, default=0.9
        Largest absolute eigenvalue of each recurrent weight matrix.
    input_scaling : float, default=1.0
        Range of the uniform input weights.
    alpha : float, default=1.0
        Ridge penalty of the dense projection.
    seasonal_period : int, default=7
        Period of the phase-mean seasonality read-out.
    random_state : int, RandomState or None, default=None
        Seed for the recurrent weights.

    Attributes
    ----------
    horizon_ : int
        Forecast horizon fixed at :meth:`fit`.
    scale_ : float
        Largest absolute training value; inputs are divided by it.
    members_ : list
        Fitted recurrent members; empty when no training window existed, in
        which case :meth:`predict` repeats the input mean.
    n_windows_ : int
        Number of training windows seen.

    Notes
    -----
    ``fit`` takes ``(series, horizon)`` rather than ``(X, y)``: targets are
    carved out of the series themselves as overlapping windows, each
    ``window`` months long and labelled with the month that follows it.

    Examples
    --------
    >>> import numpy as np
    >>> from donorscope.ensemble import SequenceForecaster
    >>> series = np.tile(np.array([0, 50, 0, 100, 0, 50, 0, 100, 0, 50, 0, 100.0]), (20, 1))
    >>> model = SequenceForecaster(n_members=3, random_state=0).fit(series, horizon=4)
    >>> out = model.predict(series[0])
    >>> out.forecast.shape, out.confidence.shape
    ((4,), (4,))
    """

    def __init__(
        self,
        window: int = 6,
        n_reservoir: int = 32,
        n_members: int = 10,
        spectral_radius: float = 0.9,
        input_scaling: float = 1.0,
        alpha: float = 1.0,
        seasonal_period: int = DEFAULT_SEASONAL_PERIOD,
        random_state=None,
    ):
        self.window = window
        self.n_reservoir = n_reservoir
        self.n_members = n_members
        self.spectral_radius = spectral_radius
        self.input_scaling = input_scaling
        self.alpha = alpha
        self.seasonal_period = seasonal_period
        self.random_state = random_state

    def _windows(self, series: np.ndarray):
        n_months = series.shape[1]
        if series.shape[0] == 0 or n_months <= self.window:
            return np.empty((0, self.window)), np.empty(0)
        windows = [series[:, t - self.window:t] for t in range(self.window, n_months)]
        targets = [series[:, t] for t in range(self.window, n_months)]
        return np.vstack(windows), np.concatenate(targets)

    def fit(self, series, horizon: int = 12) -> "SequenceForecaster":
        """Fit the recurrent members on overlapping windows of ``series``.

        Parameters
        ----------
        series : array-like of shape (n_series, n_months)
            One monthly giving series per donor, oldest month first.
        horizon : int, default=12
            Number of months :meth:`predict` forecasts.

        Returns
        -------
        self : SequenceForecaster
        """
        self.horizon_ = validate_positive_int(horizon, "horizon")
        validate_positive_int(self.window, "window")
        validate_positive_int(self.n_members, "n_members")
        validate_positive_int(self.seasonal_period, "seasonal_period")
        series = check_array(series, ensure_min_samples=0, ensure_min_features=0)

        windows, targets = self._windows(series)
        self.n_windows_ = int(windows.shape[0])
        peak = float(np.max(np.abs(series))) if series.size else 0.0
        self.scale_ = peak if peak > 0 else 1.0
        self.members_: List[_EchoStateMember] = []

        if self.n_windows_ < 2:
            warnings.warn(
                f"SequenceForecaster found {self.n_windows_} training window(s) of "
                f"{self.window} months; forecasts will repeat the input mean.",
                DegenerateTrainingWarning,
                stacklevel=2,
            )
            return self

        rng = check_random_state(self.random_state)
        windows = windows / self.scale_
        targets = targets / self.scale_
        for i in range(self.n_members):
            member = _EchoStateMember(
                self.n_reservoir, self.spectral_radius, self.input_scaling, self.alpha, rng
            )
            self.members_.append(member.fit(windows, targets))
            logger.debug("Fitted sequence member %d/%d", i + 1, self.n_members)

        logger.info(
            "SequenceForecaster fitted %d members on %d windows (horizon=%d)",
            len(self.members_),
            self.n_windows_,
            self.horizon_,
        )
        return self

    def predict(self, series) -> ForecastResult:
        """Forecast the months following ``series``.

        Parameters
        ----------
        series : array-like of shape (n_months,)
            One donor's monthly giving series, oldest month first.

        Returns
        -------
        ForecastResult
            ``forecast`` and ``confidence`` have length ``horizon_``;
            ``seasonality`` has length ``seasonal_period``; ``trend`` has the
            length of ``series``.
        """
        check_is_fitted(self, ["horizon_"])
        values = check_array(
            np.asarray(series, dtype=float).reshape(1, -1), ensure_min_features=0
        ).ravel()

        seasonality = seasonal_decomposition(values, self.seasonal_period)
        trend = linear_trend(values)

        if not self.members_:
            level = float(values.mean()) if values.size else 0.0
            return ForecastResult(
                forecast=np.full(self.horizon_, max(level, 0.0)),
                confidence=np.zeros(self.horizon_),
                seasonality=seasonality,
                trend=trend,
            )

        window = values[-self.window:] / self.scale_
        if window.size < self.window:
            window = np.concatenate([np.zeros(self.window - window.size), window])

        paths = np.vstack(
            [member.roll_forward(window, self.horizon_) for member in self.members_]
        )
        paths = np.maximum(paths * self.scale_, 0.0)
        return ForecastResult(
            forecast=paths.mean(axis=0),
            confidence=Z_95 * paths.std(axis=0),
            seasonality=seasonality,
            trend=trend,
        )
