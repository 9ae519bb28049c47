import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns

from ..models._segment import SEGMENT_LABELS


def _forecast_arrays(result):
    # PredictionResult / EnsemblePredictionResult vs. ForecastResult
    if hasattr(result, "forecast_confidence"):
        return np.asarray(result.forecast, dtype=float), np.asarray(result.forecast_confidence, dtype=float)
    return np.asarray(result.forecast, dtype=float), np.asarray(result.confidence, dtype=float)


def plot_donation_forecast(result, history=None) -> plt.Axes:
    """
    Plots the monthly giving forecast with its 95% confidence band.
    If the donor's trailing monthly history is provided, it is drawn first
    (with the fitted linear trend when its length matches) and the forecast
    continues from the following month.

    Parameters
    ----------
    result : PredictionResult, EnsemblePredictionResult or ForecastResult
        Output of the engine or of ``SequenceForecaster.predict``.
    history : array-like, optional
        Trailing monthly giving series, oldest month first.

    Returns
    -------
    matplotlib.axes.Axes
        The underlying axes object for further customization.
    """
    forecast, confidence = _forecast_arrays(result)
    fig, ax = plt.subplots(figsize=(10, 5))

    offset = 0
    if history is not None:
        history = np.asarray(history, dtype=float)
        offset = history.size
        sns.lineplot(x=np.arange(offset), y=history, marker="o", label="History", ax=ax)
        trend = np.asarray(getattr(result, "trend", []), dtype=float)
        if trend.size == offset and offset > 1:
            ax.plot(np.arange(offset), trend, linestyle="--", color="gray", label="Trend")

    steps = np.arange(offset, offset + forecast.size)
    sns.lineplot(x=steps, y=forecast, marker="o", label="Forecast", ax=ax)
    ax.fill_between(
        steps,
        np.maximum(forecast - confidence, 0.0),
        forecast + confidence,
        alpha=0.25,
        label="95% interval",
    )

    ax.set_title("Monthly Giving Forecast")
    ax.set_xlabel("Month")
    ax.set_ylabel("Donated Amount")
    ax.legend()

    return ax


def plot_segment_distribution(segments) -> plt.Axes:
    """
    Bar chart of donor counts per segment, in segment value order
    (highest value first).

    Parameters
    ----------
    segments : array-like of str
        Segment label per donor, e.g. the ``segment`` column of
        ``DonorPredictionEngine.predict_all()``.

    Returns
    -------
    matplotlib.axes.Axes
        The underlying axes object for further customization.
    """
    counts = pd.Series(segments, dtype=object).value_counts()
    order = [label for label in SEGMENT_LABELS if label in counts.index]
    order += sorted(label for label in counts.index if label not in order)
    df = pd.DataFrame({"Segment": order, "Donors": [int(counts[label]) for label in order]})

    fig, ax = plt.subplots(figsize=(9, 5))
    sns.barplot(data=df, x="Segment", y="Donors", color="steelblue", ax=ax)

    ax.set_title("Donors per Segment")
    ax.set_xlabel("Segment")
    ax.set_ylabel("Number of Donors")
    ax.tick_params(axis="x", rotation=20)

    return ax
