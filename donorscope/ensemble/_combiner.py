"""
donorscope.ensemble._combiner
=============================
Variance-based aggregation of the ensemble regressors' point predictions.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Mapping, Tuple

import numpy as np

Z_95 = 1.96


@dataclass(frozen=True)
class EnsembleCombination:
    """Aggregated ensemble output for one donor.

    Attributes
    ----------
    amount : float
        Mean of the member predictions.
    confidence : float
        ``1 / (1 + sigma)`` where ``sigma`` is the population standard
        deviation of the member predictions; in (0, 1], 1 meaning the
        members agree exactly.
    contributions : dict of str -> float
        Each member's prediction divided by ``amount`` (all 0 when
        ``amount`` is 0).
    uncertainty : tuple of (float, float)
        ``amount ± 1.96 * sigma``.
    """

    amount: float
    confidence: float
    contributions: Dict[str, float]
    uncertainty: Tuple[float, float]


def combine_predictions(predictions: Mapping[str, float]) -> EnsembleCombination:
    """Combine named member predictions into one estimate with uncertainty.

    Parameters
    ----------
    predictions : mapping of str -> float
        One point prediction per ensemble member, keyed by member name.

    Returns
    -------
    EnsembleCombination

    Raises
    ------
    ValueError
        If ``predictions`` is empty or contains a non-finite value.

    Examples
    --------
    >>> out = combine_predictions({"a": 100.0, "b": 100.0, "c": 100.0, "d": 100.0})
    >>> out.amount, out.confidence, out.uncertainty
    (100.0, 1.0, (100.0, 100.0))
    >>> combine_predictions({"a": 90.0, "b": 110.0}).confidence
    0.09090909090909091
    """
    if not predictions:
        raise ValueError("`predictions` must contain at least one member prediction.")
    names = list(predictions)
    values = np.array([float(predictions[name]) for name in names], dtype=float)
    if not np.all(np.isfinite(values)):
        raise ValueError(f"Member predictions must be finite, got {values.tolist()!r}.")

    amount = float(values.mean())
    variance = float(np.mean((values - amount) ** 2))
    sigma = math.sqrt(variance)

    if amount == 0:
        contributions = {name: 0.0 for name in names}
    else:
        contributions = {name: float(v / amount) for name, v in zip(names, values)}

    return EnsembleCombination(
        amount=amount,
        confidence=1.0 / (1.0 + sigma),
        contributions=contributions,
        uncertainty=(amount - Z_95 * sigma, amount + Z_95 * sigma),
    )
