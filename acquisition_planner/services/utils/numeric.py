"""
Numeric helpers shared by the calculators.
"""
from typing import Dict, Sequence

import numpy as np


def clamp(value: float, lower: float, upper: float) -> float:
    """Bound ``value`` to ``[lower, upper]``."""
    return min(upper, max(lower, value))


def round_to(value: float, digits: int = 2) -> float:
    """Fixed-decimal rounding returning a plain float."""
    return float(round(float(value), digits))


def normalize_nonnegative(vector: np.ndarray) -> np.ndarray:
    """
    Ensure non-negative and sum to 1; fall back to uniform if all zeros.

    Args:
        vector: Input array to normalize

    Returns:
        Normalized array that sums to 1
    """
    vector = np.clip(np.asarray(vector, dtype=float), 0.0, None)
    vector = np.where(np.isfinite(vector), vector, 0.0)
    s = vector.sum()
    if s <= 0:
        return np.full_like(vector, 1.0 / len(vector))
    return vector / s


def normalize_weights(mix: Dict[str, float], keys: Sequence[str]) -> Dict[str, float]:
    """
    Project a weight mapping onto ``keys`` as fractions summing to 1.

    Keys missing from ``mix`` count as zero and keys outside ``keys`` are
    dropped. An empty or all-zero mix becomes equal weights.
    """
    if not keys:
        return {}
    vector = np.array([float(mix.get(key, 0.0) or 0.0) for key in keys])
    shares = normalize_nonnegative(vector)
    return {key: float(share) for key, share in zip(keys, shares)}
