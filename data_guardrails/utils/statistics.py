"""Statistical primitives for multi-source consensus and outlier detection."""

from typing import Dict, List, Sequence
import numpy as np


# Modified z-score constant (0.6745 = z of the 75th percentile of N(0, 1))
MAD_SCALE_FACTOR = 0.6745
DEFAULT_MAD_THRESHOLD = 3.0
IQR_MULTIPLIER = 1.5


def calculate_consensus(values: Sequence[float], method: str = "median") -> float:
    """
    Calculate a single representative value from several source observations.

    Args:
        values: Observations of the same metric, one per source
        method: 'median', 'mean' or 'mode'

    Returns:
        Consensus value

    Raises:
        ValueError: If values is empty or the method is unknown
    """
    if len(values) == 0:
        raise ValueError("Consensus requires at least one value")

    method = getattr(method, "value", method)

    if len(values) == 1:
        return float(values[0])

    if method == "median":
        return float(np.median(np.asarray(values, dtype=float)))

    if method == "mean":
        return float(np.mean(np.asarray(values, dtype=float)))

    if method == "mode":
        # dicts keep insertion order, so ties resolve to the first value seen
        counts: Dict[float, int] = {}
        for value in values:
            counts[value] = counts.get(value, 0) + 1

        mode_value = values[0]
        max_count = 0
        for value, count in counts.items():
            if count > max_count:
                max_count = count
                mode_value = value
        return float(mode_value)

    raise ValueError(f"Unsupported consensus method: {method}")


def detect_outliers_mad(values: Sequence[float],
                        threshold: float = DEFAULT_MAD_THRESHOLD) -> List[int]:
    """
    Detect outliers using the Median Absolute Deviation (modified z-score).

    Args:
        values: Observations to analyze
        threshold: Absolute modified z-score above which a value is an outlier

    Returns:
        Indices of outlier values, in input order
    """
    if len(values) < 3:
        return []

    float_values = np.asarray(values, dtype=float)
    median = float(np.median(float_values))
    mad = float(np.median(np.abs(float_values - median)))

    if mad == 0:
        return []

    modified_z_scores = MAD_SCALE_FACTOR * (float_values - median) / mad

    return [i for i, z in enumerate(modified_z_scores) if abs(z) > threshold]


def detect_outliers_iqr(values: Sequence[float],
                        multiplier: float = IQR_MULTIPLIER) -> List[int]:
    """
    Detect outliers using the Interquartile Range.

    Quartiles are taken by index truncation on the sorted values rather than
    interpolated, so small samples behave predictably.

    Args:
        values: Observations to analyze
        multiplier: IQR multiplier for the fences (default: 1.5)

    Returns:
        Indices of outlier values, in input order
    """
    if len(values) < 4:
        return []

    sorted_values = sorted(float(v) for v in values)
    n = len(sorted_values)
    q1 = sorted_values[int(n * 0.25)]
    q3 = sorted_values[int(n * 0.75)]
    iqr = q3 - q1

    lower_bound = q1 - multiplier * iqr
    upper_bound = q3 + multiplier * iqr

    return [i for i, v in enumerate(values) if v < lower_bound or v > upper_bound]


def calculate_relative_deviation(value: float, consensus: float) -> float:
    """Relative deviation of value from consensus, in percent (0 for zero consensus)."""
    if consensus == 0:
        return 0.0
    return abs((value - consensus) / consensus) * 100
