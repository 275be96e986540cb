"""Utility functions for the guardrail engine."""

from data_guardrails.utils.statistics import (
    calculate_consensus,
    calculate_relative_deviation,
    detect_outliers_iqr,
    detect_outliers_mad,
)
from data_guardrails.utils.time import (
    get_current_utc,
    staleness_minutes,
    to_epoch_millis,
    to_utc_timestamp,
)

__all__ = [
    "calculate_consensus",
    "calculate_relative_deviation",
    "detect_outliers_iqr",
    "detect_outliers_mad",
    "get_current_utc",
    "staleness_minutes",
    "to_epoch_millis",
    "to_utc_timestamp",
]
