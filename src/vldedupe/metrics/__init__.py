"""Accuracy metrics feedback loop for threshold and weight tuning."""

from vldedupe.metrics.models import AccuracyMetrics, ThresholdPoint, safe_ratio
from vldedupe.metrics.service import DEFAULT_ANALYSIS_THRESHOLDS, MetricsService

__all__ = [
    "AccuracyMetrics",
    "ThresholdPoint",
    "safe_ratio",
    "MetricsService",
    "DEFAULT_ANALYSIS_THRESHOLDS",
]
