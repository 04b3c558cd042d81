"""Batch orchestration and result aggregation."""

from gazetteer_multiedit.batch.aggregator import (
    FETCH_FAILURE_MESSAGE,
    GENERIC_FAILURE_MESSAGE,
    BatchProgress,
    BatchSummary,
    FailedProperty,
    ResultAggregator,
    format_errors,
)
from gazetteer_multiedit.batch.orchestrator import BatchState, MultiEditBatch, ProgressListener

__all__ = [
    "FETCH_FAILURE_MESSAGE",
    "GENERIC_FAILURE_MESSAGE",
    "BatchProgress",
    "BatchState",
    "BatchSummary",
    "FailedProperty",
    "MultiEditBatch",
    "ProgressListener",
    "ResultAggregator",
    "format_errors",
]
