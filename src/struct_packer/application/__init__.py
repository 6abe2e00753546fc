#!/usr/bin/env python3

"""Application layer: batch processing and input loading."""

from .batch_processor import AggregateOutcome, BatchOptions, BatchProcessor, process_aggregate

__all__ = [
    "AggregateOutcome",
    "BatchOptions",
    "BatchProcessor",
    "process_aggregate",
]
