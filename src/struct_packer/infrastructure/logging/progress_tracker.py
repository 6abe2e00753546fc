#!/usr/bin/env python3

"""Progress tracking for batch layout computations."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from time import perf_counter


class ProgressTracker:
    """
    Track and report batch layout progress.

    Provides contextual timing per aggregate and a final summary with
    success/failure counts.
    """

    def __init__(self, logger: logging.Logger):
        """
        Initialize progress tracker.

        Args:
            logger: Logger instance for progress reporting
        """
        self.logger = logger
        self.start_time = perf_counter()
        self.aggregate_count = 0
        self.failure_count = 0
        self.operation_stack: list[tuple[str, float]] = []

    @contextmanager
    def track_operation(self, operation_name: str) -> Iterator[None]:
        """
        Track a high-level operation with timing.

        Args:
            operation_name: Name of the operation being tracked

        Yields:
            None
        """
        start_time = perf_counter()
        self.operation_stack.append((operation_name, start_time))

        self.logger.debug(f"Starting operation: {operation_name}")

        try:
            yield
            elapsed = perf_counter() - start_time
            self.logger.debug(f"Completed operation: {operation_name} in {elapsed:.3f}s")
        except Exception as e:
            elapsed = perf_counter() - start_time
            self.logger.error(f"Failed operation: {operation_name} after {elapsed:.3f}s: {e}")
            raise
        finally:
            self.operation_stack.pop()

    def record(self, aggregate_name: str, succeeded: bool) -> None:
        """Count one processed aggregate."""
        self.aggregate_count += 1
        if not succeeded:
            self.failure_count += 1
        self.logger.debug(
            f"Aggregate #{self.aggregate_count} {aggregate_name}: "
            f"{'ok' if succeeded else 'failed'}"
        )

    def report_summary(self) -> None:
        """Report final processing statistics."""
        total_time = perf_counter() - self.start_time
        rate = self.aggregate_count / total_time if total_time > 0 else 0.0

        self.logger.info(
            f"Processing complete: {self.aggregate_count} aggregates "
            f"({self.failure_count} failed) in {total_time:.3f}s "
            f"({rate:.1f} aggregates/s)"
        )

    def get_current_context(self) -> str:
        """
        Get current operation context for logging.

        Returns:
            String describing current operation stack
        """
        if not self.operation_stack:
            return "idle"

        return " -> ".join(op[0] for op in self.operation_stack)

    def reset(self) -> None:
        """Reset all counters and timers."""
        self.start_time = perf_counter()
        self.aggregate_count = 0
        self.failure_count = 0
        self.operation_stack.clear()
