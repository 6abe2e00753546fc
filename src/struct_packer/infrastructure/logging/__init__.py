#!/usr/bin/env python3

"""Logging for struct-packer: handler setup, batch progress and timing."""

from .logger_setup import LoggerSetup
from .progress_tracker import ProgressTracker
from .utils import get_logger, log_timing, timing_subject

__all__ = [
    "LoggerSetup",
    "ProgressTracker",
    "get_logger",
    "log_timing",
    "timing_subject",
]
