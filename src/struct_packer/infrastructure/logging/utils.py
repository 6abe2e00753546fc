#!/usr/bin/env python3

"""Logger lookup and the timing decorator used on top-level operations."""

import logging
from collections.abc import Callable
from functools import wraps
from time import perf_counter
from typing import Any, TypeVar, cast

F = TypeVar("F", bound=Callable[..., Any])


def get_logger(name: str) -> logging.Logger:
    """Module logger; call with __name__."""
    return logging.getLogger(name)


def timing_subject(args: tuple[Any, ...]) -> str:
    """Name of the first named argument (an aggregate, usually), or ''.

    Bound methods pass the instance first; engines and optimizers carry no
    ``name`` so the aggregate after them is picked.
    """
    for arg in args:
        name = getattr(arg, "name", None)
        if isinstance(name, str):
            return name or "<anonymous>"
    return ""


def log_timing(func: F) -> F:
    """
    Log how long each call of a function takes, in milliseconds.

    The log line names the aggregate being processed when the call has one,
    so a batch log reads "Completed LayoutEngine.compute_layout(task) in
    0.41ms". Failures are logged with the elapsed time and re-raised
    unchanged; the caller decides whether they are errors.

    Args:
        func: Function to decorate

    Returns:
        Wrapped function that logs timing
    """

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        logger = get_logger(func.__module__)
        subject = timing_subject(args)
        label = f"{func.__qualname__}({subject})" if subject else func.__qualname__

        start_time = perf_counter()
        try:
            result = func(*args, **kwargs)
        except Exception as e:
            elapsed_ms = (perf_counter() - start_time) * 1000
            logger.debug(f"Failed {label} after {elapsed_ms:.2f}ms: {e}")
            raise

        elapsed_ms = (perf_counter() - start_time) * 1000
        logger.debug(f"Completed {label} in {elapsed_ms:.2f}ms")
        return result

    return cast("F", wrapper)
