#!/usr/bin/env python3

"""Packing optimizer service."""

from .packing_optimizer import (
    PackingConstraints,
    PackingOptimizer,
    RepackResult,
    count_straddling_groups,
    repack,
)

__all__ = [
    "PackingConstraints",
    "PackingOptimizer",
    "RepackResult",
    "count_straddling_groups",
    "repack",
]
