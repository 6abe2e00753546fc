#!/usr/bin/env python3

"""Layout engine services."""

from .bitfield_allocator import BitfieldAllocator, round_up
from .layout_engine import LayoutEngine, compute_layout
from .union_checker import check_union_overlap

__all__ = [
    "BitfieldAllocator",
    "LayoutEngine",
    "check_union_overlap",
    "compute_layout",
    "round_up",
]
