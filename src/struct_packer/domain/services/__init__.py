#!/usr/bin/env python3

"""Domain services: catalog, layout, packing and reporting."""

from . import catalog, layout, packing, report

__all__ = [
    "catalog",
    "layout",
    "packing",
    "report",
]
