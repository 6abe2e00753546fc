#!/usr/bin/env python3

"""Domain models for the struct packer."""

from . import layout

__all__ = [
    "layout",
]
