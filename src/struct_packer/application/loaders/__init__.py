#!/usr/bin/env python3

"""Input loaders producing aggregate descriptions."""

from .dwarf_loader import DwarfAggregateLoader, DwarfLoadError, load_elf_description
from .json_loader import (
    Description,
    DescriptionError,
    load_description,
    parse_aggregate,
    parse_description,
    parse_profile,
)

__all__ = [
    "Description",
    "DescriptionError",
    "DwarfAggregateLoader",
    "DwarfLoadError",
    "load_description",
    "load_elf_description",
    "parse_aggregate",
    "parse_description",
    "parse_profile",
]
