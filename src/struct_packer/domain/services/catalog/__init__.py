#!/usr/bin/env python3

"""Type catalog service."""

from .type_catalog import TypeCatalog, normalize_type_name

__all__ = ["TypeCatalog", "normalize_type_name"]
