#!/usr/bin/env python3

"""Domain layer containing the layout rules and models."""

from . import models, services

__all__ = [
    "models",
    "services",
]
