"""Configuration module."""

from .config import OUTPUT_FORMATS, Config

__all__ = ["Config", "OUTPUT_FORMATS"]
