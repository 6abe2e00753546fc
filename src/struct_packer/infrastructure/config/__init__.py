"""Infrastructure configuration module."""

from .layout_config import DEFAULT_CONFIG, get_config

__all__ = ["DEFAULT_CONFIG", "get_config"]
