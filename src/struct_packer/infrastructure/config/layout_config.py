#!/usr/bin/env python3

"""Engine tuning defaults with environment overrides."""

import os

# Default configuration values
DEFAULT_CONFIG = {
    "DEFAULT_PROFILE": "lp64",
    "MAX_NESTING_DEPTH": 64,
    "BATCH_WORKERS": 1,
    # Warn about aggregates wasting more than this share of their size
    "WASTE_WARNING_PERCENT": 25.0,
    "CHECK_UNIONS": False,
}


def get_config() -> dict:
    """Get configuration with environment variable overrides.

    Every key can be overridden with a LAYOUT_<KEY> environment variable;
    values that do not parse as the default's type are ignored.

    Returns:
        Configuration dictionary
    """
    config = DEFAULT_CONFIG.copy()

    for key in config:
        env_value = os.getenv(f"LAYOUT_{key}")
        if env_value is None:
            continue
        if isinstance(config[key], bool):
            config[key] = env_value.lower() in ("true", "1", "yes", "on")
        elif isinstance(config[key], int):
            try:
                config[key] = int(env_value)
            except ValueError:
                pass
        elif isinstance(config[key], float):
            try:
                config[key] = float(env_value)
            except ValueError:
                pass
        else:
            config[key] = env_value

    return config
