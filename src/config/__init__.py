"""
Configuration loader.

Reads a JSON or YAML simulation config, validates it against the bundled
JSON Schema and returns a frozen dataclass tree.
"""

from config.loader import (
    AccountConfig,
    CSVConfig,
    ExecutionConfig,
    HolodeckConfig,
    InstrumentConfig,
    OutputConfig,
    SpeedConfig,
    config_from_dict,
    load_config,
)

__all__ = [
    "AccountConfig",
    "config_from_dict",
    "CSVConfig",
    "ExecutionConfig",
    "HolodeckConfig",
    "InstrumentConfig",
    "load_config",
    "OutputConfig",
    "SpeedConfig",
]
