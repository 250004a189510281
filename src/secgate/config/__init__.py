"""Configuration loading, schema, and defaults."""

from secgate.config.loader import ConfigError, load_config
from secgate.config.schema import (
    SEVERITY_ORDER,
    SecGateConfig,
    Severity,
    severity_at_or_above,
    severity_rank,
)

__all__ = [
    "ConfigError",
    "SEVERITY_ORDER",
    "SecGateConfig",
    "Severity",
    "load_config",
    "severity_at_or_above",
    "severity_rank",
]
