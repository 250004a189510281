"""Policy rules, exception registry, and evaluation.

The evaluator lives in :mod:`secgate.policy.engine`.
"""

from secgate.policy.loader import (
    DEFAULT_POLICY,
    PolicyConfigError,
    build_exceptions,
    build_rules,
    load_exceptions,
    parse_timestamp,
    validate_policy,
)
from secgate.policy.models import ExpiredExceptionIgnored, PolicyException, PolicyRule

__all__ = [
    "DEFAULT_POLICY",
    "ExpiredExceptionIgnored",
    "PolicyConfigError",
    "PolicyException",
    "PolicyRule",
    "build_exceptions",
    "build_rules",
    "load_exceptions",
    "parse_timestamp",
    "validate_policy",
]
