"""Gate decision — verdict models and the run orchestrator (:mod:`secgate.gate.engine`)."""

from secgate.gate.verdict import (
    EXIT_CANCELLED,
    EXIT_ERROR,
    EXIT_FAIL,
    EXIT_PASS,
    EXIT_WARN,
    GateStatus,
    GateVerdict,
    RuleViolation,
    SuppressedFinding,
    UnparseableReport,
)

__all__ = [
    "EXIT_CANCELLED",
    "EXIT_ERROR",
    "EXIT_FAIL",
    "EXIT_PASS",
    "EXIT_WARN",
    "GateStatus",
    "GateVerdict",
    "RuleViolation",
    "SuppressedFinding",
    "UnparseableReport",
]
