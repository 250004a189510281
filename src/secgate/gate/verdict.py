"""Gate verdict models and exit codes."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple

from secgate.findings.models import Finding
from secgate.parsers.base import ParseError, ParseWarning
from secgate.policy.models import ExpiredExceptionIgnored, PolicyException, PolicyRule


class GateStatus(str, Enum):
    PASS = "pass"
    WARN = "warn"
    FAIL = "fail"


# Process exit codes for the orchestrator's gate stage.
EXIT_PASS = 0
EXIT_FAIL = 1
EXIT_ERROR = 2  # configuration / usage error, no verdict
EXIT_WARN = 3  # warn verdict with fail-on-warn
EXIT_CANCELLED = 130  # no verdict


@dataclass(frozen=True)
class RuleViolation:
    """A policy rule whose threshold was exceeded, with its evidence."""

    rule: PolicyRule
    findings: Tuple[Finding, ...]
    blocking: bool

    @property
    def count(self) -> int:
        return len(self.findings)


@dataclass(frozen=True)
class SuppressedFinding:
    """A finding removed from evaluation by a live exception."""

    finding: Finding
    exception: PolicyException
    rule_name: Optional[str] = None  # set for rule-scoped exceptions


@dataclass(frozen=True)
class UnparseableReport:
    source_tool: str
    error: ParseError
    mandatory: bool


@dataclass
class GateVerdict:
    """Single pass/warn/fail decision plus the full evidentiary trail."""

    status: GateStatus
    evaluated_at: datetime
    violated_rules: List[RuleViolation] = field(default_factory=list)
    suppressed_by_exception: List[SuppressedFinding] = field(default_factory=list)
    unparseable_reports: List[UnparseableReport] = field(default_factory=list)
    expired_exceptions: List[ExpiredExceptionIgnored] = field(default_factory=list)
    parse_warnings: List[ParseWarning] = field(default_factory=list)
    findings: List[Finding] = field(default_factory=list)
    active_findings: List[Finding] = field(default_factory=list)
    reasons: List[str] = field(default_factory=list)
    rules_evaluated: int = 0

    def exit_code(self, *, fail_on_warn: bool = False) -> int:
        if self.status == GateStatus.FAIL:
            return EXIT_FAIL
        if self.status == GateStatus.WARN and fail_on_warn:
            return EXIT_WARN
        return EXIT_PASS
