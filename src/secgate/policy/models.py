"""Policy data models — threshold rules, exceptions, expiry notes."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from fnmatch import fnmatchcase
from typing import Optional, Tuple

from secgate.config.schema import SEVERITY_ORDER, WILDCARD, severity_at_or_above
from secgate.findings.models import Finding


@dataclass(frozen=True)
class PolicyRule:
    """One threshold clause: more than ``max_count`` matching findings violates it."""

    name: str
    category: str  # canonical category or "*"
    min_severity: str
    max_count: int = 0
    mandatory_for_pass: Optional[bool] = None  # None = decided by the gate's fail_severity
    exception_refs: Tuple[str, ...] = ()
    description: str = ""

    def matches(self, finding: Finding) -> bool:
        if self.category != WILDCARD and finding.category != self.category:
            return False
        return severity_at_or_above(finding.severity, self.min_severity)

    def is_blocking(self, fail_severity: str = "high") -> bool:
        """Whether violating this rule fails the gate (otherwise it warns)."""
        if self.mandatory_for_pass is not None:
            return self.mandatory_for_pass
        return self.max_count == 0 and SEVERITY_ORDER[self.min_severity] >= SEVERITY_ORDER[fail_severity]

    def summary(self) -> str:
        scope = "any category" if self.category == WILDCARD else f"category {self.category}"
        return f"{scope}, severity >= {self.min_severity}, max {self.max_count}"


@dataclass(frozen=True)
class PolicyException:
    """Time-bounded, justified suppression of a finding or a finding pattern.

    Matches by ``finding_id`` exactly, or by ``rule_id`` and ``location``
    glob patterns. An exception whose ``expires_at`` is not strictly after
    the evaluation time is inert.
    """

    id: str
    expires_at: datetime
    justification: str
    finding_id: Optional[str] = None
    rule_id: Optional[str] = None
    location: Optional[str] = None  # glob; None = any location
    owner: str = ""

    def __post_init__(self) -> None:
        # naive expiry times are UTC, as in the registry loader
        if isinstance(self.expires_at, datetime) and self.expires_at.tzinfo is None:
            object.__setattr__(self, "expires_at", self.expires_at.replace(tzinfo=timezone.utc))

    def is_active(self, now: datetime) -> bool:
        return self.expires_at > now

    def matches(self, finding: Finding) -> bool:
        if self.finding_id is not None:
            return self.finding_id in finding.all_ids
        if self.rule_id is None or not fnmatchcase(finding.rule_id, self.rule_id):
            return False
        return self.location is None or fnmatchcase(finding.location, self.location)

    def describe(self) -> str:
        if self.finding_id is not None:
            return f"finding {self.finding_id}"
        return f"rule {self.rule_id} at {self.location or '*'}"


@dataclass(frozen=True)
class ExpiredExceptionIgnored:
    """Note: an exception would have matched a finding but has lapsed."""

    exception: PolicyException
    finding: Finding

    @property
    def message(self) -> str:
        return (
            f"exception {self.exception.id} expired at "
            f"{self.exception.expires_at.isoformat()} and no longer suppresses "
            f"{self.finding.id} ({self.finding.rule_id} at {self.finding.location})"
        )
