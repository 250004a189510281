"""Exception matching — split findings into active and suppressed.

When several live exceptions match one finding, the one that stays valid
longest wins (then the lowest id), so the recorded pairing does not depend
on the order of the registry.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from secgate.findings.models import Finding
from secgate.gate.verdict import SuppressedFinding
from secgate.policy.models import ExpiredExceptionIgnored, PolicyException


def select_exception(
    finding: Finding,
    exceptions: Sequence[PolicyException],
    now: datetime,
) -> Optional[PolicyException]:
    """Return the live exception that suppresses *finding*, if any."""
    live = [e for e in exceptions if e.is_active(now) and e.matches(finding)]
    if not live:
        return None
    return min(live, key=lambda e: (-e.expires_at.timestamp(), e.id))


def expired_matches(
    finding: Finding,
    exceptions: Sequence[PolicyException],
    now: datetime,
) -> List[ExpiredExceptionIgnored]:
    return [
        ExpiredExceptionIgnored(exception=e, finding=finding)
        for e in sorted(exceptions, key=lambda e: e.id)
        if not e.is_active(now) and e.matches(finding)
    ]


def partition(
    findings: Sequence[Finding],
    exceptions: Sequence[PolicyException],
    now: datetime,
    *,
    rule_name: Optional[str] = None,
) -> Tuple[List[Finding], List[SuppressedFinding], List[ExpiredExceptionIgnored]]:
    """Split *findings* into (active, suppressed, expired-exception notes)."""
    active: List[Finding] = []
    suppressed: List[SuppressedFinding] = []
    notes: List[ExpiredExceptionIgnored] = []
    for finding in findings:
        notes.extend(expired_matches(finding, exceptions, now))
        exc = select_exception(finding, exceptions, now)
        if exc is None:
            active.append(finding)
        else:
            suppressed.append(SuppressedFinding(finding=finding, exception=exc, rule_name=rule_name))
    return active, suppressed, notes
