"""Policy evaluation — canonical findings in, GateVerdict out.

``evaluate`` is a pure function of its arguments: the policy, exception
list, and current time are passed in explicitly, never read from globals or
the system clock.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from secgate.config.schema import SEVERITY_ORDER
from secgate.findings.aggregator import sort_findings, sort_key
from secgate.findings.models import Finding
from secgate.gate.verdict import (
    GateStatus,
    GateVerdict,
    RuleViolation,
    SuppressedFinding,
    UnparseableReport,
)
from secgate.parsers.base import ParseError, ParseWarning
from secgate.policy.exceptions import partition
from secgate.policy.loader import PolicyConfigError, validate_policy
from secgate.policy.models import ExpiredExceptionIgnored, PolicyException, PolicyRule

logger = logging.getLogger(__name__)


def _aware(now: datetime) -> datetime:
    return now if now.tzinfo is not None else now.replace(tzinfo=timezone.utc)


def _unique_notes(notes: Iterable[ExpiredExceptionIgnored]) -> List[ExpiredExceptionIgnored]:
    seen: Dict[tuple, ExpiredExceptionIgnored] = {}
    for n in notes:
        seen.setdefault((n.exception.id, n.finding.id), n)
    return sorted(seen.values(), key=lambda n: (n.exception.id, sort_key(n.finding)))


def _partially_parsed(
    warnings: Sequence[ParseWarning], mandatory: Set[str]
) -> List[UnparseableReport]:
    """Mandatory reports that lost records while parsing count as unparseable."""
    skips: Dict[Tuple[str, Optional[str]], int] = {}
    for w in warnings:
        if w.record_skipped and w.source_tool in mandatory:
            key = (w.source_tool, w.label)
            skips[key] = skips.get(key, 0) + 1
    return [
        UnparseableReport(
            source_tool=tool,
            error=ParseError(
                source_tool=tool,
                reason=f"partially parsed: {n} record(s) skipped",
                label=label,
            ),
            mandatory=True,
        )
        for (tool, label), n in skips.items()
    ]


def _sorted_suppressions(items: Iterable[SuppressedFinding]) -> List[SuppressedFinding]:
    return sorted(
        items,
        key=lambda s: (sort_key(s.finding), s.exception.id, s.rule_name or ""),
    )


def evaluate(
    findings: Sequence[Finding],
    policy: Sequence[PolicyRule],
    exceptions: Sequence[PolicyException],
    now: datetime,
    *,
    unparseable_reports: Sequence[ParseError] = (),
    mandatory_scanners: Sequence[str] = (),
    fail_severity: str = "high",
    warn_on_unparseable: bool = True,
    parse_warnings: Sequence[ParseWarning] = (),
) -> GateVerdict:
    """Evaluate canonical findings against *policy* and render a verdict.

    1. Findings matched by a live exception are suppressed (``expires_at > now``).
    2. Each rule counts the active findings in its category at or above its
       minimum severity; rule-scoped exceptions remove findings for that rule only.
    3. A rule is violated when the count exceeds ``max_count``.
    4. ``fail`` on any blocking violation or on an unparseable mandatory
       report (including one that lost records while parsing); ``warn`` on any other violation (or unparseable optional
       report); ``pass`` otherwise.
    """
    if fail_severity not in SEVERITY_ORDER:
        raise PolicyConfigError(f"Invalid fail severity {fail_severity!r}")
    validate_policy(policy, exceptions)
    now = _aware(now)

    scoped_ids = {ref for rule in policy for ref in rule.exception_refs}
    by_id = {e.id: e for e in exceptions}
    global_exceptions = [e for e in exceptions if e.id not in scoped_ids]

    ordered = sort_findings(findings)
    active, suppressed, notes = partition(ordered, global_exceptions, now)

    violations: List[RuleViolation] = []
    for rule in policy:
        matched = [f for f in active if rule.matches(f)]
        if rule.exception_refs:
            scoped = [by_id[r] for r in rule.exception_refs]
            matched, rule_suppressed, rule_notes = partition(
                matched, scoped, now, rule_name=rule.name
            )
            suppressed.extend(rule_suppressed)
            notes.extend(rule_notes)
        if len(matched) > rule.max_count:
            violations.append(
                RuleViolation(
                    rule=rule,
                    findings=tuple(matched),
                    blocking=rule.is_blocking(fail_severity),
                )
            )

    mandatory = set(mandatory_scanners)
    unparseable = [
        UnparseableReport(source_tool=e.source_tool, error=e, mandatory=e.source_tool in mandatory)
        for e in unparseable_reports
    ]
    unparseable.extend(_partially_parsed(parse_warnings, mandatory))

    if any(v.blocking for v in violations) or any(u.mandatory for u in unparseable):
        status = GateStatus.FAIL
    elif violations or (warn_on_unparseable and unparseable):
        status = GateStatus.WARN
    else:
        status = GateStatus.PASS

    verdict = GateVerdict(
        status=status,
        evaluated_at=now,
        violated_rules=violations,
        suppressed_by_exception=_sorted_suppressions(suppressed),
        unparseable_reports=unparseable,
        expired_exceptions=_unique_notes(notes),
        parse_warnings=list(parse_warnings),
        findings=ordered,
        active_findings=active,
        rules_evaluated=len(policy),
    )
    verdict.reasons = explain(verdict)
    logger.info(
        "Gate %s: %d finding(s), %d violation(s), %d suppressed, %d unparseable",
        status.value,
        len(ordered),
        len(violations),
        len(verdict.suppressed_by_exception),
        len(unparseable),
    )
    return verdict


def explain(verdict: GateVerdict) -> List[str]:
    """Human-readable account of why the verdict has its status."""
    reasons: List[str] = []
    for v in verdict.violated_rules:
        kind = "blocking" if v.blocking else "advisory"
        reasons.append(
            f"{kind} rule '{v.rule.name}' violated: {v.count} finding(s) "
            f"exceed the limit ({v.rule.summary()})"
        )
    for u in verdict.unparseable_reports:
        where = f" ({u.error.label})" if u.error.label else ""
        role = "mandatory" if u.mandatory else "optional"
        reasons.append(f"{role} {u.source_tool} report{where} unusable: {u.error.reason}")
    if verdict.suppressed_by_exception:
        reasons.append(f"{len(verdict.suppressed_by_exception)} finding(s) suppressed by exceptions")
    for note in verdict.expired_exceptions:
        reasons.append(note.message)
    if verdict.parse_warnings:
        reasons.append(f"{len(verdict.parse_warnings)} partial-parse warning(s); see parse_warnings")
    if verdict.status == GateStatus.PASS:
        reasons.append(
            f"no policy rule exceeded its threshold ({verdict.rules_evaluated} rule(s), "
            f"{len(verdict.active_findings)} active finding(s))"
        )
    return reasons
