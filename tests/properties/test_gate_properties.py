"""Property-based tests for policy evaluation.

Verifies that the verdict is:
- Deterministic: identical inputs give identical verdicts
- Independent of policy rule order and finding input order
- Monotone in severity: raising a finding's severity never improves the status
- Exact at the exception expiry boundary
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

from hypothesis import given, settings
from hypothesis import strategies as st

from secgate.config.schema import CATEGORIES, SEVERITIES, SEVERITY_ORDER
from secgate.findings.models import Finding
from secgate.findings.normalizer import fingerprint
from secgate.gate.verdict import GateStatus
from secgate.policy.engine import evaluate
from secgate.policy.models import PolicyException, PolicyRule

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)

_STATUS_RANK = {GateStatus.PASS: 0, GateStatus.WARN: 1, GateStatus.FAIL: 2}


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

severities = st.sampled_from(SEVERITIES)
categories = st.sampled_from(CATEGORIES)


@st.composite
def finding_strategy(draw: st.DrawFn) -> Finding:
    rule_id = draw(st.sampled_from(["B101", "B602", "CKV_AWS_20", "generic-api-key"]))
    location = draw(st.sampled_from(["app/main.py:1", "tests/test_app.py:12", "main.tf:1-8"]))
    return Finding(
        id=fingerprint(rule_id, location),
        source_tools=(draw(st.sampled_from(["secret-scan", "sast", "iac"])),),
        rule_id=rule_id,
        severity=draw(severities),
        category=draw(categories),
        location=location,
        description=f"{rule_id} at {location}",
    )


def _unique_by_id(findings):
    seen = {}
    for f in findings:
        seen.setdefault(f.id, f)
    return list(seen.values())


# Canonical findings have unique ids.
finding_lists = st.lists(finding_strategy(), max_size=10).map(_unique_by_id)


@st.composite
def policy_strategy(draw: st.DrawFn):
    # one rule per (category, min_severity) so limits never contradict
    clauses = draw(st.lists(
        st.tuples(st.sampled_from(["*", *CATEGORIES]), severities),
        min_size=1,
        max_size=5,
        unique=True,
    ))
    return [
        PolicyRule(
            name=f"rule-{i}",
            category=category,
            min_severity=min_severity,
            max_count=draw(st.integers(min_value=0, max_value=3)),
            mandatory_for_pass=draw(st.one_of(st.none(), st.booleans())),
        )
        for i, (category, min_severity) in enumerate(clauses)
    ]


exception_lists = st.lists(
    st.builds(
        PolicyException,
        id=st.sampled_from(["EXC-1", "EXC-2", "EXC-3"]),
        expires_at=st.sampled_from([NOW - timedelta(days=1), NOW, NOW + timedelta(days=1)]),
        justification=st.just("accepted risk"),
        rule_id=st.sampled_from(["B101", "B602", "*"]),
        location=st.sampled_from([None, "tests/*", "app/*"]),
    ),
    max_size=3,
    unique_by=lambda e: e.id,
)


def _summary(verdict):
    return (
        verdict.status,
        [(v.rule.name, v.count, v.blocking) for v in verdict.violated_rules],
        [(s.finding.id, s.exception.id) for s in verdict.suppressed_by_exception],
        [(n.exception.id, n.finding.id) for n in verdict.expired_exceptions],
        [f.id for f in verdict.active_findings],
    )


# ---------------------------------------------------------------------------
# Determinism and order independence
# ---------------------------------------------------------------------------

class TestDeterminism:
    @given(findings=finding_lists, policy=policy_strategy(), exceptions=exception_lists)
    @settings(max_examples=150)
    def test_same_inputs_same_verdict(self, findings, policy, exceptions):
        first = evaluate(findings, policy, exceptions, NOW)
        second = evaluate(findings, policy, exceptions, NOW)
        assert _summary(first) == _summary(second)
        assert first.reasons == second.reasons

    @given(data=st.data(), findings=finding_lists, policy=policy_strategy(), exceptions=exception_lists)
    @settings(max_examples=150)
    def test_policy_order_independent(self, data, findings, policy, exceptions):
        reordered = data.draw(st.permutations(policy))
        a = evaluate(findings, policy, exceptions, NOW)
        b = evaluate(findings, reordered, exceptions, NOW)
        assert a.status == b.status
        assert {v.rule.name for v in a.violated_rules} == {v.rule.name for v in b.violated_rules}
        assert [f.id for f in a.active_findings] == [f.id for f in b.active_findings]

    @given(data=st.data(), findings=finding_lists, policy=policy_strategy(), exceptions=exception_lists)
    @settings(max_examples=150)
    def test_finding_order_independent(self, data, findings, policy, exceptions):
        shuffled = data.draw(st.permutations(findings))
        assert _summary(evaluate(findings, policy, exceptions, NOW)) == _summary(
            evaluate(shuffled, policy, exceptions, NOW)
        )


# ---------------------------------------------------------------------------
# Severity monotonicity
# ---------------------------------------------------------------------------

class TestMonotonicity:
    @given(data=st.data(), findings=finding_lists.filter(bool), policy=policy_strategy())
    @settings(max_examples=200)
    def test_raising_severity_never_improves_status(self, data, findings, policy):
        idx = data.draw(st.integers(min_value=0, max_value=len(findings) - 1))
        target = findings[idx]
        higher = data.draw(
            st.sampled_from([s for s in SEVERITIES if SEVERITY_ORDER[s] >= SEVERITY_ORDER[target.severity]])
        )
        raised = list(findings)
        raised[idx] = Finding(
            id=target.id,
            source_tools=target.source_tools,
            rule_id=target.rule_id,
            severity=higher,
            category=target.category,
            location=target.location,
            description=target.description,
        )
        before = evaluate(findings, policy, [], NOW).status
        after = evaluate(raised, policy, [], NOW).status
        assert _STATUS_RANK[after] >= _STATUS_RANK[before]

    @given(findings=finding_lists, policy=policy_strategy())
    @settings(max_examples=100)
    def test_adding_findings_never_improves_status(self, findings, policy):
        half = findings[: len(findings) // 2]
        partial = evaluate(half, policy, [], NOW).status
        full = evaluate(findings, policy, [], NOW).status
        assert _STATUS_RANK[full] >= _STATUS_RANK[partial]


# ---------------------------------------------------------------------------
# Expiry boundary
# ---------------------------------------------------------------------------

class TestExpiryBoundary:
    @given(finding=finding_strategy(), offset_us=st.integers(min_value=-5, max_value=5))
    @settings(max_examples=100)
    def test_exception_live_only_strictly_before_expiry(self, finding, offset_us):
        exc = PolicyException(
            id="EXC-1",
            expires_at=NOW,
            justification="accepted risk",
            finding_id=finding.id,
        )
        now = NOW + timedelta(microseconds=offset_us)
        verdict = evaluate([finding], [], [exc], now)
        suppressed = [s.finding.id for s in verdict.suppressed_by_exception]
        expired = [n.finding.id for n in verdict.expired_exceptions]
        if offset_us < 0:
            assert suppressed == [finding.id]
            assert expired == []
        else:
            assert suppressed == []
            assert expired == [finding.id]
