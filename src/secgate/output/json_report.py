"""JSON audit document for CI pipelines and artifact storage."""

from __future__ import annotations

import json
from typing import Any, Dict, List

from secgate import __version__
from secgate.findings.models import Finding
from secgate.findings.redactor import redact_record
from secgate.gate.verdict import GateVerdict

SCHEMA_VERSION = "1.0"


def _finding(f: Finding, *, include_raw: bool) -> Dict[str, Any]:
    out: Dict[str, Any] = {
        "id": f.id,
        "source_tools": list(f.source_tools),
        "rule_id": f.rule_id,
        "severity": f.severity,
        "category": f.category,
        "location": f.location,
        "description": f.description,
        "cve_or_cwe": list(f.cve_or_cwe),
        "ambiguous_mapping": f.ambiguous_mapping,
        **({"merged_from": list(f.merged_from)} if f.merged_from else {}),
    }
    if include_raw:
        out["raw"] = [redact_record(r) for r in f.raw]
    return out


def _exception(exc) -> Dict[str, Any]:
    return {
        "id": exc.id,
        "match": exc.describe(),
        "expires_at": exc.expires_at.isoformat(),
        "justification": exc.justification,
        **({"owner": exc.owner} if exc.owner else {}),
    }


def to_dict(
    verdict: GateVerdict,
    *,
    include_raw: bool = False,
    fail_on_warn: bool = False,
) -> Dict[str, Any]:
    """Convert a GateVerdict to a JSON-serialisable dict."""
    violated: List[Dict[str, Any]] = []
    for v in verdict.violated_rules:
        violated.append({
            "rule": v.rule.name,
            "category": v.rule.category,
            "min_severity": v.rule.min_severity,
            "max_count": v.rule.max_count,
            "count": v.count,
            "blocking": v.blocking,
            "findings": [f.id for f in v.findings],
        })

    suppressed = [
        {
            "finding": s.finding.id,
            "exception": _exception(s.exception),
            **({"rule": s.rule_name} if s.rule_name else {}),
        }
        for s in verdict.suppressed_by_exception
    ]

    unparseable = [
        {
            "source_tool": u.source_tool,
            "format": u.error.format,
            "report": u.error.label,
            "reason": u.error.reason,
            "mandatory": u.mandatory,
        }
        for u in verdict.unparseable_reports
    ]

    return {
        "version": SCHEMA_VERSION,
        "secgate_version": __version__,
        "status": verdict.status.value,
        "exit_code": verdict.exit_code(fail_on_warn=fail_on_warn),
        "evaluated_at": verdict.evaluated_at.isoformat(),
        "rules_evaluated": verdict.rules_evaluated,
        "total_findings": len(verdict.findings),
        "active_findings": len(verdict.active_findings),
        "violated_rules": violated,
        "suppressed_by_exception": suppressed,
        "expired_exceptions": [
            {"exception": n.exception.id, "finding": n.finding.id, "message": n.message}
            for n in verdict.expired_exceptions
        ],
        "unparseable_reports": unparseable,
        "parse_warnings": [
            {"source_tool": w.source_tool, "report": w.label, "message": w.message}
            for w in verdict.parse_warnings
        ],
        "findings": [_finding(f, include_raw=include_raw) for f in verdict.findings],
        "reasons": list(verdict.reasons),
    }


def render(verdict: GateVerdict, *, include_raw: bool = False, fail_on_warn: bool = False) -> str:
    """Return formatted JSON string."""
    return json.dumps(
        to_dict(verdict, include_raw=include_raw, fail_on_warn=fail_on_warn),
        indent=2,
        default=str,
    )
