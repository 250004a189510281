"""SARIF v2.1.0 reporter for code-scanning upload.

Only active findings are emitted; suppressed findings stay in the JSON
audit document. Raw native records are never included.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Tuple

from secgate import __version__
from secgate.findings.models import Finding
from secgate.gate.verdict import GateVerdict

_SEVERITY_MAP = {
    "critical": "error",
    "high": "error",
    "medium": "warning",
    "low": "note",
    "informational": "note",
}


def _physical_location(location: str) -> Dict[str, Any]:
    uri, line = _split_location(location)
    phys: Dict[str, Any] = {"artifactLocation": {"uri": uri}}
    if line is not None:
        phys["region"] = {"startLine": line}
    return {"physicalLocation": phys}


def _split_location(location: str) -> Tuple[str, Optional[int]]:
    """``path:12#resource`` -> (``path``, 12); anything else is a bare URI."""
    head = location.split("#", 1)[0]
    path, sep, tail = head.rpartition(":")
    if sep and tail.isdigit() and path:
        return path, max(int(tail), 1)
    return head or location, None


def to_dict(verdict: GateVerdict) -> Dict[str, Any]:
    """Convert the active findings of a verdict to a SARIF v2.1.0 dict."""
    rules: List[Dict[str, Any]] = []
    seen_rules: set[str] = set()
    results: List[Dict[str, Any]] = []

    for f in verdict.active_findings:
        if f.rule_id not in seen_rules:
            seen_rules.add(f.rule_id)
            rules.append({
                "id": f.rule_id,
                "name": f.rule_id,
                "shortDescription": {"text": f.rule_id},
                "fullDescription": {"text": f.description or f.rule_id},
                "defaultConfiguration": {
                    "level": _SEVERITY_MAP.get(f.severity, "warning"),
                },
                "properties": {
                    "security-severity": _security_severity(f.severity),
                    "tags": ["security", f.category],
                },
            })
        results.append(_result(f))

    sarif = {
        "$schema": "https://raw.githubusercontent.com/oasis-tcs/sarif-spec/main/sarif-2.1/schema/sarif-schema-2.1.0.json",
        "version": "2.1.0",
        "runs": [
            {
                "tool": {
                    "driver": {
                        "name": "secgate",
                        "version": __version__,
                        "rules": rules,
                    }
                },
                "results": results,
                "properties": {"gateStatus": verdict.status.value},
            }
        ],
    }
    return sarif


def _result(f: Finding) -> Dict[str, Any]:
    return {
        "ruleId": f.rule_id,
        "level": _SEVERITY_MAP.get(f.severity, "warning"),
        "message": {"text": f.description or f.rule_id},
        "locations": [_physical_location(f.location)],
        "partialFingerprints": {"secgate/v1": f.id},
        "properties": {
            "severity": f.severity,
            "category": f.category,
            "sourceTools": list(f.source_tools),
            **({"references": list(f.cve_or_cwe)} if f.cve_or_cwe else {}),
        },
    }


def render(verdict: GateVerdict) -> str:
    """Return SARIF JSON string."""
    return json.dumps(to_dict(verdict), indent=2)


def _security_severity(severity: str) -> str:
    """Map severity to SARIF security-severity score (0.0 – 10.0)."""
    mapping = {
        "critical": "9.5",
        "high": "7.5",
        "medium": "5.0",
        "low": "2.0",
        "informational": "0.0",
    }
    return mapping.get(severity, "5.0")
