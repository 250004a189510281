"""Static-analysis report parsers (Bandit)."""

from __future__ import annotations

from typing import Iterator, List, Tuple

from secgate.findings.models import RawFinding
from secgate.parsers.base import (
    ReportFormatError,
    collect,
    cwe_ref,
    load_json,
    location,
    require_dict,
    require_list,
    text,
)


def _bandit_result(result: dict, source_tool: str) -> Iterator[RawFinding]:
    test_id = text(result["test_id"])
    cwe = cwe_ref(result.get("issue_cwe"))
    yield RawFinding(
        source_tool=source_tool,
        format="bandit",
        rule_id=test_id,
        native_severity=text(result.get("issue_severity"), "undefined"),
        location=location(result["filename"], result.get("line_number")),
        description=text(result.get("issue_text"), text(result.get("test_name"), test_id)),
        category="vulnerability",
        cve_or_cwe=(cwe,) if cwe else (),
        raw=result,
    )


def parse_bandit(report: str, source_tool: str) -> Tuple[List[RawFinding], List[str]]:
    """``bandit -f json``: ``results`` plus per-file ``errors``."""
    doc = require_dict(load_json(report), "bandit report")
    if "results" not in doc:
        raise ReportFormatError("bandit report has no 'results' key")
    findings, warnings = collect(
        require_list(doc["results"], "results"),
        lambda r: _bandit_result(r, source_tool),
        "result",
    )
    for err in doc.get("errors") or []:
        if isinstance(err, dict):
            warnings.append(f"bandit could not scan {err.get('filename', '?')}: {err.get('reason', '')}")
    return findings, warnings
