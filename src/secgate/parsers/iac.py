"""Infrastructure-as-code report parsers (Checkov, tfsec)."""

from __future__ import annotations

from typing import Any, Iterator, List, Tuple

from secgate.findings.models import RawFinding
from secgate.parsers.base import (
    ReportFormatError,
    collect,
    load_json,
    location,
    require_dict,
    require_list,
    text,
)


def _checkov_check(check: dict, source_tool: str) -> Iterator[RawFinding]:
    check_id = text(check["check_id"])
    lines = check.get("file_line_range") or [0]
    resource = text(check.get("resource"))
    loc = location(check["file_path"], lines[0])
    yield RawFinding(
        source_tool=source_tool,
        format="checkov",
        rule_id=check_id,
        # the open-source edition reports severity as null
        native_severity=text(check.get("severity"), "unknown"),
        location=f"{loc}#{resource}" if resource else loc,
        description=text(check.get("check_name"), check_id),
        category="misconfiguration",
        raw=check,
    )


def _checkov_frameworks(doc: Any) -> List[dict]:
    """Checkov writes one object per framework, or a list of them."""
    if isinstance(doc, list):
        return [require_dict(d, "checkov framework report") for d in doc]
    doc = require_dict(doc, "checkov report")
    if "results" not in doc:
        # `checkov --quiet` with nothing to scan prints a bare summary
        if {"passed", "failed"} <= set(doc):
            return []
        raise ReportFormatError("checkov report has no 'results' key")
    return [doc]


def parse_checkov(report: str, source_tool: str) -> Tuple[List[RawFinding], List[str]]:
    findings: List[RawFinding] = []
    warnings: List[str] = []
    for framework in _checkov_frameworks(load_json(report)):
        results = framework.get("results") or {}
        if not isinstance(results, dict):
            raise ReportFormatError("checkov 'results' must be an object")
        f, w = collect(
            require_list(results.get("failed_checks"), "failed_checks"),
            lambda c: _checkov_check(c, source_tool),
            f"{framework.get('check_type', 'checkov')} check",
        )
        findings.extend(f)
        warnings.extend(w)
    return findings, warnings


def _tfsec_result(result: dict, source_tool: str) -> Iterator[RawFinding]:
    rule_id = text(result.get("long_id") or result["rule_id"])
    loc_block = result.get("location") or {}
    resource = text(result.get("resource"))
    loc = location(loc_block["filename"], loc_block.get("start_line"))
    yield RawFinding(
        source_tool=source_tool,
        format="tfsec",
        rule_id=rule_id,
        native_severity=text(result.get("severity"), "unknown"),
        location=f"{loc}#{resource}" if resource else loc,
        description=text(result.get("description"), text(result.get("rule_description"), rule_id)),
        category="misconfiguration",
        raw=result,
    )


def parse_tfsec(report: str, source_tool: str) -> Tuple[List[RawFinding], List[str]]:
    """``tfsec --format json``; ``results`` is null on a clean run."""
    doc = require_dict(load_json(report), "tfsec report")
    if "results" not in doc:
        raise ReportFormatError("tfsec report has no 'results' key")
    return collect(
        require_list(doc["results"], "results"),
        lambda r: _tfsec_result(r, source_tool),
        "result",
    )
