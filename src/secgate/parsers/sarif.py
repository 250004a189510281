"""Generic SARIF 2.1.0 parser (Trivy, tfsec, Semgrep, CodeQL SARIF output).

SARIF does not say which kind of scanner produced it, so the report source
must name the tool. Severity comes from the ``security-severity`` score when
present (CVSS bands), otherwise from the result/rule ``level``.
"""

from __future__ import annotations

import re
from typing import Any, Dict, Iterator, List, Optional, Tuple

from secgate.findings.models import RawFinding
from secgate.findings.normalizer import DEFAULT_CATEGORY
from secgate.parsers.base import (
    ReportFormatError,
    collect,
    load_json,
    location,
    require_dict,
    require_list,
    text,
)
from secgate.parsers.sca import refs_in

_CWE_TAG_RE = re.compile(r"cwe-(\d+)", re.IGNORECASE)

_TAG_CATEGORIES = (
    ("secret", "secret"),
    ("license", "license"),
    ("misconfiguration", "misconfiguration"),
    ("iac", "misconfiguration"),
    ("maintainability", "code-quality"),
    ("code-quality", "code-quality"),
)


def _score(*property_bags: Any) -> Optional[float]:
    for bag in property_bags:
        if isinstance(bag, dict) and bag.get("security-severity") is not None:
            try:
                return float(bag["security-severity"])
            except (TypeError, ValueError):
                continue
    return None


def _category(tags: List[str], source_tool: str) -> str:
    lowered = [t.lower() for t in tags]
    for needle, category in _TAG_CATEGORIES:
        if any(needle in t for t in lowered):
            return category
    return DEFAULT_CATEGORY.get(source_tool, "vulnerability")


def _location(result: dict) -> str:
    for loc in result.get("locations") or []:
        physical = (loc or {}).get("physicalLocation") or {}
        uri = (physical.get("artifactLocation") or {}).get("uri")
        if uri:
            return location(uri, (physical.get("region") or {}).get("startLine"))
    return "unknown"


def _rule_index(run: dict) -> Dict[str, dict]:
    driver = ((run.get("tool") or {}).get("driver")) or {}
    rules: Dict[str, dict] = {}
    for rule in driver.get("rules") or []:
        if isinstance(rule, dict) and rule.get("id"):
            rules[rule["id"]] = rule
    return rules


def _sarif_result(result: dict, rules: Dict[str, dict], source_tool: str) -> Iterator[RawFinding]:
    rule_id = text(result.get("ruleId") or (result.get("rule") or {}).get("id"), "unknown")
    rule = rules.get(rule_id, {})
    rule_props = rule.get("properties") or {}
    tags = [str(t) for t in (rule_props.get("tags") or [])]
    level = result.get("level") or (rule.get("defaultConfiguration") or {}).get("level") or "warning"
    message = text((result.get("message") or {}).get("text"))
    cwes = [f"CWE-{m.group(1)}" for m in (_CWE_TAG_RE.search(t) for t in tags) if m]
    yield RawFinding(
        source_tool=source_tool,
        format="sarif",
        rule_id=rule_id,
        native_severity=text(level),
        native_score=_score(result.get("properties"), rule_props),
        location=_location(result),
        description=message or text((rule.get("shortDescription") or {}).get("text"), rule_id),
        category=_category(tags, source_tool),
        cve_or_cwe=(*refs_in(rule_id), *cwes),
        raw=result,
    )


def parse_sarif(report: str, source_tool: str) -> Tuple[List[RawFinding], List[str]]:
    doc = require_dict(load_json(report), "SARIF log")
    if "runs" not in doc:
        raise ReportFormatError("SARIF log has no 'runs' key")
    if not str(doc.get("version", "2.1.0")).startswith("2."):
        raise ReportFormatError(f"unsupported SARIF version {doc.get('version')!r}")
    findings: List[RawFinding] = []
    warnings: List[str] = []
    for run in require_list(doc["runs"], "runs"):
        run = require_dict(run, "run")
        rules = _rule_index(run)
        f, w = collect(
            require_list(run.get("results"), "results"),
            lambda r: _sarif_result(r, rules, source_tool),
            "result",
        )
        findings.extend(f)
        warnings.extend(w)
    return findings, warnings
