"""Software-composition report parsers (Safety, OWASP Dependency-Check).

Dependency locations are written as package URLs (``pkg:pypi/name@version``)
so that two tools reporting the same CVE in the same package overlap.
"""

from __future__ import annotations

import re
from typing import Any, Iterable, Iterator, List, Optional, Tuple

from secgate.findings.models import RawFinding
from secgate.parsers.base import (
    RECORD_ERRORS,
    ReportFormatError,
    collect,
    cwe_ref,
    load_json,
    records_of,
    require_dict,
    require_list,
    skipped,
    text,
)

_CVE_RE = re.compile(r"\b(CVE-\d{4}-\d{4,}|GHSA(?:-[0-9a-z]{4}){3})\b", re.IGNORECASE)


def pypi_purl(name: str, version: str) -> str:
    # PEP 503 normalization
    norm = re.sub(r"[-_.]+", "-", name).lower()
    return f"pkg:pypi/{norm}@{version}" if version else f"pkg:pypi/{norm}"


def refs_in(*values: Any) -> Tuple[str, ...]:
    found: List[str] = []
    for value in values:
        if value:
            found.extend(m.group(1) for m in _CVE_RE.finditer(str(value)))
    return tuple(found)


# --- Safety ------------------------------------------------------------------


def _safety_severity(vuln: dict) -> str:
    sev = vuln.get("severity")
    if isinstance(sev, dict):
        for key in ("cvssv3", "cvssv2"):
            block = sev.get(key)
            if isinstance(block, dict) and block.get("base_severity"):
                return text(block["base_severity"])
        return "unknown"
    return text(sev, "unknown")


def _safety_v2_record(vuln: dict, source_tool: str) -> Iterator[RawFinding]:
    name = text(vuln["package_name"])
    version = text(vuln.get("analyzed_version"))
    vuln_id = text(vuln["vulnerability_id"])
    refs = refs_in(vuln.get("CVE"), vuln.get("cve"))
    yield RawFinding(
        source_tool=source_tool,
        format="safety",
        rule_id=f"PYUP-{vuln_id}" if vuln_id.isdigit() else vuln_id,
        native_severity=_safety_severity(vuln),
        location=pypi_purl(name, version),
        description=text(vuln.get("advisory"), f"Vulnerable {name} {version}"),
        category="vulnerability",
        cve_or_cwe=refs,
        raw=vuln,
    )


def _safety_legacy_record(row: list, source_tool: str) -> Iterator[RawFinding]:
    # [package, affected_spec, installed_version, advisory, vuln_id, (cvssv2), (cvssv3)]
    name, _spec, version, advisory, vuln_id = (text(v) for v in row[:5])
    yield RawFinding(
        source_tool=source_tool,
        format="safety",
        rule_id=f"PYUP-{vuln_id}" if vuln_id.isdigit() else vuln_id,
        native_severity="unknown",
        location=pypi_purl(name, version),
        description=advisory or f"Vulnerable {name} {version}",
        category="vulnerability",
        cve_or_cwe=refs_in(advisory),
        raw={"row": row},
    )


def parse_safety(report: str, source_tool: str) -> Tuple[List[RawFinding], List[str]]:
    """``safety check --json``; both the legacy list and the 2.x+ object."""
    doc = load_json(report)
    if isinstance(doc, list):
        return collect(doc, lambda r: _safety_legacy_record(r, source_tool), "vulnerability")
    doc = require_dict(doc, "safety report")
    if "vulnerabilities" not in doc:
        raise ReportFormatError("safety report has no 'vulnerabilities' key")
    return collect(
        require_list(doc["vulnerabilities"], "vulnerabilities"),
        lambda r: _safety_v2_record(r, source_tool),
        "vulnerability",
    )


# --- OWASP Dependency-Check ---------------------------------------------------


def _dependency_location(dep: dict) -> str:
    for pkg in dep.get("packages") or []:
        if isinstance(pkg, dict) and pkg.get("id"):
            return text(pkg["id"])
    return text(dep.get("filePath") or dep.get("fileName"), "unknown")


def _dc_severity(vuln: dict) -> str:
    if vuln.get("severity"):
        return text(vuln["severity"])
    for key in ("cvssv3", "cvssv2"):
        block = vuln.get(key)
        if isinstance(block, dict):
            sev = block.get("baseSeverity") or block.get("severity")
            if sev:
                return text(sev)
    return "unknown"


def _dc_cwes(vuln: dict) -> Iterable[str]:
    for cwe in vuln.get("cwes") or []:
        ref = cwe_ref(str(cwe).split(" ")[0])
        if ref:
            yield ref


def _dc_vulnerability(vuln: dict, dep: dict, loc: str, source_tool: str) -> Iterator[RawFinding]:
    name = text(vuln["name"])
    refs: List[Optional[str]] = [*refs_in(name), *_dc_cwes(vuln)]
    yield RawFinding(
        source_tool=source_tool,
        format="dependency-check",
        rule_id=name,
        native_severity=_dc_severity(vuln),
        location=loc,
        description=text(vuln.get("description"), name),
        category="vulnerability",
        cve_or_cwe=tuple(r for r in refs if r),
        raw={"dependency": dep.get("fileName"), "vulnerability": vuln},
    )


def parse_dependency_check(report: str, source_tool: str) -> Tuple[List[RawFinding], List[str]]:
    """Dependency-Check ``--format JSON`` (the HTML report is not machine-readable)."""
    doc = require_dict(load_json(report), "dependency-check report")
    if "dependencies" not in doc:
        raise ReportFormatError("dependency-check report has no 'dependencies' key")

    findings: List[RawFinding] = []
    warnings: List[str] = []
    for idx, dep in enumerate(require_list(doc["dependencies"], "dependencies"), 1):
        try:
            loc = _dependency_location(dep)
            vulns = records_of(dep, "vulnerabilities")
        except RECORD_ERRORS as exc:
            warnings.append(skipped("dependency", idx, exc))
            continue
        f, w = collect(
            vulns,
            lambda v, dep=dep, loc=loc: _dc_vulnerability(v, dep, loc, source_tool),
            "vulnerability",
            prefix=f"dependency #{idx} ",
        )
        findings.extend(f)
        warnings.extend(w)
    return findings, warnings
