"""Container image report parser (Trivy JSON)."""

from __future__ import annotations

from typing import Iterator, List, Tuple

from secgate.findings.models import RawFinding
from secgate.parsers.base import (
    RECORD_ERRORS,
    ReportFormatError,
    collect,
    cwe_ref,
    load_json,
    location,
    records_of,
    require_dict,
    require_list,
    skipped,
    text,
)
from secgate.parsers.sca import refs_in


def _vulnerability(vuln: dict, target: str, source_tool: str) -> Iterator[RawFinding]:
    vuln_id = text(vuln["VulnerabilityID"])
    pkg = text(vuln.get("PkgName"))
    version = text(vuln.get("InstalledVersion"))
    refs = [*refs_in(vuln_id)]
    refs.extend(r for r in (cwe_ref(c) for c in vuln.get("CweIDs") or []) if r)
    # newer Trivy releases carry a package URL, which lines up with SCA tools
    purl = text((vuln.get("PkgIdentifier") or {}).get("PURL"))
    yield RawFinding(
        source_tool=source_tool,
        format="trivy",
        rule_id=vuln_id,
        native_severity=text(vuln.get("Severity"), "unknown"),
        location=purl or (f"{target}/{pkg}@{version}" if version else f"{target}/{pkg}"),
        description=text(vuln.get("Title"), text(vuln.get("Description"), vuln_id)),
        category="vulnerability",
        cve_or_cwe=tuple(refs),
        raw=vuln,
    )


def _misconfiguration(mis: dict, target: str, source_tool: str) -> Iterator[RawFinding]:
    if text(mis.get("Status")).upper() == "PASS":
        return
    cause = mis.get("CauseMetadata") or {}
    yield RawFinding(
        source_tool=source_tool,
        format="trivy",
        rule_id=text(mis.get("AVDID") or mis["ID"]),
        native_severity=text(mis.get("Severity"), "unknown"),
        location=location(target, cause.get("StartLine")),
        description=text(mis.get("Message"), text(mis.get("Title"))),
        category="misconfiguration",
        raw=mis,
    )


def _secret(secret: dict, target: str, source_tool: str) -> Iterator[RawFinding]:
    yield RawFinding(
        source_tool=source_tool,
        format="trivy",
        rule_id=text(secret["RuleID"]),
        native_severity=text(secret.get("Severity"), "unknown"),
        location=location(target, secret.get("StartLine")),
        description=text(secret.get("Title"), secret["RuleID"]),
        category="secret",
        raw=secret,
    )


def _license(lic: dict, target: str, source_tool: str) -> Iterator[RawFinding]:
    name = text(lic["Name"])
    pkg = text(lic.get("PkgName"))
    yield RawFinding(
        source_tool=source_tool,
        format="trivy",
        rule_id=f"license:{name}",
        native_severity=text(lic.get("Severity"), "unknown"),
        location=f"{target}/{pkg}" if pkg else text(lic.get("FilePath"), target),
        description=f"{pkg or 'file'} is licensed under {name} ({text(lic.get('Category'), 'unknown')})",
        category="license",
        raw=lic,
    )


_SECTIONS = (
    ("Vulnerabilities", "vulnerability", _vulnerability),
    ("Misconfigurations", "misconfiguration", _misconfiguration),
    ("Secrets", "secret", _secret),
    ("Licenses", "license", _license),
)


def parse_trivy(report: str, source_tool: str) -> Tuple[List[RawFinding], List[str]]:
    """``trivy image --format json``; ``Results`` may be absent on a clean image."""
    doc = require_dict(load_json(report), "trivy report")
    if "Results" not in doc and "ArtifactName" not in doc and "SchemaVersion" not in doc:
        raise ReportFormatError("not a Trivy JSON report (no 'Results')")

    findings: List[RawFinding] = []
    warnings: List[str] = []
    for idx, result in enumerate(require_list(doc.get("Results"), "Results"), 1):
        try:
            target = text(result.get("Target"), "unknown")
        except RECORD_ERRORS as exc:
            warnings.append(skipped("result", idx, exc))
            continue
        for key, what, extract in _SECTIONS:
            try:
                records = records_of(result, key)
            except RECORD_ERRORS as exc:
                warnings.append(f"result #{idx} {key} skipped: {type(exc).__name__}: {exc}")
                continue
            f, w = collect(
                records,
                lambda r, extract=extract: extract(r, target, source_tool),
                what,
                prefix=f"result #{idx} ",
            )
            findings.extend(f)
            warnings.extend(w)
    return findings, warnings
