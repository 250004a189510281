"""Secret-scanner report parsers (TruffleHog, Gitleaks)."""

from __future__ import annotations

import json
from typing import Any, Iterator, List, Tuple

from secgate.findings.models import RawFinding
from secgate.parsers.base import ReportFormatError, collect, load_json, location, require_list, text


def _trufflehog_location(metadata: Any) -> str:
    """Dig the file/line out of ``SourceMetadata.Data.<source>``."""
    data = (metadata or {}).get("Data") or {}
    for source in data.values():
        if not isinstance(source, dict):
            continue
        path = source.get("file") or source.get("path") or source.get("link")
        if path:
            loc = location(path, source.get("line"))
            commit = source.get("commit")
            return f"{loc}@{commit}" if commit else loc
    return "unknown"


def _trufflehog_record(record: dict, source_tool: str) -> Iterator[RawFinding]:
    if "DetectorName" in record:
        # v3
        detector = text(record["DetectorName"])
        verified = record.get("Verified") is True
        yield RawFinding(
            source_tool=source_tool,
            format="trufflehog",
            rule_id=detector,
            native_severity="verified" if verified else "unverified",
            location=_trufflehog_location(record.get("SourceMetadata")),
            description=f"{detector} secret detected" + (" (verified live)" if verified else ""),
            category="secret",
            raw=record,
        )
    elif "reason" in record:
        # v2 (trufflehog-actions-scan)
        reason = text(record["reason"])
        path = record.get("path") or "unknown"
        commit = record.get("commitHash") or record.get("commit")
        yield RawFinding(
            source_tool=source_tool,
            format="trufflehog",
            rule_id=reason,
            native_severity="unverified",
            location=f"{path}@{commit}" if commit else path,
            description=f"{reason} in {path}",
            category="secret",
            raw=record,
        )
    else:
        raise KeyError("neither 'DetectorName' nor 'reason' present")


def parse_trufflehog(report: str, source_tool: str) -> Tuple[List[RawFinding], List[str]]:
    """TruffleHog emits one JSON object per line; no output means a clean scan."""
    lines = [ln.strip() for ln in report.splitlines() if ln.strip()]
    records: List[Any] = []
    warnings: List[str] = []
    for idx, line in enumerate(lines, 1):
        if not line.startswith("{"):
            # --debug log chatter interleaved with results
            warnings.append(f"line {idx} skipped: not a JSON object")
            continue
        try:
            records.append(json.loads(line))
        except json.JSONDecodeError as exc:
            warnings.append(f"line {idx} skipped: invalid JSON ({exc.msg})")
    if lines and not records:
        raise ReportFormatError("no TruffleHog JSON records found")

    findings, record_warnings = collect(
        records, lambda r: _trufflehog_record(r, source_tool), "record"
    )
    if not findings and record_warnings:
        raise ReportFormatError("no TruffleHog record could be read: " + record_warnings[0])
    return findings, warnings + record_warnings


def _gitleaks_record(record: dict, source_tool: str) -> Iterator[RawFinding]:
    rule_id = text(record["RuleID"])
    loc = location(record["File"], record.get("StartLine"))
    commit = record.get("Commit")
    yield RawFinding(
        source_tool=source_tool,
        format="gitleaks",
        rule_id=rule_id,
        native_severity="leak",
        location=f"{loc}@{commit}" if commit else loc,
        description=text(record.get("Description"), rule_id),
        category="secret",
        raw=record,
    )


def parse_gitleaks(report: str, source_tool: str) -> Tuple[List[RawFinding], List[str]]:
    records = require_list(load_json(report), "gitleaks report")
    return collect(records, lambda r: _gitleaks_record(r, source_tool), "leak")
