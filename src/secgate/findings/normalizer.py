"""Severity/category canonicalization and stable finding fingerprints.

Every supported report format has an explicit table from its native
severity vocabulary onto the canonical scale. Nothing is inferred: a native
value missing from the table is mapped to the most severe value the table
can produce and the finding is flagged ``ambiguous_mapping``.
"""

from __future__ import annotations

import copy
import hashlib
import re
from typing import Dict, Iterable, Mapping, Optional, Tuple

from secgate.config.schema import CATEGORIES, SEVERITY_ORDER
from secgate.findings.models import Finding, RawFinding

SEVERITY_TABLES: Dict[str, Dict[str, str]] = {
    "trufflehog": {
        "verified": "critical",
        "unverified": "high",
    },
    "gitleaks": {
        "leak": "high",
    },
    "bandit": {
        "high": "high",
        "medium": "medium",
        "low": "low",
    },
    "safety": {
        "critical": "critical",
        "high": "high",
        "medium": "medium",
        "moderate": "medium",
        "low": "low",
    },
    "dependency-check": {
        "critical": "critical",
        "high": "high",
        "medium": "medium",
        "moderate": "medium",
        "low": "low",
        "info": "informational",
    },
    "trivy": {
        "critical": "critical",
        "high": "high",
        "medium": "medium",
        "low": "low",
    },
    "sarif": {
        "error": "high",
        "warning": "medium",
        "note": "low",
        "none": "informational",
    },
    "checkov": {
        "critical": "critical",
        "high": "high",
        "medium": "medium",
        "low": "low",
        "info": "informational",
    },
    "tfsec": {
        "critical": "critical",
        "high": "high",
        "medium": "medium",
        "low": "low",
    },
    "zap": {
        "3": "high",
        "2": "medium",
        "1": "low",
        "0": "informational",
    },
}

# CVSS v3 qualitative bands, used for SARIF ``security-severity`` scores.
SCORE_BANDS: Tuple[Tuple[float, str], ...] = (
    (9.0, "critical"),
    (7.0, "high"),
    (4.0, "medium"),
    (0.1, "low"),
    (0.0, "informational"),
)

DEFAULT_CATEGORY: Dict[str, str] = {
    "secret-scan": "secret",
    "sast": "vulnerability",
    "sca": "vulnerability",
    "container": "vulnerability",
    "iac": "misconfiguration",
    "dast": "vulnerability",
}

_MULTI_SLASH_RE = re.compile(r"/{2,}")


def severity_table(
    fmt: str,
    overrides: Optional[Mapping[str, Mapping[str, str]]] = None,
) -> Dict[str, str]:
    """Built-in table for *fmt* with any configured overrides layered on top."""
    table = dict(SEVERITY_TABLES.get(fmt, {}))
    if overrides and fmt in overrides:
        table.update({k.lower(): v for k, v in overrides[fmt].items()})
    return table


def _ceiling(table: Mapping[str, str]) -> str:
    """Most severe canonical value the table can produce."""
    if not table:
        return "critical"
    return max(table.values(), key=SEVERITY_ORDER.__getitem__)


def score_to_severity(score: float) -> str:
    for floor, severity in SCORE_BANDS:
        if score >= floor:
            return severity
    return "informational"


def map_severity(
    native: str,
    fmt: str,
    *,
    score: Optional[float] = None,
    overrides: Optional[Mapping[str, Mapping[str, str]]] = None,
) -> Tuple[str, bool]:
    """Return ``(canonical_severity, ambiguous)`` for a native value."""
    if score is not None and score >= 0:
        return score_to_severity(score), False
    table = severity_table(fmt, overrides)
    key = (native or "").strip().lower()
    if key in table:
        return table[key], False
    return _ceiling(table), True


def map_category(category: Optional[str], source_tool: str) -> Tuple[str, bool]:
    """Return ``(canonical_category, ambiguous)``."""
    if category in CATEGORIES:
        return category, False  # type: ignore[return-value]
    return DEFAULT_CATEGORY.get(source_tool, "vulnerability"), True


def normalize_location(location: str) -> str:
    """Canonical spelling of a location string (paths only, never semantics)."""
    loc = (location or "").strip().replace("\\", "/")
    while loc.startswith("./"):
        loc = loc[2:]
    loc = _MULTI_SLASH_RE.sub("/", loc) if "://" not in loc else loc
    if len(loc) > 1:
        loc = loc.rstrip("/")
    return loc


def normalize_refs(refs: Iterable[str]) -> Tuple[str, ...]:
    """Upper-case, de-duplicate, and sort CVE/CWE/GHSA identifiers."""
    return tuple(sorted({r.strip().upper() for r in refs if r and r.strip()}))


def fingerprint(rule_id: str, location: str, cve_or_cwe: Iterable[str] = ()) -> str:
    """Stable id over (rule_id, normalized location, cross-references)."""
    payload = "\x1f".join(
        [rule_id, normalize_location(location), ",".join(normalize_refs(cve_or_cwe))]
    )
    return "FND-" + hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16]


def normalize(
    raw: RawFinding,
    overrides: Optional[Mapping[str, Mapping[str, str]]] = None,
) -> Finding:
    """Turn a parser record into a canonical Finding."""
    severity, sev_ambiguous = map_severity(
        raw.native_severity, raw.format, score=raw.native_score, overrides=overrides
    )
    category, cat_ambiguous = map_category(raw.category, raw.source_tool)
    location = normalize_location(raw.location)
    refs = normalize_refs(raw.cve_or_cwe)
    return Finding(
        id=fingerprint(raw.rule_id, location, refs),
        source_tools=(raw.source_tool,),
        rule_id=raw.rule_id,
        severity=severity,
        category=category,
        location=location,
        description=raw.description,
        cve_or_cwe=refs,
        ambiguous_mapping=sev_ambiguous or cat_ambiguous,
        raw=(copy.deepcopy(raw.raw),),
    )
