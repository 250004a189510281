"""Configuration schema — canonical vocabularies and dataclasses for every config section."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional

Severity = Literal["informational", "low", "medium", "high", "critical"]
Category = Literal["secret", "vulnerability", "misconfiguration", "license", "code-quality"]
SourceTool = Literal["secret-scan", "sast", "sca", "container", "iac", "dast"]

SEVERITY_ORDER: Dict[str, int] = {
    "informational": 0,
    "low": 1,
    "medium": 2,
    "high": 3,
    "critical": 4,
}

SEVERITIES: List[str] = sorted(SEVERITY_ORDER, key=SEVERITY_ORDER.__getitem__)

CATEGORIES: List[str] = [
    "secret",
    "vulnerability",
    "misconfiguration",
    "license",
    "code-quality",
]

SOURCE_TOOLS: List[str] = ["secret-scan", "sast", "sca", "container", "iac", "dast"]

WILDCARD = "*"


def severity_rank(severity: str) -> int:
    """Rank on the canonical scale; unknown values rank above critical (fail closed)."""
    return SEVERITY_ORDER.get(severity, len(SEVERITY_ORDER))


def severity_at_or_above(finding_sev: str, threshold: str) -> bool:
    """Return True if *finding_sev* is at or above *threshold*."""
    return severity_rank(finding_sev) >= SEVERITY_ORDER[threshold]


@dataclass
class GateConfig:
    mandatory_scanners: List[str] = field(default_factory=lambda: ["secret-scan"])
    fail_severity: Severity = "high"  # unset mandatory_for_pass: max_count 0 rules at/above this fail
    fail_on_warn: bool = False
    warn_on_unparseable: bool = True  # optional report unparseable -> warn
    parse_timeout_s: float = 60.0
    max_workers: Optional[int] = None  # None = one worker per report source


@dataclass
class OutputConfig:
    format: Literal["terminal", "json", "sarif"] = "terminal"
    show_summary: bool = True
    include_raw: bool = False  # embed (redacted) native records in the JSON report


@dataclass
class ExceptionsConfig:
    file: Optional[str] = ".secgate-exceptions.yml"
    expiry_warning_days: int = 14


@dataclass
class NormalizerConfig:
    # format -> {native severity -> canonical severity}
    severity_overrides: Dict[str, Dict[str, str]] = field(default_factory=dict)


@dataclass
class ReportConfig:
    format: str
    path: str
    tool: Optional[str] = None  # defaults to the parser's tool


@dataclass
class SecGateConfig:
    version: str = "1.0"
    gate: GateConfig = field(default_factory=GateConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    exceptions: ExceptionsConfig = field(default_factory=ExceptionsConfig)
    normalizer: NormalizerConfig = field(default_factory=NormalizerConfig)
    reports: List[ReportConfig] = field(default_factory=list)
    # raw [[policy.rules]] tables; validated by secgate.policy.loader
    policy_rules: List[Dict[str, Any]] = field(default_factory=list)
