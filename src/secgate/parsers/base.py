"""Parser contract, result records, and shared helpers for report formats."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, List, Optional, Tuple, Union

from secgate.findings.models import Finding, RawFinding

# A parser turns decoded report text into records plus partial-parse warnings.
# It raises ReportFormatError when the report as a whole is unusable.
ParserFunc = Callable[[str, str], Tuple[List[RawFinding], List[str]]]


class ReportFormatError(Exception):
    """Raised by a parser when a report cannot be parsed at all."""


@dataclass(frozen=True)
class ParseError:
    """A report that produced no usable result."""

    source_tool: str
    reason: str
    format: Optional[str] = None
    label: Optional[str] = None


@dataclass(frozen=True)
class ParseWarning:
    """A note on an otherwise valid report, usually a skipped record."""

    source_tool: str
    message: str
    label: Optional[str] = None
    record_skipped: bool = True  # False for notes that lost no input


@dataclass
class ParseOutcome:
    """Isolated result of parsing one report."""

    source_tool: str
    format: str
    label: Optional[str] = None
    findings: List[Finding] = field(default_factory=list)
    error: Optional[ParseError] = None
    warnings: List[ParseWarning] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None


def decode(data: Union[bytes, str]) -> str:
    """Decode report bytes as UTF-8 (BOM tolerated)."""
    if isinstance(data, str):
        return data.lstrip("﻿")
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise ReportFormatError(f"report is not valid UTF-8 ({exc.reason} at byte {exc.start})") from exc


def load_json(text: str) -> Any:
    """Parse a whole JSON document, raising ReportFormatError on failure."""
    if not text.strip():
        raise ReportFormatError("report is empty")
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise ReportFormatError(f"invalid JSON: {exc.msg} (line {exc.lineno}, column {exc.colno})") from exc


def require_dict(doc: Any, what: str) -> dict:
    if not isinstance(doc, dict):
        raise ReportFormatError(f"expected {what} to be an object, got {type(doc).__name__}")
    return doc


def require_list(value: Any, what: str) -> list:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ReportFormatError(f"expected {what} to be a list, got {type(value).__name__}")
    return value


# What a malformed record raises while its fields are read.
RECORD_ERRORS = (KeyError, TypeError, ValueError, AttributeError, IndexError)


def skipped(what: str, idx: int, exc: BaseException, prefix: str = "") -> str:
    return f"{prefix}{what} #{idx} skipped: {type(exc).__name__}: {exc}"


def collect(
    records: Iterable[Any],
    extract: Callable[[Any], Iterable[RawFinding]],
    what: str = "record",
    *,
    prefix: str = "",
) -> Tuple[List[RawFinding], List[str]]:
    """Run *extract* over every record, skipping (and noting) malformed ones.

    A record contributes all of its findings or none of them.
    """
    findings: List[RawFinding] = []
    warnings: List[str] = []
    for idx, record in enumerate(records, 1):
        try:
            findings.extend(list(extract(record)))
        except RECORD_ERRORS as exc:
            warnings.append(skipped(what, idx, exc, prefix))
    return findings, warnings


def records_of(container: Any, key: str) -> list:
    """Optional list field of a container record; a non-list is malformed."""
    value = container.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise TypeError(f"{key!r} must be a list, got {type(value).__name__}")
    return value


def text(value: Any, default: str = "") -> str:
    """Coerce a possibly-missing scalar field to a stripped string."""
    if value is None:
        return default
    return str(value).strip()


def location(path: Any, line: Any = None) -> str:
    """``path:line`` when a positive line number is known, else ``path``."""
    p = text(path)
    try:
        n = int(line) if line is not None else 0
    except (TypeError, ValueError):
        n = 0
    return f"{p}:{n}" if n > 0 else p


def cwe_ref(value: Any) -> Optional[str]:
    """Normalize ``79`` / ``"CWE-79"`` / ``{"id": 79}`` into ``CWE-79``."""
    if isinstance(value, dict):
        value = value.get("id")
    s = text(value)
    if not s or s in ("-1", "0"):
        return None
    s = s.upper()
    return s if s.startswith("CWE-") else f"CWE-{s}"
