"""Finding data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple


@dataclass
class RawFinding:
    """A single record extracted by a parser (before normalization).

    ``native_severity`` is the tool's own vocabulary; the normalizer maps it
    onto the canonical scale using the table registered for ``format``.
    """

    source_tool: str
    format: str
    rule_id: str
    native_severity: str
    location: str
    description: str
    category: Optional[str] = None  # None = parser could not classify the record
    cve_or_cwe: Tuple[str, ...] = ()
    raw: Dict[str, Any] = field(default_factory=dict)
    native_score: Optional[float] = None  # e.g. SARIF security-severity


@dataclass(frozen=True)
class Finding:
    """Normalized, immutable security finding."""

    id: str  # e.g. FND-3f2a9c0d1b7e4a55
    source_tools: Tuple[str, ...]
    rule_id: str
    severity: str
    category: str
    location: str
    description: str
    cve_or_cwe: Tuple[str, ...] = ()
    ambiguous_mapping: bool = False
    merged_from: Tuple[str, ...] = ()  # ids of findings collapsed into this one
    raw: Tuple[Dict[str, Any], ...] = field(default=(), compare=False, repr=False)

    @property
    def source_tool(self) -> str:
        """Primary reporting tool."""
        return self.source_tools[0]

    @property
    def all_ids(self) -> Tuple[str, ...]:
        return (self.id, *self.merged_from)
