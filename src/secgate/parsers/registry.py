"""Parser registry — maps report format names to parser functions.

New scanners are supported by registering another ``ParserSpec``; existing
parsers are never touched. The registry is also the single place where
parser failures are turned into ``ParseError`` records, so no report can
crash a gate run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Union

from secgate.config.schema import SOURCE_TOOLS
from secgate.findings.normalizer import normalize
from secgate.parsers.base import (
    ParseError,
    ParseOutcome,
    ParserFunc,
    ParseWarning,
    ReportFormatError,
    decode,
)

logger = logging.getLogger(__name__)


class UnsupportedFormat(Exception):
    """Raised when configuration names a report format with no registered parser."""


@dataclass(frozen=True)
class ParserSpec:
    name: str
    func: ParserFunc
    default_tool: Optional[str]  # None = tool must be configured (e.g. SARIF)
    description: str = ""


class ParserRegistry:
    """Central store for report parsers."""

    def __init__(self) -> None:
        self._parsers: Dict[str, ParserSpec] = {}

    # ---- registration ----

    def register(self, spec: ParserSpec) -> None:
        if spec.default_tool is not None and spec.default_tool not in SOURCE_TOOLS:
            raise ValueError(f"Unknown source tool {spec.default_tool!r} for parser {spec.name}")
        self._parsers[spec.name] = spec

    def register_many(self, specs: List[ParserSpec]) -> None:
        for s in specs:
            self.register(s)

    # ---- queries ----

    @property
    def formats(self) -> List[str]:
        return sorted(self._parsers)

    def get(self, fmt: str) -> Optional[ParserSpec]:
        return self._parsers.get(fmt)

    def resolve(self, fmt: str, tool: Optional[str] = None) -> ParserSpec:
        """Return the parser for *fmt* or raise ``UnsupportedFormat``."""
        spec = self._parsers.get(fmt)
        if spec is None:
            raise UnsupportedFormat(
                f"No parser registered for format {fmt!r} "
                f"(supported: {', '.join(self.formats)})"
            )
        if tool is None and spec.default_tool is None:
            raise UnsupportedFormat(f"Format {fmt!r} needs an explicit tool (one of {', '.join(SOURCE_TOOLS)})")
        if tool is not None and tool not in SOURCE_TOOLS:
            raise UnsupportedFormat(f"Unknown source tool {tool!r} for format {fmt!r}")
        return spec

    def tool_for(self, fmt: str, tool: Optional[str] = None) -> str:
        spec = self.resolve(fmt, tool)
        return tool or spec.default_tool  # type: ignore[return-value]

    # ---- parsing ----

    def parse(
        self,
        data: Union[bytes, str],
        fmt: str,
        source_tool: Optional[str] = None,
        *,
        label: Optional[str] = None,
        severity_overrides: Optional[Mapping[str, Mapping[str, str]]] = None,
    ) -> ParseOutcome:
        """Parse one report into normalized findings; never raises for bad input."""
        spec = self.resolve(fmt, source_tool)
        tool = source_tool or spec.default_tool
        assert tool is not None
        outcome = ParseOutcome(source_tool=tool, format=fmt, label=label)

        try:
            records, notes = spec.func(decode(data), tool)
        except ReportFormatError as exc:
            logger.warning("Could not parse %s report %s: %s", fmt, label or "<inline>", exc)
            outcome.error = ParseError(source_tool=tool, reason=str(exc), format=fmt, label=label)
            return outcome
        except Exception as exc:  # parser bug: contained to this report
            logger.exception("Parser %s crashed on %s", fmt, label or "<inline>")
            outcome.error = ParseError(
                source_tool=tool,
                reason=f"internal parser error: {type(exc).__name__}: {exc}",
                format=fmt,
                label=label,
            )
            return outcome

        outcome.findings = [normalize(r, severity_overrides) for r in records]
        outcome.warnings = [ParseWarning(source_tool=tool, message=n, label=label) for n in notes]
        for note in notes:
            logger.info("%s report %s: %s", fmt, label or "<inline>", note)
        ambiguous = sum(1 for f in outcome.findings if f.ambiguous_mapping)
        if ambiguous:
            outcome.warnings.append(
                ParseWarning(
                    source_tool=tool,
                    message=f"{ambiguous} finding(s) had unmapped native severity/category; "
                    "treated as the most severe plausible value",
                    label=label,
                    record_skipped=False,
                )
            )
        logger.debug("Parsed %d finding(s) from %s report %s", len(outcome.findings), fmt, label or "<inline>")
        return outcome


def build_registry() -> ParserRegistry:
    """Create a registry populated with every built-in parser."""
    from secgate.parsers.builtin import ALL_BUILTIN_PARSERS

    registry = ParserRegistry()
    registry.register_many(ALL_BUILTIN_PARSERS)
    return registry
