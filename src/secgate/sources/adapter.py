"""Report source adapter — turns configured report locations into readable sources.

Paths are resolved against a base directory and may be glob patterns; each
match is one report. ``-`` reads standard input. Nothing here parses.
"""

from __future__ import annotations

import glob
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Union

from secgate.config.loader import ConfigError
from secgate.config.schema import SOURCE_TOOLS, ReportConfig

logger = logging.getLogger(__name__)

STDIN = "-"
_GLOB_CHARS = ("*", "?", "[")


class ReportUnavailable(Exception):
    """Raised when a report cannot be read; becomes a ParseError for its source."""


@dataclass(frozen=True)
class ReportSource:
    """One report to parse: a file, standard input, or inline content."""

    format: str
    tool: Optional[str] = None
    path: Optional[Path] = None
    content: Optional[Union[bytes, str]] = None
    label: Optional[str] = None
    pattern: Optional[str] = None  # set when a glob matched nothing

    @property
    def display(self) -> str:
        if self.label:
            return self.label
        if self.pattern is not None:
            return self.pattern
        if self.path is not None:
            return str(self.path)
        return "<inline>"

    @classmethod
    def inline(cls, content: Union[bytes, str], fmt: str, tool: Optional[str] = None,
               label: Optional[str] = None) -> "ReportSource":
        return cls(format=fmt, tool=tool, content=content, label=label)


def read_report(source: ReportSource) -> bytes:
    """Return the raw bytes of *source*. Raises ReportUnavailable."""
    if source.content is not None:
        c = source.content
        return c.encode("utf-8") if isinstance(c, str) else c
    if source.pattern is not None:
        raise ReportUnavailable(f"report not found: no file matches {source.pattern}")
    if source.path is None:
        raise ReportUnavailable("report not found: no path or content")
    if str(source.path) == STDIN:
        try:
            return sys.stdin.buffer.read()
        except (OSError, ValueError) as exc:
            raise ReportUnavailable(f"unreadable: standard input ({exc})") from exc
    if not source.path.exists():
        raise ReportUnavailable(f"report not found: {source.path}")
    try:
        return source.path.read_bytes()
    except OSError as exc:
        raise ReportUnavailable(f"unreadable: {source.path} ({exc.strerror or exc})") from exc


def _is_glob(path: str) -> bool:
    return any(ch in path for ch in _GLOB_CHARS)


def resolve_source(report: ReportConfig, base_dir: Path) -> List[ReportSource]:
    """Expand one configured report into concrete sources."""
    if report.path == STDIN:
        return [ReportSource(format=report.format, tool=report.tool, path=Path(STDIN), label="<stdin>")]

    raw = Path(report.path).expanduser()
    full = raw if raw.is_absolute() else base_dir / raw
    if not _is_glob(report.path):
        return [ReportSource(format=report.format, tool=report.tool, path=full)]

    matches = sorted(glob.glob(str(full), recursive=True))
    files = [Path(m) for m in matches if Path(m).is_file()]
    if not files:
        logger.warning("No report matches %s", report.path)
        return [ReportSource(format=report.format, tool=report.tool, pattern=report.path)]
    logger.debug("%s matched %d report(s)", report.path, len(files))
    return [ReportSource(format=report.format, tool=report.tool, path=f) for f in files]


def resolve_sources(reports: Sequence[ReportConfig], base_dir: Path) -> List[ReportSource]:
    """Expand configured reports, keeping declared order."""
    stdin_count = sum(1 for r in reports if r.path == STDIN)
    if stdin_count > 1:
        raise ConfigError("Only one report can be read from standard input")
    sources: List[ReportSource] = []
    for report in reports:
        sources.extend(resolve_source(report, base_dir))
    return sources


def parse_report_spec(spec: str) -> ReportConfig:
    """Parse a ``--report`` value: ``FORMAT:PATH`` or ``TOOL:FORMAT:PATH``."""
    parts = spec.split(":", 2)
    if len(parts) == 3 and parts[0] in SOURCE_TOOLS:
        tool, fmt, path = parts
    else:
        fmt, _, path = spec.partition(":")
        tool = None
    fmt = fmt.strip()
    path = path.strip()
    if not fmt or not path:
        raise ConfigError(
            f"Invalid report spec {spec!r}: expected FORMAT:PATH or TOOL:FORMAT:PATH"
        )
    return ReportConfig(format=fmt, path=path, tool=tool)
