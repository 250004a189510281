"""Report source adapter."""

from secgate.sources.adapter import (
    ReportSource,
    ReportUnavailable,
    parse_report_spec,
    read_report,
    resolve_sources,
)

__all__ = [
    "ReportSource",
    "ReportUnavailable",
    "parse_report_spec",
    "read_report",
    "resolve_sources",
]
