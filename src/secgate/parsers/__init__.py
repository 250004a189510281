"""Report parsers — one per scanner format, behind a registry."""

from secgate.parsers.base import ParseError, ParseOutcome, ParseWarning, ReportFormatError
from secgate.parsers.registry import ParserRegistry, ParserSpec, UnsupportedFormat, build_registry

__all__ = [
    "ParseError",
    "ParseOutcome",
    "ParseWarning",
    "ParserRegistry",
    "ParserSpec",
    "ReportFormatError",
    "UnsupportedFormat",
    "build_registry",
]
