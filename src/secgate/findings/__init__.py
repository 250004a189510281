"""Finding models, normalization, deduplication, and redaction."""

from secgate.findings.aggregator import deduplicate, sort_findings
from secgate.findings.models import Finding, RawFinding
from secgate.findings.normalizer import fingerprint, normalize
from secgate.findings.redactor import redact_record

__all__ = [
    "Finding",
    "RawFinding",
    "deduplicate",
    "fingerprint",
    "normalize",
    "redact_record",
    "sort_findings",
]
