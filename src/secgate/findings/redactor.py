"""Secret value redaction for native records embedded in reports."""

from __future__ import annotations

from typing import Any

REDACTED = "[REDACTED]"

# Keys under which scanners put the matched secret itself.
SENSITIVE_KEYS = frozenset({
    "raw",
    "rawv2",
    "secret",
    "match",
    "stringsfound",
    "redacted",
    "code",
})


def redact_record(record: Any) -> Any:
    """Return a copy of *record* with secret-bearing fields redacted."""
    if isinstance(record, dict):
        out = {}
        for key, value in record.items():
            if str(key).lower() in SENSITIVE_KEYS:
                out[key] = _redact_leaf(value)
            else:
                out[key] = redact_record(value)
        return out
    if isinstance(record, list):
        return [redact_record(v) for v in record]
    return record


def _redact_leaf(value: Any) -> Any:
    if isinstance(value, list):
        return [_redact_leaf(v) for v in value]
    if isinstance(value, dict):
        return {k: _redact_leaf(v) for k, v in value.items()}
    return REDACTED
