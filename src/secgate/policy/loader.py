"""Build and validate policy rules and the exception registry.

All validation happens here, before any report is read: a malformed or
self-contradictory policy is a ``PolicyConfigError``.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

import yaml

from secgate.config.schema import CATEGORIES, SEVERITY_ORDER, WILDCARD
from secgate.policy.models import PolicyException, PolicyRule

logger = logging.getLogger(__name__)

_RULE_KEYS = {
    "name",
    "category",
    "min_severity",
    "max_count",
    "mandatory_for_pass",
    "exception_refs",
    "description",
}
_EXCEPTION_KEYS = {
    "id",
    "finding_id",
    "rule_id",
    "location",
    "expires_at",
    "justification",
    "owner",
}


class PolicyConfigError(Exception):
    """Raised when the policy or exception registry is malformed or contradictory."""


DEFAULT_POLICY: List[PolicyRule] = [
    PolicyRule(
        name="block-critical-high",
        category=WILDCARD,
        min_severity="high",
        max_count=0,
        description="No critical or high findings in any category.",
    ),
]


# ---- timestamps ----


def parse_timestamp(value: Any, what: str = "timestamp") -> datetime:
    """Parse an ISO-8601 date/datetime into an aware UTC-comparable datetime.

    Naive values are taken as UTC; a bare date means midnight UTC.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime.combine(value, time.min)
    elif isinstance(value, str) and value.strip():
        raw = value.strip()
        if raw.endswith(("Z", "z")):
            raw = raw[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(raw)
        except ValueError as exc:
            raise PolicyConfigError(f"Invalid {what}: {value!r}") from exc
    else:
        raise PolicyConfigError(f"Invalid {what}: {value!r}")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


# ---- rules ----


def _rule_from_dict(entry: Any, idx: int) -> PolicyRule:
    if not isinstance(entry, dict):
        raise PolicyConfigError(f"policy rule #{idx} must be a table, got {type(entry).__name__}")
    unknown = sorted(set(entry) - _RULE_KEYS)
    if unknown:
        raise PolicyConfigError(f"policy rule #{idx}: unknown key(s) {', '.join(unknown)}")

    category = entry.get("category", WILDCARD)
    if "min_severity" not in entry:
        raise PolicyConfigError(f"policy rule #{idx}: 'min_severity' is required")
    min_severity = entry["min_severity"]
    max_count = entry.get("max_count", 0)
    try:
        _check_fields(category, min_severity, max_count)
    except PolicyConfigError as exc:
        raise PolicyConfigError(f"policy rule #{idx}: {exc}") from None

    mandatory = entry.get("mandatory_for_pass")
    if mandatory is not None and not isinstance(mandatory, bool):
        raise PolicyConfigError(f"policy rule #{idx}: mandatory_for_pass must be true or false")

    refs = entry.get("exception_refs") or []
    if not isinstance(refs, list) or not all(isinstance(r, str) for r in refs):
        raise PolicyConfigError(f"policy rule #{idx}: exception_refs must be a list of exception ids")

    name = entry.get("name") or f"{category if category != WILDCARD else 'any'}-{min_severity}-max{max_count}"
    return PolicyRule(
        name=str(name),
        category=category,
        min_severity=min_severity,
        max_count=max_count,
        mandatory_for_pass=mandatory,
        exception_refs=tuple(refs),
        description=str(entry.get("description", "")),
    )


def _check_fields(category: Any, min_severity: Any, max_count: Any) -> None:
    if category != WILDCARD and category not in CATEGORIES:
        raise PolicyConfigError(
            f"unknown category {category!r} (expected '*' or one of {', '.join(CATEGORIES)})"
        )
    if min_severity not in SEVERITY_ORDER:
        raise PolicyConfigError(f"unknown severity {min_severity!r}")
    if isinstance(max_count, bool) or not isinstance(max_count, int):
        raise PolicyConfigError(f"max_count must be an integer, got {max_count!r}")
    if max_count < 0:
        raise PolicyConfigError(f"max_count must not be negative ({max_count})")


def build_rules(entries: Sequence[Any]) -> List[PolicyRule]:
    """Turn raw ``[[policy.rules]]`` tables into validated rules (declared order kept)."""
    rules = [_rule_from_dict(e, i) for i, e in enumerate(entries, 1)]
    _check_rules(rules)
    return rules


def _check_rules(rules: Sequence[PolicyRule]) -> None:
    seen_names: Dict[str, PolicyRule] = {}
    thresholds: Dict[tuple, PolicyRule] = {}
    for rule in rules:
        try:
            _check_fields(rule.category, rule.min_severity, rule.max_count)
        except PolicyConfigError as exc:
            raise PolicyConfigError(f"policy rule {rule.name!r}: {exc}") from None
        if rule.name in seen_names:
            raise PolicyConfigError(f"duplicate policy rule name {rule.name!r}")
        seen_names[rule.name] = rule
        key = (rule.category, rule.min_severity)
        other = thresholds.get(key)
        if other is not None and other.max_count != rule.max_count:
            raise PolicyConfigError(
                f"policy rules {other.name!r} and {rule.name!r} set contradictory limits "
                f"({other.max_count} vs {rule.max_count}) for {rule.summary().rsplit(',', 1)[0]}"
            )
        thresholds.setdefault(key, rule)


# ---- exceptions ----


def _exception_from_dict(entry: Any, idx: int) -> PolicyException:
    if not isinstance(entry, dict):
        raise PolicyConfigError(f"exception #{idx} must be a mapping, got {type(entry).__name__}")
    unknown = sorted(set(entry) - _EXCEPTION_KEYS)
    if unknown:
        raise PolicyConfigError(f"exception #{idx}: unknown key(s) {', '.join(unknown)}")
    exc_id = entry.get("id")
    if not exc_id:
        raise PolicyConfigError(f"exception #{idx}: 'id' is required")
    if "expires_at" not in entry or entry["expires_at"] in (None, ""):
        raise PolicyConfigError(f"exception {exc_id}: 'expires_at' is required")
    justification = str(entry.get("justification") or "").strip()
    if not justification:
        raise PolicyConfigError(f"exception {exc_id}: a non-empty 'justification' is required")
    finding_id = entry.get("finding_id")
    rule_id = entry.get("rule_id")
    if not finding_id and not rule_id:
        raise PolicyConfigError(f"exception {exc_id}: needs 'finding_id' or 'rule_id'")
    return PolicyException(
        id=str(exc_id),
        expires_at=parse_timestamp(entry["expires_at"], f"expires_at of exception {exc_id}"),
        justification=justification,
        finding_id=str(finding_id) if finding_id else None,
        rule_id=str(rule_id) if rule_id and not finding_id else None,
        location=str(entry["location"]) if entry.get("location") and not finding_id else None,
        owner=str(entry.get("owner") or ""),
    )


def build_exceptions(entries: Iterable[Any]) -> List[PolicyException]:
    exceptions = [_exception_from_dict(e, i) for i, e in enumerate(entries, 1)]
    _check_exceptions(exceptions)
    return exceptions


def _check_exceptions(exceptions: Sequence[PolicyException]) -> None:
    seen: set[str] = set()
    for exc in exceptions:
        if exc.id in seen:
            raise PolicyConfigError(f"duplicate exception id {exc.id!r}")
        seen.add(exc.id)
        if not isinstance(exc.expires_at, datetime):
            raise PolicyConfigError(f"exception {exc.id}: expires_at must be a datetime, got {exc.expires_at!r}")
        if not exc.justification.strip():
            raise PolicyConfigError(f"exception {exc.id}: a non-empty 'justification' is required")
        if not exc.finding_id and not exc.rule_id:
            raise PolicyConfigError(f"exception {exc.id}: needs 'finding_id' or 'rule_id'")


def load_exceptions(path: Optional[Path]) -> List[PolicyException]:
    """Load the YAML exception registry; a missing file means no exceptions."""
    if path is None or not path.is_file():
        if path is not None:
            logger.debug("No exception registry at %s", path)
        return []
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as exc:
        raise PolicyConfigError(f"Failed to read exception registry {path}: {exc}") from exc
    if data is None:
        return []
    if isinstance(data, dict):
        data = data.get("exceptions", [])
    if not isinstance(data, list):
        raise PolicyConfigError(f"{path}: expected a list of exceptions")
    exceptions = build_exceptions(data)
    logger.debug("Loaded %d exception(s) from %s", len(exceptions), path)
    return exceptions


# ---- cross checks ----


def validate_policy(rules: Sequence[PolicyRule], exceptions: Sequence[PolicyException]) -> None:
    """Check every rule and exception, and the references between them."""
    _check_rules(rules)
    _check_exceptions(exceptions)
    known = {e.id for e in exceptions}
    for rule in rules:
        missing = [r for r in rule.exception_refs if r not in known]
        if missing:
            raise PolicyConfigError(
                f"policy rule {rule.name!r} references unknown exception(s): {', '.join(missing)}"
            )
