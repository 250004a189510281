"""Finding deduplication and deterministic ordering."""

from __future__ import annotations

from typing import Dict, List, Sequence

from secgate.config.schema import SOURCE_TOOLS, severity_rank
from secgate.findings.models import Finding

_LOCATION_BOUNDARIES = (":", "/", "#", "@", " ")


def sort_key(finding: Finding):
    """Severity rank descending, then category, then id."""
    return (-severity_rank(finding.severity), finding.category, finding.id)


def sort_findings(findings: Sequence[Finding]) -> List[Finding]:
    return sorted(findings, key=sort_key)


def locations_overlap(a: str, b: str) -> bool:
    """True if *a* and *b* name the same place or one contains the other.

    ``app/requirements.txt`` overlaps ``app/requirements.txt:12``; it does not
    overlap ``app/requirements.txt.bak``.
    """
    if a == b:
        return True
    short, long_ = (a, b) if len(a) < len(b) else (b, a)
    if not short or not long_.startswith(short):
        return False
    return long_[len(short)] in _LOCATION_BOUNDARIES or short[-1] in _LOCATION_BOUNDARIES


def _same_issue(a: Finding, b: Finding) -> bool:
    if a.id == b.id:
        return True
    if not a.cve_or_cwe or not b.cve_or_cwe:
        return False
    if not set(a.cve_or_cwe) & set(b.cve_or_cwe):
        return False
    return locations_overlap(a.location, b.location)


class _UnionFind:
    def __init__(self, size: int) -> None:
        self._parent = list(range(size))

    def find(self, i: int) -> int:
        while self._parent[i] != i:
            self._parent[i] = self._parent[self._parent[i]]
            i = self._parent[i]
        return i

    def union(self, a: int, b: int) -> None:
        ra, rb = self.find(a), self.find(b)
        if ra != rb:
            # smaller root wins so grouping does not depend on call order
            self._parent[max(ra, rb)] = min(ra, rb)


def _merge(group: List[Finding]) -> Finding:
    """Collapse a group into its most severe member, keeping all provenance."""
    if len(group) == 1:
        return group[0]
    # full tie-break so the lead does not depend on input order
    ordered = sorted(group, key=lambda f: (*sort_key(f), f.source_tools, f.description))
    lead = ordered[0]

    tools = {t for f in group for t in f.source_tools}
    merged_from = {i for f in group for i in f.all_ids} - {lead.id}
    raw = tuple(r for f in ordered for r in f.raw)

    return Finding(
        id=lead.id,
        source_tools=tuple(t for t in SOURCE_TOOLS if t in tools),
        rule_id=lead.rule_id,
        severity=lead.severity,
        category=lead.category,
        location=lead.location,
        description=lead.description,
        cve_or_cwe=lead.cve_or_cwe,
        ambiguous_mapping=any(f.ambiguous_mapping for f in group),
        merged_from=tuple(sorted(merged_from)),
        raw=raw,
    )


def deduplicate(findings: Sequence[Finding]) -> List[Finding]:
    """Merge findings that describe the same underlying issue.

    Two findings are the same issue when they share an ``id``, or share a
    CVE/CWE reference at overlapping locations. Matching is transitive, so
    groups are connected components. The merged finding keeps the identity
    and severity of its most severe member and the tool provenance of all
    of them. The merge is idempotent: the surviving finding's own id,
    location and references are a member's, so re-running finds no new
    pairs.
    """
    # stable input order: grouping must not depend on parse completion order
    items = sort_findings(findings)
    uf = _UnionFind(len(items))

    by_id: Dict[str, int] = {}
    for idx, f in enumerate(items):
        if f.id in by_id:
            uf.union(by_id[f.id], idx)
        else:
            by_id[f.id] = idx

    by_ref: Dict[str, List[int]] = {}
    for idx, f in enumerate(items):
        for ref in f.cve_or_cwe:
            by_ref.setdefault(ref, []).append(idx)
    for members in by_ref.values():
        for pos, i in enumerate(members):
            for j in members[pos + 1:]:
                if _same_issue(items[i], items[j]):
                    uf.union(i, j)

    groups: Dict[int, List[Finding]] = {}
    for idx, f in enumerate(items):
        groups.setdefault(uf.find(idx), []).append(f)

    return sort_findings([_merge(g) for g in groups.values()])
