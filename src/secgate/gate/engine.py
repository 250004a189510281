"""Gate orchestrator — reports in, GateVerdict out.

Formats and policy are validated before any report is read. Reports are
then read and parsed concurrently, one worker per source; each parse is
isolated, so a crash, timeout or unreadable file only turns that report into
a ``ParseError``. Results are gathered in declared source order before
deduplication and evaluation run on the calling thread.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from datetime import datetime
from typing import Dict, List, Mapping, Optional, Sequence

from secgate.config.schema import GateConfig
from secgate.findings.aggregator import deduplicate
from secgate.findings.models import Finding
from secgate.gate.verdict import GateVerdict
from secgate.parsers.base import ParseError, ParseOutcome, ParseWarning
from secgate.parsers.registry import ParserRegistry, build_registry
from secgate.policy.engine import evaluate
from secgate.policy.loader import validate_policy
from secgate.policy.models import PolicyException, PolicyRule
from secgate.sources.adapter import ReportSource, ReportUnavailable, read_report

logger = logging.getLogger(__name__)

_POLL_INTERVAL_S = 0.05


class GateCancelled(Exception):
    """Raised when a gate run is cancelled; no verdict is produced."""


def _parse_source(
    source: ReportSource,
    tool: str,
    registry: ParserRegistry,
    overrides: Optional[Mapping[str, Mapping[str, str]]],
    started: Dict[int, float],
    idx: int,
) -> ParseOutcome:
    started[idx] = time.monotonic()
    label = source.display
    try:
        data = read_report(source)
    except ReportUnavailable as exc:
        logger.warning("%s report %s: %s", tool, label, exc)
        return ParseOutcome(
            source_tool=tool,
            format=source.format,
            label=label,
            error=ParseError(source_tool=tool, reason=str(exc), format=source.format, label=label),
        )
    return registry.parse(data, source.format, tool, label=label, severity_overrides=overrides)


def _timed_out(source: ReportSource, tool: str, timeout_s: float) -> ParseOutcome:
    label = source.display
    logger.warning("%s report %s: parse exceeded %.1fs", tool, label, timeout_s)
    return ParseOutcome(
        source_tool=tool,
        format=source.format,
        label=label,
        error=ParseError(
            source_tool=tool,
            reason=f"parse timed out after {timeout_s:g}s",
            format=source.format,
            label=label,
        ),
    )


def _collect(
    futures: List[Future],
    sources: Sequence[ReportSource],
    tools: Sequence[str],
    started: Dict[int, float],
    timeout_s: float,
    cancel: Optional[threading.Event],
) -> List[ParseOutcome]:
    outcomes: Dict[int, ParseOutcome] = {}
    pending = set(range(len(futures)))
    while pending:
        if cancel is not None and cancel.is_set():
            raise GateCancelled("gate run cancelled")
        wait([futures[i] for i in pending], timeout=_POLL_INTERVAL_S, return_when=FIRST_COMPLETED)
        now = time.monotonic()
        for i in sorted(pending):
            fut = futures[i]
            if fut.done():
                outcomes[i] = fut.result()
            elif i in started and now - started[i] > timeout_s:
                fut.cancel()
                outcomes[i] = _timed_out(sources[i], tools[i], timeout_s)
        pending -= set(outcomes)
    return [outcomes[i] for i in range(len(futures))]


def parse_sources(
    sources: Sequence[ReportSource],
    tools: Sequence[str],
    registry: ParserRegistry,
    *,
    options: GateConfig,
    severity_overrides: Optional[Mapping[str, Mapping[str, str]]] = None,
    cancel: Optional[threading.Event] = None,
) -> List[ParseOutcome]:
    """Parse every source concurrently; outcomes come back in source order."""
    if not sources:
        return []
    workers = len(sources)
    if options.max_workers is not None:
        workers = min(workers, options.max_workers)
    started: Dict[int, float] = {}
    pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="secgate-parse")
    try:
        futures = [
            pool.submit(_parse_source, src, tool, registry, severity_overrides, started, i)
            for i, (src, tool) in enumerate(zip(sources, tools))
        ]
        return _collect(futures, sources, tools, started, options.parse_timeout_s, cancel)
    finally:
        # Timed-out or cancelled parsers are abandoned, not joined.
        pool.shutdown(wait=False, cancel_futures=True)


def run_gate(
    sources: Sequence[ReportSource],
    rules: Sequence[PolicyRule],
    exceptions: Sequence[PolicyException],
    now: datetime,
    *,
    options: Optional[GateConfig] = None,
    registry: Optional[ParserRegistry] = None,
    severity_overrides: Optional[Mapping[str, Mapping[str, str]]] = None,
    cancel: Optional[threading.Event] = None,
) -> GateVerdict:
    """Run the full gate: validate, parse, deduplicate, evaluate.

    Raises ``UnsupportedFormat`` or ``PolicyConfigError`` before any report
    is read, and ``GateCancelled`` if *cancel* is set before the verdict.
    """
    options = options or GateConfig()
    registry = registry or build_registry()

    tools = [registry.tool_for(src.format, src.tool) for src in sources]
    validate_policy(rules, exceptions)

    if cancel is not None and cancel.is_set():
        raise GateCancelled("gate run cancelled")

    logger.info("Parsing %d report(s)", len(sources))
    outcomes = parse_sources(
        sources,
        tools,
        registry,
        options=options,
        severity_overrides=severity_overrides,
        cancel=cancel,
    )

    findings: List[Finding] = []
    errors: List[ParseError] = []
    warnings: List[ParseWarning] = []
    for outcome in outcomes:
        findings.extend(outcome.findings)
        warnings.extend(outcome.warnings)
        if outcome.error is not None:
            errors.append(outcome.error)

    supplied = set(tools)
    for tool in options.mandatory_scanners:
        if tool not in supplied:
            logger.warning("No report supplied for mandatory scanner %s", tool)
            errors.append(ParseError(source_tool=tool, reason="no report supplied"))

    canonical = deduplicate(findings)
    logger.debug("Deduplicated %d finding(s) into %d", len(findings), len(canonical))

    if cancel is not None and cancel.is_set():
        raise GateCancelled("gate run cancelled")

    return evaluate(
        canonical,
        rules,
        exceptions,
        now,
        unparseable_reports=errors,
        mandatory_scanners=options.mandatory_scanners,
        fail_severity=options.fail_severity,
        warn_on_unparseable=options.warn_on_unparseable,
        parse_warnings=warnings,
    )
