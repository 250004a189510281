"""Dynamic-analysis report parser (OWASP ZAP JSON)."""

from __future__ import annotations

from typing import Any, Dict, Iterator, List, Tuple

from secgate.findings.models import RawFinding
from secgate.parsers.base import (
    RECORD_ERRORS,
    ReportFormatError,
    collect,
    cwe_ref,
    load_json,
    records_of,
    require_dict,
    require_list,
    skipped,
    text,
)


def _zap_alert(alert: dict) -> Dict[str, Any]:
    plugin = text(alert["pluginid"])
    return {
        "plugin": plugin,
        "name": text(alert.get("alert") or alert.get("name"), plugin),
        "cwe": cwe_ref(alert.get("cweid")),
        "risk": text(alert.get("riskcode"), "unknown"),
        "raw": {k: v for k, v in alert.items() if k != "instances"},
    }


def _zap_instance(inst: dict, alert: Dict[str, Any], site_name: str, source_tool: str) -> Iterator[RawFinding]:
    uri = text(inst.get("uri"), site_name)
    method = text(inst.get("method"))
    param = text(inst.get("param"))
    loc = f"{method} {uri}" if method else uri
    if param:
        loc = f"{loc}#{param}"
    yield RawFinding(
        source_tool=source_tool,
        format="zap",
        rule_id=f"ZAP-{alert['plugin']}",
        native_severity=alert["risk"],
        location=loc,
        description=alert["name"],
        category="vulnerability",
        cve_or_cwe=(alert["cwe"],) if alert["cwe"] else (),
        raw={**alert["raw"], "instance": inst},
    )


def parse_zap(report: str, source_tool: str) -> Tuple[List[RawFinding], List[str]]:
    """ZAP traditional JSON report (``zap-baseline.py -J``)."""
    doc = require_dict(load_json(report), "zap report")
    if "site" not in doc:
        raise ReportFormatError("zap report has no 'site' key")
    sites = doc["site"]
    if isinstance(sites, dict):
        sites = [sites]

    findings: List[RawFinding] = []
    warnings: List[str] = []
    for s_idx, site in enumerate(require_list(sites, "site"), 1):
        try:
            site_name = text(site.get("@name"), "unknown")
            alerts = records_of(site, "alerts")
        except RECORD_ERRORS as exc:
            warnings.append(skipped("site", s_idx, exc))
            continue
        for a_idx, raw_alert in enumerate(alerts, 1):
            try:
                alert = _zap_alert(raw_alert)
                # an alert without instances still counts once, at the site
                instances = records_of(raw_alert, "instances") or [{}]
            except RECORD_ERRORS as exc:
                warnings.append(skipped("alert", a_idx, exc, f"site #{s_idx} "))
                continue
            f, w = collect(
                instances,
                lambda i, alert=alert: _zap_instance(i, alert, site_name, source_tool),
                "instance",
                prefix=f"site #{s_idx} alert #{a_idx} ",
            )
            findings.extend(f)
            warnings.extend(w)
    return findings, warnings
