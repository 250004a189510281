"""Load and merge configuration from .secgate.toml, CLI flags, and env vars."""

from __future__ import annotations

import dataclasses
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from secgate.config.schema import (
    SEVERITY_ORDER,
    SOURCE_TOOLS,
    ExceptionsConfig,
    GateConfig,
    NormalizerConfig,
    OutputConfig,
    ReportConfig,
    SecGateConfig,
)

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".secgate.toml"


class ConfigError(Exception):
    """Raised when config is malformed or unreadable."""


def find_config_file(base_dir: Path, override: Optional[str] = None) -> Optional[Path]:
    """Locate the config file. *override* takes precedence."""
    if override:
        p = Path(override)
        if not p.is_file():
            raise ConfigError(f"Config file not found: {override}")
        return p
    candidate = base_dir / CONFIG_FILENAME
    return candidate if candidate.is_file() else None


def _parse_toml(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ConfigError(f"Failed to parse {path}: {exc}") from exc


def _build_section(data: Dict[str, Any], cls: type, section: str):
    """Build a dataclass from a TOML section dict, ignoring unknown keys."""
    table = data.get(section, {})
    if not isinstance(table, dict):
        raise ConfigError(f"[{section}] must be a table")
    valid_fields = {f.name for f in dataclasses.fields(cls)}
    unknown = sorted(set(table) - valid_fields)
    if unknown:
        logger.warning("Ignoring unknown keys in [%s]: %s", section, ", ".join(unknown))
    filtered = {k: v for k, v in table.items() if k in valid_fields}
    return cls(**filtered)


def _build_reports(raw: Dict[str, Any]) -> List[ReportConfig]:
    entries = raw.get("reports", [])
    if not isinstance(entries, list):
        raise ConfigError("[[reports]] must be an array of tables")
    reports: List[ReportConfig] = []
    for idx, entry in enumerate(entries, 1):
        if not isinstance(entry, dict) or "format" not in entry or "path" not in entry:
            raise ConfigError(f"reports entry #{idx} needs both 'format' and 'path'")
        reports.append(
            ReportConfig(
                format=str(entry["format"]),
                path=str(entry["path"]),
                tool=entry.get("tool"),
            )
        )
    return reports


def _policy_rules(raw: Dict[str, Any]) -> List[Dict[str, Any]]:
    policy = raw.get("policy", {})
    if not isinstance(policy, dict):
        raise ConfigError("[policy] must be a table")
    rules = policy.get("rules", [])
    if not isinstance(rules, list):
        raise ConfigError("[[policy.rules]] must be an array of tables")
    return rules


def _merge_env_overrides(cfg: SecGateConfig) -> None:
    """Apply SECGATE_* environment variable overrides."""
    if val := os.environ.get("SECGATE_FORMAT"):
        if val in ("terminal", "json", "sarif"):
            cfg.output.format = val  # type: ignore[assignment]
        else:
            logger.warning("Ignoring SECGATE_FORMAT=%r", val)
    if val := os.environ.get("SECGATE_FAIL_ON_WARN"):
        cfg.gate.fail_on_warn = val.lower() in ("1", "true", "yes")
    if val := os.environ.get("SECGATE_MANDATORY"):
        cfg.gate.mandatory_scanners = [t.strip() for t in val.split(",") if t.strip()]
    if val := os.environ.get("SECGATE_PARSE_TIMEOUT"):
        try:
            cfg.gate.parse_timeout_s = float(val)
        except ValueError:
            logger.warning("Ignoring SECGATE_PARSE_TIMEOUT=%r", val)
    if val := os.environ.get("SECGATE_EXCEPTIONS_FILE"):
        cfg.exceptions.file = val


def validate_config(cfg: SecGateConfig) -> None:
    """Reject values the gate cannot run with."""
    unknown_tools = [t for t in cfg.gate.mandatory_scanners if t not in SOURCE_TOOLS]
    if unknown_tools:
        raise ConfigError(
            f"Unknown mandatory scanner(s): {', '.join(unknown_tools)} "
            f"(expected one of {', '.join(SOURCE_TOOLS)})"
        )
    if cfg.gate.fail_severity not in SEVERITY_ORDER:
        raise ConfigError(f"Invalid gate.fail_severity: {cfg.gate.fail_severity!r}")
    if cfg.gate.parse_timeout_s <= 0:
        raise ConfigError("gate.parse_timeout_s must be positive")
    if cfg.gate.max_workers is not None and cfg.gate.max_workers < 1:
        raise ConfigError("gate.max_workers must be at least 1")
    if cfg.output.format not in ("terminal", "json", "sarif"):
        raise ConfigError(f"Invalid output.format: {cfg.output.format!r}")
    for report in cfg.reports:
        if report.tool is not None and report.tool not in SOURCE_TOOLS:
            raise ConfigError(f"Unknown tool {report.tool!r} for report {report.path}")
    for fmt, table in cfg.normalizer.severity_overrides.items():
        if not isinstance(table, dict):
            raise ConfigError(f"normalizer.severity_overrides.{fmt} must be a table")
        for native, canonical in table.items():
            if canonical not in SEVERITY_ORDER:
                raise ConfigError(
                    f"normalizer.severity_overrides.{fmt}.{native}: "
                    f"{canonical!r} is not a canonical severity"
                )


def load_config(
    base_dir: Path,
    config_override: Optional[str] = None,
) -> SecGateConfig:
    """Load, validate, and return a SecGateConfig."""
    config_path = find_config_file(base_dir, config_override)

    if config_path is None:
        logger.debug("No %s found in %s, using defaults", CONFIG_FILENAME, base_dir)
        cfg = SecGateConfig()
    else:
        logger.debug("Loading config from %s", config_path)
        raw = _parse_toml(config_path)
        try:
            cfg = SecGateConfig(
                version=str(raw.get("version", "1.0")),
                gate=_build_section(raw, GateConfig, "gate"),
                output=_build_section(raw, OutputConfig, "output"),
                exceptions=_build_section(raw, ExceptionsConfig, "exceptions"),
                normalizer=_build_section(raw, NormalizerConfig, "normalizer"),
                reports=_build_reports(raw),
                policy_rules=_policy_rules(raw),
            )
        except TypeError as exc:
            raise ConfigError(f"Invalid config in {config_path}: {exc}") from exc

    _merge_env_overrides(cfg)
    validate_config(cfg)
    return cfg
