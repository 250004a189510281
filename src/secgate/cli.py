"""SecGate CLI — Typer application with evaluate, init, audit, and formats commands."""

from __future__ import annotations

import logging
import signal
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from secgate import __version__

app = typer.Typer(
    name="secgate",
    help="Turn security scanner reports into a single pass / warn / fail gate verdict.",
    add_completion=False,
    no_args_is_help=True,
)

console = Console(stderr=True)


def _setup_logging(verbose: bool, debug: bool) -> None:
    level = logging.DEBUG if debug else logging.INFO if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=debug, markup=False)],
        force=True,
    )


def _parse_now(value: Optional[str]) -> datetime:
    from secgate.policy.loader import PolicyConfigError, parse_timestamp

    if not value:
        return datetime.now(timezone.utc)
    try:
        return parse_timestamp(value, "--now")
    except PolicyConfigError as exc:
        console.print(f"[bold red]Invalid --now:[/bold red] {exc}")
        raise typer.Exit(code=2) from exc


def _load_config_or_exit(config: Optional[str]):
    from secgate.config.loader import ConfigError, load_config

    try:
        return load_config(Path.cwd(), config)
    except ConfigError as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        raise typer.Exit(code=2) from exc


# ── evaluate ──────────────────────────────────────────────────────────────────


@app.command()
def evaluate(
    report: Optional[List[str]] = typer.Option(
        None, "--report", "-r",
        help="Report as FORMAT:PATH or TOOL:FORMAT:PATH (repeatable; replaces [[reports]])",
    ),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to .secgate.toml"),
    exceptions_file: Optional[str] = typer.Option(None, "--exceptions", "-e", help="Exception registry (YAML)"),
    format: Optional[str] = typer.Option(None, "--format", "-f", help="Output format: terminal | json | sarif"),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Write report to file"),
    fail_on_warn: bool = typer.Option(False, "--fail-on-warn", help="Exit 3 on a warn verdict"),
    mandatory: Optional[List[str]] = typer.Option(
        None, "--mandatory", help="Mandatory scanner (repeatable; replaces gate.mandatory_scanners)",
    ),
    now: Optional[str] = typer.Option(None, "--now", help="Evaluation time (ISO 8601); default: current UTC time"),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Per-report parse timeout in seconds"),
    reports_dir: Optional[str] = typer.Option(None, "--reports-dir", help="Base directory for report paths"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
    debug: bool = typer.Option(False, "--debug", help="Debug output"),
) -> None:
    """Evaluate scanner reports against the policy and exit with the gate verdict."""
    from secgate.config.loader import ConfigError, validate_config
    from secgate.gate.engine import GateCancelled, run_gate
    from secgate.gate.verdict import EXIT_CANCELLED
    from secgate.output import json_report, sarif, terminal
    from secgate.parsers.registry import UnsupportedFormat, build_registry
    from secgate.policy.loader import (
        DEFAULT_POLICY,
        PolicyConfigError,
        build_rules,
        load_exceptions,
    )
    from secgate.sources.adapter import parse_report_spec, resolve_sources

    _setup_logging(verbose, debug)
    cfg = _load_config_or_exit(config)
    base_dir = Path.cwd()

    # --- CLI overrides ---
    if format:
        if format not in ("terminal", "json", "sarif"):
            console.print(f"[bold red]Invalid format:[/bold red] {format}")
            raise typer.Exit(code=2)
        cfg.output.format = format  # type: ignore[assignment]
    if fail_on_warn:
        cfg.gate.fail_on_warn = True
    if mandatory:
        cfg.gate.mandatory_scanners = list(mandatory)
    if timeout is not None:
        cfg.gate.parse_timeout_s = timeout
    if exceptions_file:
        cfg.exceptions.file = exceptions_file

    evaluated_at = _parse_now(now)

    # --- Policy, exceptions, sources ---
    try:
        if report:
            cfg.reports = [parse_report_spec(spec) for spec in report]
        validate_config(cfg)
        rules = build_rules(cfg.policy_rules) if cfg.policy_rules else list(DEFAULT_POLICY)
        exc_path = base_dir / cfg.exceptions.file if cfg.exceptions.file else None
        if exceptions_file and not (exc_path and exc_path.is_file()):
            raise ConfigError(f"Exceptions file not found: {exc_path}")
        exceptions = load_exceptions(exc_path)
        sources = resolve_sources(cfg.reports, Path(reports_dir) if reports_dir else base_dir)
    except ConfigError as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        raise typer.Exit(code=2) from exc
    except PolicyConfigError as exc:
        console.print(f"[bold red]Policy error:[/bold red] {exc}")
        raise typer.Exit(code=2) from exc

    if verbose or debug:
        console.print(f"[dim]Rules: {len(rules)}  Exceptions: {len(exceptions)}  Reports: {len(sources)}[/dim]")
        console.print(f"[dim]Mandatory scanners: {', '.join(cfg.gate.mandatory_scanners) or '-'}[/dim]")
        console.print(f"[dim]Evaluated at: {evaluated_at.isoformat()}[/dim]")

    # --- Run gate ---
    cancel = threading.Event()
    previous = _install_cancel_handler(cancel)
    try:
        verdict = run_gate(
            sources,
            rules,
            exceptions,
            evaluated_at,
            options=cfg.gate,
            registry=build_registry(),
            severity_overrides=cfg.normalizer.severity_overrides,
            cancel=cancel,
        )
    except UnsupportedFormat as exc:
        console.print(f"[bold red]Unsupported format:[/bold red] {exc}")
        raise typer.Exit(code=2) from exc
    except PolicyConfigError as exc:
        console.print(f"[bold red]Policy error:[/bold red] {exc}")
        raise typer.Exit(code=2) from exc
    except (GateCancelled, KeyboardInterrupt) as exc:
        cancel.set()
        console.print("[bold yellow]Cancelled — no verdict emitted.[/bold yellow]")
        raise typer.Exit(code=EXIT_CANCELLED) from exc
    finally:
        _restore_cancel_handler(previous)

    # --- Output ---
    report_text: Optional[str] = None
    fow = cfg.gate.fail_on_warn

    if cfg.output.format == "terminal":
        terminal.render(verdict, show_summary=cfg.output.show_summary, fail_on_warn=fow)
    elif cfg.output.format == "json":
        report_text = json_report.render(verdict, include_raw=cfg.output.include_raw, fail_on_warn=fow)
        print(report_text)
    elif cfg.output.format == "sarif":
        report_text = sarif.render(verdict)
        print(report_text)

    # --- Write to file ---
    if output:
        if report_text is None:
            # Terminal format still leaves a machine-readable audit file
            report_text = json_report.render(verdict, include_raw=cfg.output.include_raw, fail_on_warn=fow)
        Path(output).write_text(report_text, encoding="utf-8")
        if verbose:
            console.print(f"[dim]Report written to {output}[/dim]")

    raise typer.Exit(code=verdict.exit_code(fail_on_warn=fow))


def _install_cancel_handler(cancel: threading.Event):
    """Route SIGTERM to the cancel event while the gate runs (main thread only)."""
    if threading.current_thread() is not threading.main_thread():
        return None
    return signal.signal(signal.SIGTERM, lambda signum, frame: cancel.set())


def _restore_cancel_handler(previous) -> None:
    if previous is not None:
        signal.signal(signal.SIGTERM, previous)


# ── init ──────────────────────────────────────────────────────────────────────


@app.command()
def init(
    force: bool = typer.Option(False, "--force", help="Overwrite existing files"),
) -> None:
    """Generate a starter .secgate.toml and exception registry."""
    from secgate.config.defaults import DEFAULT_EXCEPTIONS_YAML, DEFAULT_TOML
    from secgate.config.loader import CONFIG_FILENAME

    base_dir = Path.cwd()
    targets = [
        (base_dir / CONFIG_FILENAME, DEFAULT_TOML),
        (base_dir / ".secgate-exceptions.yml", DEFAULT_EXCEPTIONS_YAML),
    ]

    existing = [p for p, _ in targets if p.exists()]
    if existing and not force:
        for p in existing:
            console.print(f"[yellow]⚠[/yellow]  {p.name} already exists at {p}")
        console.print("[dim]Use --force to overwrite.[/dim]")
        raise typer.Exit(code=1)

    for path, template in targets:
        path.write_text(template, encoding="utf-8")
        console.print(f"[green]✓[/green] Created {path}")


# ── audit ─────────────────────────────────────────────────────────────────────

_AUDIT_STATUS = {
    "active": "[green]active[/green]",
    "expiring": "[yellow]expiring soon[/yellow]",
    "expired": "[red]expired[/red]",
}


@app.command()
def audit(
    exceptions_file: Optional[str] = typer.Option(None, "--exceptions", "-e", help="Exception registry (YAML)"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to .secgate.toml"),
    now: Optional[str] = typer.Option(None, "--now", help="Reference time (ISO 8601); default: current UTC time"),
) -> None:
    """List every exception with its expiry status (audit trail)."""
    from secgate.policy.loader import PolicyConfigError, load_exceptions

    cfg = _load_config_or_exit(config)
    reference = _parse_now(now)
    path = Path(exceptions_file or cfg.exceptions.file or ".secgate-exceptions.yml")
    if not path.is_absolute():
        path = Path.cwd() / path
    if exceptions_file and not path.is_file():
        console.print(f"[bold red]Config error:[/bold red] Exceptions file not found: {path}")
        raise typer.Exit(code=2)

    try:
        exceptions = load_exceptions(path)
    except PolicyConfigError as exc:
        console.print(f"[bold red]Policy error:[/bold red] {exc}")
        raise typer.Exit(code=2) from exc

    if not exceptions:
        console.print(f"[green]No exceptions registered in {path}.[/green]")
        raise typer.Exit(code=0)

    soon = reference + timedelta(days=cfg.exceptions.expiry_warning_days)
    table = Table(title="SecGate Exceptions", title_style="bold", border_style="dim")
    table.add_column("ID", style="cyan")
    table.add_column("Matches")
    table.add_column("Expires", style="magenta")
    table.add_column("Status", justify="center")
    table.add_column("Owner", style="dim")
    table.add_column("Justification")

    counts = {"active": 0, "expiring": 0, "expired": 0}
    for entry in sorted(exceptions, key=lambda e: (e.expires_at, e.id)):
        if not entry.is_active(reference):
            state = "expired"
        elif entry.expires_at <= soon:
            state = "expiring"
        else:
            state = "active"
        counts[state] += 1
        table.add_row(
            entry.id,
            entry.describe(),
            entry.expires_at.isoformat(),
            _AUDIT_STATUS[state],
            entry.owner or "-",
            entry.justification,
        )

    console.print(table)
    console.print(
        f"[bold]{len(exceptions)} exception(s):[/bold] {counts['active']} active, "
        f"{counts['expiring']} expiring within {cfg.exceptions.expiry_warning_days} days, "
        f"{counts['expired']} expired"
    )


# ── formats ───────────────────────────────────────────────────────────────────


@app.command()
def formats() -> None:
    """List supported report formats."""
    from secgate.parsers.registry import build_registry

    registry = build_registry()
    table = Table(title="Report Formats", title_style="bold", border_style="dim")
    table.add_column("Format", style="cyan")
    table.add_column("Default tool", style="green")
    table.add_column("Input")
    for name in registry.formats:
        spec = registry.get(name)
        assert spec is not None
        table.add_row(name, spec.default_tool or "(set tool)", spec.description)
    Console().print(table)


# ── version ───────────────────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        print(f"secgate {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False, "--version", "-V", callback=_version_callback,
        is_eager=True, help="Show version and exit",
    ),
) -> None:
    """SecGate — Decide whether a pipeline may deploy from its security scanner reports."""
