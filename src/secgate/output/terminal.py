"""Rich terminal reporter — colour, icons, severity pills."""

from __future__ import annotations

from typing import Optional

from rich.console import Console
from rich.table import Table
from rich.text import Text

from secgate.gate.verdict import GateStatus, GateVerdict

_SEVERITY_STYLE = {
    "critical": "bold white on red",
    "high": "bold white on dark_orange",
    "medium": "bold black on yellow",
    "low": "bold black on bright_cyan",
    "informational": "bold black on white",
}

_SEVERITY_ICON = {
    "critical": "🔴",
    "high": "🟠",
    "medium": "🟡",
    "low": "🔵",
    "informational": "⚪",
}


def _severity_pill(severity: str) -> Text:
    style = _SEVERITY_STYLE.get(severity, "")
    icon = _SEVERITY_ICON.get(severity, "")
    label = "INFO" if severity == "informational" else severity.upper()
    return Text(f" {icon} {label} ", style=style)


def render(
    verdict: GateVerdict,
    *,
    show_summary: bool = True,
    fail_on_warn: bool = False,
    console: Optional[Console] = None,
) -> None:
    """Print the verdict to the terminal using Rich."""
    console = console or Console(stderr=True)

    if verdict.active_findings:
        console.print()
        table = Table(
            title="SecGate Findings",
            show_lines=True,
            title_style="bold",
            border_style="dim",
        )
        table.add_column("Severity", justify="center", width=12)
        table.add_column("Category", style="blue")
        table.add_column("Rule", style="cyan", min_width=16)
        table.add_column("Location", style="magenta")
        table.add_column("Tools", style="green")
        table.add_column("ID", style="dim")

        for f in verdict.active_findings:
            rule = f"{f.rule_id} [yellow](?)[/yellow]" if f.ambiguous_mapping else f.rule_id
            table.add_row(
                _severity_pill(f.severity),
                f.category,
                rule,
                f.location or "-",
                ", ".join(f.source_tools),
                f.id,
            )
        console.print(table)

    if verdict.violated_rules:
        console.print()
        console.print("[bold]Violated rules:[/bold]")
        for v in verdict.violated_rules:
            mark = "[red]✗[/red]" if v.blocking else "[yellow]![/yellow]"
            console.print(
                f"  {mark} [cyan]{v.rule.name}[/cyan]  {v.count} > {v.rule.max_count}  "
                f"[dim]({v.rule.summary()})[/dim]"
            )

    if verdict.suppressed_by_exception:
        console.print()
        console.print("[bold]Suppressed by exception:[/bold]")
        for s in verdict.suppressed_by_exception:
            scope = f" rule={s.rule_name}" if s.rule_name else ""
            console.print(
                f"  [dim]{s.finding.id}[/dim] by [cyan]{s.exception.id}[/cyan]{scope} "
                f"until {s.exception.expires_at:%Y-%m-%d}: {s.exception.justification}"
            )

    for note in verdict.expired_exceptions:
        console.print(f"[yellow]⚠[/yellow]  {note.message}")

    for u in verdict.unparseable_reports:
        colour = "red" if u.mandatory else "yellow"
        where = f" {u.error.label}" if u.error.label else ""
        console.print(f"[{colour}]✗[/{colour}] {u.source_tool} report{where}: {u.error.reason}")

    if show_summary:
        _print_summary(console, verdict)

    console.print()
    if verdict.status == GateStatus.FAIL:
        console.print("[bold red]❌ FAIL — blocking policy violation. Pipeline must stop.[/bold red]")
    elif verdict.status == GateStatus.WARN:
        suffix = " (fail-on-warn: pipeline stops)" if fail_on_warn else ""
        console.print(f"[bold yellow]⚠️  WARN — advisory violations found{suffix}.[/bold yellow]")
    else:
        console.print("[bold green]✅ PASS — no policy violations.[/bold green]")


def _print_summary(console: Console, verdict: GateVerdict) -> None:
    console.print()
    console.print(f"[dim]Rules evaluated:[/dim] {verdict.rules_evaluated}")
    console.print(f"[dim]Findings:[/dim]        {len(verdict.findings)}")
    console.print(f"[dim]Active:[/dim]          {len(verdict.active_findings)}")
    console.print(f"[dim]Suppressed:[/dim]      {len(verdict.suppressed_by_exception)}")
    console.print(f"[dim]Unparseable:[/dim]     {len(verdict.unparseable_reports)}")
    console.print(f"[dim]Warnings:[/dim]        {len(verdict.parse_warnings)}")
