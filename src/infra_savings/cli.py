# src/infra_savings/cli.py
"""
CLI implementation using click and rich.
Supports both interactive prompts and flag-based automation.
"""

import sys
from typing import Optional

import click
import questionary
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn, TaskProgressColumn
from rich.theme import Theme

from . import config
from .adapters.cache.billing_cache import CachedResourceCostLookup, CachedServiceCostLookup, TTLBillingCache
from .adapters.provider_registry import get_provider, list_providers
from .adapters.scanner.findings_loader import load_findings
from .core.arn import resolve_resource
from .core.base_provider import BaseBillingProvider
from .core.engine import SavingsRun
from .core.models import BillingPeriod, DiagnosticKind, RunResult
from .utils.formatters import format_as_text, format_as_json, format_as_csv
from .utils.utility import format_cents, generate_filename


custom_theme = Theme({
    "info": "cyan",
    "warning": "yellow",
    "error": "bold red",
    "success": "bold green",
    "service": "bold blue",
    "diag.permission": "bold red",
    "diag.unavailable": "yellow",
    "diag.capped": "magenta",
    "diag.other": "dim white",
})

console = Console(theme=custom_theme)

_DIAGNOSTIC_STYLES = {
    DiagnosticKind.BILLING_PERMISSION_DENIED: "diag.permission",
    DiagnosticKind.COST_DATA_UNAVAILABLE: "diag.unavailable",
    DiagnosticKind.NO_BILLING_DATA: "diag.unavailable",
    DiagnosticKind.SAVINGS_SCALED: "diag.capped",
}


def display_rich_summary(result: RunResult, verbose: bool = False):
    """Prints the run summary and per-service savings table to the console."""
    console.print("\n")
    console.print(Panel(
        f"[bold white]Billing Period:[/] [bold cyan]{result.period}[/] [dim]({result.provider}:{result.account_id})[/]\n"
        f"[bold white]Raw Estimate:[/] {format_cents(result.total_raw_savings_cents)}   "
        f"[bold white]Capped to Bill:[/] [bold green]{format_cents(result.total_capped_savings_cents)}[/]",
        title="[bold blue]Savings Summary[/]",
        expand=False,
    ))

    table = Table(title="Savings by Service", box=None, padding=(0, 2))
    table.add_column("Service", style="service")
    table.add_column("Billed", justify="right")
    table.add_column("Raw", justify="right")
    table.add_column("Capped", justify="right")
    table.add_column("Findings", justify="right")
    table.add_column("Status", justify="center")

    for s in result.services:
        status_color = "red" if s.billed_cents <= 0 else "yellow" if s.was_capped else "green"
        table.add_row(
            s.service_code,
            format_cents(s.billed_cents),
            format_cents(s.raw_savings_cents),
            format_cents(s.capped_savings_cents),
            str(s.findings_count),
            f"[{status_color}]{s.label}[/]",
        )

    console.print(table)
    counts = ", ".join(f"{k}: {v}" for k, v in result.status_counts.items() if v)
    console.print(f"\n[dim]Controls: {counts or 'none'}. Priced in {result.duration_seconds}s[/]")
    console.print(f"[bold green]💰 Total Capped Monthly Savings: {format_cents(result.total_capped_savings_cents)}[/]")

    if not result.diagnostics:
        return
    if not verbose:
        console.print(f"[dim]{len(result.diagnostics)} diagnostic(s); rerun with --verbose to list them.[/]")
        return

    diag_table = Table(title="Diagnostics", box=None, padding=(0, 2))
    diag_table.add_column("Kind")
    diag_table.add_column("Service")
    diag_table.add_column("Resource")
    diag_table.add_column("Detail")
    for d in result.diagnostics:
        style = _DIAGNOSTIC_STYLES.get(d.kind, "diag.other")
        diag_table.add_row(f"[{style}]{d.kind.value}[/]", d.service_code or "-", d.resource_id or "-", d.message)
    console.print(diag_table)


def build_provider(billing: str, billing_file: Optional[str], profile: Optional[str]) -> BaseBillingProvider:
    provider_cls = get_provider(billing)
    if billing == "file":
        if not billing_file:
            raise click.UsageError("--billing-file is required with --billing file")
        return provider_cls(path=billing_file)
    return provider_cls(profile=profile)


@click.group()
def cli():
    """💰 Infra Savings - cost-capped savings estimates for cloud findings."""
    pass


@cli.command()
@click.argument("findings_file", type=click.Path(exists=True, dir_okay=False), required=False)
@click.option("--billing", type=click.Choice(list_providers()), default="aws", help="Billing data source.")
@click.option("--billing-file", type=click.Path(exists=True, dir_okay=False), help="Billing JSON for --billing file.")
@click.option("--profile", default=config.AWS_PROFILE, help="AWS profile for --billing aws.")
@click.option("--period-start", type=click.DateTime(["%Y-%m-%d"]), help="Billing period start (default: first of this month).")
@click.option("--period-end", type=click.DateTime(["%Y-%m-%d"]), help="Billing period end, exclusive (default: first of next month).")
@click.option("--concurrency", type=click.IntRange(min=1), default=config.COST_LOOKUP_CONCURRENCY, help="Parallel resource cost lookups.")
@click.option("--lookback-days", type=click.IntRange(1, config.MAX_LOOKBACK_DAYS), default=config.RESOURCE_LOOKBACK_DAYS, help="Days of resource cost history to sample.")
@click.option("--timeout", type=float, default=config.RUN_TIMEOUT_SECONDS, help="Abandon the run after this many seconds.")
@click.option("--no-cache", is_flag=True, help="Do not cache billing lookups.")
@click.option("--format", "fmt", type=click.Choice(["text", "json", "csv"]), default="text", help="Output format.")
@click.option("--output", "-o", help="Save report to this file.")
@click.option("--verbose", "-v", is_flag=True, help="List every diagnostic.")
@click.option("--interactive", "-i", is_flag=True, help="Run in interactive prompt mode.")
def estimate(findings_file, billing, billing_file, profile, period_start, period_end, concurrency,
             lookback_days, timeout, no_cache, fmt, output, verbose, interactive):
    """Price failing controls and cap the savings at what was actually billed."""

    if interactive or not findings_file:
        findings_file, billing, billing_file, fmt, output = run_interactive_prompts()
        if not findings_file:
            console.print("\n[warning]⚠️  Operation cancelled.[/]")
            return

    period = BillingPeriod.current_month()
    if period_start or period_end:
        start = period_start.date() if period_start else period.start
        end = period_end.date() if period_end else period.end
        if end <= start:
            raise click.BadParameter("--period-end must be after --period-start")
        period = BillingPeriod(start=start, end=end)

    try:
        findings = load_findings(findings_file)
    except (OSError, ValueError) as e:
        console.print(f"[error]Error:[/] could not read findings: {e}")
        sys.exit(1)

    provider = build_provider(billing, billing_file, profile)
    if not provider.validate_credentials():
        console.print(f"[error]Error:[/] Invalid or missing credentials for {billing.upper()} billing.")
        console.print("[dim]Please ensure your environment variables or local config files are set up properly.[/]")
        sys.exit(1)

    resource_lookup = provider.resource_cost_lookup()
    service_lookup = provider.service_cost_lookup()
    if not no_cache:
        cache = TTLBillingCache()
        resource_lookup = CachedResourceCostLookup(resource_lookup, cache)
        service_lookup = CachedServiceCostLookup(service_lookup, cache)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
    ) as progress:

        def progress_update(label, done, total):
            if label not in [t.description for t in progress.tasks]:
                progress.add_task(label, total=total)
            for task in progress.tasks:
                if task.description == label:
                    progress.update(task.id, completed=done)

        run = SavingsRun(
            findings,
            resource_lookup,
            service_lookup,
            period=period,
            max_workers=concurrency,
            lookback_days=lookback_days,
            timeout=timeout,
            progress_callback=progress_update,
            provider=provider.provider_name,
            account_id=provider.get_account_id(),
        )
        try:
            result = run.execute()
        except KeyboardInterrupt:
            console.print("\n\n[warning]⚠️  Operation cancelled by user. No savings were reported.[/]")
            sys.exit(1)

    if not result.completed:
        console.print(f"[error]Error:[/] run {result.status.value}: {result.message}")
        console.print("[dim]Partial results are discarded; rerun to get capped savings.[/]")
        sys.exit(1)

    # Handle Output
    if fmt == "json":
        content = format_as_json(result)
    elif fmt == "csv":
        content = format_as_csv(result)
    else:
        content = format_as_text(result)
        display_rich_summary(result, verbose=verbose)

    if fmt != "text" and output == "":
        output = generate_filename(fmt)

    if output:
        try:
            with open(output, "w", encoding="utf-8") as f:
                f.write(content)
            console.print(f"\n[success]✅ Report saved to {output}[/]")
        except OSError as e:
            console.print(f"[error]Error saving file:[/] {e}")
            sys.exit(1)
    elif fmt != "text":
        click.echo(content)


@cli.command()
@click.argument("references", nargs=-1, required=True)
def resolve(references):
    """Show how resource references map to billing services."""
    table = Table(box=None, padding=(0, 2))
    table.add_column("Reference", style="dim")
    table.add_column("Resource ID", style="cyan")
    table.add_column("Service Code", style="service")
    for reference in references:
        resolved = resolve_resource(reference)
        table.add_row(reference, resolved.resource_id, resolved.service_code or "[warning]unattributed[/]")
    console.print(table)


@cli.command()
@click.option("--billing", type=click.Choice(list_providers()), default="aws", help="Billing data source.")
@click.option("--profile", default=config.AWS_PROFILE, help="AWS profile for --billing aws.")
def permissions(billing, profile):
    """List the permissions a billing provider needs."""
    # Providers connect lazily, so this never touches the network or disk.
    provider = build_provider(billing, billing_file="-", profile=profile)
    required = provider.get_required_permissions()
    if not required:
        console.print(f"[info]The {billing} provider needs no cloud permissions.[/]")
        return
    table = Table(box=None, padding=(0, 2))
    table.add_column("Permission", style="cyan")
    table.add_column("Used For")
    table.add_column("Why")
    for item in required:
        table.add_row(item["permission"], item["lookup"], item["description"])
    console.print(table)


def run_interactive_prompts():
    """Wraps questionary prompts for interactive mode."""
    console.print(Panel.fit("💰 [bold white]Welcome to Infra Savings[/]", border_style="blue"))

    findings_file = questionary.path("Findings file (Powerpipe JSON or findings list):").ask()

    billing = questionary.select(
        "Billing data source:",
        choices=list_providers(),
        default="aws"
    ).ask()

    billing_file = None
    if billing == "file":
        billing_file = questionary.path("Billing JSON file:").ask()

    fmt = questionary.select(
        "Output format?",
        choices=["text", "json", "csv"],
        default="text"
    ).ask()

    default_file = generate_filename(fmt) if fmt != "text" else ""
    output = questionary.text("Output file (leave blank for console):", default=default_file).ask()

    return findings_file, billing, billing_file, fmt, output


def main():
    cli()


if __name__ == "__main__":
    main()
