# src/infra_savings/core/summary.py
"""
Run summary: per-service savings roll-up and the final RunResult.

Summary model:
  - Every service that has at least one failing, resolved finding gets a row.
  - A row carries the billed cost, the raw (uncapped) and capped savings, and
    how many findings contributed.
  - Rows are ordered by capped savings, largest first, so the report leads
    with the money that is actually recoverable.
"""

from infra_savings.core.models import (
    BillingPeriod,
    Diagnostic,
    Finding,
    FindingStatus,
    RunResult,
    RunStatus,
    ServiceCostTable,
    ServiceSavings,
)


def status_counts(findings: list[Finding]) -> dict[str, int]:
    """Count findings per scanner status (ok, alarm, error, skip, info)."""
    counts = {status.value: 0 for status in FindingStatus}
    for f in findings:
        counts[f.status.value] += 1
    return counts


def summarize_services(findings: list[Finding], service_costs: ServiceCostTable) -> list[ServiceSavings]:
    """
    Roll findings up by service code.

    Args:
        findings:      Capped findings from a completed run.
        service_costs: The run's service cost table (the same one used for capping).

    Returns:
        One ServiceSavings per service, sorted by capped savings descending.
    """
    rows: dict[str, ServiceSavings] = {}
    for f in findings:
        if f.is_passing or f.service_code is None:
            continue
        row = rows.get(f.service_code)
        if row is None:
            row = rows[f.service_code] = ServiceSavings(
                service_code=f.service_code,
                billed_cents=service_costs.billed_cents(f.service_code),
                raw_savings_cents=0,
                capped_savings_cents=0,
                findings_count=0,
            )
        row.raw_savings_cents += f.raw_savings_cents
        row.capped_savings_cents += f.capped_savings_cents
        row.findings_count += 1

    return sorted(rows.values(), key=lambda r: (-r.capped_savings_cents, r.service_code))


def build_run_result(
    findings: list[Finding],
    service_costs: ServiceCostTable,
    diagnostics: list[Diagnostic],
    provider: str = "",
    account_id: str = "",
) -> RunResult:
    """
    Combine capped findings and diagnostics into a completed RunResult.

    This is the single function the run calls after capping succeeds.
    """
    return RunResult(
        status=RunStatus.COMPLETED,
        period=service_costs.period,
        findings=findings,
        services=summarize_services(findings, service_costs),
        status_counts=status_counts(findings),
        diagnostics=diagnostics,
        total_raw_savings_cents=sum(f.raw_savings_cents for f in findings),
        total_capped_savings_cents=sum(f.capped_savings_cents for f in findings),
        provider=provider,
        account_id=account_id,
    )


def build_incomplete_result(
    status: RunStatus,
    period: BillingPeriod,
    message: str,
    diagnostics: list[Diagnostic],
    provider: str = "",
    account_id: str = "",
) -> RunResult:
    """A result for a run that never reached its barrier: no findings, no totals."""
    return RunResult(
        status=status,
        period=period,
        diagnostics=diagnostics,
        message=message,
        provider=provider,
        account_id=account_id,
    )
