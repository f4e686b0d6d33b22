# src/infra_savings/core/capping.py
"""
Savings capping against the actual bill.

Capping model, per service S:
  - billed(S) <= 0           → every finding in S is capped to 0.
  - Σ raw(S) <= billed(S)    → raw values pass through unchanged.
  - Σ raw(S) >  billed(S)    → scale by billed / Σ raw (truncated to 4 decimal
                               places), floor each value, then hand the floor
                               remainder to the finding with the largest capped
                               value (first seen on ties) so the group sums to
                               billed(S) exactly.

A finding never ends above its own raw value: if the remainder does not fit in
the largest finding, what is left over goes to the next largest.

Because the factor is truncated, the remainder can be as large as
Σ raw(S) / 10000 plus one cent per finding, and it all lands on one finding.
A group of {600, 300} capped to 300 ends at {201, 99}; a hundred $10,000
findings capped to $499,999.99 leave one finding about $100 above the others.
Group totals are always exact.

cap_group / cap_savings are pure: no I/O, no logging. Diagnostics for a capping
pass are derived separately by describe_capping().
"""

from dataclasses import replace
from typing import Mapping, Sequence

from infra_savings.core.errors import NormalizationInvariantViolation
from infra_savings.core.models import Diagnostic, DiagnosticKind, Finding, ServiceCostTable

# Scaling factors are kept in units of 1/10000 so scaling stays in integer cents.
SCALING_PRECISION = 10_000


def cap_group(raw: Sequence[int], billed: int) -> list[int]:
    """Cap one service group's raw savings so they sum to at most `billed`."""
    values = [max(0, int(v)) for v in raw]
    if billed <= 0:
        return [0] * len(values)

    total = sum(values)
    if total <= billed:
        return values

    scaling_factor = billed * SCALING_PRECISION // total
    capped = [v * scaling_factor // SCALING_PRECISION for v in values]

    remainder = billed - sum(capped)
    # sorted() is stable, so equal values keep their original order
    for i in sorted(range(len(capped)), key=lambda i: -capped[i]):
        if remainder <= 0:
            break
        top_up = min(remainder, values[i] - capped[i])
        capped[i] += top_up
        remainder -= top_up

    return capped


def cap_savings(
    raw_by_service: Mapping[str, Sequence[int]],
    billed_by_service: Mapping[str, int],
) -> dict[str, list[int]]:
    """Apply cap_group to every service. Services missing from `billed_by_service` are billed 0."""
    return {
        service: cap_group(raw, billed_by_service.get(service, 0))
        for service, raw in raw_by_service.items()
    }


def group_raw_savings(findings: Sequence[Finding]) -> dict[str, list[int]]:
    """
    Index positions of cappable findings, grouped by service code.

    A finding is cappable when it failed, resolved to a service, and has raw savings.
    """
    groups: dict[str, list[int]] = {}
    for index, finding in enumerate(findings):
        if finding.is_passing or finding.service_code is None or finding.raw_savings_cents <= 0:
            continue
        groups.setdefault(finding.service_code, []).append(index)
    return groups


def apply_caps(findings: Sequence[Finding], service_costs: ServiceCostTable) -> list[Finding]:
    """Return copies of `findings` with capped_savings_cents filled in. Input order is kept."""
    groups = group_raw_savings(findings)
    raw_by_service = {
        service: [findings[i].raw_savings_cents for i in indexes]
        for service, indexes in groups.items()
    }
    billed_by_service = {service: service_costs.billed_cents(service) for service in groups}
    capped_by_service = cap_savings(raw_by_service, billed_by_service)

    capped_values = [0] * len(findings)
    for service, indexes in groups.items():
        for index, value in zip(indexes, capped_by_service[service]):
            capped_values[index] = value

    return [
        replace(finding, capped_savings_cents=capped)
        for finding, capped in zip(findings, capped_values)
    ]


def verify_caps(findings: Sequence[Finding], service_costs: ServiceCostTable) -> None:
    """Raise NormalizationInvariantViolation if capped findings break the billing cap."""
    totals: dict[str, int] = {}
    for f in findings:
        if f.capped_savings_cents < 0 or f.capped_savings_cents > f.raw_savings_cents:
            raise NormalizationInvariantViolation(
                f.service_code or "unresolved",
                f"capped {f.capped_savings_cents} outside [0, raw {f.raw_savings_cents}] for {f.resource_id}",
            )
        if f.service_code is None:
            if f.capped_savings_cents:
                raise NormalizationInvariantViolation("unresolved", f"{f.resource_id} has capped savings")
            continue
        totals[f.service_code] = totals.get(f.service_code, 0) + f.capped_savings_cents

    for service, total in totals.items():
        billed = service_costs.billed_cents(service)
        if total > billed:
            raise NormalizationInvariantViolation(service, f"capped total {total} exceeds billed {billed}")


def describe_capping(findings: Sequence[Finding], service_costs: ServiceCostTable) -> list[Diagnostic]:
    """Explain what a capping pass did, one diagnostic per service that was zeroed or scaled."""
    diagnostics = []
    for service, indexes in group_raw_savings(findings).items():
        raw_total = sum(findings[i].raw_savings_cents for i in indexes)
        billed = service_costs.billed_cents(service)
        if billed <= 0:
            diagnostics.append(Diagnostic(
                kind=DiagnosticKind.NO_BILLING_DATA,
                message=f"no billed cost for {service}; {len(indexes)} finding(s) capped at $0.00",
                service_code=service,
            ))
        elif raw_total > billed:
            diagnostics.append(Diagnostic(
                kind=DiagnosticKind.SAVINGS_SCALED,
                message=(
                    f"raw savings ${raw_total / 100:,.2f} exceed billed ${billed / 100:,.2f}; "
                    f"scaled by {billed / raw_total:.4f}"
                ),
                service_code=service,
            ))
    return diagnostics
