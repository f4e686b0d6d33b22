# src/infra_savings/core/estimator.py
"""
Raw savings estimation for a single finding.

Estimation model:
  - monthly cost = resource daily cost (sampled over the lookback window) × 30.
  - When a service is only billed in aggregate (S3, DynamoDB, ...) and no
    resource cost is known, fall back to a share of the service's bill:
        1 / resource_count  when the run knows how many findings share the service,
        DEFAULT_DISTRIBUTION_FACTOR (3%) otherwise.
  - raw savings = monthly cost × the control's savings percentage, rounded to cents.

The numbers produced here are uncapped. capping.py brings them back under the
actual bill per service.
"""

from dataclasses import dataclass, field
from typing import Optional

from infra_savings import config
from infra_savings.core.base_lookup import BaseResourceCostLookup
from infra_savings.utils.utility import round_half_up
from infra_savings.core.models import (
    CostSource,
    Diagnostic,
    DiagnosticKind,
    Finding,
    LookupFailure,
    ResourceCost,
    ServiceCostTable,
)


@dataclass(frozen=True)
class SavingsPolicy:
    """Business calibration of the estimator. Defaults come from config."""
    tiers: tuple[tuple[tuple[str, ...], float], ...] = (
        (tuple(config.IDLE_KEYWORDS), config.IDLE_SAVINGS_PERCENTAGE),
        (tuple(config.UPGRADE_KEYWORDS), config.UPGRADE_SAVINGS_PERCENTAGE),
    )
    default_percentage: float = config.DEFAULT_SAVINGS_PERCENTAGE
    default_distribution_factor: float = config.DEFAULT_DISTRIBUTION_FACTOR
    extrapolation_days: int = config.MONTHLY_EXTRAPOLATION_DAYS
    aggregate_only_services: frozenset[str] = config.NO_RESOURCE_GRANULARITY_SERVICES


DEFAULT_POLICY = SavingsPolicy()


@dataclass(frozen=True)
class MonthlyCost:
    cents: Optional[float]
    source: CostSource


@dataclass
class Estimate:
    raw_savings_cents: int = 0
    monthly_cost_cents: Optional[float] = None
    cost_source: CostSource = CostSource.NONE
    diagnostics: list[Diagnostic] = field(default_factory=list)


def classify_control(control_name: str, policy: SavingsPolicy = DEFAULT_POLICY) -> float:
    """Savings percentage for a control, by case-insensitive keyword match. First tier wins."""
    name = (control_name or "").lower()
    for keywords, percentage in policy.tiers:
        if any(keyword.lower() in name for keyword in keywords):
            return percentage
    return policy.default_percentage


def distribution_factor(resource_count: Optional[int], policy: SavingsPolicy = DEFAULT_POLICY) -> float:
    if resource_count and resource_count > 0:
        return 1 / resource_count
    return policy.default_distribution_factor


def estimate_monthly_cost(
    resource_cost: ResourceCost,
    service_code: str,
    service_costs: ServiceCostTable,
    resource_count: Optional[int] = None,
    policy: SavingsPolicy = DEFAULT_POLICY,
) -> MonthlyCost:
    """
    Decide a resource's monthly cost from the lookup results.

    Returns MonthlyCost(cents=None) when nothing usable is known.
    """
    if resource_cost.available and resource_cost.daily_cents > 0:
        return MonthlyCost(resource_cost.daily_cents * policy.extrapolation_days, CostSource.RESOURCE)

    if service_code in policy.aggregate_only_services:
        billed = service_costs.billed_cents(service_code)
        if billed > 0:
            return MonthlyCost(billed * distribution_factor(resource_count, policy), CostSource.SERVICE_FALLBACK)

    if resource_cost.available:
        return MonthlyCost(resource_cost.daily_cents * policy.extrapolation_days, CostSource.RESOURCE)
    return MonthlyCost(None, CostSource.NONE)


def savings_from_monthly_cost(monthly_cost_cents: Optional[float], percentage: float) -> int:
    if monthly_cost_cents is None or monthly_cost_cents <= 0:
        return 0
    return max(0, round_half_up(monthly_cost_cents * percentage))


class SavingsEstimator:
    """
    Prices findings against a resource lookup and the run's service cost table.

    One estimator belongs to one run. `estimate()` is safe to call from several
    worker threads at once: it only reads shared state.
    """

    def __init__(
        self,
        resource_lookup: BaseResourceCostLookup,
        service_costs: ServiceCostTable,
        policy: SavingsPolicy = DEFAULT_POLICY,
        lookback_days: int = config.RESOURCE_LOOKBACK_DAYS,
    ):
        if not 0 < lookback_days <= config.MAX_LOOKBACK_DAYS:
            raise ValueError(
                f"lookback_days must be between 1 and {config.MAX_LOOKBACK_DAYS}, got {lookback_days}"
            )
        self.resource_lookup = resource_lookup
        self.service_costs = service_costs
        self.policy = policy
        self.lookback_days = lookback_days

    def _lookup(self, resource_id: str, service_code: str) -> ResourceCost:
        try:
            return self.resource_lookup.lookup(resource_id, service_code, self.lookback_days)
        except Exception as e:
            return ResourceCost.error(f"{type(e).__name__}: {e}")

    def estimate(self, finding: Finding, resource_count: Optional[int] = None) -> Estimate:
        """Raw savings for one finding whose resource_id/service_code are already resolved."""
        if finding.is_passing:
            return Estimate()

        if finding.service_code is None:
            return Estimate(diagnostics=[Diagnostic(
                kind=DiagnosticKind.UNRESOLVABLE_RESOURCE,
                message=f"'{finding.resource_identifier}' is not attributable to a known billing service",
                resource_id=finding.resource_id,
            )])

        diagnostics: list[Diagnostic] = []
        resource_cost = self._lookup(finding.resource_id, finding.service_code)
        if resource_cost.failure == LookupFailure.PERMISSION_DENIED:
            diagnostics.append(Diagnostic(
                kind=DiagnosticKind.BILLING_PERMISSION_DENIED,
                message=resource_cost.detail or "resource cost lookup was denied",
                resource_id=finding.resource_id,
                service_code=finding.service_code,
            ))

        monthly = estimate_monthly_cost(
            resource_cost,
            finding.service_code,
            self.service_costs,
            resource_count=resource_count,
            policy=self.policy,
        )

        if monthly.source == CostSource.SERVICE_FALLBACK:
            diagnostics.append(Diagnostic(
                kind=DiagnosticKind.SERVICE_FALLBACK,
                message=(
                    f"no resource-level cost; using {distribution_factor(resource_count, self.policy):.2%} "
                    f"of the {finding.service_code} bill"
                ),
                resource_id=finding.resource_id,
                service_code=finding.service_code,
            ))
        elif monthly.cents is None and resource_cost.failure != LookupFailure.PERMISSION_DENIED:
            diagnostics.append(Diagnostic(
                kind=DiagnosticKind.COST_DATA_UNAVAILABLE,
                message=resource_cost.detail or f"no cost data for {finding.resource_id}",
                resource_id=finding.resource_id,
                service_code=finding.service_code,
            ))

        return Estimate(
            raw_savings_cents=savings_from_monthly_cost(
                monthly.cents, classify_control(finding.control_name, self.policy)
            ),
            monthly_cost_cents=monthly.cents,
            cost_source=monthly.source,
            diagnostics=diagnostics,
        )
