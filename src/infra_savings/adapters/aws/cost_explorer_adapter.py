# src/infra_savings/adapters/aws/cost_explorer_adapter.py
"""
AWS Cost Explorer adapter: resource-level and service-level billed cost.

Both lookups convert every ClientError into a LookupFailure value:
    AccessDenied & friends          → PERMISSION_DENIED
    DataUnavailable / Validation    → NO_DATA  (resource granularity not enabled,
                                                window too long, no usage yet)
    anything else                   → BACKEND_ERROR
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

from botocore.exceptions import BotoCoreError, ClientError

from infra_savings.config import EXCLUDED_RECORD_TYPES, INCLUDE_CREDITS
from infra_savings.core.base_lookup import BaseResourceCostLookup, BaseServiceCostLookup
from infra_savings.core.models import (
    BillingPeriod,
    LookupFailure,
    ResourceCost,
    ServiceCostTable,
)
from infra_savings.utils.utility import dollars_to_cents

RESOURCE_COST_PERMISSION = "ce:GetCostAndUsageWithResources"
SERVICE_COST_PERMISSION = "ce:GetCostAndUsage"

_NO_DATA_CODES = {
    "DataUnavailableException",
    "ValidationException",
    "BillExpirationException",
}


def _is_access_denied(error: ClientError) -> bool:
    code = error.response.get("Error", {}).get("Code", "")
    return code in {
        "AccessDenied",
        "AccessDeniedException",
        "UnauthorizedOperation",
        "Client.UnauthorizedOperation",
        "UnrecognizedClientException",
    }


def classify_client_error(error: ClientError, permission: str) -> tuple[LookupFailure, str]:
    """Map a Cost Explorer ClientError to a LookupFailure and a human-readable detail."""
    if _is_access_denied(error):
        return LookupFailure.PERMISSION_DENIED, f"missing permission: {permission}"

    code = error.response.get("Error", {}).get("Code", "")
    message = error.response.get("Error", {}).get("Message", str(error))
    if code in _NO_DATA_CODES:
        return LookupFailure.NO_DATA, f"{code}: {message}"
    return LookupFailure.BACKEND_ERROR, f"{code or 'Error'}: {message}"


def _amount(metrics: dict, metric: str) -> Decimal:
    return Decimal(str(metrics.get(metric, {}).get("Amount", "0") or 0))


class CostExplorerResourceCostLookup(BaseResourceCostLookup):
    """Average daily UnblendedCost of one resource over the lookback window."""

    metric = "UnblendedCost"

    def __init__(self, ce_client):
        self.ce = ce_client
        self._warned: set[LookupFailure] = set()

    def _warn_once(self, failure: LookupFailure, detail: str) -> None:
        # One warning per failure kind; a denied permission would otherwise repeat per resource.
        if failure in self._warned or failure == LookupFailure.NO_DATA:
            return
        self._warned.add(failure)
        if failure == LookupFailure.PERMISSION_DENIED:
            print(
                f"⚠️  Resource-level costs unavailable, missing permission: {RESOURCE_COST_PERMISSION} "
                "(savings will fall back to service-level data where possible)"
            )
        else:
            print(f"⚠️  Cost Explorer (resources): {detail}")

    def lookup(self, resource_id: str, service_code: str, lookback_days: int) -> ResourceCost:
        end = datetime.now(timezone.utc).date()
        start = end - timedelta(days=lookback_days)
        request = {
            "TimePeriod": {"Start": start.isoformat(), "End": end.isoformat()},
            "Granularity": "DAILY",
            "Metrics": [self.metric],
            "Filter": {
                "And": [
                    {"Dimensions": {"Key": "SERVICE", "Values": [service_code]}},
                    {"Dimensions": {"Key": "RESOURCE_ID", "Values": [resource_id]}},
                ]
            },
        }

        total = Decimal(0)
        try:
            token = None
            while True:
                kwargs = dict(request, NextPageToken=token) if token else request
                response = self.ce.get_cost_and_usage_with_resources(**kwargs)
                for period in response.get("ResultsByTime", []):
                    total += _amount(period.get("Total", {}), self.metric)
                    for group in period.get("Groups", []):
                        total += _amount(group.get("Metrics", {}), self.metric)
                token = response.get("NextPageToken")
                if not token:
                    break
        except ClientError as e:
            failure, detail = classify_client_error(e, RESOURCE_COST_PERMISSION)
            self._warn_once(failure, detail)
            return ResourceCost(failure=failure, detail=detail)
        except BotoCoreError as e:
            self._warn_once(LookupFailure.BACKEND_ERROR, str(e))
            return ResourceCost.error(str(e))

        if total <= 0:
            return ResourceCost.no_data(f"no billed usage for {resource_id} in the last {lookback_days} days")

        return ResourceCost(daily_cents=float(total) * 100 / lookback_days)


class CostExplorerServiceCostLookup(BaseServiceCostLookup):
    """Billed AmortizedCost per SERVICE for a billing period, in one grouped query."""

    metric = "AmortizedCost"

    def __init__(self, ce_client, include_credits: bool = INCLUDE_CREDITS):
        self.ce = ce_client
        self.include_credits = include_credits

    def lookup(self, period: BillingPeriod) -> ServiceCostTable:
        request = {
            "TimePeriod": {"Start": period.start.isoformat(), "End": period.end.isoformat()},
            "Granularity": "MONTHLY",
            "Metrics": [self.metric],
            "GroupBy": [{"Type": "DIMENSION", "Key": "SERVICE"}],
        }
        if not self.include_credits:
            request["Filter"] = {
                "Not": {"Dimensions": {"Key": "RECORD_TYPE", "Values": EXCLUDED_RECORD_TYPES}}
            }

        totals: dict[str, Decimal] = {}
        try:
            token = None
            while True:
                kwargs = dict(request, NextPageToken=token) if token else request
                response = self.ce.get_cost_and_usage(**kwargs)
                for result in response.get("ResultsByTime", []):
                    for group in result.get("Groups", []):
                        keys = group.get("Keys") or ["Unknown"]
                        totals[keys[0]] = totals.get(keys[0], Decimal(0)) + _amount(group.get("Metrics", {}), self.metric)
                token = response.get("NextPageToken")
                if not token:
                    break
        except ClientError as e:
            failure, detail = classify_client_error(e, SERVICE_COST_PERMISSION)
            if failure == LookupFailure.PERMISSION_DENIED:
                print(
                    f"⚠️  Service costs unavailable, missing permission: {SERVICE_COST_PERMISSION} "
                    "(all savings will be capped at $0.00)"
                )
            else:
                print(f"⚠️  Cost Explorer (services): {detail}")
            return ServiceCostTable(period=period, failure=failure, detail=detail)
        except BotoCoreError as e:
            print(f"⚠️  Cost Explorer (services): {e}")
            return ServiceCostTable(period=period, failure=LookupFailure.BACKEND_ERROR, detail=str(e))

        costs = {
            service: dollars_to_cents(amount)
            for service, amount in totals.items()
            if amount > 0
        }
        if not costs:
            return ServiceCostTable(
                period=period,
                failure=LookupFailure.NO_DATA,
                detail=f"Cost Explorer returned no billed cost for {period}",
            )
        return ServiceCostTable(period=period, costs=costs)
