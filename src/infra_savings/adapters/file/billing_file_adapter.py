# src/infra_savings/adapters/file/billing_file_adapter.py
"""
Billing data from a local JSON export, for offline runs and fixtures.

Expected shape (all amounts in cents):

    {
        "account_id": "123456789012",
        "services": {"Amazon DynamoDB": 12000, "EC2 - Other": 4500},
        "resources": {"i-0abc": 210.5, "vol-0123": 12}
    }

"resources" maps a resource ID to its average daily cost.
"""

import json
from pathlib import Path
from typing import Optional

from infra_savings.core.base_lookup import BaseResourceCostLookup, BaseServiceCostLookup
from infra_savings.core.base_provider import BaseBillingProvider
from infra_savings.core.models import BillingPeriod, LookupFailure, ResourceCost, ServiceCostTable
from infra_savings.utils.utility import round_half_up


class FileResourceCostLookup(BaseResourceCostLookup):
    def __init__(self, daily_costs: dict[str, float]):
        self.daily_costs = daily_costs

    def lookup(self, resource_id: str, service_code: str, lookback_days: int) -> ResourceCost:
        if resource_id not in self.daily_costs:
            return ResourceCost.no_data(f"no cost recorded for {resource_id}")
        return ResourceCost(daily_cents=float(self.daily_costs[resource_id]))


class FileServiceCostLookup(BaseServiceCostLookup):
    def __init__(self, costs: dict[str, int]):
        self.costs = costs

    def lookup(self, period: BillingPeriod) -> ServiceCostTable:
        if not self.costs:
            return ServiceCostTable(period=period, failure=LookupFailure.NO_DATA, detail="billing file has no services")
        return ServiceCostTable(period=period, costs=dict(self.costs))


class FileBillingProvider(BaseBillingProvider):
    provider_name = "file"

    def __init__(self, path: str):
        self.path = Path(path)
        self._data: Optional[dict] = None

    def _load(self) -> dict:
        if self._data is None:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                raise ValueError(f"{self.path}: expected a JSON object with 'services' and 'resources'")
            self._data = data
        return self._data

    def validate_credentials(self) -> bool:
        try:
            self._load()
            return True
        except (OSError, ValueError):
            return False

    def get_account_id(self) -> str:
        return str(self._load().get("account_id", "unknown"))

    def resource_cost_lookup(self) -> FileResourceCostLookup:
        resources = self._load().get("resources", {})
        return FileResourceCostLookup({str(k): float(v) for k, v in resources.items()})

    def service_cost_lookup(self) -> FileServiceCostLookup:
        services = self._load().get("services", {})
        return FileServiceCostLookup({str(k): round_half_up(float(v)) for k, v in services.items()})
