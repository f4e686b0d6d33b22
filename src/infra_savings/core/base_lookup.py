# src/infra_savings/core/base_lookup.py
"""
Abstract billing lookups consumed by the savings engine.

The engine never talks to a billing API. It is handed two capabilities:

  - a ResourceCostLookup, asked "what did this one resource cost per day
    over the last N days?"
  - a ServiceCostLookup, asked once per run "what was billed per service in
    this period?"

Design principles:
  - Lookups return data, not exceptions. "No data", "permission denied" and
    "backend error" are all values (see models.LookupFailure) so the estimator
    is a plain decision table over results.
  - Implementations may raise anyway (bugs, unexpected SDK errors). The run
    catches those at the call site and treats them as BACKEND_ERROR for that
    one resource or service.
  - Caching is a decorator concern (adapters/cache), invisible to the engine.

Adding a new billing backend:
  1. Subclass BaseResourceCostLookup and BaseServiceCostLookup.
  2. Wrap them in a BaseBillingProvider (see base_provider.py).
  3. Register the provider in adapters/provider_registry.py.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from .models import BillingPeriod, ResourceCost, ServiceCostTable


class BaseResourceCostLookup(ABC):
    """Per-resource daily cost over a short lookback window."""

    @abstractmethod
    def lookup(self, resource_id: str, service_code: str, lookback_days: int) -> ResourceCost:
        """
        Return the average daily cost of one resource in cents.

        Args:
            resource_id:   Resource ID as billed (e.g. "i-0abc", "vol-123").
            service_code:  Cost Explorer SERVICE dimension the resource is billed under.
            lookback_days: Days of history to sample. Positive, at most MAX_LOOKBACK_DAYS.

        Returns:
            A ResourceCost. `daily_cents=None` when the backend cannot report
            this service at resource granularity or no usage occurred.
        """
        ...


class BaseServiceCostLookup(ABC):
    """Bulk billed cost per service."""

    @abstractmethod
    def lookup(self, period: BillingPeriod) -> ServiceCostTable:
        """
        Return total billed cents per service code for `period`.

        Never partially fails: a service missing from the table is billed 0.
        An empty table (with `failure` set) is returned when nothing is known.
        """
        ...


class BaseBillingCache(ABC):
    """Key/value store with per-entry expiry, used to memoize billing lookups."""

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None when missing or expired."""
        ...

    @abstractmethod
    def set(self, key: str, value: Any, ttl: float) -> None:
        """Store `value` for `ttl` seconds."""
        ...

    @abstractmethod
    def invalidate(self, prefix: str) -> int:
        """Drop every entry whose key starts with `prefix`. Returns how many were dropped."""
        ...
