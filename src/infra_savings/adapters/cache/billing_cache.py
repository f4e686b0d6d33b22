# src/infra_savings/adapters/cache/billing_cache.py
"""
TTL cache for billing lookups, plus caching decorators for both lookup ports.

Cost Explorer charges per request and lags by up to a day, so repeated runs
within a few hours can safely reuse answers. Only answers are cached (cost
values and "no data"); denied or failed lookups are always retried.

Key layout:
    resource:<service_code>:<resource_id>:<lookback_days>
    services:<period_start>:<period_end>
"""

import threading
import time
from typing import Any, Optional

from cachetools import TLRUCache

from infra_savings.config import BILLING_CACHE_MAXSIZE, BILLING_CACHE_TTL_SECONDS
from infra_savings.core.base_lookup import (
    BaseBillingCache,
    BaseResourceCostLookup,
    BaseServiceCostLookup,
)
from infra_savings.core.models import BillingPeriod, LookupFailure, ResourceCost, ServiceCostTable

RESOURCE_KEY_PREFIX = "resource:"
SERVICE_KEY_PREFIX = "services:"

_CACHEABLE = {None, LookupFailure.NO_DATA}


def resource_cache_key(resource_id: str, service_code: str, lookback_days: int) -> str:
    return f"{RESOURCE_KEY_PREFIX}{service_code}:{resource_id}:{lookback_days}"


def service_cache_key(period: BillingPeriod) -> str:
    return f"{SERVICE_KEY_PREFIX}{period.start.isoformat()}:{period.end.isoformat()}"


class TTLBillingCache(BaseBillingCache):
    """In-process cache with a per-entry TTL. Safe to share between lookup threads."""

    def __init__(self, maxsize: int = BILLING_CACHE_MAXSIZE, timer=time.monotonic):
        # Entries are stored as (value, ttl) so each one can expire on its own schedule.
        self._cache = TLRUCache(maxsize=maxsize, ttu=lambda _key, entry, now: now + entry[1], timer=timer)
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._cache.get(key)
        return entry[0] if entry is not None else None

    def set(self, key: str, value: Any, ttl: float) -> None:
        if ttl <= 0:
            return
        with self._lock:
            self._cache[key] = (value, ttl)

    def invalidate(self, prefix: str) -> int:
        with self._lock:
            self._cache.expire()
            stale = [key for key in list(self._cache.keys()) if key.startswith(prefix)]
            for key in stale:
                self._cache.pop(key, None)
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            self._cache.expire()
            return len(self._cache)


class CachedResourceCostLookup(BaseResourceCostLookup):
    def __init__(self, inner: BaseResourceCostLookup, cache: BaseBillingCache, ttl: float = BILLING_CACHE_TTL_SECONDS):
        self.inner = inner
        self.cache = cache
        self.ttl = ttl

    def lookup(self, resource_id: str, service_code: str, lookback_days: int) -> ResourceCost:
        key = resource_cache_key(resource_id, service_code, lookback_days)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        result = self.inner.lookup(resource_id, service_code, lookback_days)
        if result.failure in _CACHEABLE:
            self.cache.set(key, result, self.ttl)
        return result


class CachedServiceCostLookup(BaseServiceCostLookup):
    def __init__(self, inner: BaseServiceCostLookup, cache: BaseBillingCache, ttl: float = BILLING_CACHE_TTL_SECONDS):
        self.inner = inner
        self.cache = cache
        self.ttl = ttl

    def lookup(self, period: BillingPeriod) -> ServiceCostTable:
        key = service_cache_key(period)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        result = self.inner.lookup(period)
        if result.failure in _CACHEABLE:
            self.cache.set(key, result, self.ttl)
        return result
