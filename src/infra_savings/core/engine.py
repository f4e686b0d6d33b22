# src/infra_savings/core/engine.py
"""
One savings run: resolve → price → barrier → cap → summarize.

A SavingsRun owns a private copy of its findings and is single-use. Resource
cost lookups fan out over a bounded thread pool (billing APIs are rate
limited); capping starts only once every lookup has come back, because group
sums need the complete set. The service cost table is fetched once, before
pricing, and reused for both the aggregate-service fallback and the cap.

If the run is cancelled or times out before the barrier, outstanding lookups
are abandoned and the result carries no findings and no totals.
"""

import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import replace
from typing import Callable, Optional, Sequence

from infra_savings import config
from infra_savings.core.arn import resolve_resource
from infra_savings.core.base_lookup import BaseResourceCostLookup, BaseServiceCostLookup
from infra_savings.core.capping import apply_caps, describe_capping, verify_caps
from infra_savings.core.errors import RunCancelled
from infra_savings.core.estimator import DEFAULT_POLICY, Estimate, SavingsEstimator, SavingsPolicy
from infra_savings.core.models import (
    BillingPeriod,
    Diagnostic,
    DiagnosticKind,
    Finding,
    LookupFailure,
    RunResult,
    RunStatus,
    ServiceCostTable,
)
from infra_savings.core.summary import build_incomplete_result, build_run_result

ProgressCallback = Callable[[str, int, int], None]

_POLL_INTERVAL_SECONDS = 0.1


def resolve_finding(finding: Finding) -> Finding:
    resolved = resolve_resource(finding.resource_identifier)
    return replace(finding, resource_id=resolved.resource_id, service_code=resolved.service_code)


def resource_counts(findings: Sequence[Finding]) -> dict[str, int]:
    """Number of failing findings per resolved service code."""
    counts: dict[str, int] = {}
    for f in findings:
        if f.is_passing or f.service_code is None:
            continue
        counts[f.service_code] = counts.get(f.service_code, 0) + 1
    return counts


class SavingsRun:
    """
    Prices and caps one batch of findings against one billing period.

    Usage:
        run = SavingsRun(findings, resource_lookup, service_lookup)
        result = run.execute()

    `cancel()` may be called from another thread while `execute()` is running.
    """

    def __init__(
        self,
        findings: Sequence[Finding],
        resource_lookup: BaseResourceCostLookup,
        service_lookup: BaseServiceCostLookup,
        period: Optional[BillingPeriod] = None,
        policy: SavingsPolicy = DEFAULT_POLICY,
        max_workers: int = config.COST_LOOKUP_CONCURRENCY,
        lookback_days: int = config.RESOURCE_LOOKBACK_DAYS,
        timeout: Optional[float] = config.RUN_TIMEOUT_SECONDS,
        cancel_event: Optional[threading.Event] = None,
        progress_callback: Optional[ProgressCallback] = None,
        provider: str = "",
        account_id: str = "",
    ):
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")
        if not 0 < lookback_days <= config.MAX_LOOKBACK_DAYS:
            raise ValueError(
                f"lookback_days must be between 1 and {config.MAX_LOOKBACK_DAYS}, got {lookback_days}"
            )

        self._findings = [replace(f) for f in findings]
        self.resource_lookup = resource_lookup
        self.service_lookup = service_lookup
        self.period = period or BillingPeriod.current_month()
        self.policy = policy
        self.max_workers = max_workers
        self.lookback_days = lookback_days
        self.timeout = timeout
        self.progress_callback = progress_callback
        self.provider = provider
        self.account_id = account_id

        self._cancel_event = cancel_event or threading.Event()
        self._lock = threading.Lock()
        self._executed = False
        self._deadline: Optional[float] = None

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------
    def cancel(self) -> None:
        self._cancel_event.set()

    def execute(self) -> RunResult:
        with self._lock:
            if self._executed:
                raise RuntimeError("a SavingsRun can only be executed once")
            self._executed = True

        started = time.monotonic()
        if self.timeout is not None:
            self._deadline = started + self.timeout

        diagnostics: list[Diagnostic] = []
        try:
            result = self._execute(diagnostics)
        except RunCancelled as e:
            result = build_incomplete_result(
                status=RunStatus.FAILED if e.timed_out else RunStatus.CANCELLED,
                period=self.period,
                message=str(e),
                diagnostics=diagnostics,
                provider=self.provider,
                account_id=self.account_id,
            )

        result.duration_seconds = round(time.monotonic() - started, 2)
        return result

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------
    def _execute(self, diagnostics: list[Diagnostic]) -> RunResult:
        findings = [resolve_finding(f) for f in self._findings]
        counts = resource_counts(findings)
        self._check_cancelled()

        # One pool for both phases, so a hung billing call never outlives the deadline.
        executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="cost-lookup")
        abandoned = False
        try:
            self._progress("Fetching service costs", 0, 1)
            service_costs = self._fetch_service_costs(executor, diagnostics, needed=bool(counts))
            self._progress("Fetching service costs", 1, 1)
            self._check_cancelled()

            estimator = SavingsEstimator(
                self.resource_lookup,
                service_costs,
                policy=self.policy,
                lookback_days=self.lookback_days,
            )
            estimates = self._estimate_all(executor, estimator, findings, counts)
        except BaseException:
            # Never block on lookups that are still in flight.
            abandoned = True
            raise
        finally:
            executor.shutdown(wait=not abandoned, cancel_futures=abandoned)

        priced = []
        for finding, estimate in zip(findings, estimates):
            diagnostics.extend(estimate.diagnostics)
            priced.append(replace(
                finding,
                raw_savings_cents=estimate.raw_savings_cents,
                monthly_cost_cents=estimate.monthly_cost_cents,
                cost_source=estimate.cost_source,
            ))

        # Barrier passed: every estimate is in.
        capped = apply_caps(priced, service_costs)
        verify_caps(capped, service_costs)
        diagnostics.extend(describe_capping(priced, service_costs))

        return build_run_result(
            capped,
            service_costs,
            diagnostics,
            provider=self.provider,
            account_id=self.account_id,
        )

    def _fetch_service_costs(
        self,
        executor: ThreadPoolExecutor,
        diagnostics: list[Diagnostic],
        needed: bool,
    ) -> ServiceCostTable:
        if not needed:
            return ServiceCostTable(period=self.period)

        future = executor.submit(self.service_lookup.lookup, self.period)
        self._wait_all([future])
        try:
            table = future.result()
        except Exception as e:
            table = ServiceCostTable(
                period=self.period,
                failure=LookupFailure.BACKEND_ERROR,
                detail=f"{type(e).__name__}: {e}",
            )

        if table.failure == LookupFailure.PERMISSION_DENIED:
            diagnostics.append(Diagnostic(
                kind=DiagnosticKind.BILLING_PERMISSION_DENIED,
                message=table.detail or "service cost lookup was denied",
            ))
        elif table.failure is not None:
            diagnostics.append(Diagnostic(
                kind=DiagnosticKind.COST_DATA_UNAVAILABLE,
                message=table.detail or f"no service cost data for {self.period}",
            ))
        return table

    def _estimate_all(
        self,
        executor: ThreadPoolExecutor,
        estimator: SavingsEstimator,
        findings: list[Finding],
        counts: dict[str, int],
    ) -> list[Estimate]:
        estimates: list[Estimate] = [Estimate() for _ in findings]
        work = []
        for index, f in enumerate(findings):
            if f.is_passing:
                continue
            if f.service_code is None:
                # No lookup for resources we cannot attribute.
                estimates[index] = estimator.estimate(f)
                continue
            work.append(index)

        total = len(work)
        if not total:
            return estimates

        label = "Pricing findings"
        self._progress(label, 0, total)
        futures = {
            executor.submit(estimator.estimate, findings[i], counts.get(findings[i].service_code)): i
            for i in work
        }
        done_count = 0

        def collect(future):
            nonlocal done_count
            estimates[futures[future]] = future.result()
            done_count += 1
            self._progress(label, done_count, total)

        self._wait_all(futures, on_done=collect)
        return estimates

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _wait_all(self, futures, on_done: Optional[Callable[[Future], None]] = None) -> None:
        """Wait for every future, raising RunCancelled as soon as the run is cancelled or out of time."""
        pending = set(futures)
        while pending:
            self._check_cancelled()
            done, pending = wait(pending, timeout=self._wait_timeout(), return_when=FIRST_COMPLETED)
            if on_done:
                for future in done:
                    on_done(future)

    def _wait_timeout(self) -> float:
        if self._deadline is None:
            return _POLL_INTERVAL_SECONDS
        return max(0.0, min(_POLL_INTERVAL_SECONDS, self._deadline - time.monotonic()))

    def _check_cancelled(self) -> None:
        if self._cancel_event.is_set():
            raise RunCancelled("run cancelled before all cost lookups completed")
        if self._deadline is not None and time.monotonic() >= self._deadline:
            raise RunCancelled(f"run timed out after {self.timeout}s", timed_out=True)

    def _progress(self, label: str, done: int, total: int) -> None:
        if self.progress_callback:
            self.progress_callback(label, done, total)


def estimate_savings(
    findings: Sequence[Finding],
    resource_lookup: BaseResourceCostLookup,
    service_lookup: BaseServiceCostLookup,
    **kwargs,
) -> RunResult:
    """Create and execute a single SavingsRun."""
    return SavingsRun(findings, resource_lookup, service_lookup, **kwargs).execute()
