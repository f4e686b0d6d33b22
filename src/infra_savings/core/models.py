from enum import Enum
from dataclasses import dataclass, field
from datetime import date
from typing import Optional


class FindingStatus(str, Enum):
    OK = "ok"
    ALARM = "alarm"
    ERROR = "error"
    SKIP = "skip"
    INFO = "info"


class CostSource(str, Enum):
    RESOURCE = "resource"
    SERVICE_FALLBACK = "service_fallback"
    NONE = "none"


class LookupFailure(str, Enum):
    NO_DATA = "no_data"
    PERMISSION_DENIED = "permission_denied"
    BACKEND_ERROR = "backend_error"


class DiagnosticKind(str, Enum):
    UNRESOLVABLE_RESOURCE = "unresolvable_resource"
    COST_DATA_UNAVAILABLE = "cost_data_unavailable"
    BILLING_PERMISSION_DENIED = "billing_permission_denied"
    NO_BILLING_DATA = "no_billing_data"
    SERVICE_FALLBACK = "service_fallback"
    SAVINGS_SCALED = "savings_scaled"


class RunStatus(str, Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass
class Finding:
    control_name: str
    status: FindingStatus
    resource_identifier: str
    finding_id: str = ""
    reason: str = ""
    benchmark: str = ""
    resource_id: str = ""
    service_code: Optional[str] = None
    monthly_cost_cents: Optional[float] = None
    cost_source: CostSource = CostSource.NONE
    raw_savings_cents: int = 0
    capped_savings_cents: int = 0

    @property
    def is_passing(self) -> bool:
        return self.status == FindingStatus.OK


@dataclass(frozen=True)
class BillingPeriod:
    """Billing window; `end` is exclusive, as Cost Explorer expects."""
    start: date
    end: date

    @classmethod
    def current_month(cls, today: Optional[date] = None) -> "BillingPeriod":
        today = today or date.today()
        start = today.replace(day=1)
        if start.month == 12:
            end = start.replace(year=start.year + 1, month=1)
        else:
            end = start.replace(month=start.month + 1)
        return cls(start=start, end=end)

    def __str__(self) -> str:
        return f"{self.start.isoformat()}..{self.end.isoformat()}"


@dataclass(frozen=True)
class ResourceCost:
    """
    Outcome of a resource-level cost lookup.

    `daily_cents=None` means the backend had nothing to say about the resource,
    which is different from a resource that genuinely cost 0.
    """
    daily_cents: Optional[float] = None
    failure: Optional[LookupFailure] = None
    detail: str = ""

    @property
    def available(self) -> bool:
        return self.daily_cents is not None

    @classmethod
    def no_data(cls, detail: str = "") -> "ResourceCost":
        return cls(failure=LookupFailure.NO_DATA, detail=detail)

    @classmethod
    def denied(cls, detail: str = "") -> "ResourceCost":
        return cls(failure=LookupFailure.PERMISSION_DENIED, detail=detail)

    @classmethod
    def error(cls, detail: str = "") -> "ResourceCost":
        return cls(failure=LookupFailure.BACKEND_ERROR, detail=detail)


@dataclass(frozen=True)
class ServiceCostSnapshot:
    service_code: str
    total_billed_cents: int
    period_start: date
    period_end: date


@dataclass(frozen=True)
class ServiceCostTable:
    """Billed cost per Cost Explorer service for one period. Absent means zero."""
    period: BillingPeriod
    costs: dict[str, int] = field(default_factory=dict)
    failure: Optional[LookupFailure] = None
    detail: str = ""

    def billed_cents(self, service_code: Optional[str]) -> int:
        if not service_code:
            return 0
        return max(0, int(self.costs.get(service_code, 0)))

    def snapshot(self, service_code: str) -> ServiceCostSnapshot:
        return ServiceCostSnapshot(
            service_code=service_code,
            total_billed_cents=self.billed_cents(service_code),
            period_start=self.period.start,
            period_end=self.period.end,
        )


@dataclass(frozen=True)
class Diagnostic:
    kind: DiagnosticKind
    message: str
    resource_id: str = ""
    service_code: Optional[str] = None


@dataclass
class ServiceSavings:
    service_code: str
    billed_cents: int
    raw_savings_cents: int
    capped_savings_cents: int
    findings_count: int

    @property
    def was_capped(self) -> bool:
        return self.capped_savings_cents < self.raw_savings_cents

    @property
    def label(self) -> str:
        if self.billed_cents <= 0:
            return "No billing data"
        if self.was_capped:
            return "Capped"
        return "Within bill"


@dataclass
class RunResult:
    status: RunStatus
    period: BillingPeriod
    findings: list[Finding] = field(default_factory=list)
    services: list[ServiceSavings] = field(default_factory=list)
    status_counts: dict[str, int] = field(default_factory=dict)
    diagnostics: list[Diagnostic] = field(default_factory=list)
    total_raw_savings_cents: int = 0
    total_capped_savings_cents: int = 0
    account_id: str = ""
    provider: str = ""
    message: str = ""
    duration_seconds: float = 0.0

    @property
    def completed(self) -> bool:
        return self.status == RunStatus.COMPLETED

    @property
    def total_savings(self) -> float:
        """Capped monthly savings in dollars."""
        return self.total_capped_savings_cents / 100
