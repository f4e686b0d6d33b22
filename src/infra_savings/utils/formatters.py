import csv
import io
import json
from datetime import datetime, timezone
from importlib.metadata import PackageNotFoundError, version

from infra_savings.core.models import RunResult
from infra_savings.utils.utility import format_cents


def _resolve_app_version() -> str:
    try:
        return version("infra-savings")
    except PackageNotFoundError:
        return "0.1.0"


def _build_report_id(account_id: str) -> str:
    timestamp = datetime.now(timezone.utc)
    account_token = "".join(ch for ch in str(account_id) if ch.isdigit()) or "UNKNOWN"
    return f"SV-{account_token}-{timestamp.strftime('%Y%m%d-%H%M%S')}"


def format_as_text(result: RunResult) -> str:
    """Plain text listing of failing findings with their raw and capped savings."""
    if not result.completed:
        return f"❌ Run {result.status.value}: {result.message}"

    failing = [f for f in result.findings if not f.is_passing]
    if not failing:
        return "✅ No failing controls to price."

    output = [f"🔎 {len(failing)} failing control(s) for {result.period}:\n"]
    for f in failing:
        output.append(
            f"🛠️  Control    : {f.control_name} [{f.status.value}]\n"
            f"🔎 Resource   : {f.resource_id or f.resource_identifier}\n"
            f"🏷️  Service    : {f.service_code or 'unattributed'}\n"
            f"💵 Raw        : {format_cents(f.raw_savings_cents)}\n"
            f"💰 Capped     : {format_cents(f.capped_savings_cents)}"
        )
        if f.reason:
            output.append(f"📖 Reason     : {f.reason}")
        output.append("-" * 60)

    output.append(f"💰 Total capped monthly savings: {format_cents(result.total_capped_savings_cents)}")
    return "\n".join(output)


def _finding_dict(f) -> dict:
    return {
        "finding_id": f.finding_id,
        "control_name": f.control_name,
        "status": f.status.value,
        "resource_identifier": f.resource_identifier,
        "resource_id": f.resource_id,
        "resolved_service_code": f.service_code,
        "monthly_cost_cents": f.monthly_cost_cents,
        "cost_source": f.cost_source.value,
        "raw_savings_cents": f.raw_savings_cents,
        "capped_savings_cents": f.capped_savings_cents,
        "reason": f.reason,
        "benchmark": f.benchmark,
    }


def format_as_json(result: RunResult) -> str:
    """Full run result as JSON. Incomplete runs carry no findings or totals."""
    data = {
        "report_id": _build_report_id(result.account_id),
        "app_version": _resolve_app_version(),
        "status": result.status.value,
        "message": result.message,
        "provider": result.provider,
        "account_id": result.account_id,
        "period": {"start": result.period.start.isoformat(), "end": result.period.end.isoformat()},
        "duration_seconds": result.duration_seconds,
        "status_counts": result.status_counts,
        "total_raw_savings_cents": result.total_raw_savings_cents,
        "total_capped_savings_cents": result.total_capped_savings_cents,
        "services": [
            {
                "service_code": s.service_code,
                "billed_cents": s.billed_cents,
                "raw_savings_cents": s.raw_savings_cents,
                "capped_savings_cents": s.capped_savings_cents,
                "findings_count": s.findings_count,
                "capped": s.was_capped,
            }
            for s in result.services
        ],
        "findings": [_finding_dict(f) for f in result.findings],
        "diagnostics": [
            {
                "kind": d.kind.value,
                "message": d.message,
                "resource_id": d.resource_id,
                "service_code": d.service_code,
            }
            for d in result.diagnostics
        ],
    }
    return json.dumps(data, indent=2)


CSV_COLUMNS = [
    "finding_id",
    "control_name",
    "status",
    "resource_id",
    "resolved_service_code",
    "cost_source",
    "raw_savings_cents",
    "capped_savings_cents",
]


def format_as_csv(result: RunResult) -> str:
    """One row per finding, for spreadsheets."""
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=CSV_COLUMNS, extrasaction="ignore", lineterminator="\n")
    writer.writeheader()
    for f in result.findings:
        writer.writerow(_finding_dict(f))
    return buffer.getvalue()
