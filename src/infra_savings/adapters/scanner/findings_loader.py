# src/infra_savings/adapters/scanner/findings_loader.py
"""
Load scanner findings from disk.

Two shapes are accepted:

1. Powerpipe `benchmark run ... --output json`. The report is the last line of
   stdout; controls live in `control_results` lists nested under `children`
   groups at any depth.

2. A flat JSON list of findings:
       [{"control_name": "...", "status": "alarm", "resource": "arn:aws:..."}]
   `name` is accepted for `control_name`, `resource_identifier` for `resource`.
"""

import json
from pathlib import Path
from typing import Any

from infra_savings.core.models import Finding, FindingStatus
from infra_savings.utils.utility import generate_finding_id


def _status(value: Any) -> FindingStatus:
    try:
        return FindingStatus(str(value or "skip").lower())
    except ValueError:
        valid = ", ".join(s.value for s in FindingStatus)
        raise ValueError(f"Unknown finding status '{value}'. Valid statuses: {valid}") from None


def _make_finding(control_name: str, status: Any, resource: str, reason: str = "", benchmark: str = "") -> Finding:
    return Finding(
        finding_id=generate_finding_id(control_name, resource, benchmark),
        control_name=control_name,
        status=_status(status),
        resource_identifier=resource,
        reason=reason,
        benchmark=benchmark,
    )


def extract_controls(node: dict, benchmark: str = "") -> list[Finding]:
    """Walk a Powerpipe result tree depth-first, in document order."""
    findings = []
    for control in node.get("control_results") or []:
        meta = control.get("control") or {}
        findings.append(_make_finding(
            control_name=meta.get("title") or control.get("title") or "Unknown Control",
            status=control.get("status"),
            resource=control.get("resource") or "",
            reason=control.get("reason") or "",
            benchmark=benchmark,
        ))

    for child in node.get("children") or []:
        findings.extend(extract_controls(child, benchmark))
    return findings


def parse_benchmark_output(output: str) -> list[Finding]:
    """
    Parse Powerpipe JSON output.

    A saved report may be pretty-printed, so the whole text is tried first. Live
    output can carry progress lines before the report, which is then the last
    non-empty line.
    """
    stripped = output.strip()
    if not stripped:
        return []
    try:
        report = json.loads(stripped)
    except json.JSONDecodeError:
        report = json.loads(stripped.splitlines()[-1])
    benchmark = report.get("name") or (report.get("benchmark") or {}).get("name") or ""
    return extract_controls(report, benchmark)


def parse_findings_list(items: list[dict]) -> list[Finding]:
    findings = []
    for item in items:
        findings.append(_make_finding(
            control_name=item.get("control_name") or item.get("name") or "Unknown Control",
            status=item.get("status"),
            resource=item.get("resource") or item.get("resource_identifier") or "",
            reason=item.get("reason") or "",
            benchmark=item.get("benchmark") or "",
        ))
    return findings


def load_findings(path: str) -> list[Finding]:
    """Load findings from a Powerpipe report or a flat findings list."""
    text = Path(path).read_text(encoding="utf-8")
    stripped = text.strip()
    if stripped.startswith("["):
        return parse_findings_list(json.loads(stripped))
    return parse_benchmark_output(text)
