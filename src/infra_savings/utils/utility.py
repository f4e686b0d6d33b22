import hashlib
import math
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal


def generate_finding_id(control_name: str, resource_identifier: str, benchmark: str = "") -> str:
    """Generates a deterministic, unique ID for a finding."""
    unique_string = f"{benchmark}-{control_name}-{resource_identifier}"

    return hashlib.sha256(unique_string.encode('utf-8')).hexdigest()[:16]


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives (2.5 -> 3)."""
    return int(math.floor(value + 0.5))


def dollars_to_cents(amount) -> int:
    """Convert a dollar amount (number, Decimal or Cost Explorer "Amount" string) to whole cents, halves up."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_cents(cents) -> str:
    """1234567 -> '$12,345.67'"""
    return f"${(cents or 0) / 100:,.2f}"


def generate_filename(fmt: str) -> str:
    """Generate a timestamped filename like 'savings_report_20240723_101500.json'"""
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return f"savings_report_{timestamp}.{fmt.lower()}"
