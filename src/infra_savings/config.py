# src/infra_savings/config.py
"""
Central configuration for Infra Savings.
All environment variables, policy constants, and billing tables live here.
"""

import os
from dotenv import load_dotenv

load_dotenv()


def _env_list(name: str, default: str) -> list[str]:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


# ---------------------------------------------------------------------------
# AWS / Cost Explorer
# Cost Explorer is a global API served from us-east-1 only.
# ---------------------------------------------------------------------------
AWS_PROFILE: str | None = os.getenv("AWS_PROFILE")
COST_EXPLORER_REGION: str = os.getenv("COST_EXPLORER_REGION", "us-east-1")
INCLUDE_CREDITS: bool = os.getenv("INCLUDE_CREDITS", "true").lower() in {"1", "true", "yes"}
EXCLUDED_RECORD_TYPES: list[str] = ["Credit", "Refund", "Tax"]

# ---------------------------------------------------------------------------
# Lookback windows
# Resource-level Cost Explorer data only reaches back 14 days.
# ---------------------------------------------------------------------------
RESOURCE_LOOKBACK_DAYS: int = int(os.getenv("RESOURCE_LOOKBACK_DAYS", "7"))
MAX_LOOKBACK_DAYS: int = 14
MONTHLY_EXTRAPOLATION_DAYS: int = int(os.getenv("MONTHLY_EXTRAPOLATION_DAYS", "30"))

# ---------------------------------------------------------------------------
# Savings policy
# Percentage of a resource's monthly cost recovered by acting on a finding,
# keyed by keywords found in the control name. First matching tier wins.
# ---------------------------------------------------------------------------
IDLE_SAVINGS_PERCENTAGE: float = float(os.getenv("IDLE_SAVINGS_PERCENTAGE", "0.6"))
IDLE_KEYWORDS: list[str] = _env_list("IDLE_KEYWORDS", "idle,low utilization")

UPGRADE_SAVINGS_PERCENTAGE: float = float(os.getenv("UPGRADE_SAVINGS_PERCENTAGE", "0.3"))
UPGRADE_KEYWORDS: list[str] = _env_list("UPGRADE_KEYWORDS", "upgrade,graviton,lifecycle,versioning")

# Stopped, unattached, unused, old snapshots: the whole cost goes away.
DEFAULT_SAVINGS_PERCENTAGE: float = float(os.getenv("DEFAULT_SAVINGS_PERCENTAGE", "1.0"))

# Share of a service's bill attributed to one resource when neither a
# resource-level cost nor a resource count is known (roughly 1/33).
DEFAULT_DISTRIBUTION_FACTOR: float = float(os.getenv("DEFAULT_DISTRIBUTION_FACTOR", "0.03"))

# ---------------------------------------------------------------------------
# Run execution
# ---------------------------------------------------------------------------
COST_LOOKUP_CONCURRENCY: int = int(os.getenv("COST_LOOKUP_CONCURRENCY", "4"))
RUN_TIMEOUT_SECONDS: float | None = (
    float(os.environ["RUN_TIMEOUT_SECONDS"]) if os.getenv("RUN_TIMEOUT_SECONDS") else None
)

# ---------------------------------------------------------------------------
# Billing cache
# ---------------------------------------------------------------------------
BILLING_CACHE_TTL_SECONDS: int = int(os.getenv("BILLING_CACHE_TTL_SECONDS", str(6 * 60 * 60)))
BILLING_CACHE_MAXSIZE: int = int(os.getenv("BILLING_CACHE_MAXSIZE", "1024"))

# ---------------------------------------------------------------------------
# ARN service segment → Cost Explorer SERVICE dimension
# Extend this when adding support for new services.
# ---------------------------------------------------------------------------
EC2_COMPUTE_SERVICE = "Amazon Elastic Compute Cloud - Compute"
EC2_OTHER_SERVICE = "EC2 - Other"

SERVICE_CODE_MAP: dict[str, str] = {
    "rds": "Amazon Relational Database Service",
    "s3": "Amazon Simple Storage Service",
    "dynamodb": "Amazon DynamoDB",
    "elasticache": "Amazon ElastiCache",
    "redshift": "Amazon Redshift",
    "lambda": "AWS Lambda",
    "elasticloadbalancing": "Amazon Elastic Load Balancing",
    "ecs": "Amazon Elastic Container Service",
    "eks": "Amazon Elastic Container Service for Kubernetes",
    "elasticfilesystem": "Amazon Elastic File System",
    "es": "Amazon OpenSearch Service",
    "kinesis": "Amazon Kinesis",
    "logs": "AmazonCloudWatch",
    "cloudwatch": "AmazonCloudWatch",
    "route53": "Amazon Route 53",
    "sqs": "Amazon Simple Queue Service",
    "sns": "Amazon Simple Notification Service",
    "kms": "AWS Key Management Service",
    "secretsmanager": "AWS Secrets Manager",
}

# EC2 bills instances and their detached storage/addresses as separate line items.
EC2_DESCRIPTOR_SERVICE_MAP: dict[str, str] = {
    "instance": EC2_COMPUTE_SERVICE,
    "volume": EC2_OTHER_SERVICE,
    "snapshot": EC2_OTHER_SERVICE,
    "elastic-ip": EC2_OTHER_SERVICE,
    "natgateway": EC2_OTHER_SERVICE,
}

# Services Cost Explorer only reports in aggregate.
NO_RESOURCE_GRANULARITY_SERVICES: frozenset[str] = frozenset(_env_list(
    "NO_RESOURCE_GRANULARITY_SERVICES",
    ",".join([
        "Amazon Simple Storage Service",
        "Amazon DynamoDB",
        "AmazonCloudWatch",
        "Amazon Route 53",
        "Amazon Simple Queue Service",
        "Amazon Simple Notification Service",
        "AWS Key Management Service",
    ]),
))
