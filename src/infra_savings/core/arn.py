# src/infra_savings/core/arn.py
"""
Resource identifier resolution.

Scanner findings reference resources either by a bare ID ("i-0abc", "my-bucket")
or by an ARN:

    arn:partition:service:region:account:descriptor

The descriptor may itself contain ':' and '/' ("snapshot:rds:mydb-snap",
"loadbalancer/app/my-lb/123"). Only ARNs carry enough information to attribute
a resource to a Cost Explorer service; bare IDs never resolve to one.
"""

from dataclasses import dataclass
from typing import Optional

from infra_savings.config import EC2_DESCRIPTOR_SERVICE_MAP, SERVICE_CODE_MAP

ARN_PREFIX = "arn:"
_ARN_MIN_SEGMENTS = 6


@dataclass(frozen=True)
class ResolvedResource:
    resource_id: str
    service_code: Optional[str] = None

    @property
    def attributable(self) -> bool:
        return self.service_code is not None


def _descriptor_type(descriptor: str) -> str:
    """'instance/i-abc' -> 'instance', 'snapshot:rds:x' -> 'snapshot', 'my-bucket' -> 'my-bucket'."""
    for sep in ("/", ":"):
        if sep in descriptor:
            return descriptor.split(sep, 1)[0]
    return descriptor


def _descriptor_resource_id(descriptor: str) -> str:
    if "/" in descriptor:
        return descriptor.split("/", 1)[1]
    if ":" in descriptor:
        return descriptor.split(":", 1)[1]
    return descriptor


def map_service_code(service: str, descriptor: str = "") -> Optional[str]:
    """
    Map an ARN service segment to the Cost Explorer SERVICE dimension it is billed under.

    Returns None for anything not in the table; attribution is never guessed.
    """
    service = service.lower()
    if service == "ec2":
        return EC2_DESCRIPTOR_SERVICE_MAP.get(_descriptor_type(descriptor).lower())
    return SERVICE_CODE_MAP.get(service)


def resolve_resource(reference: Optional[str]) -> ResolvedResource:
    """Split a resource reference into its resource ID and billing service code."""
    if not reference:
        return ResolvedResource(resource_id="")

    if not reference.startswith(ARN_PREFIX):
        return ResolvedResource(resource_id=reference)

    segments = reference.split(":")
    if len(segments) < _ARN_MIN_SEGMENTS:
        return ResolvedResource(resource_id=reference)

    service = segments[2]
    descriptor = ":".join(segments[5:])

    return ResolvedResource(
        resource_id=_descriptor_resource_id(descriptor),
        service_code=map_service_code(service, descriptor),
    )
