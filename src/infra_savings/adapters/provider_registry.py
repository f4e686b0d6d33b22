# src/infra_savings/adapters/provider_registry.py
"""
Registry for billing providers.
The CLI uses this to discover available providers without hardcoding them.
"""

from typing import Type
from infra_savings.core.base_provider import BaseBillingProvider
from infra_savings.adapters.aws.aws_provider import AWSBillingProvider
from infra_savings.adapters.file.billing_file_adapter import FileBillingProvider

# Map of provider_id (str) -> Provider Class
PROVIDERS: dict[str, Type[BaseBillingProvider]] = {
    "aws": AWSBillingProvider,
    "file": FileBillingProvider,
}

def get_provider(provider_id: str) -> Type[BaseBillingProvider]:
    """Returns the provider class for the given ID."""
    provider_cls = PROVIDERS.get(provider_id.lower())
    if not provider_cls:
        raise ValueError(f"Unknown billing provider: {provider_id}. Available: {list(PROVIDERS.keys())}")
    return provider_cls

def list_providers() -> list[str]:
    """Returns the list of registered provider IDs."""
    return list(PROVIDERS.keys())
