# src/infra_savings/core/base_provider.py
"""
Abstract base class for billing providers.

This is the top-level integration point between the CLI and a billing backend.

┌─────────────────────────────────────────────────────────────┐
│                     CLI / Orchestrator                      │
│        (cli.py — builds a SavingsRun and renders it)        │
└────────────────────────┬────────────────────────────────────┘
                         │  uses
                         ▼
             ┌──────────────────────┐
             │ BaseBillingProvider  │  ◄── You implement this
             │   (this module)      │       for each new backend
             └──────────────────────┘
                    ▲         ▲
         implements │         │ implements
                    │         │
   ┌─────────────────┐       ┌──────────────────┐
   │ AWSBillingProv. │       │ FileBillingProv. │
   │ (adapters/aws/) │       │ (adapters/file/) │
   └─────────────────┘       └──────────────────┘

Each provider owns:
  - Credential validation
  - Building the resource and service cost lookups the engine consumes

The engine itself (core/engine.py) only sees the two lookups.
"""

from abc import ABC, abstractmethod

from .base_lookup import BaseResourceCostLookup, BaseServiceCostLookup


class BaseBillingProvider(ABC):
    """
    Abstract base for a billing backend.

    The orchestrator calls providers like this:
        provider = AWSBillingProvider(profile="prod")
        if not provider.validate_credentials():
            ...
        run = SavingsRun(findings, provider.resource_cost_lookup(), provider.service_cost_lookup())
    """

    # Subclasses must set this to a short identifier like "aws" or "file"
    provider_name: str = ""

    # ------------------------------------------------------------------
    # Credential & identity
    # ------------------------------------------------------------------
    @abstractmethod
    def validate_credentials(self) -> bool:
        """
        Return True if the backend is reachable with the configured credentials.
        Should NOT raise. Return False and let the CLI handle messaging.
        """
        ...

    @abstractmethod
    def get_account_id(self) -> str:
        """Return the billed account identifier, used in reports."""
        ...

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    @abstractmethod
    def resource_cost_lookup(self) -> BaseResourceCostLookup:
        ...

    @abstractmethod
    def service_cost_lookup(self) -> BaseServiceCostLookup:
        ...

    # ------------------------------------------------------------------
    # Optional: IAM / permission guidance
    # ------------------------------------------------------------------
    def get_required_permissions(self) -> list[dict]:
        """
        Return the permissions this provider's lookups need.
        Each item is a dict with keys: lookup, permission, description.

        The default implementation returns an empty list.
        """
        return []

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} provider={self.provider_name!r}>"
