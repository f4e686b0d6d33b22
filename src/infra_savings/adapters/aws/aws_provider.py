# src/infra_savings/adapters/aws/aws_provider.py
"""
AWS implementation of the BillingProvider interface.
"""

from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from infra_savings.config import AWS_PROFILE, COST_EXPLORER_REGION, INCLUDE_CREDITS
from infra_savings.core.base_provider import BaseBillingProvider
from infra_savings.adapters.aws.cost_explorer_adapter import (
    RESOURCE_COST_PERMISSION,
    SERVICE_COST_PERMISSION,
    CostExplorerResourceCostLookup,
    CostExplorerServiceCostLookup,
)


class AWSBillingProvider(BaseBillingProvider):
    """
    Billing data for one AWS account, read from Cost Explorer.
    """
    provider_name = "aws"

    def __init__(
        self,
        profile: Optional[str] = AWS_PROFILE,
        region: str = COST_EXPLORER_REGION,
        include_credits: bool = INCLUDE_CREDITS,
        session: Optional[boto3.session.Session] = None,
    ):
        self.profile = profile
        self.region = region
        self.include_credits = include_credits
        self._session = session
        self._ce_client = None
        self._account_id: Optional[str] = None

    @property
    def session(self) -> boto3.session.Session:
        if self._session is None:
            self._session = boto3.session.Session(profile_name=self.profile) if self.profile else boto3.session.Session()
        return self._session

    def _cost_explorer(self):
        if self._ce_client is None:
            self._ce_client = self.session.client("ce", region_name=self.region)
        return self._ce_client

    def validate_credentials(self) -> bool:
        """Checks if the user has valid AWS credentials."""
        try:
            sts = self.session.client("sts", region_name=self.region)
            identity = sts.get_caller_identity()
            self._account_id = identity["Account"]
            return True
        except (BotoCoreError, ClientError):
            return False

    def get_account_id(self) -> str:
        if not self._account_id:
            self.validate_credentials()
        return self._account_id or "unknown"

    def resource_cost_lookup(self) -> CostExplorerResourceCostLookup:
        return CostExplorerResourceCostLookup(self._cost_explorer())

    def service_cost_lookup(self) -> CostExplorerServiceCostLookup:
        return CostExplorerServiceCostLookup(self._cost_explorer(), include_credits=self.include_credits)

    def get_required_permissions(self) -> list[dict]:
        return [
            {
                "lookup": "identity",
                "permission": "sts:GetCallerIdentity",
                "description": "Needed to validate credentials and label the report with the account ID",
            },
            {
                "lookup": "service costs",
                "permission": SERVICE_COST_PERMISSION,
                "description": "Needed to read billed cost per service; savings are capped at $0 without it",
            },
            {
                "lookup": "resource costs",
                "permission": RESOURCE_COST_PERMISSION,
                "description": "Needed for per-resource daily cost (requires resource-level data enabled in Cost Explorer)",
            },
        ]
