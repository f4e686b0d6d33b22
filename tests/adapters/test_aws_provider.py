import unittest
from unittest.mock import MagicMock

from botocore.exceptions import ClientError, NoCredentialsError

from infra_savings.adapters.aws.aws_provider import AWSBillingProvider
from infra_savings.adapters.aws.cost_explorer_adapter import (
    CostExplorerResourceCostLookup,
    CostExplorerServiceCostLookup,
)


class TestAWSBillingProvider(unittest.TestCase):
    def setUp(self):
        self.sts = MagicMock()
        self.ce = MagicMock()
        self.session = MagicMock()
        self.session.client.side_effect = lambda name, **kwargs: {'sts': self.sts, 'ce': self.ce}[name]

    def test_valid_credentials_record_account(self):
        self.sts.get_caller_identity.return_value = {'Account': '123456789012'}
        provider = AWSBillingProvider(session=self.session)

        self.assertTrue(provider.validate_credentials())
        self.assertEqual(provider.get_account_id(), '123456789012')

    def test_missing_credentials(self):
        self.sts.get_caller_identity.side_effect = NoCredentialsError()
        provider = AWSBillingProvider(session=self.session)

        self.assertFalse(provider.validate_credentials())
        self.assertEqual(provider.get_account_id(), 'unknown')

    def test_expired_token(self):
        self.sts.get_caller_identity.side_effect = ClientError(
            {'Error': {'Code': 'ExpiredToken', 'Message': 'expired'}}, 'GetCallerIdentity'
        )

        self.assertFalse(AWSBillingProvider(session=self.session).validate_credentials())

    def test_lookups_share_one_cost_explorer_client_in_us_east_1(self):
        provider = AWSBillingProvider(session=self.session, include_credits=False)

        resource_lookup = provider.resource_cost_lookup()
        service_lookup = provider.service_cost_lookup()

        self.assertIsInstance(resource_lookup, CostExplorerResourceCostLookup)
        self.assertIsInstance(service_lookup, CostExplorerServiceCostLookup)
        self.assertIs(resource_lookup.ce, service_lookup.ce)
        self.assertFalse(service_lookup.include_credits)
        self.session.client.assert_called_once_with('ce', region_name='us-east-1')

    def test_required_permissions(self):
        permissions = [p['permission'] for p in AWSBillingProvider(session=self.session).get_required_permissions()]

        self.assertEqual(
            permissions,
            ['sts:GetCallerIdentity', 'ce:GetCostAndUsage', 'ce:GetCostAndUsageWithResources'],
        )


if __name__ == '__main__':
    unittest.main()
