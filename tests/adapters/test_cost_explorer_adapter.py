import unittest
from datetime import date
from unittest.mock import MagicMock, patch

from botocore.exceptions import ClientError, EndpointConnectionError

from infra_savings.adapters.aws.cost_explorer_adapter import (
    CostExplorerResourceCostLookup,
    CostExplorerServiceCostLookup,
    classify_client_error,
)
from infra_savings.core.models import BillingPeriod, LookupFailure

PERIOD = BillingPeriod(start=date(2026, 10, 1), end=date(2026, 11, 1))


def client_error(code, message='boom', operation='GetCostAndUsage'):
    return ClientError({'Error': {'Code': code, 'Message': message}}, operation)


def daily(amount):
    return {'Total': {'UnblendedCost': {'Amount': str(amount), 'Unit': 'USD'}}, 'Groups': []}


class TestClassifyClientError(unittest.TestCase):
    def test_access_denied_names_the_permission(self):
        failure, detail = classify_client_error(client_error('AccessDeniedException'), 'ce:GetCostAndUsage')

        self.assertEqual(failure, LookupFailure.PERMISSION_DENIED)
        self.assertIn('ce:GetCostAndUsage', detail)

    def test_data_unavailable_is_no_data(self):
        failure, _ = classify_client_error(client_error('DataUnavailableException'), 'ce:GetCostAndUsage')

        self.assertEqual(failure, LookupFailure.NO_DATA)

    def test_other_errors_are_backend_errors(self):
        failure, detail = classify_client_error(client_error('ThrottlingException', 'slow down'), 'x')

        self.assertEqual(failure, LookupFailure.BACKEND_ERROR)
        self.assertIn('slow down', detail)


@patch('builtins.print')
class TestResourceCostLookup(unittest.TestCase):
    def test_daily_average_over_lookback_window(self, _print):
        ce = MagicMock()
        ce.get_cost_and_usage_with_resources.return_value = {
            'ResultsByTime': [daily(1.5), daily(2.0), daily(0.0), daily(3.5)],
        }

        cost = CostExplorerResourceCostLookup(ce).lookup('i-abc', 'Amazon Elastic Compute Cloud - Compute', 7)

        # $7.00 over 7 days
        self.assertAlmostEqual(cost.daily_cents, 100.0)
        kwargs = ce.get_cost_and_usage_with_resources.call_args.kwargs
        self.assertEqual(kwargs['Granularity'], 'DAILY')
        dimensions = {d['Dimensions']['Key']: d['Dimensions']['Values'] for d in kwargs['Filter']['And']}
        self.assertEqual(dimensions['RESOURCE_ID'], ['i-abc'])
        self.assertEqual(dimensions['SERVICE'], ['Amazon Elastic Compute Cloud - Compute'])

    def test_follows_next_page_token(self, _print):
        ce = MagicMock()
        ce.get_cost_and_usage_with_resources.side_effect = [
            {'ResultsByTime': [daily(7.0)], 'NextPageToken': 'page-2'},
            {'ResultsByTime': [daily(7.0)]},
        ]

        cost = CostExplorerResourceCostLookup(ce).lookup('i-abc', 'svc', 7)

        self.assertAlmostEqual(cost.daily_cents, 200.0)
        second_call = ce.get_cost_and_usage_with_resources.call_args_list[1].kwargs
        self.assertEqual(second_call['NextPageToken'], 'page-2')

    def test_no_usage_is_no_data_not_zero(self, _print):
        ce = MagicMock()
        ce.get_cost_and_usage_with_resources.return_value = {'ResultsByTime': [daily(0)]}

        cost = CostExplorerResourceCostLookup(ce).lookup('i-abc', 'svc', 7)

        self.assertFalse(cost.available)
        self.assertEqual(cost.failure, LookupFailure.NO_DATA)

    def test_access_denied_warns_once(self, mock_print):
        ce = MagicMock()
        ce.get_cost_and_usage_with_resources.side_effect = client_error(
            'AccessDeniedException', operation='GetCostAndUsageWithResources'
        )
        lookup = CostExplorerResourceCostLookup(ce)

        first = lookup.lookup('i-1', 'svc', 7)
        second = lookup.lookup('i-2', 'svc', 7)

        self.assertEqual(first.failure, LookupFailure.PERMISSION_DENIED)
        self.assertEqual(second.failure, LookupFailure.PERMISSION_DENIED)
        self.assertEqual(mock_print.call_count, 1)
        self.assertIn('ce:GetCostAndUsageWithResources', mock_print.call_args.args[0])

    def test_connection_errors_are_backend_errors(self, _print):
        ce = MagicMock()
        ce.get_cost_and_usage_with_resources.side_effect = EndpointConnectionError(endpoint_url='https://ce')

        cost = CostExplorerResourceCostLookup(ce).lookup('i-1', 'svc', 7)

        self.assertEqual(cost.failure, LookupFailure.BACKEND_ERROR)


@patch('builtins.print')
class TestServiceCostLookup(unittest.TestCase):
    @staticmethod
    def grouped(*pairs):
        return {
            'ResultsByTime': [{
                'Groups': [
                    {'Keys': [service], 'Metrics': {'AmortizedCost': {'Amount': amount, 'Unit': 'USD'}}}
                    for service, amount in pairs
                ],
            }],
        }

    def test_costs_grouped_by_service_in_cents(self, _print):
        ce = MagicMock()
        ce.get_cost_and_usage.return_value = self.grouped(
            ('Amazon DynamoDB', '120.004'),
            ('EC2 - Other', '45.5'),
            ('Tax', '-3.0'),
        )

        table = CostExplorerServiceCostLookup(ce).lookup(PERIOD)

        self.assertIsNone(table.failure)
        self.assertEqual(table.costs, {'Amazon DynamoDB': 12000, 'EC2 - Other': 4550})
        self.assertEqual(table.billed_cents('Tax'), 0)
        kwargs = ce.get_cost_and_usage.call_args.kwargs
        self.assertEqual(kwargs['TimePeriod'], {'Start': '2026-10-01', 'End': '2026-11-01'})
        self.assertEqual(kwargs['Granularity'], 'MONTHLY')
        self.assertEqual(kwargs['GroupBy'], [{'Type': 'DIMENSION', 'Key': 'SERVICE'}])
        self.assertNotIn('Filter', kwargs)

    def test_excluding_credits_filters_record_types(self, _print):
        ce = MagicMock()
        ce.get_cost_and_usage.return_value = self.grouped(('Amazon DynamoDB', '1'))

        CostExplorerServiceCostLookup(ce, include_credits=False).lookup(PERIOD)

        record_filter = ce.get_cost_and_usage.call_args.kwargs['Filter']['Not']['Dimensions']
        self.assertEqual(record_filter['Key'], 'RECORD_TYPE')
        self.assertEqual(record_filter['Values'], ['Credit', 'Refund', 'Tax'])

    def test_pages_are_summed(self, _print):
        ce = MagicMock()
        first = self.grouped(('Amazon DynamoDB', '10'))
        first['NextPageToken'] = 'next'
        ce.get_cost_and_usage.side_effect = [first, self.grouped(('Amazon DynamoDB', '5'))]

        table = CostExplorerServiceCostLookup(ce).lookup(PERIOD)

        self.assertEqual(table.costs, {'Amazon DynamoDB': 1500})

    def test_half_cent_amounts_round_up(self, _print):
        ce = MagicMock()
        first = self.grouped(('Amazon DynamoDB', '1.005'), ('AWS Lambda', '0.14'))
        first['NextPageToken'] = 'next'
        ce.get_cost_and_usage.side_effect = [first, self.grouped(('AWS Lambda', '0.005'))]

        table = CostExplorerServiceCostLookup(ce).lookup(PERIOD)

        self.assertEqual(table.costs, {'Amazon DynamoDB': 101, 'AWS Lambda': 15})

    def test_empty_response_is_no_data(self, _print):
        ce = MagicMock()
        ce.get_cost_and_usage.return_value = {'ResultsByTime': [{'Groups': []}]}

        table = CostExplorerServiceCostLookup(ce).lookup(PERIOD)

        self.assertEqual(table.failure, LookupFailure.NO_DATA)
        self.assertEqual(table.costs, {})

    def test_access_denied_is_reported(self, mock_print):
        ce = MagicMock()
        ce.get_cost_and_usage.side_effect = client_error('AccessDeniedException')

        table = CostExplorerServiceCostLookup(ce).lookup(PERIOD)

        self.assertEqual(table.failure, LookupFailure.PERMISSION_DENIED)
        self.assertIn('ce:GetCostAndUsage', table.detail)
        mock_print.assert_called_once()


if __name__ == '__main__':
    unittest.main()
