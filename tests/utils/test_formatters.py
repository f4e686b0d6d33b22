import csv
import io
import json
import unittest
from datetime import date
from unittest.mock import patch

from infra_savings.core.models import (
    BillingPeriod,
    CostSource,
    Diagnostic,
    DiagnosticKind,
    Finding,
    FindingStatus,
    RunResult,
    RunStatus,
    ServiceSavings,
)
from infra_savings.utils import formatters
from infra_savings.utils.utility import dollars_to_cents, format_cents, generate_filename, round_half_up

PERIOD = BillingPeriod(start=date(2026, 10, 1), end=date(2026, 11, 1))


def make_result() -> RunResult:
    return RunResult(
        status=RunStatus.COMPLETED,
        period=PERIOD,
        findings=[
            Finding(
                control_name='Unattached EBS volumes',
                status=FindingStatus.ALARM,
                resource_identifier='arn:aws:ec2:us-east-1:123:volume/vol-1',
                finding_id='abc123',
                resource_id='vol-1',
                service_code='EC2 - Other',
                monthly_cost_cents=600.0,
                cost_source=CostSource.RESOURCE,
                raw_savings_cents=600,
                capped_savings_cents=250,
                reason='vol-1 is unattached',
            ),
            Finding(
                control_name='Encrypted volumes',
                status=FindingStatus.OK,
                resource_identifier='arn:aws:ec2:us-east-1:123:volume/vol-2',
            ),
        ],
        services=[ServiceSavings('EC2 - Other', 250, 600, 250, 1)],
        status_counts={'ok': 1, 'alarm': 1, 'error': 0, 'skip': 0, 'info': 0},
        diagnostics=[Diagnostic(DiagnosticKind.SAVINGS_SCALED, 'scaled', service_code='EC2 - Other')],
        total_raw_savings_cents=600,
        total_capped_savings_cents=250,
        account_id='123456789012',
        provider='file',
    )


class TestFormatters(unittest.TestCase):
    def test_text_lists_failing_findings_only(self):
        text = formatters.format_as_text(make_result())

        self.assertIn('1 failing control(s)', text)
        self.assertIn('vol-1', text)
        self.assertNotIn('vol-2', text)
        self.assertIn('$2.50', text)

    def test_text_for_incomplete_run(self):
        result = RunResult(status=RunStatus.CANCELLED, period=PERIOD, message='run cancelled')

        self.assertEqual(formatters.format_as_text(result), '❌ Run cancelled: run cancelled')

    @patch('infra_savings.utils.formatters._resolve_app_version', return_value='9.9.9')
    def test_json_payload(self, _version):
        data = json.loads(formatters.format_as_json(make_result()))

        self.assertTrue(data['report_id'].startswith('SV-123456789012-'))
        self.assertEqual(data['app_version'], '9.9.9')
        self.assertEqual(data['status'], 'completed')
        self.assertEqual(data['period'], {'start': '2026-10-01', 'end': '2026-11-01'})
        self.assertEqual(data['total_capped_savings_cents'], 250)
        self.assertEqual(data['services'][0]['capped'], True)
        self.assertEqual(data['findings'][0]['resolved_service_code'], 'EC2 - Other')
        self.assertEqual(data['findings'][0]['cost_source'], 'resource')
        self.assertEqual(data['diagnostics'][0]['kind'], 'savings_scaled')

    def test_csv_has_one_row_per_finding(self):
        rows = list(csv.DictReader(io.StringIO(formatters.format_as_csv(make_result()))))

        self.assertEqual(len(rows), 2)
        self.assertEqual(list(rows[0].keys()), formatters.CSV_COLUMNS)
        self.assertEqual(rows[0]['capped_savings_cents'], '250')
        self.assertEqual(rows[1]['resolved_service_code'], '')


class TestUtility(unittest.TestCase):
    def test_money_helpers(self):
        self.assertEqual(format_cents(1234567), '$12,345.67')
        self.assertEqual(format_cents(None), '$0.00')
        self.assertEqual(dollars_to_cents('0.125'), 13)
        self.assertEqual(dollars_to_cents('1.005'), 101)
        self.assertEqual(dollars_to_cents('0.285'), 29)
        self.assertEqual(dollars_to_cents(1.005), 101)
        self.assertEqual(round_half_up(2.5), 3)
        self.assertEqual(round_half_up(2.49), 2)

    def test_generate_filename(self):
        name = generate_filename('JSON')

        self.assertTrue(name.startswith('savings_report_'))
        self.assertTrue(name.endswith('.json'))


if __name__ == '__main__':
    unittest.main()
