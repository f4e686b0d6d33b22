import json
import os
import tempfile
import unittest

from infra_savings.adapters.scanner.findings_loader import (
    load_findings,
    parse_benchmark_output,
    parse_findings_list,
)
from infra_savings.core.models import FindingStatus

BENCHMARK_REPORT = {
    'name': 'aws_thrifty',
    'children': [
        {
            'name': 'aws_thrifty.ec2',
            'control_results': [],
            'children': [
                {
                    'control_results': [
                        {
                            'control': {'title': 'EC2 instances should not be idle'},
                            'status': 'alarm',
                            'resource': 'arn:aws:ec2:us-east-1:123:instance/i-1',
                            'reason': 'i-1 averaged 2% CPU',
                        },
                        {
                            'control': {'title': 'EC2 instances should not be idle'},
                            'status': 'ok',
                            'resource': 'arn:aws:ec2:us-east-1:123:instance/i-2',
                        },
                    ],
                },
            ],
        },
        {
            'control_results': [
                {
                    'title': 'Unattached EBS volumes',
                    'status': 'ALARM',
                    'resource': 'arn:aws:ec2:us-east-1:123:volume/vol-1',
                },
                {'control': {'title': 'Untitled'}, 'resource': 'x'},
            ],
        },
    ],
}


class TestFindingsLoader(unittest.TestCase):
    def test_walks_nested_groups_in_document_order(self):
        output = 'Running benchmark...\n\n' + json.dumps(BENCHMARK_REPORT) + '\n'

        findings = parse_benchmark_output(output)

        self.assertEqual(len(findings), 4)
        self.assertEqual(findings[0].control_name, 'EC2 instances should not be idle')
        self.assertEqual(findings[0].reason, 'i-1 averaged 2% CPU')
        self.assertEqual(findings[0].benchmark, 'aws_thrifty')
        self.assertEqual(findings[1].status, FindingStatus.OK)
        self.assertEqual(findings[2].control_name, 'Unattached EBS volumes')
        self.assertEqual(findings[2].status, FindingStatus.ALARM)
        self.assertEqual(findings[3].status, FindingStatus.SKIP)

    def test_finding_ids_are_stable_and_distinct(self):
        first = parse_benchmark_output(json.dumps(BENCHMARK_REPORT))
        second = parse_benchmark_output(json.dumps(BENCHMARK_REPORT))

        self.assertEqual([f.finding_id for f in first], [f.finding_id for f in second])
        self.assertEqual(len({f.finding_id for f in first}), 4)

    def test_empty_output(self):
        self.assertEqual(parse_benchmark_output('  \n'), [])

    def test_flat_list_accepts_both_key_spellings(self):
        findings = parse_findings_list([
            {'control_name': 'Idle RDS', 'status': 'alarm', 'resource': 'arn:aws:rds:us-east-1:1:db:mydb'},
            {'name': 'Old snapshots', 'status': 'error', 'resource_identifier': 'snap-1'},
        ])

        self.assertEqual([f.control_name for f in findings], ['Idle RDS', 'Old snapshots'])
        self.assertEqual(findings[1].resource_identifier, 'snap-1')
        self.assertEqual(findings[1].status, FindingStatus.ERROR)

    def test_unknown_status_is_rejected(self):
        with self.assertRaises(ValueError) as ctx:
            parse_findings_list([{'control_name': 'x', 'status': 'broken', 'resource': 'r'}])
        self.assertIn('broken', str(ctx.exception))

    def test_load_findings_detects_format(self):
        with tempfile.TemporaryDirectory() as tmp:
            list_path = os.path.join(tmp, 'findings.json')
            with open(list_path, 'w', encoding='utf-8') as f:
                json.dump([{'control_name': 'Idle RDS', 'status': 'alarm', 'resource': 'db-1'}], f)
            report_path = os.path.join(tmp, 'report.json')
            with open(report_path, 'w', encoding='utf-8') as f:
                f.write(json.dumps(BENCHMARK_REPORT))

            self.assertEqual(len(load_findings(list_path)), 1)
            self.assertEqual(len(load_findings(report_path)), 4)

    def test_load_pretty_printed_report(self):
        with tempfile.TemporaryDirectory() as tmp:
            report_path = os.path.join(tmp, 'report.json')
            with open(report_path, 'w', encoding='utf-8') as f:
                json.dump(BENCHMARK_REPORT, f, indent=2)

            findings = load_findings(report_path)

        self.assertEqual(len(findings), 4)
        self.assertEqual(findings, parse_benchmark_output(json.dumps(BENCHMARK_REPORT)))


if __name__ == '__main__':
    unittest.main()
