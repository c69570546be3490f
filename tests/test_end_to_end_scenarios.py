"""End-to-end scans over in-memory inputs."""

from datetime import date

import pytest

from iacgate import CancellationToken, ScanCancelledError, ScanOptions, Severity, run_scan
from iacgate.rules import Rule
from iacgate.rules.base import as_bool
from iacgate.suppression import parse_suppressions
from tests.helpers.plan_helpers import declaration


class FlagPublicBlobAccess(Rule):
    id = "RULE-042"
    title = "Flag public blob access"
    severity = Severity.HIGH
    resource_types = frozenset({"storage-account"})

    @classmethod
    def evaluate(cls, node, context):
        if as_bool(node.attribute("allowBlobPublicAccess")) is True:
            return [cls.finding(node, f"{node.address} allows public blob access")]
        return []


PUBLIC_BLOB = [declaration("storage-account", "public", {"allowBlobPublicAccess": True})]


def _options(**kwargs):
    kwargs.setdefault("workers", 2)
    kwargs.setdefault("today", date(2025, 6, 15))
    return ScanOptions(**kwargs)


def test_public_blob_fails_gate_at_high():
    report = run_scan(PUBLIC_BLOB, options=_options(threshold=Severity.HIGH), rules=[FlagPublicBlobAccess])

    assert len(report.findings) == 1
    finding = report.findings[0]
    assert (finding.rule_id, finding.severity, finding.address) == ("RULE-042", Severity.HIGH, "storage-account.public")
    assert report.passed is False
    assert report.gate.blocking_count == 1


def test_public_blob_passes_gate_at_critical():
    report = run_scan(PUBLIC_BLOB, options=_options(threshold=Severity.CRITICAL), rules=[FlagPublicBlobAccess])

    assert len(report.findings) == 1
    assert report.passed is True
    assert report.gate.blocking_count == 0


def test_unscoped_suppression_excludes_finding_from_gate():
    declarations = PUBLIC_BLOB + [
        declaration("storage-account", "archive", {"allowBlobPublicAccess": True}, module="module.backup"),
    ]
    report = run_scan(
        declarations,
        suppressions=parse_suppressions("RULE-042\n"),
        options=_options(),
        rules=[FlagPublicBlobAccess],
    )

    assert len(report.findings) == 2
    assert all(finding.suppressed for finding in report.findings)
    assert report.passed is True
    assert report.gate.suppressed_count == 2


def test_expired_suppression_reports_stale_entry_and_blocks():
    report = run_scan(
        PUBLIC_BLOB,
        suppressions=parse_suppressions("RULE-042:storage-account.public:2025-01-31\n", source="ignore.txt"),
        options=_options(),
        rules=[FlagPublicBlobAccess],
    )

    by_rule = {finding.rule_id: finding for finding in report.findings}
    assert by_rule["RULE-042"].suppressed is False
    assert by_rule["IAC-SUPPRESS-001"].severity is Severity.INFO
    assert report.passed is False
    assert [entry.raw for entry in report.stale_suppressions] == ["RULE-042:storage-account.public:2025-01-31"]


def test_policy_and_secret_findings_share_one_report():
    texts = {"vars.tf": 'variable "x" {}\npassword = "Tr0ub4dor&3xample!"\n', "ok.tf": 'password = "changeme"\n'}
    report = run_scan(PUBLIC_BLOB, texts=texts, options=_options(threshold=Severity.CRITICAL), rules=[FlagPublicBlobAccess])

    categories = sorted(finding.category for finding in report.findings)
    assert categories == ["policy", "secret"]
    secret = next(finding for finding in report.findings if finding.category == "secret")
    assert secret.address == "vars.tf:2"
    assert report.files_scanned == 2
    # Secrets follow the policy threshold unless given their own.
    assert report.passed is True


def test_independent_secret_threshold():
    texts = {"vars.tf": 'password = "Tr0ub4dor&3xample!"\n'}
    report = run_scan(
        texts=texts,
        options=_options(threshold=Severity.CRITICAL, secret_threshold=Severity.MEDIUM),
    )

    assert report.node_count == 0
    assert report.gate.secret_blocking_count == 1
    assert report.passed is False


def test_secret_scanning_can_be_disabled():
    texts = {"vars.tf": 'password = "Tr0ub4dor&3xample!"\n'}
    report = run_scan(texts=texts, options=_options(scan_secrets=False))

    assert report.findings == ()
    assert report.files_scanned == 0
    assert report.passed is True


def test_graph_warnings_surface_as_low_findings():
    report = run_scan(
        [
            declaration("azurerm_subnet", "a", {"virtual_network_name": "azurerm_virtual_network.gone.name"}),
            declaration("azurerm_subnet", "a", {}),
            {"name": "typeless"},
        ],
        options=_options(),
    )

    rule_ids = sorted(finding.rule_id for finding in report.findings)
    assert rule_ids == ["IAC-GRAPH-001", "IAC-GRAPH-002", "IAC-GRAPH-003"]
    assert all(finding.severity is Severity.LOW for finding in report.findings)
    assert report.passed is True


def test_every_dangling_target_of_a_node_is_reported():
    report = run_scan(
        [
            declaration(
                "azurerm_subnet_network_security_group_association",
                "web",
                {
                    "subnet_id": "azurerm_subnet.gone.id",
                    "network_security_group_id": "azurerm_network_security_group.missing.id",
                },
            )
        ],
        options=_options(),
    )

    assert len(report.findings) == 1
    finding = report.findings[0]
    assert finding.rule_id == "IAC-GRAPH-001"
    assert "azurerm_subnet.gone" in finding.message
    assert "azurerm_network_security_group.missing" in finding.message


def test_builtin_rules_on_cluster(cluster_declarations):
    report = run_scan(cluster_declarations, options=_options())

    found = {(finding.rule_id, finding.address) for finding in report.findings}
    assert found == {
        ("IAC-AZ-010", "azurerm_network_security_group.open"),
        ("IAC-AZ-011", "azurerm_subnet_network_security_group_association.aks"),
        ("IAC-AZ-022", "azurerm_kubernetes_cluster.aks"),
    }
    assert report.gate.blocking_count == 2
    assert report.node_count == 6


def test_report_is_deterministic_across_worker_counts(cluster_declarations):
    serial = run_scan(cluster_declarations, options=_options(workers=1))
    parallel = run_scan(cluster_declarations, options=_options(workers=8))

    assert serial.findings == parallel.findings
    assert serial.gate == parallel.gate


def test_report_dict_shape(cluster_declarations):
    payload = run_scan(cluster_declarations, options=_options()).to_dict()

    assert list(payload) == sorted(payload)
    assert payload["tool"] == "iacgate"
    assert payload["gate"]["status"] == "FAIL"
    assert payload["severity_totals"]["high"] == 2
    assert payload["graph"]["nodes"] == 6
    assert payload["metadata"]["today"] == "2025-06-15"
    assert payload["findings"][0]["severity"] == "high"


def test_cancelled_scan_discards_results(cluster_declarations):
    token = CancellationToken()
    token.cancel("deploy aborted")
    with pytest.raises(ScanCancelledError, match="deploy aborted"):
        run_scan(cluster_declarations, options=_options(), cancel_token=token)
