"""Scan orchestration: graph → rules → suppressions → aggregation → gate."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from time import perf_counter
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Type

from .aggregator import aggregate, evaluate_gate, severity_counts
from .config import ScanOptions
from .constants import (
    DANGLING_REFERENCE_RULE_ID,
    DUPLICATE_ADDRESS_RULE_ID,
    MALFORMED_DECLARATION_RULE_ID,
    REPORT_SCHEMA_VERSION,
    SCAN_VERSION,
    TOOL_NAME,
)
from .engine import CancellationToken, evaluate_graph
from .engine.cancellation import check
from .graph import ResourceGraph, build_graph
from .loader import load_declarations, read_suppression_text
from .model import BuildWarning, Finding, GateDecision, SecretMatch, Severity, SuppressionEntry
from .rules import Rule
from .secrets import SecretScanner, collect_text_files
from .suppression import parse_suppressions, resolve_suppressions

logger = logging.getLogger(__name__)

_WARNING_RULES: Dict[str, Tuple[str, Severity]] = {
    "dangling-reference": (DANGLING_REFERENCE_RULE_ID, Severity.LOW),
    "malformed-declaration": (MALFORMED_DECLARATION_RULE_ID, Severity.LOW),
    "duplicate-address": (DUPLICATE_ADDRESS_RULE_ID, Severity.LOW),
}


@dataclass(frozen=True)
class ScanReport:
    findings: Tuple[Finding, ...]
    gate: GateDecision
    node_count: int
    edge_count: int
    secret_matches: Tuple[SecretMatch, ...] = ()
    stale_suppressions: Tuple[SuppressionEntry, ...] = ()
    files_scanned: int = 0
    duration_ms: int = 0
    metadata: Mapping[str, Any] = field(default_factory=dict)

    @property
    def passed(self) -> bool:
        return self.gate.passed

    @property
    def active_findings(self) -> List[Finding]:
        return [finding for finding in self.findings if not finding.suppressed]

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "tool": TOOL_NAME,
            "scan_version": SCAN_VERSION,
            "schema_version": REPORT_SCHEMA_VERSION,
            "findings": [finding.to_dict() for finding in self.findings],
            "gate": self.gate.to_dict(),
            "severity_totals": severity_counts(self.findings),
            "suppressed_totals": severity_counts(
                [finding for finding in self.findings if finding.suppressed], include_suppressed=True
            ),
            "graph": {"nodes": self.node_count, "edges": self.edge_count},
            "secrets": {
                "files_scanned": self.files_scanned,
                "matches": [match.to_dict() for match in self.secret_matches],
            },
            "stale_suppressions": [entry.raw for entry in self.stale_suppressions],
            "duration_ms": self.duration_ms,
            "metadata": dict(self.metadata),
        }
        return {key: payload[key] for key in sorted(payload)}


def warning_findings(warnings: Iterable[BuildWarning]) -> List[Finding]:
    """One finding per (rule id, address); messages of repeated warnings are joined."""

    grouped: Dict[Tuple[str, str], List[BuildWarning]] = {}
    for warning in warnings:
        rule_id, _ = _WARNING_RULES.get(warning.kind, (MALFORMED_DECLARATION_RULE_ID, Severity.LOW))
        grouped.setdefault((rule_id, warning.address), []).append(warning)

    findings: List[Finding] = []
    for (rule_id, address), group in grouped.items():
        first = group[0]
        _, severity = _WARNING_RULES.get(first.kind, (MALFORMED_DECLARATION_RULE_ID, Severity.LOW))
        messages = list(dict.fromkeys(warning.message for warning in group))
        findings.append(
            Finding(
                rule_id=rule_id,
                severity=severity,
                address=address,
                message="; ".join(messages),
                location=first.location,
                category=first.kind,
                title=first.kind.replace("-", " ").capitalize(),
            )
        )
    return findings


def run_scan(
    declarations: Any = None,
    *,
    texts: Optional[Mapping[str, str]] = None,
    suppressions: Sequence[SuppressionEntry] = (),
    options: Optional[ScanOptions] = None,
    rules: Optional[Sequence[Type[Rule]]] = None,
    cancel_token: Optional[CancellationToken] = None,
) -> ScanReport:
    """Run one complete scan over in-memory inputs.

    ``declarations`` may be None when only text is scanned. Raises
    ``MalformedInputError`` for unusable declarations and
    ``ScanCancelledError`` when cancelled; otherwise every problem found on
    the way ends up in the report's findings.
    """

    start = perf_counter()
    resolved = options or ScanOptions()

    graph: Optional[ResourceGraph] = None
    raw: List[Finding] = []
    if declarations is not None:
        graph = build_graph(declarations)
        check(cancel_token)
        raw.extend(warning_findings(graph.warnings))
        raw.extend(evaluate_graph(graph, rules, workers=resolved.workers, cancel_token=cancel_token))

    secret_matches: List[SecretMatch] = []
    if texts and resolved.scan_secrets:
        scanner = SecretScanner(
            entropy_threshold=resolved.entropy_threshold,
            min_length=resolved.entropy_min_length,
        )
        secret_matches = scanner.scan_texts(texts, workers=resolved.workers, cancel_token=cancel_token)
        raw.extend(match.to_finding() for match in secret_matches)

    check(cancel_token)
    today = resolved.effective_today
    flagged, stale_findings = resolve_suppressions(raw, suppressions, today=today)
    findings = aggregate(flagged + stale_findings)
    gate = evaluate_gate(findings, resolved.threshold, resolved.effective_secret_threshold)
    check(cancel_token)

    duration_ms = max(int((perf_counter() - start) * 1000), 0)
    report = ScanReport(
        findings=tuple(findings),
        gate=gate,
        node_count=len(graph) if graph is not None else 0,
        edge_count=len(graph.edges) if graph is not None else 0,
        secret_matches=tuple(secret_matches),
        stale_suppressions=tuple(entry for entry in suppressions if entry.is_expired(today)),
        files_scanned=len(texts) if texts and resolved.scan_secrets else 0,
        duration_ms=duration_ms,
        metadata={"today": today.isoformat(), "workers": resolved.workers},
    )
    logger.info(
        "scan finished: %d findings, %d blocking, gate %s",
        len(findings),
        gate.blocking_count,
        "passed" if gate.passed else "failed",
    )
    return report


def scan_paths(
    plan: Optional[Path] = None,
    *,
    text_paths: Sequence[Path] = (),
    suppression_file: Optional[Path] = None,
    options: Optional[ScanOptions] = None,
    cancel_token: Optional[CancellationToken] = None,
) -> ScanReport:
    """Load every input from disk up front, then call :func:`run_scan`."""

    declarations = load_declarations(plan) if plan is not None else None
    suppression_text = read_suppression_text(suppression_file)
    entries = (
        parse_suppressions(suppression_text, source=str(suppression_file))
        if suppression_text is not None
        else []
    )
    texts = collect_text_files(text_paths) if text_paths else None
    return run_scan(
        declarations,
        texts=texts,
        suppressions=entries,
        options=options,
        cancel_token=cancel_token,
    )
