"""Finding deduplication, report ordering and the severity gate."""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Tuple

from .model import SEVERITY_ORDER, Finding, GateDecision, Severity


def deduplicate(findings: Iterable[Finding]) -> List[Finding]:
    """Collapse findings sharing (rule id, address), keeping the first.

    "First" is taken after a stable sort on (address, rule id), so the
    survivor only depends on the input order of the duplicates themselves.
    """

    ordered = sorted(findings, key=lambda finding: (finding.address, finding.rule_id))
    seen: Dict[Tuple[str, str], Finding] = {}
    for finding in ordered:
        seen.setdefault(finding.key, finding)
    return list(seen.values())


def report_order_key(finding: Finding) -> Tuple[int, str, str]:
    return (-int(finding.severity), finding.address, finding.rule_id)


def sort_findings(findings: Iterable[Finding]) -> List[Finding]:
    return sorted(findings, key=report_order_key)


def aggregate(findings: Iterable[Finding]) -> List[Finding]:
    return sort_findings(deduplicate(findings))


def is_blocking(finding: Finding, threshold: Severity, secret_threshold: Optional[Severity] = None) -> bool:
    if finding.suppressed:
        return False
    limit = secret_threshold if finding.category == "secret" and secret_threshold is not None else threshold
    return finding.severity >= limit


def evaluate_gate(
    findings: Iterable[Finding],
    threshold: Severity,
    secret_threshold: Optional[Severity] = None,
) -> GateDecision:
    """Fail iff some non-suppressed finding reaches its threshold.

    Secret findings are measured against ``secret_threshold`` when given;
    everything else against ``threshold``.
    """

    effective_secret = secret_threshold if secret_threshold is not None else threshold
    policy_blocking = 0
    secret_blocking = 0
    suppressed = 0
    for finding in findings:
        if finding.suppressed:
            suppressed += 1
            continue
        if not is_blocking(finding, threshold, effective_secret):
            continue
        if finding.category == "secret":
            secret_blocking += 1
        else:
            policy_blocking += 1
    blocking = policy_blocking + secret_blocking
    return GateDecision(
        threshold=threshold,
        secret_threshold=effective_secret,
        blocking_count=blocking,
        policy_blocking_count=policy_blocking,
        secret_blocking_count=secret_blocking,
        suppressed_count=suppressed,
        passed=blocking == 0,
    )


def severity_counts(findings: Iterable[Finding], *, include_suppressed: bool = False) -> Dict[str, int]:
    counts = {level.label: 0 for level in SEVERITY_ORDER}
    for finding in findings:
        if finding.suppressed and not include_suppressed:
            continue
        counts[finding.severity.label] += 1
    return counts
