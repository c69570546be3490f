"""Suppression file parsing and resolution.

Each non-comment line reads ``<rule-id>[:<path-glob>][:<expiry-date>]``.
An entry past its expiry date no longer suppresses anything; it is reported
as a stale-suppression finding so dead ignores get cleaned up.
"""

from __future__ import annotations

import logging
import re
from datetime import date
from fnmatch import fnmatchcase
from typing import Iterable, List, Optional, Sequence, Tuple

from .constants import STALE_SUPPRESSION_RULE_ID
from .errors import SuppressionFileError
from .model import Finding, Severity, SourceLocation, SuppressionEntry

logger = logging.getLogger(__name__)

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_RULE_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.\-/]*$")


def parse_suppressions(text: str, *, source: str = "<suppressions>") -> List[SuppressionEntry]:
    entries: List[SuppressionEntry] = []
    for number, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.split("#", 1)[0].strip()
        if not line:
            continue
        entries.append(parse_suppression_line(line, source=source, line_number=number))
    return entries


def parse_suppression_line(line: str, *, source: str = "<suppressions>", line_number: Optional[int] = None) -> SuppressionEntry:
    rule_id, _, remainder = line.partition(":")
    rule_id = rule_id.strip()
    if not rule_id or not _RULE_ID_RE.match(rule_id):
        raise SuppressionFileError(f"invalid rule id {rule_id!r}", source=source, line=line_number)

    expires: Optional[date] = None
    scope_text = remainder
    head, separator, tail = remainder.rpartition(":")
    candidate = tail.strip() if separator else remainder.strip()
    if _DATE_RE.match(candidate):
        try:
            expires = date.fromisoformat(candidate)
        except ValueError as exc:
            raise SuppressionFileError(f"invalid expiry date {candidate!r}", source=source, line=line_number) from exc
        scope_text = head if separator else ""

    scope = scope_text.strip() or None
    return SuppressionEntry(rule_id=rule_id, scope=scope, expires=expires, source=source, line=line_number)


def entry_matches(entry: SuppressionEntry, finding: Finding) -> bool:
    if entry.rule_id != finding.rule_id:
        return False
    if entry.scope is None:
        return True
    if entry.scope == finding.address or fnmatchcase(finding.address, entry.scope):
        return True
    file_name = finding.location.file
    return bool(file_name) and fnmatchcase(file_name, entry.scope)


def resolve_suppressions(
    findings: Iterable[Finding],
    entries: Sequence[SuppressionEntry],
    *,
    today: date,
) -> Tuple[List[Finding], List[Finding]]:
    """Flag suppressed findings and report stale entries.

    Returns ``(findings, stale_findings)``: every input finding, in order, with
    ``suppressed`` set, and one INFO finding per expired entry.
    """

    active = [entry for entry in entries if not entry.is_expired(today)]
    stale = [entry for entry in entries if entry.is_expired(today)]

    resolved: List[Finding] = []
    for finding in findings:
        match = next((entry for entry in active if entry_matches(entry, finding)), None)
        resolved.append(finding.with_suppression(match))

    stale_findings = [_stale_finding(entry) for entry in stale]
    for entry in stale:
        logger.warning(
            "stale suppression entry %s (expired %s) at %s:%s",
            entry.raw,
            entry.expires,
            entry.source,
            entry.line,
        )
    return resolved, stale_findings


def _stale_finding(entry: SuppressionEntry) -> Finding:
    expired_on = entry.expires.isoformat() if entry.expires else "unknown"
    return Finding(
        rule_id=STALE_SUPPRESSION_RULE_ID,
        severity=Severity.INFO,
        address=f"suppression:{entry.raw}",
        message=f"stale suppression entry, rule {entry.rule_id}, expired on {expired_on}",
        location=SourceLocation(entry.source, entry.line, entry.line),
        category="stale-suppression",
        title="Stale suppression entry",
    )
