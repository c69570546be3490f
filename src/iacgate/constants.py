"""Shared constants for IaCGate."""

from __future__ import annotations

TOOL_NAME = "iacgate"
SCAN_VERSION = "0.4.0"
REPORT_SCHEMA_VERSION = "1.0.0"

DEFAULT_SEVERITY_THRESHOLD = "high"
DEFAULT_ENTROPY_THRESHOLD = 3.5
DEFAULT_ENTROPY_MIN_LENGTH = 8

# Identifiers used for findings the engine raises about itself.
DANGLING_REFERENCE_RULE_ID = "IAC-GRAPH-001"
MALFORMED_DECLARATION_RULE_ID = "IAC-GRAPH-002"
DUPLICATE_ADDRESS_RULE_ID = "IAC-GRAPH-003"
STALE_SUPPRESSION_RULE_ID = "IAC-SUPPRESS-001"

EXIT_SUCCESS = 0
EXIT_INVALID_INPUT = 2
EXIT_GATE_FAIL = 3
EXIT_CONFIG_ERROR = 6
EXIT_CANCELLED = 130

__all__ = [
    "TOOL_NAME",
    "SCAN_VERSION",
    "REPORT_SCHEMA_VERSION",
    "DEFAULT_SEVERITY_THRESHOLD",
    "DEFAULT_ENTROPY_THRESHOLD",
    "DEFAULT_ENTROPY_MIN_LENGTH",
    "DANGLING_REFERENCE_RULE_ID",
    "MALFORMED_DECLARATION_RULE_ID",
    "DUPLICATE_ADDRESS_RULE_ID",
    "STALE_SUPPRESSION_RULE_ID",
    "EXIT_SUCCESS",
    "EXIT_INVALID_INPUT",
    "EXIT_GATE_FAIL",
    "EXIT_CONFIG_ERROR",
    "EXIT_CANCELLED",
]
