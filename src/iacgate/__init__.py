"""IaCGate: rule-based policy and secret gate for Infrastructure-as-Code."""

from __future__ import annotations

from .config import ScanOptions
from .constants import SCAN_VERSION as __version__
from .engine import CancellationToken
from .errors import ConfigurationError, MalformedInputError, ScanCancelledError, SuppressionFileError
from .model import Finding, GateDecision, SecretMatch, Severity, SuppressionEntry
from .scan import ScanReport, run_scan, scan_paths

__all__ = [
    "__version__",
    "CancellationToken",
    "ConfigurationError",
    "Finding",
    "GateDecision",
    "MalformedInputError",
    "ScanCancelledError",
    "ScanOptions",
    "ScanReport",
    "SecretMatch",
    "Severity",
    "SuppressionEntry",
    "SuppressionFileError",
    "run_scan",
    "scan_paths",
]
