"""Exception taxonomy for IaCGate scans."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

PathLike = Union[str, Path]


class IacGateError(RuntimeError):
    """Base class for errors that end a scan run."""


class MalformedInputError(IacGateError):
    """Raised when input cannot be turned into resource declarations at all."""

    def __init__(self, message: str, *, source: Optional[PathLike] = None) -> None:
        self.source = str(source) if source is not None else None
        if self.source:
            message = f"{self.source}: {message}"
        super().__init__(message)


class SuppressionFileError(MalformedInputError):
    """Raised when a suppression file line cannot be parsed."""

    def __init__(self, message: str, *, source: Optional[PathLike] = None, line: Optional[int] = None) -> None:
        self.line = line
        if line is not None:
            message = f"line {line}: {message}"
        super().__init__(message, source=source)


class ConfigurationError(IacGateError, ValueError):
    """Raised when scan options or environment flags hold invalid values."""


class ScanCancelledError(IacGateError):
    """Raised when a scan is cancelled; partial results are discarded."""


class EngineError(Exception):
    """Wraps a failure raised by a single rule while evaluating a single node.

    Never escapes the rule engine: it is folded into an INFO finding.
    """

    def __init__(self, rule_id: str, address: str, cause: BaseException) -> None:
        self.rule_id = rule_id
        self.address = address
        self.cause = cause
        super().__init__(f"rule {rule_id} failed on {address}: {type(cause).__name__}: {cause}")


__all__ = [
    "IacGateError",
    "MalformedInputError",
    "SuppressionFileError",
    "ConfigurationError",
    "ScanCancelledError",
    "EngineError",
]
