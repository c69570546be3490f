"""Scan options resolved from explicit arguments and IACGATE_* environment flags."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Optional

from .constants import (
    DEFAULT_ENTROPY_MIN_LENGTH,
    DEFAULT_ENTROPY_THRESHOLD,
    DEFAULT_SEVERITY_THRESHOLD,
)
from .env_flags import env_float, env_int, env_override, secrets_disabled
from .errors import ConfigurationError
from .model import Severity
from .time_utils import deterministic_today


def default_workers() -> int:
    return max(os.cpu_count() or 1, 1)


@dataclass(frozen=True)
class ScanOptions:
    threshold: Severity = Severity.HIGH
    secret_threshold: Optional[Severity] = None
    workers: int = field(default_factory=default_workers)
    entropy_threshold: float = DEFAULT_ENTROPY_THRESHOLD
    entropy_min_length: int = DEFAULT_ENTROPY_MIN_LENGTH
    scan_secrets: bool = True
    today: Optional[date] = None

    def __post_init__(self) -> None:
        if self.workers < 1:
            raise ConfigurationError(f"workers must be at least 1, got {self.workers}")
        if self.entropy_threshold <= 0:
            raise ConfigurationError("entropy threshold must be positive")
        if self.entropy_min_length < 1:
            raise ConfigurationError("entropy minimum length must be at least 1")

    @property
    def effective_secret_threshold(self) -> Severity:
        return self.secret_threshold if self.secret_threshold is not None else self.threshold

    @property
    def effective_today(self) -> date:
        return self.today if self.today is not None else deterministic_today()

    @classmethod
    def from_env(cls, **overrides: object) -> "ScanOptions":
        """Build options from IACGATE_* flags; non-None keyword overrides win."""

        threshold_value = env_override("IACGATE_SEVERITY_THRESHOLD") or DEFAULT_SEVERITY_THRESHOLD
        secret_value = env_override("IACGATE_SECRET_THRESHOLD")
        workers = env_int("IACGATE_WORKERS")
        entropy_threshold = env_float("IACGATE_ENTROPY_THRESHOLD")
        entropy_min_length = env_int("IACGATE_ENTROPY_MIN_LENGTH")

        options = cls(
            threshold=Severity.parse(threshold_value),
            secret_threshold=Severity.parse(secret_value) if secret_value else None,
            workers=workers if workers is not None else default_workers(),
            entropy_threshold=entropy_threshold if entropy_threshold is not None else DEFAULT_ENTROPY_THRESHOLD,
            entropy_min_length=entropy_min_length if entropy_min_length is not None else DEFAULT_ENTROPY_MIN_LENGTH,
            scan_secrets=not secrets_disabled(),
        )
        explicit = {key: _coerce(key, value) for key, value in overrides.items() if value is not None}
        return replace(options, **explicit) if explicit else options


def _coerce(key: str, value: object) -> object:
    if key in {"threshold", "secret_threshold"}:
        return Severity.parse(value)  # type: ignore[arg-type]
    return value

