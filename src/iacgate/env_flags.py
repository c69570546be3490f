"""Typed readers for ``IACGATE_*`` environment variables.

Blank values count as unset. The numeric readers raise
:class:`~iacgate.errors.ConfigurationError` on values they cannot parse.
"""

from __future__ import annotations

import os
from typing import Optional

from .errors import ConfigurationError

_TRUTHY = {"1", "true", "yes", "on"}
_FALSEY = {"0", "false", "no", "off"}


def _flag(value: Optional[str]) -> Optional[bool]:
    if value is None:
        return None
    normalized = value.strip().lower()
    if normalized in _TRUTHY:
        return True
    if normalized in _FALSEY:
        return False
    return None


def env_truthy(value: Optional[str]) -> bool:
    return _flag(value) is True


def env_falsey(value: Optional[str]) -> bool:
    return _flag(value) is False


def env_override(name: str) -> Optional[str]:
    """Stripped value of ``name``, or None when unset or blank."""

    value = (os.getenv(name) or "").strip()
    return value or None


def _env_number(name: str, kind, label: str):
    value = env_override(name)
    if value is None:
        return None
    try:
        return kind(value)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be {label}, got {value!r}") from exc


def env_int(name: str) -> Optional[int]:
    return _env_number(name, int, "an integer")


def env_float(name: str) -> Optional[float]:
    return _env_number(name, float, "a number")


def secrets_disabled() -> bool:
    """True when the secret scanner is switched off.

    ``IACGATE_DISABLE_SECRETS`` wins over ``IACGATE_ENABLE_SECRETS``; with
    neither set the scanner runs.
    """

    disable = _flag(env_override("IACGATE_DISABLE_SECRETS"))
    if disable is not None:
        return disable
    enable = _flag(env_override("IACGATE_ENABLE_SECRETS"))
    if enable is not None:
        return not enable
    return False
