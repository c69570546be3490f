"""Rule registry for the IaCGate policy engine."""

from __future__ import annotations

import inspect
from pathlib import Path
from typing import Any, Dict, List, Type

from .base import Rule, RuleContext

_registry: Dict[str, Type[Rule]] = {}


def register(rule_cls: Type[Rule]) -> Type[Rule]:
    if rule_cls.id in _registry:
        raise ValueError(f"Duplicate rule id registered: {rule_cls.id}")
    if not rule_cls.resource_types:
        raise TypeError(f"Rule {rule_cls.__name__} must declare resource_types")
    _registry[rule_cls.id] = rule_cls
    return rule_cls


def get_all_rules() -> List[Type[Rule]]:
    """Return every registered rule class ordered by rule id."""

    return [_registry[rule_id] for rule_id in sorted(_registry)]


def get_rule(rule_id: str) -> Type[Rule]:
    return _registry[rule_id]


def build_rule_manifest() -> List[Dict[str, Any]]:
    """Return deterministic manifest entries for every registered rule."""

    manifest: List[Dict[str, Any]] = []
    for rule_cls in get_all_rules():
        manifest.append(
            {
                "id": rule_cls.id,
                "title": rule_cls.title,
                "severity": rule_cls.severity.label,
                "resource_types": sorted(rule_cls.resource_types),
                "python_class": f"{rule_cls.__module__}.{rule_cls.__name__}",
                "file_path": _resolve_rule_path(rule_cls),
                "description": (rule_cls.__doc__ or "").strip(),
            }
        )
    return manifest


def _resolve_rule_path(rule_cls: Type[Rule]) -> str:
    try:
        file_path = Path(inspect.getfile(rule_cls)).resolve()
    except (TypeError, OSError):
        return ""
    return file_path.name


__all__ = ["Rule", "RuleContext", "register", "get_all_rules", "get_rule", "build_rule_manifest"]


# Built-in rules register with the decorator at import time.
from . import aws as _aws  # noqa: F401,E402
from . import azure_aks as _azure_aks  # noqa: F401,E402
from . import azure_keyvault as _azure_keyvault  # noqa: F401,E402
from . import azure_network as _azure_network  # noqa: F401,E402
from . import azure_registry as _azure_registry  # noqa: F401,E402
from . import azure_storage as _azure_storage  # noqa: F401,E402
