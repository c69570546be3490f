"""Container registry rules."""

from __future__ import annotations

from ..model import Severity
from . import register
from .base import Rule, as_bool, first_attr


@register
class RegistryAdminUserRule(Rule):
    """The shared admin account bypasses Entra ID identities and RBAC."""

    id = "IAC-AZ-040"
    title = "Container registry admin user enabled"
    severity = Severity.MEDIUM
    resource_types = frozenset({"azurerm_container_registry"})

    @classmethod
    def evaluate(cls, node, context):
        if as_bool(first_attr(node, "admin_enabled", "adminUserEnabled")) is True:
            return [cls.finding(node, f"{node.address} enables the registry admin user")]
        return []
