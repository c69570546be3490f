"""Key Vault protection rules."""

from __future__ import annotations

from ..model import Severity
from . import register
from .base import Rule, as_bool, as_str, attr, block

KEY_VAULT_TYPES = frozenset({"azurerm_key_vault"})


@register
class KeyVaultPurgeProtectionRule(Rule):
    id = "IAC-AZ-030"
    title = "Key Vault purge protection disabled"
    severity = Severity.MEDIUM
    resource_types = KEY_VAULT_TYPES

    @classmethod
    def evaluate(cls, node, context):
        if as_bool(node.attribute("purge_protection_enabled")) is True:
            return []
        return [cls.finding(node, f"{node.address} can be purged before its retention period ends")]


@register
class KeyVaultNetworkDefaultAllowRule(Rule):
    """network_acls defaults to Allow when the block is omitted."""

    id = "IAC-AZ-031"
    title = "Key Vault network ACL allows all networks"
    severity = Severity.MEDIUM
    resource_types = KEY_VAULT_TYPES

    @classmethod
    def evaluate(cls, node, context):
        acls = block(node.attribute("network_acls"))
        if acls is None:
            return [cls.finding(node, f"{node.address} has no network_acls block; every network may connect")]
        action = as_str(attr(acls, "default_action"))
        if action is not None and action.lower() == "allow":
            return [cls.finding(node, f"{node.address} network_acls default_action is Allow")]
        return []
