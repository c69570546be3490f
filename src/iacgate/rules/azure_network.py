"""Network security group rules, including graph-aware association checks."""

from __future__ import annotations

from typing import List, Optional

from ..model import MapValue, ResourceNode, Severity
from . import register
from .base import Container, Rule, RuleContext, as_str, as_str_list, attr, blocks, first_attr

NSG_TYPE = "azurerm_network_security_group"
NSG_RULE_TYPE = "azurerm_network_security_rule"
ASSOCIATION_TYPES = frozenset(
    {
        "azurerm_subnet_network_security_group_association",
        "azurerm_network_interface_security_group_association",
    }
)

ANY_SOURCES = {"*", "0.0.0.0/0", "0.0.0.0", "internet", "any", "::/0"}
ANY_PORTS = {"*", "0-65535", "any"}


def _is_any_source(container: Container) -> bool:
    prefixes = as_str_list(first_attr(container, "source_address_prefix"))
    prefixes += as_str_list(attr(container, "source_address_prefixes"))
    return any(prefix.strip().lower() in ANY_SOURCES for prefix in prefixes)


def _is_any_port(container: Container) -> bool:
    ports = as_str_list(first_attr(container, "destination_port_range"))
    ports += as_str_list(attr(container, "destination_port_ranges"))
    return any(port.strip().lower() in ANY_PORTS for port in ports)


def is_allow_all_inbound(container: Container) -> bool:
    direction = (as_str(attr(container, "direction")) or "").lower()
    access = (as_str(attr(container, "access")) or "").lower()
    return direction == "inbound" and access == "allow" and _is_any_source(container) and _is_any_port(container)


def permissive_rule_name(nsg: ResourceNode, context: RuleContext) -> Optional[str]:
    """Name of the first allow-all inbound rule attached to the NSG, inline or standalone."""

    inline: List[MapValue] = blocks(nsg.attribute("security_rule"))
    for rule in inline:
        if is_allow_all_inbound(rule):
            return as_str(attr(rule, "name")) or "<unnamed>"
    for rule_node in context.referencing(nsg, NSG_RULE_TYPE):
        if is_allow_all_inbound(rule_node):
            return as_str(rule_node.attribute("name")) or rule_node.name
    return None


@register
class AllowAllInboundRule(Rule):
    """Inbound Allow from any source to any port."""

    id = "IAC-AZ-010"
    title = "Security rule allows all inbound traffic"
    severity = Severity.HIGH
    resource_types = frozenset({NSG_TYPE, NSG_RULE_TYPE})

    @classmethod
    def evaluate(cls, node, context):
        if node.resource_type == NSG_RULE_TYPE:
            if is_allow_all_inbound(node):
                return [cls.finding(node, f"{node.address} allows inbound traffic from any source to any port")]
            return []
        findings = []
        for rule in blocks(node.attribute("security_rule")):
            if is_allow_all_inbound(rule):
                name = as_str(attr(rule, "name")) or "<unnamed>"
                findings.append(
                    cls.finding(node, f"{node.address} security_rule '{name}' allows all inbound traffic")
                )
                break
        return findings


@register
class PermissiveNsgAssociationRule(Rule):
    """Subnets and NICs bound to an NSG that admits all inbound traffic."""

    id = "IAC-AZ-011"
    title = "Network attached to an allow-all security group"
    severity = Severity.HIGH
    resource_types = ASSOCIATION_TYPES

    @classmethod
    def evaluate(cls, node, context):
        findings = []
        for nsg in context.referenced(node, NSG_TYPE):
            rule_name = permissive_rule_name(nsg, context)
            if rule_name is None:
                continue
            findings.append(
                cls.finding(
                    node,
                    f"{node.address} attaches {nsg.address}, whose rule '{rule_name}' allows all inbound traffic",
                )
            )
            break
        return findings
