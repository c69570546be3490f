"""AKS cluster hardening rules."""

from __future__ import annotations

from ..model import Severity, UnresolvedRef
from . import register
from .base import Rule, as_bool, as_str, as_str_list, attr, block, first_attr

AKS_TYPES = frozenset({"azurerm_kubernetes_cluster"})


@register
class AksRbacDisabledRule(Rule):
    id = "IAC-AZ-020"
    title = "AKS cluster has Kubernetes RBAC disabled"
    severity = Severity.HIGH
    resource_types = AKS_TYPES

    @classmethod
    def evaluate(cls, node, context):
        enabled = as_bool(node.attribute("role_based_access_control_enabled"))
        if enabled is None:
            legacy = block(node.attribute("role_based_access_control"))
            if legacy is not None:
                enabled = as_bool(attr(legacy, "enabled"))
        if enabled is False:
            return [cls.finding(node, f"{node.address} disables Kubernetes RBAC")]
        return []


@register
class AksNetworkPolicyRule(Rule):
    """Without a network policy engine every pod can reach every other pod.

    The provider default is no policy, so an absent setting is reported too.
    """

    id = "IAC-AZ-021"
    title = "AKS cluster has no network policy"
    severity = Severity.MEDIUM
    resource_types = AKS_TYPES

    @classmethod
    def evaluate(cls, node, context):
        profile = block(node.attribute("network_profile"))
        if profile is not None:
            policy_value = attr(profile, "network_policy")
            if isinstance(policy_value, UnresolvedRef):
                return []
            data_plane = as_str(attr(profile, "network_data_plane")) or ""
            if as_str(policy_value) or data_plane.lower() == "cilium":
                return []
        return [cls.finding(node, f"{node.address} runs without a network policy (calico, azure or cilium)")]


@register
class AksPublicApiServerRule(Rule):
    id = "IAC-AZ-022"
    title = "AKS API server is public without authorized IP ranges"
    severity = Severity.MEDIUM
    resource_types = AKS_TYPES

    @classmethod
    def evaluate(cls, node, context):
        if as_bool(node.attribute("private_cluster_enabled")) is True:
            return []
        ranges = as_str_list(node.attribute("api_server_authorized_ip_ranges"))
        profile = block(node.attribute("api_server_access_profile"))
        if profile is not None:
            ranges += as_str_list(first_attr(profile, "authorized_ip_ranges"))
        if ranges:
            return []
        return [cls.finding(node, f"{node.address} exposes a public API server to every address")]
