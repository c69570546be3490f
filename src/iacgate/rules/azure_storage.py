"""Storage account exposure rules (IAC-AZ-001..003)."""

from __future__ import annotations

from ..model import Severity
from . import register
from .base import Rule, as_bool, as_str, first_attr

STORAGE_TYPES = frozenset({"azurerm_storage_account", "Microsoft.Storage/storageAccounts"})

_PUBLIC_ACCESS_ATTRIBUTES = (
    "allow_nested_items_to_be_public",
    "allow_blob_public_access",
    "allowBlobPublicAccess",
)
_HTTPS_ONLY_ATTRIBUTES = (
    "https_traffic_only_enabled",
    "enable_https_traffic_only",
    "supportsHttpsTrafficOnly",
)
_WEAK_TLS = {"TLS1_0", "TLS1_1"}


@register
class StoragePublicBlobAccessRule(Rule):
    """Blob containers in the account may be opened to anonymous readers."""

    id = "IAC-AZ-001"
    title = "Storage account allows public blob access"
    severity = Severity.HIGH
    resource_types = STORAGE_TYPES

    @classmethod
    def evaluate(cls, node, context):
        value = first_attr(node, *_PUBLIC_ACCESS_ATTRIBUTES)
        if as_bool(value) is True:
            return [cls.finding(node, f"{node.address} allows anonymous public access to blob containers")]
        return []


@register
class StorageMinimumTlsRule(Rule):
    id = "IAC-AZ-002"
    title = "Storage account accepts TLS below 1.2"
    severity = Severity.MEDIUM
    resource_types = STORAGE_TYPES

    @classmethod
    def evaluate(cls, node, context):
        version = as_str(first_attr(node, "min_tls_version", "minimumTlsVersion"))
        if version in _WEAK_TLS:
            return [cls.finding(node, f"{node.address} sets min_tls_version={version}; require TLS1_2")]
        return []


@register
class StorageHttpsOnlyRule(Rule):
    id = "IAC-AZ-003"
    title = "Storage account permits plain HTTP"
    severity = Severity.HIGH
    resource_types = STORAGE_TYPES

    @classmethod
    def evaluate(cls, node, context):
        if as_bool(first_attr(node, *_HTTPS_ONLY_ATTRIBUTES)) is False:
            return [cls.finding(node, f"{node.address} disables HTTPS-only traffic")]
        return []
