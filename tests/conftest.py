"""Global pytest configuration for IaCGate tests."""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

_REPO_ROOT = Path(__file__).resolve().parents[1]
_SRC_ROOT = _REPO_ROOT / "src"

# Make the repository root (for `tests.helpers`) and src/ (for `iacgate`)
# importable without an editable install.
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))
if str(_SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(_SRC_ROOT))

FIXTURES = _REPO_ROOT / "tests" / "fixtures"

_TRACKED_ENV = (
    "IACGATE_SEVERITY_THRESHOLD",
    "IACGATE_SECRET_THRESHOLD",
    "IACGATE_WORKERS",
    "IACGATE_ENTROPY_THRESHOLD",
    "IACGATE_ENTROPY_MIN_LENGTH",
    "IACGATE_DISABLE_SECRETS",
    "IACGATE_ENABLE_SECRETS",
    "IACGATE_CLOCK_EPOCH",
    "IACGATE_LOG_LEVEL",
    "SOURCE_DATE_EPOCH",
)


@pytest.fixture(autouse=True)
def _deterministic_environment(monkeypatch):
    """Pin the clock and drop any IACGATE_* flags leaking in from the shell."""

    for name in _TRACKED_ENV:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("IACGATE_CLOCK_ISO", "2025-06-15T00:00:00Z")
    yield


@pytest.fixture(scope="session")
def fixtures_dir() -> Path:
    return FIXTURES


@pytest.fixture
def cluster_declarations():
    """A small AKS deployment resembling the tutorial setup."""

    from tests.helpers.plan_helpers import declaration

    return [
        declaration("azurerm_resource_group", "rg", {"name": "rg-aks", "location": "westeurope"}),
        declaration(
            "azurerm_virtual_network",
            "vnet",
            {
                "resource_group_name": "azurerm_resource_group.rg.name",
                "address_space": ["10.0.0.0/8"],
            },
        ),
        declaration(
            "azurerm_subnet",
            "aks",
            {
                "virtual_network_name": "${azurerm_virtual_network.vnet.name}",
                "address_prefixes": ["10.240.0.0/16"],
            },
        ),
        declaration(
            "azurerm_network_security_group",
            "open",
            {
                "security_rule": [
                    {
                        "name": "allow-everything",
                        "direction": "Inbound",
                        "access": "Allow",
                        "protocol": "*",
                        "source_address_prefix": "*",
                        "destination_port_range": "*",
                    }
                ]
            },
        ),
        declaration(
            "azurerm_subnet_network_security_group_association",
            "aks",
            {
                "subnet_id": "azurerm_subnet.aks.id",
                "network_security_group_id": "azurerm_network_security_group.open.id",
            },
        ),
        declaration(
            "azurerm_kubernetes_cluster",
            "aks",
            {
                "role_based_access_control_enabled": True,
                "private_cluster_enabled": False,
                "network_profile": {"network_plugin": "azure", "network_policy": "cilium"},
                "default_node_pool": {"vnet_subnet_id": "azurerm_subnet.aks.id"},
            },
            depends_on=["azurerm_subnet_network_security_group_association.aks"],
        ),
    ]
