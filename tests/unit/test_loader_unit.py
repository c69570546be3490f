import json

import pytest

from iacgate.errors import MalformedInputError
from iacgate.graph import build_graph
from iacgate.loader import (
    declarations_from_plan,
    is_terraform_plan,
    load_declarations,
    parse_declarations_text,
    read_suppression_text,
)
from iacgate.model import Scalar
from tests.helpers.plan_helpers import declaration, write_plan


def test_load_json_list(tmp_path):
    path = write_plan(tmp_path, [declaration("aws_s3_bucket", "logs", {"acl": "private"})])
    assert load_declarations(path) == [{"type": "aws_s3_bucket", "name": "logs", "attributes": {"acl": "private"}}]


def test_load_json_document_with_resources(tmp_path):
    path = write_plan(tmp_path, {"resources": [declaration("aws_s3_bucket", "logs")]})
    assert [entry["name"] for entry in load_declarations(path)] == ["logs"]


def test_load_yaml(fixtures_dir):
    entries = load_declarations(fixtures_dir / "declarations_clean.yaml")
    assert [entry["type"] for entry in entries] == [
        "azurerm_resource_group",
        "azurerm_storage_account",
        "azurerm_key_vault",
    ]
    assert entries[1]["attributes"]["allow_nested_items_to_be_public"] is False


def test_load_terraform_plan(fixtures_dir):
    entries = load_declarations(fixtures_dir / "tfplan_azure.json")
    by_name = {(tuple(entry["module"]), entry["type"], entry["name"]): entry for entry in entries}

    assert len(entries) == 5
    storage = by_name[((), "azurerm_storage_account", "logs")]
    assert storage["attributes"]["allow_nested_items_to_be_public"] is True
    assert storage["references"] == ["azurerm_resource_group.main", "azurerm_resource_group.main.name"]
    association = by_name[(("network",), "azurerm_subnet_network_security_group_association", "web")]
    assert "azurerm_network_security_group.web" in association["references"]
    assert association["depends_on"] == ["azurerm_subnet.web"]
    assert association["source"]["file"].endswith("tfplan_azure.json")


def test_plan_detection():
    assert is_terraform_plan({"planned_values": {}})
    assert is_terraform_plan({"format_version": "1.2", "terraform_version": "1.7.0"})
    assert not is_terraform_plan({"resources": []})


def test_plan_keeps_instance_index():
    plan = {
        "planned_values": {
            "root_module": {
                "resources": [
                    {"type": "aws_instance", "name": "web", "index": 0, "values": {"ami": "ami-123"}},
                    {"type": "aws_instance", "name": "web", "index": 1, "values": {"ami": "ami-123"}},
                ],
                "child_modules": [
                    {
                        "address": 'module.app["blue"]',
                        "resources": [{"type": "aws_s3_bucket", "name": "b", "values": None}],
                    }
                ],
            }
        }
    }
    entries = declarations_from_plan(plan)

    assert [entry.get("index") for entry in entries] == [0, 1, None]
    assert entries[2]["module"] == ["app"]
    assert entries[2]["attributes"] == {}


def test_plan_literals_are_not_read_as_references():
    plan = {
        "format_version": "1.2",
        "terraform_version": "1.7.0",
        "planned_values": {
            "root_module": {
                "resources": [
                    {
                        "address": "local_file.kubeconfig",
                        "mode": "managed",
                        "type": "local_file",
                        "name": "kubeconfig",
                        "values": {"filename": "kube_config.yaml", "owner": "john_doe.smith"},
                    }
                ]
            }
        },
    }
    entries = declarations_from_plan(plan)
    graph = build_graph(entries)
    node = graph.get("local_file.kubeconfig")

    assert entries[0]["resolved_values"] is True
    assert node.attribute("filename") == Scalar("kube_config.yaml")
    assert node.attribute("owner") == Scalar("john_doe.smith")
    assert graph.warnings == ()


def test_plan_resource_with_unusable_mode_becomes_a_warning():
    plan = {
        "planned_values": {
            "root_module": {
                "resources": [
                    {"type": "aws_s3_bucket", "name": "logs", "mode": ["managed"], "values": {}},
                    {"type": "aws_s3_bucket", "name": "ok", "values": {}},
                ]
            }
        }
    }
    graph = build_graph(declarations_from_plan(plan))

    assert list(graph.nodes) == ["aws_s3_bucket.ok"]
    assert [warning.kind for warning in graph.warnings] == ["malformed-declaration"]


@pytest.mark.parametrize(
    "text, fmt",
    [
        ("", "json"),
        ("{not json", "json"),
        ('"just a string"', "json"),
        ('{"items": []}', "json"),
        ("resources: [\n", "yaml"),
        ('{"planned_values": []}', "json"),
        ('{"planned_values": {"root_module": 3}}', "json"),
    ],
)
def test_malformed_documents_raise(text, fmt):
    with pytest.raises(MalformedInputError) as excinfo:
        parse_declarations_text(text, source="input.txt", fmt=fmt)
    assert str(excinfo.value).startswith("input.txt: ")


def test_missing_file_raises(tmp_path):
    with pytest.raises(MalformedInputError, match="file not found"):
        load_declarations(tmp_path / "missing.json")


def test_non_utf8_file_raises(tmp_path):
    path = tmp_path / "latin.json"
    path.write_bytes(json.dumps([]).encode("utf-8") + b"\xff\xfe")
    with pytest.raises(MalformedInputError):
        load_declarations(path)


def test_read_suppression_text(tmp_path):
    assert read_suppression_text(None) is None
    path = tmp_path / "ignore.txt"
    path.write_text("IAC-AZ-001\n", encoding="utf-8")
    assert read_suppression_text(path) == "IAC-AZ-001\n"
    with pytest.raises(MalformedInputError):
        read_suppression_text(tmp_path / "absent.txt")
