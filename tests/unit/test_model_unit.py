from datetime import date

import pytest

from iacgate.model import (
    SEVERITY_ORDER,
    ListValue,
    MapValue,
    ResourceNode,
    Scalar,
    Severity,
    SuppressionEntry,
    UnresolvedRef,
    format_address,
    to_attribute_value,
)


@pytest.mark.parametrize(
    "kwargs, expected",
    [
        ({}, "aws_s3_bucket.logs"),
        ({"module_path": ("app", "storage")}, "module.app.module.storage.aws_s3_bucket.logs"),
        ({"mode": "data"}, "data.aws_s3_bucket.logs"),
        ({"index": 2}, "aws_s3_bucket.logs[2]"),
        ({"index": "eu"}, 'aws_s3_bucket.logs["eu"]'),
    ],
)
def test_format_address(kwargs, expected):
    assert format_address("aws_s3_bucket", "logs", **kwargs) == expected


def test_severity_ordering():
    assert Severity.CRITICAL > Severity.HIGH > Severity.MEDIUM > Severity.LOW > Severity.INFO
    assert SEVERITY_ORDER[0] is Severity.CRITICAL
    assert Severity.MEDIUM.label == "medium"


def test_to_attribute_value_builds_closed_variant():
    value = to_attribute_value({"tags": {"env": "prod"}, "ports": [80, 443], "enabled": True, "none": None})

    assert isinstance(value, MapValue)
    assert value.keys() == ("tags", "ports", "enabled", "none")
    assert value.get("ports") == ListValue((Scalar(80), Scalar(443)))
    assert value.get("missing") is None
    assert value.to_python() == {"tags": {"env": "prod"}, "ports": [80, 443], "enabled": True, "none": None}
    assert isinstance(to_attribute_value(object()), UnresolvedRef)


def test_resource_node_attribute_lookup():
    node = ResourceNode("aws_s3_bucket", "logs", module_path=("app",), attributes=(("acl", Scalar("private")),))

    assert node.address == "module.app.aws_s3_bucket.logs"
    assert node.module_address == "module.app"
    assert node.attribute("acl") == Scalar("private")
    assert node.attribute("policy") is None
    assert node.attribute_names() == ("acl",)


def test_suppression_expiry_is_inclusive():
    entry = SuppressionEntry("IAC-AZ-001", expires=date(2025, 6, 15))
    assert not entry.is_expired(date(2025, 6, 15))
    assert entry.is_expired(date(2025, 6, 16))
    assert not SuppressionEntry("IAC-AZ-001").is_expired(date(2999, 1, 1))
