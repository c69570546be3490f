"""Rule base class and attribute helpers for IaCGate policies."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, FrozenSet, Iterable, List, Optional, Union

from ..model import (
    AttributeValue,
    Finding,
    ListValue,
    MapValue,
    ResourceNode,
    Scalar,
    Severity,
    UnresolvedRef,
)

if TYPE_CHECKING:
    from ..graph import ResourceGraph

_TRUE_STRINGS = {"true", "yes", "on", "1", "enabled"}
_FALSE_STRINGS = {"false", "no", "off", "0", "disabled"}

Container = Union[ResourceNode, MapValue]


class RuleContext:
    """Read-only view handed to rules: the whole graph plus lookup helpers."""

    def __init__(self, graph: "ResourceGraph") -> None:
        self.graph = graph

    def referenced(self, node: ResourceNode, resource_type: Optional[str] = None) -> List[ResourceNode]:
        return self.graph.referenced_nodes(node.address, resource_type)

    def referencing(self, node: ResourceNode, resource_type: Optional[str] = None) -> List[ResourceNode]:
        return self.graph.referencing_nodes(node.address, resource_type)


class Rule:
    """Minimal rule abstraction loaded by the engine.

    ``resource_types`` is the applicability filter: the engine only offers a
    rule the nodes whose type is listed. ``applies`` may narrow it further.
    """

    id = "UNSET"
    title = ""
    severity = Severity.LOW
    resource_types: FrozenSet[str] = frozenset()

    @classmethod
    def applies(cls, node: ResourceNode, context: RuleContext) -> bool:
        return True

    @classmethod
    def evaluate(cls, node: ResourceNode, context: RuleContext) -> Iterable[Finding]:
        return []

    @classmethod
    def finding(cls, node: ResourceNode, message: str, severity: Optional[Severity] = None) -> Finding:
        return Finding(
            rule_id=cls.id,
            severity=severity if severity is not None else cls.severity,
            address=node.address,
            message=message,
            location=node.location,
            category="policy",
            title=cls.title,
        )


def attr(container: Container, name: str) -> Optional[AttributeValue]:
    if isinstance(container, ResourceNode):
        return container.attribute(name)
    return container.get(name)


def first_attr(container: Container, *names: str) -> Optional[AttributeValue]:
    for name in names:
        value = attr(container, name)
        if value is not None and value != Scalar(None):
            return value
    return None


def scalar(value: Optional[AttributeValue]) -> Any:
    """Return the plain value of a scalar; None for absent or unresolved values.

    Raises TypeError when a list or block sits where a scalar is expected.
    """

    if value is None or isinstance(value, UnresolvedRef):
        return None
    if isinstance(value, Scalar):
        return value.value
    raise TypeError(f"expected a scalar attribute, got {type(value).__name__}")


def as_bool(value: Optional[AttributeValue]) -> Optional[bool]:
    raw = scalar(value)
    if raw is None:
        return None
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str):
        lowered = raw.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
        return None
    if isinstance(raw, (int, float)):
        return bool(raw)
    return None


def as_str(value: Optional[AttributeValue]) -> Optional[str]:
    raw = scalar(value)
    if raw is None:
        return None
    return str(raw)


def as_str_list(value: Optional[AttributeValue]) -> List[str]:
    if value is None or isinstance(value, UnresolvedRef):
        return []
    if isinstance(value, Scalar):
        return [] if value.value is None else [str(value.value)]
    if isinstance(value, ListValue):
        return [str(item.value) for item in value if isinstance(item, Scalar) and item.value is not None]
    raise TypeError(f"expected a list attribute, got {type(value).__name__}")


def blocks(value: Optional[AttributeValue]) -> List[MapValue]:
    """Nested blocks appear as a map or as a list of maps depending on the source."""

    if value is None or isinstance(value, UnresolvedRef):
        return []
    if isinstance(value, Scalar):
        if value.value is None:
            return []
        raise TypeError(f"expected a nested block, got scalar {value.value!r}")
    if isinstance(value, MapValue):
        return [value]
    return [item for item in value if isinstance(item, MapValue)]


def block(value: Optional[AttributeValue]) -> Optional[MapValue]:
    found = blocks(value)
    return found[0] if found else None
