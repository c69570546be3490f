"""Build an immutable resource graph from normalized IaC declarations."""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from ..errors import MalformedInputError
from ..model import (
    AttributeValue,
    BuildWarning,
    ListValue,
    MapValue,
    ReferenceEdge,
    ResourceNode,
    Scalar,
    SourceLocation,
    UnresolvedRef,
    to_attribute_value,
)
from .references import Reference, extract_references, parse_traversal

logger = logging.getLogger(__name__)

EDGE_DEPENDS_ON = "depends_on"
EDGE_REFERENCE = "reference"


class ResourceGraph:
    """Address-indexed resource nodes plus the reference edges between them."""

    def __init__(
        self,
        nodes: Mapping[str, ResourceNode],
        edges: Sequence[ReferenceEdge],
        modules: Iterable[str],
        warnings: Sequence[BuildWarning],
    ) -> None:
        self._nodes = MappingProxyType(dict(nodes))
        self._edges = tuple(edges)
        self._modules = frozenset(modules)
        self._warnings = tuple(warnings)
        outgoing: Dict[str, List[ReferenceEdge]] = {}
        incoming: Dict[str, List[ReferenceEdge]] = {}
        by_type: Dict[str, List[ResourceNode]] = {}
        for edge in self._edges:
            outgoing.setdefault(edge.from_address, []).append(edge)
            incoming.setdefault(edge.to_address, []).append(edge)
        for node in self._nodes.values():
            by_type.setdefault(node.resource_type, []).append(node)
        self._outgoing = {key: tuple(value) for key, value in outgoing.items()}
        self._incoming = {key: tuple(value) for key, value in incoming.items()}
        self._by_type = {key: tuple(value) for key, value in by_type.items()}

    @property
    def nodes(self) -> Mapping[str, ResourceNode]:
        return self._nodes

    @property
    def edges(self) -> Tuple[ReferenceEdge, ...]:
        return self._edges

    @property
    def modules(self) -> frozenset:
        return self._modules

    @property
    def warnings(self) -> Tuple[BuildWarning, ...]:
        return self._warnings

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, address: object) -> bool:
        return address in self._nodes

    def get(self, address: str) -> Optional[ResourceNode]:
        return self._nodes.get(address)

    def nodes_of_type(self, resource_type: str) -> Tuple[ResourceNode, ...]:
        return self._by_type.get(resource_type, ())

    def outgoing(self, address: str) -> Tuple[ReferenceEdge, ...]:
        return self._outgoing.get(address, ())

    def incoming(self, address: str) -> Tuple[ReferenceEdge, ...]:
        return self._incoming.get(address, ())

    def nodes_in_module(self, module_address: str) -> Tuple[ResourceNode, ...]:
        prefix = module_address + "."
        return tuple(node for address, node in self._nodes.items() if address.startswith(prefix))

    def referenced_nodes(self, address: str, resource_type: Optional[str] = None) -> List[ResourceNode]:
        """Nodes the given node points at; module edges expand to the module's nodes."""

        found: Dict[str, ResourceNode] = {}
        for edge in self.outgoing(address):
            target = self._nodes.get(edge.to_address)
            candidates = (target,) if target is not None else self.nodes_in_module(edge.to_address)
            for node in candidates:
                if resource_type is None or node.resource_type == resource_type:
                    found.setdefault(node.address, node)
        return list(found.values())

    def referencing_nodes(self, address: str, resource_type: Optional[str] = None) -> List[ResourceNode]:
        found: Dict[str, ResourceNode] = {}
        for edge in self.incoming(address):
            node = self._nodes.get(edge.from_address)
            if node is None:
                continue
            if resource_type is None or node.resource_type == resource_type:
                found.setdefault(node.address, node)
        return list(found.values())

    def edge_set(self) -> Set[ReferenceEdge]:
        return set(self._edges)


class _PendingNode:
    __slots__ = ("node", "references", "depends_on")

    def __init__(self, node: ResourceNode, references: List[Reference], depends_on: List[Reference]) -> None:
        self.node = node
        self.references = references
        self.depends_on = depends_on


def build_graph(declarations: Any) -> ResourceGraph:
    """Create a :class:`ResourceGraph` from a list of declaration mappings.

    A single malformed declaration is skipped with a warning; only input that
    is not a sequence of declarations at all raises ``MalformedInputError``.
    """

    entries = _coerce_declarations(declarations)
    warnings: List[BuildWarning] = []
    pending: Dict[str, _PendingNode] = {}

    for position, entry in enumerate(entries):
        parsed = _parse_declaration(entry, position, warnings)
        if parsed is None:
            continue
        address = parsed.node.address
        if address in pending:
            warnings.append(
                BuildWarning(
                    kind="duplicate-address",
                    address=address,
                    message=f"Duplicate declaration for {address}; keeping the first one",
                    location=parsed.node.location,
                )
            )
            continue
        pending[address] = parsed

    nodes = {address: item.node for address, item in pending.items()}
    modules = _module_addresses(nodes.values())
    edges: Set[ReferenceEdge] = set()
    for address, item in pending.items():
        for kind, references in ((EDGE_REFERENCE, item.references), (EDGE_DEPENDS_ON, item.depends_on)):
            for reference in references:
                targets = _resolve(reference, nodes, modules)
                if not targets:
                    warnings.append(
                        BuildWarning(
                            kind="dangling-reference",
                            address=address,
                            message=f"{reference.expression} refers to {reference.target}, which is not declared",
                            location=item.node.location,
                        )
                    )
                    continue
                for target in targets:
                    if target != address:
                        edges.add(ReferenceEdge(address, target, kind))

    ordered_edges = sorted(edges, key=lambda edge: (edge.from_address, edge.to_address, edge.kind))
    for warning in warnings:
        logger.warning("graph build: %s (%s)", warning.message, warning.kind)
    logger.debug("built graph with %d nodes and %d edges", len(nodes), len(ordered_edges))
    return ResourceGraph(nodes, ordered_edges, modules, warnings)


def _coerce_declarations(declarations: Any) -> List[Any]:
    if isinstance(declarations, Mapping):
        resources = declarations.get("resources")
        if resources is None:
            raise MalformedInputError("declaration document has no 'resources' list")
        declarations = resources
    if isinstance(declarations, (str, bytes)) or not isinstance(declarations, (list, tuple)):
        raise MalformedInputError(
            f"expected a list of resource declarations, got {type(declarations).__name__}"
        )
    return list(declarations)


def _parse_declaration(entry: Any, position: int, warnings: List[BuildWarning]) -> Optional[_PendingNode]:
    label = f"declaration[{position}]"
    if not isinstance(entry, Mapping):
        warnings.append(_malformed(label, f"{label} is not a mapping"))
        return None

    location = _parse_location(entry)
    resource_type = entry.get("type")
    name = entry.get("name")
    if not isinstance(resource_type, str) or not resource_type or not isinstance(name, str) or not name:
        warnings.append(_malformed(label, f"{label} is missing a string type or name", location))
        return None

    module_path = _parse_module_path(entry.get("module"))
    if module_path is None:
        warnings.append(_malformed(f"{resource_type}.{name}", f"{label} has an invalid module path", location))
        return None

    mode = entry.get("mode") or "managed"
    if not isinstance(mode, str) or mode not in {"managed", "data"}:
        warnings.append(_malformed(f"{resource_type}.{name}", f"{label} has unknown mode {mode!r}", location))
        return None

    raw_attributes = entry.get("attributes")
    if raw_attributes is None:
        raw_attributes = {}
    if not isinstance(raw_attributes, Mapping):
        warnings.append(_malformed(f"{resource_type}.{name}", f"{label} attributes are not a mapping", location))
        return None

    index = entry.get("index")
    if index is not None and not isinstance(index, (str, int)):
        index = str(index)

    references: List[Reference] = []
    attributes: List[Tuple[str, AttributeValue]] = []
    # Plan values are already concrete; their references arrive separately.
    resolved = entry.get("resolved_values") is True
    for key, raw in raw_attributes.items():
        value = to_attribute_value(raw) if resolved else _convert(raw, module_path, references)
        attributes.append((str(key), value))

    for expression in _string_list(entry.get("references")):
        reference = parse_traversal(expression, module_path)
        if reference is not None and reference.target is not None:
            references.append(reference)

    depends_on: List[Reference] = []
    for expression in _string_list(entry.get("depends_on")):
        reference = parse_traversal(expression, module_path)
        if reference is not None and reference.target is not None:
            depends_on.append(reference)

    node = ResourceNode(
        resource_type=resource_type,
        name=name,
        module_path=module_path,
        mode=mode,
        index=index,
        attributes=tuple(attributes),
        location=location,
    )
    return _PendingNode(node, references, depends_on)


def _convert(raw: Any, module_path: Tuple[str, ...], references: List[Reference]) -> AttributeValue:
    if isinstance(raw, str):
        is_expression, found = extract_references(raw, module_path)
        if not is_expression:
            return Scalar(raw)
        resolvable = [reference for reference in found if reference.target is not None]
        references.extend(resolvable)
        return UnresolvedRef(
            expression=raw.strip(),
            targets=tuple(reference.target for reference in resolvable if reference.target),
        )
    if isinstance(raw, Mapping):
        return MapValue(tuple((str(key), _convert(value, module_path, references)) for key, value in raw.items()))
    if isinstance(raw, (list, tuple)):
        return ListValue(tuple(_convert(item, module_path, references) for item in raw))
    return to_attribute_value(raw)


def _resolve(reference: Reference, nodes: Mapping[str, ResourceNode], modules: Set[str]) -> List[str]:
    target = reference.target
    if target is None:
        return []
    if reference.is_module:
        return [target] if target in modules else []
    if target in nodes:
        return [target]
    if reference.has_index:
        return []
    prefix = target + "["
    return sorted(address for address in nodes if address.startswith(prefix))


def _module_addresses(nodes: Iterable[ResourceNode]) -> Set[str]:
    modules: Set[str] = set()
    for node in nodes:
        for depth in range(1, len(node.module_path) + 1):
            modules.add(".".join(f"module.{name}" for name in node.module_path[:depth]))
    return modules


def _parse_module_path(value: Any) -> Optional[Tuple[str, ...]]:
    if value is None or value == "" or value == "root":
        return ()
    if isinstance(value, (list, tuple)):
        if all(isinstance(item, str) and item for item in value):
            return tuple(value)
        return None
    if not isinstance(value, str):
        return None
    parts = value.split(".")
    if len(parts) % 2 != 0 or any(parts[i] != "module" or not parts[i + 1] for i in range(0, len(parts), 2)):
        return None
    return tuple(parts[i + 1] for i in range(0, len(parts), 2))


def _parse_location(entry: Mapping[str, Any]) -> SourceLocation:
    source = entry.get("source")
    if not isinstance(source, Mapping):
        source = entry
    file_value = source.get("file")
    start = source.get("start_line", source.get("line"))
    end = source.get("end_line", start)
    return SourceLocation(
        file=str(file_value) if file_value else "",
        start_line=start if isinstance(start, int) else None,
        end_line=end if isinstance(end, int) else None,
    )


def _string_list(value: Any) -> List[str]:
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple)):
        return [item for item in value if isinstance(item, str)]
    return []


def _malformed(address: str, message: str, location: Optional[SourceLocation] = None) -> BuildWarning:
    return BuildWarning(
        kind="malformed-declaration",
        address=address,
        message=message,
        location=location or SourceLocation(),
    )
