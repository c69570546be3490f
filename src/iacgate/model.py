"""Core data model shared by the graph builder, rule engine and gate."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from enum import IntEnum
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple, Union

from .errors import ConfigurationError


class Severity(IntEnum):
    """Finding severity; larger values are more severe."""

    INFO = 0
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4

    @property
    def label(self) -> str:
        return self.name.lower()

    @classmethod
    def parse(cls, value: Union[str, "Severity"]) -> "Severity":
        if isinstance(value, Severity):
            return value
        if isinstance(value, str):
            key = value.strip().upper()
            if key in cls.__members__:
                return cls[key]
        choices = ", ".join(level.label for level in cls)
        raise ConfigurationError(f"Unknown severity {value!r}; expected one of: {choices}")


SEVERITY_ORDER: Tuple[Severity, ...] = tuple(sorted(Severity, reverse=True))


# Attribute values form a closed variant so rule predicates can match on
# exactly four shapes.


@dataclass(frozen=True)
class Scalar:
    value: Union[str, int, float, bool, None]

    def to_python(self) -> Any:
        return self.value


@dataclass(frozen=True)
class ListValue:
    items: Tuple["AttributeValue", ...] = ()

    def __iter__(self) -> Iterator["AttributeValue"]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def to_python(self) -> Any:
        return [item.to_python() for item in self.items]


@dataclass(frozen=True)
class MapValue:
    entries: Tuple[Tuple[str, "AttributeValue"], ...] = ()

    def get(self, key: str, default: Optional["AttributeValue"] = None) -> Optional["AttributeValue"]:
        for name, value in self.entries:
            if name == key:
                return value
        return default

    def keys(self) -> Tuple[str, ...]:
        return tuple(name for name, _ in self.entries)

    def to_python(self) -> Any:
        return {name: value.to_python() for name, value in self.entries}


@dataclass(frozen=True)
class UnresolvedRef:
    """A value only known at apply time, such as ``azurerm_subnet.a.id``."""

    expression: str
    targets: Tuple[str, ...] = ()

    def to_python(self) -> Any:
        return f"${{{self.expression}}}"


AttributeValue = Union[Scalar, ListValue, MapValue, UnresolvedRef]


@dataclass(frozen=True)
class SourceLocation:
    file: str = ""
    start_line: Optional[int] = None
    end_line: Optional[int] = None

    def __str__(self) -> str:
        if self.start_line is None:
            return self.file or "-"
        if self.end_line is not None and self.end_line != self.start_line:
            return f"{self.file}:{self.start_line}-{self.end_line}"
        return f"{self.file}:{self.start_line}"

    def to_dict(self) -> Dict[str, Any]:
        return {"file": self.file, "start_line": self.start_line, "end_line": self.end_line}


def module_prefix(module_path: Tuple[str, ...]) -> str:
    return "".join(f"module.{name}." for name in module_path)


def format_address(
    resource_type: str,
    name: str,
    module_path: Tuple[str, ...] = (),
    *,
    mode: str = "managed",
    index: Union[str, int, None] = None,
) -> str:
    address = module_prefix(module_path)
    if mode == "data":
        address += "data."
    address += f"{resource_type}.{name}"
    if isinstance(index, bool):
        index = str(index).lower()
    if isinstance(index, int):
        address += f"[{index}]"
    elif isinstance(index, str):
        address += f'["{index}"]'
    return address


@dataclass(frozen=True)
class ResourceNode:
    resource_type: str
    name: str
    module_path: Tuple[str, ...] = ()
    mode: str = "managed"
    index: Union[str, int, None] = None
    attributes: Tuple[Tuple[str, AttributeValue], ...] = ()
    location: SourceLocation = field(default_factory=SourceLocation)

    @property
    def address(self) -> str:
        return format_address(self.resource_type, self.name, self.module_path, mode=self.mode, index=self.index)

    @property
    def module_address(self) -> str:
        return module_prefix(self.module_path).rstrip(".")

    def attribute(self, name: str) -> Optional[AttributeValue]:
        for key, value in self.attributes:
            if key == name:
                return value
        return None

    def attribute_names(self) -> Tuple[str, ...]:
        return tuple(key for key, _ in self.attributes)


@dataclass(frozen=True)
class ReferenceEdge:
    from_address: str
    to_address: str
    kind: str  # "depends_on" | "reference"


@dataclass(frozen=True)
class BuildWarning:
    kind: str  # "dangling-reference" | "malformed-declaration" | "duplicate-address"
    address: str
    message: str
    location: SourceLocation = field(default_factory=SourceLocation)


@dataclass(frozen=True)
class Finding:
    rule_id: str
    severity: Severity
    address: str
    message: str
    location: SourceLocation = field(default_factory=SourceLocation)
    category: str = "policy"
    title: str = ""
    suppressed: bool = False
    suppressed_by: Optional[str] = None

    @property
    def key(self) -> Tuple[str, str]:
        return (self.rule_id, self.address)

    def with_suppression(self, entry: Optional["SuppressionEntry"]) -> "Finding":
        if entry is None:
            return replace(self, suppressed=False, suppressed_by=None)
        return replace(self, suppressed=True, suppressed_by=entry.raw)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rule_id": self.rule_id,
            "severity": self.severity.label,
            "address": self.address,
            "title": self.title,
            "message": self.message,
            "location": self.location.to_dict(),
            "category": self.category,
            "suppressed": self.suppressed,
            "suppressed_by": self.suppressed_by,
        }


@dataclass(frozen=True)
class SuppressionEntry:
    rule_id: str
    scope: Optional[str] = None
    expires: Optional[date] = None
    source: str = ""
    line: Optional[int] = None

    @property
    def raw(self) -> str:
        text = self.rule_id
        if self.scope:
            text += f":{self.scope}"
        if self.expires:
            text += f":{self.expires.isoformat()}"
        return text

    def is_expired(self, today: date) -> bool:
        return self.expires is not None and self.expires < today


@dataclass(frozen=True)
class GateDecision:
    threshold: Severity
    secret_threshold: Severity
    blocking_count: int
    policy_blocking_count: int
    secret_blocking_count: int
    suppressed_count: int
    passed: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "threshold": self.threshold.label,
            "secret_threshold": self.secret_threshold.label,
            "blocking_count": self.blocking_count,
            "policy_blocking_count": self.policy_blocking_count,
            "secret_blocking_count": self.secret_blocking_count,
            "suppressed_count": self.suppressed_count,
            "passed": self.passed,
            "status": "PASS" if self.passed else "FAIL",
        }


@dataclass(frozen=True)
class SecretMatch:
    pattern_id: str
    file: str
    line: int
    excerpt: str
    confidence: float
    method: str = "pattern"  # "pattern" | "entropy"
    severity: Severity = Severity.HIGH
    description: str = ""

    @property
    def key(self) -> Tuple[str, int, str]:
        return (self.file, self.line, self.pattern_id)

    def to_finding(self) -> Finding:
        detail = self.description or f"Possible secret detected by {self.method}"
        return Finding(
            rule_id=self.pattern_id,
            severity=self.severity,
            address=f"{self.file}:{self.line}",
            message=f"{detail} (confidence {self.confidence:.2f}): {self.excerpt}",
            location=SourceLocation(self.file, self.line, self.line),
            category="secret",
            title=self.description,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pattern_id": self.pattern_id,
            "file": self.file,
            "line": self.line,
            "excerpt": self.excerpt,
            "confidence": round(self.confidence, 4),
            "method": self.method,
            "severity": self.severity.label,
        }


def to_attribute_value(raw: Any) -> AttributeValue:
    """Convert a plain Python value into the closed attribute variant.

    Reference detection lives in the graph builder; here strings stay
    scalars. Values of unknown shape degrade to an unresolved placeholder.
    """

    if isinstance(raw, (Scalar, ListValue, MapValue, UnresolvedRef)):
        return raw
    if raw is None or isinstance(raw, (str, bool, int, float)):
        return Scalar(raw)
    if isinstance(raw, Mapping):
        return MapValue(tuple((str(key), to_attribute_value(value)) for key, value in raw.items()))
    if isinstance(raw, (list, tuple)):
        return ListValue(tuple(to_attribute_value(item) for item in raw))
    return UnresolvedRef(expression=repr(raw))


__all__ = [
    "Severity",
    "SEVERITY_ORDER",
    "Scalar",
    "ListValue",
    "MapValue",
    "UnresolvedRef",
    "AttributeValue",
    "SourceLocation",
    "ResourceNode",
    "ReferenceEdge",
    "BuildWarning",
    "Finding",
    "SuppressionEntry",
    "GateDecision",
    "SecretMatch",
    "format_address",
    "module_prefix",
    "to_attribute_value",
]
