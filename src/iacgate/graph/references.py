"""Textual detection of Terraform-style reference expressions."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

from ..model import format_address, module_prefix

# Roots that name inputs or iteration state rather than graph nodes.
NON_RESOURCE_ROOTS = frozenset({"var", "local", "each", "count", "path", "terraform", "self"})

_SEGMENT = r"[A-Za-z_][\w-]*(?:\[[^\]]*\])?"
_TRAVERSAL_RE = re.compile(rf"^{_SEGMENT}(?:\.(?:{_SEGMENT}|\*))+$")
_EMBEDDED_TRAVERSAL_RE = re.compile(rf"(?<![\w.\"'])({_SEGMENT}(?:\.(?:{_SEGMENT}|\*))+)")
_INTERPOLATION_RE = re.compile(r"\$\{([^}]*)\}")
_SEGMENT_RE = re.compile(r"([A-Za-z_*][\w-]*)(?:\[([^\]]*)\])?")
# Dots inside an index such as [count.index] do not split segments.
_PART_RE = re.compile(r"(?:[^.\[]|\[[^\]]*\])+")


@dataclass(frozen=True)
class Reference:
    expression: str
    target: Optional[str]  # absolute address or module address; None for inputs
    is_module: bool = False
    has_index: bool = False


def _split_segments(traversal: str) -> List[Tuple[str, Optional[str]]]:
    segments: List[Tuple[str, Optional[str]]] = []
    for part in _PART_RE.findall(traversal):
        match = _SEGMENT_RE.fullmatch(part)
        if not match:
            segments.append((part, None))
            continue
        segments.append((match.group(1), match.group(2)))
    return segments


def _parse_index(raw: Optional[str]) -> Union[str, int, None]:
    if raw is None:
        return None
    text = raw.strip()
    if text.isdigit():
        return int(text)
    if len(text) >= 2 and text[0] == text[-1] and text[0] in {'"', "'"}:
        return text[1:-1]
    # Dynamic index such as count.index: resolve against every instance.
    return None


def parse_traversal(traversal: str, module_path: Tuple[str, ...] = ()) -> Optional[Reference]:
    """Return the reference named by a traversal, or None if it names no node.

    Module-relative addressing applies: ``azurerm_subnet.a.id`` inside
    ``module.net`` targets ``module.net.azurerm_subnet.a``.
    """

    segments = _split_segments(traversal)
    if len(segments) < 2:
        return None
    root, root_index = segments[0]
    if root in NON_RESOURCE_ROOTS:
        return Reference(expression=traversal, target=None)
    if root == "module":
        name = segments[1][0]
        target = module_prefix(module_path + (name,)).rstrip(".")
        return Reference(expression=traversal, target=target, is_module=True)
    if root == "data":
        if len(segments) < 3:
            return None
        resource_type = segments[1][0]
        name, raw_index = segments[2]
        index = _parse_index(raw_index)
        target = format_address(resource_type, name, module_path, mode="data", index=index)
        return Reference(expression=traversal, target=target, has_index=index is not None)
    if "_" not in root or root_index is not None:
        return None
    name, raw_index = segments[1]
    if name == "*":
        return None
    index = _parse_index(raw_index)
    target = format_address(root, name, module_path, index=index)
    return Reference(expression=traversal, target=target, has_index=index is not None)


def is_reference_expression(text: str) -> bool:
    """True when the whole string is a traversal naming a node or an input."""

    stripped = text.strip()
    if not _TRAVERSAL_RE.match(stripped):
        return False
    segments = _split_segments(stripped)
    root = segments[0][0]
    return root in NON_RESOURCE_ROOTS or root in {"module", "data"} or "_" in root


def extract_references(text: str, module_path: Tuple[str, ...] = ()) -> Tuple[bool, List[Reference]]:
    """Find references inside a string attribute value.

    Returns ``(is_expression, references)``. ``is_expression`` is True when the
    value cannot be known until apply time: it is a bare traversal or holds a
    ``${...}`` interpolation.
    """

    stripped = text.strip()
    if is_reference_expression(stripped):
        reference = parse_traversal(stripped, module_path)
        return True, [reference] if reference is not None else []

    interpolations = _INTERPOLATION_RE.findall(text)
    if not interpolations:
        return False, []
    references: List[Reference] = []
    for body in interpolations:
        for match in _EMBEDDED_TRAVERSAL_RE.finditer(body):
            reference = parse_traversal(match.group(1), module_path)
            if reference is not None:
                references.append(reference)
    return True, references
