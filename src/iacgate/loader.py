"""Load resource declarations from JSON, YAML or Terraform plan JSON files."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

import yaml

from .errors import MalformedInputError

logger = logging.getLogger(__name__)

_YAML_SUFFIXES = {".yaml", ".yml"}

ConfigKey = Tuple[Tuple[str, ...], str]


def load_declarations(path: Path) -> List[Dict[str, Any]]:
    """Read a declaration or plan file and return normalized declarations."""

    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise MalformedInputError("file not found", source=path) from exc
    except UnicodeDecodeError as exc:
        raise MalformedInputError("file is not valid UTF-8 text", source=path) from exc
    except OSError as exc:
        raise MalformedInputError(f"unable to read file: {exc}", source=path) from exc
    fmt = "yaml" if path.suffix.lower() in _YAML_SUFFIXES else "json"
    return parse_declarations_text(text, source=str(path), fmt=fmt)


def parse_declarations_text(text: str, *, source: str = "<stdin>", fmt: str = "json") -> List[Dict[str, Any]]:
    if not text.strip():
        raise MalformedInputError("input is empty", source=source)
    if fmt == "yaml":
        try:
            document = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise MalformedInputError(f"invalid YAML: {exc}", source=source) from exc
    else:
        try:
            document = json.loads(text)
        except json.JSONDecodeError as exc:
            raise MalformedInputError(f"invalid JSON: {exc}", source=source) from exc
    return normalize_document(document, source=source)


def normalize_document(document: Any, *, source: str = "<input>") -> List[Dict[str, Any]]:
    """Turn a parsed document into a list of declaration mappings."""

    if isinstance(document, list):
        return list(document)
    if not isinstance(document, Mapping):
        raise MalformedInputError(
            f"top-level document must be an object or a list, got {type(document).__name__}",
            source=source,
        )
    if is_terraform_plan(document):
        declarations = declarations_from_plan(document, source=source)
        logger.info("loaded %d resources from Terraform plan %s", len(declarations), source)
        return declarations
    resources = document.get("resources")
    if not isinstance(resources, list):
        raise MalformedInputError("document must contain a 'resources' list", source=source)
    return list(resources)


def is_terraform_plan(document: Mapping[str, Any]) -> bool:
    return "planned_values" in document or (
        "terraform_version" in document and "format_version" in document
    )


def declarations_from_plan(plan: Mapping[str, Any], *, source: str = "<plan>") -> List[Dict[str, Any]]:
    """Convert ``terraform show -json`` output into declarations.

    Attribute values come from ``planned_values``; depends_on and the
    references Terraform records for each expression come from the
    ``configuration`` block.
    """

    planned_values = plan.get("planned_values")
    if not isinstance(planned_values, Mapping):
        raise MalformedInputError("planned_values must be an object", source=source)
    root_module = planned_values.get("root_module")
    if not isinstance(root_module, Mapping):
        raise MalformedInputError("planned_values.root_module must be an object", source=source)

    config_index: Dict[ConfigKey, Dict[str, List[str]]] = {}
    configuration = plan.get("configuration")
    if isinstance(configuration, Mapping) and isinstance(configuration.get("root_module"), Mapping):
        _index_configuration(configuration["root_module"], (), config_index)

    declarations: List[Dict[str, Any]] = []
    for module_path, resource in _iter_planned_resources(root_module, ()):
        resource_type = resource.get("type")
        name = resource.get("name")
        mode = resource.get("mode") or "managed"
        if not isinstance(mode, str):
            mode = repr(mode)
        config_address = f"data.{resource_type}.{name}" if mode == "data" else f"{resource_type}.{name}"
        config = config_index.get((module_path, config_address), {})
        declaration: Dict[str, Any] = {
            "type": resource_type,
            "name": name,
            "module": list(module_path),
            "mode": mode,
            "attributes": resource.get("values") if isinstance(resource.get("values"), Mapping) else {},
            "resolved_values": True,
            "references": list(config.get("references", [])),
            "depends_on": list(config.get("depends_on", [])),
            "source": {"file": source},
        }
        if "index" in resource:
            declaration["index"] = resource.get("index")
        declarations.append(declaration)
    return declarations


def _iter_planned_resources(
    module: Mapping[str, Any], module_path: Tuple[str, ...]
) -> Iterator[Tuple[Tuple[str, ...], Mapping[str, Any]]]:
    resources = module.get("resources")
    if isinstance(resources, list):
        for resource in resources:
            if isinstance(resource, Mapping):
                yield module_path, resource
    children = module.get("child_modules")
    if isinstance(children, list):
        for child in children:
            if not isinstance(child, Mapping):
                continue
            yield from _iter_planned_resources(child, _module_path_from_address(child.get("address")))


def _module_path_from_address(address: Any) -> Tuple[str, ...]:
    if not isinstance(address, str):
        return ()
    names: List[str] = []
    parts = address.split(".")
    for position in range(0, len(parts) - 1, 2):
        if parts[position] == "module":
            # Drop instance keys such as module.app["blue"].
            names.append(parts[position + 1].split("[", 1)[0])
    return tuple(names)


def _index_configuration(
    module: Mapping[str, Any],
    module_path: Tuple[str, ...],
    index: Dict[ConfigKey, Dict[str, List[str]]],
) -> None:
    resources = module.get("resources")
    if isinstance(resources, list):
        for resource in resources:
            if not isinstance(resource, Mapping):
                continue
            address = resource.get("address")
            if not isinstance(address, str):
                continue
            references: List[str] = []
            _collect_references(resource.get("expressions"), references)
            depends_on = [item for item in resource.get("depends_on") or [] if isinstance(item, str)]
            index[(module_path, address)] = {
                "references": sorted(set(references)),
                "depends_on": depends_on,
            }
    calls = module.get("module_calls")
    if isinstance(calls, Mapping):
        for name, call in calls.items():
            if isinstance(call, Mapping) and isinstance(call.get("module"), Mapping):
                _index_configuration(call["module"], module_path + (str(name),), index)


def _collect_references(expressions: Any, into: List[str]) -> None:
    if isinstance(expressions, Mapping):
        refs = expressions.get("references")
        if isinstance(refs, list):
            into.extend(ref for ref in refs if isinstance(ref, str))
        for key, value in expressions.items():
            if key != "references":
                _collect_references(value, into)
    elif isinstance(expressions, list):
        for item in expressions:
            _collect_references(item, into)


def read_suppression_text(path: Optional[Path]) -> Optional[str]:
    if path is None:
        return None
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise MalformedInputError("suppression file not found", source=path) from exc
    except OSError as exc:
        raise MalformedInputError(f"unable to read suppression file: {exc}", source=path) from exc
