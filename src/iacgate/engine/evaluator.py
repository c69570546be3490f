"""Evaluate registered rules against every matching node of a resource graph."""

from __future__ import annotations

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Type

from ..errors import EngineError, ScanCancelledError
from ..graph import ResourceGraph
from ..model import Finding, ResourceNode, Severity
from ..rules import Rule, RuleContext, get_all_rules
from .cancellation import CancellationToken, check

logger = logging.getLogger(__name__)

WorkUnit = Tuple[ResourceNode, Tuple[Type[Rule], ...]]


def build_rule_index(rules: Iterable[Type[Rule]]) -> Dict[str, Tuple[Type[Rule], ...]]:
    """Map resource type to the rules whose filter names it, in rule id order."""

    seen: Dict[str, Type[Rule]] = {}
    for rule in rules:
        if rule.id in seen and seen[rule.id] is not rule:
            raise ValueError(f"Duplicate rule id in rule set: {rule.id}")
        seen[rule.id] = rule
    index: Dict[str, List[Type[Rule]]] = {}
    for rule_id in sorted(seen):
        rule = seen[rule_id]
        for resource_type in sorted(rule.resource_types):
            index.setdefault(resource_type, []).append(rule)
    return {key: tuple(value) for key, value in index.items()}


def evaluate_graph(
    graph: ResourceGraph,
    rules: Optional[Sequence[Type[Rule]]] = None,
    *,
    workers: int = 1,
    cancel_token: Optional[CancellationToken] = None,
) -> List[Finding]:
    """Return the raw findings of every rule on every node it applies to.

    Nodes are split into batches evaluated on a thread pool; each batch
    returns its own list and the lists are joined in submission order, so the
    output does not depend on scheduling.
    """

    rule_set = list(rules) if rules is not None else get_all_rules()
    index = build_rule_index(rule_set)
    context = RuleContext(graph)
    work: List[WorkUnit] = []
    for node in graph.nodes.values():
        matching = index.get(node.resource_type)
        if matching:
            work.append((node, matching))

    logger.debug("evaluating %d rules over %d matching nodes", len(rule_set), len(work))
    check(cancel_token)
    if not work:
        return []

    batches = _split(work, workers)
    if workers <= 1 or len(batches) == 1:
        results = [_evaluate_batch(batch, context, cancel_token) for batch in batches]
    else:
        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="iacgate-rules")
        try:
            results = list(executor.map(lambda batch: _evaluate_batch(batch, context, cancel_token), batches))
        except ScanCancelledError:
            executor.shutdown(wait=True, cancel_futures=True)
            raise
        finally:
            executor.shutdown(wait=True)

    findings: List[Finding] = []
    for batch_findings in results:
        findings.extend(batch_findings)
    return findings


def _split(work: List[WorkUnit], workers: int) -> List[List[WorkUnit]]:
    batch_count = max(1, min(len(work), workers * 4))
    size = math.ceil(len(work) / batch_count)
    return [work[start : start + size] for start in range(0, len(work), size)]


def _evaluate_batch(
    batch: List[WorkUnit],
    context: RuleContext,
    cancel_token: Optional[CancellationToken],
) -> List[Finding]:
    buffer: List[Finding] = []
    for node, rules in batch:
        for rule in rules:
            check(cancel_token)
            buffer.extend(evaluate_rule(rule, node, context))
    return buffer


def evaluate_rule(rule: Type[Rule], node: ResourceNode, context: RuleContext) -> List[Finding]:
    """Run one rule on one node; a failure becomes a single INFO finding."""

    try:
        if not rule.applies(node, context):
            return []
        results = list(rule.evaluate(node, context) or [])
        for result in results:
            if not isinstance(result, Finding):
                raise TypeError(f"rule returned {type(result).__name__} instead of Finding")
    except ScanCancelledError:
        raise
    except Exception as exc:  # noqa: BLE001  # pylint: disable=broad-except
        error = EngineError(rule.id, node.address, exc)
        logger.warning("%s", error)
        return [
            Finding(
                rule_id=rule.id,
                severity=Severity.INFO,
                address=node.address,
                message=str(error),
                location=node.location,
                category="engine-error",
                title="Rule evaluation error",
            )
        ]
    return results
