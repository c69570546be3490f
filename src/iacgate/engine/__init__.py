"""Rule evaluation engine."""

from __future__ import annotations

from .cancellation import CancellationToken
from .evaluator import build_rule_index, evaluate_graph

__all__ = ["CancellationToken", "build_rule_index", "evaluate_graph"]
