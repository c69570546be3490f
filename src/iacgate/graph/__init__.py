"""Resource graph construction."""

from __future__ import annotations

from .builder import EDGE_DEPENDS_ON, EDGE_REFERENCE, ResourceGraph, build_graph

__all__ = ["EDGE_DEPENDS_ON", "EDGE_REFERENCE", "ResourceGraph", "build_graph"]
