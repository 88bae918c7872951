# -*- coding: utf-8 -*-
"""
Monolithic finite-element mesh data used as decomposition input.

Key modules:
- fe_mesh:        The FEMesh class (coordinates, element blocks, node/side sets).
- element_shapes: Side tables (nodes per element side) for supported types.
- adjacency:      The weighted element-to-element graph for partitioners.
"""

from .fe_mesh import ElementBlock, FEMesh, NodeSet, SideSet
from .adjacency import AdjacencyGraph, build_adjacency_graph

__all__ = [
    "ElementBlock",
    "FEMesh",
    "NodeSet",
    "SideSet",
    "AdjacencyGraph",
    "build_adjacency_graph",
]
