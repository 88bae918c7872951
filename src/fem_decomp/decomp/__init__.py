# -*- coding: utf-8 -*-
"""
This package decomposes a monolithic finite-element mesh into partitions for
parallel processing.

For every partition it derives the owned elements and touched nodes, a local
numbering with internal nodes before boundary nodes, the nodes shared with each
neighboring partition, and the node-sets and side-sets restricted to it.

Key modules:
- partition:             Element-to-partition assignment (METIS or bisection).
- membership:            Element and node masks of one partition.
- index_map:             Global/local index maps.
- comm_map:              Internal/boundary split and node communication maps.
- set_projection:        Node-set and side-set restriction.
- local_partition:       The per-partition write bundle.
- decomposition_manager: Runs all steps for all partitions.
- reporting:             Text summaries of a decomposition.
"""

from .partition import partition_mesh, partition_graph
from .membership import PartitionMembership, resolve_membership
from .index_map import LocalIndexMap, map_partition_indices
from .comm_map import CommunicationMap, build_comm_map
from .set_projection import ConcatenatedSets, RestrictedSet, project_node_set, project_side_set
from .local_partition import PartitionBundle, partition_filename
from .decomposition_manager import DecompositionManager, DecompositionOptions
from .reporting import print_decomposition_summary

__all__ = [
    "partition_mesh",
    "partition_graph",
    "PartitionMembership",
    "resolve_membership",
    "LocalIndexMap",
    "map_partition_indices",
    "CommunicationMap",
    "build_comm_map",
    "RestrictedSet",
    "ConcatenatedSets",
    "project_node_set",
    "project_side_set",
    "PartitionBundle",
    "partition_filename",
    "DecompositionManager",
    "DecompositionOptions",
    "print_decomposition_summary",
]
