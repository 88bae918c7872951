# -*- coding: utf-8 -*-
"""
Node communication maps between partitions.

For one partition p this module classifies p's nodes as internal (touched only
by p's elements) or boundary (also touched by at least one other partition),
finds the neighbor partitions, and lists, per neighbor, the nodes shared with
it. It also fixes the final node numbering of p: internal nodes first, then
boundary nodes, each group in ascending global order.

The work is done in two passes over the node range. Pass 1 sizes everything
(boundary flag, internal and boundary counts, shared count per neighbor).
Pass 2 numbers the nodes and fills the per-neighbor lists from the boundary
nodes only. The lists filled in pass 2 must match the pass 1 counts exactly;
a mismatch means the two classifications diverged and is reported as a
DataIntegrityError.

Classes:
    CommunicationMap: Internal/boundary split and per-neighbor shared nodes.

Functions:
    build_comm_map: Builds the communication map of one partition.
    verify_comm_map_symmetry: Cross-checks the maps of all partitions.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import numpy as np
import numpy.typing as npt

from ..errors import DataIntegrityError
from .index_map import LocalIndexMap

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommunicationMap:
    """
    Communication metadata of one partition.

    Attributes:
        partition_id (int): The partition described.
        n_internal (int): Number of nodes touched by this partition only.
        n_boundary (int): Number of nodes shared with at least one other partition.
        node_order (np.ndarray): Global node index of each local node: internal
            nodes first, then boundary nodes, each in ascending global order.
        neighbor_ids (List[int]): Neighbor partitions, ascending.
        shared_node_counts (List[int]): Shared node count per neighbor,
            aligned with `neighbor_ids`.
        shared_nodes (Dict[int, np.ndarray]): {neighbor: local node ids} in
            this partition's final numbering, ascending global order.
        shared_node_procs (Dict[int, np.ndarray]): {neighbor: owning partition
            of each entry}, i.e. the neighbor id repeated per shared node.
    """

    partition_id: int
    n_internal: int
    n_boundary: int
    node_order: np.ndarray
    neighbor_ids: List[int]
    shared_node_counts: List[int]
    shared_nodes: Dict[int, np.ndarray]
    shared_node_procs: Dict[int, np.ndarray]

    @property
    def n_local(self) -> int:
        return self.n_internal + self.n_boundary

    @property
    def n_neighbors(self) -> int:
        return len(self.neighbor_ids)

    @property
    def internal_nodes(self) -> npt.NDArray[np.int_]:
        """Local ids of the internal nodes."""
        return np.arange(self.n_internal, dtype=int)

    @property
    def boundary_nodes(self) -> npt.NDArray[np.int_]:
        """Local ids of the boundary nodes."""
        return np.arange(self.n_internal, self.n_local, dtype=int)

    def shared_global_nodes(self, neighbor: int) -> npt.NDArray[np.int_]:
        """Returns the global indices of the nodes shared with `neighbor`."""
        return self.node_order[self.shared_nodes[neighbor]]

    def reordered_node_map(self, node_map: LocalIndexMap) -> LocalIndexMap:
        """Applies the internal-first numbering to an ascending node map."""
        return node_map.reorder(self.node_order)


def build_comm_map(
    node_masks: npt.ArrayLike,
    partition_id: int,
    node_map: Optional[LocalIndexMap] = None,
) -> CommunicationMap:
    """
    Builds the communication map of one partition.

    Args:
        node_masks: Node masks of all partitions, shape `(n_parts, n_nodes)`.
            Every mask must be complete before this is called.
        partition_id: The partition to describe.
        node_map: Optional node map of the partition; when given, its node set
            must equal the partition's node mask.

    Returns:
        The CommunicationMap of `partition_id`.

    Raises:
        DataIntegrityError: If the partition id is out of range, the node map
            disagrees with the mask, or the two passes disagree.
    """
    masks = np.asarray(node_masks, dtype=bool)
    if masks.ndim != 2:
        raise DataIntegrityError(
            f"Node masks must have shape (n_parts, n_nodes), got {masks.shape}."
        )
    n_parts, n_nodes = masks.shape
    if not 0 <= partition_id < n_parts:
        raise DataIntegrityError(
            f"Partition {partition_id} is out of range [0, {n_parts})."
        )
    own = masks[partition_id]

    # --- Pass 1: classification and sizing ---
    is_boundary = np.zeros(n_nodes, dtype=bool)
    shared_counts = np.zeros(n_parts, dtype=int)
    for q in range(n_parts):
        if q == partition_id:
            continue
        shared = masks[q] & own
        shared_counts[q] = np.count_nonzero(shared)
        is_boundary |= shared
    n_boundary = int(np.count_nonzero(is_boundary))
    n_internal = int(np.count_nonzero(own)) - n_boundary

    neighbor_ids = [int(q) for q in np.flatnonzero(shared_counts > 0)]

    # --- Pass 2: local numbering and shared-node lists ---
    internal_g = np.flatnonzero(own & ~is_boundary)
    boundary_g = np.flatnonzero(is_boundary)
    node_order = np.concatenate((internal_g, boundary_g)).astype(int)

    if node_map is not None:
        if node_map.n_local != node_order.size or np.any(node_map.g2l[node_order] < 0):
            raise DataIntegrityError(
                f"Partition {partition_id}: node map of {node_map.n_local} nodes does "
                f"not match the node mask of {node_order.size} nodes."
            )

    if internal_g.size != n_internal or internal_g.size + boundary_g.size != node_order.size:
        raise DataIntegrityError(
            f"Partition {partition_id}: {internal_g.size} internal + "
            f"{boundary_g.size} boundary nodes != {node_order.size} local nodes."
        )

    # Boundary node k (ascending global order) has local id n_internal + k.
    sharers = masks[:, boundary_g]
    shared_nodes: Dict[int, np.ndarray] = {}
    shared_node_procs: Dict[int, np.ndarray] = {}
    filled_counts = np.zeros(n_parts, dtype=int)
    for q in range(n_parts):
        if q == partition_id:
            continue
        hits = np.flatnonzero(sharers[q])
        filled_counts[q] = hits.size
        if hits.size > 0:
            shared_nodes[q] = n_internal + hits
            shared_node_procs[q] = np.full(hits.size, q, dtype=int)

    mismatch = np.flatnonzero(filled_counts != shared_counts)
    if mismatch.size > 0:
        q = int(mismatch[0])
        raise DataIntegrityError(
            f"Partition {partition_id}: neighbor {q} sized to {int(shared_counts[q])} "
            f"shared nodes but filled with {int(filled_counts[q])}."
        )

    logger.debug(
        "Partition %d: %d internal, %d boundary nodes, neighbors %s.",
        partition_id,
        n_internal,
        n_boundary,
        neighbor_ids,
    )
    return CommunicationMap(
        partition_id=partition_id,
        n_internal=n_internal,
        n_boundary=n_boundary,
        node_order=node_order,
        neighbor_ids=neighbor_ids,
        shared_node_counts=[int(shared_counts[q]) for q in neighbor_ids],
        shared_nodes=shared_nodes,
        shared_node_procs=shared_node_procs,
    )


def verify_comm_map_symmetry(comm_maps: Sequence[CommunicationMap]) -> None:
    """
    Checks that communication maps agree pairwise across partitions.

    For every partition p and neighbor q, q must list p as a neighbor and both
    shared lists must reference the same global nodes in the same order.

    Args:
        comm_maps: The maps of all partitions, indexed by partition id.

    Raises:
        DataIntegrityError: Naming the first asymmetric pair.
    """
    by_id = {cm.partition_id: cm for cm in comm_maps}
    for cm in comm_maps:
        for q in cm.neighbor_ids:
            other = by_id.get(q)
            if other is None or cm.partition_id not in other.shared_nodes:
                raise DataIntegrityError(
                    f"Partition {cm.partition_id} lists {q} as a neighbor, "
                    f"but {q} does not list {cm.partition_id}."
                )
            mine = cm.shared_global_nodes(q)
            theirs = other.shared_global_nodes(cm.partition_id)
            if not np.array_equal(mine, theirs):
                raise DataIntegrityError(
                    f"Partitions {cm.partition_id} and {q} disagree on their shared "
                    f"nodes ({mine.size} vs {theirs.size} entries)."
                )
