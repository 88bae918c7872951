# -*- coding: utf-8 -*-
"""
Per-partition output of a decomposition.

This module provides the `PartitionBundle` class, everything a mesh writer
needs to persist one partition: local-to-global id maps, restricted
coordinates and connectivity, restricted node-sets and side-sets, the
load-balance record (internal/boundary nodes and communication maps) and the
global sizes of the monolithic mesh.

Key Features:
- Creation of a `PartitionBundle` from the monolithic mesh and the results of
  the membership, index-mapping, communication-map and set-projection steps.
- Final local node numbering with internal nodes before boundary nodes.
- 1-based id maps and connectivity helpers for persisted formats.

Classes:
    LoadBalance: Internal/boundary counts and node communication maps.
    GlobalInfo: Sizes of the monolithic mesh.
    PartitionBundle: The write bundle of one partition.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

import numpy as np
import numpy.typing as npt

from ..errors import DataIntegrityError
from ..femesh.fe_mesh import FEMesh
from .comm_map import CommunicationMap
from .index_map import LocalIndexMap, map_partition_indices
from .membership import PartitionMembership
from .set_projection import ConcatenatedSets, project_node_sets, project_side_sets


def partition_filename(filename: str, n_parts: int, partition_id: int) -> str:
    """
    Returns the per-partition file name `filename.<n_parts>.<partition_id>`.

    The partition id is zero-padded to the width of `n_parts`, e.g.
    `mesh.exo.12.03`.
    """
    width = len(str(n_parts))
    return f"{filename}.{n_parts}.{partition_id:0{width}d}"


@dataclass(frozen=True)
class LoadBalance:
    """
    Load-balance record of one partition.

    Node ids are local to the partition (0-based).
    """

    owner_partition_id: int
    internal_count: int
    boundary_count: int
    element_count: int
    neighbor_ids: List[int]
    shared_node_counts: List[int]
    shared_node_local_ids: Dict[int, np.ndarray]
    shared_node_procs: Dict[int, np.ndarray]
    internal_nodes: np.ndarray
    boundary_nodes: np.ndarray

    @property
    def neighbor_count(self) -> int:
        return len(self.neighbor_ids)

    @classmethod
    def from_comm_map(cls, comm_map: CommunicationMap, element_count: int) -> "LoadBalance":
        return cls(
            owner_partition_id=comm_map.partition_id,
            internal_count=comm_map.n_internal,
            boundary_count=comm_map.n_boundary,
            element_count=element_count,
            neighbor_ids=list(comm_map.neighbor_ids),
            shared_node_counts=list(comm_map.shared_node_counts),
            shared_node_local_ids=dict(comm_map.shared_nodes),
            shared_node_procs=dict(comm_map.shared_node_procs),
            internal_nodes=comm_map.internal_nodes,
            boundary_nodes=comm_map.boundary_nodes,
        )


@dataclass(frozen=True)
class GlobalInfo:
    """Sizes of the monolithic mesh, repeated in every partition."""

    n_nodes: int
    n_elems: int
    block_ids: np.ndarray
    block_elem_counts: np.ndarray
    node_set_ids: np.ndarray
    node_set_sizes: np.ndarray
    node_set_dist_counts: np.ndarray
    side_set_ids: np.ndarray
    side_set_sizes: np.ndarray
    side_set_dist_counts: np.ndarray

    @classmethod
    def from_mesh(cls, mesh: FEMesh) -> "GlobalInfo":
        # A node-set without stored factors is written with one factor per node.
        return cls(
            n_nodes=mesh.n_nodes,
            n_elems=mesh.n_elems,
            block_ids=np.array([b.block_id for b in mesh.element_blocks], dtype=int),
            block_elem_counts=np.array([b.n_elems for b in mesh.element_blocks], dtype=int),
            node_set_ids=np.array([s.set_id for s in mesh.node_sets], dtype=int),
            node_set_sizes=np.array([s.n_entries for s in mesh.node_sets], dtype=int),
            node_set_dist_counts=np.array([s.n_entries for s in mesh.node_sets], dtype=int),
            side_set_ids=np.array([s.set_id for s in mesh.side_sets], dtype=int),
            side_set_sizes=np.array([s.n_entries for s in mesh.side_sets], dtype=int),
            side_set_dist_counts=np.array(
                [
                    sum(mesh.side_node_count(int(e), int(k)) for e, k in zip(s.elems, s.sides))
                    for s in mesh.side_sets
                ],
                dtype=int,
            ),
        )


class PartitionBundle:
    """
    Everything a writer needs to persist one partition.

    Attributes:
        partition_id (int): The partition this bundle describes.
        n_parts (int): Total number of partitions of the run.
        dimension (int): Spatial dimension.
        node_map (LocalIndexMap): Final node numbering (internal nodes first).
        elem_map (LocalIndexMap): Element numbering (ascending global order).
        node_coords (np.ndarray): Coordinates in local node order.
            Shape: `(n_nodes, dimension)`.
        block_ids (List[int]): Ids of all element blocks, empty ones included.
        block_elem_types (List[str]): Element type of each block.
        block_connectivity (List[np.ndarray]): Per block, the owned elements'
            connectivity in local 0-based node ids.
        node_sets (ConcatenatedSets): Restricted node-sets.
        side_sets (ConcatenatedSets): Restricted side-sets.
        load_balance (LoadBalance): Internal/boundary split and node cmaps.
        global_info (GlobalInfo): Sizes of the monolithic mesh.
        node_ids (np.ndarray): 0-based external id of each local node.
        elem_ids (np.ndarray): 0-based external id of each local element.
    """

    def __init__(
        self,
        partition_id: int,
        n_parts: int,
        dimension: int,
        node_map: LocalIndexMap,
        elem_map: LocalIndexMap,
        node_coords: np.ndarray,
        block_ids: List[int],
        block_elem_types: List[str],
        block_connectivity: List[np.ndarray],
        node_sets: ConcatenatedSets,
        side_sets: ConcatenatedSets,
        load_balance: LoadBalance,
        global_info: GlobalInfo,
        title: str = "",
        node_ids: Optional[np.ndarray] = None,
        elem_ids: Optional[np.ndarray] = None,
    ):
        if partition_id < 0 or partition_id >= n_parts:
            raise DataIntegrityError(
                f"Partition id {partition_id} is out of range [0, {n_parts})."
            )
        self.partition_id = partition_id
        self.n_parts = n_parts
        self.dimension = dimension
        self.node_map = node_map
        self.elem_map = elem_map
        self.node_coords = node_coords
        self.block_ids = block_ids
        self.block_elem_types = block_elem_types
        self.block_connectivity = block_connectivity
        self.node_sets = node_sets
        self.side_sets = side_sets
        self.load_balance = load_balance
        self.global_info = global_info
        self.title = title
        self.node_ids = node_map.l2g if node_ids is None else np.asarray(node_ids, dtype=int)
        self.elem_ids = elem_map.l2g if elem_ids is None else np.asarray(elem_ids, dtype=int)

    @property
    def n_nodes(self) -> int:
        return self.node_map.n_local

    @property
    def n_elems(self) -> int:
        return self.elem_map.n_local

    @property
    def node_id_map(self) -> npt.NDArray[np.int_]:
        """1-based external node id of each local node."""
        return self.node_ids + 1

    @property
    def elem_id_map(self) -> npt.NDArray[np.int_]:
        """1-based external element id of each local element."""
        return self.elem_ids + 1

    def one_based_connectivity(self) -> List[np.ndarray]:
        """Returns the per-block connectivity with 1-based local node ids."""
        return [conn + 1 for conn in self.block_connectivity]

    @classmethod
    def from_global_mesh(
        cls,
        mesh: FEMesh,
        membership: PartitionMembership,
        comm_map: CommunicationMap,
        n_parts: int,
    ) -> "PartitionBundle":
        """
        Factory method to construct the bundle of one partition.

        Args:
            mesh: The complete, monolithic mesh.
            membership: The partition's element and node masks.
            comm_map: The partition's communication map.
            n_parts: The total number of partitions.

        Returns:
            A new PartitionBundle for `membership.partition_id`.

        Raises:
            DataIntegrityError: If the inputs describe different partitions or
                disagree on node counts.
        """
        if membership.partition_id != comm_map.partition_id:
            raise DataIntegrityError(
                f"Membership of partition {membership.partition_id} combined with "
                f"communication map of partition {comm_map.partition_id}."
            )

        node_map, elem_map = map_partition_indices(membership)
        node_map = comm_map.reordered_node_map(node_map)
        node_map.check_round_trip()

        block_connectivity = []
        for b_idx, block in enumerate(mesh.element_blocks):
            start = int(mesh.block_ptr[b_idx])
            owned = membership.elem_mask[start : start + block.n_elems]
            block_connectivity.append(node_map.remap(block.connectivity[owned]))

        return cls(
            partition_id=membership.partition_id,
            n_parts=n_parts,
            dimension=mesh.dimension,
            node_map=node_map,
            elem_map=elem_map,
            node_coords=mesh.node_coords[node_map.l2g],
            block_ids=[b.block_id for b in mesh.element_blocks],
            block_elem_types=[b.elem_type for b in mesh.element_blocks],
            block_connectivity=block_connectivity,
            node_sets=project_node_sets(mesh.node_sets, membership.node_mask, node_map),
            side_sets=project_side_sets(
                mesh.side_sets, membership.elem_mask, elem_map, mesh.side_node_count
            ),
            load_balance=LoadBalance.from_comm_map(comm_map, membership.n_elems),
            global_info=GlobalInfo.from_mesh(mesh),
            title=mesh.title,
            node_ids=mesh.node_id_map[node_map.l2g],
            elem_ids=mesh.elem_id_map[elem_map.l2g],
        )

    def filename(self, base_filename: str) -> str:
        """Returns this partition's file name for a monolithic file name."""
        return partition_filename(base_filename, self.n_parts, self.partition_id)

    def plot(self, filepath: str = "partition_plot.png", show_nodes: bool = True) -> None:
        """
        Plots the partition, marking boundary nodes, and saves it to a file.

        Note: Plotting is currently only supported for 2D meshes.
        """
        if self.dimension != 2:
            print("Warning: Plotting is currently supported only for 2D meshes.")
            return

        import matplotlib.pyplot as plt
        from ..common.utility import plot_partition

        cells = [row.tolist() for conn in self.block_connectivity for row in conn]
        fig, ax = plt.subplots(figsize=(10, 8))
        plot_partition(
            ax,
            self.node_coords,
            cells,
            boundary_nodes=self.load_balance.boundary_nodes,
            node_labels=self.node_map.l2g if show_nodes else None,
            title=f"Partition {self.partition_id} of {self.n_parts}",
        )
        plt.savefig(filepath, dpi=150, bbox_inches="tight")
        plt.close(fig)
        print(f"Partition plot saved to: {filepath}")
