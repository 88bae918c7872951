# -*- coding: utf-8 -*-
"""
Element adjacency graph.

Builds the weighted element-to-element graph that is handed to a graph
partitioner. Two elements are adjacent when they share a side (an edge in 2D,
a face in 3D). Each element carries the integer weight of its block.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import numpy as np
import numpy.typing as npt
from scipy.sparse import csr_matrix

from ..errors import DataIntegrityError
from . import element_shapes
from .fe_mesh import FEMesh


@dataclass(frozen=True)
class AdjacencyGraph:
    """
    Element-to-element connectivity with per-element weights.

    Attributes:
        matrix (csr_matrix): Symmetric adjacency matrix without diagonal entries.
            - Shape: `(n_elems, n_elems)`
        weights (np.ndarray): Integer weight of each element. Shape: `(n_elems,)`.
    """

    matrix: csr_matrix
    weights: np.ndarray

    @property
    def n_elems(self) -> int:
        return int(self.matrix.shape[0])

    @property
    def xadj(self) -> npt.NDArray[np.int_]:
        return self.matrix.indptr

    @property
    def adjncy(self) -> npt.NDArray[np.int_]:
        return self.matrix.indices

    def neighbors(self, elem: int) -> npt.NDArray[np.int_]:
        return self.adjncy[self.xadj[elem] : self.xadj[elem + 1]]

    def edge_cut(self, assignment: npt.NDArray[np.int_]) -> int:
        """Returns the number of graph edges whose end elements lie in different parts."""
        coo = self.matrix.tocoo()
        cut = np.count_nonzero(assignment[coo.row] != assignment[coo.col])
        return int(cut // 2)


def default_block_weights(mesh: FEMesh) -> Dict[int, int]:
    """Weights each block by its number of nodes per element."""
    return {b.block_id: b.nodes_per_elem for b in mesh.element_blocks}


def element_weights(
    mesh: FEMesh, block_weights: Optional[Dict[int, int]] = None
) -> npt.NDArray[np.int_]:
    """
    Expands per-block weights to one weight per element.

    Args:
        mesh: The monolithic mesh.
        block_weights: Map of {block_id: weight}. Missing blocks use the
            default weight (nodes per element).

    Raises:
        DataIntegrityError: If a weight is negative.
    """
    weights = default_block_weights(mesh)
    if block_weights:
        weights.update(block_weights)

    out = np.zeros(mesh.n_elems, dtype=int)
    for b_idx, block in enumerate(mesh.element_blocks):
        w = int(weights[block.block_id])
        if w < 0:
            raise DataIntegrityError(f"Block {block.block_id} has negative weight {w}.")
        out[mesh.block_ptr[b_idx] : mesh.block_ptr[b_idx + 1]] = w
    return out


def build_adjacency_graph(
    mesh: FEMesh, block_weights: Optional[Dict[int, int]] = None
) -> AdjacencyGraph:
    """
    Builds the side-sharing element graph of a mesh.

    Args:
        mesh: The monolithic mesh.
        block_weights: Optional map of {block_id: weight}.

    Returns:
        The AdjacencyGraph of the mesh.
    """
    # Map each side (as a sorted node tuple) to the elements that carry it.
    face_to_elems: Dict[Tuple[int, ...], List[int]] = {}
    for elem in range(mesh.n_elems):
        elem_type = mesh.elem_type_of(elem)
        for side in range(1, element_shapes.num_sides(elem_type) + 1):
            key = tuple(sorted(mesh.side_global_nodes(elem, side)))
            face_to_elems.setdefault(key, []).append(elem)

    row, col = [], []
    for elems in face_to_elems.values():
        for a in elems:
            for b in elems:
                if a != b:
                    row.append(a)
                    col.append(b)

    matrix = csr_matrix(
        (np.ones(len(row), dtype=int), (row, col)), shape=(mesh.n_elems, mesh.n_elems)
    )
    # Elements sharing more than one side would otherwise carry weight > 1.
    matrix.data[:] = 1
    matrix.sort_indices()
    return AdjacencyGraph(matrix=matrix, weights=element_weights(mesh, block_weights))
