# -*- coding: utf-8 -*-
"""
Element and node membership of a partition.

A partition owns the elements assigned to it. Its nodes are induced by those
elements: a node belongs to partition p iff at least one p-owned element
references it, so a node on an interface belongs to several partitions.

Functions
---------
:py:func:`resolve_membership`:
    Builds the element and node masks of one partition.
:py:func:`resolve_all_memberships`:
    Builds the masks of every partition and returns once all are complete.
:py:func:`stack_node_masks`:
    Stacks all node masks into one read-only (n_parts, n_nodes) array.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np
import numpy.typing as npt

from ..errors import DataIntegrityError
from ..femesh.fe_mesh import FEMesh
from .partition import validate_assignment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PartitionMembership:
    """
    Ownership masks of one partition.

    Attributes:
        partition_id (int): The partition these masks belong to.
        elem_mask (np.ndarray): True for elements owned by the partition.
            Shape: `(n_elems,)`, `dtype`: `bool`.
        node_mask (np.ndarray): True for nodes touched by any owned element.
            Shape: `(n_nodes,)`, `dtype`: `bool`.
        n_elems (int): Number of owned elements.
        n_nodes (int): Number of owned or shared nodes.
    """

    partition_id: int
    elem_mask: np.ndarray
    node_mask: np.ndarray
    n_elems: int
    n_nodes: int


def resolve_membership(
    mesh: FEMesh, assignment: npt.ArrayLike, partition_id: int
) -> PartitionMembership:
    """
    Marks the elements and nodes of one partition.

    Elements are scanned in block order; an element belongs when
    `assignment[elem] == partition_id`. Every node of an owned element is
    marked, and each node is counted once however many owned elements touch it.

    Args:
        mesh: The monolithic mesh.
        assignment: The element-to-partition array.
        partition_id: The partition to resolve.

    Returns:
        The PartitionMembership of `partition_id`.
    """
    parts = np.asarray(assignment, dtype=int).reshape(-1)
    if parts.size != mesh.n_elems:
        raise DataIntegrityError(
            f"Assignment has {parts.size} entries for {mesh.n_elems} elements."
        )
    elem_mask = parts == partition_id

    # Expand the element mask over the CSR element-to-node table.
    counts = np.diff(mesh.elem_node_ptr)
    touched = mesh.elem_node_list[np.repeat(elem_mask, counts)]

    node_mask = np.zeros(mesh.n_nodes, dtype=bool)
    node_mask[touched] = True

    elem_mask.setflags(write=False)
    node_mask.setflags(write=False)
    membership = PartitionMembership(
        partition_id=partition_id,
        elem_mask=elem_mask,
        node_mask=node_mask,
        n_elems=int(np.count_nonzero(elem_mask)),
        n_nodes=int(np.count_nonzero(node_mask)),
    )
    logger.debug(
        "Partition %d: %d elements, %d nodes.",
        partition_id,
        membership.n_elems,
        membership.n_nodes,
    )
    return membership


def resolve_all_memberships(
    mesh: FEMesh,
    assignment: npt.ArrayLike,
    n_parts: int,
    max_workers: Optional[int] = None,
) -> List[PartitionMembership]:
    """
    Resolves the membership of every partition.

    All masks are complete when this function returns, so callers may read
    other partitions' masks afterwards.

    Args:
        mesh: The monolithic mesh.
        assignment: The element-to-partition array.
        n_parts: The number of partitions.
        max_workers: If greater than 1, partitions are resolved on a thread pool.

    Returns:
        A list of PartitionMembership, indexed by partition id.
    """
    parts = validate_assignment(assignment, mesh.n_elems, n_parts)
    if max_workers is None or max_workers <= 1:
        return [resolve_membership(mesh, parts, p) for p in range(n_parts)]

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        return list(executor.map(lambda p: resolve_membership(mesh, parts, p), range(n_parts)))


def stack_node_masks(memberships: Sequence[PartitionMembership]) -> npt.NDArray[np.bool_]:
    """Returns the read-only (n_parts, n_nodes) stack of all node masks."""
    masks = np.vstack([m.node_mask for m in memberships])
    masks.setflags(write=False)
    return masks
