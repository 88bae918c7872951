# -*- coding: utf-8 -*-
"""
Mesh partitioning tools.

This module assigns every element of a monolithic mesh to one of `n_parts`
partitions. Partitioning itself is delegated to METIS (through `pymetis`);
a hierarchical coordinate bisection is available for runs without METIS.

Key Features
------------
- Recursive bisection or direct k-way METIS partitioning, selected
  automatically from the partition count or forced by a mode flag.
- Per-element weights derived from element block weights.
- Validation of any assignment before it is used by the decomposition.

Functions
---------
:py:func:`partition_mesh`:
    Partitions a mesh into a specified number of parts.
:py:func:`partition_graph`:
    Partitions an adjacency graph with METIS.
:py:func:`use_recursive_bisection`:
    Resolves the METIS strategy for a partition count and mode.
:py:func:`validate_assignment`:
    Checks an element-to-partition array.
:py:func:`print_partition_summary`:
    Prints a summary of the element distribution across partitions.
"""

import logging
import warnings
from typing import Dict, Optional

import numpy as np
import numpy.typing as npt
from scipy.sparse.csgraph import connected_components

from ..errors import ConfigurationError, DataIntegrityError, ExternalToolError
from ..femesh.adjacency import AdjacencyGraph, build_adjacency_graph, element_weights
from ..femesh.fe_mesh import FEMesh

try:
    import pymetis
except ImportError:
    pymetis = None

logger = logging.getLogger(__name__)

# From this partition count on, "auto" mode switches to k-way partitioning.
KWAY_THRESHOLD = 8

PARTITION_METHODS = ("metis", "hierarchical")
PARTITION_MODES = ("auto", "recursive", "kway")


def use_recursive_bisection(n_parts: int, mode: str = "auto") -> bool:
    """
    Returns True when METIS should use recursive bisection.

    Args:
        n_parts: The number of partitions.
        mode: 'auto' (k-way from KWAY_THRESHOLD parts on), 'recursive' or 'kway'.

    Raises:
        ConfigurationError: If the mode is unknown.
    """
    if mode == "recursive":
        return True
    if mode == "kway":
        return False
    if mode == "auto":
        return n_parts < KWAY_THRESHOLD
    raise ConfigurationError(
        f"Partition mode '{mode}' not supported; expected one of {PARTITION_MODES}."
    )


def check_partition_count(n_parts: Optional[int], n_elems: int) -> None:
    """
    Raises ConfigurationError unless 1 <= n_parts <= n_elems.
    """
    if n_parts is None or int(n_parts) <= 0:
        raise ConfigurationError(f"n_parts must be a positive integer, got {n_parts}.")
    if n_parts > n_elems:
        raise ConfigurationError(
            f"Cannot split {n_elems} elements into {n_parts} non-empty partitions."
        )


def validate_assignment(
    assignment: npt.ArrayLike, n_elems: int, n_parts: int
) -> npt.NDArray[np.int_]:
    """
    Checks that every element has exactly one owner in [0, n_parts).

    Returns:
        The assignment as an integer array.

    Raises:
        DataIntegrityError: On a length mismatch or an out-of-range partition id.
    """
    parts = np.asarray(assignment, dtype=int).reshape(-1)
    if parts.size != n_elems:
        raise DataIntegrityError(
            f"Assignment has {parts.size} entries for {n_elems} elements."
        )
    bad = np.flatnonzero((parts < 0) | (parts >= n_parts))
    if bad.size > 0:
        raise DataIntegrityError(
            f"Element {int(bad[0])} is assigned to partition {int(parts[bad[0]])}, "
            f"outside [0, {n_parts})."
        )
    return parts


def partition_mesh(
    mesh: FEMesh,
    n_parts: int,
    method: str = "metis",
    mode: str = "auto",
    block_weights: Optional[Dict[int, int]] = None,
    contiguous: bool = True,
) -> np.ndarray:
    """
    Partitions mesh elements into a specified number of parts.

    Args:
        mesh: The mesh object to partition.
        n_parts: The number of partitions.
        method: The partitioning method ('metis' or 'hierarchical').
        mode: METIS strategy: 'auto', 'recursive' or 'kway'.
        block_weights: Optional map of {block_id: weight} for element weights.
        contiguous: Ask METIS for contiguous partitions.

    Returns:
        A numpy array of partition IDs for each element.

    Raises:
        ConfigurationError: For an invalid partition count, method or mode.
        ExternalToolError: If METIS is unavailable or fails.
    """
    check_partition_count(n_parts, mesh.n_elems)
    if method not in PARTITION_METHODS:
        raise ConfigurationError(
            f"Partition method '{method}' not supported; expected one of {PARTITION_METHODS}."
        )
    use_recursive_bisection(n_parts, mode)

    if n_parts == 1:
        return np.zeros(mesh.n_elems, dtype=int)

    if method == "metis":
        graph = build_adjacency_graph(mesh, block_weights)
        parts = partition_graph(graph, n_parts, mode=mode, contiguous=contiguous)
    else:
        parts = _partition_with_hierarchical(
            mesh, n_parts, element_weights(mesh, block_weights)
        )
    return validate_assignment(parts, mesh.n_elems, n_parts)


def partition_graph(
    graph: AdjacencyGraph, n_parts: int, mode: str = "auto", contiguous: bool = True
) -> np.ndarray:
    """
    Partitions an element graph using METIS, minimizing the weighted edge cut.

    Args:
        graph: The element adjacency graph.
        n_parts: The number of partitions.
        mode: 'auto', 'recursive' or 'kway'.
        contiguous: Request contiguous partitions. Ignored, with a warning,
            when the graph has more than one connected component.

    Returns:
        The element-to-partition array.

    Raises:
        ExternalToolError: If pymetis is unavailable or METIS fails.
    """
    check_partition_count(n_parts, graph.n_elems)
    recursive = use_recursive_bisection(n_parts, mode)
    if n_parts == 1:
        return np.zeros(graph.n_elems, dtype=int)
    if pymetis is None:
        raise ExternalToolError("METIS python binding (pymetis) not available")

    if contiguous:
        n_components, _ = connected_components(graph.matrix, directed=False)
        if n_components > 1:
            logger.warning(
                "Element graph has %d connected components; "
                "partitions will not be forced to be contiguous.",
                n_components,
            )
            contiguous = False

    logger.info(
        "METIS decomposition of %d elements into %d parts using %s.",
        graph.n_elems,
        n_parts,
        "recursive bisection" if recursive else "k-way",
    )
    try:
        edge_cut, parts = pymetis.part_graph(
            n_parts,
            adjacency=pymetis.CSRAdjacency(graph.xadj, graph.adjncy),
            vweights=graph.weights.tolist(),
            recursive=recursive,
            options=pymetis.Options(contig=int(contiguous)),
        )
    except Exception as ex:
        raise ExternalToolError(f"METIS partitioning failed: {ex}") from ex

    logger.debug("METIS edge cut: %d", edge_cut)
    return validate_assignment(parts, graph.n_elems, n_parts)


def _element_centroids(mesh: FEMesh) -> np.ndarray:
    """Computes the centroid of each element."""
    return np.array(
        [np.mean(mesh.node_coords[mesh.elem_nodes(e)], axis=0) for e in range(mesh.n_elems)]
    ).reshape(mesh.n_elems, -1)


def _partition_with_hierarchical(
    mesh: FEMesh, n_parts: int, weights: np.ndarray
) -> np.ndarray:
    """Partitions the mesh using a sequential coordinate bisection method."""
    is_power_of_two = (n_parts > 0) and (n_parts & (n_parts - 1) == 0)
    if not is_power_of_two:
        warnings.warn(
            f"The 'hierarchical' method works best with a power-of-two number of partitions. "
            f"Provided n_parts={n_parts} may result in uneven partitions."
        )

    centroids = _element_centroids(mesh)
    weights = weights.astype(float)
    parts = np.zeros(mesh.n_elems, dtype=int)

    # Iteratively bisect the heaviest partition until the desired number of
    # partitions is reached.
    for i in range(1, n_parts):
        part_weights = np.bincount(parts, weights=weights, minlength=i)
        part_counts = np.bincount(parts, minlength=i)
        splittable = np.flatnonzero(part_counts > 1)
        if splittable.size == 0:
            raise ConfigurationError(
                f"Cannot bisect further: all {i} partitions hold a single element."
            )
        p_to_split = splittable[np.argmax(part_weights[splittable])]
        idxs_to_split = np.flatnonzero(parts == p_to_split)

        # Split along the longest extent of the partition's centroids.
        pts = centroids[idxs_to_split]
        axis = int(np.argmax(pts.max(axis=0) - pts.min(axis=0)))
        order = np.argsort(pts[:, axis], kind="stable")

        # Find the weighted median split point.
        w = weights[idxs_to_split][order]
        cum_w = np.cumsum(w)
        total_w = cum_w[-1]

        split_idx = len(order) // 2
        if total_w > 0:
            split_idx = int(np.searchsorted(cum_w, total_w / 2.0)) + 1

        # Keep at least one element on each side.
        split_idx = min(max(split_idx, 1), len(order) - 1)

        right_indices = idxs_to_split[order[split_idx:]]
        parts[right_indices] = i

    return parts


def print_partition_summary(parts: np.ndarray) -> None:
    """Prints a summary of the element distribution across partitions."""
    if parts.size == 0:
        print("--- Partition Summary ---")
        print("No partitions found.")
        return

    n_parts = int(np.max(parts) + 1)
    counts = np.bincount(parts, minlength=n_parts)

    print("--- Partition Summary ---")
    print(f"Number of partitions: {n_parts}")
    for p, count in enumerate(counts):
        print(f"  Partition {p}: {count} elements")
