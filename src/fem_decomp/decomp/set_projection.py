# -*- coding: utf-8 -*-
"""
Restriction of node-sets and side-sets to one partition.

A partition keeps the node-set entries whose node it contains and the side-set
entries whose element it owns, renumbered to its local indices. Entry and
distance-factor counts are recomputed rather than copied: a node-set entry
carries one distance factor, a side-set entry carries one per node of its side,
so side-set counts depend on the element type of every retained entry.

Flattened outputs (`ConcatenatedSets`) are produced in two passes: per-set
sizes and prefix-sum offsets first, then the fill.
"""

from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

import numpy as np
import numpy.typing as npt

from ..errors import DataIntegrityError
from ..femesh.fe_mesh import NodeSet, SideSet
from .index_map import LocalIndexMap

SideNodeCount = Callable[[int, int], int]


@dataclass(frozen=True)
class RestrictedSet:
    """
    A node-set or side-set restricted to one partition.

    Attributes:
        set_id (int): Id of the global set.
        entries (np.ndarray): Local node ids (node-sets) or local element ids
            (side-sets) of the retained entries.
        entry_dist_counts (np.ndarray): Distance factors carried by each entry.
        dist_factors (np.ndarray): Flattened distance factors of all entries.
        sides (np.ndarray, optional): 1-based side of each entry (side-sets only).
        name (str): Name of the global set.
    """

    set_id: int
    entries: np.ndarray
    entry_dist_counts: np.ndarray
    dist_factors: np.ndarray
    sides: Optional[np.ndarray] = None
    name: str = ""

    @property
    def n_entries(self) -> int:
        return int(self.entries.size)

    @property
    def n_dist_factors(self) -> int:
        return int(np.sum(self.entry_dist_counts))


@dataclass(frozen=True)
class ConcatenatedSets:
    """
    All restricted sets of one kind, flattened.

    `entry_index[i]` and `dist_index[i]` are the offsets of set i into
    `entry_list` and `dist_fact_list`. `extra_list` holds the sides of
    side-sets and is None for node-sets.
    """

    set_ids: np.ndarray
    names: List[str]
    num_entries_per_set: np.ndarray
    num_dist_per_set: np.ndarray
    entry_index: np.ndarray
    dist_index: np.ndarray
    entry_list: np.ndarray
    extra_list: Optional[np.ndarray]
    dist_fact_list: np.ndarray

    @property
    def n_sets(self) -> int:
        return int(self.set_ids.size)

    def entries_of(self, i: int) -> npt.NDArray[np.int_]:
        start = self.entry_index[i]
        return self.entry_list[start : start + self.num_entries_per_set[i]]

    def sides_of(self, i: int) -> npt.NDArray[np.int_]:
        if self.extra_list is None:
            raise ValueError("Node-sets carry no sides.")
        start = self.entry_index[i]
        return self.extra_list[start : start + self.num_entries_per_set[i]]

    def dist_factors_of(self, i: int) -> npt.NDArray[np.float64]:
        start = self.dist_index[i]
        return self.dist_fact_list[start : start + self.num_dist_per_set[i]]


def _check_bounds(indices: np.ndarray, n: int, what: str, set_id: int) -> None:
    bad = np.flatnonzero((indices < 0) | (indices >= n))
    if bad.size > 0:
        raise DataIntegrityError(
            f"Set {set_id} references {what} {int(indices[bad[0]])}, outside [0, {n})."
        )


def project_node_set(
    node_set: NodeSet, node_mask: npt.ArrayLike, node_map: LocalIndexMap
) -> RestrictedSet:
    """
    Restricts a node-set to the nodes of one partition.

    Args:
        node_set: The global node-set.
        node_mask: The partition's node mask.
        node_map: The partition's node map (global to local).

    Returns:
        The RestrictedSet; each retained node keeps its own distance factor
        (1.0 when the global set has none).

    Raises:
        DataIntegrityError: If an entry is out of bounds or a retained node has
            no local index.
    """
    node_mask = np.asarray(node_mask, dtype=bool)
    nodes = np.asarray(node_set.nodes, dtype=int)
    _check_bounds(nodes, node_mask.size, "node", node_set.set_id)

    keep = node_mask[nodes]
    local = node_map.remap(nodes[keep])
    if node_set.dist_factors.size > 0:
        dist = np.asarray(node_set.dist_factors, dtype=float)[keep]
    else:
        dist = np.ones(local.size, dtype=float)

    return RestrictedSet(
        set_id=node_set.set_id,
        entries=local,
        entry_dist_counts=np.ones(local.size, dtype=int),
        dist_factors=dist,
        name=node_set.name,
    )


def project_side_set(
    side_set: SideSet,
    elem_mask: npt.ArrayLike,
    elem_map: LocalIndexMap,
    side_node_count: SideNodeCount,
) -> RestrictedSet:
    """
    Restricts a side-set to the elements owned by one partition.

    Args:
        side_set: The global side-set.
        elem_mask: The partition's element mask.
        elem_map: The partition's element map (global to local).
        side_node_count: Callable (global element, side) -> nodes on that side.

    Returns:
        The RestrictedSet of (local element, side) pairs; its distance-factor
        count is the sum of the retained sides' node counts.

    Raises:
        DataIntegrityError: If an entry is out of bounds, a side is invalid for
            its element type, or the global distance factors do not match the
            side node counts.
    """
    elem_mask = np.asarray(elem_mask, dtype=bool)
    elems = np.asarray(side_set.elems, dtype=int)
    sides = np.asarray(side_set.sides, dtype=int)
    _check_bounds(elems, elem_mask.size, "element", side_set.set_id)

    # Nodes per side of every global entry, so that global distance factors
    # can be located by prefix sums.
    per_side = np.array(
        [side_node_count(int(e), int(s)) for e, s in zip(elems, sides)], dtype=int
    )
    offsets = np.concatenate(([0], np.cumsum(per_side))).astype(int)
    has_dist = side_set.dist_factors.size > 0
    if has_dist and side_set.dist_factors.size != offsets[-1]:
        raise DataIntegrityError(
            f"Side-set {side_set.set_id} has {side_set.dist_factors.size} distance "
            f"factors, its sides hold {int(offsets[-1])} nodes."
        )

    keep = np.flatnonzero(elem_mask[elems])
    counts = per_side[keep]
    if has_dist and keep.size > 0:
        dist = np.concatenate(
            [side_set.dist_factors[offsets[j] : offsets[j + 1]] for j in keep]
        ).astype(float)
    else:
        dist = np.ones(int(np.sum(counts)), dtype=float)

    return RestrictedSet(
        set_id=side_set.set_id,
        entries=elem_map.remap(elems[keep]),
        entry_dist_counts=counts,
        dist_factors=dist,
        sides=sides[keep].copy(),
        name=side_set.name,
    )


def concatenate_sets(restricted_sets: Sequence[RestrictedSet]) -> ConcatenatedSets:
    """
    Flattens restricted sets into contiguous entry and distance-factor lists.

    Sizes and offsets of every set are computed before any list is filled.

    Raises:
        DataIntegrityError: If the filled lists disagree with the computed sizes.
    """
    num_entries = np.array([s.n_entries for s in restricted_sets], dtype=int)
    num_dist = np.array([s.n_dist_factors for s in restricted_sets], dtype=int)
    entry_index = np.concatenate(([0], np.cumsum(num_entries)[:-1])).astype(int)
    dist_index = np.concatenate(([0], np.cumsum(num_dist)[:-1])).astype(int)
    if not restricted_sets:
        entry_index = dist_index = np.array([], dtype=int)

    total_entries = int(num_entries.sum())
    total_dist = int(num_dist.sum())
    is_side = any(s.sides is not None for s in restricted_sets)

    entry_list = np.zeros(total_entries, dtype=int)
    extra_list = np.zeros(total_entries, dtype=int) if is_side else None
    dist_fact_list = np.zeros(total_dist, dtype=float)

    for i, rset in enumerate(restricted_sets):
        if rset.dist_factors.size != num_dist[i]:
            raise DataIntegrityError(
                f"Set {rset.set_id}: {rset.dist_factors.size} distance factors, "
                f"expected {int(num_dist[i])}."
            )
        e0, d0 = entry_index[i], dist_index[i]
        entry_list[e0 : e0 + num_entries[i]] = rset.entries
        if extra_list is not None:
            extra_list[e0 : e0 + num_entries[i]] = rset.sides
        dist_fact_list[d0 : d0 + num_dist[i]] = rset.dist_factors

    return ConcatenatedSets(
        set_ids=np.array([s.set_id for s in restricted_sets], dtype=int),
        names=[s.name for s in restricted_sets],
        num_entries_per_set=num_entries,
        num_dist_per_set=num_dist,
        entry_index=entry_index,
        dist_index=dist_index,
        entry_list=entry_list,
        extra_list=extra_list,
        dist_fact_list=dist_fact_list,
    )


def project_node_sets(
    node_sets: Sequence[NodeSet], node_mask: npt.ArrayLike, node_map: LocalIndexMap
) -> ConcatenatedSets:
    """Restricts and flattens all node-sets of a mesh for one partition."""
    return concatenate_sets([project_node_set(s, node_mask, node_map) for s in node_sets])


def project_side_sets(
    side_sets: Sequence[SideSet],
    elem_mask: npt.ArrayLike,
    elem_map: LocalIndexMap,
    side_node_count: SideNodeCount,
) -> ConcatenatedSets:
    """Restricts and flattens all side-sets of a mesh for one partition."""
    return concatenate_sets(
        [project_side_set(s, elem_mask, elem_map, side_node_count) for s in side_sets]
    )


def check_node_set_coverage(
    node_sets: Sequence[NodeSet], node_masks: npt.ArrayLike
) -> None:
    """
    Checks that every node-set entry lies in at least one partition.

    A node no owned element touches would be silently dropped by every
    partition's projection.

    Args:
        node_sets: The global node-sets.
        node_masks: Node masks of all partitions, shape `(n_parts, n_nodes)`.

    Raises:
        DataIntegrityError: Naming the set and the first dangling node.
    """
    masks = np.asarray(node_masks, dtype=bool)
    covered = masks.any(axis=0)
    for node_set in node_sets:
        nodes = np.asarray(node_set.nodes, dtype=int)
        _check_bounds(nodes, covered.size, "node", node_set.set_id)
        dangling = nodes[~covered[nodes]]
        if dangling.size > 0:
            raise DataIntegrityError(
                f"Node-set {node_set.set_id} entry {int(dangling[0])} belongs to no "
                "partition (no owned element references it)."
            )
