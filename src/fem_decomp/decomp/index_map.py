# -*- coding: utf-8 -*-
"""
Global-to-local index maps of a partition.

A `LocalIndexMap` is a bijection between the marked global indices of a mask
(nodes or elements of one partition) and a dense local range
[0, n_local). Initial maps number local entities in ascending global order;
`LocalIndexMap.reorder` renumbers them along any other global order, which is
how the node numbering is made to list internal nodes before boundary nodes.
"""

from dataclasses import dataclass
from typing import Tuple

import numpy as np
import numpy.typing as npt

from ..errors import DataIntegrityError
from .membership import PartitionMembership


@dataclass(frozen=True)
class LocalIndexMap:
    """
    Dense local numbering of a subset of global indices.

    Attributes:
        g2l (np.ndarray): Local index of each global index, -1 if absent.
            Shape: `(n_global,)`, `dtype`: `int`.
        l2g (np.ndarray): Global index of each local index.
            Shape: `(n_local,)`, `dtype`: `int`.
    """

    g2l: np.ndarray
    l2g: np.ndarray

    @classmethod
    def from_mask(cls, mask: npt.ArrayLike) -> "LocalIndexMap":
        """Numbers the marked entries of `mask` in ascending global order."""
        mask = np.asarray(mask, dtype=bool)
        l2g = np.flatnonzero(mask)
        g2l = np.full(mask.size, -1, dtype=int)
        g2l[l2g] = np.arange(l2g.size, dtype=int)
        return cls._frozen(g2l, l2g)

    @classmethod
    def _frozen(cls, g2l: np.ndarray, l2g: np.ndarray) -> "LocalIndexMap":
        g2l.setflags(write=False)
        l2g.setflags(write=False)
        return cls(g2l=g2l, l2g=l2g)

    @property
    def n_local(self) -> int:
        return int(self.l2g.size)

    @property
    def n_global(self) -> int:
        return int(self.g2l.size)

    def contains(self, g: int) -> bool:
        return 0 <= g < self.n_global and self.g2l[g] >= 0

    def to_local(self, g: int) -> int:
        """
        Returns the local index of global index `g`.

        Raises:
            DataIntegrityError: If `g` is out of range or not in this map.
        """
        if not 0 <= g < self.n_global:
            raise DataIntegrityError(
                f"Global index {g} is out of range [0, {self.n_global})."
            )
        local = int(self.g2l[g])
        if local < 0:
            raise DataIntegrityError(f"Global index {g} has no local index in this partition.")
        return local

    def remap(self, global_indices: npt.ArrayLike) -> npt.NDArray[np.int_]:
        """
        Vectorized `to_local`.

        Raises:
            DataIntegrityError: Naming the first unmapped global index.
        """
        g = np.asarray(global_indices, dtype=int)
        out_of_range = (g < 0) | (g >= self.n_global)
        if np.any(out_of_range):
            bad = int(g[out_of_range].flat[0])
            raise DataIntegrityError(
                f"Global index {bad} is out of range [0, {self.n_global})."
            )
        local = self.g2l[g]
        if np.any(local < 0):
            bad = int(g[local < 0].flat[0])
            raise DataIntegrityError(f"Global index {bad} has no local index in this partition.")
        return local

    def reorder(self, global_order: npt.ArrayLike) -> "LocalIndexMap":
        """
        Returns a new map whose local numbering follows `global_order`.

        Args:
            global_order: The global indices in their new local order. Must be
                a permutation of the indices already in this map.

        Raises:
            DataIntegrityError: If `global_order` is not such a permutation.
        """
        order = np.asarray(global_order, dtype=int).reshape(-1)
        if order.size != self.n_local:
            raise DataIntegrityError(
                f"Reordering lists {order.size} indices for a map of {self.n_local}."
            )
        current = self.remap(order)
        if np.unique(current).size != order.size:
            raise DataIntegrityError("Reordering lists a global index more than once.")

        g2l = np.full(self.n_global, -1, dtype=int)
        g2l[order] = np.arange(order.size, dtype=int)
        return LocalIndexMap._frozen(g2l, order.copy())

    def check_round_trip(self) -> None:
        """
        Verifies `l2g[g2l[g]] == g` for every mapped g and the count of mapped entries.

        Raises:
            DataIntegrityError: If the map is not a bijection.
        """
        mapped = np.flatnonzero(self.g2l >= 0)
        if mapped.size != self.n_local:
            raise DataIntegrityError(
                f"Local numbering count mismatch: {mapped.size} mapped globals, "
                f"{self.n_local} locals."
            )
        broken = mapped[self.l2g[self.g2l[mapped]] != mapped]
        if broken.size > 0:
            raise DataIntegrityError(
                f"Global index {int(broken[0])} does not round-trip through its local index."
            )


def map_indices(mask: npt.ArrayLike) -> LocalIndexMap:
    """Returns the ascending local numbering of a node or element mask."""
    index_map = LocalIndexMap.from_mask(mask)
    index_map.check_round_trip()
    return index_map


def map_partition_indices(
    membership: PartitionMembership,
) -> Tuple[LocalIndexMap, LocalIndexMap]:
    """
    Builds the node and element maps of a partition.

    Returns:
        A tuple (node_map, elem_map).

    Raises:
        DataIntegrityError: If a map size disagrees with the membership counts.
    """
    node_map = map_indices(membership.node_mask)
    elem_map = map_indices(membership.elem_mask)
    if node_map.n_local != membership.n_nodes or elem_map.n_local != membership.n_elems:
        raise DataIntegrityError(
            f"Partition {membership.partition_id}: index maps hold "
            f"{node_map.n_local} nodes / {elem_map.n_local} elements, membership "
            f"counted {membership.n_nodes} / {membership.n_elems}."
        )
    return node_map, elem_map
