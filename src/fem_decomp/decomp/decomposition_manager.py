# -*- coding: utf-8 -*-
"""
A manager for decomposing a monolithic mesh into partition bundles.

This module provides the `DecompositionManager` class, which takes a
global `FEMesh`, partitions it (or accepts a given element assignment),
resolves the membership of every partition, and builds one `PartitionBundle`
per partition.

The run has two phases separated by a barrier. Phase 1 computes the element
and node masks of all partitions. Phase 2 reads those masks (its own and the
other partitions') to build index maps, communication maps and restricted
sets. Either phase may run on a thread pool; any failure aborts the run.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import numpy.typing as npt

from ..errors import ConfigurationError
from ..femesh.fe_mesh import FEMesh
from .comm_map import CommunicationMap, build_comm_map, verify_comm_map_symmetry
from .local_partition import PartitionBundle
from .membership import PartitionMembership, resolve_all_memberships, stack_node_masks
from .partition import (
    PARTITION_METHODS,
    check_partition_count,
    partition_mesh,
    print_partition_summary,
    use_recursive_bisection,
    validate_assignment,
)
from .set_projection import check_node_set_coverage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DecompositionOptions:
    """
    Options of a decomposition run.

    Attributes:
        n_parts: Number of partitions. Inferred from the assignment when one
            is given without it.
        method: Partitioning method, 'metis' or 'hierarchical'.
        mode: METIS strategy, 'auto', 'recursive' or 'kway'.
        contiguous: Ask METIS for contiguous partitions.
        block_weights: Optional {block_id: weight} used for element weights.
        max_workers: Thread pool size; None or 1 runs sequentially.
        check_symmetry: Cross-check the communication maps of all partitions.
    """

    n_parts: Optional[int] = None
    method: str = "metis"
    mode: str = "auto"
    contiguous: bool = True
    block_weights: Optional[Dict[int, int]] = None
    max_workers: Optional[int] = None
    check_symmetry: bool = True

    def validate(self, mesh: FEMesh, has_assignment: bool = False) -> None:
        """
        Checks the options against a mesh before any partition work starts.

        Raises:
            ConfigurationError: On the first invalid option.
        """
        if not has_assignment or self.n_parts is not None:
            check_partition_count(self.n_parts, mesh.n_elems)
        if self.method not in PARTITION_METHODS:
            raise ConfigurationError(
                f"Partition method '{self.method}' not supported; "
                f"expected one of {PARTITION_METHODS}."
            )
        use_recursive_bisection(self.n_parts or 1, self.mode)
        if self.max_workers is not None and self.max_workers < 1:
            raise ConfigurationError(f"max_workers must be >= 1, got {self.max_workers}.")
        if self.block_weights:
            known = {b.block_id for b in mesh.element_blocks}
            unknown = sorted(set(self.block_weights) - known)
            if unknown:
                raise ConfigurationError(f"Weights given for unknown element blocks {unknown}.")


class DecompositionManager:
    """
    Manages the decomposition of a global mesh into partition bundles.
    This class is designed as a stateless manager, providing class methods
    to perform partitioning and bundle creation tasks.
    """

    @staticmethod
    def _map(func, items: Sequence, max_workers: Optional[int]) -> List:
        """Applies `func` to every item, on a thread pool when max_workers > 1."""
        if max_workers is None or max_workers <= 1:
            return [func(item) for item in items]
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            return list(executor.map(func, items))

    @staticmethod
    def _resolve_assignment(
        mesh: FEMesh,
        options: DecompositionOptions,
        assignment: Optional[npt.ArrayLike],
    ) -> Tuple[np.ndarray, int]:
        """Returns the validated element assignment and the partition count."""
        if assignment is None:
            parts = partition_mesh(
                mesh,
                options.n_parts,
                method=options.method,
                mode=options.mode,
                block_weights=options.block_weights,
                contiguous=options.contiguous,
            )
            print_partition_summary(parts)
            return parts, int(options.n_parts)

        parts = np.asarray(assignment, dtype=int).reshape(-1)
        n_parts = options.n_parts
        if n_parts is None:
            n_parts = int(np.max(parts) + 1) if parts.size > 0 else 0
            check_partition_count(n_parts, mesh.n_elems)
        return validate_assignment(parts, mesh.n_elems, n_parts), int(n_parts)

    @staticmethod
    def build_comm_maps(
        memberships: Sequence[PartitionMembership],
        max_workers: Optional[int] = None,
    ) -> List[CommunicationMap]:
        """
        Builds the communication map of every partition.

        All memberships must be complete; their node masks are stacked into
        one read-only array shared by every partition's task.
        """
        node_masks = stack_node_masks(memberships)
        return DecompositionManager._map(
            lambda m: build_comm_map(node_masks, m.partition_id),
            memberships,
            max_workers,
        )

    @classmethod
    def create_partitions(
        cls,
        global_mesh: FEMesh,
        n_parts: Optional[int] = None,
        assignment: Optional[npt.ArrayLike] = None,
        method: str = "metis",
        mode: str = "auto",
        block_weights: Optional[Dict[int, int]] = None,
        contiguous: bool = True,
        max_workers: Optional[int] = None,
        check_symmetry: bool = True,
    ) -> List[PartitionBundle]:
        """
        Partitions a global mesh and creates one bundle per partition.

        Args:
            global_mesh: The complete, monolithic mesh.
            n_parts: The desired number of partitions. Required if `assignment`
                is not provided.
            assignment: Optional element-to-partition array. If provided
                without `n_parts`, the partition count is inferred.
            method: The algorithm to use for partitioning if needed.
            mode: METIS strategy: 'auto', 'recursive' or 'kway'.
            block_weights: Optional {block_id: weight} for element weights.
            contiguous: Ask METIS for contiguous partitions.
            max_workers: Thread pool size for the per-partition work.
            check_symmetry: Verify that all communication maps agree pairwise.

        Returns:
            A list of PartitionBundle objects, indexed by partition id. Every
            partition gets a bundle, even one that owns no elements.

        Raises:
            ConfigurationError: For invalid options, before any partition work.
            DataIntegrityError: For inconsistent mesh data or assignments.
            ExternalToolError: If the partitioner fails.
        """
        options = DecompositionOptions(
            n_parts=n_parts,
            method=method,
            mode=mode,
            contiguous=contiguous,
            block_weights=block_weights,
            max_workers=max_workers,
            check_symmetry=check_symmetry,
        )
        options.validate(global_mesh, has_assignment=assignment is not None)
        return cls.decompose(global_mesh, options, assignment)

    @classmethod
    def decompose(
        cls,
        global_mesh: FEMesh,
        options: DecompositionOptions,
        assignment: Optional[npt.ArrayLike] = None,
    ) -> List[PartitionBundle]:
        """Runs a decomposition with already validated options."""
        parts, n_parts = cls._resolve_assignment(global_mesh, options, assignment)
        logger.info(
            "Decomposing %d elements / %d nodes into %d partitions.",
            global_mesh.n_elems,
            global_mesh.n_nodes,
            n_parts,
        )

        # Phase 1: every mask is complete before any communication map is built.
        memberships = resolve_all_memberships(
            global_mesh, parts, n_parts, max_workers=options.max_workers
        )
        check_node_set_coverage(global_mesh.node_sets, stack_node_masks(memberships))

        # Phase 2: per-partition maps, projections and bundles.
        comm_maps = cls.build_comm_maps(memberships, options.max_workers)
        if options.check_symmetry:
            verify_comm_map_symmetry(comm_maps)

        bundles = cls._map(
            lambda p: PartitionBundle.from_global_mesh(
                global_mesh, memberships[p], comm_maps[p], n_parts
            ),
            range(n_parts),
            options.max_workers,
        )
        logger.info(
            "Decomposition complete: %d boundary nodes in total, max %d neighbors.",
            sum(b.load_balance.boundary_count for b in bundles),
            max((b.load_balance.neighbor_count for b in bundles), default=0),
        )
        return bundles
