# -*- coding: utf-8 -*-
"""
Monolithic finite-element mesh.

This module defines the `FEMesh` class, the read-only input of a domain
decomposition. It stores an Exodus-style mesh: node coordinates, element blocks
(contiguous element ranges that share one element type), node-sets and
side-sets used for boundary conditions.

Key Features:
- Element blocks with per-block connectivity and a flat CSR element-to-node
  incidence table in block order.
- Element-shape queries (block of an element, nodes per side).
- Structured quadrilateral and hexahedral factories with tagged boundaries.
- Reading meshes from Gmsh .msh files.

Classes:
    ElementBlock: One block of elements of a single type.
    NodeSet: A named collection of nodes with optional distance factors.
    SideSet: A named collection of (element, side) pairs.
    FEMesh: The monolithic mesh.
"""

import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import gmsh
import numpy as np
import numpy.typing as npt

from ..errors import DataIntegrityError, ExternalToolError
from . import element_shapes

# Gmsh element type codes whose node ordering matches the side tables.
GMSH_ELEMENT_TYPES: Dict[int, str] = {
    1: "BAR2",
    2: "TRI3",
    3: "QUAD4",
    4: "TET4",
    5: "HEX8",
    6: "WEDGE6",
    8: "BAR3",
    9: "TRI6",
    10: "QUAD9",
    16: "QUAD8",
}


@dataclass(frozen=True)
class ElementBlock:
    """
    A block of elements sharing one element type.

    Attributes:
        block_id (int): The user-facing block identifier.
        elem_type (str): Canonical element type name (e.g. 'QUAD4').
        connectivity (np.ndarray): Global node indices of each element.
            - Shape: `(n_elems, nodes_per_elem)`
            - `dtype`: `int`
        n_attr (int): Number of attributes per element.
        name (str): Optional block name.
    """

    block_id: int
    elem_type: str
    connectivity: np.ndarray
    n_attr: int = 0
    name: str = ""

    @property
    def n_elems(self) -> int:
        return int(self.connectivity.shape[0])

    @property
    def nodes_per_elem(self) -> int:
        if self.connectivity.ndim < 2:
            return element_shapes.NODES_PER_ELEMENT[self.elem_type]
        return int(self.connectivity.shape[1])


@dataclass(frozen=True)
class NodeSet:
    """A node-set: global node indices and one distance factor per node (or none)."""

    set_id: int
    nodes: np.ndarray
    dist_factors: np.ndarray = field(default_factory=lambda: np.array([], dtype=float))
    name: str = ""

    @property
    def n_entries(self) -> int:
        return int(self.nodes.size)


@dataclass(frozen=True)
class SideSet:
    """
    A side-set: (element, side) pairs with flattened per-side distance factors.

    `sides` uses 1-based side numbers. `dist_factors` is either empty or holds
    one value per node of every side, in entry order.
    """

    set_id: int
    elems: np.ndarray
    sides: np.ndarray
    dist_factors: np.ndarray = field(default_factory=lambda: np.array([], dtype=float))
    name: str = ""

    @property
    def n_entries(self) -> int:
        return int(self.elems.size)


def _as_index_array(values: Sequence[int]) -> npt.NDArray[np.int_]:
    return np.asarray(values, dtype=int).reshape(-1)


def _normalize_block(block: ElementBlock) -> ElementBlock:
    """Returns a copy of `block` with a canonical type and a 2D connectivity array."""
    elem_type = element_shapes.normalize_elem_type(block.elem_type)
    n_per = element_shapes.NODES_PER_ELEMENT[elem_type]
    connectivity = np.asarray(block.connectivity, dtype=int)
    if connectivity.size % n_per != 0 or (
        connectivity.ndim == 2 and connectivity.shape[1] != n_per
    ):
        raise DataIntegrityError(
            f"Block {block.block_id} ({elem_type}) connectivity of shape "
            f"{connectivity.shape} does not have {n_per} nodes per element."
        )
    return ElementBlock(
        block_id=block.block_id,
        elem_type=elem_type,
        connectivity=connectivity.reshape(-1, n_per),
        n_attr=block.n_attr,
        name=block.name,
    )


class FEMesh:
    """
    A monolithic Exodus-style finite-element mesh.

    Attributes:
        title (str): Mesh title.
        dimension (int): Spatial dimension (1, 2 or 3).
        n_nodes (int): Global node count.
        n_elems (int): Global element count.
        node_coords (np.ndarray): Node coordinates.
            - Shape: `(n_nodes, dimension)`
            - `dtype`: `float`
        element_blocks (List[ElementBlock]): Element blocks in element order.
        block_ptr (np.ndarray): Start of each block's element range, with the
            total element count appended. Shape: `(n_blocks + 1,)`.
        elem_node_ptr (np.ndarray): CSR row pointer of the element-to-node table.
        elem_node_list (np.ndarray): CSR column indices (global node indices).
        node_sets (List[NodeSet]): Node-sets.
        side_sets (List[SideSet]): Side-sets.
        node_id_map (np.ndarray): 0-based external id of each node. Identity
            unless the source numbers nodes itself (Gmsh tags minus one).
        elem_id_map (np.ndarray): 0-based external id of each element, likewise.
    """

    def __init__(self) -> None:
        self.title: str = ""
        self.dimension: int = 0
        self.n_nodes: int = 0
        self.n_elems: int = 0

        self.node_coords: np.ndarray = np.array([])
        self.element_blocks: List[ElementBlock] = []
        self.block_ptr: np.ndarray = np.zeros(1, dtype=int)

        self.elem_node_ptr: np.ndarray = np.zeros(1, dtype=int)
        self.elem_node_list: np.ndarray = np.array([], dtype=int)

        self.node_sets: List[NodeSet] = []
        self.side_sets: List[SideSet] = []

        self.node_id_map: np.ndarray = np.array([], dtype=int)
        self.elem_id_map: np.ndarray = np.array([], dtype=int)

    # =========================================================================
    # Factories
    # =========================================================================

    @classmethod
    def from_blocks(
        cls,
        node_coords: npt.ArrayLike,
        blocks: Sequence[ElementBlock],
        node_sets: Sequence[NodeSet] = (),
        side_sets: Sequence[SideSet] = (),
        title: str = "",
    ) -> "FEMesh":
        """
        Builds a mesh from coordinates and element blocks.

        Args:
            node_coords: Coordinates of shape `(n_nodes, dimension)`.
            blocks: Element blocks, in global element order.
            node_sets: Optional node-sets.
            side_sets: Optional side-sets.
            title: Optional mesh title.

        Returns:
            A validated FEMesh.

        Raises:
            DataIntegrityError: If any connectivity or set entry is out of range.
        """
        mesh = cls()
        coords = np.asarray(node_coords, dtype=float)
        if coords.ndim == 1:
            coords = coords.reshape(-1, 1)
        mesh.title = title
        mesh.node_coords = coords
        mesh.n_nodes = coords.shape[0]
        mesh.dimension = coords.shape[1]
        mesh.element_blocks = [_normalize_block(b) for b in blocks]
        mesh.node_sets = [
            NodeSet(
                s.set_id,
                _as_index_array(s.nodes),
                np.asarray(s.dist_factors, dtype=float).reshape(-1),
                s.name,
            )
            for s in node_sets
        ]
        mesh.side_sets = [
            SideSet(
                s.set_id,
                _as_index_array(s.elems),
                _as_index_array(s.sides),
                np.asarray(s.dist_factors, dtype=float).reshape(-1),
                s.name,
            )
            for s in side_sets
        ]
        mesh._build_elem_node()
        mesh.node_id_map = np.arange(mesh.n_nodes, dtype=int)
        mesh.elem_id_map = np.arange(mesh.n_elems, dtype=int)
        mesh.validate()
        return mesh

    @classmethod
    def create_structured_quad_mesh(cls, nx: int, ny: int) -> "FEMesh":
        """
        Creates a structured QUAD4 mesh of nx x ny elements with tagged boundaries.

        Boundary node-sets and side-sets share their ids:
        - 1: bottom
        - 2: right
        - 3: top
        - 4: left

        Args:
            nx (int): Number of elements in the x-direction.
            ny (int): Number of elements in the y-direction.

        Returns:
            A new FEMesh instance with a single element block (id 1).
        """
        num_nodes_x = nx + 1
        num_nodes_y = ny + 1

        node_coords = []
        for j in range(num_nodes_y):
            for i in range(num_nodes_x):
                node_coords.append([float(i), float(j)])

        connectivity = []
        for j in range(ny):
            for i in range(nx):
                n0 = j * num_nodes_x + i
                n1 = j * num_nodes_x + (i + 1)
                n2 = (j + 1) * num_nodes_x + (i + 1)
                n3 = (j + 1) * num_nodes_x + i
                connectivity.append([n0, n1, n2, n3])

        mesh = cls.from_blocks(
            node_coords,
            [ElementBlock(1, "QUAD4", np.array(connectivity, dtype=int), name="block_1")],
            title=f"structured quad mesh {nx}x{ny}",
        )
        mesh._add_structured_boundary_sets(["bottom", "right", "top", "left"])
        return mesh

    @classmethod
    def create_structured_hex_mesh(cls, nx: int, ny: int, nz: int) -> "FEMesh":
        """
        Creates a structured HEX8 mesh of nx x ny x nz elements with tagged boundaries.

        Boundary node-sets and side-sets share their ids, which equal the HEX8
        side number facing that boundary:
        - 1: y-min, 2: x-max, 3: y-max, 4: x-min, 5: z-min, 6: z-max
        """
        sx, sy = nx + 1, ny + 1

        def node(i: int, j: int, k: int) -> int:
            return i + j * sx + k * sx * sy

        node_coords = [
            [float(i), float(j), float(k)]
            for k in range(nz + 1)
            for j in range(ny + 1)
            for i in range(nx + 1)
        ]
        connectivity = []
        for k in range(nz):
            for j in range(ny):
                for i in range(nx):
                    connectivity.append(
                        [
                            node(i, j, k),
                            node(i + 1, j, k),
                            node(i + 1, j + 1, k),
                            node(i, j + 1, k),
                            node(i, j, k + 1),
                            node(i + 1, j, k + 1),
                            node(i + 1, j + 1, k + 1),
                            node(i, j + 1, k + 1),
                        ]
                    )

        mesh = cls.from_blocks(
            node_coords,
            [ElementBlock(1, "HEX8", np.array(connectivity, dtype=int), name="block_1")],
            title=f"structured hex mesh {nx}x{ny}x{nz}",
        )
        mesh._add_structured_boundary_sets(
            ["ymin", "xmax", "ymax", "xmin", "zmin", "zmax"]
        )
        return mesh

    @classmethod
    def from_gmsh(cls, msh_file: str, gmsh_verbose: int = 0) -> "FEMesh":
        """
        Creates an FEMesh from a Gmsh .msh file.

        Elements of the top dimension are grouped into one block per (physical
        group, element type); boundary physical groups of dimension - 1 become
        a node-set and a side-set sharing the group's tag.

        Args:
            msh_file (str): The path to the .msh file.
            gmsh_verbose (int): The verbosity level for the Gmsh API (0-10).

        Raises:
            ExternalToolError: If the file does not exist or Gmsh cannot open it.
            DataIntegrityError: If the file holds unsupported elements or
                boundary faces that match no element side.
        """
        if not os.path.isfile(msh_file):
            raise ExternalToolError(f"Mesh file '{msh_file}' not found.")

        gmsh.initialize()
        gmsh.option.setNumber("General.Verbosity", gmsh_verbose)
        try:
            try:
                gmsh.open(msh_file)
            except Exception as ex:
                raise ExternalToolError(f"Gmsh failed to open '{msh_file}': {ex}") from ex
            return cls._from_gmsh_model(msh_file)
        finally:
            gmsh.finalize()

    # =========================================================================
    # Queries
    # =========================================================================

    @property
    def n_blocks(self) -> int:
        return len(self.element_blocks)

    def element_block_of(self, elem: int) -> int:
        """
        Returns the index (not the id) of the block containing element `elem`.

        Raises:
            DataIntegrityError: If `elem` is outside [0, n_elems).
        """
        if not 0 <= elem < self.n_elems:
            raise DataIntegrityError(
                f"Element index {elem} is out of range [0, {self.n_elems})."
            )
        return int(np.searchsorted(self.block_ptr, elem, side="right") - 1)

    def elem_type_of(self, elem: int) -> str:
        return self.element_blocks[self.element_block_of(elem)].elem_type

    def side_node_count(self, elem: int, side: int) -> int:
        """Returns the number of nodes on side `side` (1-based) of element `elem`."""
        return element_shapes.side_node_count(self.elem_type_of(elem), side)

    def elem_nodes(self, elem: int) -> npt.NDArray[np.int_]:
        """Returns the global node indices of element `elem`."""
        if not 0 <= elem < self.n_elems:
            raise DataIntegrityError(
                f"Element index {elem} is out of range [0, {self.n_elems})."
            )
        return self.elem_node_list[self.elem_node_ptr[elem] : self.elem_node_ptr[elem + 1]]

    def side_global_nodes(self, elem: int, side: int) -> List[int]:
        """Returns the global node indices on side `side` of element `elem`."""
        conn = self.elem_nodes(elem)
        return [int(conn[i]) for i in element_shapes.side_nodes(self.elem_type_of(elem), side)]

    def block_elements(self, block_index: int) -> range:
        """Returns the global element range of a block."""
        return range(int(self.block_ptr[block_index]), int(self.block_ptr[block_index + 1]))

    def validate(self) -> None:
        """
        Checks every connectivity and set entry against the mesh bounds, and
        every block's element dimension against the spatial dimension.

        Raises:
            DataIntegrityError: Naming the first offending entry.
        """
        for block in self.element_blocks:
            elem_dim = element_shapes.ELEMENT_DIMENSION[block.elem_type]
            if elem_dim > self.dimension:
                raise DataIntegrityError(
                    f"Block {block.block_id} holds {elem_dim}D {block.elem_type} elements "
                    f"in a {self.dimension}D mesh."
                )

        if self.elem_node_list.size > 0:
            bad = np.flatnonzero(
                (self.elem_node_list < 0) | (self.elem_node_list >= self.n_nodes)
            )
            if bad.size > 0:
                elem = int(np.searchsorted(self.elem_node_ptr, bad[0], side="right") - 1)
                raise DataIntegrityError(
                    f"Element {elem} references node {int(self.elem_node_list[bad[0]])}, "
                    f"outside [0, {self.n_nodes})."
                )

        for node_set in self.node_sets:
            bad = np.flatnonzero((node_set.nodes < 0) | (node_set.nodes >= self.n_nodes))
            if bad.size > 0:
                raise DataIntegrityError(
                    f"Node-set {node_set.set_id} references node "
                    f"{int(node_set.nodes[bad[0]])}, outside [0, {self.n_nodes})."
                )
            if node_set.dist_factors.size not in (0, node_set.nodes.size):
                raise DataIntegrityError(
                    f"Node-set {node_set.set_id} has {node_set.dist_factors.size} "
                    f"distance factors for {node_set.nodes.size} nodes."
                )

        for side_set in self.side_sets:
            if side_set.elems.size != side_set.sides.size:
                raise DataIntegrityError(
                    f"Side-set {side_set.set_id} has {side_set.elems.size} elements "
                    f"but {side_set.sides.size} sides."
                )
            bad = np.flatnonzero((side_set.elems < 0) | (side_set.elems >= self.n_elems))
            if bad.size > 0:
                raise DataIntegrityError(
                    f"Side-set {side_set.set_id} references element "
                    f"{int(side_set.elems[bad[0]])}, outside [0, {self.n_elems})."
                )

    def plot(self, filepath: str = "mesh_plot.png", parts: Optional[np.ndarray] = None) -> None:
        """
        Plots the mesh, optionally colored by partition, and saves it to a file.

        Note: Plotting is currently only supported for 2D meshes.

        Args:
            filepath (str): The path to save the plot image.
            parts (np.ndarray, optional): Partition ID of each element.
        """
        if self.dimension != 2:
            print("Warning: Plotting is currently supported only for 2D meshes.")
            return

        import matplotlib.pyplot as plt
        from ..common.utility import plot_mesh

        cells = [self.elem_nodes(e).tolist() for e in range(self.n_elems)]
        fig, ax = plt.subplots(figsize=(10, 8))
        plot_mesh(ax, self.node_coords, cells, parts=parts, title="Mesh Plot")
        plt.savefig(filepath, dpi=150, bbox_inches="tight")
        plt.close(fig)
        print(f"Mesh plot saved to: {filepath}")

    # =========================================================================
    # Internal construction
    # =========================================================================

    def _build_elem_node(self) -> None:
        """Builds the block pointer and the CSR element-to-node table."""
        sizes = [b.n_elems for b in self.element_blocks]
        self.block_ptr = np.concatenate(([0], np.cumsum(sizes, dtype=int))).astype(int)
        self.n_elems = int(self.block_ptr[-1])

        counts = np.concatenate(
            [np.full(b.n_elems, b.nodes_per_elem, dtype=int) for b in self.element_blocks]
            or [np.array([], dtype=int)]
        )
        self.elem_node_ptr = np.concatenate(([0], np.cumsum(counts, dtype=int))).astype(int)
        self.elem_node_list = np.concatenate(
            [b.connectivity.reshape(-1) for b in self.element_blocks]
            or [np.array([], dtype=int)]
        ).astype(int)

    def _boundary_sides(self) -> List[Tuple[int, int]]:
        """Returns the (element, side) pairs whose side no other element shares."""
        face_to_sides: Dict[Tuple[int, ...], List[Tuple[int, int]]] = {}
        for elem in range(self.n_elems):
            elem_type = self.elem_type_of(elem)
            for side in range(1, element_shapes.num_sides(elem_type) + 1):
                key = tuple(sorted(self.side_global_nodes(elem, side)))
                face_to_sides.setdefault(key, []).append((elem, side))
        return sorted(
            entries[0] for entries in face_to_sides.values() if len(entries) == 1
        )

    def _add_structured_boundary_sets(self, names: List[str]) -> None:
        """Tags boundary sides of a structured mesh: set id == side number."""
        by_side: Dict[int, List[Tuple[int, int]]] = {s: [] for s in range(1, len(names) + 1)}
        for elem, side in self._boundary_sides():
            by_side[side].append((elem, side))

        for side, entries in by_side.items():
            elems = np.array([e for e, _ in entries], dtype=int)
            sides = np.array([s for _, s in entries], dtype=int)
            nodes = np.unique(
                [n for e, s in entries for n in self.side_global_nodes(e, s)]
            ).astype(int)
            self.node_sets.append(
                NodeSet(side, nodes, np.ones(nodes.size, dtype=float), names[side - 1])
            )
            self.side_sets.append(SideSet(side, elems, sides, name=names[side - 1]))

    @classmethod
    def _from_gmsh_model(cls, msh_file: str) -> "FEMesh":
        """Reads the currently open Gmsh model."""
        raw_tags, raw_coords, _ = gmsh.model.mesh.getNodes()
        tag_to_index = {int(t): i for i, t in enumerate(raw_tags)}
        dimension = gmsh.model.getDimension()
        node_coords = np.array(raw_coords, dtype=float).reshape(-1, 3)[:, :dimension]

        def to_indices(tags: Sequence[int]) -> List[int]:
            try:
                return [tag_to_index[int(t)] for t in tags]
            except KeyError as e:
                raise DataIntegrityError(
                    f"Mesh data inconsistency: node tag {e} in '{msh_file}' "
                    "was not found in the global node list."
                ) from e

        # --- Element blocks ---
        groups: List[Tuple[int, str, List[int]]] = []
        for dim, tag in gmsh.model.getPhysicalGroups(dimension):
            name = gmsh.model.getPhysicalName(dim, tag) or str(tag)
            groups.append((tag, name, list(gmsh.model.getEntitiesForPhysicalGroup(dim, tag))))
        if not groups:
            entities = [ent for _, ent in gmsh.model.getEntities(dimension)]
            groups.append((1, "", entities))

        blocks: List[ElementBlock] = []
        block_elem_tags: List[int] = []
        seen_elements = set()
        for group_tag, group_name, entities in groups:
            conn_by_type: Dict[int, List[List[int]]] = {}
            tags_by_type: Dict[int, List[int]] = {}
            for ent in entities:
                elem_types, elem_tags, node_tags = gmsh.model.mesh.getElements(dimension, ent)
                for i, etype in enumerate(elem_types):
                    etype = int(etype)
                    if etype not in GMSH_ELEMENT_TYPES:
                        name = gmsh.model.mesh.getElementProperties(etype)[0]
                        raise DataIntegrityError(
                            f"Unsupported Gmsh element type {etype} ('{name}') in '{msh_file}'."
                        )
                    n_per = element_shapes.NODES_PER_ELEMENT[GMSH_ELEMENT_TYPES[etype]]
                    raw_conn = np.array(node_tags[i], dtype=int).reshape(-1, n_per)
                    for elem_tag, conn in zip(elem_tags[i], raw_conn):
                        if int(elem_tag) in seen_elements:
                            continue
                        seen_elements.add(int(elem_tag))
                        conn_by_type.setdefault(etype, []).append(to_indices(conn))
                        tags_by_type.setdefault(etype, []).append(int(elem_tag))
            for etype, conn in sorted(conn_by_type.items()):
                block_elem_tags.extend(tags_by_type[etype])
                blocks.append(
                    ElementBlock(
                        block_id=len(blocks) + 1,
                        elem_type=GMSH_ELEMENT_TYPES[etype],
                        connectivity=np.array(conn, dtype=int),
                        name=group_name or f"block_{len(blocks) + 1}",
                    )
                )

        mesh = cls.from_blocks(node_coords, blocks, title=msh_file)
        # Gmsh tags are 1-based ids.
        mesh.node_id_map = np.asarray(raw_tags, dtype=int) - 1
        mesh.elem_id_map = np.array(block_elem_tags, dtype=int) - 1

        # --- Boundary sets ---
        bdim = dimension - 1
        if bdim < 0:
            return mesh

        side_lookup: Dict[frozenset, Tuple[int, int]] = {}
        for elem in range(mesh.n_elems):
            elem_type = mesh.elem_type_of(elem)
            for side in range(1, element_shapes.num_sides(elem_type) + 1):
                side_lookup.setdefault(
                    frozenset(mesh.side_global_nodes(elem, side)), (elem, side)
                )

        for dim, tag in gmsh.model.getPhysicalGroups(bdim):
            name = gmsh.model.getPhysicalName(dim, tag) or str(tag)
            node_tags, _ = gmsh.model.mesh.getNodesForPhysicalGroup(dim, tag)
            nodes = np.unique(to_indices(node_tags)).astype(int)

            entries: List[Tuple[int, int]] = []
            for ent in gmsh.model.getEntitiesForPhysicalGroup(dim, tag):
                elem_types, _, face_tags = gmsh.model.mesh.getElements(dim, ent)
                for i, etype in enumerate(elem_types):
                    n_face_nodes = int(gmsh.model.mesh.getElementProperties(etype)[3])
                    for face in np.array(face_tags[i], dtype=int).reshape(-1, n_face_nodes):
                        key = frozenset(to_indices(face))
                        if key not in side_lookup:
                            raise DataIntegrityError(
                                f"Boundary face {sorted(key)} of group '{name}' matches "
                                "no element side."
                            )
                        entries.append(side_lookup[key])
            entries.sort()

            mesh.node_sets.append(
                NodeSet(tag, nodes, np.ones(nodes.size, dtype=float), name)
            )
            if entries:
                mesh.side_sets.append(
                    SideSet(
                        tag,
                        np.array([e for e, _ in entries], dtype=int),
                        np.array([s for _, s in entries], dtype=int),
                        name=name,
                    )
                )

        mesh.validate()
        return mesh
