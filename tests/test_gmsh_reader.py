import os
import tempfile
import unittest

import gmsh
import numpy as np

from fem_decomp.decomp import DecompositionManager
from fem_decomp.errors import ExternalToolError
from fem_decomp.femesh import FEMesh


def write_unit_square_quads(msh_file: str, n: int = 2) -> None:
    """Writes an n x n transfinite QUAD4 mesh of the unit square with a 'bottom' group."""
    gmsh.initialize()
    gmsh.option.setNumber("General.Verbosity", 0)
    try:
        gmsh.model.add("unit_square")
        p1 = gmsh.model.geo.addPoint(0, 0, 0)
        p2 = gmsh.model.geo.addPoint(1, 0, 0)
        p3 = gmsh.model.geo.addPoint(1, 1, 0)
        p4 = gmsh.model.geo.addPoint(0, 1, 0)
        lines = [
            gmsh.model.geo.addLine(p1, p2),
            gmsh.model.geo.addLine(p2, p3),
            gmsh.model.geo.addLine(p3, p4),
            gmsh.model.geo.addLine(p4, p1),
        ]
        loop = gmsh.model.geo.addCurveLoop(lines)
        surface = gmsh.model.geo.addPlaneSurface([loop])
        for line in lines:
            gmsh.model.geo.mesh.setTransfiniteCurve(line, n + 1)
        gmsh.model.geo.mesh.setTransfiniteSurface(surface)
        gmsh.model.geo.mesh.setRecombine(2, surface)
        gmsh.model.geo.synchronize()

        gmsh.model.addPhysicalGroup(1, [lines[0]], 11)
        gmsh.model.setPhysicalName(1, 11, "bottom")
        gmsh.model.addPhysicalGroup(2, [surface], 1)
        gmsh.model.setPhysicalName(2, 1, "domain")

        gmsh.model.mesh.generate(2)
        gmsh.write(msh_file)
    finally:
        gmsh.finalize()


class TestGmshReader(unittest.TestCase):
    def setUp(self):
        self.tmp_dir = tempfile.TemporaryDirectory()
        self.msh_file = os.path.join(self.tmp_dir.name, "unit_square.msh")
        write_unit_square_quads(self.msh_file, n=2)

    def tearDown(self):
        self.tmp_dir.cleanup()

    def test_read_quad_mesh(self):
        mesh = FEMesh.from_gmsh(self.msh_file)
        self.assertEqual(mesh.dimension, 2)
        self.assertEqual(mesh.n_nodes, 9)
        self.assertEqual(mesh.n_elems, 4)
        self.assertEqual(mesh.n_blocks, 1)
        self.assertEqual(mesh.element_blocks[0].elem_type, "QUAD4")
        self.assertEqual(mesh.element_blocks[0].name, "domain")

    def test_gmsh_tag_id_maps(self):
        mesh = FEMesh.from_gmsh(self.msh_file)
        self.assertEqual(mesh.node_id_map.shape, (9,))
        self.assertEqual(len(np.unique(mesh.node_id_map)), 9)
        self.assertTrue(np.all(mesh.node_id_map >= 0))
        self.assertEqual(mesh.elem_id_map.shape, (4,))
        self.assertEqual(len(np.unique(mesh.elem_id_map)), 4)

    def test_missing_file(self):
        with self.assertRaises(ExternalToolError):
            FEMesh.from_gmsh(os.path.join(self.tmp_dir.name, "missing.msh"))

    def test_boundary_sets(self):
        mesh = FEMesh.from_gmsh(self.msh_file)
        self.assertEqual([s.set_id for s in mesh.node_sets], [11])
        self.assertEqual([s.set_id for s in mesh.side_sets], [11])
        self.assertEqual(mesh.node_sets[0].n_entries, 3)
        self.assertEqual(mesh.side_sets[0].n_entries, 2)

        bottom = mesh.node_sets[0].nodes
        np.testing.assert_allclose(mesh.node_coords[bottom, 1], 0.0)
        for elem, side in zip(mesh.side_sets[0].elems, mesh.side_sets[0].sides):
            nodes = mesh.side_global_nodes(int(elem), int(side))
            np.testing.assert_allclose(mesh.node_coords[nodes, 1], 0.0)

    def test_decompose_read_mesh(self):
        mesh = FEMesh.from_gmsh(self.msh_file)
        bundles = DecompositionManager.create_partitions(
            mesh, n_parts=2, method="hierarchical"
        )
        self.assertEqual(sum(b.n_elems for b in bundles), 4)
        self.assertEqual(
            sum(b.side_sets.num_entries_per_set[0] for b in bundles), 2
        )


if __name__ == "__main__":
    unittest.main()
