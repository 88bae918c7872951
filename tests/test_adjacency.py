import unittest

import numpy as np

from fem_decomp.errors import DataIntegrityError
from fem_decomp.femesh import FEMesh, build_adjacency_graph
from fem_decomp.femesh.adjacency import element_weights
from tests.common_meshes import create_mixed_block_mesh_fixture


class TestAdjacencyGraph(unittest.TestCase):
    def test_quad_grid_neighbors(self):
        """Interior elements of a 3x3 grid have four side neighbors."""
        mesh = FEMesh.create_structured_quad_mesh(3, 3)
        graph = build_adjacency_graph(mesh)
        self.assertEqual(graph.n_elems, 9)
        np.testing.assert_array_equal(graph.neighbors(4), [1, 3, 5, 7])
        np.testing.assert_array_equal(graph.neighbors(0), [1, 3])
        self.assertEqual(graph.xadj[-1], 24)

    def test_graph_is_symmetric(self):
        mesh = FEMesh.create_structured_hex_mesh(2, 2, 2)
        graph = build_adjacency_graph(mesh)
        diff = graph.matrix - graph.matrix.T
        self.assertEqual(diff.count_nonzero(), 0)
        self.assertEqual(graph.matrix.diagonal().sum(), 0)

    def test_mixed_blocks(self):
        mesh, _, _ = create_mixed_block_mesh_fixture()
        graph = build_adjacency_graph(mesh)
        self.assertEqual([graph.neighbors(e).tolist() for e in range(3)], [[2], [2], [0, 1]])

    def test_default_weights_are_nodes_per_element(self):
        mesh, _, _ = create_mixed_block_mesh_fixture()
        np.testing.assert_array_equal(element_weights(mesh), [4, 3, 3])

    def test_block_weight_override(self):
        mesh, _, _ = create_mixed_block_mesh_fixture()
        graph = build_adjacency_graph(mesh, block_weights={20: 10})
        np.testing.assert_array_equal(graph.weights, [4, 10, 10])

    def test_negative_weight(self):
        mesh, _, _ = create_mixed_block_mesh_fixture()
        with self.assertRaises(DataIntegrityError):
            element_weights(mesh, {10: -1})

    def test_edge_cut(self):
        mesh = FEMesh.create_structured_quad_mesh(2, 2)
        graph = build_adjacency_graph(mesh)
        self.assertEqual(graph.edge_cut(np.array([0, 0, 1, 1])), 2)
        self.assertEqual(graph.edge_cut(np.array([0, 0, 0, 0])), 0)


if __name__ == "__main__":
    unittest.main()
