import unittest

import numpy as np

from fem_decomp.decomp.comm_map import (
    CommunicationMap,
    build_comm_map,
    verify_comm_map_symmetry,
)
from fem_decomp.decomp.index_map import map_indices
from fem_decomp.decomp.membership import resolve_all_memberships, stack_node_masks
from fem_decomp.errors import DataIntegrityError
from fem_decomp.femesh import FEMesh
from tests.common_meshes import (
    create_4x4_quadrant_mesh_fixture,
    create_two_quad_mesh_fixture,
)


def _node_masks(mesh, parts, n_parts):
    return stack_node_masks(resolve_all_memberships(mesh, parts, n_parts))


class TestCommunicationMap(unittest.TestCase):
    def test_two_quads(self):
        """Two quads sharing one edge share its two nodes."""
        mesh, parts, n_parts = create_two_quad_mesh_fixture()
        masks = _node_masks(mesh, parts, n_parts)

        cm0 = build_comm_map(masks, 0)
        self.assertEqual((cm0.n_internal, cm0.n_boundary), (2, 2))
        np.testing.assert_array_equal(cm0.node_order, [0, 3, 1, 4])
        self.assertEqual(cm0.neighbor_ids, [1])
        self.assertEqual(cm0.shared_node_counts, [2])
        np.testing.assert_array_equal(cm0.shared_nodes[1], [2, 3])
        np.testing.assert_array_equal(cm0.shared_global_nodes(1), [1, 4])
        np.testing.assert_array_equal(cm0.shared_node_procs[1], [1, 1])

        cm1 = build_comm_map(masks, 1)
        self.assertEqual((cm1.n_internal, cm1.n_boundary), (2, 2))
        np.testing.assert_array_equal(cm1.node_order, [2, 5, 1, 4])
        self.assertEqual(cm1.neighbor_ids, [0])
        np.testing.assert_array_equal(cm1.shared_global_nodes(0), [1, 4])

        verify_comm_map_symmetry([cm0, cm1])

    def test_internal_plus_boundary_is_local_count(self):
        mesh, parts, n_parts = create_4x4_quadrant_mesh_fixture()
        masks = _node_masks(mesh, parts, n_parts)
        for p in range(n_parts):
            cm = build_comm_map(masks, p)
            self.assertEqual(cm.n_local, int(masks[p].sum()))
            np.testing.assert_array_equal(cm.internal_nodes, np.arange(cm.n_internal))
            np.testing.assert_array_equal(
                cm.boundary_nodes, np.arange(cm.n_internal, cm.n_local)
            )

    def test_quadrants(self):
        """The centre node is shared with the diagonal quadrant only."""
        mesh, parts, n_parts = create_4x4_quadrant_mesh_fixture()
        masks = _node_masks(mesh, parts, n_parts)
        cm0 = build_comm_map(masks, 0)
        self.assertEqual((cm0.n_internal, cm0.n_boundary), (4, 5))
        self.assertEqual(cm0.neighbor_ids, [1, 2, 3])
        self.assertEqual(cm0.shared_node_counts, [3, 3, 1])
        np.testing.assert_array_equal(cm0.shared_global_nodes(1), [2, 7, 12])
        np.testing.assert_array_equal(cm0.shared_global_nodes(2), [10, 11, 12])
        np.testing.assert_array_equal(cm0.shared_global_nodes(3), [12])

        comm_maps = [build_comm_map(masks, p) for p in range(n_parts)]
        verify_comm_map_symmetry(comm_maps)

    def test_exclusive_nodes_are_internal(self):
        mesh, parts, n_parts = create_4x4_quadrant_mesh_fixture()
        masks = _node_masks(mesh, parts, n_parts)
        sharers = masks.sum(axis=0)
        for p in range(n_parts):
            cm = build_comm_map(masks, p)
            internal_g = cm.node_order[: cm.n_internal]
            boundary_g = cm.node_order[cm.n_internal :]
            self.assertTrue(np.all(sharers[internal_g] == 1))
            self.assertTrue(np.all(sharers[boundary_g] > 1))
            for q in cm.neighbor_ids:
                self.assertTrue(np.all(masks[q][cm.shared_global_nodes(q)]))

    def test_single_partition(self):
        mesh = FEMesh.create_structured_quad_mesh(3, 3)
        masks = _node_masks(mesh, np.zeros(mesh.n_elems, dtype=int), 1)
        cm = build_comm_map(masks, 0)
        self.assertEqual(cm.n_internal, mesh.n_nodes)
        self.assertEqual(cm.n_boundary, 0)
        self.assertEqual(cm.neighbor_ids, [])
        self.assertEqual(cm.shared_nodes, {})

    def test_reordered_node_map(self):
        mesh, parts, n_parts = create_two_quad_mesh_fixture()
        masks = _node_masks(mesh, parts, n_parts)
        cm = build_comm_map(masks, 0, node_map=map_indices(masks[0]))
        node_map = cm.reordered_node_map(map_indices(masks[0]))
        np.testing.assert_array_equal(node_map.l2g, [0, 3, 1, 4])
        np.testing.assert_array_equal(node_map.remap([1, 4]), cm.shared_nodes[1])

    def test_mismatched_node_map(self):
        mesh, parts, n_parts = create_two_quad_mesh_fixture()
        masks = _node_masks(mesh, parts, n_parts)
        with self.assertRaises(DataIntegrityError):
            build_comm_map(masks, 0, node_map=map_indices(masks[1]))

    def test_partition_out_of_range(self):
        mesh, parts, n_parts = create_two_quad_mesh_fixture()
        masks = _node_masks(mesh, parts, n_parts)
        with self.assertRaises(DataIntegrityError):
            build_comm_map(masks, 2)

    def test_asymmetric_maps(self):
        mesh, parts, n_parts = create_two_quad_mesh_fixture()
        masks = _node_masks(mesh, parts, n_parts)
        cm0 = build_comm_map(masks, 0)
        lonely = CommunicationMap(
            partition_id=1,
            n_internal=4,
            n_boundary=0,
            node_order=np.array([1, 2, 4, 5]),
            neighbor_ids=[],
            shared_node_counts=[],
            shared_nodes={},
            shared_node_procs={},
        )
        with self.assertRaises(DataIntegrityError):
            verify_comm_map_symmetry([cm0, lonely])


if __name__ == "__main__":
    unittest.main()
