import unittest

import numpy as np

from fem_decomp.decomp.comm_map import build_comm_map
from fem_decomp.decomp.index_map import map_partition_indices
from fem_decomp.decomp.membership import resolve_all_memberships, stack_node_masks
from fem_decomp.decomp.set_projection import (
    RestrictedSet,
    check_node_set_coverage,
    concatenate_sets,
    project_node_set,
    project_node_sets,
    project_side_set,
    project_side_sets,
)
from fem_decomp.errors import DataIntegrityError
from fem_decomp.femesh import FEMesh, NodeSet, SideSet
from tests.common_meshes import (
    create_dangling_node_set_mesh_fixture,
    create_mixed_block_mesh_fixture,
)


def _partition_maps(mesh, parts, n_parts):
    """Returns (memberships, [(node_map, elem_map)]) with final node numbering."""
    memberships = resolve_all_memberships(mesh, parts, n_parts)
    masks = stack_node_masks(memberships)
    maps = []
    for m in memberships:
        node_map, elem_map = map_partition_indices(m)
        node_map = build_comm_map(masks, m.partition_id).reordered_node_map(node_map)
        maps.append((node_map, elem_map))
    return memberships, maps


class TestNodeSetProjection(unittest.TestCase):
    def setUp(self):
        self.mesh, self.parts, self.n_parts = create_mixed_block_mesh_fixture()
        self.memberships, self.maps = _partition_maps(self.mesh, self.parts, self.n_parts)

    def test_retained_entries_and_factors(self):
        node_set = self.mesh.node_sets[0]
        r0 = project_node_set(node_set, self.memberships[0].node_mask, self.maps[0][0])
        r1 = project_node_set(node_set, self.memberships[1].node_mask, self.maps[1][0])

        # Partition 0 numbers [0, 3 | 1, 4], partition 1 numbers [2, 5 | 1, 4].
        np.testing.assert_array_equal(r0.entries, [0, 2])
        np.testing.assert_array_equal(r0.dist_factors, [0.5, 1.5])
        np.testing.assert_array_equal(r1.entries, [2, 0])
        np.testing.assert_array_equal(r1.dist_factors, [1.5, 2.5])
        self.assertEqual(r1.n_entries, r1.n_dist_factors)

    def test_default_factors(self):
        node_set = NodeSet(9, np.array([1, 4]))
        r0 = project_node_set(node_set, self.memberships[0].node_mask, self.maps[0][0])
        np.testing.assert_array_equal(r0.dist_factors, [1.0, 1.0])

    def test_out_of_bounds(self):
        node_set = NodeSet(9, np.array([1, 40]))
        with self.assertRaises(DataIntegrityError):
            project_node_set(node_set, self.memberships[0].node_mask, self.maps[0][0])


class TestSideSetProjection(unittest.TestCase):
    def test_factors_sliced_per_side(self):
        mesh, parts, n_parts = create_mixed_block_mesh_fixture()
        memberships, maps = _partition_maps(mesh, parts, n_parts)
        side_set = mesh.side_sets[0]

        r0 = project_side_set(
            side_set, memberships[0].elem_mask, maps[0][1], mesh.side_node_count
        )
        r1 = project_side_set(
            side_set, memberships[1].elem_mask, maps[1][1], mesh.side_node_count
        )
        np.testing.assert_array_equal(r0.entries, [0])
        np.testing.assert_array_equal(r0.sides, [1])
        np.testing.assert_array_equal(r0.dist_factors, [1.0, 2.0])
        np.testing.assert_array_equal(r1.entries, [0])
        np.testing.assert_array_equal(r1.dist_factors, [3.0, 4.0])

    def test_dist_counts_sum_nodes_per_side(self):
        """HEX8 sides carry four distance factors each."""
        mesh = FEMesh.create_structured_hex_mesh(2, 1, 1)
        parts = np.array([0, 1])
        memberships, maps = _partition_maps(mesh, parts, 2)
        zmin = next(s for s in mesh.side_sets if s.set_id == 5)
        xmax = next(s for s in mesh.side_sets if s.set_id == 2)

        r = project_side_set(zmin, memberships[1].elem_mask, maps[1][1], mesh.side_node_count)
        self.assertEqual(r.n_entries, 1)
        self.assertEqual(r.n_dist_factors, 4)
        np.testing.assert_array_equal(r.entry_dist_counts, [4])

        r = project_side_set(xmax, memberships[0].elem_mask, maps[0][1], mesh.side_node_count)
        self.assertEqual(r.n_entries, 0)
        self.assertEqual(r.n_dist_factors, 0)

    def test_mismatched_global_factors(self):
        mesh, parts, n_parts = create_mixed_block_mesh_fixture()
        memberships, maps = _partition_maps(mesh, parts, n_parts)
        side_set = SideSet(3, np.array([0, 1]), np.array([1, 1]), np.array([1.0, 2.0, 3.0]))
        with self.assertRaises(DataIntegrityError):
            project_side_set(side_set, memberships[0].elem_mask, maps[0][1], mesh.side_node_count)

    def test_invalid_side(self):
        mesh, parts, n_parts = create_mixed_block_mesh_fixture()
        memberships, maps = _partition_maps(mesh, parts, n_parts)
        side_set = SideSet(3, np.array([1]), np.array([4]))
        with self.assertRaises(DataIntegrityError):
            project_side_set(side_set, memberships[1].elem_mask, maps[1][1], mesh.side_node_count)

    def test_element_out_of_bounds(self):
        mesh, parts, n_parts = create_mixed_block_mesh_fixture()
        memberships, maps = _partition_maps(mesh, parts, n_parts)
        side_set = SideSet(3, np.array([3]), np.array([1]))
        with self.assertRaises(DataIntegrityError):
            project_side_set(side_set, memberships[1].elem_mask, maps[1][1], mesh.side_node_count)


class TestConcatenation(unittest.TestCase):
    def test_offsets(self):
        sets = [
            RestrictedSet(1, np.array([4, 5]), np.array([2, 2]), np.arange(4.0), np.array([1, 2])),
            RestrictedSet(2, np.array([], dtype=int), np.array([], dtype=int), np.array([]), np.array([], dtype=int)),
            RestrictedSet(3, np.array([7]), np.array([3]), np.array([9.0, 9.0, 9.0]), np.array([4])),
        ]
        flat = concatenate_sets(sets)
        self.assertEqual(flat.n_sets, 3)
        np.testing.assert_array_equal(flat.num_entries_per_set, [2, 0, 1])
        np.testing.assert_array_equal(flat.num_dist_per_set, [4, 0, 3])
        np.testing.assert_array_equal(flat.entry_index, [0, 2, 2])
        np.testing.assert_array_equal(flat.dist_index, [0, 4, 4])
        np.testing.assert_array_equal(flat.entry_list, [4, 5, 7])
        np.testing.assert_array_equal(flat.extra_list, [1, 2, 4])
        np.testing.assert_array_equal(flat.entries_of(2), [7])
        np.testing.assert_array_equal(flat.sides_of(0), [1, 2])
        np.testing.assert_array_equal(flat.dist_factors_of(2), [9.0, 9.0, 9.0])

    def test_no_sets(self):
        flat = concatenate_sets([])
        self.assertEqual(flat.n_sets, 0)
        self.assertEqual(flat.entry_list.size, 0)
        self.assertEqual(flat.dist_fact_list.size, 0)

    def test_inconsistent_factor_count(self):
        bad = RestrictedSet(1, np.array([0]), np.array([2]), np.array([1.0]), np.array([1]))
        with self.assertRaises(DataIntegrityError):
            concatenate_sets([bad])

    def test_whole_mesh_helpers(self):
        mesh, parts, n_parts = create_mixed_block_mesh_fixture()
        memberships, maps = _partition_maps(mesh, parts, n_parts)
        node_sets = project_node_sets(mesh.node_sets, memberships[1].node_mask, maps[1][0])
        side_sets = project_side_sets(
            mesh.side_sets, memberships[1].elem_mask, maps[1][1], mesh.side_node_count
        )
        self.assertIsNone(node_sets.extra_list)
        np.testing.assert_array_equal(node_sets.set_ids, [1])
        np.testing.assert_array_equal(side_sets.set_ids, [2])
        np.testing.assert_array_equal(side_sets.num_dist_per_set, [2])
        self.assertEqual(side_sets.names, ["bottom"])


class TestNodeSetCoverage(unittest.TestCase):
    def test_dangling_node(self):
        mesh, parts, n_parts = create_dangling_node_set_mesh_fixture()
        masks = stack_node_masks(resolve_all_memberships(mesh, parts, n_parts))
        with self.assertRaisesRegex(DataIntegrityError, "entry 6"):
            check_node_set_coverage(mesh.node_sets, masks)

    def test_covered(self):
        mesh, parts, n_parts = create_mixed_block_mesh_fixture()
        masks = stack_node_masks(resolve_all_memberships(mesh, parts, n_parts))
        check_node_set_coverage(mesh.node_sets, masks)


if __name__ == "__main__":
    unittest.main()
