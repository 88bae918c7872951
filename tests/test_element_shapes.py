import unittest

from fem_decomp.errors import DataIntegrityError
from fem_decomp.femesh import element_shapes


class TestElementShapes(unittest.TestCase):
    def test_normalize_aliases(self):
        self.assertEqual(element_shapes.normalize_elem_type("quad"), "QUAD4")
        self.assertEqual(element_shapes.normalize_elem_type(" Hex "), "HEX8")
        self.assertEqual(element_shapes.normalize_elem_type("TETRA10"), "TET10")
        self.assertEqual(element_shapes.normalize_elem_type("tri6"), "TRI6")

    def test_unknown_type_raises(self):
        with self.assertRaises(DataIntegrityError):
            element_shapes.normalize_elem_type("PYRAMID13")

    def test_side_counts(self):
        """Nodes per side follow the element family and order."""
        self.assertEqual(element_shapes.side_node_count("QUAD4", 1), 2)
        self.assertEqual(element_shapes.side_node_count("QUAD8", 3), 3)
        self.assertEqual(element_shapes.side_node_count("HEX8", 6), 4)
        self.assertEqual(element_shapes.side_node_count("HEX27", 2), 9)
        self.assertEqual(element_shapes.side_node_count("WEDGE6", 1), 4)
        self.assertEqual(element_shapes.side_node_count("WEDGE6", 4), 3)
        self.assertEqual(element_shapes.side_node_count("TET10", 2), 6)

    def test_num_sides(self):
        self.assertEqual(element_shapes.num_sides("BAR2"), 2)
        self.assertEqual(element_shapes.num_sides("TRI3"), 3)
        self.assertEqual(element_shapes.num_sides("TET4"), 4)
        self.assertEqual(element_shapes.num_sides("HEX8"), 6)

    def test_side_nodes_one_based(self):
        self.assertEqual(element_shapes.side_nodes("QUAD4", 1), (0, 1))
        self.assertEqual(element_shapes.side_nodes("QUAD4", 4), (3, 0))
        self.assertEqual(element_shapes.side_nodes("HEX8", 5), (0, 3, 2, 1))

    def test_side_out_of_range(self):
        with self.assertRaises(DataIntegrityError):
            element_shapes.side_nodes("QUAD4", 0)
        with self.assertRaises(DataIntegrityError):
            element_shapes.side_nodes("QUAD4", 5)

    def test_tables_are_consistent(self):
        for elem_type, templates in element_shapes.SIDE_TEMPLATES.items():
            n_nodes = element_shapes.NODES_PER_ELEMENT[elem_type]
            self.assertIn(elem_type, element_shapes.ELEMENT_DIMENSION)
            for side in templates:
                self.assertTrue(all(0 <= i < n_nodes for i in side), elem_type)


if __name__ == "__main__":
    unittest.main()
