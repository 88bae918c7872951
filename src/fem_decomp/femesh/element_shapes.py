# -*- coding: utf-8 -*-
"""
Element side tables.

This module describes, for each supported element type, which local nodes form
each of its sides. Sides are numbered from 1 following the Exodus II
convention, so that side-set entries read from Exodus-style data can be used
directly.

Functions
---------
:py:func:`normalize_elem_type`:
    Maps an element type name (or alias) to its canonical name.
:py:func:`side_nodes`:
    Returns the local node indices of one side of an element type.
:py:func:`side_node_count`:
    Returns the number of nodes on one side of an element type.
:py:func:`num_sides`:
    Returns the number of sides of an element type.
"""

from typing import Dict, Tuple

from ..errors import DataIntegrityError

# Local node indices per side, 1-based side numbering (index 0 is side 1).
SIDE_TEMPLATES: Dict[str, Tuple[Tuple[int, ...], ...]] = {
    "BAR2": ((0,), (1,)),
    "BAR3": ((0,), (1,)),
    "TRI3": ((0, 1), (1, 2), (2, 0)),
    "TRI6": ((0, 1, 3), (1, 2, 4), (2, 0, 5)),
    "QUAD4": ((0, 1), (1, 2), (2, 3), (3, 0)),
    "QUAD8": ((0, 1, 4), (1, 2, 5), (2, 3, 6), (3, 0, 7)),
    "QUAD9": ((0, 1, 4), (1, 2, 5), (2, 3, 6), (3, 0, 7)),
    "TET4": ((0, 1, 3), (1, 2, 3), (0, 3, 2), (0, 2, 1)),
    "TET10": (
        (0, 1, 3, 4, 8, 7),
        (1, 2, 3, 5, 9, 8),
        (0, 3, 2, 7, 9, 6),
        (0, 2, 1, 6, 5, 4),
    ),
    "HEX8": (
        (0, 1, 5, 4),
        (1, 2, 6, 5),
        (2, 3, 7, 6),
        (0, 4, 7, 3),
        (0, 3, 2, 1),
        (4, 5, 6, 7),
    ),
    "HEX20": (
        (0, 1, 5, 4, 8, 13, 16, 12),
        (1, 2, 6, 5, 9, 14, 17, 13),
        (2, 3, 7, 6, 10, 15, 18, 14),
        (0, 4, 7, 3, 12, 19, 15, 11),
        (0, 3, 2, 1, 11, 10, 9, 8),
        (4, 5, 6, 7, 16, 17, 18, 19),
    ),
    "HEX27": (
        (0, 1, 5, 4, 8, 13, 16, 12, 25),
        (1, 2, 6, 5, 9, 14, 17, 13, 24),
        (2, 3, 7, 6, 10, 15, 18, 14, 26),
        (0, 4, 7, 3, 12, 19, 15, 11, 23),
        (0, 3, 2, 1, 11, 10, 9, 8, 21),
        (4, 5, 6, 7, 16, 17, 18, 19, 22),
    ),
    "WEDGE6": (
        (0, 1, 4, 3),
        (1, 2, 5, 4),
        (0, 3, 5, 2),
        (0, 2, 1),
        (3, 4, 5),
    ),
    "SHELL4": (
        (0, 1, 2, 3),
        (0, 3, 2, 1),
        (0, 1),
        (1, 2),
        (2, 3),
        (3, 0),
    ),
}

# Number of nodes of each element type.
NODES_PER_ELEMENT: Dict[str, int] = {
    "BAR2": 2,
    "BAR3": 3,
    "TRI3": 3,
    "TRI6": 6,
    "QUAD4": 4,
    "QUAD8": 8,
    "QUAD9": 9,
    "TET4": 4,
    "TET10": 10,
    "HEX8": 8,
    "HEX20": 20,
    "HEX27": 27,
    "WEDGE6": 6,
    "SHELL4": 4,
}

# Topological dimension of each element type.
ELEMENT_DIMENSION: Dict[str, int] = {
    "BAR2": 1,
    "BAR3": 1,
    "TRI3": 2,
    "TRI6": 2,
    "QUAD4": 2,
    "QUAD8": 2,
    "QUAD9": 2,
    "TET4": 3,
    "TET10": 3,
    "HEX8": 3,
    "HEX20": 3,
    "HEX27": 3,
    "WEDGE6": 3,
    "SHELL4": 2,
}

_ALIASES: Dict[str, str] = {
    "BAR": "BAR2",
    "BEAM": "BAR2",
    "LINE": "BAR2",
    "TRUSS": "BAR2",
    "TRI": "TRI3",
    "TRIANGLE": "TRI3",
    "QUAD": "QUAD4",
    "QUADRILATERAL": "QUAD4",
    "TET": "TET4",
    "TETRA": "TET4",
    "TETRA4": "TET4",
    "TETRA10": "TET10",
    "HEX": "HEX8",
    "HEXAHEDRON": "HEX8",
    "WEDGE": "WEDGE6",
    "PRISM": "WEDGE6",
    "SHELL": "SHELL4",
}


def normalize_elem_type(name: str) -> str:
    """
    Returns the canonical element type name for `name`.

    Matching is case-insensitive and accepts common aliases (e.g. 'quad',
    'TETRA', 'hex').

    Raises:
        DataIntegrityError: If the element type is not supported.
    """
    key = str(name).strip().upper()
    key = _ALIASES.get(key, key)
    if key not in SIDE_TEMPLATES:
        raise DataIntegrityError(f"Unsupported element type '{name}'.")
    return key


def num_sides(elem_type: str) -> int:
    """Returns the number of sides of an element type."""
    return len(SIDE_TEMPLATES[normalize_elem_type(elem_type)])


def side_nodes(elem_type: str, side: int) -> Tuple[int, ...]:
    """
    Returns the local node indices that form one side of an element.

    Args:
        elem_type: The element type name.
        side: The 1-based side number.

    Returns:
        A tuple of local (0-based) node indices within the element.

    Raises:
        DataIntegrityError: If the type is unknown or the side is out of range.
    """
    templates = SIDE_TEMPLATES[normalize_elem_type(elem_type)]
    if not 1 <= side <= len(templates):
        raise DataIntegrityError(
            f"Side {side} is out of range for element type '{elem_type}' "
            f"(valid sides: 1..{len(templates)})."
        )
    return templates[side - 1]


def side_node_count(elem_type: str, side: int) -> int:
    """Returns the number of nodes on side `side` of an element type."""
    return len(side_nodes(elem_type, side))
